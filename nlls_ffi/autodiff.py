"""Cost functions with Jacobians computed by JAX.

Writing Jacobians by hand is error prone. :class:`AutoDiffCostFunction`
turns a JAX residual function into an evaluation closure for
:class:`~nlls_ffi.cost.CostFunction`: residuals come from the function
itself and every requested Jacobian block from forward-mode automatic
differentiation (``jax.jacfwd``), which suits the usual least-squares case
of few parameters per block.

The residual function receives the parameter blocks as a tuple of 1-D JAX
arrays plus a user ``args`` object::

    def residual_fn(blocks, args):
        x, y = blocks
        return jnp.array([x[0] - y[0], x[1] * y[1] - args])

Precision follows JAX: enable ``jax_enable_x64`` to evaluate in float64.
"""

import operator
from collections.abc import Callable, Sequence
from typing import Any

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np

from nlls_ffi.cost import CostFunction
from nlls_ffi.types import JacobianViews, ParameterView, ResidualFn, ResidualView
from nlls_ffi.utils import Blocks, args_closure, as_sizes


class AutoDiffCostFunction(eqx.Module):
    """Evaluation closure backed by a JAX residual function.

    All parameter blocks are differentiated together, in the same pass as
    the residuals, whenever at least one Jacobian block is requested; blocks
    the solver did not ask for are not written. Non-finite residuals or
    derivatives are reported as an evaluation failure so the solver can back
    off.

    Attributes:
        residual_fn: Function ``residual_fn(blocks, args)`` returning the
            residual vector of shape ``(num_residuals,)``.
        parameter_sizes: Sizes of the parameter blocks, in order.
        num_residuals: Length of the residual vector.
        args: Extra data passed unchanged to ``residual_fn``.
    """

    residual_fn: ResidualFn = eqx.field(static=True)
    parameter_sizes: tuple[int, ...] = eqx.field(static=True)
    num_residuals: int = eqx.field(static=True)
    args: Any
    _residuals: Callable[[Blocks], jax.Array] = eqx.field(static=True)
    _linearized: Callable[[Blocks], tuple[Blocks, jax.Array]] = eqx.field(
        static=True
    )

    def __init__(
        self,
        residual_fn: ResidualFn,
        parameter_sizes: Sequence[int],
        num_residuals: int,
        args: Any = None,
        jit: bool = True,
    ):
        self.residual_fn = residual_fn
        self.parameter_sizes = as_sizes(parameter_sizes)
        self.num_residuals = operator.index(num_residuals)
        self.args = args

        residuals_fn = args_closure(residual_fn, args)

        def with_residuals(blocks: Blocks) -> tuple[jax.Array, jax.Array]:
            values = residuals_fn(blocks)
            return values, values

        # Residuals ride along as aux output so one pass yields both
        linearized = jax.jacfwd(with_residuals, has_aux=True)
        closure = residuals_fn
        if jit:
            closure = jax.jit(closure)
            linearized = jax.jit(linearized)
        self._residuals = closure
        self._linearized = linearized

    def __check_init__(self):
        # Trace once with abstract blocks to catch shape errors up front
        dtype = jnp.result_type(float)
        blocks = tuple(
            jax.ShapeDtypeStruct((size,), dtype) for size in self.parameter_sizes
        )
        out = jax.eval_shape(self._residuals, blocks)
        if out.shape != (self.num_residuals,):
            raise ValueError(
                f"Residual function returns shape {out.shape}, "
                f"expected ({self.num_residuals},)."
            )

    def __call__(
        self,
        parameters: Sequence[ParameterView],
        residuals: ResidualView,
        jacobians: JacobianViews,
    ) -> bool:
        blocks = tuple(jnp.asarray(block) for block in parameters)

        if jacobians is None or all(out is None for out in jacobians):
            values = np.asarray(self._residuals(blocks))
            block_jacobians = ()
        else:
            block_jacobians, values = self._linearized(blocks)
            values = np.asarray(values)

        if not np.all(np.isfinite(values)):
            return False
        residuals[:] = values

        for out, block_jacobian in zip(jacobians or (), block_jacobians):
            if out is None:
                continue
            block_jacobian = np.asarray(block_jacobian)
            if not np.all(np.isfinite(block_jacobian)):
                return False
            out[...] = block_jacobian
        return True
