"""Cost function handle shared with the native solver.

A ``CostFunction`` bundles a user evaluation closure with the shape of the
residual block it evaluates: the size of every parameter block and the
number of residuals. The native solver never sees the Python object itself,
only an opaque address obtained from :meth:`CostFunction.address`, which it
passes back to :data:`nlls_ffi.trampoline.ffi_cost_function` on every
evaluation.

CPython objects are never relocated, so the address stays valid for as long
as the handle is alive. Keeping the handle referenced while the solver holds
its address is the responsibility of the problem-construction code.

Shapes are validated once, here, so that the per-call path can trust them.
"""

import ctypes
import logging
import operator
from collections.abc import Sequence

import equinox as eqx
from beartype import beartype
from jaxtyping import jaxtyped

from nlls_ffi.types import CostFn, JacobianViews, ParameterView, ResidualView
from nlls_ffi.utils import as_sizes

logger = logging.getLogger(__name__)


class CostFunction(eqx.Module):
    """Cost function for one residual block of a least-squares problem.

    The handle is immutable: neither the closure nor the shape metadata can
    change after construction, so the same handle may be evaluated
    concurrently on distinct buffers.

    Attributes:
        func: Evaluation closure called as ``func(parameters, residuals,
            jacobians)``. It must return False if it cannot evaluate at the
            given parameters, True otherwise. Arguments:

            - parameters: list of read-only 1-D views, one per parameter
              block, of lengths ``parameter_sizes``.
            - residuals: writable 1-D view of length ``num_residuals``.
            - jacobians: None if no Jacobian is requested, else a list with
              one entry per parameter block, None where that block's
              Jacobian is not requested and otherwise a writable
              ``(num_residuals, parameter_sizes[i])`` view whose element
              ``[r, c]`` receives d residual_r / d parameter_i[c].

            The views are only valid during the call and must not be kept.
        parameter_sizes: Sizes of the parameter blocks, in order.
        num_residuals: Length of the residual vector.

    Example:
        >>> def func(parameters, residuals, jacobians):
        ...     x = parameters[0][0]
        ...     residuals[0] = x**2 - 4.0
        ...     if jacobians is not None and jacobians[0] is not None:
        ...         jacobians[0][0, 0] = 2.0 * x
        ...     return True
        >>>
        >>> cost = CostFunction(func, [1], 1)
    """

    func: CostFn = eqx.field(static=True)
    parameter_sizes: tuple[int, ...] = eqx.field(static=True, converter=as_sizes)
    num_residuals: int = eqx.field(static=True, converter=operator.index)

    def __check_init__(self):
        if len(self.parameter_sizes) == 0:
            raise ValueError("At least one parameter block is required.")
        if any(size <= 0 for size in self.parameter_sizes):
            raise ValueError(
                f"Parameter block sizes must be positive, got {self.parameter_sizes}."
            )
        if self.num_residuals <= 0:
            raise ValueError(
                f"Number of residuals must be positive, got {self.num_residuals}."
            )
        logger.debug(
            "Created cost function with parameter sizes %s and %d residuals",
            self.parameter_sizes,
            self.num_residuals,
        )

    @property
    def num_parameters(self) -> int:
        """Number of parameter blocks."""
        return len(self.parameter_sizes)

    def address(self) -> int:
        """Opaque token identifying this handle for the native solver.

        The token is only meaningful to the trampolines in this package. The
        handle must outlive every use of the token by the solver.
        """
        return id(self)

    @classmethod
    def from_address(cls, address: int) -> "CostFunction":
        """Recover the handle behind a token produced by :meth:`address`.

        This is an unchecked reinterpretation: passing anything other than
        the address of a live handle is undefined behavior.
        """
        return ctypes.cast(address, ctypes.py_object).value

    @jaxtyped(typechecker=beartype)
    def call(
        self,
        parameters: Sequence[ParameterView],
        residuals: ResidualView,
        jacobians: JacobianViews = None,
    ) -> bool:
        """Call the evaluation closure directly, bypassing the trampoline.

        Args:
            parameters: One 1-D array per parameter block.
            residuals: Output array for the residuals.
            jacobians: Optional per-parameter Jacobian outputs.

        Returns:
            Whether the closure could evaluate at ``parameters``.
        """
        return bool(self.func(parameters, residuals, jacobians))
