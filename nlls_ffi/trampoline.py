"""C entry point through which the native solver evaluates cost functions.

The solver registers :data:`ffi_cost_function` once and calls it with the
address of a :class:`~nlls_ffi.cost.CostFunction` and the raw buffers of the
current evaluation::

    int ffi_cost_function(void *user_data, double **parameters,
                          double *residuals, double **jacobians);

The trampoline holds no state of its own. It rebuilds zero-copy views over
the buffers using the shapes stored in the handle, forwards them to the
user closure and translates its result to the native convention, nonzero
meaning success.

Buffer extents are never re-validated here: the solver is trusted to pass
exactly the shapes declared when the handle was created. The address
reinterpretation in :meth:`CostFunction.from_address` is the only unchecked
step.
"""

import ctypes
import logging
from typing import Optional

from nlls_ffi.buffers import as_vector
from nlls_ffi.cost import CostFunction
from nlls_ffi.jacobian import build_jacobian_views
from nlls_ffi.types import DoublePointer, DoublePointerArray, EvaluationStatus

logger = logging.getLogger(__name__)

COST_FUNCTION_CALLBACK = ctypes.CFUNCTYPE(
    ctypes.c_int,
    ctypes.c_void_p,
    DoublePointerArray,
    DoublePointer,
    DoublePointerArray,
)


def _evaluate(
    user_data: Optional[int],
    parameters: DoublePointerArray,
    residuals: DoublePointer,
    jacobians: DoublePointerArray,
) -> int:
    cost = CostFunction.from_address(user_data)

    # 1. Read-only parameter blocks, trusting the declared sizes
    parameter_views = [
        as_vector(parameters[i], size, writeable=False)
        for i, size in enumerate(cost.parameter_sizes)
    ]

    # 2. Residual output and the optional Jacobian hierarchy
    residual_view = as_vector(residuals, cost.num_residuals)
    jacobian_views = build_jacobian_views(
        jacobians, cost.parameter_sizes, cost.num_residuals
    )

    # 3. Python exceptions cannot unwind through the solver
    try:
        success = cost.func(parameter_views, residual_view, jacobian_views)
    except Exception:
        logger.exception("Cost function raised; reporting evaluation failure")
        return EvaluationStatus.FAILURE

    if not success:
        logger.debug("Cost function could not evaluate at the current parameters")
        return EvaluationStatus.FAILURE
    return EvaluationStatus.SUCCESS


# Module-level so the C thunk lives as long as the interpreter
ffi_cost_function = COST_FUNCTION_CALLBACK(_evaluate)


def ffi_cost_function_pointer() -> int:
    """Address of the C entry point, for registration with the solver."""
    return ctypes.cast(ffi_cost_function, ctypes.c_void_p).value
