"""nlls-ffi: Python cost functions for native nonlinear least-squares solvers.

This package lets a native solver evaluate residuals and Jacobians written in
Python. The solver is handed the address of a :class:`CostFunction` and a
single C entry point, :data:`ffi_cost_function`; on every evaluation the
entry point wraps the solver's raw buffers in zero-copy NumPy views and
forwards them to the user closure. Jacobians can be supplied by hand or
computed with JAX via :func:`autodiff_cost_function`.
"""

from nlls_ffi.autodiff import AutoDiffCostFunction, autodiff_cost_function
from nlls_ffi.buffers import as_row_blocks, as_vector, pointer_array
from nlls_ffi.cost import CostFunction
from nlls_ffi.iteration_callback import (
    CallbackReturnType,
    IterationCallback,
    IterationCallbackHandle,
    IterationSummary,
    ffi_iteration_callback,
    ffi_iteration_callback_pointer,
)
from nlls_ffi.jacobian import build_jacobian_views
from nlls_ffi.trampoline import ffi_cost_function, ffi_cost_function_pointer
from nlls_ffi.types import (
    CostFn,
    DerivativeView,
    EvaluationStatus,
    JacobianViews,
    ResidualFn,
)

__all__ = [
    # Cost function handle
    "CostFunction",
    "AutoDiffCostFunction",
    "autodiff_cost_function",
    # C entry points
    "ffi_cost_function",
    "ffi_cost_function_pointer",
    "ffi_iteration_callback",
    "ffi_iteration_callback_pointer",
    # Iteration callbacks
    "CallbackReturnType",
    "IterationCallback",
    "IterationCallbackHandle",
    "IterationSummary",
    # Buffer views
    "as_vector",
    "as_row_blocks",
    "pointer_array",
    "build_jacobian_views",
    # Types
    "CostFn",
    "DerivativeView",
    "EvaluationStatus",
    "JacobianViews",
    "ResidualFn",
]
