"""Per-iteration callbacks invoked by the native solver.

The solver reports progress after every iteration by calling
:data:`ffi_iteration_callback` with the address of an
:class:`IterationCallbackHandle` and a pointer to an
:class:`IterationSummary`::

    int ffi_iteration_callback(void *user_data,
                               const IterationSummary *summary);

The returned integer is a :class:`CallbackReturnType` telling the solver
whether to continue, abort or stop with success.
"""

import ctypes
import logging
from enum import IntEnum
from typing import Optional, Protocol

import equinox as eqx

logger = logging.getLogger(__name__)


class IterationSummary(ctypes.Structure):
    """State of the solver after one iteration.

    The field layout matches the summary struct passed by the native solver.
    """

    _fields_ = [
        ("iteration", ctypes.c_int),
        ("step_is_valid", ctypes.c_bool),
        ("step_is_nonmonotonic", ctypes.c_bool),
        ("step_is_successful", ctypes.c_bool),
        ("cost", ctypes.c_double),
        ("cost_change", ctypes.c_double),
        ("gradient_max_norm", ctypes.c_double),
        ("gradient_norm", ctypes.c_double),
        ("step_norm", ctypes.c_double),
        ("relative_decrease", ctypes.c_double),
        ("trust_region_radius", ctypes.c_double),
        ("eta", ctypes.c_double),
        ("step_size", ctypes.c_double),
        ("line_search_function_evaluations", ctypes.c_int),
        ("line_search_gradient_evaluations", ctypes.c_int),
        ("line_search_iterations", ctypes.c_int),
        ("linear_solver_iterations", ctypes.c_int),
        ("iteration_time_in_seconds", ctypes.c_double),
        ("step_solver_time_in_seconds", ctypes.c_double),
        ("cumulative_time_in_seconds", ctypes.c_double),
    ]


class CallbackReturnType(IntEnum):
    """What the solver should do after an iteration callback returns."""

    SOLVER_CONTINUE = 0
    SOLVER_ABORT = 1
    SOLVER_TERMINATE_SUCCESSFULLY = 2


class IterationCallback(Protocol):
    def invoke(self, summary: IterationSummary) -> CallbackReturnType: ...


class IterationCallbackHandle(eqx.Module):
    """Address-stable holder for an :class:`IterationCallback`.

    The callback object itself may keep mutable state between iterations;
    only the reference to it is frozen.
    """

    callback: IterationCallback = eqx.field(static=True)

    def address(self) -> int:
        """Opaque token identifying this handle for the native solver."""
        return id(self)

    @classmethod
    def from_address(cls, address: int) -> "IterationCallbackHandle":
        return ctypes.cast(address, ctypes.py_object).value


ITERATION_CALLBACK = ctypes.CFUNCTYPE(
    ctypes.c_int,
    ctypes.c_void_p,
    ctypes.POINTER(IterationSummary),
)


def _invoke(
    user_data: Optional[int],
    summary: "ctypes._Pointer[IterationSummary]",
) -> int:
    handle = IterationCallbackHandle.from_address(user_data)
    # The solver owns the struct; hand the callback its own copy
    summary_copy = IterationSummary.from_buffer_copy(summary.contents)
    try:
        raw_code = handle.callback.invoke(summary_copy)
    except Exception:
        logger.exception("Iteration callback raised; aborting the solve")
        return CallbackReturnType.SOLVER_ABORT
    try:
        code = CallbackReturnType(raw_code)
    except ValueError:
        logger.error(
            "Iteration callback returned unknown code %r; aborting the solve",
            raw_code,
        )
        return CallbackReturnType.SOLVER_ABORT
    return int(code)


ffi_iteration_callback = ITERATION_CALLBACK(_invoke)


def ffi_iteration_callback_pointer() -> int:
    """Address of the C entry point, for registration with the solver."""
    return ctypes.cast(ffi_iteration_callback, ctypes.c_void_p).value
