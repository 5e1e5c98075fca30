"""Type definitions for nlls-ffi.

This module contains the type aliases shared by the buffer reconstruction,
the Jacobian shape builder and the callback trampolines. NumPy views are
annotated with jaxtyping so that shapes can be checked with beartype on the
paths that are not performance critical.
"""

import ctypes
from collections.abc import Callable, Sequence
from typing import Any, Optional

import numpy as np
from jaxtyping import Array, Float, Float64

# Raw pointer types used by the native calling convention
DoublePointer = ctypes.POINTER(ctypes.c_double)
DoublePointerArray = ctypes.POINTER(DoublePointer)

# Views over solver-owned memory
ParameterView = Float64[np.ndarray, " _"]
ResidualView = Float64[np.ndarray, " num_residuals"]
# Row r holds d residual_r / d parameter_block[c] for every component c
DerivativeView = Float64[np.ndarray, "num_residuals _"]

# None at the top level: no Jacobian requested on this call.
# None for an entry: that parameter block's Jacobian is not requested.
JacobianViews = Optional[list[Optional[DerivativeView]]]

# User evaluation closure: returns False if residuals cannot be computed
CostFn = Callable[[Sequence[ParameterView], ResidualView, JacobianViews], bool]

# JAX residual function: residual_fn(blocks, args) -> residuals
ResidualFn = Callable[[tuple[Float[Array, " _"], ...], Any], Float[Array, " m"]]


class EvaluationStatus:
    """Integer codes returned to the native solver by the cost trampoline."""

    FAILURE = 0
    SUCCESS = 1
