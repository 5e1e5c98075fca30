"""Zero-copy views over solver-owned buffers.

The native solver hands the bridge raw ``double*`` pointers whose extents are
fixed by the shape contract agreed when the cost function was created. The
helpers here wrap such pointers in NumPy arrays without copying, so writes
made through a view land directly in the solver's memory.

A NULL pointer is never turned into an empty array: it means "not requested"
and is reported as ``None``.
"""

import ctypes
from collections.abc import Sequence
from typing import Optional

import numpy as np
from beartype import beartype
from jaxtyping import Float, Float64, jaxtyped

from nlls_ffi.types import DerivativeView, DoublePointer


def as_vector(
    pointer: DoublePointer,
    size: int,
    writeable: bool = True,
) -> Optional[Float64[np.ndarray, " size"]]:
    """Wrap ``size`` contiguous doubles starting at ``pointer``.

    No bounds are verified: ``size`` must be the length agreed with the
    solver for this buffer.

    Args:
        pointer: Pointer to the first element, possibly NULL.
        size: Number of elements behind the pointer.
        writeable: If False, the returned view rejects writes.

    Returns:
        A 1-D float64 view sharing memory with the buffer, or None if the
        pointer is NULL.
    """
    if not pointer:
        return None
    view = np.ctypeslib.as_array(pointer, shape=(size,))
    if not writeable:
        view.flags.writeable = False
    return view


def as_row_blocks(
    pointer: DoublePointer,
    parameter_size: int,
    num_residuals: int,
) -> Optional[DerivativeView]:
    """Wrap a residual-major Jacobian block as a 2-D view.

    The buffer holds ``num_residuals * parameter_size`` doubles. Row ``r`` of
    the result is ``buffer[r * parameter_size:(r + 1) * parameter_size]``,
    i.e. the derivatives of residual ``r`` with respect to every component of
    the parameter block.

    Args:
        pointer: Pointer to the block, possibly NULL.
        parameter_size: Number of components in the parameter block.
        num_residuals: Number of residuals.

    Returns:
        A writable ``(num_residuals, parameter_size)`` view, or None if the
        pointer is NULL.
    """
    flat = as_vector(pointer, parameter_size * num_residuals)
    if flat is None:
        return None
    # Reshaping a contiguous array never copies
    return flat.reshape(num_residuals, parameter_size)


@jaxtyped(typechecker=beartype)
def pointer_array(
    arrays: Sequence[Optional[Float[np.ndarray, "..."]]],
) -> ctypes.Array:
    """Build a ``double**`` from NumPy arrays, the way a native solver would.

    ``None`` entries become NULL pointers. The arrays are not copied, so they
    must stay alive for as long as the returned pointer array is in use.

    Args:
        arrays: Sequence of C-contiguous float64 arrays or None.

    Returns:
        A ctypes array of ``POINTER(c_double)``, usable wherever a
        ``double**`` argument is expected.
    """
    pointers = []
    for i, array in enumerate(arrays):
        if array is None:
            pointers.append(DoublePointer())
            continue
        if array.dtype != np.float64:
            raise ValueError(f"Buffer {i} is not float64, got {array.dtype}.")
        if not array.flags.c_contiguous:
            raise ValueError(f"Buffer {i} is not C-contiguous.")
        pointers.append(array.ctypes.data_as(DoublePointer))
    return (DoublePointer * len(pointers))(*pointers)
