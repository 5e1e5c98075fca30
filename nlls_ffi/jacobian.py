"""Jacobian view hierarchy for a single cost evaluation.

The solver may request the Jacobian for all, some or none of the parameter
blocks on any given call, which gives two independent levels of absence:

- ``jacobians`` itself is NULL: no Jacobian at all, reported as ``None``.
- ``jacobians[i]`` is NULL: block ``i`` is not needed, reported as a ``None``
  entry in the per-parameter list.

Requested blocks are exposed as writable ``(num_residuals, parameter_size)``
views over the solver's buffers. Entries are ordered exactly as the
parameter blocks were declared, since consumers index them by position.
"""

from collections.abc import Sequence

from nlls_ffi.buffers import as_row_blocks
from nlls_ffi.types import DoublePointerArray, JacobianViews


def build_jacobian_views(
    pointer: DoublePointerArray,
    parameter_sizes: Sequence[int],
    num_residuals: int,
) -> JacobianViews:
    """Reconstruct the per-parameter Jacobian views from a ``double**``.

    Args:
        pointer: Array of ``len(parameter_sizes)`` block pointers, or NULL.
        parameter_sizes: Size of each parameter block, in declaration order.
        num_residuals: Number of residuals (rows of every block).

    Returns:
        None if the Jacobian is not requested, otherwise a list with one
        entry per parameter block: None where that block is not requested,
        a 2-D view where it is.
    """
    if not pointer:
        return None
    # Indexing a ctypes pointer reads exactly one slot; never iterate it
    return [
        as_row_blocks(pointer[i], size, num_residuals)
        for i, size in enumerate(parameter_sizes)
    ]
