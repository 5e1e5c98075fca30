import operator
from collections.abc import Iterable
from typing import Callable, TypeVar

import jax

T = TypeVar("T")

Blocks = tuple[jax.Array, ...]


def args_closure(
    fn: Callable[[Blocks, T], jax.Array], args: T
) -> Callable[[Blocks], jax.Array]:
    def wrapped(blocks: Blocks) -> jax.Array:
        return fn(blocks, args)

    return wrapped


def as_sizes(sizes: Iterable[int]) -> tuple[int, ...]:
    """Normalize parameter block sizes to a tuple of Python ints."""
    return tuple(operator.index(size) for size in sizes)
