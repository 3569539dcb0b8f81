"""Ordered-sequence lookup used by playback."""

from __future__ import annotations

from typing import Any, Callable, Sequence, TypeVar

T = TypeVar("T")


def search(
    sequence: Sequence[T],
    target: Any,
    cmp: Callable[[T, Any], float],
    lo: int = 0,
    hi: int | None = None,
) -> int:
    """Binary search with a signed comparator.

    Args:
        sequence: Items sorted ascending by the comparator's key.
        target: Value to look for.
        cmp: ``cmp(item, target)`` returns <0, 0 or >0.
        lo: First index to consider.
        hi: One past the last index to consider (defaults to ``len(sequence)``).

    Returns:
        Index of an exact match, or ``~insertion_index`` when there is none.
        Callers recover the insertion point with ``~result`` for negative values.
    """

    low = lo
    high = (len(sequence) if hi is None else hi) - 1

    while low <= high:
        mid = (low + high) // 2
        c = cmp(sequence[mid], target)
        if c < 0:
            low = mid + 1
        elif c > 0:
            high = mid - 1
        else:
            return mid
    return ~low
