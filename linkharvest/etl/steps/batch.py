"""Batching step splitting accepted links into delivery-sized chunks."""
from __future__ import annotations

from typing import List, Sequence, TypeVar

T = TypeVar("T")


def chunk(links: Sequence[T], size: int) -> List[List[T]]:
    """Split ``links`` into consecutive chunks of ``size``; the last may be shorter."""
    if size < 1:
        raise ValueError(f"chunk size must be a positive integer, got {size}")
    items = list(links)
    return [items[start : start + size] for start in range(0, len(items), size)]
