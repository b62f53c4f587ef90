from __future__ import annotations

from typing import List, Sequence, TypeVar

import numpy as np

T = TypeVar("T")


def make_rng(seed: int | None = None) -> np.random.Generator:
    return np.random.default_rng(seed)


def sample_without_replacement(items: Sequence[T], size: int, rng: np.random.Generator) -> List[T]:
    """Uniform sample of ``size`` items; the input is returned as-is when it already fits.

    Picked items keep their original relative order so downstream tie-breaks
    stay tied to playlist order.
    """
    if len(items) <= size:
        return list(items)
    picked = rng.choice(len(items), size=size, replace=False)
    return [items[int(index)] for index in np.sort(picked)]


def shuffle_and_cap(items: Sequence[T], limit: int, rng: np.random.Generator) -> List[T]:
    if not items or limit <= 0:
        return []
    order = rng.permutation(len(items))
    return [items[int(index)] for index in order[:limit]]
