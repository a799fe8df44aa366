"""Top-K ranking of classifier probabilities against a label vocabulary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from imgrecognition.errors import InsufficientResultsError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

DEFAULT_TOP_K: int = 5


@dataclass(frozen=True)
class Label:
    """A single ranked prediction."""

    name: str
    probability: float


def top_k(labels: Sequence[str], probabilities: Iterable[float], k: int = DEFAULT_TOP_K) -> list[Label]:
    """Pair probabilities with labels by position and return the k best.

    Pairing stops at the shorter of the two sequences, so surplus
    probabilities and surplus labels are both ignored. Equal probabilities
    keep no particular relative order.

    Raises:
        ValueError: If k is smaller than 1.
        InsufficientResultsError: If fewer than k pairs are available.
    """
    if k < 1:
        raise ValueError(f"k must be at least 1, got {k}")

    pairs = [Label(name=name, probability=float(p)) for name, p in zip(labels, probabilities)]
    if len(pairs) < k:
        raise InsufficientResultsError(available=len(pairs), requested=k)

    pairs.sort(key=lambda label: label.probability, reverse=True)
    return pairs[:k]
