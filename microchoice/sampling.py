"""
Event sampling

Inverse-CDF draws from discrete and piecewise-constant distributions. Each
draw consumes exactly one uniform number from the caller's random source,
after all inputs have been validated.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, TypeVar

import numpy as np
import numpy.typing as npt

from .exceptions import SamplingError


T = TypeVar("T")

WEIGHT_SUM_TOLERANCE = 1e-12  # Allowed |sum(weights) - 1| when the sum is checked


class UniformSource(Protocol):
    """Anything exposing ``random()`` in [0, 1), e.g. ``numpy.random.Generator``."""

    def random(self) -> float: ...


def _prepare_weights(
    weights: Sequence[float] | npt.ArrayLike,
    check_weight_sum: bool,
    tolerance: float,
) -> npt.NDArray[np.float64]:
    """Validate weights and return them as probabilities (a new array)."""
    w = np.array(weights, dtype=np.float64)
    if w.ndim != 1:
        raise SamplingError(f"weights must be one-dimensional, got shape {w.shape}")
    if w.size == 0:
        raise SamplingError("Cannot draw from an empty set of weights")
    if not np.all(np.isfinite(w)):
        raise SamplingError(f"weights must be finite, got {w.tolist()}")
    non_positive = np.flatnonzero(w <= 0.0)
    if non_positive.size:
        i = int(non_positive[0])
        raise SamplingError(
            f"weights must be strictly positive; element {i} is {w[i]!r} "
            f"in {w.tolist()}"
        )

    total = float(np.cumsum(w)[-1])
    if check_weight_sum:
        if abs(total - 1.0) > tolerance:
            raise SamplingError(
                f"weights must sum to 1 when check_weight_sum is True; "
                f"{w.tolist()} sums to {total!r}. Pass check_weight_sum=False "
                "to normalise them instead."
            )
    else:
        w /= total
    return w


def _landing_index(cumulative: npt.NDArray[np.float64], u: float) -> int:
    # First index whose running total exceeds u:
    #   sum(w[:i]) <= u < sum(w[:i+1])
    index = int(np.searchsorted(cumulative, u, side="right"))
    # A sum a few ulps short of 1 can leave u past the end.
    return min(index, cumulative.size - 1)


def draw_index(
    weights: Sequence[float] | npt.ArrayLike,
    rng: UniformSource,
    check_weight_sum: bool = True,
    *,
    tolerance: float = WEIGHT_SUM_TOLERANCE,
) -> int:
    """Draw an index into ``weights`` (see ``draw``)."""
    probs = _prepare_weights(weights, check_weight_sum, tolerance)
    u = float(rng.random())
    return _landing_index(np.cumsum(probs), u)


def draw(
    events: Sequence[T],
    weights: Sequence[float] | npt.ArrayLike,
    rng: UniformSource,
    check_weight_sum: bool = True,
    *,
    tolerance: float = WEIGHT_SUM_TOLERANCE,
) -> T:
    """
    Draw one event with probability proportional to its weight.

    Weights are accumulated in the order given; the event returned is the
    first one whose cumulative weight exceeds a uniform draw ``u``.

    Args:
        events: Candidate events.
        weights: Strictly positive weights aligned with ``events``.
        rng: Random source with a ``random()`` method.
        check_weight_sum: If True, weights must sum to 1 within ``tolerance``.
            If False they are normalised by their sum (the caller's sequence
            is left untouched).
        tolerance: Allowed deviation of the weight sum from 1.

    Returns:
        The selected event.

    Raises:
        SamplingError: On empty input, mismatched lengths, non-positive
            weights, or a weight sum off 1 when checked.

    Example:
        >>> rng = np.random.default_rng(0)
        >>> draw(["A", "B", "C"], [0.2, 0.3, 0.5], rng)
        'C'
    """
    if len(events) != len(weights):
        raise SamplingError(
            f"events and weights must have the same length, got "
            f"{len(events)} and {len(weights)}"
        )
    index = draw_index(weights, rng, check_weight_sum, tolerance=tolerance)
    return events[index]


def draw_from_mapping(
    weights: Mapping[T, float],
    rng: UniformSource,
    check_weight_sum: bool = True,
    *,
    tolerance: float = WEIGHT_SUM_TOLERANCE,
) -> T:
    """Draw a key of ``weights`` using its values as weights (iteration order)."""
    events = list(weights.keys())
    return draw(
        events,
        [weights[e] for e in events],
        rng,
        check_weight_sum,
        tolerance=tolerance,
    )


def draw_uniform(events: Sequence[T], rng: UniformSource) -> T:
    """Draw one of ``events`` with equal probability ``1/N``."""
    n = len(events)
    if n == 0:
        raise SamplingError("Cannot draw from an empty set of events")
    u = float(rng.random())
    return events[min(int(u * n), n - 1)]


def draw_interpolated(
    cut_points: Sequence[float] | npt.ArrayLike,
    weights: Sequence[float] | npt.ArrayLike,
    rng: UniformSource,
    check_weight_sum: bool = True,
    *,
    tolerance: float = WEIGHT_SUM_TOLERANCE,
) -> float:
    """
    Draw a value from a piecewise-constant density.

    ``weights[i]`` is the probability mass on ``[cut_points[i], cut_points[i+1])``.
    The interval is chosen as in ``draw`` and the value is linearly
    interpolated inside it by how far ``u`` reached past the interval's start.

    Raises:
        SamplingError: If ``len(cut_points) != len(weights) + 1``, the cut
            points decrease, or the weights are invalid.
    """
    cuts = np.asarray(cut_points, dtype=np.float64)
    probs = _prepare_weights(weights, check_weight_sum, tolerance)
    if cuts.ndim != 1 or cuts.size != probs.size + 1:
        raise SamplingError(
            f"cut_points must have len(weights) + 1 = {probs.size + 1} entries, "
            f"got {cuts.size}"
        )
    if np.any(np.diff(cuts) < 0):
        raise SamplingError(f"cut_points must be non-decreasing, got {cuts.tolist()}")

    cumulative = np.cumsum(probs)
    u = float(rng.random())
    i = _landing_index(cumulative, u)
    start = cumulative[i] - probs[i]
    fraction = min(max((u - start) / probs[i], 0.0), 1.0)
    return float(cuts[i] + (cuts[i + 1] - cuts[i]) * fraction)


def draw_binary(probability: float, rng: UniformSource) -> bool:
    """Bernoulli draw: True with probability ``probability``."""
    p = float(probability)
    if not 0.0 <= p <= 1.0:
        raise SamplingError(f"probability must be in [0, 1], got {probability!r}")
    return float(rng.random()) < p
