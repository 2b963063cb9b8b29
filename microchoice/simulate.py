"""
Population simulation helpers

Synthetic covariate records and repeated outcome draws, for exercising a
model over many agents and comparing empirical shares with the model's
probabilities.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import numpy as np
import pandas as pd

from .models import DiscreteChoiceModel


def simulate_covariates(
    N: int,
    names: Sequence[str],
    seed: int | None = 42,
    rng: np.random.Generator | None = None,
) -> list[dict[str, float]]:
    """
    Generate ``N`` covariate records with independent N(0, 1) values.

    Args:
        N (int): Number of agents.
        names: Covariate names; each record maps every name to a float.
        seed (int | None): Random seed. Ignored if rng is provided.
        rng (np.random.Generator, optional): Use an existing RNG instead of seed.

    Returns:
        list[dict[str, float]]: One mapping per agent, usable as a covariate source.

    Raises:
        ValueError: If N < 1, names is empty or holds duplicates.
    """
    if N < 1:
        raise ValueError(f"N must be >= 1, got {N}")
    names = list(names)
    if not names:
        raise ValueError("names must contain at least one covariate")
    if len(set(names)) != len(names):
        raise ValueError(f"names must be unique, got {names}")

    rng = rng or np.random.default_rng(seed)
    X = rng.normal(size=(N, len(names)))
    return [dict(zip(names, row.tolist())) for row in X]


def simulate_outcomes(
    model: DiscreteChoiceModel,
    sources: Iterable[Any],
    seed: int | None = 42,
    rng: np.random.Generator | None = None,
) -> list[Any]:
    """
    Sample one outcome per agent from ``model``.

    Each agent consumes exactly one uniform draw, so a fixed seed reproduces
    the same outcome sequence.
    """
    rng = rng or np.random.default_rng(seed)
    return [model.sample(source, rng) for source in sources]


def outcome_frequencies(outcomes: Iterable[Any], events: Sequence[Any]) -> pd.Series:
    """
    Empirical share of each event among ``outcomes``.

    Returns:
        pd.Series indexed by ``events`` (events never drawn get 0.0).

    Raises:
        ValueError: If outcomes is empty or holds an event outside ``events``.
    """
    outcomes = list(outcomes)
    if not outcomes:
        raise ValueError("outcomes must not be empty")
    events = list(events)
    counts = dict.fromkeys(events, 0)
    for i, outcome in enumerate(outcomes):
        if outcome not in counts:
            raise ValueError(f"Outcome {outcome!r} at index {i} is not one of {events}")
        counts[outcome] += 1
    return pd.Series(
        [counts[event] / len(outcomes) for event in events],
        index=pd.Index(events, dtype=object),
        name="share",
    )
