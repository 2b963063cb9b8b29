"""
Link functions for dichotomous choice

    ystar = Xb - e,  y = 1 if ystar >= 0
    P(y=1|X) = P(e <= Xb) = F(Xb)

Logit: e is logistic, F(Xb) = 1 / (1 + exp(-Xb)).
Probit: e is standard normal, F(Xb) = Phi(Xb).
"""

from __future__ import annotations

import enum
from typing import Any

from scipy.special import expit
from scipy.stats import norm

from .coefficients import CoefficientTable
from .score import compute_score


class Link(enum.Enum):
    """Cumulative distribution mapping a latent score to a probability."""

    LOGIT = "logit"
    PROBIT = "probit"

    def cdf(self, score: float) -> float:
        if self is Link.LOGIT:
            return float(expit(score))
        if self is Link.PROBIT:
            return float(norm.cdf(score))
        raise ValueError(f"Unsupported link: {self!r}")


class ProbabilityCalculator:
    """
    Score-then-link calculator bound to a single link function.

    Attributes:
        link (Link): The link applied by every call on this calculator.
    """

    def __init__(self, link: Link | str) -> None:
        self.link = Link(link)

    def __repr__(self) -> str:
        return f"ProbabilityCalculator({self.link.value})"

    def score(self, table: CoefficientTable, agent: Any, **kwargs: Any) -> float:
        """Linear score ``Xb`` (see ``compute_score``)."""
        return compute_score(table, agent, **kwargs)

    def probability_of_score(self, score: float) -> float:
        """Apply the link to an already computed score."""
        return self.link.cdf(score)

    def probability(
        self,
        table: CoefficientTable,
        agent: Any,
        adjust: float = 0.0,
        **kwargs: Any,
    ) -> float:
        """
        ``F(Xb + adjust)`` for one agent.

        ``adjust`` shifts the score before the link, which ordered models use
        to move the score relative to a cut-point.
        """
        return self.link.cdf(self.score(table, agent, **kwargs) + adjust)
