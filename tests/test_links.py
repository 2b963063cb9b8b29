"""Tests for link functions and the probability calculator."""

import numpy as np
import pytest
from scipy.stats import norm

from microchoice import CoefficientTable, Link, ProbabilityCalculator


class TestLink:
    """Test the link CDFs."""

    def test_logit_values(self):
        """Test the logistic CDF at known points."""
        assert Link.LOGIT.cdf(0.0) == 0.5
        assert Link.LOGIT.cdf(np.log(3.0)) == pytest.approx(0.75)

    def test_probit_values(self):
        """Test the standard normal CDF at known points."""
        assert Link.PROBIT.cdf(0.0) == 0.5
        assert Link.PROBIT.cdf(1.96) == pytest.approx(0.9750021, abs=1e-7)

    def test_extreme_scores_stay_finite(self):
        """Test large scores saturate without overflow."""
        for link in Link:
            assert link.cdf(1000.0) == 1.0
            assert link.cdf(-1000.0) == 0.0

    def test_link_from_string(self):
        """Test links can be selected by value."""
        assert ProbabilityCalculator("probit").link is Link.PROBIT


class TestProbabilityCalculator:
    """Test score-then-link evaluation."""

    def test_probability_of_table(self):
        """Test F(Xb) for a simple table."""
        table = CoefficientTable.from_coefficients({"age": 0.1, "const@": -2.0})
        calc = ProbabilityCalculator(Link.PROBIT)
        assert calc.score(table, {"age": 30}) == pytest.approx(1.0)
        assert calc.probability(table, {"age": 30}) == pytest.approx(norm.cdf(1.0))

    def test_adjust_shifts_score(self):
        """Test the adjust argument is added before the link."""
        table = CoefficientTable.from_coefficients({"age": 0.1})
        calc = ProbabilityCalculator(Link.LOGIT)
        assert calc.probability(table, {"age": 10}, adjust=-1.0) == 0.5

    def test_probability_of_score(self):
        """Test applying the link to a precomputed score."""
        calc = ProbabilityCalculator(Link.LOGIT)
        assert calc.probability_of_score(0.0) == 0.5
        assert repr(calc) == "ProbabilityCalculator(logit)"
