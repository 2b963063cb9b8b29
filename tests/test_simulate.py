"""Tests for population simulation helpers."""

import numpy as np
import pandas as pd
import pytest

from microchoice import (
    CoefficientTable,
    Link,
    OrderedChoiceModel,
    outcome_frequencies,
    simulate_covariates,
    simulate_outcomes,
)


class TestSimulateCovariates:
    """Test input validation and output of simulate_covariates."""

    def test_valid_parameters(self):
        """Test that valid parameters work."""
        records = simulate_covariates(N=100, names=["age", "income"], seed=42)
        assert len(records) == 100
        assert set(records[0]) == {"age", "income"}
        assert all(isinstance(v, float) for v in records[0].values())

    def test_invalid_N(self):
        """Test that N < 1 raises ValueError."""
        with pytest.raises(ValueError, match="N must be >= 1"):
            simulate_covariates(N=0, names=["age"])

    def test_empty_names(self):
        """Test that at least one covariate is required."""
        with pytest.raises(ValueError, match="at least one covariate"):
            simulate_covariates(N=10, names=[])

    def test_duplicate_names(self):
        """Test that covariate names must be unique."""
        with pytest.raises(ValueError, match="unique"):
            simulate_covariates(N=10, names=["age", "age"])

    def test_seed_reproducible(self):
        """Test the same seed gives the same records."""
        assert simulate_covariates(5, ["x"], seed=1) == simulate_covariates(5, ["x"], seed=1)

    def test_rng_overrides_seed(self):
        """Test an explicit generator is used instead of the seed."""
        a = simulate_covariates(5, ["x"], seed=1, rng=np.random.default_rng(7))
        b = simulate_covariates(5, ["x"], seed=2, rng=np.random.default_rng(7))
        assert a == b


class TestSimulateOutcomes:
    """Test repeated outcome draws."""

    @pytest.fixture
    def model(self):
        coefficients = CoefficientTable.from_coefficients(
            {"x": 1.0, "Cut1": -0.5, "Cut2": 0.5}
        )
        return OrderedChoiceModel(Link.PROBIT, ["low", "mid", "high"], coefficients)

    def test_one_outcome_per_agent(self, model):
        """Test each agent receives an event from the model's set."""
        agents = simulate_covariates(50, ["x"], seed=3)
        outcomes = simulate_outcomes(model, agents, seed=3)
        assert len(outcomes) == 50
        assert set(outcomes) <= {"low", "mid", "high"}

    def test_frequencies_match_probabilities(self, model):
        """Test empirical shares approach the model probabilities."""
        agent = {"x": 0.2}
        outcomes = simulate_outcomes(model, [agent] * 20000, seed=5)
        shares = outcome_frequencies(outcomes, model.events)
        expected = pd.Series(model.probabilities(agent))
        np.testing.assert_allclose(shares.to_numpy(), expected.to_numpy(), atol=0.015)


class TestOutcomeFrequencies:
    """Test empirical share computation."""

    def test_shares(self):
        """Test unseen events get a zero share."""
        shares = outcome_frequencies(["a", "b", "a", "a"], ["a", "b", "c"])
        assert shares.to_dict() == {"a": 0.75, "b": 0.25, "c": 0.0}
        assert shares.name == "share"

    def test_unknown_outcome(self):
        """Test an outcome outside the event set fails."""
        with pytest.raises(ValueError, match="not one of"):
            outcome_frequencies(["a", "z"], ["a", "b"])

    def test_empty(self):
        """Test empty outcome lists fail."""
        with pytest.raises(ValueError, match="must not be empty"):
            outcome_frequencies([], ["a"])
