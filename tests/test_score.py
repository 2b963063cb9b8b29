"""Tests for linear score evaluation."""

import enum
import logging

import pandas as pd
import pytest

from microchoice import (
    CoefficientTable,
    ConfigurationError,
    compute_score,
    multiply_coefficients,
)


class Gender(enum.Enum):
    Male = 0
    Female = 1


class Sex(str, enum.Enum):
    MALE = "m"
    FEMALE = "f"


class Agent:
    def __init__(self, age, gender, employed):
        self.age = age
        self.gender = gender
        self.employed = employed


@pytest.fixture
def conditioned_table():
    return CoefficientTable(
        ["REGRESSOR", "gender", "employed"],
        ["COEFFICIENT"],
        {
            ("age", "Male", "true"): 0.1,
            ("age", "Female", "true"): 0.2,
            ("age", "Female", "false"): 0.3,
            ("const@", "Female", "true"): -1.0,
        },
    )


class TestSimpleScore:
    """Test scores from single-key tables."""

    def test_linear_combination(self):
        """Test the weighted sum of covariates."""
        table = CoefficientTable.from_coefficients({"age": 2.0, "income": 0.001})
        assert compute_score(table, {"age": 30, "income": 50000}) == pytest.approx(110.0)

    def test_interaction_marker_contributes_coefficient(self):
        """Test regressors with '@' add their coefficient without a covariate."""
        table = CoefficientTable.from_coefficients({"age": 0.5, "const@": -3.0})
        assert compute_score(table, {"age": 10}) == pytest.approx(2.0)

    def test_custom_interaction_marker(self):
        """Test the interaction marker can be changed per call."""
        table = CoefficientTable.from_coefficients({"age": 0.5, "const#": -3.0, "x@": 1.0})
        score = compute_score(table, {"age": 10, "x@": 4.0}, interaction_marker="#")
        assert score == pytest.approx(5.0 - 3.0 + 4.0)

    def test_missing_covariate_defaults_to_zero(self, caplog):
        """Test a missing covariate contributes nothing."""
        table = CoefficientTable.from_coefficients({"age": 2.0, "income": 0.001})
        with caplog.at_level(logging.DEBUG, logger="microchoice.score"):
            assert compute_score(table, {"age": 30}) == pytest.approx(60.0)
        assert "income" in caplog.text

    def test_missing_covariate_strict(self):
        """Test strict scoring rejects a missing covariate."""
        table = CoefficientTable.from_coefficients({"age": 2.0, "income": 0.001})
        with pytest.raises(ConfigurationError, match="no value for regressor 'income'"):
            compute_score(table, {"age": 30}, strict=True)

    def test_boolean_covariate(self):
        """Test booleans count as 1.0 / 0.0."""
        table = CoefficientTable.from_coefficients({"male": 0.7})
        assert compute_score(table, {"male": True}) == pytest.approx(0.7)
        assert compute_score(table, {"male": False}) == 0.0

    def test_object_agent(self):
        """Test attribute lookup on an arbitrary object."""
        table = CoefficientTable.from_coefficients({"age": 0.1})
        assert compute_score(table, Agent(50, Gender.Male, True)) == pytest.approx(5.0)

    def test_series_agent_uses_row_values(self):
        """Test a pandas row is read by label, not by Series attribute."""
        table = CoefficientTable.from_coefficients({"size": 1.0, "mean": 1.0})
        row = pd.Series({"size": 5.0, "mean": 7.0})
        assert compute_score(table, row) == pytest.approx(12.0)

    def test_table_without_regressor_fails(self):
        """Test a table missing the REGRESSOR role fails fast."""
        table = CoefficientTable(["name"], ["COEFFICIENT"], {"age": 1.0})
        with pytest.raises(ConfigurationError, match="REGRESSOR"):
            compute_score(table, {"age": 1})


class TestConditionedScore:
    """Test scores from tables with conditioning keys."""

    def test_only_matching_rows_included(self, conditioned_table):
        """Test rows are filtered by gender and employment."""
        agent = Agent(40, Gender.Female, True)
        assert compute_score(conditioned_table, agent) == pytest.approx(0.2 * 40 - 1.0)

    def test_other_group(self, conditioned_table):
        """Test a different attribute combination selects different rows."""
        assert compute_score(
            conditioned_table, {"age": 40, "gender": "Female", "employed": False}
        ) == pytest.approx(0.3 * 40)
        assert compute_score(
            conditioned_table, Agent(40, Gender.Male, True)
        ) == pytest.approx(0.1 * 40)

    def test_no_matching_rows(self, conditioned_table):
        """Test an agent matching no row scores zero."""
        assert compute_score(conditioned_table, Agent(40, Gender.Male, False)) == 0.0

    def test_missing_conditioning_attribute(self, conditioned_table):
        """Test a missing conditioning attribute is a configuration error."""
        with pytest.raises(ConfigurationError, match="no conditioning attribute 'employed'"):
            compute_score(conditioned_table, {"age": 40, "gender": "Male"})

    def test_str_enum_attribute_matches_member_name(self):
        """Test str-valued enum attributes select rows by member name."""
        table = CoefficientTable(
            ["REGRESSOR", "sex"],
            ["COEFFICIENT"],
            {("age", "MALE"): 2.0, ("age", "FEMALE"): 3.0},
        )
        assert compute_score(table, {"age": 10.0, "sex": Sex.MALE}) == pytest.approx(20.0)
        assert compute_score(table, {"age": 10.0, "sex": Sex.FEMALE}) == pytest.approx(30.0)

    def test_regressor_need_not_be_first_key(self):
        """Test the REGRESSOR column is located by name."""
        table = CoefficientTable(
            ["gender", "REGRESSOR"],
            ["COEFFICIENT"],
            {("Male", "age"): 1.0, ("Female", "age"): 2.0},
        )
        assert compute_score(table, {"gender": "Female", "age": 3}) == pytest.approx(6.0)


class TestMultiplyCoefficients:
    """Test the dict-to-dict weighted sum."""

    def test_weighted_sum(self):
        """Test products are summed and missing values skipped."""
        coefficients = {"age": 2.0, "income": 0.5, "const@": 1.0, "unused": None}
        values = {"age": 3.0, "other": 100.0}
        assert multiply_coefficients(coefficients, values) == pytest.approx(7.0)
