"""Tests for event sampling."""

import numpy as np
import pytest

from microchoice import (
    SamplingError,
    draw,
    draw_binary,
    draw_from_mapping,
    draw_index,
    draw_interpolated,
    draw_uniform,
)

from stubs import StubRandom


EVENTS = ["A", "B", "C"]
WEIGHTS = [0.2, 0.3, 0.5]


class TestDraw:
    """Test inverse-CDF sampling of discrete events."""

    @pytest.mark.parametrize(
        "u, expected",
        [
            (0.0, "A"),
            (0.19999, "A"),
            (0.2, "B"),
            (0.49999, "B"),
            (0.5, "C"),
            (0.99999, "C"),
        ],
    )
    def test_boundaries(self, u, expected):
        """Test the landing event at and around each cumulative boundary."""
        assert draw(EVENTS, WEIGHTS, StubRandom(u), True) == expected

    def test_consumes_one_uniform(self):
        """Test each draw uses exactly one random number."""
        rng = StubRandom(0.3, 0.7)
        draw(EVENTS, WEIGHTS, rng)
        assert rng.calls == 1

    def test_single_element(self):
        """Test a single event is always returned."""
        assert draw(["only"], [1.0], StubRandom(0.999999)) == "only"

    def test_order_is_input_order(self):
        """Test weights are accumulated in the given order, not sorted."""
        assert draw(["C", "A", "B"], [0.5, 0.2, 0.3], StubRandom(0.1)) == "C"

    def test_checked_sum_rejected(self):
        """Test weights not summing to 1 fail when checked."""
        with pytest.raises(SamplingError, match="must sum to 1"):
            draw(["A", "B"], [0.5, 0.6], StubRandom(0.0), True)

    def test_unchecked_sum_normalised(self):
        """Test unchecked weights behave as if divided by their sum."""
        # 0.5 / 1.1 = 0.4545...
        assert draw(["A", "B"], [0.5, 0.6], StubRandom(0.45), False) == "A"
        assert draw(["A", "B"], [0.5, 0.6], StubRandom(0.46), False) == "B"

    def test_caller_weights_not_mutated(self):
        """Test normalisation leaves the caller's weights untouched."""
        weights = np.array([0.5, 0.6])
        draw(["A", "B"], weights, StubRandom(0.1), False)
        np.testing.assert_array_equal(weights, [0.5, 0.6])

    def test_no_draw_before_validation(self):
        """Test invalid input fails before the random source is used."""
        rng = StubRandom(0.5)
        with pytest.raises(SamplingError):
            draw(["A", "B"], [0.5, 0.6], rng, True)
        assert rng.calls == 0

    def test_empty_rejected(self):
        """Test empty input fails."""
        with pytest.raises(SamplingError, match="empty"):
            draw([], [], StubRandom(0.5))

    @pytest.mark.parametrize("weights", [[0.0, 1.0], [-0.5, 1.5]])
    def test_non_positive_rejected(self, weights):
        """Test zero or negative weights fail."""
        with pytest.raises(SamplingError, match="strictly positive"):
            draw(["A", "B"], weights, StubRandom(0.5), False)

    def test_non_finite_rejected(self):
        """Test NaN weights fail."""
        with pytest.raises(SamplingError, match="finite"):
            draw(["A", "B"], [np.nan, 1.0], StubRandom(0.5), False)

    def test_length_mismatch_rejected(self):
        """Test events and weights must align."""
        with pytest.raises(SamplingError, match="same length"):
            draw(["A", "B"], [1.0], StubRandom(0.5))

    def test_draw_index(self):
        """Test the index form."""
        assert draw_index(WEIGHTS, StubRandom(0.6)) == 2

    def test_sum_just_below_one(self):
        """Test a uniform beyond a slightly short cumulative sum lands on the last event."""
        weights = [0.1] * 10
        assert draw(list(range(10)), weights, StubRandom(0.9999999999999999)) == 9

    def test_frequencies_match_weights(self):
        """Test empirical shares approach the weights."""
        rng = np.random.default_rng(7)
        counts = {e: 0 for e in EVENTS}
        for _ in range(20000):
            counts[draw(EVENTS, WEIGHTS, rng)] += 1
        shares = np.array([counts[e] / 20000 for e in EVENTS])
        np.testing.assert_allclose(shares, WEIGHTS, atol=0.015)


class TestConvenienceForms:
    """Test the mapping, uniform and Bernoulli draws."""

    def test_draw_from_mapping(self):
        """Test mapping iteration order defines the cumulative order."""
        weights = {"A": 0.2, "B": 0.3, "C": 0.5}
        assert draw_from_mapping(weights, StubRandom(0.25)) == "B"

    def test_draw_uniform(self):
        """Test equal-probability selection."""
        assert draw_uniform(EVENTS, StubRandom(0.0)) == "A"
        assert draw_uniform(EVENTS, StubRandom(0.34)) == "B"
        assert draw_uniform(EVENTS, StubRandom(0.99)) == "C"

    def test_draw_uniform_empty(self):
        """Test uniform draw from nothing fails."""
        with pytest.raises(SamplingError, match="empty"):
            draw_uniform([], StubRandom(0.5))

    def test_draw_binary(self):
        """Test the Bernoulli draw compares u < p."""
        assert draw_binary(0.3, StubRandom(0.29)) is True
        assert draw_binary(0.3, StubRandom(0.3)) is False
        assert draw_binary(0.0, StubRandom(0.0)) is False

    def test_draw_binary_invalid_probability(self):
        """Test probabilities outside [0, 1] fail."""
        with pytest.raises(SamplingError, match="must be in"):
            draw_binary(1.2, StubRandom(0.5))


class TestDrawInterpolated:
    """Test sampling from a piecewise-constant density."""

    def test_interpolates_inside_interval(self):
        """Test the value is placed proportionally inside the landed interval."""
        cuts = [0.0, 10.0, 20.0, 40.0]
        weights = [0.25, 0.25, 0.5]
        assert draw_interpolated(cuts, weights, StubRandom(0.0)) == 0.0
        assert draw_interpolated(cuts, weights, StubRandom(0.125)) == pytest.approx(5.0)
        assert draw_interpolated(cuts, weights, StubRandom(0.3)) == pytest.approx(12.0)
        assert draw_interpolated(cuts, weights, StubRandom(0.75)) == pytest.approx(30.0)

    def test_unchecked_weights(self):
        """Test unnormalised weights are scaled."""
        value = draw_interpolated([0.0, 1.0, 2.0], [1.0, 3.0], StubRandom(0.5), False)
        assert value == pytest.approx(1.0 + 0.25 / 0.75)

    def test_cut_count_checked(self):
        """Test cut points must outnumber weights by one."""
        with pytest.raises(SamplingError, match="len\\(weights\\) \\+ 1"):
            draw_interpolated([0.0, 1.0], [0.5, 0.5], StubRandom(0.5))

    def test_decreasing_cuts_rejected(self):
        """Test cut points must be non-decreasing."""
        with pytest.raises(SamplingError, match="non-decreasing"):
            draw_interpolated([0.0, 2.0, 1.0], [0.5, 0.5], StubRandom(0.5))
