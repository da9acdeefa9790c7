"""Tests for descriptive latency statistics."""

import math

import pytest
from hypothesis import given
from hypothesis import strategies as st

from analysis.metrics import InvalidInputError, Quartiles, compute_metrics

# ── Strategies ──────────────────────────────────────────────────

latencies = st.lists(
    st.floats(min_value=0.0, max_value=1e6, allow_nan=False, allow_infinity=False),
    min_size=1,
    max_size=200,
)


class TestComputeMetrics:
    def test_empty_sample_is_rejected(self):
        with pytest.raises(InvalidInputError):
            compute_metrics([])

    def test_invalid_input_is_a_value_error(self):
        with pytest.raises(ValueError):
            compute_metrics([])

    def test_single_value(self):
        metrics = compute_metrics([42.0])
        assert metrics.count == 1
        assert metrics.mean == 42.0
        assert metrics.variance == 0.0
        assert metrics.std_dev == 0.0
        assert metrics.std_err == 0.0
        assert metrics.quartiles == Quartiles(42.0, 42.0, 42.0, 42.0, 42.0)
        assert metrics.iqr == 0.0

    def test_bessel_corrected_variance(self):
        metrics = compute_metrics([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])
        assert metrics.mean == pytest.approx(5.0)
        # Sum of squared deviations is 32 over n - 1 = 7
        assert metrics.variance == pytest.approx(32.0 / 7.0)
        assert metrics.std_dev == pytest.approx(math.sqrt(32.0 / 7.0))
        assert metrics.std_err == pytest.approx(math.sqrt(32.0 / 7.0) / math.sqrt(8))

    def test_linear_quartiles(self):
        metrics = compute_metrics([1.0, 2.0, 3.0, 4.0, 5.0])
        assert metrics.quartiles == Quartiles(1.0, 2.0, 3.0, 4.0, 5.0)
        assert metrics.iqr == 2.0

    def test_interpolated_quartiles(self):
        metrics = compute_metrics([10.0, 20.0, 30.0, 40.0])
        assert metrics.quartiles.q1 == pytest.approx(17.5)
        assert metrics.quartiles.q2 == pytest.approx(25.0)
        assert metrics.quartiles.q3 == pytest.approx(32.5)
        assert metrics.iqr == pytest.approx(15.0)

    def test_order_of_values_does_not_matter(self):
        assert compute_metrics([3.0, 1.0, 2.0]) == compute_metrics([1.0, 2.0, 3.0])

    def test_min_max_median_shortcuts(self):
        metrics = compute_metrics([5.0, 1.0, 9.0])
        assert metrics.min == 1.0
        assert metrics.max == 9.0
        assert metrics.median == 5.0

    def test_upper_bound_is_mean_plus_three_sigma(self):
        metrics = compute_metrics([10.0, 20.0, 30.0])
        assert metrics.upper_bound == pytest.approx(20.0 + 3 * 10.0)

    def test_to_dict_shape(self):
        data = compute_metrics([1.0, 2.0, 3.0]).to_dict()
        assert set(data) == {"count", "mean", "std_dev", "std_err", "quartiles", "iqr"}
        assert len(data["quartiles"]) == 5


# ── Properties ──────────────────────────────────────────────────


@given(values=latencies)
def test_count_matches_length(values):
    assert compute_metrics(values).count == len(values)


@given(values=latencies)
def test_mean_matches_arithmetic_mean(values):
    expected = math.fsum(values) / len(values)
    assert compute_metrics(values).mean == pytest.approx(expected, rel=1e-9, abs=1e-9)


@given(value=st.floats(min_value=0.0, max_value=1e6, allow_nan=False))
def test_variance_zero_for_single_value(value):
    assert compute_metrics([value]).variance == 0.0


@given(values=latencies)
def test_quartiles_are_ordered(values):
    q = compute_metrics(values).quartiles
    assert q.q0 <= q.q1 <= q.q2 <= q.q3 <= q.q4
    assert q.q0 == min(values)
    assert q.q4 == max(values)


@given(values=latencies)
def test_iqr_is_non_negative(values):
    metrics = compute_metrics(values)
    assert metrics.iqr >= 0.0
    assert metrics.iqr == metrics.quartiles.q3 - metrics.quartiles.q1
