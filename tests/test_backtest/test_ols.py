"""
Tests for the OLS trend forecaster.

What we test
------------
1. Exact fit on a perfectly linear window — slope, intercept, R² = 1, zero
   residual error, degenerate (zero-width) interval.
2. Constant window — slope 0, R² guarded to 1, point = the constant.
3. Guards in isolation — ``safe_divide`` and ``guarded_r_squared``.
4. Interval math on a noisy window — margin formula, symmetry, bounds
   ordering, wider intervals further out.
5. Critical values — fixed z = 1.96, t with n - 2 df (wider for small n),
   lookup by name.
6. Error paths — fewer than 2 points, non-finite values, bad horizon or
   confidence level.
7. Pluggable indexer — regressing on a custom x scale.
"""

from __future__ import annotations

import math

import pytest

from commodity_forecaster.backtest.errors import (
    ForecastError,
    InsufficientDataError,
    NonFiniteInputError,
)
from commodity_forecaster.backtest.ols import (
    Z_95,
    OLSForecaster,
    fit,
    fixed_z_critical_value,
    forecast,
    guarded_r_squared,
    ordinal_index,
    predict,
    resolve_critical_value,
    safe_divide,
    student_t_critical_value,
)
from commodity_forecaster.models.series import Observation


# ── Helpers ────────────────────────────────────────────────────────────────────

def _window(values: list[float]) -> list[Observation]:
    return [Observation(period=f"p{i:02d}", value=v) for i, v in enumerate(values)]


NOISY = [10.0, 12.0, 11.0, 15.0, 14.0, 18.0]


# ── Perfectly linear window ────────────────────────────────────────────────────

def test_linear_window_forecasts_next_point_exactly() -> None:
    """[10, 20, 30, 40] → slope 10, intercept 10, next point 50 with no spread."""
    fc = forecast(_window([10.0, 20.0, 30.0, 40.0]), horizon_steps=1)
    assert fc.point_estimate == pytest.approx(50.0)
    assert fc.lower_bound == pytest.approx(50.0)
    assert fc.upper_bound == pytest.approx(50.0)
    assert fc.interval_width == pytest.approx(0.0)


def test_linear_window_fit_parameters() -> None:
    result = fit(_window([10.0, 20.0, 30.0, 40.0]))
    assert result.slope == pytest.approx(10.0)
    assert result.intercept == pytest.approx(10.0)
    assert result.r_squared == pytest.approx(1.0)
    assert result.standard_error == pytest.approx(0.0)
    assert result.n == 4


def test_linear_window_multi_step_horizon() -> None:
    fc = forecast(_window([10.0, 20.0, 30.0, 40.0]), horizon_steps=3)
    assert fc.point_estimate == pytest.approx(70.0)
    assert fc.horizon_steps == 3


def test_two_point_window_has_zero_standard_error() -> None:
    result = fit(_window([5.0, 9.0]))
    assert result.slope == pytest.approx(4.0)
    assert result.standard_error == 0.0
    fc = predict(result)
    assert fc.point_estimate == pytest.approx(13.0)
    assert fc.margin == 0.0


# ── Constant window ────────────────────────────────────────────────────────────

def test_constant_window_is_flat_with_guarded_r_squared() -> None:
    result = fit(_window([7.0, 7.0, 7.0, 7.0, 7.0]))
    assert result.slope == 0.0
    assert result.intercept == pytest.approx(7.0)
    assert result.r_squared == 1.0
    assert result.standard_error == 0.0

    fc = predict(result)
    assert fc.point_estimate == pytest.approx(7.0)
    assert fc.lower_bound == fc.upper_bound == pytest.approx(7.0)


# ── Guards ─────────────────────────────────────────────────────────────────────

def test_safe_divide_regular_denominator() -> None:
    assert safe_divide(10.0, 4.0) == pytest.approx(2.5)


def test_safe_divide_zero_denominator_substitutes_one() -> None:
    assert safe_divide(3.0, 0.0) == 3.0
    assert safe_divide(0.0, 0.0) == 0.0


def test_guarded_r_squared_zero_total_variance_is_one() -> None:
    assert guarded_r_squared(0.0, 0.0) == 1.0


def test_guarded_r_squared_regular() -> None:
    assert guarded_r_squared(2.0, 8.0) == pytest.approx(0.75)


def test_zero_spread_indexer_goes_through_guard() -> None:
    """All x equal → Sxx = 0; slope is Sxy / 1 = 0 rather than a crash."""
    result = fit(_window([1.0, 2.0, 3.0]), indexer=lambda w: [5.0] * len(w))
    assert result.sxx == 0.0
    assert result.slope == 0.0
    assert result.intercept == pytest.approx(2.0)


# ── Interval math ──────────────────────────────────────────────────────────────

def test_noisy_window_margin_matches_formula() -> None:
    window = _window(NOISY)
    result = fit(window)
    n = len(NOISY)
    xs = ordinal_index(window)
    x_mean = sum(xs) / n
    sxx = sum((x - x_mean) ** 2 for x in xs)
    x_new = n - 1 + 1
    expected = Z_95 * result.standard_error * math.sqrt(1 + 1 / n + (x_new - x_mean) ** 2 / sxx)

    fc = predict(result, horizon_steps=1)
    assert fc.margin == pytest.approx(expected)
    assert fc.upper_bound - fc.point_estimate == pytest.approx(expected)
    assert fc.point_estimate - fc.lower_bound == pytest.approx(expected)


def test_bounds_are_ordered() -> None:
    fc = forecast(_window(NOISY))
    assert fc.lower_bound <= fc.point_estimate <= fc.upper_bound


def test_interval_widens_with_horizon() -> None:
    result = fit(_window(NOISY))
    near = predict(result, horizon_steps=1)
    far = predict(result, horizon_steps=6)
    assert far.interval_width > near.interval_width


def test_contains_is_inclusive() -> None:
    fc = forecast(_window([10.0, 20.0, 30.0, 40.0]))
    assert fc.contains(50.0)
    assert not fc.contains(50.1)


def test_forecast_is_deterministic() -> None:
    assert forecast(_window(NOISY)) == forecast(_window(NOISY))


# ── Critical values ────────────────────────────────────────────────────────────

def test_fixed_z_is_196_at_95_regardless_of_n() -> None:
    assert fixed_z_critical_value(3, 0.95) == 1.96
    assert fixed_z_critical_value(500, 0.95) == 1.96


def test_fixed_z_other_levels_use_normal_quantile() -> None:
    assert fixed_z_critical_value(10, 0.90) == pytest.approx(1.6449, abs=1e-3)


def test_student_t_is_wider_for_small_samples() -> None:
    # t(0.975, df=4) ≈ 2.776
    assert student_t_critical_value(6, 0.95) == pytest.approx(2.776, abs=1e-3)
    assert student_t_critical_value(6, 0.95) > fixed_z_critical_value(6, 0.95)


def test_student_t_falls_back_to_z_without_degrees_of_freedom() -> None:
    assert student_t_critical_value(2, 0.95) == fixed_z_critical_value(2, 0.95)


def test_t_interval_is_wider_than_z_interval() -> None:
    result = fit(_window(NOISY))
    z_fc = predict(result)
    t_fc = predict(result, critical_value=student_t_critical_value)
    assert t_fc.point_estimate == pytest.approx(z_fc.point_estimate)
    assert t_fc.interval_width > z_fc.interval_width


def test_resolve_critical_value_by_name() -> None:
    assert resolve_critical_value("z") is fixed_z_critical_value
    assert resolve_critical_value("t") is student_t_critical_value


def test_resolve_critical_value_unknown_raises() -> None:
    with pytest.raises(ValueError, match="Unknown critical value"):
        resolve_critical_value("chi2")


# ── Error paths ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("values", [[], [42.0]])
def test_fit_needs_two_observations(values: list[float]) -> None:
    with pytest.raises(InsufficientDataError) as exc_info:
        fit(_window(values))
    assert exc_info.value.n == len(values)
    assert isinstance(exc_info.value, ForecastError)
    assert isinstance(exc_info.value, ValueError)


def test_fit_rejects_non_finite_values() -> None:
    # model_construct bypasses the Observation validator to simulate bad input
    window = _window([1.0, 2.0, 3.0]) + [Observation.model_construct(period="p03", value=math.nan)]
    with pytest.raises(NonFiniteInputError) as exc_info:
        fit(window)
    assert exc_info.value.period == "p03"


def test_predict_rejects_zero_horizon() -> None:
    with pytest.raises(ValueError, match="horizon_steps"):
        predict(fit(_window(NOISY)), horizon_steps=0)


@pytest.mark.parametrize("level", [0.0, 1.0, 1.5])
def test_predict_rejects_bad_confidence_level(level: float) -> None:
    with pytest.raises(ValueError, match="confidence_level"):
        predict(fit(_window(NOISY)), confidence_level=level)


# ── Indexer and forecaster object ──────────────────────────────────────────────

def test_custom_indexer_changes_x_scale() -> None:
    """x = 0, 2, 4, 6 halves the slope; one step past x_last = 6 is x = 7."""
    result = fit(_window([10.0, 20.0, 30.0, 40.0]), indexer=lambda w: [2.0 * i for i in range(len(w))])
    assert result.slope == pytest.approx(5.0)
    assert predict(result).point_estimate == pytest.approx(45.0)


def test_indexer_length_mismatch_raises() -> None:
    with pytest.raises(ValueError, match="Indexer returned"):
        fit(_window([1.0, 2.0, 3.0]), indexer=lambda w: [0.0, 1.0])


def test_forecaster_matches_module_functions() -> None:
    model = OLSForecaster()
    assert model.forecast(_window(NOISY), horizon_steps=2) == forecast(_window(NOISY), horizon_steps=2)


def test_forecaster_carries_confidence_level() -> None:
    model = OLSForecaster(confidence_level=0.80)
    fc = model.forecast(_window(NOISY))
    assert fc.confidence_level == 0.80
    assert fc.interval_width < forecast(_window(NOISY)).interval_width


def test_forecaster_rejects_bad_confidence_level() -> None:
    with pytest.raises(ValueError):
        OLSForecaster(confidence_level=1.2)
