"""
Тесты для модуля Numerical Safeguards

Проверяет:
1. Безопасное деление
2. NaN/Inf санитизацию
3. Clamp значений и вероятностей
4. Валидацию параметров
"""

import pytest

from src.core.math.numerical_safeguards import (
    EPS_CALC,
    P_MIN,
    clamp,
    clamp_probability,
    is_valid_float,
    safe_divide,
    sanitize_float,
    validate_in_range,
    validate_non_negative,
    validate_positive,
)

# =============================================================================
# ТЕСТЫ БЕЗОПАСНОГО ДЕЛЕНИЯ
# =============================================================================


class TestSafeDivide:
    """Тесты для safe_divide"""

    def test_normal_division(self) -> None:
        assert safe_divide(10.0, 2.0) == 5.0
        assert safe_divide(-9.0, 3.0) == -3.0

    def test_division_by_zero_returns_fallback(self) -> None:
        assert safe_divide(10.0, 0.0) == 0.0
        assert safe_divide(10.0, 0.0, fallback=-1.0) == -1.0

    def test_denominator_below_eps_returns_fallback(self) -> None:
        assert safe_divide(1.0, EPS_CALC / 10) == 0.0

    def test_nan_numerator_treated_as_zero(self) -> None:
        assert safe_divide(float("nan"), 2.0) == 0.0

    def test_nan_denominator_returns_fallback(self) -> None:
        assert safe_divide(1.0, float("nan"), fallback=7.0) == 7.0


# =============================================================================
# ТЕСТЫ NaN/Inf САНИТИЗАЦИИ
# =============================================================================


class TestIsValidFloat:
    """Тесты для is_valid_float"""

    def test_normal_values_valid(self) -> None:
        assert is_valid_float(0.0)
        assert is_valid_float(-1e300)

    def test_nan_and_inf_invalid(self) -> None:
        assert not is_valid_float(float("nan"))
        assert not is_valid_float(float("inf"))
        assert not is_valid_float(float("-inf"))


class TestSanitizeFloat:
    """Тесты для sanitize_float"""

    def test_normal_values_unchanged(self) -> None:
        assert sanitize_float(3.5) == 3.5

    def test_invalid_replaced_with_fallback(self) -> None:
        assert sanitize_float(float("nan")) == 0.0
        assert sanitize_float(float("inf"), fallback=1.0) == 1.0


# =============================================================================
# ТЕСТЫ CLAMP
# =============================================================================


class TestClamp:
    """Тесты для clamp и clamp_probability"""

    def test_within_range_unchanged(self) -> None:
        assert clamp(5.0, 0.0, 10.0) == 5.0

    def test_bounds_applied(self) -> None:
        assert clamp(-1.0, 0.0, 10.0) == 0.0
        assert clamp(15.0, 0.0, 10.0) == 10.0

    def test_open_bounds(self) -> None:
        assert clamp(-1e9, None, 10.0) == -1e9
        assert clamp(1e9, 0.0, None) == 1e9

    def test_probability_clamped_into_open_interval(self) -> None:
        assert clamp_probability(0.0) == P_MIN
        assert clamp_probability(1.0) == 1.0 - P_MIN
        assert clamp_probability(2.0) == 1.0 - P_MIN
        assert clamp_probability(0.3) == 0.3

    def test_probability_custom_margin(self) -> None:
        assert clamp_probability(0.0, p_min=0.01) == 0.01

    def test_probability_nan_rejected(self) -> None:
        with pytest.raises(ValueError, match="NaN"):
            clamp_probability(float("nan"))


# =============================================================================
# ТЕСТЫ ВАЛИДАЦИИ
# =============================================================================


class TestValidation:
    """Тесты validate_* функций"""

    def test_validate_positive(self) -> None:
        validate_positive(1.0, "x")
        with pytest.raises(ValueError, match="x must be positive"):
            validate_positive(0.0, "x")
        with pytest.raises(ValueError, match="NaN/Inf"):
            validate_positive(float("inf"), "x")

    def test_validate_non_negative(self) -> None:
        validate_non_negative(0.0, "y")
        with pytest.raises(ValueError, match="y must be non-negative"):
            validate_non_negative(-1e-9, "y")

    def test_validate_in_range(self) -> None:
        validate_in_range(0.5, "fee", 0.0, 1.0)
        with pytest.raises(ValueError, match="fee must be <= 1.0"):
            validate_in_range(1.5, "fee", 0.0, 1.0)
        with pytest.raises(ValueError, match="fee must be >= 0.0"):
            validate_in_range(-0.1, "fee", 0.0, 1.0)
