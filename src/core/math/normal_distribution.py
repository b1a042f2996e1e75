"""
Normal Distribution — Closed-Form Approximations

Стандартное нормальное распределение для кривой репликации:
- std_normal_pdf: плотность φ(x)
- std_normal_cdf: Φ(x) через erfc (без итераций)
- inverse_std_normal_cdf: Φ⁻¹(p), рациональная аппроксимация Acklam
- quantile_prime: производная квантили, 1 / φ(Φ⁻¹(p))

Аппроксимация Acklam (три участка: нижний хвост, центр, верхний хвост)
имеет относительную ошибку не более 1.15e-9 по всему интервалу (0, 1).

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Round-trip: |Φ(Φ⁻¹(p)) - p| <= ROUNDTRIP_TOLERANCE для любого p в (0, 1)
2. Вход на границе домена clamp-ится, а не приводит к ошибке
3. Никакого итеративного поиска корня, только замкнутые формулы
"""

import math
from typing import Final

from src.core.math.numerical_safeguards import P_MIN, clamp_probability

# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Документированная точность round-trip Φ(Φ⁻¹(p)) ≈ p
ROUNDTRIP_TOLERANCE: Final[float] = 1e-9

# Граница между хвостами и центральной областью аппроксимации
ACKLAM_P_LOW: Final[float] = 0.02425
ACKLAM_P_HIGH: Final[float] = 1.0 - ACKLAM_P_LOW

_SQRT_2: Final[float] = math.sqrt(2.0)
_INV_SQRT_2PI: Final[float] = 1.0 / math.sqrt(2.0 * math.pi)

# Коэффициенты рациональной аппроксимации (центральная область)
_A: Final[tuple[float, ...]] = (
    -3.969683028665376e01,
    2.209460984245205e02,
    -2.759285104469687e02,
    1.383577518672690e02,
    -3.066479806614716e01,
    2.506628277459239e00,
)
_B: Final[tuple[float, ...]] = (
    -5.447609879822406e01,
    1.615858368580409e02,
    -1.556989798598866e02,
    6.680131188771972e01,
    -1.328068155288572e01,
)

# Коэффициенты для хвостов
_C: Final[tuple[float, ...]] = (
    -7.784894002430293e-03,
    -3.223964580411365e-01,
    -2.400758277161838e00,
    -2.549732539343734e00,
    4.374664141464968e00,
    2.938163982698783e00,
)
_D: Final[tuple[float, ...]] = (
    7.784695709041462e-03,
    3.224671290700398e-01,
    2.445134137142996e00,
    3.754408661907416e00,
)


# =============================================================================
# ПЛОТНОСТЬ И CDF
# =============================================================================


def std_normal_pdf(x: float) -> float:
    """
    Плотность стандартного нормального распределения.

    Args:
        x: Точка

    Returns:
        φ(x) = exp(-x²/2) / sqrt(2π)
    """
    return _INV_SQRT_2PI * math.exp(-0.5 * x * x)


def std_normal_cdf(x: float) -> float:
    """
    Функция распределения стандартного нормального закона.

    Φ(x) = 0.5 * erfc(-x / sqrt(2)). Через erfc, а не erf, чтобы
    левый хвост не терял точность на вычитании из единицы.

    Args:
        x: Точка (±inf допустимы и дают 0 или 1)

    Returns:
        Φ(x) в [0, 1]

    Raises:
        ValueError: Если x равно NaN

    Examples:
        >>> std_normal_cdf(0.0)
        0.5
    """
    if math.isnan(x):
        raise ValueError("std_normal_cdf input must not be NaN")
    if math.isinf(x):
        return 1.0 if x > 0 else 0.0

    return 0.5 * math.erfc(-x / _SQRT_2)


# =============================================================================
# ОБРАТНАЯ CDF
# =============================================================================


def _tail_quantile(q: float) -> float:
    """Рациональная аппроксимация хвоста для q = sqrt(-2 ln p)."""
    c0, c1, c2, c3, c4, c5 = _C
    d0, d1, d2, d3 = _D
    numerator = ((((c0 * q + c1) * q + c2) * q + c3) * q + c4) * q + c5
    denominator = (((d0 * q + d1) * q + d2) * q + d3) * q + 1.0
    return numerator / denominator


def inverse_std_normal_cdf(p: float) -> float:
    """
    Квантиль стандартного нормального распределения Φ⁻¹(p).

    Аппроксимация Acklam:
        p < P_LOW:        нижний хвост, q = sqrt(-2 ln p)
        P_LOW..P_HIGH:    центр, рациональная функция от (p - 0.5)²
        p > P_HIGH:       верхний хвост, симметрично нижнему

    Вход вне (0, 1) clamp-ится в [P_MIN, 1 - P_MIN]: на границе кривая
    вырождается, но это не ошибка вызывающего кода.

    Args:
        p: Вероятность

    Returns:
        x такой, что Φ(x) ≈ p

    Raises:
        ValueError: Если p равно NaN

    Examples:
        >>> inverse_std_normal_cdf(0.5)
        0.0
    """
    p = clamp_probability(p, P_MIN)

    if p < ACKLAM_P_LOW:
        return _tail_quantile(math.sqrt(-2.0 * math.log(p)))

    if p > ACKLAM_P_HIGH:
        return -_tail_quantile(math.sqrt(-2.0 * math.log(1.0 - p)))

    a0, a1, a2, a3, a4, a5 = _A
    b0, b1, b2, b3, b4 = _B
    q = p - 0.5
    r = q * q
    numerator = (((((a0 * r + a1) * r + a2) * r + a3) * r + a4) * r + a5) * q
    denominator = ((((b0 * r + b1) * r + b2) * r + b3) * r + b4) * r + 1.0
    return numerator / denominator


def quantile_prime(p: float) -> float:
    """
    Производная квантили: d Φ⁻¹(p) / dp = 1 / φ(Φ⁻¹(p)).

    Используется в формулах маржинальной цены после сделки.

    Args:
        p: Вероятность (clamp-ится как в inverse_std_normal_cdf)

    Returns:
        Положительная производная квантили
    """
    return 1.0 / std_normal_pdf(inverse_std_normal_cdf(p))
