"""
Numerical Safeguards — Safe Math Primitives

Модуль обеспечивает численную устойчивость расчётов кривой репликации:
- Epsilon-параметры для вероятностей, резервов и инварианта
- NaN/Inf санитизация для предотвращения распространения невалидных значений
- Безопасное деление для расчёта эффективных цен
- Clamp значений и вероятностей
- Валидация входных параметров кривой

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Деление на ноль никогда не происходит (возвращается fallback)
2. NaN/Inf никогда не пропагируют в резервы пула
3. Все операции детерминированы и воспроизводимы
"""

import math
from typing import Final

# =============================================================================
# EPSILON-ПАРАМЕТРЫ
# =============================================================================

# Минимальная вероятность на входе обратной CDF.
# Вход clamp-ится в [P_MIN, 1 - P_MIN], 1e-15 ещё представимо рядом с 1.0
P_MIN: Final[float] = 1e-15

# Epsilon для общих вычислений
EPS_CALC: Final[float] = 1e-12

# Относительный шаг численного градиента (spot price)
GRADIENT_STEP_REL: Final[float] = 1e-6


# =============================================================================
# NaN/Inf САНИТИЗАЦИЯ
# =============================================================================


def is_valid_float(value: float) -> bool:
    """
    Проверка, является ли float валидным (не NaN, не Inf).

    Args:
        value: Проверяемое значение

    Returns:
        True если значение конечное
    """
    return math.isfinite(value)


def sanitize_float(value: float, fallback: float = 0.0) -> float:
    """
    Санитизация float: замена NaN/Inf на fallback значение.

    Examples:
        >>> sanitize_float(10.0)
        10.0
        >>> sanitize_float(float('nan'))
        0.0
    """
    if is_valid_float(value):
        return value
    return fallback


# =============================================================================
# БЕЗОПАСНОЕ ДЕЛЕНИЕ
# =============================================================================


def safe_divide(
    numerator: float,
    denominator: float,
    fallback: float = 0.0,
) -> float:
    """
    Безопасное деление с защитой от нулевого знаменателя и NaN/Inf.

    Используется для эффективных цен свопа, где знаменатель
    (delta_out или delta_in) может оказаться нулём на пыльных объёмах.

    Args:
        numerator: Числитель
        denominator: Знаменатель
        fallback: Значение при нулевом или невалидном знаменателе

    Returns:
        numerator / denominator или fallback

    Examples:
        >>> safe_divide(10.0, 2.0)
        5.0
        >>> safe_divide(10.0, 0.0)
        0.0
    """
    num_clean = sanitize_float(numerator, fallback=0.0)
    denom_clean = sanitize_float(denominator, fallback=0.0)

    if abs(denom_clean) < EPS_CALC:
        return fallback

    return sanitize_float(num_clean / denom_clean, fallback=fallback)


# =============================================================================
# CLAMP
# =============================================================================


def clamp(
    value: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    """
    Ограничение значения в заданном диапазоне.

    Examples:
        >>> clamp(5.0, 0.0, 10.0)
        5.0
        >>> clamp(-1.0, 0.0, 10.0)
        0.0
        >>> clamp(15.0, 0.0, 10.0)
        10.0
    """
    result = value

    if min_value is not None:
        result = max(result, min_value)

    if max_value is not None:
        result = min(result, max_value)

    return result


def clamp_probability(p: float, p_min: float = P_MIN) -> float:
    """
    Clamp вероятности в открытый интервал (0, 1).

    Граничные значения 0 и 1 (и всё, что за ними) не являются ошибкой:
    кривая репликации достигает их при полностью "stable" или полностью
    "risky" пуле.

    Args:
        p: Вероятность
        p_min: Отступ от границ интервала

    Returns:
        p, ограниченное [p_min, 1 - p_min]

    Raises:
        ValueError: Если p равно NaN
    """
    if math.isnan(p):
        raise ValueError("probability must not be NaN")
    return clamp(p, p_min, 1.0 - p_min)


# =============================================================================
# ВАЛИДАЦИЯ И ПРОВЕРКИ
# =============================================================================


def validate_positive(value: float, name: str) -> None:
    """
    Валидация, что значение строго положительное и конечное.

    Args:
        value: Проверяемое значение
        name: Имя параметра (для сообщения об ошибке)

    Raises:
        ValueError: Если value <= 0 или NaN/Inf
    """
    if not is_valid_float(value):
        raise ValueError(f"{name} must be a valid float (not NaN/Inf), got {value}")

    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


def validate_non_negative(value: float, name: str) -> None:
    """
    Валидация, что значение неотрицательное и конечное.

    Raises:
        ValueError: Если value < 0 или NaN/Inf
    """
    if not is_valid_float(value):
        raise ValueError(f"{name} must be a valid float (not NaN/Inf), got {value}")

    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def validate_in_range(
    value: float,
    name: str,
    min_value: float | None = None,
    max_value: float | None = None,
) -> None:
    """
    Валидация, что значение в заданном диапазоне.

    Raises:
        ValueError: Если value вне диапазона или NaN/Inf
    """
    if not is_valid_float(value):
        raise ValueError(f"{name} must be a valid float (not NaN/Inf), got {value}")

    if min_value is not None and value < min_value:
        raise ValueError(f"{name} must be >= {min_value}, got {value}")

    if max_value is not None and value > max_value:
        raise ValueError(f"{name} must be <= {max_value}, got {value}")
