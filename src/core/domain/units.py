"""
Units — Централизованный модуль конверсии единиц

Единственный допустимый способ преобразований между:
- целыми суммами токенов (18 знаков, "wei") и float
- инвариантом в формате signed 64.64 fixed point и float
- basis points и долями
- секундами и годами (tau)

Суммы, которые пул выплачивает, округляются вниз; суммы, которые
пул получает или оставляет у себя, округляются вверх.

ЗАПРЕЩЕНО смешивать целые суммы и float без явного конвертера из этого модуля.
"""

import math
from typing import Final


# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Единица токена в целом представлении (18 знаков)
WAD: Final[int] = 10**18

# Единица fixed point 64.64
FIXED_POINT_ONE: Final[int] = 2**64

# Делитель basis points и волатильности (10_000 = 100%)
BPS_DENOMINATOR: Final[int] = 10_000

# Секунд в году для tau (365 дней)
SECONDS_PER_YEAR: Final[int] = 31_536_000


# =============================================================================
# ТОКЕНЫ
# =============================================================================


def parse_wei(value: float) -> int:
    """
    Конверсия float → целая сумма токена (округление к ближайшему).

    Args:
        value: Сумма в целых токенах (например, 1.5)

    Returns:
        Сумма в wei (например, 1_500_000_000_000_000_000)

    Raises:
        ValueError: Если value равно NaN/Inf
    """
    if not math.isfinite(value):
        raise ValueError(f"Token amount must be finite, got {value}")
    return round(value * WAD)


def parse_wei_up(value: float) -> int:
    """Конверсия float → wei с округлением вверх (в пользу пула)."""
    if not math.isfinite(value):
        raise ValueError(f"Token amount must be finite, got {value}")
    return math.ceil(value * WAD)


def wei_to_float(amount: int) -> float:
    """Конверсия wei → float в целых токенах."""
    return amount / WAD


# =============================================================================
# ЦЕЛОЧИСЛЕННАЯ АРИФМЕТИКА
# =============================================================================


def mul_div_down(a: int, b: int, denominator: int) -> int:
    """
    a * b / denominator с округлением вниз.

    Raises:
        ZeroDivisionError: Если denominator == 0
    """
    return (a * b) // denominator


def mul_div_up(a: int, b: int, denominator: int) -> int:
    """
    a * b / denominator с округлением вверх.

    Raises:
        ZeroDivisionError: Если denominator == 0
    """
    return -((-a * b) // denominator)


# =============================================================================
# FIXED POINT 64.64
# =============================================================================


def parse_int64x64(value: float) -> int:
    """
    Конверсия float → signed 64.64 fixed point.

    Args:
        value: Значение (может быть отрицательным)

    Returns:
        round(value * 2**64)
    """
    if not math.isfinite(value):
        raise ValueError(f"Fixed point value must be finite, got {value}")
    return round(value * FIXED_POINT_ONE)


def int64x64_to_float(value: int) -> float:
    """Конверсия signed 64.64 fixed point → float."""
    return value / FIXED_POINT_ONE


# =============================================================================
# ДОЛИ И ВРЕМЯ
# =============================================================================


def bps_to_fraction(bps: int | float) -> float:
    """
    Конверсия basis points в дробь.

    Args:
        bps: Basis points (например, 15 bps = 0.15%)

    Returns:
        Дробь (например, 15 bps → 0.0015)
    """
    return bps / BPS_DENOMINATOR


def seconds_to_years(seconds: int) -> float:
    """
    Конверсия секунд в годы для tau.

    Args:
        seconds: Длительность в секундах

    Returns:
        Длительность в годах (365-дневный год)
    """
    return seconds / SECONDS_PER_YEAR
