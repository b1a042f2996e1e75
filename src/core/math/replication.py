"""
Replication Math — Covered Call Trading Function

Чистые функции кривой, реплицирующей payoff покрытого колла:
- proportional_vol: σ·sqrt(τ)
- trading_function: stable резерв как функция risky резерва
- inverse_trading_function: risky резерв как функция stable резерва
- calc_invariant: остаток stable - f(risky)
- marginal_price_risky_in / marginal_price_stable_in: цена после сделки
- spot_price: отношение частных производных инварианта

ФОРМУЛЫ (резервы абсолютные, L = liquidity, v = σ·sqrt(τ), γ = 1 - fee):
    R2 = L·K·Φ(Φ⁻¹(1 - γ·R1/L) - v) + k
    R1 = L·(1 - Φ(Φ⁻¹((γ·R2 - k) / (L·K)) + v))
    k  = R2 - L·K·Φ(Φ⁻¹(1 - R1/L) - v)

При L = 1 формулы совпадают с классической записью на единицу ликвидности.
При v <= 0 (экспирация) кривая вырождается в ступеньку на страйке:
trading_function и inverse_trading_function возвращают 0, это граничный
случай, а не ошибка.

Функции детерминированы и не имеют состояния: их вызывают и коммитящий
код пула (целые суммы), и превью/котировки (float).
"""

import math

from src.core.math.normal_distribution import (
    inverse_std_normal_cdf,
    std_normal_cdf,
)
from src.core.math.numerical_safeguards import (
    GRADIENT_STEP_REL,
    safe_divide,
    validate_in_range,
    validate_non_negative,
    validate_positive,
)


def _validate_curve(liquidity: float, strike: float, sigma: float, fee: float) -> None:
    validate_positive(liquidity, "liquidity")
    validate_positive(strike, "strike")
    validate_non_negative(sigma, "sigma")
    validate_in_range(fee, "fee", 0.0, 1.0)


# =============================================================================
# TRADING FUNCTION
# =============================================================================


def proportional_vol(sigma: float, tau: float) -> float:
    """
    Пропорциональная волатильность σ·sqrt(τ).

    Args:
        sigma: Годовая волатильность (1.0 = 100%)
        tau: Время до экспирации в годах

    Returns:
        σ·sqrt(τ), либо 0.0 при τ <= 0
    """
    if tau <= 0:
        return 0.0
    return sigma * math.sqrt(tau)


def trading_function(
    invariant_last: float,
    reserve_risky: float,
    liquidity: float,
    strike: float,
    sigma: float,
    tau: float,
    fee: float = 0.0,
) -> float:
    """
    Stable резерв, соответствующий risky резерву на кривой.

    Args:
        invariant_last: Инвариант, вычисленный с тем же tau
        reserve_risky: Risky резерв пула
        liquidity: Общая ликвидность пула
        strike: Страйк (stable за единицу risky)
        sigma: Годовая волатильность
        tau: Время до экспирации в годах
        fee: Комиссия, применяемая к risky на входе

    Returns:
        Stable резерв, либо 0.0 если пропорциональная волатильность <= 0
    """
    _validate_curve(liquidity, strike, sigma, fee)

    vol = proportional_vol(sigma, tau)
    if vol <= 0:
        return 0.0

    gamma = 1.0 - fee
    per_unit_risky = reserve_risky * gamma / liquidity
    phi = inverse_std_normal_cdf(1.0 - per_unit_risky)
    return liquidity * strike * std_normal_cdf(phi - vol) + invariant_last


def inverse_trading_function(
    invariant_last: float,
    reserve_stable: float,
    liquidity: float,
    strike: float,
    sigma: float,
    tau: float,
    fee: float = 0.0,
) -> float:
    """
    Risky резерв, соответствующий stable резерву на кривой.

    Args:
        invariant_last: Инвариант, вычисленный с тем же tau
        reserve_stable: Stable резерв пула
        liquidity: Общая ликвидность пула
        strike: Страйк (stable за единицу risky)
        sigma: Годовая волатильность
        tau: Время до экспирации в годах
        fee: Комиссия, применяемая к stable на входе

    Returns:
        Risky резерв, либо 0.0 если пропорциональная волатильность <= 0
    """
    _validate_curve(liquidity, strike, sigma, fee)

    vol = proportional_vol(sigma, tau)
    if vol <= 0:
        return 0.0

    gamma = 1.0 - fee
    per_unit_stable = (reserve_stable * gamma - invariant_last) / (liquidity * strike)
    phi = inverse_std_normal_cdf(per_unit_stable)
    return liquidity * (1.0 - std_normal_cdf(phi + vol))


def calc_invariant(
    reserve_risky: float,
    reserve_stable: float,
    liquidity: float,
    strike: float,
    sigma: float,
    tau: float,
) -> float:
    """
    Инвариант кривой: stable резерв минус trading_function(0, risky).

    Returns:
        k = R2 - f(R1); ноль для точки, лежащей на кривой
    """
    expected_stable = trading_function(0.0, reserve_risky, liquidity, strike, sigma, tau)
    return reserve_stable - expected_stable


# =============================================================================
# ЦЕНЫ
# =============================================================================


def marginal_price_risky_in(
    reserve_risky: float,
    liquidity: float,
    strike: float,
    sigma: float,
    tau: float,
    amount_in: float,
    fee: float = 0.0,
) -> float:
    """
    Маржинальная цена (stable за risky) после продажи amount_in risky в пул.

    p = γ·K·φ(a - v)·Φ⁻¹'(1 - r1 - γΔ), a = Φ⁻¹(1 - r1 - γΔ),
    где r1 и Δ нормированы на единицу ликвидности. Учитывая
    Φ⁻¹'(x) = 1 / φ(Φ⁻¹(x)), отношение плотностей сводится к exp(a·v - v²/2).
    """
    _validate_curve(liquidity, strike, sigma, fee)
    validate_non_negative(amount_in, "amount_in")

    gamma = 1.0 - fee
    vol = proportional_vol(sigma, tau)
    a = inverse_std_normal_cdf(1.0 - (reserve_risky + gamma * amount_in) / liquidity)
    return gamma * strike * math.exp(a * vol - 0.5 * vol * vol)


def marginal_price_stable_in(
    reserve_stable: float,
    invariant: float,
    liquidity: float,
    strike: float,
    sigma: float,
    tau: float,
    amount_in: float,
    fee: float = 0.0,
) -> float:
    """
    Маржинальная цена (stable за risky) после покупки risky за amount_in stable.

    p = K·φ(b) / (γ·φ(b + v)), b = Φ⁻¹((r2 + γΔ - k) / K),
    все величины нормированы на единицу ликвидности.
    """
    _validate_curve(liquidity, strike, sigma, fee)
    validate_non_negative(amount_in, "amount_in")

    gamma = 1.0 - fee
    if gamma <= 0:
        raise ValueError("fee must be below 1 to quote a stable-in price")

    vol = proportional_vol(sigma, tau)
    b = inverse_std_normal_cdf(
        (reserve_stable + gamma * amount_in - invariant) / (liquidity * strike)
    )
    return strike * math.exp(b * vol + 0.5 * vol * vol) / gamma


def spot_price(
    reserve_risky: float,
    reserve_stable: float,
    liquidity: float,
    strike: float,
    sigma: float,
    tau: float,
) -> float:
    """
    Спот-цена как отношение частных производных инварианта.

    Центральные разности calc_invariant по R1 и R2 в текущей точке.
    Цена без учёта размера сделки, в отличие от marginal_price_*.

    Returns:
        (∂k/∂R1) / (∂k/∂R2); 0.0 при вырожденной (экспирированной) кривой
    """
    h = GRADIENT_STEP_REL * liquidity

    def invariant_at(risky: float, stable: float) -> float:
        return calc_invariant(risky, stable, liquidity, strike, sigma, tau)

    d_risky = (
        invariant_at(reserve_risky + h, reserve_stable)
        - invariant_at(reserve_risky - h, reserve_stable)
    ) / (2.0 * h)
    d_stable = (
        invariant_at(reserve_risky, reserve_stable + h)
        - invariant_at(reserve_risky, reserve_stable - h)
    ) / (2.0 * h)

    return safe_divide(d_risky, d_stable)
