"""
Core math modules

Численные примитивы кривой репликации: нормальное распределение,
trading function и защитные epsilon-утилиты.
"""

# Numerical Safeguards
from src.core.math.numerical_safeguards import (
    # Epsilon constants
    EPS_CALC,
    GRADIENT_STEP_REL,
    P_MIN,
    # Sanitization
    is_valid_float,
    sanitize_float,
    safe_divide,
    # Clamp
    clamp,
    clamp_probability,
    # Validation
    validate_in_range,
    validate_non_negative,
    validate_positive,
)

# Normal Distribution
from src.core.math.normal_distribution import (
    ROUNDTRIP_TOLERANCE,
    inverse_std_normal_cdf,
    quantile_prime,
    std_normal_cdf,
    std_normal_pdf,
)

# Replication Math
from src.core.math.replication import (
    calc_invariant,
    inverse_trading_function,
    marginal_price_risky_in,
    marginal_price_stable_in,
    proportional_vol,
    spot_price,
    trading_function,
)

__all__ = [
    # Numerical Safeguards — Epsilon constants
    "EPS_CALC",
    "GRADIENT_STEP_REL",
    "P_MIN",
    # Numerical Safeguards — Sanitization
    "is_valid_float",
    "sanitize_float",
    "safe_divide",
    # Numerical Safeguards — Clamp
    "clamp",
    "clamp_probability",
    # Numerical Safeguards — Validation
    "validate_in_range",
    "validate_non_negative",
    "validate_positive",
    # Normal Distribution
    "ROUNDTRIP_TOLERANCE",
    "inverse_std_normal_cdf",
    "quantile_prime",
    "std_normal_cdf",
    "std_normal_pdf",
    # Replication Math
    "calc_invariant",
    "inverse_trading_function",
    "marginal_price_risky_in",
    "marginal_price_stable_in",
    "proportional_vol",
    "spot_price",
    "trading_function",
]
