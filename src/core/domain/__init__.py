"""
Domain models and value objects.

Contains the curve state (Pool), the lending ledger records (Position, Margin),
unit conversions and the engine error hierarchy.
"""

from src.core.domain.errors import (
    CollateralConflictError,
    EngineError,
    InsufficientBalanceError,
    InsufficientFloatError,
    InsufficientReservesError,
    InvalidParametersError,
    InvariantViolationError,
    PoolExpiredError,
    PoolNotFoundError,
    SlippageExceededError,
    require_positive,
)
from src.core.domain.pool import (
    INVARIANT_TOLERANCE,
    Pool,
    ReservesSnapshot,
    SwapDirection,
    SwapResult,
)
from src.core.domain.position import (
    Margin,
    Position,
    PositionExposure,
    PositionRole,
)
from src.core.domain.units import (
    BPS_DENOMINATOR,
    FIXED_POINT_ONE,
    SECONDS_PER_YEAR,
    WAD,
    bps_to_fraction,
    int64x64_to_float,
    mul_div_down,
    mul_div_up,
    parse_int64x64,
    parse_wei,
    parse_wei_up,
    seconds_to_years,
    wei_to_float,
)

__all__ = [
    # Errors
    "EngineError",
    "InvalidParametersError",
    "PoolNotFoundError",
    "PoolExpiredError",
    "InsufficientReservesError",
    "InsufficientBalanceError",
    "InsufficientFloatError",
    "CollateralConflictError",
    "SlippageExceededError",
    "InvariantViolationError",
    "require_positive",
    # Pool model
    "INVARIANT_TOLERANCE",
    "Pool",
    "ReservesSnapshot",
    "SwapDirection",
    "SwapResult",
    # Position model
    "Margin",
    "Position",
    "PositionExposure",
    "PositionRole",
    # Units module
    "BPS_DENOMINATOR",
    "FIXED_POINT_ONE",
    "SECONDS_PER_YEAR",
    "WAD",
    "bps_to_fraction",
    "int64x64_to_float",
    "mul_div_down",
    "mul_div_up",
    "parse_int64x64",
    "parse_wei",
    "parse_wei_up",
    "seconds_to_years",
    "wei_to_float",
]
