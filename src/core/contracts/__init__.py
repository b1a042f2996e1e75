"""
Contract Validation Module

Модуль для валидации JSON контрактов внешних запросов движка.
"""

from .validators import (
    ContractValidator,
    PoolReservesValidator,
    PositionValidator,
    SchemaLoader,
    SwapQuoteValidator,
    validate_pool_reserves,
    validate_position,
    validate_swap_quote,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "PoolReservesValidator",
    "PositionValidator",
    "SwapQuoteValidator",
    # Functions
    "validate_pool_reserves",
    "validate_position",
    "validate_swap_quote",
]
