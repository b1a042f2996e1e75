"""
Engine

Оркестратор пулов кривой репликации и рынка займов поверх них:
адресация пулов по PoolId, учёт позиций и маржи, движение токенов.
"""

from src.engine.collaborators import (
    Clock,
    InMemoryCustody,
    ManualClock,
    SystemClock,
    TokenCustody,
)
from src.engine.config import EngineConfig
from src.engine.engine import (
    BorrowResult,
    CreateResult,
    Engine,
    LiquidityResult,
    RepayResult,
)
from src.engine.ledger import PositionLedger
from src.engine.pool_id import POOL_ID_PATTERN, compute_pool_id, validate_pool_id

__all__ = [
    # Engine
    "Engine",
    "EngineConfig",
    "CreateResult",
    "LiquidityResult",
    "BorrowResult",
    "RepayResult",
    # Ledger
    "PositionLedger",
    # Collaborators
    "Clock",
    "TokenCustody",
    "InMemoryCustody",
    "ManualClock",
    "SystemClock",
    # Pool id
    "POOL_ID_PATTERN",
    "compute_pool_id",
    "validate_pool_id",
]
