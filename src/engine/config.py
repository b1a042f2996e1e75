"""Конфигурация движка."""

from dataclasses import dataclass

from src.core.domain.pool import INVARIANT_TOLERANCE
from src.core.domain.units import bps_to_fraction


@dataclass(frozen=True)
class EngineConfig:
    """Параметры движка.

    - fee_bps: комиссия свопа на входной токен (15 bps = 0.15%)
    - min_liquidity: ликвидность, сжигаемая при создании пула, чтобы кривая
      никогда не опустела (wei)
    - invariant_tolerance: допустимое уменьшение инварианта после свопа,
      доля от L·K
    """
    fee_bps: int = 15
    min_liquidity: int = 1000
    invariant_tolerance: float = INVARIANT_TOLERANCE

    def __post_init__(self) -> None:
        if not 0 <= self.fee_bps < 10_000:
            raise ValueError(f"fee_bps must be in [0, 10000), got {self.fee_bps}")
        if self.min_liquidity < 0:
            raise ValueError(f"min_liquidity must be non-negative, got {self.min_liquidity}")
        if self.invariant_tolerance < 0:
            raise ValueError(
                f"invariant_tolerance must be non-negative, got {self.invariant_tolerance}"
            )

    @property
    def fee(self) -> float:
        """Комиссия как доля."""
        return bps_to_fraction(self.fee_bps)
