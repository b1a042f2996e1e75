"""
Position — Позиция владельца в пуле и маржинальный счёт

Immutable Pydantic модели учёта рынка займов:
- Position: ключ (owner, pool_id); allocated liquidity, float, debt
- Margin: внутренние балансы владельца (risky/stable) в движке
- PositionRole: поставщик ликвидности или заёмщик (никогда оба сразу)

Все изменения позиции создают новый экземпляр. Позиция создаётся лениво
и физически не удаляется; пустая позиция (всё по нулям) логически отсутствует.

ИНВАРИАНТ ЗАПРЕТА САМОКОЛЛАТЕРАЛИЗАЦИИ:
Владелец с ненулевой liquidity или float не может занимать в том же пуле,
а владелец с открытым долгом не может поставлять ликвидность.
"""

from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, Field

from src.core.domain.errors import (
    CollateralConflictError,
    InsufficientBalanceError,
    InsufficientFloatError,
    InsufficientReservesError,
    InvalidParametersError,
    require_positive,
)
from src.core.domain.pool import Pool
from src.core.domain.units import mul_div_down


# =============================================================================
# ENUMS
# =============================================================================


class PositionRole(str, Enum):
    """Роль владельца в пуле"""

    NONE = "none"
    LIQUIDITY_PROVIDER = "liquidity_provider"
    BORROWER = "borrower"


class PositionExposure(NamedTuple):
    """Чистая экспозиция позиции: доля резервов и длинные опционы (debt)."""

    risky: int
    stable: int
    liquidity: int


# =============================================================================
# POSITION MODEL
# =============================================================================


class Position(BaseModel):
    """
    Позиция владельца в одном пуле.

    Immutable модель (frozen=True) для предотвращения случайных изменений.
    """

    owner: str = Field(..., min_length=1)
    pool_id: str = Field(..., min_length=1)

    liquidity: int = Field(0, ge=0, description="Размещённая ликвидность")
    float_liquidity: int = Field(0, ge=0, description="Ликвидность, отданная в заём")
    debt: int = Field(0, ge=0, description="Занятая ликвидность (длинные опционы)")

    model_config = {"frozen": True}

    @property
    def role(self) -> PositionRole:
        if self.debt > 0:
            return PositionRole.BORROWER
        if self.liquidity > 0 or self.float_liquidity > 0:
            return PositionRole.LIQUIDITY_PROVIDER
        return PositionRole.NONE

    @property
    def is_empty(self) -> bool:
        return self.liquidity == 0 and self.float_liquidity == 0 and self.debt == 0

    @property
    def collateral_locked(self) -> int:
        """Risky, удерживаемый движком под долг: одна единица на единицу debt."""
        return self.debt

    def _conflict(self, detail: str) -> CollateralConflictError:
        return CollateralConflictError(self.owner, self.pool_id, detail)

    def exposure(self, pool: Pool) -> PositionExposure:
        """
        Экспозиция позиции при текущих резервах пула.

        risky/stable — доля резервов за размещённую ликвидность (округление вниз),
        liquidity — открытый долг. Для чистого заёмщика: (0, 0, debt).
        """
        risky = mul_div_down(self.liquidity, pool.reserve_risky, pool.liquidity)
        stable = mul_div_down(self.liquidity, pool.reserve_stable, pool.liquidity)
        return PositionExposure(risky=risky, stable=stable, liquidity=self.debt)

    # -------------------------------------------------------------------------
    # Поставщик ликвидности
    # -------------------------------------------------------------------------

    def allocate(self, delta_liquidity: int) -> "Position":
        """
        Raises:
            InvalidParametersError: delta_liquidity <= 0
            CollateralConflictError: у владельца открыт долг в этом пуле
        """
        require_positive(delta_liquidity, "delta_liquidity")
        if self.debt > 0:
            raise self._conflict(f"cannot allocate with open debt {self.debt}")
        return self.model_copy(update={"liquidity": self.liquidity + delta_liquidity})

    def remove(self, delta_liquidity: int) -> "Position":
        require_positive(delta_liquidity, "delta_liquidity")
        if delta_liquidity > self.liquidity:
            raise InsufficientReservesError(
                f"remove {delta_liquidity} exceeds allocated liquidity {self.liquidity}"
            )
        return self.model_copy(update={"liquidity": self.liquidity - delta_liquidity})

    def lend(self, delta_liquidity: int) -> "Position":
        """Перевод размещённой ликвидности в float."""
        require_positive(delta_liquidity, "delta_liquidity")
        if delta_liquidity > self.liquidity:
            raise InsufficientReservesError(
                f"lend {delta_liquidity} exceeds allocated liquidity {self.liquidity}"
            )
        return self.model_copy(
            update={
                "liquidity": self.liquidity - delta_liquidity,
                "float_liquidity": self.float_liquidity + delta_liquidity,
            }
        )

    def claim(self, delta_liquidity: int) -> "Position":
        """Возврат float в размещённую ликвидность."""
        require_positive(delta_liquidity, "delta_liquidity")
        if delta_liquidity > self.float_liquidity:
            raise InsufficientFloatError(delta_liquidity, self.float_liquidity)
        return self.model_copy(
            update={
                "liquidity": self.liquidity + delta_liquidity,
                "float_liquidity": self.float_liquidity - delta_liquidity,
            }
        )

    # -------------------------------------------------------------------------
    # Заёмщик
    # -------------------------------------------------------------------------

    def borrow(self, delta_liquidity: int) -> "Position":
        """
        Raises:
            InvalidParametersError: delta_liquidity <= 0
            CollateralConflictError: у владельца есть liquidity или float в этом пуле
        """
        require_positive(delta_liquidity, "delta_liquidity")
        if self.liquidity > 0 or self.float_liquidity > 0:
            raise self._conflict(
                f"cannot borrow while holding liquidity {self.liquidity} "
                f"and float {self.float_liquidity}"
            )
        return self.model_copy(update={"debt": self.debt + delta_liquidity})

    def repay(self, delta_liquidity: int) -> "Position":
        """
        Raises:
            InvalidParametersError: delta_liquidity <= 0 или больше долга
        """
        require_positive(delta_liquidity, "delta_liquidity")
        if delta_liquidity > self.debt:
            raise InvalidParametersError(
                f"repay {delta_liquidity} exceeds debt {self.debt}"
            )
        return self.model_copy(update={"debt": self.debt - delta_liquidity})


# =============================================================================
# MARGIN MODEL
# =============================================================================


class Margin(BaseModel):
    """Внутренние балансы владельца в движке."""

    owner: str = Field(..., min_length=1)
    balance_risky: int = Field(0, ge=0)
    balance_stable: int = Field(0, ge=0)

    model_config = {"frozen": True}

    def deposit(self, delta_risky: int, delta_stable: int) -> "Margin":
        if delta_risky < 0 or delta_stable < 0:
            raise InvalidParametersError("deposit amounts must be non-negative")
        return self.model_copy(
            update={
                "balance_risky": self.balance_risky + delta_risky,
                "balance_stable": self.balance_stable + delta_stable,
            }
        )

    def withdraw(self, delta_risky: int, delta_stable: int) -> "Margin":
        """
        Raises:
            InvalidParametersError: отрицательные суммы
            InsufficientBalanceError: сумма больше баланса
        """
        if delta_risky < 0 or delta_stable < 0:
            raise InvalidParametersError("withdraw amounts must be non-negative")
        if delta_risky > self.balance_risky:
            raise InsufficientBalanceError("risky", delta_risky, self.balance_risky)
        if delta_stable > self.balance_stable:
            raise InsufficientBalanceError("stable", delta_stable, self.balance_stable)
        return self.model_copy(
            update={
                "balance_risky": self.balance_risky - delta_risky,
                "balance_stable": self.balance_stable - delta_stable,
            }
        )
