"""
Pool — Состояние кривой репликации

Immutable Pydantic модель одного пула (одна тройка strike/sigma/maturity).
Все переходы (tau, инвариант, свопы, ликвидность, float/debt) возвращают
новый снапшот пула. Движок публикует снапшот только после успеха всей
операции, поэтому превью свопа — та же чистая функция без публикации.

Единицы:
- резервы, ликвидность, float, debt, комиссии: int wei (18 знаков)
- strike: int wei stable за одну единицу risky
- sigma: int basis points (10_000 = 100% годовых)
- invariant: signed 64.64 fixed point в единицах stable
- maturity, last_timestamp: int секунды

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. reserve_stable == trading_function(invariant, reserve_risky, ...) после
   любого перехода (в пределах точности аппроксимации)
2. Своп никогда не уменьшает инвариант сильнее толерантности, иначе
   InvariantViolationError
3. Резервы никогда не отрицательны
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from pydantic import BaseModel, Field

from src.core.domain.errors import (
    InsufficientFloatError,
    InsufficientReservesError,
    InvalidParametersError,
    InvariantViolationError,
    PoolExpiredError,
    require_positive,
)
from src.core.domain.units import (
    BPS_DENOMINATOR,
    WAD,
    bps_to_fraction,
    int64x64_to_float,
    mul_div_down,
    mul_div_up,
    parse_int64x64,
    parse_wei_up,
    seconds_to_years,
    wei_to_float,
)
from src.core.math.numerical_safeguards import safe_divide
from src.core.math.replication import (
    calc_invariant,
    inverse_trading_function,
    marginal_price_risky_in,
    marginal_price_stable_in,
    spot_price,
    trading_function,
)

logger = logging.getLogger(__name__)


# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Допустимое уменьшение инварианта после свопа, доля от L·K.
# Покрывает документированную ошибку round-trip Φ(Φ⁻¹(p)).
INVARIANT_TOLERANCE: Final[float] = 1e-8


# =============================================================================
# ТИПЫ
# =============================================================================


class SwapDirection(str, Enum):
    """Направление свопа: какой токен входит в пул"""

    RISKY_IN = "risky_in"
    STABLE_IN = "stable_in"


@dataclass(frozen=True)
class SwapResult:
    """Результат свопа (или превью свопа)."""

    direction: SwapDirection
    delta_in: int
    delta_out: int
    fee_amount: int

    # Stable за единицу risky
    effective_price: float

    invariant_last: int
    invariant_next: int

    # Снапшот пула после свопа
    pool: "Pool"

    def as_quote(self) -> dict[str, Any]:
        """JSON-представление котировки (контракт swap_quote)."""
        return {
            "pool_id": self.pool.pool_id,
            "direction": self.direction.value,
            "delta_in": self.delta_in,
            "delta_out": self.delta_out,
            "fee_amount": self.fee_amount,
            "effective_price": self.effective_price,
            "invariant_last": self.invariant_last,
            "invariant_next": self.invariant_next,
            "reserve_risky": self.pool.reserve_risky,
            "reserve_stable": self.pool.reserve_stable,
        }


class ReservesSnapshot(BaseModel):
    """Снапшот резервов пула для внешних запросов (контракт pool_reserves)."""

    pool_id: str
    reserve_risky: int = Field(..., ge=0)
    reserve_stable: int = Field(..., ge=0)
    liquidity: int = Field(..., gt=0)
    float_liquidity: int = Field(..., ge=0)
    debt: int = Field(..., ge=0)
    invariant: int
    accrued_fee_risky: int = Field(..., ge=0)
    accrued_fee_stable: int = Field(..., ge=0)
    last_timestamp: int = Field(..., ge=0)
    tau: int = Field(..., ge=0)

    model_config = {"frozen": True}


# =============================================================================
# POOL MODEL
# =============================================================================


class Pool(BaseModel):
    """
    Снапшот состояния кривой одного пула.

    Immutable модель (frozen=True): каждый переход создаёт новый экземпляр.
    """

    # Идентификация (вычисляется движком, пул её не пересчитывает)
    pool_id: str = Field(..., min_length=1)

    # Параметры кривой, неизменные после создания
    strike: int = Field(..., gt=0, description="Страйк, wei stable за 1 risky")
    sigma: int = Field(..., gt=0, description="Волатильность, bps")
    maturity: int = Field(..., gt=0, description="Экспирация, unix секунды")

    # Состояние
    last_timestamp: int = Field(..., ge=0)
    liquidity: int = Field(..., gt=0)
    reserve_risky: int = Field(..., ge=0)
    reserve_stable: int = Field(..., ge=0)
    invariant: int = Field(0, description="Signed 64.64 fixed point")
    accrued_fees: tuple[int, int] = (0, 0)

    # Рынок займов
    float_liquidity: int = Field(0, ge=0, description="Ликвидность, доступная для займа")
    debt: int = Field(0, ge=0, description="Занятая ликвидность")

    model_config = {"frozen": True}

    # -------------------------------------------------------------------------
    # Создание
    # -------------------------------------------------------------------------

    @classmethod
    def initialize(
        cls,
        pool_id: str,
        strike: int,
        sigma: int,
        maturity: int,
        timestamp: int,
        risky_per_liquidity: int,
        liquidity: int,
    ) -> "Pool":
        """
        Новый пул с резервами в точке risky_per_liquidity на кривой.

        Stable резерв берётся из trading_function с нулевым инвариантом,
        обе суммы округляются вверх (в пользу пула).

        Args:
            pool_id: Идентификатор пула
            strike: Страйк (wei)
            sigma: Волатильность (bps)
            maturity: Экспирация (секунды)
            timestamp: Текущее время (секунды)
            risky_per_liquidity: Risky на единицу ликвидности (wei, строго в (0, WAD))
            liquidity: Начальная ликвидность (wei)

        Raises:
            InvalidParametersError: Невалидные параметры или пул уже экспирирован
        """
        require_positive(strike, "strike")
        require_positive(sigma, "sigma")
        require_positive(liquidity, "liquidity")
        if not 0 < risky_per_liquidity < WAD:
            raise InvalidParametersError(
                f"risky_per_liquidity must be in (0, {WAD}), got {risky_per_liquidity}"
            )
        if maturity <= timestamp:
            raise InvalidParametersError(
                f"maturity {maturity} must be after current time {timestamp}"
            )

        pool = cls(
            pool_id=pool_id,
            strike=strike,
            sigma=sigma,
            maturity=maturity,
            last_timestamp=timestamp,
            liquidity=liquidity,
            reserve_risky=mul_div_up(risky_per_liquidity, liquidity, WAD),
            reserve_stable=0,
        )
        reserve_stable = pool.get_stable_given_risky(pool.reserve_risky)
        return pool._replace(reserve_stable=reserve_stable).recalculate_invariant()

    def _replace(self, **changes: Any) -> "Pool":
        # model_copy не валидирует, поэтому пересобираем модель целиком
        return type(self).model_validate({**self.model_dump(), **changes})

    # -------------------------------------------------------------------------
    # Производные величины
    # -------------------------------------------------------------------------

    @property
    def tau(self) -> int:
        """Время до экспирации в секундах (не меньше 0)."""
        return max(self.maturity - self.last_timestamp, 0)

    @property
    def tau_years(self) -> float:
        return seconds_to_years(self.tau)

    @property
    def is_expired(self) -> bool:
        return self.tau == 0

    @property
    def sigma_float(self) -> float:
        return bps_to_fraction(self.sigma)

    def _curve(self) -> tuple[float, float, float, float]:
        """(liquidity, strike, sigma, tau) во float для Replication Math."""
        return (
            wei_to_float(self.liquidity),
            wei_to_float(self.strike),
            self.sigma_float,
            self.tau_years,
        )

    def _invariant_tolerance(self, tolerance: float) -> int:
        liquidity, strike, _, _ = self._curve()
        return parse_int64x64(tolerance * liquidity * strike)

    # -------------------------------------------------------------------------
    # Tau и инвариант
    # -------------------------------------------------------------------------

    def recalculate_tau(self, now: int) -> "Pool":
        """
        Синхронизация времени: last_timestamp = now, tau = max(maturity - now, 0).

        Вызывается в начале каждой изменяющей операции. Время пула не идёт
        назад: более ранний now оставляет last_timestamp без изменений.
        """
        return self._replace(last_timestamp=max(self.last_timestamp, now))

    def compute_invariant(self) -> int:
        """Инвариант текущих резервов (64.64) без изменения пула."""
        liquidity, strike, sigma, tau = self._curve()
        value = calc_invariant(
            wei_to_float(self.reserve_risky),
            wei_to_float(self.reserve_stable),
            liquidity,
            strike,
            sigma,
            tau,
        )
        return parse_int64x64(value)

    def recalculate_invariant(self) -> "Pool":
        """Пересчёт инварианта после изменения резервов."""
        return self._replace(invariant=self.compute_invariant())

    # -------------------------------------------------------------------------
    # Односторонние запросы к кривой
    # -------------------------------------------------------------------------

    def get_stable_given_risky(self, reserve_risky: int) -> int:
        """
        Stable резерв для заданного risky резерва при текущем инварианте.

        Args:
            reserve_risky: Risky резерв (wei)

        Returns:
            Stable резерв (wei), округлённый вверх
        """
        liquidity, strike, sigma, tau = self._curve()
        value = trading_function(
            int64x64_to_float(self.invariant),
            wei_to_float(reserve_risky),
            liquidity,
            strike,
            sigma,
            tau,
        )
        return max(parse_wei_up(value), 0)

    def get_risky_given_stable(self, reserve_stable: int) -> int:
        """
        Risky резерв для заданного stable резерва при текущем инварианте.

        Args:
            reserve_stable: Stable резерв (wei)

        Returns:
            Risky резерв (wei), округлённый вверх
        """
        liquidity, strike, sigma, tau = self._curve()
        value = inverse_trading_function(
            int64x64_to_float(self.invariant),
            wei_to_float(reserve_stable),
            liquidity,
            strike,
            sigma,
            tau,
        )
        return max(parse_wei_up(value), 0)

    # -------------------------------------------------------------------------
    # Свопы
    # -------------------------------------------------------------------------

    def _prepare_swap(self, delta_in: int, fee_bps: int) -> tuple["Pool", int, int]:
        require_positive(delta_in, "delta_in")
        if not 0 <= fee_bps < BPS_DENOMINATOR:
            raise InvalidParametersError(f"fee_bps must be in [0, {BPS_DENOMINATOR}), got {fee_bps}")
        if self.is_expired:
            raise PoolExpiredError(self.pool_id)

        delta_in_with_fee = mul_div_down(delta_in, BPS_DENOMINATOR - fee_bps, BPS_DENOMINATOR)
        baseline = self.recalculate_invariant()
        return baseline, delta_in_with_fee, delta_in - delta_in_with_fee

    def _check_invariant(self, invariant_last: int, invariant_next: int, tolerance: float) -> None:
        if invariant_next < invariant_last - self._invariant_tolerance(tolerance):
            logger.error(
                "Invariant decreased on pool %s: %d -> %d",
                self.pool_id,
                invariant_last,
                invariant_next,
            )
            raise InvariantViolationError(invariant_last, invariant_next)

    def swap_risky_in(
        self,
        delta_in: int,
        fee_bps: int = 0,
        tolerance: float = INVARIANT_TOLERANCE,
    ) -> SwapResult:
        """
        Своп risky → stable.

        1. deltaInWithFee = deltaIn * (1 - fee) добавляется к risky резерву
        2. Новый stable резерв по trading_function от нового risky
        3. Пересчёт инварианта, проверка invariant_next >= invariant_last
        4. deltaOut = уменьшение stable резерва

        Args:
            delta_in: Risky на входе (wei)
            fee_bps: Комиссия (bps), остаётся в accrued_fees
            tolerance: Допустимое уменьшение инварианта, доля от L·K

        Returns:
            SwapResult с новым снапшотом пула

        Raises:
            InvalidParametersError: delta_in <= 0 или невалидная комиссия
            PoolExpiredError: tau == 0
            InsufficientReservesError: risky резерв достиг бы ёмкости ликвидности
            InvariantViolationError: инвариант уменьшился
        """
        baseline, delta_in_with_fee, fee_amount = self._prepare_swap(delta_in, fee_bps)

        reserve_risky = baseline.reserve_risky + delta_in_with_fee
        if reserve_risky >= baseline.liquidity:
            raise InsufficientReservesError(
                f"risky reserve {reserve_risky} would reach liquidity {baseline.liquidity}"
            )

        reserve_stable = min(baseline.get_stable_given_risky(reserve_risky), baseline.reserve_stable)
        fee_risky, fee_stable = baseline.accrued_fees
        pool = baseline._replace(
            reserve_risky=reserve_risky,
            reserve_stable=reserve_stable,
            accrued_fees=(fee_risky + fee_amount, fee_stable),
        ).recalculate_invariant()
        self._check_invariant(baseline.invariant, pool.invariant, tolerance)

        delta_out = baseline.reserve_stable - reserve_stable
        return SwapResult(
            direction=SwapDirection.RISKY_IN,
            delta_in=delta_in,
            delta_out=delta_out,
            fee_amount=fee_amount,
            effective_price=safe_divide(wei_to_float(delta_out), wei_to_float(delta_in)),
            invariant_last=baseline.invariant,
            invariant_next=pool.invariant,
            pool=pool,
        )

    def swap_stable_in(
        self,
        delta_in: int,
        fee_bps: int = 0,
        tolerance: float = INVARIANT_TOLERANCE,
    ) -> SwapResult:
        """
        Своп stable → risky. Симметричен swap_risky_in.

        Raises:
            InvalidParametersError: delta_in <= 0 или невалидная комиссия
            PoolExpiredError: tau == 0
            InsufficientReservesError: stable резерв превысил бы L·K
            InvariantViolationError: инвариант уменьшился
        """
        baseline, delta_in_with_fee, fee_amount = self._prepare_swap(delta_in, fee_bps)

        reserve_stable = baseline.reserve_stable + delta_in_with_fee
        liquidity, strike, _, _ = baseline._curve()
        stable_capacity = liquidity * strike + int64x64_to_float(baseline.invariant)
        if wei_to_float(reserve_stable) >= stable_capacity:
            raise InsufficientReservesError(
                f"stable reserve {reserve_stable} would reach curve capacity"
            )

        reserve_risky = min(baseline.get_risky_given_stable(reserve_stable), baseline.reserve_risky)
        fee_risky, fee_stable = baseline.accrued_fees
        pool = baseline._replace(
            reserve_risky=reserve_risky,
            reserve_stable=reserve_stable,
            accrued_fees=(fee_risky, fee_stable + fee_amount),
        ).recalculate_invariant()
        self._check_invariant(baseline.invariant, pool.invariant, tolerance)

        delta_out = baseline.reserve_risky - reserve_risky
        return SwapResult(
            direction=SwapDirection.STABLE_IN,
            delta_in=delta_in,
            delta_out=delta_out,
            fee_amount=fee_amount,
            effective_price=safe_divide(wei_to_float(delta_in), wei_to_float(delta_out)),
            invariant_last=baseline.invariant,
            invariant_next=pool.invariant,
            pool=pool,
        )

    def preview_swap(
        self,
        direction: SwapDirection,
        delta_in: int,
        fee_bps: int = 0,
        tolerance: float = INVARIANT_TOLERANCE,
    ) -> SwapResult:
        """Гипотетический своп: та же математика, снапшот не публикуется."""
        if direction == SwapDirection.RISKY_IN:
            return self.swap_risky_in(delta_in, fee_bps, tolerance)
        return self.swap_stable_in(delta_in, fee_bps, tolerance)

    # -------------------------------------------------------------------------
    # Цены
    # -------------------------------------------------------------------------

    def spot_price(self) -> float:
        """Спот-цена (stable за risky) по численному градиенту инварианта."""
        liquidity, strike, sigma, tau = self._curve()
        return spot_price(
            wei_to_float(self.reserve_risky),
            wei_to_float(self.reserve_stable),
            liquidity,
            strike,
            sigma,
            tau,
        )

    def marginal_price_after_trade(
        self,
        amount_in: int,
        direction: SwapDirection,
        fee_bps: int = 0,
    ) -> float:
        """
        Маржинальная цена (stable за risky) после сделки размера amount_in.

        Замкнутая формула первого порядка; своп не выполняется.
        """
        liquidity, strike, sigma, tau = self._curve()
        fee = bps_to_fraction(fee_bps)
        if direction == SwapDirection.RISKY_IN:
            return marginal_price_risky_in(
                wei_to_float(self.reserve_risky),
                liquidity,
                strike,
                sigma,
                tau,
                wei_to_float(amount_in),
                fee,
            )
        return marginal_price_stable_in(
            wei_to_float(self.reserve_stable),
            int64x64_to_float(self.invariant),
            liquidity,
            strike,
            sigma,
            tau,
            wei_to_float(amount_in),
            fee,
        )

    # -------------------------------------------------------------------------
    # Ликвидность
    # -------------------------------------------------------------------------

    def allocate(self, delta_liquidity: int) -> tuple["Pool", int, int]:
        """
        Добавление ликвидности по текущим резервам на единицу.

        Returns:
            (новый пул, risky к оплате, stable к оплате), суммы округлены вверх
        """
        require_positive(delta_liquidity, "delta_liquidity")
        delta_risky = mul_div_up(delta_liquidity, self.reserve_risky, self.liquidity)
        delta_stable = mul_div_up(delta_liquidity, self.reserve_stable, self.liquidity)
        pool = self._replace(
            liquidity=self.liquidity + delta_liquidity,
            reserve_risky=self.reserve_risky + delta_risky,
            reserve_stable=self.reserve_stable + delta_stable,
        ).recalculate_invariant()
        return pool, delta_risky, delta_stable

    def _withdraw_reserves(self, delta_liquidity: int, min_liquidity: int) -> tuple[int, int]:
        if self.liquidity - delta_liquidity < min_liquidity:
            raise InsufficientReservesError(
                f"removing {delta_liquidity} would leave pool liquidity below {min_liquidity}"
            )
        delta_risky = mul_div_down(delta_liquidity, self.reserve_risky, self.liquidity)
        delta_stable = mul_div_down(delta_liquidity, self.reserve_stable, self.liquidity)
        return delta_risky, delta_stable

    def remove(self, delta_liquidity: int, min_liquidity: int = 0) -> tuple["Pool", int, int]:
        """
        Изъятие ликвидности с пропорциональными резервами.

        Returns:
            (новый пул, risky к выплате, stable к выплате), суммы округлены вниз

        Raises:
            InsufficientReservesError: ликвидность пула упала бы ниже min_liquidity
        """
        require_positive(delta_liquidity, "delta_liquidity")
        delta_risky, delta_stable = self._withdraw_reserves(delta_liquidity, min_liquidity)
        pool = self._replace(
            liquidity=self.liquidity - delta_liquidity,
            reserve_risky=self.reserve_risky - delta_risky,
            reserve_stable=self.reserve_stable - delta_stable,
        ).recalculate_invariant()
        return pool, delta_risky, delta_stable

    # -------------------------------------------------------------------------
    # Float и debt
    # -------------------------------------------------------------------------

    def lend(self, delta_liquidity: int) -> "Pool":
        """Перевод ликвидности поставщика в float."""
        require_positive(delta_liquidity, "delta_liquidity")
        if self.float_liquidity + delta_liquidity > self.liquidity:
            raise InsufficientReservesError(
                f"cannot lend {delta_liquidity}, pool liquidity is {self.liquidity}"
            )
        return self._replace(float_liquidity=self.float_liquidity + delta_liquidity)

    def claim(self, delta_liquidity: int) -> "Pool":
        """
        Возврат float обратно в ликвидность поставщика.

        Raises:
            InsufficientFloatError: float уже занят заёмщиками
        """
        require_positive(delta_liquidity, "delta_liquidity")
        if delta_liquidity > self.float_liquidity:
            raise InsufficientFloatError(delta_liquidity, self.float_liquidity)
        return self._replace(float_liquidity=self.float_liquidity - delta_liquidity)

    def borrow(self, delta_liquidity: int, min_liquidity: int = 0) -> tuple["Pool", int, int]:
        """
        Заём delta_liquidity из float: ликвидность и резервы уходят с кривой.

        Returns:
            (новый пул, высвобожденный risky, высвобожденный stable), округление вниз

        Raises:
            InsufficientFloatError: float не покрывает заём (частичного исполнения нет)
        """
        require_positive(delta_liquidity, "delta_liquidity")
        if delta_liquidity > self.float_liquidity:
            raise InsufficientFloatError(delta_liquidity, self.float_liquidity)

        delta_risky, delta_stable = self._withdraw_reserves(delta_liquidity, min_liquidity)
        pool = self._replace(
            liquidity=self.liquidity - delta_liquidity,
            reserve_risky=self.reserve_risky - delta_risky,
            reserve_stable=self.reserve_stable - delta_stable,
            float_liquidity=self.float_liquidity - delta_liquidity,
            debt=self.debt + delta_liquidity,
        ).recalculate_invariant()
        return pool, delta_risky, delta_stable

    def repay(self, delta_liquidity: int) -> tuple["Pool", int, int]:
        """
        Погашение долга: ликвидность возвращается на кривую по текущим резервам.

        Returns:
            (новый пул, risky к возврату в резервы, stable к оплате), округление вверх

        Raises:
            InvalidParametersError: delta_liquidity больше общего долга пула
        """
        require_positive(delta_liquidity, "delta_liquidity")
        if delta_liquidity > self.debt:
            raise InvalidParametersError(
                f"repay {delta_liquidity} exceeds pool debt {self.debt}"
            )

        delta_risky = mul_div_up(delta_liquidity, self.reserve_risky, self.liquidity)
        delta_stable = mul_div_up(delta_liquidity, self.reserve_stable, self.liquidity)
        pool = self._replace(
            liquidity=self.liquidity + delta_liquidity,
            reserve_risky=self.reserve_risky + delta_risky,
            reserve_stable=self.reserve_stable + delta_stable,
            float_liquidity=self.float_liquidity + delta_liquidity,
            debt=self.debt - delta_liquidity,
        ).recalculate_invariant()
        return pool, delta_risky, delta_stable

    # -------------------------------------------------------------------------
    # Запросы
    # -------------------------------------------------------------------------

    def reserves_snapshot(self) -> ReservesSnapshot:
        fee_risky, fee_stable = self.accrued_fees
        return ReservesSnapshot(
            pool_id=self.pool_id,
            reserve_risky=self.reserve_risky,
            reserve_stable=self.reserve_stable,
            liquidity=self.liquidity,
            float_liquidity=self.float_liquidity,
            debt=self.debt,
            invariant=self.invariant,
            accrued_fee_risky=fee_risky,
            accrued_fee_stable=fee_stable,
            last_timestamp=self.last_timestamp,
            tau=self.tau,
        )
