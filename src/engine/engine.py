"""
Engine — оркестратор пулов и рынка займов

Адресует пулы по PoolId, маршрутизирует create/allocate/remove/swap/
lend/claim/borrow/repay в Pool и Position, и единственный двигает токены
через custody.

Порядок каждой изменяющей операции:
1. Чтение опубликованных снапшотов, пересчёт tau и инварианта
2. Чистое вычисление всех новых снапшотов (при любой ошибке состояние не меняется)
3. Списание входящих токенов (custody или маржа)
4. Публикация всех снапшотов одним шагом
5. Выплата исходящих токенов

Исполнение последовательное: операции не чередуются, фоновой работы нет.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from src.core.domain.errors import (
    InvalidParametersError,
    PoolNotFoundError,
    SlippageExceededError,
    require_positive,
)
from src.core.domain.pool import Pool, ReservesSnapshot, SwapDirection, SwapResult
from src.core.domain.position import Margin, Position, PositionExposure
from src.engine.collaborators import Clock, SystemClock, TokenCustody
from src.engine.config import EngineConfig
from src.engine.ledger import PositionLedger
from src.engine.pool_id import compute_pool_id, validate_pool_id

logger = logging.getLogger(__name__)


# =============================================================================
# РЕЗУЛЬТАТЫ ОПЕРАЦИЙ
# =============================================================================


@dataclass(frozen=True)
class CreateResult:
    pool_id: str
    delta_risky: int
    delta_stable: int
    delta_liquidity: int


@dataclass(frozen=True)
class LiquidityResult:
    """Суммы, внесённые (allocate) или полученные (remove) владельцем."""
    delta_risky: int
    delta_stable: int


@dataclass(frozen=True)
class BorrowResult:
    """
    Заём delta_liquidity длинных опционов.

    premium: risky, уплаченный заёмщиком (delta_liquidity - delta_risky);
    delta_stable: stable, выплаченный заёмщику.
    """
    delta_liquidity: int
    delta_risky: int
    delta_stable: int
    premium: int


@dataclass(frozen=True)
class RepayResult:
    """
    Погашение долга.

    delta_stable: stable, уплаченный заёмщиком для возврата ликвидности;
    proceeds: risky, выплаченный заёмщику (delta_liquidity - delta_risky).
    """
    delta_liquidity: int
    delta_risky: int
    delta_stable: int
    proceeds: int


@dataclass(frozen=True)
class _Settlement:
    pools: tuple[Pool, ...] = ()
    positions: tuple[Position, ...] = ()
    margins: tuple[Margin, ...] = ()
    pulls: tuple[tuple[str, int], ...] = ()
    pushes: tuple[tuple[str, int], ...] = ()


# =============================================================================
# ENGINE
# =============================================================================


class Engine:
    """Движок одной пары risky/stable."""

    def __init__(
        self,
        risky: str,
        stable: str,
        custody: TokenCustody,
        clock: Optional[Clock] = None,
        config: Optional[EngineConfig] = None,
    ):
        """
        Args:
            risky: Идентификатор risky токена
            stable: Идентификатор stable токена
            custody: Хранение токенов
            clock: Источник времени (default SystemClock)
            config: Параметры движка (default EngineConfig())
        """
        if risky == stable:
            raise InvalidParametersError("risky and stable tokens must differ")
        self.risky = risky
        self.stable = stable
        self.config = config or EngineConfig()
        self._custody = custody
        self._clock = clock or SystemClock()
        self._pools: dict[str, Pool] = {}
        self._ledger = PositionLedger()

    # -------------------------------------------------------------------------
    # Внутреннее
    # -------------------------------------------------------------------------

    def _load_pool(self, pool_id: str) -> Pool:
        validate_pool_id(pool_id)
        pool = self._pools.get(pool_id)
        if pool is None:
            raise PoolNotFoundError(pool_id)
        return pool

    def _sync(self, pool_id: str) -> Pool:
        """Снапшот пула с tau и инвариантом на текущее время (не публикуется)."""
        return self._load_pool(pool_id).recalculate_tau(self._clock.now()).recalculate_invariant()

    def _route(
        self,
        owner: str,
        use_margin: bool,
        pay: tuple[int, int] = (0, 0),
        receive: tuple[int, int] = (0, 0),
    ) -> tuple[tuple[Margin, ...], tuple[tuple[str, int], ...], tuple[tuple[str, int], ...]]:
        """Маршрутизация оплаты (risky, stable) через маржу или custody."""
        if use_margin:
            margin = self._ledger.get_margin(owner).withdraw(*pay).deposit(*receive)
            return (margin,), (), ()
        pulls = ((self.risky, pay[0]), (self.stable, pay[1]))
        pushes = ((self.risky, receive[0]), (self.stable, receive[1]))
        return (), pulls, pushes

    def _settle(self, owner: str, settlement: _Settlement) -> None:
        pulled: list[tuple[str, int]] = []
        try:
            for token, amount in settlement.pulls:
                if amount > 0:
                    self._custody.transfer_in(token, owner, amount)
                    pulled.append((token, amount))
        except Exception:
            for token, amount in pulled:
                self._custody.transfer_out(token, owner, amount)
            raise

        for pool in settlement.pools:
            self._pools[pool.pool_id] = pool
        self._ledger.commit(settlement.positions, settlement.margins)

        for token, amount in settlement.pushes:
            if amount > 0:
                self._custody.transfer_out(token, owner, amount)

    # -------------------------------------------------------------------------
    # Создание пула
    # -------------------------------------------------------------------------

    def create(
        self,
        owner: str,
        strike: int,
        sigma: int,
        maturity: int,
        risky_per_liquidity: int,
        delta_liquidity: int,
        from_margin: bool = False,
    ) -> CreateResult:
        """
        Создание пула и первичное размещение ликвидности.

        min_liquidity сжигается (не принадлежит никому), остальное
        зачисляется создателю.

        Raises:
            InvalidParametersError: пул уже существует, невалидные параметры,
                delta_liquidity <= min_liquidity
        """
        pool_id = compute_pool_id(strike, sigma, maturity)
        if pool_id in self._pools:
            raise InvalidParametersError(f"pool already exists: {pool_id}")
        if delta_liquidity <= self.config.min_liquidity:
            raise InvalidParametersError(
                f"delta_liquidity {delta_liquidity} must exceed min liquidity "
                f"{self.config.min_liquidity}"
            )

        pool = Pool.initialize(
            pool_id=pool_id,
            strike=strike,
            sigma=sigma,
            maturity=maturity,
            timestamp=self._clock.now(),
            risky_per_liquidity=risky_per_liquidity,
            liquidity=delta_liquidity,
        )
        position = self._ledger.get_position(owner, pool_id).allocate(
            delta_liquidity - self.config.min_liquidity
        )
        margins, pulls, _ = self._route(
            owner, from_margin, pay=(pool.reserve_risky, pool.reserve_stable)
        )
        self._settle(
            owner,
            _Settlement(pools=(pool,), positions=(position,), margins=margins, pulls=pulls),
        )

        logger.info(
            "Created pool %s: strike=%d sigma=%d maturity=%d liquidity=%d",
            pool_id,
            strike,
            sigma,
            maturity,
            delta_liquidity,
        )
        return CreateResult(
            pool_id=pool_id,
            delta_risky=pool.reserve_risky,
            delta_stable=pool.reserve_stable,
            delta_liquidity=delta_liquidity,
        )

    # -------------------------------------------------------------------------
    # Маржа
    # -------------------------------------------------------------------------

    def deposit(self, owner: str, delta_risky: int, delta_stable: int) -> Margin:
        if delta_risky <= 0 and delta_stable <= 0:
            raise InvalidParametersError("deposit requires a positive amount")
        margin = self._ledger.get_margin(owner).deposit(delta_risky, delta_stable)
        self._settle(
            owner,
            _Settlement(
                margins=(margin,),
                pulls=((self.risky, delta_risky), (self.stable, delta_stable)),
            ),
        )
        return margin

    def withdraw(self, owner: str, delta_risky: int, delta_stable: int) -> Margin:
        """
        Raises:
            InsufficientBalanceError: сумма больше баланса маржи
        """
        if delta_risky <= 0 and delta_stable <= 0:
            raise InvalidParametersError("withdraw requires a positive amount")
        margin = self._ledger.get_margin(owner).withdraw(delta_risky, delta_stable)
        self._settle(
            owner,
            _Settlement(
                margins=(margin,),
                pushes=((self.risky, delta_risky), (self.stable, delta_stable)),
            ),
        )
        return margin

    # -------------------------------------------------------------------------
    # Ликвидность
    # -------------------------------------------------------------------------

    def allocate(
        self,
        pool_id: str,
        owner: str,
        delta_liquidity: int,
        from_margin: bool = False,
    ) -> LiquidityResult:
        """
        Raises:
            CollateralConflictError: у владельца открыт долг в пуле
        """
        pool = self._sync(pool_id)
        position = self._ledger.get_position(owner, pool_id).allocate(delta_liquidity)
        pool, delta_risky, delta_stable = pool.allocate(delta_liquidity)
        margins, pulls, _ = self._route(owner, from_margin, pay=(delta_risky, delta_stable))
        self._settle(
            owner,
            _Settlement(pools=(pool,), positions=(position,), margins=margins, pulls=pulls),
        )
        return LiquidityResult(delta_risky=delta_risky, delta_stable=delta_stable)

    def remove(
        self,
        pool_id: str,
        owner: str,
        delta_liquidity: int,
        to_margin: bool = False,
    ) -> LiquidityResult:
        """
        Raises:
            InsufficientReservesError: больше размещённой ликвидности или ниже min_liquidity
        """
        pool = self._sync(pool_id)
        position = self._ledger.get_position(owner, pool_id).remove(delta_liquidity)
        pool, delta_risky, delta_stable = pool.remove(delta_liquidity, self.config.min_liquidity)
        margins, _, pushes = self._route(owner, to_margin, receive=(delta_risky, delta_stable))
        self._settle(
            owner,
            _Settlement(pools=(pool,), positions=(position,), margins=margins, pushes=pushes),
        )
        return LiquidityResult(delta_risky=delta_risky, delta_stable=delta_stable)

    # -------------------------------------------------------------------------
    # Свопы
    # -------------------------------------------------------------------------

    def swap(
        self,
        pool_id: str,
        owner: str,
        direction: SwapDirection,
        delta_in: int,
        min_delta_out: int = 0,
        from_margin: bool = False,
    ) -> SwapResult:
        """
        Своп с публикацией результата.

        Raises:
            SlippageExceededError: delta_out < min_delta_out
            InvariantViolationError: инвариант уменьшился после свопа
        """
        result = self.preview_swap(pool_id, direction, delta_in)
        if result.delta_out < min_delta_out:
            raise SlippageExceededError(
                f"delta_out {result.delta_out} below minimum {min_delta_out}"
            )

        if direction == SwapDirection.RISKY_IN:
            pay, receive = (delta_in, 0), (0, result.delta_out)
        else:
            pay, receive = (0, delta_in), (result.delta_out, 0)
        margins, pulls, pushes = self._route(owner, from_margin, pay=pay, receive=receive)
        self._settle(
            owner,
            _Settlement(pools=(result.pool,), margins=margins, pulls=pulls, pushes=pushes),
        )

        logger.debug(
            "Swap %s on %s: in=%d out=%d fee=%d invariant %d -> %d",
            direction.value,
            pool_id,
            delta_in,
            result.delta_out,
            result.fee_amount,
            result.invariant_last,
            result.invariant_next,
        )
        return result

    # -------------------------------------------------------------------------
    # Рынок займов
    # -------------------------------------------------------------------------

    def lend(self, pool_id: str, owner: str, delta_liquidity: int) -> Position:
        """Перевод размещённой ликвидности владельца в float пула."""
        pool = self._sync(pool_id)
        position = self._ledger.get_position(owner, pool_id).lend(delta_liquidity)
        pool = pool.lend(delta_liquidity)
        self._settle(owner, _Settlement(pools=(pool,), positions=(position,)))
        return position

    def claim(self, pool_id: str, owner: str, delta_liquidity: int) -> Position:
        """
        Возврат float владельца в размещённую ликвидность.

        Raises:
            InsufficientFloatError: float владельца или пула (не занятый) недостаточен
        """
        pool = self._sync(pool_id)
        position = self._ledger.get_position(owner, pool_id).claim(delta_liquidity)
        pool = pool.claim(delta_liquidity)
        self._settle(owner, _Settlement(pools=(pool,), positions=(position,)))
        return position

    def borrow(
        self,
        pool_id: str,
        owner: str,
        delta_liquidity: int,
        max_premium: Optional[int] = None,
        from_margin: bool = False,
    ) -> BorrowResult:
        """
        Открытие длинной опционной позиции размера delta_liquidity.

        Снятие delta_liquidity с кривой высвобождает delta_risky и delta_stable.
        Каждая единица ликвидности — покрытый колл на единицу risky, поэтому
        заёмщик доплачивает премию delta_liquidity - delta_risky в risky и
        получает delta_stable.

        Raises:
            InvalidParametersError: delta_liquidity <= 0
            CollateralConflictError: у владельца есть liquidity или float в пуле
            InsufficientFloatError: float пула меньше delta_liquidity
            SlippageExceededError: премия больше max_premium
        """
        pool = self._sync(pool_id)
        position = self._ledger.get_position(owner, pool_id).borrow(delta_liquidity)
        pool, delta_risky, delta_stable = pool.borrow(delta_liquidity, self.config.min_liquidity)

        premium = delta_liquidity - delta_risky
        if max_premium is not None and premium > max_premium:
            raise SlippageExceededError(f"premium {premium} above max premium {max_premium}")

        margins, pulls, pushes = self._route(
            owner, from_margin, pay=(premium, 0), receive=(0, delta_stable)
        )
        self._settle(
            owner,
            _Settlement(
                pools=(pool,),
                positions=(position,),
                margins=margins,
                pulls=pulls,
                pushes=pushes,
            ),
        )

        logger.debug(
            "Borrow on %s by %s: liquidity=%d premium=%d",
            pool_id,
            owner,
            delta_liquidity,
            premium,
        )
        return BorrowResult(
            delta_liquidity=delta_liquidity,
            delta_risky=delta_risky,
            delta_stable=delta_stable,
            premium=premium,
        )

    def repay(
        self,
        pool_id: str,
        owner: str,
        delta_liquidity: int,
        from_margin: bool = False,
    ) -> RepayResult:
        """
        Погашение долга delta_liquidity.

        Ликвидность возвращается на кривую по текущим резервам: заёмщик
        вносит delta_stable, из удерживаемого залога в резервы уходит
        delta_risky, остаток delta_liquidity - delta_risky выплачивается заёмщику.

        Raises:
            InvalidParametersError: delta_liquidity <= 0 или больше долга
        """
        pool = self._sync(pool_id)
        position = self._ledger.get_position(owner, pool_id).repay(delta_liquidity)
        pool, delta_risky, delta_stable = pool.repay(delta_liquidity)

        proceeds = max(delta_liquidity - delta_risky, 0)
        margins, pulls, pushes = self._route(
            owner, from_margin, pay=(0, delta_stable), receive=(proceeds, 0)
        )
        self._settle(
            owner,
            _Settlement(
                pools=(pool,),
                positions=(position,),
                margins=margins,
                pulls=pulls,
                pushes=pushes,
            ),
        )

        logger.debug(
            "Repay on %s by %s: liquidity=%d proceeds=%d",
            pool_id,
            owner,
            delta_liquidity,
            proceeds,
        )
        return RepayResult(
            delta_liquidity=delta_liquidity,
            delta_risky=delta_risky,
            delta_stable=delta_stable,
            proceeds=proceeds,
        )

    # -------------------------------------------------------------------------
    # Запросы (без побочных эффектов)
    # -------------------------------------------------------------------------

    def get_pool_id(self, strike: int, sigma: int, maturity: int) -> str:
        return compute_pool_id(strike, sigma, maturity)

    def get_pool(self, pool_id: str) -> Pool:
        return self._load_pool(pool_id)

    def get_reserves(self, pool_id: str) -> ReservesSnapshot:
        return self._load_pool(pool_id).reserves_snapshot()

    def get_position(self, owner: str, pool_id: str) -> Position:
        validate_pool_id(pool_id)
        return self._ledger.get_position(owner, pool_id)

    def get_margin(self, owner: str) -> Margin:
        return self._ledger.get_margin(owner)

    def get_exposure(self, owner: str, pool_id: str) -> PositionExposure:
        pool = self._load_pool(pool_id)
        return self._ledger.get_position(owner, pool_id).exposure(pool)

    def preview_swap(
        self,
        pool_id: str,
        direction: SwapDirection,
        delta_in: int,
    ) -> SwapResult:
        """Котировка свопа на текущее время; состояние не меняется."""
        require_positive(delta_in, "delta_in")
        return self._sync(pool_id).preview_swap(
            direction,
            delta_in,
            self.config.fee_bps,
            self.config.invariant_tolerance,
        )

    def spot_price(self, pool_id: str) -> float:
        return self._sync(pool_id).spot_price()

    def marginal_price_after_trade(
        self,
        pool_id: str,
        amount_in: int,
        direction: SwapDirection,
    ) -> float:
        return self._sync(pool_id).marginal_price_after_trade(
            amount_in, direction, self.config.fee_bps
        )
