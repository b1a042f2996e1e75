"""
Тесты для модели Pool

Проверяет:
1. Инициализацию пула на кривой
2. Свопы в обе стороны: комиссии, проверку инварианта, ёмкость кривой
3. Экспирацию и пересчёт tau
4. Переходы ликвидности, float и debt с направленным округлением
5. Иммутабельность снапшотов
"""

import pytest

from src.core.domain.errors import (
    InsufficientFloatError,
    InsufficientReservesError,
    InvalidParametersError,
    InvariantViolationError,
    PoolExpiredError,
)
from src.core.domain.pool import INVARIANT_TOLERANCE, Pool, SwapDirection
from src.core.domain.units import (
    SECONDS_PER_YEAR,
    WAD,
    int64x64_to_float,
    parse_int64x64,
    parse_wei,
    wei_to_float,
)
from src.engine.pool_id import compute_pool_id

T0 = 1_700_000_000
STRIKE = parse_wei(10)
SIGMA = 10_000
MATURITY = T0 + SECONDS_PER_YEAR


def make_pool(liquidity: int = parse_wei(100), risky_per_liquidity: int = parse_wei(0.5)) -> Pool:
    return Pool.initialize(
        pool_id=compute_pool_id(STRIKE, SIGMA, MATURITY),
        strike=STRIKE,
        sigma=SIGMA,
        maturity=MATURITY,
        timestamp=T0,
        risky_per_liquidity=risky_per_liquidity,
        liquidity=liquidity,
    )


# =============================================================================
# ИНИЦИАЛИЗАЦИЯ
# =============================================================================


class TestPoolInitialize:
    """Тесты Pool.initialize"""

    def test_reserves_on_curve(self) -> None:
        pool = make_pool()
        assert pool.reserve_risky == parse_wei(50)
        # K·Φ(-1) на единицу ликвидности
        assert pool.reserve_stable == pytest.approx(parse_wei(158.65525393145707), rel=1e-8)
        assert abs(int64x64_to_float(pool.invariant)) < 1e-9

    def test_tau_is_one_year(self) -> None:
        pool = make_pool()
        assert pool.tau == SECONDS_PER_YEAR
        assert pool.tau_years == 1.0
        assert not pool.is_expired
        assert pool.sigma_float == 1.0

    @pytest.mark.parametrize("risky_per_liquidity", [0, WAD, WAD + 1])
    def test_risky_per_liquidity_out_of_range(self, risky_per_liquidity: int) -> None:
        with pytest.raises(InvalidParametersError):
            make_pool(risky_per_liquidity=risky_per_liquidity)

    def test_maturity_in_past_rejected(self) -> None:
        with pytest.raises(InvalidParametersError):
            Pool.initialize(
                pool_id=compute_pool_id(STRIKE, SIGMA, T0),
                strike=STRIKE,
                sigma=SIGMA,
                maturity=T0,
                timestamp=T0,
                risky_per_liquidity=parse_wei(0.5),
                liquidity=parse_wei(1),
            )

    def test_zero_liquidity_rejected(self) -> None:
        with pytest.raises(InvalidParametersError):
            make_pool(liquidity=0)

    def test_stable_given_risky_inverts(self) -> None:
        pool = make_pool()
        risky = pool.get_risky_given_stable(pool.reserve_stable)
        assert risky == pytest.approx(pool.reserve_risky, rel=1e-8)


# =============================================================================
# СВОПЫ
# =============================================================================


class TestSwapRiskyIn:
    """Тесты свопа risky → stable"""

    def test_basic_swap(self) -> None:
        pool = make_pool()
        result = pool.swap_risky_in(parse_wei(1))

        assert result.direction == SwapDirection.RISKY_IN
        assert result.delta_out > 0
        assert result.pool.reserve_risky == pool.reserve_risky + parse_wei(1)
        assert result.pool.reserve_stable == pool.reserve_stable - result.delta_out
        assert result.fee_amount == 0

    def test_invariant_does_not_decrease(self) -> None:
        pool = make_pool()
        result = pool.swap_risky_in(parse_wei(5))
        tolerance = 1e-8 * 100 * 10
        assert int64x64_to_float(result.invariant_next) >= int64x64_to_float(result.invariant_last) - tolerance

    def test_effective_price_below_spot(self) -> None:
        """Продажа risky исполняется хуже спота"""
        pool = make_pool()
        result = pool.swap_risky_in(parse_wei(2))
        assert 0 < result.effective_price < pool.spot_price()

    def test_fee_accrues_outside_reserves(self) -> None:
        pool = make_pool()
        result = pool.swap_risky_in(parse_wei(1), fee_bps=15)

        assert result.fee_amount == parse_wei(1) * 15 // 10_000
        assert result.pool.accrued_fees == (result.fee_amount, 0)
        assert result.pool.reserve_risky == pool.reserve_risky + parse_wei(1) - result.fee_amount

    def test_fee_lowers_output(self) -> None:
        pool = make_pool()
        assert pool.swap_risky_in(parse_wei(1), fee_bps=30).delta_out < pool.swap_risky_in(parse_wei(1)).delta_out

    def test_source_snapshot_untouched(self) -> None:
        pool = make_pool()
        before = pool.model_dump()
        pool.swap_risky_in(parse_wei(1))
        assert pool.model_dump() == before

    def test_zero_amount_rejected(self) -> None:
        with pytest.raises(InvalidParametersError):
            make_pool().swap_risky_in(0)

    def test_invalid_fee_rejected(self) -> None:
        with pytest.raises(InvalidParametersError):
            make_pool().swap_risky_in(parse_wei(1), fee_bps=10_000)

    def test_capacity_exceeded(self) -> None:
        """Risky резерв не может достигнуть L"""
        with pytest.raises(InsufficientReservesError):
            make_pool().swap_risky_in(parse_wei(60))

    def test_invariant_violation(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Сломанная кривая даёт InvariantViolationError"""
        pool = make_pool()
        monkeypatch.setattr("src.core.domain.pool.trading_function", lambda *args, **kwargs: 0.0)
        with pytest.raises(InvariantViolationError) as exc_info:
            pool.swap_risky_in(parse_wei(1))
        assert exc_info.value.invariant_next < exc_info.value.invariant_last


class TestSwapStableIn:
    """Тесты свопа stable → risky"""

    def test_basic_swap(self) -> None:
        pool = make_pool()
        result = pool.swap_stable_in(parse_wei(10))

        assert result.direction == SwapDirection.STABLE_IN
        assert result.delta_out > 0
        assert result.pool.reserve_stable == pool.reserve_stable + parse_wei(10)
        assert result.pool.reserve_risky == pool.reserve_risky - result.delta_out

    def test_effective_price_above_spot(self) -> None:
        """Покупка risky исполняется дороже спота"""
        pool = make_pool()
        result = pool.swap_stable_in(parse_wei(10))
        assert result.effective_price > pool.spot_price()

    def test_fee_accrues_in_stable(self) -> None:
        result = make_pool().swap_stable_in(parse_wei(10), fee_bps=15)
        assert result.pool.accrued_fees == (0, result.fee_amount)

    def test_capacity_exceeded(self) -> None:
        """Stable резерв не может достигнуть L·K"""
        with pytest.raises(InsufficientReservesError):
            make_pool().swap_stable_in(parse_wei(900))

    def test_preview_dispatches(self) -> None:
        pool = make_pool()
        preview = pool.preview_swap(SwapDirection.STABLE_IN, parse_wei(10))
        assert preview.delta_out == pool.swap_stable_in(parse_wei(10)).delta_out


class TestInvariantMonotonicity:
    """Своп в любую сторону не уменьшает инвариант сильнее толерантности"""

    @pytest.mark.parametrize("risky_per_liquidity", [0.001, 0.01, 0.1, 0.5, 0.9, 0.99, 0.999])
    @pytest.mark.parametrize(
        "sigma, tau_seconds",
        [(10_000, SECONDS_PER_YEAR), (2_500, SECONDS_PER_YEAR // 12), (15_000, 2 * SECONDS_PER_YEAR)],
    )
    @pytest.mark.parametrize("direction", list(SwapDirection))
    def test_sweep(
        self, risky_per_liquidity: float, sigma: int, tau_seconds: int, direction: SwapDirection
    ) -> None:
        maturity = T0 + tau_seconds
        pool = Pool.initialize(
            pool_id=compute_pool_id(STRIKE, sigma, maturity),
            strike=STRIKE,
            sigma=sigma,
            maturity=maturity,
            timestamp=T0,
            risky_per_liquidity=parse_wei(risky_per_liquidity),
            liquidity=parse_wei(100),
        )
        tolerance = parse_int64x64(
            INVARIANT_TOLERANCE * wei_to_float(pool.liquidity) * wei_to_float(pool.strike)
        )
        if direction == SwapDirection.RISKY_IN:
            headroom = pool.liquidity - pool.reserve_risky
        else:
            headroom = pool.liquidity * pool.strike // WAD - pool.reserve_stable

        for fraction in (1e-6, 1e-3, 0.01, 0.1, 0.5):
            delta_in = max(int(headroom * fraction), 1)
            for fee_bps in (0, 15):
                result = pool.preview_swap(direction, delta_in, fee_bps=fee_bps)
                assert result.invariant_next >= result.invariant_last - tolerance


class TestExpiry:
    """Тесты экспирации"""

    def test_recalculate_tau(self) -> None:
        pool = make_pool().recalculate_tau(T0 + SECONDS_PER_YEAR // 2)
        assert pool.tau == SECONDS_PER_YEAR // 2
        assert pool.last_timestamp == T0 + SECONDS_PER_YEAR // 2

    def test_tau_floors_at_zero(self) -> None:
        pool = make_pool().recalculate_tau(MATURITY + 100)
        assert pool.tau == 0
        assert pool.is_expired

    def test_clock_going_backwards_ignored(self) -> None:
        """Более раннее время не сдвигает last_timestamp назад"""
        pool = make_pool().recalculate_tau(T0 + 1000)
        rewound = pool.recalculate_tau(T0)
        assert rewound.last_timestamp == T0 + 1000
        assert rewound.tau == pool.tau

    @pytest.mark.parametrize("direction", list(SwapDirection))
    def test_swap_rejected_at_maturity(self, direction: SwapDirection) -> None:
        pool = make_pool().recalculate_tau(MATURITY)
        with pytest.raises(PoolExpiredError):
            pool.preview_swap(direction, parse_wei(1))


class TestPrices:
    def test_marginal_price_at_zero_trade_matches_spot(self) -> None:
        pool = make_pool()
        spot = pool.spot_price()
        assert pool.marginal_price_after_trade(0, SwapDirection.RISKY_IN) == pytest.approx(spot, rel=1e-4)
        assert pool.marginal_price_after_trade(0, SwapDirection.STABLE_IN) == pytest.approx(spot, rel=1e-4)

    def test_price_moves_with_trade(self) -> None:
        pool = make_pool()
        spot = pool.spot_price()
        assert pool.marginal_price_after_trade(parse_wei(5), SwapDirection.RISKY_IN) < spot
        assert pool.marginal_price_after_trade(parse_wei(50), SwapDirection.STABLE_IN) > spot


# =============================================================================
# ЛИКВИДНОСТЬ, FLOAT, DEBT
# =============================================================================


class TestLiquidity:
    """Тесты allocate / remove"""

    def test_allocate_proportional(self) -> None:
        pool = make_pool()
        new_pool, delta_risky, delta_stable = pool.allocate(parse_wei(10))

        assert new_pool.liquidity == parse_wei(110)
        assert delta_risky == parse_wei(5)
        assert delta_stable == -((-parse_wei(10) * pool.reserve_stable) // pool.liquidity)

    def test_remove_rounds_down(self) -> None:
        pool = make_pool()
        new_pool, delta_risky, delta_stable = pool.remove(parse_wei(10))

        assert new_pool.liquidity == parse_wei(90)
        assert delta_risky == parse_wei(5)
        assert delta_stable == parse_wei(10) * pool.reserve_stable // pool.liquidity

    def test_allocate_then_remove_never_loses(self) -> None:
        """Поставщик не получает больше, чем внёс"""
        pool = make_pool(liquidity=parse_wei(3))
        pool, paid_risky, paid_stable = pool.allocate(7)
        _, got_risky, got_stable = pool.remove(7)
        assert got_risky <= paid_risky
        assert got_stable <= paid_stable

    def test_remove_below_min_liquidity(self) -> None:
        with pytest.raises(InsufficientReservesError):
            make_pool().remove(parse_wei(100) - 999, min_liquidity=1000)

    def test_remove_keeps_invariant(self) -> None:
        new_pool, _, _ = make_pool().remove(parse_wei(30))
        assert abs(int64x64_to_float(new_pool.invariant)) < 1e-8


class TestLendingTransitions:
    """Тесты lend / claim / borrow / repay на уровне пула"""

    def test_lend_and_claim(self) -> None:
        pool = make_pool().lend(parse_wei(10))
        assert pool.float_liquidity == parse_wei(10)
        assert pool.claim(parse_wei(4)).float_liquidity == parse_wei(6)

    def test_lend_beyond_liquidity(self) -> None:
        with pytest.raises(InsufficientReservesError):
            make_pool().lend(parse_wei(101))

    def test_claim_beyond_float(self) -> None:
        with pytest.raises(InsufficientFloatError):
            make_pool().lend(parse_wei(1)).claim(parse_wei(2))

    def test_borrow_moves_float_to_debt(self) -> None:
        pool = make_pool().lend(parse_wei(10))
        new_pool, delta_risky, delta_stable = pool.borrow(parse_wei(2))

        assert new_pool.liquidity == parse_wei(98)
        assert new_pool.float_liquidity == parse_wei(8)
        assert new_pool.debt == parse_wei(2)
        assert delta_risky == parse_wei(1)
        assert new_pool.reserve_stable == pool.reserve_stable - delta_stable

    def test_borrow_beyond_float(self) -> None:
        pool = make_pool().lend(parse_wei(10))
        with pytest.raises(InsufficientFloatError) as exc_info:
            pool.borrow(parse_wei(20))
        assert exc_info.value.required == parse_wei(20)
        assert exc_info.value.available == parse_wei(10)

    def test_repay_restores_liquidity(self) -> None:
        pool = make_pool().lend(parse_wei(10))
        borrowed, _, out_stable = pool.borrow(parse_wei(2))
        repaid, in_risky, in_stable = borrowed.repay(parse_wei(2))

        assert repaid.liquidity == pool.liquidity
        assert repaid.debt == 0
        assert repaid.float_liquidity == parse_wei(10)
        assert in_risky == parse_wei(1)
        assert in_stable - out_stable in (0, 1, 2)

    def test_repay_beyond_debt(self) -> None:
        pool, _, _ = make_pool().lend(parse_wei(10)).borrow(parse_wei(2))
        with pytest.raises(InvalidParametersError):
            pool.repay(parse_wei(3))

    def test_zero_amounts_rejected(self) -> None:
        pool = make_pool().lend(parse_wei(10))
        for transition in (pool.lend, pool.claim, pool.borrow, pool.repay, pool.allocate, pool.remove):
            with pytest.raises(InvalidParametersError):
                transition(0)


class TestReservesSnapshot:
    def test_snapshot_fields(self) -> None:
        pool = make_pool().swap_risky_in(parse_wei(1), fee_bps=15).pool
        snapshot = pool.reserves_snapshot()

        assert snapshot.pool_id == pool.pool_id
        assert snapshot.reserve_risky == pool.reserve_risky
        assert snapshot.accrued_fee_risky == pool.accrued_fees[0]
        assert snapshot.tau == SECONDS_PER_YEAR
