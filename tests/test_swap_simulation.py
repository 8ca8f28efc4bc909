"""
Unit tests for swap models.

Tests cover:
- Fixed-impact simulation from pool mid prices
- Route composition and token carry-over
- Reserve-based simulation and its fixed-impact fallback
- Constant-product (V2) math
"""

import math
from decimal import Decimal

import pytest

from dex.adapters import (
    price_impact_bps,
    price_quote_in_out,
    route_tokens,
    simulate_route,
    simulate_swap,
    swap_out,
    swap_out_bps,
    swap_reserves,
)

WETH = "0x4200000000000000000000000000000000000006"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
DAI = "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb"

HAIRCUT = (1 - 30 / 10000.0) * 0.998


class TestSimulateSwap:
    """Fixed-impact swap simulation."""

    def test_token0_to_token1(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0)
        out = simulate_swap(1.0, pool)
        assert out == pytest.approx(2000.0 * HAIRCUT)

    def test_explicit_token_in_matches_default(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0)
        assert simulate_swap(1.0, pool, WETH) == simulate_swap(1.0, pool)

    def test_token1_to_token0_uses_inverse_price(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0)
        out = simulate_swap(2000.0, pool, USDC)
        assert out == pytest.approx(HAIRCUT)

    def test_token_match_is_case_insensitive(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0)
        assert simulate_swap(2000.0, pool, USDC.lower()) == pytest.approx(HAIRCUT)

    def test_missing_price_is_unavailable(self, make_pool):
        pool = make_pool(WETH, USDC, price=None)
        assert simulate_swap(1.0, pool) is None

    @pytest.mark.parametrize("price", [0.0, -1.0, float("nan"), float("inf")])
    def test_invalid_price_is_unavailable(self, make_pool, price):
        pool = make_pool(WETH, USDC, price=price)
        assert simulate_swap(1.0, pool) is None

    def test_non_finite_input_rejected(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0)
        assert simulate_swap(float("nan"), pool) is None
        assert simulate_swap(float("inf"), pool) is None

    def test_overflow_rejected(self, make_pool):
        pool = make_pool(WETH, USDC, price=1e300)
        assert simulate_swap(1e300, pool) is None

    def test_foreign_token_rejected(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0)
        assert simulate_swap(1.0, pool, DAI) is None

    def test_custom_impact_factor(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0, fee_bps=0)
        assert simulate_swap(1.0, pool, impact_factor=1.0) == pytest.approx(2000.0)


class TestSimulateRoute:
    """Multi-hop composition."""

    def test_round_trip_returns_to_start(self, make_pool):
        p1 = make_pool(WETH, USDC, price=2000.0)
        p2 = make_pool(USDC, WETH, price=1 / 2000.0, dex_id="sushiswap")
        amount_out, end_token = simulate_route(1.0, [p1, p2], WETH)
        assert end_token == WETH
        assert amount_out == pytest.approx(HAIRCUT**2)

    def test_pool_token_order_does_not_matter(self, make_pool):
        p1 = make_pool(WETH, USDC, price=2000.0)
        p2 = make_pool(WETH, USDC, price=2000.0, dex_id="sushiswap")
        amount_out, end_token = simulate_route(1.0, [p1, p2], WETH)
        assert end_token == WETH
        assert amount_out == pytest.approx(HAIRCUT**2)

    def test_disconnected_hop_returns_none(self, make_pool):
        p1 = make_pool(WETH, USDC, price=2000.0)
        p2 = make_pool(DAI, WETH, price=0.0005)
        assert simulate_route(1.0, [p1, p2], WETH) is None

    def test_unpriced_hop_returns_none(self, make_pool):
        p1 = make_pool(WETH, USDC, price=2000.0)
        p2 = make_pool(USDC, DAI, price=None)
        assert simulate_route(1.0, [p1, p2], WETH) is None

    def test_route_tokens(self, make_pool):
        p1 = make_pool(WETH, USDC, price=2000.0)
        p2 = make_pool(USDC, DAI, price=1.0)
        assert route_tokens([p1, p2], WETH) == [WETH, USDC, DAI]
        assert route_tokens([p2], WETH) is None


class TestReserveModel:
    """Constant-product pricing on pool reserves."""

    def test_matches_constant_product(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0, reserve0=1000.0, reserve1=2_000_000.0)
        out = simulate_swap(10.0, pool, WETH, model="reserves")
        assert out == pytest.approx(swap_out_bps(10.0, 1000.0, 2_000_000.0, 30))
        assert out < simulate_swap(10.0, pool, WETH, impact_factor=1.0)

    def test_reverse_direction_swaps_reserves(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0, reserve0=1000.0, reserve1=2_000_000.0)
        assert swap_reserves(pool, USDC) == (2_000_000.0, 1000.0)
        out = simulate_swap(2000.0, pool, USDC, model="reserves")
        assert out == pytest.approx(swap_out_bps(2000.0, 2_000_000.0, 1000.0, 30))

    def test_impact_grows_with_size(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0, reserve0=1000.0, reserve1=2_000_000.0)
        small = simulate_swap(1.0, pool, model="reserves") / 1.0
        large = simulate_swap(100.0, pool, model="reserves") / 100.0
        assert large < small

    @pytest.mark.parametrize("reserves", [(None, None), (1000.0, None), (0.0, 1000.0), (float("nan"), 1.0)])
    def test_missing_reserves_fall_back_to_fixed(self, make_pool, reserves):
        pool = make_pool(WETH, USDC, price=2000.0, reserve0=reserves[0], reserve1=reserves[1])
        assert swap_reserves(pool) is None
        assert simulate_swap(1.0, pool, model="reserves") == pytest.approx(2000.0 * HAIRCUT)

    def test_foreign_token_rejected(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0, reserve0=1000.0, reserve1=2_000_000.0)
        assert simulate_swap(1.0, pool, DAI, model="reserves") is None

    def test_fixed_model_ignores_reserves(self, make_pool):
        pool = make_pool(WETH, USDC, price=2000.0, reserve0=1.0, reserve1=2000.0)
        assert simulate_swap(1.0, pool) == pytest.approx(2000.0 * HAIRCUT)

    def test_route_threads_model(self, make_pool):
        p1 = make_pool(WETH, USDC, price=2000.0, reserve0=1000.0, reserve1=2_000_000.0)
        p2 = make_pool(USDC, WETH, price=1 / 2000.0, dex_id="sushiswap",
                       reserve0=2_000_000.0, reserve1=1000.0)
        amount_out, end_token = simulate_route(50.0, [p1, p2], WETH, model="reserves")
        mid = swap_out_bps(50.0, 1000.0, 2_000_000.0, 30)
        assert end_token == WETH
        assert amount_out == pytest.approx(swap_out_bps(mid, 2_000_000.0, 1000.0, 30))


class TestV2Math:
    """Uniswap V2 constant-product formulas."""

    def test_swap_out_no_fee(self):
        # out = (100 * 1000) / (1000 + 100)
        result = swap_out(Decimal("100"), Decimal("1000"), Decimal("1000"), Decimal("0"))
        assert abs(result - Decimal("100000") / Decimal("1100")) < Decimal("0.001")

    def test_swap_out_with_30bps_fee(self):
        amount_in = Decimal("100")
        fee = Decimal("0.003")
        effective = amount_in * (Decimal(1) - fee)
        expected = effective * Decimal("1000") / (Decimal("1000") + effective)

        result = swap_out(amount_in, Decimal("1000"), Decimal("1000"), fee)
        assert result == expected

    @pytest.mark.parametrize(
        "amount_in,reserve_in,reserve_out,fee",
        [
            ("0", "1000", "1000", "0.003"),
            ("10", "0", "1000", "0.003"),
            ("10", "1000", "-1", "0.003"),
            ("10", "1000", "1000", "1"),
        ],
    )
    def test_swap_out_rejects_invalid_inputs(self, amount_in, reserve_in, reserve_out, fee):
        with pytest.raises(ValueError):
            swap_out(Decimal(amount_in), Decimal(reserve_in), Decimal(reserve_out), Decimal(fee))

    def test_price_quote_in_out(self):
        amount_out, price = price_quote_in_out(
            Decimal("10"), Decimal("1000"), Decimal("2000000"), Decimal("0.003")
        )
        assert price == amount_out / Decimal("10")
        assert price < Decimal("2000")

    def test_price_impact_grows_with_size(self):
        small = price_impact_bps(Decimal("1"), Decimal("1000"), Decimal("1000"), Decimal("0.003"))
        large = price_impact_bps(Decimal("100"), Decimal("1000"), Decimal("1000"), Decimal("0.003"))
        assert Decimal(0) < small < large

    def test_swap_out_bps_wrapper(self):
        result = swap_out_bps(100.0, 1000.0, 1000.0, 30)
        assert result == pytest.approx(float(swap_out(
            Decimal("100"), Decimal("1000"), Decimal("1000"), Decimal("0.003")
        )))

    def test_swap_out_bps_invalid_returns_none(self):
        assert swap_out_bps(100.0, 0.0, 1000.0, 30) is None
        assert swap_out_bps(float("nan"), 1000.0, 1000.0, 30) is None
        assert math.isfinite(swap_out_bps(1.0, 1e6, 1e6, 0))
