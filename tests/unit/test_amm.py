"""
Unit tests for oracle_manipulation/amm.py

Covers the constant-product invariant under fees, favourable rounding,
reserve floors, liquidity provision and token-backed swaps.
"""

import unittest
from decimal import Decimal, localcontext

from oracle_manipulation.amm import (
    LOCKED_SHARES_HOLDER,
    MINIMUM_LIQUIDITY,
    ReserveAMM,
    SwapDirection,
)
from oracle_manipulation.exceptions import (
    InsufficientAllowance,
    InsufficientBalance,
    InsufficientLiquidity,
    InvalidAmount,
    ValidationError,
)
from oracle_manipulation.fixed_point import WAD
from oracle_manipulation.tokens import NativeToken, StandardToken


def expected_output(reserve_in, reserve_out, amount_in, fee_bps):
    """Reference constant-product output with the pool's rounding."""
    after_fee = amount_in * (10000 - fee_bps) // 10000
    new_out = -(-(reserve_in * reserve_out) // (reserve_in + after_fee))
    return reserve_out - new_out


class TestSwapMath(unittest.TestCase):
    """Test swap pricing against the constant-product formula."""

    def setUp(self):
        self.amm = ReserveAMM(1000 * WAD, 1000 * WAD, fee_bps=30)

    def test_quote_matches_formula(self):
        quote = self.amm.quote(10 * WAD, SwapDirection.A_TO_B)
        self.assertEqual(
            quote.amount_out, expected_output(1000 * WAD, 1000 * WAD, 10 * WAD, 30)
        )
        self.assertEqual(quote.fee_paid, 3 * 10**16)
        self.assertEqual(quote.new_reserve_in, 1010 * WAD)

    def test_quote_does_not_mutate(self):
        self.amm.quote(10 * WAD, SwapDirection.A_TO_B)
        self.assertEqual(self.amm.reserve_a, 1000 * WAD)
        self.assertEqual(self.amm.reserve_b, 1000 * WAD)

    def test_swap_updates_reserves(self):
        out = self.amm.swap(10 * WAD, SwapDirection.B_TO_A)
        self.assertEqual(self.amm.reserve_b, 1010 * WAD)
        self.assertEqual(self.amm.reserve_a, 1000 * WAD - out)
        self.assertEqual(self.amm.fees_collected[SwapDirection.B_TO_A], 3 * 10**16)

    def test_k_strictly_increases_with_fee(self):
        """Test k' > k for every swap when the fee is non-zero."""
        for amount, direction in (
            (WAD, SwapDirection.A_TO_B),
            (250 * WAD, SwapDirection.B_TO_A),
            (12345, SwapDirection.A_TO_B),
            (999 * WAD, SwapDirection.B_TO_A),
        ):
            k_before = self.amm.k
            self.amm.swap(amount, direction)
            self.assertGreater(self.amm.k, k_before)

    def test_k_preserved_without_fee(self):
        """Test k' == k for an exactly divisible swap at zero fee."""
        amm = ReserveAMM(100 * WAD, 100 * WAD, fee_bps=0)
        k_before = amm.k
        out = amm.swap(100 * WAD, SwapDirection.A_TO_B)
        self.assertEqual(out, 50 * WAD)
        self.assertEqual(amm.k, k_before)

    def test_k_never_decreases_without_fee(self):
        amm = ReserveAMM(3 * WAD, 7 * WAD, fee_bps=0)
        for amount in (1, 10**17, 5 * WAD):
            k_before = amm.k
            amm.swap(amount, SwapDirection.A_TO_B)
            self.assertGreaterEqual(amm.k, k_before)


class TestPriceImpact(unittest.TestCase):
    """Reference manipulation: 5,000,000 GAMMA into a 1,000,000/100 pool."""

    def test_output_and_spot_price_match_formula(self):
        amm = ReserveAMM(1_000_000 * WAD, 100 * WAD, fee_bps=30)
        amount_in = 5_000_000 * WAD

        out = amm.swap(amount_in, SwapDirection.A_TO_B)

        with localcontext() as ctx:
            ctx.prec = 80
            after_fee = Decimal(amount_in) * Decimal("0.997")
            reserve_in = Decimal(1_000_000 * WAD)
            reserve_out = Decimal(100 * WAD)
            new_out = reserve_in * reserve_out / (reserve_in + after_fee)
            expected_out = reserve_out - new_out
            expected_price = new_out * Decimal(WAD) / (reserve_in + Decimal(amount_in))

        self.assertLessEqual(abs(Decimal(out) - expected_out), 1)
        self.assertLessEqual(
            abs(Decimal(amm.spot_price(SwapDirection.A_TO_B)) - expected_price), 1
        )
        self.assertTrue(83 * WAD < out < 84 * WAD)
        self.assertEqual(amm.reserve_a, 6_000_000 * WAD)

    def test_spot_price_orientation(self):
        amm = ReserveAMM(1000 * WAD, WAD)
        self.assertEqual(amm.spot_price(SwapDirection.A_TO_B), 10**15)
        self.assertEqual(amm.spot_price(SwapDirection.B_TO_A), 1000 * WAD)


class TestSwapRejections(unittest.TestCase):
    """Test rejected swaps leave the pool untouched."""

    def test_non_positive_amount(self):
        amm = ReserveAMM(1000 * WAD, 1000 * WAD)
        for amount in (0, -5):
            with self.assertRaises(InvalidAmount):
                amm.swap(amount, SwapDirection.A_TO_B)

    def test_output_rounding_to_zero(self):
        amm = ReserveAMM(1000 * WAD, 1000 * WAD)
        with self.assertRaises(InvalidAmount):
            amm.swap(1, SwapDirection.A_TO_B)

    def test_reserve_floor(self):
        amm = ReserveAMM(10**6, 10**6, fee_bps=0)
        with self.assertRaises(InsufficientLiquidity):
            amm.swap(10**12, SwapDirection.A_TO_B)
        self.assertEqual((amm.reserve_a, amm.reserve_b), (10**6, 10**6))

    def test_invalid_fee(self):
        with self.assertRaises(InvalidAmount):
            ReserveAMM(WAD, WAD, fee_bps=10000)
        with self.assertRaises(InvalidAmount):
            ReserveAMM(WAD, WAD, fee_bps=-1)

    def test_empty_pool(self):
        amm = ReserveAMM()
        with self.assertRaises(InsufficientLiquidity):
            amm.spot_price()
        with self.assertRaises(InsufficientLiquidity):
            amm.swap(WAD, SwapDirection.A_TO_B)


class TestLiquidity(unittest.TestCase):
    """Test proportional liquidity provision and bounded redemption."""

    def test_first_provision_locks_minimum_liquidity(self):
        amm = ReserveAMM()
        receipt = amm.add_liquidity(100 * WAD, 100 * WAD, "lp")
        self.assertEqual(amm.total_shares, 100 * WAD)
        self.assertEqual(receipt.shares, 100 * WAD - MINIMUM_LIQUIDITY)
        self.assertEqual(amm.share_of(LOCKED_SHARES_HOLDER), MINIMUM_LIQUIDITY)
        self.assertEqual(amm.spot_price(SwapDirection.A_TO_B), WAD)

    def test_first_provision_requires_both_sides(self):
        amm = ReserveAMM()
        with self.assertRaises(InvalidAmount):
            amm.add_liquidity(100 * WAD, 0, "lp")

    def test_add_uses_current_ratio(self):
        amm = ReserveAMM(1000 * WAD, 2000 * WAD)
        receipt = amm.add_liquidity(10 * WAD, 50 * WAD, "lp")
        self.assertEqual(receipt.amount_a, 10 * WAD)
        self.assertEqual(receipt.amount_b, 20 * WAD)

    def test_remove_returns_no_more_than_supplied(self):
        amm = ReserveAMM(1000 * WAD, 2000 * WAD)
        added = amm.add_liquidity(10 * WAD + 7, 20 * WAD + 13, "lp")
        removed = amm.remove_liquidity(added.shares, "lp")
        self.assertLessEqual(removed.amount_a, added.amount_a)
        self.assertLessEqual(removed.amount_b, added.amount_b)
        self.assertEqual(amm.share_of("lp"), 0)

    def test_remove_more_than_held(self):
        amm = ReserveAMM(1000 * WAD, 2000 * WAD)
        added = amm.add_liquidity(10 * WAD, 20 * WAD, "lp")
        with self.assertRaises(InsufficientBalance):
            amm.remove_liquidity(added.shares + 1, "lp")
        with self.assertRaises(InsufficientBalance):
            amm.remove_liquidity(1, "stranger")

    def test_locked_shares_cannot_be_redeemed(self):
        amm = ReserveAMM(1000 * WAD, 2000 * WAD)
        with self.assertRaises(ValidationError):
            amm.remove_liquidity(MINIMUM_LIQUIDITY, LOCKED_SHARES_HOLDER)
        self.assertEqual(amm.share_of(LOCKED_SHARES_HOLDER), MINIMUM_LIQUIDITY)


class TestTokenBackedPool(unittest.TestCase):
    """Test swaps that move real token balances."""

    def setUp(self):
        self.gamma = StandardToken("GAMMA")
        self.eth = NativeToken("ETH")
        self.gamma.mint("amm", 1000 * WAD)
        self.eth.mint("amm", 1000 * WAD)
        self.amm = ReserveAMM(
            1000 * WAD, 1000 * WAD, token_a=self.gamma, token_b=self.eth
        )
        self.gamma.mint("alice", 10 * WAD)

    def test_swap_moves_balances(self):
        self.gamma.approve("alice", "amm", 10 * WAD)
        out = self.amm.swap(10 * WAD, SwapDirection.A_TO_B, trader="alice")
        self.assertEqual(self.gamma.balance_of("alice"), 0)
        self.assertEqual(self.eth.balance_of("alice"), out)
        self.assertEqual(self.gamma.balance_of("amm"), self.amm.reserve_a)
        self.assertEqual(self.eth.balance_of("amm"), self.amm.reserve_b)

    def test_missing_allowance_leaves_pool_untouched(self):
        before = self.amm.snapshot()
        with self.assertRaises(InsufficientAllowance):
            self.amm.swap(10 * WAD, SwapDirection.A_TO_B, trader="alice")
        self.assertEqual(self.amm.snapshot(), before)
        self.assertEqual(self.eth.balance_of("alice"), 0)

    def test_native_input_is_pushed(self):
        self.eth.mint("bob", WAD)
        out = self.amm.swap(WAD, SwapDirection.B_TO_A, trader="bob")
        self.assertEqual(self.gamma.balance_of("bob"), out)

    def test_requires_trader(self):
        with self.assertRaises(ValidationError):
            self.amm.swap(WAD, SwapDirection.A_TO_B)

    def test_seed_requires_funded_address(self):
        with self.assertRaises(ValidationError):
            ReserveAMM(
                WAD, WAD, token_a=StandardToken("A"), token_b=StandardToken("B")
            )


class TestTokenBackedLiquidity(unittest.TestCase):
    """Test rejected provisions leave balances, allowances and the pool as they were."""

    def setUp(self):
        self.token_a = StandardToken("A")
        self.token_b = StandardToken("B")
        self.amm = ReserveAMM(token_a=self.token_a, token_b=self.token_b)

    def fund(self, amount, approve_a=True, approve_b=True):
        self.token_a.mint("lp", amount)
        self.token_b.mint("lp", amount)
        if approve_a:
            self.token_a.approve("lp", "amm", amount)
        if approve_b:
            self.token_b.approve("lp", "amm", amount)

    def test_first_provision_collects_both_tokens(self):
        self.fund(100 * WAD)
        receipt = self.amm.add_liquidity(100 * WAD, 100 * WAD, "lp")
        self.assertEqual(receipt.shares, 100 * WAD - MINIMUM_LIQUIDITY)
        self.assertEqual(self.token_a.balance_of("amm"), 100 * WAD)
        self.assertEqual(self.token_b.balance_of("amm"), 100 * WAD)
        self.assertEqual(self.token_a.allowance("lp", "amm"), 0)

    def test_too_small_first_provision_moves_nothing(self):
        self.fund(10)
        before = self.amm.snapshot()

        with self.assertRaises(InsufficientLiquidity):
            self.amm.add_liquidity(10, 10, "lp")

        self.assertEqual(self.amm.snapshot(), before)
        self.assertEqual(self.token_a.balance_of("lp"), 10)
        self.assertEqual(self.token_b.balance_of("lp"), 10)
        self.assertEqual(self.token_a.balance_of("amm"), 0)
        self.assertEqual(self.token_b.balance_of("amm"), 0)
        self.assertEqual(self.token_a.allowance("lp", "amm"), 10)

    def test_missing_second_allowance_keeps_first(self):
        self.fund(WAD, approve_b=False)
        before = self.amm.snapshot()

        with self.assertRaises(InsufficientAllowance):
            self.amm.add_liquidity(WAD, WAD, "lp")

        self.assertEqual(self.amm.snapshot(), before)
        self.assertEqual(self.token_a.allowance("lp", "amm"), WAD)
        self.assertEqual(self.token_a.balance_of("lp"), WAD)
        self.assertEqual(self.token_a.balance_of("amm"), 0)

    def test_missing_balance_moves_nothing(self):
        self.fund(WAD)
        with self.assertRaises(InsufficientBalance):
            self.amm.add_liquidity(WAD, 2 * WAD, "lp")
        self.assertEqual(self.token_a.balance_of("lp"), WAD)
        self.assertEqual(self.token_a.allowance("lp", "amm"), WAD)



if __name__ == "__main__":
    unittest.main()
