"""
Constant-product AMM with integer fixed-point reserves.

Implements the x * y = k pool the oracle reads from. Every rounding step is
taken in the pool's favour:
- the fee-adjusted input is floored
- the new output reserve is ceiled, so the trader's output is floored
- liquidity shares and redemptions are floored

The full input amount (fee included) stays in the pool, so k never decreases.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .exceptions import (
    InsufficientAllowance,
    InsufficientBalance,
    InsufficientLiquidity,
    InvalidAmount,
    ValidationError,
)
from .fixed_point import (
    BPS_DENOMINATOR,
    ROUND_UP,
    WAD,
    check_uint,
    mul_div,
    require_positive,
)
from .interfaces import TokenLike
from .tokens import collect
from .utils import get_logger

logger = get_logger(__name__)

DEFAULT_FEE_BPS = 30
# Smallest reserve any operation may leave behind (in WAD units)
MINIMUM_RESERVE = 1_000
# Shares locked forever on the first provision so the pool can never be emptied
MINIMUM_LIQUIDITY = 1_000
LOCKED_SHARES_HOLDER = "0x0000000000000000000000000000000000000000"
GENESIS_PROVIDER = "genesis"


class SwapDirection(Enum):
    """Which reserve receives the input of a swap."""

    A_TO_B = "a_to_b"
    B_TO_A = "b_to_a"

    @property
    def reverse(self) -> "SwapDirection":
        if self is SwapDirection.A_TO_B:
            return SwapDirection.B_TO_A
        return SwapDirection.A_TO_B


@dataclass(frozen=True)
class Reserves:
    """Pool reserves oriented along a swap direction."""

    reserve_in: int
    reserve_out: int
    fee_bps: int

    @property
    def k(self) -> int:
        return self.reserve_in * self.reserve_out


@dataclass(frozen=True)
class SwapQuote:
    """Result of pricing a swap without executing it."""

    amount_in: int
    amount_out: int
    fee_paid: int
    new_reserve_in: int
    new_reserve_out: int


@dataclass(frozen=True)
class LiquidityReceipt:
    """Shares minted or burned together with the token amounts moved."""

    shares: int
    amount_a: int
    amount_b: int


class ReserveAMM:
    """
    Two-token constant-product pool.

    Reserves are tracked as WAD integers. When token objects are bound the pool
    also moves real balances: inputs are collected from the trader and outputs
    are transferred from the pool's own address.

    Attributes:
        reserve_a: Reserve of token A
        reserve_b: Reserve of token B
        fee_bps: Swap fee in basis points, deducted from the input
        total_shares: Outstanding liquidity shares
        shares: Liquidity shares per provider
        fees_collected: Cumulative fees kept by the pool, per input side
    """

    def __init__(
        self,
        initial_reserve_a: int = 0,
        initial_reserve_b: int = 0,
        fee_bps: int = DEFAULT_FEE_BPS,
        token_a: Optional[TokenLike] = None,
        token_b: Optional[TokenLike] = None,
        address: str = "amm",
    ):
        if isinstance(fee_bps, bool) or not isinstance(fee_bps, int):
            raise InvalidAmount(f"fee_bps must be an integer, got {fee_bps!r}")
        if not 0 <= fee_bps < BPS_DENOMINATOR:
            raise InvalidAmount(
                f"fee_bps must be in [0, {BPS_DENOMINATOR}), got {fee_bps}",
                amount=fee_bps,
            )
        if (token_a is None) != (token_b is None):
            raise ValidationError("bind both tokens or neither")

        self.address = address
        self.token_a = token_a
        self.token_b = token_b
        self.fee_bps = fee_bps
        self.reserve_a = 0
        self.reserve_b = 0
        self.total_shares = 0
        self.shares: Dict[str, int] = {}
        self.fees_collected = {SwapDirection.A_TO_B: 0, SwapDirection.B_TO_A: 0}

        if initial_reserve_a or initial_reserve_b:
            self._seed(initial_reserve_a, initial_reserve_b)

    def _seed(self, amount_a: int, amount_b: int) -> None:
        """Adopt reserves that already sit at the pool address."""
        require_positive(amount_a, "initial_reserve_a")
        require_positive(amount_b, "initial_reserve_b")
        if self.token_a is not None:
            for token, amount in ((self.token_a, amount_a), (self.token_b, amount_b)):
                if token.balance_of(self.address) < amount:
                    raise ValidationError(
                        f"pool address holds less {token.symbol} than its "
                        f"initial reserve ({amount})"
                    )
        self._mint_initial_shares(
            self._initial_shares(amount_a, amount_b), GENESIS_PROVIDER
        )
        self.reserve_a = amount_a
        self.reserve_b = amount_b

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return self.total_shares == 0

    @property
    def k(self) -> int:
        return self.reserve_a * self.reserve_b

    def _oriented(self, direction: SwapDirection) -> Tuple[int, int]:
        if direction is SwapDirection.A_TO_B:
            return self.reserve_a, self.reserve_b
        return self.reserve_b, self.reserve_a

    def _tokens(
        self, direction: SwapDirection
    ) -> Tuple[Optional[TokenLike], Optional[TokenLike]]:
        if direction is SwapDirection.A_TO_B:
            return self.token_a, self.token_b
        return self.token_b, self.token_a

    def token_in(self, direction: SwapDirection) -> Optional[TokenLike]:
        return self._tokens(direction)[0]

    def token_out(self, direction: SwapDirection) -> Optional[TokenLike]:
        return self._tokens(direction)[1]

    def reserves(self, direction: SwapDirection = SwapDirection.A_TO_B) -> Reserves:
        reserve_in, reserve_out = self._oriented(direction)
        return Reserves(reserve_in, reserve_out, self.fee_bps)

    def spot_price(self, direction: SwapDirection = SwapDirection.A_TO_B) -> int:
        """
        Price of one unit of the input token in output-token units (WAD).

        A pure function of the current reserves with no memory of history.
        """
        if self.is_empty:
            raise InsufficientLiquidity("pool has no liquidity to price against")
        pool = self.reserves(direction)
        return mul_div(pool.reserve_out, WAD, pool.reserve_in)

    def share_of(self, provider: str) -> int:
        return self.shares.get(provider, 0)

    # ------------------------------------------------------------------
    # Swaps
    # ------------------------------------------------------------------

    def quote(self, amount_in: int, direction: SwapDirection) -> SwapQuote:
        """
        Price a swap against current reserves without executing it.

        amount_out = reserve_out - (reserve_in * reserve_out) / (reserve_in + amount_in_after_fee)

        Raises:
            InvalidAmount: If amount_in <= 0 or the output rounds to zero
            InsufficientLiquidity: If the output reserve would fall below the floor
        """
        require_positive(amount_in, "amount_in")
        if self.is_empty:
            raise InsufficientLiquidity("pool has no liquidity to swap against")

        pool = self.reserves(direction)
        reserve_in, reserve_out = pool.reserve_in, pool.reserve_out
        amount_in_after_fee = mul_div(
            amount_in, BPS_DENOMINATOR - self.fee_bps, BPS_DENOMINATOR
        )
        new_reserve_out = mul_div(
            reserve_in, reserve_out, reserve_in + amount_in_after_fee, ROUND_UP
        )
        amount_out = reserve_out - new_reserve_out
        if amount_out <= 0:
            raise InvalidAmount(
                f"swap of {amount_in} produces no output", amount=amount_in
            )
        if new_reserve_out < MINIMUM_RESERVE:
            raise InsufficientLiquidity(
                "swap would drain the output reserve below the floor",
                requested=amount_out,
                available=reserve_out - MINIMUM_RESERVE,
            )

        return SwapQuote(
            amount_in=amount_in,
            amount_out=amount_out,
            fee_paid=amount_in - amount_in_after_fee,
            new_reserve_in=check_uint(reserve_in + amount_in, "reserve"),
            new_reserve_out=new_reserve_out,
        )

    def swap(
        self,
        amount_in: int,
        direction: SwapDirection,
        trader: Optional[str] = None,
    ) -> int:
        """
        Execute a swap and return the output amount.

        Reserves are only written after every check and token movement has
        succeeded, so a rejected swap leaves the pool untouched.
        """
        quote = self.quote(amount_in, direction)

        token_in, token_out = self._tokens(direction)
        if token_in is not None:
            if trader is None:
                raise ValidationError("token-backed pool requires a trader")
            collect(token_in, trader, self.address, amount_in)
            token_out.transfer(self.address, trader, quote.amount_out)

        self._write_reserves(direction, quote.new_reserve_in, quote.new_reserve_out)
        self.fees_collected[direction] += quote.fee_paid

        logger.debug(
            f"Swap {direction.value}: in={amount_in} out={quote.amount_out} "
            f"fee={quote.fee_paid} reserves=({self.reserve_a}, {self.reserve_b})"
        )
        return quote.amount_out

    def _write_reserves(
        self, direction: SwapDirection, reserve_in: int, reserve_out: int
    ) -> None:
        if direction is SwapDirection.A_TO_B:
            self.reserve_a, self.reserve_b = reserve_in, reserve_out
        else:
            self.reserve_a, self.reserve_b = reserve_out, reserve_in

    # ------------------------------------------------------------------
    # Liquidity
    # ------------------------------------------------------------------

    def _initial_shares(self, amount_a: int, amount_b: int) -> int:
        shares = math.isqrt(amount_a * amount_b)
        if shares <= MINIMUM_LIQUIDITY:
            raise InsufficientLiquidity(
                "initial provision too small to lock minimum liquidity",
                requested=shares,
                available=MINIMUM_LIQUIDITY,
            )
        return shares

    def _mint_initial_shares(self, shares: int, provider: str) -> int:
        self.shares[LOCKED_SHARES_HOLDER] = MINIMUM_LIQUIDITY
        minted = shares - MINIMUM_LIQUIDITY
        self.shares[provider] = self.share_of(provider) + minted
        self.total_shares = shares
        return minted

    def add_liquidity(
        self, amount_a: int, amount_b: int, provider: str = GENESIS_PROVIDER
    ) -> LiquidityReceipt:
        """
        Deposit both tokens in proportion to the current reserve ratio.

        The first provision sets the initial price and must supply both sides.
        Later provisions only consume the proportional part of the larger side.
        """
        require_positive(amount_a, "amount_a")
        require_positive(amount_b, "amount_b")

        if self.is_empty:
            used_a, used_b = amount_a, amount_b
            shares = self._initial_shares(used_a, used_b)
            self._collect_pair(provider, used_a, used_b)
            minted = self._mint_initial_shares(shares, provider)
        else:
            optimal_b = mul_div(amount_a, self.reserve_b, self.reserve_a)
            if optimal_b <= amount_b:
                used_a, used_b = amount_a, optimal_b
            else:
                used_a = mul_div(amount_b, self.reserve_a, self.reserve_b)
                used_b = amount_b
            minted = min(
                mul_div(used_a, self.total_shares, self.reserve_a),
                mul_div(used_b, self.total_shares, self.reserve_b),
            )
            if used_a == 0 or used_b == 0 or minted == 0:
                raise InvalidAmount(
                    "liquidity provision too small to mint any shares",
                    details={"amount_a": amount_a, "amount_b": amount_b},
                )
            self._collect_pair(provider, used_a, used_b)
            self.shares[provider] = self.share_of(provider) + minted
            self.total_shares += minted

        self.reserve_a = check_uint(self.reserve_a + used_a, "reserve")
        self.reserve_b = check_uint(self.reserve_b + used_b, "reserve")
        logger.debug(
            f"Liquidity added by {provider}: a={used_a} b={used_b} shares={minted}"
        )
        return LiquidityReceipt(shares=minted, amount_a=used_a, amount_b=used_b)

    def remove_liquidity(
        self, shares: int, provider: str = GENESIS_PROVIDER
    ) -> LiquidityReceipt:
        """
        Burn shares and return the proportional part of both reserves.

        Raises:
            InsufficientBalance: If provider holds fewer shares than requested
            InsufficientLiquidity: If a reserve would fall below the floor
        """
        require_positive(shares, "shares")
        if provider == LOCKED_SHARES_HOLDER:
            raise ValidationError("locked minimum liquidity cannot be redeemed")
        held = self.share_of(provider)
        if shares > held:
            raise InsufficientBalance(
                f"{provider} holds {held} shares, tried to redeem {shares}",
                account=provider,
                requested=shares,
                available=held,
            )

        amount_a = mul_div(shares, self.reserve_a, self.total_shares)
        amount_b = mul_div(shares, self.reserve_b, self.total_shares)
        if amount_a == 0 or amount_b == 0:
            raise InvalidAmount("redemption too small to return both tokens")
        if (
            self.reserve_a - amount_a < MINIMUM_RESERVE
            or self.reserve_b - amount_b < MINIMUM_RESERVE
        ):
            raise InsufficientLiquidity(
                "redemption would drain a reserve below the floor",
                requested=shares,
                available=held,
            )

        if self.token_a is not None:
            self.token_a.transfer(self.address, provider, amount_a)
            self.token_b.transfer(self.address, provider, amount_b)

        self.shares[provider] = held - shares
        if self.shares[provider] == 0:
            del self.shares[provider]
        self.total_shares -= shares
        self.reserve_a -= amount_a
        self.reserve_b -= amount_b
        logger.debug(
            f"Liquidity removed by {provider}: a={amount_a} b={amount_b} shares={shares}"
        )
        return LiquidityReceipt(shares=shares, amount_a=amount_a, amount_b=amount_b)

    def _collect_pair(self, provider: str, amount_a: int, amount_b: int) -> None:
        if self.token_a is None:
            return
        pair = ((self.token_a, amount_a), (self.token_b, amount_b))
        # Both sides are checked before either moves
        for token, amount in pair:
            available = token.balance_of(provider)
            if available < amount:
                raise InsufficientBalance(
                    f"{provider} cannot cover {amount} {token.symbol}",
                    account=provider,
                    requested=amount,
                    available=available,
                )
            if token.requires_approval and provider != self.address:
                allowed = token.allowance(provider, self.address)
                if allowed < amount:
                    raise InsufficientAllowance(
                        f"{self.address} may move {allowed} {token.symbol} of "
                        f"{provider}, needs {amount}",
                        owner=provider,
                        spender=self.address,
                    )
        for token, amount in pair:
            collect(token, provider, self.address, amount)

    def snapshot(self) -> Dict[str, Any]:
        """Field-for-field view of the pool state."""
        return {
            "reserve_a": self.reserve_a,
            "reserve_b": self.reserve_b,
            "fee_bps": self.fee_bps,
            "total_shares": self.total_shares,
            "shares": dict(sorted(self.shares.items())),
            "fees_collected": {d.value: v for d, v in self.fees_collected.items()},
        }
