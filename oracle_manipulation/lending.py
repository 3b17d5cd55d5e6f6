"""
Collateralized lending ledger priced by an injected oracle.

Positions hold collateral in one token and debt in another. Collateral value
is always computed from OracleFeed.get_price() at call time, so whatever the
oracle reports, manipulated or not, is what the ledger acts on.

Ratios and thresholds are integer percentages (150 means 150%). The health
factor uses the same scale: collateral_value * 100 / borrowed_value.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .exceptions import (
    InsufficientLiquidity,
    InvalidAmount,
    PositionHealthy,
    Undercollateralized,
    ValidationError,
)
from .fixed_point import (
    BPS_DENOMINATOR,
    MAX_UINT256,
    PERCENT,
    ROUND_UP,
    WAD,
    check_uint,
    mul_div,
    require_positive,
)
from .interfaces import TokenLike
from .oracle import OracleFeed
from .tokens import collect
from .utils import get_logger

logger = get_logger(__name__)

DEFAULT_REQUIRED_COLLATERAL_RATIO = 150
DEFAULT_LIQUIDATION_THRESHOLD = 120
DEFAULT_LIQUIDATION_BONUS_BPS = 500
# Health factor reported for positions without debt
INFINITE_HEALTH = MAX_UINT256


@dataclass
class LendingPosition:
    """Collateral and debt held by one user."""

    owner: str
    collateral_amount: int = 0
    borrowed_amount: int = 0

    @property
    def is_empty(self) -> bool:
        return self.collateral_amount == 0 and self.borrowed_amount == 0


@dataclass(frozen=True)
class LiquidationReceipt:
    """Outcome of a successful liquidation."""

    user: str
    liquidator: str
    seized_collateral: int
    debt_repaid: int
    health_factor: int
    price: int


class LendingLedger:
    """
    Per-user collateral/debt book with oracle-priced health checks.

    When tokens are bound the ledger holds real balances at its own address:
    deposits and repayments are collected from users, loans are paid out of
    the ledger's debt-token balance, which caps how much can be borrowed.
    """

    def __init__(
        self,
        oracle: OracleFeed,
        required_collateral_ratio: int = DEFAULT_REQUIRED_COLLATERAL_RATIO,
        liquidation_threshold: int = DEFAULT_LIQUIDATION_THRESHOLD,
        liquidation_bonus_bps: int = DEFAULT_LIQUIDATION_BONUS_BPS,
        collateral_token: Optional[TokenLike] = None,
        debt_token: Optional[TokenLike] = None,
        address: str = "lending",
    ):
        if required_collateral_ratio <= 0 or liquidation_threshold <= 0:
            raise ValidationError("collateral ratio and threshold must be positive")
        if liquidation_threshold > required_collateral_ratio:
            raise ValidationError(
                f"liquidation threshold {liquidation_threshold}% exceeds required "
                f"collateral ratio {required_collateral_ratio}%"
            )
        if not 0 <= liquidation_bonus_bps < BPS_DENOMINATOR:
            raise ValidationError(
                f"liquidation bonus must be in [0, {BPS_DENOMINATOR}) bps"
            )
        if (collateral_token is None) != (debt_token is None):
            raise ValidationError("bind both tokens or neither")

        self.oracle = oracle
        self.required_collateral_ratio = required_collateral_ratio
        self.liquidation_threshold = liquidation_threshold
        self.liquidation_bonus_bps = liquidation_bonus_bps
        self.collateral_token = collateral_token
        self.debt_token = debt_token
        self.address = address
        self.positions: Dict[str, LendingPosition] = {}

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_position(self, user: str) -> Optional[LendingPosition]:
        return self.positions.get(user)

    def available_liquidity(self) -> Optional[int]:
        """Debt tokens the ledger can still lend, or None when unbounded."""
        if self.debt_token is None:
            return None
        return self.debt_token.balance_of(self.address)

    def collateral_value(self, user: str, price: Optional[int] = None) -> int:
        position = self.positions.get(user)
        if position is None or position.collateral_amount == 0:
            return 0
        if price is None:
            price = self.oracle.get_price()
        return mul_div(position.collateral_amount, price, WAD)

    def health_factor(self, user: str) -> int:
        """
        collateral_value * 100 / borrowed_value at the current oracle price.

        Returns INFINITE_HEALTH when the user has no debt.
        """
        position = self.positions.get(user)
        if position is None or position.borrowed_amount == 0:
            return INFINITE_HEALTH
        value = self.collateral_value(user)
        return mul_div(value, PERCENT, position.borrowed_amount)

    def is_liquidatable(self, user: str) -> bool:
        return self.health_factor(user) < self.liquidation_threshold

    def max_borrowable(self, user: str) -> int:
        """Largest additional borrow the ratio and liquidity both allow."""
        position = self.positions.get(user)
        if position is None:
            return 0
        ceiling = mul_div(
            self.collateral_value(user), PERCENT, self.required_collateral_ratio
        )
        headroom = max(0, ceiling - position.borrowed_amount)
        liquidity = self.available_liquidity()
        if liquidity is not None:
            headroom = min(headroom, liquidity)
        return headroom

    def collateral_needed(self, user: str, amount: int) -> int:
        """Extra collateral user must deposit before borrowing amount more."""
        position = self.positions.get(user)
        collateral = position.collateral_amount if position else 0
        borrowed = position.borrowed_amount if position else 0
        price = self.oracle.get_price()
        if price == 0:
            raise InvalidAmount("oracle price is zero; collateral has no value")
        required_value = mul_div(
            borrowed + amount, self.required_collateral_ratio, PERCENT, ROUND_UP
        )
        required = mul_div(required_value, WAD, price, ROUND_UP)
        return max(0, required - collateral)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def deposit(self, user: str, amount: int) -> LendingPosition:
        """Credit collateral to user, creating the position if needed."""
        require_positive(amount, "deposit amount")
        if self.collateral_token is not None:
            collect(self.collateral_token, user, self.address, amount)
        position = self.positions.setdefault(user, LendingPosition(owner=user))
        position.collateral_amount = check_uint(
            position.collateral_amount + amount, "collateral"
        )
        logger.debug(f"Deposit {user}: +{amount} collateral")
        return position

    def withdraw(self, user: str, amount: int) -> LendingPosition:
        """Return collateral as long as the remainder keeps the required ratio."""
        require_positive(amount, "withdraw amount")
        position = self.positions.get(user)
        if position is None or position.collateral_amount < amount:
            raise InvalidAmount(
                f"{user} cannot withdraw {amount} collateral", amount=amount
            )
        if position.borrowed_amount:
            remaining_value = mul_div(
                position.collateral_amount - amount, self.oracle.get_price(), WAD
            )
            required = position.borrowed_amount * self.required_collateral_ratio
            if remaining_value * PERCENT < required:
                raise Undercollateralized(
                    f"withdrawal would leave {user} under "
                    f"{self.required_collateral_ratio}%",
                    user=user,
                    required=required,
                    actual=remaining_value * PERCENT,
                )
        if self.collateral_token is not None:
            self.collateral_token.transfer(self.address, user, amount)
        position.collateral_amount -= amount
        self._prune(user)
        return position

    def borrow(self, user: str, amount: int) -> LendingPosition:
        """
        Lend amount of the debt token to user.

        Permitted only while
        (collateral * oracle_price) / (borrowed + amount) >= required_collateral_ratio.

        Raises:
            InvalidAmount: If amount <= 0
            Undercollateralized: If the ratio check fails
            InsufficientLiquidity: If the ledger holds too few debt tokens
        """
        require_positive(amount, "borrow amount")
        position = self.positions.get(user) or LendingPosition(owner=user)
        new_debt = check_uint(position.borrowed_amount + amount, "debt")

        value = self.collateral_value(user)
        required = new_debt * self.required_collateral_ratio
        if value * PERCENT < required:
            raise Undercollateralized(
                f"{user} collateral worth {value} cannot back {new_debt} debt "
                f"at {self.required_collateral_ratio}%",
                user=user,
                required=required,
                actual=value * PERCENT,
            )

        liquidity = self.available_liquidity()
        if liquidity is not None:
            if amount > liquidity:
                raise InsufficientLiquidity(
                    f"ledger holds {liquidity}, cannot lend {amount}",
                    requested=amount,
                    available=liquidity,
                )
            self.debt_token.transfer(self.address, user, amount)

        position.borrowed_amount = new_debt
        self.positions[user] = position
        logger.debug(f"Borrow {user}: +{amount} debt (total {new_debt})")
        return position

    def repay(self, user: str, amount: int) -> LendingPosition:
        """Reduce user's debt by amount."""
        require_positive(amount, "repay amount")
        position = self.positions.get(user)
        if position is None or position.borrowed_amount < amount:
            owed = position.borrowed_amount if position else 0
            raise InvalidAmount(
                f"{user} owes {owed}, cannot repay {amount}", amount=amount
            )
        if self.debt_token is not None:
            collect(self.debt_token, user, self.address, amount)
        position.borrowed_amount -= amount
        self._prune(user)
        logger.debug(f"Repay {user}: -{amount} debt")
        return position

    def liquidate(self, user: str, liquidator: str) -> LiquidationReceipt:
        """
        Seize collateral from an unhealthy position.

        The liquidator receives collateral worth the repaid debt plus the
        liquidation bonus at the current oracle price. When the collateral
        cannot cover that, all of it is seized and the debt is only reduced
        by its discounted value; the rest stays on the position.

        Raises:
            PositionHealthy: If health_factor(user) >= liquidation_threshold
        """
        health = self.health_factor(user)
        if health >= self.liquidation_threshold:
            raise PositionHealthy(
                f"{user} health {health}% is not below "
                f"{self.liquidation_threshold}%",
                user=user,
                health_factor=health,
                threshold=self.liquidation_threshold,
            )

        position = self.positions[user]
        price = self.oracle.get_price()
        if price == 0:
            raise InvalidAmount("oracle price is zero; collateral has no value")
        bonus_scale = BPS_DENOMINATOR + self.liquidation_bonus_bps

        full_seize = mul_div(
            mul_div(position.borrowed_amount, WAD, price), bonus_scale, BPS_DENOMINATOR
        )
        if full_seize <= position.collateral_amount:
            seized = full_seize
            debt_repaid = position.borrowed_amount
        else:
            seized = position.collateral_amount
            debt_repaid = min(
                position.borrowed_amount,
                mul_div(
                    mul_div(seized, price, WAD, ROUND_UP),
                    BPS_DENOMINATOR,
                    bonus_scale,
                    ROUND_UP,
                ),
            )
        if seized == 0 or debt_repaid == 0:
            raise InvalidAmount(f"nothing to liquidate for {user}")

        if self.debt_token is not None:
            collect(self.debt_token, liquidator, self.address, debt_repaid)
            self.collateral_token.transfer(self.address, liquidator, seized)

        position.collateral_amount -= seized
        position.borrowed_amount -= debt_repaid
        self._prune(user)
        logger.info(
            f"Liquidated {user} by {liquidator}: seized={seized} "
            f"repaid={debt_repaid} health={health}%"
        )
        return LiquidationReceipt(
            user=user,
            liquidator=liquidator,
            seized_collateral=seized,
            debt_repaid=debt_repaid,
            health_factor=health,
            price=price,
        )

    def _prune(self, user: str) -> None:
        position = self.positions.get(user)
        if position is not None and position.is_empty:
            del self.positions[user]

    def snapshot(self) -> Dict[str, Any]:
        return {
            "required_collateral_ratio": self.required_collateral_ratio,
            "liquidation_threshold": self.liquidation_threshold,
            "liquidation_bonus_bps": self.liquidation_bonus_bps,
            "positions": {
                user: (p.collateral_amount, p.borrowed_amount)
                for user, p in sorted(self.positions.items())
            },
        }
