"""
Flash-loan pool with finite liquidity.

The lender hands out its own token balance for the duration of one atomic
sequence. The obligation (principal plus fee) must be repaid before the
sequence ends; the sequencer turns a shortfall into a reverted run.
"""

from dataclasses import dataclass
from typing import Any, Dict

from .exceptions import InsufficientLiquidity, RepaymentShortfall, ValidationError
from .fixed_point import BPS_DENOMINATOR, ROUND_UP, check_uint, mul_div, require_positive
from .interfaces import TokenLike
from .tokens import collect
from .utils import get_logger

logger = get_logger(__name__)

DEFAULT_FLASH_FEE_BPS = 9


@dataclass(frozen=True)
class FlashObligation:
    """Amount owed back to the lender at the end of the sequence."""

    amount: int
    fee: int

    @property
    def total(self) -> int:
        return self.amount + self.fee


class FlashLender:
    """
    Lends its token balance within a single sequence.

    Attributes:
        token: Token lent out
        address: Account holding the lendable balance
        fee_bps: Fee charged on the principal, rounded up
        fees_earned: Cumulative fees received
        outstanding: Principal currently lent out
    """

    def __init__(
        self,
        token: TokenLike,
        address: str = "flash_lender",
        fee_bps: int = DEFAULT_FLASH_FEE_BPS,
    ):
        if isinstance(fee_bps, bool) or not isinstance(fee_bps, int):
            raise ValidationError(f"flash fee must be an integer, got {fee_bps!r}")
        if not 0 <= fee_bps < BPS_DENOMINATOR:
            raise ValidationError(f"flash fee must be in [0, {BPS_DENOMINATOR}) bps")
        self.token = token
        self.address = address
        self.fee_bps = fee_bps
        self.fees_earned = 0
        self.outstanding = 0

    def available(self) -> int:
        return self.token.balance_of(self.address)

    def fee_for(self, amount: int) -> int:
        return mul_div(amount, self.fee_bps, BPS_DENOMINATOR, ROUND_UP)

    def borrow(self, borrower: str, amount: int) -> FlashObligation:
        """
        Transfer amount to borrower and return what is owed.

        Raises:
            InvalidAmount: If amount <= 0
            InsufficientLiquidity: If the lender holds less than amount
        """
        require_positive(amount, "flash amount")
        available = self.available()
        if amount > available:
            raise InsufficientLiquidity(
                f"flash lender holds {available} {self.token.symbol}, "
                f"cannot lend {amount}",
                requested=amount,
                available=available,
            )
        self.token.transfer(self.address, borrower, amount)
        self.outstanding = check_uint(self.outstanding + amount, "outstanding")
        obligation = FlashObligation(amount=amount, fee=self.fee_for(amount))
        logger.debug(
            f"Flash loan {amount} {self.token.symbol} to {borrower}, "
            f"owes {obligation.total}"
        )
        return obligation

    def repay(self, borrower: str, obligation: FlashObligation) -> None:
        """
        Collect principal plus fee from borrower.

        Raises:
            RepaymentShortfall: If borrower cannot cover the full obligation
        """
        held = self.token.balance_of(borrower)
        if held < obligation.total:
            raise RepaymentShortfall(
                f"{borrower} holds {held} {self.token.symbol}, "
                f"owes {obligation.total}",
                owed=obligation.total,
                available=held,
            )
        collect(self.token, borrower, self.address, obligation.total)
        self.outstanding -= obligation.amount
        self.fees_earned += obligation.fee
        logger.debug(f"Flash loan repaid by {borrower}: {obligation.total}")

    def snapshot(self) -> Dict[str, Any]:
        return {
            "symbol": self.token.symbol,
            "fee_bps": self.fee_bps,
            "fees_earned": self.fees_earned,
            "outstanding": self.outstanding,
        }
