"""
Token variants implementing the TokenLike capability.

StandardToken follows allowance semantics: a third party may only move funds
it was approved for. NativeToken has no allowances; only the owner can move
its own balance, the way a chain's native coin is pushed along with a call.
"""

from typing import Any, Dict, Tuple

from .exceptions import InsufficientAllowance, InsufficientBalance
from .fixed_point import check_uint, require_positive
from .interfaces import TokenLike
from .utils import get_logger

logger = get_logger(__name__)


class _Balances:
    """Balance bookkeeping shared by both token variants."""

    requires_approval = True

    def __init__(self, symbol: str):
        self.symbol = symbol
        self.balances: Dict[str, int] = {}
        self.total_supply = 0

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def mint(self, account: str, amount: int) -> None:
        """Credit new supply to account (used only when seeding a scenario)."""
        require_positive(amount, f"{self.symbol} mint amount")
        self.total_supply = check_uint(self.total_supply + amount, "total supply")
        self.balances[account] = self.balance_of(account) + amount

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        require_positive(amount, f"{self.symbol} transfer amount")
        available = self.balance_of(sender)
        if available < amount:
            raise InsufficientBalance(
                f"{sender} holds {available} {self.symbol}, needs {amount}",
                account=sender,
                requested=amount,
                available=available,
            )
        self.balances[sender] = available - amount
        if self.balances[sender] == 0:
            del self.balances[sender]
        self.balances[recipient] = self.balance_of(recipient) + amount
        logger.debug(f"{self.symbol} transfer {sender} -> {recipient}: {amount}")

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        self._move(sender, recipient, amount)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "balances": dict(sorted(self.balances.items())),
            "total_supply": self.total_supply,
        }


class StandardToken(_Balances):
    """Fungible token with approve/transfer_from allowances."""

    def __init__(self, symbol: str):
        super().__init__(symbol)
        self.allowances: Dict[Tuple[str, str], int] = {}

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Set the allowance spender may move out of owner's balance."""
        self.allowances[(owner, spender)] = check_uint(amount, "allowance")

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def transfer_from(
        self, spender: str, owner: str, recipient: str, amount: int
    ) -> None:
        if spender == owner:
            self._move(owner, recipient, amount)
            return
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise InsufficientAllowance(
                f"{spender} may move {allowed} {self.symbol} of {owner}, "
                f"needs {amount}",
                owner=owner,
                spender=spender,
            )
        self._move(owner, recipient, amount)
        self.allowances[(owner, spender)] = allowed - amount

    def snapshot(self) -> Dict[str, Any]:
        state = super().snapshot()
        state["allowances"] = {
            f"{owner}->{spender}": amount
            for (owner, spender), amount in sorted(self.allowances.items())
        }
        return state


class NativeToken(_Balances):
    """Native coin: value can only be pushed by its owner."""

    requires_approval = False

    def transfer_from(
        self, spender: str, owner: str, recipient: str, amount: int
    ) -> None:
        if spender != owner:
            raise InsufficientAllowance(
                f"{self.symbol} has no allowances; {spender} cannot move "
                f"funds of {owner}",
                owner=owner,
                spender=spender,
            )
        self._move(owner, recipient, amount)


def grant(token: TokenLike, owner: str, spender: str, amount: int) -> None:
    """Approve spender for amount when the token works with allowances."""
    if token.requires_approval:
        token.approve(owner, spender, amount)


def collect(token: TokenLike, payer: str, collector: str, amount: int) -> None:
    """
    Move amount from payer into collector on the collector's initiative.

    Standard tokens are pulled through the payer's allowance; native coins are
    pushed by the payer as part of the call.
    """
    if token.requires_approval:
        token.transfer_from(collector, payer, collector, amount)
    else:
        token.transfer_from(payer, payer, collector, amount)
