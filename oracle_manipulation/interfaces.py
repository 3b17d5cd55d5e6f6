"""
Capability interfaces shared by the simulated protocols.

Pools, ledgers and the attack sequencer only ever talk to tokens through this
protocol, so any token variant can back any component.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenLike(Protocol):
    """Minimal token capability: balances and two ways to move them."""

    symbol: str
    requires_approval: bool

    def balance_of(self, account: str) -> int:
        """Get the WAD balance held by account."""
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """Move amount from sender to recipient on the sender's behalf."""
        ...

    def transfer_from(
        self, spender: str, owner: str, recipient: str, amount: int
    ) -> None:
        """Move amount from owner to recipient on the spender's behalf."""
        ...
