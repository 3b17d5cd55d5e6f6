"""
Simulation state container and its snapshot/clone mechanics.

Components reference each other (the ledger holds the oracle, the oracle holds
the pool, everything holds tokens), so a clone is taken with one deepcopy of
the whole container. That keeps every cross-reference pointing inside the
clone and nothing mutable is shared with the original.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict

from .amm import ReserveAMM
from .flash_lender import FlashLender
from .interfaces import TokenLike
from .lending import LendingLedger
from .oracle import OracleFeed


@dataclass
class SimulationState:
    """Pool, oracle, ledger, flash lenders and token balances of one world."""

    amm: ReserveAMM
    oracle: OracleFeed
    ledger: LendingLedger
    lenders: Dict[str, FlashLender] = field(default_factory=dict)
    tokens: Dict[str, TokenLike] = field(default_factory=dict)

    def clone(self) -> "SimulationState":
        return copy.deepcopy(self)

    def lender_for(self, symbol: str) -> FlashLender:
        return self.lenders[symbol]

    def fingerprint(self) -> Dict[str, Any]:
        """Plain-dict view of every mutable field, for equality checks."""
        return {
            "amm": self.amm.snapshot(),
            "oracle": self.oracle.snapshot(),
            "ledger": self.ledger.snapshot(),
            "lenders": {
                symbol: lender.snapshot()
                for symbol, lender in sorted(self.lenders.items())
            },
            "tokens": {
                symbol: token.snapshot() for symbol, token in sorted(self.tokens.items())
            },
        }
