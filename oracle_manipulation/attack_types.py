"""
Type definitions for the attack sequencer.
Contains enums, the allowed state transitions and the plan/result dataclasses.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .amm import SwapDirection
from .analysis import AttackCosts
from .exceptions import ValidationError
from .fixed_point import MAX_UINT256, require_positive
from .utils import format_signed_wad, format_wad


class SequenceState(Enum):
    """
    Enumeration for tracking the progress of one atomic attack sequence.

    Values:
        IDLE: Nothing borrowed yet
        BORROWED: Flash loan received, obligation outstanding
        MANIPULATED: Manipulation swap executed against the pool
        EXPLOITED: Ledger action taken at the skewed oracle price
        REPAID: Position unwound and flash obligation settled
        COMMITTED: Working snapshot adopted as the live state
        REVERTED: Working snapshot discarded, live state untouched
    """

    IDLE = "idle"
    BORROWED = "borrowed"
    MANIPULATED = "manipulated"
    EXPLOITED = "exploited"
    REPAID = "repaid"
    COMMITTED = "committed"
    REVERTED = "reverted"


class Outcome(Enum):
    """Terminal outcome reported in a SimulationResult"""

    COMMITTED = "committed"
    REVERTED = "reverted"


class StepKind(Enum):
    """Actions an attack plan can schedule"""

    FLASH_BORROW = "flash_borrow"
    MANIPULATE = "manipulate"
    EXPLOIT = "exploit"
    REPAY = "repay"


class ExploitKind(Enum):
    """Ledger action taken while the oracle is skewed"""

    BORROW = "borrow"
    LIQUIDATE = "liquidate"


class ProfitPolicy(Enum):
    """
    How the attacker's result is valued.

    Values:
        MARK_TO_MARKET: Settlement-token delta plus the other-token delta
            valued at the pre-attack price
        SETTLEMENT_ONLY: Settlement-token delta only; other-token balances
            are reported but not valued
    """

    MARK_TO_MARKET = "mark_to_market"
    SETTLEMENT_ONLY = "settlement_only"


TRANSITIONS: Dict[SequenceState, Tuple[SequenceState, ...]] = {
    SequenceState.IDLE: (SequenceState.BORROWED,),
    SequenceState.BORROWED: (SequenceState.MANIPULATED,),
    SequenceState.MANIPULATED: (SequenceState.EXPLOITED, SequenceState.REPAID),
    SequenceState.EXPLOITED: (SequenceState.REPAID,),
    SequenceState.REPAID: (SequenceState.COMMITTED, SequenceState.REVERTED),
    SequenceState.COMMITTED: (),
    SequenceState.REVERTED: (),
}

STEP_TARGETS: Dict[StepKind, SequenceState] = {
    StepKind.FLASH_BORROW: SequenceState.BORROWED,
    StepKind.MANIPULATE: SequenceState.MANIPULATED,
    StepKind.EXPLOIT: SequenceState.EXPLOITED,
    StepKind.REPAY: SequenceState.REPAID,
}

DEFAULT_STEPS = (
    StepKind.FLASH_BORROW,
    StepKind.MANIPULATE,
    StepKind.EXPLOIT,
    StepKind.REPAY,
)
CONTROL_STEPS = (StepKind.FLASH_BORROW, StepKind.MANIPULATE, StepKind.REPAY)


def can_transition(current: SequenceState, target: SequenceState) -> bool:
    return target in TRANSITIONS[current]


@dataclass(frozen=True)
class ExploitAction:
    """Ledger action performed in the EXPLOIT step"""

    kind: ExploitKind
    borrow_amount: Optional[int] = None  # None borrows all available liquidity
    target: Optional[str] = None  # Position owner to liquidate

    def __post_init__(self):
        if self.kind is ExploitKind.LIQUIDATE and not self.target:
            raise ValidationError("liquidate exploit requires a target")
        if self.borrow_amount is not None:
            require_positive(self.borrow_amount, "borrow_amount")


@dataclass(frozen=True)
class AttackPlan:
    """
    One atomic attack: flash borrow, skew the pool, exploit, unwind.

    The flash loan is taken in the pool's input token for `direction`, which is
    also the token the obligation is settled in. Without an exploit the plan
    is a control run that only moves the pool and back.
    """

    flash_amount: int
    direction: SwapDirection
    exploit: Optional[ExploitAction] = None
    steps: Optional[Tuple[StepKind, ...]] = None
    attacker: str = "attacker"

    def __post_init__(self):
        require_positive(self.flash_amount, "flash_amount")
        if self.steps is None:
            steps = DEFAULT_STEPS if self.exploit is not None else CONTROL_STEPS
            object.__setattr__(self, "steps", steps)
        else:
            object.__setattr__(self, "steps", tuple(self.steps))

        state = SequenceState.IDLE
        for step in self.steps:
            target = STEP_TARGETS[step]
            if not can_transition(state, target):
                raise ValidationError(
                    f"step {step.value} cannot follow state {state.value}"
                )
            state = target
        if state is not SequenceState.REPAID:
            raise ValidationError("attack plan must end by repaying the flash loan")

        has_exploit_step = StepKind.EXPLOIT in self.steps
        if has_exploit_step != (self.exploit is not None):
            raise ValidationError(
                "an exploit action requires an EXPLOIT step and vice versa"
            )


@dataclass(frozen=True)
class SimulationResult:
    """
    Immutable record of one attack sequence.

    Prices are oracle-direction spot prices (WAD). Health factors are integer
    percentages of the position the exploit targets; MAX_UINT256 means no debt.
    profit is signed and in settlement-token units.
    """

    price_before: int
    price_after: int
    profit: int
    health_factor_before: int
    health_factor_after: int
    outcome: Outcome
    final_state: SequenceState
    strategy: str
    oracle_price_at_exploit: Optional[int] = None
    error: Optional[str] = None
    reason: Optional[str] = None
    balance_deltas: Tuple[Tuple[str, int], ...] = ()
    costs: Optional[AttackCosts] = None

    @property
    def committed(self) -> bool:
        return self.outcome is Outcome.COMMITTED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "outcome": self.outcome.value,
            "final_state": self.final_state.value,
            "strategy": self.strategy,
            "price_before": self.price_before,
            "price_after": self.price_after,
            "oracle_price_at_exploit": self.oracle_price_at_exploit,
            "profit": self.profit,
            "health_factor_before": _health_repr(self.health_factor_before),
            "health_factor_after": _health_repr(self.health_factor_after),
            "error": self.error,
            "reason": self.reason,
            "balance_deltas": dict(self.balance_deltas),
            "costs": self.costs.to_dict() if self.costs else None,
        }

    def format_log(self) -> str:
        """Single-line summary for logs."""
        symbol = self.costs.settlement_symbol if self.costs else ""
        text = (
            f"[{self.strategy}] {self.outcome.value.upper()} "
            f"profit={format_signed_wad(self.profit, 4)} {symbol} "
            f"price {format_wad(self.price_before, 8)} -> "
            f"{format_wad(self.price_after, 8)} "
            f"health {_health_repr(self.health_factor_before)}% -> "
            f"{_health_repr(self.health_factor_after)}%"
        )
        if self.error:
            text += f" error={self.error}"
        return text


def _health_repr(value: int):
    return "inf" if value == MAX_UINT256 else value
