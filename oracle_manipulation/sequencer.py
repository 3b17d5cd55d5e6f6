"""
Atomic flash-loan attack sequencer.

Drives IDLE -> BORROWED -> MANIPULATED -> EXPLOITED -> REPAID on a cloned
snapshot of the simulation state, then either adopts the clone (COMMITTED) or
throws it away (REVERTED). The live state is never touched while a sequence
runs, so a revert needs no undo log.

Recoverable component errors become a REVERTED result. Fatal errors such as
ArithmeticOverflow propagate to the caller.
"""

from typing import List, Optional

from .amm import SwapDirection
from .analysis import compute_attack_costs, value_in_settlement
from .attack_types import (
    STEP_TARGETS,
    AttackPlan,
    ExploitKind,
    Outcome,
    ProfitPolicy,
    SequenceState,
    SimulationResult,
    StepKind,
    can_transition,
)
from .exceptions import RecoverableError, ValidationError
from .flash_lender import FlashObligation
from .state import SimulationState
from .tokens import grant
from .utils import get_logger

logger = get_logger(__name__)


class AttackSequencer:
    """
    Runs attack plans against a simulation state with all-or-nothing semantics.

    Attributes:
        state: Live state; replaced only by a committed sequence
        profit_policy: How attacker balances are turned into profit
        history: Results of every run(), in order
    """

    def __init__(
        self,
        state: SimulationState,
        profit_policy: ProfitPolicy = ProfitPolicy.MARK_TO_MARKET,
    ):
        self.state = state
        self.profit_policy = profit_policy
        self.history: List[SimulationResult] = []

    def run(self, plan: AttackPlan) -> SimulationResult:
        """Execute plan atomically; commit the working snapshot on success."""
        working = self.state.clone()
        result = _SequenceRun(working, plan, self.profit_policy).execute()
        if result.committed:
            self.state = working
            logger.info(result.format_log())
        else:
            logger.warning(f"{result.format_log()} reason={result.reason}")
        self.history.append(result)
        return result

    def preview(self, plan: AttackPlan) -> SimulationResult:
        """Report what run(plan) would return without ever committing."""
        return _SequenceRun(self.state.clone(), plan, self.profit_policy).execute()


class _SequenceRun:
    """One pass over a plan on a working snapshot."""

    def __init__(
        self, state: SimulationState, plan: AttackPlan, profit_policy: ProfitPolicy
    ):
        self.state = state
        self.plan = plan
        self.profit_policy = profit_policy
        self.attacker = plan.attacker
        self.sequence_state = SequenceState.IDLE
        self.obligation: Optional[FlashObligation] = None
        self.repaid = False
        self.oracle_price_at_exploit: Optional[int] = None

        amm = state.amm
        self.settlement = amm.token_in(plan.direction)
        self.other = amm.token_out(plan.direction)
        if self.settlement is None:
            raise ValidationError("attack sequences need a token-backed pool")
        if self.settlement.symbol not in state.lenders:
            raise ValidationError(
                f"no flash lender for {self.settlement.symbol}"
            )
        self.lender = state.lender_for(self.settlement.symbol)
        exploit = plan.exploit
        # The borrow exploit posts real collateral and receives real debt tokens
        if (
            exploit is not None
            and exploit.kind is ExploitKind.BORROW
            and state.ledger.collateral_token is None
        ):
            raise ValidationError("borrow exploit needs a token-backed ledger")
        if exploit is not None and exploit.kind is ExploitKind.LIQUIDATE:
            self.subject = exploit.target
        else:
            self.subject = self.attacker

    def execute(self) -> SimulationResult:
        amm, oracle, ledger = self.state.amm, self.state.oracle, self.state.ledger
        direction = self.plan.direction

        start_settlement = self.settlement.balance_of(self.attacker)
        self.start_other = start_other = self.other.balance_of(self.attacker)
        fees_start = dict(amm.fees_collected)
        valuation_price = amm.spot_price(direction.reverse)
        price_before = oracle.spot_price()
        self.price_after = price_before
        health_before = ledger.health_factor(self.subject)

        error: Optional[RecoverableError] = None
        failed_step: Optional[StepKind] = None
        for step in self.plan.steps:
            try:
                self._perform(step)
            except RecoverableError as exc:
                error, failed_step = exc, step
                break
            self._advance(STEP_TARGETS[step])
            oracle.observe()

        settlement_delta = self.settlement.balance_of(self.attacker) - start_settlement
        other_delta = self.other.balance_of(self.attacker) - start_other
        outstanding = (
            self.obligation.total if self.obligation and not self.repaid else 0
        )
        profit = settlement_delta - outstanding
        if self.profit_policy is ProfitPolicy.MARK_TO_MARKET:
            profit += value_in_settlement(other_delta, valuation_price)

        if error is not None:
            reason = f"{error.kind} during {failed_step.value}: {error}"
        elif profit <= 0:
            reason = "sequence completed without profit"
        else:
            reason = None
        outcome = Outcome.COMMITTED if reason is None else Outcome.REVERTED
        final_state = (
            SequenceState.COMMITTED
            if outcome is Outcome.COMMITTED
            else SequenceState.REVERTED
        )
        if self.sequence_state is SequenceState.REPAID:
            self._advance(final_state)

        costs = compute_attack_costs(
            price_before=price_before,
            price_after=self.price_after,
            manipulation_fee=amm.fees_collected[direction] - fees_start[direction],
            reverse_fee=(
                amm.fees_collected[direction.reverse] - fees_start[direction.reverse]
            ),
            flash_fee=self.obligation.fee if self.obligation else 0,
            net_profit=profit,
            valuation_price=valuation_price,
            settlement_symbol=self.settlement.symbol,
            other_symbol=self.other.symbol,
        )
        return SimulationResult(
            price_before=price_before,
            price_after=self.price_after,
            profit=profit,
            health_factor_before=health_before,
            health_factor_after=ledger.health_factor(self.subject),
            outcome=outcome,
            final_state=final_state,
            strategy=oracle.strategy_name,
            oracle_price_at_exploit=self.oracle_price_at_exploit,
            error=error.kind if error else None,
            reason=reason,
            balance_deltas=(
                (self.settlement.symbol, settlement_delta),
                (self.other.symbol, other_delta),
            ),
            costs=costs,
        )

    def _advance(self, target: SequenceState) -> None:
        if not can_transition(self.sequence_state, target):
            raise ValidationError(
                f"illegal transition {self.sequence_state.value} -> {target.value}"
            )
        logger.debug(f"Sequence {self.sequence_state.value} -> {target.value}")
        self.sequence_state = target

    def _perform(self, step: StepKind) -> None:
        if step is StepKind.FLASH_BORROW:
            self.obligation = self.lender.borrow(self.attacker, self.plan.flash_amount)
        elif step is StepKind.MANIPULATE:
            self._swap(self.settlement, self.plan.flash_amount, self.plan.direction)
            self.price_after = self.state.oracle.spot_price()
        elif step is StepKind.EXPLOIT:
            self.oracle_price_at_exploit = self.state.oracle.get_price()
            if self.plan.exploit.kind is ExploitKind.BORROW:
                self._exploit_borrow()
            else:
                self._exploit_liquidate()
        elif step is StepKind.REPAY:
            self._repay()

    def _swap(self, token, amount: int, direction: SwapDirection) -> int:
        amm = self.state.amm
        grant(token, self.attacker, amm.address, amount)
        return amm.swap(amount, direction, self.attacker)

    def _exploit_borrow(self) -> None:
        """Post the acquired collateral and borrow as much as the oracle allows."""
        ledger = self.state.ledger
        target = self.plan.exploit.borrow_amount
        if target is None:
            target = ledger.available_liquidity()

        collateral_token = ledger.collateral_token
        needed = ledger.collateral_needed(self.attacker, target)
        deposit = min(needed, collateral_token.balance_of(self.attacker))
        if deposit > 0:
            grant(collateral_token, self.attacker, ledger.address, deposit)
            ledger.deposit(self.attacker, deposit)

        amount = min(target, ledger.max_borrowable(self.attacker))
        if amount <= 0:
            # Let the ledger reject the full request with its own error
            amount = target
        ledger.borrow(self.attacker, amount)

    def _exploit_liquidate(self) -> None:
        ledger = self.state.ledger
        debt_token = ledger.debt_token
        if debt_token is not None:
            grant(
                debt_token,
                self.attacker,
                ledger.address,
                debt_token.balance_of(self.attacker),
            )
        ledger.liquidate(self.plan.exploit.target, self.attacker)

    def _repay(self) -> None:
        """Swap the acquired token back and settle the flash obligation."""
        surplus = self.other.balance_of(self.attacker) - self.start_other
        if surplus > 0:
            self._swap(self.other, surplus, self.plan.direction.reverse)
        grant(self.settlement, self.attacker, self.lender.address, self.obligation.total)
        self.lender.repay(self.attacker, self.obligation)
        self.repaid = True
