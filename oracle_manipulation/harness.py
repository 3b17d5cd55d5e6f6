"""
Deterministic scenario runner.

Builds a fresh simulation state from a validated ScenarioConfig, runs one
attack plan through the sequencer and returns its SimulationResult. Nothing
in here reads the clock, the network or a random source: the same config and
plan always produce the same result.
"""

import copy
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from .amm import ReserveAMM, SwapDirection
from .attack_types import (
    AttackPlan,
    ExploitAction,
    ExploitKind,
    ProfitPolicy,
    SimulationResult,
)
from .config_loader import get_default_scenario
from .config_schema import AttackPlanConfig, ScenarioConfig
from .exceptions import ValidationError
from .fixed_point import to_wad
from .flash_lender import FlashLender
from .lending import LendingLedger
from .oracle import OracleFeed, strategy_from_name
from .sequencer import AttackSequencer
from .state import SimulationState
from .tokens import NativeToken, StandardToken, grant
from .utils import get_logger

logger = get_logger(__name__)

AMM_ADDRESS = "amm"
LENDING_ADDRESS = "lending"

StrategySpec = Union[str, Any]


def lender_address(symbol: str) -> str:
    return f"flash_lender_{symbol.lower()}"


def resolve_strategy(config: ScenarioConfig, strategy: Optional[StrategySpec]):
    """Turn a strategy name, object or None into a fresh strategy instance."""
    if strategy is None:
        strategy = config.oracle.strategy
    if isinstance(strategy, str):
        return strategy_from_name(
            strategy, window=config.oracle.window, samples=config.oracle.samples
        )
    # Never share sample history between states
    return copy.deepcopy(strategy)


def build_state(
    config: ScenarioConfig, strategy: Optional[StrategySpec] = None
) -> SimulationState:
    """
    Build the initial world described by config.

    Pool reserves, ledger liquidity and flash liquidity are minted straight to
    the component addresses. Pre-existing positions are opened with real
    deposit and borrow calls so they obey the same checks as the attacker.
    """
    pool = config.pool
    tokens = {}
    for symbol in (pool.token_a, pool.token_b):
        if symbol == config.native_token:
            tokens[symbol] = NativeToken(symbol)
        else:
            tokens[symbol] = StandardToken(symbol)

    reserve_a, reserve_b = to_wad(pool.reserve_a), to_wad(pool.reserve_b)
    tokens[pool.token_a].mint(AMM_ADDRESS, reserve_a)
    tokens[pool.token_b].mint(AMM_ADDRESS, reserve_b)
    amm = ReserveAMM(
        reserve_a,
        reserve_b,
        pool.fee_bps,
        token_a=tokens[pool.token_a],
        token_b=tokens[pool.token_b],
        address=AMM_ADDRESS,
    )

    lending = config.lending
    # The oracle prices one unit of collateral in debt-token units
    if lending.collateral_token == pool.token_a:
        oracle_direction = SwapDirection.A_TO_B
    else:
        oracle_direction = SwapDirection.B_TO_A
    oracle = OracleFeed(amm, resolve_strategy(config, strategy), oracle_direction)

    ledger = LendingLedger(
        oracle,
        required_collateral_ratio=lending.required_collateral_ratio,
        liquidation_threshold=lending.liquidation_threshold,
        liquidation_bonus_bps=lending.liquidation_bonus_bps,
        collateral_token=tokens[lending.collateral_token],
        debt_token=tokens[lending.debt_token],
        address=LENDING_ADDRESS,
    )
    if lending.liquidity > 0:
        tokens[lending.debt_token].mint(LENDING_ADDRESS, to_wad(lending.liquidity))

    lenders = {}
    for loan in config.flash_loans:
        address = lender_address(loan.token)
        tokens[loan.token].mint(address, to_wad(loan.liquidity))
        lenders[loan.token] = FlashLender(
            tokens[loan.token], address=address, fee_bps=loan.fee_bps
        )

    for account, holdings in sorted(config.balances.items()):
        for symbol, amount in sorted(holdings.items()):
            if amount > 0:
                tokens[symbol].mint(account, to_wad(amount))

    collateral_token = tokens[lending.collateral_token]
    for position in config.positions:
        collateral = to_wad(position.collateral)
        collateral_token.mint(position.owner, collateral)
        grant(collateral_token, position.owner, LENDING_ADDRESS, collateral)
        ledger.deposit(position.owner, collateral)
        if position.borrowed > 0:
            ledger.borrow(position.owner, to_wad(position.borrowed))

    return SimulationState(
        amm=amm, oracle=oracle, ledger=ledger, lenders=lenders, tokens=tokens
    )


def plan_from_config(
    config: ScenarioConfig, attack: Optional[AttackPlanConfig] = None
) -> AttackPlan:
    """Translate an attack plan config into an AttackPlan."""
    attack = attack or config.attack
    if attack is None:
        raise ValidationError(f"scenario {config.name} has no attack plan")

    exploit = None
    if attack.exploit == "borrow":
        exploit = ExploitAction(
            ExploitKind.BORROW,
            borrow_amount=(
                to_wad(attack.borrow_amount) if attack.borrow_amount else None
            ),
        )
    elif attack.exploit == "liquidate":
        exploit = ExploitAction(ExploitKind.LIQUIDATE, target=attack.target)

    return AttackPlan(
        flash_amount=to_wad(attack.flash_amount),
        direction=SwapDirection(attack.direction),
        exploit=exploit,
        attacker=attack.attacker,
    )


class SimulationHarness:
    """
    Runs attack plans against freshly built copies of one scenario.

    Attributes:
        config: Validated scenario configuration
        profit_policy: Valuation policy handed to every sequencer
        last_state: Live state after the most recent run_scenario()
    """

    def __init__(self, config: Optional[ScenarioConfig] = None):
        self.config = config or get_default_scenario()
        self.profit_policy = ProfitPolicy(self.config.profit_policy)
        self.last_state: Optional[SimulationState] = None

    def plan_from_config(self, attack: Optional[AttackPlanConfig] = None) -> AttackPlan:
        return plan_from_config(self.config, attack)

    def build_state(self, strategy: Optional[StrategySpec] = None) -> SimulationState:
        return build_state(self.config, strategy)

    def _run(
        self, plan: AttackPlan, strategy: Optional[StrategySpec]
    ) -> Tuple[SimulationResult, SimulationState]:
        sequencer = AttackSequencer(self.build_state(strategy), self.profit_policy)
        result = sequencer.run(plan)
        return result, sequencer.state

    def run_scenario(
        self,
        plan: Optional[AttackPlan] = None,
        oracle_strategy: Optional[StrategySpec] = None,
    ) -> SimulationResult:
        """
        Run plan against a fresh initial state using oracle_strategy.

        Args:
            plan: Attack plan; defaults to the scenario's configured attack
            oracle_strategy: Strategy name ("spot", "twap", "median"), strategy
                object, or None for the configured strategy

        Returns:
            Structured SimulationResult
        """
        if plan is None:
            plan = self.plan_from_config()
        result, self.last_state = self._run(plan, oracle_strategy)
        return result

    def compare_strategies(
        self,
        plan: AttackPlan,
        strategies: Iterable[StrategySpec],
        max_workers: int = 1,
    ) -> Dict[str, SimulationResult]:
        """
        Run the same plan against each strategy, each on its own fresh state.

        Results are keyed by strategy name in the order strategies were given.
        With max_workers > 1 the runs share no mutable state and execute on a
        thread pool.
        """
        resolved = [resolve_strategy(self.config, s) for s in strategies]
        names = [strategy.name for strategy in resolved]
        if len(set(names)) != len(names):
            raise ValidationError(f"duplicate strategies in comparison: {names}")

        if max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = [executor.submit(self._run, plan, s) for s in resolved]
                results = [future.result()[0] for future in futures]
        else:
            results = [self._run(plan, s)[0] for s in resolved]

        comparison = dict(zip(names, results))
        for name, result in comparison.items():
            logger.info(f"Comparison {name}: {result.outcome.value}")
        return comparison
