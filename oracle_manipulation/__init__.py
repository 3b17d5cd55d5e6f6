"""
Oracle Manipulation Simulator.

Adversarial simulation of a constant-product AMM, an oracle reading its live
reserves, and a lending ledger that trusts that oracle. An attack sequencer
runs flash-loan manipulations atomically against cloned state so each oracle
design can be shown to be exploitable or resistant.
"""

from oracle_manipulation.version import __version__

PROJECT_NAME = "oracle-manipulation-sim"
VERSION = __version__

# Export main components for easier imports
from oracle_manipulation.amm import ReserveAMM, Reserves, SwapDirection
from oracle_manipulation.attack_types import (
    AttackPlan,
    ExploitAction,
    ExploitKind,
    Outcome,
    ProfitPolicy,
    SequenceState,
    SimulationResult,
    StepKind,
)
from oracle_manipulation.exceptions import (
    ArithmeticOverflow,
    InsufficientLiquidity,
    InvalidAmount,
    OracleManipulationError,
    PositionHealthy,
    RepaymentShortfall,
    Undercollateralized,
)
from oracle_manipulation.flash_lender import FlashLender
from oracle_manipulation.harness import SimulationHarness, build_state
from oracle_manipulation.lending import INFINITE_HEALTH, LendingLedger
from oracle_manipulation.oracle import (
    MedianOfNStrategy,
    OracleFeed,
    SpotStrategy,
    TimeWeightedStrategy,
)
from oracle_manipulation.sequencer import AttackSequencer
from oracle_manipulation.state import SimulationState
from oracle_manipulation.tokens import NativeToken, StandardToken

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "ReserveAMM",
    "Reserves",
    "SwapDirection",
    "OracleFeed",
    "SpotStrategy",
    "TimeWeightedStrategy",
    "MedianOfNStrategy",
    "LendingLedger",
    "INFINITE_HEALTH",
    "FlashLender",
    "StandardToken",
    "NativeToken",
    "AttackPlan",
    "ExploitAction",
    "ExploitKind",
    "StepKind",
    "SequenceState",
    "Outcome",
    "ProfitPolicy",
    "SimulationResult",
    "AttackSequencer",
    "SimulationState",
    "SimulationHarness",
    "build_state",
    "OracleManipulationError",
    "InvalidAmount",
    "InsufficientLiquidity",
    "Undercollateralized",
    "PositionHealthy",
    "RepaymentShortfall",
    "ArithmeticOverflow",
]
