"""
Exception hierarchy for the oracle manipulation simulator.

Recoverable errors reject a single operation without mutating state and are
converted into a REVERTED outcome by the attack sequencer. Fatal errors signal
a modeling defect and abort the run.
"""

from typing import Any, Dict, Optional


class OracleManipulationError(Exception):
    """Base exception for all simulator errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}

    @property
    def kind(self) -> str:
        """Short error kind name used in simulation results."""
        return type(self).__name__


class ConfigurationError(OracleManipulationError):
    """Raised when there are configuration-related issues."""

    pass


class ValidationError(OracleManipulationError):
    """Raised when validation of data or configuration fails."""

    pass


class RecoverableError(OracleManipulationError):
    """Operation rejected before any state mutation."""

    pass


class FatalError(OracleManipulationError):
    """Run must abort; never turned into a simulation outcome."""

    pass


class InvalidAmount(RecoverableError):
    """Raised for non-positive or malformed quantities."""

    def __init__(
        self,
        message: str,
        amount: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.amount = amount


class InsufficientLiquidity(RecoverableError):
    """Raised when an operation would drain a reserve or lending pool."""

    def __init__(
        self,
        message: str,
        requested: Optional[int] = None,
        available: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.requested = requested
        self.available = available


class Undercollateralized(RecoverableError):
    """Raised when a borrow would breach the required collateral ratio."""

    def __init__(
        self,
        message: str,
        user: Optional[str] = None,
        required: Optional[int] = None,
        actual: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.user = user
        self.required = required
        self.actual = actual


class PositionHealthy(RecoverableError):
    """Raised when liquidating a position at or above the threshold."""

    def __init__(
        self,
        message: str,
        user: Optional[str] = None,
        health_factor: Optional[int] = None,
        threshold: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.user = user
        self.health_factor = health_factor
        self.threshold = threshold


class RepaymentShortfall(RecoverableError):
    """Raised when the flash loan obligation cannot be settled."""

    def __init__(
        self,
        message: str,
        owed: Optional[int] = None,
        available: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.owed = owed
        self.available = available


class InsufficientBalance(RecoverableError):
    """Raised when an account cannot cover a token transfer."""

    def __init__(
        self,
        message: str,
        account: Optional[str] = None,
        requested: Optional[int] = None,
        available: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.account = account
        self.requested = requested
        self.available = available


class InsufficientAllowance(RecoverableError):
    """Raised when a spender moves more than it was approved for."""

    def __init__(
        self,
        message: str,
        owner: Optional[str] = None,
        spender: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.owner = owner
        self.spender = spender


class ArithmeticOverflow(FatalError):
    """Raised when a fixed-point value leaves the representable range."""

    def __init__(
        self,
        message: str,
        value: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.value = value
