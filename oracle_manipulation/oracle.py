"""
Price oracle fed by the AMM's live reserves.

The feed delegates to a pluggable strategy. Every strategy exposes the same
get_price() contract so one attack plan can be replayed against each:

- SpotStrategy: the raw spot price, no smoothing (the vulnerable design)
- TimeWeightedStrategy: mean of the last `window` per-step samples
- MedianOfNStrategy: median of the last `n` per-step samples

Samples are recorded once per sequence step through OracleFeed.observe().
An empty history is seeded with the first observed price, which stands in
for the price that held before the simulation started.
"""

from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .amm import ReserveAMM, SwapDirection
from .exceptions import ValidationError
from .utils import get_logger

logger = get_logger(__name__)


class SpotStrategy:
    """Naive oracle: whatever the pool says right now."""

    name = "spot"

    def record(self, price: int) -> None:
        pass

    def current(self, spot: int) -> int:
        return spot

    def samples(self) -> List[int]:
        return []


class _WindowedStrategy:
    """Shared bounded sample history."""

    def __init__(self, size: int, label: str):
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise ValidationError(f"{label} must be a positive integer, got {size!r}")
        self.size = size
        self._samples: Deque[int] = deque(maxlen=size)

    def record(self, price: int) -> None:
        if not self._samples:
            self._samples.extend([price] * self.size)
        else:
            self._samples.append(price)

    def samples(self) -> List[int]:
        return list(self._samples)


class TimeWeightedStrategy(_WindowedStrategy):
    """
    Average of the last `window` step samples.

    Each sample covers exactly one step, so the plain mean is the
    time-weighted mean. A single manipulated step moves the result by
    (manipulated - fair) / window.
    """

    def __init__(self, window: int):
        super().__init__(window, "window")

    @property
    def window(self) -> int:
        return self.size

    @property
    def name(self) -> str:
        return f"twap-{self.size}"

    def current(self, spot: int) -> int:
        if not self._samples:
            return spot
        return sum(self._samples) // len(self._samples)


class MedianOfNStrategy(_WindowedStrategy):
    """Median of the last `n` step samples; ignores a lone excursion."""

    def __init__(self, n: int):
        super().__init__(n, "n")

    @property
    def n(self) -> int:
        return self.size

    @property
    def name(self) -> str:
        return f"median-{self.size}"

    def current(self, spot: int) -> int:
        if not self._samples:
            return spot
        ordered = sorted(self._samples)
        middle = len(ordered) // 2
        if len(ordered) % 2:
            return ordered[middle]
        return (ordered[middle - 1] + ordered[middle]) // 2


def strategy_from_name(name: str, window: int = 5, samples: int = 3):
    """Build a strategy from its config name ("spot", "twap" or "median")."""
    if name == "spot":
        return SpotStrategy()
    if name == "twap":
        return TimeWeightedStrategy(window)
    if name == "median":
        return MedianOfNStrategy(samples)
    raise ValidationError(f"Unknown oracle strategy: {name}")


class OracleFeed:
    """
    Reads the price of one pool token in units of the other.

    Attributes:
        amm: Pool the price is read from
        strategy: Pricing strategy applied on top of the spot price
        direction: Swap direction whose input token is being priced
    """

    def __init__(
        self,
        amm: ReserveAMM,
        strategy: Optional[Any] = None,
        direction: SwapDirection = SwapDirection.A_TO_B,
    ):
        self.amm = amm
        self.strategy = strategy if strategy is not None else SpotStrategy()
        self.direction = direction
        if not amm.is_empty:
            self.observe()

    @property
    def strategy_name(self) -> str:
        return self.strategy.name

    def spot_price(self) -> int:
        return self.amm.spot_price(self.direction)

    def observe(self) -> int:
        """Record the current spot price as one step sample."""
        spot = self.spot_price()
        self.strategy.record(spot)
        return spot

    def get_price(self) -> int:
        """Price evaluated now; never cached between calls."""
        price = self.strategy.current(self.spot_price())
        logger.debug(f"Oracle {self.strategy_name} price: {price}")
        return price

    def snapshot(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy_name,
            "direction": self.direction.value,
            "samples": self.strategy.samples(),
        }
