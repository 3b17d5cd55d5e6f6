"""
Single source of truth for attack cost and profitability math.

Every cost figure attached to a SimulationResult is computed here, from the
integer amounts the sequence actually moved. Decimal is only used for the
derived percentages; fixed-point amounts stay integers.

Conversion policy:
- Amounts: WAD integers, settlement-token units unless named otherwise
- Price impact: signed integer basis points, rounded half-even
- Output: to_dict() keeps integers exact and renders percents as float
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from .fixed_point import BPS_DENOMINATOR, WAD, bps_to_pct, mul_div
from .utils import format_signed_wad, format_wad


def price_impact_bps(price_before: int, price_after: int) -> int:
    """Signed move from price_before to price_after in basis points.

    Examples:
        >>> price_impact_bps(100, 400)
        30000
        >>> price_impact_bps(100, 75)
        -2500
    """
    if price_before <= 0:
        return 0
    change = Decimal(price_after - price_before) / Decimal(price_before)
    return int((change * Decimal(BPS_DENOMINATOR)).to_integral_value())


def value_in_settlement(amount: int, price: int) -> int:
    """Value a signed other-token amount at a WAD price, rounding toward zero."""
    value = mul_div(abs(amount), price, WAD)
    return value if amount >= 0 else -value


@dataclass(frozen=True)
class AttackCosts:
    """
    Cost breakdown of one attack sequence.

    Swap fees are kept in the token they were paid in; reverse_fee_value is
    the reverse-leg fee valued in settlement-token units at the pre-attack
    price.
    """

    # Costs
    manipulation_fee: int  # Fee paid on the manipulation swap (settlement token)
    reverse_fee: int  # Fee paid on the swap back (other token)
    reverse_fee_value: int
    flash_fee: int

    # Derived outputs
    total_cost: int
    gross_profit: int  # Profit before any cost was paid
    net_profit: int
    price_impact_bps: int

    # Metadata
    settlement_symbol: str
    other_symbol: str

    @property
    def price_impact_pct(self) -> Decimal:
        return bps_to_pct(self.price_impact_bps)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "manipulation_fee": self.manipulation_fee,
            "reverse_fee": self.reverse_fee,
            "reverse_fee_value": self.reverse_fee_value,
            "flash_fee": self.flash_fee,
            "total_cost": self.total_cost,
            "gross_profit": self.gross_profit,
            "net_profit": self.net_profit,
            "price_impact_bps": self.price_impact_bps,
            "price_impact_pct": float(self.price_impact_pct),
            "settlement_symbol": self.settlement_symbol,
            "other_symbol": self.other_symbol,
        }

    def format_log(self) -> str:
        """Format for consistent logging."""
        return (
            f"Net {format_signed_wad(self.net_profit, 4)} {self.settlement_symbol} "
            f"(Gross {format_signed_wad(self.gross_profit, 4)} - "
            f"Swap fees {format_wad(self.manipulation_fee, 4)} "
            f"+ {format_wad(self.reverse_fee_value, 4)} - "
            f"Flash fee {format_wad(self.flash_fee, 4)}) "
            f"impact {self.price_impact_pct:+.2f}%"
        )


def compute_attack_costs(
    price_before: int,
    price_after: int,
    manipulation_fee: int,
    reverse_fee: int,
    flash_fee: int,
    net_profit: int,
    valuation_price: int,
    settlement_symbol: str,
    other_symbol: str,
) -> AttackCosts:
    """
    Compute the cost breakdown of an attack from the amounts it moved.

    This is the ONLY function that derives gross profit and total cost.

    Args:
        price_before: Oracle-side spot price before the manipulation (WAD)
        price_after: Oracle-side spot price right after it (WAD)
        manipulation_fee: Pool fee on the manipulation swap, settlement units
        reverse_fee: Pool fee on the reverse swap, other-token units
        flash_fee: Flash-loan fee, settlement units
        net_profit: Signed profit the sequence realized
        valuation_price: Price of one other token in settlement units (WAD)

    Example:
        >>> costs = compute_attack_costs(10**14, 4 * 10**14, 3, 0, 9, 100, 10**18, "ETH", "GAMMA")
        >>> costs.gross_profit
        112
        >>> costs.price_impact_bps
        30000
    """
    reverse_fee_value = mul_div(reverse_fee, valuation_price, WAD)
    total_cost = manipulation_fee + reverse_fee_value + flash_fee
    return AttackCosts(
        manipulation_fee=manipulation_fee,
        reverse_fee=reverse_fee,
        reverse_fee_value=reverse_fee_value,
        flash_fee=flash_fee,
        total_cost=total_cost,
        gross_profit=net_profit + total_cost,
        net_profit=net_profit,
        price_impact_bps=price_impact_bps(price_before, price_after),
        settlement_symbol=settlement_symbol,
        other_symbol=other_symbol,
    )
