"""
Scenario configuration schema validation using Pydantic

Amounts are human-readable token quantities (e.g. "1000000" or 100.5) and are
converted to WAD integers by the harness. Ratios and thresholds are integer
percentages, fees and bonuses integer basis points.
"""

from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

STRICT_MODEL = {
    "extra": "forbid",  # Disallow extra fields
    "validate_assignment": True,
}


class PoolConfig(BaseModel):
    """Constant-product pool configuration"""

    token_a: str = Field(default="GAMMA", min_length=1, description="Token A symbol")
    token_b: str = Field(default="ETH", min_length=1, description="Token B symbol")
    reserve_a: Decimal = Field(gt=0, description="Initial reserve of token A")
    reserve_b: Decimal = Field(gt=0, description="Initial reserve of token B")
    fee_bps: int = Field(default=30, ge=0, lt=10000, description="Swap fee in bps")

    @model_validator(mode="after")
    def validate_distinct_tokens(self):
        if self.token_a == self.token_b:
            raise ValueError("pool tokens must differ")
        return self

    model_config = STRICT_MODEL


class LendingConfig(BaseModel):
    """Lending ledger configuration"""

    collateral_token: str = Field(default="GAMMA", min_length=1)
    debt_token: str = Field(default="ETH", min_length=1)
    required_collateral_ratio: int = Field(
        default=150, gt=0, le=100000, description="Required collateral ratio in %"
    )
    liquidation_threshold: int = Field(
        default=120, gt=0, le=100000, description="Liquidation threshold in %"
    )
    liquidation_bonus_bps: int = Field(default=500, ge=0, lt=10000)
    liquidity: Decimal = Field(
        default=Decimal("0"), ge=0, description="Debt tokens available to lend"
    )

    @model_validator(mode="after")
    def validate_thresholds(self):
        if self.liquidation_threshold > self.required_collateral_ratio:
            raise ValueError(
                "liquidation_threshold cannot exceed required_collateral_ratio"
            )
        if self.collateral_token == self.debt_token:
            raise ValueError("collateral and debt tokens must differ")
        return self

    model_config = STRICT_MODEL


class FlashLoanConfig(BaseModel):
    """Flash lender configuration"""

    token: str = Field(min_length=1)
    liquidity: Decimal = Field(gt=0, description="Lendable balance")
    fee_bps: int = Field(default=9, ge=0, lt=10000, description="Flash fee in bps")

    model_config = STRICT_MODEL


class OracleConfig(BaseModel):
    """Oracle strategy configuration"""

    strategy: Literal["spot", "twap", "median"] = "spot"
    window: int = Field(default=5, ge=1, le=10000, description="TWAP window in steps")
    samples: int = Field(default=3, ge=1, le=10000, description="Median sample count")

    model_config = STRICT_MODEL


class PositionConfig(BaseModel):
    """Pre-existing lending position seeded before the attack"""

    owner: str = Field(min_length=1)
    collateral: Decimal = Field(gt=0)
    borrowed: Decimal = Field(default=Decimal("0"), ge=0)

    model_config = STRICT_MODEL


class AttackPlanConfig(BaseModel):
    """Attack plan configuration"""

    flash_amount: Decimal = Field(gt=0, description="Flash-borrowed input amount")
    direction: Literal["a_to_b", "b_to_a"] = Field(
        description="Manipulation swap direction"
    )
    exploit: Literal["borrow", "liquidate", "none"] = "borrow"
    borrow_amount: Optional[Decimal] = Field(default=None, gt=0)
    target: Optional[str] = None
    attacker: str = Field(default="attacker", min_length=1)

    @model_validator(mode="after")
    def validate_exploit(self):
        if self.exploit == "liquidate" and not self.target:
            raise ValueError("liquidate exploit requires a target")
        if self.exploit != "borrow" and self.borrow_amount is not None:
            raise ValueError("borrow_amount only applies to the borrow exploit")
        return self

    model_config = STRICT_MODEL


class ScenarioConfig(BaseModel):
    """Complete scenario configuration schema"""

    name: str = Field(default="scenario", min_length=1, max_length=100)
    native_token: Optional[str] = Field(
        default="ETH", description="Pool token modeled as a native coin"
    )
    pool: PoolConfig
    lending: LendingConfig = Field(default_factory=LendingConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    flash_loans: List[FlashLoanConfig] = Field(default_factory=list)
    positions: List[PositionConfig] = Field(default_factory=list)
    balances: Dict[str, Dict[str, Decimal]] = Field(
        default_factory=dict, description="Initial balances per account and token"
    )
    attack: Optional[AttackPlanConfig] = None
    profit_policy: Literal["mark_to_market", "settlement_only"] = "mark_to_market"

    @field_validator("balances")
    @classmethod
    def validate_balances(cls, v):
        for account, holdings in v.items():
            for symbol, amount in holdings.items():
                if amount < 0:
                    raise ValueError(
                        f"Balance of {symbol} for {account} cannot be negative: {amount}"
                    )
        return v

    @model_validator(mode="after")
    def validate_token_references(self):
        pool_tokens = {self.pool.token_a, self.pool.token_b}
        if {self.lending.collateral_token, self.lending.debt_token} != pool_tokens:
            raise ValueError("lending tokens must be the two pool tokens")
        if self.native_token is not None and self.native_token not in pool_tokens:
            raise ValueError(f"native_token {self.native_token} is not a pool token")

        lender_tokens = [loan.token for loan in self.flash_loans]
        if len(set(lender_tokens)) != len(lender_tokens):
            raise ValueError("at most one flash lender per token")
        for symbol in lender_tokens:
            if symbol not in pool_tokens:
                raise ValueError(f"flash loan token {symbol} is not a pool token")

        for holdings in self.balances.values():
            for symbol in holdings:
                if symbol not in pool_tokens:
                    raise ValueError(f"balance token {symbol} is not a pool token")

        owners = [position.owner for position in self.positions]
        if len(set(owners)) != len(owners):
            raise ValueError("duplicate position owner")
        return self

    model_config = STRICT_MODEL


def validate_scenario_config(config_dict: Dict) -> ScenarioConfig:
    """
    Validate a scenario configuration dictionary

    Args:
        config_dict: Dictionary representation of the scenario

    Returns:
        Validated ScenarioConfig object

    Raises:
        pydantic.ValidationError: If configuration is invalid
    """
    return ScenarioConfig(**config_dict)
