"""
Scenario configuration loading for the simulator.

Provides a centralized way to load and validate scenario files, plus the
built-in reference scenarios used by the demo and the tests.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pydantic
import yaml

from .config_schema import ScenarioConfig, validate_scenario_config
from .exceptions import ConfigurationError, ValidationError
from .utils import deep_merge

# Reference world: a thin GAMMA/ETH pool, a ledger holding 50 ETH of which a
# victim has already borrowed 12, and flash liquidity on both sides.
DEFAULT_SCENARIO: Dict[str, Any] = {
    "name": "gamma-eth-reference",
    "native_token": "ETH",
    "pool": {
        "token_a": "GAMMA",
        "token_b": "ETH",
        "reserve_a": "1000000",
        "reserve_b": "100",
        "fee_bps": 30,
    },
    "lending": {
        "collateral_token": "GAMMA",
        "debt_token": "ETH",
        "required_collateral_ratio": 150,
        "liquidation_threshold": 120,
        "liquidation_bonus_bps": 500,
        "liquidity": "50",
    },
    "oracle": {"strategy": "spot", "window": 5, "samples": 3},
    "flash_loans": [
        {"token": "ETH", "liquidity": "1000", "fee_bps": 9},
        {"token": "GAMMA", "liquidity": "10000000", "fee_bps": 9},
    ],
    "positions": [{"owner": "user", "collateral": "200000", "borrowed": "12"}],
    "attack": {
        "flash_amount": "100",
        "direction": "b_to_a",
        "exploit": "borrow",
        "attacker": "attacker",
    },
    "profit_policy": "mark_to_market",
}

LIQUIDATION_ATTACK: Dict[str, Any] = {
    "flash_amount": "5000000",
    "direction": "a_to_b",
    "exploit": "liquidate",
    "target": "user",
    "attacker": "attacker",
}


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse YAML configuration file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config {config_path}: {e}")

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")
    return config_dict


def build_scenario_config(config_dict: Dict[str, Any]) -> ScenarioConfig:
    """Validate a raw scenario dictionary, wrapping schema errors."""
    try:
        return validate_scenario_config(config_dict)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Configuration validation failed: {e}",
            details={"errors": e.errors(include_url=False)},
        )


def load_scenario_config(
    config_path: Union[str, Path], overrides: Optional[Dict[str, Any]] = None
) -> ScenarioConfig:
    """
    Load and validate a scenario configuration file.

    Args:
        config_path: Path to the YAML configuration file
        overrides: Values deep-merged over the file contents before validation

    Returns:
        Validated scenario configuration

    Raises:
        ConfigurationError: If the file cannot be loaded
        ValidationError: If the configuration fails schema validation
    """
    config_dict = load_yaml_config(config_path)
    if overrides:
        config_dict = deep_merge(config_dict, overrides)
    return build_scenario_config(config_dict)


def get_default_scenario() -> ScenarioConfig:
    """Reference scenario with the borrow-against-inflated-collateral attack."""
    return build_scenario_config(copy.deepcopy(DEFAULT_SCENARIO))


def get_liquidation_scenario() -> ScenarioConfig:
    """Reference scenario with the forced-liquidation attack."""
    config_dict = copy.deepcopy(DEFAULT_SCENARIO)
    config_dict["name"] = "gamma-eth-liquidation"
    config_dict["attack"] = copy.deepcopy(LIQUIDATION_ATTACK)
    return build_scenario_config(config_dict)
