#!/usr/bin/env python3
"""
Oracle Manipulation Demonstration Script

This script runs the reference attacks against every oracle design:
1. Borrow against collateral whose price was pumped with a flash loan
2. Liquidate a healthy position whose collateral price was crashed
3. Preview an attack without touching the live state
"""

import logging

import logging_config
from oracle_manipulation import AttackSequencer, SimulationHarness
from oracle_manipulation.config_loader import (
    get_default_scenario,
    get_liquidation_scenario,
)
from oracle_manipulation.utils import format_wad

logger = logging.getLogger(__name__)

STRATEGIES = ["spot", "twap", "median"]


def banner(title):
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)


def demo_comparison(title, config):
    banner(title)
    harness = SimulationHarness(config)
    plan = harness.plan_from_config()
    logger.info(
        f"Flash loan {format_wad(plan.flash_amount, 2)} via {plan.direction.value}, "
        f"exploit={plan.exploit.kind.value if plan.exploit else 'none'}"
    )

    results = harness.compare_strategies(plan, STRATEGIES, max_workers=len(STRATEGIES))
    for name, result in results.items():
        logger.info(result.format_log())
        if result.costs is not None:
            logger.info(f"[{name}]   {result.costs.format_log()}")

    exploitable = [name for name, result in results.items() if result.committed]
    logger.info(f"Exploitable oracles: {', '.join(exploitable) or 'none'}")


def demo_preview():
    banner("DEMO 3: Preview Without Commit")
    harness = SimulationHarness()
    sequencer = AttackSequencer(harness.build_state("spot"), harness.profit_policy)
    before = sequencer.state.fingerprint()

    preview = sequencer.preview(harness.plan_from_config())
    logger.info(f"Preview: {preview.format_log()}")
    logger.info(f"Live state unchanged: {sequencer.state.fingerprint() == before}")


def main():
    logging_config.setup(logging.INFO)
    demo_comparison("DEMO 1: Collateral Pump + Borrow", get_default_scenario())
    demo_comparison("DEMO 2: Collateral Crash + Liquidation", get_liquidation_scenario())
    demo_preview()


if __name__ == "__main__":
    main()
