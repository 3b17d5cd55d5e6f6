"""Tests for the flash lender."""

import pytest

from oracle_manipulation.exceptions import (
    InsufficientAllowance,
    InsufficientLiquidity,
    InvalidAmount,
    RepaymentShortfall,
    ValidationError,
)
from oracle_manipulation.fixed_point import WAD
from oracle_manipulation.flash_lender import FlashLender
from oracle_manipulation.tokens import NativeToken, StandardToken


@pytest.fixture
def eth_lender():
    eth = NativeToken("ETH")
    eth.mint("flash", 1000 * WAD)
    return FlashLender(eth, address="flash")


def test_borrow_transfers_and_records_obligation(eth_lender):
    """Test the default 9 bps fee on a 100 ETH loan."""
    obligation = eth_lender.borrow("attacker", 100 * WAD)
    assert obligation.amount == 100 * WAD
    assert obligation.fee == 9 * 10**16
    assert obligation.total == 100 * WAD + 9 * 10**16
    assert eth_lender.token.balance_of("attacker") == 100 * WAD
    assert eth_lender.outstanding == 100 * WAD


def test_fee_rounds_up(eth_lender):
    assert eth_lender.fee_for(1) == 1
    assert eth_lender.fee_for(10000) == 9


def test_borrow_beyond_liquidity(eth_lender):
    with pytest.raises(InsufficientLiquidity) as exc_info:
        eth_lender.borrow("attacker", 1000 * WAD + 1)
    assert exc_info.value.available == 1000 * WAD
    assert eth_lender.available() == 1000 * WAD


def test_borrow_rejects_non_positive(eth_lender):
    with pytest.raises(InvalidAmount):
        eth_lender.borrow("attacker", 0)


def test_repay_shortfall(eth_lender):
    """Test repaying principal without the fee is rejected."""
    obligation = eth_lender.borrow("attacker", 100 * WAD)
    with pytest.raises(RepaymentShortfall) as exc_info:
        eth_lender.repay("attacker", obligation)
    assert exc_info.value.owed == obligation.total
    assert exc_info.value.available == 100 * WAD


def test_repay_settles(eth_lender):
    obligation = eth_lender.borrow("attacker", 100 * WAD)
    eth_lender.token.mint("attacker", obligation.fee)
    eth_lender.repay("attacker", obligation)
    assert eth_lender.available() == 1000 * WAD + obligation.fee
    assert eth_lender.outstanding == 0
    assert eth_lender.fees_earned == obligation.fee
    assert eth_lender.token.balance_of("attacker") == 0


def test_standard_token_repayment_needs_allowance():
    gamma = StandardToken("GAMMA")
    gamma.mint("flash", 10 * WAD)
    lender = FlashLender(gamma, address="flash", fee_bps=0)
    obligation = lender.borrow("attacker", 5 * WAD)

    with pytest.raises(InsufficientAllowance):
        lender.repay("attacker", obligation)

    gamma.approve("attacker", "flash", obligation.total)
    lender.repay("attacker", obligation)
    assert lender.available() == 10 * WAD


def test_invalid_fee():
    with pytest.raises(ValidationError):
        FlashLender(NativeToken("ETH"), fee_bps=10000)
