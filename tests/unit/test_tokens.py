"""Tests for the token variants and the TokenLike capability."""

import pytest

from oracle_manipulation.exceptions import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAmount,
)
from oracle_manipulation.fixed_point import WAD
from oracle_manipulation.interfaces import TokenLike
from oracle_manipulation.tokens import NativeToken, StandardToken, collect, grant


@pytest.fixture
def gamma():
    token = StandardToken("GAMMA")
    token.mint("alice", 100 * WAD)
    return token


@pytest.fixture
def eth():
    token = NativeToken("ETH")
    token.mint("alice", 10 * WAD)
    return token


def test_tokens_satisfy_protocol(gamma, eth):
    """Both variants expose the TokenLike capability."""
    assert isinstance(gamma, TokenLike)
    assert isinstance(eth, TokenLike)


def test_mint_and_transfer(gamma):
    """Test balances and supply move together."""
    gamma.transfer("alice", "bob", 40 * WAD)
    assert gamma.balance_of("alice") == 60 * WAD
    assert gamma.balance_of("bob") == 40 * WAD
    assert gamma.total_supply == 100 * WAD


def test_transfer_rejects_overdraft(gamma):
    """Test a failed transfer leaves balances untouched."""
    with pytest.raises(InsufficientBalance) as exc_info:
        gamma.transfer("alice", "bob", 101 * WAD)
    assert exc_info.value.available == 100 * WAD
    assert gamma.balance_of("alice") == 100 * WAD
    assert gamma.balance_of("bob") == 0


def test_transfer_rejects_non_positive(gamma):
    with pytest.raises(InvalidAmount):
        gamma.transfer("alice", "bob", 0)


def test_empty_balances_are_dropped(gamma):
    """Test zero balances do not linger in snapshots."""
    gamma.transfer("alice", "bob", 100 * WAD)
    assert "alice" not in gamma.snapshot()["balances"]


def test_standard_transfer_from_requires_allowance(gamma):
    """Test allowance semantics of the standard token."""
    with pytest.raises(InsufficientAllowance):
        gamma.transfer_from("pool", "alice", "pool", WAD)

    gamma.approve("alice", "pool", 5 * WAD)
    gamma.transfer_from("pool", "alice", "pool", 2 * WAD)
    assert gamma.balance_of("pool") == 2 * WAD
    assert gamma.allowance("alice", "pool") == 3 * WAD


def test_standard_owner_may_spend_own_balance(gamma):
    gamma.transfer_from("alice", "alice", "bob", WAD)
    assert gamma.balance_of("bob") == WAD


def test_native_only_owner_moves_funds(eth):
    """Test the native coin has no allowances."""
    with pytest.raises(InsufficientAllowance):
        eth.transfer_from("pool", "alice", "pool", WAD)

    eth.transfer_from("alice", "alice", "pool", WAD)
    assert eth.balance_of("pool") == WAD
    assert eth.requires_approval is False


def test_collect_pulls_standard_with_allowance(gamma):
    """Test collect() pulls through an allowance granted with grant()."""
    grant(gamma, "alice", "pool", 10 * WAD)
    collect(gamma, "alice", "pool", 10 * WAD)
    assert gamma.balance_of("pool") == 10 * WAD
    assert gamma.allowance("alice", "pool") == 0


def test_collect_pushes_native(eth):
    """Test collect() lets the payer push native coins."""
    grant(eth, "alice", "pool", WAD)  # no-op for native coins
    collect(eth, "alice", "pool", WAD)
    assert eth.balance_of("pool") == WAD


def test_snapshot_includes_allowances(gamma):
    gamma.approve("alice", "pool", WAD)
    snapshot = gamma.snapshot()
    assert snapshot["allowances"] == {"alice->pool": WAD}
    assert snapshot["total_supply"] == 100 * WAD
