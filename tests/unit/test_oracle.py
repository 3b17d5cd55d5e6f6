"""Tests for the oracle feed and its pricing strategies."""

import pytest

from oracle_manipulation.amm import ReserveAMM, SwapDirection
from oracle_manipulation.exceptions import InsufficientLiquidity, ValidationError
from oracle_manipulation.fixed_point import WAD
from oracle_manipulation.oracle import (
    MedianOfNStrategy,
    OracleFeed,
    SpotStrategy,
    TimeWeightedStrategy,
    strategy_from_name,
)

FAIR_PRICE = 10**15  # 1 GAMMA = 0.001 ETH


@pytest.fixture
def amm():
    return ReserveAMM(1000 * WAD, WAD, fee_bps=30)


def manipulate(amm):
    """Push a large ETH buy of GAMMA through the pool and return the new spot."""
    amm.swap(WAD, SwapDirection.B_TO_A)
    return amm.spot_price(SwapDirection.A_TO_B)


def test_spot_follows_pool_immediately(amm):
    """Test the spot oracle has no memory."""
    feed = OracleFeed(amm, SpotStrategy())
    assert feed.get_price() == FAIR_PRICE

    manipulated = manipulate(amm)
    assert manipulated > FAIR_PRICE
    assert feed.get_price() == manipulated


def test_default_strategy_is_spot(amm):
    feed = OracleFeed(amm)
    assert feed.strategy_name == "spot"
    assert feed.get_price() == amm.spot_price()


def test_twap_dilutes_one_step_manipulation(amm):
    """Test a single manipulated sample moves the TWAP by 1/window."""
    feed = OracleFeed(amm, TimeWeightedStrategy(5))
    assert feed.strategy.samples() == [FAIR_PRICE] * 5

    manipulated = manipulate(amm)
    # Not yet observed: the manipulation is invisible
    assert feed.get_price() == FAIR_PRICE

    feed.observe()
    assert feed.get_price() == (4 * FAIR_PRICE + manipulated) // 5


def test_twap_window_rolls(amm):
    feed = OracleFeed(amm, TimeWeightedStrategy(3))
    manipulated = manipulate(amm)
    for _ in range(3):
        feed.observe()
    assert feed.get_price() == manipulated
    assert len(feed.strategy.samples()) == 3


def test_median_ignores_single_excursion(amm):
    """Test the median only moves once most samples are manipulated."""
    feed = OracleFeed(amm, MedianOfNStrategy(3))
    manipulated = manipulate(amm)

    feed.observe()
    assert feed.get_price() == FAIR_PRICE

    feed.observe()
    assert feed.get_price() == manipulated


def test_median_of_even_count_takes_middle_mean():
    strategy = MedianOfNStrategy(2)
    strategy.record(10)
    strategy.record(21)
    assert strategy.current(0) == 15


def test_windowed_strategy_falls_back_to_spot_when_empty():
    assert TimeWeightedStrategy(4).current(123) == 123
    assert MedianOfNStrategy(4).current(456) == 456


def test_strategy_names():
    assert SpotStrategy().name == "spot"
    assert TimeWeightedStrategy(5).name == "twap-5"
    assert MedianOfNStrategy(3).name == "median-3"


@pytest.mark.parametrize("size", [0, -1, True, 2.5])
def test_invalid_window_rejected(size):
    with pytest.raises(ValidationError):
        TimeWeightedStrategy(size)
    with pytest.raises(ValidationError):
        MedianOfNStrategy(size)


def test_strategy_from_name():
    assert isinstance(strategy_from_name("spot"), SpotStrategy)
    assert strategy_from_name("twap", window=7).window == 7
    assert strategy_from_name("median", samples=5).n == 5
    with pytest.raises(ValidationError, match="Unknown oracle strategy"):
        strategy_from_name("chainlink")


def test_feed_on_empty_pool():
    """Test an oracle over an empty pool has nothing to report."""
    feed = OracleFeed(ReserveAMM(), TimeWeightedStrategy(5))
    assert feed.strategy.samples() == []
    with pytest.raises(InsufficientLiquidity):
        feed.get_price()


def test_feed_direction(amm):
    feed = OracleFeed(amm, direction=SwapDirection.B_TO_A)
    assert feed.get_price() == 1000 * WAD


def test_snapshot(amm):
    feed = OracleFeed(amm, TimeWeightedStrategy(2))
    assert feed.snapshot() == {
        "strategy": "twap-2",
        "direction": "a_to_b",
        "samples": [FAIR_PRICE, FAIR_PRICE],
    }
