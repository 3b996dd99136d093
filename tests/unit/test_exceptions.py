"""Tests for the exception hierarchy."""

from decimal import Decimal

import pytest

from flash_arb.exceptions import (
    ConfigurationError,
    EvaluationError,
    FeedError,
    FlashArbError,
    ImpactModelError,
    InsufficientLiquidityError,
    NoLiquidityError,
    SettlementError,
    SizingError,
)


@pytest.mark.parametrize(
    "exc_class",
    [
        ConfigurationError,
        FeedError,
        ImpactModelError,
        NoLiquidityError,
        SizingError,
        InsufficientLiquidityError,
        EvaluationError,
        SettlementError,
    ],
)
def test_all_errors_share_base(exc_class):
    err = exc_class("boom")
    assert isinstance(err, FlashArbError)
    assert str(err) == "boom"
    assert err.details == {}


def test_no_liquidity_is_an_impact_error():
    assert issubclass(NoLiquidityError, ImpactModelError)


def test_insufficient_liquidity_is_a_sizing_error():
    err = InsufficientLiquidityError("too shallow", cap=Decimal("0.05"), minimum=Decimal("0.1"))
    assert isinstance(err, SizingError)
    assert err.cap == Decimal("0.05")
    assert err.minimum == Decimal("0.1")


def test_feed_error_context():
    err = FeedError("stale", venue="alpha", pair="TKN/USD", details={"age": 30})
    assert err.venue == "alpha"
    assert err.pair == "TKN/USD"
    assert err.details == {"age": 30}


def test_settlement_error_reference():
    err = SettlementError("reverted", tx_reference="0xabc")
    assert err.tx_reference == "0xabc"
