"""Shared fixtures for flash_arb tests."""

import pytest

from flash_arb.config import parse_config
from flash_arb.config_schema import VenueConfig
from flash_arb.sources import StaticSnapshotSource
from flash_arb.venues import ConstantProductVenue
from helpers import PAIR, FakeClock, make_config_dict, make_opportunity, make_snapshot


@pytest.fixture
def pair():
    return PAIR


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bot_config():
    return parse_config(make_config_dict())


@pytest.fixture
def static_source(bot_config):
    return StaticSnapshotSource.from_config(bot_config)


@pytest.fixture
def venues(static_source):
    return {
        name: ConstantProductVenue(VenueConfig(name=name, kind="v2", fee_bps=25), static_source)
        for name in ("alpha", "beta")
    }


@pytest.fixture
def profitable_opportunity():
    """Buy at 1.00 on alpha (1M liquidity), sell at 1.02 on beta (800k)."""
    return make_opportunity(
        make_snapshot("alpha", "1.00", "1000000"),
        make_snapshot("beta", "1.02", "800000"),
    )
