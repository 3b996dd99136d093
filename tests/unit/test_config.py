"""Unit tests for configuration loading and validation."""

from decimal import Decimal
from pathlib import Path

import pytest

from flash_arb.config import load_config, parse_config
from flash_arb.exceptions import ConfigurationError
from helpers import make_config_dict

EXAMPLE_CONFIG = Path(__file__).resolve().parents[2] / "configs" / "flash_arb.example.yaml"


class TestLoadConfig:
    def test_example_config_loads(self):
        config = load_config(str(EXAMPLE_CONFIG))
        assert len(config.venues) == 3
        assert config.pairs[0].native_price == Decimal("600")
        assert config.runner.dry_run

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("venues: [unclosed")
        with pytest.raises(ConfigurationError, match="parse YAML"):
            load_config(str(path))

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="dictionary"):
            load_config(str(path))


class TestDefaults:
    def test_defaults(self):
        config = parse_config(make_config_dict())
        assert config.detector.min_spread_threshold == Decimal("0.001")
        assert config.detector.max_spread_threshold == Decimal("0.05")
        assert config.sizing.min_loan_amount == Decimal("0.1")
        assert config.sizing.default_loan_amount == Decimal("0.5")
        assert config.sizing.liquidity_fraction_cap == Decimal("0.10")
        assert config.sizing.venue_base_fractions["pancakeswapv3"] == Decimal("0.025")
        assert config.gate.min_profit_floor == Decimal("0.005")
        assert config.gate.profit_cost_multiplier == Decimal("1.5")
        assert config.gate.gas_units == 700000
        assert config.history.window_size == 30
        assert config.history.min_interval_sec == 60
        assert config.safety.cooldown_seconds == 300

    def test_base_fraction_keys_normalized(self):
        config = parse_config(
            make_config_dict(sizing={"venue_base_fractions": {"PancakeSwap V2": 0.02}})
        )
        assert config.sizing.venue_base_fractions == {"pancakeswapv2": Decimal("0.02")}


class TestValidation:
    def assert_invalid(self, config_dict, fragment):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config(config_dict)
        assert any(fragment in err for err in exc_info.value.details["errors"])

    def test_needs_two_venues(self):
        config = make_config_dict(venues=[{"name": "alpha", "kind": "v2", "fee_bps": 25}])
        config["static_snapshots"] = []
        config["rpc_url"] = "http://localhost:8545"
        self.assert_invalid(config, "At least two venues")

    def test_unique_venue_names(self):
        venue = {"name": "alpha", "kind": "v2", "fee_bps": 25}
        self.assert_invalid(make_config_dict(venues=[venue, venue]), "unique")

    def test_v2_needs_fee(self):
        config = make_config_dict()
        del config["venues"][0]["fee_bps"]
        self.assert_invalid(config, "requires fee_bps")

    def test_unknown_v3_fee_tier(self):
        config = make_config_dict()
        config["venues"].append({"name": "gamma", "kind": "v3", "fee_tiers": [3000]})
        self.assert_invalid(config, "Unknown V3 fee tier")

    def test_spread_thresholds_ordered(self):
        config = make_config_dict(
            detector={"min_spread_threshold": 0.05, "max_spread_threshold": 0.01}
        )
        self.assert_invalid(config, "min_spread_threshold must be less")

    def test_loan_bounds_ordered(self):
        config = make_config_dict(sizing={"min_loan_amount": 10, "max_loan_amount": 1})
        self.assert_invalid(config, "min_loan_amount must not exceed")

    def test_needs_a_source(self):
        config = make_config_dict(static_snapshots=[])
        self.assert_invalid(config, "rpc_url or static_snapshots")

    def test_snapshot_references_known_venue(self):
        config = make_config_dict()
        config["static_snapshots"][0]["venue"] = "nowhere"
        self.assert_invalid(config, "unknown venue")

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError):
            parse_config(["venues"])
