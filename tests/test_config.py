"""Tests for market configuration loading and validation."""

import dataclasses

import pytest

from engine.config import MarketConfig, load_market_config


class TestMarketConfig:
    def test_defaults(self):
        cfg = MarketConfig()
        assert cfg.num_participants == 8
        assert cfg.rate_step_kw == 0.25
        assert cfg.dt == 0.02
        assert cfg.tick_period == 2.0
        assert (cfg.trade_amount_min, cfg.trade_amount_max) == (0.05, 0.5)
        assert cfg.top_up_enabled is True
        assert cfg.random_seed is None

    def test_default_yaml_matches_dataclass(self):
        assert MarketConfig.default() == MarketConfig()

    def test_yaml_override(self, tmp_path):
        path = tmp_path / "market.yaml"
        path.write_text("num_participants: 3\nrandom_seed: 7\ntop_up_enabled: false\n")
        cfg = load_market_config(str(path))
        assert cfg.num_participants == 3
        assert cfg.random_seed == 7
        assert cfg.top_up_enabled is False
        assert cfg.battery_capacity_kwh == 5.0

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_market_config(str(path)) == MarketConfig()

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("difficulty: 4\n")
        with pytest.raises(ValueError, match="difficulty"):
            load_market_config(str(path))

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            load_market_config(str(path))

    @pytest.mark.parametrize("changes", [
        {"battery_capacity_kwh": 0},
        {"trade_amount_min": 0},
        {"trade_amount_min": 1.0, "trade_amount_max": 0.5},
        {"initial_soc_max_kwh": 6.0},
        {"tick_period": 0},
        {"lock_timeout": -1},
        {"settle_attempts": -1},
    ])
    def test_invalid_values_rejected(self, changes):
        with pytest.raises(ValueError):
            MarketConfig(**changes)

    def test_replace(self):
        cfg = MarketConfig().replace(num_participants=2, random_seed=1)
        assert cfg.num_participants == 2
        assert dataclasses.asdict(cfg)["random_seed"] == 1

    @pytest.mark.parametrize("changes", [
        {"precision": -1},
        {"precision": 2.5},
        {"num_participants": "8"},
        {"dt": "fast"},
        {"tick_period": True},
        {"top_up_enabled": "yes"},
        {"random_seed": 1.5},
    ])
    def test_wrong_types_and_precision_rejected(self, changes):
        with pytest.raises(ValueError):
            MarketConfig(**changes)

    def test_non_numeric_yaml_value_rejected(self, tmp_path):
        path = tmp_path / "market.yaml"
        path.write_text("battery_capacity_kwh: large\n")
        with pytest.raises(ValueError, match="battery_capacity_kwh"):
            load_market_config(str(path))
