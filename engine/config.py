"""Market configuration: dataclass defaults plus an optional YAML override file."""

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


_DEFAULT_YAML = Path(__file__).parent / "market_default.yaml"

_INT_FIELDS = (
    "num_participants", "pair_attempts", "settle_attempts",
    "extra_trades", "precision", "subscriber_queue_size",
)
_FLOAT_FIELDS = (
    "battery_capacity_kwh", "initial_rate_max_kw", "initial_soc_min_kwh",
    "initial_soc_max_kwh", "initial_credits_min", "initial_credits_max",
    "rate_step_kw", "dt", "tick_period", "trade_amount_min",
    "trade_amount_max", "top_up_amount", "lock_timeout",
)


@dataclass
class MarketConfig:
    """Every tunable of the simulation, matcher, ledger and exclusion scope."""

    # Participants
    num_participants: int = 8
    id_prefix: str = "F"
    battery_capacity_kwh: float = 5.0
    initial_rate_max_kw: float = 3.0
    initial_soc_min_kwh: float = 2.0
    initial_soc_max_kwh: float = 4.0
    initial_credits_min: float = 10.0
    initial_credits_max: float = 100.0

    # Tick physics
    rate_step_kw: float = 0.25
    dt: float = 0.02
    tick_period: float = 2.0

    # Trade matching
    trade_amount_min: float = 0.05
    trade_amount_max: float = 0.5
    pair_attempts: int = 10
    settle_attempts: int = 6
    extra_trades: int = 2
    top_up_enabled: bool = True
    top_up_amount: float = 20.0

    # Engine
    lock_timeout: float = 1.0
    precision: int = 6
    subscriber_queue_size: int = 64
    random_seed: Optional[int] = None

    def __post_init__(self) -> None:
        self._check_types()
        if self.num_participants < 0:
            raise ValueError("num_participants must be >= 0")
        if self.battery_capacity_kwh <= 0:
            raise ValueError("battery_capacity_kwh must be positive")
        if not 0 <= self.initial_soc_min_kwh <= self.initial_soc_max_kwh <= self.battery_capacity_kwh:
            raise ValueError("initial state of charge range must lie within [0, battery_capacity_kwh]")
        if not 0 <= self.initial_credits_min <= self.initial_credits_max:
            raise ValueError("initial credit range must be non-negative and ordered")
        if self.initial_rate_max_kw < 0 or self.rate_step_kw < 0 or self.dt < 0:
            raise ValueError("rates, rate_step_kw and dt must be non-negative")
        if not 0 < self.trade_amount_min <= self.trade_amount_max:
            raise ValueError("trade amount range must be positive and ordered")
        if self.pair_attempts < 0 or self.settle_attempts < 0 or self.extra_trades < 0:
            raise ValueError("attempt counts must be non-negative")
        if self.top_up_amount < 0:
            raise ValueError("top_up_amount must be non-negative")
        if self.tick_period <= 0 or self.lock_timeout <= 0:
            raise ValueError("tick_period and lock_timeout must be positive")
        if self.subscriber_queue_size <= 0:
            raise ValueError("subscriber_queue_size must be positive")
        if self.precision < 0:
            raise ValueError("precision must be >= 0")

    def _check_types(self) -> None:
        for name in _INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        for name in _FLOAT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number, got {value!r}")
        if not isinstance(self.id_prefix, str):
            raise ValueError(f"id_prefix must be a string, got {self.id_prefix!r}")
        if not isinstance(self.top_up_enabled, bool):
            raise ValueError(f"top_up_enabled must be true or false, got {self.top_up_enabled!r}")
        seed = self.random_seed
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            raise ValueError(f"random_seed must be an integer or null, got {seed!r}")

    @classmethod
    def default(cls) -> "MarketConfig":
        return load_market_config(str(_DEFAULT_YAML))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown market config keys: {', '.join(unknown)}")
        return cls(**data)

    def replace(self, **changes: Any) -> "MarketConfig":
        return dataclasses.replace(self, **changes)


def load_market_config(path: str) -> MarketConfig:
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Market config {path} must be a mapping")
    return MarketConfig.from_dict(data)
