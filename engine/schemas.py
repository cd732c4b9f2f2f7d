"""Canonical data objects for the market engine.

Attribute names are Pythonic; ``to_dict`` produces the wire/persisted shape
(``tradeId``, ``prevHash``, ``soc_kwh`` ...) that dashboards and external
chain validators consume.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Tuple


def now_ms() -> int:
    """Wall-clock time in integer milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass
class Participant:
    """One flat: generation, demand, battery and credit balance."""

    id: str
    generation_kw: float
    demand_kw: float
    battery_capacity_kwh: float
    soc_kwh: float
    credits: float

    def __post_init__(self) -> None:
        if self.battery_capacity_kwh <= 0:
            raise ValueError(f"{self.id}: battery capacity must be positive")
        if self.generation_kw < 0 or self.demand_kw < 0:
            raise ValueError(f"{self.id}: generation and demand must be non-negative")
        if not 0 <= self.soc_kwh <= self.battery_capacity_kwh:
            raise ValueError(f"{self.id}: state of charge outside [0, capacity]")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "generation_kw": self.generation_kw,
            "demand_kw": self.demand_kw,
            "battery_capacity_kwh": self.battery_capacity_kwh,
            "soc_kwh": self.soc_kwh,
            "credits": self.credits,
        }


@dataclass(frozen=True)
class Trade:
    """A settled transfer of energy credits from buyer to seller."""

    trade_id: str
    seller: str
    buyer: str
    amount_kwh: float
    energy_credits: float
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        # Key order is part of the hash input; do not reorder.
        return {
            "tradeId": self.trade_id,
            "seller": self.seller,
            "buyer": self.buyer,
            "amount_kwh": self.amount_kwh,
            "energy_credits": self.energy_credits,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Trade":
        return cls(
            trade_id=data["tradeId"],
            seller=data["seller"],
            buyer=data["buyer"],
            amount_kwh=data["amount_kwh"],
            energy_credits=data["energy_credits"],
            timestamp=data["timestamp"],
        )


@dataclass(frozen=True)
class Block:
    """One ledger entry wrapping zero or more trades."""

    index: int
    prev_hash: str
    timestamp: int
    trades: Tuple[Trade, ...]
    nonce: int
    hash: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "prevHash": self.prev_hash,
            "timestamp": self.timestamp,
            "trades": [t.to_dict() for t in self.trades],
            "nonce": self.nonce,
            "hash": self.hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Block":
        return cls(
            index=data["index"],
            prev_hash=data["prevHash"],
            timestamp=data["timestamp"],
            trades=tuple(Trade.from_dict(t) for t in data.get("trades", [])),
            nonce=data["nonce"],
            hash=data["hash"],
        )
