"""Simulation-and-ledger engine for the WattWise peer-to-peer energy market."""

from engine.broadcast import Announcement, StateBroadcaster, Subscription
from engine.clock import ClockState, SimulationClock
from engine.config import MarketConfig, load_market_config
from engine.errors import (
    EngineBusy,
    InsufficientCredits,
    InvalidAction,
    InvalidAmount,
    MarketError,
    NotFound,
    SelfTrade,
)
from engine.hashing import compute_block_hash, serialize_trades
from engine.ledger import Ledger
from engine.market_kernel import MarketKernel
from engine.matcher import TopUpPolicy, TradeMatcher
from engine.participants import ParticipantStore, PerturbationKind, TradeIdGenerator
from engine.schemas import Block, Participant, Trade
from engine.validator import ChainReport, IntegrityViolation, inspect_chain, validate_chain

__all__ = [
    "Announcement",
    "StateBroadcaster",
    "Subscription",
    "ClockState",
    "SimulationClock",
    "MarketConfig",
    "load_market_config",
    "EngineBusy",
    "InsufficientCredits",
    "InvalidAction",
    "InvalidAmount",
    "MarketError",
    "NotFound",
    "SelfTrade",
    "compute_block_hash",
    "serialize_trades",
    "Ledger",
    "MarketKernel",
    "TopUpPolicy",
    "TradeMatcher",
    "ParticipantStore",
    "PerturbationKind",
    "TradeIdGenerator",
    "Block",
    "Participant",
    "Trade",
    "ChainReport",
    "IntegrityViolation",
    "inspect_chain",
    "validate_chain",
]
