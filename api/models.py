"""Pydantic request/response models for the WattWise market API.

Field names follow the wire shape the dashboard consumes, which mixes
camelCase (``tradeId``, ``prevHash``) with snake_case (``amount_kwh``).
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt


class FlatState(BaseModel):
    """One participant as returned by GET /api/flats."""

    id: str
    generation_kw: float
    demand_kw: float
    battery_capacity_kwh: float
    soc_kwh: float
    credits: float


class TradeRecord(BaseModel):
    """A settled trade in its persisted shape."""

    tradeId: str
    seller: str
    buyer: str
    amount_kwh: float
    energy_credits: float
    timestamp: int


class BlockRecord(BaseModel):
    """A ledger block in its persisted shape."""

    index: int
    prevHash: str
    timestamp: int
    trades: List[TradeRecord]
    nonce: int
    hash: str


# ── Write endpoint models ──────────────


class TradeRequest(BaseModel):
    """Request body for POST /api/trade."""
    seller: str
    buyer: str
    amount: Union[StrictInt, StrictFloat]


class TradeResponse(BaseModel):
    """Response from POST /api/trade."""
    success: bool
    trade: TradeRecord


class ScriptRequest(BaseModel):
    """Request body for POST /api/script."""
    model_config = ConfigDict(populate_by_name=True)

    action: str
    flat_id: str = Field(alias="flatId")
    value: Union[StrictInt, StrictFloat] = 0


class ScriptResponse(BaseModel):
    """Response from POST /api/script."""
    success: bool
    flat: FlatState


# ── Integrity and metrics models ────────────────


class IntegrityViolationModel(BaseModel):
    index: int
    reason: str


class ChainReportResponse(BaseModel):
    """Response from GET/POST /api/ledger/validate."""
    valid: bool
    length: int
    checked_blocks: int
    violation: Optional[IntegrityViolationModel] = None


class LeaderboardEntry(BaseModel):
    id: str
    credits: float


class MetricsResponse(BaseModel):
    """Response from GET /api/metrics."""
    participants: int
    total_generation_kw: float
    total_demand_kw: float
    total_soc_kwh: float
    total_credits: float
    credit_gini: float
    block_count: int
    trade_count: int
    traded_energy_kwh: float
    traded_credits: float
    leaderboard: List[LeaderboardEntry]
    top_up_total: float
    top_up_events: int
    subscribers: int


class ErrorResponse(BaseModel):
    """Body of every rejected request."""
    error: str
    reason: str
