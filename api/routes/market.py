"""Participant, ledger and manual-operation endpoints."""

from typing import Any, Dict, List

from fastapi import APIRouter, Request

from api.deps import get_kernel
from api.models import (
    BlockRecord,
    ChainReportResponse,
    ErrorResponse,
    FlatState,
    MetricsResponse,
    ScriptRequest,
    ScriptResponse,
    TradeRequest,
    TradeResponse,
)
from engine.validator import inspect_chain

router = APIRouter(
    prefix="/api",
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.get("/flats", response_model=Dict[str, FlatState])
def get_flats(request: Request) -> Dict[str, Any]:
    """Return the full participant table keyed by id."""
    return get_kernel(request).get_participants()


@router.get("/ledger", response_model=List[BlockRecord])
def get_ledger(request: Request) -> List[Dict[str, Any]]:
    """Return the full ordered block sequence."""
    return get_kernel(request).get_ledger()


@router.get("/ledger/head", response_model=BlockRecord)
def get_ledger_head(request: Request) -> Dict[str, Any]:
    return get_kernel(request).get_head()


@router.get("/ledger/validate", response_model=ChainReportResponse)
def validate_own_ledger(request: Request) -> Dict[str, Any]:
    """Validate the engine's own chain."""
    return get_kernel(request).verify_ledger().to_dict()


@router.post("/ledger/validate", response_model=ChainReportResponse)
def validate_chain_copy(chain: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate a chain supplied by the caller, e.g. a copy fetched earlier."""
    return inspect_chain(chain).to_dict()


@router.post("/trade", response_model=TradeResponse)
def submit_trade(body: TradeRequest, request: Request) -> Dict[str, Any]:
    """Settle a manual trade into a single-trade block."""
    trade = get_kernel(request).submit_trade(body.seller, body.buyer, body.amount)
    return {"success": True, "trade": trade.to_dict()}


@router.post("/script", response_model=ScriptResponse)
def run_script(body: ScriptRequest, request: Request) -> Dict[str, Any]:
    """Apply a manual perturbation (``spike`` or ``drain``) to one flat."""
    flat = get_kernel(request).perturb(body.flat_id, body.action, body.value)
    return {"success": True, "flat": flat}


@router.get("/metrics", response_model=MetricsResponse)
def get_metrics(request: Request) -> Dict[str, Any]:
    return get_kernel(request).get_metrics()
