"""Dependency injection helpers for the WattWise API."""

import os
from typing import Any, Dict, Optional

from fastapi import Request

from engine.config import MarketConfig
from engine.market_kernel import MarketKernel
from engine.store import Store


def build_kernel(config: Optional[MarketConfig] = None, data_dir: str = "") -> MarketKernel:
    """Create a kernel, persisting the ledger under *data_dir* when given.

    If *data_dir* is provided, a SQLite store is created there and the
    ledger reloads any chain persisted by a previous run.
    """
    store = None
    if data_dir:
        os.makedirs(data_dir, exist_ok=True)
        store = Store(os.path.join(data_dir, "ledger.db"))
    return MarketKernel(config or MarketConfig(), store=store)


def create_app_state(kernel: MarketKernel) -> Dict[str, Any]:
    """Build the shared application state dictionary from a kernel instance."""
    return {
        "kernel": kernel,
    }


def get_kernel(request: Request) -> MarketKernel:
    return request.app.state.wattwise["kernel"]
