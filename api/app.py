"""FastAPI application factory for the WattWise market API."""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from api.deps import build_kernel, create_app_state
from api.routes.market import router as market_router
from api.routes.stream import router as stream_router
from engine.config import MarketConfig
from engine.errors import EngineBusy, MarketError, NotFound
from engine.market_kernel import MarketKernel

_STATUS_BY_ERROR = {
    NotFound: 404,
    EngineBusy: 503,
}


async def _market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    status = next(
        (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
        400,
    )
    return JSONResponse(status_code=status, content={"error": str(exc), "reason": exc.code})


def create_app(kernel: MarketKernel) -> FastAPI:
    """Build and return a configured FastAPI application.

    The kernel is stored on ``app.state.wattwise`` so that route handlers
    can access it without global variables.  The simulation clock is not
    started here; the server entry point owns the background thread.
    """
    app = FastAPI(title="WattWise Market API", version="0.1.0")
    app.state.wattwise = create_app_state(kernel)
    app.state.sim_thread = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.add_exception_handler(MarketError, _market_error_handler)

    @app.get("/health")
    def health() -> Dict[str, Any]:
        sim_thread = app.state.sim_thread
        if sim_thread is not None and not sim_thread.is_alive():
            return {"status": "degraded", "reason": "simulation thread stopped"}
        report = kernel.verify_ledger()
        if not report.valid:
            return {
                "status": "degraded",
                "reason": f"ledger integrity violation at block {report.violation.index}",
            }
        return {"status": "ok", "blocks": report.length}

    app.include_router(market_router)
    app.include_router(stream_router)

    return app


def build_app(config: Optional[MarketConfig] = None, data_dir: str = "") -> FastAPI:
    """Create a MarketKernel and return a fully configured FastAPI app.

    This is the testable entry point -- no threads, no uvicorn,
    just the wired-up application ready for TestClient or production.
    """
    return create_app(build_kernel(config, data_dir=data_dir))
