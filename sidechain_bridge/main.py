"""FastAPI application entrypoint for the withdrawal relayer."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import JSONResponse

from sidechain_bridge.config import Settings, get_settings
from sidechain_bridge.errors import RelayError
from sidechain_bridge.lib.evm_client import DestinationChainClient
from sidechain_bridge.lib.logger import configure_logging, get_logger
from sidechain_bridge.lib.metrics import METRICS
from sidechain_bridge.lib.rate_limiter import RateLimiter
from sidechain_bridge.withdraw import ApprovalState, WithdrawalRelay, router as withdraw_router

logger = get_logger(__name__)


def build_relay(settings: Settings) -> WithdrawalRelay:
    chain = DestinationChainClient(
        rpc_url=settings.rpc_url,
        private_key=settings.private_key,
        contract_address=settings.contract_address,
        token_address=settings.token_address,
        receipt_timeout=settings.chain_timeout_seconds,
    )
    return WithdrawalRelay.from_settings(settings, chain)


def create_app(settings: Settings | None = None, relay: WithdrawalRelay | None = None) -> FastAPI:
    """Build the relayer app; configuration errors surface here, at startup."""

    configure_logging()
    settings = settings or get_settings()
    relay = relay or build_relay(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        relay.gate.start()
        logger.info(
            "relayer_started",
            extra={
                "relayer_address": relay.chain.address,
                "contract_address": settings.contract_address,
                "rpc_url": settings.rpc_url,
                "port": settings.port,
            },
        )
        yield

    app = FastAPI(title="Sidechain Withdrawal Relayer", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.relay = relay
    app.state.metrics = METRICS
    app.state.rate_limiter = RateLimiter()
    app.state.rate_limit_per_minute = settings.request_rate_limit_per_minute

    app.include_router(withdraw_router, tags=["withdraw"])

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.get("/health", tags=["system"], summary="Health check")
    async def health_check() -> JSONResponse:
        """Report liveness plus the approval gate state."""

        state = relay.gate.state
        status = "degraded" if state is ApprovalState.FAILED else "healthy"
        payload = {"ok": True, "data": {"status": status, "approval": state.value}}
        return JSONResponse(content=payload)

    @app.get("/metrics", tags=["system"], summary="Metrics endpoint")
    async def metrics_endpoint() -> JSONResponse:
        payload = {"counters": METRICS.snapshot(), "timings": METRICS.timings()}
        return JSONResponse({"ok": True, "data": payload})

    return app


def run() -> None:
    """Console entrypoint: load settings and serve the relayer."""

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
