"""Withdrawal relay routes."""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from sidechain_bridge.errors import InvalidRequest
from sidechain_bridge.lib.rate_limiter import enforce_rate_limit
from sidechain_bridge.withdraw.service import WithdrawalRelay

router = APIRouter()


@router.post("/withdraw")
async def withdraw_endpoint(request: Request) -> JSONResponse:
    """Relay a signed withdrawal claim to the bridge contract."""

    enforce_rate_limit(request, "withdraw")
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidRequest("Request body must be valid JSON") from exc

    relay: WithdrawalRelay = request.app.state.relay
    receipt = await relay.handle_withdraw(body)
    return JSONResponse(receipt.to_response())
