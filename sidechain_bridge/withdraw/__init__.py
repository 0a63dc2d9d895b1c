"""Withdrawal relay: claim authentication, approval gate and contract call."""

from sidechain_bridge.withdraw.approval import ApprovalGate, ApprovalState
from sidechain_bridge.withdraw.routes import router
from sidechain_bridge.withdraw.service import WithdrawalRelay

__all__ = ["ApprovalGate", "ApprovalState", "WithdrawalRelay", "router"]
