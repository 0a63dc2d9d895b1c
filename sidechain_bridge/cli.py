"""Command-line client: deposit/donate through the bridge and request withdrawals."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Sequence

import httpx
from xrpl.constants import CryptoAlgorithm
from xrpl.wallet import Wallet

from sidechain_bridge.config import ClientSettings, get_client_settings
from sidechain_bridge.errors import RelayError
from sidechain_bridge.instructions.builder import build_payment
from sidechain_bridge.instructions.memo import describe_memos
from sidechain_bridge.lib.ledger_client import LedgerClient, LedgerSubmissionError
from sidechain_bridge.lib.logger import get_logger
from sidechain_bridge.withdraw.auth import sign_claim

logger = get_logger(__name__)

FUND_RELAYER_AMOUNT = "50"


class CliError(RuntimeError):
    """User-facing failure; printed without a traceback."""


def load_wallet(settings: ClientSettings) -> Wallet:
    if not settings.wallet_seed:
        raise CliError("XRPL_WALLET_SEED is not configured")
    try:
        return Wallet.from_seed(settings.wallet_seed, algorithm=CryptoAlgorithm.SECP256K1)
    except Exception as exc:
        raise CliError(f"Unable to load wallet from seed: {exc}") from exc


async def send_outbound(operation: str, amount: str, destination: str, settings: ClientSettings) -> dict[str, Any]:
    """Build, sign and submit a deposit or donate payment to the bridge account."""

    wallet = load_wallet(settings)
    try:
        payment = build_payment(operation, amount, destination, settings=settings)  # type: ignore[arg-type]
    except (ValueError, RelayError) as exc:
        raise CliError(str(exc)) from exc

    transaction = payment.to_transaction(wallet.address)
    logger.info(
        "outbound_prepared",
        extra={
            "operation": operation,
            "amount_drops": payment.amount_drops,
            "memos": describe_memos(transaction.memos or []),
        },
    )
    client = LedgerClient(settings.xrpl_rpc_url)
    try:
        return await client.submit(transaction, wallet)
    except LedgerSubmissionError as exc:
        raise CliError(str(exc)) from exc


async def request_withdraw(amount: str, account: str | None, settings: ClientSettings) -> dict[str, Any]:
    """Sign a fresh withdrawal claim and post it to the relayer."""

    wallet = load_wallet(settings)
    claim = sign_claim(wallet, amount, account=account)
    url = settings.relayer_url.rstrip("/") + "/withdraw"
    try:
        async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
            response = await client.post(url, json=claim)
    except httpx.HTTPError as exc:
        raise CliError(f"Error communicating with withdraw relayer: {exc}") from exc

    try:
        body = response.json()
    except ValueError as exc:
        raise CliError(f"Relayer returned non-JSON response ({response.status_code})") from exc
    if response.status_code != 200 or not body.get("success"):
        detail = body.get("details") or body.get("error") or body
        raise CliError(f"Withdraw request failed ({response.status_code}): {detail}")
    return body


def _decode_memos(source: str) -> dict[str, str]:
    try:
        text = source if source.lstrip().startswith(("[", "{")) else Path(source).read_text(encoding="utf-8")
        data = json.loads(text)
        if isinstance(data, dict):
            data = data.get("Memos", [])
        return describe_memos(data)
    except (OSError, ValueError) as exc:
        raise CliError(f"Unable to decode memos: {exc}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sidechain-bridge", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    deposit = commands.add_parser("deposit", help="Deposit XRP into the sidechain bank contract")
    deposit.add_argument("--amount", required=True, help="Amount in XRP, e.g. 0.1")
    deposit.add_argument("--destination", required=True, help="EVM destination address")

    donate = commands.add_parser("donate", help="Send XRP to an EVM address without a contract payload")
    donate.add_argument("--amount", required=True, help="Amount in XRP")
    donate.add_argument("--destination", required=True, help="EVM destination address")

    fund = commands.add_parser("fund-relayer", help=f"Donate {FUND_RELAYER_AMOUNT} XRP to the withdraw relayer")
    fund.add_argument("--destination", required=True, help="EVM address of the withdraw relayer")

    withdraw = commands.add_parser("withdraw", help="Withdraw from the bank contract back to the ledger")
    withdraw.add_argument("--amount", required=True, help="Amount in XRP")
    withdraw.add_argument("--account", default=None, help="Ledger account to credit; defaults to the wallet address")

    decode = commands.add_parser("decode-memos", help="Print bridge memos in readable form")
    decode.add_argument("source", help="Path to, or inline, JSON list of memos or a transaction")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_client_settings()

    try:
        if args.command == "deposit":
            result = asyncio.run(send_outbound("deposit", args.amount, args.destination, settings))
        elif args.command == "donate":
            result = asyncio.run(send_outbound("donate", args.amount, args.destination, settings))
        elif args.command == "fund-relayer":
            result = asyncio.run(send_outbound("donate", FUND_RELAYER_AMOUNT, args.destination, settings))
        elif args.command == "withdraw":
            result = asyncio.run(request_withdraw(args.amount, args.account, settings))
        else:
            result = _decode_memos(args.source)
    except CliError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
