"""Append-only audit log of relay activity."""

from __future__ import annotations

import json
import secrets
import time
from pathlib import Path
from typing import Any

from sidechain_bridge.config import get_settings


def storage_dir() -> Path:
    return get_settings().storage_dir


def audit_log_path() -> Path:
    return storage_dir() / "audit_log.jsonl"


def append_audit(entry: dict[str, Any]) -> None:
    """Append a structured audit record, stamping ``id`` and ``ts`` when absent."""

    record = {"id": secrets.token_hex(16), "ts": time.time(), **entry}
    storage_dir().mkdir(parents=True, exist_ok=True)
    with audit_log_path().open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(record) + "\n")


def load_audit() -> list[dict[str, Any]]:
    path = audit_log_path()
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]
