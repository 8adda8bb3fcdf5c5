from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from app.core.settings import settings
from app.db.session import engine

APP_VERSION = "0.1.0"


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


async def _check_db() -> dict[str, Any]:
    started = time.perf_counter()
    try:
        async with engine.begin() as conn:  # type: AsyncConnection
            await conn.execute(text("SELECT 1"))
        return {"status": "ok", "latency_ms": _elapsed_ms(started)}
    except Exception as exc:  # pragma: no cover - exercised in runtime
        return {"status": "error", "error": str(exc), "latency_ms": _elapsed_ms(started)}


async def _check_storage() -> dict[str, Any]:
    started = time.perf_counter()
    root = Path(settings.local_upload_dir)
    try:
        root.mkdir(parents=True, exist_ok=True)
        if not os.access(root, os.W_OK):
            return {"status": "error", "error": f"{root} is not writable", "latency_ms": _elapsed_ms(started)}
        return {"status": "ok", "latency_ms": _elapsed_ms(started)}
    except OSError as exc:
        return {"status": "error", "error": str(exc), "latency_ms": _elapsed_ms(started)}


async def _check_api() -> dict[str, Any]:
    return {"status": "ok", "version": APP_VERSION, "latency_ms": 0.0}


async def _run_checks() -> dict[str, dict[str, Any]]:
    return {
        "api": await _check_api(),
        "database": await _check_db(),
        "document_storage": await _check_storage(),
    }


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def live_payload() -> dict[str, str]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def ready_payload() -> dict[str, Any]:
    checks = await _run_checks()
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


async def status_summary_payload() -> dict[str, Any]:
    payload = await ready_payload()
    payload["version"] = APP_VERSION
    return payload


async def system_health_payload() -> dict[str, Any]:
    """Per-component view used by the admin system screen."""
    checks = await _run_checks()
    overall, _ = _overall_status(checks)
    return {
        "status": overall,
        "version": APP_VERSION,
        "environment": settings.environment,
        "components": [
            {
                "name": name,
                "status": check.get("status"),
                "detail": check.get("error"),
                "latency_ms": check.get("latency_ms"),
            }
            for name, check in checks.items()
        ],
    }
