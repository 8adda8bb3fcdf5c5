from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_audit_logger
from app.models.audit_log import AuditLog


logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            Decimal: lambda v: str(v),
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
            UUID: lambda v: str(v),
        },
    )


def model_snapshot(model: Any, *, exclude: Iterable[str] | None = None) -> dict[str, Any]:
    if model is None:
        return {}
    excluded = set(exclude or [])
    data: dict[str, Any] = {}
    for column in model.__table__.columns:
        name = column.name
        if name in excluded:
            continue
        data[name] = getattr(model, name)
    return serialize_for_audit(data)


def _diff_values(old: Any, new: Any, prefix: str = "") -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}
    if isinstance(old, dict) and isinstance(new, dict):
        for key in sorted(set(old.keys()) | set(new.keys())):
            path = f"{prefix}.{key}" if prefix else str(key)
            changes.update(_diff_values(old.get(key), new.get(key), path))
        return changes
    if old != new:
        changes[prefix or "value"] = {"from": old, "to": new}
    return changes


def _build_summary(action: str, changes: dict[str, dict[str, Any]] | None) -> str:
    if not changes:
        return action
    keys = list(changes.keys())
    snippet = ", ".join(keys[:3])
    suffix = "..." if len(keys) > 3 else ""
    return f"{action}: {snippet}{suffix}"


def record_audit_log(
    db: AsyncSession,
    actor,
    *,
    action: str,
    resource_type: str,
    resource_id: Any,
    old_value: Any | None = None,
    new_value: Any | None = None,
) -> AuditLog:
    """Stage an audit row on the session and mirror it to the audit log stream.

    ``actor`` is any object with ``id`` and ``name`` (normally the request
    principal); ``None`` marks a system action such as seeding.
    """
    serialized_old = serialize_for_audit(old_value) if old_value is not None else None
    serialized_new = serialize_for_audit(new_value) if new_value is not None else None
    changes = None
    if serialized_old is not None or serialized_new is not None:
        changes = _diff_values(serialized_old or {}, serialized_new or {}) or None
    summary = _build_summary(action, changes)
    entry = AuditLog(
        actor_id=str(actor.id) if actor is not None else None,
        actor_name=getattr(actor, "name", None) if actor is not None else "system",
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id),
        old_value=serialized_old,
        new_value=serialized_new,
        changes=changes,
        summary=summary,
    )
    db.add(entry)
    audit_logger.info(
        summary,
        extra={
            "action": action,
            "resource_type": resource_type,
            "resource_id": str(resource_id),
        },
    )
    return entry


async def list_recent_activity(
    db: AsyncSession,
    *,
    resource_ids: Iterable[Any] | None = None,
    actor_id: Any | None = None,
    limit: int = 10,
) -> list[AuditLog]:
    stmt = select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)
    if resource_ids is not None:
        ids = [str(value) for value in resource_ids]
        if not ids:
            return []
        stmt = stmt.where(AuditLog.resource_id.in_(ids))
    if actor_id is not None:
        stmt = stmt.where(AuditLog.actor_id == str(actor_id))
    result = await db.execute(stmt)
    return list(result.scalars().all())
