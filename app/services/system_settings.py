from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import Conflict, NotFound, ValidationError
from app.models.system_setting import SystemSetting
from app.schemas.common import ListQuery
from app.schemas.system_settings import (
    SettingValueType,
    SystemSettingCreate,
    SystemSettingUpdate,
)
from app.services import listing
from app.services.audit import model_snapshot, record_audit_log


_BOOLEAN_VALUES = {"true", "false"}


def validate_setting_value(value: str, value_type: SettingValueType | str) -> str:
    """Return the canonical text form of ``value`` or raise ``ValidationError``."""
    kind = SettingValueType(value_type)
    text = "" if value is None else str(value).strip()
    errors: list[str] = []

    if kind == SettingValueType.NUMBER:
        try:
            number = Decimal(text)
        except InvalidOperation:
            errors.append(f"'{text}' is not a number")
        else:
            if not number.is_finite():
                errors.append(f"'{text}' is not a finite number")
    elif kind == SettingValueType.BOOLEAN:
        if text.lower() not in _BOOLEAN_VALUES:
            errors.append("Boolean settings accept 'true' or 'false'")
        text = text.lower()
    elif kind == SettingValueType.JSON:
        try:
            json.loads(text)
        except json.JSONDecodeError as exc:
            errors.append(f"Invalid JSON: {exc.msg}")

    if errors:
        raise ValidationError("; ".join(errors), field="value", details={"value_type": kind.value})
    return text


def typed_value(setting: SystemSetting):
    kind = SettingValueType(setting.value_type)
    if kind == SettingValueType.NUMBER:
        return Decimal(setting.value)
    if kind == SettingValueType.BOOLEAN:
        return setting.value == "true"
    if kind == SettingValueType.JSON:
        return json.loads(setting.value)
    return setting.value


async def list_settings(db: AsyncSession, query: ListQuery | None = None) -> list[SystemSetting]:
    result = await db.execute(
        select(SystemSetting).order_by(SystemSetting.category, SystemSetting.key)
    )
    return listing.apply_query(result.scalars().all(), query, listing.SETTING_LISTING)


async def get_setting(db: AsyncSession, setting_id: UUID) -> SystemSetting:
    setting = await db.get(SystemSetting, setting_id)
    if setting is None:
        raise NotFound("System setting", setting_id)
    return setting


async def create_setting(
    db: AsyncSession, principal: deps.Principal, payload: SystemSettingCreate
) -> SystemSetting:
    key = payload.key.strip()
    existing = await db.execute(select(SystemSetting.id).where(SystemSetting.key == key))
    if existing.first() is not None:
        raise Conflict(f"Setting '{key}' already exists", {"key": key})
    setting = SystemSetting(
        category=payload.category.value,
        key=key,
        value=validate_setting_value(payload.value, payload.value_type),
        description=payload.description,
        value_type=payload.value_type.value,
        updated_at=datetime.now(timezone.utc),
        updated_by=principal.name,
    )
    db.add(setting)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="system_setting.created",
        resource_type="system_setting",
        resource_id=setting.id,
        new_value=model_snapshot(setting),
    )
    return setting


async def update_setting(
    db: AsyncSession,
    principal: deps.Principal,
    setting: SystemSetting,
    payload: SystemSettingUpdate,
) -> SystemSetting:
    before = model_snapshot(setting)
    value_type = payload.value_type or SettingValueType(setting.value_type)
    value = payload.value if payload.value is not None else setting.value
    setting.value = validate_setting_value(value, value_type)
    setting.value_type = value_type.value
    if payload.category is not None:
        setting.category = payload.category.value
    if payload.description is not None:
        setting.description = payload.description
    setting.updated_at = datetime.now(timezone.utc)
    setting.updated_by = principal.name
    db.add(setting)
    await db.flush()
    record_audit_log(
        db,
        principal,
        action="system_setting.updated",
        resource_type="system_setting",
        resource_id=setting.id,
        old_value=before,
        new_value=model_snapshot(setting),
    )
    return setting
