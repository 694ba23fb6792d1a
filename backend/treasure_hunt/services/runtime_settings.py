from __future__ import annotations
from datetime import datetime, timezone as dt_tz
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.errors import InvalidArgument
from treasure_hunt.models.runtime import RUNTIME_ID, RuntimeSettings
from treasure_hunt.schemas.runtime import RuntimeSettingsRecord, RuntimeSettingsUpdate

log = structlog.get_logger()


async def load_runtime_settings(session: AsyncSession) -> RuntimeSettingsRecord | None:
    row = await session.get(RuntimeSettings, RUNTIME_ID, populate_existing=True)
    return RuntimeSettingsRecord.model_validate(row) if row else None


async def _row(session: AsyncSession) -> RuntimeSettings:
    row = await session.get(RuntimeSettings, RUNTIME_ID)
    if row is None:
        row = RuntimeSettings(id=RUNTIME_ID, freeze_override=False)
        session.add(row)
    return row


async def set_freeze_state(session: AsyncSession, frozen) -> RuntimeSettingsRecord:
    """Manual freeze switch; masks the leaderboard regardless of the clock while on."""
    if not isinstance(frozen, bool):
        raise InvalidArgument("frozen must be a boolean.")
    row = await _row(session)
    row.freeze_override = frozen
    row.updated_at = datetime.now(dt_tz.utc)
    await session.commit()
    log.info("freeze_state_updated", frozen=frozen)
    return RuntimeSettingsRecord.model_validate(row)


async def update_runtime_settings(session: AsyncSession, payload: RuntimeSettingsUpdate) -> RuntimeSettingsRecord:
    """
    Partial update of the event milestones. Fields left out keep their value; an
    explicit null clears one. The resulting set must satisfy
    eventStart <= freezeAt <= eventEnd wherever both sides are present.
    """
    row = await _row(session)
    changes = payload.model_dump(exclude_unset=True)
    merged = {
        "event_start": row.event_start,
        "freeze_at": row.freeze_at,
        "event_end": row.event_end,
        **changes,
    }
    start, freeze, end = merged["event_start"], merged["freeze_at"], merged["event_end"]
    if start and end and end <= start:
        raise InvalidArgument("eventEnd must be after eventStart.")
    if freeze and start and freeze < start:
        raise InvalidArgument("freezeAt must not be before eventStart.")
    if freeze and end and freeze > end:
        raise InvalidArgument("freezeAt must not be after eventEnd.")

    for key, value in changes.items():
        setattr(row, key, value)
    row.updated_at = datetime.now(dt_tz.utc)
    await session.commit()
    log.info("runtime_settings_updated", fields=sorted(changes))
    return RuntimeSettingsRecord.model_validate(row)
