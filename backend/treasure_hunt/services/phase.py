from __future__ import annotations
from datetime import datetime
from treasure_hunt.schemas.common import ensure_utc
from treasure_hunt.schemas.runtime import PhaseState, RuntimeSettingsRecord


def compute_phase(settings: RuntimeSettingsRecord | None, now: datetime) -> PhaseState:
    """
    Map wall-clock time onto the event phase. Pure and uncached: call it on every
    evaluation with freshly-read settings.

        unknown   eventStart or eventEnd missing          (hidden)
        pre       now < eventStart, countdown to start    (hidden)
        finished  now >= eventEnd                         (visible, final)
        frozen    freezeAt <= now < eventEnd, countdown to end   (hidden)
        running   otherwise, countdown to freezeAt or eventEnd   (visible)
    """
    if settings is None or settings.event_start is None or settings.event_end is None:
        return PhaseState(phase="unknown", is_leaderboard_visible=False)

    now = ensure_utc(now)
    if now < settings.event_start:
        return PhaseState(phase="pre", countdown_target=settings.event_start, is_leaderboard_visible=False)
    if now >= settings.event_end:
        return PhaseState(phase="finished", is_leaderboard_visible=True)
    if settings.freeze_at is not None and now >= settings.freeze_at:
        return PhaseState(phase="frozen", countdown_target=settings.event_end, is_leaderboard_visible=False)
    return PhaseState(
        phase="running",
        countdown_target=settings.freeze_at or settings.event_end,
        is_leaderboard_visible=True,
    )


def is_masked(settings: RuntimeSettingsRecord | None, now: datetime) -> bool:
    """Leaderboard masking flag: manual override, or inside [freezeAt, eventEnd)."""
    if settings is None:
        return False
    if settings.freeze_override:
        return True
    if settings.freeze_at is None or settings.event_end is None:
        return False
    return settings.freeze_at <= ensure_utc(now) < settings.event_end


def format_duration(target: datetime, now: datetime) -> str:
    """Countdown as HH:MM:SS, or MM:SS under an hour; 00:00 once reached."""
    diff = (ensure_utc(target) - ensure_utc(now)).total_seconds()
    if diff <= 0:
        return "00:00"
    total = int(diff)
    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"
