from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean
from treasure_hunt.db import Base, JSONDoc, UTCDateTime

RUNTIME_ID = "runtime"

class RuntimeSettings(Base):
    """Singleton row (id = "runtime") with the event milestones and the manual freeze switch."""
    __tablename__ = "runtime_settings"
    id: Mapped[str] = mapped_column(String(16), primary_key=True, default=RUNTIME_ID)
    event_start: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    freeze_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    event_end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    freeze_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

class PublicLeaderboard(Base):
    """Derived snapshot, wholesale-replaced on every recomputation (last writer wins)."""
    __tablename__ = "leaderboard_public"
    id: Mapped[str] = mapped_column(String(16), primary_key=True, default=RUNTIME_ID)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[dict] = mapped_column(JSONDoc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
