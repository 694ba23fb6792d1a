from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import CheckConstraint, String, Integer, UniqueConstraint, func
from treasure_hunt.db import Base, JSONDoc, UTCDateTime

class Team(Base):
    """
    One team per leader; id == the leader's user id.

    `solved` is the append-only ledger of accepted claims:
        {location_id: {"at": iso8601, "points": int}}
    A key present there means the location was already scored for this team.
    `score` is a denormalized running total that only ever increases through claims.
    `version` backs optimistic concurrency: every write bumps it, and the claim commit is
    conditional on the version that was read.
    """
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    leader_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    team_tag: Mapped[str] = mapped_column(String(64), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    match_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    match_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    group_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    group_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    solved: Mapped[dict] = mapped_column(JSONDoc, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (CheckConstraint("score >= 0", name="ck_teams_score_nonneg"),)
    __mapper_args__ = {"version_id_col": version}

class Claim(Base):
    """Immutable audit entry, one per accepted submission."""
    __tablename__ = "claims"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    team_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    processed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    processed_by: Mapped[str] = mapped_column(String(16), nullable=False)  # leader | admin

    __table_args__ = (
        # second exactly-once guard behind the solved-map check
        UniqueConstraint("team_id", "location_id", name="uq_claim_once_per_location"),
    )
