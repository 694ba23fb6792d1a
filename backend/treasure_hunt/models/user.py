from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, func
from treasure_hunt.db import Base, JSONDoc, UTCDateTime

class User(Base):
    """
    Identity record. `claims` is a small free-form map; the service only reads and
    writes its "role" key (leader | admin, absent = no role) and leaves the rest untouched.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    claims: Mapped[dict] = mapped_column(JSONDoc, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), server_default=func.now(), nullable=False)

    @property
    def role(self) -> str | None:
        role = (self.claims or {}).get("role")
        return role if role in ("leader", "admin") else None
