from __future__ import annotations
from typing import Any
from treasure_hunt.schemas.common import CamelModel

class SetUserRolePayload(CamelModel):
    uid: str | None = None
    email: str | None = None
    # left untyped; sanitize_role turns anything unknown into invalid-role
    role: Any = None
    team_name: str | None = None
    team_tag: str | None = None
    match_id: str | None = None
    group_id: str | None = None

class SetUserRoleResponse(CamelModel):
    uid: str
    email: str | None = None
    role: str | None = None
    team_updated: bool

class BulkImportPayload(CamelModel):
    # each row is validated on its own in bulk_import_users
    rows: list[Any] | None = None

class BulkImportError(CamelModel):
    index: int
    code: str
    message: str

class BulkImportResult(CamelModel):
    success_count: int
    failure_count: int
    errors: list[BulkImportError]

class SetTeamGroupPayload(CamelModel):
    match_id: str | None = None
    group_id: str | None = None
