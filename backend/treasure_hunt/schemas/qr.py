from __future__ import annotations
from treasure_hunt.schemas.common import CamelModel

class GenerateQrPayload(CamelModel):
    location_id: str | None = None
    expires_at: str | None = None

class GenerateQrResponse(CamelModel):
    token: str
    nonce: str
    png_base64: str
