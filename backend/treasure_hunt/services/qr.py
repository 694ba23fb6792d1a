from __future__ import annotations
import base64
import io
from datetime import datetime, timedelta, timezone as dt_tz
import qrcode
import structlog
from qrcode.image.pil import PilImage
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.config import settings
from treasure_hunt.errors import InvalidArgument, NotFound
from treasure_hunt.models.competition import Location
from treasure_hunt.schemas.common import ensure_utc
from treasure_hunt.schemas.qr import GenerateQrPayload, GenerateQrResponse
from treasure_hunt.services.token_codec import issue_token

log = structlog.get_logger()


def render_png_base64(data: str) -> str:
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=settings.qr_png_box_size,
        border=settings.qr_png_border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(image_factory=PilImage)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


def parse_expiry(raw: str | None, now: datetime) -> datetime:
    if raw is None or raw == "":
        return now + timedelta(days=settings.qr_default_ttl_days)
    try:
        parsed = ensure_utc(datetime.fromisoformat(raw.strip()))
    except ValueError:
        raise InvalidArgument("expiresAt must be an ISO-8601 timestamp.")
    if parsed <= now:
        raise InvalidArgument("expiresAt must be in the future.")
    return parsed


async def generate_location_qr(
    session: AsyncSession, payload: GenerateQrPayload, now: datetime | None = None,
) -> GenerateQrResponse:
    """Issue a signed claim token for one location and render it as a PNG."""
    now = ensure_utc(now or datetime.now(dt_tz.utc))
    location_id = (payload.location_id or "").strip()
    if not location_id:
        raise InvalidArgument("locationId is required.")
    expires_at = parse_expiry(payload.expires_at, now)
    if await session.get(Location, location_id) is None:
        raise NotFound("Location not found.")

    issued = issue_token(location_id, expires_at)
    log.info("qr_issued", location_id=location_id, expires_at=expires_at.isoformat())
    return GenerateQrResponse(token=issued.token, nonce=issued.nonce, png_base64=render_png_base64(issued.token))
