"""Admin endpoints used by the operator dashboard."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from relaybot.config import settings
from relaybot.database import get_db
from relaybot.logging_config import get_logger
from relaybot.schemas.admin import AlertTestResponse, HistoryEntry, HistoryResponse
from relaybot.services.alert_service import send_alert
from relaybot.services.credentials_service import resolve_credentials
from relaybot.services.history_service import list_history
from relaybot.services.whatsapp_service import WhatsAppService

logger = get_logger("admin")

router = APIRouter(prefix="/admin", tags=["admin"])

MEDIA_CACHE_CONTROL = "private, max-age=3600"


def _require_admin_token(provided: Optional[str]) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="ADMIN_TOKEN not configured")
    if not provided or provided != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")


@router.get("/whatsapp/media")
def proxy_media(
    media_id: Optional[str] = Query(default=None, alias="mediaId"),
    db: Session = Depends(get_db),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
):
    """Stream a WhatsApp media object to the dashboard."""
    _require_admin_token(x_admin_token)
    media_id = (media_id or "").strip()
    if not media_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="mediaId required")

    credentials = resolve_credentials(db)
    if not credentials:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="WhatsApp credentials not configured")

    blob = WhatsAppService(credentials).download_media(media_id)
    if blob is None:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to fetch media")

    return Response(
        content=blob.content,
        media_type=blob.mime_type,
        headers={"Cache-Control": MEDIA_CACHE_CONTROL},
    )


@router.get("/whatsapp/history/{session_id}", response_model=HistoryResponse)
def get_history(
    session_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
):
    _require_admin_token(x_admin_token)
    rows = list_history(db, session_id, limit=limit)
    entries = [HistoryEntry.model_validate(row) for row in rows]
    return HistoryResponse(session_id=session_id, count=len(entries), rows=entries)


@router.post("/alerts/test", response_model=AlertTestResponse)
def alerts_test(x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token")):
    _require_admin_token(x_admin_token)
    sent = send_alert("INFO", "Alerts test", {"source": "admin.alerts_test"})
    if sent:
        return AlertTestResponse(success=True, message="Alert sent")
    return AlertTestResponse(success=False, message="Alert not sent (check ALERT_BOT_TOKEN/ALERT_CHAT_ID)")
