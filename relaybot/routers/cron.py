from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from relaybot.config import settings
from relaybot.database import get_db
from relaybot.schemas.cron import InactivityAlertResponse
from relaybot.services.inactivity_service import REASON_ALERT_FAILED, check_inactivity

router = APIRouter(prefix="/cron", tags=["cron"])


@router.get("/inactivity-alert", response_model=InactivityAlertResponse)
def inactivity_alert(
    secret: Optional[str] = Query(default=None),
    x_cron_secret: Optional[str] = Header(default=None, alias="X-Cron-Secret"),
    db: Session = Depends(get_db),
):
    """Polled by an external scheduler. Open when CRON_SECRET is unset."""
    provided = secret if secret is not None else x_cron_secret
    if settings.cron_secret and provided != settings.cron_secret:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    result = InactivityAlertResponse(**check_inactivity(db).as_dict())
    if result.reason == REASON_ALERT_FAILED:
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=result.model_dump(mode="json"))
    return result
