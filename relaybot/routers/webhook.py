"""WhatsApp Cloud API webhook: subscription handshake and inbound deliveries."""

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from relaybot.config import settings
from relaybot.database import get_db
from relaybot.logging_config import get_logger
from relaybot.schemas.webhook import WebhookAck
from relaybot.services.pipeline import HUMAN_IN_CONTROL, NOT_ALLOWED, build_pipeline

logger = get_logger("webhook")

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])

SUPPRESSED_MESSAGES = {
    NOT_ALLOWED: "Number not allowed for AI",
    HUMAN_IN_CONTROL: "Human in control - AI skipped",
}


def _get_request_webhook_secret(request: Request) -> Optional[str]:
    header_secret = request.headers.get("X-Webhook-Secret")
    if header_secret:
        return header_secret.strip()
    query_secret = request.query_params.get("webhook_secret")
    if query_secret:
        return query_secret.strip()
    return None


@router.get("/webhook")
def verify_webhook(
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
):
    """Subscription handshake: echo the challenge when the verify token matches."""
    expected = settings.whatsapp_webhook_verify_token
    if hub_mode == "subscribe" and expected and hub_verify_token == expected:
        logger.info("Webhook verified")
        return PlainTextResponse(hub_challenge or "", status_code=status.HTTP_200_OK)
    logger.warning("Webhook verification rejected", extra={"context": {"mode": hub_mode}})
    return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)


def _process_delivery(body: Any, db: Session) -> WebhookAck:
    try:
        outcome = build_pipeline(db).process(body)
    except Exception as e:
        logger.exception("Webhook processing failed", extra={"context": {"error": str(e)}})
        return WebhookAck()
    return WebhookAck(message=SUPPRESSED_MESSAGES.get(outcome.reason))


@router.post("/webhook", response_model=WebhookAck, response_model_exclude_none=True)
async def receive_webhook(request: Request, db: Session = Depends(get_db)):
    """Inbound delivery. Acknowledged with 200 whatever happens downstream."""
    expected_secret = settings.whatsapp_webhook_secret
    if expected_secret and _get_request_webhook_secret(request) != expected_secret:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")

    raw = await request.body()
    try:
        body = json.loads(raw)
    except ValueError:
        logger.warning("Webhook body is not valid JSON", extra={"context": {"size": len(raw)}})
        return WebhookAck()

    return await run_in_threadpool(_process_delivery, body, db)
