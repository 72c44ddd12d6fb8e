from relaybot.schemas.admin import AlertTestResponse, HistoryEntry, HistoryResponse
from relaybot.schemas.cron import InactivityAlertResponse
from relaybot.schemas.webhook import WebhookAck

__all__ = ["WebhookAck", "HistoryEntry", "HistoryResponse", "AlertTestResponse", "InactivityAlertResponse"]
