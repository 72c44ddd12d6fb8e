from relaybot.models.ai_mode_settings import AiModeSettings
from relaybot.models.chat_history import ChatHistory
from relaybot.models.human_control import HumanControl
from relaybot.models.inactivity_alert_log import InactivityAlertLog
from relaybot.models.whatsapp_connection import WhatsAppConnection

__all__ = [
    "AiModeSettings",
    "ChatHistory",
    "HumanControl",
    "InactivityAlertLog",
    "WhatsAppConnection",
]
