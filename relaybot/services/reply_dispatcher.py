from dataclasses import dataclass
from typing import Literal, Optional

from relaybot.logging_config import TurnLogger, get_logger
from relaybot.services.media_bridge import MediaBridge
from relaybot.services.result import DispatchResult
from relaybot.services.tts_service import OUTPUT_MIME_TYPE
from relaybot.services.whatsapp_service import WhatsAppService

logger = get_logger("reply_dispatcher")

Channel = Literal["text", "audio", "text_fallback"]


@dataclass(frozen=True)
class DispatchOutcome:
    ok: bool
    channel: Channel
    media_id: Optional[str] = None
    error: Optional[str] = None
    voice_error: Optional[str] = None

    def as_metadata(self) -> dict:
        delivery = {"ok": self.ok, "channel": self.channel}
        if self.error:
            delivery["error"] = self.error
        if self.voice_error:
            delivery["voice_error"] = self.voice_error
        return {"delivery": delivery}


class ReplyDispatcher:
    """Sends the agent's reply as text or voice, falling back to text once."""

    def __init__(self, whatsapp: Optional[WhatsAppService], media: MediaBridge):
        self.whatsapp = whatsapp
        self.media = media

    def send_text(self, recipient: str, text: str) -> DispatchResult:
        if self.whatsapp is None:
            return DispatchResult.failed("No WhatsApp credentials configured")
        return self.whatsapp.send_text(recipient, text)

    def send_audio(self, recipient: str, content: bytes, mime_type: str = OUTPUT_MIME_TYPE) -> DispatchResult:
        if self.whatsapp is None:
            return DispatchResult.failed("No WhatsApp credentials configured")
        return self.whatsapp.send_audio(recipient, content, mime_type)

    def _send_voice(self, recipient: str, text: str) -> DispatchResult:
        try:
            audio = self.media.synthesize(text)
        except Exception as e:
            return DispatchResult.failed(f"synthesis_error: {e}")
        try:
            return self.send_audio(recipient, audio, OUTPUT_MIME_TYPE)
        except Exception as e:
            return DispatchResult.failed(f"audio_send_error: {e}")

    def dispatch_reply(
        self,
        recipient: str,
        text: str,
        *,
        voice: bool,
        log: Optional[TurnLogger] = None,
    ) -> DispatchOutcome:
        """Deliver one reply. Delivery failures are reported in the outcome."""
        log = log or TurnLogger(logger, {})
        if not voice:
            result = self.send_text(recipient, text)
            if not result.ok:
                log.error("Failed to send reply", context={"error": result.error})
            return DispatchOutcome(ok=result.ok, channel="text", error=result.error)

        voice_result = self._send_voice(recipient, text)
        if voice_result.ok:
            log.info("Voice reply sent", context={"media_id": voice_result.media_id})
            return DispatchOutcome(ok=True, channel="audio", media_id=voice_result.media_id)

        log.warning("Voice reply failed, falling back to text", context={"voice_error": voice_result.error})
        fallback = self.send_text(recipient, text)
        if not fallback.ok:
            log.error("Text fallback also failed", context={"error": fallback.error})
        return DispatchOutcome(
            ok=fallback.ok,
            channel="text_fallback",
            error=fallback.error,
            voice_error=voice_result.error,
        )
