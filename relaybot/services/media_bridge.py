"""Voice round-tripping: download, transcribe, synthesize.

Each capability is an adapter over one external service. Download degrades to
``None``; transcription and synthesis raise ``MediaError`` subclasses so the
caller decides whether to abort the turn or fall back to text.
"""

import re
from typing import Optional

from relaybot.logging_config import get_logger
from relaybot.services.llm.base import LLMError, LLMProvider
from relaybot.services.tts_service import AzureTTSProvider, TTSError
from relaybot.services.whatsapp_service import MediaBlob, WhatsAppService

logger = get_logger("media_bridge")


class MediaError(Exception):
    pass


class TranscriptionError(MediaError):
    pass


class SynthesisError(MediaError):
    pass


# Order matters: "audio/mp4" must not fall through to the mpeg check.
_EXTENSIONS_BY_MIME_FRAGMENT = (
    ("ogg", "ogg"),
    ("mp4", "mp4"),
    ("mpeg", "mp3"),
    ("mp3", "mp3"),
    ("webm", "webm"),
    ("wav", "wav"),
)
DEFAULT_AUDIO_EXTENSION = "ogg"

VOICE_REQUEST_PATTERNS = (
    re.compile(r"voice\s*note", re.IGNORECASE),
    re.compile(r"voice\s*message", re.IGNORECASE),
    re.compile(r"audio\s*message", re.IGNORECASE),
    re.compile(r"audio\s*note", re.IGNORECASE),
    re.compile(r"send\b.*\bvoice", re.IGNORECASE),
    re.compile(r"respond\b.*\bvoice", re.IGNORECASE),
    re.compile(r"reply\b.*\bvoice", re.IGNORECASE),
    re.compile(r"answer\b.*\bvoice", re.IGNORECASE),
    re.compile(r"in\s+(?:a\s+)?voice", re.IGNORECASE),
    re.compile(r"as\s+(?:a\s+)?voice", re.IGNORECASE),
    re.compile(r"via\s+voice", re.IGNORECASE),
)


def audio_extension(mime_type: Optional[str]) -> str:
    """Map an audio MIME type to a file extension the STT service accepts."""
    mime = (mime_type or "").lower()
    for fragment, extension in _EXTENSIONS_BY_MIME_FRAGMENT:
        if fragment in mime:
            return extension
    return DEFAULT_AUDIO_EXTENSION


def wants_voice_reply(text: str) -> bool:
    """True if a text message explicitly asks for a spoken answer."""
    if not text:
        return False
    return any(pattern.search(text) for pattern in VOICE_REQUEST_PATTERNS)


class MediaBridge:
    def __init__(
        self,
        whatsapp: Optional[WhatsAppService],
        transcriber: Optional[LLMProvider],
        synthesizer: Optional[AzureTTSProvider],
    ):
        self.whatsapp = whatsapp
        self.transcriber = transcriber
        self.synthesizer = synthesizer

    def download(self, media_id: str) -> Optional[MediaBlob]:
        if self.whatsapp is None:
            logger.error("Cannot download media without WhatsApp credentials", extra={"context": {"media_id": media_id}})
            return None
        return self.whatsapp.download_media(media_id)

    def transcribe(self, blob: MediaBlob) -> str:
        if self.transcriber is None:
            raise TranscriptionError("speech-to-text is not configured (OPENAI_API_KEY)")
        filename = f"voice.{audio_extension(blob.mime_type)}"
        try:
            return self.transcriber.transcribe_audio(
                audio_bytes=blob.content,
                filename=filename,
                mime_type=blob.mime_type,
            )
        except (LLMError, ValueError) as e:
            raise TranscriptionError(str(e)) from e

    def synthesize(self, text: str) -> bytes:
        if self.synthesizer is None:
            raise SynthesisError("text-to-speech is not configured")
        try:
            audio = self.synthesizer.synthesize(text)
        except TTSError as e:
            raise SynthesisError(str(e)) from e
        if not audio:
            raise SynthesisError("text-to-speech returned no audio")
        return audio
