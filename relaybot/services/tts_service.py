from typing import Optional

import httpx

from relaybot.config import settings
from relaybot.logging_config import get_logger

logger = get_logger("tts_service")

# Opus in an OGG container is what WhatsApp renders as a voice note.
OUTPUT_FORMAT = "ogg-24khz-16bit-mono-opus"
OUTPUT_MIME_TYPE = "audio/ogg"


class TTSError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def escape_xml(text: str) -> str:
    """Escape text for embedding in SSML. Ampersand goes first."""
    for raw, escaped in _XML_ESCAPES:
        text = text.replace(raw, escaped)
    return text


def build_ssml(text: str, voice: str, locale: str = "en-US") -> str:
    return (
        f"<speak version='1.0' xml:lang='{locale}'>"
        f"<voice xml:lang='{locale}' xml:gender='Female' name='{voice}'>"
        f"{escape_xml(text)}"
        "</voice></speak>"
    )


class AzureTTSProvider:
    """Azure Cognitive Services text-to-speech."""

    URL = "https://{region}.tts.speech.microsoft.com/cognitiveservices/v1"

    def __init__(
        self,
        api_key: Optional[str],
        region: str = "eastus",
        voice: str = "en-US-EmmaMultilingualNeural",
        timeout_seconds: float = 30.0,
    ):
        self.api_key = api_key
        self.region = region
        self.voice = voice
        self.timeout_seconds = timeout_seconds
        self.url = self.URL.format(region=region)

    def synthesize(self, text: str) -> bytes:
        """Render text to OGG/Opus audio."""
        if not self.api_key:
            raise TTSError("AZURE_TTS_KEY not set")

        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(
                    self.url,
                    headers={
                        "Ocp-Apim-Subscription-Key": self.api_key,
                        "Content-Type": "application/ssml+xml",
                        "X-Microsoft-OutputFormat": OUTPUT_FORMAT,
                        "User-Agent": "relaybot",
                    },
                    content=build_ssml(text, self.voice).encode("utf-8"),
                )
        except httpx.HTTPError as e:
            raise TTSError(f"Azure TTS request failed: {e}") from e

        if not response.is_success:
            raise TTSError(f"Azure TTS error {response.status_code}: {response.text[:500]}", response.status_code)

        logger.debug(f"Azure TTS ok: bytes={len(response.content)}")
        return response.content


def get_tts_provider() -> AzureTTSProvider:
    return AzureTTSProvider(
        api_key=settings.azure_tts_key,
        region=settings.azure_tts_region,
        voice=settings.azure_tts_voice,
        timeout_seconds=settings.http_timeout_seconds,
    )
