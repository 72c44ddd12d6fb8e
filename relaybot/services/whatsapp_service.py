from dataclasses import dataclass
from typing import Optional

import httpx

from relaybot.config import settings
from relaybot.logging_config import get_logger
from relaybot.services.credentials_service import WhatsAppCredentials
from relaybot.services.result import DispatchResult
from relaybot.services.session_keys import customer_number

logger = get_logger("whatsapp_service")


@dataclass(frozen=True)
class MediaBlob:
    content: bytes
    mime_type: str


DEFAULT_MEDIA_MIME_TYPE = "audio/ogg"


class WhatsAppService:
    """Client for the WhatsApp Cloud (Graph) API."""

    BASE_URL = "https://graph.facebook.com/{version}"

    def __init__(
        self,
        credentials: WhatsAppCredentials,
        api_version: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.credentials = credentials
        self.base_url = self.BASE_URL.format(version=api_version or settings.whatsapp_graph_api_version)
        self.timeout = timeout_seconds if timeout_seconds is not None else settings.http_timeout_seconds

    @property
    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.credentials.access_token}"}

    def _post_message(self, payload: dict) -> DispatchResult:
        url = f"{self.base_url}/{self.credentials.phone_number_id}/messages"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    url,
                    headers={**self._auth_headers, "Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp send error: {e}")
            return DispatchResult.failed(f"request_error: {e}")

        if not response.is_success:
            return DispatchResult.failed(f"{response.status_code}: {response.text[:500]}")
        return DispatchResult.sent()

    def send_text(self, recipient: str, text: str) -> DispatchResult:
        """Send a text message."""
        return self._post_message(
            {
                "messaging_product": "whatsapp",
                "recipient_type": "individual",
                "to": customer_number(recipient),
                "type": "text",
                "text": {"body": text},
            }
        )

    def upload_media(self, content: bytes, mime_type: str, filename: str = "voice.ogg") -> DispatchResult:
        """Upload media to the platform. Returns the media id on success."""
        url = f"{self.base_url}/{self.credentials.phone_number_id}/media"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    url,
                    headers=self._auth_headers,
                    data={"messaging_product": "whatsapp", "type": mime_type},
                    files={"file": (filename, content, mime_type)},
                )
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp media upload error: {e}")
            return DispatchResult.failed(f"upload_request_error: {e}")

        if not response.is_success:
            return DispatchResult.failed(f"upload {response.status_code}: {response.text[:500]}")

        try:
            payload = response.json()
        except ValueError:
            payload = None
        media_id = payload.get("id") if isinstance(payload, dict) else None
        if not media_id:
            return DispatchResult.failed("upload returned no media id")
        return DispatchResult.sent(media_id=str(media_id))

    def send_audio(self, recipient: str, content: bytes, mime_type: str = DEFAULT_MEDIA_MIME_TYPE) -> DispatchResult:
        """Upload audio, then send it as a voice message referencing the media id."""
        upload = self.upload_media(content, mime_type)
        if not upload.ok:
            return upload

        sent = self._post_message(
            {
                "messaging_product": "whatsapp",
                "recipient_type": "individual",
                "to": customer_number(recipient),
                "type": "audio",
                "audio": {"id": upload.media_id},
            }
        )
        if not sent.ok:
            return sent
        return DispatchResult.sent(media_id=upload.media_id)

    def download_media(self, media_id: str) -> Optional[MediaBlob]:
        """Resolve the media URL, then fetch the bytes. None on any failure."""
        try:
            with httpx.Client(timeout=self.timeout) as client:
                meta_response = client.get(f"{self.base_url}/{media_id}", headers=self._auth_headers)
                if not meta_response.is_success:
                    logger.error(
                        "Failed to get media URL",
                        extra={"context": {"media_id": media_id, "status": meta_response.status_code}},
                    )
                    return None

                meta = meta_response.json()
                media_url = meta.get("url") if isinstance(meta, dict) else None
                if not media_url:
                    logger.error("Media metadata has no url", extra={"context": {"media_id": media_id}})
                    return None

                file_response = client.get(media_url, headers=self._auth_headers)
                if not file_response.is_success:
                    logger.error(
                        "Failed to download media",
                        extra={"context": {"media_id": media_id, "status": file_response.status_code}},
                    )
                    return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Media download error: {e}", extra={"context": {"media_id": media_id}})
            return None

        return MediaBlob(
            content=file_response.content,
            mime_type=meta.get("mime_type") or DEFAULT_MEDIA_MIME_TYPE,
        )
