from typing import Optional, Protocol

from sqlalchemy.orm import Session

from relaybot.config import settings
from relaybot.logging_config import get_logger
from relaybot.services.history_service import recent_context
from relaybot.services.llm import LLMProvider, OpenAIProvider

logger = get_logger("agent_service")

LLM_MAX_TOKENS = 600
FALLBACK_REPLY = "Thanks for your message. We'll get back to you shortly."


class ReplyAgent(Protocol):
    def generate_reply(
        self,
        session_id: str,
        text: str,
        sender_number: str,
        sender_name: Optional[str],
    ) -> str: ...


def get_llm_provider() -> Optional[OpenAIProvider]:
    """Build the OpenAI provider, or None when no key is configured."""
    if not settings.openai_api_key:
        return None
    return OpenAIProvider(
        api_key=settings.openai_api_key,
        default_model=settings.openai_chat_model,
        transcription_model=settings.openai_transcription_model,
        timeout_seconds=settings.http_timeout_seconds,
    )


class LLMReplyAgent:
    """Chat-completion agent using the conversation history as context.

    The inbound message is already in history when the agent runs, so it is
    only appended when the last history entry differs from it.
    """

    def __init__(
        self,
        db: Session,
        llm: LLMProvider,
        system_prompt: Optional[str] = None,
        history_limit: Optional[int] = None,
    ):
        self.db = db
        self.llm = llm
        self.system_prompt = system_prompt or settings.agent_system_prompt
        self.history_limit = history_limit or settings.agent_history_limit

    def _build_messages(self, session_id: str, text: str, sender_name: Optional[str]) -> list[dict]:
        system = self.system_prompt
        if sender_name:
            system = f"{system}\n\nThe customer's name is {sender_name}."

        messages = [{"role": "system", "content": system}]
        history = recent_context(self.db, session_id, limit=self.history_limit)
        messages.extend(history)
        if not history or history[-1].get("content") != text:
            messages.append({"role": "user", "content": text})
        return messages

    def generate_reply(
        self,
        session_id: str,
        text: str,
        sender_number: str,
        sender_name: Optional[str],
    ) -> str:
        messages = self._build_messages(session_id, text, sender_name)
        response = self.llm.generate(messages, max_tokens=LLM_MAX_TOKENS)
        content = (response.content or "").strip()
        if not content:
            logger.warning("LLM returned empty reply, using fallback", extra={"context": {"session_id": session_id}})
            return FALLBACK_REPLY
        return content
