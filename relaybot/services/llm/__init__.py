from relaybot.services.llm.base import LLMError, LLMProvider, LLMResponse
from relaybot.services.llm.openai_provider import OpenAIProvider

__all__ = ["LLMError", "LLMProvider", "LLMResponse", "OpenAIProvider"]
