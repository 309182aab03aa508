"""
Anthropic Claude client.

Shared by the compatibility insights generator and the chat assistant.

Usage:
------
    client = get_llm_client()          # raises 503 when no API key is set
    text = await client.complete(
        messages=[{"role": "user", "content": "Hi"}],
        system="You are Kindred's taste assistant.",
    )
"""

from typing import Dict, List, Optional

from anthropic import AsyncAnthropic

from app.core.config import settings
from app.core.errors import AppError
from app.core.logging import get_logger

logger = get_logger(__name__)


class LLMUnavailableError(AppError):
    def __init__(self, message: str = "AI service is not configured"):
        super().__init__(message, status_code=503, code="SERVICE_UNAVAILABLE")


def is_llm_configured() -> bool:
    return bool(settings.ANTHROPIC_API_KEY)


class LLMClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.7,
    ):
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self.model = model or settings.ANTHROPIC_MODEL
        self.max_tokens = max_tokens or settings.ANTHROPIC_MAX_TOKENS
        self.temperature = temperature

        if not self.api_key:
            raise LLMUnavailableError()

        self.client = AsyncAnthropic(api_key=self.api_key)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send a Messages API request and return the first text block."""
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system

        response = await self.client.messages.create(**kwargs)

        text = response.content[0].text if response.content else ""
        logger.info(
            "llm_completion",
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            chars=len(text),
        )
        return text


_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Process-wide client; raises LLMUnavailableError without an API key."""
    global _client
    if _client is None:
        _client = LLMClient()
    return _client
