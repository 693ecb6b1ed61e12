import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx
from groq import AsyncGroq, GroqError

from .config import Settings
from .errors import ErrorKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionOutcome:
    """Either ``Success(text)`` or ``Failure(kind, detail)``."""

    text: Optional[str] = None
    failure: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.failure is None

    @classmethod
    def ok(cls, text: str) -> "CompletionOutcome":
        return cls(text=text)

    @classmethod
    def failed(cls, kind: ErrorKind, detail: str = "") -> "CompletionOutcome":
        return cls(failure=kind, detail=detail)


class LLMGateway:
    def __init__(self, settings: Settings, client: Optional[AsyncGroq] = None):
        self.settings = settings
        self.model = settings.groq_model
        self.client = client
        if self.client is None and settings.groq_api_key:
            # Fire-once: no SDK retries, bounded timeout
            self.client = AsyncGroq(
                api_key=settings.groq_api_key,
                max_retries=0,
                timeout=httpx.Timeout(settings.groq_timeout_seconds, connect=10.0),
            )
        if self.client is None:
            logger.warning("GROQ_API_KEY missing, AI features disabled")

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def complete(
        self,
        user_prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> CompletionOutcome:
        if not self.configured:
            return CompletionOutcome.failed(ErrorKind.UNCONFIGURED, "GROQ_API_KEY is not set")

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        params = {"model": model or self.model, "messages": messages}
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        try:
            chat_completion = await self.client.chat.completions.create(**params)
        except (GroqError, httpx.HTTPError) as e:
            logger.error("Groq API error: %s", e)
            return CompletionOutcome.failed(ErrorKind.PROVIDER_ERROR, str(e))

        content = None
        if chat_completion.choices:
            content = chat_completion.choices[0].message.content
        if not content or not content.strip():
            return CompletionOutcome.failed(ErrorKind.EMPTY_RESPONSE, "provider returned no content")
        return CompletionOutcome.ok(content)
