"""
Completion Service Client

Renders tutor utterances through a chat-completion model. The engine only
depends on the ``CompletionClient`` protocol so tests can inject a fake.
"""

import asyncio
import logging
import re
from typing import Dict, List, Optional, Protocol

import openai
from openai import AsyncOpenAI

from adaptive_socratic_tutor.config import EngineSettings
from adaptive_socratic_tutor.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

_ROLE_PREFIX = re.compile(r"^\s*(?:tutor|assistant|teacher|socrates)\s*:\s*", re.IGNORECASE)


class CompletionClient(Protocol):
    async def complete(self, messages: List[Dict[str, str]], **options) -> str:
        ...


def strip_role_prefix(text: str) -> str:
    """Remove a leading "Tutor:"-style speaker label the model sometimes adds."""
    return _ROLE_PREFIX.sub("", text or "").strip()


class OpenAICompletionClient:
    """
    Chat completions over AsyncOpenAI with timeout and exponential backoff.

    Raises UpstreamUnavailableError once retries are exhausted, unless
    demo fallback is enabled, in which case it returns an empty string and
    the engine substitutes a question from its fallback bank.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 2,
        allow_demo_fallback: bool = False,
        client: Optional[AsyncOpenAI] = None,
    ):
        if client is None:
            if not api_key:
                raise ValueError("OPENAI_API_KEY not found in environment variables")
            # Retries and backoff happen in complete(); the SDK must not retry on its own
            client = AsyncOpenAI(api_key=api_key, max_retries=0)
        self.llm_client = client
        self.model = model or "gpt-4o-mini"
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.allow_demo_fallback = allow_demo_fallback

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "OpenAICompletionClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.model,
            timeout=settings.completion_timeout,
            max_retries=settings.max_retries,
            allow_demo_fallback=settings.allow_demo_fallback,
        )

    async def complete(self, messages: List[Dict[str, str]], **options) -> str:
        """
        Generate one tutor utterance.

        Args:
            messages: Chat history as role/content dicts
            **options: Passed through to chat.completions.create
                (temperature, max_tokens, presence_penalty, ...)

        Returns:
            Generated text with any role prefix removed

        Raises:
            UpstreamUnavailableError: All attempts failed or timed out
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                response = await asyncio.wait_for(
                    self.llm_client.chat.completions.create(
                        model=self.model,
                        messages=messages,
                        **options,
                    ),
                    timeout=self.timeout,
                )
                content = response.choices[0].message.content if response.choices else None
                return strip_role_prefix(content or "")
            except (openai.APIError, asyncio.TimeoutError) as e:
                last_error = e
                logger.warning(
                    f"⚠️ [CompletionClient] Attempt {attempt + 1}/{self.max_retries} failed: {e}"
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)

        if self.allow_demo_fallback:
            logger.warning("⚠️ [CompletionClient] Completion unavailable, demo fallback enabled")
            return ""

        raise UpstreamUnavailableError(
            f"Tutoring service unavailable after {self.max_retries} attempts",
            original_error=last_error,
        )


class OfflineCompletionClient:
    """
    Completion client for demo mode without an API key.

    Always returns an empty string so the engine answers from its fallback
    question bank.
    """

    async def complete(self, messages: List[Dict[str, str]], **options) -> str:
        return ""


def build_completion_client(settings: EngineSettings) -> CompletionClient:
    """Create the completion client the settings call for."""
    if settings.openai_api_key:
        return OpenAICompletionClient.from_settings(settings)
    if settings.allow_demo_fallback:
        logger.warning("⚠️ [CompletionClient] No OPENAI_API_KEY, running with offline demo client")
        return OfflineCompletionClient()
    raise ValueError("OPENAI_API_KEY not found in environment variables")
