"""Generation clients for section edits.

A generation client turns a prompt into raw text. Provider SDK exceptions are
mapped onto the ``GenerationError`` taxonomy so the retry policy can decide
what to retry without knowing which provider is in use. SDK-level retries are
disabled; retrying is the retry policy's job.
"""

from abc import ABC, abstractmethod

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from docpatch.core.config import Settings, get_settings
from docpatch.core.errors import (
    FatalGenerationError,
    GenerationError,
    GenerationTimeout,
    RateLimited,
    TransientGenerationError,
)
from docpatch.core.logging import get_logger

logger = get_logger(__name__)


class GenerationClient(ABC):
    """Produces raw text from a prompt."""

    provider: str = "unknown"
    model: str = ""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        Generate text for a prompt.

        Raises:
            GenerationError: One of RateLimited, GenerationTimeout,
                TransientGenerationError, FatalGenerationError
        """


def _classify_status(status_code: int, message: str) -> GenerationError:
    if status_code == 429:
        return RateLimited(message)
    if status_code == 408:
        return GenerationTimeout(message)
    if status_code >= 500:
        return TransientGenerationError(message)
    return FatalGenerationError(message)


class OpenAIGenerationClient(GenerationClient):
    """Chat completions via the OpenAI SDK."""

    provider = "openai"

    def __init__(self, api_key: str, model: str, temperature: float = 0.3, timeout: float = 120.0):
        self.model = model
        self.temperature = temperature
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def generate(self, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.APITimeoutError as e:
            raise GenerationTimeout(str(e)) from e
        except openai.APIConnectionError as e:
            raise TransientGenerationError(str(e)) from e
        except openai.APIStatusError as e:
            raise _classify_status(e.status_code, str(e)) from e
        except openai.OpenAIError as e:
            raise FatalGenerationError(str(e)) from e

        return response.choices[0].message.content or ""


class AnthropicGenerationClient(GenerationClient):
    """Messages API via the Anthropic SDK."""

    provider = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 8000,
        timeout: float = 120.0,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)

    async def generate(self, prompt: str) -> str:
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APITimeoutError as e:
            raise GenerationTimeout(str(e)) from e
        except anthropic.APIConnectionError as e:
            raise TransientGenerationError(str(e)) from e
        except anthropic.APIStatusError as e:
            raise _classify_status(e.status_code, str(e)) from e
        except anthropic.AnthropicError as e:
            raise FatalGenerationError(str(e)) from e

        if response.stop_reason == "max_tokens":
            logger.warning(f"Generation hit max_tokens={self.max_tokens}; output is truncated")

        return "".join(block.text for block in response.content if block.type == "text")


def get_generation_client(settings: Settings | None = None) -> GenerationClient:
    """
    Build the configured generation client.

    Args:
        settings: Settings override (defaults to cached settings)

    Returns:
        GenerationClient for GENERATION_PROVIDER

    Raises:
        ValueError: If the provider is unknown or its API key is missing
    """
    settings = settings or get_settings()
    provider = settings.GENERATION_PROVIDER.lower()

    if provider == "openai":
        if not settings.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY not configured")
        return OpenAIGenerationClient(
            api_key=settings.OPENAI_API_KEY,
            model=settings.EDIT_MODEL,
            temperature=settings.EDIT_TEMPERATURE,
            timeout=settings.GENERATION_TIMEOUT_SECONDS,
        )

    if provider == "anthropic":
        if not settings.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY not configured")
        return AnthropicGenerationClient(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.EDIT_MODEL,
            temperature=settings.EDIT_TEMPERATURE,
            max_tokens=settings.EDIT_MAX_TOKENS,
            timeout=settings.GENERATION_TIMEOUT_SECONDS,
        )

    raise ValueError(f"Unknown GENERATION_PROVIDER: {settings.GENERATION_PROVIDER}")
