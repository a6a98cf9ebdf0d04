# dbforge/llms/registry.py
from typing import Callable, Optional

from openai import AsyncOpenAI

from dbforge.config import Settings

from .base import LLMProvider
from .openai_provider import OpenAIProvider

ProviderFactory = Callable[[str], LLMProvider]


def get_provider(settings: Settings, model_id: str, client: Optional[AsyncOpenAI] = None) -> LLMProvider:
    # Accept either "gemini:gemini-2.0-flash" or plain "gemini-2.0-flash"
    prefix, sep, actual = model_id.partition(":")
    if sep and prefix != "gemini":
        raise ValueError(f"Unknown model provider prefix: {prefix}")
    return OpenAIProvider(
        actual if sep else model_id,
        api_key=settings.GEMINI_API_KEY,
        base_url=settings.GEMINI_BASE_URL,
        client=client,
    )


def provider_factory(settings: Settings) -> ProviderFactory:
    """Providers for every fallback model share one AsyncOpenAI client."""
    settings.require("GEMINI_API_KEY")
    shared = AsyncOpenAI(api_key=settings.GEMINI_API_KEY, base_url=settings.GEMINI_BASE_URL)

    def _make(model_id: str) -> LLMProvider:
        return get_provider(settings, model_id, client=shared)

    return _make
