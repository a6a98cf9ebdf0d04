# dbforge/llms/openai_provider.py
import json
import logging
from typing import Dict, List, Optional

from openai import APIError, AsyncOpenAI, BadRequestError

from .base import ChatMessage, LLMProvider

log = logging.getLogger(__name__)


def _stringify_messages(messages: List[ChatMessage]) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for m in messages:
        content = m.get("content")
        if not isinstance(content, str):
            content = json.dumps(content, separators=(",", ":"))
        out.append({"role": m.get("role") or "user", "content": content})
    return out


class OpenAIProvider(LLMProvider):
    """
    Chat completions over any OpenAI-compatible endpoint. Gemini models are
    reached through Google's compatibility base URL.
    """

    def __init__(
        self,
        model_id: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model_id = model_id
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def probe(self) -> None:
        await self._client.models.retrieve(self.model_id)

    async def chat(self, messages: List[ChatMessage], **kwargs) -> str:
        try:
            resp = await self._client.chat.completions.create(
                model=self.model_id,
                messages=_stringify_messages(messages),
                temperature=kwargs.get("temperature", 0.2),
                max_tokens=kwargs.get("max_tokens"),
            )
            return resp.choices[0].message.content or ""
        except BadRequestError as e:
            log.error("LLM chat 400 (%s): %s", self.model_id, getattr(e, "response", None) and e.response.text)
            raise
        except APIError:
            log.exception("LLM chat APIError (%s)", self.model_id)
            raise
