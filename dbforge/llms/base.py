# dbforge/llms/base.py
from typing import Dict, List, Protocol


class ChatMessage(Dict[str, str]): ...
# e.g. {"role": "user", "content": "..."}


class LLMProvider(Protocol):
    model_id: str

    async def chat(self, messages: List[ChatMessage], **kwargs) -> str: ...

    async def probe(self) -> None:
        """Raise if the model cannot currently serve requests."""
        ...
