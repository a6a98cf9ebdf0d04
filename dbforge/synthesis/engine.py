# dbforge/synthesis/engine.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dbforge.errors import NoAvailableModelError, ValidationError
from dbforge.llms.base import LLMProvider
from dbforge.llms.registry import ProviderFactory
from dbforge.logging import safe_extra
from dbforge.models.templates import TemplateSuggestion
from dbforge.synthesis import prompts
from dbforge.synthesis.extract import dump_schema, extract_individual, extract_multi_source, extract_object
from dbforge.synthesis.retry import RetryPolicy

log = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "project_management"
KEYWORD_CONFIDENCE = 0.7

# first match wins; anything else falls back to DEFAULT_TEMPLATE
KEYWORD_RULES = (
    (("customer", "crm"), "customer_crm"),
    (("content", "article"), "content_library"),
    (("event", "meeting"), "event_planning"),
)


def keyword_suggestion(user_input: str) -> Dict[str, Any]:
    lower = (user_input or "").lower()
    suggested = DEFAULT_TEMPLATE
    for words, template_id in KEYWORD_RULES:
        if any(w in lower for w in words):
            suggested = template_id
            break
    return {
        "suggestedTemplate": suggested,
        "confidence": KEYWORD_CONFIDENCE,
        "reasoning": "Based on keyword matching",
        "customizations": {"title": user_input},
    }


class SchemaSynthesisEngine:
    """
    PROMPT_BUILD -> MODEL_SELECT -> GENERATE (retried) -> EXTRACT -> VALIDATE.
    Extraction or validation failures never raise: the caller gets the prose and
    a null schema (or, for suggestions, the keyword fallback).
    """

    def __init__(
        self,
        provider_factory: ProviderFactory,
        models: Sequence[str],
        *,
        retry: Optional[RetryPolicy] = None,
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
    ):
        if not models:
            raise ValueError("at least one model id is required")
        self._factory = provider_factory
        self.models = list(models)
        self.retry = retry or RetryPolicy()
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def select_model(self) -> LLMProvider:
        last_error: Optional[BaseException] = None
        for model_id in self.models:
            provider = self._factory(model_id)
            try:
                await provider.probe()
            except Exception as e:
                last_error = e
                log.info("synthesis.model_unavailable", extra=safe_extra({"model": model_id, "error": str(e)}))
                continue
            log.info("synthesis.model_selected", extra=safe_extra({"model": model_id}))
            return provider
        raise NoAvailableModelError(f"No available models. Last error: {last_error}", tried=self.models)

    async def generate(self, prompt: str) -> str:
        provider = await self.select_model()

        async def _call() -> str:
            return await provider.chat(
                [{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )

        return await self.retry.run(_call, label=f"generate:{provider.model_id}")

    # ─────────────────────────────────────────────────────────────
    # Entry points
    # ─────────────────────────────────────────────────────────────
    async def chat(self, message: Optional[str], language: Optional[str] = None) -> Dict[str, Any]:
        if not message or not str(message).strip():
            raise ValidationError(prompts.message_required(language))
        text = await self.generate(prompts.build_chat_prompt(message, language))
        result = extract_multi_source(text)
        log.info("synthesis.chat", extra=safe_extra({"schema": result.schema is not None, "language": language}))
        return {"content": result.explanation, "schema": dump_schema(result.schema)}

    async def generate_multi_source(
        self,
        message: Optional[str],
        *,
        context: Optional[Any] = None,
        existing_databases: Optional[Any] = None,
        individual_schemas: bool = False,
        available_templates: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        if not message or not str(message).strip():
            raise ValidationError("Message is required")
        prompt = prompts.build_multi_source_prompt(
            message,
            context=context,
            existing_databases=existing_databases,
            individual_schemas=individual_schemas,
            available_templates=available_templates,
        )
        text = await self.generate(prompt)
        result = extract_individual(text) if individual_schemas else extract_multi_source(text)
        log.info(
            "synthesis.multi_source",
            extra=safe_extra({"schema": result.schema is not None, "individual": bool(individual_schemas)}),
        )
        return {
            "content": result.explanation,
            "schema": dump_schema(result.schema),
            "type": "individual-schemas" if individual_schemas else "multi-source",
            "individual_schemas": bool(individual_schemas),
        }

    async def suggest_template(self, user_input: Optional[str], templates: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        if not user_input or not str(user_input).strip():
            raise ValidationError("userInput is required")
        templates = list(templates)
        text = await self.generate(prompts.build_suggest_prompt(user_input, templates))
        result = extract_object(text, TemplateSuggestion)
        known = {t["id"] for t in templates}
        if result.schema is None or result.schema.suggestedTemplate not in known:
            log.info("synthesis.suggest_fallback", extra=safe_extra({"parsed": result.schema is not None}))
            return keyword_suggestion(user_input)
        return result.schema.model_dump()
