# dbforge/synthesis/prompts.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import orjson

from dbforge.models.schema import WireMultiSourceSchema

PROMPTS = Path(__file__).resolve().parents[1] / "prompts"

DEFAULT_LOCALE = "en"

# locale -> language name handed to the model
LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "ja": "Japanese",
    "hi": "Hindi",
    "bn": "Bengali",
}

MESSAGE_REQUIRED: Dict[str, str] = {
    "en": "Message is required",
    "es": "El mensaje es requerido",
    "fr": "Le message est requis",
    "de": "Nachricht ist erforderlich",
    "ja": "メッセージが必要です",
    "hi": "संदेश आवश्यक है",
    "bn": "বার্তা প্রয়োজন",
}

# simple guards to keep prompts within budget
MAX_CONTEXT_CHARS = 12000


def _read(name: str) -> str:
    return (PROMPTS / name).read_text(encoding="utf-8")


def _json(obj: Any) -> str:
    s = orjson.dumps(obj, option=orjson.OPT_INDENT_2).decode()
    return s if len(s) <= MAX_CONTEXT_CHARS else s[:MAX_CONTEXT_CHARS] + "\n..."


def _fill(template: str, **values: Any) -> str:
    # str.replace keeps the literal JSON braces in the templates intact
    for k, v in values.items():
        template = template.replace("{" + k + "}", str(v))
    return template


def language_name(locale: Optional[str]) -> str:
    return LANGUAGE_NAMES.get(locale or DEFAULT_LOCALE, LANGUAGE_NAMES[DEFAULT_LOCALE])


def message_required(locale: Optional[str]) -> str:
    return MESSAGE_REQUIRED.get(locale or DEFAULT_LOCALE, MESSAGE_REQUIRED[DEFAULT_LOCALE])


def schema_structure() -> str:
    return _json(WireMultiSourceSchema.model_json_schema())


def build_chat_prompt(message: str, locale: Optional[str] = None) -> str:
    return _fill(
        _read("schema_chat.txt"),
        responseLanguage=language_name(locale),
        schemaStructure=schema_structure(),
        message=message,
    )


def templates_as_data_sources(templates: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out = []
    for t in templates or []:
        out.append({
            "id": t.get("id"),
            "title": t.get("title"),
            "description": t.get("description"),
            "properties": t.get("properties"),
            "propertyCount": t.get("propertyCount"),
            "asDataSource": {
                "name": t.get("title"),
                "description": t.get("description"),
                "properties": t.get("properties"),
            },
        })
    return out


_MULTI_FORMAT = """Your response MUST contain a multi-source schema:
{
  "title": "System Title",
  "description": "System Description",
  "dataSources": [
    {"name": "Data Source Name", "description": "...", "properties": {"Name": {"title": {}}}}
  ]
}
Do NOT return a single schema with "properties" at the root level.

The JSON must follow this JSON Schema exactly:
"""

_INDIVIDUAL_FORMAT = """Your response MUST contain an ARRAY of separate database schemas, one per entity:
[
  {"title": "Products Database", "description": "...", "properties": {"Name": {"title": {}}, "Price": {"number": {"format": "dollar"}}}},
  {"title": "Orders Database", "description": "...", "properties": {"Order ID": {"title": {}}}}
]
Each schema must be complete and usable on its own."""


def build_multi_source_prompt(
    message: str,
    *,
    context: Optional[Any] = None,
    existing_databases: Optional[Any] = None,
    individual_schemas: bool = False,
    available_templates: Optional[List[Dict[str, Any]]] = None,
) -> str:
    fmt = _INDIVIDUAL_FORMAT if individual_schemas else _MULTI_FORMAT + schema_structure()

    template_ctx = ""
    converted = templates_as_data_sources(available_templates or [])
    if converted:
        template_ctx = (
            "AVAILABLE TEMPLATES:\n" + _json(converted) + "\n"
            "When the request matches a template, copy its \"asDataSource\" object as a data source, "
            "keeping ALL of its properties unchanged.\n"
        )
    existing_ctx = ""
    if existing_databases:
        existing_ctx = (
            "EXISTING DATABASES CONTEXT:\n" + _json(existing_databases) + "\n"
            "Consider how the new database might relate to these.\n"
        )
    user_ctx = f"ADDITIONAL CONTEXT:\n{_json(context)}\n" if context else ""

    return _fill(
        _read("multi_source.txt"),
        formatInstructions=fmt,
        templateContext=template_ctx,
        existingContext=existing_ctx,
        userContext=user_ctx,
        structureLabel="individual database schemas" if individual_schemas else "multi-source database structure",
        jsonLabel="as an array of individual database schemas" if individual_schemas else "following the multi-source format above",
        message=message,
        individualSchemas=str(bool(individual_schemas)).lower(),
    )


def build_suggest_prompt(user_input: str, templates: Iterable[Dict[str, Any]]) -> str:
    listing = "\n".join(f"- {t['id']}: {t['title']} - {t.get('description') or ''}" for t in templates)
    return (
        "Analyze this user request and suggest the best database template from these options:\n"
        f"{listing}\n\n"
        f'User request: "{user_input}"\n\n'
        "Respond with JSON: {\n"
        '  "suggestedTemplate": "template_key",\n'
        '  "confidence": 0.95,\n'
        '  "reasoning": "explanation",\n'
        '  "customizations": {"title": "suggested custom title", "additionalProperties": {}}\n'
        "}\n"
    )
