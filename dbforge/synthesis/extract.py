# dbforge/synthesis/extract.py
"""
Best-effort recovery of a JSON payload from free-form model text, followed by a
strict structural gate. The raw prose is always returned so a failed parse stays
visible to the caller.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Type

import orjson
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from dbforge.logging import safe_extra
from dbforge.models.schema import WireMultiSourceSchema, WireSchemaDefinition

log = logging.getLogger(__name__)

FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
BARE_OBJECT = re.compile(r"\{[\s\S]*\}")
BARE_ARRAY = re.compile(r"\[[\s\S]*\]")


@dataclass
class Extraction:
    explanation: str
    schema: Optional[Any] = None


def _candidates(text: str, bare: "re.Pattern[str]"):
    fenced = FENCED_JSON.search(text)
    if fenced:
        yield fenced.group(1), fenced.start()
    direct = bare.search(text)
    if direct:
        yield direct.group(0), direct.start()


def extract_and_validate(text: str, adapter: TypeAdapter, *, bare: "re.Pattern[str]" = BARE_OBJECT) -> Extraction:
    """
    Try the fenced ```json block first, then the widest bare JSON span. The first
    candidate that parses is the payload; if it fails validation the schema is
    None. Either way a failure leaves the whole text as the explanation.
    """
    text = text or ""
    for raw, start in _candidates(text, bare):
        try:
            parsed = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            log.info("extract.parse_failed", extra=safe_extra({"error": str(e)}))
            continue
        try:
            schema = adapter.validate_python(parsed)
        except PydanticValidationError as e:
            log.info("extract.validation_failed", extra=safe_extra({"errors": e.error_count()}))
            break
        return Extraction(explanation=text[:start].strip(), schema=schema)
    return Extraction(explanation=text, schema=None)


MULTI_SOURCE_ADAPTER = TypeAdapter(WireMultiSourceSchema)
INDIVIDUAL_ADAPTER = TypeAdapter(List[WireSchemaDefinition])


def extract_multi_source(text: str) -> Extraction:
    return extract_and_validate(text, MULTI_SOURCE_ADAPTER)


def extract_individual(text: str) -> Extraction:
    return extract_and_validate(text, INDIVIDUAL_ADAPTER, bare=BARE_ARRAY)


def extract_object(text: str, model: Type[BaseModel]) -> Extraction:
    return extract_and_validate(text, TypeAdapter(model))


def dump_schema(schema: Any) -> Any:
    """JSON-ready form of a validated schema (None stays None)."""
    if schema is None:
        return None
    if isinstance(schema, list):
        return [dump_schema(s) for s in schema]
    if isinstance(schema, BaseModel):
        return schema.model_dump(exclude_none=True)
    return schema
