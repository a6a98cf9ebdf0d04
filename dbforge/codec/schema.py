# dbforge/codec/schema.py
"""Decode caller-supplied schema payloads into canonical definitions at the boundary."""
from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from dbforge.codec.properties import decode_properties
from dbforge.errors import ValidationError
from dbforge.models.schema import DataSourceSchema, MultiSourceSchema, SchemaDefinition


def _require_mapping(raw: Any, what: str) -> Mapping[str, Any]:
    if not raw:
        raise ValidationError(f"{what} is required")
    if not isinstance(raw, Mapping):
        raise ValidationError(f"{what} must be an object")
    return raw


def _props(raw: Any, owner: str):
    if raw is None:
        return []
    if not isinstance(raw, (Mapping, list)):
        raise ValidationError(f"properties of '{owner}' must be an object")
    return decode_properties(raw)


def parse_schema(raw: Any) -> SchemaDefinition:
    data = _require_mapping(raw, "Schema")
    title = data.get("title") or "New Database"
    try:
        return SchemaDefinition(
            title=title,
            description=data.get("description"),
            properties=_props(data.get("properties"), title),
            sample_records=list(data.get("sampleData") or data.get("sample_records") or []),
        )
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid database schema",
            hint="Property names must be unique and at most one property may be a title",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e


def parse_multi_source(raw: Any) -> MultiSourceSchema:
    data = _require_mapping(raw, "Schema")
    sources = data.get("dataSources") or data.get("data_sources")
    if not isinstance(sources, list) or not sources:
        raise ValidationError(
            "Schema must contain at least one data source",
            hint='Send {"title": ..., "dataSources": [{"name": ..., "properties": {...}}]}',
        )
    try:
        parsed = []
        for i, ds in enumerate(sources):
            if not isinstance(ds, Mapping) or not ds.get("name"):
                raise ValidationError(f"dataSources[{i}] needs a name")
            parsed.append(DataSourceSchema(
                name=ds["name"],
                description=ds.get("description"),
                properties=_props(ds.get("properties"), ds["name"]),
            ))
        return MultiSourceSchema(
            title=data.get("title") or parsed[0].name,
            description=data.get("description"),
            data_sources=parsed,
        )
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid multi-source schema",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e
