# dbforge/models/schema.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dbforge.models.properties import (
    NumberFormat,
    OptionColor,
    PropertyDescriptor,
    PropertyKind,
    WIRE_TYPES,
)

# ─────────────────────────────────────────────────────────────
# Wire contract (what the model must emit, and what callers send)
# ─────────────────────────────────────────────────────────────
class WireOption(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    color: Optional[OptionColor] = None


class WireChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    options: List[WireOption] = Field(default_factory=list)


class WireNumber(BaseModel):
    model_config = ConfigDict(extra="ignore")

    format: Optional[NumberFormat] = None


class WireProperty(BaseModel):
    """One property in wire shape; exactly one recognized kind key must be present."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[Dict[str, Any]] = None
    rich_text: Optional[Dict[str, Any]] = None
    number: Optional[WireNumber] = None
    select: Optional[WireChoice] = None
    multi_select: Optional[WireChoice] = None
    date: Optional[Dict[str, Any]] = None
    people: Optional[Dict[str, Any]] = None
    files: Optional[Dict[str, Any]] = None
    checkbox: Optional[Dict[str, Any]] = None
    url: Optional[Dict[str, Any]] = None
    email: Optional[Dict[str, Any]] = None
    phone_number: Optional[Dict[str, Any]] = None
    formula: Optional[Dict[str, Any]] = None
    relation: Optional[Dict[str, Any]] = None
    rollup: Optional[Dict[str, Any]] = None
    created_time: Optional[Dict[str, Any]] = None
    created_by: Optional[Dict[str, Any]] = None
    last_edited_time: Optional[Dict[str, Any]] = None
    last_edited_by: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _exactly_one_kind(self) -> "WireProperty":
        present = [k for k in WIRE_TYPES if getattr(self, k) is not None]
        if len(present) != 1:
            raise ValueError(
                f"property must declare exactly one kind, found {len(present)}: {present or 'none'}"
            )
        return self

    @property
    def wire_type(self) -> str:
        return next(k for k in WIRE_TYPES if getattr(self, k) is not None)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class WireDataSource(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    properties: Dict[str, WireProperty]


class WireMultiSourceSchema(BaseModel):
    """Structural contract for a synthesized multi-source schema."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    dataSources: List[WireDataSource]


class WireSchemaDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    properties: Dict[str, WireProperty]


# ─────────────────────────────────────────────────────────────
# Canonical definitions (decoded once at the boundary)
# ─────────────────────────────────────────────────────────────
def _check_properties(props: List[PropertyDescriptor]) -> List[PropertyDescriptor]:
    seen = set()
    for p in props:
        if p.name in seen:
            raise ValueError(f"duplicate property name '{p.name}'")
        seen.add(p.name)
    titles = [p.name for p in props if p.kind == PropertyKind.TITLE]
    if len(titles) > 1:
        raise ValueError(f"only one title property allowed, found {titles}")
    return props


class SchemaDefinition(BaseModel):
    title: str
    description: Optional[str] = None
    properties: List[PropertyDescriptor] = Field(default_factory=list)
    sample_records: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("properties")
    @classmethod
    def _unique_names(cls, v: List[PropertyDescriptor]) -> List[PropertyDescriptor]:
        return _check_properties(v)

    def property_names(self) -> List[str]:
        return [p.name for p in self.properties]


class DataSourceSchema(BaseModel):
    name: str
    description: Optional[str] = None
    properties: List[PropertyDescriptor] = Field(default_factory=list)
    sample_records: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("properties")
    @classmethod
    def _unique_names(cls, v: List[PropertyDescriptor]) -> List[PropertyDescriptor]:
        return _check_properties(v)

    def as_definition(self, title: Optional[str] = None) -> SchemaDefinition:
        return SchemaDefinition(
            title=title or self.name,
            description=self.description,
            properties=list(self.properties),
            sample_records=list(self.sample_records),
        )


class MultiSourceSchema(BaseModel):
    title: str
    description: Optional[str] = None
    data_sources: List[DataSourceSchema] = Field(default_factory=list)
