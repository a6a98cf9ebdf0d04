# dbforge/models/properties.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

# ─────────────────────────────────────────────────────────────
# Vocabulary
# ─────────────────────────────────────────────────────────────
class PropertyKind(str, Enum):
    TITLE = "title"
    TEXT = "text"
    NUMBER = "number"
    SINGLE_CHOICE = "singleChoice"
    MULTI_CHOICE = "multiChoice"
    DATE = "date"
    PERSON = "person"
    FILE = "file"
    BOOLEAN = "boolean"
    URL = "url"
    EMAIL = "email"
    PHONE = "phone"
    FORMULA = "formula"
    RELATION = "relation"
    ROLLUP = "rollup"
    CREATED_TIME = "createdTime"
    CREATED_BY = "createdBy"
    EDITED_TIME = "editedTime"
    EDITED_BY = "editedBy"


# internal kind <-> wire type key
KIND_TO_WIRE: Dict[PropertyKind, str] = {
    PropertyKind.TITLE: "title",
    PropertyKind.TEXT: "rich_text",
    PropertyKind.NUMBER: "number",
    PropertyKind.SINGLE_CHOICE: "select",
    PropertyKind.MULTI_CHOICE: "multi_select",
    PropertyKind.DATE: "date",
    PropertyKind.PERSON: "people",
    PropertyKind.FILE: "files",
    PropertyKind.BOOLEAN: "checkbox",
    PropertyKind.URL: "url",
    PropertyKind.EMAIL: "email",
    PropertyKind.PHONE: "phone_number",
    PropertyKind.FORMULA: "formula",
    PropertyKind.RELATION: "relation",
    PropertyKind.ROLLUP: "rollup",
    PropertyKind.CREATED_TIME: "created_time",
    PropertyKind.CREATED_BY: "created_by",
    PropertyKind.EDITED_TIME: "last_edited_time",
    PropertyKind.EDITED_BY: "last_edited_by",
}
WIRE_TO_KIND: Dict[str, PropertyKind] = {v: k for k, v in KIND_TO_WIRE.items()}
WIRE_TYPES = tuple(KIND_TO_WIRE.values())

CHOICE_KINDS = (PropertyKind.SINGLE_CHOICE, PropertyKind.MULTI_CHOICE)

# Palette used when repairing uniform option colours ("default" is accepted on input only)
COLOR_PALETTE: List[str] = ["gray", "brown", "orange", "yellow", "green", "blue", "purple", "pink", "red"]
OptionColor = Literal["default", "gray", "brown", "orange", "yellow", "green", "blue", "purple", "pink", "red"]

NumberFormat = Literal[
    "number", "number_with_commas", "percent", "dollar", "euro", "pound",
    "yen", "ruble", "rupee", "won", "yuan",
]

Protocol = Literal["A", "B"]

# ─────────────────────────────────────────────────────────────
# Kind configurations
# ─────────────────────────────────────────────────────────────
class ChoiceOption(BaseModel):
    label: str
    color: Optional[OptionColor] = None


class ChoiceConfig(BaseModel):
    options: List[ChoiceOption] = Field(default_factory=list)


class NumberConfig(BaseModel):
    format: NumberFormat = "number"


class FormulaConfig(BaseModel):
    expression: str = "1"


class RelationConfig(BaseModel):
    target_id: str = ""
    relation_type: str = "single_property"


class RollupConfig(BaseModel):
    relation_property_name: str = ""
    rollup_property_name: str = ""
    function: str = "count"


class EmptyConfig(BaseModel):
    pass


KindConfig = Union[ChoiceConfig, NumberConfig, FormulaConfig, RelationConfig, RollupConfig, EmptyConfig]

_CONFIG_FOR_KIND = {
    PropertyKind.SINGLE_CHOICE: ChoiceConfig,
    PropertyKind.MULTI_CHOICE: ChoiceConfig,
    PropertyKind.NUMBER: NumberConfig,
    PropertyKind.FORMULA: FormulaConfig,
    PropertyKind.RELATION: RelationConfig,
    PropertyKind.ROLLUP: RollupConfig,
}


def config_type_for(kind: PropertyKind) -> type:
    return _CONFIG_FOR_KIND.get(kind, EmptyConfig)


class PropertyDescriptor(BaseModel):
    """Canonical, protocol-agnostic field definition."""

    name: str
    kind: PropertyKind
    config: KindConfig = Field(default_factory=EmptyConfig)

    @model_validator(mode="before")
    @classmethod
    def _coerce_config(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        kind = data.get("kind")
        try:
            kind = PropertyKind(kind)
        except ValueError:
            return data
        expected = config_type_for(kind)
        cfg = data.get("config")
        if cfg is None:
            cfg = expected()
        elif isinstance(cfg, dict):
            cfg = expected(**cfg)
        elif not isinstance(cfg, expected):
            raise ValueError(f"config {type(cfg).__name__} does not match kind {kind.value}")
        return {**data, "kind": kind, "config": cfg}

    @property
    def wire_type(self) -> str:
        return KIND_TO_WIRE[self.kind]

    @property
    def is_choice(self) -> bool:
        return self.kind in CHOICE_KINDS
