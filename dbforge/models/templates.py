# dbforge/models/templates.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Template(BaseModel):
    """A named schema definition held in the catalog; properties stay in wire/tagged input form."""

    model_config = ConfigDict(extra="allow")

    id: str
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    properties: Dict[str, Any]
    sampleData: List[Dict[str, Any]] = Field(default_factory=list)
    custom: bool = False
    created: Optional[str] = None
    updated: Optional[str] = None
    imported: Optional[str] = None
    originalTemplate: Optional[str] = None

    @field_validator("properties")
    @classmethod
    def _non_empty(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if not v:
            raise ValueError("template needs at least one property")
        return v

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "propertyCount": len(self.properties),
            "hasSampleData": bool(self.sampleData),
            "custom": self.custom,
        }

    def as_data_source(self) -> Dict[str, Any]:
        return {"name": self.title, "description": self.description, "properties": self.properties}

    def as_multi_source(self) -> Dict[str, Any]:
        return {"title": self.title, "description": self.description, "dataSources": [self.as_data_source()]}

    def stored(self) -> Dict[str, Any]:
        """Serialized form without the id (the id is the catalog key)."""
        return self.model_dump(exclude={"id"}, exclude_none=True)


class Customizations(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    description: Optional[str] = None
    properties: Optional[Dict[str, Any]] = None


class TemplateSuggestion(BaseModel):
    model_config = ConfigDict(extra="allow")

    suggestedTemplate: str = Field(..., min_length=1)
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    reasoning: str = ""
    customizations: Dict[str, Any] = Field(default_factory=dict)


class ImportResult(BaseModel):
    imported: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    errors: List[Dict[str, str]] = Field(default_factory=list)
