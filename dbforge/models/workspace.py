# dbforge/models/workspace.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class EndpointKind(str, Enum):
    CONTAINER = "CONTAINER"
    SOURCE = "SOURCE"


class QueryTarget(BaseModel):
    endpoint_kind: EndpointKind
    id: str


class ParentRef(BaseModel):
    """Parent reference for record creation: exactly one of the ids is set."""

    data_source_id: Optional[str] = None
    database_id: Optional[str] = None

    @model_validator(mode="after")
    def _one_of(self) -> "ParentRef":
        if bool(self.data_source_id) == bool(self.database_id):
            raise ValueError("ParentRef needs exactly one of data_source_id / database_id")
        return self

    def to_wire(self) -> Dict[str, str]:
        if self.data_source_id:
            return {"data_source_id": self.data_source_id}
        return {"database_id": self.database_id or ""}


class Resolution(BaseModel):
    """Outcome of one per-call protocol discovery for a container."""

    container_id: str
    target: QueryTarget
    parent: ParentRef
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def data_source_ids(self) -> List[str]:
        return [ds.get("id") for ds in (self.metadata.get("data_sources") or []) if ds.get("id")]


class RecordPage(BaseModel):
    records: List[Dict[str, Any]] = Field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None
    data_source_id: Optional[str] = None


class ContainerSummary(BaseModel):
    id: str
    title: str
    url: Optional[str] = None
    last_edited_time: Optional[str] = None
    created_time: Optional[str] = None
    properties: List[str] = Field(default_factory=list)
    hasMultipleDataSources: bool = False
    dataSources: List[Dict[str, Any]] = Field(default_factory=list)
    dataSourceId: Optional[str] = None
    enriched: bool = True

    def to_payload(self) -> Dict[str, Any]:
        if not self.enriched:
            return {"id": self.id, "title": self.title}
        out = self.model_dump(exclude={"enriched"})
        if self.hasMultipleDataSources:
            out.pop("dataSourceId", None)
        return out
