# dbforge/models/requests.py
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActionRequest(BaseModel):
    """Envelope for the action-dispatched endpoints."""

    action: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
    context: Optional[Any] = None
    language: str = "en"


class MultiSourceSynthesisRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
    context: Optional[Any] = None
    existingDatabases: Optional[Any] = None
    individual_schemas: bool = False
    availableTemplates: Optional[List[Dict[str, Any]]] = None


class CreateDatabaseRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    schema_: Optional[Dict[str, Any]] = Field(default=None, alias="schema")
    databaseId: Optional[str] = None


class CreateMultiSourceRequest(CreateDatabaseRequest):
    mode: Literal["multi-source", "separate"] = "multi-source"
