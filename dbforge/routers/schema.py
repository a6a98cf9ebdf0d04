# dbforge/routers/schema.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse

from dbforge.deps import get_engine
from dbforge.models.requests import ChatRequest, MultiSourceSynthesisRequest
from dbforge.synthesis.engine import SchemaSynthesisEngine

router = APIRouter(
    prefix="/schema",
    tags=["schema"],
    default_response_class=ORJSONResponse,
)


@router.post("/chat")
async def schema_chat(body: ChatRequest, engine: SchemaSynthesisEngine = Depends(get_engine)):
    """Conversational schema design; `schema` is null when the reply held no valid structure."""
    return await engine.chat(body.message, body.language)


@router.post("/multi-source")
async def schema_multi_source(
    body: MultiSourceSynthesisRequest,
    engine: SchemaSynthesisEngine = Depends(get_engine),
):
    return await engine.generate_multi_source(
        body.message,
        context=body.context,
        existing_databases=body.existingDatabases,
        individual_schemas=body.individual_schemas,
        available_templates=body.availableTemplates,
    )
