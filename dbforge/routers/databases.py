# dbforge/routers/databases.py
from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import ORJSONResponse

from dbforge.codec.schema import parse_multi_source, parse_schema
from dbforge.config import Settings
from dbforge.deps import get_listing, get_provisioning, get_settings_dep
from dbforge.errors import ValidationError
from dbforge.logging import safe_extra
from dbforge.models.requests import CreateDatabaseRequest, CreateMultiSourceRequest
from dbforge.services.listing import ListingService
from dbforge.services.provisioning import ProvisioningService

logger = logging.getLogger("dbforge.routes.databases")

router = APIRouter(
    prefix="/databases",
    tags=["databases"],
    default_response_class=ORJSONResponse,
)

BROWSER_CACHE_CONTROL = "public, max-age=300"


# ─────────────────────────────────────────────────────────────
# Listing (cached)
# ─────────────────────────────────────────────────────────────
@router.get("")
async def list_databases(
    response: Response,
    listing: ListingService = Depends(get_listing),
    settings: Settings = Depends(get_settings_dep),
):
    started = time.perf_counter()
    payload, hit = await listing.list_containers(settings.NOTION_PARENT_PAGE_ID or "")
    elapsed_ms = int((time.perf_counter() - started) * 1000)

    response.headers["X-Cache"] = "HIT" if hit else "MISS"
    response.headers["X-Response-Time"] = f"{elapsed_ms}ms"
    response.headers["Cache-Control"] = BROWSER_CACHE_CONTROL
    if not hit:
        response.headers["X-Database-Count"] = str(payload.get("count", 0))
    return payload


# ─────────────────────────────────────────────────────────────
# Creation
# ─────────────────────────────────────────────────────────────
@router.post("")
async def create_database(
    body: CreateDatabaseRequest,
    provisioning: ProvisioningService = Depends(get_provisioning),
):
    if not body.schema_:
        raise ValidationError("Schema is required")
    schema = parse_schema(body.schema_)
    created = await provisioning.create_container(schema, body.databaseId)
    logger.info("databases.created", extra=safe_extra({"database_id": created.get("id"), "title": schema.title}))
    return {"success": True, "database": created, "message": "Database created successfully"}


@router.post("/multi-source", status_code=status.HTTP_201_CREATED)
async def create_multi_source_database(
    body: CreateMultiSourceRequest,
    provisioning: ProvisioningService = Depends(get_provisioning),
):
    if not body.schema_:
        raise ValidationError("Schema is required")
    schema = parse_multi_source(body.schema_)
    result = await provisioning.create_multi_source(schema, body.databaseId, body.mode)
    logger.info(
        "databases.multi_source_created",
        extra=safe_extra({"mode": body.mode, "sources": len(schema.data_sources)}),
    )
    return result
