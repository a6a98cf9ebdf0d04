# dbforge/routers/records.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.responses import ORJSONResponse

from dbforge.config import Settings
from dbforge.deps import get_gateway, get_settings_dep
from dbforge.errors import ConfigurationError, ValidationError
from dbforge.logging import safe_extra
from dbforge.services.gateway import RecordGateway
from dbforge.services.masking import mask_private_fields

logger = logging.getLogger("dbforge.routes.records")

router = APIRouter(
    prefix="/records",
    tags=["records"],
    default_response_class=ORJSONResponse,
)


def _masked(payload: Dict[str, Any], status_code: int = status.HTTP_200_OK) -> ORJSONResponse:
    return ORJSONResponse(mask_private_fields(payload), status_code=status_code)


def _container(database_id: Optional[str], settings: Settings) -> str:
    container = database_id or settings.NOTION_DATABASE_ID
    if not container:
        raise ConfigurationError(
            "Database ID missing. Pass database_id or set NOTION_DATABASE_ID.",
            missing=["NOTION_DATABASE_ID"],
        )
    return container


def _record_id(record_id: Optional[str], op: str) -> str:
    if not record_id:
        raise ValidationError(f"Record ID is required for {op}", hint="Pass the record id as ?id=")
    return record_id


# ─────────────────────────────────────────────────────────────
# Reads
# ─────────────────────────────────────────────────────────────
@router.get("")
async def read_records(
    id: Optional[str] = Query(default=None, description="Fetch a single record"),
    database_id: Optional[str] = Query(default=None),
    data_source_id: Optional[str] = Query(default=None),
    info: bool = Query(default=False, description="Return container metadata with its properties"),
    page_size: int = Query(default=100),
    start_cursor: Optional[str] = Query(default=None),
    gateway: RecordGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings_dep),
):
    if id:
        page = await gateway.get(id)
        return _masked({"success": True, "result": page})

    container = _container(database_id, settings)
    if info:
        meta = await gateway.retrieve_with_properties(container)
        return _masked({"success": True, "database": meta})

    page = await gateway.list(
        container,
        page_size=page_size,
        start_cursor=start_cursor,
        data_source_id=data_source_id,
    )
    logger.info(
        "records.listed",
        extra=safe_extra({"database_id": container, "count": len(page.records), "has_more": page.has_more}),
    )
    return _masked({
        "success": True,
        "results": page.records,
        "has_more": page.has_more,
        "next_cursor": page.next_cursor,
        "dataSourceId": page.data_source_id,
    })


# ─────────────────────────────────────────────────────────────
# Writes
# ─────────────────────────────────────────────────────────────
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_record(
    properties: Dict[str, Any] = Body(..., description="Wire-format property values"),
    database_id: Optional[str] = Query(default=None),
    data_source_id: Optional[str] = Query(default=None),
    gateway: RecordGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings_dep),
):
    container = _container(database_id, settings)
    page, parent = await gateway.create(container, properties, data_source_id=data_source_id)
    return _masked(
        {
            "success": True,
            "result": page,
            "message": "Record created successfully",
            "dataSourceId": parent.data_source_id,
        },
        status.HTTP_201_CREATED,
    )


@router.put("")
async def update_record(
    properties: Dict[str, Any] = Body(...),
    id: Optional[str] = Query(default=None),
    gateway: RecordGateway = Depends(get_gateway),
):
    page = await gateway.update(_record_id(id, "updates"), properties)
    return _masked({"success": True, "result": page, "message": "Record updated successfully"})


@router.delete("")
async def delete_record(
    id: Optional[str] = Query(default=None),
    gateway: RecordGateway = Depends(get_gateway),
):
    await gateway.archive(_record_id(id, "deletion"))
    return _masked({"success": True, "message": "Record deleted successfully"})
