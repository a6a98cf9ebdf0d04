# dbforge/routers/monitor.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse

from dbforge.deps import get_monitor
from dbforge.errors import ValidationError
from dbforge.logging import safe_extra
from dbforge.models.requests import ActionRequest
from dbforge.services.monitor import MonitorService

logger = logging.getLogger("dbforge.routes.monitor")

router = APIRouter(
    prefix="/monitor",
    tags=["monitor"],
    default_response_class=ORJSONResponse,
)

SUPPORTED = ("health_check", "database_analytics", "optimize_schema", "backup_templates")


@router.post("")
async def run_monitor_action(body: ActionRequest, monitor: MonitorService = Depends(get_monitor)):
    logger.info("monitor.action", extra=safe_extra({"action": body.action}))
    payload = body.payload
    if body.action == "health_check":
        return await monitor.health_check()
    if body.action == "database_analytics":
        return await monitor.database_analytics(payload.get("timeRange", "30d"))
    if body.action == "optimize_schema":
        return await monitor.optimize_schema(payload.get("databaseId"))
    if body.action == "backup_templates":
        return monitor.backup_templates()
    raise ValidationError("Invalid action", hint=f"Supported actions: {', '.join(SUPPORTED)}")
