# dbforge/routers/automation.py
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse

from dbforge.deps import Services, get_engine, get_provisioning, get_services
from dbforge.errors import ValidationError
from dbforge.logging import safe_extra
from dbforge.models.requests import ActionRequest

logger = logging.getLogger("dbforge.routes.automation")

router = APIRouter(
    prefix="/automation",
    tags=["automation"],
    default_response_class=ORJSONResponse,
)

EXPORT_FILENAME = "notion-templates.json"

Handler = Callable[[Dict[str, Any], Services], Awaitable[Any]]


def _template_id(payload: Dict[str, Any], key: str = "templateId") -> str:
    value = payload.get(key)
    if not value:
        raise ValidationError(f"{key} is required")
    return value


# ─────────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────────
async def _list_templates(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    return {"templates": s.catalog.list(), "workflows": s.catalog.list_workflows()}


async def _get_template_schema(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    return s.catalog.get_schema(_template_id(payload))


async def _save_template(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    template_id = _template_id(payload)
    s.catalog.save(template_id, payload.get("template") or {})
    return {"success": True, "templateId": template_id, "message": "Template saved successfully"}


async def _update_template(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    template_id = _template_id(payload)
    t = s.catalog.update(template_id, payload.get("updates") or {})
    return {"success": True, "templateId": template_id, "template": t.stored(), "message": "Template updated successfully"}


async def _delete_template(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    s.catalog.delete(_template_id(payload))
    return {"success": True, "message": "Template deleted successfully"}


async def _duplicate_template(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    t = s.catalog.duplicate(
        _template_id(payload),
        payload.get("newTemplateId") or "",
        payload.get("customizations"),
    )
    return {"success": True, "templateId": t.id, "template": t.stored(), "message": "Template duplicated successfully"}


async def _export_templates(payload: Dict[str, Any], s: Services) -> ORJSONResponse:
    body = s.catalog.export(include_system=bool(payload.get("includeSystem")))
    return ORJSONResponse(body, headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"})


async def _import_templates(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    result = s.catalog.import_templates(
        payload.get("templates"),
        overwrite=bool(payload.get("overwrite", False)),
        duplicate_if_exists=bool(payload.get("duplicateIfExists", False)),
    )
    return {"success": True, "results": result.model_dump(), "message": f"Imported {len(result.imported)} templates"}


# ─────────────────────────────────────────────────────────────
# Provisioning / workflows / suggestions
# ─────────────────────────────────────────────────────────────
async def _deploy_template(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    provisioning = get_provisioning(s)
    return await provisioning.deploy_template(
        _template_id(payload),
        payload.get("customizations"),
        bool(payload.get("includeSampleData", False)),
        payload.get("parentPageId"),
    )


async def _bulk_create(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    provisioning = get_provisioning(s)
    return await provisioning.bulk_create(payload.get("templates"), payload.get("parentPageId"))


async def _create_workflow(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    workflow = s.catalog.create_workflow(
        payload.get("workflowId") or "",
        custom_schedule=payload.get("customSchedule"),
        template_id=payload.get("templateId"),
        customizations=payload.get("customizations"),
    )
    return {"workflow": workflow}


async def _smart_suggest(payload: Dict[str, Any], s: Services) -> Dict[str, Any]:
    engine = get_engine(s)
    return await engine.suggest_template(payload.get("userInput"), s.catalog.list())


ACTIONS: Dict[str, Handler] = {
    "list_templates": _list_templates,
    "get_template_schema": _get_template_schema,
    "deploy_template": _deploy_template,
    "create_workflow": _create_workflow,
    "smart_suggest": _smart_suggest,
    "bulk_create": _bulk_create,
    "save_template": _save_template,
    "update_template": _update_template,
    "delete_template": _delete_template,
    "duplicate_template": _duplicate_template,
    "export_templates": _export_templates,
    "import_templates": _import_templates,
}


@router.post("")
async def run_action(body: ActionRequest, services: Services = Depends(get_services)):
    handler = ACTIONS.get(body.action)
    if handler is None:
        raise ValidationError("Invalid action", hint=f"Supported actions: {', '.join(ACTIONS)}")
    logger.info("automation.action", extra=safe_extra({"action": body.action}))
    return await handler(body.payload, services)
