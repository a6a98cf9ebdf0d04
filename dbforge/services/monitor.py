# dbforge/services/monitor.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from dbforge.clients.notion import NotionClient
from dbforge.codec.properties import plain_text
from dbforge.config import REQUIRED_SETTINGS, Settings
from dbforge.errors import DBForgeError, ValidationError
from dbforge.logging import safe_extra
from dbforge.services.catalog import TemplateCatalog
from dbforge.services.gateway import RecordGateway
from dbforge.synthesis.engine import SchemaSynthesisEngine

log = logging.getLogger(__name__)

ANALYTICS_SAMPLE = 10

CATEGORY_RULES = (
    (("project", "task"), "project_management"),
    (("customer", "contact"), "crm"),
    (("content", "article"), "content"),
    (("event", "meeting"), "events"),
)


def categorize(property_names: List[str]) -> str:
    lowered = [n.lower() for n in property_names]
    for words, category in CATEGORY_RULES:
        if any(w in n for n in lowered for w in words):
            return category
    return "other"


def optimization_score(properties: Dict[str, Any]) -> int:
    score = 100
    values = [p for p in properties.values() if isinstance(p, dict)]
    for p in values:
        if p.get("type") == "select" and len((p.get("select") or {}).get("options") or []) > 15:
            score -= 10
    kinds = {p.get("type") for p in values}
    if "created_time" in kinds:
        score += 5
    if "people" in kinds:
        score += 5
    if 5 <= len(values) <= 15:
        score += 10
    return max(0, min(100, score))


def schema_suggestions(properties: Dict[str, Any]) -> List[Dict[str, Any]]:
    suggestions = []
    for name, p in properties.items():
        if not isinstance(p, dict):
            continue
        if p.get("type") == "select":
            n = len((p.get("select") or {}).get("options") or [])
            if n > 10:
                suggestions.append({
                    "type": "consolidate_options",
                    "property": name,
                    "message": f"Consider consolidating {n} select options",
                    "impact": "medium",
                })
        if p.get("type") == "rich_text" and "tag" in name.lower():
            suggestions.append({
                "type": "convert_to_multiselect",
                "property": name,
                "message": "Consider converting to multi-select for better filtering",
                "impact": "high",
            })
    if properties and "Status" not in properties:
        suggestions.append({
            "type": "add_status_property",
            "message": "Consider adding a Status property for workflow tracking",
            "impact": "high",
        })
    return suggestions


def _check(service: str, status: str, message: str, **extra: Any) -> Dict[str, Any]:
    return {"service": service, "status": status, "message": message, **extra}


class MonitorService:
    def __init__(
        self,
        settings: Settings,
        client: Optional[NotionClient],
        gateway: Optional[RecordGateway],
        engine: Optional[SchemaSynthesisEngine],
        catalog: TemplateCatalog,
    ):
        self.settings = settings
        self.client = client
        self.gateway = gateway
        self.engine = engine
        self.catalog = catalog

    # ─────────────────────────────────────────────────────────────
    # Health
    # ─────────────────────────────────────────────────────────────
    async def _check_workspace(self) -> Dict[str, Any]:
        if self.client is None:
            return _check("notion_api", "error", "Notion API client not configured")
        started = time.perf_counter()
        try:
            await self.client.retrieve_me()
        except DBForgeError as e:
            return _check("notion_api", "error", f"Notion API error: {e.message}", error=e.details.get("code"))
        return _check(
            "notion_api", "healthy", "Notion API is accessible",
            responseTimeMs=round((time.perf_counter() - started) * 1000, 1),
        )

    async def _check_model(self) -> Dict[str, Any]:
        if self.engine is None:
            return _check("gemini_api", "error", "Model access not configured")
        started = time.perf_counter()
        try:
            provider = await self.engine.select_model()
        except DBForgeError as e:
            return _check("gemini_api", "error", f"Gemini API error: {e.message}")
        return _check(
            "gemini_api", "healthy", "Gemini API is accessible",
            model=provider.model_id,
            responseTimeMs=round((time.perf_counter() - started) * 1000, 1),
        )

    def _check_environment(self) -> Dict[str, Any]:
        missing = self.settings.missing_required(*REQUIRED_SETTINGS)
        if missing:
            return _check("environment", "error", f"Missing environment variables: {', '.join(missing)}", missing=missing)
        return _check("environment", "healthy", "All required environment variables are set")

    async def _check_parent_access(self) -> Dict[str, Any]:
        parent = self.settings.NOTION_PARENT_PAGE_ID
        if self.client is None or not parent:
            return _check("database_access", "warning", "Parent page not configured")
        try:
            await self.client.retrieve_page(parent)
        except DBForgeError as e:
            return _check("database_access", "error", f"Cannot access parent page: {e.message}", error=e.details.get("code"))
        return _check("database_access", "healthy", "Parent page is accessible")

    async def health_check(self) -> Dict[str, Any]:
        checks = [
            await self._check_workspace(),
            await self._check_model(),
            self._check_environment(),
            await self._check_parent_access(),
        ]
        status = "healthy"
        if any(c["status"] == "error" for c in checks):
            status = "unhealthy"
        elif any(c["status"] == "warning" for c in checks):
            status = "degraded"
        log.info("monitor.health", extra=safe_extra({"status": status}))
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "status": status,
            "checks": checks,
            "warnings": [c["message"] for c in checks if c["status"] == "warning"],
            "errors": [c["message"] for c in checks if c["status"] == "error"],
        }

    # ─────────────────────────────────────────────────────────────
    # Analytics / optimization
    # ─────────────────────────────────────────────────────────────
    def _require_workspace(self) -> None:
        self.settings.require("NOTION_API_KEY", "NOTION_PARENT_PAGE_ID")

    async def database_analytics(self, time_range: str = "30d") -> Dict[str, Any]:
        self._require_workspace()
        try:
            days = int(str(time_range).rstrip("d"))
        except ValueError as e:
            raise ValidationError(f"Invalid timeRange '{time_range}'", hint="Use a day count such as '30d'") from e

        root = self.settings.NOTION_PARENT_PAGE_ID or ""
        children = await self.client.list_block_children(root)
        databases = [b for b in children.get("results") or [] if b.get("type") == "child_database"]
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)

        def _recent(block: Dict[str, Any]) -> bool:
            created = block.get("created_time")
            if not created or not isinstance(created, str):
                return False
            try:
                stamp = datetime.fromisoformat(created.replace("Z", "+00:00"))
            except ValueError:
                return False
            if stamp.tzinfo is None:
                stamp = stamp.replace(tzinfo=timezone.utc)
            return stamp > cutoff

        types: Dict[str, int] = {}
        for block in databases[:ANALYTICS_SAMPLE]:
            try:
                meta = await self.gateway.retrieve_with_properties(block["id"])
            except DBForgeError as e:
                log.warning("monitor.analytics_item_failed", extra=safe_extra({"database_id": block.get("id"), "error": e.message}))
                continue
            category = categorize(list((meta.get("properties") or {}).keys()))
            types[category] = types.get(category, 0) + 1

        return {
            "success": True,
            "analytics": {
                "totalDatabases": len(databases),
                "recentDatabases": sum(1 for b in databases if _recent(b)),
                "databaseTypes": types,
                "creationTrend": [],
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def optimize_schema(self, database_id: Optional[str]) -> Dict[str, Any]:
        if not database_id:
            raise ValidationError("databaseId is required")
        self.settings.require("NOTION_API_KEY")
        meta = await self.gateway.retrieve_with_properties(database_id)
        properties = meta.get("properties") or {}
        return {
            "success": True,
            "suggestions": schema_suggestions(properties),
            "databaseTitle": plain_text(meta.get("title")) or "Untitled",
            "optimizationScore": optimization_score(properties),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def backup_templates(self) -> Dict[str, Any]:
        return {"success": True, "backup": self.catalog.backup(), "message": "Templates backed up successfully"}
