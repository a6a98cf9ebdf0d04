# dbforge/services/catalog.py
from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from dbforge.codec.properties import decode_properties
from dbforge.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from dbforge.logging import safe_extra
from dbforge.models.templates import Customizations, ImportResult, Template
from dbforge.seeds.templates import AUTOMATION_WORKFLOWS, SYSTEM_TEMPLATES

log = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
# bookkeeping fields owned by the catalog, never taken from update payloads
MANAGED_FIELDS = ("custom", "created", "updated", "imported", "originalTemplate")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _infer_properties(raw: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Accept properties at the top level, under schema.dataSources[0], or under asDataSource."""
    props = raw.get("properties")
    if isinstance(props, dict) and props:
        return props
    schema = raw.get("schema")
    if isinstance(schema, Mapping):
        sources = schema.get("dataSources")
        if isinstance(sources, list) and sources and isinstance(sources[0], Mapping):
            props = sources[0].get("properties")
            if isinstance(props, dict) and props:
                return props
    ads = raw.get("asDataSource")
    if isinstance(ads, Mapping) and isinstance(ads.get("properties"), dict) and ads["properties"]:
        return ads["properties"]
    return None


def _infer_title(raw: Mapping[str, Any]) -> Optional[str]:
    if raw.get("title"):
        return raw["title"]
    schema = raw.get("schema")
    if isinstance(schema, Mapping) and schema.get("title"):
        return schema["title"]
    ads = raw.get("asDataSource")
    if isinstance(ads, Mapping) and ads.get("name"):
        return ads["name"]
    return None


class TemplateCatalog:
    """
    In-process keyed store of templates. Constructed once per app (or per test)
    and passed by reference; no locking, last write wins.
    """

    def __init__(
        self,
        seed: Optional[Mapping[str, Mapping[str, Any]]] = None,
        workflows: Optional[Mapping[str, Mapping[str, Any]]] = None,
        clock: Callable[[], str] = _now_iso,
    ):
        self._clock = clock
        self._templates: Dict[str, Template] = {}
        for tid, raw in (SYSTEM_TEMPLATES if seed is None else seed).items():
            self._templates[tid] = Template(id=tid, **copy.deepcopy(dict(raw)), custom=False)
        self._workflows = copy.deepcopy(dict(AUTOMATION_WORKFLOWS if workflows is None else workflows))

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    # ─────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────
    def get(self, template_id: str) -> Template:
        t = self._templates.get(template_id)
        if t is None:
            raise NotFoundError(f"Template '{template_id}' not found")
        return t

    def list(self) -> List[Dict[str, Any]]:
        return [t.summary() for t in self._templates.values()]

    def list_workflows(self) -> List[Dict[str, Any]]:
        return [{"id": k, **v} for k, v in self._workflows.items()]

    def get_schema(self, template_id: str) -> Dict[str, Any]:
        t = self.get(template_id)
        return {
            "template": {
                "id": t.id,
                "title": t.title,
                "description": t.description,
                "properties": t.properties,
                "sampleData": t.sampleData,
            },
            "schema": t.as_multi_source(),
        }

    # ─────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────
    def _build(self, template_id: str, raw: Mapping[str, Any], **overrides: Any) -> Template:
        data = {**dict(raw), **overrides}
        data.pop("id", None)
        data.pop("schema", None)
        try:
            t = Template(id=template_id, **data)
            decode_properties(t.properties)
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid template structure",
                hint="A template needs a non-empty title and a properties object",
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e
        return t

    def save(self, template_id: str, template: Mapping[str, Any]) -> Template:
        if not template_id:
            raise ValidationError("templateId is required")
        if not isinstance(template, Mapping) or not template.get("title") or not template.get("properties"):
            raise ValidationError("Invalid template structure", hint="A template needs a title and properties")
        now = self._clock()
        t = self._build(template_id, template, created=now, updated=now, custom=True)
        self._templates[template_id] = t
        log.info("catalog.saved", extra=safe_extra({"template_id": template_id}))
        return t

    def update(self, template_id: str, updates: Mapping[str, Any]) -> Template:
        current = self.get(template_id)
        changes = {k: v for k, v in dict(updates or {}).items() if k not in MANAGED_FIELDS}
        merged = {**current.stored(), **changes}
        t = self._build(template_id, merged, custom=current.custom, updated=self._clock())
        self._templates[template_id] = t
        log.info("catalog.updated", extra=safe_extra({"template_id": template_id}))
        return t

    def delete(self, template_id: str) -> None:
        t = self.get(template_id)
        if not t.custom:
            raise ForbiddenError("Cannot delete system templates")
        del self._templates[template_id]
        log.info("catalog.deleted", extra=safe_extra({"template_id": template_id}))

    def duplicate(
        self,
        template_id: str,
        new_template_id: str,
        customizations: Optional[Mapping[str, Any]] = None,
    ) -> Template:
        original = self.get(template_id)
        if not new_template_id:
            raise ValidationError("newTemplateId is required")
        if new_template_id in self._templates:
            raise ConflictError(f"Template ID '{new_template_id}' already exists")

        c = Customizations.model_validate(customizations or {})
        data = copy.deepcopy(original.stored())
        if c.properties:
            data["properties"] = {**data["properties"], **c.properties}
        now = self._clock()
        t = self._build(
            new_template_id,
            data,
            title=c.title or f"{original.title} (Copy)",
            description=c.description or original.description,
            created=now,
            updated=now,
            custom=True,
            originalTemplate=template_id,
        )
        self._templates[new_template_id] = t
        return t

    # ─────────────────────────────────────────────────────────────
    # Import / export
    # ─────────────────────────────────────────────────────────────
    def export(self, include_system: bool = False) -> Dict[str, Any]:
        chosen = {k: t.stored() for k, t in self._templates.items() if include_system or t.custom}
        return {"templates": chosen, "exportDate": self._clock(), "version": EXPORT_VERSION}

    def _copy_id(self, template_id: str) -> tuple:
        counter = 1
        new_id = f"{template_id}_copy"
        while new_id in self._templates:
            counter += 1
            new_id = f"{template_id}_copy_{counter}"
        return new_id, counter

    def import_templates(
        self,
        templates: Any,
        *,
        overwrite: bool = False,
        duplicate_if_exists: bool = False,
    ) -> ImportResult:
        if not isinstance(templates, Mapping):
            raise ValidationError("Invalid templates format", hint="Send an object keyed by template id")

        result = ImportResult()
        for template_id, raw in templates.items():
            if not isinstance(raw, Mapping):
                result.errors.append({"templateId": template_id, "error": "Invalid template structure"})
                continue
            props = _infer_properties(raw)
            if props is None:
                result.errors.append({"templateId": template_id, "error": "Template missing properties"})
                continue
            title = _infer_title(raw)
            if not title:
                result.errors.append({"templateId": template_id, "error": "Invalid template structure"})
                continue

            body = {k: v for k, v in raw.items() if k not in ("schema", "asDataSource")}
            body.update(properties=props, title=title)
            now = self._clock()
            try:
                if template_id in self._templates and not overwrite:
                    if not duplicate_if_exists:
                        result.skipped.append(template_id)
                        continue
                    new_id, counter = self._copy_id(template_id)
                    suffix = f"(Copy {counter})" if counter > 1 else "(Copy)"
                    self._templates[new_id] = self._build(
                        new_id, body, title=f"{title} {suffix}", custom=True,
                        imported=now, originalTemplate=template_id,
                    )
                    result.imported.append(new_id)
                    continue

                self._templates[template_id] = self._build(template_id, body, custom=True, imported=now)
                result.imported.append(template_id)
            except ValidationError as e:
                result.errors.append({"templateId": template_id, "error": e.message})

        log.info(
            "catalog.imported",
            extra=safe_extra({
                "imported": len(result.imported),
                "skipped": len(result.skipped),
                "errors": len(result.errors),
            }),
        )
        return result

    def backup(self) -> Dict[str, Any]:
        templates = {k: t.stored() for k, t in self._templates.items()}
        custom = sum(1 for t in self._templates.values() if t.custom)
        return {
            "timestamp": self._clock(),
            "version": EXPORT_VERSION,
            "templates": templates,
            "metadata": {
                "totalTemplates": len(templates),
                "customTemplates": custom,
                "systemTemplates": len(templates) - custom,
            },
        }

    # ─────────────────────────────────────────────────────────────
    # Workflows (configuration only; nothing is scheduled)
    # ─────────────────────────────────────────────────────────────
    def create_workflow(
        self,
        workflow_id: str,
        *,
        custom_schedule: Optional[str] = None,
        template_id: Optional[str] = None,
        customizations: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        base = self._workflows.get(workflow_id)
        if base is None:
            raise NotFoundError(f"Workflow '{workflow_id}' not found")
        return {
            "id": workflow_id,
            "schedule": custom_schedule or base.get("schedule"),
            "template": template_id or base.get("template"),
            "customizations": dict(customizations or {}),
            "status": "configured",
            "nextRun": "Manual trigger required",
        }
