# dbforge/services/provisioning.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from dbforge.clients.notion import NotionClient
from dbforge.codec.properties import (
    build_container_payload,
    encode_properties,
    ensure_color_variation,
    ensure_title,
    plain_text,
    rich_text,
)
from dbforge.codec.schema import parse_schema
from dbforge.errors import ConfigurationError, DBForgeError, ValidationError
from dbforge.logging import safe_extra
from dbforge.models.properties import PropertyDescriptor, PropertyKind
from dbforge.models.schema import DataSourceSchema, MultiSourceSchema, SchemaDefinition
from dbforge.models.templates import Customizations
from dbforge.services.catalog import TemplateCatalog
from dbforge.services.gateway import RecordGateway
from dbforge.services.samples import sample_record

log = logging.getLogger(__name__)

MODE_SEPARATE = "separate"
MODE_MULTI_SOURCE = "multi-source"


def _prefixed(source: str, props: List[PropertyDescriptor]) -> List[PropertyDescriptor]:
    """Later data sources merged into a protocol A container: prefixed names, title demoted to text."""
    out = []
    for p in props:
        kind = PropertyKind.TEXT if p.kind == PropertyKind.TITLE else p.kind
        config = p.config if kind == p.kind else None
        out.append(PropertyDescriptor(name=f"{source}_{p.name}", kind=kind, config=config))
    return out


class ProvisioningService:
    """Creates containers from schemas or catalog templates, then seeds sample records."""

    def __init__(
        self,
        client: NotionClient,
        gateway: RecordGateway,
        catalog: TemplateCatalog,
        *,
        default_parent_id: Optional[str] = None,
    ):
        self.client = client
        self.gateway = gateway
        self.catalog = catalog
        self.default_parent_id = default_parent_id

    def _parent(self, parent_page_id: Optional[str]) -> str:
        parent = parent_page_id or self.default_parent_id
        if not parent:
            raise ConfigurationError(
                "Parent page ID is required. Provide one or set NOTION_PARENT_PAGE_ID.",
                missing=["NOTION_PARENT_PAGE_ID"],
            )
        return parent

    # ─────────────────────────────────────────────────────────────
    # Single container
    # ─────────────────────────────────────────────────────────────
    async def create_container(self, schema: SchemaDefinition, parent_page_id: Optional[str] = None) -> Dict[str, Any]:
        body = build_container_payload(schema, self._parent(parent_page_id), self.client.protocol)
        db = await self.client.create_database(body)
        wire_props = db.get("properties") or body.get("properties") or body.get("initial_data_source", {}).get("properties") or {}
        log.info(
            "provision.container_created",
            extra=safe_extra({"database_id": db.get("id"), "protocol": self.client.protocol}),
        )
        return {
            "id": db.get("id"),
            "title": plain_text(db.get("title")) or schema.title,
            "url": db.get("url"),
            "created_time": db.get("created_time"),
            "properties": list(wire_props.keys()),
            "dataSources": db.get("data_sources") or [],
        }

    async def verify_columns(self, container_id: str, schema: SchemaDefinition) -> Dict[str, Any]:
        """Compare the created property set against what was requested."""
        expected = {p.name: p.wire_type for p in ensure_title(list(schema.properties))}
        try:
            meta = await self.gateway.retrieve_with_properties(container_id)
        except DBForgeError as e:
            return {"success": False, "error": e.message}
        actual = meta.get("properties") or {}
        missing = [n for n in expected if n not in actual]
        mismatched = [
            {"property": n, "expected": t, "actual": actual[n].get("type")}
            for n, t in expected.items()
            if n in actual and isinstance(actual[n], dict) and actual[n].get("type") not in (None, t)
        ]
        return {
            "success": True,
            "expectedCount": len(expected),
            "actualCount": len(actual),
            "missingProperties": missing,
            "extraProperties": [n for n in actual if n not in expected],
            "typeMismatches": mismatched,
            "allPropertiesPresent": not missing,
        }

    # ─────────────────────────────────────────────────────────────
    # Templates
    # ─────────────────────────────────────────────────────────────
    async def deploy_template(
        self,
        template_id: str,
        customizations: Optional[Mapping[str, Any]] = None,
        include_sample_data: bool = False,
        parent_page_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not template_id:
            raise ValidationError("templateId is required")
        template = self.catalog.get(template_id)
        c = Customizations.model_validate(customizations or {})
        properties = {**template.properties, **(c.properties or {})}
        schema = parse_schema({
            "title": c.title or template.title,
            "description": c.description or template.description,
            "properties": properties,
        })
        created = await self.create_container(schema, parent_page_id)

        added, errors = 0, []
        if include_sample_data and template.sampleData:
            ds_id = created["dataSources"][0]["id"] if created["dataSources"] else None
            for item in template.sampleData:
                try:
                    await self.gateway.create(created["id"], item, data_source_id=ds_id)
                    added += 1
                except DBForgeError as e:
                    log.warning(
                        "provision.sample_failed",
                        extra=safe_extra({"template_id": template_id, "error": e.message}),
                    )
                    errors.append(e.message)

        out: Dict[str, Any] = {
            "database": {
                "id": created["id"],
                "title": schema.title,
                "url": created["url"],
                "sampleDataAdded": added > 0,
            }
        }
        if errors:
            out["sampleErrors"] = errors
        return out

    async def bulk_create(self, templates: List[Mapping[str, Any]], parent_page_id: Optional[str] = None) -> Dict[str, Any]:
        if not isinstance(templates, list) or not templates:
            raise ValidationError("templates must be a non-empty list")
        results: List[Dict[str, Any]] = []
        for cfg in templates:
            template_id = cfg.get("templateId") if isinstance(cfg, Mapping) else None
            try:
                data = await self.deploy_template(
                    template_id,
                    cfg.get("customizations"),
                    bool(cfg.get("includeSampleData")),
                    parent_page_id or cfg.get("parentPageId"),
                )
                results.append({"success": True, **data})
            except Exception as e:
                log.exception("provision.bulk_item_failed", extra=safe_extra({"template_id": template_id}))
                message = e.message if isinstance(e, DBForgeError) else str(e)
                results.append({"success": False, "error": message, "templateId": template_id})

        created = sum(1 for r in results if r["success"])
        return {"results": results, "totalCreated": created, "totalFailed": len(results) - created}

    # ─────────────────────────────────────────────────────────────
    # Multi-source
    # ─────────────────────────────────────────────────────────────
    async def create_multi_source(
        self,
        schema: MultiSourceSchema,
        parent_page_id: Optional[str] = None,
        mode: str = MODE_MULTI_SOURCE,
    ) -> Dict[str, Any]:
        if mode not in (MODE_SEPARATE, MODE_MULTI_SOURCE):
            raise ValidationError(f"Unknown mode '{mode}'", hint="Use 'separate' or 'multi-source'")
        if not schema.data_sources:
            raise ValidationError("Schema must contain at least one data source")
        parent = self._parent(parent_page_id)
        if mode == MODE_SEPARATE:
            return await self._create_separate(schema, parent)
        return await self._create_combined(schema, parent)

    async def _create_separate(self, schema: MultiSourceSchema, parent: str) -> Dict[str, Any]:
        databases: List[Dict[str, Any]] = []
        for ds in schema.data_sources:
            definition = ds.as_definition(f"{schema.title} - {ds.name}")
            try:
                created = await self.create_container(definition, parent)
                verification = await self.verify_columns(created["id"], definition)
                if not verification.get("allPropertiesPresent"):
                    log.warning(
                        "provision.column_check_failed",
                        extra=safe_extra({"data_source": ds.name, "database_id": created["id"]}),
                    )
                databases.append({
                    "name": ds.name,
                    "description": ds.description,
                    "title": created["title"],
                    "url": created["url"],
                    "id": created["id"],
                    "properties": created["properties"],
                    "status": "success",
                    "verification": verification,
                })
            except DBForgeError as e:
                log.warning("provision.separate_failed", extra=safe_extra({"data_source": ds.name, "error": e.message}))
                databases.append({
                    "name": ds.name,
                    "description": ds.description,
                    "status": "error",
                    "error": e.message,
                })

        errors = [d for d in databases if d["status"] == "error"]
        return {
            "success": True,
            "databases": databases,
            "sampleData": [],
            "message": f"{schema.title} created successfully with {len(databases)} separate databases",
            "errors": errors,
            "hasErrors": bool(errors),
        }

    async def _create_combined(self, schema: MultiSourceSchema, parent: str) -> Dict[str, Any]:
        first, rest = schema.data_sources[0], schema.data_sources[1:]
        definition = SchemaDefinition(
            title=schema.title,
            description=schema.description,
            properties=list(first.properties),
        )
        created = await self.create_container(definition, parent)
        db_id = created["id"]
        protocol = self.client.protocol

        # data source name -> (record parent id, descriptors used for its sample)
        targets: Dict[str, Any] = {}
        first_ds = created["dataSources"][0]["id"] if created["dataSources"] else None
        targets[first.name] = (first_ds, ensure_title(list(first.properties)))

        entries: List[Dict[str, Any]] = []
        for ds in rest:
            try:
                if protocol == "B":
                    props = ensure_title(list(ds.properties))
                    wire = ensure_color_variation(encode_properties(props, protocol))
                    res = await self.client.create_data_source({
                        "parent": {"type": "database_id", "database_id": db_id},
                        "title": rich_text(ds.name),
                        "properties": wire,
                    })
                    targets[ds.name] = (res.get("id"), props)
                    entries.append({"name": ds.name, "description": ds.description, "status": "created", "dataSourceId": res.get("id")})
                else:
                    props = _prefixed(ds.name, list(ds.properties))
                    wire = ensure_color_variation(encode_properties(props, protocol))
                    await self.client.update_database(db_id, {"properties": wire})
                    targets[ds.name] = (None, props)
                    entries.append({"name": ds.name, "description": ds.description, "status": "created"})
            except DBForgeError as e:
                log.warning("provision.source_failed", extra=safe_extra({"data_source": ds.name, "error": e.message}))
                entries.append({"name": ds.name, "description": ds.description, "status": "error", "error": e.message})

        samples = await self._seed_samples(db_id, schema.data_sources, targets)
        return {
            "success": True,
            "database": {"id": db_id, "url": created["url"], "title": created["title"]},
            "dataSources": [{"name": ds.name, "description": ds.description} for ds in schema.data_sources],
            "databases": entries,
            "sampleData": samples,
            "message": (
                f'Multi-source database "{schema.title}" created successfully with '
                f"{len(schema.data_sources)} data source(s) and sample data"
            ),
        }

    async def _seed_samples(
        self,
        db_id: str,
        sources: List[DataSourceSchema],
        targets: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for ds in sources:
            if ds.name not in targets:
                continue
            ds_id, props = targets[ds.name]
            values = sample_record(ds.name, props)
            if not values:
                continue
            try:
                page, _ = await self.gateway.create(db_id, values, data_source_id=ds_id)
            except DBForgeError as e:
                log.warning("provision.sample_failed", extra=safe_extra({"data_source": ds.name, "error": e.message}))
                continue
            out.append({"dataSource": ds.name, "pageId": page.get("id"), "url": page.get("url")})
        return out
