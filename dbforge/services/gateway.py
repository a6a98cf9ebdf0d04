# dbforge/services/gateway.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from dbforge.clients.notion import NotionClient
from dbforge.errors import RetrievalError, UpstreamError, ValidationError
from dbforge.logging import safe_extra
from dbforge.models.workspace import EndpointKind, ParentRef, QueryTarget, RecordPage
from dbforge.services.resolver import VersionResolver

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
ARCHIVED_PROPERTY = "archived"


class RecordGateway:
    """CRUD over records of a container, resolving the protocol on every call."""

    def __init__(self, client: NotionClient, resolver: Optional[VersionResolver] = None):
        self.client = client
        self.resolver = resolver or VersionResolver(client)

    # ─────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────
    async def list(
        self,
        container_id: str,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        start_cursor: Optional[str] = None,
        data_source_id: Optional[str] = None,
    ) -> RecordPage:
        if not 1 <= page_size <= 100:
            raise ValidationError("page_size must be between 1 and 100", hint="Omit page_size to get 100 records")

        body: Dict[str, Any] = {"page_size": page_size}
        if start_cursor:
            body["start_cursor"] = start_cursor

        if data_source_id:
            target = QueryTarget(endpoint_kind=EndpointKind.SOURCE, id=data_source_id)
        else:
            res = await self.resolver.resolve(container_id)
            target = res.target
            props = res.metadata.get("properties")
            if props is None and target.endpoint_kind == EndpointKind.SOURCE:
                props = (await self._source_properties(target.id)) or {}
            if _has_archived_flag(props or {}):
                body["filter"] = {"property": ARCHIVED_PROPERTY, "checkbox": {"equals": False}}

        if target.endpoint_kind == EndpointKind.SOURCE:
            data = await self.client.query_data_source(target.id, body)
        else:
            data = await self.client.query_database(target.id, body)
        return RecordPage(
            records=data.get("results") or [],
            has_more=bool(data.get("has_more")),
            next_cursor=data.get("next_cursor"),
            data_source_id=target.id if target.endpoint_kind == EndpointKind.SOURCE else None,
        )

    async def get(self, record_id: str) -> Dict[str, Any]:
        return await self.client.retrieve_page(record_id)

    async def retrieve_with_properties(self, container_id: str) -> Dict[str, Any]:
        """
        Container metadata with its property set merged in. Under protocol B the
        container omits properties, so they come from the first data source;
        finding none anywhere is an error.
        """
        res = await self.resolver.resolve(container_id)
        meta = dict(res.metadata)
        if meta.get("properties"):
            return meta

        ids = res.data_source_ids
        if not ids:
            raise RetrievalError("No data sources found in database", upstream_status=404)
        props = await self._source_properties(ids[0], strict=True)
        if not props:
            raise RetrievalError("No properties found in data source schema", upstream_status=404)
        meta["properties"] = props
        return meta

    async def _source_properties(self, data_source_id: str, *, strict: bool = False) -> Optional[Dict[str, Any]]:
        try:
            ds = await self.client.retrieve_data_source(data_source_id)
        except UpstreamError as e:
            if strict:
                raise RetrievalError(
                    f"Failed to get database properties: {e.message}",
                    upstream_status=e.upstream_status,
                    code=e.code,
                ) from e
            log.warning(
                "gateway.source_properties_failed",
                extra=safe_extra({"data_source_id": data_source_id, "status": e.upstream_status}),
            )
            return None
        return ds.get("properties")

    # ─────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────
    async def create(
        self,
        container_id: str,
        properties: Dict[str, Any],
        *,
        data_source_id: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], ParentRef]:
        """
        Create a record. Without an explicit data_source_id the record lands in
        the container's first data source (or the container itself under protocol A).
        """
        if not isinstance(properties, dict):
            raise ValidationError("properties must be an object")
        if data_source_id:
            parent = ParentRef(data_source_id=data_source_id)
        else:
            parent = await self.resolver.resolve_creation_parent(container_id)
        page = await self.client.create_page({"parent": parent.to_wire(), "properties": properties})
        log.info(
            "gateway.record_created",
            extra=safe_extra({"container_id": container_id, "record_id": page.get("id"), **parent.to_wire()}),
        )
        return page, parent

    async def update(self, record_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(properties, dict):
            raise ValidationError("properties must be an object")
        return await self.client.update_page(record_id, {"properties": properties})

    async def archive(self, record_id: str) -> None:
        await self.client.update_page(record_id, {"archived": True})
        log.info("gateway.record_archived", extra=safe_extra({"record_id": record_id}))


def _has_archived_flag(props: Dict[str, Any]) -> bool:
    p = props.get(ARCHIVED_PROPERTY)
    if not isinstance(p, dict):
        return False
    return p.get("type", "checkbox") == "checkbox" and ("checkbox" in p or p.get("type") == "checkbox")
