# dbforge/services/resolver.py
from __future__ import annotations

import logging
from typing import Any, Dict

from dbforge.clients.notion import NotionClient
from dbforge.errors import RetrievalError, UpstreamError
from dbforge.logging import safe_extra
from dbforge.models.workspace import EndpointKind, ParentRef, QueryTarget, Resolution

log = logging.getLogger(__name__)


class VersionResolver:
    """
    Decides, per call, whether a container is queried directly (protocol A) or
    through its first data source (protocol B). Nothing is cached: the shape is
    rediscovered on every read/write.
    """

    def __init__(self, client: NotionClient):
        self.client = client

    async def _metadata(self, container_id: str) -> Dict[str, Any]:
        try:
            return await self.client.retrieve_database(container_id)
        except UpstreamError as e:
            log.warning(
                "resolver.retrieve_failed",
                extra=safe_extra({"container_id": container_id, "status": e.upstream_status}),
            )
            raise RetrievalError(
                f"Failed to get data source from database: {e.message}",
                upstream_status=e.upstream_status,
                code=e.code,
            ) from e

    async def resolve(self, container_id: str) -> Resolution:
        meta = await self._metadata(container_id)
        sources = [ds for ds in (meta.get("data_sources") or []) if isinstance(ds, dict) and ds.get("id")]
        if sources:
            first = sources[0]["id"]
            target = QueryTarget(endpoint_kind=EndpointKind.SOURCE, id=first)
            parent = ParentRef(data_source_id=first)
        else:
            target = QueryTarget(endpoint_kind=EndpointKind.CONTAINER, id=container_id)
            parent = ParentRef(database_id=container_id)
        log.debug(
            "resolver.resolved",
            extra=safe_extra({"container_id": container_id, "endpoint": target.endpoint_kind.value, "target": target.id}),
        )
        return Resolution(container_id=container_id, target=target, parent=parent, metadata=meta)

    async def resolve_query_target(self, container_id: str) -> QueryTarget:
        return (await self.resolve(container_id)).target

    async def resolve_creation_parent(self, container_id: str) -> ParentRef:
        return (await self.resolve(container_id)).parent
