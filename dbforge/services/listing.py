# dbforge/services/listing.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from dbforge.clients.notion import NotionClient
from dbforge.codec.properties import plain_text
from dbforge.logging import safe_extra
from dbforge.models.workspace import ContainerSummary

log = logging.getLogger(__name__)

LISTING_CACHE_KEY = "databases_list"
FALLBACK_TITLE = "Untitled"


@dataclass
class CacheEntry:
    key: str
    payload: Dict[str, Any]
    stored_at: float


class ListingCache:
    """
    Process-wide TTL cache. One entry per key, no locking: a put always replaces
    the whole entry, so racing writers only ever leave a stale (never partial) value.
    """

    def __init__(self, ttl_s: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_s = ttl_s
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at < self.ttl_s:
            return entry.payload
        self._entries.pop(key, None)
        return None

    def put(self, key: str, payload: Dict[str, Any]) -> CacheEntry:
        entry = CacheEntry(key=key, payload=payload, stored_at=self._clock())
        self._entries[key] = entry
        return entry

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)


class ListingService:
    """Paginated discovery + batched enrichment of the containers under a root page."""

    def __init__(
        self,
        client: NotionClient,
        cache: ListingCache,
        *,
        batch_size: int = 5,
        max_pages: int = 50,
    ):
        self.client = client
        self.cache = cache
        self.batch_size = batch_size
        self.max_pages = max_pages

    @staticmethod
    def cache_key(root_id: str) -> str:
        return f"{LISTING_CACHE_KEY}:{root_id}"

    async def list_containers(self, root_id: str) -> Tuple[Dict[str, Any], bool]:
        """Returns (payload, cache_hit)."""
        key = self.cache_key(root_id)
        cached = self.cache.get(key)
        if cached is not None:
            log.info("listing.cache_hit", extra=safe_extra({"root_id": root_id, "count": cached.get("count")}))
            return cached, True

        discovered = await self.discover(root_id)
        summaries = await self.enrich_all(discovered)
        payload = {
            "success": True,
            "count": len(summaries),
            "results": [s.to_payload() for s in summaries],
            "cached_at": datetime.now(timezone.utc).isoformat(),
        }
        self.cache.put(key, payload)
        log.info(
            "listing.cache_miss",
            extra=safe_extra({"root_id": root_id, "count": len(summaries)}),
        )
        return payload, False

    # ─────────────────────────────────────────────────────────────
    # Discovery
    # ─────────────────────────────────────────────────────────────
    async def discover(self, root_id: str) -> List[Dict[str, str]]:
        found: List[Dict[str, str]] = []
        cursor: Optional[str] = None
        pages = 0
        while True:
            children = await self.client.list_block_children(root_id, start_cursor=cursor)
            pages += 1
            for block in children.get("results") or []:
                if block.get("type") == "child_database" and block.get("child_database") and block.get("id"):
                    found.append({"id": block["id"], "title": block["child_database"].get("title") or ""})
            cursor = children.get("next_cursor") if children.get("has_more") else None
            if not cursor:
                break
            if pages >= self.max_pages:
                log.warning(
                    "listing.page_ceiling_reached",
                    extra=safe_extra({"root_id": root_id, "pages": pages, "found": len(found)}),
                )
                break
        log.info("listing.discovered", extra=safe_extra({"root_id": root_id, "found": len(found), "pages": pages}))
        return found

    # ─────────────────────────────────────────────────────────────
    # Enrichment
    # ─────────────────────────────────────────────────────────────
    async def enrich_all(self, discovered: List[Dict[str, str]]) -> List[ContainerSummary]:
        out: List[ContainerSummary] = []
        for i in range(0, len(discovered), self.batch_size):
            batch = discovered[i : i + self.batch_size]
            out.extend(await asyncio.gather(*(self.enrich(d) for d in batch)))
        return out

    async def enrich(self, discovered: Dict[str, str]) -> ContainerSummary:
        db_id = discovered["id"]
        try:
            return await self._enrich(db_id, discovered)
        except Exception as e:  # any single failure degrades to a minimal summary
            log.warning("listing.enrich_failed", extra=safe_extra({"database_id": db_id, "error": str(e)}))
            return ContainerSummary(id=db_id, title=discovered.get("title") or FALLBACK_TITLE, enriched=False)

    async def _enrich(self, db_id: str, discovered: Dict[str, str]) -> ContainerSummary:
        meta = await self.client.retrieve_database(db_id)
        sources = meta.get("data_sources") or []
        properties: List[str] = list((meta.get("properties") or {}).keys())
        if sources:
            try:
                ds = await self.client.retrieve_data_source(sources[0]["id"])
                properties = list((ds.get("properties") or {}).keys())
            except Exception as e:
                log.warning(
                    "listing.source_properties_failed",
                    extra=safe_extra({"database_id": db_id, "error": str(e)}),
                )

        return ContainerSummary(
            id=db_id,
            title=discovered.get("title") or plain_text(meta.get("title")) or FALLBACK_TITLE,
            url=meta.get("url"),
            last_edited_time=meta.get("last_edited_time"),
            created_time=meta.get("created_time"),
            properties=properties,
            hasMultipleDataSources=len(sources) > 1,
            dataSources=sources,
            dataSourceId=sources[0].get("id") if sources else db_id,
        )
