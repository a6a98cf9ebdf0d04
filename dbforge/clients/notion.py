# dbforge/clients/notion.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from dbforge.codec.properties import protocol_for_version
from dbforge.config import Settings
from dbforge.errors import UpstreamError
from dbforge.logging import safe_extra
from dbforge.middleware.correlation import corr_headers
from dbforge.models.properties import Protocol

log = logging.getLogger(__name__)


class NotionClient:
    """
    Thin async wrapper over the workspace REST API.

    Every non-2xx response becomes an UpstreamError carrying the upstream status
    and error code; transport failures become an UpstreamError without a status.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.notion.com/v1",
        version: str = "2025-09-03",
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self.version = version
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> "NotionClient":
        settings.require("NOTION_API_KEY")
        return cls(
            settings.NOTION_API_KEY or "",
            base_url=settings.NOTION_BASE_URL,
            version=settings.NOTION_API_VERSION,
            timeout=settings.REQUEST_TIMEOUT_S,
            transport=transport,
        )

    @property
    def protocol(self) -> Protocol:
        return protocol_for_version(self.version)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "NotionClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    # ─────────────────────────────────────────────────────────────
    # Transport
    # ─────────────────────────────────────────────────────────────
    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = corr_headers({
            "Authorization": f"Bearer {self._api_key}",
            "Notion-Version": self.version,
            "Content-Type": "application/json",
        })
        try:
            r = await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.RequestError as e:
            log.warning("notion.transport_error", extra=safe_extra({"method": method, "path": path, "error": str(e)}))
            raise UpstreamError(f"{method} {path} failed: {e}") from e

        if r.is_error:
            code, message = None, r.text
            try:
                body = r.json()
                code = body.get("code")
                message = body.get("message") or message
            except ValueError:
                pass
            log.info(
                "notion.error_response",
                extra=safe_extra({"method": method, "path": path, "status": r.status_code, "code": code}),
            )
            raise UpstreamError(message or f"{r.status_code}", upstream_status=r.status_code, code=code)
        return r.json()

    # ─────────────────────────────────────────────────────────────
    # Containers (databases)
    # ─────────────────────────────────────────────────────────────
    async def retrieve_database(self, database_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/databases/{database_id}")

    async def create_database(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/databases", json=body)

    async def update_database(self, database_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/databases/{database_id}", json=body)

    async def query_database(self, database_id: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._request("POST", f"/databases/{database_id}/query", json=body or {})

    # ─────────────────────────────────────────────────────────────
    # Data sources
    # ─────────────────────────────────────────────────────────────
    async def retrieve_data_source(self, data_source_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/data_sources/{data_source_id}")

    async def create_data_source(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/data_sources", json=body)

    async def query_data_source(self, data_source_id: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._request("POST", f"/data_sources/{data_source_id}/query", json=body or {})

    # ─────────────────────────────────────────────────────────────
    # Pages (records)
    # ─────────────────────────────────────────────────────────────
    async def create_page(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/pages", json=body)

    async def retrieve_page(self, page_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/pages/{page_id}")

    async def update_page(self, page_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/pages/{page_id}", json=body)

    # ─────────────────────────────────────────────────────────────
    # Blocks / users
    # ─────────────────────────────────────────────────────────────
    async def list_block_children(self, block_id: str, start_cursor: Optional[str] = None) -> Dict[str, Any]:
        params = {"start_cursor": start_cursor} if start_cursor else None
        return await self._request("GET", f"/blocks/{block_id}/children", params=params)

    async def retrieve_me(self) -> Dict[str, Any]:
        return await self._request("GET", "/users/me")
