# dbforge/deps.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import Depends, Request

from dbforge.clients.notion import NotionClient
from dbforge.config import Settings
from dbforge.llms.registry import ProviderFactory, provider_factory
from dbforge.logging import safe_extra
from dbforge.services.catalog import TemplateCatalog
from dbforge.services.gateway import RecordGateway
from dbforge.services.listing import ListingCache, ListingService
from dbforge.services.monitor import MonitorService
from dbforge.services.provisioning import ProvisioningService
from dbforge.services.resolver import VersionResolver
from dbforge.synthesis.engine import SchemaSynthesisEngine
from dbforge.synthesis.retry import RetryPolicy

log = logging.getLogger(__name__)


@dataclass
class Services:
    """
    App-scoped service graph, built once in the lifespan and held on app.state.
    Workspace and model services stay None until their settings are present;
    the accessors below turn that into a ConfigurationError per request.
    """

    settings: Settings
    catalog: TemplateCatalog
    cache: ListingCache
    monitor: MonitorService
    client: Optional[NotionClient] = None
    gateway: Optional[RecordGateway] = None
    listing: Optional[ListingService] = None
    provisioning: Optional[ProvisioningService] = None
    engine: Optional[SchemaSynthesisEngine] = None

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()


def build_services(
    settings: Settings,
    *,
    notion_transport: Optional[httpx.AsyncBaseTransport] = None,
    providers: Optional[ProviderFactory] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    clock: Callable[[], float] = time.monotonic,
    catalog: Optional[TemplateCatalog] = None,
) -> Services:
    catalog = catalog or TemplateCatalog()
    cache = ListingCache(ttl_s=settings.LISTING_CACHE_TTL_S, clock=clock)

    client = gateway = listing = provisioning = None
    if settings.NOTION_API_KEY:
        client = NotionClient.from_settings(settings, transport=notion_transport)
        gateway = RecordGateway(client, VersionResolver(client))
        listing = ListingService(
            client,
            cache,
            batch_size=settings.ENRICH_BATCH_SIZE,
            max_pages=settings.LISTING_MAX_PAGES,
        )
        provisioning = ProvisioningService(
            client, gateway, catalog, default_parent_id=settings.NOTION_PARENT_PAGE_ID
        )

    engine = None
    if providers is None and settings.GEMINI_API_KEY:
        providers = provider_factory(settings)
    if providers is not None:
        retry = RetryPolicy(max_attempts=settings.LLM_MAX_ATTEMPTS)
        if sleep is not None:
            retry.sleep = sleep
        engine = SchemaSynthesisEngine(
            providers,
            settings.MODEL_FALLBACKS,
            retry=retry,
            temperature=settings.LLM_TEMP,
            max_tokens=settings.LLM_MAX_TOKENS,
        )

    log.info(
        "services.built",
        extra=safe_extra({
            "workspace": client is not None,
            "synthesis": engine is not None,
            "protocol": client.protocol if client else None,
        }),
    )
    return Services(
        settings=settings,
        catalog=catalog,
        cache=cache,
        monitor=MonitorService(settings, client, gateway, engine, catalog),
        client=client,
        gateway=gateway,
        listing=listing,
        provisioning=provisioning,
        engine=engine,
    )


# ─────────────────────────────────────────────────────────────
# Request-scoped accessors
# ─────────────────────────────────────────────────────────────
def get_services(request: Request) -> Services:
    return request.app.state.services


def get_settings_dep(services: Services = Depends(get_services)) -> Settings:
    return services.settings


def get_catalog(services: Services = Depends(get_services)) -> TemplateCatalog:
    return services.catalog


def get_monitor(services: Services = Depends(get_services)) -> MonitorService:
    return services.monitor


def get_gateway(services: Services = Depends(get_services)) -> RecordGateway:
    services.settings.require("NOTION_API_KEY")
    return services.gateway  # type: ignore[return-value]


def get_listing(services: Services = Depends(get_services)) -> ListingService:
    services.settings.require("NOTION_API_KEY", "NOTION_PARENT_PAGE_ID")
    return services.listing  # type: ignore[return-value]


def get_provisioning(services: Services = Depends(get_services)) -> ProvisioningService:
    services.settings.require("NOTION_API_KEY")
    return services.provisioning  # type: ignore[return-value]


def get_engine(services: Services = Depends(get_services)) -> SchemaSynthesisEngine:
    if services.engine is None:
        services.settings.require("GEMINI_API_KEY")
    return services.engine  # type: ignore[return-value]
