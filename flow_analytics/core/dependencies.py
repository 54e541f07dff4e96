"""
FastAPI dependency injection for the Flow Analytics backend.

Provides per-request instances of everything a route needs, so endpoints
stay free of construction logic and tests can swap any of them through
`app.dependency_overrides`.

Dependencies Provided:
- get_settings_dependency / SettingsDep: cached Settings singleton
- get_lookup_cache / LookupCacheDep: fresh request-scoped LookupCache
- get_report_client / ReportClientDep: upstream client, closed after the request

Usage:
    @router.post("/sync")
    async def sync_flows(
        client: ReportClientDep,
        cache: LookupCacheDep,
        settings: SettingsDep,
    ) -> FlowSyncResponse:
        ...

Note:
    This module imports the service layer, so it is not re-exported from
    flow_analytics.core (that would make core and services import each other).
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends

from flow_analytics.core.config import Settings, get_settings
from flow_analytics.services.klaviyo_client import KlaviyoClient
from flow_analytics.services.lookup_cache import LookupCache


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# Request-scoped Cache
# =============================================================================

def get_lookup_cache() -> LookupCache:
    """
    A new cache for every request.

    Message lists, timezone and metric ids are shared between the lookups
    of one request only.
    """
    return LookupCache()


LookupCacheDep = Annotated[LookupCache, Depends(get_lookup_cache)]


# =============================================================================
# Upstream Client
# =============================================================================

async def get_report_client(settings: SettingsDep) -> AsyncGenerator[KlaviyoClient, None]:
    """
    Yield an upstream client for the duration of the request.

    Raises:
        InvalidRequest: KLAVIYO_API_KEY is not configured.
    """
    async with KlaviyoClient(settings.klaviyo_api_key, settings=settings) as client:
        yield client


ReportClientDep = Annotated[KlaviyoClient, Depends(get_report_client)]


__all__ = [
    'get_settings_dependency',
    'SettingsDep',
    'get_lookup_cache',
    'LookupCacheDep',
    'get_report_client',
    'ReportClientDep',
]
