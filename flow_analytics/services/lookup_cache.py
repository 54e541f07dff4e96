"""
Request-scoped read-through cache for upstream lookups.

One LookupCache lives for exactly one request and is passed to the
orchestrator explicitly, so concurrent requests never see each other's
partially populated entries. Entries are safe to repopulate on a miss.
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from flow_analytics.models.schemas import FlowMessage


class LookupCache:
    """Message lists per flow, account timezone and metric ids."""

    def __init__(self) -> None:
        self._messages: Dict[str, List[FlowMessage]] = {}
        self._metric_ids: Dict[str, Optional[str]] = {}
        self._timezone: Optional[str] = None
        self._lock = asyncio.Lock()

    async def flow_messages(
        self,
        flow_id: str,
        loader: Callable[[str], Awaitable[List[FlowMessage]]],
    ) -> List[FlowMessage]:
        if flow_id not in self._messages:
            self._messages[flow_id] = await loader(flow_id)
        return self._messages[flow_id]

    async def timezone(self, loader: Callable[[], Awaitable[str]]) -> str:
        async with self._lock:
            if self._timezone is None:
                self._timezone = await loader()
            return self._timezone

    async def metric_id(
        self,
        key: str,
        loader: Callable[[], Awaitable[Optional[str]]],
    ) -> Optional[str]:
        async with self._lock:
            if key not in self._metric_ids:
                self._metric_ids[key] = await loader()
            return self._metric_ids[key]


__all__ = ['LookupCache']
