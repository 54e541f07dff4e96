"""
Paginated, rate-limited client for the upstream flow reporting API.

Every call goes through request_json(), which owns the retry policy:

- HTTP 429: wait and retry. The base wait is a numeric, positive
  `Retry-After` header when present, otherwise base * 2^attempt; jitter
  (0..jitter_ms) is added and the total is capped at max_delay.
  After `rate_limit_max_attempts` attempts the call fails with RateLimited.
- Any other non-2xx response, or a transport error: UpstreamUnavailable,
  immediately, without retrying.

fetch_all() layers cursor pagination on top: it yields one page payload at a
time and follows `links.next` until exhausted or until a page cap is hit.
Pages of one resource are fetched sequentially; callers wanting parallelism
across independent resources gate it themselves (see services.aggregation).

Higher-level lookups (flows, flow messages, account timezone, conversion
metric id, flow values report) are built from those two primitives.
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import httpx

from flow_analytics.core.config import Settings, get_settings
from flow_analytics.core.exceptions import (
    InvalidRequest,
    RateLimited,
    UpstreamUnavailable,
)
from flow_analytics.models.enums import Channel, FlowStatus
from flow_analytics.models.schemas import Flow, FlowMessage, ReportRow

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

FLOW_REPORT_STATISTICS: List[str] = [
    'recipients',
    'delivered',
    'opens_unique',
    'open_rate',
    'clicks_unique',
    'click_rate',
    'conversion_uniques',
    'conversion_rate',
    'unsubscribe_rate',
    'spam_complaint_rate',
    'bounce_rate',
]

# Statistics that require a conversion metric and carry money
FLOW_REPORT_VALUE_STATISTICS: List[str] = ['conversion_value']

# Statistics that need a conversion metric id to be accepted upstream
CONVERSION_STATISTICS: List[str] = ['conversion_uniques', 'conversion_rate', 'conversion_value']

FLOW_REPORT_GROUP_BY: List[str] = [
    'flow_id',
    'flow_message_id',
    'flow_action_id',
    'send_channel',
]

SEND_ACTION_TYPES = frozenset({
    'SEND_EMAIL',
    'SEND_SMS',
    'SEND_PUSH_NOTIFICATION',
    'SEND_NOTIFICATION_MESSAGE',
})

METRIC_LOOKUP_MAX_PAGES = 10


# =============================================================================
# Pure helpers
# =============================================================================

def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a Retry-After header given in seconds.

    Returns None for missing, non-numeric or non-positive values so the
    caller falls back to exponential backoff.
    """
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if seconds != seconds or seconds <= 0:
        return None
    return seconds


def compute_backoff_delay(
    attempt: int,
    settings: Settings,
    retry_after: Optional[float] = None,
    rand: Callable[[], float] = random.random,
) -> float:
    """
    Compute the wait (seconds) before retry number `attempt` (0-based).

    Args:
        attempt: Zero-based attempt index that just received a 429.
        settings: Source of base delay, jitter and ceiling.
        retry_after: Parsed Retry-After hint in seconds, if any.
        rand: Random source in [0, 1) for the jitter.

    Returns:
        float: Delay in seconds.
    """
    jitter_ms = rand() * settings.rate_limit_jitter_ms
    if retry_after is not None:
        delay_ms = retry_after * 1000.0 + jitter_ms
    else:
        delay_ms = settings.rate_limit_base_delay_ms * (2 ** attempt) + jitter_ms
    return min(delay_ms, settings.rate_limit_max_delay_ms) / 1000.0


def channel_from_action_type(action_type: str) -> Channel:
    upper = (action_type or '').upper()
    if 'SMS' in upper:
        return Channel.SMS
    if 'PUSH' in upper:
        return Channel.PUSH
    return Channel.EMAIL


def normalize_channel(value: Any, fallback: Channel) -> Channel:
    text = str(value or '').strip().lower()
    for channel in Channel:
        if channel.value == text:
            return channel
    return fallback


def action_display_name(action: Dict[str, Any]) -> Optional[str]:
    """Best-effort name for a send action that has no message records."""
    attrs = action.get('attributes') or {}
    settings = attrs.get('settings') or {}
    render_options = attrs.get('render_options') or {}
    for candidate in (
        attrs.get('name'),
        settings.get('name'),
        settings.get('subject'),
        settings.get('label'),
        render_options.get('component_name'),
    ):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def flow_from_resource(item: Dict[str, Any]) -> Flow:
    attrs = item.get('attributes') or {}
    raw_status = str(attrs.get('status') or '').lower()
    if attrs.get('archived'):
        status = FlowStatus.ARCHIVED
    elif raw_status == FlowStatus.LIVE.value:
        status = FlowStatus.LIVE
    else:
        status = FlowStatus.DRAFT
    return Flow(
        id=str(item.get('id')),
        name=attrs.get('name') or '',
        status=status,
        triggerType=attrs.get('trigger_type'),
    )


def parse_report_rows(payload: Dict[str, Any]) -> List[ReportRow]:
    """
    Extract report rows from a flow values report payload.

    Accepts both the report shape (`data.attributes.results[]` with
    `groupings` and `statistics`) and a plain paged list (`data: [...]`).
    Null statistics are treated as absent (zero).
    """
    data = payload.get('data')
    if isinstance(data, dict):
        results = (data.get('attributes') or {}).get('results') or []
    elif isinstance(data, list):
        results = data
    else:
        results = []

    rows: List[ReportRow] = []
    for result in results:
        if not isinstance(result, dict):
            continue
        if 'groupings' in result or 'statistics' in result:
            merged = {**(result.get('statistics') or {}), **(result.get('groupings') or {})}
        else:
            merged = dict(result.get('attributes') or result)
        cleaned = {key: value for key, value in merged.items() if value is not None}
        for id_field in ('flow_id', 'flow_message_id', 'flow_action_id'):
            if id_field in cleaned:
                cleaned[id_field] = str(cleaned[id_field])
        rows.append(ReportRow.model_validate(cleaned))
    return rows


# =============================================================================
# Client
# =============================================================================

class KlaviyoClient:
    """
    Async client for the upstream reporting API.

    Use as an async context manager; an injected httpx.AsyncClient is left
    open for its owner to close.

    Example:
        async with KlaviyoClient(api_key) as client:
            flows = await client.list_flows()
    """

    def __init__(
        self,
        api_key: Optional[str],
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        if not api_key:
            raise InvalidRequest(
                'Missing upstream API key',
                hint='Set KLAVIYO_API_KEY in the environment.',
            )
        self.settings = settings or get_settings()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self.settings.klaviyo_base_url,
            timeout=self.settings.request_timeout_seconds,
        )
        self._sleep = sleep
        self._rand = rand
        self._headers = {
            'Authorization': f'Klaviyo-API-Key {api_key}',
            'Accept': 'application/vnd.api+json',
            'Content-Type': 'application/json',
            'revision': self.settings.klaviyo_api_revision,
        }

    @property
    def revision(self) -> str:
        return self.settings.klaviyo_api_revision

    async def __aenter__(self) -> 'KlaviyoClient':
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    async def request_json(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        revision: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Perform one logical call, retrying only on HTTP 429.

        Args:
            method: HTTP method.
            url: Path relative to the base URL, or an absolute `next` link.
            params: Query parameters.
            json: JSON body.
            revision: Overrides the configured `revision` header for this call.

        Returns:
            Dict[str, Any]: Decoded JSON payload ({} for an empty body).

        Raises:
            RateLimited: Every attempt was answered with 429.
            UpstreamUnavailable: Non-2xx other than 429, transport error or
                undecodable body.
        """
        headers = self._headers if not revision else {**self._headers, 'revision': revision}
        max_attempts = max(1, self.settings.rate_limit_max_attempts)
        for attempt in range(max_attempts):
            try:
                response = await self._http.request(
                    method, url, params=params, json=json, headers=headers
                )
            except httpx.HTTPError as exc:
                raise UpstreamUnavailable(f'{method} {url} failed: {exc}') from exc

            if response.status_code == 429:
                if attempt == max_attempts - 1:
                    break
                delay = compute_backoff_delay(
                    attempt,
                    self.settings,
                    retry_after=parse_retry_after(response.headers.get('Retry-After')),
                    rand=self._rand,
                )
                logger.warning(
                    f"429 from {method} {url}; retry {attempt + 1}/{max_attempts - 1} in {delay:.2f}s"
                )
                await self._sleep(delay)
                continue

            if not response.is_success:
                raise UpstreamUnavailable(
                    f'{method} {url} returned {response.status_code}: {response.text[:300]}',
                    upstream_status=response.status_code,
                )

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise UpstreamUnavailable(f'{method} {url} returned invalid JSON') from exc

        raise RateLimited(
            f'{method} {url} still rate limited after {max_attempts} attempts',
            attempts=max_attempts,
        )

    async def fetch_all(
        self,
        initial_url: str,
        params: Optional[Dict[str, Any]] = None,
        max_pages: Optional[int] = None,
        revision: Optional[str] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield page payloads, following `links.next` lazily.

        Args:
            initial_url: First page URL (relative or absolute).
            params: Query parameters for the first page only; `next` links
                already carry their own.
            max_pages: Optional page cap.
            revision: Optional `revision` header override.

        Yields:
            Dict[str, Any]: One decoded page payload.
        """
        url: Optional[str] = initial_url
        page_params = params
        pages = 0
        while url:
            payload = await self.request_json('GET', url, params=page_params, revision=revision)
            yield payload
            pages += 1
            if max_pages is not None and pages >= max_pages:
                break
            url = (payload.get('links') or {}).get('next')
            page_params = None

    async def _collect(
        self,
        initial_url: str,
        params: Optional[Dict[str, Any]] = None,
        max_pages: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        async for page in self.fetch_all(initial_url, params=params, max_pages=max_pages):
            items.extend(page.get('data') or [])
        return items

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def list_flows(self, max_pages: Optional[int] = None) -> List[Flow]:
        items = await self._collect(
            'flows/',
            params={'fields[flow]': 'name,status,archived,trigger_type,created,updated'},
            max_pages=max_pages,
        )
        return [flow_from_resource(item) for item in items]

    async def list_flow_messages(self, flow_id: str) -> List[FlowMessage]:
        """
        List the send steps of one flow in action order.

        Non-send actions (time delays, splits) are skipped. A send action
        without message records yields one stub message keyed by the action
        id so that its report rows still resolve to a named step.
        """
        actions = await self._collect(f'flows/{flow_id}/flow-actions/')
        messages: List[FlowMessage] = []
        position = 0
        for action in actions:
            attrs = action.get('attributes') or {}
            action_type = str(attrs.get('action_type') or '').upper()
            if action_type not in SEND_ACTION_TYPES:
                continue
            action_id = str(action.get('id'))
            fallback_channel = channel_from_action_type(action_type)
            action_messages = await self._collect(
                f'flow-actions/{action_id}/flow-messages/',
                params={'fields[flow-message]': 'name,channel,created,updated'},
            )
            if not action_messages:
                position += 1
                messages.append(FlowMessage(
                    id=action_id,
                    flowId=flow_id,
                    sequencePosition=position,
                    name=action_display_name(action) or action_id,
                    channel=fallback_channel,
                    actionId=action_id,
                ))
                continue
            for item in action_messages:
                message_attrs = item.get('attributes') or {}
                position += 1
                messages.append(FlowMessage(
                    id=str(item.get('id')),
                    flowId=flow_id,
                    sequencePosition=position,
                    name=message_attrs.get('name') or str(item.get('id')),
                    channel=normalize_channel(message_attrs.get('channel'), fallback_channel),
                    actionId=action_id,
                ))
        logger.debug(f"Flow {flow_id}: {len(messages)} send steps from {len(actions)} actions")
        return messages

    async def get_account_timezone(self) -> str:
        payload = await self.request_json('GET', 'accounts/')
        data = payload.get('data') or []
        if data:
            timezone = (data[0].get('attributes') or {}).get('timezone')
            if timezone:
                return str(timezone)
        return 'UTC'

    async def find_metric_id(self, name: str, integration: Optional[str] = None) -> Optional[str]:
        """
        Resolve a metric name to its id, preferring the given integration.

        Returns None when no metric carries that name.
        """
        candidates: List[Dict[str, Any]] = []
        async for page in self.fetch_all(
            'metrics/',
            params={'fields[metric]': 'name,integration'},
            max_pages=METRIC_LOOKUP_MAX_PAGES,
        ):
            for item in page.get('data') or []:
                if (item.get('attributes') or {}).get('name') == name:
                    candidates.append(item)

        if integration:
            wanted = integration.lower()
            for item in candidates:
                source = (item.get('attributes') or {}).get('integration') or {}
                if str(source.get('name') or '').lower() == wanted:
                    return str(item.get('id'))
        return str(candidates[0].get('id')) if candidates else None

    async def fetch_flow_report(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
        conversion_metric_id: Optional[str],
        max_pages: Optional[int] = None,
        timeframe_key: Optional[str] = None,
        statistics: Optional[List[str]] = None,
        value_statistics: Optional[List[str]] = None,
        revision: Optional[str] = None,
    ) -> List[ReportRow]:
        """
        Request flow statistics for one timeframe grouped by flow/message/action.

        Args:
            start: Inclusive timeframe start (timezone-aware).
            end: Exclusive timeframe end (timezone-aware).
            conversion_metric_id: Metric used for conversions and revenue. When
                None, conversion statistics are omitted and revenue reads as zero.
            max_pages: Optional cap on follow-up pages.
            timeframe_key: Named upstream timeframe (e.g. last_30_days); when
                set, start/end are not sent.
            statistics: Replaces FLOW_REPORT_STATISTICS when non-empty.
            value_statistics: Replaces FLOW_REPORT_VALUE_STATISTICS; an empty
                list requests no value statistics.
            revision: Per-call `revision` header override.

        Returns:
            List[ReportRow]: All rows across pages.
        """
        requested = list(statistics) if statistics else list(FLOW_REPORT_STATISTICS)
        values = list(FLOW_REPORT_VALUE_STATISTICS) if value_statistics is None else list(value_statistics)

        if timeframe_key:
            timeframe: Dict[str, Any] = {'key': timeframe_key}
        else:
            timeframe = {'start': start.isoformat(), 'end': end.isoformat()}
        attributes: Dict[str, Any] = {
            'statistics': requested,
            'timeframe': timeframe,
            'group_by': list(FLOW_REPORT_GROUP_BY),
        }
        if conversion_metric_id:
            requested.extend(stat for stat in values if stat not in requested)
            attributes['conversion_metric_id'] = conversion_metric_id
        else:
            attributes['statistics'] = [stat for stat in requested if stat not in CONVERSION_STATISTICS]

        body = {'data': {'type': 'flow-values-report', 'attributes': attributes}}
        payload = await self.request_json('POST', 'flow-values-reports/', json=body, revision=revision)
        rows = parse_report_rows(payload)

        next_url = (payload.get('links') or {}).get('next')
        if next_url and (max_pages is None or max_pages > 1):
            remaining = None if max_pages is None else max_pages - 1
            async for page in self.fetch_all(next_url, max_pages=remaining, revision=revision):
                rows.extend(parse_report_rows(page))
        return rows


__all__ = [
    'KlaviyoClient',
    'FLOW_REPORT_STATISTICS',
    'FLOW_REPORT_VALUE_STATISTICS',
    'CONVERSION_STATISTICS',
    'FLOW_REPORT_GROUP_BY',
    'SEND_ACTION_TYPES',
    'parse_retry_after',
    'compute_backoff_delay',
    'channel_from_action_type',
    'normalize_channel',
    'action_display_name',
    'flow_from_resource',
    'parse_report_rows',
]
