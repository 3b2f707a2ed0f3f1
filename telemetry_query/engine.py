"""
Telemetry query execution engine.

Turns caller parameters into a time-windowed, attribute-filtered OTLP query,
sends it through the injected client, flattens the nested response, applies
the filters the upstream can't express, and wraps the result in an envelope
that echoes the effective query.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Mapping, Optional, Protocol

from .flatten import flatten_logs, flatten_spans
from .models import (
    AttributeFilter,
    BodyContainsFilter,
    FlatRecord,
    MinDurationFilter,
    MinSeverityFilter,
    PostFilter,
    QueryEnvelope,
    QueryRequest,
    SeverityRank,
    TimeWindow,
    TranslatedFilters,
)
from .parser import LOG_LAYOUT, SPAN_LAYOUT, PayloadLayout, ResourceGroup, decode_payload


logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_MINUTES = 60.0
MAX_LOOKBACK_MINUTES = 1440.0
DEFAULT_LIMIT = 100

# OTLP STATUS_CODE_ERROR
ERROR_STATUS_CODE = 2


class QueryTransport(Protocol):
    """The one capability the engine needs from an HTTP client."""

    def post(self, path: str, body: Any) -> Any:
        ...


@dataclass(frozen=True)
class RecordKind:
    """Everything that differs between the log and span query paths.

    Attributes:
        name: Kind label used in logs
        path: Upstream query endpoint
        layout: OTLP nesting of the response
        max_limit: Largest final limit a caller may ask for
        page_size_multiplier: Factor applied to the final limit when asking
            upstream for records
        translate: Builds push-down and deferred filters from parameters
        flatten: Turns decoded resource groups into flat records
    """
    name: str
    path: str
    layout: PayloadLayout
    max_limit: int
    page_size_multiplier: int
    translate: Callable[[Mapping[str, Any]], TranslatedFilters]
    flatten: Callable[[List[ResourceGroup]], List[Any]]


def _as_number(value: Any) -> Optional[float]:
    """Coerce a caller value to a finite number, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_text(value: Any) -> Optional[str]:
    """Return a non-empty string parameter, or None."""
    if isinstance(value, str) and value:
        return value
    return None


def resolve_time_window(
    lookback_minutes: Any = None,
    now: Optional[datetime] = None,
) -> TimeWindow:
    """Build the query window ending now.

    Missing, invalid or non-positive lookbacks fall back to 60 minutes;
    anything beyond 24 hours is clamped to 24 hours.

    Args:
        lookback_minutes: Caller-supplied lookback in minutes
        now: Reference instant (defaults to the current UTC time)

    Returns:
        TimeWindow from now - lookback to now
    """
    minutes = _as_number(lookback_minutes)
    if minutes is None or minutes <= 0:
        minutes = DEFAULT_LOOKBACK_MINUTES
    elif minutes > MAX_LOOKBACK_MINUTES:
        minutes = MAX_LOOKBACK_MINUTES

    end = now if now is not None else datetime.now(timezone.utc)
    return TimeWindow(start=end - timedelta(minutes=minutes), end=end)


def resolve_limit(limit: Any, max_limit: int) -> int:
    """Return the final record limit, defaulting to 100 and clamped to max_limit."""
    number = _as_number(limit)
    if number is None or number < 1:
        return DEFAULT_LIMIT
    return min(int(number), max_limit)


def translate_log_params(params: Mapping[str, Any]) -> TranslatedFilters:
    """Translate log query parameters.

    Only service_name can be pushed upstream; min_severity and
    body_contains are deferred to the post-filter stage.
    """
    translated = TranslatedFilters()

    service_name = _as_text(params.get('service_name'))
    if service_name:
        translated.pushed.append(AttributeFilter.equals_string('service.name', service_name))

    rank = SeverityRank.lookup(params.get('min_severity'))
    if rank is not None:
        translated.deferred.append(MinSeverityFilter(rank))

    body_contains = _as_text(params.get('body_contains'))
    if body_contains:
        translated.deferred.append(BodyContainsFilter(body_contains))

    return translated


def translate_span_params(params: Mapping[str, Any]) -> TranslatedFilters:
    """Translate span query parameters.

    Filters are emitted in the order service name, HTTP method, HTTP status
    code, span name, errors only. min_duration_ms is deferred.
    """
    translated = TranslatedFilters()

    service_name = _as_text(params.get('service_name'))
    if service_name:
        translated.pushed.append(AttributeFilter.equals_string('service.name', service_name))

    http_method = _as_text(params.get('http_method'))
    if http_method:
        translated.pushed.append(AttributeFilter.equals_string('http.request.method', http_method))

    status_code = _as_number(params.get('http_status_code'))
    code = int(status_code) if status_code is not None else 0
    if code:
        translated.pushed.append(AttributeFilter.equals_int('http.response.status_code', code))

    span_name = _as_text(params.get('span_name'))
    if span_name:
        translated.pushed.append(AttributeFilter.equals_string('name', span_name))

    if params.get('error_only') is True:
        translated.pushed.append(AttributeFilter.equals_int('status.code', ERROR_STATUS_CODE))

    min_duration = _as_number(params.get('min_duration_ms'))
    if min_duration is not None and min_duration > 0:
        translated.deferred.append(MinDurationFilter(min_duration))

    return translated


LOG_KIND = RecordKind(
    name='logs',
    path='/api/logs',
    layout=LOG_LAYOUT,
    max_limit=500,
    page_size_multiplier=2,
    translate=translate_log_params,
    flatten=flatten_logs,
)

SPAN_KIND = RecordKind(
    name='spans',
    path='/api/spans',
    layout=SPAN_LAYOUT,
    max_limit=200,
    # TODO: min_duration_ms is applied client-side here too; decide whether
    # span queries should over-fetch like log queries do.
    page_size_multiplier=1,
    translate=translate_span_params,
    flatten=flatten_spans,
)


def apply_post_filters(
    records: List[FlatRecord],
    filters: List[PostFilter],
    limit: int,
) -> List[FlatRecord]:
    """Apply deferred filters in order, then keep the first `limit` records.

    Every stage is a stable selection; record order is never changed.
    """
    for post_filter in filters:
        records = [r for r in records if post_filter.matches(r)]
    return records[:limit]


class TelemetryQueryEngine:
    """Executes log and span queries against the upstream API."""

    def __init__(self, client: QueryTransport):
        """Initialize the engine.

        Args:
            client: Transport used for the single upstream round trip
        """
        self.client = client

    def query_logs(self, params: Optional[Mapping[str, Any]] = None) -> QueryEnvelope:
        """Query log records.

        Args:
            params: service_name, time_range_minutes, min_severity,
                body_contains, limit (all optional)

        Returns:
            QueryEnvelope of FlatLog records

        Raises:
            UpstreamError: If the upstream call fails
        """
        return self.execute(LOG_KIND, params or {})

    def query_spans(self, params: Optional[Mapping[str, Any]] = None) -> QueryEnvelope:
        """Query spans.

        Args:
            params: service_name, time_range_minutes, http_method,
                http_status_code, span_name, error_only, min_duration_ms,
                limit (all optional)

        Returns:
            QueryEnvelope of FlatSpan records

        Raises:
            UpstreamError: If the upstream call fails
        """
        return self.execute(SPAN_KIND, params or {})

    def execute(
        self,
        kind: RecordKind,
        params: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> QueryEnvelope:
        """Run one query of the given kind.

        Args:
            kind: Log or span query description
            params: Caller parameters
            now: Optional reference instant for the time window

        Returns:
            QueryEnvelope with records and the effective query
        """
        window = resolve_time_window(params.get('time_range_minutes'), now)
        translated = kind.translate(params)
        limit = resolve_limit(params.get('limit'), kind.max_limit)

        request = QueryRequest(
            window=window,
            filters=translated.pushed,
            page_size_hint=limit * kind.page_size_multiplier,
        )
        logger.info(
            "Querying %s from %s to %s with %d upstream filter(s)",
            kind.name, window.start.isoformat(), window.end.isoformat(), len(request.filters),
        )

        payload = self.client.post(kind.path, request.to_dict())

        records = kind.flatten(decode_payload(payload, kind.layout))
        fetched = len(records)
        records = apply_post_filters(records, translated.deferred, limit)
        logger.debug(
            "Fetched %d %s, kept %d after %d client-side filter(s)",
            fetched, kind.name, len(records), len(translated.deferred),
        )

        return QueryEnvelope(
            records=records,
            window=window,
            filters=translated.pushed,
            limit=limit,
        )
