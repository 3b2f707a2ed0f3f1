"""
Flattening of decoded OTLP resource groups into tabular records.

Every leaf record becomes one FlatLog or FlatSpan carrying its resource's
service name. These functions are pure: the same decoded input always
yields the same records in resource -> scope -> leaf order.
"""

from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterator, List, Optional, Tuple

from .models import AttributeScalar, FlatLog, FlatSpan
from .parser import KeyValue, LogNode, ResourceGroup, SpanNode, parse_int64


SERVICE_NAME_KEY = 'service.name'

SPAN_ATTRIBUTE_KEYS: FrozenSet[str] = frozenset({
    'http.request.method',
    'http.response.status_code',
    'http.route',
    'http.url',
    'http.target',
    'db.system',
    'db.statement',
    'rpc.method',
    'rpc.service',
    'messaging.system',
    'messaging.operation',
    'error.type',
    'exception.type',
    'exception.message',
})

_NANOS_PER_SECOND = 1_000_000_000
_NANOS_PER_MILLI = 1_000_000


def format_unix_nano(nanos: int) -> Optional[str]:
    """Render Unix nanoseconds as RFC3339 UTC with trailing zeros trimmed.

    Returns None when the instant can't be represented.
    """
    seconds, remainder = divmod(nanos, _NANOS_PER_SECOND)
    try:
        moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    text = moment.strftime('%Y-%m-%dT%H:%M:%S')
    if remainder:
        text += ('.%09d' % remainder).rstrip('0')
    return text + 'Z'


def extract_service_name(attributes: List[KeyValue]) -> str:
    """Return the string value of the first 'service.name' attribute.

    Scanning stops at the first entry whose key matches; if that entry has
    no string value the result is empty.
    """
    for attr in attributes:
        if attr.key == SERVICE_NAME_KEY:
            if attr.value is None or attr.value.string_value is None:
                return ''
            return attr.value.string_value
    return ''


def extract_attributes(
    attributes: List[KeyValue],
    allowed: Optional[FrozenSet[str]] = None,
) -> Dict[str, AttributeScalar]:
    """Build an attribute mapping from decoded key/value entries.

    Args:
        attributes: Decoded attribute entries
        allowed: Keys to keep; None keeps every key

    Returns:
        Mapping of key to resolved scalar value
    """
    result: Dict[str, AttributeScalar] = {}
    for attr in attributes:
        if attr.key is None or attr.value is None:
            continue
        if allowed is not None and attr.key not in allowed:
            continue
        value = attr.value.resolve()
        if value is not None:
            result[attr.key] = value
    return result


def _iter_leaves(groups: List[ResourceGroup]) -> Iterator[Tuple[str, object]]:
    for group in groups:
        service_name = extract_service_name(group.attributes)
        for scope in group.scopes:
            for record in scope.records:
                yield service_name, record


def _log_timestamp(node: LogNode) -> str:
    # observedTimeUnixNano stands in when timeUnixNano is unset or unusable
    for raw in (node.time_unix_nano, node.observed_time_unix_nano):
        nanos = parse_int64(raw)
        if nanos:
            formatted = format_unix_nano(nanos)
            if formatted is not None:
                return formatted
    return ''


def flatten_log(node: LogNode, service_name: str) -> FlatLog:
    """Flatten a single decoded log record."""
    return FlatLog(
        timestamp=_log_timestamp(node),
        service_name=service_name,
        severity_text=node.severity_text or '',
        severity_number=int(node.severity_number) if node.severity_number is not None else 0,
        body=node.body or '',
        trace_id=node.trace_id or '',
        span_id=node.span_id or '',
        attributes=extract_attributes(node.attributes),
    )


def flatten_span(node: SpanNode, service_name: str) -> FlatSpan:
    """Flatten a single decoded span, deriving its duration."""
    span = FlatSpan(
        trace_id=node.trace_id or '',
        span_id=node.span_id or '',
        parent_span_id=node.parent_span_id or '',
        name=node.name or '',
        service_name=service_name,
        status_code=int(node.status_code) if node.status_code is not None else 0,
        status_message=node.status_message or '',
        attributes=extract_attributes(node.attributes, SPAN_ATTRIBUTE_KEYS),
    )

    start_nano = parse_int64(node.start_time_unix_nano)
    end_nano = parse_int64(node.end_time_unix_nano)
    if start_nano is not None and end_nano is not None:
        start_time = format_unix_nano(start_nano)
        end_time = format_unix_nano(end_nano)
        if start_time is not None and end_time is not None:
            span.duration_ms = (end_nano - start_nano) / _NANOS_PER_MILLI
            span.start_time = start_time
            span.end_time = end_time

    return span


def flatten_logs(groups: List[ResourceGroup]) -> List[FlatLog]:
    """Flatten decoded resourceLogs into log records."""
    return [
        flatten_log(node, service_name)
        for service_name, node in _iter_leaves(groups)
        if isinstance(node, LogNode)
    ]


def flatten_spans(groups: List[ResourceGroup]) -> List[FlatSpan]:
    """Flatten decoded resourceSpans into spans."""
    return [
        flatten_span(node, service_name)
        for service_name, node in _iter_leaves(groups)
        if isinstance(node, SpanNode)
    ]
