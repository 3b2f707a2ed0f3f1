"""
Data models for the telemetry query engine.

Defines dataclasses for time windows, upstream attribute filters, query
requests, deferred client-side filters, flattened log/span records, and the
response envelope returned to callers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Any, Dict, List, Optional, Union


AttributeScalar = Union[str, int, bool]

RFC3339_FORMAT = '%Y-%m-%dT%H:%M:%SZ'

OPERATOR_EQUALS = 'equals'


class SeverityRank(IntEnum):
    """OTLP severity numbers for the six named levels.

    Only used for ordering comparisons.
    """
    TRACE = 1
    DEBUG = 5
    INFO = 9
    WARN = 13
    ERROR = 17
    FATAL = 21

    @classmethod
    def lookup(cls, name: Any) -> Optional['SeverityRank']:
        """Return the rank for a level name, or None if it isn't one."""
        if not isinstance(name, str):
            return None
        return cls.__members__.get(name.strip().upper())


@dataclass(frozen=True)
class TimeWindow:
    """Represents the absolute query interval.

    Attributes:
        start: Beginning of the window (inclusive)
        end: End of the window (exclusive)
    """
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        """Length of the window."""
        return self.end - self.start

    def to_dict(self) -> Dict[str, str]:
        """Convert to the wire shape with RFC3339 instants."""
        return {
            'from': self.start.strftime(RFC3339_FORMAT),
            'to': self.end.strftime(RFC3339_FORMAT),
        }


@dataclass(frozen=True)
class AttributeFilter:
    """A single upstream-pushable equality predicate.

    Exactly one of the value variants is set. Integers travel as decimal
    strings, matching the OTLP JSON encoding of 64-bit values.

    Attributes:
        key: Upstream attribute key (e.g., 'service.name')
        operator: Comparison operator, always 'equals'
        string_value: String variant of the value
        int_value: Integer variant of the value
        bool_value: Boolean variant of the value
    """
    key: str
    operator: str = OPERATOR_EQUALS
    string_value: Optional[str] = None
    int_value: Optional[int] = None
    bool_value: Optional[bool] = None

    @classmethod
    def equals_string(cls, key: str, value: str) -> 'AttributeFilter':
        return cls(key=key, string_value=value)

    @classmethod
    def equals_int(cls, key: str, value: int) -> 'AttributeFilter':
        return cls(key=key, int_value=value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the upstream filter shape."""
        value: Dict[str, Any] = {}
        if self.string_value is not None:
            value['stringValue'] = self.string_value
        elif self.int_value is not None:
            value['intValue'] = str(self.int_value)
        elif self.bool_value is not None:
            value['boolValue'] = self.bool_value
        return {
            'key': self.key,
            'operator': self.operator,
            'value': value,
        }


@dataclass
class QueryRequest:
    """Represents one request sent to the upstream query API.

    Attributes:
        window: Time window to search
        filters: Push-down filters, in canonical parameter order
        page_size_hint: Number of records asked from upstream
    """
    window: TimeWindow
    filters: List[AttributeFilter]
    page_size_hint: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the upstream request body."""
        body: Dict[str, Any] = {'timeRange': self.window.to_dict()}
        if self.filters:
            body['filter'] = [f.to_dict() for f in self.filters]
        body['pagination'] = {'limit': self.page_size_hint}
        return body


@dataclass(frozen=True)
class MinSeverityFilter:
    """Keeps log records at or above a severity rank."""
    rank: SeverityRank

    def matches(self, record: 'FlatLog') -> bool:
        return record.severity_number >= self.rank


@dataclass(frozen=True)
class BodyContainsFilter:
    """Keeps log records whose body contains a substring, ignoring case."""
    needle: str

    def matches(self, record: 'FlatLog') -> bool:
        return self.needle.lower() in record.body.lower()


@dataclass(frozen=True)
class MinDurationFilter:
    """Keeps spans lasting at least the threshold in milliseconds."""
    threshold_ms: float

    def matches(self, record: 'FlatSpan') -> bool:
        return record.duration_ms >= self.threshold_ms


PostFilter = Union[MinSeverityFilter, BodyContainsFilter, MinDurationFilter]


@dataclass
class TranslatedFilters:
    """Output of filter translation.

    Attributes:
        pushed: Filters sent upstream
        deferred: Filters the upstream can't express, applied after flattening
    """
    pushed: List[AttributeFilter] = field(default_factory=list)
    deferred: List[PostFilter] = field(default_factory=list)


@dataclass
class FlatLog:
    """A log record flattened out of the OTLP hierarchy."""
    timestamp: str = ''
    service_name: str = ''
    severity_text: str = ''
    severity_number: int = 0
    body: str = ''
    trace_id: str = ''
    span_id: str = ''
    attributes: Dict[str, AttributeScalar] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dict, dropping empty optional fields."""
        data: Dict[str, Any] = {
            'timestamp': self.timestamp,
            'service_name': self.service_name,
            'severity_text': self.severity_text,
            'severity_number': self.severity_number,
            'body': self.body,
        }
        if self.trace_id:
            data['trace_id'] = self.trace_id
        if self.span_id:
            data['span_id'] = self.span_id
        if self.attributes:
            data['attributes'] = dict(self.attributes)
        return data


@dataclass
class FlatSpan:
    """A span flattened out of the OTLP hierarchy with derived duration."""
    trace_id: str = ''
    span_id: str = ''
    parent_span_id: str = ''
    name: str = ''
    service_name: str = ''
    duration_ms: float = 0.0
    start_time: str = ''
    end_time: str = ''
    status_code: int = 0
    status_message: str = ''
    attributes: Dict[str, AttributeScalar] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dict, dropping empty optional fields."""
        data: Dict[str, Any] = {
            'trace_id': self.trace_id,
            'span_id': self.span_id,
        }
        if self.parent_span_id:
            data['parent_span_id'] = self.parent_span_id
        data.update({
            'name': self.name,
            'service_name': self.service_name,
            'duration_ms': self.duration_ms,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'status_code': self.status_code,
        })
        if self.status_message:
            data['status_message'] = self.status_message
        if self.attributes:
            data['attributes'] = dict(self.attributes)
        return data


FlatRecord = Union[FlatLog, FlatSpan]


@dataclass
class QueryEnvelope:
    """Result of a telemetry query.

    Attributes:
        records: Flattened, post-filtered and truncated records
        window: Effective time window
        filters: Filters actually sent upstream
        limit: Effective final limit
    """
    records: List[FlatRecord]
    window: TimeWindow
    filters: List[AttributeFilter]
    limit: int

    @property
    def count(self) -> int:
        return len(self.records)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the caller-facing envelope."""
        return {
            'records': [r.to_dict() for r in self.records],
            'count': self.count,
            'query': {
                'time_range': self.window.to_dict(),
                'filters': [f.to_dict() for f in self.filters],
                'limit': self.limit,
            },
        }
