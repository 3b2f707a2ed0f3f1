"""
Lenient decoder for OTLP-shaped JSON query responses.

Turns the untyped resource -> scope -> leaf payload into typed nodes with
optional fields. Decoding never raises: a field with the wrong type or a
missing key decodes to None, and a group or list of the wrong shape decodes
to an empty list.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from .models import AttributeScalar


_INT64_PATTERN = re.compile(r'[+-]?[0-9]+')
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1
_INT64_MAX_DIGITS = 19


def parse_int64(text: Optional[str]) -> Optional[int]:
    """Parse a decimal string into a signed 64-bit integer.

    Returns None for anything that isn't a plain decimal in range.
    """
    if text is None or not _INT64_PATTERN.fullmatch(text):
        return None
    if len(text.lstrip('+-').lstrip('0')) > _INT64_MAX_DIGITS:
        return None
    value = int(text)
    if value < _INT64_MIN or value > _INT64_MAX:
        return None
    return value


def _get_str(obj: Dict[str, Any], key: str) -> Optional[str]:
    value = obj.get(key)
    return value if isinstance(value, str) else None


def _get_bool(obj: Dict[str, Any], key: str) -> Optional[bool]:
    value = obj.get(key)
    return value if isinstance(value, bool) else None


def _get_number(obj: Dict[str, Any], key: str) -> Optional[Union[int, float]]:
    value = obj.get(key)
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _get_dict(obj: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = obj.get(key)
    return value if isinstance(value, dict) else {}


def _get_dicts(obj: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    """Return the dict entries of a list field, skipping anything else."""
    value = obj.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


@dataclass(frozen=True)
class AnyValue:
    """An OTLP attribute value with each variant decoded independently.

    Attributes:
        string_value: The stringValue variant, if a string
        int_value: The intValue variant in its raw decimal string form
        bool_value: The boolValue variant, if a boolean
    """
    string_value: Optional[str] = None
    int_value: Optional[str] = None
    bool_value: Optional[bool] = None

    def resolve(self) -> Optional[AttributeScalar]:
        """Return the first present variant: string, then int, then bool.

        A present intValue that doesn't parse resolves to None rather than
        falling through to the boolean variant.
        """
        if self.string_value is not None:
            return self.string_value
        if self.int_value is not None:
            return parse_int64(self.int_value)
        if self.bool_value is not None:
            return self.bool_value
        return None


@dataclass(frozen=True)
class KeyValue:
    """One attribute entry."""
    key: Optional[str]
    value: Optional[AnyValue]


@dataclass(frozen=True)
class LogNode:
    """A decoded OTLP log record."""
    time_unix_nano: Optional[str] = None
    observed_time_unix_nano: Optional[str] = None
    severity_text: Optional[str] = None
    severity_number: Optional[Union[int, float]] = None
    body: Optional[str] = None
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    attributes: List[KeyValue] = field(default_factory=list)


@dataclass(frozen=True)
class SpanNode:
    """A decoded OTLP span."""
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    parent_span_id: Optional[str] = None
    name: Optional[str] = None
    start_time_unix_nano: Optional[str] = None
    end_time_unix_nano: Optional[str] = None
    status_code: Optional[Union[int, float]] = None
    status_message: Optional[str] = None
    attributes: List[KeyValue] = field(default_factory=list)


LeafNode = Union[LogNode, SpanNode]


@dataclass(frozen=True)
class ScopeGroup:
    """Leaf records of one instrumentation scope."""
    records: List[LeafNode] = field(default_factory=list)


@dataclass(frozen=True)
class ResourceGroup:
    """Resource attributes plus the scope groups beneath them."""
    attributes: List[KeyValue] = field(default_factory=list)
    scopes: List[ScopeGroup] = field(default_factory=list)


def decode_any_value(raw: Any) -> Optional[AnyValue]:
    """Decode an attribute value object."""
    if not isinstance(raw, dict):
        return None
    return AnyValue(
        string_value=_get_str(raw, 'stringValue'),
        int_value=_get_str(raw, 'intValue'),
        bool_value=_get_bool(raw, 'boolValue'),
    )


def decode_attributes(raw: Any) -> List[KeyValue]:
    """Decode an attribute list; non-object entries are skipped."""
    if not isinstance(raw, list):
        return []
    return [
        KeyValue(key=_get_str(item, 'key'), value=decode_any_value(item.get('value')))
        for item in raw
        if isinstance(item, dict)
    ]


def decode_log_record(raw: Dict[str, Any]) -> LogNode:
    """Decode one entry of a logRecords list."""
    return LogNode(
        time_unix_nano=_get_str(raw, 'timeUnixNano'),
        observed_time_unix_nano=_get_str(raw, 'observedTimeUnixNano'),
        severity_text=_get_str(raw, 'severityText'),
        severity_number=_get_number(raw, 'severityNumber'),
        body=_get_str(_get_dict(raw, 'body'), 'stringValue'),
        trace_id=_get_str(raw, 'traceId'),
        span_id=_get_str(raw, 'spanId'),
        attributes=decode_attributes(raw.get('attributes')),
    )


def decode_span(raw: Dict[str, Any]) -> SpanNode:
    """Decode one entry of a spans list."""
    status = _get_dict(raw, 'status')
    return SpanNode(
        trace_id=_get_str(raw, 'traceId'),
        span_id=_get_str(raw, 'spanId'),
        parent_span_id=_get_str(raw, 'parentSpanId'),
        name=_get_str(raw, 'name'),
        start_time_unix_nano=_get_str(raw, 'startTimeUnixNano'),
        end_time_unix_nano=_get_str(raw, 'endTimeUnixNano'),
        status_code=_get_number(status, 'code'),
        status_message=_get_str(status, 'message'),
        attributes=decode_attributes(raw.get('attributes')),
    )


@dataclass(frozen=True)
class PayloadLayout:
    """Key names of one OTLP signal's nesting, plus its leaf decoder.

    Attributes:
        resource_key: Top-level list key (e.g., 'resourceLogs')
        scope_key: Per-resource list key (e.g., 'scopeLogs')
        leaf_key: Per-scope list key (e.g., 'logRecords')
        decode_leaf: Decoder for a single leaf object
    """
    resource_key: str
    scope_key: str
    leaf_key: str
    decode_leaf: Callable[[Dict[str, Any]], LeafNode]


LOG_LAYOUT = PayloadLayout('resourceLogs', 'scopeLogs', 'logRecords', decode_log_record)
SPAN_LAYOUT = PayloadLayout('resourceSpans', 'scopeSpans', 'spans', decode_span)


def decode_payload(payload: Any, layout: PayloadLayout) -> List[ResourceGroup]:
    """Decode a full query response into resource groups.

    Args:
        payload: The JSON value returned by the upstream API
        layout: Nesting keys for the signal being decoded

    Returns:
        Resource groups in response order; empty if the payload has no
        usable resource list
    """
    if not isinstance(payload, dict):
        return []

    groups = []
    for raw_resource in _get_dicts(payload, layout.resource_key):
        scopes = [
            ScopeGroup(records=[
                layout.decode_leaf(raw_leaf)
                for raw_leaf in _get_dicts(raw_scope, layout.leaf_key)
            ])
            for raw_scope in _get_dicts(raw_resource, layout.scope_key)
        ]
        groups.append(ResourceGroup(
            attributes=decode_attributes(_get_dict(raw_resource, 'resource').get('attributes')),
            scopes=scopes,
        ))
    return groups
