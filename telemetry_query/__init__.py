"""
Telemetry Query Package.

Queries OTLP logs and spans from Dash0, flattens the nested response into
tabular records, and applies the filters the upstream can't express.
"""

from .client import Dash0Client, UpstreamError, extract_error_detail
from .config import ConfigError, Settings, load_settings
from .engine import (
    LOG_KIND,
    SPAN_KIND,
    TelemetryQueryEngine,
    apply_post_filters,
    resolve_limit,
    resolve_time_window,
    translate_log_params,
    translate_span_params,
)
from .flatten import flatten_logs, flatten_spans
from .models import (
    AttributeFilter,
    FlatLog,
    FlatSpan,
    QueryEnvelope,
    QueryRequest,
    SeverityRank,
    TimeWindow,
)
from .parser import LOG_LAYOUT, SPAN_LAYOUT, decode_payload

__all__ = [
    'AttributeFilter',
    'ConfigError',
    'Dash0Client',
    'FlatLog',
    'FlatSpan',
    'LOG_KIND',
    'LOG_LAYOUT',
    'QueryEnvelope',
    'QueryRequest',
    'SPAN_KIND',
    'SPAN_LAYOUT',
    'SeverityRank',
    'Settings',
    'TelemetryQueryEngine',
    'TimeWindow',
    'UpstreamError',
    'apply_post_filters',
    'decode_payload',
    'extract_error_detail',
    'flatten_logs',
    'flatten_spans',
    'load_settings',
    'resolve_limit',
    'resolve_time_window',
    'translate_log_params',
    'translate_span_params',
]
