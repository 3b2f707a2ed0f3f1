"""
FastAPI application for the telemetry query engine.

Provides endpoints for:
- Querying flattened log records
- Querying flattened spans
- Health checks
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .client import Dash0Client, UpstreamError
from .config import Settings, load_settings
from .engine import TelemetryQueryEngine


logger = logging.getLogger(__name__)

BAD_GATEWAY = 502


# Pydantic models for API requests. Fields are loosely typed on purpose:
# malformed values fall back to defaults inside the engine.


class LogQueryParams(BaseModel):
    """Parameters of a log query."""
    service_name: Optional[Any] = Field(None, description="Filter by service name (exact match)")
    time_range_minutes: Optional[Any] = Field(None, description="Minutes back to search (default: 60, max: 1440)")
    min_severity: Optional[Any] = Field(
        None, description="Minimum severity: TRACE, DEBUG, INFO, WARN, ERROR, FATAL (applied client-side)"
    )
    body_contains: Optional[Any] = Field(
        None, description="Case-insensitive body substring (applied client-side)"
    )
    limit: Optional[Any] = Field(None, description="Max logs to return (default: 100, max: 500)")


class SpanQueryParams(BaseModel):
    """Parameters of a span query."""
    service_name: Optional[Any] = Field(None, description="Filter by service name (exact match)")
    time_range_minutes: Optional[Any] = Field(None, description="Minutes back to search (default: 60, max: 1440)")
    http_method: Optional[Any] = Field(None, description="Filter by HTTP method")
    http_status_code: Optional[Any] = Field(None, description="Filter by HTTP response status code")
    span_name: Optional[Any] = Field(None, description="Filter by span name (exact match)")
    error_only: Optional[Any] = Field(None, description="Only return error spans (status.code = 2)")
    min_duration_ms: Optional[Any] = Field(
        None, description="Minimum duration in milliseconds (applied client-side)"
    )
    limit: Optional[Any] = Field(None, description="Max spans to return (default: 100, max: 200)")


class QueryEcho(BaseModel):
    """The effective query, as sent upstream."""
    time_range: Dict[str, str]
    filters: list
    limit: int


class QueryResponse(BaseModel):
    """Response from the query endpoints."""
    records: list
    count: int
    query: QueryEcho


def create_app(
    engine: Optional[TelemetryQueryEngine] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        engine: Optional TelemetryQueryEngine instance (for testing)
        settings: Optional settings used to build a client when no engine
            is given; loaded from the environment otherwise

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Telemetry Query API",
        description="Flattened OTLP log and span queries against Dash0",
        version="1.0.0"
    )

    if engine is None:
        settings = settings or load_settings()
        settings.validate_settings()
        engine = TelemetryQueryEngine(Dash0Client.from_settings(settings))

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
        """Surface upstream failures with their original status code.

        Statuses below 400 are answered as 502, with the upstream code kept
        in the body.
        """
        logger.info("Query failed upstream with %s: %s", exc.status_code, exc.detail)
        status_code = exc.status_code if exc.status_code >= 400 else BAD_GATEWAY
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    # API Routes

    @app.post("/api/logs/query", response_model=QueryResponse)
    def query_logs(params: LogQueryParams) -> Dict[str, Any]:
        """Query flattened log records.

        Args:
            params: Log query parameters

        Returns:
            Envelope with records, count and the effective query
        """
        return engine.query_logs(params.model_dump(exclude_none=True)).to_dict()

    @app.post("/api/spans/query", response_model=QueryResponse)
    def query_spans(params: SpanQueryParams) -> Dict[str, Any]:
        """Query flattened spans.

        Args:
            params: Span query parameters

        Returns:
            Envelope with records, count and the effective query
        """
        return engine.query_spans(params.model_dump(exclude_none=True)).to_dict()

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        """Health check endpoint.

        Returns:
            Health status
        """
        return {"status": "healthy"}

    return app
