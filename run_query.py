#!/usr/bin/env python3
"""
CLI entry point for querying logs and spans from Dash0.

Runs a single log or span query with the given filters and prints the
flattened envelope as JSON.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from telemetry_query import (
    Dash0Client,
    TelemetryQueryEngine,
    UpstreamError,
    load_settings,
)


def setup_logging(verbose: bool) -> None:
    """Configure stderr logging so stdout stays pure JSON."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def build_params(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect the query parameters that were given on the command line.

    Args:
        args: Parsed arguments

    Returns:
        Parameter mapping for the engine, without unset options
    """
    names = [
        'service_name', 'time_range_minutes', 'limit',
        'min_severity', 'body_contains',
        'http_method', 'http_status_code', 'span_name', 'error_only', 'min_duration_ms',
    ]
    params = {}
    for name in names:
        value = getattr(args, name, None)
        if value is not None and value is not False:
            params[name] = value
    return params


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with logs and spans subcommands."""
    parser = argparse.ArgumentParser(
        description="Telemetry Query - Query flattened logs and spans from Dash0"
    )

    parser.add_argument(
        "-c", "--config",
        help="Path to YAML settings file (environment variables take precedence)",
    )

    parser.add_argument(
        "-o", "--output",
        help="Output file path for the result",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="kind", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--service-name", dest="service_name", help="Filter by service name")
    common.add_argument(
        "--minutes", dest="time_range_minutes", type=float,
        help="Minutes back to search (default: 60, max: 1440)",
    )
    common.add_argument("--limit", type=int, help="Max records to return")

    logs = subparsers.add_parser("logs", parents=[common], help="Query log records")
    logs.add_argument(
        "--min-severity", dest="min_severity",
        choices=["TRACE", "DEBUG", "INFO", "WARN", "ERROR", "FATAL"],
        help="Minimum severity (applied client-side)",
    )
    logs.add_argument(
        "--body-contains", dest="body_contains",
        help="Case-insensitive body substring (applied client-side)",
    )

    spans = subparsers.add_parser("spans", parents=[common], help="Query spans")
    spans.add_argument("--http-method", dest="http_method", help="Filter by HTTP method")
    spans.add_argument("--http-status-code", dest="http_status_code", type=int, help="Filter by HTTP status code")
    spans.add_argument("--span-name", dest="span_name", help="Filter by span name")
    spans.add_argument("--error-only", dest="error_only", action="store_true", help="Only error spans")
    spans.add_argument(
        "--min-duration-ms", dest="min_duration_ms", type=float,
        help="Minimum duration in milliseconds (applied client-side)",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
        settings.validate_settings()
    except (ValueError, OSError) as e:
        print(json.dumps({"error": f"configuration error: {e}"}), file=sys.stderr)
        return 1

    setup_logging(args.verbose or settings.debug)
    params = build_params(args)

    with Dash0Client.from_settings(settings) as client:
        engine = TelemetryQueryEngine(client)
        try:
            if args.kind == "logs":
                envelope = engine.query_logs(params)
            else:
                envelope = engine.query_spans(params)
        except UpstreamError as e:
            print(json.dumps({"error": e.to_dict()}, indent=2), file=sys.stderr)
            return 1

    output = json.dumps(envelope.to_dict(), indent=2)

    if args.output:
        Path(args.output).write_text(output)
        logging.getLogger(__name__).info("Results saved to %s", args.output)
    else:
        print(output)

    return 0


if __name__ == "__main__":
    sys.exit(main())
