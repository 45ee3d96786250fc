from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

import structlog

from pageserver.config import Settings
from pageserver.main import run
from pageserver.observability.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    # Defaults are None so unset flags fall through to the environment / Settings defaults.
    parser = argparse.ArgumentParser(prog="pageserver", description="Serve a single HTML page over HTTP(S)")
    parser.add_argument("--index-path", default=None, help="Path to the index HTML file (env WEB_INDEX_PATH)")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (env WEB_PORT)")
    parser.add_argument("--addr", default=None, help="Address to bind to (env WEB_ADDR)")
    parser.add_argument("--metrics-port", type=int, default=None, help="Metrics server port (env METRICS_PORT)")
    parser.add_argument("--metrics-addr", default=None, help="Metrics server address (env METRICS_ADDR, defaults to --addr)")
    parser.add_argument(
        "--tls",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable TLS with a self-signed certificate (env ENABLE_TLS)",
    )
    parser.add_argument("--log-level", default=None, help="Log level (env LOG_LEVEL)")
    return parser


def load_settings(argv: Sequence[str] | None = None) -> Settings:
    """CLI flags override environment variables, which override defaults."""
    args = build_parser().parse_args(argv)
    overrides = {key: value for key, value in vars(args).items() if value is not None}
    return Settings(**overrides)


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = load_settings(argv)
    except ValueError as exc:
        configure_logging()
        structlog.get_logger("server").error("startup_failed", error=str(exc))
        return 1

    configure_logging(settings.log_level)
    structlog.get_logger("server").info("configuration_loaded", **settings.model_dump())

    try:
        return asyncio.run(run(settings))
    except (OSError, ValueError) as exc:
        structlog.get_logger("server").error("startup_failed", error=str(exc), exc_info=exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
