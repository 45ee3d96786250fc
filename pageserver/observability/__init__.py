"""Observability helpers.

structlog JSON logging with request IDs bound through contextvars, plus the
Prometheus-backed request metrics exposed on the metrics listener.
"""
