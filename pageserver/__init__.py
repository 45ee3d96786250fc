"""Single-page HTTP(S) server with precomputed representations and Prometheus metrics."""

__version__ = "0.1.0"
