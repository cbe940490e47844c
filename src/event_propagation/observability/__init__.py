"""Logging, trace-id context and Prometheus metrics."""
