"""Observability package.

Structured logging, in-process metrics, request-scoped context and the ASGI
middleware that ties them together.
"""

__all__ = [
    "middleware",
    "metrics",
    "logger",
    "context",
]
