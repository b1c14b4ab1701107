"""
=============================================================================
MIDDLEWARE
=============================================================================

    ┌────────────────┬────────────────────────────────────────────────────┐
    │ base.py        │ Middleware ABC, MiddlewarePipeline                 │
    │ compression.py │ CompressionMiddleware (gzip, best effort)          │
    └────────────────┴────────────────────────────────────────────────────┘

The session runs every handler through the server's pipeline:

    response = pipeline.wrap(handler.handle)(request)

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .compression import CompressionMiddleware

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "CompressionMiddleware",
]
