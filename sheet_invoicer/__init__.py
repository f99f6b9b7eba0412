"""
Top-level package for the Sheet Invoicer service.

This package exposes:
- Company registry with durable invoice numbering
- Monthly sheet catalog and line-item extraction
- Invoice composition and PDF rendering
- CLI entrypoints
- HTTP API (FastAPI)
"""

__all__ = [
    "schema",
    "registry",
    "catalog",
    "extractor",
    "composer",
    "renderer",
    "service",
]
