"""
API module for FastAPI routes.

The search route speaks the Algolia multi-query protocol; health routes
serve probes and monitoring.
"""

from api.routes import health, search

__all__ = ["health", "search"]
