"""
Data models shared across the migration pipeline.

Modules:
- route: Route and PathRule records produced by the ingest layer
"""

from ing_switch.models.route import NGINX_ANNOTATION_PREFIX, PathRule, Route

__all__ = ["NGINX_ANNOTATION_PREFIX", "PathRule", "Route"]
