"""
Route ingest: the boundary between cluster exports and the migration core.
"""

from ing_switch.ingest.ingress import load_routes, load_routes_from_text, parse_ingress

__all__ = ["load_routes", "load_routes_from_text", "parse_ingress"]
