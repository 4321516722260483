"""
Compatibility analysis of ingress-nginx routes.

Modules:
- classify: Per-route and per-fleet compatibility classification
- report: Markdown/JSON report writers, console summary and remediation issues
"""
