"""
Manifest generation for the migration targets.

Modules:
- generator: synthesize() entry point and artifact writer
- context: Fleet-wide listener and file-name tables
- traefik: Traefik Middlewares on Ingress
- gatewayapi: Gateway, HTTPRoutes and Envoy Gateway policies
"""
