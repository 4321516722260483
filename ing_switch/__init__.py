"""
ing-switch: migrate ingress-nginx annotation routing to Traefik or Gateway API.
"""

__version__ = "0.1.0"
