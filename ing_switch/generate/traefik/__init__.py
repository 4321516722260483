"""
Traefik v3 manifest synthesis: Middlewares, ServersTransports and updated Ingresses.
"""

from ing_switch.generate.traefik.synthesizer import TraefikSynthesizer

__all__ = ["TraefikSynthesizer"]
