"""
Gateway API manifest synthesis for Envoy Gateway: Gateway, HTTPRoutes and policies.
"""

from ing_switch.generate.gatewayapi.synthesizer import GatewayAPISynthesizer

__all__ = ["GatewayAPISynthesizer"]
