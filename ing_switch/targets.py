"""
Supported migration targets.
"""

from enum import Enum

from ing_switch.exceptions import UnknownTargetError


class Target(Enum):
    """
    Replacement ingress controller a fleet is migrated to.

    Examples:
        >>> Target.TRAEFIK.value
        'traefik'
        >>> str(Target.GATEWAY_API)
        'gateway-api'
    """

    TRAEFIK = "traefik"
    GATEWAY_API = "gateway-api"

    def __str__(self) -> str:
        """Return the string value for display."""
        return self.value

    @property
    def display_name(self) -> str:
        """Human-readable controller name."""
        return {
            "traefik": "Traefik v3",
            "gateway-api": "Gateway API (Envoy Gateway)",
        }[self.value]


def resolve_target(target: "str | Target") -> Target:
    """
    Resolve a user-supplied target name to a Target.

    Args:
        target: Target name (e.g. "traefik") or an existing Target

    Returns:
        The matching Target

    Raises:
        UnknownTargetError: If the name is not a supported target
    """
    if isinstance(target, Target):
        return target
    try:
        return Target(str(target).strip().lower())
    except ValueError:
        raise UnknownTargetError(str(target), [t.value for t in Target]) from None
