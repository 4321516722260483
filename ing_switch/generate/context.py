"""
Fleet-wide synthesis context.

Both synthesizers work route by route, but a few decisions need the whole
fleet: which HTTPS listener section serves which hostname, and which file
names would collide. FleetContext computes those once, over routes sorted by
(namespace, name), so the result never depends on input order.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, NamedTuple

from ing_switch.models.route import Route
from ing_switch.util.hashing import short_hash

logger = logging.getLogger(__name__)

FALLBACK_HTTPS_SECTION = "https"
HTTP_SECTION = "http"


@dataclass(frozen=True)
class GatewaySettings:
    """Shared Gateway every generated HTTPRoute attaches to."""

    name: str = "ing-switch-gateway"
    namespace: str = "default"
    class_name: str = "eg"
    controller_name: str = "gateway.envoyproxy.io/gatewayclass-controller"


@dataclass(frozen=True)
class TraefikSettings:
    """Where Traefik is installed."""

    namespace: str = "traefik"


@dataclass(frozen=True)
class SynthesisSettings:
    """
    Settings that shape generated artifacts.

    Defaults apply outside a workspace; ``from_config`` reads the
    ``gateway`` and ``traefik`` sections of ing-switch.yaml.
    """

    gateway: GatewaySettings = field(default_factory=GatewaySettings)
    traefik: TraefikSettings = field(default_factory=TraefikSettings)

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> "SynthesisSettings":
        config = config or {}
        gateway = config.get("gateway") or {}
        traefik = config.get("traefik") or {}
        defaults = GatewaySettings()
        return cls(
            gateway=GatewaySettings(
                name=gateway.get("name", defaults.name),
                namespace=gateway.get("namespace", defaults.namespace),
                class_name=gateway.get("class_name", defaults.class_name),
            ),
            traefik=TraefikSettings(
                namespace=traefik.get("namespace", TraefikSettings().namespace)
            ),
        )


class CertificateRef(NamedTuple):
    namespace: str
    name: str


class ListenerSpec(NamedTuple):
    """One HTTPS listener on the shared Gateway."""

    section: str
    hostname: str
    certificate_refs: tuple[CertificateRef, ...]


@dataclass(frozen=True)
class FleetContext:
    """
    Fleet-wide lookups computed once per synthesis run.

    Attributes:
        routes: Routes sorted by (namespace, name)
        settings: Synthesis settings
        listeners: HTTPS listeners in section order
        listener_sections: Primary hostname -> listener section name
        file_stems: Route key -> collision-free file stem
    """

    routes: tuple[Route, ...]
    settings: SynthesisSettings
    listeners: tuple[ListenerSpec, ...]
    listener_sections: Mapping[str, str]
    file_stems: Mapping[tuple[str, str], str]

    @classmethod
    def build(
        cls, routes: Iterable[Route], settings: SynthesisSettings | None = None
    ) -> "FleetContext":
        """
        Build the context for a fleet.

        Each distinct primary hostname of a TLS route with at least one secret
        gets one listener section, ``https-0``, ``https-1``, ..., assigned in
        (namespace, name) order. Routes sharing a primary hostname share the
        listener and contribute their certificates to it.
        """
        ordered = tuple(sorted(routes, key=lambda r: r.key))
        settings = settings or SynthesisSettings()

        sections: dict[str, str] = {}
        certificates: dict[str, list[CertificateRef]] = {}
        for route in ordered:
            if not (route.tls_enabled and route.tls_secrets and route.primary_host):
                continue
            host = route.primary_host
            if host not in sections:
                sections[host] = f"https-{len(sections)}"
                certificates[host] = []
            for secret in route.tls_secrets:
                ref = CertificateRef(route.namespace, secret)
                if ref not in certificates[host]:
                    certificates[host].append(ref)

        listeners = tuple(
            ListenerSpec(section, host, tuple(certificates[host])) for host, section in sections.items()
        )
        logger.debug(f"Assigned {len(listeners)} HTTPS listener sections")

        return cls(
            routes=ordered,
            settings=settings,
            listeners=listeners,
            listener_sections=MappingProxyType(sections),
            file_stems=MappingProxyType(_file_stems(ordered)),
        )

    def section_for(self, route: Route) -> str | None:
        """HTTPS listener section serving the route's primary hostname, if any."""
        return self.listener_sections.get(route.primary_host)

    def file_stem(self, route: Route) -> str:
        """File name stem for per-route artifacts (``<namespace>-<name>``)."""
        return self.file_stems.get(route.key) or _plain_stem(route)

    @property
    def needs_fallback_listener(self) -> bool:
        """
        Whether some route binds to the fallback ``https`` section.

        Redirecting routes whose primary hostname has no TLS listener of its
        own attach their backend route there.
        """
        return any(_redirects_to_https(r) and self.section_for(r) is None for r in self.routes)


def _plain_stem(route: Route) -> str:
    return f"{route.namespace}-{route.name}"


def _file_stems(routes: tuple[Route, ...]) -> dict[tuple[str, str], str]:
    # "a-b/c" and "a/b-c" both flatten to "a-b-c"; suffix a hash of the identity
    counts = Counter(_plain_stem(r) for r in routes)
    stems = {}
    for route in routes:
        stem = _plain_stem(route)
        if counts[stem] > 1:
            stem = f"{stem}-{short_hash(route.qualified_name)}"
        stems[route.key] = stem
    return stems


def _redirects_to_https(route: Route) -> bool:
    annotations = route.nginx_annotations
    return any(annotations.get(k, "").strip().lower() == "true" for k in ("ssl-redirect", "force-ssl-redirect"))
