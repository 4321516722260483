"""
Backend connection settings for Traefik: ServersTransport and Service annotations.

Timeouts, upstream TLS and session affinity are configured on the backend
Service in Traefik rather than on the router, so the Ingress artifact lists
the Service annotations to set and points them at the generated transport.
"""

from typing import Any, Mapping, NamedTuple

from ing_switch.generate.artifact import Manifest
from ing_switch.generate.traefik.middleware import TRAEFIK_API_VERSION
from ing_switch.generate.values import is_true, parse_duration, parse_int
from ing_switch.models.route import Route

SERVICE_ANNOTATION_PREFIX = "traefik.ingress.kubernetes.io/service."

# annotation -> forwardingTimeouts field
TIMEOUT_FIELDS = (
    ("proxy-connect-timeout", "dialTimeout"),
    ("proxy-read-timeout", "responseHeaderTimeout"),
    ("proxy-send-timeout", "idleConnTimeout"),
)


class TransportPlan(NamedTuple):
    """ServersTransport for one route, plus the annotation keys it replaces."""

    name: str
    spec: dict[str, Any]
    comments: tuple[str, ...]
    consumed: tuple[str, ...]

    def manifest(self, namespace: str) -> Manifest:
        return Manifest(
            body={
                "apiVersion": TRAEFIK_API_VERSION,
                "kind": "ServersTransport",
                "metadata": {"name": self.name, "namespace": namespace},
                "spec": self.spec,
            },
            comments=self.comments,
        )

    def reference(self, namespace: str) -> str:
        return f"{namespace}-{self.name}@kubernetescrd"


def plan_transport(route: Route) -> TransportPlan | None:
    """
    Plan the ServersTransport for a route's backend connection settings.

    Returns:
        TransportPlan, or None when no timeout or upstream TLS annotation is set
    """
    annotations = route.nginx_annotations
    spec: dict[str, Any] = {}
    comments = []
    consumed = []

    timeouts = {}
    for key, field in TIMEOUT_FIELDS:
        if key not in annotations:
            continue
        consumed.append(key)
        duration, ok = parse_duration(annotations[key])
        if ok:
            timeouts[field] = duration
        else:
            comments.append(f"NOTE: {key} {annotations[key]!r} is not a duration; Traefik default kept")
    if timeouts:
        spec["forwardingTimeouts"] = timeouts
    if "idleConnTimeout" in timeouts:
        comments.append("NOTE: proxy-send-timeout is approximated by idleConnTimeout")

    ca_secret = annotations.get("secure-verify-ca-secret", "").strip()
    if ca_secret:
        consumed.append("secure-verify-ca-secret")
        spec["rootCAs"] = [{"secret": ca_secret.rsplit("/", 1)[-1]}]

    client_secret = annotations.get("proxy-ssl-secret", "").strip()
    if client_secret:
        consumed.append("proxy-ssl-secret")
        spec["certificatesSecrets"] = [client_secret.rsplit("/", 1)[-1]]

    if not spec:
        return None
    return TransportPlan(
        name=f"{route.name}-transport",
        spec=spec,
        comments=tuple(comments),
        consumed=tuple(consumed),
    )


def service_annotations(route: Route, transport: TransportPlan | None) -> dict[str, str]:
    """
    Annotations to set on the route's backend Services.

    Covers the transport reference, the backend scheme and sticky sessions.
    """
    annotations = route.nginx_annotations
    result = {}
    if transport is not None:
        result[SERVICE_ANNOTATION_PREFIX + "serverstransport"] = transport.reference(route.namespace)

    protocol = annotations.get("backend-protocol", "").strip().upper()
    if protocol in ("HTTPS", "GRPCS"):
        result[SERVICE_ANNOTATION_PREFIX + "serversscheme"] = "https"
    elif protocol == "GRPC" or is_true(annotations, "grpc-backend"):
        result[SERVICE_ANNOTATION_PREFIX + "serversscheme"] = "h2c"

    if annotations.get("affinity", "").strip().lower() == "cookie":
        result.update(_sticky_cookie(annotations))
    return result


def _sticky_cookie(annotations: Mapping[str, str]) -> dict[str, str]:
    prefix = SERVICE_ANNOTATION_PREFIX + "sticky.cookie"
    result = {prefix: "true"}
    if annotations.get("session-cookie-name"):
        result[f"{prefix}.name"] = annotations["session-cookie-name"]
    if annotations.get("session-cookie-secure"):
        result[f"{prefix}.secure"] = annotations["session-cookie-secure"].strip().lower()
    if annotations.get("session-cookie-samesite"):
        result[f"{prefix}.samesite"] = annotations["session-cookie-samesite"].strip().lower()

    max_age = annotations.get("session-cookie-max-age") or annotations.get("session-cookie-expires")
    if max_age:
        seconds, ok = parse_int(max_age, 0)
        if ok:
            result[f"{prefix}.maxage"] = str(seconds)
    return result
