"""
Rewrite an ingress-nginx Ingress for Traefik.

The Ingress keeps its kind and ingress class (Traefik watches the nginx class
through its kubernetesIngressNginx provider). Annotations replaced by a
generated Middleware or ServersTransport are removed, and a single
router.middlewares annotation attaches the Middlewares in generation order.
"""

from typing import Any, Iterable, Sequence

from ing_switch.generate.artifact import Manifest
from ing_switch.generate.traefik.middleware import MiddlewarePlan
from ing_switch.generate.traefik.transport import TransportPlan, service_annotations
from ing_switch.generate.values import is_true, parse_int
from ing_switch.models.route import NGINX_ANNOTATION_PREFIX, PathRule, Route

MIDDLEWARES_ANNOTATION = "traefik.ingress.kubernetes.io/router.middlewares"
DEFAULT_INGRESS_CLASS = "nginx"
DEFAULT_SERVICE_PORT = 80


def build_ingress(
    route: Route,
    middlewares: Sequence[MiddlewarePlan],
    transport: TransportPlan | None,
) -> Manifest:
    """
    Build the updated Ingress for a route.

    Args:
        route: Original route
        middlewares: Middleware plans in generation order
        transport: ServersTransport plan, if any

    Returns:
        Ingress manifest with its NOTE comments
    """
    consumed = {key for plan in middlewares for key in plan.consumed}
    if transport is not None:
        consumed.update(transport.consumed)
    stripped = {NGINX_ANNOTATION_PREFIX + key for key in consumed}

    annotations = {k: v for k, v in route.annotations.items() if k not in stripped}
    if middlewares:
        annotations[MIDDLEWARES_ANNOTATION] = ",".join(
            plan.reference(route.namespace) for plan in middlewares
        )

    metadata: dict[str, Any] = {"name": route.name, "namespace": route.namespace}
    if annotations:
        metadata["annotations"] = dict(sorted(annotations.items()))

    spec: dict[str, Any] = {"ingressClassName": route.ingress_class or DEFAULT_INGRESS_CLASS}
    rules = _build_rules(route.paths)
    if rules:
        spec["rules"] = rules
    if route.tls_secrets:
        spec["tls"] = [
            {"hosts": list(route.tls_hosts.get(s) or route.hosts), "secretName": s}
            for s in route.tls_secrets
        ]

    body = {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": metadata,
        "spec": spec,
    }
    return Manifest(body=body, comments=tuple(_ingress_notes(route, transport)))


def _build_rules(paths: Iterable[PathRule]) -> list[dict[str, Any]]:
    # Group by host in first-appearance order
    grouped: dict[str, list[PathRule]] = {}
    for rule in paths:
        grouped.setdefault(rule.host, []).append(rule)

    rules = []
    for host, host_paths in grouped.items():
        http_paths = []
        for rule in host_paths:
            http_paths.append(
                {
                    "path": rule.path or "/",
                    "pathType": rule.path_type or "Prefix",
                    "backend": {
                        "service": {
                            "name": rule.service_name,
                            "port": {"number": rule.service_port or DEFAULT_SERVICE_PORT},
                        }
                    },
                }
            )
        entry: dict[str, Any] = {}
        if host:
            entry["host"] = host
        entry["http"] = {"paths": http_paths}
        rules.append(entry)
    return rules


def _ingress_notes(route: Route, transport: TransportPlan | None) -> list[str]:
    annotations = route.nginx_annotations
    notes = []

    services = sorted({p.service_name for p in route.paths if p.service_name})
    extra = service_annotations(route, transport)
    if extra:
        notes.append(f"NOTE: set these annotations on Service(s) {', '.join(services) or '<backend>'}:")
        notes.extend(f"  {key}: \"{value}\"" for key, value in extra.items())
        notes.append("")

    if is_true(annotations, "canary"):
        weight, ok = parse_int(annotations.get("canary-weight", ""), 0)
        if ok:
            notes.append(
                f"NOTE: canary weight {weight}: replace this Ingress with a weighted TraefikService "
                "splitting traffic between the stable and canary Services"
            )
        else:
            notes.append("NOTE: canary routing needs a weighted TraefikService or header-matching router")

    if annotations.get("configuration-snippet") or annotations.get("server-snippet"):
        notes.append("NOTE: nginx snippets are not translated; rebuild them as Middlewares by hand")
    return notes
