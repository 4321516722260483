"""
Envoy Gateway policy attachments for one route.

Rate limiting, connection limits and connect timeouts share one
BackendTrafficPolicy per route (``-ratelimit`` when it rate limits,
``-traffic`` otherwise), since Envoy Gateway honours only one such policy per
HTTPRoute. External auth and IP filtering become SecurityPolicies;
cookie affinity becomes a BackendLBPolicy on the backend Services.
"""

from typing import Any, Mapping, NamedTuple
from urllib.parse import urlsplit

from ing_switch.generate.artifact import Manifest
from ing_switch.generate.values import parse_duration, parse_int, split_list
from ing_switch.models.route import Route

ENVOY_GATEWAY_API_VERSION = "gateway.envoyproxy.io/v1alpha1"
BACKEND_LB_POLICY_API_VERSION = "gateway.networking.k8s.io/v1alpha2"

DEFAULT_RATE_LIMIT = 100
PLACEHOLDER_AUTH_SERVICE = "auth-service"
PLACEHOLDER_AUTH_PORT = 9001
CLUSTER_DOMAIN_SUFFIXES = (".svc.cluster.local", ".svc")


class PolicyPlan(NamedTuple):
    """One generated policy object and the file suffix it is written under."""

    purpose: str
    manifest: Manifest


def plan_policies(route: Route) -> list[PolicyPlan]:
    """
    Plan the policy objects for a route.

    Returns:
        Policies in a fixed order: traffic, extauth, ipfilter, sessions
    """
    plans = [
        _backend_traffic_policy(route),
        _ext_auth_policy(route),
        _ip_filter_policy(route),
        _session_policy(route),
    ]
    plans = [p for p in plans if p is not None]

    purposes = {p.purpose for p in plans}
    if {"extauth", "ipfilter"} <= purposes:
        note = (
            "NOTE: Envoy Gateway applies one SecurityPolicy per HTTPRoute; merge the extAuth "
            "and authorization sections of the -extauth and -ipfilter policies before applying"
        )
        plans = [
            p._replace(manifest=p.manifest._replace(comments=p.manifest.comments + (note,)))
            if p.purpose in ("extauth", "ipfilter")
            else p
            for p in plans
        ]
    return plans


def _target_refs(route: Route) -> list[dict[str, str]]:
    return [{"group": "gateway.networking.k8s.io", "kind": "HTTPRoute", "name": route.name}]


def _policy(route: Route, kind: str, name: str, spec: dict[str, Any], comments: list[str]) -> Manifest:
    return Manifest(
        body={
            "apiVersion": ENVOY_GATEWAY_API_VERSION,
            "kind": kind,
            "metadata": {"name": name, "namespace": route.namespace},
            "spec": {"targetRefs": _target_refs(route), **spec},
        },
        comments=tuple(comments),
    )


def _rate_limit(annotations: Mapping[str, str], comments: list[str]) -> dict[str, Any] | None:
    if "limit-rps" in annotations:
        key, unit = "limit-rps", "Second"
    elif "limit-rpm" in annotations:
        key, unit = "limit-rpm", "Minute"
    else:
        return None

    requests, ok = parse_int(annotations[key], DEFAULT_RATE_LIMIT)
    if not ok or requests == 0:
        requests = DEFAULT_RATE_LIMIT
        comments.append(f"NOTE: {key} {annotations[key]!r} is not a positive number; using {requests}")
    if key == "limit-rps" and "limit-rpm" in annotations:
        comments.append("NOTE: limit-rpm is ignored because limit-rps is also set")
    if "limit-burst-multiplier" in annotations:
        comments.append("NOTE: global rate limits have no burst; limit-burst-multiplier is dropped")
    comments.append("NOTE: Global rate limiting needs the Envoy Gateway rate limit service (Redis)")

    return {
        "type": "Global",
        "global": {
            "rules": [
                {
                    # Distinct per client address, like ingress-nginx limit_req zones
                    "clientSelectors": [{"sourceCIDR": {"type": "Distinct", "value": "0.0.0.0/0"}}],
                    "limit": {"requests": requests, "unit": unit},
                }
            ]
        },
    }


def _backend_traffic_policy(route: Route) -> PolicyPlan | None:
    annotations = route.nginx_annotations
    comments: list[str] = []
    spec: dict[str, Any] = {}

    rate_limit = _rate_limit(annotations, comments)
    if rate_limit:
        spec["rateLimit"] = rate_limit

    if "limit-connections" in annotations:
        amount, ok = parse_int(annotations["limit-connections"], 0)
        if ok and amount > 0:
            spec["circuitBreaker"] = {"maxParallelRequests": amount}
            comments.append(
                "NOTE: limit-connections was per client address; maxParallelRequests is per backend"
            )
        else:
            comments.append(
                f"NOTE: limit-connections {annotations['limit-connections']!r} is not a positive "
                "number; circuit breaker not set"
            )

    if "proxy-connect-timeout" in annotations:
        duration, ok = parse_duration(annotations["proxy-connect-timeout"])
        if ok:
            spec["timeout"] = {"tcp": {"connectTimeout": duration}}
        else:
            comments.append(
                f"NOTE: proxy-connect-timeout {annotations['proxy-connect-timeout']!r} is not a "
                "duration; connect timeout left at the default"
            )

    if not spec:
        return None
    purpose = "ratelimit" if rate_limit else "traffic"
    manifest = _policy(route, "BackendTrafficPolicy", f"{route.name}-{purpose}", spec, comments)
    return PolicyPlan(purpose, manifest)


def _auth_backend(url: str, route: Route, comments: list[str]) -> tuple[dict[str, Any], str]:
    """Resolve auth-url to a backendRef and request path."""
    parts = urlsplit(url)
    host = parts.hostname or ""
    namespace = route.namespace
    name = ""
    for suffix in CLUSTER_DOMAIN_SUFFIXES:
        if host.endswith(suffix):
            labels = host[: -len(suffix)].split(".")
            if len(labels) == 2:
                name, namespace = labels
            break
    else:
        if host and "." not in host:
            name = host

    if not name:
        comments.append(f"NOTE: auth-url {url} is not an in-cluster Service;")
        comments.append(
            f"replace {PLACEHOLDER_AUTH_SERVICE}:{PLACEHOLDER_AUTH_PORT} with a Service or "
            "Backend resource that reaches it"
        )
        return {"name": PLACEHOLDER_AUTH_SERVICE, "port": PLACEHOLDER_AUTH_PORT}, parts.path

    port = parts.port or (443 if parts.scheme == "https" else 80)
    ref: dict[str, Any] = {"name": name, "port": port}
    if namespace != route.namespace:
        ref["namespace"] = namespace
        comments.append(
            f"NOTE: the auth Service lives in {namespace}; a ReferenceGrant there must allow "
            f"SecurityPolicy objects from {route.namespace}"
        )
    return ref, parts.path


def _ext_auth_policy(route: Route) -> PolicyPlan | None:
    annotations = route.nginx_annotations
    url = annotations.get("auth-url", "").strip()
    if not url:
        return None

    comments = [f"Original auth-url: {url}"]
    backend, path = _auth_backend(url, route, comments)
    http: dict[str, Any] = {"backendRefs": [backend]}
    if path and path != "/":
        http["path"] = path
    headers = split_list(annotations.get("auth-response-headers", ""))
    if headers:
        http["headersToBackend"] = headers

    manifest = _policy(
        route, "SecurityPolicy", f"{route.name}-extauth", {"extAuth": {"http": http}}, comments
    )
    return PolicyPlan("extauth", manifest)


def _ip_filter_policy(route: Route) -> PolicyPlan | None:
    annotations = route.nginx_annotations
    allow = split_list(annotations.get("whitelist-source-range", ""))
    deny = split_list(annotations.get("denylist-source-range", ""))
    if not allow and not deny:
        return None

    # First matching rule wins: deny ranges are checked before allow ranges
    rules = []
    if deny:
        rules.append(
            {"name": "deny-source-ranges", "action": "Deny", "principal": {"clientCIDRs": deny}}
        )
    if allow:
        rules.append(
            {"name": "allow-source-ranges", "action": "Allow", "principal": {"clientCIDRs": allow}}
        )

    authorization = {"defaultAction": "Deny" if allow else "Allow", "rules": rules}
    spec = {"authorization": authorization}
    manifest = _policy(route, "SecurityPolicy", f"{route.name}-ipfilter", spec, [])
    return PolicyPlan("ipfilter", manifest)


def _session_policy(route: Route) -> PolicyPlan | None:
    annotations = route.nginx_annotations
    if annotations.get("affinity", "").strip().lower() != "cookie":
        return None

    comments = ["NOTE: BackendLBPolicy ships in the Gateway API experimental channel"]
    persistence: dict[str, Any] = {"type": "Cookie"}
    if annotations.get("session-cookie-name"):
        persistence["sessionName"] = annotations["session-cookie-name"]
    max_age = annotations.get("session-cookie-max-age") or annotations.get("session-cookie-expires")
    if max_age:
        seconds, ok = parse_int(max_age, 0)
        if ok and seconds:
            persistence["absoluteTimeout"] = f"{seconds}s"
        else:
            comments.append(
                f"NOTE: session cookie lifetime {max_age!r} is not a number of seconds; omitted"
            )
    if annotations.get("affinity-mode", "").strip().lower() == "persistent":
        comments.append(
            "NOTE: affinity-mode persistent has no equivalent; sessions may move on scale events"
        )

    services = sorted({p.service_name for p in route.paths if p.service_name})
    if not services:
        return None
    manifest = Manifest(
        body={
            "apiVersion": BACKEND_LB_POLICY_API_VERSION,
            "kind": "BackendLBPolicy",
            "metadata": {"name": f"{route.name}-sessions", "namespace": route.namespace},
            "spec": {
                "targetRefs": [{"group": "", "kind": "Service", "name": s} for s in services],
                "sessionPersistence": persistence,
            },
        },
        comments=tuple(comments),
    )
    return PolicyPlan("sessions", manifest)
