"""
Translate ingress-nginx annotation groups into Traefik Middleware objects.

Each group that needs one becomes a Middleware named ``<route>-<purpose>`` in
the route's namespace. Groups are produced in a fixed order, and the Ingress
lists them in that same order in its router.middlewares annotation, so
Traefik applies them in the order below:

    redirect scheme, CORS, forward auth, basic auth, rate limit,
    in-flight requests, IP allow list, IP deny list, path rewrite,
    custom headers, explicit redirect, app root, buffering, upstream vhost

Values that cannot be parsed fall back to the ingress-nginx default and the
Middleware carries a NOTE comment saying so.
"""

from typing import Any, Mapping, NamedTuple

from ing_switch.generate.artifact import Manifest
from ing_switch.generate.values import (
    is_true,
    parse_bool,
    parse_custom_headers,
    parse_int,
    parse_size,
    regex_enabled,
    split_list,
)
from ing_switch.models.route import Route

TRAEFIK_API_VERSION = "traefik.io/v1alpha1"

DEFAULT_CORS_METHODS = "GET, PUT, POST, DELETE, PATCH, OPTIONS"
DEFAULT_CORS_HEADERS = (
    "DNT,Keep-Alive,User-Agent,X-Requested-With,If-Modified-Since,"
    "Cache-Control,Content-Type,Range,Authorization"
)
DEFAULT_CORS_MAX_AGE = 1728000
DEFAULT_RATE_LIMIT = 100
DEFAULT_BURST_MULTIPLIER = 5
DEFAULT_CONNECTION_LIMIT = 10
DEFAULT_BODY_SIZE = "1m"

CORS_KEYS = (
    "enable-cors",
    "cors-allow-origin",
    "cors-allow-methods",
    "cors-allow-headers",
    "cors-expose-headers",
    "cors-allow-credentials",
    "cors-max-age",
)


class MiddlewarePlan(NamedTuple):
    """
    A Middleware to generate for one route.

    Attributes:
        name: Middleware name (``<route>-<purpose>``)
        spec: Middleware spec body
        comments: NOTE lines printed above the object
        consumed: Annotation keys this Middleware replaces on the Ingress
    """

    name: str
    spec: dict[str, Any]
    comments: tuple[str, ...] = ()
    consumed: tuple[str, ...] = ()

    def manifest(self, namespace: str) -> Manifest:
        return Manifest(
            body={
                "apiVersion": TRAEFIK_API_VERSION,
                "kind": "Middleware",
                "metadata": {"name": self.name, "namespace": namespace},
                "spec": self.spec,
            },
            comments=self.comments,
        )

    def reference(self, namespace: str) -> str:
        """Name used in the router.middlewares annotation."""
        return f"{namespace}-{self.name}@kubernetescrd"


def plan_middlewares(route: Route) -> list[MiddlewarePlan]:
    """
    Plan every Middleware a route needs, in application order.

    Args:
        route: Route to translate

    Returns:
        Middleware plans; empty when no annotation group needs one
    """
    annotations = route.nginx_annotations
    builders = (
        _ssl_redirect,
        _cors,
        _forward_auth,
        _basic_auth,
        _rate_limit,
        _in_flight,
        _ip_allow_list,
        _ip_deny_list,
        _rewrite,
        _custom_headers,
        _explicit_redirect,
        _app_root,
        _buffering,
        _upstream_vhost,
    )
    plans = []
    for build in builders:
        plan = build(route, annotations)
        if plan is not None:
            plans.append(plan)
    return plans


def _ssl_redirect(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    forced = is_true(annotations, "force-ssl-redirect")
    if not forced and not is_true(annotations, "ssl-redirect"):
        return None

    comments = ()
    if forced and is_true(annotations, "ssl-redirect"):
        comments = ("NOTE: ssl-redirect and force-ssl-redirect are both set; one redirect is enough",)
    consumed = tuple(k for k in ("ssl-redirect", "force-ssl-redirect") if k in annotations)
    suffix = "force-ssl-redirect" if forced else "ssl-redirect"
    return MiddlewarePlan(
        name=f"{route.name}-{suffix}",
        spec={"redirectScheme": {"scheme": "https", "permanent": forced}},
        comments=comments,
        consumed=consumed,
    )


def _cors(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    if not is_true(annotations, "enable-cors"):
        return None

    comments = []
    credentials, ok = parse_bool(annotations.get("cors-allow-credentials", "true"), True)
    if not ok:
        comments.append(
            f"NOTE: cors-allow-credentials {annotations['cors-allow-credentials']!r} "
            "is not a boolean; using true"
        )
    max_age, ok = parse_int(annotations.get("cors-max-age", str(DEFAULT_CORS_MAX_AGE)), DEFAULT_CORS_MAX_AGE)
    if not ok:
        comments.append(
            f"NOTE: cors-max-age {annotations['cors-max-age']!r} is not a number of seconds; "
            f"using {DEFAULT_CORS_MAX_AGE}"
        )

    headers: dict[str, Any] = {
        "accessControlAllowOriginList": split_list(annotations.get("cors-allow-origin") or "*"),
        "accessControlAllowMethods": split_list(
            annotations.get("cors-allow-methods") or DEFAULT_CORS_METHODS
        ),
        "accessControlAllowHeaders": split_list(
            annotations.get("cors-allow-headers") or DEFAULT_CORS_HEADERS
        ),
        "accessControlAllowCredentials": credentials,
        "accessControlMaxAge": max_age,
    }
    exposed = split_list(annotations.get("cors-expose-headers", ""))
    if exposed:
        headers["accessControlExposeHeaders"] = exposed

    return MiddlewarePlan(
        name=f"{route.name}-cors",
        spec={"headers": headers},
        comments=tuple(comments),
        consumed=tuple(k for k in CORS_KEYS if k in annotations),
    )


def _forward_auth(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    address = annotations.get("auth-url", "").strip()
    if not address:
        return None

    forward_auth: dict[str, Any] = {"address": address, "trustForwardHeader": True}
    response_headers = split_list(annotations.get("auth-response-headers", ""))
    if response_headers:
        forward_auth["authResponseHeaders"] = response_headers

    comments = []
    if annotations.get("auth-method"):
        comments.append(
            f"NOTE: auth-method {annotations['auth-method']} has no forwardAuth equivalent; "
            "Traefik forwards the original request method"
        )
    if annotations.get("auth-request-redirect"):
        comments.append(
            "NOTE: auth-request-redirect is not applied; have the auth service "
            "answer with the redirect itself"
        )

    consumed = ("auth-url", "auth-response-headers", "auth-method", "auth-request-redirect")
    return MiddlewarePlan(
        name=f"{route.name}-auth",
        spec={"forwardAuth": forward_auth},
        comments=tuple(comments),
        consumed=tuple(k for k in consumed if k in annotations),
    )


def _basic_auth(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    if annotations.get("auth-type", "").strip().lower() != "basic":
        return None

    secret = annotations.get("auth-secret", "").strip() or f"{route.name}-basic-auth"
    # ingress-nginx accepts namespace/name; Middleware secrets are namespace-local
    secret = secret.rsplit("/", 1)[-1]
    realm = annotations.get("auth-realm", "").strip() or "traefik"

    comments = [
        "NOTE: Traefik reads htpasswd entries from the secret's 'users' key;",
        "ingress-nginx used the 'auth' key. Recreate the secret if needed:",
        f'kubectl create secret generic {secret} --from-literal=users="$(htpasswd -nb user password)" '
        f"-n {route.namespace}",
    ]
    consumed = ("auth-type", "auth-secret", "auth-realm")
    return MiddlewarePlan(
        name=f"{route.name}-basicauth",
        spec={"basicAuth": {"secret": secret, "realm": realm}},
        comments=tuple(comments),
        consumed=tuple(k for k in consumed if k in annotations),
    )


def _rate_limit(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    if "limit-rps" in annotations:
        key, period = "limit-rps", "1s"
    elif "limit-rpm" in annotations:
        key, period = "limit-rpm", "1m"
    else:
        return None

    comments = []
    average, ok = parse_int(annotations[key], DEFAULT_RATE_LIMIT)
    if not ok or average == 0:
        average = DEFAULT_RATE_LIMIT
        comments.append(f"NOTE: {key} {annotations[key]!r} is not a positive number; using {average}")

    multiplier = DEFAULT_BURST_MULTIPLIER
    if "limit-burst-multiplier" in annotations:
        multiplier, ok = parse_int(annotations["limit-burst-multiplier"], DEFAULT_BURST_MULTIPLIER)
        if not ok or multiplier == 0:
            multiplier = DEFAULT_BURST_MULTIPLIER
            comments.append(
                f"NOTE: limit-burst-multiplier {annotations['limit-burst-multiplier']!r} "
                f"is not a positive number; using {multiplier}"
            )

    if key == "limit-rps" and "limit-rpm" in annotations:
        comments.append("NOTE: limit-rpm is ignored because limit-rps is also set")
    if annotations.get("limit-whitelist"):
        comments.append(
            "NOTE: limit-whitelist has no RateLimit equivalent; exempt clients "
            f"({annotations['limit-whitelist']}) need their own router"
        )

    consumed = ("limit-rps", "limit-rpm", "limit-burst-multiplier", "limit-whitelist")
    return MiddlewarePlan(
        name=f"{route.name}-ratelimit",
        spec={"rateLimit": {"average": average, "burst": average * multiplier, "period": period}},
        comments=tuple(comments),
        consumed=tuple(k for k in consumed if k in annotations),
    )


def _in_flight(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    if "limit-connections" not in annotations:
        return None

    comments = ()
    amount, ok = parse_int(annotations["limit-connections"], DEFAULT_CONNECTION_LIMIT)
    if not ok or amount == 0:
        amount = DEFAULT_CONNECTION_LIMIT
        comments = (
            f"NOTE: limit-connections {annotations['limit-connections']!r} is not a positive "
            f"number; using {amount}",
        )
    return MiddlewarePlan(
        name=f"{route.name}-inflightreq",
        spec={"inFlightReq": {"amount": amount}},
        comments=comments,
        consumed=("limit-connections",),
    )


def _ip_list(
    route: Route, annotations: Mapping[str, str], key: str, purpose: str, field: str
) -> MiddlewarePlan | None:
    ranges = split_list(annotations.get(key, ""))
    if not ranges:
        return None
    return MiddlewarePlan(
        name=f"{route.name}-{purpose}",
        spec={field: {"sourceRange": ranges}},
        consumed=(key,),
    )


def _ip_allow_list(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    return _ip_list(route, annotations, "whitelist-source-range", "ipallowlist", "ipAllowList")


def _ip_deny_list(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    return _ip_list(route, annotations, "denylist-source-range", "ipdenylist", "ipDenyList")


def _rewrite(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    target = annotations.get("rewrite-target", "").strip()
    if not target:
        return None

    if not regex_enabled(annotations):
        return MiddlewarePlan(
            name=f"{route.name}-rewrite",
            spec={"replacePath": {"path": target}},
            consumed=("rewrite-target",),
        )

    paths = []
    for rule in route.paths:
        if rule.path and rule.path not in paths:
            paths.append(rule.path)

    comments = []
    if paths:
        regex = f"^{paths[0]}"
        if len(paths) > 1:
            comments.append(
                f"NOTE: rewrite regex is taken from {paths[0]}; other paths "
                f"({', '.join(paths[1:])}) need their own Ingress and Middleware"
            )
    else:
        regex = "^/(.*)"
        comments.append("NOTE: the route has no paths; adjust the regex to your path pattern")

    return MiddlewarePlan(
        name=f"{route.name}-rewrite",
        spec={"replacePathRegex": {"regex": regex, "replacement": target}},
        comments=tuple(comments),
        consumed=("rewrite-target",),
    )


def _custom_headers(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    if "custom-headers" not in annotations:
        return None

    value = annotations["custom-headers"]
    headers, ok = parse_custom_headers(value)
    comments = ()
    if not ok:
        comments = (
            f"NOTE: custom-headers references ConfigMap {value!r};",
            "copy its entries into customResponseHeaders below",
        )
    return MiddlewarePlan(
        name=f"{route.name}-headers",
        spec={"headers": {"customResponseHeaders": headers}},
        comments=comments,
        consumed=("custom-headers",),
    )


def _explicit_redirect(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    temporal = annotations.get("temporal-redirect", "").strip()
    permanent_url = annotations.get("permanent-redirect", "").strip()
    if not temporal and not permanent_url:
        return None

    comments = []
    if temporal:
        url, permanent = temporal, False
        if permanent_url:
            comments.append("NOTE: temporal-redirect takes precedence; permanent-redirect is ignored")
    else:
        url, permanent = permanent_url, True
        code = annotations.get("permanent-redirect-code", "").strip()
        if code:
            parsed, ok = parse_int(code, 301)
            if ok and parsed in (302, 303, 307):
                permanent = False
            elif not ok or parsed not in (301, 308):
                comments.append(f"NOTE: permanent-redirect-code {code!r} is not a redirect code; using 301")
            if parsed in (303, 307, 308):
                comments.append(
                    f"NOTE: Traefik derives the status code from 'permanent'; {parsed} is approximated"
                )

    consumed = ("temporal-redirect", "permanent-redirect", "permanent-redirect-code")
    return MiddlewarePlan(
        name=f"{route.name}-redirect",
        spec={"redirectRegex": {"regex": "^.*", "replacement": url, "permanent": permanent}},
        comments=tuple(comments),
        consumed=tuple(k for k in consumed if k in annotations),
    )


def _app_root(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    root = annotations.get("app-root", "").strip()
    if not root:
        return None
    if not root.startswith("/"):
        root = f"/{root}"
    return MiddlewarePlan(
        name=f"{route.name}-app-root",
        spec={
            "redirectRegex": {
                "regex": "^(https?://[^/]+)/$",
                "replacement": f"${{1}}{root}",
                "permanent": False,
            }
        },
        consumed=("app-root",),
    )


def _buffering(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    if "proxy-body-size" not in annotations:
        return None

    value = annotations["proxy-body-size"]
    size, ok = parse_size(value)
    comments = ()
    if not ok:
        size, _ = parse_size(DEFAULT_BODY_SIZE)
        comments = (f"NOTE: proxy-body-size {value!r} is not an nginx size; using {DEFAULT_BODY_SIZE}",)
    elif size == 0:
        # nginx "0" disables the check
        return None
    return MiddlewarePlan(
        name=f"{route.name}-buffering",
        spec={"buffering": {"maxRequestBodyBytes": size}},
        comments=comments,
        consumed=("proxy-body-size",),
    )


def _upstream_vhost(route: Route, annotations: Mapping[str, str]) -> MiddlewarePlan | None:
    host = annotations.get("upstream-vhost", "").strip()
    if not host:
        return None
    return MiddlewarePlan(
        name=f"{route.name}-upstream-vhost",
        spec={"headers": {"customRequestHeaders": {"Host": host}}},
        comments=(
            "NOTE: also set traefik.ingress.kubernetes.io/service.passhostheader: \"false\"",
            "on the backend Service so Traefik does not overwrite Host",
        ),
        consumed=("upstream-vhost",),
    )
