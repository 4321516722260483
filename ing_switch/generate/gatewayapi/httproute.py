"""
Translate one ingress-nginx route into Gateway API HTTPRoutes.

A route that redirects HTTP to HTTPS becomes two HTTPRoutes: ``<name>-redirect``
bound only to the ``http`` listener with nothing but RequestRedirect rules,
and ``<name>`` bound only to the route's HTTPS listener with the backend rules.
A single route bound to both listeners would redirect requests that already
arrived over HTTPS, forever. Routes without the redirect become one HTTPRoute
attached to every listener.
"""

from typing import Any, Mapping
from urllib.parse import urlsplit

from ing_switch.generate.artifact import Manifest, dump_yaml
from ing_switch.generate.context import FALLBACK_HTTPS_SECTION, HTTP_SECTION, FleetContext
from ing_switch.generate.gatewayapi.gateway import GATEWAY_API_VERSION
from ing_switch.generate.values import (
    has_regex_chars,
    is_true,
    parse_bool,
    parse_custom_headers,
    parse_duration,
    parse_int,
    parse_size,
    regex_enabled,
    split_list,
)
from ing_switch.models.route import PathRule, Route

DEFAULT_SERVICE_PORT = 80
DEFAULT_CANARY_TOTAL = 100
CORS_DEFAULTS = {
    "cors-allow-origin": "*",
    "cors-allow-methods": "GET, PUT, POST, DELETE, PATCH, OPTIONS",
    "cors-allow-headers": "Content-Type, Authorization",
    "cors-allow-credentials": "true",
}


def redirects_to_https(annotations: Mapping[str, str]) -> bool:
    """Whether ssl-redirect or force-ssl-redirect is enabled."""
    return is_true(annotations, "ssl-redirect") or is_true(annotations, "force-ssl-redirect")


def path_match(rule: PathRule, annotations: Mapping[str, str]) -> dict[str, str]:
    """
    Build the HTTPRoute path match for one path rule.

    RegularExpression when use-regex is enabled or the path contains any of
    ``( ) | [ ] { }``, which PathPrefix and Exact reject; otherwise Exact for
    Exact paths and PathPrefix for everything else.

    Example:
        >>> path_match(PathRule(path="/api/(v1|v2)", path_type="Prefix"), {})
        {'type': 'RegularExpression', 'value': '/api/(v1|v2)'}
    """
    value = rule.path or "/"
    if regex_enabled(annotations) or has_regex_chars(value):
        return {"type": "RegularExpression", "value": value}
    if rule.path_type == "Exact":
        return {"type": "Exact", "value": value}
    return {"type": "PathPrefix", "value": value}


def build_httproutes(route: Route, context: FleetContext) -> list[Manifest]:
    """
    Build the HTTPRoutes for a route.

    Returns:
        ``[redirect, backend]`` for HTTPS-redirecting routes, otherwise ``[backend]``
    """
    annotations = route.nginx_annotations
    if not redirects_to_https(annotations):
        return [_backend_route(route, context, section=None)]

    section = context.section_for(route) or FALLBACK_HTTPS_SECTION
    return [_redirect_route(route, context), _backend_route(route, context, section=section)]


def _metadata(route: Route, name: str) -> dict[str, str]:
    return {"name": name, "namespace": route.namespace}


def _parent_ref(context: FleetContext, section: str | None) -> dict[str, str]:
    gateway = context.settings.gateway
    ref = {"name": gateway.name, "namespace": gateway.namespace}
    if section:
        ref["sectionName"] = section
    return ref


def _route_body(route: Route, name: str, parent: dict[str, str], rules: list) -> dict[str, Any]:
    spec: dict[str, Any] = {"parentRefs": [parent]}
    if route.hosts:
        spec["hostnames"] = list(route.hosts)
    if rules:
        spec["rules"] = rules
    return {
        "apiVersion": GATEWAY_API_VERSION,
        "kind": "HTTPRoute",
        "metadata": _metadata(route, name),
        "spec": spec,
    }


def _ordered_paths(route: Route) -> list[PathRule]:
    # Group by host in first-appearance order
    grouped: dict[str, list[PathRule]] = {}
    for rule in route.paths:
        grouped.setdefault(rule.host, []).append(rule)
    return [rule for rules in grouped.values() for rule in rules]


def _matches(rule: PathRule, annotations: Mapping[str, str]) -> list[dict[str, Any]]:
    match: dict[str, Any] = {"path": path_match(rule, annotations)}
    header = annotations.get("canary-by-header", "").strip()
    if header and is_true(annotations, "canary"):
        value = annotations.get("canary-by-header-value", "").strip() or "always"
        match["headers"] = [{"type": "Exact", "name": header, "value": value}]
    return [match]


def _redirect_route(route: Route, context: FleetContext) -> Manifest:
    annotations = route.nginx_annotations
    status = 301 if is_true(annotations, "force-ssl-redirect") else 302
    redirect = {
        "type": "RequestRedirect",
        "requestRedirect": {"scheme": "https", "statusCode": status},
    }

    rules = [
        {"matches": _matches(p, annotations), "filters": [redirect]} for p in _ordered_paths(route)
    ]
    if not rules:
        rules = [{"filters": [redirect]}]

    body = _route_body(route, f"{route.name}-redirect", _parent_ref(context, HTTP_SECTION), rules)
    return Manifest(body=body, comments=("HTTP to HTTPS redirect, attached to the http listener only",))


def _backend_route(route: Route, context: FleetContext, section: str | None) -> Manifest:
    annotations = route.nginx_annotations
    notes: list[str] = []
    split = section is not None

    if split:
        notes.append(f"Backend rules, attached to the {section} listener only")
        if section == FALLBACK_HTTPS_SECTION:
            notes.append(
                f"NOTE: no TLS listener serves {route.primary_host or 'this route'}; "
                f"bound to the fallback '{FALLBACK_HTTPS_SECTION}' listener"
            )
        elif len(route.hosts) > 1:
            others = ", ".join(h for h in route.hosts if h != route.primary_host)
            notes.append(
                f"NOTE: listener {section} serves {route.primary_host} only; "
                f"add HTTPS listeners for {others}"
            )

    redirect_rules = _explicit_redirect_rules(route, notes)
    app_root_rule = _app_root_rule(annotations)
    if split and (redirect_rules or app_root_rule):
        # Backend routes of a split pair never carry RequestRedirect
        notes.append("NOTE: redirect annotations are not applied on the HTTPS side; add these rules")
        notes.append("to a separate HTTPRoute bound to the same listener:")
        for rule in ([app_root_rule] if app_root_rule else []) + redirect_rules:
            notes.extend("  " + line for line in _yaml_lines(rule))
        redirect_rules, app_root_rule = [], None

    if redirect_rules:
        rules = ([app_root_rule] if app_root_rule else []) + redirect_rules
    else:
        rules = ([app_root_rule] if app_root_rule else []) + _backend_rules(route, notes)

    if not route.paths:
        notes.append("NOTE: the Ingress has no path rules; add backend rules by hand")

    _www_redirect_note(route, notes)
    _body_size_note(route.nginx_annotations, notes)
    body = _route_body(route, route.name, _parent_ref(context, section), rules)
    return Manifest(body=body, comments=tuple(notes))


def _backend_rules(route: Route, notes: list[str]) -> list[dict[str, Any]]:
    annotations = route.nginx_annotations
    filters = _backend_filters(annotations, notes)
    timeouts = _timeouts(annotations, notes)
    canary_weight = _canary_weight(annotations, notes)

    rules = []
    for path in _ordered_paths(route):
        backend: dict[str, Any] = {
            "name": path.service_name,
            "port": path.service_port or DEFAULT_SERVICE_PORT,
        }
        if canary_weight is not None:
            backend["weight"] = canary_weight
        rule: dict[str, Any] = {"matches": _matches(path, annotations)}
        if filters:
            rule["filters"] = filters
        rule["backendRefs"] = [backend]
        if timeouts:
            rule["timeouts"] = timeouts
        rules.append(rule)

    if canary_weight is not None and rules:
        total, _ = parse_int(annotations.get("canary-weight-total", ""), DEFAULT_CANARY_TOTAL)
        total = total or DEFAULT_CANARY_TOTAL
        port = rules[0]["backendRefs"][0]["port"]
        notes.append(
            f"NOTE: canary backend weight {canary_weight} of {total}; add the stable backend "
            "to each rule's backendRefs:"
        )
        notes.extend(
            [
                "  - name: <stable-service>",
                f"    port: {port}",
                f"    weight: {max(total - canary_weight, 0)}",
            ]
        )
    return rules


def _canary_weight(annotations: Mapping[str, str], notes: list[str]) -> int | None:
    if not is_true(annotations, "canary") or "canary-weight" not in annotations:
        return None
    weight, ok = parse_int(annotations["canary-weight"], 0)
    if not ok:
        notes.append(
            f"NOTE: canary-weight {annotations['canary-weight']!r} is not a number; "
            "backend weight left unset"
        )
        return None
    return weight


def _backend_filters(annotations: Mapping[str, str], notes: list[str]) -> list[dict[str, Any]]:
    filters = []

    vhost = annotations.get("upstream-vhost", "").strip()
    if vhost:
        filters.append(
            {
                "type": "RequestHeaderModifier",
                "requestHeaderModifier": {"set": [{"name": "Host", "value": vhost}]},
            }
        )

    target = annotations.get("rewrite-target", "").strip()
    if target:
        filters.append(
            {
                "type": "URLRewrite",
                "urlRewrite": {"path": {"type": "ReplaceFullPath", "replaceFullPath": target}},
            }
        )
        if regex_enabled(annotations) and "$" in target:
            notes.append(
                f"NOTE: rewrite-target {target} uses regex capture groups, which ReplaceFullPath "
                "does not expand; use an Envoy Gateway HTTPRouteFilter with ReplaceRegexMatch"
            )

    headers = _response_headers(annotations, notes)
    if headers:
        filters.append(
            {
                "type": "ResponseHeaderModifier",
                "responseHeaderModifier": {
                    "add": [{"name": name, "value": value} for name, value in headers.items()]
                },
            }
        )
    return filters


def _response_headers(annotations: Mapping[str, str], notes: list[str]) -> dict[str, str]:
    # CORS and custom headers share one ResponseHeaderModifier; names stay unique
    headers: dict[str, str] = {}
    if is_true(annotations, "enable-cors"):
        values = {key: annotations.get(key) or default for key, default in CORS_DEFAULTS.items()}
        credentials, ok = parse_bool(values["cors-allow-credentials"], True)
        if not ok:
            notes.append(
                f"NOTE: cors-allow-credentials {values['cors-allow-credentials']!r} "
                "is not a boolean; using true"
            )
        headers["Access-Control-Allow-Origin"] = values["cors-allow-origin"]
        headers["Access-Control-Allow-Methods"] = values["cors-allow-methods"]
        headers["Access-Control-Allow-Headers"] = values["cors-allow-headers"]
        headers["Access-Control-Allow-Credentials"] = "true" if credentials else "false"
        exposed = split_list(annotations.get("cors-expose-headers", ""))
        if exposed:
            headers["Access-Control-Expose-Headers"] = ", ".join(exposed)
        if annotations.get("cors-max-age"):
            max_age, ok = parse_int(annotations["cors-max-age"], 0)
            if ok:
                headers["Access-Control-Max-Age"] = str(max_age)
            else:
                notes.append(f"NOTE: cors-max-age {annotations['cors-max-age']!r} is not a number; omitted")
        notes.append("NOTE: CORS preflight (OPTIONS) answers come from the backend, not the Gateway")

    if "custom-headers" in annotations:
        custom, ok = parse_custom_headers(annotations["custom-headers"])
        if not ok:
            notes.append(
                f"NOTE: custom-headers references ConfigMap {annotations['custom-headers']!r}; "
                "copy its entries into the ResponseHeaderModifier"
            )
        for name, value in custom.items():
            headers.setdefault(name, value)
    return headers


def _timeouts(annotations: Mapping[str, str], notes: list[str]) -> dict[str, str]:
    # Only backendRequest: it must not exceed request, so the two nginx timeouts
    # cannot both be mapped onto one rule
    timeouts = {}
    if "proxy-read-timeout" in annotations:
        duration, ok = parse_duration(annotations["proxy-read-timeout"])
        if ok:
            timeouts["backendRequest"] = duration
        else:
            notes.append(
                f"NOTE: proxy-read-timeout {annotations['proxy-read-timeout']!r} is not a duration; "
                "timeouts left at the Gateway default"
            )
    if "proxy-connect-timeout" in annotations:
        notes.append(
            "NOTE: proxy-connect-timeout is not set on this HTTPRoute; it is carried as "
            "timeout.tcp.connectTimeout in the route's BackendTrafficPolicy"
        )
    return timeouts


def _redirect_filter(url: str, status: int) -> dict[str, Any] | None:
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        return None
    redirect: dict[str, Any] = {"scheme": parts.scheme, "hostname": parts.hostname}
    if parts.port:
        redirect["port"] = parts.port
    if parts.path:
        redirect["path"] = {"type": "ReplaceFullPath", "replaceFullPath": parts.path}
    redirect["statusCode"] = status
    return {"type": "RequestRedirect", "requestRedirect": redirect}


def _explicit_redirect_rules(route: Route, notes: list[str]) -> list[dict[str, Any]]:
    annotations = route.nginx_annotations
    temporal = annotations.get("temporal-redirect", "").strip()
    permanent = annotations.get("permanent-redirect", "").strip()
    if temporal:
        url, status, key = temporal, 302, "temporal-redirect"
    elif permanent:
        url, status, key = permanent, 301, "permanent-redirect"
        code = annotations.get("permanent-redirect-code", "").strip()
        if code:
            parsed, ok = parse_int(code, 301)
            if ok and parsed in (301, 302):
                status = parsed
            else:
                notes.append(f"NOTE: permanent-redirect-code {code!r} is not 301 or 302; using 301")
    else:
        return []

    redirect = _redirect_filter(url, status)
    if redirect is None:
        notes.append(f"NOTE: {key} {url!r} is not an absolute URL; redirect not generated")
        return []

    rules = [
        {"matches": _matches(p, annotations), "filters": [redirect]} for p in _ordered_paths(route)
    ]
    return rules or [{"filters": [redirect]}]


def _app_root_rule(annotations: Mapping[str, str]) -> dict[str, Any] | None:
    root = annotations.get("app-root", "").strip()
    if not root:
        return None
    if not root.startswith("/"):
        root = f"/{root}"
    return {
        "matches": [{"path": {"type": "Exact", "value": "/"}}],
        "filters": [
            {
                "type": "RequestRedirect",
                "requestRedirect": {
                    "path": {"type": "ReplaceFullPath", "replaceFullPath": root},
                    "statusCode": 302,
                },
            }
        ],
    }


def _www_redirect_note(route: Route, notes: list[str]) -> None:
    if not is_true(route.nginx_annotations, "from-to-www-redirect") or not route.primary_host:
        return
    host = route.primary_host
    counterpart = host[4:] if host.startswith("www.") else f"www.{host}"
    notes.append(f"NOTE: from-to-www-redirect needs an HTTPRoute for {counterpart}, for example:")
    notes.extend(
        [
            "  hostnames: [\"" + counterpart + "\"]",
            "  rules:",
            "  - filters:",
            "    - type: RequestRedirect",
            "      requestRedirect:",
            f"        hostname: {host}",
            "        statusCode: 301",
        ]
    )


def _body_size_note(annotations: Mapping[str, str], notes: list[str]) -> None:
    if "proxy-body-size" not in annotations:
        return
    value = annotations["proxy-body-size"]
    size, ok = parse_size(value)
    if not ok:
        notes.append(f"NOTE: proxy-body-size {value!r} is not an nginx size; no body limit applies")
        return
    if size:
        notes.append(
            f"NOTE: proxy-body-size {value} ({_quantity(size)}) is not enforced; the pinned "
            "Envoy Gateway release has no BackendTrafficPolicy request body limit"
        )


def _quantity(size: int) -> str:
    """
    Format a byte count as a Kubernetes quantity.

    Example:
        >>> _quantity(8 * 1024 * 1024)
        '8Mi'
    """
    for suffix, factor in (("Gi", 1024**3), ("Mi", 1024**2), ("Ki", 1024)):
        if size % factor == 0:
            return f"{size // factor}{suffix}"
    return str(size)


def _yaml_lines(rule: dict[str, Any]) -> list[str]:
    return dump_yaml([rule]).rstrip("\n").split("\n")
