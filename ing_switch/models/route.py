"""Route records consumed by the classifier and the manifest synthesizers.

A Route is one Ingress as the scanner saw it: identity, hosts, ordered path
rules, TLS secrets and annotations. Records are immutable; annotation maps
are exposed as read-only views.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

NGINX_ANNOTATION_PREFIX = "nginx.ingress.kubernetes.io/"


@dataclass(frozen=True)
class PathRule:
    """One host/path pair routed to a backend Service port."""

    host: str = ""
    path: str = ""
    path_type: str = ""
    service_name: str = ""
    service_port: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "path": self.path,
            "pathType": self.path_type,
            "serviceName": self.service_name,
            "servicePort": self.service_port,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PathRule":
        return cls(
            host=str(data.get("host") or ""),
            path=str(data.get("path") or ""),
            path_type=str(data.get("pathType") or data.get("path_type") or ""),
            service_name=str(data.get("serviceName") or data.get("service_name") or ""),
            service_port=int(data.get("servicePort") or data.get("service_port") or 0),
        )


@dataclass(frozen=True)
class Route:
    """
    An Ingress carrying ingress-nginx annotations.

    Attributes:
        namespace: Ingress namespace
        name: Ingress name
        ingress_class: ingressClassName or legacy class annotation value
        hosts: Sorted unique hostnames
        paths: Path rules in manifest order
        tls_enabled: Whether the Ingress declares a tls section
        tls_secrets: TLS secret names in manifest order
        tls_hosts: Hosts each TLS secret covers, keyed by secret name
        annotations: Every annotation on the Ingress
        nginx_annotations: Annotations with the ingress-nginx prefix, prefix stripped
        complexity: Advisory tier (simple, complex, unsupported), display only
    """

    namespace: str
    name: str
    ingress_class: str = ""
    hosts: tuple[str, ...] = ()
    paths: tuple[PathRule, ...] = ()
    tls_enabled: bool = False
    tls_secrets: tuple[str, ...] = ()
    tls_hosts: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    annotations: Mapping[str, str] = field(default_factory=dict)
    nginx_annotations: Mapping[str, str] | None = None
    complexity: str = ""

    def __post_init__(self):
        raw = {str(k): "" if v is None else str(v) for k, v in dict(self.annotations).items()}
        if self.nginx_annotations is None:
            nginx = filter_nginx_annotations(raw)
        else:
            nginx = {str(k): "" if v is None else str(v) for k, v in self.nginx_annotations.items()}

        object.__setattr__(self, "hosts", tuple(sorted(set(self.hosts))))
        object.__setattr__(self, "paths", tuple(self.paths))
        object.__setattr__(self, "tls_secrets", tuple(self.tls_secrets))
        object.__setattr__(
            self,
            "tls_hosts",
            MappingProxyType({str(k): tuple(v) for k, v in dict(self.tls_hosts).items()}),
        )
        object.__setattr__(self, "annotations", MappingProxyType(raw))
        object.__setattr__(self, "nginx_annotations", MappingProxyType(nginx))
        if not self.complexity:
            object.__setattr__(self, "complexity", classify_complexity(nginx))

    @property
    def key(self) -> tuple[str, str]:
        """Sort key: (namespace, name)."""
        return (self.namespace, self.name)

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def primary_host(self) -> str:
        """First hostname in sorted order, or an empty string for host-less routes."""
        return self.hosts[0] if self.hosts else ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the scanner's JSON field names."""
        return {
            "namespace": self.namespace,
            "name": self.name,
            "ingressClass": self.ingress_class,
            "hosts": list(self.hosts),
            "paths": [p.to_dict() for p in self.paths],
            "tlsEnabled": self.tls_enabled,
            "tlsSecrets": list(self.tls_secrets),
            "tlsHosts": {k: list(v) for k, v in self.tls_hosts.items()},
            "annotations": dict(self.annotations),
            "nginxAnnotations": dict(self.nginx_annotations),
            "complexity": self.complexity,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Route":
        """Build a Route from a scanner route record."""
        nginx = data.get("nginxAnnotations", data.get("nginx_annotations"))
        return cls(
            namespace=str(data.get("namespace") or "default"),
            name=str(data["name"]),
            ingress_class=str(data.get("ingressClass") or data.get("ingress_class") or ""),
            hosts=tuple(data.get("hosts") or ()),
            paths=tuple(PathRule.from_dict(p) for p in data.get("paths") or ()),
            tls_enabled=bool(data.get("tlsEnabled", data.get("tls_enabled", False))),
            tls_secrets=tuple(data.get("tlsSecrets") or data.get("tls_secrets") or ()),
            tls_hosts=dict(data.get("tlsHosts") or data.get("tls_hosts") or {}),
            annotations=dict(data.get("annotations") or {}),
            nginx_annotations=dict(nginx) if nginx is not None else None,
            complexity=str(data.get("complexity") or ""),
        )


def filter_nginx_annotations(annotations: Mapping[str, str]) -> dict[str, str]:
    """
    Keep only ingress-nginx annotations and strip their prefix.

    Example:
        >>> filter_nginx_annotations({
        ...     "nginx.ingress.kubernetes.io/ssl-redirect": "true",
        ...     "kubernetes.io/ingress.class": "nginx",
        ... })
        {'ssl-redirect': 'true'}
    """
    return {
        key[len(NGINX_ANNOTATION_PREFIX) :]: value
        for key, value in annotations.items()
        if key.startswith(NGINX_ANNOTATION_PREFIX)
    }


# Annotation sets driving the advisory complexity tier
_UNSUPPORTED_TIER = frozenset(
    {
        "proxy-body-size",
        "client-body-buffer-size",
        "snippets",
        "lua-resty-waf",
        "modsecurity-snippet",
    }
)
_COMPLEX_TIER = frozenset(
    {
        "auth-url",
        "auth-response-headers",
        "canary",
        "canary-weight",
        "limit-rps",
        "limit-connections",
        "rewrite-target",
        "use-regex",
        "affinity",
        "whitelist-source-range",
        "denylist-source-range",
        "proxy-read-timeout",
        "proxy-connect-timeout",
    }
)


def classify_complexity(nginx_annotations: Mapping[str, str]) -> str:
    """
    Assign the advisory complexity tier for display.

    The tier never feeds classification or synthesis.

    Returns:
        "unsupported", "complex" or "simple"
    """
    keys = set(nginx_annotations)
    if keys & _UNSUPPORTED_TIER:
        return "unsupported"
    if keys & _COMPLEX_TIER:
        return "complex"
    return "simple"
