"""
Load route records from exported Ingress manifests or saved route files.

Accepted inputs (YAML or JSON, single or multi-document):
- ``kubectl get ingress -A -o yaml`` output (a v1 List of Ingress objects)
- individual networking.k8s.io/v1 Ingress manifests
- saved route records: a list of records, or a mapping with an ``ingresses`` list
"""

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from ing_switch.exceptions import RouteInputError
from ing_switch.models.route import PathRule, Route

logger = logging.getLogger(__name__)

LEGACY_CLASS_ANNOTATION = "kubernetes.io/ingress.class"


def parse_ingress(manifest: Mapping[str, Any]) -> Route:
    """
    Convert one Kubernetes Ingress manifest into a Route.

    Args:
        manifest: Ingress object as a dict

    Returns:
        Route with hosts sorted, paths in manifest order and nginx annotations filtered

    Example:
        >>> route = parse_ingress({
        ...     "kind": "Ingress",
        ...     "metadata": {"name": "web", "namespace": "shop"},
        ...     "spec": {"rules": [{"host": "shop.example.com"}]},
        ... })
        >>> route.hosts
        ('shop.example.com',)
    """
    metadata = manifest.get("metadata") or {}
    spec = manifest.get("spec") or {}
    annotations = {str(k): str(v) for k, v in (metadata.get("annotations") or {}).items()}

    if "name" not in metadata:
        raise ValueError("Ingress manifest has no metadata.name")

    ingress_class = spec.get("ingressClassName") or annotations.get(LEGACY_CLASS_ANNOTATION, "")

    tls_entries = spec.get("tls") or []
    tls_secrets = [t["secretName"] for t in tls_entries if t.get("secretName")]
    tls_hosts = {
        t["secretName"]: tuple(t["hosts"])
        for t in tls_entries
        if t.get("secretName") and t.get("hosts")
    }

    hosts = set()
    paths = []
    for rule in spec.get("rules") or []:
        host = rule.get("host") or ""
        if host:
            hosts.add(host)
        http = rule.get("http")
        if not http:
            continue
        for path in http.get("paths") or []:
            service = (path.get("backend") or {}).get("service") or {}
            port = (service.get("port") or {}).get("number") or 0
            paths.append(
                PathRule(
                    host=host,
                    path=path.get("path") or "",
                    path_type=path.get("pathType") or "",
                    service_name=service.get("name") or "",
                    service_port=int(port),
                )
            )

    return Route(
        namespace=metadata.get("namespace") or "default",
        name=metadata["name"],
        ingress_class=ingress_class,
        hosts=tuple(hosts),
        paths=tuple(paths),
        tls_enabled=bool(tls_entries),
        tls_secrets=tuple(tls_secrets),
        tls_hosts=tls_hosts,
        annotations=annotations,
    )


def _iter_records(document: Any) -> Iterable[Route]:
    if document is None:
        return
    if isinstance(document, list):
        for item in document:
            yield from _iter_records(item)
        return
    if not isinstance(document, Mapping):
        raise ValueError(f"expected a mapping or list, got {type(document).__name__}")

    kind = document.get("kind")
    if kind == "Ingress":
        yield parse_ingress(document)
    elif kind in ("List", "IngressList"):
        for item in document.get("items") or []:
            if item.get("kind", "Ingress") != "Ingress":
                logger.debug(f"Skipping {item.get('kind')} in list")
                continue
            yield parse_ingress(item)
    elif "ingresses" in document:
        # Saved scan result
        for record in document.get("ingresses") or []:
            yield Route.from_dict(record)
    elif "name" in document:
        yield Route.from_dict(document)
    elif kind:
        logger.debug(f"Skipping non-Ingress document of kind {kind}")
    else:
        raise ValueError("document is neither an Ingress, a List nor a route record")


def load_routes_from_text(text: str, source: str = "<input>") -> list[Route]:
    """
    Parse route records from YAML or JSON text.

    Returns:
        Routes sorted by (namespace, name)

    Raises:
        RouteInputError: If the text is not valid YAML/JSON or a document is malformed
    """
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise RouteInputError(source, f"invalid YAML/JSON: {e}") from e

    routes: list[Route] = []
    try:
        for document in documents:
            routes.extend(_iter_records(document))
    except (KeyError, TypeError, ValueError) as e:
        raise RouteInputError(source, str(e)) from e

    seen = set()
    for route in routes:
        if route.key in seen:
            raise RouteInputError(source, f"duplicate route {route.qualified_name}")
        seen.add(route.key)

    routes.sort(key=lambda r: r.key)
    logger.info(f"Loaded {len(routes)} routes from {source}")
    return routes


def load_routes(path: str | Path) -> list[Route]:
    """
    Load route records from a file.

    Args:
        path: YAML or JSON file

    Returns:
        Routes sorted by (namespace, name)

    Raises:
        RouteInputError: If the file is missing or malformed
    """
    p = Path(path)
    if not p.is_file():
        raise RouteInputError(str(p), "file not found")
    return load_routes_from_text(p.read_text(), source=str(p))
