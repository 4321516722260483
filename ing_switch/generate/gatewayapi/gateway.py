"""
Shared Gateway infrastructure: GatewayClass, Gateway listeners and ReferenceGrants.
"""

from collections import defaultdict
from typing import Any

from ing_switch.generate.artifact import Manifest
from ing_switch.generate.context import FALLBACK_HTTPS_SECTION, HTTP_SECTION, FleetContext

GATEWAY_API_VERSION = "gateway.networking.k8s.io/v1"
REFERENCE_GRANT_API_VERSION = "gateway.networking.k8s.io/v1beta1"
PLACEHOLDER_TLS_SECRET = "replace-with-tls-secret"

_ALL_NAMESPACES = {"namespaces": {"from": "All"}}


def build_gateway_class(context: FleetContext) -> Manifest:
    settings = context.settings.gateway
    return Manifest(
        body={
            "apiVersion": GATEWAY_API_VERSION,
            "kind": "GatewayClass",
            "metadata": {"name": settings.class_name},
            "spec": {"controllerName": settings.controller_name},
        }
    )


def build_gateway(context: FleetContext) -> Manifest:
    """
    Build the shared Gateway.

    Listeners: ``http`` on port 80, one ``https-N`` listener per TLS hostname
    in section order, and the fallback ``https`` listener when some
    redirecting route has no TLS hostname of its own (or no route has TLS).
    """
    settings = context.settings.gateway
    listeners: list[dict[str, Any]] = [
        {"name": HTTP_SECTION, "protocol": "HTTP", "port": 80, "allowedRoutes": _ALL_NAMESPACES}
    ]
    for spec in context.listeners:
        listeners.append(
            {
                "name": spec.section,
                "protocol": "HTTPS",
                "port": 443,
                "hostname": spec.hostname,
                "tls": {
                    "mode": "Terminate",
                    "certificateRefs": [
                        {"kind": "Secret", "name": ref.name, "namespace": ref.namespace}
                        for ref in spec.certificate_refs
                    ],
                },
                "allowedRoutes": _ALL_NAMESPACES,
            }
        )

    comments = []
    if context.needs_fallback_listener or not context.listeners:
        listeners.append(
            {
                "name": FALLBACK_HTTPS_SECTION,
                "protocol": "HTTPS",
                "port": 443,
                "tls": {
                    "mode": "Terminate",
                    "certificateRefs": [{"kind": "Secret", "name": PLACEHOLDER_TLS_SECRET}],
                },
                "allowedRoutes": _ALL_NAMESPACES,
            }
        )
        comments.append(
            f"NOTE: listener '{FALLBACK_HTTPS_SECTION}' uses the placeholder certificate "
            f"'{PLACEHOLDER_TLS_SECRET}'; create that Secret in namespace {settings.namespace}"
        )
        comments.append("or point the listener at an existing certificate")

    return Manifest(
        body={
            "apiVersion": GATEWAY_API_VERSION,
            "kind": "Gateway",
            "metadata": {"name": settings.name, "namespace": settings.namespace},
            "spec": {"gatewayClassName": settings.class_name, "listeners": listeners},
        },
        comments=tuple(comments),
    )


def build_reference_grants(context: FleetContext) -> list[Manifest]:
    """
    ReferenceGrants letting the Gateway read certificates in other namespaces.

    Returns:
        One ReferenceGrant per secret namespace other than the Gateway's, sorted by namespace
    """
    settings = context.settings.gateway
    secrets_by_namespace: dict[str, list[str]] = defaultdict(list)
    for spec in context.listeners:
        for ref in spec.certificate_refs:
            if ref.namespace == settings.namespace:
                continue
            if ref.name not in secrets_by_namespace[ref.namespace]:
                secrets_by_namespace[ref.namespace].append(ref.name)

    grants = []
    for namespace in sorted(secrets_by_namespace):
        targets = [
            {"group": "", "kind": "Secret", "name": name}
            for name in sorted(secrets_by_namespace[namespace])
        ]
        grants.append(
            Manifest(
                body={
                    "apiVersion": REFERENCE_GRANT_API_VERSION,
                    "kind": "ReferenceGrant",
                    "metadata": {"name": f"{settings.name}-certificates", "namespace": namespace},
                    "spec": {
                        "from": [
                            {
                                "group": "gateway.networking.k8s.io",
                                "kind": "Gateway",
                                "namespace": settings.namespace,
                            }
                        ],
                        "to": targets,
                    },
                },
                comments=(f"Certificates in {namespace} used by Gateway {settings.namespace}/{settings.name}",),
            )
        )
    return grants
