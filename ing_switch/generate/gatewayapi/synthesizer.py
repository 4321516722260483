"""
Gateway API (Envoy Gateway) synthesizer.

Replaces every Ingress with HTTPRoutes bound to one shared Gateway. Artifact
layout, in apply order:

    01-install-gateway-api-crds/  CRD install script
    02-install-envoy-gateway/     Helm install script and values
    03-gateway/                   GatewayClass, Gateway, ReferenceGrants
    04-httproutes/                HTTPRoutes per route
    05-policies/                  Envoy Gateway policies per route
    06-verify.sh                  Per-host smoke test through the Gateway
    07-cleanup/                   NGINX removal
"""

import logging

from ing_switch.generate.artifact import ArtifactCategory, GeneratedArtifact, render_manifests
from ing_switch.generate.context import FleetContext
from ing_switch.generate.gatewayapi.gateway import (
    build_gateway,
    build_gateway_class,
    build_reference_grants,
)
from ing_switch.generate.gatewayapi.httproute import build_httproutes
from ing_switch.generate.gatewayapi.policies import plan_policies
from ing_switch.models.route import Route
from ing_switch.targets import Target
from ing_switch.util.templates import TemplateLoader, default_loader

logger = logging.getLogger(__name__)

GATEWAY_API_VERSION = "v1.2.0"
ENVOY_GATEWAY_VERSION = "v1.2.0"


class GatewayAPISynthesizer:
    """Generates Gateway, HTTPRoute and Envoy Gateway policy artifacts."""

    target = Target.GATEWAY_API

    def __init__(self, templates: TemplateLoader | None = None):
        self.templates = templates or default_loader()

    def synthesize_route(self, route: Route, context: FleetContext) -> list[GeneratedArtifact]:
        """
        Generate the artifacts for one route.

        Returns:
            The HTTPRoute file followed by one file per policy
        """
        stem = context.file_stem(route)
        routes = build_httproutes(route, context)
        artifacts = [
            GeneratedArtifact(
                relative_path=f"04-httproutes/{stem}.yaml",
                content=render_manifests(routes, header=[f"HTTPRoutes for {route.qualified_name}"]),
                description=f"HTTPRoute for {route.qualified_name}",
                category=ArtifactCategory.HTTPROUTE,
            )
        ]

        for plan in plan_policies(route):
            kind = plan.manifest.body["kind"]
            artifacts.append(
                GeneratedArtifact(
                    relative_path=f"05-policies/{stem}-{plan.purpose}.yaml",
                    content=render_manifests([plan.manifest]),
                    description=f"{kind} {plan.purpose} for {route.qualified_name}",
                    category=ArtifactCategory.POLICY,
                )
            )
        logger.debug(f"{route.qualified_name}: {len(routes)} HTTPRoutes, {len(artifacts) - 1} policies")
        return artifacts

    def synthesize_fleet(self, context: FleetContext) -> list[GeneratedArtifact]:
        """Generate install, gateway, per-route, verify and cleanup artifacts."""
        gateway = context.settings.gateway
        per_route = [self.synthesize_route(route, context) for route in context.routes]
        needs_rate_limit = any(
            a.relative_path.endswith("-ratelimit.yaml") for artifacts in per_route for a in artifacts
        )

        artifacts = [
            self._render(
                "01-install-gateway-api-crds/install.sh",
                "gatewayapi/install-crds.sh.j2",
                "Install Gateway API CRDs",
                ArtifactCategory.INSTALL,
                gateway_api_version=GATEWAY_API_VERSION,
            ),
            self._render(
                "02-install-envoy-gateway/helm-install.sh",
                "gatewayapi/helm-install.sh.j2",
                "Helm install script for Envoy Gateway",
                ArtifactCategory.INSTALL,
                envoy_gateway_version=ENVOY_GATEWAY_VERSION,
            ),
            self._render(
                "02-install-envoy-gateway/values.yaml",
                "gatewayapi/values.yaml.j2",
                "Envoy Gateway Helm values",
                ArtifactCategory.INSTALL,
                controller_name=gateway.controller_name,
                needs_rate_limit=needs_rate_limit,
            ),
            GeneratedArtifact(
                relative_path="03-gateway/gatewayclass.yaml",
                content=render_manifests([build_gateway_class(context)]),
                description="GatewayClass using the Envoy Gateway controller",
                category=ArtifactCategory.GATEWAY,
            ),
            GeneratedArtifact(
                relative_path="03-gateway/gateway.yaml",
                content=render_manifests([build_gateway(context)]),
                description="Gateway with HTTP and HTTPS listeners",
                category=ArtifactCategory.GATEWAY,
            ),
        ]

        grants = build_reference_grants(context)
        if grants:
            artifacts.append(
                GeneratedArtifact(
                    relative_path="03-gateway/reference-grants.yaml",
                    content=render_manifests(grants),
                    description="ReferenceGrants for certificates outside the Gateway namespace",
                    category=ArtifactCategory.GATEWAY,
                )
            )

        # All HTTPRoutes before any policy, so a sorted listing is the apply order
        for category in (ArtifactCategory.HTTPROUTE, ArtifactCategory.POLICY):
            for route_artifacts in per_route:
                artifacts.extend(a for a in route_artifacts if a.category is category)

        checks = [
            {"route": route.qualified_name, "host": host}
            for route in context.routes
            for host in route.hosts
        ]
        artifacts += [
            self._render(
                "06-verify.sh",
                "gatewayapi/verify.sh.j2",
                "Verification script for Gateway API routes",
                ArtifactCategory.VERIFY,
                gateway=gateway,
                checks=checks,
            ),
            self._render(
                "07-cleanup/remove-nginx.sh",
                "gatewayapi/remove-nginx.sh.j2",
                "Remove NGINX after Gateway API migration",
                ArtifactCategory.CLEANUP,
            ),
        ]
        return artifacts

    def _render(
        self, path: str, template: str, description: str, category: ArtifactCategory, **context
    ) -> GeneratedArtifact:
        return GeneratedArtifact(
            relative_path=path,
            content=self.templates.render(template, **context),
            description=description,
            category=category,
        )
