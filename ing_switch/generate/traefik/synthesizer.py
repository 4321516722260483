"""
Traefik v3 synthesizer.

Keeps every Ingress and attaches Traefik Middlewares to it. Artifact layout,
in apply order:

    01-install-traefik/        Helm install script and values
    02-middlewares/            Middlewares and ServersTransports per route
    03-ingresses/              Updated Ingress per route
    04-verify.sh               Per-host smoke test through Traefik
    05-dns-migration.md        DNS cut-over guide
    06-cleanup/                IngressClass preservation and NGINX removal
"""

import logging

from ing_switch.generate.artifact import ArtifactCategory, GeneratedArtifact, render_manifests
from ing_switch.generate.context import FleetContext
from ing_switch.generate.traefik.ingress import build_ingress
from ing_switch.generate.traefik.middleware import plan_middlewares
from ing_switch.generate.traefik.transport import plan_transport
from ing_switch.models.route import Route
from ing_switch.targets import Target
from ing_switch.util.templates import TemplateLoader, default_loader

logger = logging.getLogger(__name__)


class TraefikSynthesizer:
    """Generates Traefik Middleware, ServersTransport and Ingress artifacts."""

    target = Target.TRAEFIK

    def __init__(self, templates: TemplateLoader | None = None):
        self.templates = templates or default_loader()

    def synthesize_route(self, route: Route, context: FleetContext) -> list[GeneratedArtifact]:
        """
        Generate the artifacts for one route.

        Returns:
            Middleware file (when any Middleware is needed), ServersTransport
            file (when backend settings are set) and the updated Ingress
        """
        stem = context.file_stem(route)
        middlewares = plan_middlewares(route)
        transport = plan_transport(route)
        artifacts = []

        if middlewares:
            artifacts.append(
                GeneratedArtifact(
                    relative_path=f"02-middlewares/{stem}-middlewares.yaml",
                    content=render_manifests(
                        (plan.manifest(route.namespace) for plan in middlewares),
                        header=[f"Traefik Middlewares for {route.qualified_name}"],
                    ),
                    description=f"Traefik Middlewares for {route.qualified_name}",
                    category=ArtifactCategory.MIDDLEWARE,
                )
            )

        if transport is not None:
            artifacts.append(
                GeneratedArtifact(
                    relative_path=f"02-middlewares/{stem}-serverstransport.yaml",
                    content=render_manifests(
                        [transport.manifest(route.namespace)],
                        header=[
                            f"Backend connection settings for {route.qualified_name}",
                            "Referenced from the backend Service, see the Ingress notes",
                        ],
                    ),
                    description=f"Traefik ServersTransport for {route.qualified_name}",
                    category=ArtifactCategory.MIDDLEWARE,
                )
            )

        artifacts.append(
            GeneratedArtifact(
                relative_path=f"03-ingresses/{stem}.yaml",
                content=render_manifests([build_ingress(route, middlewares, transport)]),
                description=f"Updated Ingress for {route.qualified_name} with Traefik Middlewares",
                category=ArtifactCategory.INGRESS,
            )
        )
        logger.debug(f"{route.qualified_name}: {len(middlewares)} middlewares")
        return artifacts

    def synthesize_fleet(self, context: FleetContext) -> list[GeneratedArtifact]:
        """Generate install, per-route, verify, DNS and cleanup artifacts."""
        namespace = context.settings.traefik.namespace
        artifacts = [
            self._render(
                "01-install-traefik/helm-install.sh",
                "traefik/helm-install.sh.j2",
                "Helm install script for Traefik",
                ArtifactCategory.INSTALL,
                namespace=namespace,
            ),
            self._render(
                "01-install-traefik/values.yaml",
                "traefik/values.yaml.j2",
                "Traefik Helm values",
                ArtifactCategory.INSTALL,
                namespace=namespace,
            ),
        ]

        per_route = [self.synthesize_route(route, context) for route in context.routes]
        # All middlewares before any Ingress, so a sorted listing is the apply order
        for category in (ArtifactCategory.MIDDLEWARE, ArtifactCategory.INGRESS):
            for route_artifacts in per_route:
                artifacts.extend(a for a in route_artifacts if a.category is category)

        checks = [
            {"route": route.qualified_name, "host": host}
            for route in context.routes
            for host in route.hosts
        ]
        hosts = sorted({host for route in context.routes for host in route.hosts})
        artifacts += [
            self._render(
                "04-verify.sh",
                "traefik/verify.sh.j2",
                "Verification script for Traefik routing",
                ArtifactCategory.VERIFY,
                namespace=namespace,
                checks=checks,
            ),
            self._render(
                "05-dns-migration.md",
                "traefik/dns-migration.md.j2",
                "Step-by-step DNS migration guide",
                ArtifactCategory.GUIDE,
                namespace=namespace,
                hosts=hosts,
            ),
            self._render(
                "06-cleanup/01-preserve-ingressclass.yaml",
                "traefik/preserve-ingressclass.yaml.j2",
                "Preserve the nginx IngressClass before removing NGINX",
                ArtifactCategory.CLEANUP,
            ),
            self._render(
                "06-cleanup/02-remove-nginx.sh",
                "traefik/remove-nginx.sh.j2",
                "Remove NGINX after migration is verified",
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
