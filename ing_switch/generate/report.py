"""
Migration report artifact (``00-migration-report.md``).
"""

from typing import Sequence

from ing_switch.analyze.classify import FleetCompatibilityReport
from ing_switch.analyze.report import build_route_issues
from ing_switch.generate.artifact import ArtifactCategory, GeneratedArtifact
from ing_switch.targets import Target
from ing_switch.util.templates import TemplateLoader

REPORT_PATH = "00-migration-report.md"

NEXT_STEPS = {
    Target.TRAEFIK: [
        "Run the scripts in 01-install-traefik/ to install Traefik next to NGINX.",
        "Apply 02-middlewares/, then 03-ingresses/.",
        "Run 04-verify.sh and compare every host with NGINX.",
        "Follow 05-dns-migration.md to move traffic.",
        "After DNS has settled, run the files in 06-cleanup/.",
    ],
    Target.GATEWAY_API: [
        "Run 01-install-gateway-api-crds/install.sh, then 02-install-envoy-gateway/.",
        "Apply 03-gateway/ and wait for the Gateway to be Programmed.",
        "Apply 04-httproutes/, then 05-policies/.",
        "Run 06-verify.sh and compare every host with NGINX.",
        "Move DNS to the Gateway address, then run 07-cleanup/remove-nginx.sh.",
    ],
}


def build_migration_report(
    report: FleetCompatibilityReport,
    artifacts: Sequence[GeneratedArtifact],
    templates: TemplateLoader,
) -> GeneratedArtifact:
    """
    Render the migration report for a synthesis run.

    Args:
        report: Fleet classification of the same routes
        artifacts: The other artifacts of the run, in apply order
        templates: Loader used for the report template

    Returns:
        The report artifact
    """
    routes = [
        {
            "qualified_name": route.qualified_name,
            "overall_status": route.overall_status,
            "issues": build_route_issues(route, report.target),
        }
        for route in sorted(report.routes, key=lambda r: (r.namespace, r.name))
    ]
    content = templates.render(
        "report/migration-report.md.j2",
        target=report.target,
        summary=report.summary,
        routes=routes,
        artifacts=artifacts,
        next_steps=NEXT_STEPS[report.target],
    )
    return GeneratedArtifact(
        relative_path=REPORT_PATH,
        content=content,
        description="Migration summary and apply order",
        category=ArtifactCategory.GUIDE,
    )
