"""
Generate compatibility reports and remediation issue lists.

This module turns a FleetCompatibilityReport into a human-readable Markdown
report, a machine-readable JSON report and a concise console summary. It also
joins partial and unsupported mappings with the remediation guides from the
knowledge base so each route gets an actionable issue list.
"""

import json
from pathlib import Path
from typing import Any, NamedTuple

from ing_switch.analyze.classify import (
    FleetCompatibilityReport,
    ReadinessStatus,
    RouteCompatibilityReport,
)
from ing_switch.knowledge import MappingStatus, load_knowledge_base
from ing_switch.targets import Target, resolve_target


class RouteIssue(NamedTuple):
    """
    One annotation on one route that needs manual attention.

    Attributes:
        key: Annotation key
        value: Annotation value
        status: PARTIAL or UNSUPPORTED
        target_construct: Target construct label
        what: What the annotation does (guide text, or the mapping note)
        fix: How to reproduce it on the target
        example: Example snippet, if the guide has one
        docs_link: Upstream documentation link
        consequence: What breaks if nothing is done
        issue_url: Upstream tracking issue for unsupported features
        file_category: Artifact category where the fix lands
    """

    key: str
    value: str
    status: MappingStatus
    target_construct: str
    what: str
    fix: str
    example: str = ""
    docs_link: str = ""
    consequence: str = ""
    issue_url: str = ""
    file_category: str = "guide"

    def to_dict(self) -> dict[str, Any]:
        return {
            "annotation": self.key,
            "value": self.value,
            "status": self.status.value,
            "targetResource": self.target_construct,
            "what": self.what,
            "fix": self.fix,
            "example": self.example,
            "docsLink": self.docs_link,
            "consequence": self.consequence,
            "issueUrl": self.issue_url,
            "fileCategory": self.file_category,
        }


def file_category_for(target: Target, construct: str) -> str:
    """
    Map a target construct label to the artifact category that implements it.

    Example:
        >>> file_category_for(Target.TRAEFIK, "Middleware (RateLimit)")
        'middleware'
        >>> file_category_for(Target.GATEWAY_API, "BackendTrafficPolicy (RateLimit)")
        'policy'
    """
    if not construct:
        return "guide"
    if target is Target.TRAEFIK:
        if any(word in construct for word in ("Middleware", "ServersTransport", "TraefikService")):
            return "middleware"
        return "ingress"
    if "Policy" in construct:
        return "policy"
    if "Route" in construct:
        return "httproute"
    return "gateway"


def build_route_issues(
    report: RouteCompatibilityReport, target: "Target | str"
) -> list[RouteIssue]:
    """
    Build the remediation issue list for one route.

    Supported mappings are skipped. Mappings without a dedicated guide fall
    back to their knowledge base note.

    Args:
        report: Classified route
        target: Target the route was classified against

    Returns:
        Issues in the report's mapping order (unsupported first)
    """
    resolved = resolve_target(target)
    kb = load_knowledge_base()
    issues = []
    for mapping in report.mappings:
        if mapping.status is MappingStatus.SUPPORTED:
            continue
        guide = kb.guide(resolved, mapping.key)
        definition = kb.describe(mapping.key)
        if guide:
            what, fix = guide.what, guide.fix
        else:
            what = definition.description if definition else mapping.key
            fix = mapping.note
        issues.append(
            RouteIssue(
                key=mapping.key,
                value=mapping.value,
                status=mapping.status,
                target_construct=mapping.target_construct,
                what=what,
                fix=fix,
                example=guide.example if guide else "",
                docs_link=guide.docs_link if guide else "",
                consequence=guide.consequence if guide else "",
                issue_url=guide.issue_url if guide else "",
                file_category=file_category_for(resolved, mapping.target_construct),
            )
        )
    return issues


def generate_compatibility_reports(report: FleetCompatibilityReport, output_dir: Path) -> None:
    """
    Write compatibility reports in both Markdown and JSON formats.

    Creates two files in the output directory:
    - compatibility.md: Human-readable report with remediation guidance
    - compatibility.json: Machine-readable report for tooling integration

    Args:
        report: Fleet classification result
        output_dir: Directory to write report files
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    _write_markdown_report(output_dir / "compatibility.md", report)
    _write_json_report(output_dir / "compatibility.json", report)


def render_markdown_report(report: FleetCompatibilityReport) -> str:
    """Render the fleet report as Markdown."""
    summary = report.summary
    lines = [
        f"# Compatibility Report: {report.target.display_name}",
        "",
        "## Summary",
        "",
        f"**Routes analyzed**: {summary['total']}",
        "",
        "| Readiness | Routes |",
        "|-----------|--------|",
        f"| {ReadinessStatus.READY.emoji} ready | {summary['fullyCompatible']} |",
        f"| {ReadinessStatus.WORKAROUND.emoji} workaround | {summary['needsWorkaround']} |",
        f"| {ReadinessStatus.BREAKING.emoji} breaking | {summary['hasUnsupported']} |",
        "",
    ]

    if summary["hasUnsupported"]:
        lines += [
            "### ⚠️ Action Required",
            "",
            "Some routes use annotations with **no equivalent** on the target. "
            "Their behavior is lost unless it is rebuilt by hand.",
            "",
        ]
    elif summary["needsWorkaround"]:
        lines += [
            "### ℹ️ Manual Follow-up Needed",
            "",
            "All annotations have an equivalent, but some need manual review after generation.",
            "",
        ]
    else:
        lines += ["### ✅ Ready to Migrate", "", "Every annotation maps directly.", ""]

    lines += ["## Routes", ""]
    for route in report.routes:
        status = route.overall_status
        lines.append(f"### {status.emoji} {route.qualified_name} ({status.value})")
        lines.append("")
        if not route.mappings:
            lines += ["No ingress-nginx annotations.", ""]
            continue

        lines += [
            "| Annotation | Value | Status | Target | Note |",
            "|------------|-------|--------|--------|------|",
        ]
        for m in route.mappings:
            value = m.value.replace("|", "\\|").replace("\n", " ")
            lines.append(
                f"| `{m.key}` | `{value}` | {m.status.emoji} {m.status.value} "
                f"| {m.target_construct or '-'} | {m.note} |"
            )
        lines.append("")

        issues = build_route_issues(route, report.target)
        if issues:
            lines += ["**Remediation**", ""]
            for issue in issues:
                lines.append(f"- **{issue.key}**: {issue.fix}")
                if issue.docs_link:
                    lines.append(f"  Docs: {issue.docs_link}")
                if issue.consequence:
                    lines.append(f"  If skipped: {issue.consequence}")
            lines.append("")

    return "\n".join(lines)


def _write_markdown_report(output_file: Path, report: FleetCompatibilityReport) -> None:
    """Write human-readable Markdown compatibility report."""
    output_file.write_text(render_markdown_report(report))


def _write_json_report(output_file: Path, report: FleetCompatibilityReport) -> None:
    """Write machine-readable JSON compatibility report."""
    data = report.to_dict()
    for route_data, route in zip(data["ingresses"], report.routes):
        route_data["issues"] = [i.to_dict() for i in build_route_issues(route, report.target)]

    with open(output_file, "w") as f:
        json.dump(data, f, indent=2)


def print_compatibility_summary(report: FleetCompatibilityReport, console=None) -> None:
    """
    Print a concise compatibility summary to console.

    Args:
        report: Fleet classification result
        console: Optional rich Console (a new one is created if omitted)
    """
    from rich.console import Console
    from rich.table import Table

    console = console or Console()
    console.print(f"\n[bold]Compatibility with {report.target.display_name}[/bold]\n")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Route", style="dim")
    table.add_column("Supported", justify="right")
    table.add_column("Partial", justify="right")
    table.add_column("Unsupported", justify="right")
    table.add_column("Status")

    for route in report.routes:
        status = route.overall_status
        table.add_row(
            route.qualified_name,
            str(route.count(MappingStatus.SUPPORTED)),
            str(route.count(MappingStatus.PARTIAL)),
            str(route.count(MappingStatus.UNSUPPORTED)),
            f"[{status.style}]{status.emoji} {status.value}[/{status.style}]",
        )

    console.print(table)

    summary = report.summary
    console.print(
        f"\n[bold]Total:[/bold] {summary['total']}  "
        f"[green]ready {summary['fullyCompatible']}[/green]  "
        f"[yellow]workaround {summary['needsWorkaround']}[/yellow]  "
        f"[red]breaking {summary['hasUnsupported']}[/red]\n"
    )
    if summary["hasUnsupported"]:
        console.print(
            "[yellow]⚠️ Some routes use annotations with no equivalent on this target.[/yellow]"
        )
