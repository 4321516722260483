"""
CLI entry point for ing-switch.
"""

import json
import logging
from functools import wraps
from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.table import Table

from ing_switch.exceptions import FactsInputError, IngSwitchError, format_error_for_cli
from ing_switch.targets import Target, resolve_target
from ing_switch.util.logging import configure_logging
from ing_switch.workspace import Workspace, find_workspace

app = typer.Typer(
    name="ing-switch",
    help="Migrate ingress-nginx annotation routing to Traefik or Gateway API",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("table", "json")


def handle_errors(func):
    """Decorator to handle exceptions in CLI commands with nice formatting."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except IngSwitchError as e:
            console.print(format_error_for_cli(e))
            raise typer.Exit(1)
        except Exception as e:
            logger.debug("Unexpected error", exc_info=True)
            console.print(f"[red]Unexpected error:[/red] {str(e)}")
            console.print("\n[yellow]This may be a bug. Re-run with --verbose for details.[/yellow]")
            raise typer.Exit(1)

    return wrapper


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Translate ingress-nginx annotations into Traefik or Gateway API manifests."""
    level = "WARNING"
    workspace = find_workspace()
    if workspace:
        try:
            level = workspace.load_config().get("logging", {}).get("level", level)
        except IngSwitchError as e:
            # Reported again by the command that needs the config
            logger.debug(f"Ignoring workspace logging level: {e.message}")
    configure_logging("DEBUG" if verbose else level)


def _target(target: str | None) -> Target:
    """Resolve --target, falling back to the workspace configuration."""
    if target is None:
        workspace = find_workspace()
        if workspace is None:
            console.print("[red]Error:[/red] --target is required outside a workspace")
            raise typer.Exit(1)
        target = workspace.load_config().get("target", "gateway-api")
    return resolve_target(target)


def _check_output_format(output: str) -> None:
    if output not in OUTPUT_FORMATS:
        console.print(
            f"[red]Error: Unsupported output '{output}'. Use one of: {', '.join(OUTPUT_FORMATS)}[/red]"
        )
        raise typer.Exit(1)


@app.command()
def init(
    workspace_dir: str = typer.Argument(..., help="Workspace directory to initialize"),
):
    """Initialize a new ing-switch workspace."""
    console.print(f"[bold blue]Initializing workspace:[/bold blue] {workspace_dir}")

    workspace = Workspace(Path(workspace_dir))
    workspace.initialize()

    console.print(f"[green]✓ Created directory structure in {workspace_dir}[/green]")
    console.print("[green]✓ Wrote configuration to ing-switch.yaml[/green]")

    console.print("\n[dim]Next steps:[/dim]")
    console.print(f"  cd {workspace_dir}")
    console.print("  kubectl get ingress -A -o yaml > input/ingresses.yaml")
    console.print("  ing-switch analyze --routes input/ingresses.yaml")


@app.command()
@handle_errors
def analyze(
    routes: Path = typer.Option(..., "--routes", help="Exported Ingresses or route records"),
    target: str = typer.Option(None, "--target", help="Target (traefik|gateway-api)"),
    output: str = typer.Option("table", "--output", help="Output format: table, json"),
    report_dir: Path = typer.Option(
        None, "--report-dir", help="Also write compatibility.md and compatibility.json here"
    ),
):
    """
    Classify every ingress-nginx annotation against a target controller.

    Each annotation is supported, partial (needs manual follow-up) or
    unsupported (no equivalent). Runs offline.
    """
    _check_output_format(output)
    resolved = _target(target)

    from ing_switch.analyze.classify import classify_fleet
    from ing_switch.analyze.report import generate_compatibility_reports, print_compatibility_summary
    from ing_switch.ingest import load_routes

    fleet = classify_fleet(load_routes(routes), resolved)

    if output == "json":
        typer.echo(json.dumps(fleet.to_dict(), indent=2))
    else:
        print_compatibility_summary(fleet, console)

    if report_dir:
        generate_compatibility_reports(fleet, report_dir)
        if output != "json":
            console.print(f"[green]✓ Reports written to {report_dir}/[/green]")
            console.print("  [cyan]• compatibility.md[/cyan] - Remediation guidance")
            console.print("  [cyan]• compatibility.json[/cyan] - Classification data")


@app.command()
@handle_errors
def migrate(
    routes: Path = typer.Option(..., "--routes", help="Exported Ingresses or route records"),
    target: str = typer.Option(None, "--target", help="Target (traefik|gateway-api)"),
    output_dir: Path = typer.Option(
        None, "--output-dir", help="Output directory (default: workspace output/ or ./output)"
    ),
):
    """Generate install scripts, manifests, verification and cleanup files."""
    resolved = _target(target)

    from ing_switch.generate.context import SynthesisSettings
    from ing_switch.generate.generator import synthesize, write_artifacts
    from ing_switch.ingest import load_routes
    from ing_switch.util.templates import TemplateLoader

    workspace = find_workspace()
    settings = workspace.settings() if workspace else SynthesisSettings()
    templates = TemplateLoader(workspace.root) if workspace else None
    if output_dir is None:
        output_dir = workspace.output_dir if workspace else Path("output")

    fleet = load_routes(routes)
    console.print(
        f"[bold blue]Generating {resolved.display_name} artifacts:[/bold blue] "
        f"{len(fleet)} route(s)"
    )

    artifacts = synthesize(fleet, resolved, settings=settings, templates=templates)
    write_artifacts(artifacts, output_dir)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("File")
    table.add_column("Category", style="dim")
    table.add_column("Description")
    for artifact in artifacts:
        table.add_row(artifact.relative_path, artifact.category.value, artifact.description)
    console.print(table)

    console.print(f"\n[green]✓ {len(artifacts)} files written to {output_dir}/[/green]")
    console.print(f"[dim]Start with {output_dir}/00-migration-report.md[/dim]")


@app.command()
@handle_errors
def validate(
    target: str = typer.Option(None, "--target", help="Target (traefik|gateway-api)"),
    legacy_present: bool = typer.Option(
        False, "--legacy-present", help="Ingress NGINX is running"
    ),
    target_ready: bool = typer.Option(False, "--target-ready", help="Target controller is running"),
    crds_installed: bool = typer.Option(
        False, "--crds-installed", help="Target CRDs are registered"
    ),
    route_count: int = typer.Option(0, "--routes", help="Ingress objects in the cluster"),
    policy_count: int = typer.Option(
        0, "--policies", help="Traefik Middlewares or Envoy Gateway policies applied"
    ),
    routes_updated: int = typer.Option(
        0, "--routes-updated", help="Ingresses with Traefik annotations, or HTTPRoutes applied"
    ),
    facts_file: Path = typer.Option(
        None, "--facts", help="YAML/JSON file with facts (overrides the flags)"
    ),
    output: str = typer.Option("table", "--output", help="Output format: table, json"),
):
    """
    Derive the migration phase from observed cluster facts.

    Prints the phase (pre, parallel, post), readiness checks and the
    remaining steps for the target.
    """
    _check_output_format(output)
    resolved = _target(target)

    from ing_switch.validate import ValidationFacts, derive_validation_phase

    if facts_file:
        facts = _load_facts(facts_file)
    else:
        facts = ValidationFacts(
            legacy_present=legacy_present,
            target_ready=target_ready,
            crds_installed=crds_installed,
            route_count=route_count,
            policy_count=policy_count,
            routes_updated=routes_updated,
        )

    result = derive_validation_phase(facts, resolved)

    if output == "json":
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    console.print(f"\n[bold]Migration phase:[/bold] {result.phase.value}")
    console.print(f"[dim]{result.description}[/dim]\n")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Details", style="dim")
    for check in result.checks:
        style = check.status.style
        table.add_row(check.name, f"[{style}]{check.status.value}[/{style}]", check.message)
    console.print(table)

    console.print(f"\n[bold]Overall:[/bold] [{result.overall.style}]{result.overall.value}[/]")
    console.print("\n[bold]Next steps:[/bold]")
    for i, step in enumerate(result.checklist, 1):
        console.print(f"  {i}. {step}")


def _load_facts(path: Path):
    from ing_switch.validate import ValidationFacts

    if not path.is_file():
        raise FactsInputError(str(path), "file not found")
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise FactsInputError(str(path), f"invalid YAML/JSON: {e}") from e
    if not isinstance(data, dict):
        raise FactsInputError(str(path), "expected a mapping of facts")
    try:
        return ValidationFacts.from_dict(data)
    except (TypeError, ValueError) as e:
        raise FactsInputError(str(path), str(e)) from e


@app.command()
@handle_errors
def guide(
    annotation: str = typer.Argument(..., help="Annotation key, with or without the nginx prefix"),
    target: str = typer.Option(None, "--target", help="Target (traefik|gateway-api)"),
):
    """Show how one ingress-nginx annotation maps to a target and how to fix gaps."""
    resolved = _target(target)

    from ing_switch.knowledge import MappingStatus, load_knowledge_base
    from ing_switch.models.route import NGINX_ANNOTATION_PREFIX

    key = annotation.removeprefix(NGINX_ANNOTATION_PREFIX)
    kb = load_knowledge_base()
    entry = kb.lookup(resolved, key)
    definition = kb.describe(key)

    console.print(f"\n[bold]{NGINX_ANNOTATION_PREFIX}{key}[/bold]")
    if definition:
        console.print(f"[dim]{definition.category}: {definition.description}[/dim]")
    console.print(
        f"\n{entry.status.emoji} [bold]{entry.status.value}[/bold] on {resolved.display_name}"
    )
    if entry.construct:
        console.print(f"  Target: {entry.construct}")
    console.print(f"  {entry.note}")

    if entry.status is MappingStatus.SUPPORTED:
        return

    info = kb.guide(resolved, key)
    if info is None:
        return
    console.print(f"\n[bold]What it does[/bold]\n  {info.what}")
    console.print(f"\n[bold]Fix[/bold]\n  {info.fix}")
    if info.example:
        console.print("\n[bold]Example[/bold]")
        console.print(info.example, markup=False, highlight=False)
    if info.consequence:
        console.print(f"\n[bold]If skipped[/bold]\n  {info.consequence}")
    if info.docs_link:
        console.print(f"\n[dim]Docs: {info.docs_link}[/dim]")
    if info.issue_url:
        console.print(f"[dim]Tracking issue: {info.issue_url}[/dim]")


if __name__ == "__main__":
    app()
