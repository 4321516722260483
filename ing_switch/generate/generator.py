"""
Synthesis entry point: routes in, ordered artifacts out.
"""

import logging
from collections import Counter
from pathlib import Path
from typing import Iterable

from ing_switch.analyze.classify import classify_fleet
from ing_switch.exceptions import GenerationError
from ing_switch.generate.artifact import GeneratedArtifact
from ing_switch.generate.base import ManifestSynthesizer
from ing_switch.generate.context import FleetContext, SynthesisSettings
from ing_switch.generate.gatewayapi import GatewayAPISynthesizer
from ing_switch.generate.report import build_migration_report
from ing_switch.generate.traefik import TraefikSynthesizer
from ing_switch.models.route import Route
from ing_switch.targets import Target, resolve_target
from ing_switch.util.files import ensure_dir, write_text
from ing_switch.util.templates import TemplateLoader, default_loader

logger = logging.getLogger(__name__)

SYNTHESIZERS = {
    Target.TRAEFIK: TraefikSynthesizer,
    Target.GATEWAY_API: GatewayAPISynthesizer,
}


def get_synthesizer(
    target: "Target | str", templates: TemplateLoader | None = None
) -> ManifestSynthesizer:
    """
    Get the synthesizer for a target.

    Raises:
        UnknownTargetError: If target is not supported
    """
    return SYNTHESIZERS[resolve_target(target)](templates)


def synthesize(
    routes: Iterable[Route],
    target: "Target | str",
    settings: SynthesisSettings | None = None,
    templates: TemplateLoader | None = None,
) -> list[GeneratedArtifact]:
    """
    Generate every artifact for migrating a fleet to one target.

    Output depends only on the set of routes and the settings: routes are
    sorted by (namespace, name) first, and nothing time-dependent is rendered.

    Args:
        routes: Route records, in any order
        target: Migration target name or Target
        settings: Gateway/Traefik settings (defaults outside a workspace)
        templates: Template loader (packaged templates by default)

    Returns:
        Artifacts in apply order, starting with 00-migration-report.md

    Raises:
        UnknownTargetError: If target is not supported
        GenerationError: If two artifacts would share a path
    """
    resolved = resolve_target(target)
    templates = templates or default_loader()
    context = FleetContext.build(routes, settings)

    synthesizer = get_synthesizer(resolved, templates)
    artifacts = synthesizer.synthesize_fleet(context)
    report = classify_fleet(context.routes, resolved)
    artifacts.insert(0, build_migration_report(report, artifacts, templates))

    duplicates = sorted(p for p, n in Counter(a.relative_path for a in artifacts).items() if n > 1)
    if duplicates:
        raise GenerationError(f"duplicate artifact paths: {', '.join(duplicates)}")

    logger.info(f"Generated {len(artifacts)} artifacts for {len(context.routes)} routes ({resolved})")
    return artifacts


def write_artifacts(artifacts: Iterable[GeneratedArtifact], output_dir: str | Path) -> list[Path]:
    """
    Write artifacts under an output directory.

    Shell scripts are made executable. Existing files are overwritten.

    Returns:
        Paths written, in artifact order
    """
    root = ensure_dir(output_dir)
    written = []
    for artifact in artifacts:
        path = root / artifact.relative_path
        write_text(path, artifact.content, executable=artifact.is_script)
        written.append(path)
    logger.debug(f"Wrote {len(written)} files to {root}")
    return written
