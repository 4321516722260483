"""
Interface implemented by the per-target manifest synthesizers.
"""

from typing import Protocol

from ing_switch.generate.artifact import GeneratedArtifact
from ing_switch.generate.context import FleetContext
from ing_switch.models.route import Route
from ing_switch.targets import Target


class ManifestSynthesizer(Protocol):
    """
    Turns routes into target manifests.

    ``synthesize_route`` returns the per-route artifacts; ``synthesize_fleet``
    returns the full ordered artifact list including install, shared
    infrastructure, verification and cleanup files.
    """

    target: Target

    def synthesize_route(self, route: Route, context: FleetContext) -> list[GeneratedArtifact]:
        ...

    def synthesize_fleet(self, context: FleetContext) -> list[GeneratedArtifact]:
        ...
