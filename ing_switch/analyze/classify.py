"""
Compatibility classification of route annotations against a migration target.

Every ingress-nginx annotation on a route is looked up in the knowledge base and
turned into an AnnotationMapping. A route's readiness is the worst status among
its mappings; a fleet report adds summary counts over all routes.
"""

import logging
from enum import Enum
from typing import Any, Iterable, NamedTuple

from ing_switch.knowledge import KnowledgeBase, MappingStatus, load_knowledge_base
from ing_switch.models.route import Route
from ing_switch.targets import Target, resolve_target

logger = logging.getLogger(__name__)


class ReadinessStatus(Enum):
    """
    Overall migration readiness of one route.

    Levels:
        READY: Every annotation is supported
        WORKAROUND: At least one annotation needs manual follow-up
        BREAKING: At least one annotation has no equivalent
    """

    READY = "ready"
    WORKAROUND = "workaround"
    BREAKING = "breaking"

    def __str__(self) -> str:
        """Return the string value for display."""
        return self.value

    @property
    def emoji(self) -> str:
        """Return an emoji representing this level for console output."""
        return {
            "ready": "✅",
            "workaround": "⚠️",
            "breaking": "🚫",
        }[self.value]

    @property
    def style(self) -> str:
        """Rich style used when rendering this status."""
        return {
            "ready": "green",
            "workaround": "yellow",
            "breaking": "red",
        }[self.value]


class AnnotationMapping(NamedTuple):
    """
    How one annotation on one route translates to the target.

    Attributes:
        key: Annotation key without the ingress-nginx prefix
        value: Annotation value as written on the Ingress
        status: Compatibility status from the knowledge base
        target_construct: Target construct label (empty when unsupported)
        note: Short explanation
    """

    key: str
    value: str
    status: MappingStatus
    target_construct: str
    note: str

    def to_dict(self) -> dict[str, str]:
        return {
            "originalKey": self.key,
            "originalValue": self.value,
            "status": self.status.value,
            "targetResource": self.target_construct,
            "note": self.note,
        }


class RouteCompatibilityReport(NamedTuple):
    """Classification result for one route."""

    namespace: str
    name: str
    mappings: tuple[AnnotationMapping, ...]
    overall_status: ReadinessStatus

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}/{self.name}"

    def count(self, status: MappingStatus) -> int:
        return sum(1 for m in self.mappings if m.status is status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "name": self.name,
            "mappings": [m.to_dict() for m in self.mappings],
            "overallStatus": self.overall_status.value,
        }


class FleetCompatibilityReport(NamedTuple):
    """Classification results for every route plus summary counts."""

    target: Target
    routes: tuple[RouteCompatibilityReport, ...]
    summary: dict[str, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target.value,
            "ingresses": [r.to_dict() for r in self.routes],
            "summary": dict(self.summary),
        }


def _mapping_sort_key(mapping: AnnotationMapping) -> tuple[int, str]:
    # Unsupported first, then partial, then supported; key breaks ties
    return (-mapping.status.severity, mapping.key)


def reduce_status(mappings: Iterable[AnnotationMapping]) -> ReadinessStatus:
    """
    Reduce mapping statuses to a route readiness level.

    Any unsupported mapping makes the route breaking, regardless of how many
    supported or partial mappings it also has.
    """
    statuses = {m.status for m in mappings}
    if MappingStatus.UNSUPPORTED in statuses:
        return ReadinessStatus.BREAKING
    if MappingStatus.PARTIAL in statuses:
        return ReadinessStatus.WORKAROUND
    return ReadinessStatus.READY


def _classify_route(route: Route, target: Target, kb: KnowledgeBase) -> RouteCompatibilityReport:
    mappings = []
    for key, value in route.nginx_annotations.items():
        entry = kb.lookup(target, key)
        mappings.append(AnnotationMapping(key, value, entry.status, entry.construct, entry.note))

    mappings.sort(key=_mapping_sort_key)
    return RouteCompatibilityReport(
        namespace=route.namespace,
        name=route.name,
        mappings=tuple(mappings),
        overall_status=reduce_status(mappings),
    )


def classify(route: Route, target: "Target | str") -> RouteCompatibilityReport:
    """
    Classify every ingress-nginx annotation on one route.

    Args:
        route: Route record to classify
        target: Migration target name or Target

    Returns:
        Report with mappings ordered unsupported, partial, supported (then by key)

    Raises:
        UnknownTargetError: If target is not supported
    """
    resolved = resolve_target(target)
    return _classify_route(route, resolved, load_knowledge_base())


def generate_compatibility_summary(reports: Iterable[RouteCompatibilityReport]) -> dict[str, int]:
    """
    Count routes per readiness level.

    Returns:
        Dictionary with total, fullyCompatible, needsWorkaround and hasUnsupported
    """
    summary = {"total": 0, "fullyCompatible": 0, "needsWorkaround": 0, "hasUnsupported": 0}
    for report in reports:
        summary["total"] += 1
        if report.overall_status is ReadinessStatus.READY:
            summary["fullyCompatible"] += 1
        elif report.overall_status is ReadinessStatus.WORKAROUND:
            summary["needsWorkaround"] += 1
        else:
            summary["hasUnsupported"] += 1
    return summary


def classify_fleet(routes: Iterable[Route], target: "Target | str") -> FleetCompatibilityReport:
    """
    Classify every route of a fleet against one target.

    The target is validated before any route is looked at.

    Args:
        routes: Route records, in any order
        target: Migration target name or Target

    Returns:
        FleetCompatibilityReport with routes in input order and summary counts

    Raises:
        UnknownTargetError: If target is not supported
    """
    resolved = resolve_target(target)
    kb = load_knowledge_base()

    reports = tuple(_classify_route(route, resolved, kb) for route in routes)
    summary = generate_compatibility_summary(reports)
    logger.info(
        f"Classified {summary['total']} routes for {resolved}: "
        f"{summary['fullyCompatible']} ready, {summary['needsWorkaround']} workaround, "
        f"{summary['hasUnsupported']} breaking"
    )
    return FleetCompatibilityReport(target=resolved, routes=reports, summary=summary)
