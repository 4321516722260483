"""
Migration phase derivation for a live cluster.

The phase is recomputed from facts on every call; nothing is persisted and
there are no transition actions. Two facts decide the phase:

    legacy present   target ready   phase
    --------------   ------------   --------
    no / yes         no             pre
    yes              yes            parallel
    no               yes            post

The remaining facts refine the remediation checklist and drive the
pass/warn/fail checks, mirroring what an operator would look at by hand.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, NamedTuple

from ing_switch.generate.values import parse_bool
from ing_switch.targets import Target, resolve_target

logger = logging.getLogger(__name__)


class MigrationPhase(Enum):
    """Where a fleet stands in the switch from ingress-nginx."""

    PRE = "pre"
    PARALLEL = "parallel"
    POST = "post"

    def __str__(self) -> str:
        """Return the string value for display."""
        return self.value

    @property
    def description(self) -> str:
        return {
            "pre": "NGINX is handling all traffic. The target controller is not ready yet.",
            "parallel": "NGINX and the target controller are both running. "
            "Traffic can be moved host by host.",
            "post": "The target controller is serving traffic and NGINX has been removed.",
        }[self.value]


class CheckStatus(Enum):
    """Outcome of one validation check."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"

    def __str__(self) -> str:
        """Return the string value for display."""
        return self.value

    @property
    def severity(self) -> int:
        return {"pass": 0, "warn": 1, "fail": 2}[self.value]

    @property
    def style(self) -> str:
        """Rich style used when rendering this status."""
        return {"pass": "green", "warn": "yellow", "fail": "red"}[self.value]


@dataclass(frozen=True)
class ValidationFacts:
    """
    Observed cluster state.

    Attributes:
        legacy_present: An ingress-nginx controller is running
        target_ready: The target controller is running
        crds_installed: The target's CRDs are registered
        route_count: Ingress objects in the cluster
        policy_count: Traefik Middlewares, or Envoy Gateway policies
        routes_updated: Ingresses carrying Traefik annotations, or HTTPRoutes applied
        legacy_namespace: Namespace of the ingress-nginx controller
        target_namespace: Namespace of the target controller
        target_version: Image tag of the target controller
    """

    legacy_present: bool = False
    target_ready: bool = False
    crds_installed: bool = False
    route_count: int = 0
    policy_count: int = 0
    routes_updated: int = 0
    legacy_namespace: str = ""
    target_namespace: str = ""
    target_version: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ValidationFacts":
        """Build facts from a JSON/YAML document using camelCase keys."""
        return cls(
            legacy_present=_flag(data, "legacyPresent"),
            target_ready=_flag(data, "targetReady"),
            crds_installed=_flag(data, "crdsInstalled"),
            route_count=int(data.get("routeCount") or 0),
            policy_count=int(data.get("policyCount") or 0),
            routes_updated=int(data.get("routesUpdated") or 0),
            legacy_namespace=str(data.get("legacyNamespace") or ""),
            target_namespace=str(data.get("targetNamespace") or ""),
            target_version=str(data.get("targetVersion") or ""),
        )


def _flag(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    flag, ok = parse_bool(str(value), False)
    if not ok:
        raise ValueError(f"{key}: expected true or false, got {value!r}")
    return flag


class ValidationCheck(NamedTuple):
    name: str
    status: CheckStatus
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "status": self.status.value, "message": self.message}


class ValidationResult(NamedTuple):
    """Derived phase, remediation checklist and checks for one target."""

    target: Target
    phase: MigrationPhase
    description: str
    checklist: tuple[str, ...]
    checks: tuple[ValidationCheck, ...]
    overall: CheckStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target.value,
            "phase": self.phase.value,
            "phaseDescription": self.description,
            "checklist": list(self.checklist),
            "checks": [c.to_dict() for c in self.checks],
            "overall": self.overall.value,
        }


# Static per-(phase, target) checklists; PARALLEL lists only the steps that always apply
CHECKLISTS: Mapping[tuple[MigrationPhase, Target], tuple[str, ...]] = {
    (MigrationPhase.PRE, Target.TRAEFIK): (
        "Generate migration files with: ing-switch migrate --target traefik",
        "Review 00-migration-report.md to understand all changes",
        "Install Traefik alongside NGINX with 01-install-traefik/helm-install.sh",
    ),
    (MigrationPhase.PRE, Target.GATEWAY_API): (
        "Generate migration files with: ing-switch migrate --target gateway-api",
        "Review 00-migration-report.md for a full migration overview",
        "Install the Gateway API CRDs with 01-install-gateway-api-crds/install.sh",
        "Install Envoy Gateway alongside NGINX with 02-install-envoy-gateway/helm-install.sh",
    ),
    (MigrationPhase.PARALLEL, Target.TRAEFIK): (
        "Run 04-verify.sh to test that Traefik serves every host",
        "Point DNS at the Traefik LoadBalancer address once verified (05-dns-migration.md)",
        "After DNS propagation, run the files in 06-cleanup/ to remove NGINX",
    ),
    (MigrationPhase.PARALLEL, Target.GATEWAY_API): (
        "Run 06-verify.sh to test that Envoy Gateway serves every host",
        "Point DNS at the Gateway address once verified",
        "After DNS propagation, run 07-cleanup/remove-nginx.sh",
    ),
    (MigrationPhase.POST, Target.TRAEFIK): (
        "Monitor application logs and metrics for at least 24 hours",
        "Verify that TLS certificates renew correctly",
        "Keep the NGINX Helm values as a rollback reference",
        "Update CI/CD pipelines that deploy Ingress annotations for NGINX",
    ),
    (MigrationPhase.POST, Target.GATEWAY_API): (
        "Monitor application logs and metrics for at least 24 hours",
        "Verify that TLS certificates renew correctly",
        "Keep the NGINX Helm values as a rollback reference",
        "Update CI/CD pipelines to deploy HTTPRoutes instead of Ingresses",
    ),
}

# HTTPRoute-to-Ingress ratio below which coverage is reported as a warning
MIN_HTTPROUTE_COVERAGE = 80


def derive_phase(legacy_present: bool, target_ready: bool) -> MigrationPhase:
    """
    Classify migration progress from the two deciding facts.

    Examples:
        >>> derive_phase(legacy_present=True, target_ready=False)
        <MigrationPhase.PRE: 'pre'>
        >>> derive_phase(legacy_present=True, target_ready=True)
        <MigrationPhase.PARALLEL: 'parallel'>
    """
    if not target_ready:
        return MigrationPhase.PRE
    if legacy_present:
        return MigrationPhase.PARALLEL
    return MigrationPhase.POST


def build_checklist(phase: MigrationPhase, target: Target, facts: ValidationFacts) -> list[str]:
    """
    Remediation checklist for a phase, refined by what is already applied.

    Only the parallel phase is refined: apply steps are listed until the
    facts show their objects in the cluster.
    """
    steps: list[str] = []
    if phase is MigrationPhase.PARALLEL:
        if target is Target.TRAEFIK:
            if facts.policy_count == 0:
                steps.append("Apply the Middlewares in 02-middlewares/")
            if facts.routes_updated < facts.route_count:
                steps.append("Apply the updated Ingresses in 03-ingresses/ to attach the Middlewares")
        else:
            if facts.routes_updated == 0:
                steps.append("Apply the GatewayClass and Gateway in 03-gateway/")
                steps.append("Apply the HTTPRoutes in 04-httproutes/")
            if facts.policy_count == 0:
                steps.append("Apply the policies in 05-policies/, if any were generated")
    steps.extend(CHECKLISTS[(phase, target)])
    return steps


def _common_checks(facts: ValidationFacts) -> list[ValidationCheck]:
    checks = []
    if facts.route_count > 0:
        checks.append(
            ValidationCheck(
                f"Ingress resources detected ({facts.route_count} total)",
                CheckStatus.PASS,
                f"{facts.route_count} Ingress objects found across the cluster",
            )
        )
    else:
        checks.append(
            ValidationCheck(
                "Ingress resources",
                CheckStatus.WARN,
                "No Ingress resources found. Export the cluster's Ingresses first.",
            )
        )

    if facts.legacy_present:
        where = f" in '{facts.legacy_namespace}'" if facts.legacy_namespace else ""
        checks.append(
            ValidationCheck(
                "Ingress NGINX running",
                CheckStatus.WARN,
                f"Ingress NGINX is running{where} and still handling traffic. "
                "This is expected during a parallel migration.",
            )
        )
    else:
        checks.append(
            ValidationCheck(
                "Ingress NGINX",
                CheckStatus.PASS,
                "Ingress NGINX not detected. Either not installed or already removed.",
            )
        )
    return checks


def _controller_check(name: str, facts: ValidationFacts, install_hint: str) -> ValidationCheck:
    if not facts.target_ready:
        return ValidationCheck(name, CheckStatus.FAIL, f"{name} not detected. {install_hint}")
    version = f" ({facts.target_version})" if facts.target_version else ""
    where = f" in namespace '{facts.target_namespace}'" if facts.target_namespace else ""
    return ValidationCheck(
        f"{name} running{version}", CheckStatus.PASS, f"{name} is running{where}"
    )


def _traefik_checks(facts: ValidationFacts) -> list[ValidationCheck]:
    checks = [
        _controller_check(
            "Traefik", facts, "Install it with 01-install-traefik/helm-install.sh."
        )
    ]
    if facts.crds_installed:
        checks.append(
            ValidationCheck(
                "Traefik CRDs installed",
                CheckStatus.PASS,
                "traefik.io API group present: Middleware and ServersTransport are available",
            )
        )
    else:
        checks.append(
            ValidationCheck(
                "Traefik CRDs",
                CheckStatus.FAIL,
                "Traefik CRDs not found. Installing Traefik with Helm registers them.",
            )
        )

    if facts.policy_count > 0:
        checks.append(
            ValidationCheck(
                f"Traefik Middlewares applied ({facts.policy_count} found)",
                CheckStatus.PASS,
                f"{facts.policy_count} Middleware objects present",
            )
        )
    elif facts.crds_installed:
        checks.append(
            ValidationCheck(
                "Traefik Middlewares",
                CheckStatus.WARN,
                "No Middleware objects found. Apply the files in 02-middlewares/.",
            )
        )

    if facts.route_count > 0:
        progress = f"({facts.routes_updated}/{facts.route_count})"
        if facts.routes_updated >= facts.route_count:
            checks.append(
                ValidationCheck(
                    f"Ingresses updated for Traefik {progress}",
                    CheckStatus.PASS,
                    "Every Ingress carries the router.middlewares annotation.",
                )
            )
        elif facts.routes_updated > 0:
            checks.append(
                ValidationCheck(
                    f"Ingresses updated for Traefik {progress}",
                    CheckStatus.WARN,
                    f"{facts.routes_updated} of {facts.route_count} Ingresses updated. "
                    "Apply the remaining files in 03-ingresses/.",
                )
            )
        else:
            checks.append(
                ValidationCheck(
                    "Ingresses updated for Traefik",
                    CheckStatus.WARN,
                    "No Ingress carries Traefik annotations yet. Apply the files in 03-ingresses/.",
                )
            )
    return checks


def _gateway_api_checks(facts: ValidationFacts) -> list[ValidationCheck]:
    checks = [
        _controller_check(
            "Envoy Gateway", facts, "Install it with 02-install-envoy-gateway/helm-install.sh."
        )
    ]
    if facts.crds_installed:
        checks.append(
            ValidationCheck(
                "Gateway API CRDs installed",
                CheckStatus.PASS,
                "gateway.networking.k8s.io API group present: Gateway, HTTPRoute and "
                "ReferenceGrant are available",
            )
        )
    else:
        checks.append(
            ValidationCheck(
                "Gateway API CRDs",
                CheckStatus.FAIL,
                "Gateway API CRDs not found. Run 01-install-gateway-api-crds/install.sh.",
            )
        )

    if facts.routes_updated > 0:
        checks.append(
            ValidationCheck(
                f"HTTPRoutes applied ({facts.routes_updated} found)",
                CheckStatus.PASS,
                f"{facts.routes_updated} HTTPRoute objects present",
            )
        )
        if facts.route_count > 0:
            coverage = facts.routes_updated * 100 // facts.route_count
            message = (
                f"{facts.routes_updated} HTTPRoutes cover {facts.route_count} "
                f"Ingresses ({coverage}% coverage)"
            )
            status = CheckStatus.PASS
            if coverage < MIN_HTTPROUTE_COVERAGE:
                status = CheckStatus.WARN
                message += "; some Ingresses may not have an HTTPRoute yet"
            checks.append(ValidationCheck("HTTPRoute coverage", status, message))
    elif facts.crds_installed:
        checks.append(
            ValidationCheck(
                "HTTPRoutes",
                CheckStatus.WARN,
                "No HTTPRoute objects found. Apply the files in 04-httproutes/.",
            )
        )
    return checks


def overall_status(checks: list[ValidationCheck]) -> CheckStatus:
    """Worst status among the checks: fail beats warn beats pass."""
    return max((c.status for c in checks), key=lambda s: s.severity, default=CheckStatus.PASS)


def derive_validation_phase(facts: ValidationFacts, target: "Target | str") -> ValidationResult:
    """
    Derive the migration phase, checklist and checks for a target.

    Args:
        facts: Observed cluster state
        target: Migration target name or Target

    Returns:
        ValidationResult for the target

    Raises:
        UnknownTargetError: If target is not supported
    """
    resolved = resolve_target(target)
    phase = derive_phase(facts.legacy_present, facts.target_ready)

    checks = _common_checks(facts)
    if resolved is Target.TRAEFIK:
        checks += _traefik_checks(facts)
    else:
        checks += _gateway_api_checks(facts)

    result = ValidationResult(
        target=resolved,
        phase=phase,
        description=phase.description,
        checklist=tuple(build_checklist(phase, resolved, facts)),
        checks=tuple(checks),
        overall=overall_status(checks),
    )
    logger.debug(f"Derived phase {phase} for {resolved}: overall {result.overall}")
    return result
