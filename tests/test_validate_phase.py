"""
Tests for migration phase derivation.
"""

import pytest

from ing_switch.exceptions import UnknownTargetError
from ing_switch.targets import Target
from ing_switch.validate import (
    CheckStatus,
    MigrationPhase,
    ValidationFacts,
    derive_validation_phase,
)
from ing_switch.validate.phase import build_checklist, derive_phase, overall_status


def check_names(result):
    return [c.name for c in result.checks]


def status_of(result, name):
    return next(c.status for c in result.checks if c.name == name)


class TestDerivePhase:
    """Tests for the phase table."""

    @pytest.mark.parametrize(
        "legacy,ready,expected",
        [
            (True, False, MigrationPhase.PRE),
            (False, False, MigrationPhase.PRE),
            (True, True, MigrationPhase.PARALLEL),
            (False, True, MigrationPhase.POST),
        ],
    )
    def test_phase_table(self, legacy, ready, expected):
        """Test the two deciding facts map to the phase."""
        assert derive_phase(legacy, ready) is expected

    def test_other_facts_do_not_change_phase(self):
        """Test counts and CRDs never change the phase."""
        facts = ValidationFacts(
            legacy_present=True, target_ready=False, crds_installed=True, route_count=10
        )
        assert derive_validation_phase(facts, "traefik").phase is MigrationPhase.PRE


class TestChecklists:
    """Tests for per-phase remediation checklists."""

    def test_pre_gateway_api(self):
        """Test the pre phase starts with generating files."""
        result = derive_validation_phase(ValidationFacts(legacy_present=True), "gateway-api")
        assert result.checklist[0] == "Generate migration files with: ing-switch migrate --target gateway-api"

    def test_parallel_traefik_lists_missing_apply_steps(self):
        """Test missing Middlewares and Ingress updates come before the static steps."""
        facts = ValidationFacts(
            legacy_present=True, target_ready=True, route_count=3, routes_updated=1
        )
        steps = build_checklist(MigrationPhase.PARALLEL, Target.TRAEFIK, facts)

        assert steps[0] == "Apply the Middlewares in 02-middlewares/"
        assert steps[1].startswith("Apply the updated Ingresses in 03-ingresses/")
        assert steps[2].startswith("Run 04-verify.sh")

    def test_parallel_traefik_done_applying(self):
        """Test applied objects drop their steps."""
        facts = ValidationFacts(
            legacy_present=True, target_ready=True, route_count=3, routes_updated=3, policy_count=2
        )
        result = derive_validation_phase(facts, "traefik")
        assert result.checklist[0].startswith("Run 04-verify.sh")

    def test_parallel_gateway_api_nothing_applied(self):
        """Test Gateway and HTTPRoute steps appear until HTTPRoutes exist."""
        facts = ValidationFacts(legacy_present=True, target_ready=True, route_count=2)
        checklist = derive_validation_phase(facts, "gateway-api").checklist

        assert checklist[:3] == (
            "Apply the GatewayClass and Gateway in 03-gateway/",
            "Apply the HTTPRoutes in 04-httproutes/",
            "Apply the policies in 05-policies/, if any were generated",
        )
        assert checklist[-1] == "After DNS propagation, run 07-cleanup/remove-nginx.sh"

    def test_post_phase(self):
        """Test the post phase checklist is static."""
        facts = ValidationFacts(target_ready=True, route_count=2, routes_updated=0)
        result = derive_validation_phase(facts, "gateway-api")
        assert result.phase is MigrationPhase.POST
        assert result.checklist[0] == "Monitor application logs and metrics for at least 24 hours"


class TestChecks:
    """Tests for the pass/warn/fail checks."""

    def test_pre_phase_fails_without_controller(self):
        """Test a missing controller and CRDs fail."""
        result = derive_validation_phase(ValidationFacts(legacy_present=True, route_count=4), "gateway-api")

        assert check_names(result) == [
            "Ingress resources detected (4 total)",
            "Ingress NGINX running",
            "Envoy Gateway",
            "Gateway API CRDs",
        ]
        assert status_of(result, "Envoy Gateway") is CheckStatus.FAIL
        assert result.overall is CheckStatus.FAIL

    def test_gateway_api_coverage_warning(self):
        """Test HTTPRoute coverage below 80% warns."""
        facts = ValidationFacts(
            legacy_present=False,
            target_ready=True,
            crds_installed=True,
            route_count=10,
            routes_updated=5,
            target_version="v1.2.0",
        )
        result = derive_validation_phase(facts, "gateway-api")

        assert "Envoy Gateway running (v1.2.0)" in check_names(result)
        assert status_of(result, "HTTPRoute coverage") is CheckStatus.WARN
        assert result.overall is CheckStatus.WARN

    def test_gateway_api_full_coverage_passes(self):
        """Test a fully migrated cluster passes."""
        facts = ValidationFacts(
            target_ready=True, crds_installed=True, route_count=4, routes_updated=4
        )
        result = derive_validation_phase(facts, "gateway-api")

        assert status_of(result, "HTTPRoute coverage") is CheckStatus.PASS
        assert result.overall is CheckStatus.PASS

    def test_traefik_checks(self):
        """Test Traefik checks report Middlewares and Ingress progress."""
        facts = ValidationFacts(
            legacy_present=True,
            target_ready=True,
            crds_installed=True,
            route_count=3,
            policy_count=5,
            routes_updated=2,
            target_namespace="traefik",
        )
        result = derive_validation_phase(facts, "traefik")

        assert check_names(result) == [
            "Ingress resources detected (3 total)",
            "Ingress NGINX running",
            "Traefik running",
            "Traefik CRDs installed",
            "Traefik Middlewares applied (5 found)",
            "Ingresses updated for Traefik (2/3)",
        ]
        assert status_of(result, "Ingresses updated for Traefik (2/3)") is CheckStatus.WARN
        assert result.checks[2].message == "Traefik is running in namespace 'traefik'"

    def test_no_ingresses_warns(self):
        """Test an empty cluster warns about missing Ingresses."""
        result = derive_validation_phase(ValidationFacts(target_ready=True, crds_installed=True), "traefik")
        assert status_of(result, "Ingress resources") is CheckStatus.WARN

    def test_overall_defaults_to_pass(self):
        """Test no checks means pass."""
        assert overall_status([]) is CheckStatus.PASS


class TestFactsAndResult:
    """Tests for facts parsing and result serialization."""

    def test_from_dict(self):
        """Test camelCase facts are read."""
        facts = ValidationFacts.from_dict(
            {"legacyPresent": True, "targetReady": True, "routeCount": "7", "targetVersion": "v3.2"}
        )
        assert facts.legacy_present
        assert facts.route_count == 7
        assert facts.target_version == "v3.2"
        assert not facts.crds_installed

    def test_from_dict_string_booleans(self):
        """Test quoted false values stay false."""
        facts = ValidationFacts.from_dict(
            {"legacyPresent": "false", "targetReady": "true", "crdsInstalled": "no"}
        )
        assert not facts.legacy_present
        assert facts.target_ready
        assert not facts.crds_installed
        assert derive_validation_phase(facts, "traefik").phase is MigrationPhase.POST

    def test_from_dict_rejects_non_boolean(self):
        """Test a flag that is not true or false is rejected."""
        with pytest.raises(ValueError, match="legacyPresent"):
            ValidationFacts.from_dict({"legacyPresent": "maybe"})

    def test_to_dict(self):
        """Test result serialization keys."""
        data = derive_validation_phase(ValidationFacts(), "traefik").to_dict()

        assert set(data) == {"target", "phase", "phaseDescription", "checklist", "checks", "overall"}
        assert data["phase"] == "pre"
        assert data["checks"][0] == {
            "name": "Ingress resources",
            "status": "warn",
            "message": "No Ingress resources found. Export the cluster's Ingresses first.",
        }

    def test_unknown_target(self):
        """Test unknown targets are rejected."""
        with pytest.raises(UnknownTargetError):
            derive_validation_phase(ValidationFacts(), "nginx")
