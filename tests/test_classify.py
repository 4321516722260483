"""
Tests for route classification and compatibility reports.
"""

import json

import pytest

from ing_switch.analyze.classify import (
    ReadinessStatus,
    classify,
    classify_fleet,
    reduce_status,
)
from ing_switch.analyze.report import (
    build_route_issues,
    file_category_for,
    generate_compatibility_reports,
    render_markdown_report,
)
from ing_switch.exceptions import UnknownTargetError
from ing_switch.knowledge import MappingStatus, load_knowledge_base
from ing_switch.targets import Target


class TestClassify:
    """Tests for single-route classification."""

    def test_checkout_needs_workaround_on_gateway_api(self, checkout_route):
        """Test a partial rate limit makes the route need a workaround."""
        report = classify(checkout_route, "gateway-api")

        assert report.overall_status is ReadinessStatus.WORKAROUND
        assert [m.key for m in report.mappings] == ["limit-rps", "ssl-redirect"]
        assert report.mappings[0].status is MappingStatus.PARTIAL

    def test_checkout_ready_on_traefik(self, checkout_route):
        """Test the same route is ready on Traefik."""
        report = classify(checkout_route, "traefik")
        assert report.overall_status is ReadinessStatus.READY

    @pytest.mark.parametrize("target", list(Target))
    def test_every_registry_entry_classifies_to_its_status(self, make_route, target):
        """Test a route carrying one known annotation gets exactly that entry's status."""
        for key, entry in load_knowledge_base().entries(target).items():
            report = classify(make_route(annotations={key: "true"}), target)

            assert len(report.mappings) == 1, key
            assert report.mappings[0].key == key
            assert report.mappings[0].status is entry.status, key

    def test_snippet_is_breaking(self, snippet_route):
        """Test configuration-snippet makes a route breaking."""
        report = classify(snippet_route, Target.GATEWAY_API)
        assert report.overall_status is ReadinessStatus.BREAKING

    def test_unsupported_wins_over_supported(self, make_route):
        """Test any unsupported mapping makes the route breaking."""
        route = make_route(
            annotations={
                "ssl-redirect": "true",
                "rewrite-target": "/",
                "configuration-snippet": "return 200;",
            }
        )
        report = classify(route, "gateway-api")

        assert report.overall_status is ReadinessStatus.BREAKING
        assert report.mappings[0].key == "configuration-snippet"

    def test_unknown_annotation_is_unsupported(self, make_route):
        """Test unknown annotations are flagged for manual review."""
        report = classify(make_route(annotations={"made-up": "1"}), "traefik")
        mapping = report.mappings[0]
        assert mapping.status is MappingStatus.UNSUPPORTED
        assert "manual review" in mapping.note

    def test_non_nginx_annotations_ignored(self, make_route):
        """Test annotations without the ingress-nginx prefix are not classified."""
        route = make_route(extra_annotations={"kubernetes.io/ingress.class": "nginx"})
        report = classify(route, "traefik")
        assert report.mappings == ()
        assert report.overall_status is ReadinessStatus.READY

    def test_mapping_to_dict(self, checkout_route):
        """Test mapping serialization keys."""
        mapping = classify(checkout_route, "gateway-api").mappings[0]
        assert mapping.to_dict() == {
            "originalKey": "limit-rps",
            "originalValue": "50",
            "status": "partial",
            "targetResource": "BackendTrafficPolicy (RateLimit)",
            "note": "Envoy Gateway BackendTrafficPolicy",
        }

    def test_unknown_target(self, checkout_route):
        """Test an unknown target raises before classification."""
        with pytest.raises(UnknownTargetError):
            classify(checkout_route, "nginx")

    def test_reduce_empty_is_ready(self):
        """Test a route without annotations is ready."""
        assert reduce_status([]) is ReadinessStatus.READY


class TestClassifyFleet:
    """Tests for fleet classification."""

    def test_summary_counts(self, checkout_route, snippet_route, make_route):
        """Test summary counts per readiness level."""
        fleet = classify_fleet([checkout_route, snippet_route, make_route()], "gateway-api")

        assert fleet.summary == {
            "total": 3,
            "fullyCompatible": 1,
            "needsWorkaround": 1,
            "hasUnsupported": 1,
        }

    def test_to_dict(self, checkout_route):
        """Test fleet serialization."""
        data = classify_fleet([checkout_route], Target.TRAEFIK).to_dict()

        assert data["target"] == "traefik"
        assert data["ingresses"][0]["overallStatus"] == "ready"
        assert data["summary"]["total"] == 1

    def test_unknown_target_rejected_for_empty_fleet(self):
        """Test the target is validated even with no routes."""
        with pytest.raises(UnknownTargetError):
            classify_fleet([], "istio")


class TestRouteIssues:
    """Tests for the remediation issue list."""

    def test_supported_mappings_skipped(self, checkout_route):
        """Test only partial and unsupported mappings become issues."""
        report = classify(checkout_route, "gateway-api")
        issues = build_route_issues(report, "gateway-api")

        assert [i.key for i in issues] == ["limit-rps"]
        assert issues[0].file_category == "policy"
        assert issues[0].fix

    def test_unknown_annotation_falls_back_to_note(self, make_route):
        """Test annotations without a guide use the mapping note as fix."""
        report = classify(make_route(annotations={"made-up": "1"}), "traefik")
        issue = build_route_issues(report, "traefik")[0]
        assert issue.what == "made-up"
        assert issue.file_category == "guide"

    def test_file_categories(self):
        """Test construct labels map to artifact categories."""
        assert file_category_for(Target.TRAEFIK, "Middleware (RateLimit)") == "middleware"
        assert file_category_for(Target.TRAEFIK, "Ingress annotation") == "ingress"
        assert file_category_for(Target.GATEWAY_API, "HTTPRoute (timeouts)") == "httproute"
        assert file_category_for(Target.GATEWAY_API, "Gateway listener") == "gateway"
        assert file_category_for(Target.GATEWAY_API, "") == "guide"


class TestCompatibilityReports:
    """Tests for Markdown and JSON report files."""

    def test_markdown_report(self, checkout_route, snippet_route):
        """Test the Markdown report lists routes and calls out breaking ones."""
        fleet = classify_fleet([checkout_route, snippet_route], "gateway-api")
        markdown = render_markdown_report(fleet)

        assert markdown.startswith("# Compatibility Report: Gateway API (Envoy Gateway)")
        assert "### ⚠️ Action Required" in markdown
        assert "shop/checkout (workaround)" in markdown
        assert "apps/legacy (breaking)" in markdown

    def test_markdown_ready_fleet(self, make_route):
        """Test a fully compatible fleet is reported ready."""
        markdown = render_markdown_report(classify_fleet([make_route()], "traefik"))
        assert "### ✅ Ready to Migrate" in markdown
        assert "No ingress-nginx annotations." in markdown

    def test_pipe_in_value_escaped(self, make_route):
        """Test table cells escape pipes in annotation values."""
        route = make_route(annotations={"rewrite-target": "/a|b"})
        markdown = render_markdown_report(classify_fleet([route], "traefik"))
        assert "`/a\\|b`" in markdown

    def test_writes_both_files(self, tmp_path, checkout_route):
        """Test reports are written as compatibility.md and compatibility.json."""
        fleet = classify_fleet([checkout_route], "gateway-api")
        generate_compatibility_reports(fleet, tmp_path / "reports")

        assert (tmp_path / "reports" / "compatibility.md").exists()
        data = json.loads((tmp_path / "reports" / "compatibility.json").read_text())
        assert data["ingresses"][0]["issues"][0]["annotation"] == "limit-rps"
