"""
Tests for the annotation compatibility knowledge base.
"""

import pytest

from ing_switch.exceptions import UnknownTargetError
from ing_switch.knowledge import (
    UNKNOWN_ANNOTATION_NOTE,
    MappingStatus,
    get_guide,
    load_knowledge_base,
    lookup,
)
from ing_switch.targets import Target


class TestLookup:
    """Tests for per-target verdict lookup."""

    def test_known_annotations(self):
        """Test verdicts for well-known annotations on both targets."""
        assert lookup("traefik", "limit-rps").status is MappingStatus.SUPPORTED
        assert lookup("gateway-api", "limit-rps").status is MappingStatus.PARTIAL
        assert lookup("gateway-api", "ssl-redirect").status is MappingStatus.SUPPORTED
        assert lookup(Target.GATEWAY_API, "use-regex").status is MappingStatus.SUPPORTED
        assert lookup(Target.TRAEFIK, "configuration-snippet").status is MappingStatus.UNSUPPORTED

    def test_supported_entries_name_a_construct(self):
        """Test every supported entry names the target construct it maps to."""
        kb = load_knowledge_base()
        for target in Target:
            for key, entry in kb.entries(target).items():
                if entry.status is MappingStatus.SUPPORTED:
                    assert entry.construct, f"{target}:{key}"

    def test_unknown_annotation(self):
        """Test unknown keys are unsupported with the manual review note."""
        entry = lookup("traefik", "no-such-annotation")
        assert entry.status is MappingStatus.UNSUPPORTED
        assert entry.construct == ""
        assert entry.note == UNKNOWN_ANNOTATION_NOTE

    def test_unknown_target(self):
        """Test an unknown target is rejected."""
        with pytest.raises(UnknownTargetError):
            lookup("haproxy", "ssl-redirect")

    def test_target_names_are_normalized(self):
        """Test target names are case and whitespace insensitive."""
        assert lookup(" Traefik ", "limit-rps") == lookup(Target.TRAEFIK, "limit-rps")

    def test_tables_are_read_only(self):
        """Test callers cannot modify the shared tables."""
        kb = load_knowledge_base()
        with pytest.raises(TypeError):
            kb.entries("traefik")["ssl-redirect"] = None
        with pytest.raises(TypeError):
            kb.catalog["ssl-redirect"] = None

    def test_registry_is_loaded_once(self):
        """Test the registry is shared across calls."""
        assert load_knowledge_base() is load_knowledge_base()


class TestGuides:
    """Tests for remediation guides."""

    def test_guides_only_for_non_supported(self):
        """Test no supported annotation carries a guide."""
        kb = load_knowledge_base()
        for target in Target:
            for key, entry in kb.entries(target).items():
                if entry.status is MappingStatus.SUPPORTED:
                    assert kb.guide(target, key) is None

    def test_snippet_guide(self):
        """Test the configuration-snippet guide explains what to do."""
        guide = get_guide("gateway-api", "configuration-snippet")
        assert guide is not None
        assert guide.what
        assert guide.fix

    def test_guide_to_dict_uses_camel_case(self):
        """Test guide serialization keys."""
        guide = get_guide("gateway-api", "limit-rps")
        assert set(guide.to_dict()) == {
            "what",
            "fix",
            "example",
            "docsLink",
            "consequence",
            "issueUrl",
        }


class TestCatalog:
    """Tests for the annotation catalog."""

    def test_catalog_describes_annotations(self):
        """Test catalog entries carry a category and description."""
        kb = load_knowledge_base()
        definition = kb.describe("ssl-redirect")
        assert definition.category == "tls"
        assert definition.description == "Redirect HTTP to HTTPS"

    def test_catalog_unknown_key(self):
        """Test describe returns None for unknown keys."""
        assert load_knowledge_base().describe("no-such-annotation") is None

    def test_status_severity_order(self):
        """Test severity orders supported < partial < unsupported."""
        assert [s.severity for s in MappingStatus] == [0, 1, 2]
