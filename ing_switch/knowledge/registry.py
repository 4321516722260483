"""
Annotation compatibility knowledge base.

The registry holds, per migration target, the verdict for every recognized
ingress-nginx annotation and the remediation guides for the ones that are not
fully supported. Tables ship as YAML under ``knowledge/data``, are validated
against ``schema/knowledge.schema.json`` and are loaded once per process into
read-only mappings of immutable entries.
"""

import json
import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple

import yaml
from jsonschema import Draft7Validator

from ing_switch.exceptions import KnowledgeBaseError
from ing_switch.targets import Target, resolve_target

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
SCHEMA_DIR = Path(__file__).parent.parent / "schema"

UNKNOWN_ANNOTATION_NOTE = "Unknown annotation — manual review required"


class MappingStatus(Enum):
    """
    How well an annotation maps onto a target controller.

    Examples:
        >>> MappingStatus("partial") is MappingStatus.PARTIAL
        True
        >>> MappingStatus.UNSUPPORTED.severity
        2
    """

    SUPPORTED = "supported"
    PARTIAL = "partial"
    UNSUPPORTED = "unsupported"

    def __str__(self) -> str:
        """Return the string value for display."""
        return self.value

    @property
    def emoji(self) -> str:
        """Return an emoji representing this status for console output."""
        return {
            "supported": "✅",
            "partial": "⚠️",
            "unsupported": "🚫",
        }[self.value]

    @property
    def severity(self) -> int:
        """
        Return numeric severity for sorting (higher = more problematic).

        Returns:
            0 for SUPPORTED, 1 for PARTIAL, 2 for UNSUPPORTED
        """
        return {
            "supported": 0,
            "partial": 1,
            "unsupported": 2,
        }[self.value]


class CompatibilityEntry(NamedTuple):
    """
    Verdict for one (target, annotation) pair.

    Attributes:
        status: Compatibility status
        construct: Target construct label, e.g. "Middleware (RateLimit)"
        note: Short human explanation
    """

    status: MappingStatus
    construct: str
    note: str


class AnnotationGuide(NamedTuple):
    """Extended remediation text for a partial or unsupported annotation."""

    what: str
    fix: str
    example: str = ""
    docs_link: str = ""
    consequence: str = ""
    issue_url: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "what": self.what,
            "fix": self.fix,
            "example": self.example,
            "docsLink": self.docs_link,
            "consequence": self.consequence,
            "issueUrl": self.issue_url,
        }


class AnnotationDef(NamedTuple):
    """A known ingress-nginx annotation with its category."""

    key: str
    category: str
    description: str


UNKNOWN_ENTRY = CompatibilityEntry(MappingStatus.UNSUPPORTED, "", UNKNOWN_ANNOTATION_NOTE)


class KnowledgeBase:
    """
    Read-only view over the compatibility tables, guides and annotation catalog.

    Instances are built by :func:`load_knowledge_base`; every mapping they expose
    is a ``MappingProxyType`` so callers cannot alter the shared registry.
    """

    def __init__(
        self,
        tables: Mapping[Target, Mapping[str, CompatibilityEntry]],
        guides: Mapping[Target, Mapping[str, AnnotationGuide]],
        catalog: Mapping[str, AnnotationDef],
    ):
        self._tables = MappingProxyType(
            {target: MappingProxyType(dict(table)) for target, table in tables.items()}
        )
        self._guides = MappingProxyType(
            {target: MappingProxyType(dict(table)) for target, table in guides.items()}
        )
        self._catalog = MappingProxyType(dict(catalog))

    def lookup(self, target: "Target | str", annotation: str) -> CompatibilityEntry:
        """
        Return the verdict for an annotation, or the unknown-annotation sentinel.

        Args:
            target: Migration target
            annotation: Annotation key without the ingress-nginx prefix

        Raises:
            UnknownTargetError: If target is not supported
        """
        table = self._tables[resolve_target(target)]
        return table.get(annotation, UNKNOWN_ENTRY)

    def guide(self, target: "Target | str", annotation: str) -> AnnotationGuide | None:
        """Return the remediation guide for a non-supported annotation, if any."""
        return self._guides[resolve_target(target)].get(annotation)

    def entries(self, target: "Target | str") -> Mapping[str, CompatibilityEntry]:
        return self._tables[resolve_target(target)]

    def describe(self, annotation: str) -> AnnotationDef | None:
        """Return the catalog definition of an annotation, if it is known."""
        return self._catalog.get(annotation)

    @property
    def catalog(self) -> Mapping[str, AnnotationDef]:
        return self._catalog


def _load_yaml(path: Path) -> Any:
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise KnowledgeBaseError([str(e)], source=path.name) from e


def _schema_errors(document: Any, schema_name: str) -> list[str]:
    schema = json.loads((SCHEMA_DIR / schema_name).read_text())
    validator = Draft7Validator(schema)
    errors = []
    for error in sorted(validator.iter_errors(document), key=lambda e: list(e.path)):
        location = ".".join(str(p) for p in error.path) or "<root>"
        errors.append(f"{location}: {error.message}")
    return errors


def _build_table(
    document: dict[str, Any], source: str
) -> tuple[dict[str, CompatibilityEntry], dict[str, AnnotationGuide]]:
    errors = _schema_errors(document, "knowledge.schema.json")
    if errors:
        raise KnowledgeBaseError(errors, source=source)

    table: dict[str, CompatibilityEntry] = {}
    for key, raw in document["entries"].items():
        status = MappingStatus(raw["status"])
        construct = raw.get("construct", "")
        if status is MappingStatus.SUPPORTED and not construct:
            errors.append(f"entries.{key}: supported entries must name a target construct")
        table[key] = CompatibilityEntry(status, construct, raw["note"])

    guides: dict[str, AnnotationGuide] = {}
    for key, raw in (document.get("guides") or {}).items():
        entry = table.get(key)
        if entry is None:
            errors.append(f"guides.{key}: no compatibility entry for this annotation")
            continue
        if entry.status is MappingStatus.SUPPORTED:
            errors.append(f"guides.{key}: guides are only kept for non-supported annotations")
            continue
        guides[key] = AnnotationGuide(
            what=raw["what"].strip(),
            fix=raw["fix"].strip(),
            example=raw.get("example", "").strip(),
            docs_link=raw.get("docs", ""),
            consequence=raw.get("consequence", "").strip(),
            issue_url=raw.get("issue", ""),
        )

    if errors:
        raise KnowledgeBaseError(errors, source=source)
    return table, guides


def _build_catalog(document: dict[str, Any]) -> dict[str, AnnotationDef]:
    errors = _schema_errors(document, "annotations.schema.json")
    if errors:
        raise KnowledgeBaseError(errors, source="annotations.yaml")

    catalog: dict[str, AnnotationDef] = {}
    for item in document["annotations"]:
        if item["key"] in catalog:
            errors.append(f"annotations: duplicate key {item['key']!r}")
            continue
        catalog[item["key"]] = AnnotationDef(item["key"], item["category"], item["description"])

    if errors:
        raise KnowledgeBaseError(errors, source="annotations.yaml")
    return catalog


@lru_cache(maxsize=1)
def load_knowledge_base() -> KnowledgeBase:
    """
    Load and validate the packaged registry (cached for the process lifetime).

    Returns:
        The shared, immutable KnowledgeBase

    Raises:
        KnowledgeBaseError: If any data file fails schema or consistency checks
    """
    tables: dict[Target, dict[str, CompatibilityEntry]] = {}
    guides: dict[Target, dict[str, AnnotationGuide]] = {}

    for target in Target:
        path = DATA_DIR / f"{target.value}.yaml"
        document = _load_yaml(path)
        if not isinstance(document, dict):
            raise KnowledgeBaseError(["expected a mapping at the top level"], source=path.name)
        if document.get("target") != target.value:
            raise KnowledgeBaseError(
                [f"target field is {document.get('target')!r}, expected {target.value!r}"],
                source=path.name,
            )
        tables[target], guides[target] = _build_table(document, path.name)
        logger.debug(
            f"Loaded {len(tables[target])} {target} entries and {len(guides[target])} guides"
        )

    catalog_doc = _load_yaml(DATA_DIR / "annotations.yaml")
    if not isinstance(catalog_doc, dict):
        raise KnowledgeBaseError(["expected a mapping at the top level"], source="annotations.yaml")
    catalog = _build_catalog(catalog_doc)

    return KnowledgeBase(tables, guides, catalog)


def lookup(target: "Target | str", annotation: str) -> CompatibilityEntry:
    """Shortcut for ``load_knowledge_base().lookup(target, annotation)``."""
    return load_knowledge_base().lookup(target, annotation)


def get_guide(target: "Target | str", annotation: str) -> AnnotationGuide | None:
    """Shortcut for ``load_knowledge_base().guide(target, annotation)``."""
    return load_knowledge_base().guide(target, annotation)
