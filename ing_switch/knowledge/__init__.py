"""
Annotation compatibility knowledge base.

Modules:
- registry: Per-target verdict tables, remediation guides and the annotation catalog
"""

from ing_switch.knowledge.registry import (
    UNKNOWN_ANNOTATION_NOTE,
    AnnotationDef,
    AnnotationGuide,
    CompatibilityEntry,
    KnowledgeBase,
    MappingStatus,
    get_guide,
    load_knowledge_base,
    lookup,
)

__all__ = [
    "UNKNOWN_ANNOTATION_NOTE",
    "AnnotationDef",
    "AnnotationGuide",
    "CompatibilityEntry",
    "KnowledgeBase",
    "MappingStatus",
    "get_guide",
    "load_knowledge_base",
    "lookup",
]
