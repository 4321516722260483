"""
Generated artifacts and YAML rendering helpers shared by both synthesizers.
"""

from enum import Enum
from typing import Any, Iterable, NamedTuple

import yaml


class ArtifactCategory(Enum):
    """Kind of generated file, used for grouping in reports and UIs."""

    INSTALL = "install"
    GATEWAY = "gateway"
    MIDDLEWARE = "middleware"
    INGRESS = "ingress"
    HTTPROUTE = "httproute"
    POLICY = "policy"
    VERIFY = "verify"
    GUIDE = "guide"
    CLEANUP = "cleanup"

    def __str__(self) -> str:
        """Return the string value for display."""
        return self.value


class GeneratedArtifact(NamedTuple):
    """
    One generated file.

    Attributes:
        relative_path: Path under the output directory, unique per run
        content: File content
        description: One-line summary for listings
        category: Artifact category
    """

    relative_path: str
    content: str
    description: str
    category: ArtifactCategory

    @property
    def is_script(self) -> bool:
        return self.relative_path.endswith(".sh")

    def to_dict(self) -> dict[str, str]:
        return {
            "relativePath": self.relative_path,
            "content": self.content,
            "description": self.description,
            "category": self.category.value,
        }


class _ManifestDumper(yaml.SafeDumper):
    """SafeDumper that never emits anchors for shared sub-structures."""

    def ignore_aliases(self, data):
        return True


class Manifest(NamedTuple):
    """A Kubernetes object plus the comment lines printed above it."""

    body: dict[str, Any]
    comments: tuple[str, ...] = ()


def comment_block(lines: Iterable[str]) -> str:
    """
    Turn text lines into YAML comment lines.

    Blank lines become a bare ``#``.

    Example:
        >>> comment_block(["NOTE: check this", ""])
        '# NOTE: check this\\n#\\n'
    """
    out = []
    for line in lines:
        out.append(f"# {line}" if line else "#")
    return "\n".join(out) + "\n" if out else ""


def dump_yaml(body: dict[str, Any]) -> str:
    """Dump one object as block-style YAML, preserving key order."""
    return yaml.dump(
        body,
        Dumper=_ManifestDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def render_manifests(manifests: Iterable[Manifest], header: Iterable[str] = ()) -> str:
    """
    Render one or more objects as a multi-document YAML file.

    Args:
        manifests: Objects in document order, each with its own comment lines
        header: Comment lines printed once at the top of the file

    Returns:
        YAML text; documents are separated by ``---``
    """
    documents = []
    for manifest in manifests:
        documents.append(comment_block(manifest.comments) + dump_yaml(manifest.body))
    return comment_block(header) + "---\n".join(documents)
