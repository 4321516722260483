"""
Template loading and rendering utilities using Jinja2.

Install, verify and cleanup scripts, the DNS guide and the migration report
are rendered from templates under ``ing_switch/templates``. A workspace may
override any of them by placing a file with the same relative name under
``<workspace>/templates``.
"""

from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


class TemplateLoader:
    """
    Loads and renders Jinja2 templates.

    Supports custom templates in a workspace with fallback to the packaged defaults.
    Rendering never injects timestamps, so output is stable across runs.
    """

    def __init__(self, workspace_root: Path | None = None):
        """
        Initialize template loader.

        Args:
            workspace_root: Optional workspace directory holding a templates/ override
        """
        self.workspace_templates = workspace_root / "templates" if workspace_root else None
        self.default_templates = TEMPLATES_DIR
        self._env: Environment | None = None
        self._template_cache: dict[str, Template] = {}

    def has_custom_templates(self) -> bool:
        """Check if workspace has custom templates."""
        return bool(self.workspace_templates and self.workspace_templates.exists())

    @property
    def env(self) -> Environment:
        """
        Get or create Jinja2 environment (cached).

        Returns:
            Cached Jinja2 Environment configured for template loading
        """
        if self._env is None:
            template_dirs = []

            # Check workspace templates first
            if self.has_custom_templates():
                template_dirs.append(str(self.workspace_templates))

            if self.default_templates.exists():
                template_dirs.append(str(self.default_templates))

            if not template_dirs:
                raise FileNotFoundError("No template directories found")

            self._env = Environment(
                loader=FileSystemLoader(template_dirs),
                trim_blocks=True,
                lstrip_blocks=True,
                keep_trailing_newline=True,
                undefined=StrictUndefined,
            )

        return self._env

    def load_template(self, template_name: str) -> Template:
        """
        Load a Jinja2 template with caching.

        Args:
            template_name: Template name (e.g., "traefik/helm-install.sh.j2")

        Returns:
            Cached Jinja2 Template object
        """
        if template_name not in self._template_cache:
            self._template_cache[template_name] = self.env.get_template(template_name)
        return self._template_cache[template_name]

    def render(self, template_name: str, **context) -> str:
        """
        Render a template to a string.

        Args:
            template_name: Template name (e.g., "gatewayapi/verify.sh.j2")
            **context: Template variables

        Returns:
            Rendered text
        """
        return self.load_template(template_name).render(**context)


@lru_cache(maxsize=1)
def default_loader() -> TemplateLoader:
    """Shared loader over the packaged templates only."""
    return TemplateLoader()
