"""
Workspace management for ing-switch.
"""

import json
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validate

from ing_switch.exceptions import InvalidConfigError, WorkspaceNotFoundError
from ing_switch.generate.context import SynthesisSettings

SCHEMA_FILE = Path(__file__).parent / "schema" / "config.schema.json"
CONFIG_FILE_NAME = "ing-switch.yaml"


class Workspace:
    """Manages the ing-switch workspace structure and configuration."""

    REQUIRED_DIRS = [
        "input",
        "output",
    ]

    DEFAULT_CONFIG = {
        "target": "gateway-api",
        "gateway": {
            "name": "ing-switch-gateway",
            "namespace": "default",
            "class_name": "eg",
        },
        "traefik": {
            "namespace": "traefik",
        },
        "output": {
            "dir": "output",
        },
        "logging": {
            "level": "WARNING",
        },
    }

    def __init__(self, root: Path):
        self.root = Path(root)
        self.config_file = self.root / CONFIG_FILE_NAME
        self._config_cache: dict[str, Any] | None = None

    @property
    def exists(self) -> bool:
        return self.config_file.exists()

    def initialize(self) -> None:
        """Initialize workspace directory structure and config."""
        for dir_path in self.REQUIRED_DIRS:
            (self.root / dir_path).mkdir(parents=True, exist_ok=True)

        # An existing config is kept as is
        if not self.config_file.exists():
            with open(self.config_file, "w") as f:
                yaml.dump(self.DEFAULT_CONFIG, f, default_flow_style=False, sort_keys=False)

    def load_config(self) -> dict[str, Any]:
        """
        Load and validate workspace configuration.

        Raises:
            WorkspaceNotFoundError: If the workspace has no ing-switch.yaml
            InvalidConfigError: If the file is not a mapping or fails schema validation
        """
        if self._config_cache is not None:
            return self._config_cache

        if not self.config_file.exists():
            raise WorkspaceNotFoundError(str(self.root))

        try:
            with open(self.config_file) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidConfigError(f"{self.config_file} is not valid YAML: {e}") from e

        if config is None:
            raise InvalidConfigError(f"{self.config_file} is empty")

        if not isinstance(config, dict):
            raise InvalidConfigError(f"expected a mapping, got {type(config).__name__}")

        validate_config(config)
        self._config_cache = config
        return config

    @property
    def output_dir(self) -> Path:
        config = self.load_config()
        return self.root / config.get("output", {}).get("dir", "output")

    def settings(self) -> SynthesisSettings:
        """Synthesis settings from the gateway and traefik sections."""
        return SynthesisSettings.from_config(self.load_config())


def validate_config(config: dict[str, Any]) -> None:
    """
    Validate a configuration mapping against the bundled JSON schema.

    Raises:
        InvalidConfigError: With the failing message and its dotted path
    """
    schema = json.loads(SCHEMA_FILE.read_text())
    try:
        validate(instance=config, schema=schema)
    except ValidationError as e:
        path = ".".join(str(p) for p in e.path) or "<root>"
        raise InvalidConfigError(f"{e.message} (at {path})") from e


def find_workspace(start: Path | None = None) -> Workspace | None:
    """Return the workspace at ``start`` (default: cwd) if it has a config file."""
    workspace = Workspace(start or Path.cwd())
    return workspace if workspace.exists else None
