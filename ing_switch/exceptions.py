"""
Custom exceptions for ing-switch with helpful error messages.
"""


class IngSwitchError(Exception):
    """Base exception for ing-switch errors."""

    def __init__(self, message: str, suggestion: str = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(self.message)

    def __str__(self):
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


class WorkspaceError(IngSwitchError):
    """Errors related to workspace management."""

    pass


class WorkspaceNotFoundError(WorkspaceError):
    """Workspace not found or not initialized."""

    def __init__(self, path: str = None):
        message = "Not in an ing-switch workspace."
        if path:
            message = f"No ing-switch workspace found at: {path}"

        suggestion = (
            "Initialize a new workspace with:\n"
            "  ing-switch init <workspace-dir>\n\n"
            "Or navigate to an existing workspace directory."
        )
        super().__init__(message, suggestion)


class UnknownTargetError(IngSwitchError, ValueError):
    """Migration target is not one of the supported controllers."""

    def __init__(self, target: str, available: list[str] = None):
        self.target = target
        message = f"Unknown migration target: {target!r}"

        targets = available or ["traefik", "gateway-api"]
        target_list = "\n  - ".join(targets)
        suggestion = (
            f"Target must be one of:\n  - {target_list}\n\n"
            "Example:\n"
            f"  ing-switch analyze --target {targets[0]} --routes ingresses.yaml"
        )
        super().__init__(message, suggestion)


class RouteInputError(IngSwitchError):
    """Route records could not be read or parsed."""

    def __init__(self, source: str, details: str):
        message = f"Cannot load routes from {source}: {details}"
        suggestion = (
            "Provide an exported Ingress list or a saved route-record file:\n"
            "  kubectl get ingress -A -o yaml > ingresses.yaml\n"
            "  ing-switch analyze --target traefik --routes ingresses.yaml"
        )
        super().__init__(message, suggestion)


class FactsInputError(IngSwitchError):
    """Validation facts file could not be read or parsed."""

    def __init__(self, source: str, details: str):
        message = f"Cannot load validation facts from {source}: {details}"
        suggestion = (
            "Provide a YAML or JSON mapping with camelCase keys, for example:\n"
            "  legacyPresent: true\n"
            "  targetReady: true\n"
            "  routeCount: 12"
        )
        super().__init__(message, suggestion)


class KnowledgeBaseError(IngSwitchError):
    """The bundled annotation compatibility data is invalid."""

    def __init__(self, errors: list[str], source: str = None):
        error_list = "\n  - ".join(errors)
        message = f"Annotation knowledge base is invalid ({len(errors)} error(s)):\n  - {error_list}"
        if source:
            message = f"Annotation knowledge base {source} is invalid:\n  - {error_list}"

        suggestion = (
            "The packaged compatibility tables failed validation.\n"
            "Reinstall ing-switch or fix the data file under ing_switch/knowledge/data/."
        )
        super().__init__(message, suggestion)


class ConfigurationError(IngSwitchError):
    """Configuration file errors."""

    pass


class InvalidConfigError(ConfigurationError):
    """Configuration file is invalid."""

    def __init__(self, error_details: str):
        message = f"Invalid configuration file: {error_details}"

        suggestion = (
            "Fix the ing-switch.yaml file.\n"
            "You can regenerate the default configuration:\n"
            "  mv ing-switch.yaml ing-switch.yaml.backup\n"
            "  ing-switch init .\n\n"
            "Then merge your settings back from the backup."
        )
        super().__init__(message, suggestion)


class GenerationError(IngSwitchError):
    """Manifest synthesis produced an inconsistent artifact set."""

    def __init__(self, details: str):
        message = f"Manifest generation failed: {details}"
        suggestion = (
            "No files were written.\n"
            "Re-run with --verbose and report the route set that triggers it."
        )
        super().__init__(message, suggestion)


def format_error_for_cli(error: Exception) -> str:
    """
    Format an exception for CLI display with helpful information.

    Args:
        error: The exception to format

    Returns:
        Formatted error message string
    """
    if isinstance(error, IngSwitchError):
        output = f"[red]Error:[/red] {error.message}"
        if error.suggestion:
            output += f"\n\n[yellow]{error.suggestion}[/yellow]"
        return output
    else:
        return f"[red]Error:[/red] {str(error)}"
