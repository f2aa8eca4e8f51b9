"""Module-name and report-path helpers.

Module ids use Gradle's colon notation (``:core:common``); report paths are
derived from them with a ``{module}`` template (``core/common/...``).
"""

from __future__ import annotations

from pathlib import Path

MODULE_PLACEHOLDER = "{module}"


class PathSecurityError(Exception):
    """Raised when a path resolves outside the workspace."""


def normalize_module_name(module_name: str) -> str:
    """Normalize a module name to canonical ``:a:b`` form.

    Examples:
        >>> normalize_module_name("core:common")
        ':core:common'
        >>> normalize_module_name(":app:")
        ':app'

    Raises:
        ValueError: If the name is blank or contains an empty segment (``::``).
    """
    normalized = module_name.strip()
    if not normalized:
        raise ValueError("Module name cannot be empty")
    if "::" in normalized:
        raise ValueError(
            f'Invalid module name format: "{module_name}" contains empty segments (::)'
        )

    if not normalized.startswith(":"):
        normalized = f":{normalized}"
    if normalized.endswith(":") and len(normalized) > 1:
        normalized = normalized[:-1]
    return normalized


def module_to_path(module_name: str) -> str:
    """Convert ``:core:common`` to ``core/common``."""
    return module_name.removeprefix(":").replace(":", "/")


def resolve_module_path(module_name: str, template: str) -> str:
    """Substitute a module's path into every ``{module}`` of ``template``.

    Example:
        >>> resolve_module_path(":core:common", "{module}/build/reports/kover/report.xml")
        'core/common/build/reports/kover/report.xml'
    """
    return template.replace(MODULE_PLACEHOLDER, module_to_path(module_name))


def resolve_secure_path(base_path: Path | str, relative_path: Path | str) -> Path:
    """Resolve ``relative_path`` against ``base_path`` and keep it inside the base.

    Returns:
        The resolved absolute path.

    Raises:
        PathSecurityError: If the resolved path escapes ``base_path``.
    """
    base = Path(base_path).resolve()
    resolved = (base / relative_path).resolve()
    if not resolved.is_relative_to(base):
        raise PathSecurityError(
            f"Path traversal detected: {relative_path} resolves outside workspace"
        )
    return resolved
