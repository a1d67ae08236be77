"""Collection validation exceptions.

Structural failures (schema, inheritance, MCP shape) are raised as exceptions and
turned into a rejected report by the pipeline. Soft findings are never raised.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .quality import Finding


class CollectionError(Exception):
    """Base exception for collection operations."""

    def __init__(self, message: str, context: dict | None = None):
        """Initialize with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dict with additional context (collection id, package id, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class SchemaError(CollectionError):
    """Definition is structurally invalid.

    Carries every violation found, not just the first one.
    """

    def __init__(self, errors: list[str], context: dict | None = None):
        self.errors = list(errors)
        count = len(self.errors)
        summary = "\n".join(f"  - {error}" for error in self.errors)
        super().__init__(f"Collection definition has {count} schema error(s):\n{summary}", context)


class InheritanceError(CollectionError):
    """Illegal `extends` reference (missing parent, self reference, or depth > 1)."""


class MCPConfigError(CollectionError):
    """Malformed MCP server block."""

    def __init__(self, findings: list["Finding"], context: dict | None = None):
        self.findings = list(findings)
        messages = "; ".join(finding.message for finding in self.findings)
        super().__init__(f"Invalid MCP server configuration: {messages}", context)


class ResolutionFailure(CollectionError):
    """One or more required packages could not be resolved against the registry."""

    def __init__(self, package_ids: list[str], context: dict | None = None):
        self.package_ids = list(package_ids)
        super().__init__(f"Unresolved required package(s): {', '.join(self.package_ids)}", context)


class DefinitionNotFoundError(CollectionError):
    """Collection definition not found in store search paths."""
