"""Protocols for the validator's external collaborators.

The registry client, the definition store and the package suggester are owned by
the app. The library only requires these interfaces and only reads through them.
"""

from typing import TYPE_CHECKING
from typing import Any
from typing import Protocol
from typing import runtime_checkable

if TYPE_CHECKING:
    from .curation import CandidatePackageRef
    from .resolver import ResolutionResult
    from .schema import CollectionDefinition


@runtime_checkable
class RegistryLookup(Protocol):
    """Protocol for resolving package references against a package registry.

    Example implementations:
    - HTTP client for the PRPM registry API
    - In-memory fixture for tests
    """

    async def lookup(self, package_id: str, version: str) -> "ResolutionResult":
        """Look up one package at a version (semver range or "latest").

        Must be read-only and idempotent. May raise; the resolver records the
        failure against the package and continues with the others.

        Args:
            package_id: Registry package identifier
            version: Requested version

        Returns:
            ResolutionResult with FOUND, NOT_FOUND or VERSION_MISMATCH status
        """
        ...


@runtime_checkable
class DefinitionStore(Protocol):
    """Protocol for fetching parent collection definitions (used for `extends`)."""

    async def get(self, scope: str, collection_id: str) -> "CollectionDefinition | None":
        """Get a collection definition by scope and id.

        Args:
            scope: Collection scope (e.g. "collection" for official collections)
            collection_id: Collection slug

        Returns:
            The definition if it exists, None otherwise
        """
        ...


@runtime_checkable
class PackageSuggester(Protocol):
    """Protocol for package discovery (e.g. an LLM-guided search agent).

    Non-deterministic by nature; kept behind this interface so validation never
    depends on it.
    """

    async def suggest(self, criteria: dict[str, Any]) -> list["CandidatePackageRef"]:
        """Suggest candidate packages for a collection.

        Args:
            criteria: Free-form search criteria (category, framework, keywords, ...)

        Returns:
            Candidates, best first
        """
        ...
