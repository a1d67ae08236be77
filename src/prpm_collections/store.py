"""Definition stores - Look up parent collections for `extends`.

Search paths are app policy, injected at construction. Layout convention:

    <search_path>/<scope>/<id>.json

Files that don't follow the layout are still found by reading their metadata
(slow path), so the definition's scope/id is the single source of truth.
"""

import asyncio
import json
import logging
from pathlib import Path

from .exceptions import DefinitionNotFoundError
from .exceptions import SchemaError
from .schema import CollectionDefinition

logger = logging.getLogger(__name__)


def _has_matching_reference(json_path: Path, scope: str, collection_id: str) -> bool:
    """Check if a definition file declares the expected scope and id."""
    try:
        with open(json_path) as f:
            data = json.load(f)
        actual_scope = str(data.get("scope", "")).lstrip("@")
        return actual_scope == scope and data.get("id") == collection_id
    except Exception:
        return False


class InMemoryDefinitionStore:
    """Dict-backed store, keyed by (scope, id)."""

    def __init__(self, definitions: list[CollectionDefinition] | None = None):
        self._definitions: dict[tuple[str, str], CollectionDefinition] = {}
        for definition in definitions or []:
            self.add(definition)

    def add(self, definition: CollectionDefinition) -> None:
        self._definitions[(definition.scope, definition.id)] = definition

    async def get(self, scope: str, collection_id: str) -> CollectionDefinition | None:
        return self._definitions.get((scope, collection_id))


class FileDefinitionStore:
    """
    Resolve collection definitions from JSON files under injected search paths.

    Philosophy:
    - Simple, direct filesystem checks
    - No caching
    - Metadata (scope/id inside the file) wins over file names
    """

    def __init__(self, search_paths: list[Path]):
        """Initialize store with app-provided search paths.

        Args:
            search_paths: Paths to search in precedence order (lowest to highest).
                For example: [bundled, user, project] where project has highest precedence.

        Example:
            >>> store = FileDefinitionStore(search_paths=[
            ...     Path("/usr/share/prpm/collections"),  # Bundled (lowest)
            ...     Path.home() / ".prpm" / "collections",  # User
            ...     Path.cwd() / ".prpm" / "collections",  # Project (highest)
            ... ])
        """
        self.search_paths = search_paths

    def find(self, scope: str, collection_id: str) -> Path | None:
        """
        Find the definition file for scope/id.

        Resolution order: search paths in reverse (highest precedence first);
        within a path, the conventional location first, then any *.json file
        declaring the same scope and id.

        Returns:
            Path to the definition file if found, None otherwise
        """
        for search_path in reversed(self.search_paths):
            if not search_path.exists():
                continue

            # Fast path: conventional layout
            candidate = search_path / scope / f"{collection_id}.json"
            if candidate.is_file() and _has_matching_reference(candidate, scope, collection_id):
                return candidate.resolve()

            # Slow path: file name doesn't follow the convention
            for json_path in sorted(search_path.rglob("*.json")):
                if json_path.name.startswith("."):
                    continue
                if _has_matching_reference(json_path, scope, collection_id):
                    return json_path.resolve()

        return None

    def load(self, scope: str, collection_id: str) -> CollectionDefinition:
        """
        Load and normalize the definition for scope/id.

        Raises:
            DefinitionNotFoundError: If no search path holds the definition
            SchemaError: If the file is found but invalid
        """
        path = self.find(scope, collection_id)
        if path is None:
            raise DefinitionNotFoundError(
                f"Collection '{scope}/{collection_id}' not found in {len(self.search_paths)} search path(s)",
                context={"scope": scope, "id": collection_id, "search_paths": [str(p) for p in self.search_paths]},
            )

        logger.debug(f"Loading {scope}/{collection_id} from {path}")
        return CollectionDefinition.from_json(path)

    async def get(self, scope: str, collection_id: str) -> CollectionDefinition | None:
        """DefinitionStore protocol: None when the definition doesn't exist.

        Filesystem work runs in a worker thread so concurrent lookups keep going.
        """
        try:
            return await asyncio.to_thread(self.load, scope, collection_id)
        except DefinitionNotFoundError:
            return None

    def list_definitions(self) -> list[tuple[str, Path]]:
        """
        List all definitions by their metadata reference ("scope/id").

        Higher precedence search paths override lower ones. Unreadable or invalid
        files are skipped.

        Returns:
            List of (reference, definition_path) tuples
        """
        definitions: dict[str, Path] = {}

        # Iterate in precedence order (lowest to highest)
        for search_path in self.search_paths:
            if not search_path.exists():
                continue

            for json_path in sorted(search_path.rglob("*.json")):
                if json_path.name.startswith("."):
                    continue
                try:
                    definition = CollectionDefinition.from_json(json_path)
                except (OSError, ValueError, SchemaError) as e:
                    logger.debug(f"Could not read definition from {json_path}: {e}")
                    continue
                definitions[definition.reference] = json_path.resolve()

        return list(definitions.items())
