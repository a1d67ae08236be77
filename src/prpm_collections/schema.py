"""Collection definition schema - Normalize raw definitions into frozen models.

Wire format is camelCase JSON (packageId, installOrder, mcpServers, ...); snake_case
field names are accepted on input too. Primitive fields are strict: no implicit
str/int/bool coercion. Unknown extra fields are kept and re-emitted on dump.

MCP server blocks are intentionally loose here. Their shape is checked by the MCP
config validator so problems surface as MCPConfigError findings.
"""

import json
import logging
import re
from collections import Counter
from collections.abc import Mapping
from enum import StrEnum
from pathlib import Path
from typing import Annotated
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import StrictBool
from pydantic import StrictInt
from pydantic import StrictStr
from pydantic import ValidationError
from pydantic import field_validator
from pydantic.alias_generators import to_camel

from .exceptions import SchemaError

logger = logging.getLogger(__name__)

# Reserved scope for official collections (@collection/<id>)
OFFICIAL_SCOPE = "collection"

# Version sentinel meaning "no pinning"
LATEST = "latest"

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


class Category(StrEnum):
    """Closed set of collection categories."""

    DEVELOPMENT = "development"
    DESIGN = "design"
    DATA_SCIENCE = "data-science"
    DEVOPS = "devops"
    TESTING = "testing"
    DOCUMENTATION = "documentation"
    GENERAL = "general"


class PackageFormat(StrEnum):
    """Editor formats a package can be installed as."""

    CURSOR = "cursor"
    CLAUDE = "claude"
    CONTINUE = "continue"
    WINDSURF = "windsurf"


class InstallMode(StrEnum):
    """How a collection's packages are installed."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


def _model_config(**overrides: Any) -> ConfigDict:
    return ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, **overrides)


def _strip_at(value: str) -> str:
    return value[1:] if value.startswith("@") else value


def parse_reference(reference: str, default_scope: str) -> tuple[str, str]:
    """Split a collection reference into (scope, id).

    Accepts "@scope/id", "scope/id" or a bare "id" (resolved in default_scope).

    Example:
        >>> parse_reference("@collection/nextjs-pro", "alice")
        ('collection', 'nextjs-pro')
        >>> parse_reference("base-stack", "alice")
        ('alice', 'base-stack')
    """
    reference = _strip_at(reference.strip())
    if "/" in reference:
        scope, _, collection_id = reference.partition("/")
        return scope, collection_id
    return default_scope, reference


def duplicate_package_ids(package_ids: list[str]) -> list[str]:
    """packageIds listed more than once, in first-seen order."""
    counts = Counter(package_ids)
    return [package_id for package_id, count in counts.items() if count > 1]


def _duplicate_message(duplicates: list[str]) -> str:
    return "duplicate packageId " + ", ".join(f"'{package_id}'" for package_id in duplicates)


class MCPServerConfig(BaseModel):
    """MCP server descriptor attached to a collection (shape checked separately)."""

    model_config = _model_config(extra="allow")

    command: Any = ""
    args: Any = Field(default_factory=list)
    env: Any = None
    description: StrictStr = ""
    optional: Any = False


class CollectionConfig(BaseModel):
    """Collection-level install configuration."""

    model_config = _model_config(extra="allow")

    default_format: PackageFormat | None = None
    install_order: InstallMode = InstallMode.SEQUENTIAL
    post_install: StrictStr | None = None
    mcp_servers: dict[str, MCPServerConfig] = Field(default_factory=dict)


class PackageRef(BaseModel):
    """One package's membership in a collection."""

    model_config = _model_config(extra="allow")

    package_id: StrictStr = Field(min_length=1)
    version: StrictStr = Field(default=LATEST, min_length=1)
    required: StrictBool = True
    reason: StrictStr = ""
    install_order: Annotated[StrictInt, Field(ge=1)] | None = None
    format_override: PackageFormat | None = None
    format_specific: dict[PackageFormat, StrictStr] = Field(default_factory=dict)

    @property
    def is_pinned(self) -> bool:
        """True if the version is anything other than the "latest" sentinel."""
        return self.version != LATEST


class CollectionDefinition(BaseModel):
    """
    A candidate collection: metadata, ordered packages, optional parent and config.

    Package order is install order. `extends` names at most one parent collection
    and is resolved through a DefinitionStore, never through Python inheritance.
    """

    model_config = _model_config(extra="allow")

    id: StrictStr
    scope: StrictStr
    name: StrictStr = Field(min_length=1)
    description: StrictStr
    version: StrictStr
    category: Category | None = None
    tags: list[StrictStr] = Field(default_factory=list)
    framework: StrictStr | None = None
    icon: StrictStr = Field(min_length=1)
    official: StrictBool = False
    verified: StrictBool = False
    packages: list[PackageRef] = Field(default_factory=list)
    config: CollectionConfig | None = None
    extends: StrictStr | None = None

    @field_validator("id")
    @classmethod
    def _validate_id(cls, v: str) -> str:
        if not SLUG_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a lowercase slug (letters, digits, single hyphens)")
        return v

    @field_validator("scope")
    @classmethod
    def _validate_scope(cls, v: str) -> str:
        scope = _strip_at(v)
        if not SLUG_PATTERN.match(scope):
            raise ValueError(f"'{v}' is not a valid scope")
        return scope

    @field_validator("description")
    @classmethod
    def _validate_description(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description must not be empty")
        return v

    @field_validator("version")
    @classmethod
    def _validate_version(cls, v: str) -> str:
        if not SEMVER_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a semantic version (MAJOR.MINOR.PATCH)")
        return v

    @field_validator("packages")
    @classmethod
    def _validate_unique_packages(cls, v: list[PackageRef]) -> list[PackageRef]:
        duplicates = duplicate_package_ids([package.package_id for package in v])
        if duplicates:
            raise ValueError(_duplicate_message(duplicates))
        return v

    @field_validator("extends")
    @classmethod
    def _validate_extends(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        scope, collection_id = parse_reference(v, default_scope=OFFICIAL_SCOPE)
        if not SLUG_PATTERN.match(scope) or not SLUG_PATTERN.match(collection_id):
            raise ValueError(f"'{v}' is not a collection reference (expected 'scope/id' or 'id')")
        return v

    @property
    def reference(self) -> str:
        """Canonical "scope/id" reference."""
        return f"{self.scope}/{self.id}"

    @property
    def is_official(self) -> bool:
        return self.scope == OFFICIAL_SCOPE or self.official

    @property
    def package_ids(self) -> list[str]:
        return [package.package_id for package in self.packages]

    def parent_reference(self) -> tuple[str, str] | None:
        """(scope, id) of the parent collection, or None if standalone."""
        if not self.extends:
            return None
        return parse_reference(self.extends, default_scope=self.scope)

    def to_dict(self) -> dict[str, Any]:
        """Dump in wire format (camelCase, None omitted, extra fields kept)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, json_path: Path) -> "CollectionDefinition":
        """
        Load and normalize a collection definition from a JSON file.

        Args:
            json_path: Path to the definition file

        Returns:
            CollectionDefinition instance

        Raises:
            FileNotFoundError: If the file doesn't exist
            json.JSONDecodeError: If the file is not valid JSON
            SchemaError: If the definition is structurally invalid
        """
        if not json_path.exists():
            raise FileNotFoundError(f"Collection definition not found: {json_path}")

        with open(json_path) as f:
            data = json.load(f)

        return normalize_definition(data)


def _format_location(loc: tuple[int | str, ...]) -> str:
    parts: list[str] = []
    for item in loc:
        if isinstance(item, int):
            parts.append(f"[{item}]")
        elif parts:
            parts.append(f".{item}")
        else:
            parts.append(str(item))
    return "".join(parts) or "definition"


def _raw_duplicate_errors(raw: Mapping[str, Any]) -> list[str]:
    # Only needed when a package entry failed validation, so the packages
    # validator never saw the full list
    packages = raw.get("packages")
    if not isinstance(packages, list):
        return []

    package_ids = []
    for entry in packages:
        if isinstance(entry, Mapping):
            package_id = entry.get("packageId", entry.get("package_id"))
            if isinstance(package_id, str) and package_id:
                package_ids.append(package_id)

    duplicates = duplicate_package_ids(package_ids)
    return [f"packages: {_duplicate_message(duplicates)}"] if duplicates else []


def normalize_definition(raw: Any) -> CollectionDefinition:
    """
    Parse a raw key/value tree into a CollectionDefinition.

    All structural violations are collected and raised together, so tooling can
    report them in one pass.

    Args:
        raw: Untyped mapping (typically decoded JSON) or an existing definition

    Returns:
        Normalized, frozen CollectionDefinition

    Raises:
        SchemaError: Listing every violation found

    Example:
        >>> definition = normalize_definition(json.loads(text))
        >>> definition.reference
        'collection/nextjs-pro'
    """
    if isinstance(raw, CollectionDefinition):
        # model_copy(update=...) skips validation, so re-check the packages list
        duplicates = duplicate_package_ids(raw.package_ids)
        if duplicates:
            raise SchemaError([f"packages: {_duplicate_message(duplicates)}"], context={"collection_id": raw.id})
        return raw

    if not isinstance(raw, Mapping):
        raise SchemaError([f"definition: expected an object, got {type(raw).__name__}"])

    errors: list[str] = []
    definition: CollectionDefinition | None = None

    try:
        definition = CollectionDefinition.model_validate(dict(raw))
    except ValidationError as e:
        errors.extend(f"{_format_location(err['loc'])}: {err['msg']}" for err in e.errors())
        if any(len(err["loc"]) > 1 and err["loc"][0] == "packages" for err in e.errors()):
            errors.extend(_raw_duplicate_errors(raw))

    if errors or definition is None:
        collection_id = raw.get("id")
        logger.debug(f"Definition '{collection_id}' failed normalization with {len(errors)} error(s)")
        raise SchemaError(errors, context={"collection_id": collection_id})

    logger.debug(f"Normalized definition {definition.reference} with {len(definition.packages)} packages")
    return definition
