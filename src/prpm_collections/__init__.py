"""prpm-collections - Collection definition validation and composition.

Library mechanism only: apps inject the registry client, the definition store,
the package suggester and the validation thresholds.
"""

from .composer import compose_definition
from .composer import merge_definitions
from .config import ValidatorConfig
from .curation import CandidatePackageRef
from .curation import add_packages
from .curation import curate_definition
from .exceptions import CollectionError
from .exceptions import DefinitionNotFoundError
from .exceptions import InheritanceError
from .exceptions import MCPConfigError
from .exceptions import ResolutionFailure
from .exceptions import SchemaError
from .mcp import validate_mcp_servers
from .protocols import DefinitionStore
from .protocols import PackageSuggester
from .protocols import RegistryLookup
from .quality import Finding
from .quality import FindingCode
from .quality import QualityReport
from .quality import Severity
from .quality import evaluate_quality
from .resolver import PackageResolution
from .resolver import ReasonCode
from .resolver import ResolutionReport
from .resolver import ResolutionResult
from .resolver import ResolutionStatus
from .resolver import resolve_packages
from .schema import OFFICIAL_SCOPE
from .schema import Category
from .schema import CollectionConfig
from .schema import CollectionDefinition
from .schema import InstallMode
from .schema import MCPServerConfig
from .schema import PackageFormat
from .schema import PackageRef
from .schema import normalize_definition
from .store import FileDefinitionStore
from .store import InMemoryDefinitionStore
from .validator import CollectionValidator
from .validator import Outcome
from .validator import Stage
from .validator import ValidationReport
from .validator import validate_definition

__all__ = [
    # Schema
    "OFFICIAL_SCOPE",
    "Category",
    "CollectionConfig",
    "CollectionDefinition",
    "InstallMode",
    "MCPServerConfig",
    "PackageFormat",
    "PackageRef",
    "normalize_definition",
    # Configuration
    "ValidatorConfig",
    # Resolution
    "PackageResolution",
    "ReasonCode",
    "ResolutionReport",
    "ResolutionResult",
    "ResolutionStatus",
    "resolve_packages",
    # Inheritance
    "compose_definition",
    "merge_definitions",
    "FileDefinitionStore",
    "InMemoryDefinitionStore",
    # Quality
    "Finding",
    "FindingCode",
    "QualityReport",
    "Severity",
    "evaluate_quality",
    "validate_mcp_servers",
    # Pipeline
    "CollectionValidator",
    "Outcome",
    "Stage",
    "ValidationReport",
    "validate_definition",
    # Curation
    "CandidatePackageRef",
    "add_packages",
    "curate_definition",
    # Protocols
    "DefinitionStore",
    "PackageSuggester",
    "RegistryLookup",
    # Exceptions
    "CollectionError",
    "DefinitionNotFoundError",
    "InheritanceError",
    "MCPConfigError",
    "ResolutionFailure",
    "SchemaError",
]

__version__ = "0.1.0"
