"""Collection validation pipeline.

Stages: received -> normalized -> composed -> resolved -> evaluated -> accepted|rejected

Structural failures (schema, inheritance, MCP shape) stop the pipeline and return a
minimal rejected report. Resolution and quality findings are accumulated so the
caller sees every problem in one pass. Cancellation is propagated, never reported
as an invalid definition.

Composition runs before resolution so inherited packages are resolved too.
"""

import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .composer import compose_definition
from .config import ValidatorConfig
from .exceptions import InheritanceError
from .exceptions import MCPConfigError
from .exceptions import SchemaError
from .mcp import ensure_mcp_servers
from .protocols import DefinitionStore
from .protocols import RegistryLookup
from .quality import Finding
from .quality import FindingCode
from .quality import Severity
from .quality import evaluate_quality
from .resolver import resolve_packages
from .schema import CollectionDefinition
from .schema import normalize_definition

logger = logging.getLogger(__name__)


class Outcome(StrEnum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Stage(StrEnum):
    """Last pipeline stage completed."""

    RECEIVED = "received"
    NORMALIZED = "normalized"
    COMPOSED = "composed"
    RESOLVED = "resolved"
    EVALUATED = "evaluated"


def _collection_label(raw: Any) -> str | None:
    if isinstance(raw, CollectionDefinition):
        return raw.reference
    if isinstance(raw, Mapping) and isinstance(raw.get("id"), str):
        return raw["id"]
    return None


class ValidationReport(BaseModel):
    """Final verdict on a collection definition."""

    model_config = ConfigDict(frozen=True)

    outcome: Outcome
    stage: Stage
    findings: list[Finding] = Field(default_factory=list)
    collection: str | None = None
    definition: CollectionDefinition | None = Field(default=None, exclude=True)

    @property
    def accepted(self) -> bool:
        return self.outcome == Outcome.ACCEPTED

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]

    def codes(self) -> list[FindingCode]:
        """Finding codes in report order."""
        return [f.code for f in self.findings]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for output (the composed definition is not included)."""
        return self.model_dump(mode="json", exclude_none=True)


class CollectionValidator:
    """
    Validate collection definitions against an injected registry and store.

    The registry, store and thresholds are app policy. The validator keeps no state
    between runs, so one instance can validate many definitions.
    """

    def __init__(
        self,
        registry: RegistryLookup,
        store: DefinitionStore | None = None,
        config: ValidatorConfig | None = None,
    ):
        """Initialize validator with app-provided collaborators.

        Args:
            registry: Registry client used to resolve package refs
            store: Definition store used to resolve `extends` (optional)
            config: Quality thresholds and lookup limits (defaults if omitted)

        Example:
            >>> validator = CollectionValidator(
            ...     registry=PrpmRegistryClient(base_url),
            ...     store=FileDefinitionStore([Path(".prpm/collections")]),
            ...     config=ValidatorConfig(strict_official=True),
            ... )
            >>> report = await validator.validate(json.loads(text))
        """
        self.registry = registry
        self.store = store
        self.config = config or ValidatorConfig()

    async def validate(self, raw: Any) -> ValidationReport:
        """
        Run the full pipeline on one definition.

        Args:
            raw: Raw definition (decoded JSON mapping) or a CollectionDefinition

        Returns:
            ValidationReport; outcome is accepted iff there is no Error finding

        Raises:
            asyncio.CancelledError: If the run is cancelled
        """
        stage = Stage.RECEIVED
        collection = _collection_label(raw)
        logger.info(f"Validating collection {collection!r}")

        definition: CollectionDefinition | None = None
        try:
            definition = normalize_definition(raw)
            collection = definition.reference
            stage = Stage.NORMALIZED

            definition = await compose_definition(definition, self.store)
            stage = Stage.COMPOSED

            mcp_findings = ensure_mcp_servers(definition.config)
        except SchemaError as e:
            findings = [Finding(severity=Severity.ERROR, code=FindingCode.SCHEMA_ERROR, message=m) for m in e.errors]
            return self._reject(stage, findings, collection)
        except InheritanceError as e:
            finding = Finding(severity=Severity.ERROR, code=FindingCode.INHERITANCE_ERROR, message=e.message)
            return self._reject(stage, [finding], collection, definition)
        except MCPConfigError as e:
            return self._reject(stage, e.findings, collection, definition)

        resolution = await resolve_packages(
            definition.packages,
            self.registry,
            concurrency=self.config.lookup_concurrency,
            timeout=self.config.lookup_timeout,
        )
        stage = Stage.RESOLVED

        quality = evaluate_quality(definition, self.config)
        stage = Stage.EVALUATED

        findings = [*mcp_findings, *resolution.findings(), *quality.findings]
        outcome = Outcome.REJECTED if any(f.is_error for f in findings) else Outcome.ACCEPTED

        logger.info(
            f"Collection {collection} {outcome}: "
            f"{sum(f.is_error for f in findings)} error(s), {sum(not f.is_error for f in findings)} warning(s)"
        )
        return ValidationReport(
            outcome=outcome,
            stage=stage,
            findings=findings,
            collection=collection,
            definition=definition,
        )

    def _reject(
        self,
        stage: Stage,
        findings: list[Finding],
        collection: str | None,
        definition: CollectionDefinition | None = None,
    ) -> ValidationReport:
        logger.info(f"Collection {collection} rejected at stage '{stage}': {len(findings)} structural error(s)")
        return ValidationReport(
            outcome=Outcome.REJECTED,
            stage=stage,
            findings=findings,
            collection=collection,
            definition=definition,
        )


async def validate_definition(
    raw: Any,
    registry: RegistryLookup,
    store: DefinitionStore | None = None,
    config: ValidatorConfig | None = None,
) -> ValidationReport:
    """
    Validate one definition (convenience wrapper around CollectionValidator).

    Example:
        >>> report = await validate_definition(data, registry)
        >>> report.accepted, report.codes()
        (False, [<FindingCode.MIN_PACKAGE_COUNT: 'MinPackageCount'>])
    """
    return await CollectionValidator(registry=registry, store=store, config=config).validate(raw)
