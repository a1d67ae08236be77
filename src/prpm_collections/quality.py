"""Quality rule engine - curation heuristics for collection definitions.

Rules are independent functions; evaluation order never changes the outcome.
Hard consistency rules produce Errors (block publication), curation heuristics
produce Warnings (advisory). With strict_official enabled, advisory rules are
escalated to Errors for official collections.
"""

import logging
from collections import Counter
from collections.abc import Callable
from enum import StrEnum

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .config import ValidatorConfig
from .schema import LATEST
from .schema import Category
from .schema import CollectionDefinition

logger = logging.getLogger(__name__)


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class FindingCode(StrEnum):
    """Closed set of finding codes reported by the validator."""

    # Structural
    SCHEMA_ERROR = "SchemaError"
    INHERITANCE_ERROR = "InheritanceError"
    MCP_CONFIG_ERROR = "MCPConfigError"
    MCP_CONFIG_SHAPE = "MCPConfigShape"

    # Resolution
    RESOLUTION_FAILURE = "ResolutionFailure"
    UNRESOLVED_OPTIONAL = "UnresolvedOptional"
    FORMAT_VARIANT_UNRESOLVED = "FormatVariantUnresolved"

    # Quality
    MIN_PACKAGE_COUNT = "MinPackageCount"
    REQUIRED_RATIO = "RequiredRatio"
    MISSING_REASON = "MissingReason"
    INSTALL_ORDER_UNIQUENESS = "InstallOrderUniqueness"
    TAG_CARDINALITY = "TagCardinality"
    CATEGORY_PRESENCE = "CategoryPresence"
    VERSION_PINNING = "VersionPinning"
    DESCRIPTION_LENGTH = "DescriptionLength"


class Finding(BaseModel):
    """One problem found in a definition."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    code: FindingCode
    message: str
    package_id: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR


class QualityReport(BaseModel):
    """Ordered findings from the quality rules."""

    model_config = ConfigDict(frozen=True)

    findings: list[Finding] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        """True if no Error-severity finding was produced."""
        return not any(finding.is_error for finding in self.findings)

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]


QualityRule = Callable[[CollectionDefinition, ValidatorConfig], list[Finding]]

# Rules whose findings are advisory unless strict mode applies
ADVISORY_CODES = frozenset(
    {
        FindingCode.REQUIRED_RATIO,
        FindingCode.MISSING_REASON,
        FindingCode.TAG_CARDINALITY,
        FindingCode.VERSION_PINNING,
        FindingCode.DESCRIPTION_LENGTH,
    }
)


def _warning(code: FindingCode, message: str, package_id: str | None = None) -> Finding:
    return Finding(severity=Severity.WARNING, code=code, message=message, package_id=package_id)


def _error(code: FindingCode, message: str, package_id: str | None = None) -> Finding:
    return Finding(severity=Severity.ERROR, code=code, message=message, package_id=package_id)


def check_min_package_count(definition: CollectionDefinition, config: ValidatorConfig) -> list[Finding]:
    count = len(definition.packages)
    if count < config.min_packages:
        return [
            _error(
                FindingCode.MIN_PACKAGE_COUNT,
                f"Collection has {count} package(s); at least {config.min_packages} are needed for a complete workflow",
            )
        ]
    return []


def check_required_ratio(definition: CollectionDefinition, config: ValidatorConfig) -> list[Finding]:
    """Balance of required vs optional packages (empty collections are left to MinPackageCount)."""
    if not definition.packages:
        return []

    required = sum(1 for package in definition.packages if package.required)
    ratio = required / len(definition.packages)
    if config.required_ratio_min <= ratio <= config.required_ratio_max:
        return []

    return [
        _warning(
            FindingCode.REQUIRED_RATIO,
            f"{required} of {len(definition.packages)} packages are required ({ratio:.0%}); "
            f"aim for {config.required_ratio_min:.0%}-{config.required_ratio_max:.0%}",
        )
    ]


def check_missing_reason(definition: CollectionDefinition, config: ValidatorConfig) -> list[Finding]:
    return [
        _warning(
            FindingCode.MISSING_REASON,
            f"Package '{package.package_id}' has no reason explaining why it is included",
            package_id=package.package_id,
        )
        for package in definition.packages
        if not package.reason.strip()
    ]


def check_install_order_uniqueness(definition: CollectionDefinition, config: ValidatorConfig) -> list[Finding]:
    counts = Counter(p.install_order for p in definition.packages if p.install_order is not None)
    findings = []
    for order, count in counts.items():
        if count < 2:
            continue
        package_ids = [p.package_id for p in definition.packages if p.install_order == order]
        findings.append(
            _error(
                FindingCode.INSTALL_ORDER_UNIQUENESS,
                f"installOrder {order} is shared by {', '.join(package_ids)}",
            )
        )
    return findings


def check_tag_cardinality(definition: CollectionDefinition, config: ValidatorConfig) -> list[Finding]:
    count = len(set(definition.tags))
    if config.min_tags <= count <= config.max_tags:
        return []
    return [
        _warning(
            FindingCode.TAG_CARDINALITY,
            f"Collection has {count} distinct tag(s); use {config.min_tags}-{config.max_tags} for discoverability",
        )
    ]


def check_category_presence(definition: CollectionDefinition, config: ValidatorConfig) -> list[Finding]:
    if definition.category is None:
        return [_error(FindingCode.CATEGORY_PRESENCE, "Collection has no category")]
    if definition.category not in set(Category):
        return [_error(FindingCode.CATEGORY_PRESENCE, f"Unknown category '{definition.category}'")]
    return []


def check_version_pinning(definition: CollectionDefinition, config: ValidatorConfig) -> list[Finding]:
    if definition.packages and all(package.version == LATEST for package in definition.packages):
        return [
            _warning(
                FindingCode.VERSION_PINNING,
                f"All packages use '{LATEST}'; pin versions for a reproducible collection",
            )
        ]
    return []


def check_description_length(definition: CollectionDefinition, config: ValidatorConfig) -> list[Finding]:
    length = len(definition.description.strip())
    if length < config.min_description_length:
        return [
            _warning(
                FindingCode.DESCRIPTION_LENGTH,
                f"Description is {length} characters; write at least {config.min_description_length} "
                f"explaining what the collection provides",
            )
        ]
    return []


QUALITY_RULES: tuple[QualityRule, ...] = (
    check_min_package_count,
    check_required_ratio,
    check_missing_reason,
    check_install_order_uniqueness,
    check_tag_cardinality,
    check_category_presence,
    check_version_pinning,
    check_description_length,
)


def _escalate(finding: Finding) -> Finding:
    if finding.code in ADVISORY_CODES and finding.severity == Severity.WARNING:
        return finding.model_copy(update={"severity": Severity.ERROR})
    return finding


def evaluate_quality(
    definition: CollectionDefinition,
    config: ValidatorConfig | None = None,
    rules: tuple[QualityRule, ...] = QUALITY_RULES,
) -> QualityReport:
    """
    Run every quality rule against a composed definition.

    Args:
        definition: Fully composed definition (no pending `extends`)
        config: Thresholds (defaults to ValidatorConfig())
        rules: Rules to run (defaults to QUALITY_RULES)

    Returns:
        QualityReport with findings in rule order

    Example:
        >>> report = evaluate_quality(definition, ValidatorConfig(min_packages=5))
        >>> report.passed
        False
    """
    config = config or ValidatorConfig()
    findings: list[Finding] = []
    for rule in rules:
        findings.extend(rule(definition, config))

    if config.strict_official and definition.is_official:
        findings = [_escalate(finding) for finding in findings]
        logger.debug(f"Strict mode applied to official collection {definition.reference}")

    report = QualityReport(findings=findings)
    logger.debug(
        f"Quality rules for {definition.reference}: {len(report.errors)} error(s), {len(report.warnings)} warning(s)"
    )
    return report
