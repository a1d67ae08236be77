"""Package reference resolver - Resolve package refs against an injected registry.

The registry client is app policy; this module only schedules lookups.

Resolution is best-effort and total:
- Every ref (and every formatSpecific alternate) gets exactly one lookup
- Lookups run concurrently, bounded by a semaphore, each with a timeout
- A timed-out or failing lookup is recorded as NOT_FOUND with a reason code,
  the remaining lookups carry on
- Cancelling the caller cancels in-flight lookups; no partial report is built

The report is keyed by packageId in input order, so completion order never
changes the outcome.
"""

import asyncio
import logging
from collections.abc import Sequence
from enum import StrEnum
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .exceptions import ResolutionFailure
from .protocols import RegistryLookup
from .quality import Finding
from .quality import FindingCode
from .quality import Severity
from .schema import PackageFormat
from .schema import PackageRef

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8
DEFAULT_TIMEOUT = 10.0


class ResolutionStatus(StrEnum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    VERSION_MISMATCH = "version_mismatch"


class ReasonCode(StrEnum):
    """Why a lookup did not resolve."""

    NOT_FOUND = "not_found"
    VERSION_MISMATCH = "version_mismatch"
    TIMEOUT = "timeout"
    LOOKUP_ERROR = "lookup_error"


class ResolutionResult(BaseModel):
    """Outcome of one registry lookup."""

    model_config = ConfigDict(frozen=True)

    status: ResolutionStatus
    metadata: dict[str, Any] = Field(default_factory=dict)
    resolved_version: str | None = None
    message: str = ""
    reason_code: ReasonCode | None = None

    @classmethod
    def found(cls, resolved_version: str | None = None, **metadata: Any) -> "ResolutionResult":
        return cls(status=ResolutionStatus.FOUND, resolved_version=resolved_version, metadata=metadata)

    @classmethod
    def not_found(cls, message: str = "") -> "ResolutionResult":
        return cls(status=ResolutionStatus.NOT_FOUND, message=message, reason_code=ReasonCode.NOT_FOUND)

    @classmethod
    def version_mismatch(cls, message: str = "") -> "ResolutionResult":
        return cls(status=ResolutionStatus.VERSION_MISMATCH, message=message, reason_code=ReasonCode.VERSION_MISMATCH)

    @property
    def is_resolved(self) -> bool:
        return self.status == ResolutionStatus.FOUND

    @property
    def reason(self) -> str:
        """Reason code for unresolved results ("" when resolved)."""
        if self.is_resolved:
            return ""
        return str(self.reason_code or self.status)


class PackageResolution(BaseModel):
    """Resolution of one package ref, including its format-specific alternates."""

    model_config = ConfigDict(frozen=True)

    package: PackageRef
    result: ResolutionResult
    format_results: dict[PackageFormat, ResolutionResult] = Field(default_factory=dict)

    @property
    def package_id(self) -> str:
        return self.package.package_id

    @property
    def is_resolved(self) -> bool:
        return self.result.is_resolved

    @property
    def unresolved_formats(self) -> list[PackageFormat]:
        return [fmt for fmt, result in self.format_results.items() if not result.is_resolved]


def _describe(package_id: str, version: str, result: ResolutionResult) -> str:
    detail = f" ({result.message})" if result.message else ""
    if result.reason == ReasonCode.VERSION_MISMATCH:
        return f"No version of '{package_id}' matches '{version}'{detail}"
    if result.reason == ReasonCode.TIMEOUT:
        return f"Registry lookup for '{package_id}@{version}' timed out{detail}"
    if result.reason == ReasonCode.LOOKUP_ERROR:
        return f"Registry lookup for '{package_id}@{version}' failed{detail}"
    return f"Package '{package_id}@{version}' not found in registry{detail}"


class ResolutionReport(BaseModel):
    """Resolution outcome for every package of a definition, keyed by packageId."""

    model_config = ConfigDict(frozen=True)

    results: dict[str, PackageResolution] = Field(default_factory=dict)

    @property
    def resolved(self) -> list[PackageResolution]:
        return [r for r in self.results.values() if r.is_resolved]

    @property
    def unresolved(self) -> list[PackageResolution]:
        return [r for r in self.results.values() if not r.is_resolved]

    @property
    def unresolved_required(self) -> list[PackageResolution]:
        return [r for r in self.unresolved if r.package.required]

    @property
    def unresolved_optional(self) -> list[PackageResolution]:
        return [r for r in self.unresolved if not r.package.required]

    def findings(self) -> list[Finding]:
        """Findings in input order: required misses are Errors, everything else Warnings."""
        findings = []
        for resolution in self.results.values():
            package = resolution.package
            if not resolution.is_resolved:
                findings.append(
                    Finding(
                        severity=Severity.ERROR if package.required else Severity.WARNING,
                        code=FindingCode.RESOLUTION_FAILURE if package.required else FindingCode.UNRESOLVED_OPTIONAL,
                        message=_describe(package.package_id, package.version, resolution.result),
                        package_id=package.package_id,
                    )
                )
            for fmt in resolution.unresolved_formats:
                alternate = package.format_specific[fmt]
                findings.append(
                    Finding(
                        severity=Severity.WARNING,
                        code=FindingCode.FORMAT_VARIANT_UNRESOLVED,
                        message=f"{fmt} variant: "
                        + _describe(alternate, package.version, resolution.format_results[fmt]),
                        package_id=package.package_id,
                    )
                )
        return findings

    def raise_for_required(self) -> None:
        """Raise ResolutionFailure if any required package is unresolved."""
        missing = self.unresolved_required
        if missing:
            raise ResolutionFailure(
                [r.package_id for r in missing],
                context={"reasons": {r.package_id: r.result.reason for r in missing}},
            )


async def resolve_packages(
    packages: Sequence[PackageRef],
    registry: RegistryLookup,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    timeout: float = DEFAULT_TIMEOUT,
) -> ResolutionReport:
    """
    Resolve every package ref (and formatSpecific alternate) against the registry.

    Args:
        packages: Package refs in install order
        registry: Registry client implementing RegistryLookup
        concurrency: Maximum lookups in flight at once
        timeout: Seconds allowed per lookup; a timeout counts as NOT_FOUND

    Returns:
        ResolutionReport keyed by packageId in input order

    Raises:
        asyncio.CancelledError: If the caller is cancelled (no partial report)

    Example:
        >>> report = await resolve_packages(definition.packages, registry, concurrency=4)
        >>> [r.package_id for r in report.unresolved_required]
        ['missing-package']
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    semaphore = asyncio.Semaphore(concurrency)

    async def _lookup(package_id: str, version: str) -> ResolutionResult:
        async with semaphore:
            try:
                result = await asyncio.wait_for(registry.lookup(package_id, version), timeout=timeout)
                if not isinstance(result, ResolutionResult):
                    raise TypeError(f"registry returned {type(result).__name__}, expected ResolutionResult")
                logger.debug(f"Lookup {package_id}@{version}: {result.status}")
            except TimeoutError:
                logger.warning(f"Lookup for {package_id}@{version} timed out after {timeout}s")
                return ResolutionResult(
                    status=ResolutionStatus.NOT_FOUND,
                    reason_code=ReasonCode.TIMEOUT,
                    message=f"no response within {timeout}s",
                )
            except Exception as e:
                logger.warning(f"Lookup for {package_id}@{version} failed: {e}")
                return ResolutionResult(
                    status=ResolutionStatus.NOT_FOUND,
                    reason_code=ReasonCode.LOOKUP_ERROR,
                    message=str(e),
                )

        return result

    variants = [(package, fmt, alternate) for package in packages for fmt, alternate in package.format_specific.items()]

    outcomes = await asyncio.gather(
        *(_lookup(package.package_id, package.version) for package in packages),
        *(_lookup(alternate, package.version) for package, _, alternate in variants),
    )
    main_results = outcomes[: len(packages)]
    variant_results = outcomes[len(packages) :]

    format_results: dict[str, dict[PackageFormat, ResolutionResult]] = {p.package_id: {} for p in packages}
    for (package, fmt, _), result in zip(variants, variant_results, strict=True):
        format_results[package.package_id][fmt] = result

    report = ResolutionReport(
        results={
            package.package_id: PackageResolution(
                package=package,
                result=result,
                format_results=format_results[package.package_id],
            )
            for package, result in zip(packages, main_results, strict=True)
        }
    )

    logger.debug(f"Resolved {len(report.resolved)}/{len(report.results)} package(s)")
    return report
