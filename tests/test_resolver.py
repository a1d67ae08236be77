"""Tests for package reference resolution against an injected registry."""

import asyncio
import random

import pytest
from prpm_collections import FindingCode
from prpm_collections import PackageRef
from prpm_collections import ReasonCode
from prpm_collections import ResolutionFailure
from prpm_collections import ResolutionStatus
from prpm_collections import Severity
from prpm_collections import normalize_definition
from prpm_collections import resolve_packages


def _refs(*package_ids: str, required: bool = True) -> list[PackageRef]:
    return [PackageRef(package_id=pid, version="^1.0.0", required=required) for pid in package_ids]


@pytest.mark.asyncio
async def test_resolve_all_found(registry):
    """Test every ref resolves when the registry has them."""
    report = await resolve_packages(_refs("a", "b", "c"), registry)

    assert [r.package_id for r in report.resolved] == ["a", "b", "c"]
    assert report.unresolved == []
    assert report.findings() == []
    assert report.results["a"].result.resolved_version == "1.0.0"
    assert sorted(registry.calls) == [("a", "^1.0.0"), ("b", "^1.0.0"), ("c", "^1.0.0")]


@pytest.mark.asyncio
async def test_unresolved_required_is_error(registry_factory):
    """Test a missing required package yields a ResolutionFailure error."""
    registry = registry_factory(missing={"b"})

    report = await resolve_packages(_refs("a", "b", "c"), registry)

    assert [r.package_id for r in report.unresolved_required] == ["b"]
    findings = report.findings()
    assert len(findings) == 1
    assert findings[0].code == FindingCode.RESOLUTION_FAILURE
    assert findings[0].severity == Severity.ERROR
    assert findings[0].package_id == "b"


@pytest.mark.asyncio
async def test_unresolved_optional_is_warning(registry_factory):
    """Test a missing optional package only warns."""
    registry = registry_factory(mismatched={"b"})
    refs = [*_refs("a"), *_refs("b", required=False)]

    report = await resolve_packages(refs, registry)

    assert report.unresolved_required == []
    assert [r.package_id for r in report.unresolved_optional] == ["b"]
    assert report.results["b"].result.status == ResolutionStatus.VERSION_MISMATCH
    findings = report.findings()
    assert [(f.code, f.severity) for f in findings] == [(FindingCode.UNRESOLVED_OPTIONAL, Severity.WARNING)]
    assert "matches" in findings[0].message


@pytest.mark.asyncio
async def test_lookup_failure_does_not_abort(registry_factory):
    """Test one failing lookup is recorded and others still resolve."""
    registry = registry_factory(failing={"b"})

    report = await resolve_packages(_refs("a", "b", "c"), registry)

    assert [r.package_id for r in report.resolved] == ["a", "c"]
    result = report.results["b"].result
    assert result.status == ResolutionStatus.NOT_FOUND
    assert result.reason_code == ReasonCode.LOOKUP_ERROR
    assert "registry unavailable" in result.message


@pytest.mark.asyncio
async def test_malformed_registry_result_is_lookup_error(registry):
    """Test a registry returning something other than a ResolutionResult is recorded, not raised."""

    class SloppyRegistry:
        async def lookup(self, package_id, version):
            if package_id == "b":
                return None
            return await registry.lookup(package_id, version)

    report = await resolve_packages(_refs("a", "b", "c"), SloppyRegistry())

    assert [r.package_id for r in report.resolved] == ["a", "c"]
    result = report.results["b"].result
    assert result.status == ResolutionStatus.NOT_FOUND
    assert result.reason_code == ReasonCode.LOOKUP_ERROR
    assert "NoneType" in result.message


@pytest.mark.asyncio
async def test_timeout_counts_as_not_found(registry_factory):
    """Test a hanging lookup times out with a distinguishing reason code."""
    registry = registry_factory(hanging={"slow"})

    report = await resolve_packages(_refs("fast", "slow"), registry, timeout=0.05)

    result = report.results["slow"].result
    assert result.status == ResolutionStatus.NOT_FOUND
    assert result.reason_code == ReasonCode.TIMEOUT
    assert report.results["fast"].is_resolved
    assert "timed out" in report.findings()[0].message


@pytest.mark.asyncio
async def test_concurrency_is_bounded(registry_factory):
    """Test no more than `concurrency` lookups run at once."""
    registry = registry_factory(delay=0.01)

    await resolve_packages(_refs(*(f"pkg-{i}" for i in range(10))), registry, concurrency=3)

    assert len(registry.calls) == 10
    assert registry.max_in_flight == 3


@pytest.mark.asyncio
async def test_invalid_concurrency(registry):
    """Test concurrency must be positive."""
    with pytest.raises(ValueError, match="concurrency"):
        await resolve_packages(_refs("a"), registry, concurrency=0)


@pytest.mark.asyncio
async def test_format_specific_variants(registry_factory):
    """Test formatSpecific alternates are resolved and reported as warnings."""
    registry = registry_factory(missing={"react-windsurf"})
    ref = PackageRef.model_validate(
        {
            "packageId": "react",
            "version": "^2.0.0",
            "formatSpecific": {"cursor": "react-cursor", "windsurf": "react-windsurf"},
        }
    )

    report = await resolve_packages([ref], registry)

    resolution = report.results["react"]
    assert resolution.is_resolved
    assert resolution.unresolved_formats == ["windsurf"]
    assert ("react-cursor", "^2.0.0") in registry.calls
    findings = report.findings()
    assert [f.code for f in findings] == [FindingCode.FORMAT_VARIANT_UNRESOLVED]
    assert findings[0].package_id == "react"
    assert findings[0].severity == Severity.WARNING


@pytest.mark.asyncio
async def test_resolution_is_order_independent(registry_factory, make_collection):
    """Test shuffling packages yields the same resolved/unresolved sets."""
    registry = registry_factory(missing={"typescript-strict", "vitest-patterns"})
    packages = normalize_definition(make_collection()).packages
    shuffled = list(packages)
    random.Random(7).shuffle(shuffled)

    first = await resolve_packages(packages, registry)
    second = await resolve_packages(shuffled, registry)

    assert {r.package_id for r in first.resolved} == {r.package_id for r in second.resolved}
    assert {r.package_id for r in first.unresolved} == {r.package_id for r in second.unresolved}


@pytest.mark.asyncio
async def test_report_follows_input_order(registry_factory):
    """Test report keys follow input order regardless of completion order."""
    registry = registry_factory()
    refs = _refs("z", "a", "m")

    report = await resolve_packages(refs, registry)

    assert list(report.results) == ["z", "a", "m"]


@pytest.mark.asyncio
async def test_cancellation_propagates(registry_factory):
    """Test cancelling the caller abandons lookups without producing a report."""
    registry = registry_factory(hanging={"a", "b"})

    task = asyncio.create_task(resolve_packages(_refs("a", "b"), registry, timeout=60))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert registry.in_flight == 0


@pytest.mark.asyncio
async def test_raise_for_required(registry_factory):
    """Test raise_for_required names every missing required package."""
    registry = registry_factory(missing={"a", "c"})

    report = await resolve_packages(_refs("a", "b", "c"), registry)

    with pytest.raises(ResolutionFailure, match="a, c") as exc_info:
        report.raise_for_required()
    assert exc_info.value.context["reasons"] == {"a": "not_found", "c": "not_found"}
