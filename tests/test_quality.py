"""Tests for the quality rule engine."""

import pytest
from prpm_collections import FindingCode
from prpm_collections import Severity
from prpm_collections import ValidatorConfig
from prpm_collections import evaluate_quality
from prpm_collections import normalize_definition
from prpm_collections.quality import QUALITY_RULES
from prpm_collections.quality import check_category_presence
from prpm_collections.quality import check_install_order_uniqueness


def _packages(count: int, required: int, **fields) -> list[dict]:
    return [
        {
            "packageId": f"pkg-{i}",
            "version": "^1.0.0",
            "required": i < required,
            "reason": f"Reason {i}",
            "installOrder": i + 1,
            **fields,
        }
        for i in range(count)
    ]


def test_clean_definition_has_no_findings(make_collection):
    """Test a well-curated definition passes with no findings at all."""
    report = evaluate_quality(normalize_definition(make_collection()))

    assert report.passed
    assert report.findings == []


def test_min_package_count(make_collection):
    """Test fewer than 3 packages is an error."""
    definition = normalize_definition(make_collection(packages=_packages(2, required=1)))

    report = evaluate_quality(definition)

    assert not report.passed
    assert [f.code for f in report.errors] == [FindingCode.MIN_PACKAGE_COUNT]


@pytest.mark.parametrize(
    ("count", "required", "flagged"),
    [
        (10, 3, False),  # 30% - lower bound inclusive
        (10, 8, False),  # 80% - upper bound inclusive
        (10, 2, True),
        (10, 9, True),
        (4, 4, True),
    ],
)
def test_required_ratio(make_collection, count, required, flagged):
    """Test required/optional balance bounds are inclusive."""
    definition = normalize_definition(make_collection(packages=_packages(count, required=required)))

    codes = [f.code for f in evaluate_quality(definition).findings]

    assert (FindingCode.REQUIRED_RATIO in codes) is flagged


def test_required_ratio_is_configurable(make_collection):
    """Test ratio thresholds come from config."""
    definition = normalize_definition(make_collection(packages=_packages(4, required=4)))

    report = evaluate_quality(definition, ValidatorConfig(required_ratio_max=1.0))

    assert FindingCode.REQUIRED_RATIO not in [f.code for f in report.findings]


def test_missing_reason_per_package(make_collection):
    """Test one warning per package without a reason."""
    packages = _packages(4, required=2)
    packages[1]["reason"] = ""
    packages[3]["reason"] = "   "
    definition = normalize_definition(make_collection(packages=packages))

    report = evaluate_quality(definition)

    missing = [f for f in report.findings if f.code == FindingCode.MISSING_REASON]
    assert [f.package_id for f in missing] == ["pkg-1", "pkg-3"]
    assert all(f.severity == Severity.WARNING for f in missing)
    assert report.passed


def test_install_order_uniqueness(make_collection):
    """Test shared installOrder is an error naming the packages."""
    packages = _packages(4, required=2)
    packages[2]["installOrder"] = 1
    definition = normalize_definition(make_collection(packages=packages))

    findings = check_install_order_uniqueness(definition, ValidatorConfig())

    assert len(findings) == 1
    assert findings[0].severity == Severity.ERROR
    assert "pkg-0" in findings[0].message and "pkg-2" in findings[0].message
    assert findings[0].package_id is None


def test_install_order_ignores_missing(make_collection):
    """Test packages without installOrder never collide."""
    packages = _packages(3, required=2)
    for package in packages:
        del package["installOrder"]
    definition = normalize_definition(make_collection(packages=packages))

    assert check_install_order_uniqueness(definition, ValidatorConfig()) == []


@pytest.mark.parametrize(
    ("tags", "flagged"),
    [
        (["a", "b"], True),
        (["a", "b", "c"], False),
        (["a", "b", "c", "d", "e", "f", "g"], False),
        (["a", "b", "c", "d", "e", "f", "g", "h"], True),
        (["a", "a", "a"], True),
    ],
)
def test_tag_cardinality(make_collection, tags, flagged):
    """Test distinct tag count must be within bounds."""
    codes = [f.code for f in evaluate_quality(normalize_definition(make_collection(tags=tags))).findings]

    assert (FindingCode.TAG_CARDINALITY in codes) is flagged


def test_category_presence(make_collection):
    """Test missing category is an error."""
    data = make_collection()
    del data["category"]

    report = evaluate_quality(normalize_definition(data))

    assert not report.passed
    assert [f.code for f in report.errors] == [FindingCode.CATEGORY_PRESENCE]


def test_category_presence_unknown_value(make_collection):
    """Test category outside the enumeration is caught even if schema was bypassed."""
    definition = normalize_definition(make_collection()).model_copy(update={"category": "gaming"})

    findings = check_category_presence(definition, ValidatorConfig())

    assert findings[0].code == FindingCode.CATEGORY_PRESENCE


def test_version_pinning(make_collection):
    """Test all-latest versions produce a single warning."""
    definition = normalize_definition(make_collection(packages=_packages(3, required=2, version="latest")))

    findings = [f for f in evaluate_quality(definition).findings if f.code == FindingCode.VERSION_PINNING]

    assert len(findings) == 1
    assert findings[0].severity == Severity.WARNING


def test_description_length(make_collection):
    """Test short descriptions are flagged with configurable threshold."""
    definition = normalize_definition(make_collection(description="Next.js stuff"))

    assert FindingCode.DESCRIPTION_LENGTH in [f.code for f in evaluate_quality(definition).findings]
    config = ValidatorConfig(min_description_length=5)
    assert FindingCode.DESCRIPTION_LENGTH not in [f.code for f in evaluate_quality(definition, config).findings]


def test_strict_official_escalates(make_collection):
    """Test strict mode turns advisory findings into errors for official collections."""
    definition = normalize_definition(make_collection(tags=["nextjs"]))

    lenient = evaluate_quality(definition, ValidatorConfig())
    strict = evaluate_quality(definition, ValidatorConfig(strict_official=True))

    assert lenient.passed
    assert not strict.passed
    assert [f.code for f in strict.errors] == [FindingCode.TAG_CARDINALITY]


def test_strict_official_ignores_community(make_collection):
    """Test strict mode leaves non-official collections advisory."""
    definition = normalize_definition(make_collection(scope="alice", official=False, tags=["nextjs"]))

    report = evaluate_quality(definition, ValidatorConfig(strict_official=True))

    assert report.passed
    assert [f.code for f in report.warnings] == [FindingCode.TAG_CARDINALITY]


def test_rule_order_does_not_change_outcome(make_collection):
    """Test rules are independent of evaluation order."""
    packages = _packages(2, required=2, version="latest", reason="")
    definition = normalize_definition(make_collection(packages=packages, tags=["x"], description="short"))

    forward = evaluate_quality(definition, rules=QUALITY_RULES)
    backward = evaluate_quality(definition, rules=tuple(reversed(QUALITY_RULES)))

    assert forward.passed == backward.passed
    assert sorted(forward.findings, key=repr) == sorted(backward.findings, key=repr)
