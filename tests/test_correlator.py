"""Tests for reqtrace/correlator.py"""

from decimal import Decimal

import pytest

from reqtrace.correlator import correlate, index_requirements, percentage
from reqtrace.errors import ConfigError
from reqtrace.models import CoverageStatus, CoverageTag, Origin, Requirement, TagLocation

S = Origin.SOURCE
T = Origin.TEST

_RANK = {
    CoverageStatus.NOT_COVERED: 0,
    CoverageStatus.SOURCE_ONLY: 1,
    CoverageStatus.TEST_ONLY: 1,
    CoverageStatus.FULLY_COVERED: 2,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def tag(req_id: str, origin: Origin = S, revision: str | None = None, line: int = 1) -> CoverageTag:
    path = "src/x.py" if origin is S else "tests/test_x.py"
    return CoverageTag(req_id, revision, origin, TagLocation(path, line, 1))


def status_of(requirements, tags, **kwargs) -> dict[str, CoverageStatus]:
    result = correlate(requirements, tags, **kwargs)
    return {v.requirement.id: v.status for v in result.verdicts}


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

def test_fully_covered_and_not_covered_give_fifty_percent():
    reqs = [Requirement("REQ-1", revision="v1"), Requirement("REQ-2", revision="v1")]
    tags = [tag("REQ-1", S, "v1"), tag("REQ-1", T, "v1")]
    result = correlate(reqs, tags, revision_check=True)

    assert result.verdict_for("REQ-1").status is CoverageStatus.FULLY_COVERED
    assert result.verdict_for("REQ-2").status is CoverageStatus.NOT_COVERED
    assert result.summary.percentage == Decimal("50.00")
    assert str(result.summary.percentage) == "50.00"


def test_revision_mismatch_is_stale_and_not_covered():
    result = correlate([Requirement("REQ-3", revision="v2")], [tag("REQ-3", S, "v1")],
                       revision_check=True)
    assert result.verdict_for("REQ-3").status is CoverageStatus.STALE
    assert result.summary.covered == 0
    assert result.summary.by_status[CoverageStatus.STALE] == 1
    assert result.summary.percentage == Decimal("0.00")


def test_unknown_id_becomes_orphan():
    result = correlate([Requirement("REQ-4")], [tag("REQ-99")])
    assert result.verdict_for("REQ-4").status is CoverageStatus.NOT_COVERED
    assert [o.requirement_id for o in result.orphans] == ["REQ-99"]


def test_two_source_tags_source_only():
    result = correlate([Requirement("REQ-5")], [tag("REQ-5", S, line=3), tag("REQ-5", S, line=9)])
    verdict = result.verdict_for("REQ-5")
    assert verdict.status is CoverageStatus.SOURCE_ONLY
    assert verdict.source_tag_count == 2
    assert verdict.test_tag_count == 0


# ---------------------------------------------------------------------------
# Status derivation
# ---------------------------------------------------------------------------

def test_test_only():
    assert status_of([Requirement("R")], [tag("R", T)]) == {"R": CoverageStatus.TEST_ONLY}


def test_revision_ignored_when_check_disabled():
    statuses = status_of([Requirement("R", revision="v2")], [tag("R", S, "v1"), tag("R", T, "v1")])
    assert statuses == {"R": CoverageStatus.FULLY_COVERED}


def test_requirement_without_revision_accepts_any_tag_revision():
    statuses = status_of([Requirement("R")], [tag("R", S, "v9")], revision_check=True)
    assert statuses == {"R": CoverageStatus.SOURCE_ONLY}


def test_tag_without_revision_is_stale_when_requirement_has_one():
    statuses = status_of([Requirement("R", revision="v1")], [tag("R", S)], revision_check=True)
    assert statuses == {"R": CoverageStatus.STALE}


def test_valid_tag_of_same_origin_outweighs_stale_one():
    tags = [tag("R", S, "v1"), tag("R", S, "v2"), tag("R", T, "v2"), tag("R", T, "v2")]
    statuses = status_of([Requirement("R", revision="v2")], tags, revision_check=True)
    assert statuses == {"R": CoverageStatus.FULLY_COVERED}


def test_stale_only_origin_suppresses_coverage_from_other_origin():
    tags = [tag("R", S, "v2"), tag("R", T, "v1")]
    result = correlate([Requirement("R", revision="v2")], tags, revision_check=True)
    verdict = result.verdict_for("R")
    assert verdict.status is CoverageStatus.STALE
    assert (verdict.source_tag_count, verdict.test_tag_count) == (1, 1)


def test_orphans_never_alter_verdicts():
    reqs = [Requirement("A"), Requirement("B")]
    base = [tag("A", S)]
    with_orphans = base + [tag("ZZ", S), tag("YY", T)]
    assert status_of(reqs, base) == status_of(reqs, with_orphans)
    assert correlate(reqs, with_orphans).summary == correlate(reqs, base).summary


@pytest.mark.parametrize("initial", [
    [],
    [tag("R", S)],
    [tag("R", T)],
    [tag("R", S), tag("R", T)],
])
def test_adding_source_tag_never_lowers_rank(initial):
    reqs = [Requirement("R")]
    before = status_of(reqs, initial)["R"]
    after = status_of(reqs, initial + [tag("R", S, line=99)])["R"]
    assert _RANK[after] >= _RANK[before]


# ---------------------------------------------------------------------------
# Ordering and invariants
# ---------------------------------------------------------------------------

def test_verdicts_follow_declaration_order_and_orphans_follow_tag_order():
    reqs = [Requirement("C"), Requirement("A"), Requirement("B")]
    tags = [tag("X2"), tag("B"), tag("X1"), tag("A")]
    result = correlate(reqs, tags)
    assert [v.requirement.id for v in result.verdicts] == ["C", "A", "B"]
    assert [o.requirement_id for o in result.orphans] == ["X2", "X1"]


def test_every_tag_counted_once():
    reqs = [Requirement("A"), Requirement("B")]
    tags = [tag("A", S), tag("A", T), tag("B", S), tag("Q", T)]
    result = correlate(reqs, tags)
    counted = sum(v.source_tag_count + v.test_tag_count for v in result.verdicts)
    assert counted + len(result.orphans) == len(tags)


def test_duplicate_ids_raise_config_error():
    with pytest.raises(ConfigError, match="REQ-1"):
        correlate([Requirement("REQ-1"), Requirement("REQ-1")], [])


def test_index_requirements():
    reqs = [Requirement("A"), Requirement("B")]
    assert list(index_requirements(reqs)) == ["A", "B"]


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def test_summary_counts_every_status():
    reqs = [Requirement(i, revision="v1") for i in ("N", "S", "T", "F", "X")]
    tags = [tag("S", S, "v1"), tag("T", T, "v1"), tag("F", S, "v1"), tag("F", T, "v1"),
            tag("X", T, "v0")]
    summary = correlate(reqs, tags, revision_check=True).summary
    assert summary.total == 5
    assert summary.by_status == {
        CoverageStatus.NOT_COVERED: 1,
        CoverageStatus.SOURCE_ONLY: 1,
        CoverageStatus.TEST_ONLY: 1,
        CoverageStatus.FULLY_COVERED: 1,
        CoverageStatus.STALE: 1,
    }
    assert summary.covered == 3
    assert summary.percentage == Decimal("60.00")


def test_configurable_covered_subset():
    reqs = [Requirement("S"), Requirement("F")]
    tags = [tag("S", S), tag("F", S), tag("F", T)]
    summary = correlate(reqs, tags, covered_statuses=[CoverageStatus.FULLY_COVERED]).summary
    assert summary.covered == 1
    assert summary.percentage == Decimal("50.00")


def test_empty_requirement_set_is_zero_percent():
    result = correlate([], [tag("A")])
    assert result.summary.total == 0
    assert result.summary.percentage == Decimal("0.00")
    assert len(result.orphans) == 1


@pytest.mark.parametrize("covered, total, expected", [
    (1, 3, "33.33"),
    (2, 3, "66.67"),
    (1, 8, "12.50"),
    (1, 800, "0.13"),   # 0.125 rounds half-up
    (3, 3, "100.00"),
    (0, 7, "0.00"),
])
def test_percentage_rounds_half_up(covered, total, expected):
    assert percentage(covered, total) == Decimal(expected)
