"""Coverage correlation: requirements + tags -> CoverageResult.

Usage:
    result = correlate(requirements, scan_result.tags, revision_check=True)

Staleness (revision checking on, requirement declares a revision):
    A tag is valid when its revision equals the requirement's, stale
    otherwise (a tag without revision is stale too). An origin holding
    stale tags but no valid tag is stale-only, and any stale-only origin
    turns the verdict into STALE.
"""

import logging
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal

from reqtrace.errors import ConfigError
from reqtrace.models import (
    CoverageResult,
    CoverageStatus,
    CoverageSummary,
    CoverageTag,
    CoverageVerdict,
    OrphanTag,
    Origin,
    Requirement,
)

logger = logging.getLogger(__name__)

DEFAULT_COVERED_STATUSES: frozenset[CoverageStatus] = frozenset({
    CoverageStatus.FULLY_COVERED,
    CoverageStatus.SOURCE_ONLY,
    CoverageStatus.TEST_ONLY,
})

_TWO_PLACES = Decimal("0.01")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def correlate(
    requirements: Sequence[Requirement],
    tags: Iterable[CoverageTag],
    revision_check: bool = False,
    covered_statuses: Iterable[CoverageStatus] = DEFAULT_COVERED_STATUSES,
) -> CoverageResult:
    """Compute one verdict per requirement, the orphan list and the summary.

    Verdicts follow *requirements* order; orphans follow *tags* order.

    Raises:
        ConfigError: if two requirements share an id.
    """
    by_id = index_requirements(requirements)

    groups: dict[str, list[CoverageTag]] = {req_id: [] for req_id in by_id}
    orphans: list[OrphanTag] = []
    for tag in tags:
        group = groups.get(tag.requirement_id)
        if group is None:
            orphans.append(OrphanTag(tag))
        else:
            group.append(tag)

    verdicts = tuple(
        _verdict(req, groups[req.id], revision_check) for req in requirements
    )
    summary = summarize(verdicts, covered_statuses)

    logger.info(
        "Coverage: %d/%d requirements covered (%s%%), %d orphan tags",
        summary.covered, summary.total, summary.percentage, len(orphans),
    )
    return CoverageResult(verdicts=verdicts, orphans=tuple(orphans), summary=summary)


def index_requirements(requirements: Iterable[Requirement]) -> dict[str, Requirement]:
    """Return ``{id: requirement}``; raise ConfigError on duplicate ids."""
    by_id: dict[str, Requirement] = {}
    duplicates: list[str] = []
    for req in requirements:
        if req.id in by_id:
            duplicates.append(req.id)
        by_id[req.id] = req
    if duplicates:
        raise ConfigError(
            "Duplicate requirement ids: " + ", ".join(sorted(set(duplicates)))
        )
    return by_id


def summarize(
    verdicts: Sequence[CoverageVerdict],
    covered_statuses: Iterable[CoverageStatus] = DEFAULT_COVERED_STATUSES,
) -> CoverageSummary:
    counted = frozenset(covered_statuses)
    by_status = {status: 0 for status in CoverageStatus}
    for verdict in verdicts:
        by_status[verdict.status] += 1

    total = len(verdicts)
    covered = sum(n for status, n in by_status.items() if status in counted)
    return CoverageSummary(
        total=total,
        by_status=by_status,
        covered=covered,
        percentage=percentage(covered, total),
    )


def percentage(covered: int, total: int) -> Decimal:
    """``covered / total * 100`` rounded half-up to two decimals (0.00 when total is 0)."""
    if total == 0:
        return Decimal("0.00")
    return (Decimal(covered) * 100 / Decimal(total)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------

def _verdict(
    requirement: Requirement, group: list[CoverageTag], revision_check: bool
) -> CoverageVerdict:
    source_count = sum(1 for t in group if t.origin is Origin.SOURCE)
    test_count = len(group) - source_count

    return CoverageVerdict(
        requirement=requirement,
        status=_status(requirement, group, revision_check),
        source_tag_count=source_count,
        test_tag_count=test_count,
        tags=tuple(group),
    )


def _status(
    requirement: Requirement, group: list[CoverageTag], revision_check: bool
) -> CoverageStatus:
    if not group:
        return CoverageStatus.NOT_COVERED

    valid: set[Origin] = set()
    stale: set[Origin] = set()
    for tag in group:
        if _is_valid(tag, requirement, revision_check):
            valid.add(tag.origin)
        else:
            stale.add(tag.origin)

    if stale - valid:
        return CoverageStatus.STALE

    has_source = Origin.SOURCE in valid
    has_test = Origin.TEST in valid
    if has_source and has_test:
        return CoverageStatus.FULLY_COVERED
    if has_source:
        return CoverageStatus.SOURCE_ONLY
    return CoverageStatus.TEST_ONLY


def _is_valid(tag: CoverageTag, requirement: Requirement, revision_check: bool) -> bool:
    if not revision_check or requirement.revision is None:
        return True
    return tag.revision == requirement.revision
