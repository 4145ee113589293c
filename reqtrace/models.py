"""Data models for traceability coverage.

Contains the dataclasses flowing through the pipeline:
    - Requirement      (produced by a RequirementSource)
    - CoverageTag      (produced by the scanner)
    - ScanWarning      (file skipped by the scanner)
    - CoverageVerdict  (one per Requirement)
    - OrphanTag
    - CoverageSummary
    - CoverageResult   (handed to report consumers)
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

VERSION_UNKNOWN = "unknown"


class Origin(str, Enum):
    SOURCE = "source"
    TEST = "test"


class CoverageStatus(str, Enum):
    NOT_COVERED = "not_covered"
    SOURCE_ONLY = "source_only"
    TEST_ONLY = "test_only"
    FULLY_COVERED = "fully_covered"
    STALE = "stale"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Requirement:
    id: str
    version: str = VERSION_UNKNOWN
    revision: str | None = None
    short_description: str = ""
    full_description: str = ""
    link: str = ""


@dataclass(frozen=True)
class TagLocation:
    path: str    # POSIX path relative to the scanned root
    line: int    # 1-based
    column: int  # 1-based

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.column}"


@dataclass(frozen=True)
class CoverageTag:
    requirement_id: str
    revision: str | None
    origin: Origin
    location: TagLocation


@dataclass(frozen=True)
class ScanWarning:
    path: str
    origin: Origin
    message: str


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CoverageVerdict:
    requirement: Requirement
    status: CoverageStatus
    source_tag_count: int = 0
    test_tag_count: int = 0
    tags: tuple[CoverageTag, ...] = ()


@dataclass(frozen=True)
class OrphanTag:
    tag: CoverageTag

    @property
    def requirement_id(self) -> str:
        return self.tag.requirement_id


@dataclass(frozen=True)
class CoverageSummary:
    total: int
    by_status: dict[CoverageStatus, int]
    covered: int
    percentage: Decimal


@dataclass(frozen=True)
class CoverageResult:
    verdicts: tuple[CoverageVerdict, ...]
    orphans: tuple[OrphanTag, ...]
    summary: CoverageSummary

    def verdict_for(self, requirement_id: str) -> CoverageVerdict:
        """Return the verdict of *requirement_id*, or raise KeyError."""
        for verdict in self.verdicts:
            if verdict.requirement.id == requirement_id:
                return verdict
        raise KeyError(requirement_id)


@dataclass
class RunOutcome:
    """Everything a run produces: the result plus tolerated scan warnings."""

    result: CoverageResult
    warnings: list[ScanWarning] = field(default_factory=list)
