"""Coverage report builder.

Functions:
    build_report(outcome, report_name=None) -> dict

Turns a RunOutcome into a JSON-serializable dict with ``summary``,
``requirements`` (one entry per verdict, in declaration order),
``orphans`` and ``warnings`` sections.
"""

from datetime import datetime, timezone

from reqtrace.models import CoverageTag, CoverageVerdict, RunOutcome

DEFAULT_REPORT_NAME = "Requirements coverage"


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #

def build_report(outcome: RunOutcome, report_name: str | None = None) -> dict:
    result = outcome.result
    summary = result.summary
    return {
        "report_type": "requirements_coverage",
        "report_name": report_name or DEFAULT_REPORT_NAME,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "summary": {
            "total": summary.total,
            "covered": summary.covered,
            # float for JSON; the Decimal is already rounded to two places
            "coverage_percentage": float(summary.percentage),
            "by_status": {s.value: n for s, n in summary.by_status.items()},
            "orphan_tags": len(result.orphans),
            "skipped_files": len(outcome.warnings),
        },
        "requirements": [_verdict(v) for v in result.verdicts],
        "orphans": [_tag(o.tag) for o in result.orphans],
        "warnings": [
            {"origin": w.origin.value, "path": w.path, "message": w.message}
            for w in outcome.warnings
        ],
    }


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #

def _verdict(verdict: CoverageVerdict) -> dict:
    req = verdict.requirement
    return {
        "id": req.id,
        "version": req.version,
        "revision": req.revision,
        "summary": req.short_description,
        "link": req.link or None,
        "status": verdict.status.value,
        "source_tags": verdict.source_tag_count,
        "test_tags": verdict.test_tag_count,
        "locations": [_tag(t) for t in verdict.tags],
    }


def _tag(tag: CoverageTag) -> dict:
    return {
        "id": tag.requirement_id,
        "revision": tag.revision,
        "origin": tag.origin.value,
        "path": tag.location.path,
        "line": tag.location.line,
        "column": tag.location.column,
    }
