"""The coverage pipeline: requirements -> tags -> result.

Usage:
    outcome = run(load("reqtrace.yaml"))
    outcome.result.summary.percentage

Stages run in order and any ConfigError or ParserError aborts the run, so
either a complete RunOutcome is returned or nothing is. Code roots are
checked and requirements parsed before any file is scanned.
"""

import logging

from reqtrace.config import Config
from reqtrace.correlator import correlate, index_requirements
from reqtrace.errors import ConfigError
from reqtrace.models import RunOutcome
from reqtrace.scanner import scan
from reqtrace.sources import build_source

logger = logging.getLogger(__name__)


def run(config: Config) -> RunOutcome:
    for root, what in ((config.source_root, "source"), (config.test_root, "test")):
        if not root.is_dir():
            raise ConfigError(f"The {what} code root '{root}' is not a directory.")

    source = build_source(config.source_type, config.source_options)
    logger.info("Reading requirements (%s) from '%s'", config.source_type.value, config.location)
    requirements = source.parse(config.location, config.tags)
    index_requirements(requirements)

    scanned = scan(
        config.source_root,
        config.test_root,
        config.tags,
        config.file_filter,
        max_workers=config.workers,
    )

    result = correlate(
        requirements,
        scanned.tags,
        revision_check=config.check_revision,
        covered_statuses=config.covered_statuses,
    )
    return RunOutcome(result=result, warnings=scanned.warnings)
