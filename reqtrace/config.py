"""Configuration loading and validation.

Usage:
    config = load("reqtrace.yaml")           # raises ConfigError on bad config
    config.tags.id_matcher                   # compiled tag patterns
    generate_template("reqtrace.yaml")       # writes example file to disk

Relative paths (code roots, declaration file) resolve against the
directory holding the config file.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from reqtrace.correlator import DEFAULT_COVERED_STATUSES
from reqtrace.errors import ConfigError
from reqtrace.models import CoverageStatus
from reqtrace.scanner import DEFAULT_MAX_WORKERS, FileFilter
from reqtrace.sources import FileSourceOptions, RedmineSourceOptions, SourceType
from reqtrace.tags import DEFAULT_ID_PATTERN, DEFAULT_MARKER, CompiledTagConfig, TagConfig

DEFAULT_CONFIG_PATH = "reqtrace.yaml"

# Environment variables overriding the Redmine credentials
_CREDENTIAL_ENV = {
    "api_key": "REDMINE_API_KEY",
    "username": "REDMINE_USERNAME",
    "password": "REDMINE_PASSWORD",
}


# ---------------------------------------------------------------------------
# Config dataclass
# ---------------------------------------------------------------------------

@dataclass
class Config:
    tags: CompiledTagConfig
    source_root: Path
    test_root: Path
    source_type: SourceType
    location: str
    source_options: FileSourceOptions | RedmineSourceOptions
    check_revision: bool = False
    file_filter: FileFilter = field(default_factory=FileFilter)
    workers: int = DEFAULT_MAX_WORKERS
    covered_statuses: frozenset[CoverageStatus] = DEFAULT_COVERED_STATUSES
    report_name: str | None = None


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str = DEFAULT_CONFIG_PATH) -> Config:
    """Load and validate configuration from a YAML file.

    Environment variables REDMINE_API_KEY, REDMINE_USERNAME and
    REDMINE_PASSWORD override the Redmine credentials.

    Raises:
        ConfigError: if the file is missing or malformed, a required field
                     is absent, or a tag pattern does not compile.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(
            f"Config file not found: '{config_path}'\n"
            "Run `python -m reqtrace init` to generate a template."
        )

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")

    return from_mapping(raw, base_dir=path.resolve().parent)


def from_mapping(raw: dict[str, Any], base_dir: Path) -> Config:
    """Build a Config from an already-parsed mapping."""
    tags_raw = _section(raw, "tags")
    code = _section(raw, "code")
    reqs = _section(raw, "requirements")
    coverage = _section(raw, "coverage")
    report = _section(raw, "report")

    _validate(code, reqs)

    tags = TagConfig(
        marker=str(tags_raw.get("marker", DEFAULT_MARKER)),
        id_pattern=str(tags_raw.get("id_pattern", DEFAULT_ID_PATTERN)),
        revision_pattern=tags_raw.get("revision_pattern") or None,
    ).compile()

    source_type = _source_type(reqs.get("type", SourceType.FILE.value))
    location = str(reqs["location"]).strip()
    if source_type is SourceType.FILE:
        location = str(_resolve(base_dir, location))
        source_options: FileSourceOptions | RedmineSourceOptions = FileSourceOptions(
            encoding=str(reqs.get("encoding") or "utf-8"),
        )
    else:
        source_options = _redmine_options(reqs.get("redmine") or {})

    return Config(
        tags=tags,
        check_revision=_bool(tags_raw.get("check_revision", False), "tags.check_revision"),
        source_root=_resolve(base_dir, code["source"]),
        test_root=_resolve(base_dir, code["tests"]),
        file_filter=FileFilter(
            extensions=tuple(_str_list(code, "extensions")),
            include=tuple(_str_list(code, "include")),
            exclude=tuple(_str_list(code, "exclude")),
        ),
        workers=_positive_int(code.get("workers", DEFAULT_MAX_WORKERS), "code.workers"),
        source_type=source_type,
        location=location,
        source_options=source_options,
        covered_statuses=_covered_statuses(coverage.get("covered_statuses")),
        report_name=report.get("name") or None,
    )


def _validate(code: dict, reqs: dict) -> None:
    """Raise ConfigError if required fields are missing."""
    errors: list[str] = []

    if not code.get("source"):
        errors.append("  - 'code.source' is missing (path to the source code root)")
    if not code.get("tests"):
        errors.append("  - 'code.tests' is missing (path to the test code root)")
    if not reqs.get("location"):
        errors.append(
            "  - 'requirements.location' is missing (declaration file or Redmine URL)"
        )

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping.")
    return value


def _resolve(base_dir: Path, value: Any) -> Path:
    p = Path(str(value)).expanduser()
    return p if p.is_absolute() else base_dir / p


def _str_list(section: dict, key: str) -> list[str]:
    value = section.get(key) or []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list of strings.")
    return [str(v) for v in value]


def _positive_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{name}' must be an integer, got {value!r}.") from exc
    if number < 1:
        raise ConfigError(f"'{name}' must be at least 1.")
    return number


def _bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{name}' must be true or false, got {value!r}.")
    return value


def _source_type(value: Any) -> SourceType:
    try:
        return SourceType(str(value).lower())
    except ValueError as exc:
        choices = ", ".join(t.value for t in SourceType)
        raise ConfigError(
            f"Unknown requirement source type '{value}'. Expected one of: {choices}"
        ) from exc


def _covered_statuses(value: Any) -> frozenset[CoverageStatus]:
    if value is None:
        return DEFAULT_COVERED_STATUSES
    if not isinstance(value, list):
        raise ConfigError("'coverage.covered_statuses' must be a list.")
    try:
        return frozenset(CoverageStatus(str(v).lower()) for v in value)
    except ValueError as exc:
        choices = ", ".join(s.value for s in CoverageStatus)
        raise ConfigError(
            f"Invalid 'coverage.covered_statuses': {exc}. Expected values among: {choices}"
        ) from exc


def _redmine_options(raw: Any) -> RedmineSourceOptions:
    if not isinstance(raw, dict):
        raise ConfigError("'requirements.redmine' must be a mapping.")

    credentials = {
        key: os.environ.get(env) or raw.get(key) or None
        for key, env in _CREDENTIAL_ENV.items()
    }
    extra = raw.get("extra_params") or {}
    if not isinstance(extra, dict):
        raise ConfigError("'requirements.redmine.extra_params' must be a mapping.")
    tracker = raw.get("tracker")

    return RedmineSourceOptions(
        project=str(raw.get("project") or "").strip(),
        include_children=_bool(raw.get("include_children", True), "requirements.redmine.include_children"),
        include_relations=_bool(raw.get("include_relations", True), "requirements.redmine.include_relations"),
        status=str(raw.get("status") or "*"),
        tracker=None if tracker is None else str(tracker),
        target_versions=tuple(_str_list(raw, "target_versions")),
        tag_required=_bool(raw.get("tag_required", True), "requirements.redmine.tag_required"),
        extra_params={str(k): str(v) for k, v in extra.items()},
        workers=_positive_int(raw.get("workers", DEFAULT_MAX_WORKERS), "requirements.redmine.workers"),
        **credentials,
    )


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
tags:
  marker: "@req:"                         # literal preceding every requirement id
  id_pattern: "[A-Za-z0-9](?:[A-Za-z0-9_.-]*[A-Za-z0-9])?"
  revision_pattern: "\\\\[rev=([\\\\w.-]+)\\\\]"  # optional, one capture group
  check_revision: false

code:
  source: "src"
  tests: "tests"
  extensions: [".py"]
  exclude: ["*/__pycache__/*"]

requirements:
  type: "file"                            # file | redmine
  location: "requirements.yaml"           # declaration file, or Redmine root URL
  # redmine:
  #   project: "my-project"
  #   status: "*"
  #   target_versions: ["1.0"]
  #   tag_required: true
  #   api_key: "xxxxxxxx"                 # or set REDMINE_API_KEY

coverage:
  covered_statuses: ["fully_covered", "source_only", "test_only"]
"""


def generate_template(output_path: str = DEFAULT_CONFIG_PATH) -> None:
    """Write a template reqtrace.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists (to avoid overwriting it).
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
