"""Redmine requirement source: one requirement per matching issue.

Usage:
    options = RedmineSourceOptions(project="my-project", target_versions=("1.2",))
    source  = RedmineRequirementSource(options)
    reqs    = source.parse("https://redmine.example.com", compiled)

An issue becomes a requirement iff
    (its subject contains a complete tag, when ``tag_required``)
    AND (``target_versions`` is empty OR its target version is listed).
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from reqtrace.client import RedmineClient, RedmineClientError
from reqtrace.errors import ConfigError, ParserError
from reqtrace.models import VERSION_UNKNOWN, Requirement
from reqtrace.tags import CompiledTagConfig

logger = logging.getLogger(__name__)

ISSUES_ENDPOINT = "/issues.json"
DEFAULT_STATUS_FILTER = "*"
DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True)
class RedmineSourceOptions:
    project: str
    include_children: bool = True
    include_relations: bool = True
    status: str = DEFAULT_STATUS_FILTER
    tracker: str | None = None
    target_versions: tuple[str, ...] = ()
    tag_required: bool = True
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    extra_params: dict[str, str] = field(default_factory=dict)
    workers: int = DEFAULT_MAX_WORKERS
    timeout: int = 30

    def __post_init__(self) -> None:
        errors: list[str] = []
        if not self.project or not str(self.project).strip():
            errors.append("  - a Redmine project id or identifier is required")
        if self.password and not self.username:
            errors.append("  - a Redmine password was given without a username")
        if self.workers < 1:
            errors.append("  - workers must be at least 1")
        if self.timeout < 1:
            errors.append("  - timeout must be at least 1 second")
        if errors:
            raise ConfigError("Invalid Redmine options:\n" + "\n".join(errors))
        object.__setattr__(self, "target_versions", tuple(self.target_versions))

    def query_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "project_id": self.project,
            "status_id": self.status or DEFAULT_STATUS_FILTER,
        }
        if self.tracker:
            params["tracker_id"] = self.tracker

        includes = []
        if self.include_children:
            includes.append("children")
        if self.include_relations:
            includes.append("relations")
        if includes:
            params["include"] = ",".join(includes)

        params.update({str(k): str(v) for k, v in self.extra_params.items()})
        return params


class RedmineRequirementSource:
    def __init__(self, options: RedmineSourceOptions) -> None:
        self.options = options

    def parse(self, location: str, tag_config: CompiledTagConfig) -> list[Requirement]:
        """Fetch issues from the Redmine instance rooted at *location*.

        Raises:
            ParserError: missing URL, network or authentication failure,
                         malformed issue data.
        """
        if not location:
            raise ParserError("The root URL of Redmine must be provided.")

        opts = self.options
        client = RedmineClient(
            url=location,
            api_key=opts.api_key,
            username=opts.username,
            password=opts.password,
            timeout=opts.timeout,
        )
        params = opts.query_params()
        logger.debug("Redmine query parameters: %s", params)

        try:
            issues = client.get_paginated(ISSUES_ENDPOINT, params, results_key="issues")
        except RedmineClientError as exc:
            raise ParserError(f"Error while retrieving Redmine issues: {exc}") from exc

        for issue in issues:
            if not isinstance(issue, dict):
                raise ParserError(f"Malformed Redmine issue: {str(issue)[:200]}")

        logger.info("Building requirements from %d Redmine issues", len(issues))
        root_url = client.base_url

        def build(issue: dict) -> Requirement | None:
            if not self._matches(issue, tag_config):
                return None
            return self._to_requirement(issue, root_url, tag_config)

        with ThreadPoolExecutor(max_workers=opts.workers) as executor:
            built = list(executor.map(build, issues))

        requirements = _dedupe(r for r in built if r is not None)
        logger.info("%d requirements were built from Redmine issues", len(requirements))
        return requirements

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _matches(self, issue: dict, tag_config: CompiledTagConfig) -> bool:
        if self.options.tag_required and not tag_config.contains_tag(issue.get("subject") or ""):
            return False
        versions = self.options.target_versions
        return not versions or _target_version(issue) in versions

    def _to_requirement(
        self, issue: dict, root_url: str, tag_config: CompiledTagConfig
    ) -> Requirement:
        if issue.get("id") is None:
            raise ParserError(f"Redmine issue without id: {str(issue)[:200]}")

        issue_id = str(issue["id"])
        subject = issue.get("subject") or ""
        revision = tag_config.extract_revision(subject) if self.options.tag_required else None
        return Requirement(
            id=issue_id,
            version=_target_version(issue) or VERSION_UNKNOWN,
            revision=revision,
            short_description=subject,
            full_description=issue.get("description") or "",
            link=f"{root_url}/issues/{issue_id}",
        )


def _target_version(issue: dict) -> str | None:
    version = issue.get("fixed_version")
    return version.get("name") if isinstance(version, dict) else None


def _dedupe(requirements) -> list[Requirement]:
    seen: set[str] = set()
    unique: list[Requirement] = []
    for req in requirements:
        if req.id in seen:
            logger.debug("Dropping duplicate Redmine issue %s", req.id)
            continue
        seen.add(req.id)
        unique.append(req)
    return unique
