"""Requirement sources.

Every source implements ``parse(location, tag_config) -> list[Requirement]``
and raises ParserError when it cannot. Options are typed per variant and
validated when the options object is built.

Usage:
    source = build_source(SourceType.FILE, FileSourceOptions())
    requirements = source.parse("requirements.yaml", compiled)
"""

from enum import Enum
from typing import Protocol

from reqtrace.errors import ConfigError
from reqtrace.models import Requirement
from reqtrace.sources.file import FileRequirementSource, FileSourceOptions
from reqtrace.sources.redmine import RedmineRequirementSource, RedmineSourceOptions
from reqtrace.tags import CompiledTagConfig


class SourceType(str, Enum):
    FILE = "file"
    REDMINE = "redmine"


class RequirementSource(Protocol):
    def parse(self, location: str, tag_config: CompiledTagConfig) -> list[Requirement]:
        ...


def build_source(
    source_type: SourceType, options: FileSourceOptions | RedmineSourceOptions
) -> RequirementSource:
    """Return the source for *source_type*, checking the options fit it.

    Raises:
        ConfigError: if *options* belong to another variant.
    """
    if source_type is SourceType.FILE and isinstance(options, FileSourceOptions):
        return FileRequirementSource(options)
    if source_type is SourceType.REDMINE and isinstance(options, RedmineSourceOptions):
        return RedmineRequirementSource(options)
    raise ConfigError(
        f"Options of type {type(options).__name__} do not fit source type '{source_type.value}'."
    )


__all__ = [
    "FileRequirementSource",
    "FileSourceOptions",
    "RedmineRequirementSource",
    "RedmineSourceOptions",
    "RequirementSource",
    "SourceType",
    "build_source",
]
