"""Coverage tag patterns.

A tag is a marker literal immediately followed by a requirement id and,
optionally, a revision trailer::

    # @req:REQ-12[rev=v2]

Usage:
    compiled = TagConfig(marker="@req:", revision_pattern=r"\\[rev=(\\w+)\\]").compile()
    for match in compiled.finditer(line):
        match.requirement_id, match.revision, match.column
"""

import re
from dataclasses import dataclass
from typing import Iterator

from reqtrace.errors import ConfigError

DEFAULT_MARKER = "@req:"
DEFAULT_ID_PATTERN = r"[A-Za-z0-9](?:[A-Za-z0-9_.-]*[A-Za-z0-9])?"


@dataclass(frozen=True)
class TagMatch:
    requirement_id: str
    revision: str | None
    column: int  # 1-based offset of the marker


@dataclass(frozen=True)
class TagConfig:
    marker: str = DEFAULT_MARKER
    id_pattern: str = DEFAULT_ID_PATTERN
    revision_pattern: str | None = None

    def compile(self) -> "CompiledTagConfig":
        """Build the id and revision matchers.

        Raises:
            ConfigError: empty marker or id pattern, or a pattern that
                         does not compile.
        """
        if not self.marker:
            raise ConfigError("Tag marker must not be empty.")
        if not self.id_pattern:
            raise ConfigError("Tag id pattern must not be empty.")

        revision_matcher = None
        if self.revision_pattern:
            revision_matcher = _compile(self.revision_pattern, "revision pattern")

        complete = re.escape(self.marker) + f"(?P<id>{self.id_pattern})"
        if self.revision_pattern:
            complete += f"(?:{self.revision_pattern})?"
        id_matcher = _compile(complete, "tag pattern")

        return CompiledTagConfig(
            config=self,
            id_matcher=id_matcher,
            revision_matcher=revision_matcher,
        )


@dataclass(frozen=True)
class CompiledTagConfig:
    config: TagConfig
    id_matcher: re.Pattern
    revision_matcher: re.Pattern | None

    def finditer(self, text: str) -> Iterator[TagMatch]:
        """Yield every tag in *text*, left to right. Matches with no id are skipped."""
        for match in self.id_matcher.finditer(text):
            requirement_id = match.group("id")
            if not requirement_id:
                continue
            trailer = text[match.end("id"):match.end()]
            yield TagMatch(
                requirement_id=requirement_id,
                revision=self._first_group(trailer),
                column=match.start() + 1,
            )

    def extract_ids(self, text: str) -> list[str]:
        return [m.requirement_id for m in self.finditer(text)]

    def contains_tag(self, text: str) -> bool:
        return any(True for _ in self.finditer(text))

    def extract_revision(self, text: str) -> str | None:
        """Return the first revision found anywhere in *text*, or None."""
        return self._first_group(text)

    def _first_group(self, text: str) -> str | None:
        if self.revision_matcher is None or self.revision_matcher.groups < 1:
            return None
        found = self.revision_matcher.search(text)
        return found.group(1) if found else None


def _compile(pattern: str, what: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"Invalid {what} '{pattern}': {exc}") from exc
