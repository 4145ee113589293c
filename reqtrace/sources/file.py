"""File-based requirement source.

The declaration file is YAML (JSON works too, being a YAML subset)::

    requirements:
      - id: REQ-1
        version: "1.0"
        revision: v1
        summary: Users can log in
        description: Longer text.
        link: https://wiki.example.com/REQ-1

Only ``id`` is mandatory. A bare top-level list is accepted as well.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from reqtrace.correlator import index_requirements
from reqtrace.errors import ConfigError, ParserError
from reqtrace.models import VERSION_UNKNOWN, Requirement
from reqtrace.tags import CompiledTagConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileSourceOptions:
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        if not self.encoding:
            raise ConfigError("File source encoding must not be empty.")


class FileRequirementSource:
    def __init__(self, options: FileSourceOptions | None = None) -> None:
        self.options = options or FileSourceOptions()

    def parse(self, location: str, tag_config: CompiledTagConfig) -> list[Requirement]:
        """Read the declaration file at *location*.

        Raises:
            ParserError: missing or unreadable file, malformed content.
            ConfigError: two entries sharing the same id.
        """
        if not location:
            raise ParserError("A declaration file location must be provided.")

        path = Path(location)
        try:
            with path.open(encoding=self.options.encoding) as f:
                raw = yaml.safe_load(f)
        except FileNotFoundError as exc:
            raise ParserError(f"Requirement file not found: '{location}'") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ParserError(f"Unable to read '{location}': {exc}") from exc
        except yaml.YAMLError as exc:
            raise ParserError(f"Failed to parse '{location}': {exc}") from exc

        entries = raw.get("requirements") if isinstance(raw, dict) else raw
        if not isinstance(entries, list):
            raise ParserError(
                f"'{location}' must hold a list of requirements (top-level or under 'requirements')."
            )

        requirements = [_to_requirement(entry, i, location) for i, entry in enumerate(entries, 1)]
        index_requirements(requirements)

        logger.info("%d requirements declared in '%s'", len(requirements), location)
        return requirements


def _to_requirement(entry: Any, position: int, location: str) -> Requirement:
    if not isinstance(entry, dict):
        raise ParserError(f"Entry #{position} in '{location}' is not a mapping.")

    req_id = _text(entry.get("id"))
    if not req_id:
        raise ParserError(f"Entry #{position} in '{location}' has no 'id'.")

    revision = _label(entry, "revision", position, location)
    return Requirement(
        id=req_id,
        version=_label(entry, "version", position, location) or VERSION_UNKNOWN,
        revision=revision,
        short_description=_text(entry.get("summary")),
        full_description=_text(entry.get("description")),
        link=_text(entry.get("link")),
    )


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _label(entry: dict, key: str, position: int, location: str) -> str | None:
    """Return a version or revision as written. Floats and booleans are refused
    since YAML has already lost their original text (``1.10`` reads as ``1.1``)."""
    value = entry.get(key)
    if value is None:
        return None
    if isinstance(value, (bool, float)):
        raise ParserError(
            f"Entry #{position} in '{location}': '{key}' must be quoted, got {value!r}."
        )
    return _text(value)
