"""Code tag scanner.

Usage:
    result = scan(Path("src"), Path("tests"), compiled, FileFilter(extensions=[".py"]))
    result.tags       # list[CoverageTag], deterministic order
    result.warnings   # list[ScanWarning], files that could not be read

Files are read in a thread pool. ``Executor.map`` hands results back in
submission order, so the tag list is identical for any worker count:
source root before test root, files by relative path, lines top to bottom,
matches left to right.
"""

import fnmatch
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from reqtrace.errors import ConfigError
from reqtrace.models import CoverageTag, Origin, ScanWarning, TagLocation
from reqtrace.tags import CompiledTagConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True)
class FileFilter:
    """Selects the files to scan, by path relative to the scanned root.

    An empty ``extensions`` or ``include`` list accepts everything.
    ``exclude`` always wins.
    """

    extensions: tuple[str, ...] = ()
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        normalized = tuple(
            (e if e.startswith(".") else f".{e}").lower() for e in self.extensions
        )
        object.__setattr__(self, "extensions", normalized)
        object.__setattr__(self, "include", tuple(self.include))
        object.__setattr__(self, "exclude", tuple(self.exclude))

    def accepts(self, relative_path: str) -> bool:
        if self.extensions and not relative_path.lower().endswith(self.extensions):
            return False
        if self.include and not any(fnmatch.fnmatchcase(relative_path, g) for g in self.include):
            return False
        return not any(fnmatch.fnmatchcase(relative_path, g) for g in self.exclude)


@dataclass
class ScanResult:
    tags: list[CoverageTag] = field(default_factory=list)
    warnings: list[ScanWarning] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def scan(
    source_root: Path,
    test_root: Path,
    tag_config: CompiledTagConfig,
    file_filter: FileFilter | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> ScanResult:
    """Extract every coverage tag below *source_root* and *test_root*.

    Raises:
        ConfigError: if either root is not an existing directory.
    """
    file_filter = file_filter or FileFilter()
    roots = [(Path(source_root), Origin.SOURCE), (Path(test_root), Origin.TEST)]
    for root, origin in roots:
        if not root.is_dir():
            raise ConfigError(f"The {origin.value} code root '{root}' is not a directory.")

    jobs: list[tuple[Path, str, Origin]] = []
    for root, origin in roots:
        jobs.extend((root, rel, origin) for rel in list_files(root, file_filter))

    logger.info("Scanning %d files for coverage tags", len(jobs))

    result = ScanResult()
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        outputs = executor.map(lambda job: _scan_file(*job, tag_config), jobs)
        for tags, warning in outputs:
            result.tags.extend(tags)
            if warning is not None:
                result.warnings.append(warning)

    logger.info(
        "Found %d tags (%d files skipped)", len(result.tags), len(result.warnings)
    )
    return result


def list_files(root: Path, file_filter: FileFilter) -> list[str]:
    """Return the relative POSIX paths of eligible files below *root*, sorted."""
    relative = (p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())
    return sorted(rel for rel in relative if file_filter.accepts(rel))


def scan_text(
    text: str, relative_path: str, origin: Origin, tag_config: CompiledTagConfig
) -> list[CoverageTag]:
    tags: list[CoverageTag] = []
    # only "\n" ends a line, form feeds and Unicode separators do not
    for line_no, line in enumerate(text.split("\n"), start=1):
        for match in tag_config.finditer(line):
            tags.append(CoverageTag(
                requirement_id=match.requirement_id,
                revision=match.revision,
                origin=origin,
                location=TagLocation(path=relative_path, line=line_no, column=match.column),
            ))
    return tags


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------

def _scan_file(
    root: Path, relative_path: str, origin: Origin, tag_config: CompiledTagConfig
) -> tuple[list[CoverageTag], ScanWarning | None]:
    try:
        text = (root / relative_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Skipping unreadable %s file '%s': %s", origin.value, relative_path, exc)
        return [], ScanWarning(path=relative_path, origin=origin, message=str(exc))

    logger.debug("Scanning %s", relative_path)
    return scan_text(text, relative_path, origin, tag_config), None
