from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import structlog
from gitignore_parser import parse_gitignore

from ngsage.analyzers.parser_factory import detect_language
from ngsage.errors import SourceIOError

logger = structlog.get_logger()

TEST_SUFFIXES = (".spec.ts", ".test.ts")


def is_excluded(path: Path, patterns: Iterable[str]) -> bool:
    """True when the path or any of its components matches one of the glob patterns."""
    posix = path.as_posix()
    for pattern in patterns:
        if fnmatch(posix, pattern) or any(fnmatch(part, pattern) for part in path.parts):
            return True
    return False


def is_test_file(path: Path) -> bool:
    return path.name.endswith(TEST_SUFFIXES)


def scan_directory(path: str, exclude_patterns: Optional[List[str]] = None, include_tests: bool = False) -> List[Path]:
    """
    Scans a directory recursively for TypeScript units, filtering files based on
    .gitignore rules and exclude patterns.
    """
    base_dir = Path(path)
    gitignore_path = base_dir / ".gitignore"

    matches = None
    if gitignore_path.is_file():
        matches = parse_gitignore(str(gitignore_path), base_dir=str(base_dir.resolve()))

    filtered_files = []
    for file_path in sorted(base_dir.rglob("*")):
        if not file_path.is_file():
            continue
        if detect_language(str(file_path)) != "typescript":
            continue
        if matches and matches(str(file_path.resolve())):
            continue
        if exclude_patterns and is_excluded(file_path.relative_to(base_dir), exclude_patterns):
            continue
        if not include_tests and is_test_file(file_path):
            continue
        filtered_files.append(file_path)

    return filtered_files


def discover(
    paths: Iterable[str],
    exclude_patterns: Optional[List[str]] = None,
    include_tests: bool = False,
) -> Tuple[List[Path], List[SourceIOError]]:
    """
    Expands the given paths into the units to analyze.

    Files named explicitly are taken as they are, as long as they are
    TypeScript. Missing paths are returned as errors instead of raising, so
    the rest of the run can go on.
    """
    files: List[Path] = []
    errors: List[SourceIOError] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(scan_directory(raw, exclude_patterns, include_tests))
        elif path.is_file():
            if detect_language(raw) == "typescript":
                files.append(path)
            else:
                logger.warning("Skipping unsupported file", path=raw)
        else:
            errors.append(SourceIOError(raw, "no such file or directory"))

    unique = list(dict.fromkeys(files))
    return unique, errors
