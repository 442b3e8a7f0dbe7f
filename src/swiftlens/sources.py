"""Source discovery: locate Swift files under a root and load their text."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

from .pipeline import matches_any

logger = logging.getLogger(__name__)

IGNORED_DIRECTORY_NAMES = frozenset({".git", ".build", "DerivedData"})
SWIFT_SUFFIX = ".swift"


def walk_sources(root: Path, excluded_patterns: Sequence[str] = ()) -> Dict[str, str]:
    """Return ``{absolute path: text}`` for every Swift file below ``root``."""
    root = Path(root).resolve()
    relative_paths: List[str] = []
    for current, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            name
            for name in dirnames
            if name not in IGNORED_DIRECTORY_NAMES and not name.startswith(".")
        )
        base = Path(current).relative_to(root)
        for filename in sorted(filenames):
            if filename.endswith(SWIFT_SUFFIX):
                relative_paths.append((base / filename).as_posix())
    return _load(root, relative_paths, excluded_patterns)


def tracked_sources(root: Path, excluded_patterns: Sequence[str] = ()) -> Dict[str, str]:
    """Like ``walk_sources`` but limited to files tracked by git.

    Raises:
        ValueError: If ``root`` is not inside a git work tree.
    """
    root = Path(root).resolve()
    try:
        repo = Repo(str(root), search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError) as exc:
        raise ValueError(f"{root} is not inside a git repository") from exc
    work_tree = Path(repo.working_tree_dir).resolve()
    listed = repo.git.ls_files("--", f"*{SWIFT_SUFFIX}")
    relative_paths: List[str] = []
    for line in listed.splitlines():
        line = line.strip()
        if not line:
            continue
        absolute = work_tree / line
        try:
            relative = absolute.relative_to(root)
        except ValueError:
            continue
        parts = relative.parts
        if any(part in IGNORED_DIRECTORY_NAMES for part in parts[:-1]):
            continue
        relative_paths.append(relative.as_posix())
    return _load(root, sorted(relative_paths), excluded_patterns)


def _load(root: Path, relative_paths: Iterable[str], excluded_patterns: Sequence[str]) -> Dict[str, str]:
    contents: Dict[str, str] = {}
    for relative in relative_paths:
        if excluded_patterns and matches_any(relative, excluded_patterns):
            logger.debug("Excluded %s", relative)
            continue
        absolute = root / relative
        try:
            contents[str(absolute)] = absolute.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                f"Reading as empty due to read failure (file_path={relative} error={exc})"
            )
            contents[str(absolute)] = ""
    logger.debug("Discovered %d Swift file(s) under %s", len(contents), root)
    return contents
