"""Walking and copying asset trees with regenerable subtrees excluded."""

import fnmatch
import shutil
from collections.abc import Iterator
from pathlib import Path

from refit.core.layout import OS_NOISE_FILENAMES


def is_excluded(relative: Path, exclude: tuple[str, ...]) -> bool:
    """Check if any component of a relative path matches an exclusion pattern.

    Patterns match whole path components (e.g. "node_modules" excludes
    node_modules/ at any depth), with fnmatch wildcards allowed.
    """
    return any(
        fnmatch.fnmatchcase(part, pattern) for part in relative.parts for pattern in exclude
    )


def iter_tree_files(root: Path, exclude: tuple[str, ...]) -> Iterator[Path]:
    """Yield paths of regular files under root, relative to root, sorted.

    Excluded subtrees are not descended into and OS noise files are skipped.
    """
    if not root.is_dir():
        return
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(root)
        if is_excluded(relative, exclude):
            continue
        if path.name in OS_NOISE_FILENAMES:
            continue
        yield relative


def count_files(root: Path, exclude: tuple[str, ...]) -> int:
    """Count regular files under root, honouring exclusions."""
    return sum(1 for _ in iter_tree_files(root, exclude))


def copy_tree(source_dir: Path, target_dir: Path, exclude: tuple[str, ...]) -> int:
    """Copy directory contents recursively, returning count of files copied.

    Empty directories are recreated so that structural checks (required
    subdirectories) hold for the copy as well.
    """
    target_dir.mkdir(parents=True, exist_ok=True)
    count = 0
    for source_path in sorted(source_dir.rglob("*")):
        relative = source_path.relative_to(source_dir)
        if is_excluded(relative, exclude):
            continue
        target_path = target_dir / relative
        if source_path.is_dir():
            target_path.mkdir(parents=True, exist_ok=True)
            continue
        if source_path.name in OS_NOISE_FILENAMES:
            continue
        target_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source_path, target_path)
        count += 1
    return count
