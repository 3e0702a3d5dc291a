from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import pathspec

from .ignore import IGNORE_FILENAMES, PatternMatcher
from .model import FileNode

DEFAULT_EXCLUDES = [
    ".git",
    "node_modules",
    "__pycache__",
    "*.pyc",
    ".venv",
    ".tox",
    ".pytest_cache",
    ".DS_Store",
    "Thumbs.db",
]

DEFAULT_MAX_DEPTH = 20


@dataclass(frozen=True)
class Discovery:
    root: Path
    nodes: list[FileNode]

    @property
    def files(self) -> list[FileNode]:
        return [n for n in self.nodes if n.is_file]

    @property
    def selected(self) -> list[FileNode]:
        return [n for n in self.nodes if n.is_file and n.is_selected]


def _is_confined_to_root(path: Path, root: Path) -> bool:
    try:
        resolved = path.resolve()
    except OSError:
        return False
    try:
        resolved.relative_to(root)
    except ValueError:
        return False
    return True


def build_matcher(
    root: Path,
    *,
    exclude: Sequence[str] | None = None,
    respect_gitignore: bool = True,
    ignore_files: Sequence[str] = IGNORE_FILENAMES,
) -> PatternMatcher:
    """Root-scoped matcher with default + user excludes and the root ignore files."""
    matcher = PatternMatcher(root)
    matcher.add_ignore_file(root, DEFAULT_EXCLUDES + list(exclude or []))
    if respect_gitignore:
        matcher.load_for_dir(root, ignore_files)
    return matcher


def discover_nodes(
    root: Path,
    matcher: PatternMatcher | None = None,
    *,
    respect_gitignore: bool = True,
    select: Sequence[str] | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    ignore_files: Sequence[str] = IGNORE_FILENAMES,
) -> Discovery:
    """Walk ``root`` and return directory and file nodes that are not ignored.

    Notes:
    - Nested ignore files are loaded as their directory is entered, so their
      rules are scoped to that directory.
    - ``select`` holds gitignore-style globs marking files as selected; when it
      is empty every discovered file is selected.
    - Entries resolving outside ``root`` (symlink escapes) are skipped.
    - Symlinks to directories are skipped; symlinked files inside ``root`` are kept.
    """
    root = root.resolve()
    if matcher is None:
        matcher = build_matcher(
            root, respect_gitignore=respect_gitignore, ignore_files=ignore_files
        )
    chooser = pathspec.PathSpec.from_lines("gitwildmatch", select) if select else None

    nodes: list[FileNode] = []

    def walk(directory: Path, depth: int) -> None:
        if respect_gitignore:
            matcher.load_for_dir(directory, ignore_files)
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError:
            return
        for entry in entries:
            p = Path(entry.path)
            if not _is_confined_to_root(p, root):
                continue
            rel = p.relative_to(root).as_posix()
            # Symlinked directories are not descended into, so link cycles cannot recurse.
            is_dir = entry.is_dir(follow_symlinks=False)
            if matcher.is_ignored(rel, is_dir=is_dir):
                continue
            if is_dir:
                nodes.append(
                    FileNode(path=p, rel_path=rel, name=entry.name, type="dir", depth=depth)
                )
                if depth < max_depth:
                    walk(p, depth + 1)
            elif entry.is_file():
                try:
                    size: int | None = entry.stat().st_size
                except OSError:
                    size = None
                nodes.append(
                    FileNode(
                        path=p,
                        rel_path=rel,
                        name=entry.name,
                        type="file",
                        is_selected=chooser is None or chooser.match_file(rel),
                        depth=depth,
                        ext=p.suffix.lower(),
                        size=size,
                    )
                )

    walk(root, 0)
    return Discovery(root=root, nodes=nodes)
