from __future__ import annotations

import re
from collections.abc import Sequence

from .model import DEFAULT_MAX_SELECTED_TREE_LINES, FileNode, TreeMode

TRUNCATION_MARKER = "... (truncated)"

_SPLIT_RE = re.compile(r"[\\/]+")


class _Dir:
    __slots__ = ("dirs", "files")

    def __init__(self) -> None:
        self.dirs: dict[str, _Dir] = {}
        self.files: set[str] = set()


def _parts(rel_path: str) -> list[str]:
    return [p for p in _SPLIT_RE.split(rel_path) if p and p != "."]


def _insert(root: _Dir, parts: list[str], *, is_dir: bool) -> None:
    cur = root
    for part in parts[:-1]:
        cur = cur.dirs.setdefault(part, _Dir())
    leaf = parts[-1]
    if is_dir:
        cur.dirs.setdefault(leaf, _Dir())
    elif leaf not in cur.dirs:
        cur.files.add(leaf)


def _sort_key(name: str) -> tuple[str, str]:
    return (name.lower(), name)


def _render(node: _Dir, prefix: str, out: list[str]) -> None:
    items: list[tuple[str, _Dir | None]] = [
        (name, node.dirs[name]) for name in sorted(node.dirs, key=_sort_key)
    ]
    items.extend((name, None) for name in sorted(node.files, key=_sort_key))
    for i, (name, child) in enumerate(items):
        last = i == len(items) - 1
        out.append(prefix + ("└── " if last else "├── ") + name)
        if child is not None:
            _render(child, prefix + ("    " if last else "│   "), out)


class TreeBuilder:
    """Renders FileNode lists as a connector-style ASCII tree."""

    def __init__(self, max_selected_lines: int | None = None) -> None:
        self.max_selected_lines = (
            DEFAULT_MAX_SELECTED_TREE_LINES
            if max_selected_lines is None
            else max_selected_lines
        )

    def build_lines(
        self,
        files: Sequence[FileNode],
        mode: TreeMode = "full",
        max_lines: int | None = None,
    ) -> list[str]:
        root = _Dir()
        for node in files:
            if mode == "minimal" and not (node.is_file and node.is_selected):
                continue
            parts = _parts(node.rel_path)
            if parts:
                _insert(root, parts, is_dir=not node.is_file)

        lines: list[str] = []
        _render(root, "", lines)

        if mode == "minimal":
            limit = self.max_selected_lines if max_lines is None else max_lines
            limit = max(1, limit)
            if len(lines) > limit:
                # The marker counts toward the limit.
                lines = [*lines[: limit - 1], TRUNCATION_MARKER]
        return lines

    def build(
        self,
        files: Sequence[FileNode],
        mode: TreeMode = "full",
        max_lines: int | None = None,
    ) -> str:
        return "\n".join(self.build_lines(files, mode, max_lines))
