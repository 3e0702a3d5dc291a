from __future__ import annotations

import os
import warnings
from pathlib import Path

import pytest

from codedigest.discover import build_matcher, discover_nodes


def _touch(root: Path, rel: str, text: str = "x") -> None:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")


def _file_paths(root: Path, **kwargs) -> set[str]:
    return {n.rel_path for n in discover_nodes(root, **kwargs).files}


def test_discover_respects_gitignore(tmp_path: Path) -> None:
    _touch(tmp_path, ".gitignore", "*.log\nbuild/\n")
    _touch(tmp_path, "a.py")
    _touch(tmp_path, "debug.log")
    _touch(tmp_path, "build/out.js")
    _touch(tmp_path, "src/build/keep.js")

    assert _file_paths(tmp_path) == {".gitignore", "a.py", "src/build/keep.js"}


def test_discover_without_gitignore(tmp_path: Path) -> None:
    _touch(tmp_path, ".gitignore", "*.log\n")
    _touch(tmp_path, "debug.log")

    assert "debug.log" in _file_paths(tmp_path, respect_gitignore=False)


def test_default_excludes_apply(tmp_path: Path) -> None:
    _touch(tmp_path, "node_modules/pkg/index.js")
    _touch(tmp_path, ".git/config")
    _touch(tmp_path, "pkg/__pycache__/mod.pyc")
    _touch(tmp_path, "pkg/mod.py")

    assert _file_paths(tmp_path) == {"pkg/mod.py"}


def test_nested_gitignore_is_scoped(tmp_path: Path) -> None:
    _touch(tmp_path, "pkg/.gitignore", "*.tmp\n")
    _touch(tmp_path, "pkg/a.tmp")
    _touch(tmp_path, "b.tmp")

    files = _file_paths(tmp_path)

    assert "pkg/a.tmp" not in files
    assert "b.tmp" in files


def test_custom_ignore_file_names(tmp_path: Path) -> None:
    _touch(tmp_path, ".digestignore", "*.csv\n")
    _touch(tmp_path, ".gitignore", "*.txt\n")
    _touch(tmp_path, "data.csv")
    _touch(tmp_path, "notes.txt")

    files = _file_paths(tmp_path, ignore_files=(".digestignore",))

    assert "data.csv" not in files
    assert "notes.txt" in files


def test_extra_excludes_via_matcher(tmp_path: Path) -> None:
    _touch(tmp_path, "a.py")
    _touch(tmp_path, "docs/guide.md")
    root = tmp_path.resolve()

    matcher = build_matcher(root, exclude=["*.md"])

    assert {n.rel_path for n in discover_nodes(root, matcher).files} == {"a.py"}


def test_select_marks_files_without_dropping_others(tmp_path: Path) -> None:
    _touch(tmp_path, "a.py")
    _touch(tmp_path, "notes.txt")

    discovery = discover_nodes(tmp_path, select=["*.py"])

    assert [n.rel_path for n in discovery.selected] == ["a.py"]
    assert {n.rel_path for n in discovery.files} == {"a.py", "notes.txt"}


def test_everything_selected_without_globs(tmp_path: Path) -> None:
    _touch(tmp_path, "a.py")
    _touch(tmp_path, "notes.txt")

    discovery = discover_nodes(tmp_path)

    assert len(discovery.selected) == 2


def test_nodes_are_sorted_and_include_dirs(tmp_path: Path) -> None:
    _touch(tmp_path, "b.py")
    _touch(tmp_path, "a/z.py", "zz")

    nodes = discover_nodes(tmp_path).nodes

    assert [(n.rel_path, n.type, n.depth) for n in nodes] == [
        ("a", "dir", 0),
        ("a/z.py", "file", 1),
        ("b.py", "file", 0),
    ]
    assert nodes[1].size == 2
    assert nodes[1].ext == ".py"


def test_max_depth_limits_recursion(tmp_path: Path) -> None:
    _touch(tmp_path, "a/x.txt")
    _touch(tmp_path, "a/b/c.txt")

    files = _file_paths(tmp_path, max_depth=1)

    assert "a/x.txt" in files
    assert "a/b/c.txt" not in files


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlinks_escaping_root_are_skipped(tmp_path: Path) -> None:
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    _touch(outside, "secret.txt")
    _touch(root, "a.py")
    try:
        (root / "link").symlink_to(outside, target_is_directory=True)
    except OSError:
        pytest.skip("cannot create symlink")

    assert _file_paths(root) == {"a.py"}


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlink_cycle_inside_root_is_not_followed(tmp_path: Path) -> None:
    _touch(tmp_path, "a/f.txt")
    try:
        (tmp_path / "a" / "loop").symlink_to(tmp_path / "a", target_is_directory=True)
    except OSError:
        pytest.skip("cannot create symlink")

    discovery = discover_nodes(tmp_path, max_depth=6)

    assert {n.rel_path for n in discovery.files} == {"a/f.txt"}
    assert "a/loop" not in {n.rel_path for n in discovery.nodes}


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlinked_file_inside_root_is_kept(tmp_path: Path) -> None:
    _touch(tmp_path, "real.txt")
    try:
        (tmp_path / "alias.txt").symlink_to(tmp_path / "real.txt")
    except OSError:
        pytest.skip("cannot create symlink")

    assert _file_paths(tmp_path) == {"alias.txt", "real.txt"}


def test_select_globs_compile_without_deprecation_warning(tmp_path: Path) -> None:
    _touch(tmp_path, "src/a.py")
    _touch(tmp_path, "README.md")

    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        selected = {
            n.rel_path for n in discover_nodes(tmp_path, select=["src/"]).files if n.is_selected
        }

    assert selected == {"src/a.py"}
