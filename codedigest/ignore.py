from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import pathspec

from .diagnostics import get_logger
from .model import IgnoreRule

IGNORE_FILENAMES: tuple[str, ...] = (".gitignore", ".gitingestignore")

_GLOB_CHARS = frozenset("*?[")

logger = get_logger(__name__)


@dataclass(frozen=True)
class _CompiledRule:
    rule: IgnoreRule
    spec: pathspec.PathSpec


def _clean_line(raw: str) -> str:
    return raw.replace("\\", "/").strip()


def parse_ignore_line(raw: str, base_dir: str) -> IgnoreRule | None:
    """Turn one ignore-file line into a rule, or None for blanks/comments."""
    line = _clean_line(raw)
    if not line or line.startswith("#"):
        return None
    negated = line.startswith("!")
    body = line[1:] if negated else line
    anchored = body.startswith("/")
    directory_only = body.endswith("/")
    cleaned = body.strip("/")
    while "//" in cleaned:
        cleaned = cleaned.replace("//", "/")
    if not cleaned:
        return None
    return IgnoreRule(
        pattern=raw.strip(),
        base_dir=base_dir,
        negated=negated,
        anchored=anchored,
        directory_only=directory_only,
    )


def _cleaned_pattern(rule: IgnoreRule) -> str:
    body = _clean_line(rule.pattern)
    if rule.negated:
        body = body[1:]
    cleaned = body.strip("/")
    while "//" in cleaned:
        cleaned = cleaned.replace("//", "/")
    return cleaned


def _compile(rule: IgnoreRule) -> pathspec.PathSpec:
    cleaned = _cleaned_pattern(rule)
    if rule.directory_only:
        # Directory rules are rooted at their scope and cover everything below.
        line = f"/{cleaned}/"
    elif rule.anchored:
        line = f"/{cleaned}"
    elif cleaned.startswith("**/"):
        line = cleaned
    else:
        line = f"**/{cleaned}"
    return pathspec.PathSpec.from_lines("gitwildmatch", [line])


class PatternMatcher:
    """Gitignore-style matcher holding ordered rules per scope directory.

    Each instance owns its rules; ``clear`` never reaches other instances.
    Scopes are evaluated from the shallowest to the deepest and, inside a
    scope, in the order rules were added. The last matching rule wins.
    """

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root).resolve() if root is not None else Path.cwd().resolve()
        self._scopes: dict[str, list[_CompiledRule]] = {}
        self._loaded: set[str] = set()

    def _scope_key(self, base_dir: Path | str) -> str:
        raw = str(base_dir).replace("\\", "/")
        p = Path(raw)
        if p.name in IGNORE_FILENAMES:
            p = p.parent
        if p.is_absolute():
            try:
                rel = p.resolve().relative_to(self.root)
            except ValueError as e:
                raise ValueError(f"Ignore scope {raw} is outside {self.root}") from e
            key = rel.as_posix()
        else:
            key = PurePosixPath(p.as_posix()).as_posix()
        return "" if key in {".", ""} else key.strip("/")

    def add_ignore_file(self, base_dir: Path | str, lines: Iterable[str]) -> None:
        key = self._scope_key(base_dir)
        compiled = self._scopes.setdefault(key, [])
        for raw in lines:
            rule = parse_ignore_line(raw, key)
            if rule is None:
                continue
            try:
                spec = _compile(rule)
            except ValueError as e:
                logger.debug("ignore_rule_skipped", pattern=raw, scope=key, error=str(e))
                continue
            compiled.append(_CompiledRule(rule=rule, spec=spec))

    def load_ignore_text(self, base_dir: Path | str, text: str) -> None:
        self.add_ignore_file(base_dir, text.splitlines())

    def load_for_dir(
        self, directory: Path | str, file_names: Sequence[str] = IGNORE_FILENAMES
    ) -> None:
        """Read ignore files found directly inside ``directory`` (once per dir)."""
        d = Path(directory)
        if not d.is_absolute():
            d = self.root / d
        key = self._scope_key(d)
        if key in self._loaded:
            return
        lines: list[str] = []
        for name in file_names:
            p = d / name
            if not p.is_file():
                continue
            try:
                lines.extend(
                    p.read_text(encoding="utf-8", errors="replace").splitlines()
                )
            except OSError as e:
                logger.warning("ignore_file_unreadable", path=p.as_posix(), error=str(e))
        self.add_ignore_file(d, lines)
        self._loaded.add(key)

    def rules(self) -> list[IgnoreRule]:
        return [c.rule for _, compiled in self._ordered_scopes() for c in compiled]

    def list_explicit_negations(self) -> list[str]:
        out: list[str] = []
        for rule in self.rules():
            if not rule.negated:
                continue
            cleaned = _cleaned_pattern(rule)
            if _GLOB_CHARS.isdisjoint(cleaned) and cleaned not in out:
                out.append(cleaned)
        return out

    def _ordered_scopes(self) -> list[tuple[str, list[_CompiledRule]]]:
        return sorted(
            self._scopes.items(), key=lambda kv: len(kv[0].split("/")) if kv[0] else 0
        )

    def _to_relative(self, path: Path | str) -> str | None:
        raw = str(path).replace("\\", "/")
        if not Path(raw).is_absolute():
            return raw.lstrip("/")
        root = self.root.as_posix()
        if raw == root or raw.startswith(root + "/"):
            return raw[len(root) :].lstrip("/")
        # Absolute paths outside the root are never covered by its rules.
        return None

    def is_ignored(self, rel_path: Path | str, is_dir: bool = False) -> bool:
        rel = self._to_relative(rel_path)
        if not rel:
            return False
        if rel.endswith("/"):
            is_dir = True
            rel = rel.rstrip("/")

        ignored = False
        for scope, compiled in self._ordered_scopes():
            if scope:
                if not rel.startswith(scope + "/"):
                    continue
                local = rel[len(scope) + 1 :]
            else:
                local = rel
            candidate = local + "/" if is_dir else local
            for c in compiled:
                if c.spec.match_file(candidate):
                    ignored = not c.rule.negated
        return ignored

    def clear(self) -> None:
        self._scopes.clear()
        self._loaded.clear()
