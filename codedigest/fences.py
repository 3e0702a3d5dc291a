from __future__ import annotations

import re

_BACKTICK_RUN_RE = re.compile(r"`+")

LANGUAGE_BY_EXT: dict[str, str] = {
    ".c": "c",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".css": "css",
    ".go": "go",
    ".html": "html",
    ".java": "java",
    ".js": "javascript",
    ".json": "json",
    ".jsx": "jsx",
    ".kt": "kotlin",
    ".py": "python",
    ".rb": "ruby",
    ".rs": "rust",
    ".sh": "bash",
    ".sql": "sql",
    ".toml": "toml",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def longest_backtick_run(text: str) -> int:
    max_len = 0
    for m in _BACKTICK_RUN_RE.finditer(text):
        max_len = max(max_len, len(m.group(0)))
    return max_len


def choose_backtick_fence(text: str, *, min_len: int = 3) -> str:
    return "`" * max(min_len, longest_backtick_run(text) + 1)


def infer_language(ext: str) -> str:
    return LANGUAGE_BY_EXT.get(ext.lower(), "")


def fence(text: str, lang: str = "") -> str:
    marker = choose_backtick_fence(text)
    body = text if text.endswith("\n") or not text else text + "\n"
    return f"{marker}{lang}\n{body}{marker}"
