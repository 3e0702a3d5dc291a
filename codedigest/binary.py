from __future__ import annotations

from pathlib import Path
from typing import Protocol

DEFAULT_SNIFF_BYTES = 8192
DEFAULT_NON_TEXT_RATIO = 0.30

DEFAULT_BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".7z", ".bin", ".bmp", ".class", ".dll", ".dylib", ".eot", ".exe",
        ".gif", ".gz", ".ico", ".jar", ".jpeg", ".jpg", ".mp3", ".mp4",
        ".o", ".otf", ".pdf", ".png", ".pyc", ".so", ".tar", ".ttf",
        ".wasm", ".webp", ".woff", ".woff2", ".xz", ".zip",
    }
)


class BinaryDetector(Protocol):
    def is_binary(self, path: Path, prefix: bytes) -> bool: ...


class ByteRatioDetector:
    """Flags data with a NUL byte or too many control bytes in its prefix."""

    def __init__(self, threshold: float = DEFAULT_NON_TEXT_RATIO) -> None:
        self.threshold = threshold

    def is_binary(self, path: Path, prefix: bytes) -> bool:
        if not prefix:
            return False
        if b"\x00" in prefix:
            return True

        text_whitespace = {9, 10, 13}
        suspicious = 0
        for b in prefix:
            if b in text_whitespace:
                continue
            if 32 <= b <= 126:
                continue
            if 128 <= b <= 255:
                # UTF-8 / extended bytes are allowed.
                continue
            suspicious += 1
        return suspicious / len(prefix) > self.threshold


class ExtensionDetector:
    """Trusts a known-binary extension list, then defers to ``fallback``."""

    def __init__(
        self,
        extensions: frozenset[str] = DEFAULT_BINARY_EXTENSIONS,
        fallback: BinaryDetector | None = None,
    ) -> None:
        self.extensions = frozenset(e.lower() for e in extensions)
        self.fallback = fallback

    def is_binary(self, path: Path, prefix: bytes) -> bool:
        if path.suffix.lower() in self.extensions:
            return True
        if self.fallback is None:
            return False
        return self.fallback.is_binary(path, prefix)
