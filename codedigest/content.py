from __future__ import annotations

import base64
import os
from dataclasses import replace
from pathlib import Path
from typing import Literal

from .binary import DEFAULT_SNIFF_BYTES, BinaryDetector, ByteRatioDetector
from .diagnostics import get_logger
from .errors import FileReadError
from .model import DEFAULT_MAX_FILE_BYTES, BinaryPolicy, FileContent, NotebookConfig
from .notebook import parse_notebook, render_notebook
from .security import Redactor

logger = get_logger(__name__)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def human_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KB", "MB", "GB", "TB"):
        value /= 1024
        if value < 1024 or unit == "TB":
            return f"{value:.1f} {unit}"
    return f"{value:.1f} TB"  # pragma: no cover


class ContentProcessor:
    """Reads one file, classifies it and hands text to the injected redactor."""

    def __init__(
        self,
        redactor: Redactor | None = None,
        *,
        binary_detector: BinaryDetector | None = None,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
        sniff_bytes: int = DEFAULT_SNIFF_BYTES,
        encoding_errors: Literal["replace", "strict"] = "replace",
        binary_policy: BinaryPolicy = "placeholder",
        notebook: NotebookConfig | None = None,
        output_format: str = "markdown",
    ) -> None:
        self.redactor = redactor
        self.binary_detector = binary_detector or ByteRatioDetector()
        self.max_file_bytes = max_file_bytes
        self.sniff_bytes = max(1, sniff_bytes)
        self.encoding_errors = encoding_errors
        self.binary_policy = binary_policy
        self.notebook = notebook
        self.output_format = output_format

    def get_file_content(self, path: Path | str) -> FileContent:
        p = Path(path)
        limit = self.max_file_bytes
        try:
            with p.open("rb") as fh:
                size = os.fstat(fh.fileno()).st_size
                prefix = fh.read(self.sniff_bytes)
                if self.binary_detector.is_binary(p, prefix):
                    binary = True
                    if self.binary_policy != "base64":
                        return FileContent(is_binary=True, size=size)
                else:
                    binary = False
                if limit > 0 and size > limit:
                    return FileContent(is_binary=binary, size=size, too_large=True)
                # Read at most one byte past the cap so a growing file stays bounded.
                if limit > 0:
                    rest = fh.read(max(0, limit + 1 - len(prefix)))
                else:
                    rest = fh.read()
                data = prefix + rest
                if limit > 0 and len(data) > limit:
                    return FileContent(is_binary=binary, size=len(data), too_large=True)
                if binary:
                    encoded = base64.b64encode(data).decode("ascii")
                    return FileContent(content=encoded, is_binary=True, size=size, kind="base64")
                text = data.decode("utf-8", errors=self.encoding_errors)
        except UnicodeDecodeError as e:
            raise FileReadError(p.as_posix(), f"invalid UTF-8 ({e.reason})") from e
        except OSError as e:
            raise FileReadError(p.as_posix(), e.strerror or str(e)) from e

        text = normalize_newlines(text)
        if p.suffix.lower() == ".ipynb" and self.notebook is not None and self.notebook.enabled:
            try:
                cells = parse_notebook(text, self.notebook)
            except ValueError as e:
                logger.warning("notebook_parse_failed", path=p.as_posix(), error=str(e))
                content = self._redact(text, size, p)
                if content.warning:
                    return content
                return replace(content, warning=f"Could not parse notebook {p.as_posix()}: {e}")
            rendered = render_notebook(
                cells, self.notebook, name=p.name, output_format=self.output_format
            )
            return replace(self._redact(rendered, size, p), kind="notebook")
        return self._redact(text, size, p)

    def _redact(self, text: str, size: int, path: Path) -> FileContent:
        if self.redactor is None:
            return FileContent(content=text, size=size)
        try:
            result = self.redactor.redact(text)
        except Exception as e:  # noqa: BLE001
            logger.warning("redaction_failed", path=path.as_posix(), error=repr(e))
            return FileContent(
                content=text,
                size=size,
                warning=f"Redaction failed for {path.as_posix()}: {e}",
            )
        if not result.applied:
            return FileContent(content=text, size=size)
        return FileContent(content=result.content, size=size, redacted=True)
