from __future__ import annotations

from pathlib import Path

import pytest

from codedigest.binary import ByteRatioDetector, ExtensionDetector
from codedigest.content import ContentProcessor, human_file_size
from codedigest.errors import FileReadError
from codedigest.model import NotebookConfig
from codedigest.security import RedactionResult


class _ReplaceAll:
    def redact(self, content: str) -> RedactionResult:
        return RedactionResult(applied=True, content="X")


class _Exploding:
    def redact(self, content: str) -> RedactionResult:
        raise RuntimeError("redactor crashed")


def test_reads_text_and_normalizes_newlines(tmp_path: Path) -> None:
    p = tmp_path / "a.txt"
    p.write_bytes(b"one\r\ntwo\rthree\n")

    fc = ContentProcessor().get_file_content(p)

    assert fc.content == "one\ntwo\nthree\n"
    assert fc.is_binary is False
    assert fc.size == 15


def test_nul_byte_marks_file_binary(tmp_path: Path) -> None:
    p = tmp_path / "blob.dat"
    p.write_bytes(b"abc\x00def")

    fc = ContentProcessor().get_file_content(p)

    assert fc.is_binary is True
    assert fc.content == ""
    assert fc.size == 7


def test_control_byte_ratio_marks_file_binary() -> None:
    detector = ByteRatioDetector()

    assert detector.is_binary(Path("x"), bytes([1, 2, 3, 65])) is True
    assert detector.is_binary(Path("x"), "héllo wörld\n".encode()) is False
    assert detector.is_binary(Path("x"), b"") is False


def test_extension_detector_trusts_known_extensions() -> None:
    detector = ExtensionDetector(fallback=ByteRatioDetector())

    assert detector.is_binary(Path("logo.PNG"), b"plain text") is True
    assert detector.is_binary(Path("main.py"), b"print(1)\n") is False
    assert detector.is_binary(Path("main.py"), b"\x00") is True


def test_oversized_file_is_flagged_not_read(tmp_path: Path) -> None:
    p = tmp_path / "big.txt"
    p.write_text("x" * 20, encoding="utf-8")

    fc = ContentProcessor(max_file_bytes=10).get_file_content(p)

    assert fc.too_large is True
    assert fc.content == ""
    assert fc.size == 20


def test_zero_cap_disables_size_limit(tmp_path: Path) -> None:
    p = tmp_path / "big.txt"
    p.write_text("x" * 20, encoding="utf-8")

    fc = ContentProcessor(max_file_bytes=0).get_file_content(p)

    assert fc.too_large is False
    assert fc.content == "x" * 20


def test_redactor_output_is_used(tmp_path: Path) -> None:
    p = tmp_path / "a.txt"
    p.write_text("secret stuff", encoding="utf-8")

    fc = ContentProcessor(_ReplaceAll()).get_file_content(p)

    assert fc.content == "X"
    assert fc.redacted is True


def test_redactor_failure_keeps_original_text(tmp_path: Path) -> None:
    p = tmp_path / "a.txt"
    p.write_text("plain", encoding="utf-8")

    fc = ContentProcessor(_Exploding()).get_file_content(p)

    assert fc.content == "plain"
    assert fc.redacted is False
    assert fc.warning is not None
    assert "redactor crashed" in fc.warning


def test_missing_file_raises_read_error(tmp_path: Path) -> None:
    with pytest.raises(FileReadError) as excinfo:
        ContentProcessor().get_file_content(tmp_path / "nope.txt")

    assert excinfo.value.path.endswith("nope.txt")


def test_strict_decoding_raises_read_error(tmp_path: Path) -> None:
    p = tmp_path / "latin.txt"
    p.write_bytes(b"caf\xe9 au lait")

    with pytest.raises(FileReadError, match="invalid UTF-8"):
        ContentProcessor(encoding_errors="strict").get_file_content(p)

    fc = ContentProcessor().get_file_content(p)
    assert fc.content.startswith("caf")


def test_human_file_size() -> None:
    assert human_file_size(0) == "0 B"
    assert human_file_size(512) == "512 B"
    assert human_file_size(1536) == "1.5 KB"
    assert human_file_size(3 * 1024 * 1024) == "3.0 MB"


def test_base64_policy_encodes_binary_bytes(tmp_path: Path) -> None:
    p = tmp_path / "blob.dat"
    p.write_bytes(b"abc\x00def")

    fc = ContentProcessor(binary_policy="base64").get_file_content(p)

    assert fc.is_binary is True
    assert fc.kind == "base64"
    assert fc.content == "YWJjAGRlZg=="
    assert fc.size == 7


def test_base64_policy_respects_size_cap(tmp_path: Path) -> None:
    p = tmp_path / "blob.dat"
    p.write_bytes(b"\x00" * 32)

    fc = ContentProcessor(binary_policy="base64", max_file_bytes=8).get_file_content(p)

    assert fc.too_large is True
    assert fc.content == ""


def test_notebook_is_rendered_and_redacted(tmp_path: Path) -> None:
    p = tmp_path / "nb.ipynb"
    p.write_text(
        '{"cells": [{"cell_type": "code", "source": "token = 1", "outputs": []}]}',
        encoding="utf-8",
    )

    rendered = ContentProcessor(notebook=NotebookConfig()).get_file_content(p)
    redacted = ContentProcessor(_ReplaceAll(), notebook=NotebookConfig()).get_file_content(p)

    assert rendered.kind == "notebook"
    assert rendered.content.startswith("# Jupyter Notebook: nb.ipynb\n")
    assert "```python\ntoken = 1\n```" in rendered.content
    assert redacted.content == "X"
    assert redacted.redacted is True
    assert redacted.kind == "notebook"


def test_broken_notebook_falls_back_to_raw_text(tmp_path: Path) -> None:
    p = tmp_path / "nb.ipynb"
    p.write_text("{not json", encoding="utf-8")

    fc = ContentProcessor(notebook=NotebookConfig()).get_file_content(p)

    assert fc.kind == "text"
    assert fc.content == "{not json"
    assert fc.warning is not None
    assert "Could not parse notebook" in fc.warning


def test_notebook_rendering_can_be_disabled(tmp_path: Path) -> None:
    p = tmp_path / "nb.ipynb"
    p.write_text('{"cells": []}', encoding="utf-8")

    fc = ContentProcessor(notebook=NotebookConfig(enabled=False)).get_file_content(p)

    assert fc.kind == "text"
    assert fc.content == '{"cells": []}'
