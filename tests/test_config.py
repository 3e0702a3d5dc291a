from __future__ import annotations

from pathlib import Path

import pytest

from codedigest.config import Config, load_config
from codedigest.errors import ConfigError
from codedigest.model import DEFAULT_SEPARATOR, NotebookConfig


def test_config_defaults() -> None:
    cfg = Config()
    assert cfg.output == ""
    assert cfg.output_format == "markdown"
    assert cfg.tree == "full"
    assert cfg.max_selected_tree_lines == 100
    assert cfg.separator == DEFAULT_SEPARATOR
    assert cfg.respect_gitignore is True
    assert cfg.ignore_files == [".gitignore", ".gitingestignore"]
    assert cfg.exclude == []
    assert cfg.select == []
    assert cfg.token_model == "chars-approx"
    assert cfg.chunk_tokens == 0
    assert cfg.max_workers == 8
    assert cfg.binary_file_policy == "placeholder"
    assert cfg.redaction_placeholder == "[REDACTED]"
    assert cfg.show_redacted is False
    assert cfg.redact_output is False


def test_load_config_missing_file(tmp_path: Path) -> None:
    assert load_config(tmp_path) == Config()


def test_load_config_custom_values(tmp_path: Path) -> None:
    (tmp_path / ".codedigest.toml").write_text(
        """[codedigest]
output = "digest.md"
output_format = "text"
tree = "minimal"
max_selected_tree_lines = 20
respect_gitignore = false
exclude = ["*.lock"]
select = ["src/**"]
token_model = "gpt-4o"
chunk_tokens = 5000
context_limit = 128000
divisor_overrides = { "gpt-4o" = 3.5, "commentWeight" = 0.5 }
max_workers = 2
binary_file_policy = "skip"
redaction_patterns = ["ACME-[0-9]+"]
redaction_placeholder = "<hidden>"
redact_output = true
""",
        encoding="utf-8",
    )

    cfg = load_config(tmp_path)

    assert cfg.output == "digest.md"
    assert cfg.output_format == "text"
    assert cfg.tree == "minimal"
    assert cfg.max_selected_tree_lines == 20
    assert cfg.respect_gitignore is False
    assert cfg.exclude == ["*.lock"]
    assert cfg.select == ["src/**"]
    assert cfg.token_model == "gpt-4o"
    assert cfg.chunk_tokens == 5000
    assert cfg.context_limit == 128000
    assert cfg.divisor_overrides == {"gpt-4o": 3.5, "commentWeight": 0.5}
    assert cfg.max_workers == 2
    assert cfg.binary_file_policy == "skip"
    assert cfg.redaction_patterns == ["ACME-[0-9]+"]
    assert cfg.redaction_placeholder == "<hidden>"
    assert cfg.redact_output is True


def test_load_config_from_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        """[project]
name = "demo"

[tool.codedigest]
tree = "none"
chunk_tokens = 100
""",
        encoding="utf-8",
    )

    cfg = load_config(tmp_path)

    assert cfg.tree == "none"
    assert cfg.chunk_tokens == 100


def test_dedicated_file_wins_over_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "[tool.codedigest]\nchunk_tokens = 100\n", encoding="utf-8"
    )
    (tmp_path / "codedigest.toml").write_text(
        "[codedigest]\nchunk_tokens = 7\n", encoding="utf-8"
    )

    assert load_config(tmp_path).chunk_tokens == 7


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / "codedigest.toml").write_text(
        """[codedigest]
max_workers = "many"
output_format = "html"
tree = "sideways"
chunk_tokens = true
exclude = "not-a-list"
binary_file_policy = "explode"
""",
        encoding="utf-8",
    )

    cfg = load_config(tmp_path)

    assert cfg.max_workers == 8
    assert cfg.output_format == "markdown"
    assert cfg.tree == "full"
    assert cfg.chunk_tokens == 0
    assert cfg.exclude == []
    assert cfg.binary_file_policy == "placeholder"


def test_boolean_tree_value(tmp_path: Path) -> None:
    (tmp_path / "codedigest.toml").write_text(
        "[codedigest]\ntree = false\n", encoding="utf-8"
    )

    assert load_config(tmp_path).tree == "none"


def test_invalid_toml_raises(tmp_path: Path) -> None:
    (tmp_path / "codedigest.toml").write_text("[codedigest\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(tmp_path)


def test_to_digest_config_projection() -> None:
    cfg = Config(
        tree="minimal",
        chunk_tokens=50,
        token_model="tiktoken",
        separator="\n\n",
        max_workers=3,
        redact_output=True,
    )

    dc = cfg.to_digest_config()

    assert dc.include_tree == "minimal"
    assert dc.tree_mode == "minimal"
    assert dc.token is not None
    assert dc.token.chunk_budget == 50
    assert dc.token.model == "tiktoken"
    assert dc.output_separators_header == "\n\n"
    assert dc.concurrent_file_reads == 3
    assert dc.redact_output is True
    assert Config(tree="none").to_digest_config().tree_mode is None
    assert Config().to_digest_config().include_tree is True


def test_summary_notebook_and_base64_options(tmp_path: Path) -> None:
    (tmp_path / ".codedigest.toml").write_text(
        """[codedigest]
summary = true
binary_file_policy = "base64"

[codedigest.notebook]
include_outputs = false
output_max_chars = 200
code_fence_language = "julia"
include_non_text_outputs = true
""",
        encoding="utf-8",
    )

    cfg = load_config(tmp_path)
    dc = cfg.to_digest_config()

    assert cfg.summary is True
    assert cfg.binary_file_policy == "base64"
    assert cfg.notebook.enabled is True
    assert cfg.notebook.include_outputs is False
    assert cfg.notebook.output_max_chars == 200
    assert cfg.notebook.code_fence_language == "julia"
    assert cfg.notebook.include_non_text_outputs is True
    assert dc.include_summary is True
    assert dc.binary_file_policy == "base64"
    assert dc.notebook == cfg.notebook


def test_notebook_section_of_wrong_type_keeps_defaults(tmp_path: Path) -> None:
    (tmp_path / ".codedigest.toml").write_text(
        '[codedigest]\nnotebook = "yes"\n', encoding="utf-8"
    )

    assert load_config(tmp_path).notebook == NotebookConfig()
