from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from .errors import ConfigError
from .ignore import IGNORE_FILENAMES
from .model import (
    DEFAULT_CONCURRENT_FILE_READS,
    DEFAULT_MAX_FILE_BYTES,
    DEFAULT_SEPARATOR,
    DigestConfig,
    NotebookConfig,
    TokenConfig,
)
from .security import DEFAULT_PLACEHOLDER

CONFIG_FILENAMES: tuple[str, ...] = (".codedigest.toml", "codedigest.toml")
PYPROJECT_FILENAME = "pyproject.toml"


@dataclass
class Config:
    # Default output path when the CLI does not specify -o/--output; "" = stdout.
    output: str = ""
    output_format: Literal["markdown", "text"] = "markdown"
    # "full" | "minimal" | "none"
    tree: Literal["full", "minimal", "none"] = "full"
    max_selected_tree_lines: int = 100
    separator: str = DEFAULT_SEPARATOR
    header_template: str = ""
    respect_gitignore: bool = True
    ignore_files: list[str] = field(default_factory=lambda: list(IGNORE_FILENAMES))
    exclude: list[str] = field(default_factory=list)
    select: list[str] = field(default_factory=list)
    max_depth: int = 20
    # Token estimation and chunking; <=0 disables each limit.
    token_model: str = "chars-approx"
    chunk_tokens: int = 0
    context_limit: int = 0
    divisor_overrides: dict[str, float] = field(default_factory=dict)
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    # Worker pool size for file reads. <=0 means auto.
    max_workers: int = DEFAULT_CONCURRENT_FILE_READS
    binary_file_policy: Literal["skip", "placeholder", "base64"] = "placeholder"
    summary: bool = False
    notebook: NotebookConfig = field(default_factory=NotebookConfig)
    # Redaction
    redaction_patterns: list[str] = field(default_factory=list)
    redaction_placeholder: str = DEFAULT_PLACEHOLDER
    show_redacted: bool = False
    redact_output: bool = False

    def to_digest_config(self) -> DigestConfig:
        include_tree: bool | Literal["minimal"]
        if self.tree == "none":
            include_tree = False
        elif self.tree == "minimal":
            include_tree = "minimal"
        else:
            include_tree = True
        return DigestConfig(
            output_format=self.output_format,
            include_tree=include_tree,
            max_selected_tree_lines=self.max_selected_tree_lines,
            token=TokenConfig(
                model=self.token_model,
                chunk_budget=self.chunk_tokens,
                divisor_overrides=dict(self.divisor_overrides),
                context_limit=self.context_limit,
            ),
            output_separators_header=self.separator,
            output_header_template=self.header_template,
            max_file_bytes=self.max_file_bytes,
            concurrent_file_reads=self.max_workers,
            binary_file_policy=self.binary_file_policy,
            include_summary=self.summary,
            notebook=self.notebook,
            redact_output=self.redact_output,
        )


def _find_config_path(root: Path) -> Path | None:
    root = root.resolve()
    for name in CONFIG_FILENAMES:
        p = root / name
        if p.exists():
            return p
    pyproject = root / PYPROJECT_FILENAME
    if pyproject.exists():
        return pyproject
    return None


def _extract_section(data: Any, *, from_pyproject: bool) -> dict[str, Any]:
    section: dict[str, Any] = {}
    if not isinstance(data, dict):
        return section

    if not from_pyproject:
        # Preferred for dedicated config files: [codedigest]
        cd = data.get("codedigest")
        if isinstance(cd, dict):
            return cd

    # Supported in all files; required for pyproject.toml.
    tool = data.get("tool")
    if isinstance(tool, dict):
        cd2 = tool.get("codedigest")
        if isinstance(cd2, dict):
            return cd2

    return section


def _coerce_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coerce_choice(value: Any, choices: set[str], default: str) -> str:
    if isinstance(value, str):
        value = value.strip().lower()
        if value in choices:
            return value
    return default


def _coerce_str_list(value: Any, default: list[str]) -> list[str]:
    if isinstance(value, list):
        return [str(x) for x in value]
    return default


def _coerce_notebook(value: Any, default: NotebookConfig) -> NotebookConfig:
    if not isinstance(value, dict):
        return default
    fence_lang = value.get("code_fence_language")
    if not isinstance(fence_lang, str) or not fence_lang.strip():
        fence_lang = default.code_fence_language
    return NotebookConfig(
        enabled=bool(value.get("enabled", default.enabled)),
        include_code_cells=bool(value.get("include_code_cells", default.include_code_cells)),
        include_markdown_cells=bool(
            value.get("include_markdown_cells", default.include_markdown_cells)
        ),
        include_outputs=bool(value.get("include_outputs", default.include_outputs)),
        output_max_chars=_coerce_int(value.get("output_max_chars"), default.output_max_chars),
        code_fence_language=fence_lang.strip(),
        include_non_text_outputs=bool(
            value.get("include_non_text_outputs", default.include_non_text_outputs)
        ),
        non_text_output_max_bytes=_coerce_int(
            value.get("non_text_output_max_bytes"), default.non_text_output_max_bytes
        ),
    )


def load_config(root: Path) -> Config:
    cfg_path = _find_config_path(root)
    if cfg_path is None:
        return Config()

    try:
        data = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {cfg_path.as_posix()}: {e}") from e
    section = _extract_section(data, from_pyproject=cfg_path.name == PYPROJECT_FILENAME)
    cfg = Config()

    out = section.get("output", cfg.output)
    if isinstance(out, str):
        cfg.output = out.strip()
    cfg.output_format = _coerce_choice(  # type: ignore[assignment]
        section.get("output_format"), {"markdown", "text"}, cfg.output_format
    )

    tree = section.get("tree", cfg.tree)
    if isinstance(tree, bool):
        cfg.tree = "full" if tree else "none"
    else:
        cfg.tree = _coerce_choice(  # type: ignore[assignment]
            tree, {"full", "minimal", "none"}, cfg.tree
        )
    cfg.max_selected_tree_lines = _coerce_int(
        section.get("max_selected_tree_lines"), cfg.max_selected_tree_lines
    )

    sep = section.get("separator", cfg.separator)
    if isinstance(sep, str):
        cfg.separator = sep
    header = section.get("header_template", cfg.header_template)
    if isinstance(header, str):
        cfg.header_template = header

    cfg.respect_gitignore = bool(section.get("respect_gitignore", cfg.respect_gitignore))
    cfg.ignore_files = _coerce_str_list(section.get("ignore_files"), cfg.ignore_files)
    cfg.exclude = _coerce_str_list(section.get("exclude"), cfg.exclude)
    cfg.select = _coerce_str_list(section.get("select"), cfg.select)
    cfg.max_depth = _coerce_int(section.get("max_depth"), cfg.max_depth)

    model = section.get("token_model", cfg.token_model)
    if isinstance(model, str) and model.strip():
        cfg.token_model = model.strip()
    cfg.chunk_tokens = _coerce_int(section.get("chunk_tokens"), cfg.chunk_tokens)
    cfg.context_limit = _coerce_int(section.get("context_limit"), cfg.context_limit)
    divisors = section.get("divisor_overrides")
    if isinstance(divisors, dict):
        cfg.divisor_overrides = {
            str(k): float(v)
            for k, v in divisors.items()
            if isinstance(v, (int, float)) and not isinstance(v, bool)
        }

    cfg.max_file_bytes = _coerce_int(section.get("max_file_bytes"), cfg.max_file_bytes)
    cfg.max_workers = _coerce_int(section.get("max_workers"), cfg.max_workers)
    cfg.binary_file_policy = _coerce_choice(  # type: ignore[assignment]
        section.get("binary_file_policy"),
        {"skip", "placeholder", "base64"},
        cfg.binary_file_policy,
    )
    cfg.summary = bool(section.get("summary", cfg.summary))
    cfg.notebook = _coerce_notebook(section.get("notebook"), cfg.notebook)

    cfg.redaction_patterns = _coerce_str_list(
        section.get("redaction_patterns"), cfg.redaction_patterns
    )
    placeholder = section.get("redaction_placeholder", cfg.redaction_placeholder)
    if isinstance(placeholder, str) and placeholder:
        cfg.redaction_placeholder = placeholder
    cfg.show_redacted = bool(section.get("show_redacted", cfg.show_redacted))
    cfg.redact_output = bool(section.get("redact_output", cfg.redact_output))

    return cfg
