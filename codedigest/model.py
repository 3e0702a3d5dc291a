from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

NodeType = Literal["file", "dir"]
OutputFormat = Literal["markdown", "text"]
TreeMode = Literal["full", "minimal"]
BinaryPolicy = Literal["skip", "placeholder", "base64"]
# "notebook" bodies are already rendered; "base64" bodies carry encoded binary data.
ContentKind = Literal["text", "notebook", "base64"]

DEFAULT_SEPARATOR = "\n---\n"
DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_SELECTED_TREE_LINES = 100
DEFAULT_CONCURRENT_FILE_READS = 8
DEFAULT_NOTEBOOK_OUTPUT_MAX_CHARS = 10_000
DEFAULT_NOTEBOOK_NON_TEXT_MAX_BYTES = 200_000


@dataclass(frozen=True)
class FileNode:
    """One entry of the scanned project tree (file or directory)."""

    path: Path  # absolute
    rel_path: str  # posix-style, relative to the scan root
    name: str
    type: NodeType = "file"
    is_selected: bool = False
    depth: int = 0
    ext: str = ""  # lowercase, with leading dot
    is_binary: bool = False
    size: int | None = None

    @property
    def is_file(self) -> bool:
        return self.type == "file"


@dataclass(frozen=True)
class IgnoreRule:
    pattern: str  # raw line as written in the ignore file
    base_dir: str  # scope, posix path relative to the matcher root ("" = root)
    negated: bool = False
    anchored: bool = False  # leading '/'
    directory_only: bool = False  # trailing '/'


@dataclass(frozen=True)
class TokenConfig:
    model: str = "chars-approx"
    # <=0 keeps every section in a single chunk.
    chunk_budget: int = 0
    divisor_overrides: dict[str, float] = field(default_factory=dict)
    # <=0 disables the over-limit warning.
    context_limit: int = 0


@dataclass(frozen=True)
class NotebookConfig:
    """How `.ipynb` files are rendered; disabled means the raw JSON is used."""

    enabled: bool = True
    include_code_cells: bool = True
    include_markdown_cells: bool = True
    include_outputs: bool = True
    # <=0 keeps outputs whole.
    output_max_chars: int = DEFAULT_NOTEBOOK_OUTPUT_MAX_CHARS
    code_fence_language: str = "python"
    include_non_text_outputs: bool = False
    non_text_output_max_bytes: int = DEFAULT_NOTEBOOK_NON_TEXT_MAX_BYTES


@dataclass(frozen=True)
class DigestConfig:
    output_format: OutputFormat = "markdown"
    include_tree: bool | Literal["minimal"] = True
    max_selected_tree_lines: int | None = None
    token: TokenConfig | None = None
    # Joined verbatim between chunks (and between sections inside a chunk).
    output_separators_header: str = DEFAULT_SEPARATOR
    # Empty means the formatter's own default heading.
    output_header_template: str = ""
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    concurrent_file_reads: int = DEFAULT_CONCURRENT_FILE_READS
    binary_file_policy: BinaryPolicy = "placeholder"
    # Run the generator's redactor over every assembled chunk as well.
    redact_output: bool = False
    # Summary section (counts, size, tokens, warnings, errors) after the tree.
    include_summary: bool = False
    notebook: NotebookConfig = field(default_factory=NotebookConfig)

    @property
    def tree_mode(self) -> TreeMode | None:
        if not self.include_tree:
            return None
        return "minimal" if self.include_tree == "minimal" else "full"


@dataclass(frozen=True)
class FileContent:
    content: str = ""
    is_binary: bool = False
    size: int = 0
    redacted: bool = False
    too_large: bool = False
    kind: ContentKind = "text"
    # Non-fatal problem met while producing the content (e.g. redactor crash).
    warning: str | None = None


@dataclass(frozen=True)
class FileError:
    path: str
    message: str


@dataclass(frozen=True)
class DigestResult:
    tree: str | None
    content: str
    chunks: tuple[str, ...]
    summary: str | None = None
    warnings: tuple[str, ...] = ()
    errors: tuple[FileError, ...] = ()
    token_estimate: int = 0
    redaction_applied: bool = False
