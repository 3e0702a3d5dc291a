from __future__ import annotations

import os
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any

from .content import ContentProcessor, human_file_size
from .diagnostics import Diagnostics, get_logger
from .errors import DigestCancelledError, MissingRootError
from .formats import OutputFormatter, get_formatter
from .model import DigestConfig, DigestResult, FileError, FileNode
from .security import Redactor
from .summary import build_summary
from .token_budget import partition_sections
from .tokens import TokenAnalyzer, warn_if_exceeds_limit
from .tree import TRUNCATION_MARKER, TreeBuilder

BINARY_SKIPPED_PLACEHOLDER = "[binary file skipped]"


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and ``generate``."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise DigestCancelledError()


@dataclass(frozen=True)
class _FileOutcome:
    section: str
    error: FileError | None = None
    warnings: tuple[str, ...] = ()
    redacted: bool = False
    size: int = 0


def resolve_worker_count(max_workers: int, item_count: int) -> int:
    if item_count <= 1:
        return 1
    if max_workers > 0:
        return min(max_workers, item_count)
    cpu = os.cpu_count() or 1
    return max(2, min(32, cpu * 4, item_count))


class DigestGenerator:
    """Turns a file selection into a tree plus token-budgeted content chunks."""

    def __init__(
        self,
        content_processor: Any | None = None,
        token_analyzer: TokenAnalyzer | None = None,
        *,
        redactor: Redactor | None = None,
        tree_builder: TreeBuilder | None = None,
        logger: Any | None = None,
    ) -> None:
        # Without an injected processor one is built per call from the config.
        self.content_processor = content_processor
        self.token_analyzer = token_analyzer or TokenAnalyzer()
        self.redactor = redactor
        self.tree_builder = tree_builder or TreeBuilder()
        self._logger = logger if logger is not None else get_logger(__name__)

    def _processor_for(self, config: DigestConfig) -> Any:
        if self.content_processor is not None:
            return self.content_processor
        return ContentProcessor(
            self.redactor,
            max_file_bytes=config.max_file_bytes,
            binary_policy=config.binary_file_policy,
            notebook=config.notebook,
            output_format=config.output_format,
        )

    def _process_file(
        self,
        node: FileNode,
        processor: Any,
        formatter: OutputFormatter,
        config: DigestConfig,
        token: CancellationToken,
    ) -> _FileOutcome:
        token.raise_if_cancelled()
        try:
            fc = processor.get_file_content(node.path)
        except DigestCancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            message = str(e) or e.__class__.__name__
            return _FileOutcome(
                section=formatter.build_placeholder_section(
                    node, f"[unreadable file: {message}]", config
                ),
                error=FileError(path=node.rel_path, message=message),
                warnings=(f"Could not read {node.rel_path}: {message}",),
            )

        if node.size is None and fc.size:
            node = replace(node, size=fc.size)
        warnings = (fc.warning,) if fc.warning else ()

        if fc.is_binary and fc.kind != "base64" and not fc.too_large:
            placeholder = (
                BINARY_SKIPPED_PLACEHOLDER
                if config.binary_file_policy == "skip"
                else f"[binary file: {human_file_size(fc.size)}]"
            )
            section = formatter.build_placeholder_section(node, placeholder, config)
        elif fc.too_large:
            section = formatter.build_placeholder_section(
                node, f"[file too large: {human_file_size(fc.size)}]", config
            )
            warnings = (*warnings, f"Skipped oversized file {node.rel_path} ({fc.size} bytes)")
        else:
            section = formatter.build_section(node, fc.content, config, fc.kind)
        return _FileOutcome(
            section=section, warnings=warnings, redacted=fc.redacted, size=fc.size
        )

    def _process_all(
        self,
        selected: Sequence[FileNode],
        processor: Any,
        formatter: OutputFormatter,
        config: DigestConfig,
        token: CancellationToken,
    ) -> list[_FileOutcome]:
        worker_count = resolve_worker_count(config.concurrent_file_reads, len(selected))
        if worker_count == 1:
            return [
                self._process_file(node, processor, formatter, config, token)
                for node in selected
            ]
        with ThreadPoolExecutor(max_workers=worker_count) as pool:
            futures = [
                pool.submit(self._process_file, node, processor, formatter, config, token)
                for node in selected
            ]
            try:
                # Collected in submission order, not completion order.
                return [f.result() for f in futures]
            except BaseException:
                # Covers KeyboardInterrupt: queued reads are dropped and running
                # ones stop at their next token check.
                token.cancel()
                pool.shutdown(wait=False, cancel_futures=True)
                raise

    def _redact_chunks(
        self, redactor: Redactor, chunks: list[str], diagnostics: Diagnostics
    ) -> tuple[list[str], bool]:
        out: list[str] = []
        applied = False
        for idx, chunk in enumerate(chunks):
            try:
                result = redactor.redact(chunk)
            except Exception as e:  # noqa: BLE001
                diagnostics.warn(
                    "redaction_failed", f"Redaction failed for chunk {idx + 1}: {e}"
                )
                out.append(chunk)
                continue
            applied = applied or result.applied
            out.append(result.content if result.applied else chunk)
        return out, applied

    def _ensure_tree(
        self,
        chunks: list[str],
        tree: str,
        tree_section: str,
        separator: str,
        diagnostics: Diagnostics,
    ) -> list[str]:
        if chunks and tree in chunks[0]:
            return chunks
        diagnostics.warn(
            "tree_reinserted", "Directory tree was removed by redaction and re-inserted"
        )
        if not chunks:
            return [tree_section]
        return [tree_section + separator + chunks[0], *chunks[1:]]

    def generate(
        self,
        files: Sequence[FileNode] | None,
        config: DigestConfig | None = None,
        extra_sections: Sequence[str] = (),
        format_kind: str | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> DigestResult:
        if files is None:
            raise MissingRootError("No file selection was supplied")
        config = config or DigestConfig()
        token = cancel_token or CancellationToken()
        token.raise_if_cancelled()

        formatter = get_formatter(format_kind or config.output_format)
        diagnostics = Diagnostics(self._logger)
        separator = config.output_separators_header

        tree: str | None = None
        mode = config.tree_mode
        if mode is not None:
            tree = self.tree_builder.build(files, mode, config.max_selected_tree_lines)
            if mode == "minimal" and tree.endswith(TRUNCATION_MARKER):
                diagnostics.warn("tree_truncated", "Selected-files tree was truncated")

        selected = [n for n in files if n.is_file and n.is_selected]
        processor = self._processor_for(config)
        outcomes = self._process_all(selected, processor, formatter, config, token)
        token.raise_if_cancelled()

        errors: list[FileError] = []
        total_size = 0
        for outcome in outcomes:
            total_size += outcome.size
            if outcome.error is not None:
                errors.append(outcome.error)
            for w in outcome.warnings:
                diagnostics.warn("file_warning", w)

        sections: list[str] = []
        tree_section = formatter.build_tree_section(tree) if tree else ""
        if tree_section:
            sections.append(tree_section)
        sections.extend(o.section for o in outcomes)
        sections.extend(extra_sections)

        token_cfg = config.token
        model = token_cfg.model if token_cfg else None
        overrides = token_cfg.divisor_overrides if token_cfg else None
        estimate = self.token_analyzer.estimate
        section_tokens = [estimate(s, model, overrides) for s in sections]

        content_tokens = sum(section_tokens)
        limit_warning = warn_if_exceeds_limit(
            content_tokens, token_cfg.context_limit if token_cfg else 0
        )
        if limit_warning:
            diagnostics.warn("token_limit_exceeded", limit_warning)

        summary: str | None = None
        if config.include_summary:
            summary = build_summary(
                file_count=len(selected),
                total_size=total_size,
                token_estimate=content_tokens,
                warnings=diagnostics.warnings,
                errors=errors,
                output_format=formatter.name,
            )
            # Right after the tree so the tree stays at the head of chunks[0].
            at = 1 if tree_section else 0
            sections.insert(at, summary)
            section_tokens.insert(at, estimate(summary, model, overrides))

        chunks = partition_sections(
            sections,
            section_tokens,
            budget=token_cfg.chunk_budget if token_cfg else 0,
            separator=separator,
            separator_tokens=estimate(separator, model, overrides),
        )

        redaction_applied = any(o.redacted for o in outcomes)
        if config.redact_output and self.redactor is not None:
            chunks, applied = self._redact_chunks(self.redactor, chunks, diagnostics)
            redaction_applied = redaction_applied or applied
        if tree:
            chunks = self._ensure_tree(chunks, tree, tree_section, separator, diagnostics)
        token.raise_if_cancelled()

        total_tokens = sum(section_tokens)
        return DigestResult(
            tree=tree,
            content=formatter.finalize(chunks, config),
            chunks=tuple(chunks),
            summary=summary,
            warnings=diagnostics.warnings,
            errors=tuple(errors),
            token_estimate=total_tokens,
            redaction_applied=redaction_applied,
        )
