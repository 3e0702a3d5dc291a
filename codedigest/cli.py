from __future__ import annotations

import argparse
import importlib.metadata as importlib_metadata
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

from .config import Config, load_config
from .diagnostics import setup_logging
from .discover import build_matcher, discover_nodes
from .errors import ConfigError, DigestCancelledError
from .generator import CancellationToken, DigestGenerator
from .model import DigestResult
from .security import build_redactor
from .token_budget import parts_for_output
from .tokens import TokenAnalyzer, format_estimate

EXIT_CANCELLED = 130


def _codedigest_version() -> str:
    try:
        return importlib_metadata.version("codedigest")
    except importlib_metadata.PackageNotFoundError:
        return "0+unknown"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="codedigest",
        description="Build a tree + file-content digest of a source directory.",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"codedigest {_codedigest_version()}",
    )
    p.add_argument("root", type=Path, help="Root directory to scan")
    p.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output path (default: config 'output', else stdout)",
    )
    p.add_argument(
        "--format",
        choices=["markdown", "text"],
        default=None,
        help="Output format (default: config 'output_format' or markdown)",
    )
    p.add_argument(
        "--tree",
        choices=["full", "minimal", "none"],
        default=None,
        help="Directory tree mode (default: config 'tree' or full)",
    )
    p.add_argument(
        "--max-tree-lines",
        type=int,
        default=None,
        help="Line cap for the minimal tree",
    )
    p.add_argument(
        "--chunk-tokens",
        type=int,
        default=None,
        help="Split the digest into chunks of about N tokens (0 = single chunk)",
    )
    p.add_argument(
        "--token-model",
        default=None,
        help="Token model used for estimates (e.g. chars-approx, gpt-4o, tiktoken)",
    )
    p.add_argument(
        "--select",
        action="append",
        default=None,
        help="Glob of files to include in the digest (repeatable; default: all)",
    )
    p.add_argument(
        "--exclude",
        action="append",
        default=None,
        help="Extra ignore pattern (repeatable)",
    )
    p.add_argument(
        "--no-gitignore",
        action="store_true",
        help="Do not read .gitignore/.gitingestignore files",
    )
    p.add_argument(
        "--redact-output",
        action="store_true",
        help="Also run redaction over every assembled chunk",
    )
    p.add_argument(
        "--show-redacted",
        action="store_true",
        help="Disable secret redaction",
    )
    p.add_argument(
        "--summary",
        action="store_true",
        help="Add a summary section (file count, size, tokens, warnings, errors)",
    )
    p.add_argument(
        "--binary",
        choices=["skip", "placeholder", "base64"],
        default=None,
        help="Binary file policy (default: config 'binary_file_policy' or placeholder)",
    )
    p.add_argument(
        "--no-notebooks",
        action="store_true",
        help="Emit .ipynb files as raw JSON instead of rendered cells",
    )
    p.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Thread pool size for file reads (<=0 = auto)",
    )
    p.add_argument(
        "--print-files",
        action="store_true",
        help="Debug: print selected files after filtering",
    )
    p.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write structured logs to this file instead of stderr",
    )
    return p


def _apply_overrides(cfg: Config, args: argparse.Namespace) -> Config:
    if args.format is not None:
        cfg.output_format = args.format
    if args.tree is not None:
        cfg.tree = args.tree
    if args.max_tree_lines is not None:
        cfg.max_selected_tree_lines = args.max_tree_lines
    if args.chunk_tokens is not None:
        cfg.chunk_tokens = args.chunk_tokens
    if args.token_model:
        cfg.token_model = args.token_model
    if args.select:
        cfg.select = list(args.select)
    if args.exclude:
        cfg.exclude = [*cfg.exclude, *args.exclude]
    if args.no_gitignore:
        cfg.respect_gitignore = False
    if args.redact_output:
        cfg.redact_output = True
    if args.show_redacted:
        cfg.show_redacted = True
    if args.max_workers is not None:
        cfg.max_workers = args.max_workers
    if args.summary:
        cfg.summary = True
    if args.binary is not None:
        cfg.binary_file_policy = args.binary
    if args.no_notebooks:
        cfg.notebook = replace(cfg.notebook, enabled=False)
    return cfg


def _resolve_output_path(root: Path, cfg: Config, cli_output: Path | None) -> Path | None:
    if cli_output is not None:
        return cli_output
    if cfg.output:
        out = Path(cfg.output)
        return out if out.is_absolute() else root / out
    return None


def _write_result(result: DigestResult, out_path: Path | None) -> list[Path]:
    if out_path is None:
        sys.stdout.write(result.content)
        if result.content and not result.content.endswith("\n"):
            sys.stdout.write("\n")
        return []

    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(result.content, encoding="utf-8")
    written = [out_path]
    if len(result.chunks) > 1:
        for part in parts_for_output(out_path, result.chunks):
            part.path.write_text(part.content, encoding="utf-8")
            written.append(part.path)
    return written


def _print_summary(
    *,
    result: DigestResult,
    total_files: int,
    written: Sequence[Path],
) -> None:
    print("", file=sys.stderr)
    print("Digest Summary:", file=sys.stderr)
    print("───────────────", file=sys.stderr)
    print(f"{'Total Files':>12}: {total_files:,} files", file=sys.stderr)
    print(
        f"{'Total Tokens':>12}: {format_estimate(result.token_estimate)} tokens",
        file=sys.stderr,
    )
    print(f"{'Total Chars':>12}: {len(result.content):,} chars", file=sys.stderr)
    print(f"{'Chunks':>12}: {len(result.chunks)}", file=sys.stderr)
    if written:
        print(f"{'Output':>12}: {written[0].as_posix()}", file=sys.stderr)
        for path in written[1:]:
            print(f"{'':>12}  {path.as_posix()}", file=sys.stderr)
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    for err in result.errors:
        print(f"Error: {err.path}: {err.message}", file=sys.stderr)


def run(args: argparse.Namespace, cancel_token: CancellationToken | None = None) -> int:
    root: Path = args.root
    cfg = _apply_overrides(load_config(root), args)
    out_path = _resolve_output_path(root, cfg, args.output)

    matcher = build_matcher(
        root.resolve(),
        exclude=cfg.exclude,
        respect_gitignore=cfg.respect_gitignore,
        ignore_files=cfg.ignore_files,
    )
    if out_path is not None:
        # Never digest a previous run's output.
        try:
            rel_out = out_path.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            rel_out = ""
        if rel_out:
            matcher.add_ignore_file(root.resolve(), [f"/{rel_out}"])

    discovery = discover_nodes(
        root,
        matcher,
        respect_gitignore=cfg.respect_gitignore,
        select=cfg.select,
        max_depth=cfg.max_depth,
        ignore_files=cfg.ignore_files,
    )
    if args.print_files:
        print("Selected files:", file=sys.stderr)
        for node in discovery.selected:
            print(f"  - {node.rel_path}", file=sys.stderr)

    redactor = build_redactor(
        cfg.redaction_patterns,
        placeholder=cfg.redaction_placeholder,
        show_redacted=cfg.show_redacted,
    )
    generator = DigestGenerator(
        token_analyzer=TokenAnalyzer(cfg.divisor_overrides),
        redactor=redactor,
    )
    result = generator.generate(
        discovery.nodes, cfg.to_digest_config(), cancel_token=cancel_token
    )
    written = _write_result(result, out_path)
    _print_summary(
        result=result, total_files=len(discovery.selected), written=written
    )
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.root.exists() or not args.root.is_dir():
        parser.error(f"root is not a directory: {args.root}")
    setup_logging(args.log_file, level="WARNING")

    token = CancellationToken()
    try:
        code = run(args, token)
    except ConfigError as e:
        parser.error(str(e))
    except (KeyboardInterrupt, DigestCancelledError):
        token.cancel()
        print("Cancelled.", file=sys.stderr)
        raise SystemExit(EXIT_CANCELLED) from None
    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()
