from __future__ import annotations

from collections.abc import Sequence

from .content import human_file_size
from .model import FileError
from .tokens import format_estimate


def _errors_block(errors: Sequence[FileError], output_format: str) -> str:
    items = "\n".join(f"- {e.path}: {e.message}" for e in errors)
    if output_format == "markdown":
        return (
            f"\n<details><summary>Errors ({len(errors)}) - click to expand</summary>\n\n"
            f"{items}\n\n</details>\n"
        )
    return f"\nErrors ({len(errors)}):\n{items}\n"


def build_summary(
    *,
    file_count: int,
    total_size: int,
    token_estimate: int,
    warnings: Sequence[str] = (),
    errors: Sequence[FileError] = (),
    output_format: str = "markdown",
) -> str:
    """Render the digest summary section.

    Lists the file count, the summed size of the selected files and the token
    estimate of the other sections, then any warnings and read errors.
    """
    markdown = output_format == "markdown"
    lines = [
        "# Digest Summary" if markdown else "Digest Summary:",
        "",
        f"Files: {file_count}",
        f"Total Size: {human_file_size(total_size)}",
        f"Tokens: {format_estimate(token_estimate)}",
    ]
    if warnings:
        lines += ["", "**Warnings:**" if markdown else "Warnings:"]
        lines += [f"- {w}" for w in warnings]
    out = "\n".join(lines) + "\n"
    if errors:
        out += _errors_block(errors, output_format)
    return out
