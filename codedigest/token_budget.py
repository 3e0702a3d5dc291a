from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Part:
    path: Path
    content: str


def partition_sections(
    sections: Sequence[str],
    section_tokens: Sequence[int],
    *,
    budget: int,
    separator: str,
    separator_tokens: int = 0,
) -> list[str]:
    """Group ordered sections into chunks whose running estimate fits ``budget``.

    The running estimate of a chunk is the sum of its section estimates plus one
    separator estimate per join. A section that alone exceeds the budget still
    becomes its own chunk. Sections inside a chunk are joined with ``separator``
    so that joining the chunks again yields the same text as joining every
    section.
    """
    if not sections:
        return []
    if budget <= 0:
        return [separator.join(sections)]

    chunks: list[str] = []
    current: list[str] = []
    running = 0
    for section, tokens in zip(sections, section_tokens, strict=True):
        if current and running + separator_tokens + tokens > budget:
            chunks.append(separator.join(current))
            current = []
            running = 0
        if current:
            running += separator_tokens
        current.append(section)
        running += tokens

    if current:
        chunks.append(separator.join(current))
    return chunks


def parts_for_output(out_path: Path, chunks: Sequence[str]) -> list[Part]:
    """Map chunks to ``<stem>.partN<suffix>`` files next to ``out_path``."""
    if len(chunks) <= 1:
        return [Part(path=out_path, content=chunks[0] if chunks else "")]
    return [
        Part(
            path=out_path.with_name(f"{out_path.stem}.part{idx}{out_path.suffix}"),
            content=chunk,
        )
        for idx, chunk in enumerate(chunks, 1)
    ]
