from __future__ import annotations

from pathlib import Path

from codedigest.token_budget import partition_sections, parts_for_output


def test_no_budget_keeps_single_chunk() -> None:
    chunks = partition_sections(["a", "b", "c"], [1, 1, 1], budget=0, separator="|")

    assert chunks == ["a|b|c"]


def test_sections_are_grouped_under_budget() -> None:
    sections = ["aaaa", "bbbb", "cccc"]

    chunks = partition_sections(sections, [4, 4, 4], budget=8, separator="|")

    assert chunks == ["aaaa|bbbb", "cccc"]


def test_separator_cost_counts_toward_budget() -> None:
    sections = ["aaaa", "bbbb", "cccc"]

    chunks = partition_sections(
        sections, [4, 4, 4], budget=8, separator="|", separator_tokens=1
    )

    assert chunks == sections


def test_oversized_section_becomes_its_own_chunk() -> None:
    chunks = partition_sections(["a", "huge", "c"], [2, 20, 2], budget=5, separator="|")

    assert chunks == ["a", "huge", "c"]


def test_joining_chunks_reproduces_joined_sections() -> None:
    sections = [f"section-{i}" for i in range(7)]
    sep = "\n---\n"

    chunks = partition_sections(sections, [3, 1, 4, 1, 5, 9, 2], budget=6, separator=sep)

    assert len(chunks) > 1
    assert sep.join(chunks) == sep.join(sections)


def test_empty_sections_yield_no_chunks() -> None:
    assert partition_sections([], [], budget=10, separator="|") == []


def test_parts_for_output_names(tmp_path: Path) -> None:
    out = tmp_path / "digest.md"

    single = parts_for_output(out, ["x"])
    multi = parts_for_output(out, ["x", "y"])

    assert [p.path for p in single] == [out]
    assert [p.path.name for p in multi] == ["digest.part1.md", "digest.part2.md"]
    assert [p.content for p in multi] == ["x", "y"]
