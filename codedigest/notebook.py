from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

from .fences import choose_backtick_fence
from .model import NotebookConfig

NON_TEXT_OMITTED = "[non-text output omitted]"
NON_TEXT_TOO_LARGE = "[non-text output too large, omitted]"
OUTPUT_TRUNCATED = "\n...[truncated]"


@dataclass(frozen=True)
class NotebookOutput:
    text: str
    # MIME type for base64 image payloads, "" for plain text.
    mime: str = ""


@dataclass(frozen=True)
class NotebookCell:
    type: Literal["code", "markdown"]
    source: str
    outputs: list[NotebookOutput] = field(default_factory=list)


def _join(value: Any) -> str:
    if isinstance(value, list):
        return "".join(str(v) for v in value)
    if value is None:
        return ""
    return str(value)


def _non_text_output(data: dict[str, Any], max_bytes: int) -> NotebookOutput:
    for key, value in data.items():
        if key.startswith("image/"):
            payload = _join(value)
            if not payload:
                continue
            if len(payload) > max_bytes:
                return NotebookOutput(NON_TEXT_TOO_LARGE)
            return NotebookOutput(payload, mime=key)
        if key == "text/html":
            html = _join(value)
            if len(html.encode("utf-8")) > max_bytes:
                return NotebookOutput(NON_TEXT_TOO_LARGE)
            return NotebookOutput(f"[html]{html}")
    return NotebookOutput(NON_TEXT_OMITTED)


def _cell_outputs(raw: Any, config: NotebookConfig) -> list[NotebookOutput]:
    outputs: list[NotebookOutput] = []
    if not isinstance(raw, list):
        return outputs
    for out in raw:
        if not isinstance(out, dict):
            continue
        kind = out.get("output_type")
        data = out.get("data")
        if kind == "stream" and out.get("text"):
            outputs.append(NotebookOutput(_join(out["text"])))
        elif kind == "execute_result" and isinstance(data, dict) and data.get("text/plain"):
            outputs.append(NotebookOutput(_join(data["text/plain"])))
        elif kind == "error" and out.get("evalue"):
            outputs.append(NotebookOutput(f"Error: {out['evalue']}"))
        elif isinstance(data, dict) and data:
            if config.include_non_text_outputs:
                outputs.append(_non_text_output(data, config.non_text_output_max_bytes))
            else:
                outputs.append(NotebookOutput(NON_TEXT_OMITTED))
    return outputs


def parse_notebook(text: str, config: NotebookConfig | None = None) -> list[NotebookCell]:
    """Parse ``.ipynb`` JSON into code and markdown cells.

    Raises ``ValueError`` when the text is not a notebook document.
    """
    config = config or NotebookConfig()
    nb = json.loads(text)
    if not isinstance(nb, dict) or not isinstance(nb.get("cells", []), list):
        raise ValueError("not a Jupyter notebook")

    cells: list[NotebookCell] = []
    for cell in nb.get("cells", []):
        if not isinstance(cell, dict):
            continue
        source = _join(cell.get("source"))
        if cell.get("cell_type") == "code":
            cells.append(
                NotebookCell("code", source, _cell_outputs(cell.get("outputs"), config))
            )
        elif cell.get("cell_type") == "markdown":
            cells.append(NotebookCell("markdown", source))
    return cells


def _cap(text: str, limit: int) -> str:
    if limit > 0 and len(text) > limit:
        return text[:limit] + OUTPUT_TRUNCATED
    return text


def render_notebook(
    cells: list[NotebookCell],
    config: NotebookConfig | None = None,
    *,
    name: str = "[notebook]",
    output_format: str = "markdown",
) -> str:
    config = config or NotebookConfig()
    markdown = output_format == "markdown"
    parts: list[str] = [f"# Jupyter Notebook: {name}\n"]

    for num, cell in enumerate(cells, start=1):
        if cell.type == "markdown":
            if not config.include_markdown_cells:
                continue
            if markdown:
                parts.append(cell.source.strip() + "\n")
            else:
                parts.append("---\nMarkdown Cell:\n" + cell.source.strip() + "\n")
            continue

        if not config.include_code_cells:
            continue
        source = cell.source.strip()
        if markdown:
            marker = choose_backtick_fence(source)
            parts.append(f"\n\n{marker}{config.code_fence_language}\n{source}\n{marker}")
        else:
            parts.append(f"\n---\nCode Cell:\n{source}\n")

        if not config.include_outputs:
            continue
        for output in cell.outputs:
            if output.mime:
                if markdown:
                    marker = choose_backtick_fence(output.text)
                    parts.append(
                        f"\n\n{marker}base64\n# Type: {output.mime}\n{output.text}\n{marker}"
                    )
                else:
                    parts.append(f"\n---\nBase64 Output ({output.mime}):\n{output.text}\n")
                continue
            text = _cap(output.text, config.output_max_chars)
            if markdown:
                commented = text.replace("\n", "\n# ")
                parts.append(f"\n# Outputs (Cell {num}):\n# {commented}\n")
            else:
                parts.append(f"\nOutputs (Cell {num}):\n{text}\n")

    return "".join(parts)
