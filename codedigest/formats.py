from __future__ import annotations

from collections.abc import Sequence

from .content import human_file_size
from .fences import fence, infer_language
from .model import ContentKind, DigestConfig, FileNode, OutputFormat


class OutputFormatter:
    """Section templates plus the format-independent chunk join."""

    name: OutputFormat = "text"
    default_header_template = "==== <relPath> (<size>) ===="

    def build_header(self, node: FileNode, config: DigestConfig) -> str:
        template = config.output_header_template or self.default_header_template
        size = human_file_size(node.size) if node.size is not None else ""
        header = (
            template.replace("<relPath>", node.rel_path)
            .replace("<name>", node.name)
            .replace("<size>", size)
        )
        return header if header.endswith("\n") else header + "\n"

    def build_body(self, node: FileNode, content: str, kind: ContentKind = "text") -> str:
        return content

    def build_section(
        self,
        node: FileNode,
        content: str,
        config: DigestConfig,
        kind: ContentKind = "text",
    ) -> str:
        return self.build_header(node, config) + self.build_body(node, content, kind) + "\n"

    def build_placeholder_section(
        self, node: FileNode, placeholder: str, config: DigestConfig
    ) -> str:
        return self.build_header(node, config) + placeholder + "\n"

    def build_tree_section(self, tree: str) -> str:
        return f"Directory Tree:\n{tree}\n"

    def finalize(self, chunks: Sequence[str], config: DigestConfig) -> str:
        return config.output_separators_header.join(chunks)


class TextFormatter(OutputFormatter):
    name: OutputFormat = "text"


class MarkdownFormatter(OutputFormatter):
    name: OutputFormat = "markdown"
    default_header_template = "## <relPath>"

    def build_body(self, node: FileNode, content: str, kind: ContentKind = "text") -> str:
        if kind == "notebook" or node.ext == ".md":
            return content
        if kind == "base64":
            return "\n" + fence(content, "base64")
        return "\n" + fence(content, infer_language(node.ext))

    def build_tree_section(self, tree: str) -> str:
        return f"## Directory Tree\n\n{fence(tree, 'text')}\n"


def get_formatter(kind: str | None) -> OutputFormatter:
    if kind == "text":
        return TextFormatter()
    return MarkdownFormatter()
