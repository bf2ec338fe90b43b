"""Rendering Stage - Serialize resolved documents to an output format.

Two targets are supported:
- hypertext: an HTML page (jinja2 template, autoescaped) with a table of
  contents built from the headings
- plaintext: canonical structured text that parses back to the same blocks

Each renderer maps block kinds to transform callables. Callers can replace
any of them per instance. Rendering is total: links in any state, including
unresolved ones, render without raising.
"""

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape
from pydantic import BaseModel, Field

from docset.config import settings
from docset.models import (
    Block,
    BlockKind,
    CodeSample,
    CodeSpan,
    DefinitionList,
    Document,
    Emphasis,
    EmphasisStyle,
    Heading,
    Inline,
    ItemList,
    Link,
    OutputFormat,
    Paragraph,
    ReferenceStatus,
    SymbolTable,
    Table,
    TableCell,
    Text,
)
from docset.pipeline.inline import KNOWN_CODES
from docset.pipeline.stage_parse import is_block_end

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


class RenderOptions(BaseModel):
    """Target-format configuration for one run."""

    format: OutputFormat = Field(default=OutputFormat.HYPERTEXT)
    include_source_links: bool = Field(default=False)
    source_link_base: Optional[str] = Field(
        None, description="URL prefix for source links; relative path if unset"
    )

    @classmethod
    def from_settings(cls) -> "RenderOptions":
        return cls(
            format=OutputFormat(settings.output_format),
            include_source_links=settings.include_source_links,
            source_link_base=settings.source_link_base,
        )

    def source_link(self, document: Document) -> Optional[str]:
        if not self.include_source_links:
            return None
        if self.source_link_base:
            return self.source_link_base.rstrip("/") + "/" + document.relative_path
        return document.relative_path


@dataclass
class RenderContext:
    """Everything a transform may look at besides the block itself."""

    document: Document
    symbols: SymbolTable
    options: RenderOptions

    def output_path_for(self, document_id: str) -> Optional[str]:
        stem = self.symbols.stem_for(document_id)
        if stem is None:
            return None
        return stem + self.options.format.extension

    def href_for(self, link: Link) -> Optional[str]:
        """Relative href from this document's output file to the link target."""
        if link.status == ReferenceStatus.EXTERNAL:
            return link.target
        if link.status != ReferenceStatus.RESOLVED:
            return None

        fragment = f"#{link.fragment}" if link.fragment else ""
        if link.resolved_document == self.document.id:
            return fragment or "#"

        target = self.output_path_for(link.resolved_document)
        if target is None:
            return None
        here = posixpath.dirname(self.document.stem_path) or "."
        return posixpath.relpath(target, here) + fragment


BlockTransform = Callable[[Block, RenderContext], str]


class BaseRenderer:
    """Dispatches blocks to per-kind transforms.

    Subclasses provide ``render_<kind>`` methods for every BlockKind and a
    ``render`` method that assembles the page.
    """

    format: OutputFormat

    def __init__(self, transforms: Optional[dict[str, BlockTransform]] = None):
        """Initialize the renderer.

        Args:
            transforms: Overrides keyed by block kind ("heading", "code", ...).
        """
        self.transforms: dict[str, BlockTransform] = {
            kind.value: getattr(self, f"render_{kind.value}") for kind in BlockKind
        }
        for kind, transform in (transforms or {}).items():
            if kind not in self.transforms:
                raise ValueError(f"Unknown block kind for transform: {kind!r}")
            self.transforms[kind] = transform

    def render_block(self, block: Block, context: RenderContext) -> str:
        return self.transforms[block.kind](block, context)

    def render(self, document: Document, symbols: SymbolTable, options: RenderOptions) -> str:
        raise NotImplementedError


class HypertextRenderer(BaseRenderer):
    """Renders documents as standalone HTML pages."""

    format = OutputFormat.HYPERTEXT
    template_name = "page.html.j2"

    def __init__(self, transforms: Optional[dict[str, BlockTransform]] = None):
        super().__init__(transforms)
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml", "j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, document: Document, symbols: SymbolTable, options: RenderOptions) -> str:
        context = RenderContext(document=document, symbols=symbols, options=options)
        body = Markup("\n").join(
            Markup(self.render_block(block, context)) for block in document.blocks
        )
        template = self.env.get_template(self.template_name)
        return template.render(
            document_id=document.id,
            title=document.display_title,
            subtitle=document.subtitle,
            toc=document.toc(),
            body=body,
            source_link=options.source_link(document),
        ) + "\n"

    # ---- inline ----

    def render_inlines(self, spans: list[Inline], context: RenderContext) -> Markup:
        return Markup("").join(self.render_inline(span, context) for span in spans)

    def render_inline(self, span: Inline, context: RenderContext) -> Markup:
        if isinstance(span, Text):
            return escape(span.text)
        if isinstance(span, CodeSpan):
            return Markup("<code>{}</code>").format(span.text)
        if isinstance(span, Emphasis):
            tag = {
                EmphasisStyle.BOLD: "strong",
                EmphasisStyle.ITALIC: "em",
                EmphasisStyle.UNDERLINE: "u",
            }[span.style]
            inner = self.render_inlines(span.children, context)
            return Markup(f"<{tag}>") + inner + Markup(f"</{tag}>")
        return self.render_link(span, context)

    def render_link(self, link: Link, context: RenderContext) -> Markup:
        inner = self.render_inlines(link.children, context)
        href = context.href_for(link)
        if href is None:
            return Markup(
                '<span class="unresolved-link" data-target="{}" '
                'title="Unresolved reference: {}">{}<sup class="broken-marker">[broken]</sup></span>'
            ).format(link.target, link.target, inner)
        css = "external" if link.status == ReferenceStatus.EXTERNAL else "xref"
        return Markup('<a class="{}" href="{}">{}</a>').format(css, href, inner)

    # ---- blocks ----

    def render_heading(self, block: Heading, context: RenderContext) -> str:
        level = min(block.level + 1, 6)  # h1 is the page title
        return Markup('<h{} id="{}">{}</h{}>').format(
            level, block.anchor, self.render_inlines(block.inlines, context), level
        )

    def render_paragraph(self, block: Paragraph, context: RenderContext) -> str:
        return Markup("<p>{}</p>").format(self.render_inlines(block.inlines, context))

    def render_code(self, block: CodeSample, context: RenderContext) -> str:
        if block.language:
            return Markup('<pre class="code" data-lang="{}"><code>{}</code></pre>').format(
                block.language, block.literal
            )
        return Markup('<pre class="code"><code>{}</code></pre>').format(block.literal)

    def render_definition_list(self, block: DefinitionList, context: RenderContext) -> str:
        parts = [Markup("<dl>")]
        for entry in block.entries:
            parts.append(Markup("<dt>{}</dt>").format(self.render_inlines(entry.term, context)))
            parts.append(Markup("<dd>{}</dd>").format(self.render_inlines(entry.definition, context)))
        parts.append(Markup("</dl>"))
        return Markup("\n").join(parts)

    def render_item_list(self, block: ItemList, context: RenderContext) -> str:
        parts = [Markup('<ul class="items">')]
        for item in block.items:
            parts.append(
                Markup('<li class="item-level-{}">{}</li>').format(
                    item.level, self.render_inlines(item.inlines, context)
                )
            )
        parts.append(Markup("</ul>"))
        return Markup("\n").join(parts)

    def render_table(self, block: Table, context: RenderContext) -> str:
        def row(cells: list[TableCell], tag: str) -> Markup:
            return Markup("<tr>{}</tr>").format(
                Markup("").join(
                    Markup(f"<{tag}>") + self.render_inlines(c.inlines, context) + Markup(f"</{tag}>")
                    for c in cells
                )
            )

        parts = [Markup("<table>")]
        if block.header:
            parts.append(Markup("<thead>{}</thead>").format(row(block.header, "th")))
        parts.append(Markup("<tbody>"))
        parts.extend(row(cells, "td") for cells in block.rows)
        parts.append(Markup("</tbody>"))
        parts.append(Markup("</table>"))
        return Markup("\n").join(parts)


class PlaintextRenderer(BaseRenderer):
    """Renders documents as canonical structured text.

    Inline formatting is dropped; block structure and code literals are
    kept, so the output parses back to the same block sequence.
    """

    format = OutputFormat.PLAINTEXT

    def render(self, document: Document, symbols: SymbolTable, options: RenderOptions) -> str:
        context = RenderContext(document=document, symbols=symbols, options=options)
        sections = []

        header = []
        if document.title:
            header.append(f"=TITLE {_escape(document.title)}")
        if document.subtitle:
            header.append(f"=SUBTITLE {_escape(document.subtitle)}")
        if header:
            sections.append("\n".join(header))

        sections.extend(self.render_block(block, context) for block in document.blocks)

        source_link = options.source_link(document)
        if source_link:
            sections.append(f"=comment Source: {source_link}")

        return "\n\n".join(sections) + "\n"

    def render_inlines(self, spans: list[Inline], context: RenderContext) -> str:
        parts = []
        for span in spans:
            if isinstance(span, (Text, CodeSpan)):
                parts.append(span.text)
            elif isinstance(span, Emphasis):
                parts.append(self.render_inlines(span.children, context))
            else:
                parts.append(self.render_link(span, context))
        return "".join(parts)

    def render_link(self, link: Link, context: RenderContext) -> str:
        text = self.render_inlines(link.children, context)
        if link.is_broken:
            return f"{text} [unresolved: {link.target}]"
        if link.status == ReferenceStatus.EXTERNAL and text != link.target:
            return f"{text} ({link.target})"
        return text

    def render_heading(self, block: Heading, context: RenderContext) -> str:
        text = _escape(self.render_inlines(block.inlines, context)) or "Z<>"
        return f"=head{block.level} {text}"

    def render_paragraph(self, block: Paragraph, context: RenderContext) -> str:
        return _escape(self.render_inlines(block.inlines, context)) or "Z<>"

    def render_code(self, block: CodeSample, context: RenderContext) -> str:
        lines = block.literal.split("\n")
        if any(is_block_end(line, "code") for line in lines):
            # Cannot be delimited; fall back to an indented sample
            return "\n".join("    " + line if line else "" for line in lines)
        opening = "=begin code"
        if block.language:
            opening += f" :lang<{block.language}>"
        return f"{opening}\n{block.literal}\n=end code" if block.literal else f"{opening}\n=end code"

    def render_definition_list(self, block: DefinitionList, context: RenderContext) -> str:
        entries = []
        for entry in block.entries:
            term = _escape(self.render_inlines(entry.term, context)) or "Z<>"
            text = f"=defn {term}"
            definition = _escape(self.render_inlines(entry.definition, context))
            if definition:
                text += f"\n{definition}"
            entries.append(text)
        return "\n\n".join(entries)

    def render_item_list(self, block: ItemList, context: RenderContext) -> str:
        lines = []
        for item in block.items:
            directive = "=item" if item.level == 1 else f"=item{item.level}"
            text = _escape(self.render_inlines(item.inlines, context))
            lines.append(f"{directive} {text}" if text else directive)
        return "\n".join(lines)

    def render_table(self, block: Table, context: RenderContext) -> str:
        def row(cells: list[TableCell]) -> str:
            return " | ".join(_escape(self.render_inlines(c.inlines, context)) for c in cells)

        lines = ["=begin table"]
        if block.header:
            header = row(block.header)
            lines.append(header)
            lines.append("=" * max(len(header), 3))
        lines.extend(row(cells) for cells in block.rows)
        lines.append("=end table")
        return "\n".join(lines)


def _escape(text: str) -> str:
    """Make text read back verbatim when parsed as markup.

    A letter that would open a formatting code is wrapped in V<>. Leading
    '=' and whitespace at either end are fenced with Z<>, so the line is
    neither a directive nor an indented sample, and nothing gets stripped.
    """
    parts = []
    for i, ch in enumerate(text):
        opens_code = (
            ch in KNOWN_CODES
            and text[i + 1:i + 2] == "<"
            and (i == 0 or not text[i - 1].isalnum())
        )
        parts.append(f"V<{ch}>" if opens_code else ch)
    escaped = "".join(parts)

    if escaped[:1] == "=" or escaped[:1].isspace():
        escaped = "Z<>" + escaped
    if escaped[-1:].isspace():
        escaped += "Z<>"
    return escaped


RENDERERS: dict[OutputFormat, type[BaseRenderer]] = {
    OutputFormat.HYPERTEXT: HypertextRenderer,
    OutputFormat.PLAINTEXT: PlaintextRenderer,
}


def get_renderer(
    output_format: OutputFormat,
    transforms: Optional[dict[str, BlockTransform]] = None,
) -> BaseRenderer:
    """Build the renderer for a target format."""
    return RENDERERS[OutputFormat(output_format)](transforms)


def render_document(
    document: Document,
    symbols: SymbolTable,
    options: Optional[RenderOptions] = None,
) -> str:
    """Render one resolved document with the default transforms."""
    options = options or RenderOptions()
    return get_renderer(options.format).render(document, symbols, options)
