"""Block-level IR models for parsed documents."""

from typing import Annotated, Iterator, Literal, Optional, Union

from pydantic import Field

from .base import BaseIRModel
from .inline import Inline, Link, iter_links, plain_text


class Heading(BaseIRModel):
    """Section heading. Levels nest strictly and feed the table of contents."""

    kind: Literal["heading"] = "heading"
    level: int = Field(..., ge=1, le=6)
    inlines: list[Inline] = Field(default_factory=list)
    anchor: str = Field(..., description="Unique anchor within the document")

    @property
    def text(self) -> str:
        return plain_text(self.inlines)


class Paragraph(BaseIRModel):
    """Run of prose."""

    kind: Literal["paragraph"] = "paragraph"
    inlines: list[Inline] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return plain_text(self.inlines)


class CodeSample(BaseIRModel):
    """
    Verbatim code.

    The literal is stored exactly as written, without trailing newline.
    Renderers must reproduce it byte-for-byte (modulo target-format escaping).
    """

    kind: Literal["code"] = "code"
    language: str = Field(default="", description="Language tag, empty if unspecified")
    literal: str


class DefinitionEntry(BaseIRModel):
    """Single term and its definition."""

    term: list[Inline] = Field(default_factory=list)
    definition: list[Inline] = Field(default_factory=list)


class DefinitionList(BaseIRModel):
    kind: Literal["definition_list"] = "definition_list"
    entries: list[DefinitionEntry] = Field(default_factory=list)


class ListItem(BaseIRModel):
    level: int = Field(default=1, ge=1, le=4)
    inlines: list[Inline] = Field(default_factory=list)


class ItemList(BaseIRModel):
    """Bulleted list, possibly nested through item levels."""

    kind: Literal["item_list"] = "item_list"
    items: list[ListItem] = Field(default_factory=list)


class TableCell(BaseIRModel):
    inlines: list[Inline] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return plain_text(self.inlines)


class Table(BaseIRModel):
    kind: Literal["table"] = "table"
    header: Optional[list[TableCell]] = None
    rows: list[list[TableCell]] = Field(default_factory=list)


Block = Annotated[
    Union[Heading, Paragraph, CodeSample, DefinitionList, ItemList, Table],
    Field(discriminator="kind"),
]


def block_links(block: Block) -> Iterator[Link]:
    """Yield every link owned by a block."""
    if isinstance(block, (Heading, Paragraph)):
        yield from iter_links(block.inlines)
    elif isinstance(block, DefinitionList):
        for entry in block.entries:
            yield from iter_links(entry.term)
            yield from iter_links(entry.definition)
    elif isinstance(block, ItemList):
        for item in block.items:
            yield from iter_links(item.inlines)
    elif isinstance(block, Table):
        for row in ([block.header] if block.header else []) + block.rows:
            for cell in row:
                yield from iter_links(cell.inlines)
