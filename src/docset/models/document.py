"""Document-level IR models."""

from pathlib import Path, PurePosixPath
from typing import Iterator, Optional

from pydantic import Field

from .base import BaseIRModel
from .block import Block, Heading, block_links
from .inline import Link


def canonical_id(relative_path: str) -> str:
    """Derive the canonical document identifier from a relative source path.

    The first segment is lower-cased and names the section of the corpus;
    the remaining segments form a ``::`` separated name.

        Type/X/AdHoc.pod6        -> type/X::AdHoc
        Language/exceptions.pod6 -> language/exceptions
        index.pod6               -> index
    """
    parts = PurePosixPath(relative_path).with_suffix("").parts
    if not parts:
        raise ValueError("Empty relative path")
    if len(parts) == 1:
        return parts[0]
    return f"{parts[0].lower()}/{'::'.join(parts[1:])}"


class SourceFile(BaseIRModel):
    """A discovered source document, before parsing."""

    path: str = Field(..., description="Absolute file path")
    relative_path: str = Field(..., description="POSIX path relative to the corpus root")
    document_id: str

    @classmethod
    def from_path(cls, root: Path, path: Path) -> "SourceFile":
        relative = path.relative_to(root).as_posix()
        return cls(
            path=str(path),
            relative_path=relative,
            document_id=canonical_id(relative),
        )

    @property
    def stem_path(self) -> str:
        """Relative path without suffix; output files mirror it."""
        return str(PurePosixPath(self.relative_path).with_suffix(""))


class TocEntry(BaseIRModel):
    level: int
    text: str
    anchor: str


class Document(BaseIRModel):
    """
    Parsed reference page.

    Blocks are fixed at parse time. The only state that changes afterwards
    is the resolution status of the links the blocks own.
    """

    id: str = Field(..., description="Canonical identifier, unique in the corpus")
    source_path: str
    relative_path: str

    title: Optional[str] = None
    subtitle: Optional[str] = None
    declarator: Optional[str] = Field(None, description="e.g. 'class', 'role' from =TITLE")
    declared_name: Optional[str] = Field(None, description="Type name declared by =TITLE")

    blocks: list[Block] = Field(default_factory=list)

    @property
    def stem_path(self) -> str:
        return str(PurePosixPath(self.relative_path).with_suffix(""))

    @property
    def display_title(self) -> str:
        return self.title or self.id

    @property
    def headings(self) -> list[Heading]:
        return [b for b in self.blocks if isinstance(b, Heading)]

    def iter_links(self) -> Iterator[Link]:
        """Yield every link in the document, in document order."""
        for block in self.blocks:
            yield from block_links(block)

    @property
    def references(self) -> set[str]:
        """Outbound reference targets as written in the source."""
        return {link.target for link in self.iter_links()}

    def toc(self) -> list[TocEntry]:
        """Table of contents built from the heading sequence."""
        return [
            TocEntry(level=h.level, text=h.text, anchor=h.anchor, line=h.line)
            for h in self.headings
        ]
