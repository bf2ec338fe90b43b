"""Markup Parsing Stage - Convert structured text into typed blocks.

The markup is line oriented. A directive starts in column 0 with ``=`` and
a name (``=head2``, ``=begin code``, ``=item``); everything else is either
a paragraph (blank-line separated) or, when its first line is indented, an
implicit code sample.

This stage holds no shared state, so documents can be parsed in any order
and in separate processes.
"""

import re
import textwrap
from dataclasses import dataclass, field
from typing import Optional

import structlog

from docset.errors import HeadingLevelWarning, MalformedMarkupError
from docset.models import (
    Block,
    CodeSample,
    DefinitionEntry,
    DefinitionList,
    Diagnostic,
    Document,
    Heading,
    ItemList,
    ListItem,
    Paragraph,
    SourceFile,
    Table,
    TableCell,
    plain_text,
)
from docset.pipeline.inline import parse_inline

logger = structlog.get_logger(__name__)


DIRECTIVE_RE = re.compile(r"^=(?P<name>[A-Za-z][\w-]*)(?:[ \t]+(?P<rest>.*?))?\s*$")
HEADING_RE = re.compile(r"^head(\d+)$")
ITEM_RE = re.compile(r"^item(\d*)$")
LANG_RE = re.compile(r":lang<\s*([^>\s]*)\s*>")
TABLE_RULE_RE = re.compile(r"^[\s=\-+|]+$")

# Declarators that introduce a type in a =TITLE or heading
TYPE_DECLARATORS = (
    "class",
    "role",
    "grammar",
    "module",
    "package",
    "enum",
    "subset",
    "knowhow",
)
TITLE_DECLARATION_RE = re.compile(
    r"^(?P<declarator>" + "|".join(TYPE_DECLARATORS) + r")\s+(?P<name>\S+)"
)

# Named blocks accepted by =begin/=end and =for
DELIMITED_BLOCKS = ("pod", "code", "comment", "table")
PARAGRAPH_BLOCKS = ("code", "comment", "table")


@dataclass
class ParsedMarkup:
    """Output of parsing one document's text."""

    blocks: list[Block] = field(default_factory=list)
    title: Optional[str] = None
    subtitle: Optional[str] = None
    diagnostics: list[Diagnostic] = field(default_factory=list)


def slugify(text: str) -> str:
    """Anchor for a heading: whitespace runs become underscores."""
    return re.sub(r"\s+", "_", text.strip())


def is_directive(line: str) -> bool:
    return line.startswith("=") and DIRECTIVE_RE.match(line) is not None


def is_block_end(line: str, block_name: str) -> bool:
    """True for the '=end <name>' line closing a delimited block."""
    return line.startswith("=end") and line.split() == ["=end", block_name]


def _split_config(rest: str) -> tuple[str, str]:
    """Split directive arguments into the block name and its config."""
    parts = rest.split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


class MarkupParser:
    """Parses structured text into an ordered sequence of blocks.

    One parser instance can be reused for many documents; all per-document
    state lives in ``_State``.
    """

    def __init__(self, warn_heading_skips: bool = True):
        """Initialize the parser.

        Args:
            warn_heading_skips: Emit a HeadingLevelWarning when a heading
                jumps more than one level deeper than its predecessor.
        """
        self.warn_heading_skips = warn_heading_skips

    def parse(self, text: str, document_id: Optional[str] = None) -> ParsedMarkup:
        """Parse the raw text of one document.

        Args:
            text: Source text.
            document_id: Used to tag diagnostics and errors.

        Returns:
            ParsedMarkup with blocks, title/subtitle and warnings.

        Raises:
            MalformedMarkupError: If the text violates the block grammar.
        """
        state = _State(document_id=document_id)
        lines = text.splitlines()

        try:
            i = 0
            while i < len(lines):
                raw = lines[i]
                if not raw.strip():
                    i += 1
                elif is_directive(raw):
                    i = self._directive(lines, i, state)
                elif raw[0] in " \t":
                    i = self._implicit_code(lines, i, state)
                else:
                    i = self._paragraph(lines, i, state)

            if state.open_pods:
                raise MalformedMarkupError(
                    "Unterminated '=begin pod'",
                    line=state.open_pods[-1],
                    expected="=end pod",
                )
        except MalformedMarkupError as e:
            if e.document_id is None:
                e.document_id = document_id
            raise

        return state.result

    # ---- block kinds ----

    def _directive(self, lines: list[str], i: int, state: "_State") -> int:
        lineno = i + 1
        match = DIRECTIVE_RE.match(lines[i])
        name = match.group("name")
        rest = match.group("rest") or ""

        if name == "begin":
            return self._begin(lines, i, rest, state)
        if name == "end":
            return self._end(i, rest, state)
        if name == "for":
            return self._for(lines, i, rest, state)
        if name == "TITLE":
            state.result.title = plain_text(parse_inline(rest, lineno)) or None
            return i + 1
        if name == "SUBTITLE":
            state.result.subtitle = plain_text(parse_inline(rest, lineno)) or None
            return i + 1
        if name == "comment":
            _, end = _collect_paragraph(lines, i + 1)
            return end

        heading = HEADING_RE.match(name)
        if heading:
            return self._heading(lines, i, int(heading.group(1)), rest, state)

        if name == "defn":
            return self._definition(lines, i, rest, state)

        item = ITEM_RE.match(name)
        if item:
            level = int(item.group(1) or 1)
            if not 1 <= level <= 4:
                raise MalformedMarkupError(
                    f"List item level {level} out of range",
                    line=lineno,
                    expected="=item1 to =item4",
                )
            return self._item(lines, i, level, rest, state)

        raise MalformedMarkupError(
            f"Unknown directive '={name}'",
            line=lineno,
            expected="a known directive (=head1-6, =begin, =end, =for, =item, =defn, =TITLE)",
        )

    def _begin(self, lines: list[str], i: int, rest: str, state: "_State") -> int:
        lineno = i + 1
        block_name, config = _split_config(rest)
        if block_name not in DELIMITED_BLOCKS:
            raise MalformedMarkupError(
                f"Unknown block '=begin {block_name}'" if block_name else "'=begin' without a block name",
                line=lineno,
                expected="one of " + ", ".join(DELIMITED_BLOCKS),
            )

        if block_name == "pod":
            state.open_pods.append(lineno)
            return i + 1

        terminator = f"=end {block_name}"
        end = i + 1
        while end < len(lines) and not is_block_end(lines[end], block_name):
            end += 1
        if end >= len(lines):
            raise MalformedMarkupError(
                f"Unterminated '=begin {block_name}'",
                line=lineno,
                expected=terminator,
            )

        body = lines[i + 1:end]
        if block_name == "code":
            state.add(CodeSample(language=_language(config), literal="\n".join(body), line=lineno))
        elif block_name == "table":
            state.add(_parse_table(body, lineno + 1, lineno))
        return end + 1

    def _end(self, i: int, rest: str, state: "_State") -> int:
        block_name, _ = _split_config(rest)
        if not block_name:
            raise MalformedMarkupError("'=end' without a block name", line=i + 1)
        if block_name == "pod" and state.open_pods:
            state.open_pods.pop()
            return i + 1
        raise MalformedMarkupError(
            f"'=end {block_name}' without matching '=begin {block_name}'",
            line=i + 1,
        )

    def _for(self, lines: list[str], i: int, rest: str, state: "_State") -> int:
        lineno = i + 1
        block_name, config = _split_config(rest)
        if block_name not in PARAGRAPH_BLOCKS:
            raise MalformedMarkupError(
                f"Unknown block '=for {block_name}'",
                line=lineno,
                expected="one of " + ", ".join(PARAGRAPH_BLOCKS),
            )
        body, end = _collect_until_blank(lines, i + 1)
        if block_name == "code":
            state.add(CodeSample(language=_language(config), literal="\n".join(body), line=lineno))
        elif block_name == "table":
            state.add(_parse_table(body, lineno + 1, lineno))
        return end

    def _heading(self, lines: list[str], i: int, level: int, rest: str, state: "_State") -> int:
        lineno = i + 1
        if not 1 <= level <= 6:
            raise MalformedMarkupError(
                f"Heading level {level} out of range",
                line=lineno,
                expected="=head1 to =head6",
            )

        continuation, end = _collect_paragraph(lines, i + 1)
        text = " ".join([rest.strip()] + [c.strip() for c in continuation]).strip()
        if not text:
            raise MalformedMarkupError(
                f"Empty '=head{level}'",
                line=lineno,
                expected="heading text",
            )

        previous = state.last_heading_level or 1
        if self.warn_heading_skips and level > previous + 1:
            message = f"Heading level jumps from {previous} to {level}"
            state.result.diagnostics.append(
                Diagnostic.from_warning(HeadingLevelWarning, message, state.document_id, lineno)
            )
            logger.debug(
                "heading.level_skip",
                document_id=state.document_id,
                line=lineno,
                previous=previous,
                level=level,
            )
        state.last_heading_level = level

        inlines = parse_inline(text, lineno)
        state.add(
            Heading(
                level=level,
                inlines=inlines,
                anchor=state.unique_anchor(slugify(plain_text(inlines))),
                line=lineno,
            )
        )
        return end

    def _definition(self, lines: list[str], i: int, rest: str, state: "_State") -> int:
        lineno = i + 1
        if not rest.strip():
            raise MalformedMarkupError("Empty '=defn'", line=lineno, expected="a term")
        body, end = _collect_paragraph(lines, i + 1)
        entry = DefinitionEntry(
            term=parse_inline(rest.strip(), lineno),
            definition=parse_inline(_join(body), lineno + 1),
            line=lineno,
        )
        last = state.last_block
        if isinstance(last, DefinitionList):
            last.entries.append(entry)
        else:
            state.add(DefinitionList(entries=[entry], line=lineno))
        return end

    def _item(self, lines: list[str], i: int, level: int, rest: str, state: "_State") -> int:
        lineno = i + 1
        body, end = _collect_paragraph(lines, i + 1)
        item = ListItem(level=level, inlines=parse_inline(_join([rest] + body), lineno), line=lineno)
        last = state.last_block
        if isinstance(last, ItemList):
            last.items.append(item)
        else:
            state.add(ItemList(items=[item], line=lineno))
        return end

    def _implicit_code(self, lines: list[str], i: int, state: "_State") -> int:
        end = i
        while end < len(lines) and (not lines[end].strip() or lines[end][0] in " \t"):
            end += 1
        body = lines[i:end]
        while body and not body[-1].strip():
            body.pop()
        literal = textwrap.dedent("\n".join(body))
        state.add(CodeSample(literal=literal, line=i + 1))
        return end

    def _paragraph(self, lines: list[str], i: int, state: "_State") -> int:
        body, end = _collect_paragraph(lines, i)
        state.add(Paragraph(inlines=parse_inline(_join(body), i + 1), line=i + 1))
        return end

    def parse_document(self, source: SourceFile, text: str) -> tuple[Document, list[Diagnostic]]:
        """Parse a discovered source file into a Document.

        Raises:
            MalformedMarkupError: Tagged with the source's document id.
        """
        parsed = self.parse(text, document_id=source.document_id)

        declarator = declared_name = None
        if parsed.title:
            declaration = TITLE_DECLARATION_RE.match(parsed.title)
            if declaration:
                declarator = declaration.group("declarator")
                declared_name = declaration.group("name")

        document = Document(
            id=source.document_id,
            source_path=source.path,
            relative_path=source.relative_path,
            title=parsed.title,
            subtitle=parsed.subtitle,
            declarator=declarator,
            declared_name=declared_name,
            blocks=parsed.blocks,
        )
        return document, parsed.diagnostics


class _State:
    """Per-document parser state."""

    def __init__(self, document_id: Optional[str]):
        self.document_id = document_id
        self.result = ParsedMarkup()
        self.open_pods: list[int] = []
        self.last_heading_level: Optional[int] = None
        self._anchors: set[str] = set()

    @property
    def last_block(self) -> Optional[Block]:
        return self.result.blocks[-1] if self.result.blocks else None

    def add(self, block: Block) -> None:
        self.result.blocks.append(block)

    def unique_anchor(self, slug: str) -> str:
        anchor, count = slug, 1
        while anchor in self._anchors:
            count += 1
            anchor = f"{slug}_{count}"
        self._anchors.add(anchor)
        return anchor


def _collect_paragraph(lines: list[str], start: int) -> tuple[list[str], int]:
    """Lines from ``start`` up to a blank line or the next directive."""
    end = start
    while end < len(lines) and lines[end].strip() and not is_directive(lines[end]):
        end += 1
    return lines[start:end], end


def _collect_until_blank(lines: list[str], start: int) -> tuple[list[str], int]:
    end = start
    while end < len(lines) and lines[end].strip():
        end += 1
    return lines[start:end], end


def _join(lines: list[str]) -> str:
    return " ".join(line.strip() for line in lines if line.strip())


def _language(config: str) -> str:
    match = LANG_RE.search(config or "")
    return match.group(1) if match else ""


def _split_row(row: str) -> list[str]:
    if "|" in row:
        cells = row.strip().strip("|").split("|")
    else:
        cells = re.split(r"\s{2,}", row.strip())
    return [c.strip() for c in cells]


def _parse_table(body: list[str], first_line: int, lineno: int) -> Table:
    """Build a Table from raw rows.

    A rule line (``===`` or ``---``) directly after the first row marks that
    row as the header. Other rule lines are ignored.
    """
    rows: list[tuple[int, list[str]]] = []
    header_index = None
    for offset, row in enumerate(body):
        if not row.strip():
            continue
        if TABLE_RULE_RE.match(row) and ("=" in row or "-" in row):
            if len(rows) == 1 and header_index is None:
                header_index = 0
            continue
        rows.append((first_line + offset, _split_row(row)))

    def cells(number: int, texts: list[str]) -> list[TableCell]:
        return [TableCell(inlines=parse_inline(t, number), line=number) for t in texts]

    header = None
    if header_index is not None:
        number, texts = rows.pop(0)
        header = cells(number, texts)

    return Table(
        header=header,
        rows=[cells(number, texts) for number, texts in rows],
        line=lineno,
    )
