"""Inline markup parsing - formatting codes inside blocks.

Recognized codes (uppercase letter followed by angle brackets):
- B<> I<> U<>  emphasis, nested content parsed recursively
- C<> K<> T<>  code span, content kept literally
- L<>          link: L<display|target> or L<target>
- E<>          entity: E<laquo>, E<171>, E<0xAB>
- V<>          verbatim text
- X<>          index entry, only the display part is kept
- Z<>          zero-width comment, dropped

Delimiters may be doubled (C<< a < b >>), in which case the content is
trimmed. Anything that fails to parse falls back to plain text, so inline
parsing never raises.
"""

from html.entities import name2codepoint
from typing import Optional

from docset.models import (
    CodeSpan,
    Emphasis,
    EmphasisStyle,
    Inline,
    Link,
    Text,
)


EMPHASIS_CODES = {
    "B": EmphasisStyle.BOLD,
    "I": EmphasisStyle.ITALIC,
    "U": EmphasisStyle.UNDERLINE,
}
CODE_CODES = frozenset("CKT")
KNOWN_CODES = frozenset(EMPHASIS_CODES) | CODE_CODES | frozenset("LEVXZ")


def _find_close(text: str, start: int, width: int) -> int:
    """Index of the closing delimiter for content starting at ``start``, or -1."""
    if width > 1:
        return text.find(">" * width, start)

    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "<":
            depth += 1
        elif ch == ">":
            if depth == 0:
                return i
            depth -= 1
    return -1


def _split_link(content: str) -> tuple[str, Optional[str]]:
    """Split ``display|target`` on the first top-level bar."""
    depth = 0
    for i, ch in enumerate(content):
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth = max(depth - 1, 0)
        elif ch == "|" and depth == 0:
            return content[:i], content[i + 1:]
    return content, None


def decode_entity(content: str) -> Optional[str]:
    """Decode the body of an E<> code. Returns None if any part is unknown."""
    chars = []
    for part in content.replace(",", ";").split(";"):
        part = part.strip()
        if not part:
            continue
        try:
            if part.lower().startswith("0x"):
                chars.append(chr(int(part, 16)))
            elif part.isdigit():
                chars.append(chr(int(part)))
            elif part in name2codepoint:
                chars.append(chr(name2codepoint[part]))
            else:
                return None
        except (ValueError, OverflowError):
            return None
    return "".join(chars) if chars else None


def _append_text(spans: list[Inline], text: str, line: int) -> None:
    if not text:
        return
    if spans and isinstance(spans[-1], Text):
        spans[-1].text += text
    else:
        spans.append(Text(text=text, line=line))


def parse_inline(text: str, line: int = 0) -> list[Inline]:
    """Parse a run of text with formatting codes into inline spans.

    Args:
        text: Source text of one block (lines already joined).
        line: Source line of the owning block, copied onto every span.

    Returns:
        List of spans. Adjacent plain text is merged into a single Text.
    """
    spans: list[Inline] = []
    buffer = []
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        is_code = (
            ch in KNOWN_CODES
            and i + 1 < n
            and text[i + 1] == "<"
            and (i == 0 or not text[i - 1].isalnum())
        )
        if not is_code:
            buffer.append(ch)
            i += 1
            continue

        # Count delimiter width
        j = i + 1
        while j < n and text[j] == "<":
            j += 1
        width = j - (i + 1)

        close = _find_close(text, j, width)
        if close < 0:
            # Unterminated: keep the letter and brackets as plain text
            buffer.append(text[i:j])
            i = j
            continue

        content = text[j:close]
        if width > 1:
            content = content.strip()

        _append_text(spans, "".join(buffer), line)
        buffer = []
        _append_span(spans, ch, content, text[i:close + width], line)
        i = close + width

    _append_text(spans, "".join(buffer), line)
    return spans


def _append_span(spans: list[Inline], code: str, content: str, raw: str, line: int) -> None:
    if code in EMPHASIS_CODES:
        spans.append(
            Emphasis(
                style=EMPHASIS_CODES[code],
                children=parse_inline(content, line),
                line=line,
            )
        )
    elif code in CODE_CODES:
        spans.append(CodeSpan(text=content, line=line))
    elif code == "L":
        display, target = _split_link(content)
        if target is None:
            target = display
        target = target.strip()
        if not target:
            _append_text(spans, raw, line)
            return
        children = parse_inline(display, line) if display else [Text(text=target, line=line)]
        spans.append(Link(target=target, children=children, line=line))
    elif code == "E":
        decoded = decode_entity(content)
        _append_text(spans, raw if decoded is None else decoded, line)
    elif code == "V":
        _append_text(spans, content, line)
    elif code == "X":
        display, _ = _split_link(content)
        for span in parse_inline(display, line):
            if isinstance(span, Text):
                _append_text(spans, span.text, line)
            else:
                spans.append(span)
    # Z<> is a comment: nothing to emit
