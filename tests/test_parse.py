"""Tests for the markup parsing stage."""

import pytest

from docset.errors import MalformedMarkupError
from docset.models import (
    CodeSample,
    DefinitionList,
    Heading,
    ItemList,
    Link,
    Paragraph,
    Severity,
    SourceFile,
    Table,
)
from docset.pipeline.stage_parse import MarkupParser, slugify

from conftest import EXCEPTION_PAGE


@pytest.fixture
def parser():
    return MarkupParser()


class TestBlocks:
    """Block-level constructs."""

    def test_exception_page_structure(self, parser):
        """A full reference page produces blocks in document order."""
        parsed = parser.parse(EXCEPTION_PAGE)

        assert parsed.title == "class Exception"
        assert parsed.subtitle == "Anomalous event capable of interrupting normal control-flow"
        kinds = [b.kind for b in parsed.blocks]
        assert kinds == [
            "code",
            "paragraph",
            "heading",
            "heading",
            "paragraph",
            "code",
            "paragraph",
            "heading",
            "paragraph",
        ]
        assert parsed.diagnostics == []

    def test_headings(self, parser):
        parsed = parser.parse("=head1 Methods\n\n=head2 method message\n")

        first, second = parsed.blocks
        assert isinstance(first, Heading)
        assert (first.level, first.text, first.anchor, first.line) == (1, "Methods", "Methods", 1)
        assert (second.level, second.anchor, second.line) == (2, "method_message", 3)

    def test_duplicate_anchors_are_numbered(self, parser):
        parsed = parser.parse("=head2 method new\n\n=head2 method new\n")

        assert [h.anchor for h in parsed.blocks] == ["method_new", "method_new_2"]

    def test_numbered_anchor_never_reuses_an_existing_one(self, parser):
        """A heading whose own slug is ``x_2`` does not collide with the second ``x``."""
        parsed = parser.parse("=head1 x\n\n=head1 x\n\n=head1 x 2\n")

        anchors = [h.anchor for h in parsed.blocks]
        assert anchors == ["x", "x_2", "x_2_2"]
        assert len(set(anchors)) == 3

    def test_tab_separates_block_name_and_config(self, parser):
        text = "=begin code\t:lang<raku>\nsay 1;\n=end\tcode\n\n=for\tcode\t:lang<c>\nint x;\n"
        parsed = parser.parse(text)

        first, second = parsed.blocks
        assert (first.language, first.literal) == ("raku", "say 1;")
        assert (second.language, second.literal) == ("c", "int x;")

    def test_delimited_code_is_verbatim(self, parser):
        """Code bodies keep indentation, trailing spaces and blank lines."""
        literal = "sub f() {\n    say 1;  \n\n}"
        parsed = parser.parse(f"=begin code :lang<raku>\n{literal}\n=end code\n")

        code = parsed.blocks[0]
        assert isinstance(code, CodeSample)
        assert code.language == "raku"
        assert code.literal == literal

    def test_for_code_runs_to_blank_line(self, parser):
        parsed = parser.parse("=for code :lang<c>\nint x;\nint y;\n\nAfter.\n")

        code, para = parsed.blocks
        assert code.literal == "int x;\nint y;"
        assert code.language == "c"
        assert isinstance(para, Paragraph)

    def test_implicit_code_is_dedented(self, parser):
        text = "Intro.\n\n    my $x = 1;\n\n      indented more\n\nOutro.\n"
        parsed = parser.parse(text)

        intro, code, outro = parsed.blocks
        assert code.literal == "my $x = 1;\n\n  indented more"
        assert code.line == 3
        assert outro.text == "Outro."

    def test_paragraph_lines_are_joined(self, parser):
        parsed = parser.parse("First line\nsecond line.\n")

        assert parsed.blocks[0].text == "First line second line."

    def test_definition_list_merges_consecutive_entries(self, parser):
        text = "=defn CATCH\nHandles exceptions.\n\n=defn CONTROL\nHandles control exceptions.\n"
        parsed = parser.parse(text)

        assert len(parsed.blocks) == 1
        dl = parsed.blocks[0]
        assert isinstance(dl, DefinitionList)
        assert len(dl.entries) == 2

    def test_item_list_levels(self, parser):
        parsed = parser.parse("=item one\n=item2 nested\n=item two\n")

        items = parsed.blocks[0]
        assert isinstance(items, ItemList)
        assert [i.level for i in items.items] == [1, 2, 1]

    def test_table_with_header(self, parser):
        text = "=begin table\nType | Meaning\n=============\nint32 | 32-bit\nnum64 | double\n=end table\n"
        parsed = parser.parse(text)

        table = parsed.blocks[0]
        assert isinstance(table, Table)
        assert [c.text for c in table.header] == ["Type", "Meaning"]
        assert [[c.text for c in row] for row in table.rows] == [
            ["int32", "32-bit"],
            ["num64", "double"],
        ]

    def test_comments_are_dropped(self, parser):
        text = "=comment not rendered\n\n=begin comment\nnor this\n=end comment\n\nKept.\n"
        parsed = parser.parse(text)

        assert [b.kind for b in parsed.blocks] == ["paragraph"]

    def test_links_start_pending(self, parser):
        parsed = parser.parse("See L<Exception>.\n")

        link = parsed.blocks[0].inlines[1]
        assert isinstance(link, Link)
        assert link.status.value == "pending"


class TestErrors:
    """Malformed markup."""

    def test_unterminated_code_block(self, parser):
        with pytest.raises(MalformedMarkupError) as exc_info:
            parser.parse("=head1 Example\n\n=begin code\nsay 1;\n", document_id="type/Foo")

        error = exc_info.value
        assert error.line == 3
        assert error.expected == "=end code"
        assert error.document_id == "type/Foo"
        assert "type/Foo" in str(error)

    def test_unterminated_pod(self, parser):
        with pytest.raises(MalformedMarkupError, match="Unterminated"):
            parser.parse("=begin pod\n\nText.\n")

    def test_end_without_begin(self, parser):
        with pytest.raises(MalformedMarkupError, match="without matching"):
            parser.parse("Text.\n\n=end code\n")

    def test_unknown_directive(self, parser):
        with pytest.raises(MalformedMarkupError, match="Unknown directive"):
            parser.parse("=frobnicate now\n")

    def test_heading_level_out_of_range(self, parser):
        with pytest.raises(MalformedMarkupError, match="out of range"):
            parser.parse("=head7 Too deep\n")

    def test_empty_heading(self, parser):
        with pytest.raises(MalformedMarkupError) as exc_info:
            parser.parse("=head2\n")
        assert exc_info.value.expected == "heading text"

    def test_non_directive_equals_line_is_text(self, parser):
        parsed = parser.parse("=> is the pair constructor\n")

        assert parsed.blocks[0].text == "=> is the pair constructor"


class TestHeadingLevels:
    """Heading level skips warn but do not fail."""

    def test_skip_warns(self, parser):
        parsed = parser.parse("=head1 Top\n\n=head3 Deep\n", document_id="language/x")

        assert len(parsed.blocks) == 2
        assert len(parsed.diagnostics) == 1
        diagnostic = parsed.diagnostics[0]
        assert diagnostic.severity == Severity.WARNING
        assert diagnostic.code == "heading-level-skip"
        assert diagnostic.line == 3
        assert diagnostic.document_id == "language/x"

    def test_single_step_and_going_up_are_fine(self, parser):
        parsed = parser.parse("=head1 A\n\n=head2 B\n\n=head3 C\n\n=head1 D\n")

        assert parsed.diagnostics == []

    def test_warning_can_be_disabled(self):
        parsed = MarkupParser(warn_heading_skips=False).parse("=head3 Deep\n")

        assert parsed.diagnostics == []


class TestParseDocument:
    """Tests for parse_document."""

    def test_title_declaration(self, parser, tmp_path):
        source = SourceFile(
            path=str(tmp_path / "Type/X/AdHoc.pod6"),
            relative_path="Type/X/AdHoc.pod6",
            document_id="type/X::AdHoc",
        )
        document, diagnostics = parser.parse_document(source, "=TITLE class X::AdHoc\n\nText.\n")

        assert document.id == "type/X::AdHoc"
        assert document.declarator == "class"
        assert document.declared_name == "X::AdHoc"
        assert document.stem_path == "Type/X/AdHoc"
        assert diagnostics == []

    def test_references_are_outbound_targets(self, parser):
        source = SourceFile(path="/x/Type/Exception.pod6", relative_path="Type/Exception.pod6",
                            document_id="type/Exception")
        document, _ = parser.parse_document(source, EXCEPTION_PAGE)

        assert document.references == {"/language/exceptions", "X::AdHoc"}

    def test_language_page_has_no_declaration(self, parser):
        source = SourceFile(path="/x/Language/nativecall.pod6", relative_path="Language/nativecall.pod6",
                            document_id="language/nativecall")
        document, _ = parser.parse_document(source, "=TITLE Native calling interface\n")

        assert document.declared_name is None
        assert document.display_title == "Native calling interface"


def test_slugify():
    assert slugify("  method   add_method ") == "method_add_method"
