"""Tests for the cross-reference resolution stage."""

import random

import pytest

from docset.models import ReferenceStatus, SourceFile, SymbolKind, canonical_id
from docset.pipeline.stage_parse import MarkupParser
from docset.pipeline.stage_resolve import (
    CrossReferenceResolver,
    find_definitions,
    split_target,
)

from conftest import ADHOC_PAGE, EXCEPTION_PAGE, EXCEPTIONS_GUIDE


def make_document(relative_path: str, text: str):
    """Parse ``text`` as if it were discovered at ``relative_path``."""
    source = SourceFile(
        path=f"/corpus/{relative_path}",
        relative_path=relative_path,
        document_id=canonical_id(relative_path),
    )
    document, _ = MarkupParser().parse_document(source, text)
    return document


@pytest.fixture
def corpus():
    return [
        make_document("Language/exceptions.pod6", EXCEPTIONS_GUIDE),
        make_document("Type/Exception.pod6", EXCEPTION_PAGE),
        make_document("Type/X/AdHoc.pod6", ADHOC_PAGE),
    ]


class TestFindDefinitions:
    """Defining constructs."""

    def test_type_page(self):
        document = make_document("Type/Exception.pod6", EXCEPTION_PAGE)
        symbols = find_definitions(document)

        assert [(s.name, s.kind) for s in symbols] == [
            ("Exception", SymbolKind.TYPE),
            ("Exception.message", SymbolKind.ROUTINE),
            ("Exception.throw", SymbolKind.ROUTINE),
        ]
        assert symbols[1].anchor == "method_message"

    def test_routines_on_language_page_are_unqualified(self):
        document = make_document(
            "Language/nativecall.pod6",
            "=TITLE Native calling interface\n\n=head1 sub nativecast\n\n=head1 multi sub trait_mod:<is>\n",
        )

        names = [s.name for s in find_definitions(document)]
        assert names == ["nativecast", "trait_mod:<is>"]

    def test_type_heading(self):
        document = make_document(
            "Language/mop.pod6",
            "=TITLE Metaobject protocol\n\n=head1 role Metamodel::MethodContainer\n",
        )

        (symbol,) = find_definitions(document)
        assert symbol.name == "Metamodel::MethodContainer"
        assert symbol.kind == SymbolKind.TYPE
        assert symbol.anchor == "role_Metamodel::MethodContainer"


class TestCollect:
    """Phase 1: symbol table construction."""

    def test_symbols_and_documents(self, corpus):
        table, diagnostics = CrossReferenceResolver().collect(corpus)

        assert "Exception" in table
        assert "X::AdHoc.payload" in table
        assert len(table) == 5
        assert table.stem_for("type/X::AdHoc") == "Type/X/AdHoc"
        assert diagnostics == []

    def test_first_definition_wins(self):
        first = make_document("Type/A.pod6", "=TITLE class Foo\n")
        second = make_document("Type/B.pod6", "=TITLE class Foo\n")

        table, diagnostics = CrossReferenceResolver().collect([first, second])

        assert table.lookup("Foo").document_id == "type/A"
        assert len(diagnostics) == 1
        assert diagnostics[0].code == "duplicate-definition"
        assert diagnostics[0].document_id == "type/B"

    def test_order_independent(self, corpus):
        expected, _ = CrossReferenceResolver().collect(corpus)

        shuffled = list(corpus)
        random.Random(7).shuffle(shuffled)
        table, _ = CrossReferenceResolver().collect(shuffled)

        assert table.symbols.keys() == expected.symbols.keys()
        assert table.documents == expected.documents

    def test_multi_candidates_in_one_document_do_not_warn(self):
        document = make_document(
            "Type/Str.pod6",
            "=TITLE class Str\n\n=head2 method new\n\n=head2 method new\n",
        )

        _, diagnostics = CrossReferenceResolver().collect([document])
        assert diagnostics == []


class TestResolve:
    """Phase 2: link resolution."""

    def test_corpus_links(self, corpus):
        result = CrossReferenceResolver().resolve_corpus(corpus)
        guide, exception, adhoc = corpus

        # /language/exceptions -> document path
        to_guide = list(exception.iter_links())[0]
        assert to_guide.status == ReferenceStatus.RESOLVED
        assert to_guide.resolved_document == "language/exceptions"

        # Exception.message -> routine symbol, fragment from its anchor
        to_message = [l for l in adhoc.iter_links() if l.target == "Exception.message"][0]
        assert to_message.resolved_document == "type/Exception"
        assert to_message.fragment == "method_message"

        # Failure is never defined
        statuses = {l.target: l.status for l in guide.iter_links()}
        assert statuses["X::AdHoc"] == ReferenceStatus.RESOLVED
        assert statuses["Failure"] == ReferenceStatus.UNRESOLVED
        assert statuses["https://example.org/manual"] == ReferenceStatus.EXTERNAL

        assert (result.resolved, result.unresolved, result.external) == (5, 1, 1)
        assert [d.code for d in result.diagnostics] == ["unresolved-reference"]

    def test_link_to_defining_document(self):
        doc_a = make_document("Type/A.pod6", "=TITLE class Foo\n")
        doc_b = make_document("Language/b.pod6", "Uses L<Foo>.\n")

        CrossReferenceResolver().resolve_corpus([doc_a, doc_b])

        (link,) = doc_b.iter_links()
        assert link.status == ReferenceStatus.RESOLVED
        assert link.resolved_document == "type/A"

    def test_same_link_without_definition_is_unresolved(self):
        doc_b = make_document("Language/b.pod6", "Uses L<Foo>.\n")

        result = CrossReferenceResolver().resolve_corpus([doc_b])

        (link,) = doc_b.iter_links()
        assert link.status == ReferenceStatus.UNRESOLVED
        assert result.diagnostics[0].document_id == "language/b"

    def test_local_fragment(self):
        document = make_document("Language/x.pod6", "=head1 Intro\n\nSee L<intro|#Intro>.\n")

        CrossReferenceResolver().resolve_corpus([document])

        (link,) = document.iter_links()
        assert link.resolved_document == "language/x"
        assert link.fragment == "Intro"

    def test_only_listed_schemes_are_external(self):
        document = make_document(
            "Language/x.pod6",
            "L<run|javascript:alert(1)> or L<mail|mailto:docs@example.org>\n",
        )

        CrossReferenceResolver().resolve_corpus([document])

        statuses = {l.target: l.status for l in document.iter_links()}
        assert statuses["javascript:alert(1)"] == ReferenceStatus.UNRESOLVED
        assert statuses["mailto:docs@example.org"] == ReferenceStatus.EXTERNAL

    def test_scheme_list_is_configurable(self):
        document = make_document("Language/x.pod6", "L<https://example.org>\n")

        CrossReferenceResolver(external_schemes=["mailto"]).resolve_corpus([document])

        assert next(document.iter_links()).status == ReferenceStatus.UNRESOLVED

    def test_operator_name_is_a_symbol_not_a_scheme(self):
        document = make_document(
            "Language/operators.pod6",
            "=TITLE Operators\n\n=head1 sub infix:<+>\n\nSee L<infix:<+>>.\n",
        )

        CrossReferenceResolver().resolve_corpus([document])

        link = next(document.iter_links())
        assert link.status == ReferenceStatus.RESOLVED
        assert link.fragment == "sub_infix:<+>"

    def test_lookup_is_case_sensitive(self):
        doc_a = make_document("Type/A.pod6", "=TITLE class Foo\n")
        doc_b = make_document("Language/b.pod6", "L<foo>\n")

        CrossReferenceResolver().resolve_corpus([doc_a, doc_b])

        assert next(doc_b.iter_links()).status == ReferenceStatus.UNRESOLVED

    def test_resolved_link_never_changes(self, corpus):
        resolver = CrossReferenceResolver()
        resolver.resolve_corpus(corpus)
        link = next(corpus[1].iter_links())

        with pytest.raises(ValueError, match="already settled"):
            link.resolve_to("language/other")
        assert link.resolved_document == "language/exceptions"

    def test_resolving_twice_is_stable(self, corpus):
        resolver = CrossReferenceResolver()
        resolver.resolve_corpus(corpus)
        before = [l.model_dump() for d in corpus for l in d.iter_links()]

        table, _ = resolver.collect(corpus)
        resolver.resolve(corpus, table)

        assert [l.model_dump() for d in corpus for l in d.iter_links()] == before


def test_split_target():
    assert split_target("/type/Exception#method_message") == ("/type/Exception", "method_message")
    assert split_target("Exception") == ("Exception", None)
    assert split_target("Exception#") == ("Exception", None)
