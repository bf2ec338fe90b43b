"""Cross-Reference Resolution Stage - Build the symbol table and settle links.

Runs in two phases over the complete set of parsed documents:

1. collect - scan every document, in discovery order, for defining
   constructs (types from =TITLE or headings, routines from headings) and
   record them in a fresh SymbolTable. First definition wins.
2. resolve - rewrite every pending link to a document of the corpus,
   external, or unresolved.

Phase 2 never starts before phase 1 has seen every document, so results do
not depend on the order in which links are visited. Nothing here reads files
or the network.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

import structlog

from docset.config import settings
from docset.errors import DuplicateDefinitionWarning, UnresolvedReferenceWarning
from docset.models import (
    Diagnostic,
    Document,
    Heading,
    Link,
    ReferenceStatus,
    Symbol,
    SymbolKind,
    SymbolTable,
)
from docset.pipeline.stage_parse import TYPE_DECLARATORS

logger = structlog.get_logger(__name__)


ROUTINE_DECLARATORS = (
    "method",
    "submethod",
    "routine",
    "sub",
    "trait",
    "term",
    "prefix",
    "infix",
    "postfix",
    "circumfix",
    "postcircumfix",
)

TYPE_HEADING_RE = re.compile(
    r"^(?:" + "|".join(TYPE_DECLARATORS) + r")\s+(?P<name>\S+)\s*$"
)
ROUTINE_HEADING_RE = re.compile(
    r"^(?:multi\s+|proto\s+)?(?:" + "|".join(ROUTINE_DECLARATORS) + r")\s+(?P<name>\S+)\s*$"
)
# "https:", "mailto:" - but not "X::AdHoc"
SCHEME_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*):(?!:)")


@dataclass
class ResolutionResult:
    """Outcome of resolving a corpus."""

    symbols: SymbolTable
    diagnostics: list[Diagnostic] = field(default_factory=list)
    resolved: int = 0
    unresolved: int = 0
    external: int = 0


def split_target(target: str) -> tuple[str, Optional[str]]:
    """Split ``path#fragment``. An empty fragment becomes None."""
    base, sep, fragment = target.partition("#")
    return base, (fragment or None) if sep else None


def find_definitions(document: Document) -> list[Symbol]:
    """List the symbols a document defines, in document order."""
    symbols = []
    if document.declared_name:
        symbols.append(
            Symbol(
                name=document.declared_name,
                kind=SymbolKind.TYPE,
                document_id=document.id,
                anchor=None,
            )
        )

    for heading in document.headings:
        text = heading.text.strip()
        type_match = TYPE_HEADING_RE.match(text)
        if type_match:
            symbols.append(
                Symbol(
                    name=type_match.group("name"),
                    kind=SymbolKind.TYPE,
                    document_id=document.id,
                    anchor=heading.anchor,
                    line=heading.line,
                )
            )
            continue

        routine_match = ROUTINE_HEADING_RE.match(text)
        if routine_match:
            name = routine_match.group("name")
            if document.declared_name:
                name = f"{document.declared_name}.{name}"
            symbols.append(
                Symbol(
                    name=name,
                    kind=SymbolKind.ROUTINE,
                    document_id=document.id,
                    anchor=heading.anchor,
                    line=heading.line,
                )
            )
    return symbols


class CrossReferenceResolver:
    """Resolves links across a corpus of parsed documents.

    A resolver instance holds no state between runs; each call to
    ``resolve_corpus`` builds its own SymbolTable.
    """

    def __init__(self, external_schemes: Optional[list[str]] = None):
        """Initialize the resolver.

        Args:
            external_schemes: URI schemes accepted as external links (default
                from settings). Other "scheme:" targets, such as
                "infix:<+>" or "javascript:...", go through symbol lookup.
        """
        schemes = settings.external_schemes if external_schemes is None else external_schemes
        self.external_schemes = frozenset(s.lower() for s in schemes)

    def collect(self, documents: list[Document]) -> tuple[SymbolTable, list[Diagnostic]]:
        """Phase 1: build the symbol table from every document.

        Args:
            documents: Parsed documents in discovery order.

        Returns:
            Tuple of (populated SymbolTable, duplicate-definition warnings).
        """
        table = SymbolTable()
        diagnostics = []

        for document in documents:
            table.add_document(document.id, document.stem_path)

        for document in documents:
            for symbol in find_definitions(document):
                existing = table.define(symbol)
                if existing is None:
                    continue
                if existing.document_id == symbol.document_id and existing.kind == SymbolKind.ROUTINE:
                    # multi candidates documented under several headings
                    continue
                message = (
                    f"{symbol.kind.value} {symbol.name!r} is also defined in "
                    f"{existing.document_id}; keeping the first definition"
                )
                diagnostics.append(
                    Diagnostic.from_warning(
                        DuplicateDefinitionWarning, message, document.id, symbol.line
                    )
                )
                logger.debug(
                    "definition.duplicate",
                    symbol=symbol.name,
                    document_id=document.id,
                    first_document_id=existing.document_id,
                )

        logger.info("symbols.collected", documents=len(documents), symbols=len(table))
        return table, diagnostics

    def resolve_link(self, link: Link, document: Document, table: SymbolTable) -> ReferenceStatus:
        """Settle a single pending link. Already-settled links are left alone."""
        if link.status != ReferenceStatus.PENDING:
            return link.status

        target = link.target.strip()
        scheme = SCHEME_RE.match(target)
        if scheme and scheme.group("scheme").lower() in self.external_schemes:
            link.mark_external()
            return link.status

        base, fragment = split_target(target)

        if not base:
            link.resolve_to(document.id, fragment)
        elif "/" in base:
            document_id = base.strip("/")
            if table.has_document(document_id):
                link.resolve_to(document_id, fragment)
            else:
                link.mark_unresolved()
        else:
            symbol = table.lookup(base)
            if symbol is not None:
                link.resolve_to(symbol.document_id, fragment or symbol.anchor)
            elif table.has_document(base):
                link.resolve_to(base, fragment)
            else:
                link.mark_unresolved()
        return link.status

    def resolve(self, documents: list[Document], table: SymbolTable) -> ResolutionResult:
        """Phase 2: settle every link against a fully built table."""
        result = ResolutionResult(symbols=table)

        for document in documents:
            for link in document.iter_links():
                status = self.resolve_link(link, document, table)
                if status == ReferenceStatus.RESOLVED:
                    result.resolved += 1
                elif status == ReferenceStatus.EXTERNAL:
                    result.external += 1
                else:
                    result.unresolved += 1
                    message = f"Unresolved reference to {link.target!r}"
                    result.diagnostics.append(
                        Diagnostic.from_warning(
                            UnresolvedReferenceWarning, message, document.id, link.line
                        )
                    )
                    logger.debug(
                        "reference.unresolved",
                        document_id=document.id,
                        target=link.target,
                        line=link.line,
                    )
        return result

    def resolve_corpus(self, documents: list[Document]) -> ResolutionResult:
        """Run both phases over the corpus.

        Args:
            documents: Every successfully parsed document, in discovery order.

        Returns:
            ResolutionResult holding the SymbolTable and all warnings.
        """
        table, collect_diagnostics = self.collect(documents)
        result = self.resolve(documents, table)
        result.diagnostics = collect_diagnostics + result.diagnostics

        logger.info(
            "references.resolved",
            resolved=result.resolved,
            unresolved=result.unresolved,
            external=result.external,
        )
        return result
