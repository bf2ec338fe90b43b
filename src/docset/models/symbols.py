"""Symbol table models shared by the resolver and the renderers."""

from typing import Optional

from pydantic import Field

from .base import BaseIRModel, SymbolKind


class Symbol(BaseIRModel):
    """A type or routine defined by a document."""

    name: str = Field(..., description="Canonical name, matched case-sensitively")
    kind: SymbolKind
    document_id: str
    anchor: Optional[str] = Field(None, description="Heading anchor, None for whole-page types")


class SymbolTable(BaseIRModel):
    """
    Corpus-wide index of definitions and documents.

    Built once per run by the resolver's collect phase and handed to the
    renderers explicitly. Never module-level state.
    """

    symbols: dict[str, Symbol] = Field(default_factory=dict)
    documents: dict[str, str] = Field(
        default_factory=dict,
        description="Document id -> relative source path without suffix",
    )

    def add_document(self, document_id: str, stem_path: str) -> None:
        self.documents[document_id] = stem_path

    def define(self, symbol: Symbol) -> Optional[Symbol]:
        """Record a definition. First seen wins.

        Returns:
            The existing symbol on a collision, else None.
        """
        existing = self.symbols.get(symbol.name)
        if existing is not None:
            return existing
        self.symbols[symbol.name] = symbol
        return None

    def lookup(self, name: str) -> Optional[Symbol]:
        return self.symbols.get(name)

    def has_document(self, document_id: str) -> bool:
        return document_id in self.documents

    def stem_for(self, document_id: str) -> Optional[str]:
        return self.documents.get(document_id)

    def __contains__(self, name: str) -> bool:
        return name in self.symbols

    def __len__(self) -> int:
        return len(self.symbols)
