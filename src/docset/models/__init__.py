"""IR models for the documentation-set processor.

Every model is a pydantic model and serializes to JSON, so parsed documents
can cross process boundaries and be dumped for inspection.

Model Hierarchy:
- Document → Blocks → Inline spans (Text, Emphasis, CodeSpan, Link)
- SymbolTable → Symbols, document index
- Diagnostics, DocumentFailure, ParseOutcome for run reporting
"""

from .base import (
    BaseIRModel,
    BlockKind,
    EmphasisStyle,
    OutputFormat,
    ReferenceStatus,
    Severity,
    SymbolKind,
)
from .block import (
    Block,
    CodeSample,
    DefinitionEntry,
    DefinitionList,
    Heading,
    ItemList,
    ListItem,
    Paragraph,
    Table,
    TableCell,
    block_links,
)
from .diagnostics import (
    Diagnostic,
    DocumentFailure,
    ParseOutcome,
    RenderedDocument,
)
from .document import (
    Document,
    SourceFile,
    TocEntry,
    canonical_id,
)
from .inline import (
    CodeSpan,
    Emphasis,
    Inline,
    Link,
    Text,
    iter_links,
    plain_text,
)
from .symbols import (
    Symbol,
    SymbolTable,
)

__all__ = [
    # Base types
    "BaseIRModel",
    "BlockKind",
    "EmphasisStyle",
    "OutputFormat",
    "ReferenceStatus",
    "Severity",
    "SymbolKind",
    # Document
    "Document",
    "SourceFile",
    "TocEntry",
    "canonical_id",
    # Block
    "Block",
    "CodeSample",
    "DefinitionEntry",
    "DefinitionList",
    "Heading",
    "ItemList",
    "ListItem",
    "Paragraph",
    "Table",
    "TableCell",
    "block_links",
    # Inline
    "CodeSpan",
    "Emphasis",
    "Inline",
    "Link",
    "Text",
    "iter_links",
    "plain_text",
    # Symbols
    "Symbol",
    "SymbolTable",
    # Diagnostics
    "Diagnostic",
    "DocumentFailure",
    "ParseOutcome",
    "RenderedDocument",
]
