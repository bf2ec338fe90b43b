"""Base models and common types for the documentation-set processor."""

from enum import Enum

from pydantic import BaseModel, Field


class BlockKind(str, Enum):
    """Types of top-level blocks in a parsed document."""

    HEADING = "heading"
    PARAGRAPH = "paragraph"
    CODE = "code"
    DEFINITION_LIST = "definition_list"
    ITEM_LIST = "item_list"
    TABLE = "table"


class EmphasisStyle(str, Enum):
    """Visual style of an emphasis span."""

    BOLD = "bold"
    ITALIC = "italic"
    UNDERLINE = "underline"


class ReferenceStatus(str, Enum):
    """Resolution state of a link target."""

    PENDING = "pending"  # Parsed, resolver not run yet
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
    EXTERNAL = "external"  # Absolute URL, never checked


class SymbolKind(str, Enum):
    """Kind of a defining construct found in a document."""

    TYPE = "type"
    ROUTINE = "routine"


class OutputFormat(str, Enum):
    """Supported render targets."""

    HYPERTEXT = "hypertext"
    PLAINTEXT = "plaintext"

    @property
    def extension(self) -> str:
        """File extension for rendered output."""
        return ".html" if self is OutputFormat.HYPERTEXT else ".txt"


class Severity(str, Enum):
    """Severity of a diagnostic."""

    WARNING = "warning"
    ERROR = "error"


class BaseIRModel(BaseModel):
    """Base class for all IR models."""

    line: int = Field(default=0, ge=0, description="1-based source line, 0 if unknown")

    class Config:
        from_attributes = True
