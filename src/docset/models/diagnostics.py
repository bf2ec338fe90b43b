"""Diagnostics and per-document outcomes collected during a run."""

from typing import Optional

from pydantic import Field

from docset.errors import DocsetError, DocsetWarning, MalformedMarkupError

from .base import BaseIRModel, Severity
from .document import Document


class Diagnostic(BaseIRModel):
    """Warning or error attached to a document and line."""

    severity: Severity
    code: str
    message: str
    document_id: Optional[str] = None

    @classmethod
    def from_warning(
        cls,
        category: type[DocsetWarning],
        message: str,
        document_id: Optional[str] = None,
        line: int = 0,
    ) -> "Diagnostic":
        return cls(
            severity=Severity.WARNING,
            code=category.code,
            message=message,
            document_id=document_id,
            line=line,
        )

    @classmethod
    def from_error(cls, error: DocsetError, document_id: Optional[str] = None) -> "Diagnostic":
        return cls(
            severity=Severity.ERROR,
            code=error.code,
            message=str(error),
            document_id=document_id,
            line=getattr(error, "line", None) or 0,
        )

    def __str__(self) -> str:
        where = self.document_id or "<corpus>"
        if self.line:
            where = f"{where}:{self.line}"
        return f"{where}: {self.severity.value}: {self.message} [{self.code}]"


class DocumentFailure(BaseIRModel):
    """A document skipped by the run, and why."""

    document_id: str
    source_path: str
    error_type: str
    message: str
    expected: Optional[str] = None

    @classmethod
    def from_error(cls, error: Exception, document_id: str, source_path: str) -> "DocumentFailure":
        line = 0
        expected = None
        if isinstance(error, MalformedMarkupError):
            line = error.line
            expected = error.expected
        return cls(
            document_id=document_id,
            source_path=source_path,
            error_type=type(error).__name__,
            message=str(error),
            expected=expected,
            line=line,
        )


class ParseOutcome(BaseIRModel):
    """Result of parsing one source file, returned across process boundaries."""

    document: Optional[Document] = None
    failure: Optional[DocumentFailure] = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.document is not None


class RenderedDocument(BaseIRModel):
    document_id: str
    output_path: str
    size_bytes: int = Field(default=0, ge=0)
