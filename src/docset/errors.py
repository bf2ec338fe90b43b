"""Error and warning types for the documentation-set processor.

Errors abort either the whole run (discovery) or a single document
(everything else). Warnings never abort anything; they are collected as
diagnostics and reported at the end of the run.
"""

from pathlib import Path
from typing import Optional


class DocsetError(Exception):
    """Base error for all processing failures."""

    code = "error"


class CorpusDiscoveryError(DocsetError):
    """Corpus root is missing or unreadable. Fatal for the run."""

    code = "corpus-discovery"

    def __init__(self, root: Path, reason: str):
        self.root = Path(root)
        self.reason = reason
        super().__init__(f"Cannot read corpus at {self.root}: {reason}")


class MalformedMarkupError(DocsetError):
    """Source text does not follow the markup grammar."""

    code = "malformed-markup"

    def __init__(
        self,
        message: str,
        line: int,
        expected: Optional[str] = None,
        document_id: Optional[str] = None,
    ):
        self.message = message
        self.line = line
        self.expected = expected
        self.document_id = document_id
        super().__init__(message, line, expected, document_id)

    def __str__(self) -> str:
        where = f"line {self.line}"
        if self.document_id:
            where = f"{self.document_id}, {where}"
        text = f"{self.message} ({where})"
        if self.expected:
            text += f"; expected {self.expected}"
        return text


class DuplicateDocumentError(DocsetError):
    """Two source files map to the same canonical identifier."""

    code = "duplicate-document"

    def __init__(self, document_id: str, path: str, first_path: str):
        self.document_id = document_id
        self.path = path
        self.first_path = first_path
        super().__init__(
            f"{path} maps to identifier {document_id!r}, already taken by {first_path}"
        )


class DocsetWarning(UserWarning):
    """Base for non-fatal findings."""

    code = "warning"


class UnresolvedReferenceWarning(DocsetWarning):
    code = "unresolved-reference"


class DuplicateDefinitionWarning(DocsetWarning):
    code = "duplicate-definition"


class HeadingLevelWarning(DocsetWarning):
    code = "heading-level-skip"
