"""Inline span models: text, emphasis, code spans and links."""

from typing import Annotated, Iterator, Literal, Optional, Union

from pydantic import Field

from .base import BaseIRModel, EmphasisStyle, ReferenceStatus


class Text(BaseIRModel):
    """Plain run of text."""

    kind: Literal["text"] = "text"
    text: str


class CodeSpan(BaseIRModel):
    """Inline literal code, never re-parsed."""

    kind: Literal["code_span"] = "code_span"
    text: str


class Emphasis(BaseIRModel):
    """Bold, italic or underlined run of nested spans."""

    kind: Literal["emphasis"] = "emphasis"
    style: EmphasisStyle
    children: list["Inline"] = Field(default_factory=list)


class Link(BaseIRModel):
    """
    Cross-reference to another document, symbol or external URL.

    Created pending by the parser. The resolver moves it out of PENDING
    exactly once; every later attempt raises.
    """

    kind: Literal["link"] = "link"
    target: str = Field(..., description="Target exactly as written in the source")
    children: list["Inline"] = Field(default_factory=list)

    status: ReferenceStatus = Field(default=ReferenceStatus.PENDING)
    resolved_document: Optional[str] = Field(None, description="Canonical id of the target document")
    fragment: Optional[str] = Field(None, description="Anchor inside the target document")

    @property
    def is_resolved(self) -> bool:
        return self.status == ReferenceStatus.RESOLVED

    @property
    def is_broken(self) -> bool:
        """Unresolved links, plus links the resolver never saw."""
        return self.status in (ReferenceStatus.UNRESOLVED, ReferenceStatus.PENDING)

    def _settle(self, status: ReferenceStatus) -> None:
        if self.status != ReferenceStatus.PENDING:
            raise ValueError(
                f"Link to {self.target!r} already settled as {self.status.value}"
            )
        self.status = status

    def resolve_to(self, document_id: str, fragment: Optional[str] = None) -> None:
        """Point this link at a document of the corpus."""
        self._settle(ReferenceStatus.RESOLVED)
        self.resolved_document = document_id
        self.fragment = fragment

    def mark_unresolved(self) -> None:
        self._settle(ReferenceStatus.UNRESOLVED)

    def mark_external(self) -> None:
        self._settle(ReferenceStatus.EXTERNAL)


Inline = Annotated[
    Union[Text, CodeSpan, Emphasis, Link],
    Field(discriminator="kind"),
]

Emphasis.model_rebuild()
Link.model_rebuild()


def plain_text(spans: list[Inline]) -> str:
    """Flatten spans to their visible text, dropping all formatting."""
    parts = []
    for span in spans:
        if isinstance(span, (Text, CodeSpan)):
            parts.append(span.text)
        else:
            parts.append(plain_text(span.children))
    return "".join(parts)


def iter_links(spans: list[Inline]) -> Iterator[Link]:
    """Yield every link in a span tree, depth first."""
    for span in spans:
        if isinstance(span, Link):
            yield span
            yield from iter_links(span.children)
        elif isinstance(span, Emphasis):
            yield from iter_links(span.children)
