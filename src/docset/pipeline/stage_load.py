"""Corpus Loading Stage - Discover documents and drive the pipeline.

discover -> parse (parallel) -> join -> resolve (single pass) -> render and
write (parallel)

Discovery failures abort the run. Everything after discovery fails per
document: a bad file is recorded as a DocumentFailure and its siblings carry
on.
"""

import os
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog

from docset.config import settings
from docset.errors import CorpusDiscoveryError, DuplicateDocumentError, MalformedMarkupError
from docset.models import (
    Diagnostic,
    Document,
    DocumentFailure,
    ParseOutcome,
    RenderedDocument,
    Severity,
    SourceFile,
    SymbolTable,
)
from docset.pipeline.stage_parse import MarkupParser
from docset.pipeline.stage_render import BlockTransform, RenderOptions, get_renderer
from docset.pipeline.stage_resolve import CrossReferenceResolver

logger = structlog.get_logger(__name__)


def _normalize_extensions(extensions: list[str]) -> frozenset[str]:
    return frozenset(e if e.startswith(".") else f".{e}" for e in extensions)


def discover_sources(root: Path, extensions: list[str]) -> list[SourceFile]:
    """Find every source document below ``root``.

    Hidden files and directories are skipped. Order is lexical by relative
    POSIX path, so ids and symbol precedence are stable across runs.

    Raises:
        CorpusDiscoveryError: If the root is missing or unreadable.
    """
    root = Path(root)
    if not root.exists():
        raise CorpusDiscoveryError(root, "directory does not exist")
    if not root.is_dir():
        raise CorpusDiscoveryError(root, "not a directory")
    if not os.access(root, os.R_OK | os.X_OK):
        raise CorpusDiscoveryError(root, "permission denied")

    root = root.resolve()
    suffixes = _normalize_extensions(extensions)
    try:
        paths = [
            p
            for p in root.rglob("*")
            if p.suffix in suffixes
            and not any(part.startswith(".") for part in p.relative_to(root).parts)
            and p.is_file()
        ]
    except OSError as e:
        raise CorpusDiscoveryError(root, str(e)) from e

    sources = [SourceFile.from_path(root, p) for p in paths]
    sources.sort(key=lambda s: s.relative_path)
    return sources


def parse_source(source: SourceFile) -> ParseOutcome:
    """Read and parse a single source file, capturing per-document failures."""
    try:
        text = Path(source.path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return ParseOutcome(
            failure=DocumentFailure.from_error(e, source.document_id, source.path)
        )

    try:
        document, diagnostics = MarkupParser().parse_document(source, text)
    except MalformedMarkupError as e:
        return ParseOutcome(
            failure=DocumentFailure.from_error(e, source.document_id, source.path),
            diagnostics=[Diagnostic.from_error(e, source.document_id)],
        )
    return ParseOutcome(document=document, diagnostics=diagnostics)


def _parse_worker(source_json: str) -> ParseOutcome:
    """Worker function for parallel parsing.

    Args:
        source_json: SourceFile serialized as JSON

    Returns:
        ParseOutcome for that file
    """
    return parse_source(SourceFile.model_validate_json(source_json))


@dataclass
class CorpusRun:
    """Everything a run produced: documents, outputs, failures and warnings."""

    source_dir: str
    sources: list[SourceFile] = field(default_factory=list)
    documents: list[Document] = field(default_factory=list)
    failures: list[DocumentFailure] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    symbols: SymbolTable = field(default_factory=SymbolTable)
    rendered: list[RenderedDocument] = field(default_factory=list)
    output_dir: Optional[str] = None

    @property
    def failed_paths(self) -> set[str]:
        return {f.source_path for f in self.failures}

    @property
    def succeeded(self) -> list[Document]:
        failed = self.failed_paths
        return [d for d in self.documents if d.source_path not in failed]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    def exit_code(self, strict: bool = False) -> int:
        """Process exit status for this run.

        Non-zero only when every document failed, or, in strict mode, when
        any did. Warnings never count.
        """
        if not self.failures:
            return 0
        if strict:
            return 1
        return 0 if self.succeeded else 1


class CorpusLoader:
    """Discovers a corpus and runs it through parse, resolve and render.

    Parsing uses a process pool for larger corpora; resolution always runs
    once, in-process, after every parse has finished.
    """

    def __init__(
        self,
        source_dir: Path,
        extensions: Optional[list[str]] = None,
        max_workers: Optional[int] = None,
        parallel: bool = True,
        parallel_threshold: Optional[int] = None,
    ):
        """Initialize loader.

        Args:
            source_dir: Corpus root directory
            extensions: Source file extensions (default from settings)
            max_workers: Maximum parallel workers (default from settings)
            parallel: Use worker pools at all
            parallel_threshold: Parse in processes only above this many documents
        """
        self.source_dir = Path(source_dir)
        self.extensions = extensions or settings.source_extensions
        self.max_workers = max_workers or settings.max_workers
        self.parallel = parallel
        self.parallel_threshold = (
            settings.parallel_threshold if parallel_threshold is None else parallel_threshold
        )
        self.resolver = CrossReferenceResolver()

    def discover(self) -> list[SourceFile]:
        sources = discover_sources(self.source_dir, self.extensions)
        logger.info("corpus.discovered", root=str(self.source_dir), documents=len(sources))
        return sources

    def parse_all(self, sources: list[SourceFile]) -> list[ParseOutcome]:
        """Parse every source. Outcomes keep discovery order."""
        if self.parallel and len(sources) > self.parallel_threshold:
            with ProcessPoolExecutor(max_workers=self.max_workers) as executor:
                return list(
                    executor.map(_parse_worker, [s.model_dump_json() for s in sources])
                )
        return [parse_source(source) for source in sources]

    def _deduplicate(self, run: CorpusRun, sources: list[SourceFile]) -> list[SourceFile]:
        """Drop sources whose canonical id is already taken, recording failures."""
        seen: dict[str, SourceFile] = {}
        unique = []
        for source in sources:
            first = seen.get(source.document_id)
            if first is None:
                seen[source.document_id] = source
                unique.append(source)
                continue
            error = DuplicateDocumentError(source.document_id, source.path, first.path)
            run.failures.append(DocumentFailure.from_error(error, source.document_id, source.path))
            run.diagnostics.append(Diagnostic.from_error(error, source.document_id))
            logger.error("document.duplicate_id", document_id=source.document_id, path=source.path)
        return unique

    def load(self) -> CorpusRun:
        """Discover, parse and resolve the corpus without rendering.

        Raises:
            CorpusDiscoveryError: If the root cannot be read.
        """
        run = CorpusRun(source_dir=str(self.source_dir))
        run.sources = self.discover()
        sources = self._deduplicate(run, run.sources)

        for outcome in self.parse_all(sources):
            run.diagnostics.extend(outcome.diagnostics)
            if outcome.ok:
                run.documents.append(outcome.document)
            else:
                run.failures.append(outcome.failure)
                logger.error(
                    "document.parse_failed",
                    document_id=outcome.failure.document_id,
                    error=outcome.failure.message,
                )

        # Join point: every parse is complete before resolution starts
        resolution = self.resolver.resolve_corpus(run.documents)
        run.symbols = resolution.symbols
        run.diagnostics.extend(resolution.diagnostics)
        return run

    def render_all(
        self,
        run: CorpusRun,
        output_dir: Path,
        options: RenderOptions,
        transforms: Optional[dict[str, BlockTransform]] = None,
    ) -> None:
        """Render every parsed document of ``run`` and write the output tree."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        run.output_dir = str(output_dir)
        renderer = get_renderer(options.format, transforms)

        def render_one(document: Document) -> tuple[Document, Optional[RenderedDocument], Optional[Exception]]:
            try:
                content = renderer.render(document, run.symbols, options)
            except Exception as e:
                logger.error("document.render_failed", document_id=document.id, error=repr(e))
                return document, None, e

            output_path = output_dir / (document.stem_path + options.format.extension)
            try:
                output_path.parent.mkdir(parents=True, exist_ok=True)
                output_path.write_text(content, encoding="utf-8")
            except OSError as e:
                logger.error("document.write_failed", document_id=document.id, error=str(e))
                return document, None, e
            return document, RenderedDocument(
                document_id=document.id,
                output_path=str(output_path),
                size_bytes=len(content.encode("utf-8")),
            ), None

        if self.parallel and len(run.documents) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(render_one, run.documents))
        else:
            results = [render_one(d) for d in run.documents]

        for document, rendered, error in results:
            if rendered is not None:
                run.rendered.append(rendered)
                continue
            run.failures.append(DocumentFailure.from_error(error, document.id, document.source_path))

        logger.info(
            "corpus.rendered",
            output_dir=str(output_dir),
            format=options.format.value,
            rendered=len(run.rendered),
            failed=len(run.failures),
        )

    def run(
        self,
        output_dir: Path,
        options: Optional[RenderOptions] = None,
        transforms: Optional[dict[str, BlockTransform]] = None,
    ) -> CorpusRun:
        """Full pipeline: load the corpus, then render it to ``output_dir``."""
        run = self.load()
        self.render_all(run, output_dir, options or RenderOptions.from_settings(), transforms)
        return run
