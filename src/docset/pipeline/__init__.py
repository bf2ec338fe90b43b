"""Pipeline stages for documentation-set processing.

Stages, in run order:
1. stage_load - corpus discovery, canonical ids, orchestration
2. stage_parse - structured text to blocks (inline spans via inline.py)
3. stage_resolve - symbol table, link resolution
4. stage_render - hypertext / plaintext output

Parsing and rendering are per document and run in worker pools; resolution
is a single pass over the whole corpus between them.
"""

from .inline import parse_inline
from .stage_load import CorpusLoader, CorpusRun, discover_sources, parse_source
from .stage_parse import MarkupParser, ParsedMarkup
from .stage_render import (
    BaseRenderer,
    HypertextRenderer,
    PlaintextRenderer,
    RenderContext,
    RenderOptions,
    get_renderer,
    render_document,
)
from .stage_resolve import CrossReferenceResolver, ResolutionResult, find_definitions

__all__ = [
    # Load
    "CorpusLoader",
    "CorpusRun",
    "discover_sources",
    "parse_source",
    # Parse
    "MarkupParser",
    "ParsedMarkup",
    "parse_inline",
    # Resolve
    "CrossReferenceResolver",
    "ResolutionResult",
    "find_definitions",
    # Render
    "BaseRenderer",
    "HypertextRenderer",
    "PlaintextRenderer",
    "RenderContext",
    "RenderOptions",
    "get_renderer",
    "render_document",
]
