"""
PrismPDF - Page-Set Builder

Materializes a PageSet into a new PDF byte stream. Pages are copied from
each source in one batch, then emitted in page-set order with the
page's rotation delta added on top of the rotation the source page
already carries.
"""

import logging
from collections.abc import Callable, Iterable

import pikepdf

from prismpdf.editor.page_model import PageRef, PageSet, SourceDocument
from prismpdf.services.document_backend import DocumentBackend, SaveOptions
from prismpdf.utils.exceptions import EmptySelectionError, SourceReadError

logger = logging.getLogger(__name__)

# Maps a page reference to its owning source and the page index to copy
Resolver = Callable[[PageRef], tuple[SourceDocument, int]]


def resolver_for(sources: Iterable[SourceDocument]) -> Resolver:
    """Create a resolver that looks sources up by key.

    Raises:
        ValueError: If two different sources share a key.
        SourceReadError: From the returned callable, if a reference names
            a source that is not loaded.
    """
    by_key: dict[str, SourceDocument] = {}
    for source in sources:
        if source.key in by_key and by_key[source.key] is not source:
            raise ValueError(f"sources {by_key[source.key].name} and {source.name} share a key")
        by_key[source.key] = source

    def resolve(ref: PageRef) -> tuple[SourceDocument, int]:
        source = by_key.get(ref.source_key)
        if source is None:
            raise SourceReadError(ref.source_key or "<unknown>", "source is not loaded")
        return source, ref.source_index

    return resolve


def _copy_by_source(
    resolved: list[tuple[SourceDocument, int]],
    backend: DocumentBackend,
) -> list[pikepdf.Page]:
    """Fetch page handles with one copy call per source, in page-set order."""
    # Keyed by document identity; source keys need not be unique here
    groups: dict[int, tuple[SourceDocument, list[int]]] = {}
    for position, (source, _index) in enumerate(resolved):
        groups.setdefault(id(source), (source, []))[1].append(position)

    handles: list[pikepdf.Page | None] = [None] * len(resolved)
    for source, positions in groups.values():
        indices = [resolved[position][1] for position in positions]
        copied = backend.copy_pages(source.pdf, indices, source.name)
        for position, handle in zip(positions, copied):
            handles[position] = handle
    return handles  # type: ignore[return-value]


def build(
    page_set: PageSet,
    resolve: Resolver,
    *,
    backend: DocumentBackend | None = None,
    options: SaveOptions | None = None,
) -> bytes:
    """Build a new PDF from a page set.

    Args:
        page_set: Pages in output order
        resolve: Maps each PageRef to (source, page index)
        backend: Document backend (defaults to pikepdf)
        options: Serialization options for the output

    Returns:
        The complete output document. Nothing is returned on failure.

    Raises:
        EmptySelectionError: If the page set is empty.
        SourceReadError: If a source cannot be resolved or read.
        PageIndexError: If a page index is out of range for its source.
        SerializeError: If the output cannot be encoded.
    """
    if page_set.is_empty:
        raise EmptySelectionError("build", "the page set is empty")

    backend = backend or DocumentBackend()
    resolved = [resolve(ref) for ref in page_set]
    handles = _copy_by_source(resolved, backend)

    output = backend.create_empty()
    try:
        for ref, (source, _index), handle in zip(page_set, resolved, handles):
            try:
                existing = backend.get_rotation(handle)
                page = backend.add_page(output, handle)
            except pikepdf.PdfError as e:
                raise SourceReadError(source.name, str(e)) from e
            backend.set_rotation(page, existing + ref.rotation)

        data = backend.save(output, options)
    finally:
        output.close()

    logger.info("Built document with %d pages (%d bytes)", len(page_set), len(data))
    return data


def build_from_sources(
    page_set: PageSet,
    sources: Iterable[SourceDocument],
    *,
    backend: DocumentBackend | None = None,
    options: SaveOptions | None = None,
) -> bytes:
    """Build a page set whose references point at ``sources`` by key."""
    return build(page_set, resolver_for(sources), backend=backend, options=options)
