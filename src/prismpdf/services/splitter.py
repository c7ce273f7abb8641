"""
PrismPDF - Batch Splitter

Splits a source document into single-page documents and packs them
into a ZIP archive.
"""

import logging
from collections.abc import Iterator

from prismpdf.editor.page_model import PageSet, SourceDocument
from prismpdf.services.document_backend import DocumentBackend, ZipArchiver
from prismpdf.services.page_builder import build, resolver_for

logger = logging.getLogger(__name__)


def split_entry_name(index: int) -> str:
    """Archive entry name for the page at 0-based ``index``."""
    return f"page-{index + 1}.pdf"


def split_all(
    source: SourceDocument,
    backend: DocumentBackend | None = None,
) -> Iterator[tuple[str, bytes]]:
    """Yield one single-page PDF per source page, in page order.

    No editor rotation is applied; each page keeps the rotation stored
    in the source. The iterator is lazy and can be consumed once.

    Yields:
        (entry name, PDF bytes) pairs
    """
    backend = backend or DocumentBackend()
    resolve = resolver_for([source])
    for index in range(source.page_count):
        page_set = PageSet.from_indices([index], source.key)
        yield split_entry_name(index), build(page_set, resolve, backend=backend)


def archive_split(
    source: SourceDocument,
    backend: DocumentBackend | None = None,
    archiver: ZipArchiver | None = None,
) -> bytes:
    """Split ``source`` and return the ZIP archive of its pages."""
    archiver = archiver or ZipArchiver()
    for name, data in split_all(source, backend):
        archiver.add_entry(name, data)
    logger.info("Split %s into %d pages", source.name, len(archiver))
    return archiver.generate()
