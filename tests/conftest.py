"""Pytest configuration for prismpdf tests.

Test documents are built in memory with pikepdf. Every page gets a
distinct MediaBox width (``base_width + page index``) so tests can tell
which source page ended up where in an output document.
"""

import io

import pikepdf
import pytest

from prismpdf.editor.page_model import SourceDocument
from prismpdf.services.document_backend import DocumentBackend, open_source


def make_pdf_bytes(
    num_pages: int = 3,
    base_width: int = 100,
    rotations: dict[int, int] | None = None,
    tree_rotation: int | None = None,
) -> bytes:
    """Create a PDF whose page ``i`` is ``base_width + i`` points wide.

    Args:
        num_pages: Number of pages
        base_width: Width of the first page
        rotations: Optional /Rotate values keyed by 0-based page index
        tree_rotation: Optional /Rotate on the page tree root, inherited by
            every page without its own value
    """
    pdf = pikepdf.Pdf.new()
    for i in range(num_pages):
        page = pikepdf.Page(
            pikepdf.Dictionary(
                Type=pikepdf.Name.Page,
                MediaBox=[0, 0, base_width + i, 200],
                Contents=pdf.make_stream(b"0 0 m 10 10 l S"),
            )
        )
        pdf.pages.append(page)
        if rotations and rotations.get(i):
            pdf.pages[-1].Rotate = rotations[i]
    if tree_rotation is not None:
        pdf.Root.Pages.Rotate = tree_rotation
    buffer = io.BytesIO()
    pdf.save(buffer)
    return buffer.getvalue()


def page_widths(data: bytes) -> list[int]:
    """MediaBox widths of every page, in order."""
    with pikepdf.open(io.BytesIO(data)) as pdf:
        return [int(page.mediabox[2]) for page in pdf.pages]


def page_rotations(data: bytes) -> list[int]:
    """Effective rotation of every page, in order."""
    backend = DocumentBackend()
    with pikepdf.open(io.BytesIO(data)) as pdf:
        return [backend.get_rotation(page) for page in pdf.pages]


def page_count(data: bytes) -> int:
    with pikepdf.open(io.BytesIO(data)) as pdf:
        return len(pdf.pages)


def pages_have_contents(data: bytes) -> bool:
    """True if every page still carries its content stream."""
    with pikepdf.open(io.BytesIO(data)) as pdf:
        return all(pikepdf.Name.Contents in page.obj for page in pdf.pages)


@pytest.fixture
def make_source():
    """Factory for SourceDocuments; every source is closed after the test."""
    opened: list[SourceDocument] = []

    def factory(num_pages: int = 3, name: str = "doc.pdf", **kwargs) -> SourceDocument:
        source = open_source(make_pdf_bytes(num_pages, **kwargs), name)
        opened.append(source)
        return source

    yield factory

    for source in opened:
        source.close()


@pytest.fixture
def pdf_file(tmp_path):
    """Factory writing a test PDF to disk and returning its path."""

    def factory(name: str = "input.pdf", num_pages: int = 3, **kwargs):
        path = tmp_path / name
        path.write_bytes(make_pdf_bytes(num_pages, **kwargs))
        return path

    return factory
