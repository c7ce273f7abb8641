"""
PrismPDF - Document Backend

Adapters over the external libraries the core consumes:

  - DocumentBackend: PDF structure (load, copy pages, rotation, save) via pikepdf
  - PageRenderer: page rasterization for previews via PyMuPDF
  - ZipArchiver: archive packaging via zipfile
  - image sources converted to single-page PDFs via Pillow

Nothing outside this module touches the libraries' object models directly.
"""

import base64
import io
import logging
import zipfile
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

import fitz
import pikepdf
from PIL import Image, ImageOps, UnidentifiedImageError

from prismpdf.constants import DEFAULT_PREVIEW_SCALE, IMAGE_EXTENSIONS, PNG_MIME_TYPE
from prismpdf.editor.page_model import SourceDocument, normalize_rotation
from prismpdf.utils.exceptions import PageIndexError, ParseError, SerializeError, SourceReadError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# PDF structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SaveOptions:
    """Serialization options for ``DocumentBackend.save``.

    Attributes:
        object_streams: Pack objects into object streams (smaller output)
        compress_streams: Flate-compress uncompressed content streams
        remove_unreferenced: Drop resources no page refers to before saving
    """

    object_streams: bool = False
    compress_streams: bool = True
    remove_unreferenced: bool = False


class DocumentBackend:
    """PDF document operations implemented with pikepdf."""

    def load(self, data: bytes, name: str = "") -> pikepdf.Pdf:
        """Parse a byte stream into a document.

        Raises:
            ParseError: If the bytes are not a usable PDF.
        """
        try:
            return pikepdf.open(io.BytesIO(data))
        except pikepdf.PasswordError as e:
            raise ParseError(name, "the document is password-protected") from e
        except pikepdf.PdfError as e:
            raise ParseError(name, str(e)) from e

    def create_empty(self) -> pikepdf.Pdf:
        return pikepdf.Pdf.new()

    def copy_pages(
        self,
        source: pikepdf.Pdf,
        indices: Sequence[int],
        source_name: str = "",
    ) -> list[pikepdf.Page]:
        """Collect page handles for ``indices`` from ``source``.

        The page content is copied into the target when the handle is
        passed to ``add_page``.

        Raises:
            PageIndexError: If any index is outside the source page range.
        """
        total = len(source.pages)
        for index in indices:
            if not 0 <= index < total:
                raise PageIndexError(index, total, source_name or None)
        return [source.pages[index] for index in indices]

    def add_page(self, document: pikepdf.Pdf, handle: pikepdf.Page) -> pikepdf.Page:
        """Append a page to ``document`` and return the appended copy."""
        document.pages.append(handle)
        return document.pages[-1]

    def get_rotation(self, handle: pikepdf.Page) -> int:
        """Resolve the effective /Rotate of a page, including inherited values."""
        node = handle.obj
        seen: set[tuple[int, int]] = set()
        while node is not None:
            if "/Rotate" in node:
                return normalize_rotation(int(node["/Rotate"]))
            if node.is_indirect:
                if node.objgen in seen:
                    break
                seen.add(node.objgen)
            node = node.get("/Parent")
        return 0

    def set_rotation(self, handle: pikepdf.Page, degrees: int) -> None:
        """Set the absolute rotation of a page."""
        rotation = normalize_rotation(degrees)
        if rotation != 0:
            handle.Rotate = rotation
        elif "/Rotate" in handle.obj:
            del handle.obj["/Rotate"]

    def save(self, document: pikepdf.Pdf, options: SaveOptions | None = None) -> bytes:
        """Serialize ``document`` to bytes.

        Raises:
            SerializeError: If pikepdf cannot encode the document.
        """
        options = options or SaveOptions()
        mode = (
            pikepdf.ObjectStreamMode.generate
            if options.object_streams
            else pikepdf.ObjectStreamMode.preserve
        )
        buffer = io.BytesIO()
        try:
            if options.remove_unreferenced:
                document.remove_unreferenced_resources()
            document.save(
                buffer,
                compress_streams=options.compress_streams,
                object_stream_mode=mode,
            )
        except (pikepdf.PdfError, OSError, ValueError) as e:
            raise SerializeError(str(e)) from e
        return buffer.getvalue()


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


def is_image_name(name: str) -> bool:
    return name.lower().endswith(IMAGE_EXTENSIONS)


def image_to_pdf(data: bytes, name: str = "") -> bytes:
    """Convert an image file into a single-page PDF.

    Raises:
        ParseError: If Pillow cannot decode the image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            page = ImageOps.exif_transpose(img)
            if page.mode in ("RGBA", "LA", "P"):
                page = page.convert("RGB")
            buffer = io.BytesIO()
            page.save(buffer, format="PDF")
    except Image.DecompressionBombError as e:
        raise ParseError(name, f"image is too large: {e}") from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ParseError(name, f"unsupported image: {e}") from e
    return buffer.getvalue()


def read_source_bytes(path: str | Path) -> bytes:
    """Read an input file from disk.

    Raises:
        SourceReadError: If the file cannot be read.
    """
    path = Path(path)
    try:
        return path.read_bytes()
    except OSError as e:
        raise SourceReadError(str(path), e.strerror or str(e)) from e


def open_source(
    data: bytes,
    name: str,
    backend: DocumentBackend | None = None,
    key: str | None = None,
) -> SourceDocument:
    """Parse input bytes into a SourceDocument.

    Image files (by extension) are converted to a one-page PDF first.

    Args:
        data: Raw file content
        name: Display name, also used to detect image inputs
        backend: Document backend to parse with
        key: Optional source key; page references use it to find the source

    Raises:
        ParseError: If the content is not a valid PDF or image.
    """
    backend = backend or DocumentBackend()
    if is_image_name(name):
        data = image_to_pdf(data, name)
    pdf = backend.load(data, name)
    source = SourceDocument(name=name, data=data, pdf=pdf)
    if key:
        source.key = key
    logger.debug("Opened source %s (%d pages)", name, source.page_count)
    return source


def reopen_source(source: SourceDocument, backend: DocumentBackend | None = None) -> SourceDocument:
    """Parse ``source`` again into an independent document with the same key.

    The copy has its own pikepdf handle, so closing either one leaves the
    other usable.
    """
    backend = backend or DocumentBackend()
    pdf = backend.load(source.data, source.name)
    return SourceDocument(name=source.name, data=source.data, pdf=pdf, key=source.key)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class PageRenderer:
    """Page rasterization for previews, implemented with PyMuPDF."""

    def _open(self, data: bytes) -> fitz.Document:
        try:
            return fitz.open(stream=data, filetype="pdf")
        except (fitz.FileDataError, RuntimeError, ValueError) as e:
            raise ParseError("preview", str(e)) from e

    def get_page_count(self, data: bytes) -> int:
        with self._open(data) as doc:
            return doc.page_count

    def render_page_to_image(
        self,
        data: bytes,
        page_number: int,
        scale: float = DEFAULT_PREVIEW_SCALE,
    ) -> str:
        """Render one page to a PNG data URI.

        Args:
            data: PDF bytes
            page_number: 1-based page number
            scale: Zoom factor (1.0 = 72 dpi)

        Raises:
            PageIndexError: If ``page_number`` is outside the document.
        """
        with self._open(data) as doc:
            if not 1 <= page_number <= doc.page_count:
                raise PageIndexError(page_number - 1, doc.page_count)
            pixmap = doc[page_number - 1].get_pixmap(matrix=fitz.Matrix(scale, scale))
            png = pixmap.tobytes("png")
        return to_data_uri(png)

    def render_thumbnails(self, data: bytes, scale: float) -> Iterator[str]:
        """Render every page in order, one data URI at a time."""
        with self._open(data) as doc:
            matrix = fitz.Matrix(scale, scale)
            for page in doc:
                yield to_data_uri(page.get_pixmap(matrix=matrix).tobytes("png"))


def to_data_uri(png: bytes, mime_type: str = PNG_MIME_TYPE) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(png).decode('ascii')}"


def from_data_uri(uri: str) -> bytes:
    """Decode the payload of a base64 data URI."""
    header, _, payload = uri.partition(",")
    if not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Not a base64 data URI")
    return base64.b64decode(payload)


# ---------------------------------------------------------------------------
# Archiving
# ---------------------------------------------------------------------------


class ZipArchiver:
    """Collects named entries into an in-memory ZIP archive."""

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED) -> None:
        self._buffer = io.BytesIO()
        self._zip: zipfile.ZipFile | None = zipfile.ZipFile(self._buffer, "w", compression)
        self._names: set[str] = set()

    def add_entry(self, name: str, data: bytes) -> None:
        if self._zip is None:
            raise ValueError("Archive already generated")
        if name in self._names:
            raise ValueError(f"Duplicate archive entry: {name}")
        self._zip.writestr(name, data)
        self._names.add(name)

    def generate(self) -> bytes:
        """Finish the archive and return its bytes."""
        if self._zip is not None:
            self._zip.close()
            self._zip = None
        return self._buffer.getvalue()

    def __len__(self) -> int:
        return len(self._names)
