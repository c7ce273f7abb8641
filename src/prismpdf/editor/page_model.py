"""
PrismPDF - Page Model

Data models for source documents, page references and page sets.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from prismpdf.constants import FULL_TURN, ROTATION_STEP, VALID_ROTATIONS

if TYPE_CHECKING:
    import pikepdf


def new_identity() -> str:
    """Generate an opaque identity that is never reused."""
    return uuid.uuid4().hex


def normalize_rotation(degrees: int) -> int:
    """Normalize an angle to one of 0, 90, 180 or 270."""
    rotation = degrees % FULL_TURN
    if rotation not in VALID_ROTATIONS:
        # Round to nearest valid rotation
        rotation = round(rotation / ROTATION_STEP) * ROTATION_STEP % FULL_TURN
    return rotation


@dataclass
class SourceDocument:
    """A parsed input file, owned by the operation that loaded it.

    Attributes:
        name: Display name of the file (e.g. "report.pdf")
        data: The raw bytes the document was parsed from
        pdf: Parsed pikepdf handle; closed together with the document
        key: Identity used by page references to find this source
    """

    name: str
    data: bytes = field(repr=False)
    pdf: pikepdf.Pdf = field(repr=False)
    key: str = field(default_factory=new_identity)

    @property
    def page_count(self) -> int:
        return len(self.pdf.pages)

    @property
    def size(self) -> int:
        return len(self.data)

    def close(self) -> None:
        """Release the parsed document."""
        self.pdf.close()

    def __enter__(self) -> SourceDocument:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass
class PageRef:
    """Reference to one page of a source document.

    Attributes:
        source_index: 0-based page index within the owning source
        rotation: Rotation delta in degrees (0, 90, 180, 270), applied on
            top of whatever rotation the source page already carries
        source_key: Key of the owning SourceDocument
        id: Stable identity, independent of the page's position
    """

    source_index: int
    rotation: int = 0
    source_key: str = ""
    id: str = field(default_factory=new_identity)

    def __post_init__(self) -> None:
        if self.source_index < 0:
            raise ValueError(f"source_index must be >= 0, got {self.source_index}")
        self.rotation = normalize_rotation(self.rotation)

    @property
    def page_number(self) -> int:
        """1-based page number in the source document."""
        return self.source_index + 1

    def rotate(self, degrees: int) -> None:
        """Rotate page by specified degrees."""
        self.rotation = normalize_rotation(self.rotation + degrees)

    def rotate_right(self) -> None:
        """Rotate page 90 degrees clockwise."""
        self.rotation = (self.rotation + ROTATION_STEP) % FULL_TURN

    def rotate_left(self) -> None:
        """Rotate page 90 degrees counter-clockwise."""
        self.rotation = (self.rotation - ROTATION_STEP) % FULL_TURN

    def duplicate(self) -> PageRef:
        """Copy this reference under a fresh identity."""
        return PageRef(
            source_index=self.source_index,
            rotation=self.rotation,
            source_key=self.source_key,
        )


@dataclass
class PageSet:
    """Ordered page references defining one output document.

    Attributes:
        pages: PageRefs in output order
    """

    pages: list[PageRef] = field(default_factory=list)

    @classmethod
    def from_source(cls, source: SourceDocument) -> PageSet:
        """Create a page set covering every page of ``source`` in order."""
        return cls.from_page_count(source.page_count, source.key)

    @classmethod
    def from_page_count(cls, page_count: int, source_key: str = "") -> PageSet:
        """Create a page set for ``page_count`` pages of one source."""
        return cls([PageRef(source_index=i, source_key=source_key) for i in range(page_count)])

    @classmethod
    def from_indices(cls, indices: list[int], source_key: str = "") -> PageSet:
        """Create a page set from explicit 0-based source indices.

        Indices may repeat; every occurrence gets its own identity.
        """
        return cls([PageRef(source_index=i, source_key=source_key) for i in indices])

    def extend_from_source(self, source: SourceDocument) -> None:
        """Append every page of ``source`` after the current pages."""
        self.pages.extend(PageSet.from_source(source).pages)

    def __len__(self) -> int:
        return len(self.pages)

    def __iter__(self) -> Iterator[PageRef]:
        return iter(self.pages)

    def __getitem__(self, position: int) -> PageRef:
        return self.pages[position]

    @property
    def is_empty(self) -> bool:
        return not self.pages

    def ids(self) -> list[str]:
        return [page.id for page in self.pages]

    def find(self, page_id: str) -> PageRef | None:
        return next((page for page in self.pages if page.id == page_id), None)

    def index_of(self, page_id: str) -> int | None:
        for position, page in enumerate(self.pages):
            if page.id == page_id:
                return position
        return None

    def source_keys(self) -> list[str]:
        """Distinct source keys in order of first appearance."""
        return list(dict.fromkeys(page.source_key for page in self.pages))
