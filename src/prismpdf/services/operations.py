"""
PrismPDF - Operations Service

User-initiated workflows built on the page model, the builder, the
splitter and the workspace store:

  - Merge several files into one
  - Extract selected pages / split every page into a ZIP archive
  - Reorder, rotate and delete pages, then save
  - Compress (re-serialize with object streams)
  - Open a stored workspace file as a source

Each workflow runs its blocking steps one at a time in a worker thread.
A busy flag per workflow ignores repeated triggers while one run is
pending, and results are dropped once the caller detaches its session.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any

from prismpdf.config import (
    EXTRACTED_FILENAME,
    MERGED_FILENAME,
    OPTIMIZED_PREFIX,
    ORGANIZED_FILENAME,
    SPLIT_ARCHIVE_FILENAME,
)
from prismpdf.constants import (
    MIN_MERGE_INPUTS,
    PDF_MIME_TYPE,
    REORDER_PREVIEW_SCALE,
    SPLIT_PREVIEW_SCALE,
    ZIP_MIME_TYPE,
)
from prismpdf.editor.page_model import PageSet, SourceDocument, new_identity
from prismpdf.editor.page_operations import (
    PageSelection,
    can_save,
    move_item,
    move_page,
    move_page_over,
    page_set_from_selection,
    remove_item,
    remove_page,
    toggle_rotate,
)
from prismpdf.services.document_backend import (
    DocumentBackend,
    PageRenderer,
    SaveOptions,
    open_source,
    read_source_bytes,
    reopen_source,
)
from prismpdf.services.page_builder import build_from_sources
from prismpdf.services.splitter import archive_split
from prismpdf.services.workspace_store import StoredFile, WorkspaceBackend
from prismpdf.utils.config_manager import ConfigManager
from prismpdf.utils.exceptions import (
    EmptySelectionError,
    PrismPdfError,
    SourceReadError,
    StorageError,
)
from prismpdf.utils.file_utils import atomic_write_bytes
from prismpdf.utils.format_utils import format_file_size, format_reduction
from prismpdf.utils.i18n import _

logger = logging.getLogger(__name__)

# notify(level, message); level is one of "info", "success", "warning", "error"
Notifier = Callable[[str, str], None]


class Destination(Enum):
    """Where a workflow delivers its output."""

    DOWNLOAD = auto()
    WORKSPACE = auto()


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class SourceInput:
    """An input file that has not been parsed yet.

    Attributes:
        name: Display name (e.g. "report.pdf")
        read: Callable returning the file content; runs in a worker thread
        id: Stable identity, used to reorder merge inputs
    """

    name: str
    read: Callable[[], bytes] = field(repr=False)
    id: str = field(default_factory=new_identity)

    @classmethod
    def from_path(cls, path: str | Path) -> "SourceInput":
        path = Path(path)
        return cls(name=path.name, read=lambda: read_source_bytes(path))

    @classmethod
    def from_bytes(cls, data: bytes, name: str) -> "SourceInput":
        return cls(name=name, read=lambda: data)

    @classmethod
    def from_workspace(cls, store: WorkspaceBackend, file_id: str) -> "SourceInput":
        """Use a stored workspace file as a source.

        Raises:
            SourceReadError: If no record with ``file_id`` exists.
        """
        record = store.get(file_id)
        if record is None:
            raise SourceReadError(f"workspace:{file_id}", _("no such workspace file"))

        def read() -> bytes:
            content = store.get_content(record.id)
            if content is None:
                raise SourceReadError(record.name, _("the workspace file was deleted"))
            return content

        return cls(name=record.name, read=read)


@dataclass
class OperationResult:
    """Outcome of one workflow run."""

    success: bool
    message: str = ""
    output_path: str = ""
    stored: StoredFile | None = None
    pages_affected: int = 0
    data: bytes = field(default=b"", repr=False)
    error: Exception | None = None


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


class OperationGuard:
    """Busy flag that admits one run at a time."""

    def __init__(self) -> None:
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def try_acquire(self) -> bool:
        """Mark the guard busy. Returns False if it already was."""
        if self._busy:
            return False
        self._busy = True
        return True

    def release(self) -> None:
        self._busy = False


class OperationSession:
    """The caller a workflow reports to.

    Once detached (e.g. the user navigated away) nothing more is
    delivered: pending results are discarded and no notifications fire.
    """

    def __init__(self, notifier: Notifier | None = None) -> None:
        self._notifier = notifier
        self._attached = True

    @property
    def attached(self) -> bool:
        return self._attached

    def detach(self) -> None:
        self._attached = False

    def notify(self, level: str, message: str) -> None:
        if self._attached and self._notifier is not None:
            self._notifier(level, message)


def _friendly_error(e: Exception) -> str:
    """Map failures to a one-line message for the user."""
    if isinstance(e, FileNotFoundError):
        return _("Could not find the file. Was it moved or deleted?")
    if isinstance(e, PermissionError):
        return _("Cannot write to this location. Choose a different one.")
    if isinstance(e, PrismPdfError):
        return e.message
    return str(e)


# ---------------------------------------------------------------------------
# Workflow base
# ---------------------------------------------------------------------------


class Workflow:
    """Shared plumbing for the user-facing workflows.

    Args:
        store: Workspace store used for the WORKSPACE destination
        session: Session results and notifications are delivered to
        backend: Document backend
        renderer: Page renderer for previews
        settings: Optional settings for output names and compression
    """

    def __init__(
        self,
        store: WorkspaceBackend | None = None,
        session: OperationSession | None = None,
        backend: DocumentBackend | None = None,
        renderer: PageRenderer | None = None,
        settings: ConfigManager | None = None,
    ) -> None:
        self.store = store
        self.session = session or OperationSession()
        self.backend = backend or DocumentBackend()
        self.renderer = renderer or PageRenderer()
        self.settings = settings
        self.guard = OperationGuard()

    @property
    def busy(self) -> bool:
        return self.guard.busy

    def setting(self, key_path: str, default: Any) -> Any:
        if self.settings is None:
            return default
        return self.settings.get(key_path, default)

    async def _load(self, source_input: SourceInput) -> SourceDocument:
        data = await asyncio.to_thread(source_input.read)
        return await asyncio.to_thread(open_source, data, source_input.name, self.backend)

    async def _run(
        self,
        label: str,
        job: Callable[[], Awaitable[OperationResult | None]],
    ) -> OperationResult | None:
        """Run ``job`` under the guard.

        Returns:
            The job's result, a failed result if it raised, or None when
            the run was ignored (already busy) or discarded (detached).
        """
        if not self.guard.try_acquire():
            logger.info("%s already in progress, ignoring trigger", label)
            return None

        try:
            result = await job()
        except (PrismPdfError, OSError) as e:
            logger.error("%s failed: %s", label, e)
            if not self.session.attached:
                return None
            message = _friendly_error(e)
            self.session.notify("error", message)
            return OperationResult(success=False, message=message, error=e)
        finally:
            self.guard.release()

        if result is None or not self.session.attached:
            logger.debug("%s result discarded, session detached", label)
            return None
        self.session.notify("success", result.message)
        return result

    async def _deliver(
        self,
        data: bytes,
        name: str,
        mime_type: str,
        destination: Destination,
        output_path: str | Path | None,
    ) -> OperationResult | None:
        """Hand finished output to the user or the workspace.

        Returns None without writing anything if the session detached.
        """
        if not self.session.attached:
            return None

        if destination is Destination.WORKSPACE:
            if self.store is None:
                raise StorageError("save", _("no workspace store configured"))
            record = await asyncio.to_thread(self.store.save, data, name, mime_type)
            return OperationResult(
                success=True,
                message=_("Saved {name} to workspace").format(name=name),
                stored=record,
                data=data,
            )

        target = Path(output_path) if output_path else Path.cwd() / name
        if target.is_dir():
            target = target / name
        await asyncio.to_thread(atomic_write_bytes, target, data)
        logger.info("Wrote %s (%s)", target, format_file_size(len(data)))
        return OperationResult(
            success=True,
            message=_("Saved {path}").format(path=target),
            output_path=str(target),
            data=data,
        )


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


class MergeWorkflow(Workflow):
    """Merge several files, in a user-arranged order, into one PDF."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.inputs: list[SourceInput] = []

    def add_input(self, source_input: SourceInput) -> None:
        self.inputs.append(source_input)

    def remove_input(self, input_id: str) -> bool:
        return remove_item(self.inputs, input_id)

    def move_input(self, input_id: str, to_index: int) -> bool:
        return move_item(self.inputs, input_id, to_index)

    @property
    def can_merge(self) -> bool:
        return len(self.inputs) >= MIN_MERGE_INPUTS

    async def merge(
        self,
        destination: Destination = Destination.DOWNLOAD,
        output_path: str | Path | None = None,
        name: str | None = None,
    ) -> OperationResult | None:
        """Merge every input, in list order, into one document."""
        name = name or self.setting("output.merged_name", MERGED_FILENAME)
        inputs = list(self.inputs)

        async def job() -> OperationResult | None:
            if len(inputs) < MIN_MERGE_INPUTS:
                raise EmptySelectionError(
                    "merge", _("select at least {n} files").format(n=MIN_MERGE_INPUTS)
                )
            sources: list[SourceDocument] = []
            try:
                page_set = PageSet()
                for source_input in inputs:
                    source = await self._load(source_input)
                    sources.append(source)
                    page_set.extend_from_source(source)
                data = await asyncio.to_thread(
                    build_from_sources, page_set, sources, backend=self.backend
                )
            finally:
                for source in sources:
                    source.close()

            result = await self._deliver(data, name, PDF_MIME_TYPE, destination, output_path)
            if result is not None:
                result.pages_affected = len(page_set)
            return result

        return await self._run("Merge", job)


# ---------------------------------------------------------------------------
# Shared state for single-source screens
# ---------------------------------------------------------------------------


class _SourceWorkflow(Workflow):
    """Workflow that works on one loaded source at a time."""

    preview_scale_key = ""
    default_preview_scale = 1.0

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.source: SourceDocument | None = None

    @property
    def page_count(self) -> int:
        return self.source.page_count if self.source else 0

    def _require_source(self, operation: str) -> SourceDocument:
        if self.source is None:
            raise EmptySelectionError(operation, _("no file is open"))
        return self.source

    async def open(self, source_input: SourceInput) -> int:
        """Load a new source, replacing the current one.

        Returns:
            Page count of the loaded document
        """
        source = await self._load(source_input)
        self.close()
        self.source = source
        self._on_open()
        logger.info("Opened %s with %d pages", source.name, source.page_count)
        return source.page_count

    def _on_open(self) -> None:
        """Reset per-document state after a new source is loaded."""

    async def _private_copy(self, source: SourceDocument) -> SourceDocument:
        """Parse a copy of ``source`` owned by a single run.

        ``open()`` may replace and close the current source while a run
        is still copying pages, so runs never build from ``self.source``.
        """
        return await asyncio.to_thread(reopen_source, source, self.backend)

    async def previews(self, scale: float | None = None) -> list[str]:
        """Render every page of the current source as a PNG data URI."""
        if self.source is None:
            return []
        scale = scale or self.setting(self.preview_scale_key, self.default_preview_scale)
        data = self.source.data
        return await asyncio.to_thread(
            lambda: list(self.renderer.render_thumbnails(data, scale))
        )

    def close(self) -> None:
        if self.source is not None:
            self.source.close()
            self.source = None


# ---------------------------------------------------------------------------
# Split
# ---------------------------------------------------------------------------


class SplitWorkflow(_SourceWorkflow):
    """Extract selected pages or split every page of one document.

    Extraction and split-all share one busy flag, so only one of them
    can run at a time.
    """

    preview_scale_key = "preview.split_scale"
    default_preview_scale = SPLIT_PREVIEW_SCALE

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.selection = PageSelection()

    def _on_open(self) -> None:
        self.selection.clear()

    def toggle_select(self, index: int) -> bool:
        return self.selection.toggle(index)

    def select_all(self) -> None:
        self.selection.select_all(self.page_count)

    def clear_selection(self) -> None:
        self.selection.clear()

    async def extract_selected(
        self,
        destination: Destination = Destination.DOWNLOAD,
        output_path: str | Path | None = None,
        name: str | None = None,
    ) -> OperationResult | None:
        """Build a document from the selected pages, in source order."""
        name = name or self.setting("output.extracted_name", EXTRACTED_FILENAME)

        async def job() -> OperationResult | None:
            source = self._require_source("extract")
            if not self.selection:
                raise EmptySelectionError("extract", _("no pages selected"))
            page_set = page_set_from_selection(source, self.selection)
            with await self._private_copy(source) as copy:
                data = await asyncio.to_thread(
                    build_from_sources, page_set, [copy], backend=self.backend
                )
            result = await self._deliver(data, name, PDF_MIME_TYPE, destination, output_path)
            if result is not None:
                result.pages_affected = len(page_set)
            return result

        return await self._run("Extract", job)

    async def split_all(
        self,
        destination: Destination = Destination.DOWNLOAD,
        output_path: str | Path | None = None,
        name: str | None = None,
    ) -> OperationResult | None:
        """Split every page into its own PDF and pack them into a ZIP."""
        name = name or self.setting("output.split_archive_name", SPLIT_ARCHIVE_FILENAME)

        async def job() -> OperationResult | None:
            source = self._require_source("split")
            page_count = source.page_count
            if page_count == 0:
                raise EmptySelectionError("split", _("the document has no pages"))
            with await self._private_copy(source) as copy:
                data = await asyncio.to_thread(archive_split, copy, self.backend)
            result = await self._deliver(data, name, ZIP_MIME_TYPE, destination, output_path)
            if result is not None:
                result.pages_affected = page_count
            return result

        return await self._run("Split", job)


# ---------------------------------------------------------------------------
# Reorder
# ---------------------------------------------------------------------------


class ReorderWorkflow(_SourceWorkflow):
    """Reorder, rotate and delete the pages of one document."""

    preview_scale_key = "preview.reorder_scale"
    default_preview_scale = REORDER_PREVIEW_SCALE

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.page_set = PageSet()

    def _on_open(self) -> None:
        self.page_set = PageSet.from_source(self.source)

    def move(self, page_id: str, to_index: int) -> bool:
        return move_page(self.page_set, page_id, to_index)

    def move_over(self, active_id: str, over_id: str) -> bool:
        return move_page_over(self.page_set, active_id, over_id)

    def rotate(self, page_id: str) -> bool:
        return toggle_rotate(self.page_set, page_id)

    def remove(self, page_id: str) -> bool:
        return remove_page(self.page_set, page_id)

    def duplicate(self, page_id: str) -> str | None:
        """Insert a copy of a page right after it.

        Returns:
            Identity of the new page, or None if ``page_id`` is unknown
        """
        position = self.page_set.index_of(page_id)
        if position is None:
            return None
        copy = self.page_set[position].duplicate()
        self.page_set.pages.insert(position + 1, copy)
        return copy.id

    @property
    def can_save(self) -> bool:
        return self.source is not None and can_save(self.page_set)

    async def save(
        self,
        destination: Destination = Destination.DOWNLOAD,
        output_path: str | Path | None = None,
        name: str | None = None,
    ) -> OperationResult | None:
        """Write the pages in their current order and rotation."""
        name = name or self.setting("output.organized_name", ORGANIZED_FILENAME)

        async def job() -> OperationResult | None:
            source = self._require_source("save")
            if not can_save(self.page_set):
                raise EmptySelectionError("save", _("every page was removed"))
            # Snapshot so edits made while building do not leak into this output
            page_set = PageSet([ref.duplicate() for ref in self.page_set])
            with await self._private_copy(source) as copy:
                data = await asyncio.to_thread(
                    build_from_sources, page_set, [copy], backend=self.backend
                )
            result = await self._deliver(data, name, PDF_MIME_TYPE, destination, output_path)
            if result is not None:
                result.pages_affected = len(page_set)
            return result

        return await self._run("Reorder", job)


# ---------------------------------------------------------------------------
# Compress
# ---------------------------------------------------------------------------


class CompressWorkflow(Workflow):
    """Re-serialize a document with object streams to reduce its size."""

    async def compress(
        self,
        source_input: SourceInput,
        destination: Destination = Destination.DOWNLOAD,
        output_path: str | Path | None = None,
    ) -> OperationResult | None:
        prefix = self.setting("output.optimized_prefix", OPTIMIZED_PREFIX)
        options = SaveOptions(
            object_streams=bool(self.setting("compress.object_streams", True)),
            remove_unreferenced=True,
        )
        name = f"{prefix}{source_input.name}"

        async def job() -> OperationResult | None:
            source = await self._load(source_input)
            with source:
                original_size = source.size
                page_count = source.page_count
                data = await asyncio.to_thread(self.backend.save, source.pdf, options)

            result = await self._deliver(data, name, PDF_MIME_TYPE, destination, output_path)
            if result is not None:
                result.pages_affected = page_count
                result.message = _("{message} ({size}, {reduction} smaller)").format(
                    message=result.message,
                    size=format_file_size(len(data)),
                    reduction=format_reduction(original_size, len(data)),
                )
            return result

        return await self._run("Compress", job)
