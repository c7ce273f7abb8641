"""
PrismPDF - Workspace Store

Durable storage for produced files. Each record is an opaque blob plus a
small metadata sidecar, keyed by a UUID generated at save time. Records
are written whole and never updated in place.

On disk a record is two files in the workspace directory:

    <id>.bin   the content
    <id>.json  the metadata (written last; its presence makes the record visible)
"""

import json
import logging
import mimetypes
import time
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Protocol

from prismpdf.constants import (
    FALLBACK_MIME_TYPE,
    ORPHAN_BLOB_MAX_AGE_SECONDS,
    PDF_MIME_TYPE,
    ZIP_MIME_TYPE,
)
from prismpdf.utils.exceptions import StorageError
from prismpdf.utils.file_utils import atomic_write_bytes

logger = logging.getLogger(__name__)

_KNOWN_TYPES = {
    ".pdf": PDF_MIME_TYPE,
    ".zip": ZIP_MIME_TYPE,
}

BLOB_SUFFIX = ".bin"
META_SUFFIX = ".json"


def guess_mime_type(name: str) -> str:
    """Guess the MIME type of a stored file from its name."""
    suffix = Path(name).suffix.lower()
    if suffix in _KNOWN_TYPES:
        return _KNOWN_TYPES[suffix]
    guessed, _encoding = mimetypes.guess_type(name)
    return guessed or FALLBACK_MIME_TYPE


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def _parse_id(file_id: str) -> str | None:
    """Canonical form of ``file_id``, or None if it is not a UUID."""
    try:
        return str(uuid.UUID(str(file_id)))
    except ValueError:
        return None


@dataclass(frozen=True)
class StoredFile:
    """Metadata of one workspace record. Content is fetched separately."""

    id: str
    name: str
    type: str
    size: int
    created_at: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredFile":
        """Create a record from a dictionary."""
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            type=str(data.get("type") or FALLBACK_MIME_TYPE),
            size=int(data["size"]),
            created_at=int(data["created_at"]),
        )


class WorkspaceBackend(Protocol):
    """Operations every workspace store provides."""

    def save(self, data: bytes, name: str, mime_type: str | None = None) -> StoredFile: ...

    def list(self) -> list[StoredFile]: ...

    def get(self, file_id: str) -> StoredFile | None: ...

    def get_content(self, file_id: str) -> bytes | None: ...

    def delete(self, file_id: str) -> None: ...


class WorkspaceStore:
    """Workspace store kept in a directory on disk."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser()

    def _blob_path(self, file_id: str) -> Path:
        return self.root / f"{file_id}{BLOB_SUFFIX}"

    def _meta_path(self, file_id: str) -> Path:
        return self.root / f"{file_id}{META_SUFFIX}"

    def save(self, data: bytes, name: str, mime_type: str | None = None) -> StoredFile:
        """Store ``data`` under a new id.

        Args:
            data: File content
            name: Display name of the file
            mime_type: MIME type; guessed from ``name`` when omitted

        Returns:
            Metadata of the new record

        Raises:
            StorageError: If the record cannot be written.
        """
        record = StoredFile(
            id=str(uuid.uuid4()),
            name=name,
            type=mime_type or guess_mime_type(name),
            size=len(data),
            created_at=now_ms(),
        )
        meta = record.to_dict()
        # Orders records created within the same millisecond
        meta["created_ns"] = time.time_ns()

        blob_path = self._blob_path(record.id)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(blob_path, data)
            try:
                atomic_write_bytes(
                    self._meta_path(record.id),
                    json.dumps(meta, indent=2).encode("utf-8"),
                )
            except OSError:
                blob_path.unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError("save", str(e), record.id) from e

        logger.info("Saved %s to workspace as %s (%d bytes)", name, record.id, record.size)
        return record

    def _read_meta(self, meta_path: Path) -> tuple[StoredFile, int] | None:
        try:
            with open(meta_path, encoding="utf-8") as f:
                data = json.load(f)
            record = StoredFile.from_dict(data)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping unreadable workspace record %s: %s", meta_path.name, e)
            return None
        order = int(data.get("created_ns") or record.created_at * 1_000_000)
        return record, order

    def _sweep_orphans(self) -> None:
        """Remove content files whose metadata was never written.

        A save interrupted between its two writes leaves such a file
        behind. Recent ones are kept since their save may still be running.
        """
        cutoff = time.time() - ORPHAN_BLOB_MAX_AGE_SECONDS
        for blob_path in self.root.glob(f"*{BLOB_SUFFIX}"):
            if _parse_id(blob_path.stem) != blob_path.stem:
                continue
            if self._meta_path(blob_path.stem).exists():
                continue
            try:
                if blob_path.stat().st_mtime >= cutoff:
                    continue
                blob_path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Could not remove orphaned content %s: %s", blob_path.name, e)
                continue
            logger.info("Removed orphaned workspace content %s", blob_path.name)

    def list(self) -> list[StoredFile]:
        """List stored records, newest first.

        Content left over from interrupted saves is removed on the way.

        Raises:
            StorageError: If the workspace directory cannot be read.
        """
        if not self.root.exists():
            return []

        entries: list[tuple[StoredFile, int]] = []
        try:
            self._sweep_orphans()
            for meta_path in self.root.glob(f"*{META_SUFFIX}"):
                if meta_path.name.startswith("."):
                    continue
                entry = self._read_meta(meta_path)
                if entry is None:
                    continue
                if not self._blob_path(entry[0].id).exists():
                    logger.warning("Workspace record %s has no content", entry[0].id)
                    continue
                entries.append(entry)
        except OSError as e:
            raise StorageError("list", str(e)) from e

        entries.sort(key=lambda entry: entry[1], reverse=True)
        return [record for record, _order in entries]

    def get(self, file_id: str) -> StoredFile | None:
        """Metadata of one record, or None if it does not exist."""
        canonical = _parse_id(file_id)
        if canonical is None:
            return None
        try:
            entry = self._read_meta(self._meta_path(canonical))
        except OSError as e:
            raise StorageError("read", str(e), canonical) from e
        return entry[0] if entry else None

    def get_content(self, file_id: str) -> bytes | None:
        """Content of one record, or None if it does not exist.

        Raises:
            StorageError: If the record exists but cannot be read.
        """
        canonical = _parse_id(file_id)
        if canonical is None or not self._meta_path(canonical).exists():
            return None
        try:
            return self._blob_path(canonical).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError("read", str(e), canonical) from e

    def delete(self, file_id: str) -> None:
        """Remove a record. Unknown ids are ignored.

        Raises:
            StorageError: If an existing record cannot be removed.
        """
        canonical = _parse_id(file_id)
        if canonical is None:
            return
        try:
            # Metadata first so the record disappears from listings at once
            self._meta_path(canonical).unlink(missing_ok=True)
            self._blob_path(canonical).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError("delete", str(e), canonical) from e
        logger.debug("Deleted workspace record %s", canonical)


class MemoryWorkspaceStore:
    """In-process workspace store with the same behaviour as WorkspaceStore.

    Used by tests and by sessions that should leave nothing on disk.
    """

    def __init__(self) -> None:
        # Insertion order doubles as the tie-breaker for equal timestamps
        self._records: dict[str, tuple[StoredFile, bytes]] = {}

    def save(self, data: bytes, name: str, mime_type: str | None = None) -> StoredFile:
        record = StoredFile(
            id=str(uuid.uuid4()),
            name=name,
            type=mime_type or guess_mime_type(name),
            size=len(data),
            created_at=now_ms(),
        )
        self._records[record.id] = (record, bytes(data))
        return record

    def list(self) -> list[StoredFile]:
        records = [record for record, _data in self._records.values()]
        records.reverse()
        # Stable sort keeps newest-inserted first among equal timestamps
        return sorted(records, key=lambda record: record.created_at, reverse=True)

    def get(self, file_id: str) -> StoredFile | None:
        canonical = _parse_id(file_id)
        entry = self._records.get(canonical) if canonical else None
        return entry[0] if entry else None

    def get_content(self, file_id: str) -> bytes | None:
        canonical = _parse_id(file_id)
        entry = self._records.get(canonical) if canonical else None
        return entry[1] if entry else None

    def delete(self, file_id: str) -> None:
        canonical = _parse_id(file_id)
        if canonical:
            self._records.pop(canonical, None)

