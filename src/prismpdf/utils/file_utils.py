"""
PrismPDF - File Utilities Module

Atomic file writes shared by the workspace store and download delivery.
"""

import os
from pathlib import Path


def temp_path_for(path: Path) -> Path:
    """Return the hidden sibling used while ``path`` is being written."""
    return path.with_name(f".{path.name}.tmp")


def atomic_write_bytes(path: str | Path, data: bytes) -> Path:
    """Write ``data`` to ``path`` so readers see either nothing or all of it.

    The bytes go to a temporary sibling first and are renamed into place.

    Raises:
        OSError: If the write or the rename fails. The temporary file is
            removed before the error propagates.
    """
    path = Path(path)
    temp_path = temp_path_for(path)
    try:
        with open(temp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        temp_path.replace(path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
    return path
