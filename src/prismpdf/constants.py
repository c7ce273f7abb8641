"""
PrismPDF - Numeric Constants

Simple constants with ZERO internal imports to avoid circular dependencies.
For application-level constants (strings, paths), use config.py.
"""

from typing import Final

# ============================================================================
# Size Constants
# ============================================================================

BYTES_PER_MB: Final[int] = 1024 * 1024

# ============================================================================
# Page Rotation
# ============================================================================

VALID_ROTATIONS: Final[tuple[int, ...]] = (0, 90, 180, 270)
ROTATION_STEP: Final[int] = 90
FULL_TURN: Final[int] = 360

# ============================================================================
# Preview Rendering
# ============================================================================

SPLIT_PREVIEW_SCALE: Final[float] = 0.5
REORDER_PREVIEW_SCALE: Final[float] = 0.4
DEFAULT_PREVIEW_SCALE: Final[float] = 1.0

# ============================================================================
# MIME Types
# ============================================================================

PDF_MIME_TYPE: Final[str] = "application/pdf"
ZIP_MIME_TYPE: Final[str] = "application/zip"
PNG_MIME_TYPE: Final[str] = "image/png"
FALLBACK_MIME_TYPE: Final[str] = "application/octet-stream"

# ============================================================================
# Image Sources
# ============================================================================

IMAGE_EXTENSIONS: Final[tuple[str, ...]] = (
    ".jpg",
    ".jpeg",
    ".png",
    ".webp",
    ".tif",
    ".tiff",
    ".bmp",
)

# ============================================================================
# Operations
# ============================================================================

MIN_MERGE_INPUTS: Final[int] = 2

# ============================================================================
# Workspace
# ============================================================================

# Content files with no metadata older than this are left over from an
# interrupted save and get removed
ORPHAN_BLOB_MAX_AGE_SECONDS: Final[int] = 60 * 60
