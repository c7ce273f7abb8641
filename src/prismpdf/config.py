#!/usr/bin/env python3
"""
PrismPDF - Configuration Module

This module contains all configuration constants and paths used by the application.
"""

import logging
import os
from pathlib import Path
from typing import Final

from prismpdf.utils.i18n import _

# ============================================================================
# Application Constants
# ============================================================================

APP_NAME: Final[str] = "PrismPDF"
APP_ID: Final[str] = "io.github.prismpdf"
APP_VERSION: Final[str] = "1.0.0"
APP_DESCRIPTION: Final[str] = _("Merge, split and reorganize PDF files on your own device")


# ============================================================================
# Paths
# ============================================================================

CONFIG_DIR: Final[str] = os.path.expanduser("~/.config/prismpdf")
CONFIG_FILE_PATH: Final[str] = os.path.join(CONFIG_DIR, "settings.json")

DATA_DIR: Final[Path] = (
    Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share")) / "prismpdf"
)
WORKSPACE_DIR: Final[Path] = DATA_DIR / "workspace"

# Overrides both the settings file and the default workspace location
WORKSPACE_DIR_ENV: Final[str] = "PRISMPDF_WORKSPACE_DIR"


# ============================================================================
# Default Output Names
# ============================================================================

MERGED_FILENAME: Final[str] = "merged.pdf"
EXTRACTED_FILENAME: Final[str] = "extracted.pdf"
ORGANIZED_FILENAME: Final[str] = "organized.pdf"
SPLIT_ARCHIVE_FILENAME: Final[str] = "split-pages.zip"
OPTIMIZED_PREFIX: Final[str] = "optimized-"


# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: int = logging.INFO
LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGGER_NAME: Final[str] = "PrismPDF"
