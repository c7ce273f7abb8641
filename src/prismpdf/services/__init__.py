"""
PrismPDF - Services Package

Document backend, page-set builder, splitter, workspace store and the
user-facing workflows built on them.
"""

from prismpdf.services.page_builder import build, build_from_sources
from prismpdf.services.splitter import archive_split, split_all
from prismpdf.services.workspace_store import (
    MemoryWorkspaceStore,
    StoredFile,
    WorkspaceStore,
)

__all__ = [
    "MemoryWorkspaceStore",
    "StoredFile",
    "WorkspaceStore",
    "archive_split",
    "build",
    "build_from_sources",
    "split_all",
]
