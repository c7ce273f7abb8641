"""
PrismPDF - Page Editor Package

Page references, page sets and the identity-keyed transitions that
reorder, rotate, remove and select pages.
"""

from prismpdf.editor.page_model import PageRef, PageSet, SourceDocument
from prismpdf.editor.page_operations import (
    PageSelection,
    can_save,
    move_page,
    move_page_over,
    page_set_from_selection,
    remove_page,
    toggle_rotate,
)

__all__ = [
    "PageRef",
    "PageSet",
    "PageSelection",
    "SourceDocument",
    "can_save",
    "move_page",
    "move_page_over",
    "page_set_from_selection",
    "remove_page",
    "toggle_rotate",
]
