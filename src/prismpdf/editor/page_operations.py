"""
PrismPDF - Page Operations

State transitions over ordered lists of items carrying a stable ``id``:
moving, rotating, removing and selecting pages. Every transition is keyed
by identity, never by position, so a reordered view cannot drift out of
sync with the page data behind it.
"""

from collections.abc import Iterable, MutableSequence
from typing import Protocol, TypeVar

from prismpdf.editor.page_model import PageSet, SourceDocument
from prismpdf.utils.logger import logger


class HasId(Protocol):
    id: str


T = TypeVar("T", bound=HasId)


def _position_of(items: MutableSequence[T], item_id: str) -> int | None:
    for position, item in enumerate(items):
        if item.id == item_id:
            return position
    return None


def move_item(items: MutableSequence[T], item_id: str, to_index: int) -> bool:
    """Move an item to ``to_index``, shifting the others.

    ``to_index`` is clamped to the list bounds.

    Args:
        items: The ordered list to modify in place
        item_id: Identity of the item to move
        to_index: Target position (0-indexed)

    Returns:
        True if the order changed. Unknown ids and moves onto the current
        position leave the list untouched and return False.
    """
    current = _position_of(items, item_id)
    if current is None:
        logger.debug(f"Ignoring move of unknown item {item_id}")
        return False

    target = max(0, min(to_index, len(items) - 1))
    if target == current:
        return False

    item = items.pop(current)
    items.insert(target, item)
    logger.debug(f"Moved item {item_id} from {current} to {target}")
    return True


def move_item_over(items: MutableSequence[T], active_id: str, over_id: str) -> bool:
    """Drop ``active_id`` onto the slot currently held by ``over_id``."""
    if active_id == over_id:
        return False
    target = _position_of(items, over_id)
    if target is None:
        return False
    return move_item(items, active_id, target)


def remove_item(items: MutableSequence[T], item_id: str) -> bool:
    """Remove an item by identity.

    Returns:
        True if an item was removed
    """
    position = _position_of(items, item_id)
    if position is None:
        return False
    del items[position]
    logger.debug(f"Removed item {item_id}, {len(items)} remaining")
    return True


def move_page(page_set: PageSet, page_id: str, to_index: int) -> bool:
    """Move a page to a new position in the page set."""
    return move_item(page_set.pages, page_id, to_index)


def move_page_over(page_set: PageSet, active_id: str, over_id: str) -> bool:
    """Move a page onto the position of another page (drag-and-drop end)."""
    return move_item_over(page_set.pages, active_id, over_id)


def remove_page(page_set: PageSet, page_id: str) -> bool:
    """Delete a page from the page set."""
    return remove_item(page_set.pages, page_id)


def toggle_rotate(page_set: PageSet, page_id: str) -> bool:
    """Rotate a page 90 degrees clockwise.

    Four calls bring the page back to its original rotation.

    Returns:
        True if the page was found
    """
    page = page_set.find(page_id)
    if page is None:
        return False
    page.rotate_right()
    logger.debug(f"Page {page_id} rotation is now {page.rotation}°")
    return True


def can_save(page_set: PageSet) -> bool:
    """Whether the page set holds anything worth writing out."""
    return not page_set.is_empty


class PageSelection:
    """Set of selected positions in the current thumbnail order.

    Selection is click-order agnostic: ``normalized()`` always returns the
    positions ascending.
    """

    def __init__(self, indices: Iterable[int] = ()) -> None:
        self._indices: set[int] = set(indices)

    def toggle(self, index: int) -> bool:
        """Flip the selection state of ``index``.

        Returns:
            True if the index is selected after the call
        """
        if index < 0:
            raise ValueError(f"Page index must be >= 0, got {index}")
        if index in self._indices:
            self._indices.discard(index)
            return False
        self._indices.add(index)
        return True

    def select_all(self, page_count: int) -> None:
        self._indices = set(range(page_count))

    def clear(self) -> None:
        self._indices.clear()

    def normalized(self) -> list[int]:
        """Selected indices in ascending order."""
        return sorted(self._indices)

    def __contains__(self, index: object) -> bool:
        return index in self._indices

    def __len__(self) -> int:
        return len(self._indices)

    def __bool__(self) -> bool:
        return bool(self._indices)


def page_set_from_selection(source: SourceDocument, selection: PageSelection) -> PageSet:
    """Build the page set for extracting the selected pages of ``source``.

    Pages keep the source's natural order regardless of the order in which
    they were clicked.
    """
    return PageSet.from_indices(selection.normalized(), source.key)

