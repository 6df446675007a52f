"""
Position arithmetic for ordered block links.

Every function here works on a list of objects exposing ``block_id`` and a
mutable integer ``position`` (composition entries or document links) and
keeps positions dense: exactly ``0..n-1``. Changes are expressed as
increments or decrements over one bounded range, the same shape a storage
backend applies with a single UPDATE.
"""

from typing import Iterable, List, Optional, Sequence, TypeVar

from ..errors import InvalidArgumentError, NotFoundError

T = TypeVar("T")


def sort_by_position(items: Iterable[T]) -> List[T]:
    return sorted(items, key=lambda item: item.position)


def find_by_block(items: Iterable[T], block_id: str) -> Optional[T]:
    for item in items:
        if item.block_id == block_id:
            return item
    return None


def is_dense(positions: Iterable[int]) -> bool:
    """True when ``positions`` is exactly ``{0, ..., n-1}`` without duplicates."""
    ordered = sorted(positions)
    return ordered == list(range(len(ordered)))


def shift_range(items: Iterable[T], start: int, stop: Optional[int], delta: int) -> int:
    """
    Add ``delta`` to every position in ``[start, stop)``.

    Args:
        items: The links to adjust
        start: First position affected
        stop: Position after the last one affected, or None for no upper bound
        delta: Amount to add (usually +1 or -1)

    Returns:
        Number of links shifted
    """
    shifted = 0
    for item in items:
        if item.position >= start and (stop is None or item.position < stop):
            item.position += delta
            shifted += 1
    return shifted


def insert_at(items: List[T], item: T, at: Optional[int] = None) -> List[T]:
    """
    Insert ``item`` at position ``at`` (append when None).

    Links at or after ``at`` move up by one.

    Raises:
        InvalidArgumentError: If ``at`` is outside ``[0, n]``
    """
    size = len(items)
    if at is None:
        at = size
    if not 0 <= at <= size:
        raise InvalidArgumentError(
            f"Insert position {at} is out of range",
            [f"position: must be between 0 and {size}"]
        )

    shift_range(items, at, None, 1)
    item.position = at
    items.append(item)
    return sort_by_position(items)


def remove_block(items: List[T], block_id: str) -> T:
    """
    Remove the link for ``block_id`` and close the gap it leaves.

    Returns:
        The removed link

    Raises:
        NotFoundError: If no link references ``block_id``
    """
    item = find_by_block(items, block_id)
    if item is None:
        raise NotFoundError(f"Block {block_id} is not part of this document", {"block_id": block_id})

    items.remove(item)
    shift_range(items, item.position + 1, None, -1)
    return item


def move_block(items: Sequence[T], block_id: str, to: int) -> bool:
    """
    Move the link for ``block_id`` to position ``to``.

    Moving down decrements ``(p, to]``; moving up increments ``[to, p)``.

    Returns:
        False when ``to`` already is the current position, True otherwise

    Raises:
        NotFoundError: If no link references ``block_id``
        InvalidArgumentError: If ``to`` is outside ``[0, n-1]``
    """
    item = find_by_block(items, block_id)
    if item is None:
        raise NotFoundError(f"Block {block_id} is not part of this document", {"block_id": block_id})

    size = len(items)
    if not 0 <= to < size:
        raise InvalidArgumentError(
            f"Move target {to} is out of range",
            [f"position: must be between 0 and {size - 1}"]
        )

    current = item.position
    if to == current:
        return False

    if to > current:
        shift_range(items, current + 1, to + 1, -1)
    else:
        shift_range(items, to, current, 1)
    item.position = to
    return True
