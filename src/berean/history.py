"""Bounded history window for outbound requests."""

from typing import List, Sequence, TypeVar

T = TypeVar("T")

DEFAULT_HISTORY_LIMIT = 10


def window(messages: Sequence[T], limit: int = DEFAULT_HISTORY_LIMIT) -> List[T]:
    """Return the last ``limit`` messages in their original order.

    Args:
        messages: Full ordered conversation log.
        limit: Maximum number of messages to keep.

    Returns:
        A new list; all messages when fewer than ``limit`` exist.
    """
    if limit <= 0:
        return []
    return list(messages[-limit:])
