# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Ordered id sequences with index-based insertion.

Root and children sequences are tuples of unique ids. Insertion removes the
id first if present, then places it at the clamped target position.
"""

from __future__ import annotations


def insert_at_index(
    items: tuple[str, ...] | None,
    item: str,
    index: int | None = None,
) -> tuple[str, ...]:
    """Return a new tuple with item placed at index.

    Args:
        items: Current sequence (None is treated as empty).
        item: Id to insert. An existing occurrence is removed first.
        index: Target position. None or a position past the end appends;
            negative positions count from the end and are clamped to 0.

    Example:
        >>> insert_at_index(('a', 'b', 'c'), 'x', 1)
        ('a', 'x', 'b', 'c')
        >>> insert_at_index(('a', 'b', 'c'), 'a', 2)
        ('b', 'c', 'a')
        >>> insert_at_index(('a',), 'b', 99)
        ('a', 'b')
    """
    current = [existing for existing in (items or ()) if existing != item]

    if index is None or index >= len(current):
        current.append(item)
    else:
        if index < 0:
            index = max(len(current) + index, 0)
        current.insert(index, item)

    return tuple(current)


def remove_item(items: tuple[str, ...] | None, item: str) -> tuple[str, ...]:
    """Return a new tuple without item."""
    return tuple(existing for existing in (items or ()) if existing != item)
