# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Event subscription and notification system.

Listeners receive ``(data, events)`` where events is a tuple of StoreEvent
describing what changed between the previous snapshot and ``data``.

Example:
    >>> manager = SubscriptionManager()
    >>> unsubscribe = manager.subscribe(lambda data, events: print(events))
    >>> manager.notify('snapshot', (StoreEvent(DATA_SET),))
    (StoreEvent(name='DataSet', payload={}),)
    >>> unsubscribe()
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, TypeVar

T = TypeVar('T')

ENTITY_ADDED = 'EntityAdded'
ENTITY_UPDATED = 'EntityUpdated'
ENTITY_DELETED = 'EntityDeleted'
ENTITY_CLONED = 'EntityCloned'
ROOT_UPDATED = 'RootUpdated'
DATA_SET = 'DataSet'
ENTITY_INPUT_ERROR_UPDATED = 'EntityInputErrorUpdated'
ACTIVE_ENTITY_UPDATED = 'ActiveEntityUpdated'


@dataclass(frozen=True)
class StoreEvent:
    """A tagged description of one change.

    Attributes:
        name: One of the module-level event names.
        payload: Event details (entity id, serialized entity, new root...).
    """

    name: str
    payload: dict[str, Any] = field(default_factory=dict)


Listener = Callable[[T, tuple[StoreEvent, ...]], Any]


class SubscriptionManager(Generic[T]):
    """Registry of listeners notified in registration order.

    Each subscribe() call owns its own slot, so the same callable subscribed
    twice is called twice and each unsubscribe removes only its own slot.
    """

    __slots__ = ('_listeners', '_counter')

    def __init__(self) -> None:
        self._listeners: dict[int, Listener] = {}
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener and return a function that removes it.

        The returned function is idempotent.
        """
        slot = next(self._counter)
        self._listeners[slot] = listener

        def unsubscribe() -> None:
            self._listeners.pop(slot, None)

        return unsubscribe

    def notify(self, data: T, events: Iterable[StoreEvent]) -> None:
        """Deliver (data, events) to every listener registered right now.

        Listeners added or removed during delivery do not change the set
        of listeners called for this delivery.
        """
        events = tuple(events)
        for listener in list(self._listeners.values()):
            listener(data, events)
