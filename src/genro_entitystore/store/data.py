# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Observable single-value cell."""

from __future__ import annotations

from typing import Callable, Generic, Iterable, TypeVar

from .subscription import Listener, StoreEvent, SubscriptionManager

T = TypeVar('T')


class DataManager(Generic[T]):
    """Holds the current snapshot; every set_data() is notified.

    No merging or diffing is done: callers pass the complete next value and
    the events describing the change.

    Example:
        >>> manager = DataManager({'age': 17})
        >>> manager.set_data({'age': 18}, ())
        {'age': 18}
        >>> manager.get_data()
        {'age': 18}
    """

    __slots__ = ('_data', '_subscriptions')

    def __init__(self, initial_data: T) -> None:
        self._data = initial_data
        self._subscriptions: SubscriptionManager[T] = SubscriptionManager()

    def get_data(self) -> T:
        return self._data

    def set_data(self, data: T, events: Iterable[StoreEvent]) -> T:
        """Store data, notify subscribers, return the stored value."""
        self._data = data
        self._subscriptions.notify(data, events)
        return self._data

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._subscriptions.subscribe(listener)
