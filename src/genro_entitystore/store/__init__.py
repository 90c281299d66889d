# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Store package - copy-on-write entity tree with validation.

The package is organized into:
- core: Main EntityStore class with mutation, validation and errors map API
- data: DataManager, the observable cell holding the current snapshot
- subscription: Listener registry and event names
- loading: Conversion between plain schemas and the in-memory Schema
- ordering: Index-based insertion into ordered id sequences
- validation: Input validation pipeline

Example:
    >>> from genro_entitystore import EntityStore, Registry, entity
    >>> store = EntityStore(Registry(entities=[entity('text')]))
    >>> entity_id = store.add_entity({'type': 'text', 'inputs': {}})
    >>> store.get_serialized_schema()['root'] == [entity_id]
    True
"""

from .core import EntityStore
from .data import DataManager
from .loading import deserialize_schema, serialize_schema
from .subscription import StoreEvent, SubscriptionManager
from .validation import InputContext

__all__ = [
    "EntityStore",
    "DataManager",
    "SubscriptionManager",
    "StoreEvent",
    "InputContext",
    "serialize_schema",
    "deserialize_schema",
]
