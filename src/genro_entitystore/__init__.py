# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Genro-EntityStore - Typed entity trees for dynamic form builders.

A lightweight, zero-dependency library keeping a copy-on-write tree of typed
entities, enforcing children/parent rules declared in a registry, validating
entity inputs and notifying subscribers of every change.
"""

__version__ = "0.1.0"

from .exceptions import (
    EntityNotFoundError,
    EntityStoreError,
    InvalidChildError,
    InvalidIdentifierError,
    InvalidParentError,
    RegistryError,
    SchemaIntegrityError,
    UnknownEntityTypeError,
    UnknownInputError,
)
from .integrity import check_schema_integrity, ensure_schema_integrity
from .registry import (
    EntityDefinition,
    EntityInput,
    IdentifierPolicy,
    Registry,
    entity,
    entity_input,
)
from .schema import Schema, StoreData, StoreEntity
from .store import (
    DataManager,
    EntityStore,
    InputContext,
    StoreEvent,
    SubscriptionManager,
    deserialize_schema,
    serialize_schema,
)
from .store.subscription import (
    ACTIVE_ENTITY_UPDATED,
    DATA_SET,
    ENTITY_ADDED,
    ENTITY_CLONED,
    ENTITY_DELETED,
    ENTITY_INPUT_ERROR_UPDATED,
    ENTITY_UPDATED,
    ROOT_UPDATED,
)

__all__ = [
    # Core classes
    "EntityStore",
    "StoreData",
    "Schema",
    "StoreEntity",
    "DataManager",
    "SubscriptionManager",
    "StoreEvent",
    "InputContext",
    # Registry
    "Registry",
    "EntityDefinition",
    "EntityInput",
    "IdentifierPolicy",
    "entity",
    "entity_input",
    # Schema helpers
    "serialize_schema",
    "deserialize_schema",
    "check_schema_integrity",
    "ensure_schema_integrity",
    # Event names
    "ENTITY_ADDED",
    "ENTITY_UPDATED",
    "ENTITY_DELETED",
    "ENTITY_CLONED",
    "ROOT_UPDATED",
    "DATA_SET",
    "ENTITY_INPUT_ERROR_UPDATED",
    "ACTIVE_ENTITY_UPDATED",
    # Exceptions
    "EntityStoreError",
    "RegistryError",
    "EntityNotFoundError",
    "UnknownEntityTypeError",
    "UnknownInputError",
    "InvalidIdentifierError",
    "InvalidChildError",
    "InvalidParentError",
    "SchemaIntegrityError",
]
