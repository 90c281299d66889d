# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""EntityStore exceptions.

Structural errors (unknown ids, types, inputs, rejected identifiers, broken
parent/children rules) are raised. Errors produced by input validators are
never raised by the store: they are stored as data in the errors map.
"""

from __future__ import annotations


class EntityStoreError(Exception):
    """Base exception for EntityStore errors."""

    pass


class RegistryError(EntityStoreError):
    """Raised when a registry is declared inconsistently."""

    pass


class EntityNotFoundError(EntityStoreError):
    """Raised when an entity id is not present in the schema."""

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        super().__init__(f"Entity with ID '{entity_id}' was not found")


class UnknownEntityTypeError(EntityStoreError):
    """Raised when an entity type is not registered."""

    def __init__(self, entity_type: str) -> None:
        self.entity_type = entity_type
        super().__init__(f"Unknown entity type '{entity_type}'")


class UnknownInputError(EntityStoreError):
    """Raised when an input name is not declared by the entity type."""

    def __init__(self, entity_type: str, input_name: str) -> None:
        self.entity_type = entity_type
        self.input_name = input_name
        super().__init__(
            f"Unknown input '{input_name}' for entity type '{entity_type}'"
        )


class InvalidIdentifierError(EntityStoreError):
    """Raised when the identifier policy rejects an entity id."""

    def __init__(self, entity_id: str, reason: str = '') -> None:
        self.entity_id = entity_id
        message = f"Invalid entity ID '{entity_id}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidChildError(EntityStoreError):
    """Raised when an entity is placed under a parent that refuses its type."""

    pass


class InvalidParentError(EntityStoreError):
    """Raised when an entity is placed without a required parent or in a cycle."""

    pass


class SchemaIntegrityError(EntityStoreError):
    """Raised when a schema fails the integrity check.

    Attributes:
        issues: Every problem found, one message each.
    """

    def __init__(self, issues: list[str]) -> None:
        self.issues = list(issues)
        summary = '; '.join(self.issues)
        super().__init__(f"Invalid schema: {summary}")
