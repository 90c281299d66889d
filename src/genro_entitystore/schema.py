# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""In-memory data model of the entity store.

Every value here is treated as immutable: the store never mutates a
StoreEntity, Schema or StoreData once it has been published to subscribers.
Mutations build new containers for the branches they change and share the
rest by reference.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

EntityInputsErrors = dict[str, Any]
EntitiesInputsErrors = dict[str, EntityInputsErrors]


@dataclass(frozen=True)
class StoreEntity:
    """One node of the schema tree.

    Attributes:
        type: Registered entity type name.
        inputs: Input name to raw value.
        parent_id: Containing entity id, None for root members.
        children: Ordered child ids, None when the entity never held one.
    """

    type: str
    inputs: Mapping[str, Any] = field(default_factory=dict)
    parent_id: str | None = None
    children: tuple[str, ...] | None = None

    def with_input(self, input_name: str, value: Any) -> StoreEntity:
        return replace(self, inputs={**self.inputs, input_name: value})

    def with_parent(self, parent_id: str | None) -> StoreEntity:
        return replace(self, parent_id=parent_id)

    def with_children(self, children: tuple[str, ...]) -> StoreEntity:
        return replace(self, children=children)


@dataclass(frozen=True)
class Schema:
    """The entity map plus the ordered root sequence."""

    entities: dict[str, StoreEntity] = field(default_factory=dict)
    root: tuple[str, ...] = ()

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self.entities

    def __len__(self) -> int:
        return len(self.entities)

    def descendants(self, entity_id: str) -> list[str]:
        """Return every descendant id of entity_id, depth-first, pre-order."""
        result: list[str] = []
        stack = list(reversed(self.entities[entity_id].children or ()))
        while stack:
            child_id = stack.pop()
            result.append(child_id)
            stack.extend(reversed(self.entities[child_id].children or ()))
        return result

    def container_of(self, entity_id: str) -> tuple[str, ...]:
        """Return the sequence holding entity_id (root or the parent's children)."""
        parent_id = self.entities[entity_id].parent_id
        if parent_id is None:
            return self.root
        return self.entities[parent_id].children or ()


@dataclass(frozen=True)
class StoreData:
    """One snapshot of the whole store.

    Attributes:
        schema: The entity tree.
        entities_inputs_errors: Last validation outcome per entity and input.
            A missing entity key means "not validated"; an input mapped to
            None means "validated, no error".
        active_entity_id: Currently selected entity, if any.
    """

    schema: Schema = field(default_factory=Schema)
    entities_inputs_errors: EntitiesInputsErrors = field(default_factory=dict)
    active_entity_id: str | None = None
