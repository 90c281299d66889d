# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""EntityStore - copy-on-write tree of typed entities.

This module provides the EntityStore class, the owner of a schema of typed
entities. Every public mutation reads the current snapshot, builds a new
StoreData and hands it to the DataManager, which notifies subscribers with
the events describing the change.

Key Features:
    - **Copy-on-write snapshots**: published StoreData values never change
    - **Ordered insertion**: root and children sequences accept an index
    - **Cascading deletion**: deleting an entity removes its whole subtree
    - **Structural rules**: children and parent policies come from the Registry
    - **Async validation**: input validators may be coroutine functions;
      their failures are stored as data in the errors map

Example:
    Basic usage::

        registry = Registry(
            entities=[entity('text', inputs=[entity_input('label', validate=required)])],
        )
        store = EntityStore(registry)
        text_id = store.add_entity({'type': 'text', 'inputs': {'label': ''}})

        await store.validate_entity_input(text_id, 'label')
        store.get_data().entities_inputs_errors[text_id]['label']  # ValueError(...)

        store.update_entity_input(text_id, 'label', 'Name')
        await store.validate_entity_input(text_id, 'label')
        store.get_data().entities_inputs_errors[text_id]['label']  # None
"""

from __future__ import annotations

import copy
import logging
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping

from ..exceptions import (
    EntityNotFoundError,
    InvalidChildError,
    InvalidIdentifierError,
    InvalidParentError,
    SchemaIntegrityError,
)
from ..integrity import check_schema_integrity, ensure_schema_integrity
from ..registry import Registry
from ..schema import EntitiesInputsErrors, EntityInputsErrors, Schema, StoreData, StoreEntity
from .data import DataManager
from .loading import deserialize_schema, serialize_entity, serialize_schema
from .ordering import insert_at_index, remove_item
from .subscription import (
    ACTIVE_ENTITY_UPDATED,
    DATA_SET,
    ENTITY_ADDED,
    ENTITY_CLONED,
    ENTITY_DELETED,
    ENTITY_INPUT_ERROR_UPDATED,
    ENTITY_UPDATED,
    ROOT_UPDATED,
    Listener,
    StoreEvent,
)
from .validation import get_entity, plain_schema, validate_input, validate_inputs

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class EntityStore:
    """Owner of an entity tree, its validation errors and the active entity.

    Synchronous mutations never suspend and either fail before touching
    anything or publish exactly one new snapshot. The validation family is
    async; each call publishes one snapshot once all its validators have run.

    Args:
        registry: Entity types, children/parent policy and identifier policy.
        schema: Optional plain schema (see store.loading) to start from.
        entities_inputs_errors: Optional initial errors map.

    Raises:
        SchemaIntegrityError: If schema fails the integrity check.
        EntityNotFoundError: If entities_inputs_errors references an
            unknown entity.
        UnknownInputError: If entities_inputs_errors references an input
            not declared by the entity type.
    """

    __slots__ = ('_registry', '_data_manager', '_retired_ids')

    def __init__(
        self,
        registry: Registry,
        schema: Mapping[str, Any] | None = None,
        entities_inputs_errors: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> None:
        ensure_schema_integrity(registry, schema)
        self._registry = registry
        self._retired_ids: set[str] = set()

        data = StoreData(schema=deserialize_schema(schema))
        if entities_inputs_errors:
            self._check_entities_inputs_errors(data.schema, entities_inputs_errors)
            data = replace(
                data,
                entities_inputs_errors={
                    entity_id: dict(errors)
                    for entity_id, errors in entities_inputs_errors.items()
                },
            )
        self._data_manager: DataManager[StoreData] = DataManager(data)

    # ==================== Special Methods ====================

    def __repr__(self) -> str:
        schema = self.get_data().schema
        return f"EntityStore({len(schema)} entities, root={list(schema.root)})"

    def __len__(self) -> int:
        return len(self.get_data().schema)

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self.get_data().schema

    # ==================== Access ====================

    @property
    def registry(self) -> Registry:
        return self._registry

    def get_data(self) -> StoreData:
        """Return the current snapshot."""
        return self._data_manager.get_data()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener(data, events); return the unsubscribe function."""
        return self._data_manager.subscribe(listener)

    def get_entity(self, entity_id: str) -> StoreEntity:
        """Return the entity with entity_id.

        Raises:
            EntityNotFoundError: If entity_id is not in the schema.
        """
        return get_entity(self.get_data(), entity_id)

    def get_serialized_schema(self) -> dict[str, Any]:
        """Return the schema in its plain, transport-safe form."""
        return serialize_schema(self.get_data().schema)

    def set_data(self, data: StoreData) -> StoreData:
        """Replace the whole snapshot after checking it.

        Raises:
            SchemaIntegrityError: If data.schema fails the integrity check.
            EntityNotFoundError: If the errors map or active_entity_id
                reference unknown entities.
            UnknownInputError: If the errors map references undeclared inputs.
        """
        issues = check_schema_integrity(self._registry, serialize_schema(data.schema))
        if issues:
            raise SchemaIntegrityError(issues)
        self._check_entities_inputs_errors(data.schema, data.entities_inputs_errors)
        if data.active_entity_id is not None and data.active_entity_id not in data.schema:
            raise EntityNotFoundError(data.active_entity_id)
        return self._commit(data, [StoreEvent(DATA_SET)])

    # ==================== Internals ====================

    def _commit(self, data: StoreData, events: Iterable[StoreEvent]) -> StoreData:
        events = tuple(events)
        logger.debug("Publishing snapshot: %s", ', '.join(e.name for e in events))
        return self._data_manager.set_data(data, events)

    def _generate_id(self, taken: Iterable[str]) -> str:
        """Generate an entity id accepted by the identifier policy."""
        entity_id = self._registry.entity_id.generate()
        try:
            self._registry.entity_id.validate(entity_id)
        except Exception as exc:
            raise InvalidIdentifierError(entity_id, str(exc)) from exc
        if entity_id in taken or entity_id in self._retired_ids:
            raise InvalidIdentifierError(entity_id, 'already in use')
        return entity_id

    def _check_placement(
        self,
        schema: Schema,
        entity_type: str,
        parent_id: str | None,
        entity_id: str | None = None,
    ) -> None:
        """Check that an entity of entity_type may live under parent_id.

        Raises:
            EntityNotFoundError: If parent_id is not in the schema.
            InvalidParentError: If the type needs a parent and parent_id is
                None, or if parent_id is entity_id or one of its descendants.
            InvalidChildError: If the parent type refuses entity_type.
        """
        if parent_id is None:
            if self._registry.requires_parent(entity_type):
                raise InvalidParentError(
                    f"Entity type '{entity_type}' requires a parent"
                )
            return

        parent = schema.entities.get(parent_id)
        if parent is None:
            raise EntityNotFoundError(parent_id)
        if entity_id is not None and (
            parent_id == entity_id or parent_id in schema.descendants(entity_id)
        ):
            raise InvalidParentError(
                f"Entity '{entity_id}' cannot be moved under itself or its descendant '{parent_id}'"
            )
        if not self._registry.is_child_allowed(parent.type, entity_type):
            raise InvalidChildError(
                f"Entity type '{entity_type}' is not allowed under '{parent.type}'"
            )

    def _check_entities_inputs_errors(
        self,
        schema: Schema,
        entities_inputs_errors: Mapping[str, Mapping[str, Any]],
    ) -> None:
        for entity_id, errors in entities_inputs_errors.items():
            entity = schema.entities.get(entity_id)
            if entity is None:
                raise EntityNotFoundError(entity_id)
            self._registry.get_inputs(entity.type, errors.keys())

    @staticmethod
    def _entity_event(name: str, entities: Mapping[str, StoreEntity], entity_id: str) -> StoreEvent:
        return StoreEvent(name, {'entity': serialize_entity(entities[entity_id], entity_id)})

    @staticmethod
    def _root_event(root: tuple[str, ...]) -> StoreEvent:
        return StoreEvent(ROOT_UPDATED, {'root': list(root)})

    # ==================== Entity mutations ====================

    def add_entity(
        self,
        entity: StoreEntity | Mapping[str, Any],
        index: int | None = None,
        parent_id: str | None = None,
    ) -> str:
        """Create an entity and insert it under parent_id or in the root.

        Args:
            entity: A StoreEntity or a mapping with ``type`` and ``inputs``.
                Any parent or children it carries are ignored.
            index: Position in the target sequence. None or out of range
                appends.
            parent_id: Containing entity. None inserts into the root.

        Returns:
            The new entity id.

        Raises:
            InvalidIdentifierError: If the generated id is rejected.
            UnknownEntityTypeError: If the type is not registered.
            UnknownInputError: If an input is not declared by the type.
            EntityNotFoundError: If parent_id is not in the schema.
            InvalidChildError: If the parent type refuses this type.
            InvalidParentError: If the type requires a parent and none is given.
        """
        if isinstance(entity, StoreEntity):
            entity_type, inputs = entity.type, entity.inputs
        else:
            entity_type, inputs = entity['type'], entity.get('inputs') or {}

        data = self.get_data()
        schema = data.schema

        entity_id = self._generate_id(schema.entities)
        self._registry.get_definition(entity_type)
        self._registry.get_inputs(entity_type, inputs.keys())
        self._check_placement(schema, entity_type, parent_id)

        entities = dict(schema.entities)
        root = schema.root
        entities[entity_id] = StoreEntity(
            type=entity_type, inputs=dict(inputs), parent_id=parent_id
        )
        events = [self._entity_event(ENTITY_ADDED, entities, entity_id)]

        if parent_id is None:
            root = insert_at_index(root, entity_id, index)
            events.append(self._root_event(root))
        else:
            parent = entities[parent_id]
            entities[parent_id] = parent.with_children(
                insert_at_index(parent.children, entity_id, index)
            )
            events.append(self._entity_event(ENTITY_UPDATED, entities, parent_id))

        self._commit(
            replace(data, schema=Schema(entities=entities, root=root)), events
        )
        return entity_id

    def update_entity(
        self,
        entity_id: str,
        index: int | None = None,
        parent_id: str | None = _UNSET,
    ) -> StoreData:
        """Move an entity to another position and/or another parent.

        Args:
            entity_id: Entity to move.
            index: Position in the target sequence. None or out of range
                appends.
            parent_id: Omitted keeps the current parent, None moves the
                entity to the root, an id moves it under that entity.

        Returns:
            The current snapshot. When neither index nor parent_id is given
            nothing is published and the previous snapshot is returned.

        Raises:
            EntityNotFoundError: If the entity or the target parent is missing.
            InvalidChildError: If the target parent type refuses this type.
            InvalidParentError: On moves into its own subtree, or to the root
                for types that require a parent.
        """
        data = self.get_data()
        schema = data.schema
        entity = get_entity(data, entity_id)

        if index is None and parent_id is _UNSET:
            return data

        new_parent_id = entity.parent_id if parent_id is _UNSET else parent_id
        self._check_placement(schema, entity.type, new_parent_id, entity_id)

        entities = dict(schema.entities)
        root = schema.root
        touched_parents: list[str] = []

        if entity.parent_id is None:
            root = remove_item(root, entity_id)
        else:
            old_parent = entities[entity.parent_id]
            entities[entity.parent_id] = old_parent.with_children(
                remove_item(old_parent.children, entity_id)
            )
            touched_parents.append(entity.parent_id)

        entities[entity_id] = entity.with_parent(new_parent_id)

        if new_parent_id is None:
            root = insert_at_index(root, entity_id, index)
        else:
            new_parent = entities[new_parent_id]
            entities[new_parent_id] = new_parent.with_children(
                insert_at_index(new_parent.children, entity_id, index)
            )
            if new_parent_id not in touched_parents:
                touched_parents.append(new_parent_id)

        events = [self._entity_event(ENTITY_UPDATED, entities, entity_id)]
        events.extend(
            self._entity_event(ENTITY_UPDATED, entities, touched)
            for touched in touched_parents
        )
        if root != schema.root:
            events.append(self._root_event(root))

        return self._commit(
            replace(data, schema=Schema(entities=entities, root=root)), events
        )

    def delete_entity(self, entity_id: str) -> StoreData:
        """Delete an entity together with its whole subtree.

        The deleted entities lose their errors map entries, and the active
        entity is cleared if it was one of them.

        Raises:
            EntityNotFoundError: If entity_id is not in the schema.
        """
        data = self.get_data()
        schema = data.schema
        entity = get_entity(data, entity_id)

        # Descendants before their ancestors.
        removed = list(reversed([entity_id] + schema.descendants(entity_id)))
        removed_set = set(removed)

        entities = dict(schema.entities)
        root = schema.root
        events = [
            self._entity_event(ENTITY_DELETED, schema.entities, removed_id)
            for removed_id in removed
        ]

        if entity.parent_id is None:
            root = remove_item(root, entity_id)
            events.append(self._root_event(root))
        else:
            parent = entities[entity.parent_id]
            entities[entity.parent_id] = parent.with_children(
                remove_item(parent.children, entity_id)
            )
            events.append(self._entity_event(ENTITY_UPDATED, entities, entity.parent_id))

        for removed_id in removed:
            del entities[removed_id]

        entities_inputs_errors = {
            key: errors
            for key, errors in data.entities_inputs_errors.items()
            if key not in removed_set
        }

        active_entity_id = data.active_entity_id
        if active_entity_id in removed_set:
            active_entity_id = None
            events.append(StoreEvent(ACTIVE_ENTITY_UPDATED, {'entity_id': None}))

        self._retired_ids.update(removed_set)
        logger.debug("Deleting entity %s and %d descendant(s)", entity_id, len(removed) - 1)
        return self._commit(
            StoreData(
                schema=Schema(entities=entities, root=root),
                entities_inputs_errors=entities_inputs_errors,
                active_entity_id=active_entity_id,
            ),
            events,
        )

    def clone_entity(self, entity_id: str) -> str:
        """Copy an entity and its subtree right after the original.

        Clones get fresh ids and deep copies of the input values. Errors are
        not copied: clones start unvalidated.

        Returns:
            The id of the top-level clone.

        Raises:
            EntityNotFoundError: If entity_id is not in the schema.
            InvalidIdentifierError: If a generated id is rejected.
        """
        data = self.get_data()
        schema = data.schema
        entity = get_entity(data, entity_id)

        source_ids = [entity_id] + schema.descendants(entity_id)
        id_map: dict[str, str] = {}
        for source_id in source_ids:
            id_map[source_id] = self._generate_id(
                schema.entities.keys() | id_map.values()
            )

        entities = dict(schema.entities)
        root = schema.root
        for source_id in source_ids:
            source = schema.entities[source_id]
            entities[id_map[source_id]] = StoreEntity(
                type=source.type,
                inputs=copy.deepcopy(dict(source.inputs)),
                parent_id=id_map.get(source.parent_id, source.parent_id),
                children=(
                    tuple(id_map[child_id] for child_id in source.children)
                    if source.children is not None
                    else None
                ),
            )

        clone_id = id_map[entity_id]
        position = schema.container_of(entity_id).index(entity_id) + 1
        events = [
            StoreEvent(
                ENTITY_CLONED,
                {
                    'entity': serialize_entity(entities[clone_id], clone_id),
                    'source_entity_id': entity_id,
                    'cloned_ids': dict(id_map),
                },
            )
        ]

        if entity.parent_id is None:
            root = insert_at_index(root, clone_id, position)
            events.append(self._root_event(root))
        else:
            parent = entities[entity.parent_id]
            entities[entity.parent_id] = parent.with_children(
                insert_at_index(parent.children, clone_id, position)
            )
            events.append(self._entity_event(ENTITY_UPDATED, entities, entity.parent_id))

        self._commit(
            replace(data, schema=Schema(entities=entities, root=root)), events
        )
        return clone_id

    def update_entity_input(self, entity_id: str, input_name: str, value: Any) -> StoreData:
        """Set the raw value of an input. No validation is run.

        Raises:
            EntityNotFoundError: If entity_id is not in the schema.
            UnknownInputError: If the entity type does not declare input_name.
        """
        data = self.get_data()
        entity = get_entity(data, entity_id)
        self._registry.get_input(entity.type, input_name)

        entities = {**data.schema.entities, entity_id: entity.with_input(input_name, value)}
        return self._commit(
            replace(data, schema=replace(data.schema, entities=entities)),
            [self._entity_event(ENTITY_UPDATED, entities, entity_id)],
        )

    def set_active_entity_id(self, entity_id: str | None) -> StoreData:
        """Select an entity, or clear the selection with None.

        Raises:
            EntityNotFoundError: If entity_id is not None and not in the schema.
        """
        data = self.get_data()
        if entity_id is not None:
            get_entity(data, entity_id)
        return self._commit(
            replace(data, active_entity_id=entity_id),
            [StoreEvent(ACTIVE_ENTITY_UPDATED, {'entity_id': entity_id})],
        )

    # ==================== Validation ====================

    def _publish_errors(
        self,
        records: Mapping[str, EntityInputsErrors],
        merge: bool,
    ) -> EntitiesInputsErrors:
        """Write validation records on top of the latest snapshot.

        Returns a copy of the resulting errors map.

        Records for entities deleted while validation was running are
        dropped. With merge, each record updates the stored one input by
        input; otherwise it replaces it. Nothing is published when every
        record was dropped.
        """
        latest = self.get_data()
        entities_inputs_errors = dict(latest.entities_inputs_errors)
        events = []
        kept = 0

        for entity_id, record in records.items():
            if entity_id not in latest.schema:
                logger.info(
                    "Dropping validation result for deleted entity %s", entity_id
                )
                continue
            kept += 1
            if merge:
                entities_inputs_errors[entity_id] = {
                    **entities_inputs_errors.get(entity_id, {}),
                    **record,
                }
            else:
                entities_inputs_errors[entity_id] = dict(record)
            events.extend(
                StoreEvent(
                    ENTITY_INPUT_ERROR_UPDATED,
                    {'entity_id': entity_id, 'input_name': input_name, 'error': error},
                )
                for input_name, error in record.items()
            )

        if kept:
            self._commit(
                replace(latest, entities_inputs_errors=entities_inputs_errors), events
            )
        return {key: dict(errors) for key, errors in entities_inputs_errors.items()}

    async def validate_entity_input(self, entity_id: str, input_name: str) -> Any:
        """Run the validator of one input and store its outcome.

        Returns:
            None if the value is valid, the exception raised by the
            validator otherwise.

        Raises:
            EntityNotFoundError: If entity_id is not in the schema.
            UnknownInputError: If the entity type does not declare input_name.
        """
        error = await validate_input(entity_id, input_name, self.get_data(), self._registry)
        self._publish_errors({entity_id: {input_name: error}}, merge=True)
        return error

    async def validate_entity_inputs(self, entity_id: str) -> EntityInputsErrors:
        """Validate every input of an entity, in declaration order.

        The entity record is replaced as a whole, and returned.

        Raises:
            EntityNotFoundError: If entity_id is not in the schema.
        """
        record = await validate_inputs(entity_id, self.get_data(), self._registry)
        self._publish_errors({entity_id: record}, merge=False)
        return record

    async def validate_entities_inputs(self) -> EntitiesInputsErrors:
        """Validate every input of every entity, in schema order.

        Returns:
            A copy of the errors map as stored after validation.
        """
        data = self.get_data()
        schema = plain_schema(data)
        records: dict[str, EntityInputsErrors] = {}
        for entity_id in data.schema.entities:
            records[entity_id] = await validate_inputs(
                entity_id, data, self._registry, schema
            )
        return self._publish_errors(records, merge=False)

    # ==================== Errors map ====================

    def _replace_errors(
        self,
        data: StoreData,
        entities_inputs_errors: EntitiesInputsErrors,
        events: Iterable[StoreEvent],
    ) -> StoreData:
        return self._commit(
            replace(data, entities_inputs_errors=entities_inputs_errors), events
        )

    def reset_entity_input_error(self, entity_id: str, input_name: str) -> StoreData:
        """Forget the validation outcome of one input.

        Raises:
            EntityNotFoundError: If entity_id is not in the schema.
            UnknownInputError: If the entity type does not declare input_name.
        """
        data = self.get_data()
        entity = get_entity(data, entity_id)
        self._registry.get_input(entity.type, input_name)

        record = dict(data.entities_inputs_errors.get(entity_id, {}))
        record.pop(input_name, None)
        return self._replace_errors(
            data,
            {**data.entities_inputs_errors, entity_id: record},
            [
                StoreEvent(
                    ENTITY_INPUT_ERROR_UPDATED,
                    {'entity_id': entity_id, 'input_name': input_name, 'error': None},
                )
            ],
        )

    def set_entity_input_error(
        self, entity_id: str, input_name: str, error: Any = None
    ) -> StoreData:
        """Store error as the validation outcome of one input.

        Raises:
            EntityNotFoundError: If entity_id is not in the schema.
            UnknownInputError: If the entity type does not declare input_name.
        """
        data = self.get_data()
        entity = get_entity(data, entity_id)
        self._registry.get_input(entity.type, input_name)

        record = {**data.entities_inputs_errors.get(entity_id, {}), input_name: error}
        return self._replace_errors(
            data,
            {**data.entities_inputs_errors, entity_id: record},
            [
                StoreEvent(
                    ENTITY_INPUT_ERROR_UPDATED,
                    {'entity_id': entity_id, 'input_name': input_name, 'error': error},
                )
            ],
        )

    def reset_entity_inputs_errors(self, entity_id: str) -> StoreData:
        """Forget every validation outcome of an entity.

        Raises:
            EntityNotFoundError: If entity_id is not in the schema.
        """
        data = self.get_data()
        get_entity(data, entity_id)

        entities_inputs_errors = dict(data.entities_inputs_errors)
        previous = entities_inputs_errors.pop(entity_id, {})
        return self._replace_errors(
            data,
            entities_inputs_errors,
            [
                StoreEvent(
                    ENTITY_INPUT_ERROR_UPDATED,
                    {'entity_id': entity_id, 'input_name': input_name, 'error': None},
                )
                for input_name in previous
            ],
        )

    def set_entity_inputs_errors(
        self, entity_id: str, entity_inputs_errors: Mapping[str, Any]
    ) -> StoreData:
        """Replace the validation record of an entity.

        Raises:
            EntityNotFoundError: If entity_id is not in the schema.
            UnknownInputError: If a key is not an input of the entity type.
        """
        data = self.get_data()
        self._check_entities_inputs_errors(data.schema, {entity_id: entity_inputs_errors})

        return self._replace_errors(
            data,
            {**data.entities_inputs_errors, entity_id: dict(entity_inputs_errors)},
            [
                StoreEvent(
                    ENTITY_INPUT_ERROR_UPDATED,
                    {'entity_id': entity_id, 'input_name': input_name, 'error': error},
                )
                for input_name, error in entity_inputs_errors.items()
            ],
        )

    def reset_entities_inputs_errors(self) -> StoreData:
        """Forget every validation outcome."""
        data = self.get_data()
        return self._replace_errors(
            data, {}, [StoreEvent(DATA_SET, {'field': 'entities_inputs_errors'})]
        )

    def set_entities_inputs_errors(
        self, entities_inputs_errors: Mapping[str, Mapping[str, Any]]
    ) -> StoreData:
        """Replace the whole errors map.

        Raises:
            EntityNotFoundError: If a key is not an entity of the schema.
            UnknownInputError: If a record references an undeclared input.
        """
        data = self.get_data()
        self._check_entities_inputs_errors(data.schema, entities_inputs_errors)

        return self._replace_errors(
            data,
            {
                entity_id: dict(errors)
                for entity_id, errors in entities_inputs_errors.items()
            },
            [StoreEvent(DATA_SET, {'field': 'entities_inputs_errors'})],
        )
