# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Input validation pipeline.

Validators are plain functions or coroutine functions receiving
``(value, context)``. Whatever they raise becomes the stored error for the
input; the exception object is kept as an opaque value. Structural problems
(unknown entity, type or input) are raised to the caller instead.
"""

from __future__ import annotations

import copy
import inspect
import logging
from dataclasses import dataclass
from typing import Any

from ..exceptions import EntityNotFoundError
from ..registry import Registry
from ..schema import EntityInputsErrors, StoreData, StoreEntity
from .loading import serialize_entity, serialize_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputContext:
    """Read-only view handed to validators.

    Attributes:
        schema: Plain schema at the time validation started.
        entity: Plain entity being validated, including its ``id``.

    Both are private copies: changing them never reaches the store.
    """

    schema: dict[str, Any]
    entity: dict[str, Any]


def get_entity(data: StoreData, entity_id: str) -> StoreEntity:
    """Return the entity or raise EntityNotFoundError."""
    entity = data.schema.entities.get(entity_id)
    if entity is None:
        raise EntityNotFoundError(entity_id)
    return entity


def plain_schema(data: StoreData) -> dict[str, Any]:
    """Return a deep copy of the plain schema of data, for validator contexts."""
    return copy.deepcopy(serialize_schema(data.schema))


async def validate_input(
    entity_id: str,
    input_name: str,
    data: StoreData,
    registry: Registry,
    schema: dict[str, Any] | None = None,
) -> Any:
    """Run one input validator against the value held in data.

    schema is the plain_schema() of data, built here when not given. Bulk
    callers build it once and share it across inputs.

    Returns:
        None when the validator accepts the value, the raised exception
        otherwise.

    Raises:
        EntityNotFoundError: If entity_id is not in data.
        UnknownEntityTypeError: If the entity type is not registered.
        UnknownInputError: If the type does not declare input_name.
    """
    entity = get_entity(data, entity_id)
    entity_input = registry.get_input(entity.type, input_name)
    if schema is None:
        schema = plain_schema(data)
    context = InputContext(
        schema=schema,
        entity=copy.deepcopy(serialize_entity(entity, entity_id)),
    )

    try:
        result = entity_input.validate(context.entity['inputs'].get(input_name), context)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        logger.debug(
            "Input '%s' of entity %s failed validation: %r", input_name, entity_id, exc
        )
        return exc
    return None


async def validate_inputs(
    entity_id: str,
    data: StoreData,
    registry: Registry,
    schema: dict[str, Any] | None = None,
) -> EntityInputsErrors:
    """Validate every declared input of an entity, in declaration order.

    Returns:
        A complete record with one key per declared input.
    """
    entity = get_entity(data, entity_id)
    definition = registry.get_definition(entity.type)
    if schema is None:
        schema = plain_schema(data)

    errors: EntityInputsErrors = {}
    for entity_input in definition.inputs:
        errors[entity_input.name] = await validate_input(
            entity_id, entity_input.name, data, registry, schema
        )
    return errors
