# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Conversion between the plain schema format and the in-memory Schema.

Plain format (JSON friendly)::

    {
        'root': ['a'],
        'entities': {
            'a': {'type': 'section', 'inputs': {}, 'children': ['b']},
            'b': {'type': 'text', 'inputs': {'label': 'Name'}, 'parentId': 'a'},
        },
    }

``parentId`` and ``children`` are omitted when absent. The two functions are
exact inverses of each other.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..schema import Schema, StoreEntity


def serialize_entity(entity: StoreEntity, entity_id: str | None = None) -> dict[str, Any]:
    """Convert a StoreEntity to its plain form, optionally with its id."""
    result: dict[str, Any] = {}
    if entity_id is not None:
        result['id'] = entity_id
    result['type'] = entity.type
    result['inputs'] = dict(entity.inputs)
    if entity.parent_id is not None:
        result['parentId'] = entity.parent_id
    if entity.children is not None:
        result['children'] = list(entity.children)
    return result


def deserialize_entity(data: Mapping[str, Any]) -> StoreEntity:
    children = data.get('children')
    return StoreEntity(
        type=data['type'],
        inputs=dict(data.get('inputs') or {}),
        parent_id=data.get('parentId'),
        children=tuple(children) if children is not None else None,
    )


def serialize_schema(schema: Schema) -> dict[str, Any]:
    """Convert a Schema to the plain format."""
    return {
        'root': list(schema.root),
        'entities': {
            entity_id: serialize_entity(entity)
            for entity_id, entity in schema.entities.items()
        },
    }


def deserialize_schema(data: Mapping[str, Any] | None) -> Schema:
    """Convert the plain format to a Schema. None yields an empty schema."""
    if data is None:
        return Schema()
    return Schema(
        entities={
            entity_id: deserialize_entity(entity)
            for entity_id, entity in (data.get('entities') or {}).items()
        },
        root=tuple(data.get('root') or ()),
    )
