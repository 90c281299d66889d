# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Schema integrity gate.

Checks a plain schema (see store.loading) against a Registry before a store
is built from it. All problems are collected, then reported together.

Example:
    >>> issues = check_schema_integrity(registry, {'root': ['x'], 'entities': {}})
    >>> issues
    ["root references unknown entity 'x'"]
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .exceptions import SchemaIntegrityError
from .registry import Registry

logger = logging.getLogger(__name__)


def _check_shape(schema: Any) -> list[str]:
    if not isinstance(schema, Mapping):
        return [f"schema must be a mapping, not {type(schema).__name__}"]
    issues = []
    root = schema.get('root')
    if not isinstance(root, (list, tuple)) or not all(isinstance(i, str) for i in root):
        issues.append("schema 'root' must be a list of entity ids")
    if not isinstance(schema.get('entities'), Mapping):
        issues.append("schema 'entities' must be a mapping of id to entity")
    return issues


def _check_entity(
    registry: Registry,
    entity_id: str,
    entity: Any,
    entities: Mapping[str, Any],
) -> list[str]:
    """Check one entity in isolation and against its direct relatives."""
    if not isinstance(entity, Mapping):
        return [f"entity '{entity_id}' must be a mapping"]

    issues = []
    try:
        registry.entity_id.validate(entity_id)
    except Exception as exc:
        issues.append(f"entity id '{entity_id}' was rejected: {exc}")

    entity_type = entity.get('type')
    definition = registry.lookup(entity_type) if isinstance(entity_type, str) else None
    if definition is None:
        issues.append(f"entity '{entity_id}' has unknown type {entity_type!r}")

    inputs = entity.get('inputs', {})
    if not isinstance(inputs, Mapping):
        issues.append(f"entity '{entity_id}' inputs must be a mapping")
    elif definition is not None:
        for input_name in inputs:
            if definition.get_input(input_name) is None:
                issues.append(
                    f"entity '{entity_id}' has unknown input '{input_name}' "
                    f"for type '{entity_type}'"
                )

    parent_id = entity.get('parentId')
    if parent_id is not None and not isinstance(parent_id, str):
        issues.append(f"entity '{entity_id}' parentId must be an entity id")
    elif parent_id is not None:
        parent = entities.get(parent_id)
        if not isinstance(parent, Mapping):
            issues.append(f"entity '{entity_id}' references missing parent '{parent_id}'")
        elif entity_id not in (parent.get('children') or ()):
            issues.append(
                f"parent '{parent_id}' does not list entity '{entity_id}' as a child"
            )
    elif definition is not None and registry.requires_parent(entity_type):
        issues.append(f"entity '{entity_id}' of type '{entity_type}' requires a parent")

    children = entity.get('children')
    if children is None:
        return issues
    if not isinstance(children, (list, tuple)) or not all(isinstance(i, str) for i in children):
        issues.append(f"entity '{entity_id}' children must be a list of entity ids")
        return issues
    if len(set(children)) != len(children):
        issues.append(f"entity '{entity_id}' lists a child more than once")
    if children and definition is not None and not registry.accepts_children(entity_type):
        issues.append(f"entity '{entity_id}' of type '{entity_type}' does not accept children")
        return issues

    for child_id in children:
        child = entities.get(child_id)
        if not isinstance(child, Mapping):
            issues.append(f"entity '{entity_id}' references missing child '{child_id}'")
            continue
        if child.get('parentId') != entity_id:
            issues.append(
                f"child '{child_id}' of entity '{entity_id}' has parentId "
                f"{child.get('parentId')!r}"
            )
        child_type = child.get('type')
        if (
            definition is not None
            and isinstance(child_type, str)
            and registry.lookup(child_type) is not None
            and not registry.is_child_allowed(entity_type, child_type)
        ):
            issues.append(
                f"entity type '{child_type}' is not allowed under '{entity_type}'"
            )
    return issues


def _check_tree(root: list[str], entities: Mapping[str, Any]) -> list[str]:
    """Walk from root and report duplicates, cycles and unreachable entities."""
    issues = []
    seen: set[str] = set()
    stack = list(reversed(root))
    while stack:
        entity_id = stack.pop()
        if entity_id in seen:
            issues.append(f"entity '{entity_id}' is reachable more than once")
            continue
        seen.add(entity_id)
        entity = entities.get(entity_id)
        if isinstance(entity, Mapping) and isinstance(entity.get('children'), (list, tuple)):
            stack.extend(reversed(entity['children']))

    for entity_id in entities:
        if entity_id not in seen:
            issues.append(f"entity '{entity_id}' is not reachable from root")
    return issues


def check_schema_integrity(registry: Registry, schema: Mapping[str, Any] | None) -> list[str]:
    """Return the list of integrity issues in schema (empty when valid).

    None is an empty schema and always valid.
    """
    if schema is None:
        return []

    issues = _check_shape(schema)
    if issues:
        return issues

    root = list(schema['root'])
    entities = schema['entities']

    if len(set(root)) != len(root):
        issues.append("root lists an entity more than once")
    for entity_id in root:
        entity = entities.get(entity_id)
        if entity is None:
            issues.append(f"root references unknown entity '{entity_id}'")
        elif isinstance(entity, Mapping) and entity.get('parentId') is not None:
            issues.append(f"root entity '{entity_id}' must not have a parentId")

    for entity_id, entity in entities.items():
        issues.extend(_check_entity(registry, entity_id, entity, entities))
        if (
            isinstance(entity, Mapping)
            and entity.get('parentId') is None
            and entity_id not in root
        ):
            issues.append(f"entity '{entity_id}' has no parentId and is not in root")

    if not issues:
        issues.extend(_check_tree(root, entities))
    return issues


def ensure_schema_integrity(
    registry: Registry, schema: Mapping[str, Any] | None
) -> Mapping[str, Any] | None:
    """Return schema unchanged if it is valid.

    Raises:
        SchemaIntegrityError: Carrying every issue found.
    """
    issues = check_schema_integrity(registry, schema)
    if issues:
        logger.debug("Schema rejected with %d issue(s)", len(issues))
        raise SchemaIntegrityError(issues)
    return schema
