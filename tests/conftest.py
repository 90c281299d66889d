# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures: a small form registry with predictable ids."""

import asyncio
import itertools
import re

import pytest

from genro_entitystore import (
    EntityStore,
    IdentifierPolicy,
    Registry,
    entity,
    entity_input,
)


def required(value, context):
    if not value:
        raise ValueError("value is required")
    return value


async def not_empty_list(value, context):
    await asyncio.sleep(0)
    if not isinstance(value, list) or not value:
        raise ValueError("at least one item is required")
    return value


def sequential_ids():
    """Identifier policy generating e1, e2, ... and accepting only that shape."""
    counter = itertools.count(1)

    def generate():
        return f"e{next(counter)}"

    def validate(entity_id):
        if not isinstance(entity_id, str) or not re.fullmatch(r'e\d+', entity_id):
            raise ValueError("expected e<N>")

    return IdentifierPolicy(generate=generate, validate=validate)


def make_registry(entity_id=None):
    return Registry(
        entities=[
            entity('section', inputs=[entity_input('title')]),
            entity(
                'text',
                inputs=[
                    entity_input('label', validate=required),
                    entity_input('placeholder'),
                ],
            ),
            entity('select', inputs=[entity_input('options', validate=not_empty_list)]),
            entity('option', inputs=[entity_input('value', validate=required)]),
        ],
        children_allowed={'section': True, 'select': 'option'},
        parent_required=['option'],
        entity_id=entity_id or sequential_ids(),
    )


@pytest.fixture
def registry():
    return make_registry()


@pytest.fixture
def store(registry):
    return EntityStore(registry)


@pytest.fixture
def events_log(store):
    """List collecting (data, events) for every notification of store."""
    log = []
    store.subscribe(lambda data, events: log.append((data, events)))
    return log


@pytest.fixture
def tree_store(registry):
    """Store with root [A, D]; A has children [B, C]; C has child [E]."""
    schema = {
        'root': ['e1', 'e4'],
        'entities': {
            'e1': {'type': 'section', 'inputs': {'title': 'A'}, 'children': ['e2', 'e3']},
            'e2': {'type': 'text', 'inputs': {'label': 'B'}, 'parentId': 'e1'},
            'e3': {'type': 'section', 'inputs': {'title': 'C'}, 'parentId': 'e1', 'children': ['e5']},
            'e4': {'type': 'text', 'inputs': {'label': 'D'}},
            'e5': {'type': 'text', 'inputs': {'label': 'E'}, 'parentId': 'e3'},
        },
    }
    # Ids e1..e5 are taken by the loaded schema.
    policy = sequential_ids()
    for _ in range(5):
        policy.generate()
    return EntityStore(make_registry(entity_id=policy), schema=schema)


@pytest.fixture
def tree_events_log(tree_store):
    """List collecting (data, events) for every notification of tree_store."""
    log = []
    tree_store.subscribe(lambda data, events: log.append((data, events)))
    return log
