# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Tests for the data model, schema loading and the integrity gate."""

import pytest

from genro_entitystore import (
    Schema,
    SchemaIntegrityError,
    StoreEntity,
    check_schema_integrity,
    deserialize_schema,
    ensure_schema_integrity,
    serialize_schema,
)
from genro_entitystore.store.loading import serialize_entity

PLAIN_SCHEMA = {
    'root': ['e1', 'e4'],
    'entities': {
        'e1': {'type': 'section', 'inputs': {'title': 'A'}, 'children': ['e2', 'e3']},
        'e2': {'type': 'text', 'inputs': {'label': 'B'}, 'parentId': 'e1'},
        'e3': {'type': 'select', 'inputs': {'options': []}, 'parentId': 'e1', 'children': ['e5']},
        'e4': {'type': 'text', 'inputs': {}},
        'e5': {'type': 'option', 'inputs': {'value': 'x'}, 'parentId': 'e3'},
    },
}


class TestStoreEntity:
    """Tests for StoreEntity copy helpers."""

    def test_with_input_returns_new_entity(self):
        """Test with_input does not touch the original."""
        original = StoreEntity('text', {'label': 'a'})
        updated = original.with_input('label', 'b')
        assert updated.inputs == {'label': 'b'}
        assert original.inputs == {'label': 'a'}

    def test_with_parent_and_children(self):
        entity = StoreEntity('section')
        assert entity.with_parent('p').parent_id == 'p'
        assert entity.with_children(('c',)).children == ('c',)
        assert entity.parent_id is None
        assert entity.children is None


class TestSchemaQueries:
    """Tests for Schema navigation helpers."""

    def test_descendants_pre_order(self):
        schema = deserialize_schema(PLAIN_SCHEMA)
        assert schema.descendants('e1') == ['e2', 'e3', 'e5']
        assert schema.descendants('e4') == []

    def test_container_of(self):
        schema = deserialize_schema(PLAIN_SCHEMA)
        assert schema.container_of('e1') == ('e1', 'e4')
        assert schema.container_of('e3') == ('e2', 'e3')

    def test_contains_and_len(self):
        schema = deserialize_schema(PLAIN_SCHEMA)
        assert 'e5' in schema
        assert 'zz' not in schema
        assert len(schema) == 5


class TestLoading:
    """Tests for plain <-> in-memory conversion."""

    def test_deserialize(self):
        """Test lists become tuples and optional keys become None."""
        schema = deserialize_schema(PLAIN_SCHEMA)
        assert schema.root == ('e1', 'e4')
        assert schema.entities['e1'].children == ('e2', 'e3')
        assert schema.entities['e2'].parent_id == 'e1'
        assert schema.entities['e4'].children is None
        assert schema.entities['e4'].parent_id is None

    def test_deserialize_none(self):
        assert deserialize_schema(None) == Schema()

    def test_round_trip(self):
        """Test serialize(deserialize(x)) == x."""
        assert serialize_schema(deserialize_schema(PLAIN_SCHEMA)) == PLAIN_SCHEMA

    def test_serialize_omits_absent_fields(self):
        """Test parentId and children are left out when absent."""
        plain = serialize_schema(Schema(entities={'a': StoreEntity('text', {})}, root=('a',)))
        assert plain == {'root': ['a'], 'entities': {'a': {'type': 'text', 'inputs': {}}}}

    def test_serialize_keeps_empty_children(self):
        """Test an emptied children sequence stays an empty list."""
        schema = Schema(entities={'a': StoreEntity('section', {}, children=())}, root=('a',))
        assert serialize_schema(schema)['entities']['a']['children'] == []

    def test_serialize_entity_with_id(self):
        entity = StoreEntity('text', {'label': 'x'}, parent_id='p')
        assert serialize_entity(entity, 'e9') == {
            'id': 'e9',
            'type': 'text',
            'inputs': {'label': 'x'},
            'parentId': 'p',
        }

    def test_serialized_inputs_are_copies(self):
        """Test mutating the plain form does not reach the entity."""
        schema = deserialize_schema(PLAIN_SCHEMA)
        plain = serialize_schema(schema)
        plain['entities']['e2']['inputs']['label'] = 'changed'
        assert schema.entities['e2'].inputs['label'] == 'B'


class TestSchemaIntegrity:
    """Tests for check_schema_integrity / ensure_schema_integrity."""

    def test_valid_schema(self, registry):
        assert check_schema_integrity(registry, PLAIN_SCHEMA) == []
        assert ensure_schema_integrity(registry, PLAIN_SCHEMA) is PLAIN_SCHEMA

    def test_none_is_valid(self, registry):
        assert check_schema_integrity(registry, None) == []

    def test_empty_schema(self, registry):
        assert check_schema_integrity(registry, {'root': [], 'entities': {}}) == []

    def test_bad_shape(self, registry):
        assert check_schema_integrity(registry, []) == ['schema must be a mapping, not list']
        issues = check_schema_integrity(registry, {'root': 'x', 'entities': []})
        assert len(issues) == 2

    def test_root_references_unknown_entity(self, registry):
        issues = check_schema_integrity(registry, {'root': ['e1'], 'entities': {}})
        assert issues == ["root references unknown entity 'e1'"]

    def test_unknown_type(self, registry):
        issues = check_schema_integrity(
            registry, {'root': ['e1'], 'entities': {'e1': {'type': 'video', 'inputs': {}}}}
        )
        assert issues == ["entity 'e1' has unknown type 'video'"]

    def test_unknown_input(self, registry):
        issues = check_schema_integrity(
            registry,
            {'root': ['e1'], 'entities': {'e1': {'type': 'text', 'inputs': {'color': 'red'}}}},
        )
        assert issues == ["entity 'e1' has unknown input 'color' for type 'text'"]

    def test_rejected_id(self, registry):
        issues = check_schema_integrity(
            registry, {'root': ['bad'], 'entities': {'bad': {'type': 'text', 'inputs': {}}}}
        )
        assert len(issues) == 1
        assert issues[0].startswith("entity id 'bad' was rejected")

    def test_missing_parent(self, registry):
        issues = check_schema_integrity(
            registry,
            {'root': [], 'entities': {'e1': {'type': 'text', 'inputs': {}, 'parentId': 'e9'}}},
        )
        assert "entity 'e1' references missing parent 'e9'" in issues

    def test_parent_does_not_list_child(self, registry):
        schema = {
            'root': ['e1'],
            'entities': {
                'e1': {'type': 'section', 'inputs': {}, 'children': []},
                'e2': {'type': 'text', 'inputs': {}, 'parentId': 'e1'},
            },
        }
        issues = check_schema_integrity(registry, schema)
        assert "parent 'e1' does not list entity 'e2' as a child" in issues

    def test_child_with_wrong_parent_id(self, registry):
        schema = {
            'root': ['e1', 'e2'],
            'entities': {
                'e1': {'type': 'section', 'inputs': {}, 'children': ['e2']},
                'e2': {'type': 'text', 'inputs': {}},
            },
        }
        issues = check_schema_integrity(registry, schema)
        assert "child 'e2' of entity 'e1' has parentId None" in issues

    def test_root_entity_with_parent_id(self, registry):
        schema = {
            'root': ['e1', 'e2'],
            'entities': {
                'e1': {'type': 'section', 'inputs': {}, 'children': ['e2']},
                'e2': {'type': 'text', 'inputs': {}, 'parentId': 'e1'},
            },
        }
        issues = check_schema_integrity(registry, schema)
        assert "root entity 'e2' must not have a parentId" in issues

    def test_orphan_not_in_root(self, registry):
        schema = {'root': [], 'entities': {'e1': {'type': 'text', 'inputs': {}}}}
        issues = check_schema_integrity(registry, schema)
        assert issues == ["entity 'e1' has no parentId and is not in root"]

    def test_children_on_type_without_children(self, registry):
        schema = {
            'root': ['e1'],
            'entities': {
                'e1': {'type': 'text', 'inputs': {}, 'children': ['e2']},
                'e2': {'type': 'text', 'inputs': {}, 'parentId': 'e1'},
            },
        }
        issues = check_schema_integrity(registry, schema)
        assert "entity 'e1' of type 'text' does not accept children" in issues

    def test_disallowed_child_type(self, registry):
        schema = {
            'root': ['e1'],
            'entities': {
                'e1': {'type': 'select', 'inputs': {}, 'children': ['e2']},
                'e2': {'type': 'text', 'inputs': {}, 'parentId': 'e1'},
            },
        }
        issues = check_schema_integrity(registry, schema)
        assert issues == ["entity type 'text' is not allowed under 'select'"]

    def test_parent_required(self, registry):
        schema = {'root': ['e1'], 'entities': {'e1': {'type': 'option', 'inputs': {}}}}
        issues = check_schema_integrity(registry, schema)
        assert issues == ["entity 'e1' of type 'option' requires a parent"]

    def test_duplicate_in_root(self, registry):
        schema = {'root': ['e1', 'e1'], 'entities': {'e1': {'type': 'text', 'inputs': {}}}}
        assert check_schema_integrity(registry, schema) == ["root lists an entity more than once"]

    def test_cycle_is_unreachable(self, registry):
        """Test a detached cycle is reported as unreachable."""
        schema = {
            'root': [],
            'entities': {
                'e1': {'type': 'section', 'inputs': {}, 'parentId': 'e2', 'children': ['e2']},
                'e2': {'type': 'section', 'inputs': {}, 'parentId': 'e1', 'children': ['e1']},
            },
        }
        issues = check_schema_integrity(registry, schema)
        assert "entity 'e1' is not reachable from root" in issues
        assert "entity 'e2' is not reachable from root" in issues

    def test_ensure_raises_with_all_issues(self, registry):
        schema = {'root': ['e1', 'e2'], 'entities': {}}
        with pytest.raises(SchemaIntegrityError) as excinfo:
            ensure_schema_integrity(registry, schema)
        assert excinfo.value.issues == [
            "root references unknown entity 'e1'",
            "root references unknown entity 'e2'",
        ]
