# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Entity type registry.

The registry declares which entity types exist, which inputs each type
carries, which types may contain children (and of which types), which types
must always live under a parent, and how entity ids are generated and
checked.

Example:
    >>> registry = Registry(
    ...     entities=[
    ...         entity('section'),
    ...         entity('text', inputs=[entity_input('label', validate=required)]),
    ...     ],
    ...     children_allowed={'section': 'text'},
    ...     parent_required=['text'],
    ... )
    >>> registry.accepts_children('section')
    True
    >>> registry.is_child_allowed('section', 'text')
    True
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from .exceptions import RegistryError, UnknownEntityTypeError, UnknownInputError

InputValidator = Callable[[Any, Any], Any]


def _accept_any(value: Any, context: Any) -> Any:
    return value


@dataclass(frozen=True)
class EntityInput:
    """A named, independently validatable value held by an entity.

    Attributes:
        name: Input name, unique within its entity type.
        validate: Callable ``(value, context) -> value`` that raises on
            invalid values. May be a coroutine function.
    """

    name: str
    validate: InputValidator = _accept_any


@dataclass(frozen=True)
class EntityDefinition:
    """Behavior profile of an entity type."""

    name: str
    inputs: tuple[EntityInput, ...] = ()

    def get_input(self, input_name: str) -> EntityInput | None:
        for entity_input_ in self.inputs:
            if entity_input_.name == input_name:
                return entity_input_
        return None

    @property
    def input_names(self) -> list[str]:
        return [entity_input_.name for entity_input_ in self.inputs]


def generate_uuid() -> str:
    """Generate a random UUID4 string."""
    return str(uuid.uuid4())


def validate_uuid(entity_id: str) -> None:
    """Raise ValueError unless entity_id is a canonical UUID string."""
    if not isinstance(entity_id, str):
        raise ValueError(f"expected a string, got {type(entity_id).__name__}")
    if str(uuid.UUID(entity_id)) != entity_id.lower():
        raise ValueError("not a canonical UUID")


@dataclass(frozen=True)
class IdentifierPolicy:
    """Pair of callables generating and checking entity ids.

    ``validate`` returns nothing and raises when the id is rejected.
    """

    generate: Callable[[], str] = generate_uuid
    validate: Callable[[str], None] = validate_uuid


def entity(name: str, inputs: Iterable[EntityInput] = ()) -> EntityDefinition:
    """Declare an entity type."""
    return EntityDefinition(name=name, inputs=tuple(inputs))


def entity_input(name: str, validate: InputValidator | None = None) -> EntityInput:
    """Declare an entity input. Without validate, every value is accepted."""
    if validate is None:
        return EntityInput(name=name)
    return EntityInput(name=name, validate=validate)


def _parse_children(allowed: bool | str | Iterable[str]) -> frozenset[str] | None:
    """Normalize a children_allowed entry.

    ``True`` allows any child type and maps to None. A comma-separated string
    or an iterable lists the allowed child types. ``False`` maps to an empty
    set.
    """
    if allowed is True:
        return None
    if allowed is False:
        return frozenset()
    if isinstance(allowed, str):
        return frozenset(t.strip() for t in allowed.split(',') if t.strip())
    return frozenset(allowed)


@dataclass(frozen=True)
class Registry:
    """Runtime mapping from entity type name to its behavior.

    Args:
        entities: Entity type definitions.
        children_allowed: Maps a type name to ``True`` (any child type), a
            comma-separated string or an iterable of allowed child types.
            Types not listed never accept children.
        parent_required: Types whose entities may never sit at the root.
        entity_id: Identifier policy. Defaults to UUID4 strings.

    Raises:
        RegistryError: On duplicate type or input names and on references to
            unknown types.
    """

    entities: tuple[EntityDefinition, ...] = ()
    children_allowed: Mapping[str, bool | str | Iterable[str]] = field(default_factory=dict)
    parent_required: Iterable[str] = ()
    entity_id: IdentifierPolicy = field(default_factory=IdentifierPolicy)

    def __post_init__(self) -> None:
        definitions: dict[str, EntityDefinition] = {}
        for definition in self.entities:
            if definition.name in definitions:
                raise RegistryError(f"Duplicate entity type '{definition.name}'")
            names = definition.input_names
            if len(set(names)) != len(names):
                raise RegistryError(
                    f"Duplicate input names in entity type '{definition.name}'"
                )
            definitions[definition.name] = definition

        children: dict[str, frozenset[str] | None] = {}
        for type_name, allowed in self.children_allowed.items():
            if type_name not in definitions:
                raise RegistryError(
                    f"children_allowed references unknown entity type '{type_name}'"
                )
            parsed = _parse_children(allowed)
            if parsed is not None:
                unknown = sorted(parsed - definitions.keys())
                if unknown:
                    raise RegistryError(
                        f"children_allowed for '{type_name}' references "
                        f"unknown entity types {unknown}"
                    )
                if not parsed:
                    continue
            children[type_name] = parsed

        parent_required = frozenset(self.parent_required)
        unknown = sorted(parent_required - definitions.keys())
        if unknown:
            raise RegistryError(
                f"parent_required references unknown entity types {unknown}"
            )

        object.__setattr__(self, 'entities', tuple(self.entities))
        object.__setattr__(self, '_definitions', definitions)
        object.__setattr__(self, '_children', children)
        object.__setattr__(self, '_parent_required', parent_required)

    # ==================== Lookups ====================

    def lookup(self, type_name: str) -> EntityDefinition | None:
        """Return the definition for type_name, or None if unknown."""
        return self._definitions.get(type_name)

    def get_definition(self, type_name: str) -> EntityDefinition:
        """Return the definition for type_name.

        Raises:
            UnknownEntityTypeError: If the type is not registered.
        """
        definition = self._definitions.get(type_name)
        if definition is None:
            raise UnknownEntityTypeError(type_name)
        return definition

    def get_input(self, type_name: str, input_name: str) -> EntityInput:
        """Return the input declared by type_name.

        Raises:
            UnknownEntityTypeError: If the type is not registered.
            UnknownInputError: If the type does not declare input_name.
        """
        entity_input_ = self.get_definition(type_name).get_input(input_name)
        if entity_input_ is None:
            raise UnknownInputError(type_name, input_name)
        return entity_input_

    def get_inputs(self, type_name: str, input_names: Iterable[str]) -> list[EntityInput]:
        """Return the inputs for several names, failing on the first unknown one."""
        return [self.get_input(type_name, name) for name in input_names]

    def type_names(self) -> list[str]:
        return list(self._definitions)

    # ==================== Children / parent policy ====================

    def accepts_children(self, type_name: str) -> bool:
        self.get_definition(type_name)
        return type_name in self._children

    def allowed_children(self, type_name: str) -> frozenset[str] | None:
        """Return the allowed child types, None meaning any.

        Raises:
            UnknownEntityTypeError: If the type is not registered.
        """
        self.get_definition(type_name)
        return self._children.get(type_name, frozenset())

    def is_child_allowed(self, parent_type: str, child_type: str) -> bool:
        if not self.accepts_children(parent_type):
            return False
        allowed = self._children[parent_type]
        return allowed is None or child_type in allowed

    def requires_parent(self, type_name: str) -> bool:
        self.get_definition(type_name)
        return type_name in self._parent_required
