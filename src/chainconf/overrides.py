"""Resolve ``based-on`` links into effective component records.

A component may name another component it is based on. Its effective
record is the left fold of its ancestor chain, root first, where every
property takes the value of the nearest descendant that sets it.
"""

import logging
from typing import Optional

from chainconf.definitions import RawDefinitionStore
from chainconf.domain import PropertyValue, RawComponentRecord
from chainconf.errors import CycleError, TypeMismatchError, UnknownComponentError
from chainconf.types import TypeRegistry

__all__ = ["OverrideResolver"]

logger = logging.getLogger(__name__)


class OverrideResolver:
    """Compute effective records from a frozen :class:`RawDefinitionStore`.

    Args:
        definitions: The raw records.
        types: Used to check that a type override names a declared subtype.
    """

    def __init__(self, definitions: RawDefinitionStore, types: TypeRegistry):
        self._definitions = definitions
        self._types = types

    def chain(self, name: str) -> list[RawComponentRecord]:
        """The override chain of a component, ``[root, ..., leaf]``.

        Raises:
            UnknownComponentError: If the component or one of its ancestors is undefined.
            CycleError: If following ``based-on`` links revisits a component.
        """
        ancestry: list[RawComponentRecord] = []
        seen: list[str] = []
        current: Optional[str] = name
        while current is not None:
            if current in seen:
                leaf = self._definitions[name]
                raise CycleError(
                    "Based-on cycle",
                    seen[seen.index(current):] + [current],
                    name=name,
                    origin=leaf.origin,
                )
            record = self._definitions.get(current)
            if record is None:
                referrer = ancestry[-1] if ancestry else None
                raise UnknownComponentError(
                    "Undefined component"
                    + (f" (based-on of {referrer.name!r})" if referrer else ""),
                    name=current,
                    origin=referrer.origin if referrer else None,
                )
            seen.append(current)
            ancestry.append(record)
            current = record.parent_name
        ancestry.reverse()
        return ancestry

    def resolve(self, name: str) -> RawComponentRecord:
        """Return the effective record of a component.

        The effective record keeps the leaf's name, origin, parent link and
        flags. Its type is the last type set along the chain, which must be the
        ancestor's type or a declared subtype of it at every step. A record
        that sets no type keeps the one it inherits.

        Raises:
            UnknownComponentError: If the component or one of its ancestors is undefined.
            CycleError: If the based-on links form a cycle.
            TypeMismatchError: If a descendant changes the type to a non-subtype, or
                the root of the chain has no type.
        """
        ancestry = self.chain(name)
        root = ancestry[0]
        if root.type_tag is None:
            raise TypeMismatchError(
                "Component has no type and is not based on another component",
                name=root.name,
                origin=root.origin,
            )
        type_tag = root.type_tag
        properties: dict[str, PropertyValue] = dict(root.properties)

        for record in ancestry[1:]:
            properties.update(record.properties)
            if record.type_tag is None:
                continue
            if record.type_tag != type_tag and not self._types.is_subtype(
                record.type_tag, type_tag
            ):
                raise TypeMismatchError(
                    f"Type {record.type_tag!r} is not a subtype of {type_tag!r}, "
                    "the type of the component it is based on",
                    name=record.name,
                    origin=record.origin,
                )
            type_tag = record.type_tag

        leaf = ancestry[-1]
        if len(ancestry) > 1:
            logger.debug(
                "Resolved %r through %s",
                name,
                " -> ".join(record.name for record in ancestry),
            )
        return RawComponentRecord(
            leaf.name,
            type_tag,
            leaf.parent_name,
            properties,
            leaf.origin,
            leaf.exportable,
            leaf.importable,
        )
