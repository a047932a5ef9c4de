"""Utilities for constructing MaterialisedComponent objects.

This module provides the ComponentBuilder class, which invokes the factory
registered for a component's type with the component's resolved property
values, and wraps the result in a MaterialisedComponent. It supports a
transformer pattern that allows post-processing of components after creation.
"""

import logging
import uuid
from functools import reduce
from typing import Any, Callable, Mapping, Optional

from chainconf.domain import ComponentReference, MaterialisedComponent, PropertySheet
from chainconf.errors import ConstructionError
from chainconf.types import TypeRegistry

__all__ = ["ComponentBuilder", "Transformer"]

logger = logging.getLogger(__name__)

Transformer = Callable[[MaterialisedComponent], MaterialisedComponent]


class ComponentBuilder:
    """Build :class:`MaterialisedComponent` instances from property sheets."""

    def __init__(
        self,
        types: TypeRegistry,
        transformers: Optional[list[Transformer]] = None,
    ):
        self._types = types
        self._transformers = transformers or []

    def build(
        self, sheet: PropertySheet, components: Mapping[str, Any]
    ) -> MaterialisedComponent:
        """Invoke the type's factory and apply transformers to the result.

        Args:
            sheet: The resolved property sheet of the component.
            components: Instances of every component the sheet refers to, by name.

        Returns:
            The resulting :class:`MaterialisedComponent`.

        Raises:
            ConstructionError: If the factory (or a transformer) raises.
        """
        descriptor = self._types.descriptor(sheet.type_tag)
        call_kwargs = {
            field_name: _substitute(value, components)
            for field_name, value in sheet.values.items()
        }
        try:
            component_obj = descriptor.factory(**call_kwargs)
            untransformed = MaterialisedComponent(
                uuid.uuid4(),
                sheet.name,
                sheet.type_tag,
                component_obj,
                list(components.keys()),
                sheet,
                descriptor.metadata,
            )
            materialised = reduce(
                lambda component, transformer: transformer(component),
                self._transformers,
                untransformed,
            )
        except ConstructionError:
            raise
        except Exception as e:
            raise ConstructionError(
                f"Cannot construct component of type {sheet.type_tag!r}: {e}",
                name=sheet.name,
                origin=sheet.origin,
            ) from e

        logger.debug("Constructed %r as %s", sheet.name, type(materialised.component).__name__)
        return materialised


def _substitute(value: Any, components: Mapping[str, Any]) -> Any:
    """Replace component references, at any depth, with the referenced instances."""
    if isinstance(value, ComponentReference):
        return components[value.name]
    if isinstance(value, tuple):
        return tuple(_substitute(item, components) for item in value)
    if isinstance(value, Mapping):
        return {key: _substitute(item, components) for key, item in value.items()}
    return value
