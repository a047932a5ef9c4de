"""Registration of component types: field descriptors, subtyping and factories.

The hosting application describes every type it wants to build with an
explicit table of fields. The resolution engine only ever reads this table;
it never inspects the factory or the objects it returns.
"""

import enum
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from chainconf.errors import TypeMismatchError

__all__ = [
    "FieldKind",
    "FieldDescriptor",
    "TypeDescriptor",
    "TypeRegistry",
    "inferred_name",
]


class FieldKind(enum.Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    COMPONENT = "component"
    GLOBAL = "global"
    ENUM = "enum"


@dataclass(frozen=True)
class FieldDescriptor:
    """Declares one recognised property of a type.

    Attributes:
        name: The property name.
        kind: The kind of value the property holds.
        default: Plain Python value used when the record does not set the property.
            Strings, lists and dicts are coerced exactly like declared values.
        required: Whether a value (declared or default) must be present.
        choices: Allowed values for ``ENUM`` fields.
        element_kind: Kind of each item of a ``SEQUENCE`` field, if constrained.
    """

    name: str
    kind: FieldKind = FieldKind.SCALAR
    default: Any = None
    required: bool = False
    choices: tuple[str, ...] = ()
    element_kind: Optional[FieldKind] = None


@dataclass(frozen=True)
class TypeDescriptor:
    """Everything the engine knows about a type.

    Attributes:
        type_tag: Logical type name used in definitions.
        factory: Callable invoked with the resolved property values as keyword arguments.
        fields: Field descriptors, including those inherited from the supertype.
        supertype: The declared supertype's tag, if any.
        metadata: Arbitrary metadata, passed through to materialised components.
    """

    type_tag: str
    factory: Callable
    fields: tuple[FieldDescriptor, ...] = ()
    supertype: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def field_named(self, name: str) -> Optional[FieldDescriptor]:
        return next((f for f in self.fields if f.name == name), None)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


def inferred_name(target: Any) -> str:
    """Derive a type tag from a class or function name, removing a 'make_' prefix if present.

    Example:
        >>> inferred_name(Database)       # Returns "Database"
        >>> inferred_name(make_database)  # Returns "database"
    """
    if inspect.isclass(target):
        return target.__name__

    if target.__name__.startswith("make_"):
        return target.__name__[5:]
    else:
        return target.__name__


class TypeRegistry:
    """Table mapping type tags to their descriptors, populated at application startup."""

    def __init__(self):
        self._declared: dict[str, TypeDescriptor] = {}

    def register(self, descriptor: TypeDescriptor):
        """Register a type explicitly.

        Args:
            descriptor: The type to register. Its ``fields`` are the fields the type
                declares itself; fields of the supertype are added on lookup.

        Raises:
            TypeMismatchError: If the tag is already registered.
        """
        if descriptor.type_tag in self._declared:
            raise TypeMismatchError(
                "Type is already registered", name=descriptor.type_tag
            )
        self._declared[descriptor.type_tag] = descriptor

    def provides(
        self,
        type_tag: Optional[str] = None,
        fields: Iterable[FieldDescriptor] = (),
        subtype_of: Optional[str] = None,
    ) -> Callable:
        """Decorator to register a function or class as the factory of a type.

        Args:
            type_tag: Optional type name; defaults to the class name, or the function
                name with any 'make_' prefix removed.
            fields: The fields the type declares, in addition to its supertype's.
            subtype_of: Tag of the declared supertype, if any.

        Returns:
            A decorator that registers the factory and returns it unchanged.

        Example:
            @types.provides("string", fields=[FieldDescriptor("one")])
            def make_string(one):
                return StringHolder(one)
        """

        def decorator(factory):
            if not callable(factory):
                raise TypeMismatchError(f"{factory} is not a class or function")
            self.register(
                TypeDescriptor(
                    type_tag or inferred_name(factory),
                    factory,
                    tuple(fields),
                    subtype_of,
                    getattr(factory, "__provider_metadata__", {}),
                )
            )
            return factory

        return decorator

    def __contains__(self, type_tag: str) -> bool:
        return type_tag in self._declared

    @property
    def type_tags(self) -> list[str]:
        return list(self._declared)

    def descriptor(self, type_tag: str) -> TypeDescriptor:
        """Return the descriptor of a type, with supertype fields merged in.

        Fields redeclared by a subtype replace the supertype's declaration of the
        same name; other supertype fields come first, in their declared order.

        Raises:
            TypeMismatchError: If the type, or one of its supertypes, is not registered.
        """
        lineage = self._lineage(type_tag)
        merged: dict[str, FieldDescriptor] = {}
        for descriptor in reversed(lineage):
            for field_descriptor in descriptor.fields:
                merged[field_descriptor.name] = field_descriptor

        own = lineage[0]
        return TypeDescriptor(
            own.type_tag,
            own.factory,
            tuple(merged.values()),
            own.supertype,
            own.metadata,
        )

    def is_subtype(self, type_tag: str, ancestor_tag: str) -> bool:
        """True if ``type_tag`` is ``ancestor_tag`` or declares it, directly or transitively, as a supertype."""
        if type_tag == ancestor_tag:
            return True
        if type_tag not in self._declared:
            return False
        return any(d.type_tag == ancestor_tag for d in self._lineage(type_tag))

    def _lineage(self, type_tag: str) -> list[TypeDescriptor]:
        """The type followed by its supertypes, nearest first."""
        lineage = []
        current: Optional[str] = type_tag
        while current is not None:
            descriptor = self._declared.get(current)
            if descriptor is None:
                raise TypeMismatchError(
                    "Unknown type"
                    + (f" (supertype of {lineage[-1].type_tag!r})" if lineage else ""),
                    name=current,
                )
            if any(d.type_tag == current for d in lineage):
                raise TypeMismatchError(
                    "Type declares itself as its own supertype", name=current
                )
            lineage.append(descriptor)
            current = descriptor.supertype
        return lineage
