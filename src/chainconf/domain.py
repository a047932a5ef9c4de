"""Domain models used throughout the framework."""

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Union
from uuid import UUID

__all__ = [
    "ScalarValue",
    "SequenceValue",
    "MappingValue",
    "ComponentReference",
    "GlobalReference",
    "PropertyValue",
    "RawComponentRecord",
    "PropertySheet",
    "EntryState",
    "RegistryEntry",
    "MaterialisedComponent",
    "from_plain",
    "to_plain",
]


@dataclass(frozen=True)
class ScalarValue:
    """A textual value, possibly embedding ``${name}`` global tokens."""

    text: str


@dataclass(frozen=True)
class SequenceValue:
    """An ordered list of property values."""

    items: tuple["PropertyValue", ...] = ()


@dataclass(frozen=True)
class MappingValue:
    """A string-keyed table of property values, kept in declaration order."""

    entries: tuple[tuple[str, "PropertyValue"], ...] = ()

    @staticmethod
    def of(values: Mapping[str, "PropertyValue"]) -> "MappingValue":
        return MappingValue(tuple(values.items()))

    def as_dict(self) -> dict[str, "PropertyValue"]:
        return dict(self.entries)


@dataclass(frozen=True)
class ComponentReference:
    """A reference, by name, to another component in the same manager."""

    name: str


@dataclass(frozen=True)
class GlobalReference:
    """A reference, by name, to a global symbol."""

    name: str


PropertyValue = Union[
    ScalarValue, SequenceValue, MappingValue, ComponentReference, GlobalReference
]

_VALUE_TYPES = (
    ScalarValue, SequenceValue, MappingValue, ComponentReference, GlobalReference
)


@dataclass(frozen=True)
class RawComponentRecord:
    """A component definition as declared in a source, before any resolution.

    Attributes:
        name: Unique name of the component within a load session.
        type_tag: Logical name of the component's type. ``None`` on a based-on
            record that keeps the type of the component it is based on.
        parent_name: Name of the component this one is based on, if any.
        properties: Declared property values keyed by property name.
        origin: Identity of the source the record was read from.
        exportable: Whether a remote registry may serve this component.
        importable: Whether a remote registry may supply this component.
    """

    name: str
    type_tag: Optional[str]
    parent_name: Optional[str] = None
    properties: Mapping[str, PropertyValue] = field(default_factory=dict)
    origin: Optional[str] = None
    exportable: bool = False
    importable: bool = False

    def __post_init__(self):
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))


@dataclass(frozen=True)
class PropertySheet:
    """The resolved, type-checked property set of one component.

    Values are fully coerced: scalars are interpolated strings, sequences are
    tuples, mappings are read-only mappings, and component-valued fields hold
    :class:`ComponentReference` instances for the registry to resolve.
    """

    name: str
    type_tag: str
    values: Mapping[str, Any]
    origin: Optional[str] = None
    status: str = "valid"

    def __post_init__(self):
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def __getitem__(self, field_name: str) -> Any:
        return self.values[field_name]

    def get(self, field_name: str, default: Any = None) -> Any:
        return self.values.get(field_name, default)

    def component_references(self) -> list[str]:
        """Names of all components referenced by this sheet, in field order, without repeats."""
        seen: dict[str, None] = {}
        for value in self.values.values():
            for name in _references_in(value):
                seen.setdefault(name)
        return list(seen)


def _references_in(value: Any) -> Iterator[str]:
    if isinstance(value, ComponentReference):
        yield value.name
    elif isinstance(value, tuple):
        for item in value:
            yield from _references_in(item)
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from _references_in(item)


class EntryState(enum.Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class RegistryEntry:
    """Mutable bookkeeping for one named component in the registry."""

    name: str
    state: EntryState = EntryState.UNRESOLVED
    component: Optional["MaterialisedComponent"] = None
    error: Optional[BaseException] = None
    owner: Optional[int] = None


@dataclass(frozen=True)
class MaterialisedComponent:
    """
    Represents a resolved and instantiated component.

    Attributes:
        id: The unique id of this component instance.
        name: The component name.
        type_tag: The logical type the component was built as.
        component: The instantiated component object.
        dependencies: Names of the components this one was built from.
        sheet: The property sheet the component was built from.
        metadata: Optional metadata declared on the component's type.
    """

    id: UUID
    name: str
    type_tag: str
    component: Any
    dependencies: list[str]
    sheet: PropertySheet
    metadata: dict[str, Any]


REFERENCE_KEY = "$ref"
GLOBAL_KEY = "$global"


def from_plain(value: Any) -> PropertyValue:
    """Convert plain data (as read from JSON or YAML) into a :class:`PropertyValue`.

    Strings, numbers and booleans become scalars; lists become sequences;
    ``{"$ref": name}`` and ``{"$global": name}`` become references; any other
    dict becomes a mapping.

    Raises:
        ValueError: If the value (or a nested value) has no property representation.
    """
    if isinstance(value, _VALUE_TYPES):
        return value
    if isinstance(value, bool):
        return ScalarValue("true" if value else "false")
    if isinstance(value, (str, int, float)):
        return ScalarValue(str(value))
    if isinstance(value, (list, tuple)):
        return SequenceValue(tuple(from_plain(item) for item in value))
    if isinstance(value, Mapping):
        if len(value) == 1 and REFERENCE_KEY in value:
            return ComponentReference(_reference_name(value[REFERENCE_KEY]))
        if len(value) == 1 and GLOBAL_KEY in value:
            return GlobalReference(_reference_name(value[GLOBAL_KEY]))
        return MappingValue(
            tuple((str(key), from_plain(item)) for key, item in value.items())
        )
    raise ValueError(f"Unsupported property value {value!r}")


def _reference_name(name: Any) -> str:
    if not isinstance(name, str) or not name:
        raise ValueError(f"Reference target must be a non-empty string, got {name!r}")
    return name


def to_plain(value: PropertyValue) -> Any:
    """Inverse of :func:`from_plain`; scalars always come back as strings."""
    if isinstance(value, ScalarValue):
        return value.text
    if isinstance(value, SequenceValue):
        return [to_plain(item) for item in value.items]
    if isinstance(value, MappingValue):
        return {key: to_plain(item) for key, item in value.entries}
    if isinstance(value, ComponentReference):
        return {REFERENCE_KEY: value.name}
    if isinstance(value, GlobalReference):
        return {GLOBAL_KEY: value.name}
    raise ValueError(f"Not a property value: {value!r}")
