"""Type-check and coerce an effective record into a :class:`PropertySheet`.

Coercion is driven entirely by the field descriptors of the record's type.
Globals are interpolated here, against the final state of the symbol table.
"""

import threading
from types import MappingProxyType
from typing import Any, Optional

from chainconf.domain import (
    ComponentReference,
    GlobalReference,
    MappingValue,
    PropertySheet,
    PropertyValue,
    RawComponentRecord,
    ScalarValue,
    SequenceValue,
    from_plain,
)
from chainconf.errors import (
    MissingPropertyError,
    TypeMismatchError,
    UnknownPropertyError,
)
from chainconf.overrides import OverrideResolver
from chainconf.symbols import GlobalSymbolTable
from chainconf.types import FieldDescriptor, FieldKind, TypeDescriptor, TypeRegistry

__all__ = ["PropertySheetBuilder", "SheetResolver"]


class PropertySheetBuilder:
    """Build property sheets, interpolating globals from ``symbols``."""

    def __init__(self, symbols: GlobalSymbolTable):
        self._symbols = symbols

    def build(
        self, record: RawComponentRecord, descriptor: TypeDescriptor
    ) -> PropertySheet:
        """Coerce every declared field of ``record`` to the kind its descriptor declares.

        Args:
            record: An effective record (based-on links already folded in).
            descriptor: The descriptor of the record's type.

        Returns:
            An immutable sheet with one value per declared field. Optional fields
            with neither a value nor a default hold ``None``.

        Raises:
            UnknownPropertyError: If the record sets a field the type does not declare.
            MissingPropertyError: If a required field has no value and no default.
            TypeMismatchError: If a value cannot be coerced to its field's kind.
            UnknownGlobalError: If a value refers to an undefined global.
            GlobalCycleError: If global interpolation refers back to itself.
        """
        unknown = [key for key in record.properties if descriptor.field_named(key) is None]
        if unknown:
            raise UnknownPropertyError(
                f"Properties {unknown} are not declared by type {descriptor.type_tag!r}; "
                f"declared properties are {descriptor.field_names}",
                name=record.name,
                origin=record.origin,
            )

        coercion = _Coercion(self._symbols, record)
        values: dict[str, Any] = {}
        for field_descriptor in descriptor.fields:
            value = record.properties.get(field_descriptor.name)
            if value is None and field_descriptor.default is not None:
                value = from_plain(field_descriptor.default)
            if value is None:
                if field_descriptor.required:
                    raise MissingPropertyError(
                        f"Required property {field_descriptor.name!r} is not set",
                        name=record.name,
                        origin=record.origin,
                    )
                values[field_descriptor.name] = None
                continue
            values[field_descriptor.name] = coercion.coerce(field_descriptor, value)

        return PropertySheet(record.name, record.type_tag, values, record.origin)


class _Coercion:
    """Coercion of the values of one record."""

    def __init__(self, symbols: GlobalSymbolTable, record: RawComponentRecord):
        self._symbols = symbols
        self._record = record

    def coerce(self, field_descriptor: FieldDescriptor, value: PropertyValue) -> Any:
        kind = field_descriptor.kind
        name = field_descriptor.name

        if kind is FieldKind.SCALAR:
            return self._scalar(name, value)
        if kind is FieldKind.ENUM:
            text = self._scalar(name, value)
            if text not in field_descriptor.choices:
                raise self._mismatch(
                    name, f"{text!r} is not one of {list(field_descriptor.choices)}"
                )
            return text
        if kind is FieldKind.COMPONENT:
            return self._component(name, value)
        if kind is FieldKind.GLOBAL:
            if isinstance(value, GlobalReference):
                return self._symbols.lookup(value.name)
            if isinstance(value, ScalarValue):
                return self._symbols.lookup(self._interpolate(value.text))
            raise self._mismatch(name, "expected a global reference")
        if kind is FieldKind.SEQUENCE:
            if not isinstance(value, SequenceValue):
                raise self._mismatch(name, "expected a sequence")
            return tuple(
                self._element(name, field_descriptor.element_kind, item)
                for item in value.items
            )
        if kind is FieldKind.MAPPING:
            if not isinstance(value, MappingValue):
                raise self._mismatch(name, "expected a mapping")
            return MappingProxyType(
                {key: self._untyped(name, item) for key, item in value.entries}
            )
        raise self._mismatch(name, f"unsupported field kind {kind}")

    def _element(
        self, name: str, element_kind: Optional[FieldKind], item: PropertyValue
    ) -> Any:
        if element_kind is None:
            return self._untyped(name, item)
        return self.coerce(FieldDescriptor(name, element_kind), item)

    def _untyped(self, name: str, value: PropertyValue) -> Any:
        """Coerce a value whose kind is not declared, keeping its own shape."""
        if isinstance(value, ScalarValue):
            return self._interpolate(value.text)
        if isinstance(value, GlobalReference):
            return self._symbols.lookup(value.name)
        if isinstance(value, ComponentReference):
            return value
        if isinstance(value, SequenceValue):
            return tuple(self._untyped(name, item) for item in value.items)
        if isinstance(value, MappingValue):
            return MappingProxyType(
                {key: self._untyped(name, item) for key, item in value.entries}
            )
        raise self._mismatch(name, f"unsupported value {value!r}")

    def _scalar(self, name: str, value: PropertyValue) -> str:
        if isinstance(value, ScalarValue):
            return self._interpolate(value.text)
        if isinstance(value, GlobalReference):
            return self._symbols.lookup(value.name)
        raise self._mismatch(name, f"expected a scalar, got {type(value).__name__}")

    def _component(self, name: str, value: PropertyValue) -> ComponentReference:
        if isinstance(value, ComponentReference):
            return value
        if isinstance(value, (ScalarValue, GlobalReference)):
            target = self._scalar(name, value)
            if not target:
                raise self._mismatch(name, "empty component name")
            return ComponentReference(target)
        raise self._mismatch(name, "expected a component reference")

    def _interpolate(self, text: str) -> str:
        return self._symbols.interpolate(text, self._record.origin)

    def _mismatch(self, field_name: str, reason: str) -> TypeMismatchError:
        return TypeMismatchError(
            f"Property {field_name!r}: {reason}",
            name=self._record.name,
            origin=self._record.origin,
        )


class SheetResolver:
    """Effective records and property sheets by component name, with sheets cached.

    Sources are frozen once loaded, so a sheet never goes stale; concurrent
    builds of the same sheet produce equal values and the first one stored wins.
    """

    def __init__(
        self,
        resolver: OverrideResolver,
        types: TypeRegistry,
        builder: PropertySheetBuilder,
    ):
        self._resolver = resolver
        self._types = types
        self._builder = builder
        self._sheets: dict[str, PropertySheet] = {}
        self._lock = threading.Lock()

    def effective_record(self, name: str) -> RawComponentRecord:
        return self._resolver.resolve(name)

    def chain(self, name: str) -> list[RawComponentRecord]:
        return self._resolver.chain(name)

    def sheet(self, name: str) -> PropertySheet:
        """The property sheet of a component, built on first request."""
        with self._lock:
            cached = self._sheets.get(name)
        if cached is not None:
            return cached

        record = self._resolver.resolve(name)
        try:
            descriptor = self._types.descriptor(record.type_tag)
        except TypeMismatchError as e:
            raise TypeMismatchError(
                f"Type {record.type_tag!r} is not usable: {e}", name=name, origin=record.origin
            ) from e
        sheet = self._builder.build(record, descriptor)

        with self._lock:
            return self._sheets.setdefault(name, sheet)
