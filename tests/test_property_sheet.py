from types import MappingProxyType

import pytest

from chainconf.domain import (
    ComponentReference,
    GlobalReference,
    RawComponentRecord,
    from_plain,
)
from chainconf.errors import (
    MissingPropertyError,
    TypeMismatchError,
    UnknownGlobalError,
    UnknownPropertyError,
)
from chainconf.property_sheet import PropertySheetBuilder
from chainconf.symbols import GlobalSymbolTable
from chainconf.types import FieldDescriptor, FieldKind, TypeRegistry


def make_kitchen(**values):
    return values


@pytest.fixture
def descriptor():
    types = TypeRegistry()
    types.provides(
        "kitchen",
        fields=[
            FieldDescriptor("label", required=True),
            FieldDescriptor("mode", FieldKind.ENUM, default="fast", choices=("fast", "slow")),
            FieldDescriptor("peer", FieldKind.COMPONENT),
            FieldDescriptor("host", FieldKind.GLOBAL),
            FieldDescriptor("tags", FieldKind.SEQUENCE),
            FieldDescriptor("peers", FieldKind.SEQUENCE, element_kind=FieldKind.COMPONENT),
            FieldDescriptor("options", FieldKind.MAPPING),
            FieldDescriptor("note"),
        ],
    )(make_kitchen)
    return types.descriptor("kitchen")


@pytest.fixture
def builder():
    symbols = GlobalSymbolTable()
    symbols.overlay({"env": "prod", "hostname": "db.${env}.local"}, rank=0)
    symbols.freeze()
    return PropertySheetBuilder(symbols)


def record(**properties):
    return RawComponentRecord(
        "k",
        "kitchen",
        properties={key: from_plain(value) for key, value in properties.items()},
        origin="kitchen.yaml",
    )


def test_every_kind_is_coerced(builder, descriptor):
    sheet = builder.build(
        record(
            label="${env} kitchen",
            mode="slow",
            peer="oven",
            host={"$global": "hostname"},
            tags=["a", "${env}"],
            peers=[{"$ref": "oven"}, "fridge"],
            options={"size": "large", "where": {"$global": "env"}},
        ),
        descriptor,
    )

    assert sheet.name == "k"
    assert sheet.origin == "kitchen.yaml"
    assert sheet.status == "valid"
    assert sheet["label"] == "prod kitchen"
    assert sheet["mode"] == "slow"
    assert sheet["peer"] == ComponentReference("oven")
    assert sheet["host"] == "db.prod.local"
    assert sheet["tags"] == ("a", "prod")
    assert sheet["peers"] == (ComponentReference("oven"), ComponentReference("fridge"))
    assert dict(sheet["options"]) == {"size": "large", "where": "prod"}
    assert sheet["note"] is None
    assert sheet.component_references() == ["oven", "fridge"]


def test_defaults_and_optional_fields(builder, descriptor):
    sheet = builder.build(record(label="plain"), descriptor)

    assert sheet["mode"] == "fast"
    assert sheet["peer"] is None
    assert sheet["tags"] is None
    assert sheet.component_references() == []


def test_global_field_accepts_a_global_name(builder, descriptor):
    sheet = builder.build(record(label="x", host="hostname"), descriptor)

    assert sheet["host"] == "db.prod.local"


def test_scalar_field_accepts_a_global_reference(builder, descriptor):
    sheet = builder.build(record(label={"$global": "env"}), descriptor)

    assert sheet["label"] == "prod"


def test_unknown_property(builder, descriptor):
    with pytest.raises(UnknownPropertyError, match=r"\['colour'\]") as info:
        builder.build(record(label="x", colour="red"), descriptor)

    assert info.value.name == "k"
    assert info.value.origin == "kitchen.yaml"


def test_missing_required_property(builder, descriptor):
    with pytest.raises(MissingPropertyError, match="'label'"):
        builder.build(record(mode="slow"), descriptor)


def test_enum_value_outside_choices(builder, descriptor):
    with pytest.raises(TypeMismatchError, match="'medium' is not one of"):
        builder.build(record(label="x", mode="medium"), descriptor)


def test_collection_in_scalar_field(builder, descriptor):
    with pytest.raises(TypeMismatchError, match="expected a scalar"):
        builder.build(record(label=["x", "y"]), descriptor)


def test_scalar_in_sequence_field(builder, descriptor):
    with pytest.raises(TypeMismatchError, match="expected a sequence"):
        builder.build(record(label="x", tags="a"), descriptor)


def test_scalar_in_mapping_field(builder, descriptor):
    with pytest.raises(TypeMismatchError, match="expected a mapping"):
        builder.build(record(label="x", options="a"), descriptor)


def test_unknown_global_in_a_value(builder, descriptor):
    with pytest.raises(UnknownGlobalError) as info:
        builder.build(record(label="${nowhere}"), descriptor)

    assert info.value.name == "nowhere"
    assert info.value.origin == "kitchen.yaml"


def test_sheet_is_immutable(builder, descriptor):
    sheet = builder.build(record(label="x", options={"a": "b"}), descriptor)

    assert isinstance(sheet.values, MappingProxyType)
    assert isinstance(sheet["options"], MappingProxyType)
    with pytest.raises(TypeError):
        sheet.values["label"] = "y"


def test_untyped_sequence_keeps_references(builder, descriptor):
    sheet = builder.build(
        record(label="x", tags=[{"$ref": "oven"}, {"$global": "env"}]), descriptor
    )

    assert sheet["tags"] == (ComponentReference("oven"), "prod")
    assert GlobalReference("env") not in sheet["tags"]
