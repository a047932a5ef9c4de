import pytest

from chainconf.domain import (
    ComponentReference,
    GlobalReference,
    MappingValue,
    PropertySheet,
    RawComponentRecord,
    ScalarValue,
    SequenceValue,
    from_plain,
    to_plain,
)


def test_plain_values_are_converted():
    assert from_plain(True) == ScalarValue("true")
    assert from_plain(3) == ScalarValue("3")
    assert from_plain(["a", {"$ref": "b"}]) == SequenceValue(
        (ScalarValue("a"), ComponentReference("b"))
    )
    assert from_plain({"$global": "g"}) == GlobalReference("g")
    assert from_plain({"$ref": "b", "other": 1}) == MappingValue(
        (("$ref", ScalarValue("b")), ("other", ScalarValue("1")))
    )


def test_property_values_pass_through():
    value = ComponentReference("x")

    assert from_plain(value) is value


def test_to_plain_inverts_from_plain():
    plain = {"a": ["x", {"$ref": "y"}], "b": {"$global": "z"}}

    assert to_plain(from_plain(plain)) == plain


def test_unsupported_values():
    with pytest.raises(ValueError):
        from_plain(object())
    with pytest.raises(ValueError):
        from_plain({"$ref": ""})


def test_record_properties_are_read_only():
    properties = {"one": ScalarValue("a")}
    record = RawComponentRecord("a", "string", properties=properties)
    properties["two"] = ScalarValue("b")

    assert list(record.properties) == ["one"]
    with pytest.raises(TypeError):
        record.properties["three"] = ScalarValue("c")


def test_sheet_component_references_are_unique_and_ordered():
    sheet = PropertySheet(
        "s",
        "t",
        {
            "first": ComponentReference("b"),
            "many": (ComponentReference("a"), "text", ComponentReference("b")),
            "table": {"k": ComponentReference("c")},
            "none": None,
        },
    )

    assert sheet.component_references() == ["b", "a", "c"]
