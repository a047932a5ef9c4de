import textwrap
from pathlib import Path

import pytest
from components import Pair, Pool, StringConfigurable, StringleConfigurable

from chainconf.types import FieldDescriptor, FieldKind, TypeRegistry


@pytest.fixture
def types() -> TypeRegistry:
    types = TypeRegistry()

    types.provides(
        "string",
        fields=[
            FieldDescriptor("one", default=""),
            FieldDescriptor("two", default=""),
            FieldDescriptor("three", default=""),
        ],
    )(StringConfigurable)

    types.provides(
        "stringle",
        fields=[FieldDescriptor("four", required=True)],
        subtype_of="string",
    )(StringleConfigurable)

    types.provides(
        "pair",
        fields=[
            FieldDescriptor("left", FieldKind.COMPONENT, required=True),
            FieldDescriptor("right", FieldKind.COMPONENT),
        ],
    )(Pair)

    types.provides(
        "pool",
        fields=[
            FieldDescriptor("name", default="pool"),
            FieldDescriptor(
                "members", FieldKind.SEQUENCE, default=[], element_kind=FieldKind.COMPONENT
            ),
        ],
    )(Pool)

    return types


@pytest.fixture
def write_source(tmp_path):
    """Write a source file below tmp_path and return its path."""

    def write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text), encoding="utf-8")
        return path

    return write
