"""Sample component classes shared by the tests."""

from dataclasses import dataclass
from typing import Optional

from chainconf.types import FieldDescriptor, TypeRegistry


@dataclass
class StringConfigurable:
    one: str
    two: str
    three: str


@dataclass
class StringleConfigurable(StringConfigurable):
    four: str


@dataclass
class Pair:
    left: object
    right: Optional[object] = None


@dataclass
class Pool:
    name: str
    members: tuple


# Importable as "components:string_types" from the command line tests
string_types = TypeRegistry()
string_types.provides(
    "string",
    fields=[FieldDescriptor("one"), FieldDescriptor("two"), FieldDescriptor("three")],
)(StringConfigurable)
string_types.provides(
    "stringle", fields=[FieldDescriptor("four")], subtype_of="string"
)(StringleConfigurable)
