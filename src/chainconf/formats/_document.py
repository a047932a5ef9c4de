"""Shared document layout for the tree-shaped formats (JSON and YAML).

A document is a mapping with three optional sections::

    imports: [other.yaml]
    globals: {name: value}
    components:
      - name: a
        type: string
        based-on: parent
        exportable: false
        importable: false
        properties: {one: "${name}", peer: {$ref: b}}

``type`` may be left out of a component that is based on another one, in
which case it keeps the type it inherits. The layout is declared as a JSON
Schema and checked before any value is converted.
"""

from typing import Any, Iterable, Mapping, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError, best_match

from chainconf.domain import RawComponentRecord, from_plain, to_plain
from chainconf.errors import LoadError
from chainconf.formats import ParsedSource

_NAME = {"type": "string", "minLength": 1}

DOCUMENT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "chainconf source",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "imports": {"type": ["array", "null"], "items": {"type": "string"}},
        "globals": {
            "type": ["object", "null"],
            "additionalProperties": {"type": ["string", "number", "boolean"]},
        },
        "components": {
            "type": ["array", "null"],
            "items": {"$ref": "#/$defs/component"},
        },
    },
    "$defs": {
        "component": {
            "type": "object",
            "additionalProperties": False,
            "required": ["name"],
            "properties": {
                "name": _NAME,
                "type": _NAME,
                "based-on": _NAME,
                "exportable": {"type": "boolean"},
                "importable": {"type": "boolean"},
                "properties": {"type": ["object", "null"]},
            },
            "if": {"not": {"required": ["based-on"]}},
            "then": {"required": ["type"]},
        },
    },
}

_validator = Draft202012Validator(DOCUMENT_SCHEMA)


def document_to_source(document: Any, origin: str) -> ParsedSource:
    """Validate a parsed document and convert it into a :class:`ParsedSource`.

    Raises:
        LoadError: If the document does not follow the layout.
    """
    if document is None:
        return ParsedSource()

    error = best_match(_validator.iter_errors(document))
    if error is not None:
        raise _layout_error(error, document, origin)

    records = []
    seen = set()
    for raw in document.get("components") or []:
        record = _to_record(raw, origin)
        if record.name in seen:
            raise LoadError(
                "Component is defined more than once in the same source",
                name=record.name,
                origin=origin,
            )
        seen.add(record.name)
        records.append(record)

    global_values = document.get("globals") or {}
    return ParsedSource(
        tuple(records),
        {str(name): _global_text(value) for name, value in global_values.items()},
        tuple(document.get("imports") or ()),
    )


def _layout_error(error: ValidationError, document: Any, origin: str) -> LoadError:
    path = list(error.absolute_path)
    location = "/".join(str(part) for part in path) or "top level"
    return LoadError(
        f"Invalid source at {location}: {error.message}",
        name=_component_name(document, path),
        origin=origin,
    )


def _component_name(document: Any, path: list) -> Optional[str]:
    """The name of the component an error path points into, if it has one."""
    if len(path) < 2 or path[0] != "components":
        return None
    component = document["components"][path[1]]
    name = component.get("name") if isinstance(component, Mapping) else None
    return name if isinstance(name, str) and name else None


def _global_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _to_record(raw: Mapping[str, Any], origin: str) -> RawComponentRecord:
    name = raw["name"]
    try:
        values = {
            str(key): from_plain(value)
            for key, value in (raw.get("properties") or {}).items()
        }
    except ValueError as e:
        raise LoadError(str(e), name=name, origin=origin) from e

    return RawComponentRecord(
        name,
        raw.get("type"),
        raw.get("based-on"),
        values,
        origin,
        raw.get("exportable", False),
        raw.get("importable", False),
    )


def source_to_document(
    records: Iterable[RawComponentRecord],
    global_values: Mapping[str, str],
    imports: Iterable[str] = (),
) -> dict[str, Any]:
    """Build the plain document for a set of records, globals and imports.

    Empty sections, inherited types and default flags are left out; origins
    are never written.
    """
    document: dict[str, Any] = {}
    imports = list(imports)
    if imports:
        document["imports"] = imports
    if global_values:
        document["globals"] = dict(global_values)
    components = [_from_record(record) for record in records]
    if components:
        document["components"] = components
    return document


def _from_record(record: RawComponentRecord) -> dict[str, Any]:
    component: dict[str, Any] = {"name": record.name}
    if record.type_tag is not None:
        component["type"] = record.type_tag
    if record.parent_name is not None:
        component["based-on"] = record.parent_name
    if record.exportable:
        component["exportable"] = True
    if record.importable:
        component["importable"] = True
    if record.properties:
        component["properties"] = {
            key: to_plain(value) for key, value in record.properties.items()
        }
    return component
