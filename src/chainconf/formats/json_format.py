"""JSON format adapter."""

import json
from typing import Iterable, Mapping

from chainconf.domain import RawComponentRecord
from chainconf.errors import LoadError
from chainconf.formats import FormatAdapter, ParsedSource
from chainconf.formats._document import document_to_source, source_to_document

__all__ = ["JsonFormat"]


def _reject_duplicate_keys(pairs):
    result = {}
    for key, value in pairs:
        if key in result:
            raise ValueError(f"Duplicate key {key!r}")
        result[key] = value
    return result


class JsonFormat(FormatAdapter):
    extensions = ("json",)

    def parse(self, text: str, origin: str) -> ParsedSource:
        if not text.strip():
            return ParsedSource()
        try:
            document = json.loads(text, object_pairs_hook=_reject_duplicate_keys)
        except ValueError as e:
            raise LoadError(f"Invalid JSON: {e}", origin=origin) from e
        return document_to_source(document, origin)

    def serialize(
        self,
        records: Iterable[RawComponentRecord],
        global_values: Mapping[str, str],
        imports: Iterable[str] = (),
    ) -> str:
        document = source_to_document(records, global_values, imports)
        return json.dumps(document, indent=2) + "\n"
