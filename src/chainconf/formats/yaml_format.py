"""YAML format adapter, backed by PyYAML's safe loader and dumper."""

from collections.abc import Hashable
from typing import Iterable, Mapping

import yaml
from yaml.constructor import ConstructorError

from chainconf.domain import RawComponentRecord
from chainconf.errors import LoadError
from chainconf.formats import FormatAdapter, ParsedSource
from chainconf.formats._document import document_to_source, source_to_document

__all__ = ["YamlFormat"]


class _UniqueKeyLoader(yaml.SafeLoader):
    """Safe loader that rejects a key repeated within one mapping."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                continue
            if key in seen:
                raise ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    f"found duplicate key {key!r}",
                    key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


class YamlFormat(FormatAdapter):
    extensions = ("yaml", "yml")

    def parse(self, text: str, origin: str) -> ParsedSource:
        try:
            document = yaml.load(text, Loader=_UniqueKeyLoader)
        except yaml.YAMLError as e:
            raise LoadError(f"Invalid YAML: {e}", origin=origin) from e
        return document_to_source(document, origin)

    def serialize(
        self,
        records: Iterable[RawComponentRecord],
        global_values: Mapping[str, str],
        imports: Iterable[str] = (),
    ) -> str:
        document = source_to_document(records, global_values, imports)
        return yaml.safe_dump(
            document, default_flow_style=False, sort_keys=False, allow_unicode=True
        )
