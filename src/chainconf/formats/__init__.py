"""Format adapters: the bridge between textual sources and raw definitions.

An adapter turns the text of one source into records, a globals fragment
and import references, and turns them back into text. Adapters are chosen by
file extension through a :class:`FormatRegistry`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Union

from chainconf.domain import RawComponentRecord
from chainconf.errors import LoadError

__all__ = [
    "ParsedSource",
    "FormatAdapter",
    "FormatRegistry",
    "default_formats",
]


@dataclass(frozen=True)
class ParsedSource:
    """Everything one source declares.

    Attributes:
        records: Component records in declaration order.
        globals: Global bindings declared by the source.
        imports: References to further sources, relative to this one.
    """

    records: tuple[RawComponentRecord, ...] = ()
    globals: Mapping[str, str] = field(default_factory=dict)
    imports: tuple[str, ...] = ()


class FormatAdapter(ABC):
    """Parser and serializer for one textual format."""

    extensions: tuple[str, ...] = ()

    @abstractmethod
    def parse(self, text: str, origin: str) -> ParsedSource:
        """Parse the text of a source.

        Args:
            text: The source text.
            origin: Identity of the source, stamped on every record.

        Raises:
            LoadError: If the text is not valid for this format or the document is malformed.
        """

    @abstractmethod
    def serialize(
        self,
        records: Iterable[RawComponentRecord],
        global_values: Mapping[str, str],
        imports: Iterable[str] = (),
    ) -> str:
        """Render records, globals and imports as source text."""


class FormatRegistry:
    """Adapters keyed by lower-case file extension (without the dot)."""

    def __init__(self):
        self._adapters: dict[str, FormatAdapter] = {}

    def register(self, adapter: FormatAdapter, *extensions: str):
        for extension in extensions or adapter.extensions:
            self._adapters[extension.lower().lstrip(".")] = adapter

    @property
    def extensions(self) -> list[str]:
        return sorted(self._adapters)

    def for_path(self, path: Union[str, Path]) -> FormatAdapter:
        """Return the adapter for a path's extension.

        Raises:
            LoadError: If no adapter handles the extension.
        """
        extension = Path(path).suffix.lower().lstrip(".")
        try:
            return self._adapters[extension]
        except KeyError:
            raise LoadError(
                f"No format adapter for extension {extension!r}; "
                f"known extensions are {self.extensions}",
                origin=str(path),
            ) from None


def default_formats() -> FormatRegistry:
    """A fresh registry with the JSON and YAML adapters."""
    from chainconf.formats.json_format import JsonFormat
    from chainconf.formats.yaml_format import YamlFormat

    registry = FormatRegistry()
    registry.register(JsonFormat())
    registry.register(YamlFormat())
    return registry
