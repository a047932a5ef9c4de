"""Walk an import graph of sources and merge them into one definition set.

Loading starts at a root source and proceeds depth-first: a source's own
globals and components are applied first, then each of its imports in the
order they are declared. Sources are identified by their resolved absolute
path, so a source reachable along several import paths is read once.

Merging follows overlay semantics:

- a global defined by a later-visited source replaces the earlier value;
- a component defined by a later-visited source replaces the earlier
  record as a whole. Its properties are *not* merged with the earlier
  record's (field-level merging is what ``based-on`` is for).

Nothing is returned unless the whole chain loads: on any error the partly
filled store and table are discarded.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from chainconf.definitions import RawDefinitionStore
from chainconf.errors import CycleError, LoadError
from chainconf.formats import FormatRegistry, default_formats
from chainconf.symbols import DEFAULT_MAX_DEPTH, GlobalSymbolTable

__all__ = ["LoadedChain", "ChainLoader", "SourceHandle"]

logger = logging.getLogger(__name__)

SourceHandle = Union[str, Path]


@dataclass(frozen=True)
class LoadedChain:
    """The frozen result of loading a chain.

    Attributes:
        definitions: Component records, in the order their names were first defined.
        symbols: Global bindings with their final overlay values.
        sources: Identities of every source visited, in visiting order.
    """

    definitions: RawDefinitionStore
    symbols: GlobalSymbolTable
    sources: tuple[str, ...]


class ChainLoader:
    """Load a chain of sources through a :class:`FormatRegistry`."""

    def __init__(
        self,
        formats: Optional[FormatRegistry] = None,
        max_interpolation_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self._formats = formats or default_formats()
        self._max_interpolation_depth = max_interpolation_depth

    def load(self, root: SourceHandle) -> LoadedChain:
        """Load the chain rooted at ``root``.

        Args:
            root: Path of the entry-point source.

        Returns:
            The merged, frozen definitions and globals.

        Raises:
            LoadError: If a source is missing, unreadable, or unparsable.
            CycleError: If a source imports itself, directly or transitively.
        """
        definitions = RawDefinitionStore()
        symbols = GlobalSymbolTable(self._max_interpolation_depth)
        visited: list[str] = []

        self._visit(_canonical(root), [], visited, definitions, symbols)

        definitions.freeze()
        symbols.freeze()
        logger.debug(
            "Loaded %d components and %d globals from %d sources",
            len(definitions),
            len(symbols),
            len(visited),
        )
        return LoadedChain(definitions, symbols, tuple(visited))

    def _visit(
        self,
        path: Path,
        open_sources: list[str],
        visited: list[str],
        definitions: RawDefinitionStore,
        symbols: GlobalSymbolTable,
    ):
        identity = str(path)
        if identity in open_sources:
            cycle = open_sources[open_sources.index(identity):] + [identity]
            raise CycleError("Import cycle", cycle, origin=open_sources[-1])
        if identity in visited:
            return

        parsed = self._formats.for_path(path).parse(_read(path), identity)
        rank = len(visited)
        visited.append(identity)
        logger.debug(
            "Visiting %s (rank %d): %d components, %d globals, %d imports",
            identity,
            rank,
            len(parsed.records),
            len(parsed.globals),
            len(parsed.imports),
        )

        symbols.overlay(parsed.globals, rank, identity)
        for record in parsed.records:
            definitions.put(record)

        open_sources.append(identity)
        for reference in parsed.imports:
            self._visit(
                _canonical(path.parent / reference),
                open_sources,
                visited,
                definitions,
                symbols,
            )
        open_sources.pop()


def _canonical(source: SourceHandle) -> Path:
    return Path(source).expanduser().resolve()


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise LoadError(f"Cannot read source: {e.strerror or e}", origin=str(path)) from e
    except UnicodeDecodeError as e:
        raise LoadError(f"Source is not valid UTF-8: {e}", origin=str(path)) from e
