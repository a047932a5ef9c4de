"""Global name/value bindings with overlay and ``${name}`` interpolation.

Each binding is stamped with the rank of the source that defined it. A
binding of higher rank overlays a lower one for the same name, so after a
chain has been loaded every name holds the value of the last source that
set it. Interpolation is deferred until a value is read, which means every
reader sees the final overlay state whatever source it was declared in.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterator, Mapping, Optional

from chainconf.errors import GlobalCycleError, UnknownGlobalError

__all__ = ["GlobalEntry", "GlobalSymbolTable", "DEFAULT_MAX_DEPTH"]

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32

_TOKEN = re.compile(r"\$\{([^}]+)\}")


@dataclass(frozen=True)
class GlobalEntry:
    """A raw (uninterpolated) global binding."""

    value: str
    rank: int
    origin: Optional[str] = None


class GlobalSymbolTable:
    """Overlayable table of global values.

    Args:
        max_depth: Maximum nesting of ``${...}`` expansion before the expansion is
            treated as self-referential.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self._entries: dict[str, GlobalEntry] = {}
        self._max_depth = max_depth
        self._frozen = False

    def define(
        self, name: str, value: str, rank: int, origin: Optional[str] = None
    ) -> None:
        """Bind ``name`` unless a binding of strictly higher rank already exists."""
        if self._frozen:
            raise RuntimeError("Global symbol table is read-only once loading has finished")
        current = self._entries.get(name)
        if current is not None and current.rank > rank:
            return
        if current is not None:
            logger.debug(
                "Global %r from %s overlays value from %s", name, origin, current.origin
            )
        self._entries[name] = GlobalEntry(str(value), rank, origin)

    def overlay(
        self, fragment: Mapping[str, str], rank: int, origin: Optional[str] = None
    ) -> None:
        """Define every binding of a source's globals at the given rank."""
        for name, value in fragment.items():
            self.define(name, value, rank, origin)

    def freeze(self) -> None:
        self._frozen = True

    def entry(self, name: str) -> GlobalEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownGlobalError("Unknown global", name=name) from None

    def raw(self) -> dict[str, str]:
        """The uninterpolated values, in definition order."""
        return {name: entry.value for name, entry in self._entries.items()}

    def lookup(self, name: str) -> str:
        """Return the fully interpolated value of a global.

        Raises:
            UnknownGlobalError: If ``name`` or any global it refers to is not defined.
            GlobalCycleError: If the value refers back to itself.
        """
        return self._expand_global(name, (), origin=None)

    def interpolate(self, text: str, origin: Optional[str] = None) -> str:
        """Substitute every ``${name}`` token in ``text``, recursively.

        Args:
            text: The text to expand.
            origin: Source identity of the text, used in error messages.
        """
        return self._expand_text(text, (), origin)

    def _expand_text(self, text: str, active: tuple[str, ...], origin) -> str:
        return _TOKEN.sub(
            lambda match: self._expand_global(match.group(1).strip(), active, origin),
            text,
        )

    def _expand_global(self, name: str, active: tuple[str, ...], origin) -> str:
        if name in active:
            raise GlobalCycleError(
                "Global refers back to itself via " + " -> ".join(active + (name,)),
                name=name,
                origin=self._entries[name].origin,
            )
        if len(active) >= self._max_depth:
            raise GlobalCycleError(
                f"Global expansion exceeds depth {self._max_depth}",
                name=name,
                origin=origin,
            )
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownGlobalError(
                "Unknown global"
                + (f" referenced from {active[-1]!r}" if active else ""),
                name=name,
                origin=self._entries[active[-1]].origin if active else origin,
            )
        return self._expand_text(entry.value, active + (name,), entry.origin)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
