"""Store of raw component definitions, keyed by component name.

The chain loader fills the store while it walks the import graph. Once the
load finishes the store is frozen, and from then on it is shared read-only
by the resolver, the sheet builder and the registry.
"""

import logging
from typing import Iterator

from chainconf.domain import RawComponentRecord

__all__ = ["RawDefinitionStore"]

logger = logging.getLogger(__name__)


class RawDefinitionStore:
    """Name-indexed collection of :class:`RawComponentRecord` in definition order.

    Example:
        >>> store = RawDefinitionStore()
        >>> store.put(RawComponentRecord("db", "database"))
        >>> store.freeze()
        >>> store["db"].type_tag
        'database'
    """

    def __init__(self):
        self._records: dict[str, RawComponentRecord] = {}
        self._frozen = False

    def put(self, record: RawComponentRecord) -> None:
        """Add a record, replacing any earlier record of the same name as a whole.

        A replacement keeps the position of the name it replaces, so iteration
        follows the order in which names were first declared.

        Raises:
            RuntimeError: If the store has been frozen.
        """
        if self._frozen:
            raise RuntimeError("Definition store is read-only once loading has finished")
        replaced = self._records.get(record.name)
        if replaced is not None:
            logger.info(
                "Definition of %r from %s replaces the one from %s",
                record.name,
                record.origin,
                replaced.origin,
            )
        self._records[record.name] = record

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> list[str]:
        return list(self._records)

    def records(self) -> list[RawComponentRecord]:
        return list(self._records.values())

    def get(self, name: str):
        return self._records.get(name)

    def __getitem__(self, name: str) -> RawComponentRecord:
        return self._records[name]

    def __contains__(self, name: str) -> bool:
        return name in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)
