"""The configuration manager: one loaded chain plus its component registry.

A manager owns everything derived from one load: the frozen definitions and
globals, the cached property sheets and the registry of built components.
Nothing is shared between managers, so any number of them can coexist in a
process. A manager lives from :func:`chainconf.builders.load_chain` until
:meth:`ConfigurationManager.shutdown`.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

from chainconf.chain_loader import LoadedChain
from chainconf.component_builder import ComponentBuilder
from chainconf.domain import EntryState, PropertySheet, RawComponentRecord
from chainconf.errors import ConfigurationError, UnknownComponentError
from chainconf.formats import FormatRegistry, default_formats
from chainconf.overrides import OverrideResolver
from chainconf.property_sheet import PropertySheetBuilder, SheetResolver
from chainconf.registry import ComponentListener, ComponentRegistry, Selector
from chainconf.types import TypeRegistry

__all__ = ["ConfigurationManager"]

logger = logging.getLogger(__name__)


class ConfigurationManager:
    """Look up components defined by a loaded chain of sources.

    Args:
        chain: The loaded (frozen) definitions and globals.
        types: Field descriptors and factories for every type the chain uses.
        formats: Adapters used by :meth:`save`; defaults to JSON and YAML.
        component_builder: Builds instances from property sheets; defaults to a
            :class:`ComponentBuilder` over ``types``.

    Example:
        >>> with load_chain("app.yaml", types) as manager:
        ...     server = manager.lookup("server")
    """

    def __init__(
        self,
        chain: LoadedChain,
        types: TypeRegistry,
        formats: Optional[FormatRegistry] = None,
        component_builder: Optional[ComponentBuilder] = None,
    ):
        self._chain = chain
        self._types = types
        self._formats = formats or default_formats()
        self._sheets = SheetResolver(
            OverrideResolver(chain.definitions, types),
            types,
            PropertySheetBuilder(chain.symbols),
        )
        self._registry = ComponentRegistry(
            chain.definitions,
            self._sheets,
            types,
            component_builder or ComponentBuilder(types),
        )
        self._shut_down = False

    @property
    def sources(self) -> tuple[str, ...]:
        """Identities of the loaded sources, in visiting order."""
        return self._chain.sources

    def lookup(self, name: str, reuse: bool = True) -> Any:
        """Return the component called ``name``, building it on first use.

        See :meth:`ComponentRegistry.lookup`.
        """
        self._check_running()
        return self._registry.lookup(name, reuse)

    def lookup_all(self, selector: Selector) -> list[Any]:
        """Return every component of a type (or matching a predicate), building as needed."""
        self._check_running()
        return self._registry.lookup_all(selector)

    def state(self, name: str) -> EntryState:
        return self._registry.state(name)

    def reset(self, name: str) -> None:
        """Forget a resolved or failed component so it is built again on next lookup."""
        self._registry.reset(name)

    def add_listener(self, listener: ComponentListener) -> None:
        self._check_running()
        self._registry.add_listener(listener)

    def remove_listener(self, listener: ComponentListener) -> None:
        self._registry.remove_listener(listener)

    def component_names(self) -> list[str]:
        return self._chain.definitions.names()

    def global_names(self) -> list[str]:
        return list(self._chain.symbols)

    def global_property(self, name: str) -> str:
        """The interpolated value of a global."""
        return self._chain.symbols.lookup(name)

    def raw_record(self, name: str) -> RawComponentRecord:
        """The record exactly as the last source defining it declared it."""
        record = self._chain.definitions.get(name)
        if record is None:
            raise UnknownComponentError("Undefined component", name=name)
        return record

    def effective_record(self, name: str) -> RawComponentRecord:
        """The record with its based-on ancestors folded in."""
        return self._sheets.effective_record(name)

    def override_chain(self, name: str) -> list[RawComponentRecord]:
        """The based-on chain of a component, root first."""
        return self._sheets.chain(name)

    def property_sheet(self, name: str) -> PropertySheet:
        return self._sheets.sheet(name)

    def serialize(self, extension: str = "yaml") -> str:
        """Render the merged definitions and raw globals as a single source."""
        adapter = self._formats.for_path(f"merged.{extension}")
        return adapter.serialize(
            self._chain.definitions.records(), self._chain.symbols.raw()
        )

    def save(self, path: Union[str, Path]) -> None:
        """Write the merged configuration to ``path``, in the format of its extension.

        The written source has no imports: it holds the result of the chain.
        """
        path = Path(path)
        adapter = self._formats.for_path(path)
        text = adapter.serialize(
            self._chain.definitions.records(), self._chain.symbols.raw()
        )
        path.write_text(text, encoding="utf-8")
        logger.info("Saved %d components to %s", len(self._chain.definitions), path)

    def same_configuration(self, other: "ConfigurationManager") -> bool:
        """True if both managers define the same components and globals.

        Origins and the state of the registries are ignored.
        """
        if set(self.component_names()) != set(other.component_names()):
            return False
        if self._chain.symbols.raw() != other._chain.symbols.raw():
            return False
        return all(
            _without_origin(self.raw_record(name))
            == _without_origin(other.raw_record(name))
            for name in self.component_names()
        )

    def shutdown(self) -> None:
        """Release every built component and detach all listeners.

        Listeners are told about each removal before being detached. Calling
        this more than once has no further effect.
        """
        if self._shut_down:
            return
        self._shut_down = True
        self._registry.clear()
        self._registry.detach_listeners()
        logger.debug("Configuration manager for %s shut down", self.sources[:1])

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def __enter__(self) -> "ConfigurationManager":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.shutdown()

    def _check_running(self):
        if self._shut_down:
            raise ConfigurationError("Configuration manager has been shut down")


def _without_origin(record: RawComponentRecord) -> tuple:
    return (
        record.name,
        record.type_tag,
        record.parent_name,
        dict(record.properties),
        record.exportable,
        record.importable,
    )
