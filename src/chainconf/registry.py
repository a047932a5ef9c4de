"""Lazy, name-indexed cache of constructed components.

A component is built the first time it is looked up. Building a component
first builds every component its property sheet refers to, so lookups
recurse through the reference graph; a reference back to a component that
is still being built on the same resolution path is a cyclic dependency.

Each entry moves one way through its states::

    UNRESOLVED -> RESOLVING -> RESOLVED
                            -> FAILED

A failed entry keeps its error and raises it again on every lookup until
it is explicitly reset.
"""

import logging
import threading
from typing import Any, Callable, Iterable, Union

from chainconf.component_builder import ComponentBuilder
from chainconf.definitions import RawDefinitionStore
from chainconf.domain import (
    EntryState,
    MaterialisedComponent,
    RawComponentRecord,
    RegistryEntry,
)
from chainconf.errors import CyclicDependencyError, UnknownComponentError
from chainconf.property_sheet import SheetResolver
from chainconf.types import TypeRegistry

__all__ = ["ComponentListener", "ComponentRegistry", "Selector"]

logger = logging.getLogger(__name__)

Selector = Union[str, Callable[[RawComponentRecord], bool]]
"""Either a type tag (matching the type and its declared subtypes) or a predicate
over effective records."""


class ComponentListener:
    """Receives notifications as components enter and leave the registry.

    Subclass and override the callbacks of interest.
    """

    def on_added(self, name: str, instance: Any) -> None:
        pass

    def on_removed(self, name: str) -> None:
        pass


class ComponentRegistry:
    """Build components on demand and cache them by name.

    State transitions are serialized by one condition variable, while the
    construction work itself runs outside the lock. A name that is being
    resolved by one thread makes other threads wait for the outcome, so at
    most one instance is built per name; distinct names build concurrently.
    """

    def __init__(
        self,
        definitions: RawDefinitionStore,
        sheets: SheetResolver,
        types: TypeRegistry,
        component_builder: ComponentBuilder,
    ):
        self._definitions = definitions
        self._sheets = sheets
        self._types = types
        self._component_builder = component_builder
        self._entries: dict[str, RegistryEntry] = {}
        self._listeners: list[ComponentListener] = []
        self._condition = threading.Condition()
        self._waiting_for: dict[int, str] = {}
        self._local = threading.local()

    def lookup(self, name: str, reuse: bool = True) -> Any:
        """Return the component called ``name``, building it if needed.

        Args:
            name: The component name.
            reuse: If True, return the cached instance when there is one. If False,
                build an independent instance that is neither cached nor reported to
                listeners; the components it refers to are still shared.

        Raises:
            UnknownComponentError: If no component of that name is defined.
            CyclicDependencyError: If the component depends on itself.
            ConfigurationError: Any error from resolving its property sheet or from
                constructing it, or the stored error of a failed entry.
        """
        return self.materialise(name, reuse).component

    def materialise(self, name: str, reuse: bool = True) -> MaterialisedComponent:
        """Like :meth:`lookup`, but return the :class:`MaterialisedComponent`."""
        if name not in self._definitions:
            raise UnknownComponentError("Undefined component", name=name)
        if not reuse:
            path = self._path()
            self._check_not_on_path(name, path)
            return self._construct(name, path)
        return self._resolve_entry(name)

    def lookup_all(self, selector: Selector) -> list[Any]:
        """Return every component matching ``selector``, in definition order.

        Components not yet built are built; already resolved ones are returned
        from the cache.

        Args:
            selector: A type tag, matching that type and its declared subtypes, or
                a predicate over each component's effective record.
        """
        if isinstance(selector, str):
            matches = self._type_matcher(selector)
        else:
            matches = selector

        return [
            self._resolve_entry(name).component
            for name in self._definitions.names()
            if matches(self._sheets.effective_record(name))
        ]

    def _type_matcher(self, type_tag: str) -> Callable[[RawComponentRecord], bool]:
        def matches(record: RawComponentRecord) -> bool:
            return self._types.is_subtype(record.type_tag, type_tag)

        return matches

    def state(self, name: str) -> EntryState:
        with self._condition:
            entry = self._entries.get(name)
            return entry.state if entry else EntryState.UNRESOLVED

    def resolved_names(self) -> list[str]:
        with self._condition:
            return [
                name
                for name, entry in self._entries.items()
                if entry.state is EntryState.RESOLVED
            ]

    def add_listener(self, listener: ComponentListener) -> None:
        with self._condition:
            self._listeners.append(listener)

    def remove_listener(self, listener: ComponentListener) -> None:
        with self._condition:
            self._listeners.remove(listener)

    def detach_listeners(self) -> None:
        with self._condition:
            self._listeners.clear()

    def reset(self, name: str) -> None:
        """Forget the entry for ``name`` so that the next lookup builds it again.

        Listeners are told of the removal if the entry was resolved.

        Raises:
            RuntimeError: If the component is being resolved right now.
        """
        with self._condition:
            entry = self._entries.get(name)
            if entry is None:
                return
            if entry.state is EntryState.RESOLVING:
                raise RuntimeError(f"Component {name!r} is being resolved")
            del self._entries[name]
            self._condition.notify_all()
            listeners = list(self._listeners)
        if entry.state is EntryState.RESOLVED:
            self._notify_removed(name, listeners)

    def clear(self) -> None:
        """Forget every entry, telling listeners about each resolved one."""
        with self._condition:
            entries = list(self._entries.values())
            self._entries.clear()
            self._condition.notify_all()
            listeners = list(self._listeners)
        for entry in entries:
            if entry.state is EntryState.RESOLVED:
                self._notify_removed(entry.name, listeners)

    def _path(self) -> list[str]:
        """Names being resolved by the current thread, outermost first."""
        path = getattr(self._local, "path", None)
        if path is None:
            path = self._local.path = []
        return path

    def _check_not_on_path(self, name: str, path: list[str]):
        if name in path:
            cycle = path[path.index(name):] + [name]
            raise CyclicDependencyError(
                "Component depends on itself via " + " -> ".join(cycle),
                name=name,
                origin=self._definitions[name].origin,
            )

    def _resolve_entry(self, name: str) -> MaterialisedComponent:
        path = self._path()
        self._check_not_on_path(name, path)
        me = threading.get_ident()

        with self._condition:
            while True:
                entry = self._entries.setdefault(name, RegistryEntry(name))
                if entry.state is EntryState.RESOLVED:
                    return entry.component
                if entry.state is EntryState.FAILED:
                    raise entry.error
                if entry.state is EntryState.UNRESOLVED:
                    entry.state = EntryState.RESOLVING
                    entry.owner = me
                    break
                self._wait_for(name, me)

        logger.debug("Resolving %r", name)
        try:
            materialised = self._construct(name, path)
        except BaseException as e:
            with self._condition:
                entry.state = EntryState.FAILED
                entry.error = e
                entry.owner = None
                self._condition.notify_all()
            logger.debug("Resolution of %r failed: %s", name, e)
            raise

        with self._condition:
            entry.state = EntryState.RESOLVED
            entry.component = materialised
            entry.owner = None
            self._condition.notify_all()
            listeners = list(self._listeners)

        for listener in listeners:
            listener.on_added(name, materialised.component)
        return materialised

    def _wait_for(self, name: str, me: int):
        """Wait, holding the condition, for another thread to finish resolving ``name``."""
        if self._owner_chain_reaches(name, me):
            raise CyclicDependencyError(
                "Component is being resolved by a thread that is waiting on this one",
                name=name,
                origin=self._definitions[name].origin,
            )
        self._waiting_for[me] = name
        try:
            self._condition.wait()
        finally:
            del self._waiting_for[me]

    def _owner_chain_reaches(self, name: str, me: int) -> bool:
        """True if the owner of ``name`` is (transitively) waiting on a name owned by ``me``."""
        seen = set()
        entry = self._entries.get(name)
        owner = entry.owner if entry else None
        while owner is not None and owner not in seen:
            if owner == me:
                return True
            seen.add(owner)
            awaited = self._waiting_for.get(owner)
            entry = self._entries.get(awaited) if awaited else None
            owner = entry.owner if entry else None
        return False

    def _construct(self, name: str, path: list[str]) -> MaterialisedComponent:
        path.append(name)
        try:
            sheet = self._sheets.sheet(name)
            components = {}
            for reference in sheet.component_references():
                if reference not in self._definitions:
                    raise UnknownComponentError(
                        f"Undefined component referenced by {name!r}",
                        name=reference,
                        origin=sheet.origin,
                    )
                components[reference] = self._resolve_entry(reference).component
            return self._component_builder.build(sheet, components)
        finally:
            path.pop()

    def _notify_removed(self, name: str, listeners: Iterable[ComponentListener]):
        for listener in listeners:
            listener.on_removed(name)
