"""High level entry points for loading configurations."""

from typing import Optional

from chainconf.chain_loader import ChainLoader, SourceHandle
from chainconf.component_builder import ComponentBuilder, Transformer
from chainconf.formats import FormatRegistry, default_formats
from chainconf.manager import ConfigurationManager
from chainconf.symbols import DEFAULT_MAX_DEPTH
from chainconf.types import TypeRegistry

__all__ = ["load_chain"]


def load_chain(
    source: SourceHandle,
    types: TypeRegistry,
    formats: Optional[FormatRegistry] = None,
    transformers: Optional[list[Transformer]] = None,
    component_builder: Optional[ComponentBuilder] = None,
    max_interpolation_depth: int = DEFAULT_MAX_DEPTH,
) -> ConfigurationManager:
    """Load the chain of sources rooted at ``source`` into a new manager.

    Sources are read and merged immediately; components are only built when
    they are first looked up.

    Args:
        source: Path of the entry-point source. Its extension selects the format.
        types: Field descriptors and factories of every type the sources use.
        formats: Format adapters by extension; defaults to JSON and YAML.
        transformers: Post-construction transformers for the default component
            builder. Ignored if ``component_builder`` is given.
        component_builder: Builder used to construct instances.
        max_interpolation_depth: Nesting limit for ``${...}`` expansion of globals.

    Returns:
        A :class:`ConfigurationManager` over the merged definitions.

    Raises:
        LoadError: If a source is missing, unreadable, or unparsable.
        CycleError: If the sources import each other in a cycle.

    Example:
        >>> types = TypeRegistry()
        >>> @types.provides("greeter", fields=[FieldDescriptor("greeting")])
        ... def make_greeter(greeting):
        ...     return lambda name: f"{greeting} {name}"
        >>> manager = load_chain("app.yaml", types)
        >>> manager.lookup("greeter")("Dominic")
    """
    formats = formats or default_formats()
    chain = ChainLoader(formats, max_interpolation_depth).load(source)
    return ConfigurationManager(
        chain,
        types,
        formats,
        component_builder or ComponentBuilder(types, transformers),
    )
