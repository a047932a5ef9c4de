"""Chainconf: chained, declarative component configuration.

Chainconf resolves a set of component definitions, spread over sources that
import one another, into a graph of named, typed components. Definitions can
be based on other definitions and can interpolate global values; components
are built lazily, once, when they are first looked up.

Key Features:
    - Chain loading of JSON and YAML sources, with last-loaded-wins overlays
    - Field-by-field "based-on" overrides between definitions
    - ``${name}`` interpolation of globals against the final overlay
    - Explicit field descriptors and factories, registered per type
    - Lazy, at-most-once construction with cycle detection and listeners

Basic Usage:
    >>> from chainconf.builders import load_chain
    >>> from chainconf.types import FieldDescriptor, TypeRegistry
    >>>
    >>> types = TypeRegistry()
    >>>
    >>> @types.provides("database", fields=[FieldDescriptor("url", required=True)])
    >>> def make_database(url) -> Database:
    ...     return Database(url)
    >>>
    >>> manager = load_chain("app.yaml", types)
    >>> db = manager.lookup("db")

The framework consists of several core modules:
    - chain_loader: Walks the import graph and merges sources
    - overrides: Folds based-on chains into effective records
    - property_sheet: Coerces effective records against field descriptors
    - registry: Lazy component cache with cycle detection and listeners
    - manager / builders: The manager object and the ``load_chain`` entry point
    - formats: JSON and YAML format adapters
    - errors: Framework-specific exceptions
"""
