"""Exception taxonomy for chain loading, resolution and construction.

Every error carries the implicated component or global ``name`` and the
``origin`` (source identity) it was defined in, so callers can locate the
offending definition without re-walking override or overlay chains.
"""

from typing import Optional, Sequence

__all__ = [
    "ConfigurationError",
    "LoadError",
    "CycleError",
    "TypeMismatchError",
    "UnknownPropertyError",
    "MissingPropertyError",
    "UnknownGlobalError",
    "GlobalCycleError",
    "DependencyError",
    "UnknownComponentError",
    "CyclicDependencyError",
    "ConstructionError",
]


class ConfigurationError(Exception):
    """Base class for all errors raised while loading or resolving a configuration.

    Attributes:
        name: The component or global name implicated, if any.
        origin: Identity of the source that defined it, if known.
    """

    def __init__(
        self, message: str, name: Optional[str] = None, origin: Optional[str] = None
    ):
        self.name = name
        self.origin = origin
        super().__init__(_with_location(message, name, origin))


def _with_location(message: str, name: Optional[str], origin: Optional[str]) -> str:
    if name is None and origin is None:
        return message
    where = ", ".join(
        part
        for part in (
            f"name={name!r}" if name is not None else None,
            f"origin={origin!r}" if origin is not None else None,
        )
        if part
    )
    return f"{message} [{where}]"


class LoadError(ConfigurationError):
    """Raised when a source cannot be found, read or parsed."""


class CycleError(ConfigurationError):
    """Raised when an import chain or a based-on chain revisits itself.

    Attributes:
        cycle: The names or source identities forming the cycle, in visiting order,
            ending with the repeated element.
    """

    def __init__(
        self,
        message: str,
        cycle: Sequence[str],
        name: Optional[str] = None,
        origin: Optional[str] = None,
    ):
        self.cycle = tuple(cycle)
        super().__init__(f"{message}: {' -> '.join(self.cycle)}", name, origin)


class TypeMismatchError(ConfigurationError):
    """Raised when a value or a type override does not match what is declared."""


class UnknownPropertyError(ConfigurationError):
    """Raised when a record sets a property its type does not declare."""


class MissingPropertyError(ConfigurationError):
    """Raised when a required property has neither a value nor a default."""


class UnknownGlobalError(ConfigurationError):
    """Raised when a global reference names an entry that is not defined."""


class GlobalCycleError(ConfigurationError):
    """Raised when global interpolation refers back to itself."""


class DependencyError(ConfigurationError):
    """Raised when a component's dependency cannot be resolved."""


class UnknownComponentError(DependencyError):
    """Raised when a lookup or a based-on link names an undefined component."""


class CyclicDependencyError(DependencyError):
    """Raised when a component depends, directly or indirectly, on itself."""


class ConstructionError(ConfigurationError):
    """Raised when the factory for a component fails to build it."""
