"""
Exceptions raised while building the declaration.

Every failure aborts the declaration: nothing here is retried or
recovered locally, the caller (ultimately the Pulumi language host)
decides what to do with the run.

Hierarchy::

    InfrastructureError
    ├── InvalidRuleError      (also a ValueError)
    ├── ConfigError           (also a ValueError)
    ├── RegistrationError
    ├── ImageLookupError
    └── DependencyError
"""

from typing import Any

__all__ = [
    "InfrastructureError",
    "InvalidRuleError",
    "ConfigError",
    "RegistrationError",
    "ImageLookupError",
    "DependencyError",
]


class InfrastructureError(Exception):
    """Base class for all declaration failures."""


class InvalidRuleError(InfrastructureError, ValueError):
    """An ingress rule has a bad protocol, port range or CIDR block."""


class ConfigError(InfrastructureError, ValueError):
    """A stack config value has the wrong shape."""


class RegistrationError(InfrastructureError):
    """Registering a resource with the engine failed.

    Attributes:
        resource_type: The Pulumi type token of the resource.
        resource_name: The logical name it was registered under.
    """

    def __init__(self, resource_type: str, resource_name: str, reason: str) -> None:
        super().__init__(
            f"failed to register {resource_type} '{resource_name}': {reason}"
        )
        self.resource_type = resource_type
        self.resource_name = resource_name


class ImageLookupError(InfrastructureError):
    """The machine image query matched nothing or the lookup itself failed.

    Attributes:
        query: The `ImageQuery` that was looked up.
    """

    def __init__(self, query: Any, reason: str) -> None:
        super().__init__(f"image lookup {query!r} failed: {reason}")
        self.query = query


class DependencyError(InfrastructureError):
    """A spec references something that is never declared, or specs form a cycle."""
