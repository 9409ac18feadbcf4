"""
webserver-infra: a security group and a web server, declared with Pulumi.

This package declares a small resource graph for an infrastructure test
harness: one EC2 security group, one image lookup and one EC2 instance
that depends on both. It exports the group id, the server id, and the
server's public address and host name.

Overview:
    The declaration structs say what to build and which resources point at
    which:

    - `IngressRule`, `SecurityGroupSpec`: the access-control group
    - `ImageQuery`: the most-recent-match image lookup
    - `InstanceSpec`: the instance, referencing the two above
    - `ExportedOutputs`: the values handed back after provisioning

    Reference fields use typed markers (`Ref[T]`, `Attr[T, "name"]`,
    `RefList[T]`), and `graph` reads them back to order the declarations.

Quick Start:
    In a Pulumi program::

        from webserver_infra import Infrastructure, InfrastructureArgs, export_outputs

        infra = Infrastructure("infra", InfrastructureArgs(allow_ssh=False))
        export_outputs(infra)

    Or just run the stack; ``__main__.py`` calls `program.main`.

Fixture toggles:
    ``InfrastructureArgs(allow_ssh=True)`` opens port 22 to the world,
    ``tags=None`` drops the instance tags and ``user_data=DEFAULT_USER_DATA``
    adds a startup script. `checks` flags all three.
"""

from webserver_infra._refs import Attr, Ref, RefList
from webserver_infra.config import (
    DEFAULT_TAGS,
    DEFAULT_USER_DATA,
    HTTP_RULE,
    OPEN_SSH_RULE,
    InfrastructureArgs,
)
from webserver_infra.errors import (
    ConfigError,
    DependencyError,
    ImageLookupError,
    InfrastructureError,
    InvalidRuleError,
    RegistrationError,
)
from webserver_infra.graph import (
    RefInfo,
    declaration_order,
    get_dependencies,
    get_refs,
    resolve_refs,
)
from webserver_infra.infrastructure import Infrastructure
from webserver_infra.models import (
    ExportedOutputs,
    ImageQuery,
    IngressRule,
    InstanceSpec,
    SecurityGroupSpec,
)
from webserver_infra.outputs import export_outputs

__all__ = [
    # Markers
    "Ref",
    "Attr",
    "RefList",
    # Graph
    "RefInfo",
    "get_refs",
    "get_dependencies",
    "declaration_order",
    "resolve_refs",
    # Declaration structs
    "IngressRule",
    "SecurityGroupSpec",
    "ImageQuery",
    "InstanceSpec",
    "ExportedOutputs",
    # Config
    "InfrastructureArgs",
    "HTTP_RULE",
    "OPEN_SSH_RULE",
    "DEFAULT_TAGS",
    "DEFAULT_USER_DATA",
    # Errors
    "InfrastructureError",
    "InvalidRuleError",
    "ConfigError",
    "RegistrationError",
    "ImageLookupError",
    "DependencyError",
    # Component
    "Infrastructure",
    "export_outputs",
]

__version__ = "0.1.0"
