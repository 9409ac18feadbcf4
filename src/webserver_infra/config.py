"""
Configuration for the web server declaration.

`InfrastructureArgs` replaces an open property bag with named fields. Each
fixture toggle is one field and changing it leaves the others alone:

- add the public SSH rule: ``allow_ssh=True``
- drop the instance tags: ``tags=None``
- add the startup script: ``user_data=DEFAULT_USER_DATA``

Stack configuration (``pulumi config set <key> <value>``) maps onto the
same fields through `InfrastructureArgs.from_config`.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from webserver_infra.errors import ConfigError, InvalidRuleError
from webserver_infra.models import ImageQuery, IngressRule

__all__ = [
    "HTTP_RULE",
    "OPEN_SSH_RULE",
    "DEFAULT_TAGS",
    "DEFAULT_USER_DATA",
    "InfrastructureArgs",
]

logger: logging.Logger = logging.getLogger(__name__)

HTTP_RULE = IngressRule(protocol="tcp", from_port=80, to_port=80, cidr_blocks=("0.0.0.0/0",))

# Public SSH; flagged by checks.public_ssh_rules
OPEN_SSH_RULE = IngressRule(protocol="tcp", from_port=22, to_port=22, cidr_blocks=("0.0.0.0/0",))

DEFAULT_TAGS: Mapping[str, str] = {"Name": "webserver"}

DEFAULT_USER_DATA = """#!/bin/bash
echo "Hello, World!" > index.html
nohup python3 -m http.server 80 &
"""

DEFAULT_INSTANCE_TYPE = "t2.micro"
DEFAULT_AMI_NAME_PATTERN = "ubuntu/images/hvm-ssd/ubuntu-bionic-18.04-amd64-server-*"
DEFAULT_AMI_OWNER = "137112412989"


class ConfigSource(Protocol):
    """The subset of `pulumi.Config` that `from_config` reads."""

    def get(self, key: str) -> str | None: ...

    def get_bool(self, key: str) -> bool | None: ...

    def get_object(self, key: str) -> Any: ...


@dataclass
class InfrastructureArgs:
    """Inputs of the `Infrastructure` component.

    Attributes:
        instance_type: EC2 instance size class.
        ingress: Ingress rules of the security group, in order.
        tags: Instance tags, or None for no tags at all.
        user_data: Startup script run once at first boot, or None.
        ami_name_pattern: Image name filter for the image lookup.
        ami_owner: Owner account id for the image lookup.
        allow_ssh: Prepend `OPEN_SSH_RULE` to ``ingress``.
    """

    instance_type: str = DEFAULT_INSTANCE_TYPE
    ingress: tuple[IngressRule, ...] = (HTTP_RULE,)
    tags: Mapping[str, str] | None = field(default_factory=lambda: dict(DEFAULT_TAGS))
    user_data: str | None = None
    ami_name_pattern: str = DEFAULT_AMI_NAME_PATTERN
    ami_owner: str = DEFAULT_AMI_OWNER
    allow_ssh: bool = False

    def ingress_rules(self) -> tuple[IngressRule, ...]:
        """The effective ingress rules, SSH rule first when enabled."""
        rules = tuple(self.ingress)
        if self.allow_ssh and OPEN_SSH_RULE not in rules:
            rules = (OPEN_SSH_RULE,) + rules
        return rules

    def image_query(self) -> ImageQuery:
        return ImageQuery(
            name_patterns=(self.ami_name_pattern,),
            owners=(self.ami_owner,),
            most_recent=True,
        )

    @classmethod
    def from_config(cls, config: ConfigSource) -> "InfrastructureArgs":
        """Read the args from stack configuration.

        Every key is optional; a missing key keeps the default.

        Keys:
            instanceType: str
            ingress: list of {protocol, fromPort, toPort, cidrBlocks}
            allowSsh: bool
            tags: object of str -> str
            omitTags: bool, drop the tags entirely
            userData: str, literal startup script
            enableUserData: bool, use `DEFAULT_USER_DATA`
            amiNamePattern: str
            amiOwner: str

        Raises:
            InvalidRuleError: If ``ingress`` is not a list of valid rules.
            ConfigError: If ``tags`` is not an object.
        """
        args = cls()

        instance_type = config.get("instanceType")
        if instance_type:
            args.instance_type = instance_type

        ingress = config.get_object("ingress")
        if ingress is not None:
            if not isinstance(ingress, list):
                raise InvalidRuleError("config 'ingress' must be a list of rules")
            args.ingress = tuple(IngressRule.from_dict(rule) for rule in ingress)

        args.allow_ssh = bool(config.get_bool("allowSsh"))

        tags = config.get_object("tags")
        if tags is not None:
            if not isinstance(tags, Mapping):
                raise ConfigError(f"config 'tags' must be an object, got {tags!r}")
            args.tags = {str(k): str(v) for k, v in tags.items()}
        if config.get_bool("omitTags"):
            args.tags = None

        user_data = config.get("userData")
        if user_data:
            args.user_data = user_data
        elif config.get_bool("enableUserData"):
            args.user_data = DEFAULT_USER_DATA

        ami_name_pattern = config.get("amiNamePattern")
        if ami_name_pattern:
            args.ami_name_pattern = ami_name_pattern
        ami_owner = config.get("amiOwner")
        if ami_owner:
            args.ami_owner = ami_owner

        logger.debug("infrastructure args from config: %r", args)
        return args
