"""
Declaration structs for the web server fixture.

Each struct describes one resource (or lookup) the declaration asks the
engine for. Fields that point at another declared resource use the
markers from `webserver_infra._refs`, so the dependency graph is read
straight off the classes:

    SecurityGroupSpec ─┐
                       ├─> InstanceSpec ─> ExportedOutputs
    ImageQuery ────────┘

The structs are plain data. None of them talk to Pulumi; turning them into
resources is `webserver_infra.infrastructure`'s job.
"""

import ipaddress
from collections.abc import Mapping
from dataclasses import dataclass, field

from webserver_infra._refs import Attr, Ref, RefList
from webserver_infra.errors import InvalidRuleError

__all__ = [
    "PROTOCOLS",
    "IngressRule",
    "SecurityGroupSpec",
    "ImageQuery",
    "InstanceSpec",
    "ExportedOutputs",
    "OUTPUT_NAMES",
]

# "-1" and "all" both mean every protocol to EC2. Protocol numbers 0-255
# are accepted as well.
PROTOCOLS = frozenset({"tcp", "udp", "icmp", "icmpv6", "-1", "all"})

MAX_PROTOCOL_NUMBER = 255

MIN_PORT = -1
MAX_PORT = 65535


def _known_protocol(protocol: str) -> bool:
    if protocol in PROTOCOLS:
        return True
    return protocol.isascii() and protocol.isdigit() and int(protocol) <= MAX_PROTOCOL_NUMBER


@dataclass(frozen=True)
class IngressRule:
    """One inbound permission: protocol, inclusive port range, sources.

    Only the shape of the rule is checked. Whether a rule is too permissive
    (say port 22 from ``0.0.0.0/0``) is for `webserver_infra.checks` to
    decide, not for the declaration.

    Protocol names are case-insensitive and stored lower-cased; a protocol
    number such as ``"6"`` is kept as given. ``cidr_blocks`` may mix IPv4
    and IPv6 networks.

    Raises:
        InvalidRuleError: On an unknown protocol, a port outside
            ``-1..65535``, ``from_port > to_port`` or a malformed CIDR.
    """

    protocol: str
    from_port: int
    to_port: int
    cidr_blocks: tuple[str, ...] = ()
    description: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.cidr_blocks, str):
            raise InvalidRuleError(
                f"cidr_blocks must be a list of CIDR strings, got {self.cidr_blocks!r}"
            )
        # accept any iterable of strings but store a tuple
        try:
            object.__setattr__(self, "cidr_blocks", tuple(self.cidr_blocks))
        except TypeError as exc:
            raise InvalidRuleError(
                f"cidr_blocks must be a list of CIDR strings, got {self.cidr_blocks!r}"
            ) from exc

        if not isinstance(self.protocol, str) or not _known_protocol(self.protocol.lower()):
            raise InvalidRuleError(
                f"unknown protocol {self.protocol!r}, expected one of {sorted(PROTOCOLS)} "
                f"or a protocol number 0-{MAX_PROTOCOL_NUMBER}"
            )
        object.__setattr__(self, "protocol", self.protocol.lower())

        for port in (self.from_port, self.to_port):
            if isinstance(port, bool) or not isinstance(port, int):
                raise InvalidRuleError(f"port must be an integer, got {port!r}")
            if not MIN_PORT <= port <= MAX_PORT:
                raise InvalidRuleError(f"port {port} outside {MIN_PORT}..{MAX_PORT}")
        if self.from_port > self.to_port:
            raise InvalidRuleError(
                f"from_port {self.from_port} is greater than to_port {self.to_port}"
            )
        for cidr in self.cidr_blocks:
            if not isinstance(cidr, str):
                raise InvalidRuleError(f"CIDR block must be a string, got {cidr!r}")
            try:
                ipaddress.ip_network(cidr)
            except (TypeError, ValueError) as exc:
                raise InvalidRuleError(f"invalid CIDR block {cidr!r}: {exc}") from exc

    @property
    def ipv4_cidr_blocks(self) -> tuple[str, ...]:
        return tuple(c for c in self.cidr_blocks if ipaddress.ip_network(c).version == 4)

    @property
    def ipv6_cidr_blocks(self) -> tuple[str, ...]:
        return tuple(c for c in self.cidr_blocks if ipaddress.ip_network(c).version == 6)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "IngressRule":
        """Build a rule from a camelCase mapping as found in stack config.

        Example::

            IngressRule.from_dict(
                {"protocol": "tcp", "fromPort": 443, "toPort": 443,
                 "cidrBlocks": ["10.0.0.0/8"]}
            )

        Raises:
            InvalidRuleError: If ``data`` is not a mapping, lacks a required
                key, or describes an invalid rule.
        """
        if not isinstance(data, Mapping):
            raise InvalidRuleError(f"ingress rule must be an object, got {data!r}")
        try:
            return cls(
                protocol=data["protocol"],  # type: ignore[arg-type]
                from_port=data["fromPort"],  # type: ignore[arg-type]
                to_port=data["toPort"],  # type: ignore[arg-type]
                cidr_blocks=data.get("cidrBlocks") or (),  # type: ignore[arg-type]
                description=data.get("description"),  # type: ignore[arg-type]
            )
        except KeyError as exc:
            raise InvalidRuleError(f"ingress rule is missing {exc.args[0]!r}") from exc


@dataclass(frozen=True)
class SecurityGroupSpec:
    """The access-control group guarding the instance."""

    ingress: tuple[IngressRule, ...]
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "ingress", tuple(self.ingress))


@dataclass(frozen=True)
class ImageQuery:
    """A machine image lookup by name pattern and owner.

    With ``most_recent`` the newest matching image wins; this is what keeps
    the result to a single id when a pattern matches a whole image family.
    """

    name_patterns: tuple[str, ...]
    owners: tuple[str, ...]
    most_recent: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "name_patterns", tuple(self.name_patterns))
        object.__setattr__(self, "owners", tuple(self.owners))


@dataclass(frozen=True)
class InstanceSpec:
    """The compute instance.

    ``tags`` and ``user_data`` are independent: either may be left out
    without touching anything else on the instance.
    """

    instance_type: str
    ami: Attr[ImageQuery, "id"]
    security_groups: RefList[SecurityGroupSpec]
    tags: Mapping[str, str] | None = field(default=None, hash=False)
    user_data: str | None = None


@dataclass(frozen=True)
class ExportedOutputs:
    """The values handed back to whoever ran the declaration."""

    group: Ref[SecurityGroupSpec]
    server: Ref[InstanceSpec]
    public_ip: Attr[InstanceSpec, "public_ip"]
    public_host_name: Attr[InstanceSpec, "public_dns"]


# ExportedOutputs field -> stack output name
OUTPUT_NAMES: dict[str, str] = {
    "group": "group",
    "server": "server",
    "public_ip": "publicIp",
    "public_host_name": "publicHostName",
}
