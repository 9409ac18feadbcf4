"""
Policy checks over registered resource properties.

The declaration accepts any well-formed rule, tag mapping or startup
script. These checks are what tells a permissive fixture variant apart
from a compliant one. They read property bags the way the engine reports
them (camelCase keys, plain lists and dicts), so the same functions work on
mock-recorded inputs, on ``pulumi preview --json`` output, or inside a
policy pack.

Rules:

- no ingress rule may admit port 22 from the whole internet
- every instance carries a ``Name`` tag
- no instance carries inline ``userData``
"""

import ipaddress
from collections.abc import Iterable, Mapping
from typing import Any

__all__ = [
    "SSH_PORT",
    "is_open_to_world",
    "admits_port",
    "public_ssh_rules",
    "security_group_violations",
    "instance_violations",
]

SSH_PORT = 22

# protocol number -> name, for rules given by number
PROTOCOL_NAMES = {"1": "icmp", "6": "tcp", "17": "udp", "58": "icmpv6"}


def is_open_to_world(cidr: str) -> bool:
    """True for a CIDR covering every address, e.g. ``0.0.0.0/0`` or ``::/0``."""
    try:
        return ipaddress.ip_network(cidr, strict=False).prefixlen == 0
    except ValueError:
        return False


def admits_port(rule: Mapping[str, Any], port: int) -> bool:
    protocol = str(rule.get("protocol", "")).lower()
    protocol = PROTOCOL_NAMES.get(protocol, protocol)
    if protocol in ("-1", "all"):
        return True
    if protocol != "tcp":
        return False
    return int(rule.get("fromPort", 0)) <= port <= int(rule.get("toPort", 0))


def _sources(rule: Mapping[str, Any]) -> list[str]:
    return list(rule.get("cidrBlocks") or ()) + list(rule.get("ipv6CidrBlocks") or ())


def public_ssh_rules(ingress: Iterable[Mapping[str, Any]] | None) -> list[Mapping[str, Any]]:
    """Return the ingress rules that let anyone on the internet reach SSH."""
    found = []
    for rule in ingress or ():
        if admits_port(rule, SSH_PORT) and any(is_open_to_world(c) for c in _sources(rule)):
            found.append(rule)
    return found


def security_group_violations(props: Mapping[str, Any]) -> list[str]:
    return [
        f"port {SSH_PORT} open to the internet "
        f"({rule.get('fromPort')}-{rule.get('toPort')} from {_sources(rule)})"
        for rule in public_ssh_rules(props.get("ingress"))
    ]


def instance_violations(props: Mapping[str, Any]) -> list[str]:
    violations = []
    tags = props.get("tags") or {}
    if "Name" not in tags:
        violations.append("missing a Name tag")
    if props.get("userData"):
        violations.append("uses inline userData")
    return violations
