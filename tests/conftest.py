"""Pulumi mocks shared by the resource tests.

The mocks stand in for the engine: every registered resource gets a fake
id, instances get a public address, and image lookups return a fixed AMI.
Registered inputs and invoke arguments are recorded so tests can check
exactly what the declaration asked for.
"""

from collections.abc import Iterator
from typing import Any

import pulumi
import pytest

FAKE_AMI_ID = "ami-0eb1f3cdeeb8eed2a"
FAKE_PUBLIC_IP = "203.0.113.12"
FAKE_PUBLIC_DNS = "ec2-203-0-113-12.compute-1.amazonaws.com"

# Image name patterns that the fake catalog has no image for
MISSING_IMAGE_PATTERN = "no-such-image-*"


class RecordingMocks(pulumi.runtime.Mocks):
    ami_id = FAKE_AMI_ID
    public_ip = FAKE_PUBLIC_IP
    public_dns = FAKE_PUBLIC_DNS
    missing_image_pattern = MISSING_IMAGE_PATTERN

    def __init__(self) -> None:
        self.resources: dict[str, list[dict[str, Any]]] = {}
        self.calls: dict[str, list[dict[str, Any]]] = {}

    def reset(self) -> None:
        self.resources.clear()
        self.calls.clear()

    def registered(self, typ: str, name: str) -> dict[str, Any]:
        """The inputs recorded for the resource of type ``typ`` named ``name``."""
        (found,) = [r for r in self.resources.get(typ, []) if r["name"] == name]
        return found

    def new_resource(self, args: pulumi.runtime.MockResourceArgs) -> tuple[str, dict[str, Any]]:
        self.resources.setdefault(args.typ, []).append({"name": args.name, **args.inputs})
        outputs = dict(args.inputs)
        if args.typ == "aws:ec2/instance:Instance":
            outputs.update(publicIp=FAKE_PUBLIC_IP, publicDns=FAKE_PUBLIC_DNS)
        return f"{args.name}_id", outputs

    def call(self, args: pulumi.runtime.MockCallArgs) -> dict[str, Any]:
        self.calls.setdefault(args.token, []).append(dict(args.args))
        if args.token == "aws:ec2/getAmi:getAmi":
            patterns = [
                value
                for flt in args.args.get("filters", [])
                for value in flt.get("values", [])
            ]
            if MISSING_IMAGE_PATTERN in patterns:
                return {}
            return {"architecture": "x86_64", "id": FAKE_AMI_ID}
        return {}


MOCKS = RecordingMocks()
pulumi.runtime.set_mocks(MOCKS, preview=False)


@pytest.fixture
def mocks() -> Iterator[RecordingMocks]:
    MOCKS.reset()
    yield MOCKS
    MOCKS.reset()


class FakeConfig:
    """Stands in for pulumi.Config with a plain dict of values."""

    def __init__(self, **values: Any) -> None:
        self.values = values

    def get(self, key: str) -> str | None:
        value = self.values.get(key)
        return None if value is None else str(value)

    def get_bool(self, key: str) -> bool | None:
        return self.values.get(key)

    def get_object(self, key: str) -> Any:
        return self.values.get(key)


@pytest.fixture
def make_config() -> type[FakeConfig]:
    return FakeConfig
