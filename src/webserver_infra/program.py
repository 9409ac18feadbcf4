"""Pulumi program entry point.

``__main__.py`` at the project root calls `main`; Pulumi runs that file
when the stack is previewed or updated.
"""

import logging

import pulumi

from webserver_infra.config import ConfigSource, InfrastructureArgs
from webserver_infra.errors import InfrastructureError
from webserver_infra.infrastructure import Infrastructure
from webserver_infra.outputs import ExportFn, export_outputs

__all__ = ["main"]

logger: logging.Logger = logging.getLogger(__name__)

COMPONENT_NAME = "infra"


def main(config: ConfigSource | None = None, export: ExportFn = pulumi.export) -> Infrastructure:
    """Declare the stack and export its outputs.

    Any `InfrastructureError` is reported to the engine and re-raised, so
    the update fails with that message.
    """
    try:
        args = InfrastructureArgs.from_config(config if config is not None else pulumi.Config())
        infra = Infrastructure(COMPONENT_NAME, args)
    except InfrastructureError as exc:
        logger.error("declaration failed: %s", exc)
        pulumi.log.error(str(exc))
        raise
    export_outputs(infra, export)
    return infra
