"""Stack output export for the `Infrastructure` component."""

import logging
from collections.abc import Callable
from typing import Any

import pulumi

from webserver_infra.infrastructure import Infrastructure

__all__ = ["export_outputs"]

logger: logging.Logger = logging.getLogger(__name__)

ExportFn = Callable[[str, Any], None]


def export_outputs(
    infra: Infrastructure, export: ExportFn = pulumi.export
) -> dict[str, pulumi.Output[Any]]:
    """Export ``group``, ``server``, ``publicIp`` and ``publicHostName``.

    The values are Outputs and only resolve once the engine has provisioned
    the resources. ``export`` is the function that publishes a value; it is
    `pulumi.export` in a real run.

    Returns:
        The exported name -> value mapping.
    """
    for name, value in infra.exported.items():
        logger.debug("exporting %s", name)
        export(name, value)
    return dict(infra.exported)
