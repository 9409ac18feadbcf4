"""
The `Infrastructure` component: a security group and a web server.

The component only builds the declarative graph. Pulumi registers the
resources, works out their real-world lifecycle and fills in computed
values such as the instance's public address later on.

Declaration runs in three steps:

1. build the specs (`SecurityGroupSpec`, `ImageQuery`, `InstanceSpec`)
   from `InfrastructureArgs`;
2. sort them with `declaration_order`, so every spec is declared after
   the specs it references;
3. declare each one, substituting already-declared handles for the spec
   objects referenced by `resolve_refs`.

Nothing is retried. The first failure aborts the declaration.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import pulumi
import pulumi_aws as aws

from webserver_infra.config import InfrastructureArgs
from webserver_infra.errors import DependencyError, ImageLookupError, RegistrationError
from webserver_infra.graph import declaration_order, get_dependencies, resolve_refs
from webserver_infra.models import (
    OUTPUT_NAMES,
    ExportedOutputs,
    ImageQuery,
    IngressRule,
    InstanceSpec,
    SecurityGroupSpec,
)

__all__ = ["COMPONENT_TYPE", "Infrastructure"]

logger: logging.Logger = logging.getLogger(__name__)

COMPONENT_TYPE = "pkg:index:MyComponent"

SECURITY_GROUP_TYPE = "aws:ec2/securityGroup:SecurityGroup"
INSTANCE_TYPE = "aws:ec2/instance:Instance"


def _in_declaration_order(specs: Iterable[Any]) -> list[Any]:
    specs = list(specs)
    rank = {cls: i for i, cls in enumerate(declaration_order(type(s) for s in specs))}
    return sorted(specs, key=lambda s: rank[type(s)])


def _ingress_args(rule: IngressRule) -> aws.ec2.SecurityGroupIngressArgs:
    return aws.ec2.SecurityGroupIngressArgs(
        protocol=rule.protocol,
        from_port=rule.from_port,
        to_port=rule.to_port,
        cidr_blocks=list(rule.ipv4_cidr_blocks) or None,
        ipv6_cidr_blocks=list(rule.ipv6_cidr_blocks) or None,
        description=rule.description,
    )


class Infrastructure(pulumi.ComponentResource):
    """A security group plus an EC2 instance behind it.

    Args:
        name: Unique name of the component. Child resources are named
            ``{name}-secgrp`` and ``{name}-server``.
        args: What to declare; defaults to `InfrastructureArgs()`.
        opts: Options for the component resource itself.

    Attributes:
        group: The `aws.ec2.SecurityGroup`.
        image: The result of the image lookup.
        server: The `aws.ec2.Instance`.
        exported: Output name -> value, as listed in `OUTPUT_NAMES`.

    Raises:
        RegistrationError: A resource could not be constructed.
        ImageLookupError: The image lookup failed or matched nothing.
        DependencyError: A spec referenced something never declared.
    """

    group: aws.ec2.SecurityGroup
    image: aws.ec2.AwaitableGetAmiResult
    server: aws.ec2.Instance
    exported: dict[str, pulumi.Output[Any]]

    def __init__(
        self,
        name: str,
        args: InfrastructureArgs | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ) -> None:
        super().__init__(COMPONENT_TYPE, name, None, opts)
        self._base_name = name
        self._args = args if args is not None else InfrastructureArgs()
        self._handles: dict[int, Any] = {}

        group_spec = SecurityGroupSpec(
            ingress=self._args.ingress_rules(),
            description=f"Web traffic for {name}",
        )
        image_query = self._args.image_query()
        instance_spec = InstanceSpec(
            instance_type=self._args.instance_type,
            ami=image_query,
            security_groups=[group_spec],
            tags=self._args.tags,
            user_data=self._args.user_data,
        )

        declarers: dict[type, Callable[[Any], Any]] = {
            SecurityGroupSpec: self._declare_group,
            ImageQuery: self._lookup_image,
            InstanceSpec: self._declare_instance,
        }
        missing = get_dependencies(ExportedOutputs, transitive=True) - set(declarers)
        if missing:
            names = ", ".join(sorted(cls.__name__ for cls in missing))
            raise DependencyError(f"no declarer for {names}")
        for spec in _in_declaration_order([instance_spec, image_query, group_spec]):
            self._handles[id(spec)] = declarers[type(spec)](spec)

        self.group = self._handles[id(group_spec)]
        self.image = self._handles[id(image_query)]
        self.server = self._handles[id(instance_spec)]

        exported = resolve_refs(
            ExportedOutputs(
                group=group_spec,
                server=instance_spec,
                public_ip=instance_spec,
                public_host_name=instance_spec,
            ),
            self._handles,
        )
        self.exported = {OUTPUT_NAMES[field]: value for field, value in exported.items()}

        logger.info(
            "declared %s: security group %s, instance %s (%s)",
            name,
            f"{name}-secgrp",
            f"{name}-server",
            self._args.instance_type,
        )
        self.register_outputs(self.exported)

    def _child_opts(self) -> pulumi.ResourceOptions:
        return pulumi.ResourceOptions(parent=self)

    def _declare_group(self, spec: SecurityGroupSpec) -> aws.ec2.SecurityGroup:
        resource_name = f"{self._base_name}-secgrp"
        logger.debug("declaring %s with %d ingress rule(s)", resource_name, len(spec.ingress))
        try:
            return aws.ec2.SecurityGroup(
                resource_name,
                description=spec.description,
                ingress=[_ingress_args(rule) for rule in spec.ingress],
                opts=self._child_opts(),
            )
        except Exception as exc:
            raise RegistrationError(SECURITY_GROUP_TYPE, resource_name, str(exc)) from exc

    def _lookup_image(self, query: ImageQuery) -> aws.ec2.AwaitableGetAmiResult:
        logger.debug("looking up image %s owned by %s", query.name_patterns, query.owners)
        try:
            image = aws.ec2.get_ami(
                filters=[
                    aws.ec2.GetAmiFilterArgs(name="name", values=list(query.name_patterns)),
                ],
                owners=list(query.owners),
                most_recent=query.most_recent,
                opts=pulumi.InvokeOptions(parent=self),
            )
        except Exception as exc:
            raise ImageLookupError(query, str(exc)) from exc
        if not image.id:
            raise ImageLookupError(query, "no matching image")
        return image

    def _declare_instance(self, spec: InstanceSpec) -> aws.ec2.Instance:
        resource_name = f"{self._base_name}-server"
        refs = resolve_refs(spec, self._handles)
        security_group_ids: Sequence[pulumi.Input[str]] = refs["security_groups"]
        logger.debug(
            "declaring %s: tags=%s user_data=%s",
            resource_name,
            "yes" if spec.tags is not None else "no",
            "yes" if spec.user_data is not None else "no",
        )
        try:
            return aws.ec2.Instance(
                resource_name,
                instance_type=spec.instance_type,
                ami=refs["ami"],
                vpc_security_group_ids=security_group_ids,
                tags=dict(spec.tags) if spec.tags is not None else None,
                user_data=spec.user_data,
                opts=self._child_opts(),
            )
        except Exception as exc:
            raise RegistrationError(INSTANCE_TYPE, resource_name, str(exc)) from exc
