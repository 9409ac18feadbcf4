"""Tests for reference introspection, ordering and resolution."""

from types import SimpleNamespace

import pytest

from webserver_infra import graph
from webserver_infra import (
    HTTP_RULE,
    DependencyError,
    ExportedOutputs,
    ImageQuery,
    InstanceSpec,
    SecurityGroupSpec,
    declaration_order,
    get_dependencies,
    get_refs,
    resolve_refs,
)


class TestGetRefs:
    """Tests for get_refs."""

    def test_instance_spec_refs(self) -> None:
        """InstanceSpec should expose its image and security group references."""
        refs = get_refs(InstanceSpec)
        assert set(refs) == {"ami", "security_groups"}

        assert refs["ami"].target is ImageQuery
        assert refs["ami"].attr == "id"
        assert refs["ami"].is_list is False

        assert refs["security_groups"].target is SecurityGroupSpec
        assert refs["security_groups"].is_list is True
        assert refs["security_groups"].attr is None

    def test_plain_fields_excluded(self) -> None:
        """Non-reference fields such as tags should not be reported."""
        refs = get_refs(InstanceSpec)
        assert "tags" not in refs
        assert "user_data" not in refs
        assert get_refs(SecurityGroupSpec) == {}

    def test_exported_outputs_refs(self) -> None:
        """ExportedOutputs should resolve ids for Ref and named attributes for Attr."""
        refs = get_refs(ExportedOutputs)
        assert refs["group"].resolves_to == "id"
        assert refs["server"].resolves_to == "id"
        assert refs["public_ip"].resolves_to == "public_ip"
        assert refs["public_host_name"].resolves_to == "public_dns"


class TestGetDependencies:
    """Tests for get_dependencies."""

    def test_direct_dependencies(self) -> None:
        """InstanceSpec depends on the image query and the security group."""
        assert get_dependencies(InstanceSpec) == {ImageQuery, SecurityGroupSpec}

    def test_leaf_has_no_dependencies(self) -> None:
        """Specs without references have no dependencies."""
        assert get_dependencies(SecurityGroupSpec) == set()
        assert get_dependencies(ImageQuery) == set()

    def test_transitive_dependencies(self) -> None:
        """ExportedOutputs transitively depends on everything declared."""
        direct = get_dependencies(ExportedOutputs)
        assert direct == {SecurityGroupSpec, InstanceSpec}

        transitive = get_dependencies(ExportedOutputs, transitive=True)
        assert transitive == {SecurityGroupSpec, InstanceSpec, ImageQuery}


class TestDeclarationOrder:
    """Tests for declaration_order."""

    def test_dependencies_come_first(self) -> None:
        """The instance is declared after both of its dependencies."""
        order = declaration_order([InstanceSpec, ImageQuery, SecurityGroupSpec])
        assert order.index(InstanceSpec) > order.index(ImageQuery)
        assert order.index(InstanceSpec) > order.index(SecurityGroupSpec)

    def test_stable_for_independent_classes(self) -> None:
        """Independent classes keep their input order."""
        assert declaration_order([InstanceSpec, ImageQuery, SecurityGroupSpec]) == [
            ImageQuery,
            SecurityGroupSpec,
            InstanceSpec,
        ]
        assert declaration_order([SecurityGroupSpec, ImageQuery, InstanceSpec]) == [
            SecurityGroupSpec,
            ImageQuery,
            InstanceSpec,
        ]

    def test_outside_dependencies_ignored(self) -> None:
        """Dependencies outside the given set do not block ordering."""
        assert declaration_order([InstanceSpec]) == [InstanceSpec]

    def test_duplicates_collapsed(self) -> None:
        """A class listed twice is ordered once."""
        assert declaration_order([SecurityGroupSpec, SecurityGroupSpec]) == [SecurityGroupSpec]

    def test_cycle_detected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Mutually dependent classes should raise DependencyError."""

        class A:
            pass

        class B:
            pass

        edges = {A: {B}, B: {A}}
        monkeypatch.setattr(graph, "get_dependencies", lambda cls, transitive=False: edges[cls])

        with pytest.raises(DependencyError, match="circular reference between A, B"):
            declaration_order([A, B])


class TestResolveRefs:
    """Tests for resolve_refs."""

    def _specs(self) -> tuple[SecurityGroupSpec, ImageQuery, InstanceSpec]:
        group = SecurityGroupSpec(ingress=(HTTP_RULE,))
        image = ImageQuery(name_patterns=("ubuntu-*",), owners=("123",))
        instance = InstanceSpec(instance_type="t2.micro", ami=image, security_groups=[group])
        return group, image, instance

    def test_resolves_ids_and_attributes(self) -> None:
        """Ref/RefList elements resolve to ids, Attr to the named attribute."""
        group, image, instance = self._specs()
        handles = {
            id(group): SimpleNamespace(id="sg-123"),
            id(image): SimpleNamespace(id="ami-456"),
        }

        assert resolve_refs(instance, handles) == {
            "ami": "ami-456",
            "security_groups": ["sg-123"],
        }

    def test_resolves_outputs(self) -> None:
        """ExportedOutputs resolves against the instance handle's attributes."""
        group, _, instance = self._specs()
        handles = {
            id(group): SimpleNamespace(id="sg-123"),
            id(instance): SimpleNamespace(
                id="i-789", public_ip="203.0.113.10", public_dns="ec2.example.com"
            ),
        }
        outputs = ExportedOutputs(
            group=group, server=instance, public_ip=instance, public_host_name=instance
        )

        assert resolve_refs(outputs, handles) == {
            "group": "sg-123",
            "server": "i-789",
            "public_ip": "203.0.113.10",
            "public_host_name": "ec2.example.com",
        }

    def test_undeclared_reference(self) -> None:
        """A reference to a spec with no handle raises DependencyError."""
        group, image, instance = self._specs()
        handles = {id(image): SimpleNamespace(id="ami-456")}

        with pytest.raises(DependencyError, match="security_groups references a SecurityGroupSpec"):
            resolve_refs(instance, handles)

    def test_equal_but_distinct_spec_is_undeclared(self) -> None:
        """Handles are keyed by identity, not equality."""
        group, image, instance = self._specs()
        twin = SecurityGroupSpec(ingress=(HTTP_RULE,))
        assert twin == group
        handles = {id(twin): SimpleNamespace(id="sg-123"), id(image): SimpleNamespace(id="ami")}

        with pytest.raises(DependencyError):
            resolve_refs(instance, handles)

    def test_wrong_type(self) -> None:
        """A reference holding the wrong spec type raises DependencyError."""
        group, image, _ = self._specs()
        instance = InstanceSpec(instance_type="t2.micro", ami=group, security_groups=[group])  # type: ignore[arg-type]

        with pytest.raises(DependencyError, match="expects a ImageQuery, got SecurityGroupSpec"):
            resolve_refs(instance, {id(group): SimpleNamespace(id="sg")})

    def test_required_reference_missing(self) -> None:
        """A required reference set to None raises DependencyError."""
        instance = InstanceSpec(instance_type="t2.micro", ami=None, security_groups=[])  # type: ignore[arg-type]

        with pytest.raises(DependencyError, match="InstanceSpec.ami is required"):
            resolve_refs(instance, {})
