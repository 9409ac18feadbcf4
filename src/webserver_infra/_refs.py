"""
Reference markers for declaration structs.

A declaration struct field that points at another declared resource is
annotated with one of these markers instead of a plain identifier string:

- `Ref[T]`: the resource declared from a spec of type T (resolves to its id)
- `Attr[T, "name"]`: one computed attribute of that resource
- `RefList[T]`: an ordered sequence of such resources (each resolves to its id)

The markers carry no runtime behaviour of their own. `webserver_infra.graph`
reads them back to find the dependencies between specs, to order the
declarations, and to substitute real resource handles for spec objects.

Example::

    @dataclass(frozen=True)
    class InstanceSpec:
        instance_type: str
        ami: Attr[ImageQuery, "id"]
        security_groups: RefList[SecurityGroupSpec]
"""

from typing import Any, Generic, TypeVar

__all__ = [
    "Ref",
    "Attr",
    "RefList",
]

T = TypeVar("T")
NameT = TypeVar("NameT")


class _RefMeta(type):
    """Metaclass that enables Ref[T] subscript syntax."""

    def __getitem__(cls, item: type[T]) -> Any:
        return _GenericAlias(cls, (item,))


class Ref(Generic[T], metaclass=_RefMeta):
    """A reference to the resource declared from a spec of type T.

    The field value is the spec object itself. When the declaration runs,
    the reference resolves to the ``id`` of the resource that was
    registered for that spec.

    Example::

        @dataclass(frozen=True)
        class ExportedOutputs:
            group: Ref[SecurityGroupSpec]
            server: Ref[InstanceSpec]
    """

    __slots__ = ()


class _AttrMeta(type):
    """Metaclass that enables Attr[T, "name"] subscript syntax."""

    def __getitem__(cls, args: tuple[type[T], str]) -> Any:
        """Create a generic alias for Attr[T, "name"].

        Raises:
            TypeError: If args is not a tuple of exactly two elements.
        """
        if not isinstance(args, tuple) or len(args) != 2:
            raise TypeError("Attr requires exactly two arguments: Attr[T, 'name']")
        return _GenericAlias(cls, args)


class Attr(Generic[T, NameT], metaclass=_AttrMeta):
    """A reference to one computed attribute of a declared resource.

    ``Attr[ImageQuery, "id"]`` resolves to the ``id`` of the image lookup
    result, ``Attr[InstanceSpec, "public_ip"]`` to the instance's public
    address.
    """

    __slots__ = ()


class _RefListMeta(type):
    """Metaclass that enables RefList[T] subscript syntax."""

    def __getitem__(cls, item: type[T]) -> Any:
        return _GenericAlias(cls, (item,))


class RefList(Generic[T], metaclass=_RefListMeta):
    """An ordered sequence of references to resources declared from T.

    Each element resolves to the ``id`` of its resource; order is kept,
    which matters for fields such as an instance's security group ids.
    """

    __slots__ = ()


class _GenericAlias:
    """A subscripted marker that keeps its origin and args for introspection.

    Works with `typing.get_origin`-style inspection through ``__origin__``
    and ``__args__``.
    """

    __slots__ = ("__origin__", "__args__")

    def __init__(self, origin: type, args: tuple[Any, ...]) -> None:
        self.__origin__ = origin
        self.__args__ = args

    def __repr__(self) -> str:
        args_str = ", ".join(
            arg.__name__ if isinstance(arg, type) else repr(arg)
            for arg in self.__args__
        )
        return f"{self.__origin__.__name__}[{args_str}]"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _GenericAlias):
            return (
                self.__origin__ == other.__origin__
                and self.__args__ == other.__args__
            )
        return False

    def __hash__(self) -> int:
        return hash((self.__origin__, self.__args__))
