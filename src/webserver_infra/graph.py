"""
Introspection over the reference markers in declaration structs.

The declaration never hard-codes which resource depends on which: it asks
the spec classes. Fields annotated with `Ref`, `Attr` or `RefList` are the
edges of the resource graph, and this module turns them into

- `get_refs`: the reference fields of a class
- `get_dependencies`: the classes a class points at (direct or transitive)
- `declaration_order`: a dependencies-first ordering of a set of classes
- `resolve_refs`: the field values with spec objects swapped for the
  handles (or handle attributes) of the resources declared from them

Example::

    @dataclass(frozen=True)
    class InstanceSpec:
        ami: Attr[ImageQuery, "id"]
        security_groups: RefList[SecurityGroupSpec]

    get_dependencies(InstanceSpec)
    # {ImageQuery, SecurityGroupSpec}

    declaration_order([InstanceSpec, SecurityGroupSpec, ImageQuery])
    # [SecurityGroupSpec, ImageQuery, InstanceSpec]
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, get_args, get_origin, get_type_hints

from webserver_infra._refs import Attr, Ref, RefList
from webserver_infra.errors import DependencyError

__all__ = [
    "RefInfo",
    "get_refs",
    "get_dependencies",
    "declaration_order",
    "resolve_refs",
]

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefInfo:
    """Metadata about a reference field.

    Attributes:
        field: The name of the field containing the reference.
        target: The referenced spec class.
        attr: The attribute name for `Attr` fields, None otherwise.
        is_list: True if the field is a `RefList`.
    """

    field: str
    target: type
    attr: str | None = None
    is_list: bool = False

    @property
    def resolves_to(self) -> str:
        """The handle attribute this reference resolves to."""
        return self.attr if self.attr is not None else "id"


def get_refs(cls: type) -> dict[str, RefInfo]:
    """Extract reference information from a class.

    Handles ``Ref[T]``, ``Attr[T, "name"]`` and ``RefList[T]``. Fields
    without a reference marker, including a marker inside a union, are not
    included.

    Args:
        cls: The class to analyze, normally a declaration dataclass.

    Returns:
        A dictionary mapping field names to `RefInfo` objects.
    """
    refs: dict[str, RefInfo] = {}

    try:
        hints = get_type_hints(cls, include_extras=True)
    except Exception:
        # Unresolvable forward references: treat the class as having no refs
        logger.debug("could not resolve type hints of %r", cls, exc_info=True)
        return refs

    for name, hint in hints.items():
        info = _analyze_type(name, hint)
        if info is not None:
            refs[name] = info

    return refs


def _get_origin(hint: Any) -> Any:
    """Like `typing.get_origin`, but also understands our `_GenericAlias`."""
    origin = get_origin(hint)
    if origin is not None:
        return origin
    if hasattr(hint, "__origin__"):
        return hint.__origin__
    return None


def _get_args(hint: Any) -> tuple[Any, ...]:
    """Like `typing.get_args`, but also understands our `_GenericAlias`."""
    args = get_args(hint)
    if args:
        return args
    if hasattr(hint, "__args__"):
        result: tuple[Any, ...] = hint.__args__
        return result
    return ()


def _analyze_type(field: str, hint: Any) -> RefInfo | None:
    """Return RefInfo if ``hint`` is a reference marker, None otherwise."""
    origin = _get_origin(hint)
    args = _get_args(hint)

    if origin is Ref:
        if args:
            return RefInfo(field=field, target=args[0])
        return None

    if origin is Attr:
        if len(args) >= 2:
            return RefInfo(field=field, target=args[0], attr=args[1])
        return None

    if origin is RefList:
        if args:
            return RefInfo(field=field, target=args[0], is_list=True)
        return None

    return None


def get_dependencies(cls: type, transitive: bool = False) -> set[type]:
    """Compute the spec classes a class depends on.

    Args:
        cls: The class to analyze.
        transitive: If True, include dependencies of dependencies.

    Returns:
        A set of referenced classes.
    """
    deps = {info.target for info in get_refs(cls).values()}

    if not transitive:
        return deps

    visited: set[type] = set()
    to_visit = list(deps)

    while to_visit:
        current = to_visit.pop()
        if current in visited:
            continue
        visited.add(current)
        to_visit.extend(get_dependencies(current) - visited)

    return visited


def declaration_order(classes: Iterable[type]) -> list[type]:
    """Sort spec classes so that every class comes after its dependencies.

    The order is stable: among classes that are ready at the same time the
    input order is kept. Dependencies on classes outside ``classes`` are
    ignored, they are assumed to be satisfied elsewhere.

    Raises:
        DependencyError: If the classes reference each other in a cycle.
    """
    pending = list(dict.fromkeys(classes))
    members = set(pending)
    ordered: list[type] = []

    while pending:
        done = set(ordered)
        ready = [c for c in pending if (get_dependencies(c) & members) <= done]
        if not ready:
            names = ", ".join(sorted(c.__name__ for c in pending))
            raise DependencyError(f"circular reference between {names}")
        ordered.extend(ready)
        pending = [c for c in pending if c not in ready]

    return ordered


def resolve_refs(spec: Any, handles: Mapping[int, Any]) -> dict[str, Any]:
    """Resolve the reference fields of ``spec`` against declared resources.

    Args:
        spec: A declaration struct instance whose reference fields hold the
            spec objects they point at.
        handles: Declared resource handles keyed by ``id()`` of the spec
            object they were declared from.

    Returns:
        A dictionary mapping each reference field to its resolved value:
        the handle's ``id`` for `Ref` and `RefList` elements, the named
        attribute for `Attr`.

    Raises:
        DependencyError: If a referenced spec has no handle, a reference
            is None, or a value is not of the annotated type.
    """
    owner = type(spec).__name__
    resolved: dict[str, Any] = {}

    for name, info in get_refs(type(spec)).items():
        value = getattr(spec, name)
        if value is None:
            raise DependencyError(f"{owner}.{name} is required but not set")
        if info.is_list:
            resolved[name] = [_resolve_one(owner, info, item, handles) for item in value]
        else:
            resolved[name] = _resolve_one(owner, info, value, handles)

    return resolved


def _resolve_one(owner: str, info: RefInfo, target: Any, handles: Mapping[int, Any]) -> Any:
    if not isinstance(target, info.target):
        raise DependencyError(
            f"{owner}.{info.field} expects a {info.target.__name__}, "
            f"got {type(target).__name__}"
        )
    try:
        handle = handles[id(target)]
    except KeyError:
        raise DependencyError(
            f"{owner}.{info.field} references a {info.target.__name__} "
            "that was never declared"
        ) from None
    return getattr(handle, info.resolves_to)
