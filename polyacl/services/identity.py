"""
Identity resolution.

Turns the heterogeneous references accepted everywhere in the engine
(a name, a list of names, raw ids, entities, any iterable of those) into
canonical entity lists.

Resolution policy:
- Roles are strict: every name or id must resolve, otherwise NotFoundError.
  An empty role collection is an InvalidArgumentError.
- Permissions are lenient by default: unresolved names are dropped, since
  "holds a permission that does not exist" is simply false. Grant
  operations can opt into strictness (``strict=True``). An empty
  permission collection resolves to an empty list.
"""

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Literal, Sequence

from polyacl.core.exceptions import InvalidArgumentError, NotFoundError, PreconditionError
from polyacl.models.mixins import acl_id, type_tag

if TYPE_CHECKING:
    from polyacl.services.catalog import PermissionCatalog, RoleCatalog

OwnerKey = tuple[str, str]
RefKind = Literal["names", "ids", "entities"]


def as_list(value: Any, what: str = "value") -> list[Any]:
    """
    Wrap a single reference into a list, or materialize an iterable.

    Strings are single references, not iterables of characters.
    """
    if value is None:
        raise InvalidArgumentError(f"{what} must not be None")
    if isinstance(value, (str, bytes)):
        return [value]
    if isinstance(value, Mapping):
        raise InvalidArgumentError(f"{what} must be a reference or a collection, not a mapping")
    if isinstance(value, Iterable):
        return list(value)
    return [value]


def unique(items: Iterable[Any]) -> list[Any]:
    """Drop duplicates, keeping first-seen order."""
    seen: set[Any] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def holder_key(holder: Any) -> OwnerKey:
    """Get the (type tag, stringified id) key of a permission/role holder."""
    if holder is None:
        raise PreconditionError("Operation requires a holder")
    ident = acl_id(holder)
    if ident is None:
        raise PreconditionError(
            f"{type_tag(holder)} has no id; persist it before granting",
            holder_type=type_tag(holder),
        )
    return type_tag(holder), str(ident)


def resource_ref(ref: Any) -> str | None:
    """Normalize a resource reference (entity, raw id or None) to a stored id."""
    if ref is None:
        return None
    if isinstance(ref, bool):
        raise InvalidArgumentError(f"Invalid resource reference {ref!r}")
    if not (hasattr(ref, "get_acl_id") or hasattr(ref, "id")):
        return str(ref)
    ident = acl_id(ref)
    if ident is None:
        raise InvalidArgumentError(f"Cannot extract an id from {ref!r}")
    return str(ident)


def coerce_ids(model: type, ids: Iterable[str]) -> list[Any]:
    """Convert stored string ids back to the Python type of ``model.id``."""
    ids = list(ids)
    try:
        python_type = model.id.property.columns[0].type.python_type
    except (AttributeError, NotImplementedError):
        return ids
    if python_type is str:
        return ids
    return [python_type(i) for i in ids]


def classify(items: Sequence[Any], model: type, what: str) -> RefKind:
    """Decide whether ``items`` are names, raw ids or ``model`` entities."""
    if all(isinstance(i, str) for i in items):
        return "names"
    if all(isinstance(i, int) and not isinstance(i, bool) for i in items):
        return "ids"
    if all(isinstance(i, model) for i in items):
        return "entities"
    raise InvalidArgumentError(
        f"{what} must all be names, ids or {model.__name__} instances",
        kinds=sorted({type(i).__name__ for i in items}),
    )


def all_resolved(
    items: Sequence[Any],
    kind: RefKind,
    found: Sequence[Any],
    resource_refs: Sequence[Any] | None = None,
) -> bool:
    """
    Check that every requested reference matched at least one entity.

    Counting is not enough: one name can match several permissions (one per
    resource instance) while another name matches none.
    """
    if kind == "entities":
        return True
    if kind == "ids":
        return set(items) <= {e.id for e in found}
    if resource_refs is None:
        return set(items) <= {e.name for e in found}
    requested = set(zip(items, (resource_ref(r) for r in resource_refs)))
    return requested <= {(e.name, e.resource_id) for e in found}


async def normalize_permissions(
    catalog: "PermissionCatalog",
    permissions: Any,
    resource_type: Any = None,
    resource_refs: Any = None,
    *,
    strict: bool = False,
) -> list[Any]:
    """
    Resolve permission references to Permission entities.

    Args:
        catalog: Catalog used for lookups
        permissions: Name(s), id(s) or entity(ies)
        resource_type: Resource class or tag narrowing name lookups
        resource_refs: Resource ids/entities paired positionally with names
        strict: Raise NotFoundError when a name or id does not resolve
    """
    items = as_list(permissions, "permissions")
    if not items:
        return []

    model = catalog.model
    kind = classify(items, model, "permissions")

    if kind == "entities":
        by_id = {p.id: p for p in items}
        return [by_id[i] for i in unique(p.id for p in items)]

    if kind == "ids":
        requested = unique(items)
        found = await catalog.get_by_ids(requested)
        if strict and len(found) != len(requested):
            missing = sorted(set(requested) - {p.id for p in found})
            raise NotFoundError("One or more permissions do not exist", missing=missing)
        return found

    refs = None if resource_refs is None else as_list(resource_refs, "resource_refs")
    found = await catalog.get_by_name(items, resource_type, refs)
    if strict:
        if refs is None:
            missing = sorted(set(items) - {p.name for p in found})
        else:
            have = {(p.name, p.resource_id) for p in found}
            missing = [
                f"{name}@{ref}" for name, ref in zip(items, map(resource_ref, refs))
                if (name, ref) not in have
            ]
        if missing:
            raise NotFoundError("One or more permissions do not exist", missing=missing)
    return found


async def normalize_roles(catalog: "RoleCatalog", roles: Any) -> list[Any]:
    """
    Resolve role references to Role entities. Every reference must resolve.

    Raises:
        InvalidArgumentError: Empty input or mixed reference kinds
        NotFoundError: A name or id does not match an existing role
    """
    items = as_list(roles, "roles")
    if not items:
        raise InvalidArgumentError("Roles must not be empty")

    model = catalog.model
    kind = classify(items, model, "roles")

    if kind == "entities":
        by_id = {r.id: r for r in items}
        return [by_id[i] for i in unique(r.id for r in items)]

    if kind == "ids":
        requested = unique(items)
        found = await catalog.get_by_ids(requested)
        if len(found) != len(requested):
            missing = sorted(set(requested) - {r.id for r in found})
            raise NotFoundError("One or more roles do not exist", missing=missing)
        return found

    return await catalog.get_by_name(items)
