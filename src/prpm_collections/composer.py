"""Inheritance composer - Flatten a child collection onto its single parent.

Only one level of `extends` is allowed: a parent that itself extends another
collection is rejected. Parents are fetched through an injected DefinitionStore.

Merge rules:
- Parent packages come first, in parent order
- A child package with a matching packageId overrides version, required, reason
  and installOrder (only the fields the child actually sets)
- New child packages are appended, numbered after the highest installOrder of
  the merged parent entries
- category, tags, framework and config are inherited when the child leaves them
  unset; MCP servers are merged with the child winning per server name
- The result has `extends` cleared
"""

import logging

from .exceptions import InheritanceError
from .protocols import DefinitionStore
from .schema import CollectionConfig
from .schema import CollectionDefinition
from .schema import PackageRef
from .schema import duplicate_package_ids

logger = logging.getLogger(__name__)

# PackageRef fields a child entry may override on a parent entry
OVERRIDABLE_FIELDS = ("version", "required", "reason", "install_order")

# Top-level fields inherited from the parent when the child leaves them unset
INHERITABLE_FIELDS = ("category", "tags", "framework")


def _merge_packages(parent: list[PackageRef], child: list[PackageRef]) -> list[PackageRef]:
    child_by_id = {package.package_id: package for package in child}
    parent_ids = {package.package_id for package in parent}

    merged = []
    for package in parent:
        override = child_by_id.get(package.package_id)
        if override is None:
            merged.append(package)
            continue
        updates = {name: getattr(override, name) for name in OVERRIDABLE_FIELDS if name in override.model_fields_set}
        logger.debug(f"Child overrides {package.package_id}: {sorted(updates)}")
        merged.append(package.model_copy(update=updates))

    next_order = max((p.install_order for p in merged if p.install_order is not None), default=0)
    for package in child:
        if package.package_id in parent_ids:
            continue
        next_order += 1
        merged.append(package.model_copy(update={"install_order": next_order}))

    return merged


def _merge_config(parent: CollectionConfig | None, child: CollectionConfig | None) -> CollectionConfig | None:
    if parent is None or child is None:
        return child or parent

    updates = {name: getattr(child, name) for name in child.model_fields_set if name != "mcp_servers"}
    updates["mcp_servers"] = {**parent.mcp_servers, **child.mcp_servers}
    return parent.model_copy(update=updates)


def merge_definitions(parent: CollectionDefinition, child: CollectionDefinition) -> CollectionDefinition:
    """
    Merge a child definition onto its parent (pure, deterministic).

    Args:
        parent: Parent definition (must not extend anything itself)
        child: Child definition whose `extends` names the parent

    Returns:
        Flattened definition with `extends` cleared

    Raises:
        InheritanceError: If the parent itself extends another collection or lists
            a packageId twice

    Example:
        >>> merged = merge_definitions(base, child)
        >>> merged.extends is None
        True
    """
    if parent.extends:
        raise InheritanceError(
            f"Collection '{child.reference}' extends '{parent.reference}', which itself extends "
            f"'{parent.extends}'. Only one level of inheritance is allowed.",
            context={"collection": child.reference, "parent": parent.reference, "grandparent": parent.extends},
        )

    duplicates = duplicate_package_ids(parent.package_ids)
    if duplicates:
        raise InheritanceError(
            f"Parent collection '{parent.reference}' lists packageId {', '.join(repr(d) for d in duplicates)} "
            f"more than once",
            context={"collection": child.reference, "parent": parent.reference, "duplicates": duplicates},
        )

    updates: dict = {
        "packages": _merge_packages(parent.packages, child.packages),
        "config": _merge_config(parent.config, child.config),
        "extends": None,
    }
    for name in INHERITABLE_FIELDS:
        if name not in child.model_fields_set:
            updates[name] = getattr(parent, name)

    merged = child.model_copy(update=updates)
    logger.debug(
        f"Composed {child.reference} onto {parent.reference}: "
        f"{len(parent.packages)} inherited + {len(child.packages)} declared -> {len(merged.packages)} packages"
    )
    return merged


async def compose_definition(
    child: CollectionDefinition,
    store: DefinitionStore | None,
) -> CollectionDefinition:
    """
    Resolve a definition's `extends` reference and flatten it.

    Standalone definitions are returned unchanged.

    Args:
        child: Normalized definition
        store: Definition store used to fetch the parent

    Returns:
        Standalone (flattened) definition

    Raises:
        InheritanceError: If the parent is missing, unreachable, the child extends
            itself, or the parent extends another collection
    """
    parent_ref = child.parent_reference()
    if parent_ref is None:
        return child

    scope, parent_id = parent_ref
    reference = f"{scope}/{parent_id}"
    context = {"collection": child.reference, "parent": reference}

    if (scope, parent_id) == (child.scope, child.id):
        raise InheritanceError(f"Collection '{child.reference}' cannot extend itself", context=context)

    if store is None:
        raise InheritanceError(
            f"Collection '{child.reference}' extends '{reference}' but no definition store is configured",
            context=context,
        )

    try:
        parent = await store.get(scope, parent_id)
    except Exception as e:
        raise InheritanceError(f"Failed to fetch parent collection '{reference}': {e}", context=context) from e

    if parent is None:
        raise InheritanceError(f"Parent collection '{reference}' not found", context=context)

    logger.debug(f"Fetched parent {reference} for {child.reference}")
    return merge_definitions(parent, child)
