"""Read/write helpers for editing CMS documents at arbitrary paths.

Every write goes through ``SanityPatch`` so one helper call is one
mutation. Helpers raise ``DocumentEditError`` subclasses; the tool layer
turns those into structured results for the model.
"""

import logging
from typing import Any, Literal

from app.services.document_paths import (
    ensure_keys,
    get_value_at_path,
    is_safe_identifier,
    item_selector,
    parent_paths,
)
from app.services.sanity import SanityClient

logger = logging.getLogger(__name__)

ArrayOperation = Literal["append", "prepend", "insert", "remove", "replace"]
ArrayPosition = Literal["before", "after", "replace"]

# Arrays of plain strings in the portfolio schemas
PRIMITIVE_ARRAY_FIELDS = {"tags", "categories", "learnings", "achievements", "results", "keywords"}

# Types created by the studio itself, hidden from type listings
_SYSTEM_TYPE_PREFIXES = ("sanity.", "system.")

MAX_REFERENCE_DEPTH = 2


class DocumentEditError(Exception):
    """Base class; ``error_type`` is reported back to the model."""

    error_type = "UNKNOWN_ERROR"


class DocumentNotFoundError(DocumentEditError):
    error_type = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class PathNotFoundError(DocumentEditError):
    error_type = "PATH_NOT_FOUND"


class ItemNotFoundError(DocumentEditError):
    error_type = "ITEM_NOT_FOUND"


class InvalidArrayError(DocumentEditError):
    error_type = "INVALID_ARRAY"


class InvalidOperationError(DocumentEditError):
    error_type = "INVALID_OPERATION"


class DocumentValidationError(DocumentEditError):
    error_type = "VALIDATION_ERROR"


async def require_document(client: SanityClient, document_id: str) -> dict[str, Any]:
    document = await client.get_document(document_id)
    if not document:
        raise DocumentNotFoundError(document_id)
    return document


async def update_document_field(
    client: SanityClient,
    document_id: str,
    field_path: str,
    value: Any,
) -> dict[str, Any] | None:
    """Set one field; nested paths (``timeline.status``) are set in place."""
    updated = await client.patch(document_id).set({field_path: value}).commit()
    logger.info(f"Updated {field_path} in document {document_id}")
    return updated


async def write_to_path(
    client: SanityClient,
    document_id: str,
    path: str,
    value: Any,
    create_if_missing: bool = True,
) -> dict[str, Any] | None:
    """Set ``value`` at ``path``, creating missing parent objects when asked."""
    patch = client.patch(document_id)
    if create_if_missing:
        for prefix in parent_paths(path):
            patch.set_if_missing({prefix: {}})
    if isinstance(value, list):
        value = ensure_keys(value)
    return await patch.set({path: value}).commit()


async def delete_from_path(
    client: SanityClient,
    document_id: str,
    path: str,
) -> dict[str, Any] | None:
    return await client.patch(document_id).unset([path]).commit()


async def add_item_to_array(
    client: SanityClient,
    document_id: str,
    array_path: str,
    item: Any,
) -> dict[str, Any] | None:
    """Append one item, keying it only when the array holds objects."""
    document = await require_document(client, document_id)
    current = get_value_at_path(document, array_path)
    if current is not None and not isinstance(current, list):
        raise InvalidArrayError(f"Field {array_path} is not an array")

    is_primitive_array = bool(current) and not isinstance(current[0], dict)
    if is_primitive_array or not isinstance(item, dict) or array_path in PRIMITIVE_ARRAY_FIELDS:
        to_insert = item
    else:
        to_insert = ensure_keys([item])[0]

    updated = await client.patch(document_id).append(array_path, [to_insert]).commit()
    logger.info(f"Added item to {array_path} in document {document_id}")
    return updated


async def remove_item_from_array(
    client: SanityClient,
    document_id: str,
    array_path: str,
    item_key: str,
) -> dict[str, Any] | None:
    updated = await client.patch(document_id).unset([f'{array_path}[_key=="{item_key}"]']).commit()
    logger.info(f"Removed item {item_key} from {array_path}")
    return updated


async def perform_array_operation(
    client: SanityClient,
    document_id: str,
    path: str,
    operation: ArrayOperation,
    items: list[Any] | None = None,
    at: int | str | None = None,
    position: ArrayPosition | None = None,
    document: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Run one array operation.

    ``at`` is an index or an item ``_key``; ``position`` applies to
    ``insert`` (default ``after``).
    """
    items = ensure_keys(items or [])
    if operation in ("append", "prepend", "insert", "replace") and not items:
        raise DocumentValidationError(f"Items array is required for '{operation}' operation")
    if operation in ("insert", "remove", "replace") and at is None:
        raise DocumentValidationError(f"'at' parameter is required for '{operation}' operation")

    if document is not None:
        current = get_value_at_path(document, path)
        if current is not None and not isinstance(current, list):
            raise InvalidArrayError(f"Field {path} is not an array")
        if at is not None and operation != "append" and operation != "prepend":
            if current is None:
                raise PathNotFoundError(f"Path {path} not found in document")
            if get_value_at_path(document, item_selector(path, at)) is None:
                raise ItemNotFoundError(f"Item {at!r} not found in {path}")

    patch = client.patch(document_id)
    if operation == "append":
        patch.append(path, items)
    elif operation == "prepend":
        patch.prepend(path, items)
    elif operation == "insert":
        patch.insert(position or "after", item_selector(path, at), items)
    elif operation == "replace":
        patch.insert("replace", item_selector(path, at), items)
    elif operation == "remove":
        patch.unset([item_selector(path, at)])
    else:
        raise InvalidOperationError(f"Invalid operation: {operation}")
    return await patch.commit()


def _projection(projection: str | None) -> str:
    if not projection or projection.strip() == "*":
        return ""
    return "{" + projection + "}"


async def query_documents(
    client: SanityClient,
    *,
    type: str | None = None,
    id: str | None = None,
    field: str | None = None,
    value: Any = None,
    limit: int = 10,
    groq: str | None = None,
    projection: str = "*",
) -> list[Any]:
    """Query by simple criteria, or run ``groq`` verbatim when given."""
    if groq:
        result = await client.fetch(groq)
    else:
        conditions: list[str] = []
        params: dict[str, Any] = {}
        if type:
            conditions.append("_type == $type")
            params["type"] = type
        if id:
            conditions.append("_id == $id")
            params["id"] = id
        if field:
            if not is_safe_identifier(field):
                raise DocumentValidationError(f"validation failed: invalid field name {field!r}")
            conditions.append(f"{field} == $value")
            params["value"] = value
        where = " && ".join(conditions) or "defined(_id)"
        query = f"*[{where}][0...{int(limit)}]{_projection(projection)}"
        result = await client.fetch(query, params)

    if result is None:
        return []
    return result if isinstance(result, list) else [result]


async def fetch_related_document(client: SanityClient, document_id: str) -> dict[str, Any] | None:
    return await client.fetch("*[_id == $id][0]", {"id": document_id})


def _collect_refs(value: Any, fields: list[str] | None = None) -> set[str]:
    refs: set[str] = set()
    if isinstance(value, dict):
        if isinstance(value.get("_ref"), str):
            refs.add(value["_ref"])
        for key, child in value.items():
            if fields is not None and key not in fields:
                continue
            refs |= _collect_refs(child)
    elif isinstance(value, list):
        for child in value:
            refs |= _collect_refs(child)
    return refs


def _substitute_refs(value: Any, resolved: dict[str, Any], fields: list[str] | None = None) -> Any:
    if isinstance(value, dict):
        ref = value.get("_ref")
        if isinstance(ref, str) and ref in resolved:
            return resolved[ref]
        return {
            key: child if fields is not None and key not in fields else _substitute_refs(child, resolved)
            for key, child in value.items()
        }
    if isinstance(value, list):
        return [_substitute_refs(child, resolved) for child in value]
    return value


async def resolve_document_references(
    client: SanityClient,
    document_id: str,
    depth: int = 1,
    reference_fields: list[str] | None = None,
) -> dict[str, Any] | None:
    """Replace ``{_ref}`` objects with the referenced documents, up to ``depth`` levels."""
    document = await fetch_related_document(client, document_id)
    if not document:
        return None

    fields = reference_fields or None
    for level in range(min(max(depth, 1), MAX_REFERENCE_DEPTH)):
        refs = _collect_refs(document, fields if level == 0 else None)
        if not refs:
            break
        referenced = await client.fetch("*[_id in $ids]", {"ids": sorted(refs)}) or []
        resolved = {doc["_id"]: doc for doc in referenced if doc.get("_id")}
        document = _substitute_refs(document, resolved, fields if level == 0 else None)
    return document


async def fetch_referenced_documents(
    client: SanityClient,
    document_id: str,
    reference_field: str,
    projection: str = "*",
) -> list[dict[str, Any]]:
    document = await fetch_related_document(client, document_id)
    if not document:
        raise DocumentNotFoundError(document_id)
    refs = _collect_refs(document.get(reference_field))
    if not refs:
        return []
    return await client.fetch(
        f"*[_id in $ids]{_projection(projection)}",
        {"ids": sorted(refs)},
    ) or []


async def get_all_document_types(client: SanityClient) -> list[str]:
    types = await client.fetch("array::unique(*[]._type)") or []
    return sorted(t for t in types if isinstance(t, str) and not t.startswith(_SYSTEM_TYPE_PREFIXES))


async def list_documents_by_type(
    client: SanityClient,
    document_type: str,
    limit: int = 100,
    offset: int = 0,
    order_by: str = "_createdAt",
    filter: str = "",
) -> list[dict[str, Any]]:
    """List documents of a type with basic metadata; ``-field`` sorts descending."""
    descending = order_by.startswith("-")
    order_field = order_by.lstrip("-") or "_createdAt"
    if not is_safe_identifier(order_field):
        raise DocumentValidationError(f"validation failed: invalid order field {order_by!r}")

    where = "_type == $type"
    if filter.strip():
        where += f" && ({filter})"
    query = (
        f"*[{where}] | order({order_field} {'desc' if descending else 'asc'})"
        f"[{int(offset)}...{int(offset) + int(limit)}]"
        "{_id, _type, _createdAt, _updatedAt, title, name, \"slug\": slug.current}"
    )
    return await client.fetch(query, {"type": document_type}) or []
