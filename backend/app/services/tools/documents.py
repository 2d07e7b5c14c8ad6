"""Path-level document editing tools for the content copilot.

Failures are returned as structured results (``errorType`` +
``suggestion``) so the model can correct itself on the next step.
"""

import logging
from typing import Any

from app.schemas.cms import (
    AddToArrayArgs,
    ArrayArgs,
    DeleteArgs,
    ListDocumentsByTypeArgs,
    NoArgs,
    QueryArgs,
    ReferencedDocumentsArgs,
    RelatedDocumentArgs,
    RemoveFromArrayArgs,
    ResolveReferencesArgs,
    WriteArgs,
    WriteFieldArgs,
)
from app.services import document_editor as editor
from app.services.agent import Tool, ToolContext, ToolRegistry, error_result
from app.services.document_paths import get_value_at_path, serialize_document
from app.services.sanity import SanityClient, get_write_client

logger = logging.getLogger(__name__)


def _not_found(operation: str, document_id: str) -> dict[str, Any]:
    return error_result(editor.DocumentNotFoundError(document_id), operation=operation)


def _array_length(value: Any) -> int:
    return len(value) if isinstance(value, list) else 0


def build_document_tools(client: SanityClient | None = None) -> ToolRegistry:
    """Tools used by the regular and refinement copilot modes."""
    client = client or get_write_client()

    async def write(args: WriteArgs, ctx: ToolContext) -> dict[str, Any]:
        try:
            document = await client.get_document(args.document_id)
            if not document:
                return _not_found("write", args.document_id)
            previous = get_value_at_path(document, args.path)
            await editor.write_to_path(
                client, args.document_id, args.path, args.value, args.create_if_missing
            )
        except Exception as e:
            logger.error(f"Error using write tool: {e}")
            return error_result(e, operation="write", path=args.path)

        return {
            "success": True,
            "operation": "write",
            "path": args.path,
            "previousValue": previous,
            "newValue": args.value,
            "details": f'Successfully updated field at path "{args.path}"',
        }

    async def delete(args: DeleteArgs, ctx: ToolContext) -> dict[str, Any]:
        try:
            document = await client.get_document(args.document_id)
            if not document:
                return _not_found("delete", args.document_id)
            deleted = get_value_at_path(document, args.path)
            await editor.delete_from_path(client, args.document_id, args.path)
        except Exception as e:
            logger.error(f"Error using delete tool: {e}")
            return error_result(e, operation="delete", path=args.path)

        return {
            "success": True,
            "operation": "delete",
            "path": args.path,
            "deletedValue": deleted,
            "details": f'Successfully deleted value at path "{args.path}"',
        }

    async def array(args: ArrayArgs, ctx: ToolContext) -> dict[str, Any]:
        items = args.items or []
        try:
            document = await client.get_document(args.document_id)
            if not document:
                return _not_found("array", args.document_id)
            length_before = _array_length(get_value_at_path(document, args.path))
            await editor.perform_array_operation(
                client,
                args.document_id,
                args.path,
                args.operation,
                items=items,
                at=args.at,
                position=args.position,
                document=document,
            )
        except Exception as e:
            logger.error(f"Error using array tool: {e}")
            return error_result(e, operation="array", arrayOperation=args.operation, path=args.path)

        if args.operation in ("append", "prepend", "insert"):
            length_after = length_before + len(items)
        elif args.operation == "remove":
            length_after = max(0, length_before - 1)
        else:
            length_after = length_before

        return {
            "success": True,
            "operation": "array",
            "arrayOperation": args.operation,
            "path": args.path,
            "itemsAffected": 1 if args.operation == "remove" else len(items),
            "arrayLengthBefore": length_before,
            "arrayLengthAfter": length_after,
            "details": f'Successfully performed "{args.operation}" on array at "{args.path}"',
        }

    async def query(args: QueryArgs, ctx: ToolContext) -> dict[str, Any]:
        details: dict[str, Any] = {"limit": args.limit, "projection": args.projection}
        if args.type:
            details["type"] = args.type
        if args.id:
            details["id"] = args.id
        if args.field:
            details["filterField"] = args.field
        if args.value is not None:
            details["filterValue"] = args.value
        if args.groq:
            details["customQuery"] = True

        try:
            results = await editor.query_documents(
                client,
                type=args.type,
                id=args.id,
                field=args.field,
                value=args.value,
                limit=args.limit,
                groq=args.groq,
                projection=args.projection,
            )
        except Exception as e:
            logger.error(f"Error using query tool: {e}")
            return error_result(e, operation="query", queryDetails=details)

        return {
            "success": True,
            "operation": "query",
            "count": len(results),
            "queryDetails": details,
            "pagination": {"limit": args.limit, "hasMore": len(results) == args.limit},
            "results": serialize_document(results),
        }

    async def get_related_document(args: RelatedDocumentArgs, ctx: ToolContext) -> dict[str, Any]:
        if not args.document_id.strip():
            return {"success": False, "message": "Document ID cannot be empty"}
        try:
            document = await editor.fetch_related_document(client, args.document_id)
        except Exception as e:
            logger.error(f"Error fetching related document: {e}")
            return {
                "success": False,
                "message": f"Failed to fetch related document {args.document_id}: {e}",
            }
        if not document:
            return {"success": False, "message": f"Document not found: {args.document_id}"}
        return {
            "success": True,
            "message": f"Successfully fetched related document {args.document_id}",
            "document": serialize_document(document),
        }

    async def get_all_document_types(args: NoArgs, ctx: ToolContext) -> dict[str, Any]:
        try:
            types = await editor.get_all_document_types(client)
        except Exception as e:
            logger.error(f"Error getting document types: {e}")
            return {"success": False, "message": f"Failed to get document types: {e}"}
        if not types:
            return {
                "success": True,
                "message": "No document types found or unable to retrieve types",
                "types": [],
            }
        return {
            "success": True,
            "message": f"Successfully retrieved {len(types)} document types",
            "types": types,
        }

    async def list_documents_by_type(args: ListDocumentsByTypeArgs, ctx: ToolContext) -> dict[str, Any]:
        try:
            documents = await editor.list_documents_by_type(
                client,
                args.document_type,
                limit=args.limit,
                offset=args.offset,
                order_by=args.order_by,
                filter=args.filter,
            )
        except Exception as e:
            logger.error(f"Error listing documents of type {args.document_type}: {e}")
            return {
                "success": False,
                "message": f"Failed to list documents of type '{args.document_type}': {e}",
            }
        if not documents:
            return {
                "success": True,
                "message": f"No documents found of type '{args.document_type}' or type does not exist",
                "documents": [],
            }
        return {
            "success": True,
            "message": f"Successfully retrieved {len(documents)} documents of type '{args.document_type}'",
            "documents": documents,
            "pagination": {
                "offset": args.offset,
                "limit": args.limit,
                "hasMore": len(documents) == args.limit,
            },
        }

    async def resolve_references(args: ResolveReferencesArgs, ctx: ToolContext) -> dict[str, Any]:
        try:
            document = await editor.resolve_document_references(
                client, args.document_id, depth=args.depth, reference_fields=args.reference_fields
            )
        except Exception as e:
            logger.error(f"Error resolving references: {e}")
            return {
                "success": False,
                "message": f"Failed to resolve references for document {args.document_id}: {e}",
            }
        if not document:
            return {"success": False, "message": f"Document not found: {args.document_id}"}
        return {
            "success": True,
            "message": f"Successfully resolved references for document {args.document_id}",
            "document": serialize_document(document),
        }

    async def get_referenced_documents(args: ReferencedDocumentsArgs, ctx: ToolContext) -> dict[str, Any]:
        projection = ",".join(args.include_fields) if args.include_fields else "*"
        try:
            documents = await editor.fetch_referenced_documents(
                client, args.document_id, args.reference_field, projection=projection
            )
        except Exception as e:
            logger.error(f"Error fetching referenced documents: {e}")
            return {
                "success": False,
                "message": f"Failed to fetch referenced documents for {args.reference_field}: {e}",
            }
        if not documents:
            return {
                "success": True,
                "message": f"No referenced documents found for {args.reference_field} "
                f"in document {args.document_id}",
                "documents": [],
            }
        return {
            "success": True,
            "message": f"Successfully fetched {len(documents)} referenced documents "
            f"from {args.reference_field}",
            "documents": serialize_document(documents),
        }

    return ToolRegistry(
        [
            Tool(
                "write",
                "Write/set a value at any path in a Sanity document. Handles simple fields, "
                "nested objects, and array items.",
                WriteArgs,
                write,
            ),
            Tool(
                "delete",
                "Delete/unset a value at any path in a Sanity document. Works for simple fields, "
                "nested objects, and array items.",
                DeleteArgs,
                delete,
            ),
            Tool(
                "array",
                "Perform operations on arrays in a Sanity document - add, remove, or replace items.",
                ArrayArgs,
                array,
            ),
            Tool(
                "query",
                "Query Sanity documents using simple criteria or full GROQ syntax. "
                "Use this to find documents before modifying them.",
                QueryArgs,
                query,
            ),
            Tool(
                "getRelatedDocument",
                "Fetch a related document from Sanity by its ID. Use this when you need to "
                "reference data from another related document.",
                RelatedDocumentArgs,
                get_related_document,
            ),
            Tool(
                "getAllDocumentTypes",
                "Get a list of all available document types in the Sanity content database.",
                NoArgs,
                get_all_document_types,
            ),
            Tool(
                "listDocumentsByType",
                "List all documents of a specific type with their basic metadata.",
                ListDocumentsByTypeArgs,
                list_documents_by_type,
            ),
            Tool(
                "resolveReferences",
                "Resolve references in a Sanity document, replacing reference objects with "
                "the actual referenced documents.",
                ResolveReferencesArgs,
                resolve_references,
            ),
            Tool(
                "getReferencedDocuments",
                "Fetch documents that are referenced by a specific field in a Sanity document.",
                ReferencedDocumentsArgs,
                get_referenced_documents,
            ),
        ]
    )


def build_legacy_document_tools(document_id: str, client: SanityClient | None = None) -> ToolRegistry:
    """Single-field tools offered by the legacy copilot route, bound to ``document_id``."""
    client = client or get_write_client()

    def _other_document(requested: str | None, operation: str) -> dict[str, Any] | None:
        if not requested or requested == document_id:
            return None
        logger.warning(
            f"Legacy copilot tried to edit {requested} while bound to {document_id}",
            extra={"operation": operation},
        )
        return {
            "success": False,
            "operation": operation,
            "errorType": "INVALID_OPERATION",
            "message": f"This copilot can only edit document {document_id}",
            "suggestion": f'Omit documentId or use "{document_id}".',
        }

    async def write_field(args: WriteFieldArgs, ctx: ToolContext) -> dict[str, Any]:
        rejected = _other_document(args.document_id, "writeField")
        if rejected:
            return rejected
        try:
            await editor.update_document_field(client, document_id, args.field_path, args.value)
        except Exception as e:
            logger.error(f"Error using writeField tool: {e}")
            return {"success": False, "message": f"Failed to update field {args.field_path}: {e}"}
        return {
            "success": True,
            "message": f"Successfully updated field {args.field_path}",
            "fieldPath": args.field_path,
            "value": args.value,
        }

    async def add_to_array(args: AddToArrayArgs, ctx: ToolContext) -> dict[str, Any]:
        rejected = _other_document(args.document_id, "addToArray")
        if rejected:
            return rejected
        try:
            await editor.add_item_to_array(client, document_id, args.array_path, args.item)
        except Exception as e:
            logger.error(f"Error using addToArray tool: {e}")
            return {"success": False, "message": f"Failed to add item to {args.array_path}: {e}"}
        return {
            "success": True,
            "message": f"Successfully added item to {args.array_path}",
            "arrayPath": args.array_path,
            "item": args.item,
        }

    async def remove_from_array(args: RemoveFromArrayArgs, ctx: ToolContext) -> dict[str, Any]:
        rejected = _other_document(args.document_id, "removeFromArray")
        if rejected:
            return rejected
        try:
            await editor.remove_item_from_array(client, document_id, args.array_path, args.item_key)
        except Exception as e:
            logger.error(f"Error using removeFromArray tool: {e}")
            return {"success": False, "message": f"Failed to remove item from {args.array_path}: {e}"}
        return {
            "success": True,
            "message": f"Successfully removed item with key {args.item_key} from {args.array_path}",
            "arrayPath": args.array_path,
            "itemKey": args.item_key,
        }

    return ToolRegistry(
        [
            Tool(
                "writeField",
                "Update a specific field in the current Sanity document when you are confident "
                "about the content.",
                WriteFieldArgs,
                write_field,
            ),
            Tool(
                "addToArray",
                "Add an item to an array field in the Sanity document without modifying current values.",
                AddToArrayArgs,
                add_to_array,
            ),
            Tool(
                "removeFromArray",
                "Remove an item from an array field in the Sanity document by its _key.",
                RemoveFromArrayArgs,
                remove_from_array,
            ),
        ]
    )
