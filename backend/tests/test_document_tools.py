"""Tests for the content copilot document tools."""

import pytest

from app.services.agent import ToolContext, execute_tool
from app.services.sanity import SanityPermissionError
from app.services.tools import build_document_tools, build_legacy_document_tools

DOCUMENT = {
    "_id": "doc1",
    "_type": "project",
    "title": "Old title",
    "tags": [{"_key": "a", "value": "python"}],
}


async def call(registry, name: str, **arguments) -> dict:
    _, result = await execute_tool(
        registry,
        {"id": "call_1", "name": name, "arguments": arguments},
        ToolContext(),
    )
    return result


class TestRegistry:
    def test_copilot_tool_names(self, sanity_client):
        assert build_document_tools(sanity_client).names() == [
            "write",
            "delete",
            "array",
            "query",
            "getRelatedDocument",
            "getAllDocumentTypes",
            "listDocumentsByType",
            "resolveReferences",
            "getReferencedDocuments",
        ]

    def test_legacy_tool_names(self, sanity_client):
        assert build_legacy_document_tools("doc1", sanity_client).names() == [
            "writeField",
            "addToArray",
            "removeFromArray",
        ]

    def test_schema_uses_camel_case(self, sanity_client):
        schema = build_document_tools(sanity_client).get("write").schema()
        properties = schema["function"]["parameters"]["properties"]
        assert "documentId" in properties
        assert "createIfMissing" in properties


class TestWriteTool:
    @pytest.mark.asyncio
    async def test_reports_previous_and_new_value(self, sanity_client):
        sanity_client.get_document.return_value = DOCUMENT
        result = await call(
            build_document_tools(sanity_client), "write", documentId="doc1", path="title", value="New"
        )
        assert result["success"] is True
        assert result["previousValue"] == "Old title"
        assert result["newValue"] == "New"

    @pytest.mark.asyncio
    async def test_missing_document(self, sanity_client):
        result = await call(
            build_document_tools(sanity_client), "write", documentId="nope", path="title", value="x"
        )
        assert result["success"] is False
        assert result["errorType"] == "DOCUMENT_NOT_FOUND"
        assert result["suggestion"]
        sanity_client.mutate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_permission_error_is_categorized(self, sanity_client):
        sanity_client.get_document.return_value = DOCUMENT
        sanity_client.mutate.side_effect = SanityPermissionError()
        result = await call(
            build_document_tools(sanity_client), "write", documentId="doc1", path="title", value="x"
        )
        assert result["errorType"] == "PERMISSION_DENIED"
        assert result["path"] == "title"


class TestDeleteTool:
    @pytest.mark.asyncio
    async def test_returns_deleted_value(self, sanity_client):
        sanity_client.get_document.return_value = DOCUMENT
        result = await call(build_document_tools(sanity_client), "delete", documentId="doc1", path="title")
        assert result["success"] is True
        assert result["deletedValue"] == "Old title"


class TestArrayTool:
    @pytest.mark.asyncio
    async def test_append_lengths(self, sanity_client):
        sanity_client.get_document.return_value = DOCUMENT
        result = await call(
            build_document_tools(sanity_client),
            "array",
            documentId="doc1",
            path="tags",
            operation="append",
            items=[{"value": "rust"}, {"value": "go"}],
        )
        assert result["success"] is True
        assert result["arrayLengthBefore"] == 1
        assert result["arrayLengthAfter"] == 3
        assert result["itemsAffected"] == 2

    @pytest.mark.asyncio
    async def test_remove_unknown_key(self, sanity_client):
        sanity_client.get_document.return_value = DOCUMENT
        result = await call(
            build_document_tools(sanity_client),
            "array",
            documentId="doc1",
            path="tags",
            operation="remove",
            at="missing",
        )
        assert result["success"] is False
        assert result["errorType"] == "ITEM_NOT_FOUND"
        assert result["arrayOperation"] == "remove"

    @pytest.mark.asyncio
    async def test_invalid_operation_fails_validation(self, sanity_client):
        ok, result = await execute_tool(
            build_document_tools(sanity_client),
            {"id": "c", "name": "array", "arguments": {"documentId": "doc1", "path": "tags", "operation": "shuffle"}},
            ToolContext(),
        )
        assert ok is False
        assert result["errorType"] == "VALIDATION_ERROR"


class TestQueryTools:
    @pytest.mark.asyncio
    async def test_query_pagination(self, sanity_client):
        sanity_client.fetch.return_value = [{"_id": "a"}, {"_id": "b"}]
        result = await call(build_document_tools(sanity_client), "query", type="project", limit=2)
        assert result["count"] == 2
        assert result["pagination"] == {"limit": 2, "hasMore": True}
        assert result["queryDetails"]["type"] == "project"

    @pytest.mark.asyncio
    async def test_related_document_empty_id(self, sanity_client):
        result = await call(build_document_tools(sanity_client), "getRelatedDocument", documentId="  ")
        assert result == {"success": False, "message": "Document ID cannot be empty"}

    @pytest.mark.asyncio
    async def test_related_document_found(self, sanity_client):
        sanity_client.fetch.return_value = {"_id": "s1", "name": "Python"}
        result = await call(build_document_tools(sanity_client), "getRelatedDocument", documentId="s1")
        assert result["success"] is True
        assert result["document"]["name"] == "Python"

    @pytest.mark.asyncio
    async def test_document_types_empty(self, sanity_client):
        sanity_client.fetch.return_value = []
        result = await call(build_document_tools(sanity_client), "getAllDocumentTypes")
        assert result["success"] is True
        assert result["types"] == []

    @pytest.mark.asyncio
    async def test_list_documents_pagination(self, sanity_client):
        sanity_client.fetch.return_value = [{"_id": "a"}]
        result = await call(
            build_document_tools(sanity_client), "listDocumentsByType", documentType="skill", limit=1, offset=4
        )
        assert result["pagination"] == {"offset": 4, "limit": 1, "hasMore": True}

    @pytest.mark.asyncio
    async def test_referenced_documents_projection(self, sanity_client):
        sanity_client.fetch.side_effect = [
            {"_id": "p1", "skills": [{"_ref": "s1"}]},
            [{"name": "Python"}],
        ]
        result = await call(
            build_document_tools(sanity_client),
            "getReferencedDocuments",
            documentId="p1",
            referenceField="skills",
            includeFields=["name", "category"],
        )
        assert result["documents"] == [{"name": "Python"}]
        assert sanity_client.fetch.call_args.args[0] == "*[_id in $ids]{name,category}"


class TestLegacyTools:
    @pytest.mark.asyncio
    async def test_write_field(self, sanity_client):
        result = await call(
            build_legacy_document_tools("doc1", sanity_client),
            "writeField",
            documentId="doc1",
            fieldPath="title",
            value="New",
        )
        assert result["success"] is True
        assert result["fieldPath"] == "title"

    @pytest.mark.asyncio
    async def test_write_field_defaults_to_bound_document(self, sanity_client):
        result = await call(
            build_legacy_document_tools("doc1", sanity_client), "writeField", fieldPath="title", value="x"
        )
        assert result["success"] is True
        mutation = sanity_client.mutate.call_args.args[0][0]
        assert mutation["patch"]["id"] == "doc1"
        assert mutation["patch"]["set"] == {"title": "x"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,arguments",
        [
            ("writeField", {"fieldPath": "title", "value": "x"}),
            ("addToArray", {"arrayPath": "tags", "item": {"value": "go"}}),
            ("removeFromArray", {"arrayPath": "tags", "itemKey": "a"}),
        ],
    )
    async def test_other_documents_are_rejected(self, sanity_client, name, arguments):
        result = await call(
            build_legacy_document_tools("doc1", sanity_client),
            name,
            documentId="someone-elses-doc",
            **arguments,
        )
        assert result["success"] is False
        assert result["errorType"] == "INVALID_OPERATION"
        sanity_client.mutate.assert_not_called()

    @pytest.mark.asyncio
    async def test_remove_from_array(self, sanity_client):
        result = await call(
            build_legacy_document_tools("doc1", sanity_client),
            "removeFromArray",
            documentId="doc1",
            arrayPath="tags",
            itemKey="a",
        )
        assert result["itemKey"] == "a"
        mutation = sanity_client.mutate.call_args.args[0][0]
        assert mutation["patch"]["id"] == "doc1"
        assert mutation["patch"]["unset"] == ['tags[_key=="a"]']
