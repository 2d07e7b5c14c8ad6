"""Content creation tools for Dave Admin.

With ``edit_entity_id`` set (the per-entity admin editing an existing
document) the create tools patch that document instead of creating a
new one.
"""

import logging
from typing import Any

from app.schemas.cms import (
    CheckContentArgs,
    CreateKnowledgeItemArgs,
    CreateProjectArgs,
    UpdateSkillArgs,
)
from app.services.agent import Tool, ToolContext, ToolRegistry
from app.services.document_paths import slugify, today_iso
from app.services.sanity import SanityClient, get_write_client

logger = logging.getLogger(__name__)

CHECK_CONTENT_QUERIES = {
    "project": '*[_type == "project" && (title match $term || description match $term)]',
    "skill": '*[_type == "skill" && name match $term]',
    "knowledgeBase": '*[_type == "knowledgeBase" && (title match $term || content match $term)]',
}

SKILL_BY_NAME_QUERY = '*[_type == "skill" && name == $name][0]'


def _slug(text: str) -> dict[str, str]:
    return {"_type": "slug", "current": slugify(text)}


def project_document(args: CreateProjectArgs) -> dict[str, Any]:
    return {
        "_type": "project",
        "title": args.title,
        "slug": _slug(args.title),
        "description": args.description,
        "isFeatured": bool(args.is_featured),
        "timeline": {"status": args.status.value, "startDate": today_iso()},
        "problem": args.problem,
        "solution": args.solution,
        "technologies": [
            {
                "_key": tech.name.lower().replace(" ", "-"),
                "name": tech.name,
                "category": tech.category.value,
            }
            for tech in args.technologies or []
        ],
        "github": args.github,
        "demoUrl": args.demo_url,
    }


def knowledge_document(args: CreateKnowledgeItemArgs) -> dict[str, Any]:
    return {
        "_type": "knowledgeBase",
        "title": args.title,
        "slug": _slug(args.title),
        "category": args.category.value,
        "content": args.content,
        "question": args.question,
        "keywords": args.keywords,
        "priority": args.priority,
        "isPublic": True if args.is_public is None else args.is_public,
        "lastVerified": today_iso(),
    }


def skill_fields(args: UpdateSkillArgs) -> dict[str, Any]:
    """Fields written on both skill create and update."""
    return {
        "category": args.category.value,
        "proficiency": args.proficiency.value,
        "description": args.description,
        "yearsExperience": args.years_experience,
        "examples": [
            {"_key": f"example-{i}", "title": example.title, "description": example.description}
            for i, example in enumerate(args.examples or [])
        ],
    }


def build_admin_tools(
    sanity: SanityClient | None = None,
    *,
    edit_entity_id: str | None = None,
    include_check_content: bool = True,
) -> ToolRegistry:
    client = sanity or get_write_client()

    async def _save(document: dict[str, Any]) -> tuple[str, bool]:
        """Create the document, or overwrite the entity being edited."""
        if edit_entity_id:
            fields = {k: v for k, v in document.items() if k != "_type"}
            await client.patch(edit_entity_id).set(fields).commit()
            return edit_entity_id, True
        created = await client.create(document)
        return created["_id"], False

    async def create_project(args: CreateProjectArgs, ctx: ToolContext) -> dict[str, Any]:
        try:
            project_id, is_update = await _save(project_document(args))
        except Exception as e:
            logger.error(f"Error creating project: {e}")
            return {"success": False, "message": f"Error creating project: {e}"}

        action = "updated" if is_update else "created"
        logger.info(f"Project {action}: {project_id}")
        result = {
            "success": True,
            "projectId": project_id,
            "message": f'Project "{args.title}" {action} successfully!',
        }
        if edit_entity_id:
            result["isUpdate"] = is_update
        return result

    async def create_knowledge_item(args: CreateKnowledgeItemArgs, ctx: ToolContext) -> dict[str, Any]:
        try:
            item_id, is_update = await _save(knowledge_document(args))
        except Exception as e:
            logger.error(f"Error creating knowledge item: {e}")
            return {"success": False, "message": f"Error creating knowledge item: {e}"}

        action = "updated" if is_update else "created"
        logger.info(f"Knowledge item {action}: {item_id}")
        result = {
            "success": True,
            "itemId": item_id,
            "message": f'Knowledge item "{args.title}" {action} successfully!',
        }
        if edit_entity_id:
            result["isUpdate"] = is_update
        return result

    async def update_skill(args: UpdateSkillArgs, ctx: ToolContext) -> dict[str, Any]:
        try:
            if edit_entity_id:
                existing = {"_id": edit_entity_id}
                existing_featured = None
            else:
                existing = await client.fetch(SKILL_BY_NAME_QUERY, {"name": args.name})
                existing_featured = (existing or {}).get("featured")

            if existing:
                fields = skill_fields(args)
                if edit_entity_id:
                    fields["name"] = args.name
                    fields["slug"] = _slug(args.name)
                featured = args.featured if args.featured is not None else existing_featured
                if featured is not None:
                    fields["featured"] = featured
                await client.patch(existing["_id"]).set(fields).commit()
                logger.info(f"Skill updated: {existing['_id']}")
                return {
                    "success": True,
                    "skillId": existing["_id"],
                    "message": f'Skill "{args.name}" updated successfully!',
                    "wasExisting": True,
                }

            created = await client.create(
                {
                    "_type": "skill",
                    "name": args.name,
                    "slug": _slug(args.name),
                    **skill_fields(args),
                    "featured": bool(args.featured),
                }
            )
        except Exception as e:
            logger.error(f"Error updating skill: {e}")
            return {"success": False, "message": f"Error updating skill: {e}"}

        logger.info(f"Skill created: {created['_id']}")
        return {
            "success": True,
            "skillId": created["_id"],
            "message": f'Skill "{args.name}" created successfully!',
            "wasExisting": False,
        }

    async def check_content(args: CheckContentArgs, ctx: ToolContext) -> dict[str, Any]:
        try:
            items = await client.fetch(
                CHECK_CONTENT_QUERIES[args.content_type],
                {"term": f"*{args.search_term}*"},
            ) or []
        except Exception as e:
            logger.error(f"Error checking content: {e}")
            return {"success": False, "message": f"Error checking content: {e}"}

        return {
            "success": True,
            "found": bool(items),
            "count": len(items),
            "items": [
                {
                    "id": item.get("_id"),
                    "title": item.get("title") or item.get("name"),
                    "type": item.get("_type"),
                }
                for item in items
            ],
        }

    tools = [
        Tool(
            "createProject",
            "Create a new project in the portfolio" if not edit_entity_id
            else "Save changes to the project being edited",
            CreateProjectArgs,
            create_project,
        ),
        Tool(
            "createKnowledgeItem",
            "Create a new knowledge base item" if not edit_entity_id
            else "Save changes to the knowledge item being edited",
            CreateKnowledgeItemArgs,
            create_knowledge_item,
        ),
        Tool(
            "updateSkill",
            "Update or create a skill",
            UpdateSkillArgs,
            update_skill,
        ),
    ]
    if include_check_content:
        tools.append(
            Tool(
                "checkContent",
                "Check if content already exists in the portfolio",
                CheckContentArgs,
                check_content,
            )
        )
    return ToolRegistry(tools)
