"""Read-only portfolio tools for the public Dave assistant."""

from typing import Any

from app.core.config import settings
from app.schemas.cms import (
    KnowledgeItemsArgs,
    NoArgs,
    ProjectDetailsArgs,
    SearchPortfolioArgs,
    SkillExpertiseArgs,
)
from app.services.agent import Tool, ToolContext, ToolRegistry
from app.services.portfolio_data import PortfolioData, get_portfolio_data


def merge_knowledge_items(
    primary: list[dict[str, Any]],
    extra: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Union by title (``primary`` wins), highest priority first."""
    seen = {item.get("title") for item in primary}
    merged = [*primary, *(item for item in extra if item.get("title") not in seen)]
    return sorted(merged, key=lambda item: item.get("priority") or 0, reverse=True)


def build_portfolio_tools(data: PortfolioData | None = None) -> ToolRegistry:
    data = data or get_portfolio_data()
    owner = settings.owner_name.split()[0]

    async def get_project_details(args: ProjectDetailsArgs, ctx: ToolContext) -> dict[str, Any]:
        project = await data.get_project_data(args.project_name)
        if not project:
            return {"found": False, "message": f"No project found with name: {args.project_name}"}
        return {"found": True, "project": project}

    async def get_skill_expertise(args: SkillExpertiseArgs, ctx: ToolContext) -> dict[str, Any]:
        skill = await data.get_skill_data(args.skill)
        if not skill:
            return {"found": False, "message": f"No skill information found for: {args.skill}"}
        return {"found": True, "skill": skill}

    async def search_portfolio(args: SearchPortfolioArgs, ctx: ToolContext) -> dict[str, Any]:
        results = await data.search_portfolio(args.query)
        knowledge = merge_knowledge_items(
            results.get("knowledgeItems") or [],
            await data.get_knowledge_items(args.query),
        )
        return {
            "projectCount": len(results["projects"]),
            "skillCount": len(results["skills"]),
            "knowledgeCount": len(knowledge),
            "projects": [
                {"id": p.get("id"), "name": p.get("name"), "description": p.get("description")}
                for p in results["projects"]
            ],
            "skills": [
                {"name": s.get("name"), "category": s.get("category"), "proficiency": s.get("proficiency")}
                for s in results["skills"]
            ],
            "knowledgeItems": [
                {
                    "title": k.get("title"),
                    "category": k.get("category"),
                    "content": k.get("content"),
                    "question": k.get("question"),
                }
                for k in knowledge
            ],
        }

    async def get_featured_projects(args: NoArgs, ctx: ToolContext) -> dict[str, Any]:
        featured = await data.get_featured_projects()
        return {
            "count": len(featured),
            "projects": [
                {
                    "id": p.get("id"),
                    "name": p.get("name"),
                    "description": p.get("description"),
                    "technologies": p.get("technologies"),
                    "github": p.get("github"),
                    "demoUrl": p.get("demoUrl"),
                }
                for p in featured
            ],
        }

    async def get_knowledge_items(args: KnowledgeItemsArgs, ctx: ToolContext) -> dict[str, Any]:
        items = await data.get_knowledge_items(args.topic)
        return {
            "found": bool(items),
            "count": len(items),
            "items": [
                {
                    "title": item.get("title"),
                    "category": item.get("category"),
                    "content": item.get("content"),
                    "question": item.get("question"),
                    "keywords": item.get("keywords"),
                }
                for item in items
            ],
        }

    return ToolRegistry(
        [
            Tool(
                "getProjectDetails",
                "Get detailed information about a specific project",
                ProjectDetailsArgs,
                get_project_details,
            ),
            Tool(
                "getSkillExpertise",
                f"Get {owner}'s expertise level and experience with a specific skill or technology",
                SkillExpertiseArgs,
                get_skill_expertise,
            ),
            Tool(
                "searchPortfolio",
                f"Search {owner}'s projects, skills, and knowledge base for relevant information",
                SearchPortfolioArgs,
                search_portfolio,
            ),
            Tool(
                "getFeaturedProjects",
                f"Get {owner}'s featured projects",
                NoArgs,
                get_featured_projects,
            ),
            Tool(
                "getKnowledgeItems",
                f"Get information from {owner}'s knowledge base on a specific topic",
                KnowledgeItemsArgs,
                get_knowledge_items,
            ),
        ]
    )
