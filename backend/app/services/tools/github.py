"""GitHub repository lookups for the content copilot."""

import logging
from typing import Any

from app.schemas.cms import RepositoryDetailsArgs
from app.services.agent import Tool, ToolContext, ToolRegistry
from app.services.github import GitHubService, split_repo_name

logger = logging.getLogger(__name__)


def build_github_tools(service: GitHubService | None = None) -> ToolRegistry:
    github = service or GitHubService()

    async def get_repository_details(args: RepositoryDetailsArgs, ctx: ToolContext) -> dict[str, Any]:
        try:
            owner, repo = split_repo_name(args.repo_name)
            return await github.get_repository_details(owner, repo)
        except Exception as e:
            logger.error(f"Error fetching repository details for {args.repo_name}: {e}")
            return {"success": False, "error": str(e), "message": str(e)}

    return ToolRegistry(
        [
            Tool(
                "getRepositoryDetails",
                "Get comprehensive information about a GitHub repository, including metadata, "
                "languages, and README content",
                RepositoryDetailsArgs,
                get_repository_details,
            ),
        ]
    )
