"""GitHub API service for repository lookups."""

import asyncio
import base64
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class GitHubRateLimitError(GitHubAPIError):
    """Exception raised when GitHub API rate limit is exceeded."""

    def __init__(self, reset_at: datetime | None = None, message: str | None = None):
        self.reset_at = reset_at
        if message is None:
            if reset_at:
                # Calculate minutes until reset
                now = datetime.now(UTC)
                diff = reset_at - now
                minutes = max(1, int(diff.total_seconds() / 60))
                message = f"GitHub API rate limit exceeded. Please try again in {minutes} minute{'s' if minutes != 1 else ''}."
            else:
                message = "GitHub API rate limit exceeded. Please try again later."
        super().__init__(message, status_code=403)


class GitHubNotFoundError(GitHubAPIError):
    """Exception raised when a repository or file does not exist."""

    def __init__(self, message: str = "Repository not found or access denied."):
        super().__init__(message, status_code=404)


class GitHubAuthenticationError(GitHubAPIError):
    """Exception raised when the configured token is rejected."""

    def __init__(self, message: str = "GitHub authentication failed. Check GITHUB_TOKEN."):
        super().__init__(message, status_code=401)


class GitHubTimeoutError(GitHubAPIError):
    """Exception raised when GitHub API request times out."""

    def __init__(self, message: str = "GitHub API request timed out. Please try again."):
        super().__init__(message, status_code=504)


def split_repo_name(repo_name: str, default_owner: str | None = None) -> tuple[str, str]:
    """``owner/repo`` -> (owner, repo); a bare name uses ``default_owner``."""
    name = repo_name.strip().strip("/")
    if "/" in name:
        owner, repo = name.split("/", 1)
        return owner, repo
    owner = default_owner or settings.github_username
    if not owner or not name:
        raise ValueError(f'Repository must be given as "owner/repo": {repo_name!r}')
    return owner, name


class GitHubService:
    """Read-only access to public (or token-visible) repositories."""

    BASE_URL = "https://api.github.com"
    # Timeout configuration: 10s connect, 30s read
    DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=30.0, pool=30.0)

    def __init__(self, access_token: str | None = None):
        self.access_token = settings.github_token if access_token is None else access_token

    def _get_headers(self) -> dict[str, str]:
        """Get headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _handle_response_error(self, response: httpx.Response) -> None:
        """Handle GitHub API error responses.

        Raises:
            GitHubRateLimitError: When rate limit is exceeded (403 with rate limit headers).
            GitHubAuthenticationError: When authentication fails (401).
            GitHubNotFoundError: When the resource does not exist (404).
            GitHubAPIError: For other API errors.
        """
        if response.is_success:
            return

        status_code = response.status_code

        if status_code == 403:
            remaining = response.headers.get("x-ratelimit-remaining")
            reset_timestamp = response.headers.get("x-ratelimit-reset")

            if remaining == "0" or "rate limit" in response.text.lower():
                reset_at = None
                if reset_timestamp:
                    try:
                        reset_at = datetime.fromtimestamp(int(reset_timestamp), tz=UTC)
                    except (ValueError, TypeError):
                        pass
                raise GitHubRateLimitError(reset_at=reset_at)

        if status_code == 401:
            raise GitHubAuthenticationError()

        if status_code == 404:
            raise GitHubNotFoundError()

        try:
            error_data = response.json()
            message = error_data.get("message", response.text)
        except Exception:
            message = response.text or f"GitHub API error: {status_code}"

        raise GitHubAPIError(message, status_code=status_code)

    async def _get(self, path: str) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.DEFAULT_TIMEOUT) as client:
                response = await client.get(f"{self.BASE_URL}{path}", headers=self._get_headers())
                self._handle_response_error(response)
                return response.json()
        except httpx.TimeoutException:
            raise GitHubTimeoutError()

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        """Repository metadata, reduced to the fields shown to the model."""
        data = await self._get(f"/repos/{owner}/{repo}")
        return {
            "name": data.get("full_name"),
            "description": data.get("description"),
            "url": data.get("html_url"),
            "stars": data.get("stargazers_count"),
            "forks": data.get("forks_count"),
            "openIssues": data.get("open_issues_count"),
            "language": data.get("language"),
            "license": (data.get("license") or {}).get("name"),
            "defaultBranch": data.get("default_branch"),
        }

    async def get_languages(self, owner: str, repo: str) -> dict[str, int]:
        """Bytes of code per language."""
        return await self._get(f"/repos/{owner}/{repo}/languages")

    async def get_readme(self, owner: str, repo: str) -> dict[str, Any]:
        """Decoded README. A missing README is not an error."""
        try:
            data = await self._get(f"/repos/{owner}/{repo}/readme")
        except GitHubNotFoundError:
            return {"content": None, "message": "README not found in repository"}

        content = data.get("content")
        if content and data.get("encoding", "base64") == "base64":
            content = base64.b64decode(content).decode("utf-8", errors="replace")
        return {
            "content": content,
            "name": data.get("name"),
            "path": data.get("path"),
            "url": data.get("html_url"),
            "downloadUrl": data.get("download_url"),
        }

    async def get_repository_details(self, owner: str, repo: str) -> dict[str, Any]:
        repository, languages, readme = await asyncio.gather(
            self.get_repository(owner, repo),
            self.get_languages(owner, repo),
            self.get_readme(owner, repo),
        )
        logger.info(f"Fetched GitHub details for {owner}/{repo}")
        return {"repository": repository, "languages": languages, "readme": readme}
