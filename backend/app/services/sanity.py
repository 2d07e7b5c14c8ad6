"""Sanity CMS HTTP API client (GROQ queries, documents, mutations)."""

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Literal

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


class SanityAPIError(Exception):
    """Base exception for Sanity API errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class SanityNotFoundError(SanityAPIError):
    """Exception raised when a document does not exist."""

    def __init__(self, message: str = "Document not found"):
        super().__init__(message, status_code=404)


class SanityAuthenticationError(SanityAPIError):
    """Exception raised when the API token is missing or invalid."""

    def __init__(self, message: str = "Sanity authentication failed. Check SANITY_API_TOKEN."):
        super().__init__(message, status_code=401)


class SanityPermissionError(SanityAPIError):
    """Exception raised when the token lacks permission for the operation."""

    def __init__(self, message: str = "Permission denied for this Sanity operation."):
        super().__init__(message, status_code=403)


class SanityTimeoutError(SanityAPIError):
    """Exception raised when a Sanity request times out."""

    def __init__(self, message: str = "Sanity API request timed out. Please try again."):
        super().__init__(message, status_code=504)


InsertPosition = Literal["before", "after", "replace"]


@dataclass(frozen=True)
class SanityConfig:
    """Connection settings for one client instance."""

    project_id: str
    dataset: str
    api_version: str
    token: str = ""
    use_cdn: bool = True
    timeout: float = 30.0


class SanityPatch:
    """Builder for a single-document patch mutation.

    Mirrors the client libraries' chained API: operations accumulate and
    ``commit()`` sends them as one mutation.
    """

    def __init__(self, client: "SanityClient", document_id: str):
        self.client = client
        self.document_id = document_id
        self.operations: dict[str, Any] = {}

    def set(self, values: dict[str, Any]) -> "SanityPatch":
        self.operations.setdefault("set", {}).update(values)
        return self

    def set_if_missing(self, values: dict[str, Any]) -> "SanityPatch":
        self.operations.setdefault("setIfMissing", {}).update(values)
        return self

    def unset(self, paths: list[str]) -> "SanityPatch":
        self.operations.setdefault("unset", []).extend(paths)
        return self

    def insert(self, position: InsertPosition, selector: str, items: list[Any]) -> "SanityPatch":
        # The API accepts one insert per patch
        self.operations["insert"] = {position: selector, "items": items}
        return self

    def append(self, path: str, items: list[Any]) -> "SanityPatch":
        return self.set_if_missing({path: []}).insert("after", f"{path}[-1]", items)

    def prepend(self, path: str, items: list[Any]) -> "SanityPatch":
        return self.set_if_missing({path: []}).insert("before", f"{path}[0]", items)

    def to_mutation(self) -> dict[str, Any]:
        return {"patch": {"id": self.document_id, **self.operations}}

    async def commit(self) -> dict[str, Any] | None:
        """Send the patch and return the updated document."""
        if not self.operations:
            return await self.client.get_document(self.document_id)
        result = await self.client.mutate([self.to_mutation()])
        documents = [r.get("document") for r in result.get("results", []) if r.get("document")]
        return documents[0] if documents else None


class SanityClient:
    """Async client for the Sanity HTTP API."""

    # Timeout configuration: 10s connect, configurable read
    def __init__(self, config: SanityConfig):
        self.config = config
        self.timeout = httpx.Timeout(connect=10.0, read=config.timeout, write=30.0, pool=30.0)

    @classmethod
    def from_settings(cls, **overrides: Any) -> "SanityClient":
        config = SanityConfig(
            project_id=settings.sanity_project_id,
            dataset=settings.sanity_dataset,
            api_version=settings.sanity_api_version,
            token=settings.sanity_api_token,
            use_cdn=settings.sanity_use_cdn,
            timeout=settings.sanity_timeout,
        )
        return cls(replace(config, **overrides))

    def with_config(self, **overrides: Any) -> "SanityClient":
        """Return a new client with some settings changed (e.g. ``use_cdn=False``)."""
        return SanityClient(replace(self.config, **overrides))

    @property
    def base_url(self) -> str:
        # CDN only serves public, read-only queries
        host = "apicdn" if self.config.use_cdn and not self.config.token else "api"
        return f"https://{self.config.project_id}.{host}.sanity.io/v{self.config.api_version}"

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _handle_response_error(self, response: httpx.Response) -> None:
        """Handle Sanity API error responses.

        Raises:
            SanityAuthenticationError: When the token is rejected (401).
            SanityPermissionError: When the token lacks permission (403).
            SanityNotFoundError: When the resource does not exist (404).
            SanityAPIError: For other API errors.
        """
        if response.is_success:
            return

        status_code = response.status_code
        if status_code == 401:
            raise SanityAuthenticationError()
        if status_code == 403:
            raise SanityPermissionError()
        if status_code == 404:
            raise SanityNotFoundError()

        try:
            error_data = response.json()
            error = error_data.get("error", {})
            if isinstance(error, dict):
                message = error.get("description") or error.get("message") or response.text
            else:
                message = error_data.get("message") or str(error) or response.text
        except Exception:
            message = response.text or f"Sanity API error: {status_code}"

        raise SanityAPIError(message, status_code=status_code)

    @staticmethod
    def _encode_params(params: dict[str, Any] | None) -> dict[str, str]:
        """GROQ parameters are passed as ``$name=<json>`` query-string pairs."""
        return {f"${key}": json.dumps(value) for key, value in (params or {}).items()}

    async def fetch(self, query: str, params: dict[str, Any] | None = None) -> Any:
        """Run a GROQ query and return its ``result``."""
        url = f"{self.base_url}/data/query/{self.config.dataset}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    url,
                    headers=self._get_headers(),
                    params={"query": query, **self._encode_params(params)},
                )
                self._handle_response_error(response)
                return response.json().get("result")
        except httpx.TimeoutException:
            raise SanityTimeoutError()

    async def get_document(self, document_id: str) -> dict[str, Any] | None:
        """Fetch a single document by id, or None when it does not exist."""
        url = f"{self.base_url}/data/doc/{self.config.dataset}/{document_id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self._get_headers())
                if response.status_code == 404:
                    return None
                self._handle_response_error(response)
                documents = response.json().get("documents", [])
                return documents[0] if documents else None
        except httpx.TimeoutException:
            raise SanityTimeoutError()

    async def mutate(self, mutations: list[dict[str, Any]]) -> dict[str, Any]:
        """Send a batch of mutations in one transaction."""
        url = f"{self.base_url}/data/mutate/{self.config.dataset}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    url,
                    headers=self._get_headers(),
                    params={"returnIds": "true", "returnDocuments": "true"},
                    json={"mutations": mutations},
                )
                self._handle_response_error(response)
                result = response.json()
        except httpx.TimeoutException:
            raise SanityTimeoutError()

        logger.debug(
            "Sanity mutation committed",
            extra={
                "transaction_id": result.get("transactionId"),
                "mutations": len(mutations),
            },
        )
        return result

    async def create(self, document: dict[str, Any]) -> dict[str, Any]:
        """Create a document and return it (with ``_id`` assigned)."""
        result = await self.mutate([{"create": document}])
        for item in result.get("results", []):
            if item.get("document"):
                return item["document"]
            if item.get("id"):
                return {**document, "_id": item["id"]}
        return document

    def patch(self, document_id: str) -> SanityPatch:
        return SanityPatch(self, document_id)

    async def delete(self, document_id: str) -> dict[str, Any]:
        return await self.mutate([{"delete": {"id": document_id}}])


_read_client: SanityClient | None = None
_write_client: SanityClient | None = None


def get_sanity_client() -> SanityClient:
    """Shared read client (CDN when allowed)."""
    global _read_client
    if _read_client is None:
        _read_client = SanityClient.from_settings()
    return _read_client


def get_write_client() -> SanityClient:
    """Shared client for writes: token attached, CDN bypassed for fresh reads."""
    global _write_client
    if _write_client is None:
        _write_client = SanityClient.from_settings(use_cdn=False)
    return _write_client
