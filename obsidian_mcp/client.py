"""
Obsidian Local REST API client for Obsidian MCP Server.

Every call returns a VaultResult; HTTP errors and transport failures are
reported as structured failures rather than raised.
"""

import json
from typing import Any

import httpx
import structlog

from .config import DEFAULT_BASE_URL
from .models import PatchDirective, Period, VaultResult
from .utils import encode_path

logger = structlog.get_logger(__name__)

MARKDOWN_CONTENT_TYPE = "text/markdown"
JSONLOGIC_CONTENT_TYPE = "application/vnd.olrapi.jsonlogic+json"
DATAVIEW_CONTENT_TYPE = "application/vnd.olrapi.dataview.dql+txt"


class ObsidianClient:
    """Async client for the Obsidian Local REST API plugin.

    The client holds a single httpx.AsyncClient and is safe to share between
    concurrent sessions: each call is an independent request/response.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        verify_ssl: bool = False,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": MARKDOWN_CONTENT_TYPE,
            },
            verify=verify_ssl,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ObsidianClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ============== Request Plumbing ==============

    async def _request(
        self,
        method: str,
        path: str,
        *,
        content: str | bytes | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> VaultResult:
        try:
            response = await self._http.request(method, path, content=content, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("vault_request_failed", method=method, path=path, error=str(e))
            return VaultResult.failure(503, "Service Unavailable", {"message": str(e)})

        logger.debug("vault_request_completed", method=method, path=path, status=response.status_code)
        return self._to_result(response)

    @staticmethod
    def _decode_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            try:
                return response.json()
            except ValueError:
                return response.text
        return response.text

    def _to_result(self, response: httpx.Response) -> VaultResult:
        if response.is_error:
            return VaultResult.failure(
                response.status_code,
                response.reason_phrase or "Error",
                self._decode_body(response),
            )
        if response.status_code == 204 or not response.content:
            return VaultResult.empty()
        return VaultResult.success(self._decode_body(response))

    # ============== Status ==============

    async def get_status(self) -> VaultResult:
        return await self._request("GET", "/")

    # ============== Active File ==============

    async def get_active_file(self) -> VaultResult:
        return await self._request("GET", "/active/")

    async def update_active_file(self, content: str) -> VaultResult:
        return await self._request("PUT", "/active/", content=content)

    async def append_to_active_file(self, content: str) -> VaultResult:
        return await self._request("POST", "/active/", content=content)

    async def delete_active_file(self) -> VaultResult:
        return await self._request("DELETE", "/active/")

    async def patch_active_file(self, directive: PatchDirective, content: str) -> VaultResult:
        return await self._request("PATCH", "/active/", content=content, headers=directive.as_headers())

    # ============== Vault Files ==============

    async def get_file(self, filename: str) -> VaultResult:
        return await self._request("GET", f"/vault/{encode_path(filename)}")

    async def create_or_update_file(self, filename: str, content: str) -> VaultResult:
        return await self._request("PUT", f"/vault/{encode_path(filename)}", content=content)

    async def append_to_file(self, filename: str, content: str) -> VaultResult:
        return await self._request("POST", f"/vault/{encode_path(filename)}", content=content)

    async def delete_file(self, filename: str) -> VaultResult:
        return await self._request("DELETE", f"/vault/{encode_path(filename)}")

    async def patch_file(self, filename: str, directive: PatchDirective, content: str) -> VaultResult:
        return await self._request(
            "PATCH",
            f"/vault/{encode_path(filename)}",
            content=content,
            headers=directive.as_headers(),
        )

    # ============== Directories ==============

    async def list_directory(self, path: str = "") -> VaultResult:
        directory = encode_path(path)
        if not directory:
            return await self._request("GET", "/vault/")
        return await self._request("GET", f"/vault/{directory}/")

    # ============== Search ==============

    async def search(self, query: str, context_length: int | float = 100) -> VaultResult:
        return await self._request(
            "POST",
            "/search/simple/",
            params={"query": query, "contextLength": context_length},
        )

    async def search_structured(self, query: dict | str, query_type: str = "jsonlogic") -> VaultResult:
        """Run a JsonLogic or Dataview DQL query against the vault."""
        if query_type == "dataview":
            body = query if isinstance(query, str) else json.dumps(query)
            content_type = DATAVIEW_CONTENT_TYPE
        else:
            body = json.dumps(query) if not isinstance(query, str) else query
            content_type = JSONLOGIC_CONTENT_TYPE
        return await self._request("POST", "/search/", content=body, headers={"Content-Type": content_type})

    # ============== Open Document ==============

    async def open_document(self, filename: str, new_leaf: bool = False) -> VaultResult:
        return await self._request(
            "POST",
            f"/open/{encode_path(filename)}",
            params={"newLeaf": "true" if new_leaf else "false"},
        )

    # ============== Commands ==============

    async def get_commands(self) -> VaultResult:
        return await self._request("GET", "/commands/")

    async def execute_command(self, command_id: str) -> VaultResult:
        return await self._request("POST", f"/commands/{encode_path(command_id)}/")

    # ============== Periodic Notes ==============

    async def get_periodic_note(self, period: Period) -> VaultResult:
        return await self._request("GET", f"/periodic/{period}/")

    async def update_periodic_note(self, period: Period, content: str) -> VaultResult:
        return await self._request("PUT", f"/periodic/{period}/", content=content)

    async def append_to_periodic_note(self, period: Period, content: str) -> VaultResult:
        return await self._request("POST", f"/periodic/{period}/", content=content)

    async def delete_periodic_note(self, period: Period) -> VaultResult:
        return await self._request("DELETE", f"/periodic/{period}/")

    async def patch_periodic_note(self, period: Period, directive: PatchDirective, content: str) -> VaultResult:
        return await self._request(
            "PATCH",
            f"/periodic/{period}/",
            content=content,
            headers=directive.as_headers(),
        )
