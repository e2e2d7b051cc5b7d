"""
Tests for the Obsidian Local REST API client.
"""

import json

import httpx
import pytest

from obsidian_mcp.client import DATAVIEW_CONTENT_TYPE, JSONLOGIC_CONTENT_TYPE, ObsidianClient
from obsidian_mcp.models import PatchDirective


class RecordingHandler:
    """MockTransport handler that records requests and replies with a canned response."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status = 204
        self.reply: dict = {}

    def respond(self, status: int, **kwargs) -> None:
        self.status = status
        self.reply = kwargs

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, **self.reply)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
async def client(handler):
    async with ObsidianClient(
        api_key="secret-key",
        base_url="https://vault.test:27124/",
        transport=httpx.MockTransport(handler),
    ) as client:
        yield client


class TestRequests:
    """Tests for the requests sent to the REST API."""

    async def test_authorization_and_content_type(self, client, handler):
        """Test every request carries the bearer token and markdown content type."""
        await client.update_active_file("# New")

        request = handler.last
        assert request.method == "PUT"
        assert request.url.path == "/active/"
        assert request.headers["Authorization"] == "Bearer secret-key"
        assert request.headers["Content-Type"] == "text/markdown"
        assert request.content == b"# New"

    async def test_file_path_encoding(self, client, handler):
        """Test vault paths keep their separators and encode the rest."""
        await client.get_file("/Notes/My Note.md")

        assert handler.last.url.path == "/vault/Notes/My Note.md"
        assert handler.last.url.raw_path == b"/vault/Notes/My%20Note.md"

    async def test_list_directory(self, client, handler):
        """Test root and nested listings use trailing slashes."""
        await client.list_directory()
        assert handler.last.url.path == "/vault/"

        await client.list_directory("Projects/2024")
        assert handler.last.url.path == "/vault/Projects/2024/"

    async def test_append_uses_post(self, client, handler):
        """Test appends are POSTs to the file."""
        await client.append_to_file("log.md", "- entry")

        assert handler.last.method == "POST"
        assert handler.last.url.path == "/vault/log.md"

    async def test_patch_headers(self, client, handler):
        """Test patch directives travel as headers with an encoded target."""
        directive = PatchDirective(
            operation="prepend",
            target_type="heading",
            target="Réunion::Notes",
            target_delimiter="::",
            trim_target_whitespace=False,
        )
        await client.patch_file("Meetings.md", directive, "text")

        headers = handler.last.headers
        assert handler.last.method == "PATCH"
        assert headers["Operation"] == "prepend"
        assert headers["Target-Type"] == "heading"
        assert headers["Target"] == "R%C3%A9union%3A%3ANotes"
        assert headers["Target-Delimiter"] == "::"
        assert headers["Trim-Target-Whitespace"] == "false"
        assert handler.last.content == b"text"

    async def test_simple_search(self, client, handler):
        """Test simple search sends query and contextLength as parameters."""
        await client.search("machine learning", 50)

        assert handler.last.method == "POST"
        assert handler.last.url.path == "/search/simple/"
        assert handler.last.url.params["query"] == "machine learning"
        assert handler.last.url.params["contextLength"] == "50"

    async def test_jsonlogic_search(self, client, handler):
        """Test JsonLogic queries are JSON bodies with the jsonlogic content type."""
        query = {"glob": ["*.md", {"var": "path"}]}
        await client.search_structured(query)

        assert handler.last.url.path == "/search/"
        assert handler.last.headers["Content-Type"] == JSONLOGIC_CONTENT_TYPE
        assert json.loads(handler.last.content) == query

    async def test_dataview_search(self, client, handler):
        """Test Dataview queries are sent as text."""
        await client.search_structured("TABLE file.name", "dataview")

        assert handler.last.headers["Content-Type"] == DATAVIEW_CONTENT_TYPE
        assert handler.last.content == b"TABLE file.name"

    async def test_open_document(self, client, handler):
        """Test newLeaf is sent as a lowercase boolean."""
        await client.open_document("Inbox.md", new_leaf=True)

        assert handler.last.url.path == "/open/Inbox.md"
        assert handler.last.url.params["newLeaf"] == "true"

    async def test_execute_command(self, client, handler):
        """Test command ids are path segments."""
        await client.execute_command("editor:toggle-bold")

        assert handler.last.method == "POST"
        assert handler.last.url.path == "/commands/editor:toggle-bold/"

    async def test_periodic_note(self, client, handler):
        """Test periodic notes are addressed by period."""
        await client.delete_periodic_note("monthly")

        assert handler.last.method == "DELETE"
        assert handler.last.url.path == "/periodic/monthly/"


class TestResults:
    """Tests for turning responses into VaultResults."""

    async def test_json_body(self, client, handler):
        """Test JSON responses are decoded."""
        handler.respond(200, json={"ok": "OK", "authenticated": True})

        result = await client.get_status()

        assert result.ok
        assert result.data == {"ok": "OK", "authenticated": True}

    async def test_markdown_body(self, client, handler):
        """Test non-JSON bodies are returned as text."""
        handler.respond(200, text="# Note", headers={"Content-Type": "text/markdown"})

        result = await client.get_active_file()

        assert result.data == "# Note"

    async def test_no_content(self, client, handler):
        """Test 204 replies carry no payload at all."""
        result = await client.delete_file("old.md")

        assert result.ok
        assert not result.has_data

    async def test_http_error(self, client, handler):
        """Test error statuses become structured failures."""
        handler.respond(404, json={"errorCode": 40400, "message": "File not found"})

        result = await client.get_file("missing.md")

        assert not result.ok
        assert result.error.status == 404
        assert result.error.status_text == "Not Found"
        assert result.error.data == {"errorCode": 40400, "message": "File not found"}

    async def test_transport_failure(self):
        """Test connection errors are reported, not raised."""
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with ObsidianClient(api_key="k", transport=httpx.MockTransport(refuse)) as client:
            result = await client.get_status()

        assert result.error.status == 503
        assert "connection refused" in result.error.data["message"]
