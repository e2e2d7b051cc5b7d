"""
MCP tool catalog for Obsidian MCP Server.

Declares every tool once, bound to a vault client. Patch tools share a single
parameter contract whose directive fields travel as request headers.
"""

import json
from typing import Any

from .client import ObsidianClient
from .models import ParameterSpec, PatchDirective, VaultResult
from .registry import ToolRegistry
from .utils import InvalidParameterError

PERIODS = ("daily", "weekly", "monthly", "quarterly", "yearly")

FILENAME = ParameterSpec(type="string", description="Path to the file (relative to vault root)")
PERIOD = ParameterSpec(type="string", description="Period of the note", enum=PERIODS)

PATCH_PARAMETERS: dict[str, ParameterSpec] = {
    "operation": ParameterSpec(
        type="string",
        description="Patch operation to perform",
        enum=("append", "prepend", "replace"),
    ),
    "targetType": ParameterSpec(
        type="string",
        description="Type of target to patch",
        enum=("heading", "block", "frontmatter"),
    ),
    "target": ParameterSpec(
        type="string",
        description="Target to patch: heading path, block reference, or frontmatter field",
    ),
    "content": ParameterSpec(type="string", description="Content to insert"),
    "targetDelimiter": ParameterSpec(
        type="string",
        description="Delimiter used between nested heading names (default: '::')",
        required=False,
    ),
    "trimTargetWhitespace": ParameterSpec(
        type="boolean",
        description="Whether to trim whitespace from the target before matching",
        required=False,
    ),
}


def patch_directive(params: dict[str, Any]) -> PatchDirective:
    """Build the header directive from validated patch parameters."""
    return PatchDirective(
        operation=params["operation"],
        target_type=params["targetType"],
        target=params["target"],
        target_delimiter=params.get("targetDelimiter"),
        trim_target_whitespace=params.get("trimTargetWhitespace"),
    )


def _structured_query(params: dict[str, Any]) -> dict | list | str:
    query = params["query"]
    if params["queryType"] == "dataview":
        if not isinstance(query, str):
            raise InvalidParameterError("query", "dataview queries must be strings")
        return query
    if isinstance(query, str):
        try:
            return json.loads(query)
        except ValueError:
            raise InvalidParameterError("query", "jsonlogic query is not valid JSON") from None
    return query


def build_registry(client: ObsidianClient) -> ToolRegistry:
    """Register the full tool catalog against a vault client and seal it."""
    registry = ToolRegistry()

    # ============== Status ==============

    registry.register(
        "obsidian_get_status",
        {},
        lambda p: client.get_status(),
        description="Get status information from Obsidian",
    )

    # ============== Active File ==============

    registry.register(
        "obsidian_get_active_file",
        {},
        lambda p: client.get_active_file(),
        description="Get content of the currently active file in Obsidian",
    )
    registry.register(
        "obsidian_update_active_file",
        {"content": ParameterSpec(type="string", description="New content for the file")},
        lambda p: client.update_active_file(p["content"]),
        description="Update the content of the currently active file in Obsidian",
    )
    registry.register(
        "obsidian_append_to_active_file",
        {"content": ParameterSpec(type="string", description="Content to append")},
        lambda p: client.append_to_active_file(p["content"]),
        description="Append content to the currently active file in Obsidian",
    )
    registry.register(
        "obsidian_delete_active_file",
        {},
        lambda p: client.delete_active_file(),
        description="Delete the currently active file in Obsidian",
    )
    registry.register(
        "obsidian_patch_active_file",
        PATCH_PARAMETERS,
        lambda p: client.patch_active_file(patch_directive(p), p["content"]),
        description="Insert content into the active file relative to a heading, block reference, or frontmatter field",
    )

    # ============== Vault Files ==============

    registry.register(
        "obsidian_list_files",
        {"path": ParameterSpec(type="string", description="Path to list (relative to vault root)", default="")},
        lambda p: client.list_directory(p["path"]),
        description="List files in a directory",
    )
    registry.register(
        "obsidian_get_file",
        {"filename": FILENAME},
        lambda p: client.get_file(p["filename"]),
        description="Get content of a file",
    )
    registry.register(
        "obsidian_create_or_update_file",
        {"filename": FILENAME, "content": ParameterSpec(type="string", description="Content for the file")},
        lambda p: client.create_or_update_file(p["filename"], p["content"]),
        description="Create a new file or update an existing one",
    )
    registry.register(
        "obsidian_append_to_file",
        {"filename": FILENAME, "content": ParameterSpec(type="string", description="Content to append")},
        lambda p: client.append_to_file(p["filename"], p["content"]),
        description="Append content to a file",
    )
    registry.register(
        "obsidian_delete_file",
        {"filename": FILENAME},
        lambda p: client.delete_file(p["filename"]),
        description="Delete a file",
    )
    registry.register(
        "obsidian_patch_file",
        {"filename": FILENAME, **PATCH_PARAMETERS},
        lambda p: client.patch_file(p["filename"], patch_directive(p), p["content"]),
        description="Insert content into a file relative to a heading, block reference, or frontmatter field",
    )

    # ============== Search ==============

    registry.register(
        "obsidian_search",
        {
            "query": ParameterSpec(type="string", description="Search query"),
            "contextLength": ParameterSpec(
                type="number",
                description="How much context to include around matches",
                default=100,
            ),
        },
        lambda p: client.search(p["query"], p["contextLength"]),
        description="Search for content in vault",
    )

    async def structured_search(params: dict[str, Any]) -> VaultResult:
        return await client.search_structured(_structured_query(params), params["queryType"])

    registry.register(
        "obsidian_structured_search",
        {
            "query": ParameterSpec(
                type=("object", "string"),
                description="JsonLogic expression (object or JSON text) or Dataview DQL query",
            ),
            "queryType": ParameterSpec(
                type="string",
                description="Query language of the query",
                enum=("jsonlogic", "dataview"),
                default="jsonlogic",
            ),
        },
        structured_search,
        description="Search the vault with a JsonLogic expression or a Dataview TABLE query",
    )

    # ============== Documents and Commands ==============

    registry.register(
        "obsidian_open_document",
        {
            "filename": FILENAME,
            "newLeaf": ParameterSpec(type="boolean", description="Whether to open in a new leaf", default=False),
        },
        lambda p: client.open_document(p["filename"], p["newLeaf"]),
        description="Open a document in Obsidian",
    )
    registry.register(
        "obsidian_list_commands",
        {},
        lambda p: client.get_commands(),
        description="List available commands in Obsidian",
    )
    registry.register(
        "obsidian_execute_command",
        {"commandId": ParameterSpec(type="string", description="ID of the command to execute")},
        lambda p: client.execute_command(p["commandId"]),
        description="Execute a command in Obsidian",
    )

    # ============== Periodic Notes ==============

    registry.register(
        "obsidian_get_periodic_note",
        {"period": PERIOD},
        lambda p: client.get_periodic_note(p["period"]),
        description="Get the current periodic note for a period",
    )
    registry.register(
        "obsidian_update_periodic_note",
        {"period": PERIOD, "content": ParameterSpec(type="string", description="New content for the note")},
        lambda p: client.update_periodic_note(p["period"], p["content"]),
        description="Replace the content of the current periodic note",
    )
    registry.register(
        "obsidian_append_to_periodic_note",
        {"period": PERIOD, "content": ParameterSpec(type="string", description="Content to append")},
        lambda p: client.append_to_periodic_note(p["period"], p["content"]),
        description="Append content to the current periodic note",
    )
    registry.register(
        "obsidian_delete_periodic_note",
        {"period": PERIOD},
        lambda p: client.delete_periodic_note(p["period"]),
        description="Delete the current periodic note",
    )
    registry.register(
        "obsidian_patch_periodic_note",
        {"period": PERIOD, **PATCH_PARAMETERS},
        lambda p: client.patch_periodic_note(p["period"], patch_directive(p), p["content"]),
        description="Insert content into the current periodic note relative to a heading, block reference, or frontmatter field",
    )

    registry.seal()
    return registry
