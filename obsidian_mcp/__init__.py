# Obsidian MCP Server
#
# Modular package structure:
# - config.py: Settings and transport variants
# - logging.py: structlog configuration
# - utils.py: Tool error taxonomy and request helpers
# - models.py: Vault results, patch directives, tool descriptors
# - client.py: Obsidian Local REST API client (the vault backend)
# - formatter.py: VaultResult -> MCP text content
# - registry.py: ToolRegistry and parameter validation
# - tools.py: The fixed tool catalog
# - server.py: McpServerCore, the composition root
# - stdio.py: Stdio transport session
# - sse.py: HTTP + SSE transport hub
# - main.py: Transport factory and entry point

__version__ = "1.0.0"
