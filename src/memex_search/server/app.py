"""MCP server registration for the memex-search tools."""

from mcp.server.fastmcp import FastMCP

from memex_search.server.tools import TOOL_DESCRIPTIONS, MemexTools

SERVER_NAME = "memex-search-server"

INSTRUCTIONS = """\
Search Memex conversation history and the local project workspace.

1. build_search_index: index the conversation archive. Until it has run, searches
   scan a bounded slice of the archive instead ("search_method": "fallback").
2. search_conversations / find_command: ranked full-text search. Scores are bm25
   ranks, lower is better. find_command falls back to typo-tolerant matching
   when no command contains the query terms.
3. get_conversation_snippet: read messages by index range from one conversation.
4. search_projects / get_project_overview: plain search over workspace projects.
"""


def create_server(tools: MemexTools) -> FastMCP:
    """Build a FastMCP server whose tools delegate to ``tools``.

    Every tool returns text: JSON on success or "Error: <message>".
    """
    server = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS)

    @server.tool(description=TOOL_DESCRIPTIONS["search_conversations"])
    def search_conversations(
        query: str,
        limit: int = 10,
        project: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> str:
        """
        Args:
            query: Search query to match against conversation title, summary or project
            limit: Maximum number of results to return
            project: Filter by project name
            date_from: Only conversations created at or after this date (YYYY-MM-DD)
            date_to: Only conversations created at or before this date (YYYY-MM-DD)
        """
        return tools.call("search_conversations", {
            "query": query,
            "limit": limit,
            "project": project,
            "date_from": date_from,
            "date_to": date_to,
        })

    @server.tool(description=TOOL_DESCRIPTIONS["get_conversation_snippet"])
    def get_conversation_snippet(
        conversation_id: str,
        message_start: int = 0,
        message_count: int = 10,
    ) -> str:
        return tools.call("get_conversation_snippet", {
            "conversation_id": conversation_id,
            "message_start": message_start,
            "message_count": message_count,
        })

    @server.tool(description=TOOL_DESCRIPTIONS["search_projects"])
    def search_projects(query: str, file_types: list[str] | None = None, limit: int = 10) -> str:
        return tools.call("search_projects", {
            "query": query,
            "file_types": file_types or [],
            "limit": limit,
        })

    @server.tool(description=TOOL_DESCRIPTIONS["get_project_overview"])
    def get_project_overview(project_name: str) -> str:
        return tools.call("get_project_overview", {"project_name": project_name})

    @server.tool(description=TOOL_DESCRIPTIONS["find_command"])
    def find_command(query: str, command_type: str = "any", limit: int = 5) -> str:
        return tools.call("find_command", {
            "query": query,
            "command_type": command_type,
            "limit": limit,
        })

    @server.tool(description=TOOL_DESCRIPTIONS["build_search_index"])
    def build_search_index() -> str:
        return tools.call("build_search_index")

    @server.tool(description=TOOL_DESCRIPTIONS["get_search_stats"])
    def get_search_stats() -> str:
        return tools.call("get_search_stats")

    return server
