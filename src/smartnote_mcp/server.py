"""
MCP Server for SmartNote.

Exposes note capture, search and discovery as tools for AI assistants.
"""

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from smartnote.config import ensure_dirs
from smartnote.errors import SmartNoteError
from smartnote.pipeline import CapturePipeline, create_pipeline
from smartnote.surfacing import format_discover_items, format_note_list

# Create MCP server
server = Server("smartnote")

_pipeline: CapturePipeline | None = None


def get_pipeline() -> CapturePipeline:
    """Build the pipeline on first use."""
    global _pipeline
    if _pipeline is None:
        ensure_dirs()
        _pipeline = create_pipeline()
    return _pipeline


def text(message: str) -> list[TextContent]:
    return [TextContent(type="text", text=message)]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="smartnote_capture",
            description="Capture a thought as a structured note. The text is titled, tagged and categorized by AI; meetings and events are added to Google Calendar when connected.",
            inputSchema={
                "type": "object",
                "properties": {
                    "text": {
                        "type": "string",
                        "description": "The raw thought to capture",
                    },
                },
                "required": ["text"],
            },
        ),
        Tool(
            name="smartnote_search",
            description="Search notes by title, content, original text or tag (case-insensitive substring match).",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search query",
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum results to return (default: 10)",
                        "default": 10,
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="smartnote_list",
            description="List recent notes, optionally filtered by category.",
            inputSchema={
                "type": "object",
                "properties": {
                    "category": {
                        "type": "string",
                        "description": "Filter by category (optional)",
                        "enum": [
                            "meeting", "event", "task", "reminder", "idea",
                            "learning", "personal", "work", "other",
                        ],
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum results (default: 20)",
                        "default": 20,
                    },
                },
            },
        ),
        Tool(
            name="smartnote_discover",
            description="Get discovery suggestions: an older note worth revisiting, threads of notes sharing a tag, and a tag to explore.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="smartnote_related",
            description="Find notes related to a given note using AI.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_id": {
                        "type": "string",
                        "description": "The ID of the note",
                    },
                },
                "required": ["note_id"],
            },
        ),
        Tool(
            name="smartnote_delete",
            description="Delete a note by ID.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_id": {
                        "type": "string",
                        "description": "The ID of the note to delete",
                    },
                },
                "required": ["note_id"],
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    handlers = {
        "smartnote_capture": tool_capture,
        "smartnote_search": tool_search,
        "smartnote_list": tool_list,
        "smartnote_discover": tool_discover,
        "smartnote_related": tool_related,
        "smartnote_delete": tool_delete,
    }
    handler = handlers.get(name)
    if handler is None:
        return text(f"Unknown tool: {name}")

    try:
        return await handler(arguments)
    except SmartNoteError as e:
        return text(f"Error: {e.message}")


async def tool_capture(args: dict) -> list[TextContent]:
    """Capture a thought."""
    raw = args.get("text", "").strip()
    if not raw:
        return text("Error: Empty note")

    pipeline = get_pipeline()
    note = await pipeline.capture_text(raw)

    lines = [f"Captured: {note.id}", f"Title: {note.title}", f"Category: {note.category}"]
    if note.tags:
        lines.append(f"Tags: {', '.join(note.tags)}")
    result = pipeline.last_calendar_result
    if result and result.success:
        lines.append("Added to Google Calendar")
    return text("\n".join(lines))


async def tool_search(args: dict) -> list[TextContent]:
    """Search notes."""
    query = args.get("query", "").strip()
    limit = args.get("limit", 10)

    if not query:
        return text("Error: Empty query")

    notes = get_pipeline().search(query)[:limit]
    return text(format_note_list(notes, f"SEARCH: {query}"))


async def tool_list(args: dict) -> list[TextContent]:
    """List notes."""
    category = args.get("category")
    limit = args.get("limit", 20)

    notes = get_pipeline().notes
    if category:
        notes = [note for note in notes if note.category == category]
    return text(format_note_list(notes[:limit], f"{category.upper()} NOTES" if category else "NOTES"))


async def tool_discover(args: dict) -> list[TextContent]:
    """Get discover items."""
    return text(format_discover_items(get_pipeline().discover_items))


async def tool_related(args: dict) -> list[TextContent]:
    """Find related notes."""
    note_id = args.get("note_id", "").strip()
    if not note_id:
        return text("Error: No note_id provided")

    pipeline = get_pipeline()
    if pipeline.store.get(note_id) is None:
        return text(f"Note not found: {note_id}")

    related = await pipeline.find_related(note_id)
    if not related:
        return text(f"No related notes found for {note_id}")
    return text(format_note_list(related, "RELATED"))


async def tool_delete(args: dict) -> list[TextContent]:
    """Delete a note."""
    note_id = args.get("note_id", "").strip()
    if not note_id:
        return text("Error: No note_id provided")

    if get_pipeline().delete_note(note_id):
        return text(f"Deleted: {note_id}")
    return text(f"Note not found: {note_id}")


async def main():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def run() -> None:
    """Console-script entry point."""
    import asyncio
    asyncio.run(main())


if __name__ == "__main__":
    run()
