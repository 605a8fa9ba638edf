"""FastMCP server exposing lorebook activation as MCP tools.

Tools:
  - list_lorebooks()                           — library summaries (id, name, entry_count)
  - activate_lorebooks(lorebook_ids, scan_text) — world-information text for a prompt

Storage is the shared backend.store instance.

Usage:
    uv run python -m backend.mcp_server
"""

from pathlib import Path

from mcp.server.fastmcp import FastMCP

from backend import activation, store
from storyloom.prompts import build_world_info_section

mcp = FastMCP("storyloom-lorebook")


@mcp.tool()
def list_lorebooks() -> list[dict]:
    """List the lorebooks available for activation."""
    return store.get_storage().list_lorebooks()


@mcp.tool()
def activate_lorebooks(lorebook_ids: list[str], scan_text: str) -> str:
    """Return the world-information text the given lorebooks contribute for scan_text."""
    entries = activation.activate_lorebooks(lorebook_ids, scan_text)
    return build_world_info_section(entries)


if __name__ == "__main__":
    import os

    from dotenv import load_dotenv

    load_dotenv(Path(__file__).parent.parent / ".env")
    data_dir = Path(os.getenv("DATA_DIR", str(Path(__file__).parent.parent / "data")))
    store.init_storage(data_dir)
    mcp.run()
