"""
ACE playbook MCP server.

Exposes the per-work playbook to an assistant host: build the prompt addon
for a user message, commit curator operations, record feedback tags, reset,
and read the playbook as a resource.
Built with FastMCP.
"""

import json
from typing import Any

from fastmcp import FastMCP

from ace_playbook.core.config import get_config
from ace_playbook.core.render import render_playbook_for_curator
from ace_playbook.pipeline import PlaybookPipeline

app = FastMCP("ACE Playbook Server")

_pipeline: PlaybookPipeline | None = None


def get_pipeline() -> PlaybookPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = PlaybookPipeline.from_config(get_config())
    return _pipeline


@app.tool()
async def ace_status() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Status response indicating server is operational
    """
    return {"status": "ok"}


@app.tool()
async def ace_retrieve(work_id: str, query: str = "", top_k: int = 10) -> dict[str, Any]:
    """
    Build the playbook addon for a user message.

    Selected bullets have their hit counters bumped; the result is meant to be
    spliced into the system prompt, and its bullet ids reported back later
    through ace_tag.

    Args:
        work_id: Work whose playbook to read
        query: The user's message (empty for most recent bullets)
        top_k: Maximum number of bullets (clamped to 1..30)

    Returns:
        dict: {"text": str, "bullets": [{"id", "section", "content"}]}
    """
    addon = await get_pipeline().get_system_prompt_addon(work_id, query, top_k)
    return addon.to_dict()


@app.tool()
async def ace_commit(work_id: str, operations: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Commit curator operations.

    Args:
        work_id: Work whose playbook to update
        operations: [{"type": "ADD", "section": str, "content": str}, ...];
                    anything else is ignored

    Returns:
        dict: {"added": int, "merged": int}
    """
    try:
        result = await get_pipeline().commit(work_id, operations)
        return {"success": True, "added": result.added, "merged": result.merged}
    except Exception as e:
        return {"success": False, "error": str(e)}


@app.tool()
async def ace_tag(work_id: str, tags: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Record helpful/harmful feedback for bullets shown in a prompt.

    Args:
        work_id: Work whose playbook to update
        tags: [{"id": "ace-00001", "tag": "helpful|harmful|neutral"}, ...]

    Returns:
        dict: {"updated": int}
    """
    updated = await get_pipeline().tag(work_id, tags)
    return {"updated": updated}


@app.tool()
async def ace_reset(work_id: str) -> dict[str, Any]:
    """
    Replace a work's playbook with an empty one.

    Args:
        work_id: Work whose playbook to reset

    Returns:
        dict: {"work_id": str, "status": "reset"}
    """
    playbook = await get_pipeline().reset(work_id)
    return {"work_id": playbook.work_id, "status": "reset"}


@app.resource("playbook://{work_id}")
async def get_playbook(work_id: str) -> str:
    """
    The full playbook of a work as JSON, plus the curator rendering.

    Returns:
        str: JSON with "playbook" (embeddings omitted) and "curator_view"
    """
    pipeline = get_pipeline()
    playbook = await pipeline.store.load(work_id)
    data = {
        "playbook": playbook.model_dump(
            mode="json",
            exclude={"sections": {"__all__": {"bullets": {"__all__": {"embedding"}}}}},
        ),
        "curator_view": render_playbook_for_curator(playbook, pipeline.curator_max_tokens),
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def main() -> None:
    """
    Entry point for running the MCP server.

    Usage:
        python -m ace_playbook.mcp.server
    """
    config = get_config()
    if config.mcp.transport == "stdio":
        app.run()
    else:
        app.run(transport=config.mcp.transport, host="127.0.0.1", port=config.mcp.port)


if __name__ == "__main__":
    main()
