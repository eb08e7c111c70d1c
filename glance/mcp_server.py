"""Glance MCP Server — expose video analysis as tools for any MCP-capable agent.

Run:
    python -m glance.mcp_server

Or add to your MCP config:
    {
      "mcpServers": {
        "glance": {
          "command": "python",
          "args": ["-m", "glance.mcp_server"],
          "env": {
            "GLANCE_LLM_API_KEY": "sk-...",
            "GLANCE_LLM_MODEL": "gpt-4o-mini"
          }
        }
      }
    }
"""

from mcp.server.fastmcp import FastMCP

from .assistant import AssistantSession
from .errors import InvalidReference, SessionNotInitialized, UpstreamRejected

mcp = FastMCP("glance")

_session = AssistantSession()


@mcp.tool()
def analyze_video(url: str) -> str:
    """Get the transcript and highlights of a Bilibili or YouTube video.

    Uses official captions when the video has them, otherwise transcribes
    the audio, otherwise estimates content from the title and description.
    The first line shows which of these happened:
      [OFFICIAL CAPTIONS] / [AI TRANSCRIBED] / [AI SIMULATED]

    Also prepares ask_video() to answer questions about this video.

    Args:
        url: Video URL or bare ID (BV1xxxxxxxxx, YouTube video ID)
    """
    from .renderer import render_record
    from .service import acquire

    try:
        record = acquire(url)
    except (InvalidReference, UpstreamRejected) as exc:
        return f"error: {exc}"

    _session.initialize(record.transcript)
    return render_record(record)


@mcp.tool()
def ask_video(message: str) -> str:
    """Ask a question about the video last passed to analyze_video().

    Args:
        message: Your question
    """
    try:
        return _session.send(message)
    except SessionNotInitialized:
        return "no video analyzed yet, call analyze_video first"


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
