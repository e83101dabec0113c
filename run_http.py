"""HTTP runner for MCP server (remote deployment)."""
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.server import TransportSecuritySettings
from video_transcript_mcp.server import (
    app_lifespan,
    transcribe_video,
    search_transcript,
    get_subtitles,
    cache_stats,
    clear_cache,
    help_resource,
    TRANSCRIBE_ANNOTATIONS,
    CACHE_READ_ANNOTATIONS,
    CACHE_CLEAR_ANNOTATIONS,
)

server = FastMCP(
    "Video Transcript",
    instructions="Transcribe local video files and export synchronized captions",
    lifespan=app_lifespan,
    host="0.0.0.0",
    port=8402,
    transport_security=TransportSecuritySettings(enable_dns_rebinding_protection=False),
)

# Register tools with annotations
server.tool(annotations=TRANSCRIBE_ANNOTATIONS)(transcribe_video)
server.tool(annotations=TRANSCRIBE_ANNOTATIONS)(search_transcript)
server.tool(annotations=TRANSCRIBE_ANNOTATIONS)(get_subtitles)
server.tool(annotations=CACHE_READ_ANNOTATIONS)(cache_stats)
server.tool(annotations=CACHE_CLEAR_ANNOTATIONS)(clear_cache)

# Register resources
server.resource("video://help")(help_resource)

server.run(transport="streamable-http")
