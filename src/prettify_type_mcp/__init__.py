import argparse
import os


def main():
    """Run the type prettifier MCP server.

    Snapshot and cache flags are forwarded through the ``PRETTIFY_TYPE_*``
    environment variables read when the server lifespan starts.
    """
    from prettify_type_mcp.server import mcp

    parser = argparse.ArgumentParser(description="TypeScript type prettifier MCP server")
    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "sse", "http", "streamable-http", "streamable_http"],
        default="stdio",
        help=(
            "Transport method for the server. Accepts 'stdio', 'sse', 'http', "
            "or 'streamable-http' (with 'streamable_http' alias). Default is 'stdio'."
        ),
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host address for transport",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Host port for transport",
    )
    parser.add_argument(
        "--config-name",
        type=str,
        default=None,
        help="Type graph snapshot file name (or absolute path) searched above each file",
    )
    parser.add_argument(
        "--cache-size",
        type=int,
        default=None,
        help="Number of type graph sessions kept in memory",
    )
    args = parser.parse_args()
    mcp.settings.host = args.host
    mcp.settings.port = args.port
    if args.config_name:
        os.environ["PRETTIFY_TYPE_CONFIG"] = args.config_name
    if args.cache_size is not None:
        os.environ["PRETTIFY_TYPE_CACHE_SIZE"] = str(args.cache_size)

    transport = args.transport
    if transport in {"http", "streamable_http"}:
        transport = "streamable-http"

    mcp.run(transport=transport)
