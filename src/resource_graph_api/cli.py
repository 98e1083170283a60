"""
CLI commands for inspecting and serving a resource graph.
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from .completions import complete_uri
from .loader import LoaderConfig, build_registry
from .resources import ReadConfig, list_resources, read_resource, resource_templates
from .uri import lex_uri


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _loader_config(args) -> LoaderConfig:
    config = LoaderConfig.from_env()
    if args.schema:
        config.schema_ref = args.schema
    if args.data:
        config.data_path = Path(args.data)
    if args.scheme:
        config.scheme = args.scheme
    return config


def _print_json(value) -> None:
    print(json.dumps(value, indent=2, default=str))


def cmd_lex(args):
    """Show how a URI is split into segments and qualifiers."""
    setup_logging(args.verbose)

    result = lex_uri(args.uri)
    if not result.ok:
        print(f"✗ {result.error}", file=sys.stderr)
        return 1
    _print_json(asdict(result.value))
    return 0


def cmd_read(args):
    """Resolve a URI against the configured schema and data."""
    setup_logging(args.verbose)

    registry = build_registry(_loader_config(args))
    config = ReadConfig.from_env()
    if args.limit is not None:
        config.default_limit = args.limit
    result = read_resource(args.uri, registry, config)
    if not result.ok:
        print(f"✗ {result.error}", file=sys.stderr)
        return 1
    _print_json(result.data)
    return 0


def cmd_resources(args):
    """List root-level resources and URI templates."""
    setup_logging(args.verbose)

    registry = build_registry(_loader_config(args))
    _print_json(
        {
            "resources": list_resources(registry),
            "resourceTemplates": resource_templates(registry),
        }
    )
    return 0


def cmd_complete(args):
    """Print completion candidates for a partially typed URI."""
    setup_logging(args.verbose)

    registry = build_registry(_loader_config(args))
    for completion in complete_uri(args.partial, registry):
        print(f"{completion.value}\t{completion.description}")
    return 0


def cmd_serve(args):
    """Run the MCP server (stdio) or the HTTP API."""
    setup_logging(args.verbose)

    if args.transport == "stdio":
        from .mcp_server import MCPConfig, MCPServer

        registry = build_registry(_loader_config(args))
        server = MCPServer(MCPConfig(transport="stdio", log_level="WARNING"), registry)
        asyncio.run(server.serve_stdio())
        return 0

    import uvicorn

    from .app import app, get_registry

    registry = build_registry(_loader_config(args))
    app.dependency_overrides[get_registry] = lambda: registry
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def _add_source_arguments(parser):
    parser.add_argument("--schema", help="Root schema node as 'package.module:ATTR'")
    parser.add_argument("--data", help="JSON document used as the backing store")
    parser.add_argument("--scheme", help="URI scheme to register (default: data)")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Resource Graph CLI",
        prog="resource-graph"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands"
    )

    lex_parser = subparsers.add_parser("lex", help="Lex a URI into segments")
    lex_parser.add_argument("uri", help="Resource URI")
    lex_parser.set_defaults(func=cmd_lex)

    read_parser = subparsers.add_parser("read", help="Resolve and print a resource")
    read_parser.add_argument("uri", help="Resource URI")
    read_parser.add_argument(
        "--limit",
        type=int,
        help="Default page size for collections without an explicit limit"
    )
    _add_source_arguments(read_parser)
    read_parser.set_defaults(func=cmd_read)

    resources_parser = subparsers.add_parser(
        "resources",
        help="List resources and URI templates"
    )
    _add_source_arguments(resources_parser)
    resources_parser.set_defaults(func=cmd_resources)

    complete_parser = subparsers.add_parser(
        "complete",
        help="Suggest continuations of a partial URI"
    )
    complete_parser.add_argument("partial", help="URI typed so far")
    _add_source_arguments(complete_parser)
    complete_parser.set_defaults(func=cmd_complete)

    serve_parser = subparsers.add_parser("serve", help="Run a server")
    serve_parser.add_argument(
        "--transport",
        default="stdio",
        choices=["stdio", "http"],
        help="MCP over stdio, or the HTTP API (default: stdio)"
    )
    serve_parser.add_argument("--host", default="127.0.0.1", help="HTTP bind host")
    serve_parser.add_argument("--port", type=int, default=8000, help="HTTP port")
    _add_source_arguments(serve_parser)
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    if not hasattr(args, 'func'):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
