"""Executable entry point for launching the Resource Graph FastAPI application.

Process managers can import the stable ``app`` object from
``resource_graph_api.app``, or run ``python -m resource_graph_api.run_server``
directly for local development.

Environment Variables:
    PORT (int): Override listening port (default 8000).
    RESOURCE_GRAPH_SCHEMA, RESOURCE_GRAPH_DATA, RESOURCE_GRAPH_SCHEME:
        See :mod:`resource_graph_api.loader`.

Example:
    $ RESOURCE_GRAPH_SCHEMA=myapp.schema:Root python -m resource_graph_api.run_server
    $ PORT=9000 python -m resource_graph_api.run_server
"""

from __future__ import annotations

import os

import uvicorn

from .app import app


def main() -> None:
    """Launch the ASGI server with development-friendly defaults."""
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
