"""Startup construction of the scheme registry.

The served schema is named by an import reference (``"package.module:ATTR"``)
and the backing data is a JSON document loaded into an in-memory delegate.

Environment Variables:
    RESOURCE_GRAPH_SCHEME (str): Scheme to register (default ``"data"``).
    RESOURCE_GRAPH_SCHEMA (str): ``"package.module:ATTR"`` naming the root
        schema node. When unset the registry stays empty.
    RESOURCE_GRAPH_DATA (path): JSON document used as the backing store
        (default: an empty object).
"""

from __future__ import annotations

import importlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .memory_delegate import create_memory_delegate
from .resolver import SchemeRegistry
from .schema import SchemaNode

logger = logging.getLogger(__name__)

DEFAULT_SCHEME = "data"


@dataclass
class LoaderConfig:
    scheme: str = DEFAULT_SCHEME
    schema_ref: Optional[str] = None
    data_path: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "LoaderConfig":
        data_path = os.getenv("RESOURCE_GRAPH_DATA")
        return cls(
            scheme=os.getenv("RESOURCE_GRAPH_SCHEME", DEFAULT_SCHEME),
            schema_ref=os.getenv("RESOURCE_GRAPH_SCHEMA") or None,
            data_path=Path(data_path) if data_path else None,
        )


def load_schema(reference: str) -> SchemaNode:
    """Import the schema node named by ``"package.module:ATTR"``.

    Raises:
        ValueError: If the reference is malformed or does not name a schema node.
        ImportError: If the module cannot be imported.
    """
    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Schema reference must look like 'package.module:ATTR', got {reference!r}")
    module = importlib.import_module(module_name)
    node = getattr(module, attribute, None)
    if not isinstance(node, SchemaNode):
        raise ValueError(f"{reference} is not a schema node")
    return node


def load_data(path: Optional[Path]) -> Any:
    if path is None:
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def build_registry(config: LoaderConfig) -> SchemeRegistry:
    """Registry serving ``config.schema_ref`` over ``config.data_path``, frozen."""
    registry = SchemeRegistry()
    if config.schema_ref is None:
        logger.warning("No schema configured (RESOURCE_GRAPH_SCHEMA); registry is empty")
        return registry.freeze()

    schema = load_schema(config.schema_ref)
    data = load_data(config.data_path)
    scheme = config.scheme
    registry.register(scheme, lambda: create_memory_delegate(data, scheme), schema)
    logger.info(f"Serving {config.schema_ref} as {scheme}:// from {config.data_path or 'empty data'}")
    return registry.freeze()
