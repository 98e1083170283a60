import pytest

from resource_graph_api.memory_delegate import create_memory_delegate
from resource_graph_api.resolver import SchemeRegistry, resolve_uri

from sample_schema import Root, make_data


@pytest.fixture
def data():
    return make_data()


@pytest.fixture
def registry(data):
    registry = SchemeRegistry()
    registry.register("notes", lambda: create_memory_delegate(data, "notes"), Root)
    return registry.freeze()


@pytest.fixture
def resolve(registry):
    """Resolve a URI that is expected to succeed."""

    def _resolve(uri):
        result = resolve_uri(uri, registry)
        assert result.ok, result.error
        return result.value

    return _resolve
