"""Tests for the resource-read boundary, listings and URI templates."""

import json
import os
from unittest.mock import patch

import pytest

from resource_graph_api.memory_delegate import create_memory_delegate
from resource_graph_api.resolver import SchemeRegistry
from resource_graph_api.resources import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    ReadConfig,
    ReadResult,
    list_resources,
    read_resource,
    resource_templates,
)
from resource_graph_api.schema import Accessor, collection, computed, obj, t

from sample_schema import Item


@pytest.fixture
def big():
    """Registry serving 150 ranked items under ``big://items``."""
    data = {"items": [{"name": f"item{i:03d}", "rank": i % 7} for i in range(150)]}
    schema = obj(items=collection(Item, by=[Accessor.INDEX, Accessor.NAME]))
    registry = SchemeRegistry().register("big", lambda: create_memory_delegate(data, "big"), schema)
    return registry.freeze()


def read_ok(uri, registry, config=None):
    result = read_resource(uri, registry, config)
    assert result.ok, result.error
    return result.data


class TestPagination:
    def test_small_collection_is_a_plain_list(self, registry):
        assert read_ok("notes://items", registry) == [
            {"uri": "notes://items%5B0%5D"},
            {"uri": "notes://items%5B1%5D"},
            {"uri": "notes://items%5B2%5D"},
        ]

    def test_default_limit_wraps_large_collection(self, big):
        data = read_ok("big://items", big)
        assert data["_pagination"] == {
            "total": 150,
            "returned": DEFAULT_LIMIT,
            "offset": 0,
            "limit": DEFAULT_LIMIT,
            "next": "big://items?limit=20&offset=20",
        }
        assert data["items"][0] == {"uri": "big://items%5B0%5D"}

    def test_limit_is_capped(self, big):
        data = read_ok("big://items?limit=500", big)
        assert data["_pagination"]["limit"] == MAX_LIMIT
        assert data["_pagination"]["returned"] == MAX_LIMIT
        assert data["_pagination"]["next"] == "big://items?limit=100&offset=100"

    def test_last_page_has_no_next(self, big):
        data = read_ok("big://items?offset=140&limit=20", big)
        assert data["_pagination"]["returned"] == 10
        assert data["_pagination"]["next"] is None

    def test_offset_alone_is_always_wrapped(self, registry):
        data = read_ok("notes://items?offset=1", registry)
        assert data["_pagination"]["total"] == 3
        assert data["_pagination"]["returned"] == 2
        assert data["_pagination"]["next"] is None

    def test_offset_past_end(self, registry):
        data = read_ok("notes://items?offset=10", registry)
        assert data["items"] == []
        assert data["_pagination"]["next"] is None

    def test_following_next_visits_every_item_once(self, big):
        seen = []
        uri = "big://items?limit=7"
        while uri is not None:
            data = read_ok(uri, big)
            seen.extend(item["uri"] for item in data["items"])
            uri = data["_pagination"]["next"]
        assert seen == [f"big://items%5B{i}%5D" for i in range(150)]

    def test_next_preserves_filter_sort_and_expand(self, big):
        data = read_ok("big://items?rank.gt=2&sort=rank.desc&expand=name&limit=10", big)
        assert data["_pagination"]["next"] == (
            "big://items?rank.gt=2&sort=rank.desc&limit=10&offset=10&expand=name"
        )
        first = data["items"][0]
        assert first["uri"] == "big://items%5B6%5D"
        assert first["name"] == "item006"
        assert data["_pagination"]["total"] == sum(1 for i in range(150) if i % 7 > 2)

    def test_zero_limit_means_default_limit(self, big):
        data = read_ok("big://items?limit=0", big)
        assert data["_pagination"]["limit"] == DEFAULT_LIMIT
        assert data["_pagination"]["returned"] == DEFAULT_LIMIT
        assert data["_pagination"]["next"] == "big://items?limit=20&offset=20"

    @pytest.mark.parametrize("query", ["offset=-1", "limit=-5"])
    def test_negative_window_is_rejected(self, registry, query):
        result = read_resource(f"notes://items?{query}", registry)
        assert not result.ok
        assert result.error.startswith("URI resolution failed: Invalid URI:")
        assert "must not be negative" in result.error

    def test_expansion_runs_for_returned_page_only(self):
        calls = []

        def tally(value):
            calls.append(value)
            return len(calls)

        data = {"items": [{"name": f"n{i}"} for i in range(30)]}
        Entry = obj(name=t.string, tally=computed(tally))
        schema = obj(items=collection(Entry, by=[Accessor.INDEX]))
        registry = SchemeRegistry().register("x", lambda: create_memory_delegate(data, "x"), schema)

        page = read_ok("x://items?offset=10&limit=5&expand=tally", registry)
        assert page["_pagination"]["total"] == 30
        assert [item["uri"] for item in page["items"]] == [
            f"x://items%5B{i}%5D" for i in range(10, 15)
        ]
        assert [item["tally"] for item in page["items"]] == [1, 2, 3, 4, 5]
        assert len(calls) == 5

    def test_custom_read_config(self, registry):
        data = read_ok("notes://items", registry, ReadConfig(default_limit=2))
        assert data["_pagination"]["next"] == "notes://items?limit=2&offset=2"
        last = read_ok(data["_pagination"]["next"], registry, ReadConfig(default_limit=2))
        assert last["items"] == [{"uri": "notes://items%5B2%5D"}]
        assert last["_pagination"]["next"] is None

    def test_read_config_from_env(self):
        with patch.dict(
            os.environ,
            {"RESOURCE_GRAPH_DEFAULT_LIMIT": "5", "RESOURCE_GRAPH_MAX_LIMIT": "50"},
        ):
            config = ReadConfig.from_env()
        assert config.default_limit == 5
        assert config.max_limit == 50

    def test_read_config_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = ReadConfig.from_env()
        assert (config.default_limit, config.max_limit) == (DEFAULT_LIMIT, MAX_LIMIT)


class TestReadShapes:
    def test_canonical_uri_stamped_when_it_differs(self, registry):
        data = read_ok("notes://folders[0]", registry)
        assert data["_uri"] == "notes://folders%5B0%5D"
        assert data["name"] == "Inbox"

    def test_no_stamp_for_canonical_request(self, registry):
        assert "_uri" not in read_ok("notes://folders/Inbox", registry)

    def test_computed_navigation_is_stamped(self, registry):
        assert read_ok("notes://inbox", registry)["_uri"] == "notes://folders/Inbox"

    def test_scalar(self, registry):
        assert read_ok("notes://settings/theme", registry) == "dark"

    def test_scalar_list_is_returned_whole(self, registry, data):
        data["folders"][1]["notes"][0]["tags"] = [f"t{i}" for i in range(30)]
        result = read_ok("notes://folders/Work/notes/20/tags", registry)
        assert result == [f"t{i}" for i in range(30)]


class TestReadFailures:
    def test_invalid_uri(self, registry):
        result = read_resource("no-scheme", registry)
        assert not result.ok
        assert result.error.startswith("URI resolution failed: Invalid URI")

    def test_unknown_segment(self, registry):
        result = read_resource("notes://nope", registry)
        assert result.error.startswith("URI resolution failed: Unknown segment 'nope'")

    def test_type_mismatch_becomes_resolution_error(self, registry, data):
        data["name"] = 5
        result = read_resource("notes://name", registry)
        assert result.error == "Resolution error: Expected string, got int"

    def test_non_sequence_collection(self, registry, data):
        data["items"] = {"not": "a list"}
        result = read_resource("notes://items", registry)
        assert result.error == "Resolution error: Collection expected a sequence, got dict"


class TestReadResult:
    def test_text_is_json(self):
        result = ReadResult(ok=True, uri="x://a", data={"a": [1, 2]})
        assert json.loads(result.text) == {"a": [1, 2]}
        assert result.to_dict()["mimeType"] == "application/json"

    def test_failure_text(self):
        result = ReadResult(ok=False, uri="x://a", error="boom")
        assert result.text == "boom"
        assert result.to_dict() == {"ok": False, "uri": "x://a", "error": "boom"}


class TestListing:
    def test_list_resources(self, registry):
        resources = list_resources(registry)
        assert [r["uri"] for r in resources] == [
            "notes://name",
            "notes://owner",
            "notes://settings",
            "notes://items",
            "notes://folders",
            "notes://inbox",
        ]
        assert all(r["mimeType"] == "application/json" for r in resources)
        assert resources[2]["description"] == "Namespace 'settings'"

    def test_templates_cover_accessors_and_terminate(self, registry):
        templates = [t["uriTemplate"] for t in resource_templates(registry)]
        assert "notes://items[{index}]" in templates
        assert "notes://items/{name}" in templates
        assert "notes://items/{id}" not in templates
        assert "notes://items?{filter}" in templates
        assert "notes://folders/{id}" in templates
        assert "notes://folders/{name}/notes/{id}" in templates
        assert "notes://folders/{name}/folders/{name}" in templates
        assert len(templates) == len(set(templates))

    def test_templates_for_empty_registry(self):
        assert resource_templates(SchemeRegistry()) == []
        assert list_resources(SchemeRegistry()) == []
