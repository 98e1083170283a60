"""Tests for URI resolution against a scheme registry."""

import pytest

from resource_graph_api.memory_delegate import create_memory_delegate
from resource_graph_api.query import equals
from resource_graph_api.resolver import SchemeRegistry, apply_query_qualifier, resolve_uri
from resource_graph_api.schema import Accessor, collection, computed_nav, obj, t
from resource_graph_api.uri import Filter, QueryQualifier

from sample_schema import Item, Root


def failure(uri, registry):
    result = resolve_uri(uri, registry)
    assert not result.ok
    return result.error


class TestScenarios:
    """End-to-end resolution of representative URIs."""

    def test_sorted_page_of_items(self, resolve):
        spec = resolve("notes://items?sort=rank.asc&limit=2")
        assert spec.resolve() == [
            {"uri": "notes://items%5B1%5D"},
            {"uri": "notes://items%5B2%5D"},
        ]

    def test_index_and_name_reach_same_item(self, resolve):
        by_index = resolve("notes://items[1]")
        by_name = resolve("notes://items/b")
        assert by_index.resolve() == by_name.resolve() == {"name": "b", "rank": 1}
        assert by_index.uri() == "notes://items%5B1%5D"
        assert by_name.uri() == "notes://items/b"

    def test_query_is_repeatable(self, resolve):
        spec = resolve("notes://items?rank.gt=1&sort=name.desc")
        assert spec.resolve() == spec.resolve() == [
            {"uri": "notes://items%5B2%5D"},
            {"uri": "notes://items%5B0%5D"},
        ]

    def test_member_by_name_then_field(self, resolve):
        assert resolve("notes://folders/Work/notes[0]/title").resolve() == "Roadmap"

    def test_member_by_folded_id(self, resolve):
        spec = resolve("notes://folders/Inbox/notes/11")
        assert spec.uri() == "notes://folders/Inbox/notes/11"
        assert spec.resolve()["title"] == "Meeting"

    def test_folded_id_on_folders(self, resolve):
        assert resolve("notes://folders/2").resolve()["name"] == "Work"

    def test_encoded_index(self, resolve):
        spec = resolve("notes://folders%5B1%5D/name")
        assert spec.resolve() == "Work"
        assert spec.uri() == "notes://folders%5B1%5D/name"

    def test_filter_in_uri(self, resolve):
        spec = resolve("notes://folders/Inbox/notes?title.contains=eet")
        assert spec.resolve() == [{"uri": "notes://folders/Inbox/notes%5B1%5D"}]

    def test_numeric_filter_in_uri(self, resolve):
        assert resolve("notes://items?rank.gt=1&name.startsWith=c").resolve() == [
            {"uri": "notes://items%5B2%5D"}
        ]

    def test_uri_query_merges_with_whose(self, resolve):
        spec = resolve("notes://items?rank.gt=1").whose({"name": equals("a")})
        assert spec.resolve() == [{"uri": "notes://items%5B0%5D"}]
        assert spec.uri() == "notes://items?rank.gt=1&name=a"

    def test_expand_in_uri(self, resolve):
        spec = resolve("notes://folders/Inbox/notes?sort=title.desc&expand=title")
        assert spec.resolve() == [
            {"uri": "notes://folders/Inbox/notes%5B1%5D", "title": "Meeting"},
            {"uri": "notes://folders/Inbox/notes%5B0%5D", "title": "Groceries"},
        ]

    def test_computed_navigation_then_descend(self, resolve):
        spec = resolve("notes://inbox/notes/10")
        assert spec.uri() == "notes://folders/Inbox/notes/10"
        assert spec.resolve()["title"] == "Groceries"

    def test_namespace_child(self, resolve):
        assert resolve("notes://settings/font_size").resolve() == 12

    def test_nested_recursive_collection(self, resolve):
        assert resolve("notes://folders/Work/folders/Archive/name").resolve() == "Archive"

    @pytest.mark.parametrize(
        "uri",
        [
            "notes://folders/Work/notes/20",
            "notes://folders[0]/notes[1]",
            "notes://items?sort=rank.desc&limit=2",
            "notes://settings/theme",
            "notes://inbox",
        ],
    )
    def test_canonical_uri_round_trips(self, resolve, uri):
        spec = resolve(uri)
        again = resolve(spec.uri())
        assert again.uri() == spec.uri()
        assert again.resolve() == spec.resolve()


class TestFailures:
    def test_lex_failure(self, registry):
        assert "missing scheme" in failure("folders", registry)

    def test_unknown_scheme(self, registry):
        assert failure("mail://inbox", registry) == "Unknown scheme: mail. Known: notes"

    def test_unknown_scheme_with_empty_registry(self):
        assert failure("mail://inbox", SchemeRegistry()) == "Unknown scheme: mail. Known: (none)"

    def test_unknown_segment_lists_children(self, registry):
        assert failure("notes://nope", registry) == (
            "Unknown segment 'nope'. Available: name, owner, settings, items, folders, inbox"
        )

    def test_unknown_segment_below_scalar(self, registry):
        assert failure("notes://name/x", registry) == "Unknown segment 'x'. Available: (none)"

    def test_namespace_rejects_qualifiers(self, registry):
        assert failure("notes://settings[0]", registry) == (
            "Namespace 'settings' does not support qualifiers"
        )

    def test_id_addressing_not_declared(self, registry):
        assert failure("notes://items/5", registry) == (
            "Collection 'items' does not support id addressing"
        )

    def test_index_addressing_not_declared(self):
        schema = obj(tags=collection(Item, by=[Accessor.NAME]))
        registry = SchemeRegistry().register(
            "x", lambda: create_memory_delegate({"tags": []}, "x"), schema
        )
        assert failure("x://tags[0]", registry) == (
            "Collection 'tags' does not support index addressing"
        )

    def test_navigation_function_errors_are_reported(self):
        def broken(delegate):
            raise LookupError("no such folder")

        schema = obj(shortcut=computed_nav(broken, t.any))
        registry = SchemeRegistry().register(
            "x", lambda: create_memory_delegate({}, "x"), schema
        )
        assert failure("x://shortcut", registry) == (
            "Navigation into 'shortcut' failed: no such folder"
        )

    def test_bad_limit(self, registry):
        assert "limit must be an integer" in failure("notes://items?limit=ten", registry)


class TestRegistry:
    def test_register_and_lookup(self, data):
        registry = SchemeRegistry()
        assert registry.register("a", lambda: create_memory_delegate(data, "a"), Root) is registry
        assert "a" in registry
        assert len(registry) == 1
        assert registry.get("a").schema is Root
        assert registry.get("b") is None

    def test_frozen_registry_rejects_registration(self, registry):
        assert registry.frozen
        with pytest.raises(RuntimeError):
            registry.register("other", lambda: None, Root)

    def test_independent_registries(self, data):
        first = SchemeRegistry().register("a", lambda: create_memory_delegate(data, "a"), Root)
        second = SchemeRegistry().register("b", lambda: create_memory_delegate(data, "b"), Root)
        assert resolve_uri("a://name", first).ok
        assert not resolve_uri("a://name", second).ok

    def test_resolution_binds_registry(self, registry, resolve):
        assert resolve("notes://folders").registry is registry


def test_apply_query_qualifier_parses_operands(data):
    delegate = create_memory_delegate(data, "notes").navigate_property("items")
    qualifier = QueryQualifier(filters=(Filter("rank", "gt", "1.5"),), limit=1)
    state = apply_query_qualifier(delegate, qualifier).query_state()
    assert state.filter["rank"].value == 1.5
    assert state.pagination.limit == 1
    assert state.pagination.offset is None
