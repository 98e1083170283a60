"""Tests for the set/move/delete/create mutation composers."""

from resource_graph_api.memory_delegate import FIRST_GENERATED_ID, create_memory_delegate
from resource_graph_api.models import Result
from resource_graph_api.mutations import with_create, with_delete, with_move, with_set
from resource_graph_api.schema import Accessor, collection, obj, t
from resource_graph_api.specifier import Specifier


class TestSet:
    def test_set_writes_through(self, resolve, data):
        spec = resolve("notes://folders/Inbox/notes/10/title")
        result = spec.set("Shopping")
        assert result.ok
        assert result.value == "notes://folders/Inbox/notes/10/title"
        assert data["folders"][0]["notes"][0]["title"] == "Shopping"
        assert spec.resolve() == "Shopping"

    def test_set_inside_namespace(self, resolve, data):
        assert resolve("notes://settings/theme").set("light").ok
        assert data["theme"] == "light"

    def test_set_boolean(self, resolve):
        spec = resolve("notes://folders/Inbox/notes/11/pinned")
        assert spec.set(False).ok
        assert spec.resolve() is False

    def test_set_where_backing_store_refuses(self, data):
        delegate = create_memory_delegate(data, "notes").navigate_property("items").navigate_index(0)
        spec = Specifier(delegate, with_set(t.any))
        result = spec.set({"name": "z"})
        assert not result.ok
        assert result.error == "Cannot assign at notes://items%5B0%5D"
        assert data["items"][0] == {"name": "a", "rank": 3}

    def test_set_is_only_on_decorated_nodes(self, resolve):
        assert "set" not in resolve("notes://name").keys()
        assert "set" in resolve("notes://settings/theme").keys()


class TestMove:
    def test_move_note_between_folders(self, resolve, data):
        note = resolve("notes://folders/Inbox/notes/10")
        result = note.move(resolve("notes://folders/Work/notes"))

        assert result.ok
        moved = result.value
        assert isinstance(moved, Specifier)
        assert moved.uri() == "notes://folders/Work/notes/10"
        assert moved.resolve()["title"] == "Groceries"
        assert [n["id"] for n in data["folders"][0]["notes"]] == [11]
        assert [n["id"] for n in data["folders"][1]["notes"]] == [20, 10]
        assert not note.exists()

    def test_move_folder_to_top_level(self, resolve, data):
        result = resolve("notes://folders/Work/folders/Archive").move(resolve("notes://folders"))
        assert result.ok
        assert result.value.uri() == "notes://folders/3"
        assert result.value.resolve()["name"] == "Archive"
        assert data["folders"][1]["folders"] == []

    def test_move_into_collection_without_id_addressing(self, resolve, data):
        """Subfolders are addressed by name, so the moved folder is reported by name."""
        archive = resolve("notes://folders/Work/folders/Archive")
        result = archive.move(resolve("notes://folders/Inbox/folders"))

        assert result.ok, result.error
        assert result.value.uri() == "notes://folders/Inbox/folders/Archive"
        assert result.value.resolve()["id"] == 3
        assert [f["name"] for f in data["folders"][0]["folders"]] == ["Archive"]
        assert data["folders"][1]["folders"] == []

    def test_move_refused_when_destination_cannot_address_item(self, data, registry):
        Thing = with_move()(obj(name=t.string))
        root = create_memory_delegate(data, "notes")
        item = Specifier(root.navigate_property("items").navigate_index(0), Thing, registry)
        by_id_only = collection(Thing, by=[Accessor.ID])
        destination = Specifier(root.navigate_property("folders"), by_id_only, registry)

        result = item.move(destination)
        assert result.error == "Cannot move into notes://folders: item has no address there"
        assert [i["name"] for i in data["items"]] == ["a", "b", "c"]
        assert len(data["folders"]) == 2

    def test_move_into_non_collection_leaves_item(self, resolve, data):
        result = resolve("notes://folders/Inbox/notes/10").move(resolve("notes://folders/Work/name"))
        assert result == Result.failure("Destination is not a collection")
        assert len(data["folders"][0]["notes"]) == 2

    def test_move_missing_item(self, resolve):
        result = resolve("notes://folders/Inbox/notes/99").move(resolve("notes://folders/Work/notes"))
        assert not result.ok
        assert result.error.startswith("Item not found")

    def test_custom_move_handler(self, data, registry):
        calls = []

        def refuse(item, destination):
            calls.append((item.canonical_uri(), destination.canonical_uri()))
            return Result.failure("Moves are disabled")

        Thing = with_move(refuse)(obj(name=t.string))
        root = create_memory_delegate(data, "notes")
        item = Specifier(root.navigate_property("items").navigate_index(0), Thing, registry)
        destination = Specifier(root.navigate_property("folders"), collection(Thing), registry)

        assert item.move(destination).error == "Moves are disabled"
        assert calls == [("notes://items%5B0%5D", "notes://folders")]


class TestDelete:
    def test_delete_returns_former_uri(self, resolve, data):
        spec = resolve("notes://folders/Work/notes/20")
        result = spec.delete()
        assert result == Result.success("notes://folders/Work/notes/20")
        assert data["folders"][1]["notes"] == []
        assert not spec.exists()

    def test_delete_missing(self, resolve):
        result = resolve("notes://folders/Work/notes/999").delete()
        assert not result.ok
        assert result.error == "Item not found: notes://folders/Work/notes/999"

    def test_custom_delete_handler(self, data):
        Thing = with_delete(lambda delegate: Result.success("archived"))(t.any)
        delegate = create_memory_delegate(data, "notes").navigate_property("items").navigate_index(0)
        assert Specifier(delegate, Thing).delete().value == "archived"
        assert len(data["items"]) == 3


class TestCreate:
    def test_create_assigns_generated_ids(self, resolve, data):
        notes = resolve("notes://folders/Work/notes")
        first = notes.create({"title": "New"})
        second = notes.create({"title": "Newer"})

        assert first.ok and second.ok
        assert first.value.uri() == f"notes://folders/Work/notes/{FIRST_GENERATED_ID}"
        assert second.value.uri() == f"notes://folders/Work/notes/{FIRST_GENERATED_ID + 1}"
        assert first.value.title.resolve() == "New"
        assert len(data["folders"][1]["notes"]) == 3

    def test_create_keeps_supplied_id(self, resolve):
        result = resolve("notes://folders/Inbox/notes").create({"id": 77, "title": "Given"})
        assert result.value.uri() == "notes://folders/Inbox/notes/77"

    def test_create_without_registry(self, data):
        Notes = with_create()(collection(t.any))
        delegate = create_memory_delegate(data, "notes").navigate_property("items")
        result = Specifier(delegate, Notes).create({"name": "d"})
        assert not result.ok
        assert result.error == "No scheme registry bound; cannot resolve notes://items%5B3%5D"
        assert data["items"][-1] == {"name": "d", "id": 1000}

    def test_create_on_non_collection(self, data):
        Thing = with_create()(t.any)
        delegate = create_memory_delegate(data, "notes").navigate_property("name")
        result = Specifier(delegate, Thing).create({})
        assert result.error == "Cannot create: notes://name is not a collection"

    def test_create_reports_name_in_name_addressed_collection(self, data, registry):
        Items = with_create()(collection(t.any, by=[Accessor.NAME]))
        delegate = create_memory_delegate(data, "notes").navigate_property("items")
        result = Specifier(delegate, Items, registry).create({"name": "d", "rank": 4})
        assert result.ok, result.error
        assert result.value.uri() == "notes://items/d"
        assert result.value.resolve() == {"name": "d", "rank": 4}
        assert data["items"][-1]["id"] == FIRST_GENERATED_ID

    def test_create_refused_without_usable_address(self, data, registry):
        Items = with_create()(collection(t.any, by=[Accessor.NAME]))
        delegate = create_memory_delegate(data, "notes").navigate_property("items")
        result = Specifier(delegate, Items, registry).create({"rank": 4})
        assert result.error == "Cannot create in notes://items: new item has no address there"
        assert len(data["items"]) == 3

    def test_create_through_query_uri(self, resolve):
        notes = resolve("notes://folders/Work/notes?sort=title.asc")
        result = notes.create({"title": "Zebra"})
        assert result.ok
        assert result.value.uri() == f"notes://folders/Work/notes/{FIRST_GENERATED_ID}"
