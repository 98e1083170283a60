"""Notes-app schema and data used across the test suite.

Layout of the ``notes://`` graph::

    name, owner (backing key ``ownerName``)
    settings/            namespace over root keys ``theme`` and ``fontSize``
    items                collection by index/name; a, b, c with rank 3, 1, 2
    folders              lazy collection by index/name/id of Folder
        name
        notes            lazy, creatable collection by index/id of Note
        folders          lazy collection by index/name of Folder (recursive)
    inbox                lazy computed navigation to the folder named "Inbox"
"""

from resource_graph_api.mutations import with_create, with_delete, with_move, with_set
from resource_graph_api.schema import (
    Accessor,
    collection,
    computed,
    computed_nav,
    lazy,
    namespace,
    obj,
    t,
    with_alias,
)

Item = obj(name=t.string, rank=t.number)

Note = with_move()(
    with_delete()(
        obj(
            id=t.number,
            title=with_set(t.string),
            body=lazy(t.string),
            preview=with_alias(computed(lambda body: (body or "")[:5]), "body"),
            tags=t.string_list,
            created=t.date,
            pinned=with_set(t.boolean),
        )
    )
)

Folder = with_move()(
    obj(
        lambda: {
            "id": t.number,
            "name": t.string,
            "notes": lazy(with_create()(collection(Note, by=[Accessor.INDEX, Accessor.ID]))),
            "folders": lazy(collection(lambda: Folder, by=[Accessor.INDEX, Accessor.NAME])),
        }
    )
)

Settings = obj(
    theme=with_set(t.string),
    font_size=with_alias(t.number, "fontSize"),
)


def find_inbox(delegate):
    return delegate.navigate_property("folders").navigate_name("Inbox")


Root = obj(
    name=t.string,
    owner=with_alias(t.string, "ownerName"),
    settings=namespace(Settings),
    items=collection(Item, by=[Accessor.INDEX, Accessor.NAME]),
    folders=lazy(collection(Folder, by=[Accessor.INDEX, Accessor.NAME, Accessor.ID])),
    inbox=lazy(computed_nav(find_inbox, Folder)),
)


def make_data():
    return {
        "name": "Demo",
        "ownerName": "ada",
        "theme": "dark",
        "fontSize": 12,
        "items": [
            {"name": "a", "rank": 3},
            {"name": "b", "rank": 1},
            {"name": "c", "rank": 2},
        ],
        "folders": [
            {
                "id": 1,
                "name": "Inbox",
                "notes": [
                    {
                        "id": 10,
                        "title": "Groceries",
                        "body": "Milk and eggs",
                        "tags": ["home"],
                        "created": "2024-01-05T09:30:00",
                        "pinned": False,
                    },
                    {
                        "id": 11,
                        "title": "Meeting",
                        "body": "Agenda items",
                        "tags": ["work"],
                        "created": "2024-02-01T14:00:00",
                        "pinned": True,
                    },
                ],
                "folders": [],
            },
            {
                "id": 2,
                "name": "Work",
                "notes": [
                    {
                        "id": 20,
                        "title": "Roadmap",
                        "body": "Q3 plans",
                        "tags": ["work", "plan"],
                        "created": "2024-03-10T08:00:00",
                        "pinned": False,
                    }
                ],
                "folders": [{"id": 3, "name": "Archive", "notes": [], "folders": []}],
            },
        ],
    }
