from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from bson import ObjectId

from database import MongoParentStore, create_document, from_document, to_document
from errors import Conflict, KidQuestError
from schemas import Child, Parent, Schedule


class FakeCollection:
    """Just enough of a pymongo collection for the parent store."""

    def __init__(self):
        self.docs = {}

    def insert_one(self, doc):
        doc = dict(doc)
        doc.setdefault("_id", ObjectId())
        self.docs[doc["_id"]] = doc
        return SimpleNamespace(inserted_id=doc["_id"])

    def _matches(self, doc, query):
        for key, value in query.items():
            if key == "children.id":
                if not any(c["id"] == value for c in doc["children"]):
                    return False
            elif key == "children.schedules.id":
                if not any(s["id"] == value for c in doc["children"] for s in c.get("schedules", [])):
                    return False
            elif doc.get(key) != value:
                return False
        return True

    def find(self, query):
        return [d for d in self.docs.values() if self._matches(d, query)]

    def find_one(self, query):
        found = self.find(query)
        return dict(found[0]) if found else None

    def replace_one(self, query, doc):
        found = self.find(query)
        if found:
            self.docs[found[0]["_id"]] = dict(doc)
        return SimpleNamespace(matched_count=len(found[:1]))

    def delete_one(self, query):
        found = self.find(query)
        if found:
            del self.docs[found[0]["_id"]]
        return SimpleNamespace(deleted_count=len(found[:1]))


class FakeDatabase(dict):
    def __missing__(self, name):
        self[name] = FakeCollection()
        return self[name]


@pytest.fixture
def mongo_store():
    return MongoParentStore(FakeDatabase())


def test_document_uses_object_id_key():
    parent = Parent(name="Sam", email="sam@example.com", children=[Child(name="Alice", age=8)])
    doc = to_document(parent)
    assert doc["_id"] == ObjectId(parent.id)
    assert "id" not in doc
    assert from_document(doc) == parent


def test_insert_and_load(mongo_store):
    parent = Parent(name="Sam", email="sam@example.com", children=[Child(name="Alice", age=8)])
    mongo_store.insert_parent(parent)

    loaded = mongo_store.load_parent(parent.id)
    assert loaded.name == "Sam"
    found_parent, found_child = mongo_store.load_child(parent.children[0].id)
    assert (found_parent.id, found_child.name) == (parent.id, "Alice")
    assert [p.id for p in mongo_store.list_parents()] == [parent.id]
    assert mongo_store.load_parent("not-an-object-id") is None
    assert mongo_store.load_child("missing") is None


def test_save_bumps_version_and_detects_lost_updates(mongo_store):
    parent = mongo_store.insert_parent(Parent(name="Sam", email="sam@example.com"))
    first = mongo_store.load_parent(parent.id)
    second = mongo_store.load_parent(parent.id)

    first.name = "Samantha"
    mongo_store.save_parent(first)
    assert first.version == 1

    second.name = "Sammy"
    with pytest.raises(Conflict):
        mongo_store.save_parent(second)
    assert second.version == 0
    assert mongo_store.load_parent(parent.id).name == "Samantha"


def test_delete(mongo_store):
    parent = mongo_store.insert_parent(Parent(name="Sam", email="sam@example.com"))
    assert mongo_store.delete_parent(parent.id) is True
    assert mongo_store.delete_parent(parent.id) is False
    assert mongo_store.delete_parent("junk") is False


def test_create_document_stamps_times():
    database = FakeDatabase()
    inserted = create_document("parent", {"name": "x"}, database=database)
    doc = database["parent"].docs[ObjectId(inserted)]
    assert doc["created_at"] == doc["updated_at"]


def test_missing_database_is_reported(monkeypatch):
    monkeypatch.setattr("database.db", None)
    with pytest.raises(KidQuestError, match="Database not configured"):
        MongoParentStore().load_parent(str(ObjectId()))


def test_load_schedule_finds_the_owning_child(mongo_store):
    schedule = Schedule(
        activity_type="game", game_type="memoryMatch", title="Cards", description="Match them",
        scheduled_time=datetime(2026, 5, 1, tzinfo=timezone.utc), duration=120,
    )
    parent = Parent(
        name="Sam", email="sam@example.com",
        children=[Child(name="Alice", age=8), Child(name="Ben", age=6, schedules=[schedule])],
    )
    mongo_store.insert_parent(parent)

    found_parent, found_child = mongo_store.load_schedule(schedule.id)
    assert (found_parent.id, found_child.name) == (parent.id, "Ben")
    assert found_child.find_schedule(schedule.id).scheduled_time == schedule.scheduled_time
    assert mongo_store.load_schedule("missing") is None
