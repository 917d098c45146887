"""
MongoDB access.

``db`` is None when DATABASE_URL / DATABASE_NAME are not set; the API keeps
running and reports the missing database on /test and on every request that
needs it.
"""
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient

import config
from errors import Conflict, KidQuestError
from schemas import Child, Parent

_client = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    _client = MongoClient(config.DATABASE_URL)
    db = _client[config.DATABASE_NAME]

PARENT_COLLECTION = "parent"


def _require_db(database=None):
    database = database if database is not None else db
    if database is None:
        raise KidQuestError("Database not configured")
    return database


def create_document(collection_name: str, data: Union[BaseModel, dict], database=None) -> str:
    """Insert a document stamped with created_at/updated_at, return its id."""
    database = _require_db(database)
    data_dict = data.model_dump() if isinstance(data, BaseModel) else data.copy()
    now = datetime.now(timezone.utc)
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  database=None) -> List[dict]:
    database = _require_db(database)
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_document(parent: Parent) -> dict:
    doc = parent.model_dump(exclude={"id"})
    doc["_id"] = ObjectId(parent.id)
    return doc


def from_document(doc: dict) -> Parent:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return Parent.model_validate(doc)


class ParentStore(Protocol):
    """Whole-aggregate persistence for parents and everything they own."""

    def list_parents(self) -> List[Parent]: ...

    def load_parent(self, parent_id: str) -> Optional[Parent]: ...

    def load_child(self, child_id: str) -> Optional[Tuple[Parent, Child]]: ...

    def load_schedule(self, schedule_id: str) -> Optional[Tuple[Parent, Child]]: ...

    def insert_parent(self, parent: Parent) -> Parent: ...

    def save_parent(self, parent: Parent) -> Parent: ...

    def delete_parent(self, parent_id: str) -> bool: ...


class MongoParentStore:
    def __init__(self, database=None):
        self._db = database

    @property
    def collection(self):
        return _require_db(self._db)[PARENT_COLLECTION]

    def list_parents(self) -> List[Parent]:
        return [from_document(d) for d in get_documents(PARENT_COLLECTION, database=_require_db(self._db))]

    def load_parent(self, parent_id: str) -> Optional[Parent]:
        if not ObjectId.is_valid(parent_id):
            return None
        doc = self.collection.find_one({"_id": ObjectId(parent_id)})
        return from_document(doc) if doc else None

    def load_child(self, child_id: str) -> Optional[Tuple[Parent, Child]]:
        doc = self.collection.find_one({"children.id": child_id})
        if not doc:
            return None
        parent = from_document(doc)
        return parent, parent.find_child(child_id)

    def load_schedule(self, schedule_id: str) -> Optional[Tuple[Parent, Child]]:
        doc = self.collection.find_one({"children.schedules.id": schedule_id})
        if not doc:
            return None
        parent = from_document(doc)
        child = next(c for c in parent.children if c.find_schedule(schedule_id) is not None)
        return parent, child

    def insert_parent(self, parent: Parent) -> Parent:
        create_document(PARENT_COLLECTION, to_document(parent), database=_require_db(self._db))
        return parent

    def save_parent(self, parent: Parent) -> Parent:
        """Replace the stored parent if nobody saved it since it was loaded."""
        expected = parent.version
        parent.version = expected + 1
        parent.updated_at = datetime.now(timezone.utc)
        result = self.collection.replace_one({"_id": ObjectId(parent.id), "version": expected}, to_document(parent))
        if result.matched_count == 0:
            parent.version = expected
            raise Conflict("Parent was modified by another request, please retry")
        return parent

    def delete_parent(self, parent_id: str) -> bool:
        if not ObjectId.is_valid(parent_id):
            return False
        return self.collection.delete_one({"_id": ObjectId(parent_id)}).deleted_count > 0
