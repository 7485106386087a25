"""
Database helpers

A thin entity store over MongoDB. Every record lives in a collection named
after its entity (lowercase) and is addressed by its "_id", which is always a
caller-chosen string or a sequence number (cart items).

- Order -> "order" (items are embedded, so deleting an order deletes them)
- Drone -> "drone"
- CartItem -> "cartitem"
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import settings
from errors import Conflict

logger = logging.getLogger(__name__)

_client = None
db = None

if settings.database_url and settings.database_name:
    _client = MongoClient(settings.database_url)
    db = _client[settings.database_name]


def now_ms() -> int:
    return int(time.time() * 1000)


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    doc["id"] = doc.pop("_id")
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc


Sort = List[Tuple[str, int]]

# Fields that must be unique within their collection, besides _id
UNIQUE_FIELDS = {
    "user": ("username", "email", "phone"),
}


class EntityStore:
    """Generic create/read/update/delete access to the entity collections."""

    def __init__(self, database: Database):
        self.db = database

    def create(self, collection: str, data: Union[BaseModel, dict], doc_id: Any = None) -> Any:
        if isinstance(data, BaseModel):
            exclude = {"id", *type(data).model_computed_fields}
            data_dict = data.model_dump(mode="json", exclude=exclude)
        else:
            data_dict = {k: v for k, v in data.items() if k != "id"}
        data_dict["_id"] = doc_id if doc_id is not None else uuid.uuid4().hex
        try:
            result = self.db[collection].insert_one(data_dict)
        except DuplicateKeyError as e:
            logger.info("Duplicate key on insert into %s: %s", collection, e)
            raise Conflict(f"Duplicate {collection}: {data_dict['_id']}") from e
        return result.inserted_id

    def get(self, collection: str, doc_id: Any) -> Optional[Dict[str, Any]]:
        return serialize_doc(self.db[collection].find_one({"_id": doc_id}))

    def find_one(self, collection: str, filter_dict: dict) -> Optional[Dict[str, Any]]:
        return serialize_doc(self.db[collection].find_one(filter_dict))

    def find(
        self,
        collection: str,
        filter_dict: Optional[dict] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return [serialize_doc(d) for d in cursor]

    def update(
        self,
        collection: str,
        doc_id: Any,
        fields: dict,
        inc: Optional[dict] = None,
        match: Optional[dict] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Apply $set/$inc to one document and return it after the write.

        `match` narrows the filter beyond the id (compare-and-swap); None is
        returned when no document matched.
        """
        update: Dict[str, Any] = {}
        if fields:
            update["$set"] = fields
        if inc:
            update["$inc"] = inc
        filter_dict = {"_id": doc_id}
        if match:
            filter_dict.update(match)
        if not update:
            return serialize_doc(self.db[collection].find_one(filter_dict))
        doc = self.db[collection].find_one_and_update(
            filter_dict, update, return_document=ReturnDocument.AFTER
        )
        return serialize_doc(doc)

    def delete(self, collection: str, doc_id: Any) -> bool:
        return self.db[collection].delete_one({"_id": doc_id}).deleted_count > 0

    def delete_many(self, collection: str, filter_dict: Optional[dict] = None) -> int:
        return self.db[collection].delete_many(filter_dict or {}).deleted_count

    def count(self, collection: str, filter_dict: Optional[dict] = None) -> int:
        return self.db[collection].count_documents(filter_dict or {})

    def exists(self, collection: str, filter_dict: dict) -> bool:
        return self.db[collection].count_documents(filter_dict, limit=1) > 0

    def next_sequence(self, name: str) -> int:
        doc = self.db["counters"].find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(doc["seq"])

    def ensure_indexes(self):
        for collection, fields in UNIQUE_FIELDS.items():
            for field in fields:
                # sparse: documents without the field do not collide
                self.db[collection].create_index([(field, ASCENDING)], unique=True, sparse=True)

    def collection_names(self) -> List[str]:
        return self.db.list_collection_names()


NEWEST_FIRST: Sort = [("created_at", DESCENDING)]
BY_NAME: Sort = [("name", ASCENDING)]


_indexes_ready = False


def get_store() -> EntityStore:
    global _indexes_ready
    if db is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    store = EntityStore(db)
    if not _indexes_ready:
        store.ensure_indexes()
        _indexes_ready = True
    return store
