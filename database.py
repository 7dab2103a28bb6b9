"""
MongoDB connection and document store for the catalog.

The connection is configured from DATABASE_URL / DATABASE_NAME. When either
is missing ``db`` stays None and requests needing it fail with a 500.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from config import settings
from errors import InternalFailureError

logger = logging.getLogger(__name__)

PRODUCT_COLLECTION = "product"
CATEGORY_COLLECTION = "category"

client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.DATABASE_URL and settings.DATABASE_NAME:
    client = MongoClient(settings.DATABASE_URL)
    db = client[settings.DATABASE_NAME]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """Return the ObjectId for a 24-hex string, or None when malformed."""
    if not isinstance(value, str) or len(value) != 24 or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


class DocumentStore:
    """Thin wrapper over one collection exposing the operations the catalogs use."""

    def __init__(self, collection: Collection):
        self.collection = collection

    def find_one(self, filt: Dict[str, Any]) -> Optional[dict]:
        return self.collection.find_one(filt)

    def find(self, filt: Optional[Dict[str, Any]] = None) -> List[dict]:
        return list(self.collection.find(filt or {}))

    def find_by_id(self, _id: ObjectId) -> Optional[dict]:
        return self.collection.find_one({"_id": _id})

    def insert(self, data: Dict[str, Any]) -> dict:
        """Insert a document with server-assigned timestamps.

        Raises pymongo's DuplicateKeyError when a unique index rejects it.
        """
        doc = dict(data)
        now = _now()
        doc["createdAt"] = now
        doc["updatedAt"] = now
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def update_by_id(self, _id: ObjectId, changes: Dict[str, Any]) -> Optional[dict]:
        return self.collection.find_one_and_update(
            {"_id": _id},
            {"$set": {**changes, "updatedAt": _now()}},
            return_document=ReturnDocument.AFTER,
        )

    def add_to_set(self, _id: ObjectId, field: str, value: Any) -> bool:
        """Atomically append ``value`` to an array field unless already present."""
        result = self.collection.update_one(
            {"_id": _id},
            {"$addToSet": {field: value}, "$set": {"updatedAt": _now()}},
        )
        return result.matched_count == 1

    def pull(self, _id: ObjectId, field: str, value: Any) -> bool:
        """Atomically remove every occurrence of ``value`` from an array field."""
        result = self.collection.update_one(
            {"_id": _id},
            {"$pull": {field: value}, "$set": {"updatedAt": _now()}},
        )
        return result.matched_count == 1

    def delete_by_id(self, _id: ObjectId) -> bool:
        return self.collection.delete_one({"_id": _id}).deleted_count == 1


def ensure_indexes(database: Database) -> None:
    """Create the unique indexes backing the catalog invariants."""
    products = database[PRODUCT_COLLECTION]
    products.create_index([("id", ASCENDING)], unique=True)
    products.create_index([("title", ASCENDING)], unique=True)
    products.create_index([("category", ASCENDING)])
    database[CATEGORY_COLLECTION].create_index([("nameKey", ASCENDING)], unique=True)
    logger.info("Indexes ensured on %s", database.name)


def get_db() -> Database:
    """
    Dependency for getting the database handle.
    Use in FastAPI route dependencies.
    """
    if db is None:
        raise InternalFailureError("Database is not configured")
    return db
