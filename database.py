"""
MongoDB access helpers.

The database handle is created once by ``connect`` and passed around
explicitly: the app keeps it on ``app.state.db`` and routes receive it through
the ``get_db`` dependency.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import FieldError, NotFoundError, StoreError, ValidationError

logger = logging.getLogger(__name__)


def connect(url: str, name: str) -> Database:
    if not url or not name:
        raise StoreError("DATABASE_URL and DATABASE_NAME must be set")
    try:
        client = MongoClient(url, serverSelectionTimeoutMS=5000)
        client.admin.command("ping")
    except PyMongoError as e:
        raise StoreError(f"Could not connect to MongoDB: {e}") from e
    logger.info("MongoDB connected: %s", client.address)
    return client[name]


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["product"].create_index([("sku", ASCENDING)], unique=True, sparse=True)
    db["category"].create_index([("slug", ASCENDING)], unique=True, sparse=True)


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise StoreError("Database not configured")
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError([FieldError("id", "Invalid id")])


def to_public(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copy of a stored document with ObjectIds rendered as strings."""
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d


def _as_dict(data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return dict(data)


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    doc = _as_dict(data)
    doc.setdefault("created_at", now())
    doc.setdefault("updated_at", doc["created_at"])
    try:
        result = db[collection_name].insert_one(doc)
    except DuplicateKeyError as e:
        raise StoreError(f"Duplicate {collection_name} record", status_code=409) from e
    except PyMongoError as e:
        logger.error("Insert into %s failed: %s", collection_name, e)
        raise StoreError() from e
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None, skip: int = 0) -> List[Dict[str, Any]]:
    try:
        cursor = db[collection_name].find(filter_dict or {})
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)
    except PyMongoError as e:
        logger.error("Query on %s failed: %s", collection_name, e)
        raise StoreError() from e


def get_document(db: Database, collection_name: str, doc_id: str) -> Dict[str, Any]:
    try:
        doc = db[collection_name].find_one({"_id": oid(doc_id)})
    except PyMongoError as e:
        logger.error("Lookup in %s failed: %s", collection_name, e)
        raise StoreError() from e
    if not doc:
        raise NotFoundError(f"{collection_name.capitalize()} not found")
    return doc


def update_document(db: Database, collection_name: str, doc_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    changes = {**changes, "updated_at": now()}
    try:
        result = db[collection_name].update_one({"_id": oid(doc_id)}, {"$set": changes})
    except DuplicateKeyError as e:
        raise StoreError(f"Duplicate {collection_name} record", status_code=409) from e
    except PyMongoError as e:
        logger.error("Update on %s failed: %s", collection_name, e)
        raise StoreError() from e
    if result.matched_count == 0:
        raise NotFoundError(f"{collection_name.capitalize()} not found")
    return db[collection_name].find_one({"_id": oid(doc_id)})


def delete_document(db: Database, collection_name: str, doc_id: str) -> None:
    try:
        result = db[collection_name].delete_one({"_id": oid(doc_id)})
    except PyMongoError as e:
        logger.error("Delete on %s failed: %s", collection_name, e)
        raise StoreError() from e
    if result.deleted_count == 0:
        raise NotFoundError(f"{collection_name.capitalize()} not found")
