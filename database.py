"""
MongoDB access.

One client per process; collections are named after the lowercase entity
name (user, video, comment, tweet, like, subscription, playlist). Handlers get
the database through the ``get_db`` dependency so tests can swap it out.
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

import structlog
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from config import get_settings

logger = structlog.get_logger(__name__)

_settings = get_settings()
client = MongoClient(_settings.database_url)
db = client[_settings.database_name]


def get_db() -> Database:
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_indexes(database: Database) -> None:
    """Create the indexes the data model relies on, including the uniqueness
    constraints for usernames, emails, likes and subscriptions."""
    database["user"].create_index([("username", ASCENDING)], unique=True)
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["video"].create_index([("owner", ASCENDING), ("created_at", DESCENDING)])
    database["comment"].create_index([("video", ASCENDING)])
    database["comment"].create_index([("owner", ASCENDING)])
    database["tweet"].create_index([("owner", ASCENDING)])
    database["like"].create_index(
        [("liked_by", ASCENDING), ("kind", ASCENDING), ("target", ASCENDING)], unique=True
    )
    database["like"].create_index([("kind", ASCENDING), ("target", ASCENDING)])
    database["subscription"].create_index(
        [("subscriber", ASCENDING), ("channel", ASCENDING)], unique=True
    )
    database["subscription"].create_index([("channel", ASCENDING)])
    database["playlist"].create_index([("owner", ASCENDING)])
    logger.info("Indexes ensured", database=database.name)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert a document stamped with created_at/updated_at and return it with its _id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    doc["_id"] = database[collection_name].insert_one(doc).inserted_id
    return doc


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {}).sort("created_at", DESCENDING)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def paginate(
    collection: Collection,
    filter_dict: Dict[str, Any],
    sort: List[Tuple[str, int]],
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    """Fetch one page of ``collection`` matching ``filter_dict``.

    Returns ``{items, totalCount, page, limit, totalPages, hasNextPage}``.
    """
    page = max(page, 1)
    limit = max(limit, 1)
    total = collection.count_documents(filter_dict)
    items = list(collection.find(filter_dict).sort(sort).skip((page - 1) * limit).limit(limit))
    total_pages = math.ceil(total / limit) if total else 0
    return {
        "items": items,
        "totalCount": total,
        "page": page,
        "limit": limit,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
    }
