from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import HTTPException

# Fields never sent back to clients
PRIVATE_USER_FIELDS = ("password", "refresh_token")

# Projection used when a user is embedded into another document
OWNER_PROJECTION = {"username": 1, "full_name": 1, "avatar": 1}


class ApiError(HTTPException):
    """Error raised outside the request handlers; rendered like any HTTPException."""

    def __init__(self, status_code: int, message: str, errors: Optional[List[Any]] = None):
        super().__init__(status_code=status_code, detail=message)
        self.errors = errors or []


def objid(id_str: str, name: str = "id") -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    if not id_str or not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail=f"Invalid {name}")
    return ObjectId(id_str)


def to_str_id(doc):
    """Make a Mongo document JSON friendly: ``_id`` becomes ``id`` and nested
    ObjectIds and datetimes become strings."""
    if isinstance(doc, list):
        return [to_str_id(item) for item in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat()
    if not isinstance(doc, dict):
        return doc
    d = {}
    for k, v in doc.items():
        if k == "_id":
            d["id"] = to_str_id(v)
        else:
            d[k] = to_str_id(v)
    return d


def public_user(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not user:
        return user
    return to_str_id({k: v for k, v in user.items() if k not in PRIVATE_USER_FIELDS})


def api_response(status_code: int, data: Any, message: str = "Success") -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "data": to_str_id(data),
        "message": message,
        "success": status_code < 400,
    }


def parse_tags(tags: Optional[str]) -> List[str]:
    """Comma separated tags to a duplicate-free list, keeping first-seen order."""
    if not tags:
        return []
    seen = []
    for t in tags.split(","):
        t = t.strip()
        if t and t not in seen:
            seen.append(t)
    return seen


def attach_users(db, docs: List[Dict[str, Any]], field: str = "owner") -> List[Dict[str, Any]]:
    """Replace the user id held in ``field`` with a small public profile, one query for all docs."""
    ids = list({d[field] for d in docs if d.get(field)})
    users = {u["_id"]: u for u in db["user"].find({"_id": {"$in": ids}}, OWNER_PROJECTION)} if ids else {}
    for d in docs:
        d[field] = users.get(d.get(field))
    return docs


def attach_likes(db, kind: str, docs: List[Dict[str, Any]], viewer_id=None) -> List[Dict[str, Any]]:
    """Add ``likes_count`` and ``is_liked`` (for ``viewer_id``) to each doc."""
    ids = [d["_id"] for d in docs]
    match = {"kind": kind, "target": {"$in": ids}}
    counts = {
        row["_id"]: row["count"]
        for row in db["like"].aggregate([
            {"$match": match},
            {"$group": {"_id": "$target", "count": {"$sum": 1}}},
        ])
    } if ids else {}
    liked = set()
    if viewer_id is not None and ids:
        liked = {like["target"] for like in db["like"].find({**match, "liked_by": viewer_id}, {"target": 1})}
    for d in docs:
        d["likes_count"] = counts.get(d["_id"], 0)
        d["is_liked"] = d["_id"] in liked
    return docs


def subscriber_stats(db, channel_id, viewer_id=None) -> Dict[str, Any]:
    stats = {
        "subscribers_count": db["subscription"].count_documents({"channel": channel_id}),
        "is_subscribed": False,
    }
    if viewer_id is not None:
        stats["is_subscribed"] = db["subscription"].find_one(
            {"channel": channel_id, "subscriber": viewer_id}, {"_id": 1}
        ) is not None
    return stats


def in_order(docs, ids):
    """Reorder ``docs`` to follow ``ids``, dropping ids with no matching doc."""
    by_id = {d["_id"]: d for d in docs}
    return [by_id[i] for i in ids if i in by_id]


def require_owned(db, collection: str, doc_id: ObjectId, user_id: ObjectId, label: str) -> Dict[str, Any]:
    """Fetch a document the caller must own: 404 if missing, 403 if owned by someone else."""
    doc = db[collection].find_one({"_id": doc_id})
    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    if doc.get("owner") != user_id:
        raise HTTPException(status_code=403, detail=f"You are not the owner of this {label.lower()}")
    return doc
