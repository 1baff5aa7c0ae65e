"""
Cascading deletes.

MongoDB has no foreign keys, so removing a user, video, comment or tweet has
to clean up every document that points at it. The whole dependency graph is
declared once in ``DELETION_GRAPH``: for each collection, the ordered steps to
run after its primary document has been removed. ``CascadeDeleter.delete`` is
the only entry point.

Consistency is best-effort. The primary document goes first, then each step
runs in order with no surrounding transaction. Steps are idempotent: a child
that is already gone is skipped, and a step that matches nothing does nothing.
A failing step is logged and the cascade moves on, except for steps marked
strict, whose error reaches the caller once the step has finished.
"""
from collections import namedtuple
from typing import Any, Dict, Optional

import structlog
from bson import ObjectId
from fastapi import Depends
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import get_db
from storage import AssetStore, AssetStoreError, get_asset_store
from utils import ApiError

logger = structlog.get_logger(__name__)

CascadeStep = namedtuple("CascadeStep", ["name", "action", "strict"])


class CascadeError(ApiError):
    """A strict cascade step failed after the primary document was deleted."""

    def __init__(self, message: str):
        super().__init__(500, message)


# -------------------- User --------------------

def _delete_user_videos(deleter: "CascadeDeleter", user: Dict[str, Any]) -> int:
    ids = [v["_id"] for v in deleter.db["video"].find({"owner": user["_id"]}, {"_id": 1})]
    return sum(1 for vid in ids if deleter.delete("video", {"_id": vid}))


def _delete_user_likes(deleter, user):
    return deleter.db["like"].delete_many({"liked_by": user["_id"]}).deleted_count


def _delete_user_comments(deleter, user):
    ids = [c["_id"] for c in deleter.db["comment"].find({"owner": user["_id"]}, {"_id": 1})]
    return sum(1 for cid in ids if deleter.delete("comment", {"_id": cid}))


def _delete_user_tweets(deleter, user):
    ids = [t["_id"] for t in deleter.db["tweet"].find({"owner": user["_id"]}, {"_id": 1})]
    return sum(1 for tid in ids if deleter.delete("tweet", {"_id": tid}))


def _delete_user_subscriptions(deleter, user):
    return deleter.db["subscription"].delete_many(
        {"$or": [{"subscriber": user["_id"]}, {"channel": user["_id"]}]}
    ).deleted_count


def _delete_user_playlists(deleter, user):
    ids = [p["_id"] for p in deleter.db["playlist"].find({"owner": user["_id"]}, {"_id": 1})]
    return sum(1 for pid in ids if deleter.delete("playlist", {"_id": pid}))


def _delete_user_assets(deleter, user):
    failed = []
    deleted = 0
    for field in ("avatar", "cover_image"):
        asset = user.get(field) or {}
        try:
            deleter.assets.delete(asset.get("public_id"), "image")
            deleted += 1
        except AssetStoreError as e:
            logger.error("User asset delete failed", user_id=str(user["_id"]), field=field, error=str(e))
            failed.append(field)
    if failed:
        raise CascadeError(f"Account deleted but removing {', '.join(failed)} from the asset store failed")
    return deleted


# -------------------- Video --------------------

def _delete_video_comments(deleter, video):
    ids = [c["_id"] for c in deleter.db["comment"].find({"video": video["_id"]}, {"_id": 1})]
    # replies disappear together with their parent, so later ids may already be gone
    return sum(1 for cid in ids if deleter.delete("comment", {"_id": cid}))


def _delete_video_likes(deleter, video):
    return deleter.db["like"].delete_many({"kind": "video", "target": video["_id"]}).deleted_count


def _pull_from_watch_history(deleter, video):
    return deleter.db["user"].update_many(
        {"watch_history": video["_id"]}, {"$pull": {"watch_history": video["_id"]}}
    ).modified_count


def _pull_from_playlists(deleter, video):
    return deleter.db["playlist"].update_many(
        {"videos": video["_id"]}, {"$pull": {"videos": video["_id"]}}
    ).modified_count


def _delete_video_file(deleter, video):
    deleter.assets.delete((video.get("video_file") or {}).get("public_id"), "video")
    return 1


def _delete_video_thumbnail(deleter, video):
    deleter.assets.delete((video.get("thumbnail") or {}).get("public_id"), "image")
    return 1


# -------------------- Comment --------------------

def _delete_comment_likes(deleter, comment):
    return deleter.db["like"].delete_many({"kind": "comment", "target": comment["_id"]}).deleted_count


def _detach_from_parent(deleter, comment):
    parent = comment.get("parent_comment")
    if not parent:
        return 0
    return deleter.db["comment"].update_one(
        {"_id": parent}, {"$pull": {"replies": comment["_id"]}}
    ).modified_count


def _delete_replies(deleter, comment):
    replies = comment.get("replies") or []
    return sum(1 for rid in replies if deleter.delete("comment", {"_id": rid}))


# -------------------- Tweet --------------------

def _delete_tweet_likes(deleter, tweet):
    return deleter.db["like"].delete_many({"kind": "tweet", "target": tweet["_id"]}).deleted_count


DELETION_GRAPH = {
    "user": (
        CascadeStep("videos", _delete_user_videos, False),
        CascadeStep("likes", _delete_user_likes, False),
        CascadeStep("comments", _delete_user_comments, False),
        CascadeStep("tweets", _delete_user_tweets, False),
        CascadeStep("subscriptions", _delete_user_subscriptions, False),
        CascadeStep("playlists", _delete_user_playlists, False),
        CascadeStep("assets", _delete_user_assets, True),
    ),
    "video": (
        CascadeStep("comments", _delete_video_comments, False),
        CascadeStep("likes", _delete_video_likes, False),
        CascadeStep("watch_history", _pull_from_watch_history, False),
        CascadeStep("playlists", _pull_from_playlists, False),
        CascadeStep("video_file", _delete_video_file, False),
        CascadeStep("thumbnail", _delete_video_thumbnail, False),
    ),
    "comment": (
        CascadeStep("likes", _delete_comment_likes, False),
        CascadeStep("parent", _detach_from_parent, False),
        CascadeStep("replies", _delete_replies, False),
    ),
    "tweet": (
        CascadeStep("likes", _delete_tweet_likes, False),
    ),
    "playlist": (),
}


class CascadeDeleter:
    def __init__(self, db: Database, assets: AssetStore):
        self.db = db
        self.assets = assets

    def delete(self, kind: str, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Delete the single ``kind`` document matching ``filter_dict`` and everything
        hanging off it. Returns the deleted document, or None if nothing matched."""
        steps = DELETION_GRAPH[kind]
        doc = self.db[kind].find_one_and_delete(filter_dict)
        if doc is None:
            return None
        log = logger.bind(kind=kind, id=str(doc["_id"]))
        for step in steps:
            try:
                count = step.action(self, doc)
            except (PyMongoError, AssetStoreError) as e:
                if step.strict:
                    raise
                log.warning("Cascade step failed", step=step.name, error=str(e))
                continue
            log.debug("Cascade step done", step=step.name, count=count)
        log.info("Deleted", steps=len(steps))
        return doc

    def delete_owned(self, kind: str, doc_id: ObjectId, owner: ObjectId) -> Optional[Dict[str, Any]]:
        """Owner-initiated delete: only matches when ``owner`` owns the document."""
        return self.delete(kind, {"_id": doc_id, "owner": owner})


def get_deleter(db: Database = Depends(get_db), assets: AssetStore = Depends(get_asset_store)) -> CascadeDeleter:
    return CascadeDeleter(db, assets)
