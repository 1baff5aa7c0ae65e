"""
Comments and their replies.

Comments form a two-level tree: top-level comments have no parent, replies
point at a top-level comment on the same video and can not be replied to.
"""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import ReturnDocument
from pymongo.database import Database

from cascade import CascadeDeleter, get_deleter
from database import create_document, get_db, paginate, utcnow
from schemas import Comment, ContentRequest
from security import get_current_user, get_optional_user
from utils import api_response, attach_likes, attach_users, objid, require_owned

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/comments", tags=["Comments"])


def _comment_page(db: Database, match: dict, viewer_id, page: int, limit: int) -> dict:
    result = paginate(db["comment"], match, [("created_at", -1), ("_id", -1)], page, limit)
    attach_likes(db, "comment", result["items"], viewer_id)
    attach_users(db, result["items"])
    for c in result["items"]:
        c["replies_count"] = len(c.get("replies") or [])
    return result


def _update_content(db: Database, comment_id: str, user_id, content: str, replies: bool) -> dict:
    cid = objid(comment_id, "comment id")
    label = "Reply" if replies else "Comment"
    comment = require_owned(db, "comment", cid, user_id, label)
    if bool(comment.get("parent_comment")) != replies:
        raise HTTPException(status_code=400, detail=f"Not a {label.lower()}")
    updated = db["comment"].find_one_and_update(
        {"_id": cid, "owner": user_id},
        {"$set": {"content": content, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return updated


def _delete(db: Database, deleter: CascadeDeleter, comment_id: str, user_id, label: str):
    cid = objid(comment_id, "comment id")
    require_owned(db, "comment", cid, user_id, label)
    if deleter.delete_owned("comment", cid, user_id) is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")


@router.get("/{video_id}")
def list_video_comments(
    video_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    viewer: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    """Top-level comments of a video, newest first."""
    vid = objid(video_id, "video id")
    if not db["video"].find_one({"_id": vid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Video not found")
    viewer_id = viewer["_id"] if viewer else None
    result = _comment_page(db, {"video": vid, "parent_comment": None}, viewer_id, page, limit)
    return api_response(200, result, "Comments fetched successfully")


@router.post("/{video_id}", status_code=201)
def add_comment(
    video_id: str,
    payload: ContentRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    vid = objid(video_id, "video id")
    if not db["video"].find_one({"_id": vid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Video not found")
    doc = create_document(db, "comment", Comment(content=payload.content, owner=user["_id"], video=vid))
    return api_response(201, doc, "Comment added successfully")


@router.patch("/c/{comment_id}")
def update_comment(
    comment_id: str,
    payload: ContentRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    updated = _update_content(db, comment_id, user["_id"], payload.content, replies=False)
    return api_response(200, updated, "Comment edited successfully")


@router.delete("/c/{comment_id}")
def delete_comment(
    comment_id: str,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    deleter: CascadeDeleter = Depends(get_deleter),
):
    _delete(db, deleter, comment_id, user["_id"], "Comment")
    return api_response(200, {}, "Comment deleted successfully")


# -------------------- Replies --------------------

@router.get("/r/{comment_id}")
def list_replies(
    comment_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    viewer: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    cid = objid(comment_id, "comment id")
    if not db["comment"].find_one({"_id": cid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Comment not found")
    viewer_id = viewer["_id"] if viewer else None
    result = _comment_page(db, {"parent_comment": cid}, viewer_id, page, limit)
    return api_response(200, result, "Replies fetched successfully")


@router.post("/r/{comment_id}", status_code=201)
def add_reply(
    comment_id: str,
    payload: ContentRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    parent_id = objid(comment_id, "comment id")
    parent = db["comment"].find_one({"_id": parent_id})
    if not parent:
        raise HTTPException(status_code=404, detail="Comment not found")
    if parent.get("parent_comment"):
        raise HTTPException(status_code=400, detail="Replies can not be replied to")

    reply = Comment(content=payload.content, owner=user["_id"], video=parent["video"], parent_comment=parent_id)
    doc = create_document(db, "comment", reply)
    if db["comment"].update_one({"_id": parent_id}, {"$push": {"replies": doc["_id"]}}).matched_count == 0:
        # parent was deleted in the meantime
        logger.info("Dropping reply to a deleted comment", parent=comment_id, reply=str(doc["_id"]))
        db["comment"].delete_one({"_id": doc["_id"]})
        raise HTTPException(status_code=404, detail="Comment not found")
    return api_response(201, doc, "Reply added successfully")


@router.patch("/reply/{reply_id}")
def update_reply(
    reply_id: str,
    payload: ContentRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    updated = _update_content(db, reply_id, user["_id"], payload.content, replies=True)
    return api_response(200, updated, "Reply edited successfully")


@router.delete("/reply/{reply_id}")
def delete_reply(
    reply_id: str,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    deleter: CascadeDeleter = Depends(get_deleter),
):
    _delete(db, deleter, reply_id, user["_id"], "Reply")
    return api_response(200, {}, "Reply deleted successfully")
