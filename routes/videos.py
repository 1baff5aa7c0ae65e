import re
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from pymongo import ReturnDocument
from pymongo.database import Database

from cascade import CascadeDeleter, get_deleter
from database import create_document, get_db, paginate, utcnow
from limiter import upload_limit
from schemas import Asset, Category, Video
from security import get_current_user, get_optional_user
from storage import AssetStore, AssetStoreError, discard_uploads, get_asset_store
from utils import (
    OWNER_PROJECTION,
    api_response,
    attach_likes,
    attach_users,
    objid,
    parse_tags,
    require_owned,
    subscriber_stats,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/videos", tags=["Videos"])

SORT_FIELDS = ("created_at", "duration", "views")


@router.get("")
def list_videos(
    query: Optional[str] = None,
    user_id: Optional[str] = None,
    sort_by: str = Query("created_at"),
    sort_type: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    viewer: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    if sort_by not in SORT_FIELDS:
        raise HTTPException(status_code=400, detail=f"sort_by must be one of {', '.join(SORT_FIELDS)}")

    match = {"is_published": True}
    if user_id:
        owner = objid(user_id, "user id")
        match = {"owner": owner}
        # unpublished videos are only listed for their owner
        if not viewer or viewer["_id"] != owner:
            match["is_published"] = True
    if query:
        # match the query literally
        pattern = re.escape(query.strip())
        match["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]

    sort = [(sort_by, 1 if sort_type == "asc" else -1), ("_id", 1)]
    result = paginate(db["video"], match, sort, page, limit)
    attach_users(db, result["items"])
    return api_response(200, result, "Videos fetched successfully")


@router.post("", status_code=201)
@upload_limit
def publish_video(
    request: Request,
    title: str = Form(..., min_length=1, max_length=120),
    description: str = Form(..., min_length=1),
    is_published: bool = Form(True),
    category: Optional[Category] = Form(None),
    tags: Optional[str] = Form(None),  # comma separated
    video_file: UploadFile = File(...),
    thumbnail: UploadFile = File(...),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    assets: AssetStore = Depends(get_asset_store),
):
    uploaded = []
    try:
        uploaded_video = assets.upload(video_file.file, "video")
        uploaded.append((uploaded_video["public_id"], "video"))
        uploaded_thumb = assets.upload(thumbnail.file, "image")
        uploaded.append((uploaded_thumb["public_id"], "image"))

        video = Video(
            owner=user["_id"],
            title=title.strip(),
            description=description.strip(),
            duration=uploaded_video.get("duration") or 0,
            is_published=is_published,
            video_file=Asset(url=uploaded_video["url"], public_id=uploaded_video["public_id"]),
            thumbnail=Asset(url=uploaded_thumb["url"], public_id=uploaded_thumb["public_id"]),
            category=category,
            tags=parse_tags(tags),
        )
        doc = create_document(db, "video", video)
    except Exception:
        discard_uploads(assets, uploaded)
        raise
    logger.info("Video published", video_id=str(doc["_id"]), owner=str(user["_id"]))
    return api_response(201, doc, "Video uploaded successfully")


@router.get("/{video_id}")
def get_video(
    video_id: str,
    viewer: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    vid = objid(video_id, "video id")
    # every fetch counts as a view
    video = db["video"].find_one_and_update(
        {"_id": vid}, {"$inc": {"views": 1}}, return_document=ReturnDocument.AFTER
    )
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    viewer_id = viewer["_id"] if viewer else None
    if viewer_id:
        db["user"].update_one({"_id": viewer_id}, {"$addToSet": {"watch_history": vid}})

    attach_likes(db, "video", [video], viewer_id)
    owner = db["user"].find_one({"_id": video["owner"]}, OWNER_PROJECTION)
    if owner:
        owner.update(subscriber_stats(db, owner["_id"], viewer_id))
    video["owner"] = owner
    return api_response(200, video, "Video fetched successfully")


@router.patch("/{video_id}")
@upload_limit
def update_video(
    request: Request,
    video_id: str,
    title: str = Form(..., min_length=1, max_length=120),
    description: str = Form(..., min_length=1),
    category: Optional[Category] = Form(None),
    tags: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    assets: AssetStore = Depends(get_asset_store),
):
    vid = objid(video_id, "video id")
    video = require_owned(db, "video", vid, user["_id"], "Video")

    changes = {
        "title": title.strip(),
        "description": description.strip(),
        "category": category.value if category else None,
        "tags": parse_tags(tags),
        "updated_at": utcnow(),
    }
    uploaded = []
    try:
        if thumbnail is not None:
            res = assets.upload(thumbnail.file, "image")
            uploaded.append((res["public_id"], "image"))
            changes["thumbnail"] = Asset(url=res["url"], public_id=res["public_id"]).model_dump()

        updated = db["video"].find_one_and_update(
            {"_id": vid, "owner": user["_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise HTTPException(status_code=404, detail="Video not found")
    except Exception:
        discard_uploads(assets, uploaded)
        raise

    if thumbnail is not None:
        old_id = (video.get("thumbnail") or {}).get("public_id")
        try:
            assets.delete(old_id, "image")
        except AssetStoreError as e:
            logger.warning("Old thumbnail left on asset store", video_id=video_id, public_id=old_id, error=str(e))
    return api_response(200, updated, "Video updated successfully")


@router.delete("/{video_id}")
def delete_video(
    video_id: str,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    deleter: CascadeDeleter = Depends(get_deleter),
):
    vid = objid(video_id, "video id")
    require_owned(db, "video", vid, user["_id"], "Video")
    if deleter.delete_owned("video", vid, user["_id"]) is None:
        raise HTTPException(status_code=404, detail="Video not found")
    return api_response(200, {}, "Video deleted successfully")


@router.patch("/toggle/publish/{video_id}")
def toggle_publish_status(
    video_id: str,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    vid = objid(video_id, "video id")
    video = require_owned(db, "video", vid, user["_id"], "Video")
    published = not video.get("is_published", False)
    result = db["video"].update_one(
        {"_id": vid, "owner": user["_id"]},
        {"$set": {"is_published": published, "updated_at": utcnow()}},
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Video not found")
    state = "published" if published else "unpublished"
    return api_response(200, {"is_published": published}, f"Video successfully {state}")
