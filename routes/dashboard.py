from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import get_db, get_documents
from security import get_current_user
from utils import api_response, objid

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def _require_channel(db: Database, channel_id: str):
    cid = objid(channel_id, "channel id")
    if not db["user"].find_one({"_id": cid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Channel not found")
    return cid


@router.get("/stats/{channel_id}")
def channel_stats(channel_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    cid = _require_channel(db, channel_id)
    totals = list(db["video"].aggregate([
        {"$match": {"owner": cid}},
        {"$group": {"_id": None, "total_videos": {"$sum": 1}, "total_views": {"$sum": "$views"}}},
    ]))
    totals = totals[0] if totals else {}
    video_ids = db["video"].distinct("_id", {"owner": cid})
    stats = {
        "subscribers_count": db["subscription"].count_documents({"channel": cid}),
        "channels_subscribed_to_count": db["subscription"].count_documents({"subscriber": cid}),
        "total_videos": totals.get("total_videos", 0),
        "total_views": totals.get("total_views", 0),
        "total_likes": db["like"].count_documents({"kind": "video", "target": {"$in": video_ids}}),
    }
    return api_response(200, stats, "Channel stats fetched successfully")


@router.get("/videos/{channel_id}")
def channel_videos(channel_id: str, db: Database = Depends(get_db)):
    cid = _require_channel(db, channel_id)
    videos = get_documents(db, "video", {"owner": cid, "is_published": True})
    return api_response(200, videos, "Channel videos fetched successfully")
