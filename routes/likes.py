from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import get_db
from repository import toggle_like
from schemas import LikeTarget, TargetKind
from security import get_current_user
from utils import api_response, attach_users, in_order, objid

router = APIRouter(prefix="/likes", tags=["Likes"])


def _toggle(db: Database, user: dict, kind: TargetKind, target_id: str):
    oid = objid(target_id, f"{kind.value} id")
    target = LikeTarget(kind=kind, target_id=str(oid))
    if not db[target.collection].find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail=f"{kind.value.capitalize()} not found")
    liked = toggle_like(db, user["_id"], target)
    return api_response(200, {"is_liked": liked}, "Successfully toggled like")


@router.post("/toggle/v/{video_id}")
def toggle_video_like(video_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return _toggle(db, user, TargetKind.VIDEO, video_id)


@router.post("/toggle/c/{comment_id}")
def toggle_comment_like(comment_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return _toggle(db, user, TargetKind.COMMENT, comment_id)


@router.post("/toggle/t/{tweet_id}")
def toggle_tweet_like(tweet_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return _toggle(db, user, TargetKind.TWEET, tweet_id)


@router.get("/videos")
def liked_videos(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    likes = db["like"].find(
        {"liked_by": user["_id"], "kind": TargetKind.VIDEO.value}
    ).sort("created_at", -1)
    ids = [like["target"] for like in likes]
    videos = in_order(db["video"].find({"_id": {"$in": ids}}), ids)
    return api_response(200, attach_users(db, videos), "Liked videos fetched successfully")
