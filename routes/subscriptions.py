from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import get_db
from repository import toggle_subscription
from security import get_current_user
from utils import OWNER_PROJECTION, api_response, in_order, objid

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


def _users(db: Database, ids: list) -> list:
    """Public profiles for ``ids``, in the same order; deleted users are skipped."""
    return in_order(db["user"].find({"_id": {"$in": ids}}, OWNER_PROJECTION), ids)


@router.post("/c/{channel_id}")
def toggle_channel_subscription(
    channel_id: str,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    channel = objid(channel_id, "channel id")
    if channel == user["_id"]:
        raise HTTPException(status_code=400, detail="You can not subscribe to yourself")
    if not db["user"].find_one({"_id": channel}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Channel not found")
    subscribed = toggle_subscription(db, user["_id"], channel)
    return api_response(200, {"is_subscribed": subscribed}, "Successfully toggled subscription")


@router.get("/c/{channel_id}")
def channel_subscribers(channel_id: str, db: Database = Depends(get_db)):
    channel = objid(channel_id, "channel id")
    subs = db["subscription"].find({"channel": channel}).sort("created_at", -1)
    subscribers = _users(db, [s["subscriber"] for s in subs])
    data = {"subscribers": subscribers, "subscribers_count": len(subscribers)}
    return api_response(200, data, "Channel subscribers fetched successfully")


@router.get("/u/{subscriber_id}")
def subscribed_channels(subscriber_id: str, db: Database = Depends(get_db)):
    subscriber = objid(subscriber_id, "subscriber id")
    subs = db["subscription"].find({"subscriber": subscriber}).sort("created_at", -1)
    channels = _users(db, [s["channel"] for s in subs])
    return api_response(200, channels, "Subscribed channels fetched successfully")
