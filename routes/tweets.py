from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument
from pymongo.database import Database

from cascade import CascadeDeleter, get_deleter
from database import create_document, get_db, utcnow
from schemas import ContentRequest, Tweet
from security import get_current_user, get_optional_user
from utils import api_response, attach_likes, attach_users, objid, require_owned

router = APIRouter(prefix="/tweets", tags=["Tweets"])


@router.post("", status_code=201)
def create_tweet(payload: ContentRequest, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    doc = create_document(db, "tweet", Tweet(content=payload.content, owner=user["_id"]))
    return api_response(201, doc, "Tweet created successfully")


@router.get("/user/{user_id}")
def user_tweets(
    user_id: str,
    viewer: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    uid = objid(user_id, "user id")
    if not db["user"].find_one({"_id": uid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="User not found")
    tweets = list(db["tweet"].find({"owner": uid}).sort("created_at", -1))
    attach_likes(db, "tweet", tweets, viewer["_id"] if viewer else None)
    return api_response(200, attach_users(db, tweets), "Tweets fetched successfully")


@router.patch("/{tweet_id}")
def update_tweet(
    tweet_id: str,
    payload: ContentRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    tid = objid(tweet_id, "tweet id")
    require_owned(db, "tweet", tid, user["_id"], "Tweet")
    tweet = db["tweet"].find_one_and_update(
        {"_id": tid, "owner": user["_id"]},
        {"$set": {"content": payload.content, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if tweet is None:
        raise HTTPException(status_code=404, detail="Tweet not found")
    return api_response(200, tweet, "Tweet updated successfully")


@router.delete("/{tweet_id}")
def delete_tweet(
    tweet_id: str,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    deleter: CascadeDeleter = Depends(get_deleter),
):
    tid = objid(tweet_id, "tweet id")
    require_owned(db, "tweet", tid, user["_id"], "Tweet")
    if deleter.delete_owned("tweet", tid, user["_id"]) is None:
        raise HTTPException(status_code=404, detail="Tweet not found")
    return api_response(200, {}, "Tweet deleted successfully")
