from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument
from pymongo.database import Database

from cascade import CascadeDeleter, get_deleter
from database import create_document, get_db, utcnow
from schemas import Playlist, PlaylistRequest
from security import get_current_user
from utils import api_response, attach_users, in_order, objid, require_owned

router = APIRouter(prefix="/playlist", tags=["Playlists"])


def _with_videos(db: Database, playlists: list) -> list:
    """Swap each playlist's video ids for the videos, kept in playlist order."""
    ids = list({vid for p in playlists for vid in p.get("videos") or []})
    videos = attach_users(db, list(db["video"].find({"_id": {"$in": ids}}))) if ids else []
    for p in playlists:
        p["videos"] = in_order(videos, p.get("videos") or [])
    return playlists


def _set_membership(db: Database, user: dict, playlist_id: str, video_id: str, op: str) -> dict:
    pid = objid(playlist_id, "playlist id")
    vid = objid(video_id, "video id")
    require_owned(db, "playlist", pid, user["_id"], "Playlist")
    if op == "$addToSet" and not db["video"].find_one({"_id": vid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Video not found")
    playlist = db["playlist"].find_one_and_update(
        {"_id": pid, "owner": user["_id"]},
        {op: {"videos": vid}, "$set": {"updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if playlist is None:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return playlist


@router.post("", status_code=201)
def create_playlist(payload: PlaylistRequest, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    doc = create_document(db, "playlist", Playlist(name=payload.name, description=payload.description, owner=user["_id"]))
    return api_response(201, doc, "Playlist created successfully")


@router.get("/user/{user_id}")
def user_playlists(user_id: str, db: Database = Depends(get_db)):
    playlists = list(db["playlist"].find({"owner": objid(user_id, "user id")}).sort("created_at", -1))
    return api_response(200, _with_videos(db, playlists), "Playlists fetched successfully")


@router.get("/{playlist_id}")
def get_playlist(playlist_id: str, db: Database = Depends(get_db)):
    playlist = db["playlist"].find_one({"_id": objid(playlist_id, "playlist id")})
    if not playlist:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return api_response(200, _with_videos(db, [playlist])[0], "Playlist fetched successfully")


@router.patch("/add/{video_id}/{playlist_id}")
def add_video(video_id: str, playlist_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    playlist = _set_membership(db, user, playlist_id, video_id, "$addToSet")
    return api_response(200, playlist, "Video added to playlist")


@router.patch("/remove/{video_id}/{playlist_id}")
def remove_video(video_id: str, playlist_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    playlist = _set_membership(db, user, playlist_id, video_id, "$pull")
    return api_response(200, playlist, "Video removed from playlist")


@router.patch("/{playlist_id}")
def update_playlist(
    playlist_id: str,
    payload: PlaylistRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    pid = objid(playlist_id, "playlist id")
    require_owned(db, "playlist", pid, user["_id"], "Playlist")
    playlist = db["playlist"].find_one_and_update(
        {"_id": pid, "owner": user["_id"]},
        {"$set": {"name": payload.name, "description": payload.description, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if playlist is None:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return api_response(200, playlist, "Playlist updated successfully")


@router.delete("/{playlist_id}")
def delete_playlist(
    playlist_id: str,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    deleter: CascadeDeleter = Depends(get_deleter),
):
    pid = objid(playlist_id, "playlist id")
    require_owned(db, "playlist", pid, user["_id"], "Playlist")
    if deleter.delete_owned("playlist", pid, user["_id"]) is None:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return api_response(200, {}, "Playlist deleted successfully")
