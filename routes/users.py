from typing import Optional

import structlog
from fastapi import APIRouter, Cookie, Depends, File, Form, HTTPException, Request, Response, UploadFile
from pydantic import EmailStr
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from cascade import CascadeDeleter, get_deleter
from config import Settings, get_settings
from database import create_document, get_db, utcnow
from limiter import upload_limit
from schemas import (
    Asset,
    ChangePasswordRequest,
    LoginRequest,
    RefreshTokenRequest,
    UpdateAccountRequest,
    User,
)
from security import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    TokenError,
    TokenService,
    get_current_user,
    get_optional_user,
    get_token_service,
    hash_password,
    verify_password,
)
from storage import AssetStore, AssetStoreError, discard_uploads, get_asset_store
from utils import OWNER_PROJECTION, api_response, attach_users, in_order, objid, public_user, subscriber_stats

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

PRIVATE = {"password": 0, "refresh_token": 0}


# -------------------- Helpers --------------------

def _set_auth_cookies(response: Response, settings: Settings, access_token: str, refresh_token: str):
    common = dict(httponly=True, secure=settings.cookie_secure, samesite="lax")
    response.set_cookie(ACCESS_COOKIE, access_token, max_age=settings.access_token_expire_minutes * 60, **common)
    response.set_cookie(REFRESH_COOKIE, refresh_token, max_age=settings.refresh_token_expire_days * 86400, **common)


def _clear_auth_cookies(response: Response, settings: Settings):
    response.delete_cookie(ACCESS_COOKIE, httponly=True, secure=settings.cookie_secure, samesite="lax")
    response.delete_cookie(REFRESH_COOKIE, httponly=True, secure=settings.cookie_secure, samesite="lax")


def _issue_tokens(db: Database, tokens: TokenService, user: dict):
    access_token = tokens.issue_access_token(user)
    refresh_token = tokens.issue_refresh_token(user["_id"])
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"refresh_token": refresh_token}})
    return access_token, refresh_token


def _replace_image(db: Database, assets: AssetStore, user_id, field: str, upload: UploadFile) -> dict:
    """Upload a new avatar/cover image and delete the one it replaces."""
    res = assets.upload(upload.file, "image")
    new = Asset(url=res["url"], public_id=res["public_id"])
    try:
        old = db["user"].find_one_and_update(
            {"_id": user_id},
            {"$set": {field: new.model_dump(), "updated_at": utcnow()}},
            projection={field: 1},
            return_document=ReturnDocument.BEFORE,
        )
        if old is None:
            raise HTTPException(status_code=404, detail="User not found")
    except Exception:
        discard_uploads(assets, [(new.public_id, "image")])
        raise
    previous = old.get(field) or {}
    try:
        assets.delete(previous.get("public_id"), "image")
    except AssetStoreError as e:
        logger.warning("Old image left on asset store", field=field, public_id=previous.get("public_id"), error=str(e))
    return db["user"].find_one({"_id": user_id}, PRIVATE)


# -------------------- Auth --------------------

@router.post("/register", status_code=201)
@upload_limit
def register(
    request: Request,
    full_name: str = Form(..., min_length=1),
    email: EmailStr = Form(...),
    username: str = Form(..., min_length=3, max_length=30),
    password: str = Form(..., min_length=1),
    avatar: UploadFile = File(...),
    cover_image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    assets: AssetStore = Depends(get_asset_store),
):
    username = username.strip().lower()
    email = email.strip().lower()
    if db["user"].find_one({"$or": [{"username": username}, {"email": email}]}):
        raise HTTPException(status_code=409, detail="User with email or username already exists")

    uploaded = []
    try:
        avatar_res = assets.upload(avatar.file, "image")
        uploaded.append((avatar_res["public_id"], "image"))
        cover_res = None
        if cover_image is not None:
            cover_res = assets.upload(cover_image.file, "image")
            uploaded.append((cover_res["public_id"], "image"))

        user = User(
            full_name=full_name.strip(),
            email=email,
            username=username,
            password=hash_password(password),
            avatar=Asset(url=avatar_res["url"], public_id=avatar_res["public_id"]),
            cover_image=Asset(url=cover_res["url"], public_id=cover_res["public_id"]) if cover_res else None,
        )
        doc = create_document(db, "user", user)
    except DuplicateKeyError:
        discard_uploads(assets, uploaded)
        raise HTTPException(status_code=409, detail="User with email or username already exists")
    except Exception:
        discard_uploads(assets, uploaded)
        raise
    logger.info("User registered", user_id=str(doc["_id"]), username=username)
    return api_response(201, public_user(doc), "User registered successfully")


@router.post("/login")
def login(
    payload: LoginRequest,
    response: Response,
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    if not payload.email and not payload.username:
        raise HTTPException(status_code=400, detail="Username or email is required")
    if payload.email:
        query = {"email": payload.email.lower()}
    else:
        query = {"username": payload.username.strip().lower()}
    user = db["user"].find_one(query)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not verify_password(payload.password, user.get("password", "")):
        raise HTTPException(status_code=401, detail="Invalid user credentials")

    access_token, refresh_token = _issue_tokens(db, tokens, user)
    _set_auth_cookies(response, settings, access_token, refresh_token)
    data = {"user": public_user(user), "access_token": access_token, "refresh_token": refresh_token}
    return api_response(200, data, "User logged in successfully")


@router.post("/logout")
def logout(
    response: Response,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    db["user"].update_one({"_id": user["_id"]}, {"$unset": {"refresh_token": 1}})
    _clear_auth_cookies(response, settings)
    return api_response(200, {}, "User logged out")


@router.post("/refresh-token")
def refresh_access_token(
    response: Response,
    payload: Optional[RefreshTokenRequest] = None,
    refresh_cookie: Optional[str] = Cookie(None, alias=REFRESH_COOKIE),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    incoming = (payload.refresh_token if payload else None) or refresh_cookie
    if not incoming:
        raise HTTPException(status_code=401, detail="Unauthorized request")
    try:
        claims = tokens.verify_refresh_token(incoming)
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))

    user = db["user"].find_one({"_id": objid(claims["_id"])})
    if not user:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if incoming != user.get("refresh_token"):
        raise HTTPException(status_code=401, detail="Refresh token is expired or used")

    access_token, refresh_token = _issue_tokens(db, tokens, user)
    _set_auth_cookies(response, settings, access_token, refresh_token)
    return api_response(200, {"access_token": access_token, "refresh_token": refresh_token}, "Access token refreshed")


# -------------------- Account --------------------

@router.get("/current-user")
def current_user(user: dict = Depends(get_current_user)):
    return api_response(200, user, "User fetched successfully")


@router.post("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    stored = db["user"].find_one({"_id": user["_id"]}, {"password": 1})
    if not stored or not verify_password(payload.old_password, stored.get("password", "")):
        raise HTTPException(status_code=400, detail="Wrong old password")
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password": hash_password(payload.new_password), "updated_at": utcnow()}},
    )
    return api_response(200, {}, "Password updated successfully")


@router.patch("/update-account")
def update_account(
    payload: UpdateAccountRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    try:
        updated = db["user"].find_one_and_update(
            {"_id": user["_id"]},
            {"$set": {"full_name": payload.full_name.strip(), "email": payload.email.lower(), "updated_at": utcnow()}},
            projection=PRIVATE,
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Email already in use")
    return api_response(200, updated, "Account details updated successfully")


@router.patch("/avatar")
@upload_limit
def update_avatar(
    request: Request,
    avatar: UploadFile = File(...),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    assets: AssetStore = Depends(get_asset_store),
):
    updated = _replace_image(db, assets, user["_id"], "avatar", avatar)
    return api_response(200, updated, "Avatar updated successfully")


@router.patch("/cover-image")
@upload_limit
def update_cover_image(
    request: Request,
    cover_image: UploadFile = File(...),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    assets: AssetStore = Depends(get_asset_store),
):
    updated = _replace_image(db, assets, user["_id"], "cover_image", cover_image)
    return api_response(200, updated, "Cover image updated successfully")


@router.delete("/delete-account")
def delete_account(
    response: Response,
    user: dict = Depends(get_current_user),
    deleter: CascadeDeleter = Depends(get_deleter),
    settings: Settings = Depends(get_settings),
):
    _clear_auth_cookies(response, settings)
    deleted = deleter.delete("user", {"_id": user["_id"]})
    if deleted is None:
        raise HTTPException(status_code=404, detail="User not found")
    return api_response(200, {}, "Account deleted")


# -------------------- Channel & history --------------------

@router.get("/c/{username}")
def channel_profile(
    username: str,
    viewer: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    projection = {**OWNER_PROJECTION, "email": 1, "cover_image": 1}
    channel = db["user"].find_one({"username": username.strip().lower()}, projection)
    if not channel:
        raise HTTPException(status_code=404, detail="Channel does not exist")
    channel.update(subscriber_stats(db, channel["_id"], viewer["_id"] if viewer else None))
    channel["channels_subscribed_to_count"] = db["subscription"].count_documents({"subscriber": channel["_id"]})
    return api_response(200, channel, "User channel fetched successfully")


@router.get("/history")
def watch_history(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    history = (db["user"].find_one({"_id": user["_id"]}, {"watch_history": 1}) or {}).get("watch_history", [])
    videos = in_order(db["video"].find({"_id": {"$in": history}}), history)
    return api_response(200, attach_users(db, videos), "Watch history fetched successfully")


@router.patch("/history/remove/{video_id}")
def remove_from_history(
    video_id: str,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    updated = db["user"].find_one_and_update(
        {"_id": user["_id"]},
        {"$pull": {"watch_history": objid(video_id, "video id")}},
        projection=PRIVATE,
        return_document=ReturnDocument.AFTER,
    )
    return api_response(200, updated, "Video removed from watch history successfully")
