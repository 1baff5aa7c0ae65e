from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError

from schemas import Asset, Category, Like, LikeTarget, TargetKind, User, Video
from utils import api_response, parse_tags, to_str_id


def test_like_target_rejects_bad_ids():
    with pytest.raises(ValidationError):
        LikeTarget(kind=TargetKind.VIDEO, target_id="not-an-id")


def test_like_target_filter():
    oid = ObjectId()
    target = LikeTarget(kind="comment", target_id=str(oid))
    assert target.collection == "comment"
    assert target.as_filter() == {"kind": "comment", "target": oid}


def test_like_stores_kind_as_plain_string():
    oid = ObjectId()
    like = Like.for_target(ObjectId(), LikeTarget(kind=TargetKind.TWEET, target_id=str(oid)))
    dumped = like.model_dump()
    assert dumped["kind"] == "tweet"
    assert dumped["target"] == oid


def test_user_normalises_username_and_email():
    user = User(
        username="  MixedCase ",
        email="Mixed@Example.com",
        full_name="Mixed",
        password="hash",
        avatar=Asset(url="https://assets.example.com/a", public_id="a"),
    )
    assert user.username == "mixedcase"
    assert user.email == "mixed@example.com"
    assert user.watch_history == []


def test_video_category_must_be_known():
    base = dict(
        owner=ObjectId(),
        title="t",
        description="d",
        video_file=Asset(url="u", public_id="v"),
        thumbnail=Asset(url="u", public_id="t"),
    )
    assert Video(category="Gaming", **base).model_dump()["category"] == Category.GAMING.value
    with pytest.raises(ValidationError):
        Video(category="Cooking", **base)


def test_parse_tags():
    assert parse_tags(None) == []
    assert parse_tags("a, b,,a , c") == ["a", "b", "c"]


def test_to_str_id_handles_nesting():
    oid, ref = ObjectId(), ObjectId()
    when = datetime(2024, 1, 2, tzinfo=timezone.utc)
    doc = {"_id": oid, "owner": {"_id": ref}, "videos": [ref], "created_at": when}
    assert to_str_id(doc) == {
        "id": str(oid),
        "owner": {"id": str(ref)},
        "videos": [str(ref)],
        "created_at": when.isoformat(),
    }


def test_api_response_envelope():
    body = api_response(201, {"_id": ObjectId()}, "Created")
    assert body["statusCode"] == 201
    assert body["success"] is True
    assert body["message"] == "Created"
    assert isinstance(body["data"]["id"], str)
