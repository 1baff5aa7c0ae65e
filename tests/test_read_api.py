from bson import ObjectId

from tests.factories import (
    make_comment,
    make_like,
    make_playlist,
    make_reply,
    make_subscription,
    make_tweet,
    make_user,
    make_video,
)

API = "/api/v1"


# -------------------- Videos --------------------

def test_get_video_counts_views_and_records_history(client, db, assets, auth):
    owner = make_user(db, assets, "owner")
    fan = make_user(db, assets, "fan")
    video = make_video(db, assets, owner)
    make_like(db, fan, "video", video)
    make_subscription(db, fan, owner)
    url = f"{API}/videos/{video['_id']}"

    first = client.get(url, headers=auth(fan))
    second = client.get(url, headers=auth(fan))

    assert first.status_code == 200
    assert first.json()["data"]["views"] == 1
    data = second.json()["data"]
    assert data["views"] == 2
    assert data["likes_count"] == 1
    assert data["is_liked"] is True
    assert data["owner"]["username"] == "owner"
    assert data["owner"]["subscribers_count"] == 1
    assert data["owner"]["is_subscribed"] is True
    assert "password" not in data["owner"]
    assert db["user"].find_one({"_id": fan["_id"]})["watch_history"] == [video["_id"]]


def test_get_video_anonymously(client, db, assets):
    owner = make_user(db, assets, "owner")
    video = make_video(db, assets, owner)

    data = client.get(f"{API}/videos/{video['_id']}").json()["data"]

    assert data["views"] == 1
    assert data["is_liked"] is False
    assert data["owner"]["is_subscribed"] is False
    assert client.get(f"{API}/videos/{ObjectId()}").status_code == 404


def test_list_videos_shows_published_only(client, db, assets, auth):
    owner = make_user(db, assets, "owner")
    other = make_user(db, assets, "other")
    shown = make_video(db, assets, owner, title="shown")
    hidden = make_video(db, assets, owner, title="hidden", is_published=False)

    res = client.get(f"{API}/videos")
    assert res.status_code == 200
    assert [v["id"] for v in res.json()["data"]["items"]] == [str(shown["_id"])]
    assert res.json()["data"]["items"][0]["owner"]["username"] == "owner"

    url = f"{API}/videos?user_id={owner['_id']}"
    own = {v["id"] for v in client.get(url, headers=auth(owner)).json()["data"]["items"]}
    assert own == {str(shown["_id"]), str(hidden["_id"])}
    seen = {v["id"] for v in client.get(url, headers=auth(other)).json()["data"]["items"]}
    assert seen == {str(shown["_id"])}


def test_list_videos_sorts_and_paginates(client, db, assets):
    owner = make_user(db, assets, "owner")
    videos = [make_video(db, assets, owner, title=f"v{i}") for i in range(3)]
    for views, video in zip((5, 1, 9), videos):
        db["video"].update_one({"_id": video["_id"]}, {"$set": {"views": views}})

    res = client.get(f"{API}/videos?sort_by=views&sort_type=asc")
    assert [v["views"] for v in res.json()["data"]["items"]] == [1, 5, 9]

    page = client.get(f"{API}/videos?sort_by=views&sort_type=desc&page=2&limit=2").json()["data"]
    assert [v["views"] for v in page["items"]] == [1]
    assert page["totalCount"] == 3
    assert page["totalPages"] == 2
    assert page["hasNextPage"] is False

    assert client.get(f"{API}/videos?sort_by=title").status_code == 400


def test_list_videos_matches_query_literally(client, db, assets):
    owner = make_user(db, assets, "owner")
    intro = make_video(db, assets, owner, title="Intro (part 1)")
    make_video(db, assets, owner, title="Outro")

    res = client.get(f"{API}/videos", params={"query": "("})
    assert res.status_code == 200
    assert [v["id"] for v in res.json()["data"]["items"]] == [str(intro["_id"])]

    res = client.get(f"{API}/videos", params={"query": "(PART"})
    assert [v["id"] for v in res.json()["data"]["items"]] == [str(intro["_id"])]

    res = client.get(f"{API}/videos", params={"query": ".*"})
    assert res.status_code == 200
    assert res.json()["data"]["items"] == []


# -------------------- Comments --------------------

def test_list_comments_and_replies(client, db, assets, auth):
    owner = make_user(db, assets, "owner")
    fan = make_user(db, assets, "fan")
    video = make_video(db, assets, owner)
    older = make_comment(db, fan, video, "first")
    newer = make_comment(db, owner, video, "second")
    reply = make_reply(db, owner, older)
    make_like(db, fan, "comment", older)

    data = client.get(f"{API}/comments/{video['_id']}", headers=auth(fan)).json()["data"]

    assert data["totalCount"] == 2
    assert [c["id"] for c in data["items"]] == [str(newer["_id"]), str(older["_id"])]
    listed = data["items"][1]
    assert listed["owner"]["username"] == "fan"
    assert listed["replies_count"] == 1
    assert listed["likes_count"] == 1
    assert listed["is_liked"] is True

    replies = client.get(f"{API}/comments/r/{older['_id']}").json()["data"]
    assert [r["id"] for r in replies["items"]] == [str(reply["_id"])]
    assert replies["items"][0]["is_liked"] is False
    assert client.get(f"{API}/comments/{ObjectId()}").status_code == 404


# -------------------- Likes & tweets --------------------

def test_liked_videos(client, db, assets, auth):
    owner = make_user(db, assets, "owner")
    fan = make_user(db, assets, "fan")
    first = make_video(db, assets, owner)
    second = make_video(db, assets, owner)
    make_like(db, fan, "video", first)
    make_like(db, fan, "video", second)
    make_like(db, fan, "tweet", make_tweet(db, owner))

    data = client.get(f"{API}/likes/videos", headers=auth(fan)).json()["data"]

    assert {v["id"] for v in data} == {str(first["_id"]), str(second["_id"])}
    assert data[0]["owner"]["username"] == "owner"


def test_user_tweets(client, db, assets, auth):
    user = make_user(db, assets, "tweeter")
    fan = make_user(db, assets, "fan")
    tweet = make_tweet(db, user)
    make_like(db, fan, "tweet", tweet)

    data = client.get(f"{API}/tweets/user/{user['_id']}", headers=auth(fan)).json()["data"]

    assert [t["id"] for t in data] == [str(tweet["_id"])]
    assert data[0]["likes_count"] == 1
    assert data[0]["is_liked"] is True
    assert data[0]["owner"]["username"] == "tweeter"
    assert client.get(f"{API}/tweets/user/{ObjectId()}").status_code == 404


# -------------------- Channels --------------------

def test_channel_profile(client, db, assets, auth):
    channel = make_user(db, assets, "channel")
    fan = make_user(db, assets, "fan")
    make_subscription(db, fan, channel)
    make_subscription(db, channel, fan)

    data = client.get(f"{API}/users/c/Channel", headers=auth(fan)).json()["data"]

    assert data["username"] == "channel"
    assert data["subscribers_count"] == 1
    assert data["channels_subscribed_to_count"] == 1
    assert data["is_subscribed"] is True
    assert "password" not in data
    assert client.get(f"{API}/users/c/nobody").status_code == 404


def test_watch_history_keeps_order(client, db, assets, auth):
    user = make_user(db, assets, "viewer")
    first = make_video(db, assets, user)
    second = make_video(db, assets, user)
    history = [second["_id"], first["_id"], ObjectId()]
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"watch_history": history}})

    data = client.get(f"{API}/users/history", headers=auth(user)).json()["data"]

    assert [v["id"] for v in data] == [str(second["_id"]), str(first["_id"])]
    assert data[0]["owner"]["username"] == "viewer"


def test_subscribers_and_subscribed_channels(client, db, assets):
    channel = make_user(db, assets, "channel")
    fans = [make_user(db, assets, name) for name in ("ann", "ben")]
    for fan in fans:
        make_subscription(db, fan, channel)

    data = client.get(f"{API}/subscriptions/c/{channel['_id']}").json()["data"]
    assert data["subscribers_count"] == 2
    assert {s["username"] for s in data["subscribers"]} == {"ann", "ben"}

    data = client.get(f"{API}/subscriptions/u/{fans[0]['_id']}").json()["data"]
    assert [c["username"] for c in data] == ["channel"]


# -------------------- Playlists & dashboard --------------------

def test_get_playlist_keeps_video_order(client, db, assets):
    owner = make_user(db, assets, "owner")
    first = make_video(db, assets, owner)
    second = make_video(db, assets, owner)
    gone = make_video(db, assets, owner)
    playlist = make_playlist(db, owner, [second, gone, first])
    db["video"].delete_one({"_id": gone["_id"]})

    data = client.get(f"{API}/playlist/{playlist['_id']}").json()["data"]
    assert [v["id"] for v in data["videos"]] == [str(second["_id"]), str(first["_id"])]
    assert data["videos"][0]["owner"]["username"] == "owner"

    data = client.get(f"{API}/playlist/user/{owner['_id']}").json()["data"]
    assert [p["id"] for p in data] == [str(playlist["_id"])]
    assert client.get(f"{API}/playlist/{ObjectId()}").status_code == 404


def test_channel_stats(client, db, assets, auth):
    owner = make_user(db, assets, "owner")
    fan = make_user(db, assets, "fan")
    for views in (5, 7):
        video = make_video(db, assets, owner)
        db["video"].update_one({"_id": video["_id"]}, {"$set": {"views": views}})
    make_like(db, fan, "video", video)
    make_like(db, fan, "tweet", make_tweet(db, owner))
    make_subscription(db, fan, owner)

    data = client.get(f"{API}/dashboard/stats/{owner['_id']}", headers=auth(owner)).json()["data"]

    assert data == {
        "subscribers_count": 1,
        "channels_subscribed_to_count": 0,
        "total_videos": 2,
        "total_views": 12,
        "total_likes": 1,
    }
