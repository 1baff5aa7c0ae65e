"""
Like and subscription toggles.

Both are read-then-write: delete the existing document if there is one,
otherwise insert it. Two identical toggles racing each other can both see
"absent"; the unique indexes from ``database.ensure_indexes`` make the second
insert fail, and that failure is read as "already there".
"""
from typing import Dict

import structlog
from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document
from schemas import Like, LikeTarget, Subscription
from utils import ApiError

logger = structlog.get_logger(__name__)


def toggle_like(db: Database, actor_id: ObjectId, target: LikeTarget) -> bool:
    """Flip the actor's like on ``target``. Returns True if it is liked afterwards."""
    key: Dict[str, object] = {"liked_by": actor_id, **target.as_filter()}
    if db["like"].find_one_and_delete(key) is not None:
        logger.info("Unliked", actor=str(actor_id), kind=target.kind.value, target=target.target_id)
        return False
    try:
        create_document(db, "like", Like.for_target(actor_id, target))
    except DuplicateKeyError:
        logger.info("Concurrent like already recorded", actor=str(actor_id), target=target.target_id)
    else:
        logger.info("Liked", actor=str(actor_id), kind=target.kind.value, target=target.target_id)
    return True


def toggle_subscription(db: Database, subscriber_id: ObjectId, channel_id: ObjectId) -> bool:
    """Flip ``subscriber_id``'s subscription to ``channel_id``. Returns True if
    subscribed afterwards."""
    if subscriber_id == channel_id:
        raise ApiError(400, "You can not subscribe to yourself")
    key = {"subscriber": subscriber_id, "channel": channel_id}
    if db["subscription"].find_one_and_delete(key) is not None:
        logger.info("Unsubscribed", subscriber=str(subscriber_id), channel=str(channel_id))
        return False
    try:
        create_document(db, "subscription", Subscription(**key))
    except DuplicateKeyError:
        logger.info("Concurrent subscription already recorded", subscriber=str(subscriber_id))
    else:
        logger.info("Subscribed", subscriber=str(subscriber_id), channel=str(channel_id))
    return True
