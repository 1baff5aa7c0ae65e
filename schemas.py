"""
Database Schemas for the video sharing platform

Each Pydantic model maps to a MongoDB collection. The collection name is the lowercase of the class name.

Collections:
- User -> user
- Video -> video
- Comment -> comment
- Tweet -> tweet
- Like -> like
- Subscription -> subscription
- Playlist -> playlist

References between documents are stored as ObjectIds.
"""
from enum import Enum
from typing import Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class Category(str, Enum):
    AUTOS_AND_VEHICLES = "Autos & Vehicles"
    COMEDY = "Comedy"
    EDUCATION = "Education"
    ENTERTAINMENT = "Entertainment"
    FILM_AND_ANIMATION = "Film & Animation"
    GAMING = "Gaming"
    HOWTO_AND_STYLE = "Howto & Style"
    MUSIC = "Music"
    NEWS_AND_POLITICS = "News & Politics"
    NONPROFITS_AND_ACTIVISM = "Nonprofits & Activism"
    PEOPLE_AND_BLOGS = "People & Blogs"
    PETS_AND_ANIMALS = "Pets & Animals"
    SCIENCE_AND_TECHNOLOGY = "Science & Technology"
    SPORTS = "Sports"
    TRAVEL_AND_EVENTS = "Travel & Events"


class TargetKind(str, Enum):
    VIDEO = "video"
    COMMENT = "comment"
    TWEET = "tweet"


class Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, use_enum_values=True)


class Asset(BaseModel):
    """A file held by the remote asset host."""
    url: str
    public_id: str


# -------------------- Collections --------------------

class User(Document):
    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    full_name: str = Field(..., min_length=1)
    password: str = Field(..., description="Bcrypt hash")
    avatar: Asset
    cover_image: Optional[Asset] = None
    watch_history: List[ObjectId] = Field(default_factory=list)
    refresh_token: Optional[str] = None

    @field_validator("username", "email", mode="before")
    @classmethod
    def lowercase(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class Video(Document):
    owner: ObjectId
    title: str = Field(..., min_length=1, max_length=120)
    description: str = Field(..., min_length=1)
    duration: float = 0
    views: int = 0
    is_published: bool = True
    video_file: Asset
    thumbnail: Asset
    category: Optional[Category] = None
    tags: List[str] = Field(default_factory=list)


class Comment(Document):
    content: str = Field(..., min_length=1)
    owner: ObjectId
    video: ObjectId
    parent_comment: Optional[ObjectId] = None
    replies: List[ObjectId] = Field(default_factory=list)


class Tweet(Document):
    content: str = Field(..., min_length=1)
    owner: ObjectId


class LikeTarget(BaseModel):
    """What a like points at: exactly one video, comment or tweet."""
    model_config = ConfigDict(frozen=True)

    kind: TargetKind
    target_id: str

    @field_validator("target_id")
    @classmethod
    def valid_object_id(cls, v):
        if not ObjectId.is_valid(v):
            raise ValueError("target_id must be a valid ObjectId")
        return str(v)

    @property
    def collection(self) -> str:
        return self.kind.value

    def as_filter(self) -> Dict[str, object]:
        return {"kind": self.kind.value, "target": ObjectId(self.target_id)}


class Like(Document):
    liked_by: ObjectId
    kind: TargetKind
    target: ObjectId

    @classmethod
    def for_target(cls, liked_by: ObjectId, target: LikeTarget) -> "Like":
        return cls(liked_by=liked_by, kind=target.kind, target=ObjectId(target.target_id))


class Subscription(Document):
    subscriber: ObjectId = Field(..., description="The user doing the subscribing")
    channel: ObjectId = Field(..., description="The user being subscribed to")


class Playlist(Document):
    name: str = Field(..., min_length=1)
    description: str = ""
    owner: ObjectId
    videos: List[ObjectId] = Field(default_factory=list)


# -------------------- Requests --------------------

class LoginRequest(BaseModel):
    email: Optional[EmailStr] = None
    username: Optional[str] = None
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class UpdateAccountRequest(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: EmailStr


class ContentRequest(BaseModel):
    content: str = Field(..., min_length=1)


class PlaylistRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
