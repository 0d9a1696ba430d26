"""
Database Schemas for the video sharing backend

Each Pydantic model maps to a MongoDB collection. The collection name is the lowercase of the class name.

Collections:
- User -> user
- Video -> video
- Comment -> comment

Request bodies that arrive as JSON are declared at the bottom of the module.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class User(BaseModel):
    channel_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str
    password_hash: str = Field(..., description="Bcrypt hash")
    logo_url: str = Field(..., description="Avatar URL at the media provider")
    logo_id: str = Field(..., description="Avatar asset id at the media provider")
    subscribers: int = Field(0, ge=0, description="Always len(subscribed_by)")
    subscribed_by: List[str] = Field(default_factory=list, description="Ids of accounts subscribed to this channel")
    subscribed_channels: List[str] = Field(default_factory=list, description="Ids of channels this account follows")


class Video(BaseModel):
    user_id: str = Field(..., description="Owner user id as string")
    title: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    video_url: str
    video_asset_id: str
    thumbnail_url: str
    thumbnail_asset_id: str
    views: int = 0
    likes: int = 0
    dislikes: int = 0
    liked_by: List[str] = Field(default_factory=list)
    disliked_by: List[str] = Field(default_factory=list)


class Comment(BaseModel):
    video_id: str
    user_id: str
    comment_text: str = Field(..., min_length=1, max_length=1000)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class CommentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    comment_text: str = Field(..., alias="commentText", min_length=1, max_length=1000)


def split_tags(tags: Optional[str]) -> List[str]:
    """Comma separated string -> de-duplicated list, first occurrence wins."""
    tag_list: List[str] = []
    if tags:
        for t in tags.split(","):
            t = t.strip()
            if t and t not in tag_list:
                tag_list.append(t)
    return tag_list
