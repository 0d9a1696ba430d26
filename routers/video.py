import logging
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_db, get_documents, objid, to_str_id
from errors import AlreadyReactedError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from media import MediaStore, get_media
from schemas import Video, split_tags
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/video", tags=["video"])

# reaction -> (counter, members, opposite counter, opposite members)
REACTIONS = {
    "like": ("likes", "liked_by", "dislikes", "disliked_by"),
    "dislike": ("dislikes", "disliked_by", "likes", "liked_by"),
}
MAX_REACTION_ATTEMPTS = 3


def get_owned_video(db: Database, video_id: str, user_id: str, action: str):
    video = db["video"].find_one({"_id": objid(video_id, "Video")})
    if not video:
        logger.warning(f"Video not found: {video_id}")
        raise NotFoundError("Video not found")
    if video["user_id"] != user_id:
        logger.warning(f"User {user_id} tried to {action} video {video_id}")
        raise AuthorizationError(f"You don't have permission to {action} this video")
    return video


def apply_reaction(db: Database, video_id: ObjectId, user_id: str, reaction: str):
    """
    Record a like or dislike for user_id.

    Each step is one conditional single-document update, so the user always
    ends up in exactly one of liked_by/disliked_by and the counters move with
    the sets. If a concurrent request invalidates both filters the whole
    sequence is retried.
    """
    counter, members, other_counter, other_members = REACTIONS[reaction]
    videos = db["video"]
    for _ in range(MAX_REACTION_ATTEMPTS):
        # Switch over from the opposite reaction
        doc = videos.find_one_and_update(
            {"_id": video_id, other_members: user_id},
            {
                "$pull": {other_members: user_id},
                "$addToSet": {members: user_id},
                "$inc": {other_counter: -1, counter: 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            return doc

        # First reaction from this user
        doc = videos.find_one_and_update(
            {"_id": video_id, members: {"$ne": user_id}, other_members: {"$ne": user_id}},
            {"$addToSet": {members: user_id}, "$inc": {counter: 1}},
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            return doc

        current = videos.find_one({"_id": video_id}, {members: 1})
        if current is None:
            logger.warning(f"Video not found: {video_id}")
            raise NotFoundError("Video not found")
        if user_id in current.get(members, []):
            raise AlreadyReactedError(f"Already {reaction}d")
    raise ConflictError("Reaction changed concurrently, try again")


@router.post("/upload")
def upload_video(
    title: str = Form(..., min_length=1, max_length=120),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),  # comma separated
    video: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    if video is None or thumbnail is None:
        logger.warning("Upload rejected: missing video or thumbnail file")
        raise ValidationError("Video and thumbnail files are required")

    uploaded_video = media.upload(video, resource_type="video")
    try:
        uploaded_thumb = media.upload(thumbnail)
    except Exception:
        media.discard(uploaded_video["asset_id"], resource_type="video")
        raise

    try:
        video_doc = Video(
            user_id=current_user["id"],
            title=title,
            description=description,
            category=category,
            tags=split_tags(tags),
            video_url=uploaded_video["url"],
            video_asset_id=uploaded_video["asset_id"],
            thumbnail_url=uploaded_thumb["url"],
            thumbnail_asset_id=uploaded_thumb["asset_id"],
        )
        saved = create_document(db, "video", video_doc)
    except Exception:
        media.discard(uploaded_video["asset_id"], resource_type="video")
        media.discard(uploaded_thumb["asset_id"])
        raise

    logger.info(f"Video {saved['_id']} uploaded by user {current_user['id']}")
    return {"newVideo": to_str_id(saved)}


@router.get("/")
def list_videos(limit: int = Query(20, ge=1, le=100), db: Database = Depends(get_db)):
    # Newest first
    videos = get_documents(db, "video", sort=[("created_at", -1)], limit=limit)
    return [to_str_id(v) for v in videos]


@router.put("/views/{video_id}")
def record_view(video_id: str, db: Database = Depends(get_db)):
    video = db["video"].find_one_and_update(
        {"_id": objid(video_id, "Video")},
        {"$inc": {"views": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if not video:
        logger.warning(f"Video not found: {video_id}")
        raise NotFoundError("Video not found")
    logger.info(f"Views updated for video {video_id}, total views: {video['views']}")
    return {"msg": "Views updated", "views": video["views"]}


@router.put("/like/{video_id}")
def like_video(video_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    apply_reaction(db, objid(video_id, "Video"), current_user["id"], "like")
    logger.info(f"Video {video_id} liked by user {current_user['id']}")
    return {"msg": "Video liked successfully"}


@router.put("/dislike/{video_id}")
def dislike_video(video_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    apply_reaction(db, objid(video_id, "Video"), current_user["id"], "dislike")
    logger.info(f"Video {video_id} disliked by user {current_user['id']}")
    return {"msg": "Video disliked successfully"}


@router.get("/{video_id}")
def get_video(video_id: str, db: Database = Depends(get_db)):
    video = db["video"].find_one({"_id": objid(video_id, "Video")})
    if not video:
        raise NotFoundError("Video not found")
    return to_str_id(video)


@router.put("/{video_id}")
def update_video(
    video_id: str,
    title: Optional[str] = Form(None, min_length=1, max_length=120),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    video = get_owned_video(db, video_id, current_user["id"], "update")

    updates = {}
    for field, value in (("title", title), ("description", description), ("category", category)):
        if value is not None:
            updates[field] = value
    if tags is not None:
        updates["tags"] = split_tags(tags)

    new_thumb = None
    if thumbnail is not None:
        new_thumb = media.upload(thumbnail)
        updates["thumbnail_url"] = new_thumb["url"]
        updates["thumbnail_asset_id"] = new_thumb["asset_id"]
    updates["updated_at"] = datetime.now(timezone.utc)

    updated = db["video"].find_one_and_update(
        {"_id": video["_id"], "user_id": current_user["id"]},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        # deleted while the thumbnail was uploading
        if new_thumb:
            media.discard(new_thumb["asset_id"])
        raise NotFoundError("Video not found")

    # The old asset goes last; failing to remove it must not fail the update
    if new_thumb and video.get("thumbnail_asset_id"):
        media.discard(video["thumbnail_asset_id"])

    logger.info(f"Video {video_id} updated by user {current_user['id']}")
    return {"updatedVideo": to_str_id(updated)}


@router.delete("/{video_id}")
def delete_video(
    video_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    video = get_owned_video(db, video_id, current_user["id"], "delete")

    media.destroy(video["video_asset_id"], resource_type="video")
    media.destroy(video["thumbnail_asset_id"])
    deleted = db["video"].find_one_and_delete({"_id": video["_id"]})
    if not deleted:
        raise NotFoundError("Video not found")

    logger.info(f"Video {video_id} deleted by user {current_user['id']}")
    return {"message": "Data deleted successfully", "data": to_str_id(deleted)}
