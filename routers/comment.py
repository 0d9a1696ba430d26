import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_db, get_documents, objid, to_str_id
from errors import AuthorizationError, NotFoundError
from schemas import Comment, CommentRequest
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/comment", tags=["comment"])


def get_authored_comment(db: Database, comment_id: str, user_id: str, action: str):
    comment = db["comment"].find_one({"_id": objid(comment_id, "Comment")})
    if not comment:
        logger.warning(f"Comment not found: {comment_id}")
        raise NotFoundError("Comment not found")
    if comment["user_id"] != user_id:
        logger.warning(f"Unauthorized {action} attempt on comment {comment_id} by user {user_id}")
        raise AuthorizationError("Unauthorized")
    return comment


@router.post("/new-comment/{video_id}")
def add_comment(video_id: str, payload: CommentRequest, current_user: dict = Depends(get_current_user),
                db: Database = Depends(get_db)):
    comment = Comment(video_id=video_id, user_id=current_user["id"], comment_text=payload.comment_text)
    saved = create_document(db, "comment", comment)
    logger.info(f"Comment added by user {current_user['id']} to video {video_id}")
    return {"newComment": to_str_id(saved)}


@router.get("/{video_id}")
def list_comments(video_id: str, db: Database = Depends(get_db)):
    comments = get_documents(db, "comment", {"video_id": video_id})

    # One lookup for every author on the page
    author_ids = []
    for c in comments:
        try:
            author_ids.append(objid(c["user_id"]))
        except NotFoundError:
            continue
    authors = {
        str(u["_id"]): u
        for u in db["user"].find({"_id": {"$in": author_ids}}, {"channel_name": 1, "logo_url": 1})
    }

    items = []
    for c in comments:
        item = to_str_id(c)
        user = authors.get(c["user_id"])
        item["user"] = {
            "id": c["user_id"],
            "channel_name": user.get("channel_name"),
            "logo_url": user.get("logo_url"),
        } if user else None
        items.append(item)

    logger.info(f"Fetched {len(items)} comments for video {video_id}")
    return {"comments": items}


@router.put("/{comment_id}")
def update_comment(comment_id: str, payload: CommentRequest, current_user: dict = Depends(get_current_user),
                   db: Database = Depends(get_db)):
    comment = get_authored_comment(db, comment_id, current_user["id"], "update")
    updated = db["comment"].find_one_and_update(
        {"_id": comment["_id"]},
        {"$set": {"comment_text": payload.comment_text, "updated_at": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFoundError("Comment not found")
    logger.info(f"Comment {comment_id} updated by user {current_user['id']}")
    return {"msg": "Comment updated successfully", "updatedComment": to_str_id(updated)}


@router.delete("/{comment_id}")
def delete_comment(comment_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    comment = get_authored_comment(db, comment_id, current_user["id"], "delete")
    db["comment"].delete_one({"_id": comment["_id"]})
    logger.info(f"Comment {comment_id} deleted by user {current_user['id']}")
    return {"msg": "Comment deleted successfully"}
