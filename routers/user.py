import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import EmailStr
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, objid, to_str_id
from errors import (
    AlreadySubscribedError,
    EmailNotRegisteredError,
    EmailTakenError,
    InvalidCredentialsError,
    NotFoundError,
    NotSubscribedError,
    ValidationError,
)
from media import MediaStore, get_media
from schemas import LoginRequest, User
from security import build_claims, get_current_user, hash_password, issue_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


def public_user(doc):
    """Account document as returned to clients: never includes the password hash."""
    d = to_str_id(doc)
    if d:
        d.pop("password_hash", None)
    return d


@router.post("/signup")
def signup(
    channel_name: str = Form(..., alias="channelName", min_length=1, max_length=100),
    email: EmailStr = Form(...),
    phone: str = Form(...),
    password: str = Form(..., min_length=1),
    logo: Optional[UploadFile] = File(None, alias="logoUrl"),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    if logo is None:
        raise ValidationError("Logo image is required")

    # Duplicate email is a soft failure: 200 with an error body
    if db["user"].find_one({"email": email}, {"_id": 1}):
        logger.warning(f"Email already registered: {email}")
        return {"error": EmailTakenError.message}

    password_hash = hash_password(password)
    uploaded = media.upload(logo)

    try:
        user = User(
            channel_name=channel_name,
            email=email,
            phone=phone,
            password_hash=password_hash,
            logo_url=uploaded["url"],
            logo_id=uploaded["asset_id"],
        )
        user_doc = create_document(db, "user", user)
    except DuplicateKeyError:
        media.discard(uploaded["asset_id"])
        logger.warning(f"Email registered concurrently: {email}")
        return {"error": EmailTakenError.message}
    except Exception:
        media.discard(uploaded["asset_id"])
        raise

    logger.info(f"User registered with email: {email}")
    return {"msg": "Signup successful", "newUser": public_user(user_doc)}


@router.post("/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": payload.email})
    if not user:
        logger.warning(f"Email not registered: {payload.email}")
        raise EmailNotRegisteredError()
    if not verify_password(payload.password, user.get("password_hash", "")):
        logger.warning(f"Invalid password attempt for email: {payload.email}")
        raise InvalidCredentialsError()

    claims = build_claims(user)
    token = issue_token(claims)
    logger.info(f"User logged in: {payload.email}")
    return {
        **claims,
        "logo_url": user.get("logo_url"),
        "token": token,
        "subscribers": user.get("subscribers", 0),
        "subscriptions": len(user.get("subscribed_channels", [])),
    }


@router.put("/subscribe/{user_b_id}")
def subscribe(user_b_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    target_id = objid(user_b_id, "User to subscribe")
    caller_id = current_user["id"]
    if str(target_id) == caller_id:
        raise ValidationError("You cannot subscribe to yourself")

    # Membership check, counter and set change in one atomic write on the target
    result = db["user"].update_one(
        {"_id": target_id, "subscribed_by": {"$ne": caller_id}},
        {
            "$inc": {"subscribers": 1},
            "$addToSet": {"subscribed_by": caller_id},
            "$set": {"updated_at": datetime.now(timezone.utc)},
        },
    )
    if result.matched_count == 0:
        if not db["user"].find_one({"_id": target_id}, {"_id": 1}):
            raise NotFoundError("User to subscribe not found")
        logger.warning(f"User {caller_id} already subscribed to {target_id}")
        raise AlreadySubscribedError()

    # Idempotent, so replaying it after a partial failure is safe
    mirrored = db["user"].update_one(
        {"_id": objid(caller_id, "User")},
        {"$addToSet": {"subscribed_channels": str(target_id)}, "$set": {"updated_at": datetime.now(timezone.utc)}},
    )
    if mirrored.matched_count == 0:
        logger.warning(f"Subscriber {caller_id} has no account record")

    logger.info(f"User {caller_id} subscribed to {target_id}")
    return {"msg": "Subscribed successfully"}


@router.put("/unsubscribe/{user_b_id}")
def unsubscribe(user_b_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    target_id = objid(user_b_id, "User to unsubscribe")
    caller_id = current_user["id"]

    result = db["user"].update_one(
        {"_id": target_id, "subscribed_by": caller_id},
        {
            "$inc": {"subscribers": -1},
            "$pull": {"subscribed_by": caller_id},
            "$set": {"updated_at": datetime.now(timezone.utc)},
        },
    )
    if result.matched_count == 0:
        if not db["user"].find_one({"_id": target_id}, {"_id": 1}):
            raise NotFoundError("User to unsubscribe not found")
        logger.warning(f"User {caller_id} is not subscribed to {target_id}")
        raise NotSubscribedError()

    mirrored = db["user"].update_one(
        {"_id": objid(caller_id, "User")},
        {"$pull": {"subscribed_channels": str(target_id)}, "$set": {"updated_at": datetime.now(timezone.utc)}},
    )
    if mirrored.matched_count == 0:
        logger.warning(f"Subscriber {caller_id} has no account record")

    logger.info(f"User {caller_id} unsubscribed from {target_id}")
    return {"msg": "Unsubscribed successfully"}


@router.get("/{user_id}")
def get_channel(user_id: str, db: Database = Depends(get_db)):
    user = db["user"].find_one({"_id": objid(user_id, "Channel")})
    if not user:
        raise NotFoundError("Channel not found")
    videos = [to_str_id(v) for v in db["video"].find({"user_id": user_id}).sort("created_at", -1)]
    return {
        "id": str(user["_id"]),
        "channel_name": user.get("channel_name"),
        "logo_url": user.get("logo_url"),
        "subscribers": user.get("subscribers", 0),
        "created_at": to_str_id(user).get("created_at"),
        "videos": videos,
    }
