import io
from unittest.mock import MagicMock, patch

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from errors import AlreadyReactedError, ConflictError
from routers.video import MAX_REACTION_ATTEMPTS, apply_reaction


def reaction_state(mongo_db, video_id):
    return mongo_db["video"].find_one({"_id": ObjectId(video_id)})


class TestUpload:

    def test_upload(self, alice, upload_video, media):
        response = upload_video(alice)
        assert response.status_code == 200
        video = response.json()["newVideo"]
        assert video["user_id"] == alice["id"]
        assert video["tags"] == ["music", "live"]
        assert video["views"] == video["likes"] == video["dislikes"] == 0
        assert (video["video_asset_id"], "video") in media.uploaded
        assert (video["thumbnail_asset_id"], "image") in media.uploaded

    def test_upload_requires_thumbnail(self, alice, upload_video, mongo_db):
        response = upload_video(alice, with_thumbnail=False)
        assert response.status_code == 400
        assert response.json() == {"error": "Video and thumbnail files are required"}
        assert mongo_db["video"].count_documents({}) == 0

    def test_upload_requires_token(self, client):
        response = client.post("/video/upload", data={"title": "x"})
        assert response.status_code == 401

    def test_thumbnail_failure_discards_uploaded_video(self, alice, upload_video, media, mongo_db):
        media.fail_upload_types = {"image"}
        response = upload_video(alice)
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert media.destroyed == [(media.uploaded[0][0], "video")]
        assert mongo_db["video"].count_documents({}) == 0

    def test_store_failure_discards_both_assets(self, alice, upload_video, media, mongo_db):
        with patch("routers.video.create_document", side_effect=PyMongoError("store down")):
            response = upload_video(alice)
        assert response.status_code == 500
        assert sorted(media.destroyed) == sorted(media.uploaded)
        assert {resource for _, resource in media.destroyed} == {"video", "image"}
        assert mongo_db["video"].count_documents({}) == 0

    def test_list_and_get(self, client, alice, upload_video):
        video = upload_video(alice).json()["newVideo"]
        listed = client.get("/video/").json()
        assert [v["id"] for v in listed] == [video["id"]]
        assert client.get(f"/video/{video['id']}").json()["title"] == "My clip"


class TestUpdate:

    def test_owner_updates_fields_only_supplied(self, client, alice, upload_video):
        video = upload_video(alice).json()["newVideo"]
        response = client.put(f"/video/{video['id']}", headers=alice["headers"], data={"title": "Renamed", "tags": "a,b"})
        assert response.status_code == 200
        updated = response.json()["updatedVideo"]
        assert updated["title"] == "Renamed"
        assert updated["tags"] == ["a", "b"]
        assert updated["description"] == "desc"
        assert updated["thumbnail_asset_id"] == video["thumbnail_asset_id"]

    def test_new_thumbnail_replaces_old_asset(self, client, alice, upload_video, media):
        video = upload_video(alice).json()["newVideo"]
        response = client.put(
            f"/video/{video['id']}",
            headers=alice["headers"],
            data={"title": "With new thumb"},
            files={"thumbnail": ("new.jpg", io.BytesIO(b"new"), "image/jpeg")},
        )
        assert response.status_code == 200
        updated = response.json()["updatedVideo"]
        assert updated["thumbnail_asset_id"] != video["thumbnail_asset_id"]
        assert (video["thumbnail_asset_id"], "image") in media.destroyed

    def test_old_thumbnail_cleanup_failure_does_not_fail_update(self, client, alice, upload_video, media):
        video = upload_video(alice).json()["newVideo"]
        media.fail_destroy = True
        response = client.put(
            f"/video/{video['id']}",
            headers=alice["headers"],
            files={"thumbnail": ("new.jpg", io.BytesIO(b"new"), "image/jpeg")},
        )
        assert response.status_code == 200

    def test_non_owner_forbidden(self, client, alice, bob, upload_video):
        video = upload_video(alice).json()["newVideo"]
        response = client.put(f"/video/{video['id']}", headers=bob["headers"], data={"title": "Mine now"})
        assert response.status_code == 403

    def test_unknown_video(self, client, alice):
        response = client.put(f"/video/{ObjectId()}", headers=alice["headers"], data={"title": "x"})
        assert response.status_code == 404


class TestDelete:

    def test_deleted_video_is_gone(self, client, alice, upload_video, media):
        video = upload_video(alice).json()["newVideo"]
        response = client.delete(f"/video/{video['id']}", headers=alice["headers"])
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Data deleted successfully"
        assert body["data"]["id"] == video["id"]
        assert (video["video_asset_id"], "video") in media.destroyed
        assert (video["thumbnail_asset_id"], "image") in media.destroyed

        assert client.get(f"/video/{video['id']}").status_code == 404
        assert client.put(f"/video/{video['id']}", headers=alice["headers"], data={"title": "x"}).status_code == 404
        assert client.delete(f"/video/{video['id']}", headers=alice["headers"]).status_code == 404

    def test_non_owner_cannot_delete(self, client, alice, bob, upload_video, mongo_db):
        video = upload_video(alice).json()["newVideo"]
        assert client.delete(f"/video/{video['id']}", headers=bob["headers"]).status_code == 403
        assert mongo_db["video"].count_documents({}) == 1

    def test_provider_failure_keeps_record(self, client, alice, upload_video, media, mongo_db):
        video = upload_video(alice).json()["newVideo"]
        media.fail_destroy = True
        response = client.delete(f"/video/{video['id']}", headers=alice["headers"])
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert mongo_db["video"].count_documents({}) == 1


class TestReactions:

    def test_like(self, client, alice, bob, upload_video, mongo_db):
        video = upload_video(alice).json()["newVideo"]
        response = client.put(f"/video/like/{video['id']}", headers=bob["headers"])
        assert response.status_code == 200
        assert response.json() == {"msg": "Video liked successfully"}
        doc = reaction_state(mongo_db, video["id"])
        assert doc["likes"] == 1
        assert doc["liked_by"] == [bob["id"]]

    def test_like_twice(self, client, alice, bob, upload_video, mongo_db):
        video = upload_video(alice).json()["newVideo"]
        client.put(f"/video/like/{video['id']}", headers=bob["headers"])
        response = client.put(f"/video/like/{video['id']}", headers=bob["headers"])
        assert response.status_code == 400
        assert response.json() == {"error": "Already liked"}
        assert reaction_state(mongo_db, video["id"])["likes"] == 1

    def test_like_then_dislike_moves_reaction(self, client, alice, bob, upload_video, mongo_db):
        video = upload_video(alice).json()["newVideo"]
        client.put(f"/video/like/{video['id']}", headers=bob["headers"])
        response = client.put(f"/video/dislike/{video['id']}", headers=bob["headers"])
        assert response.status_code == 200
        doc = reaction_state(mongo_db, video["id"])
        assert doc["likes"] == 0
        assert doc["dislikes"] == 1
        assert doc["liked_by"] == []
        assert doc["disliked_by"] == [bob["id"]]

    def test_dislike_twice(self, client, alice, bob, upload_video):
        video = upload_video(alice).json()["newVideo"]
        client.put(f"/video/dislike/{video['id']}", headers=bob["headers"])
        response = client.put(f"/video/dislike/{video['id']}", headers=bob["headers"])
        assert response.status_code == 400
        assert response.json() == {"error": "Already disliked"}

    def test_reactions_from_several_users(self, client, alice, bob, upload_video, mongo_db):
        video = upload_video(alice).json()["newVideo"]
        client.put(f"/video/like/{video['id']}", headers=alice["headers"])
        client.put(f"/video/dislike/{video['id']}", headers=bob["headers"])
        doc = reaction_state(mongo_db, video["id"])
        assert (doc["likes"], doc["dislikes"]) == (1, 1)

    def test_react_to_unknown_video(self, client, bob):
        assert client.put(f"/video/like/{ObjectId()}", headers=bob["headers"]).status_code == 404
        assert client.put(f"/video/dislike/{ObjectId()}", headers=bob["headers"]).status_code == 404


class TestReactionRetries:
    """apply_reaction against a collection whose filters keep missing."""

    def make_db(self, update_results, current):
        db = MagicMock()
        videos = db.__getitem__.return_value
        videos.find_one_and_update.side_effect = update_results
        videos.find_one.return_value = current
        return db, videos

    def test_gives_up_after_bounded_attempts(self):
        video_id = ObjectId()
        db, videos = self.make_db([None] * (2 * MAX_REACTION_ATTEMPTS), {"_id": video_id, "liked_by": []})
        with pytest.raises(ConflictError):
            apply_reaction(db, video_id, "u1", "like")
        assert videos.find_one_and_update.call_count == 2 * MAX_REACTION_ATTEMPTS

    def test_succeeds_on_a_later_attempt(self):
        video_id = ObjectId()
        after = {"_id": video_id, "likes": 1, "liked_by": ["u1"]}
        db, videos = self.make_db([None, None, after], {"_id": video_id, "liked_by": []})
        assert apply_reaction(db, video_id, "u1", "like") == after
        assert videos.find_one_and_update.call_count == 3

    def test_stops_when_reaction_already_recorded(self):
        video_id = ObjectId()
        db, videos = self.make_db([None, None], {"_id": video_id, "disliked_by": ["u1"]})
        with pytest.raises(AlreadyReactedError):
            apply_reaction(db, video_id, "u1", "dislike")
        assert videos.find_one_and_update.call_count == 2


class TestViews:

    def test_each_call_counts(self, client, alice, upload_video, mongo_db):
        video = upload_video(alice).json()["newVideo"]
        for _ in range(5):
            response = client.put(f"/video/views/{video['id']}")
            assert response.status_code == 200
        assert response.json() == {"msg": "Views updated", "views": 5}
        assert reaction_state(mongo_db, video["id"])["views"] == 5

    def test_unknown_video(self, client):
        assert client.put(f"/video/views/{ObjectId()}").status_code == 404


def test_end_to_end(client, signup, make_account, upload_video):
    assert signup("chan", "a@x.com", "pw").status_code == 200
    login = client.post("/user/login", json={"email": "a@x.com", "password": "pw"})
    assert login.status_code == 200
    owner = {"id": login.json()["id"], "headers": {"Authorization": f"Bearer {login.json()['token']}"}}

    video = upload_video(owner).json()["newVideo"]
    fan = make_account("fan", "fan@x.com")
    assert client.put(f"/video/like/{video['id']}", headers=fan["headers"]).status_code == 200
    assert client.get(f"/video/{video['id']}").json()["likes"] == 1

    response = client.put(f"/user/unsubscribe/{owner['id']}", headers=fan["headers"])
    assert response.status_code == 400
