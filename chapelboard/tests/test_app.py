import unittest

from fastapi.testclient import TestClient

from chapelboard.app import create_app
from chapelboard.config import Settings, get_settings
from chapelboard.db import InMemoryDbClient
from chapelboard.dependencies import get_db_client, get_storage_client
from chapelboard.storage import InMemoryStorageClient


def contains_key(payload, key):
    if isinstance(payload, dict):
        return key in payload or any(contains_key(v, key) for v in payload.values())
    if isinstance(payload, list):
        return any(contains_key(item, key) for item in payload)
    return False


class ApiTestCase(unittest.TestCase):
    settings_overrides: dict = {}

    def setUp(self):
        self.settings = Settings(use_in_memory_backends=True, **self.settings_overrides)
        app = create_app(self.settings)
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        app.dependency_overrides[get_db_client] = lambda: self.db
        app.dependency_overrides[get_storage_client] = lambda: self.storage
        app.dependency_overrides[get_settings] = lambda: self.settings
        self.client = TestClient(app)

    def login(self, username="alice", password="secret1"):
        self.client.post(
            "/api/register", json={"username": username, "password": password}
        )
        response = self.client.post(
            "/api/login", json={"username": username, "password": password}
        )
        self.assertEqual(response.status_code, 200)
        return {"Authorization": f"Bearer {response.json()['token']}"}

    def delete(self, url, **kwargs):
        return self.client.request("DELETE", url, **kwargs)

    def assertNoPassword(self, payload):
        self.assertFalse(contains_key(payload, "password"), payload)


class AccountApiTests(ApiTestCase):
    def test_register_login_and_session_required(self):
        response = self.client.post(
            "/api/register", json={"username": "alice", "password": "secret1"}
        )
        self.assertEqual(response.status_code, 201)
        self.assertIn("userId", response.json())

        bad = self.client.post(
            "/api/login", json={"username": "alice", "password": "wrong"}
        )
        self.assertEqual(bad.status_code, 400)
        self.assertEqual(bad.json()["message"], "Invalid credentials")

        good = self.client.post(
            "/api/login", json={"username": "alice", "password": "secret1"}
        )
        self.assertEqual(good.status_code, 200)
        token = good.json()["token"]
        self.assertTrue(token)

        anonymous = self.client.get("/api/posts")
        self.assertEqual(anonymous.status_code, 401)
        self.assertEqual(anonymous.json()["message"], "No token, authorization denied")

        authed = self.client.get(
            "/api/posts", headers={"Authorization": f"Bearer {token}"}
        )
        self.assertEqual(authed.status_code, 200)

    def test_unknown_user_login_looks_like_wrong_password(self):
        response = self.client.post(
            "/api/login", json={"username": "nobody", "password": "x"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Invalid credentials")

    def test_duplicate_registration_is_rejected(self):
        payload = {"username": "alice", "password": "secret1"}
        self.assertEqual(self.client.post("/api/register", json=payload).status_code, 201)
        response = self.client.post("/api/register", json=payload)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "User already exists")

    def test_legacy_token_header_and_invalid_token(self):
        headers = self.login()
        token = headers["Authorization"].split(" ", 1)[1]
        response = self.client.get("/api/posts", headers={"x-auth-token": token})
        self.assertEqual(response.status_code, 200)

        response = self.client.get("/api/posts", headers={"x-auth-token": "garbage"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Token is not valid")

    def test_change_password(self):
        headers = self.login()
        wrong = self.client.put(
            "/api/users/password",
            json={"currentPassword": "nope", "newPassword": "secret2"},
            headers=headers,
        )
        self.assertEqual(wrong.status_code, 400)

        ok = self.client.put(
            "/api/users/password",
            json={"currentPassword": "secret1", "newPassword": "secret2"},
            headers=headers,
        )
        self.assertEqual(ok.status_code, 200)
        relogin = self.client.post(
            "/api/login", json={"username": "alice", "password": "secret2"}
        )
        self.assertEqual(relogin.status_code, 200)

    def test_change_password_requires_session(self):
        response = self.client.put(
            "/api/users/password",
            json={"currentPassword": "a", "newPassword": "b"},
        )
        self.assertEqual(response.status_code, 401)

    def test_reset_password_by_username(self):
        self.login()
        response = self.client.post(
            "/api/reset-password", json={"username": "alice", "newPassword": "fresh"}
        )
        self.assertEqual(response.status_code, 200)
        relogin = self.client.post(
            "/api/login", json={"username": "alice", "password": "fresh"}
        )
        self.assertEqual(relogin.status_code, 200)

        missing = self.client.post(
            "/api/reset-password", json={"username": "bob", "newPassword": "fresh"}
        )
        self.assertEqual(missing.status_code, 404)

    def test_missing_fields_are_bad_requests(self):
        response = self.client.post("/api/register", json={"username": "alice"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("message", response.json())


class DisabledResetTests(ApiTestCase):
    settings_overrides = {"allow_username_password_reset": False}

    def test_reset_password_can_be_disabled(self):
        self.login()
        response = self.client.post(
            "/api/reset-password", json={"username": "alice", "newPassword": "fresh"}
        )
        self.assertEqual(response.status_code, 403)


class WordShareApiTests(ApiTestCase):
    def create_share(self, **overrides):
        payload = {
            "date": "2025-06-01",
            "authorName": "Bob",
            "password": "pw1",
            "content": "Grace today",
        }
        payload.update(overrides)
        return self.client.post("/api/word-shares", json=payload)

    def test_create_share_updates_calendar(self):
        response = self.create_share()
        self.assertEqual(response.status_code, 201)
        self.assertNoPassword(response.json())
        self.assertEqual(response.json()["data"]["authorName"], "Bob")

        summary = self.client.get("/api/calendar/summary")
        self.assertEqual(summary.status_code, 200)
        self.assertEqual(
            summary.json()["data"]["2025-06-01"], {"hasWord": False, "shareCount": 1}
        )

    def test_list_by_date(self):
        self.create_share(content="first")
        self.create_share(content="second")
        self.create_share(date="2025-06-02", content="other day")

        response = self.client.get("/api/word-shares/2025-06-01")
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual([s["content"] for s in data], ["first", "second"])
        self.assertNoPassword(response.json())

    def test_wrong_password_leaves_share_unchanged(self):
        share_id = self.create_share().json()["data"]["id"]

        response = self.client.put(
            f"/api/word-shares/{share_id}", json={"password": "bad", "content": "hacked"}
        )
        self.assertEqual(response.status_code, 403)
        response = self.delete(f"/api/word-shares/{share_id}", json={"password": "bad"})
        self.assertEqual(response.status_code, 403)

        shares = self.client.get("/api/word-shares/2025-06-01").json()["data"]
        self.assertEqual(shares[0]["content"], "Grace today")

    def test_update_and_delete_with_password(self):
        share_id = self.create_share().json()["data"]["id"]

        response = self.client.put(
            f"/api/word-shares/{share_id}", json={"password": "pw1", "content": "Edited"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["content"], "Edited")
        self.assertNoPassword(response.json())

        self.assertEqual(
            self.delete(f"/api/word-shares/{share_id}", json={}).status_code, 400
        )
        self.assertEqual(
            self.delete(f"/api/word-shares/{share_id}", json={"password": "pw1"}).status_code,
            200,
        )
        self.assertEqual(
            self.delete(f"/api/word-shares/{share_id}", json={"password": "pw1"}).status_code,
            404,
        )

    def test_invalid_date_is_rejected(self):
        self.assertEqual(self.create_share(date="June 1st").status_code, 400)
        self.assertEqual(self.client.get("/api/word-shares/2025-13-01").status_code, 400)


class DailyWordApiTests(ApiTestCase):
    def fields(self, **overrides):
        data = {
            "date": "2025-06-01",
            "title": "Psalm 23",
            "passage": "Psalm 23:1-3",
            "content": "The Lord is my shepherd",
            "authorName": "Pastor Kim",
            "password": "word-pw",
        }
        data.update(overrides)
        return data

    def post_word(self, images=(), attachment=None, **overrides):
        files = [("image", (f"{name}.png", name.encode(), "image/png")) for name in images]
        if attachment:
            files.append(("file", ("notes.pdf", attachment, "application/pdf")))
        return self.client.post(
            "/api/daily-words", data=self.fields(**overrides), files=files or None
        )

    def image_names(self, data):
        return [self.storage.get_bytes(image["imageUrl"]).decode() for image in data["images"]]

    def test_create_and_fetch(self):
        response = self.post_word(images=["a", "b", "c"])
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertNoPassword(body)
        data = body["data"]
        self.assertEqual(self.image_names(data), ["a", "b", "c"])
        self.assertEqual(data["imageUrl"], data["images"][0]["imageUrl"])

        fetched = self.client.get("/api/daily-words/2025-06-01")
        self.assertEqual(fetched.status_code, 200)
        self.assertNoPassword(fetched.json())
        self.assertEqual(fetched.json()["data"]["id"], data["id"])

    def test_missing_date_returns_null(self):
        response = self.client.get("/api/daily-words/2025-01-01")
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["data"])

    def test_delete_some_images_and_append_others(self):
        created = self.post_word(images=["a", "b", "c"]).json()["data"]
        b_id = created["images"][1]["id"]

        response = self.post_word(images=["d"], deleteImages=str(b_id), title="Psalm 23 (edited)")
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["id"], created["id"])
        self.assertEqual(data["title"], "Psalm 23 (edited)")
        self.assertEqual(self.image_names(data), ["a", "c", "d"])
        self.assertEqual([image["sortOrder"] for image in data["images"]], [0, 2, 3])

        fetched = self.client.get("/api/daily-words/2025-06-01").json()["data"]
        self.assertEqual(self.image_names(fetched), ["a", "c", "d"])

    def test_edit_needs_original_password(self):
        self.post_word(images=["a"])
        response = self.post_word(
            images=["intruder"], attachment=b"%PDF", password="someone-else", title="Taken over"
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(len(self.storage.stored_objects), 1)

        fetched = self.client.get("/api/daily-words/2025-06-01").json()["data"]
        self.assertEqual(fetched["title"], "Psalm 23")
        self.assertEqual(self.image_names(fetched), ["a"])

    def test_delete_twice(self):
        self.post_word()
        first = self.delete("/api/daily-words/2025-06-01", json={"password": "word-pw"})
        self.assertEqual(first.status_code, 200)
        second = self.delete("/api/daily-words/2025-06-01", json={"password": "word-pw"})
        self.assertEqual(second.status_code, 404)

    def test_delete_with_wrong_password(self):
        self.post_word()
        response = self.delete("/api/daily-words/2025-06-01", json={"password": "nope"})
        self.assertEqual(response.status_code, 403)
        self.assertIsNotNone(self.client.get("/api/daily-words/2025-06-01").json()["data"])

    def test_missing_fields(self):
        response = self.post_word(content="")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.storage.stored_objects, {})

    def test_cannot_delete_images_of_another_date(self):
        first = self.post_word(images=["a"]).json()["data"]
        self.post_word(date="2025-06-02")
        foreign_id = first["images"][0]["id"]

        response = self.post_word(date="2025-06-02", deleteImages=str(foreign_id))
        self.assertEqual(response.status_code, 200)

        fetched = self.client.get("/api/daily-words/2025-06-01").json()["data"]
        self.assertEqual(self.image_names(fetched), ["a"])

    def test_attachment_survives_edits_without_a_new_file(self):
        created = self.post_word(attachment=b"%PDF").json()["data"]
        self.assertTrue(created["fileUrl"])

        edited = self.post_word(content="Still here").json()["data"]
        self.assertEqual(edited["fileUrl"], created["fileUrl"])

    def test_calendar_marks_word_dates(self):
        self.post_word()
        summary = self.client.get("/api/calendar/summary").json()["data"]
        self.assertEqual(summary["2025-06-01"], {"hasWord": True, "shareCount": 0})


class DailyPhotoApiTests(ApiTestCase):
    def upload(self, headers, date="2025-06-02", name="photo"):
        return self.client.post(
            "/api/daily-photos",
            data={"date": date},
            files={"image": (f"{name}.jpg", name.encode(), "image/jpeg")},
            headers=headers,
        )

    def test_any_member_can_replace_a_days_photo(self):
        alice = self.login("alice")
        bob = self.login("bob")

        first = self.upload(alice, name="first")
        self.assertEqual(first.status_code, 201)
        second = self.upload(bob, name="second")
        self.assertEqual(second.status_code, 201)

        fetched = self.client.get("/api/daily-photos/2025-06-02", headers=alice)
        data = fetched.json()["data"]
        self.assertEqual(data["imageUrl"], second.json()["data"]["imageUrl"])
        self.assertEqual(data["uploadedBy"], second.json()["data"]["uploadedBy"])
        self.assertEqual(len(self.db.daily_photos), 1)

    def test_requires_session(self):
        response = self.client.post(
            "/api/daily-photos",
            data={"date": "2025-06-02"},
            files={"image": ("p.jpg", b"p", "image/jpeg")},
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.client.get("/api/daily-photos/2025-06-02").status_code, 401)

    def test_image_and_date_required(self):
        headers = self.login()
        response = self.client.post(
            "/api/daily-photos", data={"date": "2025-06-02"}, headers=headers
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/api/daily-photos",
            files={"image": ("p.jpg", b"p", "image/jpeg")},
            headers=headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_comment_counts_keep_dates_without_comments(self):
        headers = self.login()
        photo_id = self.upload(headers, date="2025-06-02").json()["data"]["id"]
        self.upload(headers, date="2025-06-03")
        self.client.post(
            "/api/comments",
            json={"dailyPhotoId": photo_id, "content": "Amen"},
            headers=headers,
        )

        response = self.client.get("/api/daily-photos/counts/all", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], {"2025-06-02": 1, "2025-06-03": 0})

    def test_comments_are_deleted_by_their_author_only(self):
        alice = self.login("alice")
        bob = self.login("bob")
        photo_id = self.upload(alice).json()["data"]["id"]

        created = self.client.post(
            "/api/comments",
            json={"dailyPhotoId": photo_id, "content": "Beautiful"},
            headers=alice,
        )
        self.assertEqual(created.status_code, 201)
        comment_id = created.json()["data"]["id"]

        listed = self.client.get(f"/api/comments/{photo_id}", headers=bob).json()["data"]
        self.assertEqual(listed[0]["username"], "alice")

        self.assertEqual(self.delete(f"/api/comments/{comment_id}", headers=bob).status_code, 403)
        self.assertEqual(self.delete(f"/api/comments/{comment_id}", headers=alice).status_code, 200)
        self.assertEqual(self.delete(f"/api/comments/{comment_id}", headers=alice).status_code, 404)

    def test_comment_on_missing_photo(self):
        headers = self.login()
        response = self.client.post(
            "/api/comments", json={"dailyPhotoId": 999, "content": "?"}, headers=headers
        )
        self.assertEqual(response.status_code, 404)

    def test_replacing_a_photo_drops_its_comments(self):
        headers = self.login()
        photo_id = self.upload(headers).json()["data"]["id"]
        self.client.post(
            "/api/comments", json={"dailyPhotoId": photo_id, "content": "1"}, headers=headers
        )
        self.upload(headers, name="replacement")

        counts = self.client.get("/api/daily-photos/counts/all", headers=headers).json()["data"]
        self.assertEqual(counts, {"2025-06-02": 0})


class OwnerOnlyDailyPhotoTests(DailyPhotoApiTests):
    settings_overrides = {"daily_photo_replace_policy": "owner"}

    def test_any_member_can_replace_a_days_photo(self):
        alice = self.login("alice")
        bob = self.login("bob")
        self.assertEqual(self.upload(alice).status_code, 201)
        self.assertEqual(self.upload(bob).status_code, 403)
        self.assertEqual(len(self.storage.stored_objects), 1)
        self.assertEqual(self.upload(alice, name="again").status_code, 201)


class GalleryApiTests(ApiTestCase):
    def upload(self, headers, title="Retreat"):
        return self.client.post(
            "/api/gallery",
            data={"title": title},
            files={"image": ("g.jpg", b"g", "image/jpeg")},
            headers=headers,
        )

    def test_member_photos(self):
        alice = self.login("alice")
        bob = self.login("bob")

        created = self.upload(alice)
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["data"]["authorName"], "alice")
        photo_id = created.json()["data"]["id"]

        listed = self.client.get("/api/gallery")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(len(listed.json()["data"]), 1)
        self.assertNoPassword(listed.json())

        self.assertEqual(self.delete(f"/api/gallery/{photo_id}").status_code, 401)
        self.assertEqual(self.delete(f"/api/gallery/{photo_id}", headers=bob).status_code, 403)
        self.assertEqual(self.delete(f"/api/gallery/{photo_id}", headers=alice).status_code, 200)
        self.assertEqual(self.delete(f"/api/gallery/{photo_id}", headers=alice).status_code, 404)

    def test_member_upload_requires_session_and_image(self):
        self.assertEqual(self.upload({}).status_code, 401)
        headers = self.login()
        response = self.client.post("/api/gallery", data={"title": "x"}, headers=headers)
        self.assertEqual(response.status_code, 400)

    def test_anonymous_photos_are_password_gated(self):
        created = self.client.post(
            "/api/gallery/anonymous",
            data={"authorName": "Visitor", "password": "vpw", "title": "Hello"},
            files={"image": ("v.jpg", b"v", "image/jpeg")},
        )
        self.assertEqual(created.status_code, 201)
        self.assertNoPassword(created.json())
        photo_id = created.json()["data"]["id"]

        self.assertEqual(
            self.delete(f"/api/gallery/{photo_id}", json={"password": "wrong"}).status_code,
            403,
        )
        self.assertEqual(self.delete(f"/api/gallery/{photo_id}").status_code, 400)
        self.assertEqual(
            self.delete(f"/api/gallery/{photo_id}", json={"password": "vpw"}).status_code,
            200,
        )


class PostApiTests(ApiTestCase):
    def test_create_with_images(self):
        headers = self.login()
        response = self.client.post(
            "/api/posts",
            data={"title": "Picnic", "content": "Sunday lunch", "createdAt": "2025-06-03T10:00:00Z"},
            files=[
                ("images", ("1.jpg", b"1", "image/jpeg")),
                ("images", ("2.jpg", b"2", "image/jpeg")),
            ],
            headers=headers,
        )
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(len(data["images"]), 2)
        self.assertEqual(data["imageUrl"], data["images"][0])
        self.assertEqual(data["authorName"], "alice")
        self.assertEqual(data["createdAt"], "2025-06-03 10:00:00")

        by_date = self.client.get("/api/posts/date/2025-06-03")
        self.assertEqual(by_date.status_code, 200)
        self.assertEqual([p["title"] for p in by_date.json()["data"]], ["Picnic"])
        self.assertEqual(self.client.get("/api/posts/date/2025-06-04").json()["data"], [])

        counts = self.client.get("/api/posts/counts")
        self.assertEqual(counts.json()["data"], {"2025-06-03": 1})

    def test_client_timestamp_is_normalized_to_utc(self):
        headers = self.login()
        response = self.client.post(
            "/api/posts",
            data={"title": "Vigil", "content": "c", "createdAt": "2025-06-03T01:30:00+09:00"},
            headers=headers,
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["createdAt"], "2025-06-02 16:30:00")
        self.assertEqual(self.client.get("/api/posts/counts").json()["data"], {"2025-06-02": 1})

    def test_malformed_timestamp_is_rejected(self):
        headers = self.login()
        response = self.client.post(
            "/api/posts",
            data={"title": "t", "content": "c", "createdAt": "next sunday"},
            files=[("images", ("1.jpg", b"1", "image/jpeg"))],
            headers=headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.storage.stored_objects, {})
        self.assertEqual(self.client.get("/api/posts/counts").json()["data"], {})

    def test_title_and_content_required(self):
        headers = self.login()
        response = self.client.post(
            "/api/posts", data={"title": "", "content": "x"}, headers=headers
        )
        self.assertEqual(response.status_code, 400)

    def test_create_requires_session(self):
        response = self.client.post("/api/posts", data={"title": "t", "content": "c"})
        self.assertEqual(response.status_code, 401)


if __name__ == "__main__":
    unittest.main()
