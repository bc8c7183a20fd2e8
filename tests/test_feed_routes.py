import io
import os
import unittest
from datetime import datetime, timedelta
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from tests import base
from tests.base import FailingBroadcaster, FakeBroadcaster


def _post_form(title="A first post", content="Some post content", image=True):
    data = {"title": title, "content": content}
    if image:
        data["image"] = (io.BytesIO(b"fake-image-bytes"), "pic.png", "image/png")
    return data


class TestFeedRoutes(base.FeedAppTestCase):
    def setUp(self):
        super().setUp()
        self.broadcaster = FakeBroadcaster()
        self._original_broadcaster = self.feed_service.broadcaster
        self.feed_service.broadcaster = self.broadcaster

    def tearDown(self):
        self.feed_service.broadcaster = self._original_broadcaster

    def _create_post(self, headers, **kwargs):
        return self.client.post(
            "/feed/post",
            data=_post_form(**kwargs),
            headers=headers,
            content_type="multipart/form-data",
        )

    def _seed_posts(self, count):
        from feed_service.models.post_model import Post
        from feed_service.repositories import user_repository

        start = datetime(2024, 1, 1, 12, 0, 0)
        with self.app.app_context():
            author = user_repository.create_user("seed@example.com", "Seeder", "x")
            for index in range(count):
                self.db.session.add(Post(
                    title=f"Post number {index + 1}",
                    content="Seeded content",
                    image_url=f"images/seed-{index + 1}.png",
                    creator_id=author.id,
                    created_at=start + timedelta(minutes=index),
                ))
            self.db.session.commit()

    def test_list_posts_pages_newest_first(self):
        self._seed_posts(5)

        response = self.client.get("/feed/posts?page=2")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["message"], "Posts fetched successfully")
        self.assertEqual(payload["totalItems"], 5)
        self.assertEqual(
            [post["title"] for post in payload["posts"]],
            ["Post number 3", "Post number 2"],
        )
        self.assertEqual(payload["posts"][0]["creator"]["name"], "Seeder")

        last_page = self.client.get("/feed/posts?page=3").get_json()
        self.assertEqual(last_page["totalItems"], 5)
        self.assertEqual([post["title"] for post in last_page["posts"]], ["Post number 1"])

    def test_list_posts_defaults_to_first_page(self):
        self._seed_posts(3)

        for query in ("", "?page=abc", "?page=0", "?page=-4"):
            response = self.client.get(f"/feed/posts{query}")
            self.assertEqual(response.status_code, 200)
            payload = response.get_json()
            self.assertEqual(
                [post["title"] for post in payload["posts"]],
                ["Post number 3", "Post number 2"],
            )
            self.assertEqual(payload["totalItems"], 3)

    def test_list_posts_past_last_page_is_empty(self):
        self._seed_posts(3)

        for page in ("3", "100000000000000000000"):
            response = self.client.get(f"/feed/posts?page={page}")
            self.assertEqual(response.status_code, 200)
            payload = response.get_json()
            self.assertEqual(payload["posts"], [])
            self.assertEqual(payload["totalItems"], 3)

    def test_create_post_requires_auth(self):
        response = self._create_post(headers={})
        self.assertEqual(response.status_code, 401)
        self.assertIn("message", response.get_json())

    def test_create_post_stores_image_and_links_creator(self):
        user_id = self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")

        response = self._create_post(headers)
        self.assertEqual(response.status_code, 201)
        payload = response.get_json()
        self.assertEqual(payload["message"], "Post created successfully!")
        self.assertEqual(payload["creator"], {"id": user_id, "name": "Alice"})

        post = payload["post"]
        self.assertEqual(post["title"], "A first post")
        self.assertEqual(post["content"], "Some post content")
        self.assertTrue(post["imageUrl"].startswith("images/"))
        self.assertTrue(os.path.isfile(os.path.join(self.upload_dir, post["imageUrl"])))

        from feed_service.repositories import user_repository

        with self.app.app_context():
            user = user_repository.get_by_id(user_id)
            self.assertEqual([p.id for p in user.posts], [post["id"]])

        self.assertEqual(len(self.broadcaster.events), 1)
        channel, event = self.broadcaster.events[0]
        self.assertEqual(channel, "posts")
        self.assertEqual(event["action"], "create")
        self.assertEqual(event["post"]["id"], post["id"])
        self.assertEqual(event["post"]["creator"]["name"], "Alice")

    def test_create_post_without_image_is_rejected(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")

        response = self._create_post(headers, image=False)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()["message"], "No image provided.")

        listing = self.client.get("/feed/posts").get_json()
        self.assertEqual(listing["totalItems"], 0)
        self.assertEqual(self.image_files(), [])
        self.assertEqual(self.broadcaster.events, [])

    def test_create_post_rejects_short_title(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")

        response = self._create_post(headers, title="  abc ")
        self.assertEqual(response.status_code, 422)
        payload = response.get_json()
        self.assertEqual(payload["message"], "Validation failed, entered data is incorrect.")
        self.assertIn("title", payload["data"])
        self.assertEqual(self.image_files(), [])

    def test_create_post_rejects_unsupported_image_type(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")

        response = self.client.post(
            "/feed/post",
            data={
                "title": "A first post",
                "content": "Some post content",
                "image": (io.BytesIO(b"%PDF"), "doc.pdf", "application/pdf"),
            },
            headers=headers,
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()["message"], "Unsupported image type: application/pdf")

    def test_create_post_removes_image_when_store_write_fails(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")

        failure = OperationalError("INSERT", {}, Exception("database is locked"))
        with patch("feed_service.services.feed_service.db.session.commit", side_effect=failure):
            response = self._create_post(headers)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()["message"], "Could not save the post.")
        self.assertEqual(self.image_files(), [])
        self.assertEqual(self.broadcaster.events, [])

    def test_create_post_succeeds_when_broadcast_fails(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")
        self.feed_service.broadcaster = FailingBroadcaster()

        response = self._create_post(headers)
        self.assertEqual(response.status_code, 201)

    def test_get_post(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")
        post_id = self._create_post(headers).get_json()["post"]["id"]

        response = self.client.get(f"/feed/post/{post_id}")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["message"], "Post fetched")
        self.assertEqual(payload["post"]["id"], post_id)
        self.assertEqual(payload["post"]["creator"]["name"], "Alice")

    def test_get_unknown_post_returns_404(self):
        response = self.client.get("/feed/post/999")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["message"], "No post found")

        response = self.client.get("/feed/post/not-a-number")
        self.assertEqual(response.status_code, 404)
        self.assertIn("message", response.get_json())

    def test_update_post_with_new_image_replaces_old_file(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")
        created = self._create_post(headers).get_json()["post"]
        self.broadcaster.clear()

        response = self.client.put(
            f"/feed/post/{created['id']}",
            data={
                "title": "Edited title",
                "content": "Edited content",
                "image": (io.BytesIO(b"other-bytes"), "new.webp", "image/webp"),
            },
            headers=headers,
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 201)
        payload = response.get_json()
        self.assertEqual(payload["message"], "Post updated!")

        updated = payload["post"]
        self.assertEqual(updated["title"], "Edited title")
        self.assertEqual(updated["content"], "Edited content")
        self.assertNotEqual(updated["imageUrl"], created["imageUrl"])
        self.assertTrue(updated["imageUrl"].endswith(".webp"))
        self.assertFalse(os.path.exists(os.path.join(self.upload_dir, created["imageUrl"])))
        self.assertTrue(os.path.isfile(os.path.join(self.upload_dir, updated["imageUrl"])))

        self.assertEqual(len(self.broadcaster.events), 1)
        _, event = self.broadcaster.events[0]
        self.assertEqual(event["action"], "update")
        self.assertEqual(event["post"]["title"], "Edited title")

    def test_update_post_keeps_existing_image_path(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")
        created = self._create_post(headers).get_json()["post"]

        response = self.client.put(
            f"/feed/post/{created['id']}",
            data={
                "title": "Edited title",
                "content": "Edited content",
                "image": created["imageUrl"],
            },
            headers=headers,
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.get_json()["post"]["imageUrl"], created["imageUrl"])
        self.assertTrue(os.path.isfile(os.path.join(self.upload_dir, created["imageUrl"])))

    def test_update_post_rejects_unknown_image_path(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")
        created = self._create_post(headers).get_json()["post"]

        response = self.client.put(
            f"/feed/post/{created['id']}",
            data={
                "title": "Edited title",
                "content": "Edited content",
                "image": "images/does-not-exist.png",
            },
            headers=headers,
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 422)
        self.assertTrue(os.path.isfile(os.path.join(self.upload_dir, created["imageUrl"])))

    def test_update_post_without_any_image_is_rejected(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")
        created = self._create_post(headers).get_json()["post"]

        response = self.client.put(
            f"/feed/post/{created['id']}",
            data={"title": "Edited title", "content": "Edited content"},
            headers=headers,
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()["message"], "No file picked.")

    def test_update_post_by_other_user_is_forbidden(self):
        self._register("alice@example.com", "Alice")
        self._register("bob@example.com", "Bob")
        alice_headers = self._auth_header("alice@example.com")
        bob_headers = self._auth_header("bob@example.com")
        created = self._create_post(alice_headers).get_json()["post"]
        files_before = self.image_files()

        response = self.client.put(
            f"/feed/post/{created['id']}",
            data={
                "title": "Hijacked title",
                "content": "Hijacked content",
                "image": (io.BytesIO(b"evil"), "evil.png", "image/png"),
            },
            headers=bob_headers,
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["message"], "Not authorized!")

        stored = self.client.get(f"/feed/post/{created['id']}").get_json()["post"]
        self.assertEqual(stored["title"], "A first post")
        self.assertEqual(stored["imageUrl"], created["imageUrl"])
        self.assertEqual(self.image_files(), files_before)

    def test_update_unknown_post_returns_404(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")

        response = self.client.put(
            "/feed/post/42",
            data=_post_form(),
            headers=headers,
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 404)

    def test_delete_post_removes_record_link_and_image(self):
        user_id = self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")
        created = self._create_post(headers).get_json()["post"]
        self.broadcaster.clear()

        response = self.client.delete(f"/feed/post/{created['id']}", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"message": "Post deleted successfully"})

        self.assertEqual(self.client.get(f"/feed/post/{created['id']}").status_code, 404)
        self.assertFalse(os.path.exists(os.path.join(self.upload_dir, created["imageUrl"])))

        from feed_service.repositories import user_repository

        with self.app.app_context():
            self.assertEqual(user_repository.get_by_id(user_id).posts, [])

        self.assertEqual(
            self.broadcaster.events,
            [("posts", {"action": "delete", "post": created["id"]})],
        )

    def test_delete_post_twice_returns_404(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")
        post_id = self._create_post(headers).get_json()["post"]["id"]

        first = self.client.delete(f"/feed/post/{post_id}", headers=headers)
        self.assertEqual(first.status_code, 200)

        second = self.client.delete(f"/feed/post/{post_id}", headers=headers)
        self.assertEqual(second.status_code, 404)
        self.assertEqual(second.get_json()["message"], "No post found")

    def test_delete_post_by_other_user_is_forbidden(self):
        self._register("alice@example.com", "Alice")
        self._register("bob@example.com", "Bob")
        alice_headers = self._auth_header("alice@example.com")
        bob_headers = self._auth_header("bob@example.com")
        created = self._create_post(alice_headers).get_json()["post"]

        response = self.client.delete(f"/feed/post/{created['id']}", headers=bob_headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.client.get(f"/feed/post/{created['id']}").status_code, 200)
        self.assertTrue(os.path.isfile(os.path.join(self.upload_dir, created["imageUrl"])))

    def test_delete_post_keeps_image_when_store_write_fails(self):
        self._register("alice@example.com", "Alice")
        headers = self._auth_header("alice@example.com")
        created = self._create_post(headers).get_json()["post"]
        self.broadcaster.clear()

        failure = OperationalError("DELETE", {}, Exception("database is locked"))
        with patch("feed_service.services.feed_service.db.session.commit", side_effect=failure):
            response = self.client.delete(f"/feed/post/{created['id']}", headers=headers)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()["message"], "Could not save changes.")
        self.assertEqual(self.client.get(f"/feed/post/{created['id']}").status_code, 200)
        self.assertTrue(os.path.isfile(os.path.join(self.upload_dir, created["imageUrl"])))
        self.assertEqual(self.broadcaster.events, [])

    def test_unexpected_error_is_rendered_as_500(self):
        with patch.object(self.feed_service, "list_posts", side_effect=RuntimeError("boom")):
            response = self.client.get("/feed/posts")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json(), {"message": "An unexpected error occurred."})


if __name__ == "__main__":
    unittest.main()
