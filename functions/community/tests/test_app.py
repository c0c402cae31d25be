import os
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from community.app import create_app
from community.config import Settings, get_settings
from community.dependencies import get_store
from community.errors import StoreError
from community.middleware import CORS_HEADERS
from community.records import RecordLog
from community.store import InMemoryKeyValueStore, NamespacedStore


class CommunityApiTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryKeyValueStore()
        self.app = create_app()
        self.app.dependency_overrides[get_store] = lambda: self.store
        self.client = TestClient(self.app)

    def assertCorsHeaders(self, response):
        for name, value in CORS_HEADERS.items():
            self.assertEqual(response.headers[name], value)

    def stored_submissions(self):
        return RecordLog(NamespacedStore(self.store, "submissions"), "list").list()

    def test_forum_starts_empty(self):
        response = self.client.get("/api/forum")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_create_post_round_trip(self):
        response = self.client.post(
            "/api/forum", json={"content": "hi", "author": "bob"}
        )
        self.assertEqual(response.status_code, 201)
        post = response.json()
        self.assertEqual(post["content"], "hi")
        self.assertEqual(post["author"], "bob")
        self.assertTrue(post["id"])
        self.assertIsInstance(post["timestamp"], int)

        listing = self.client.get("/api/forum").json()
        self.assertIn(post, listing)

    def test_author_defaults_to_anonymous(self):
        response = self.client.post("/api/forum", json={"content": "no name"})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["author"], "anonymous")

    def test_posts_listed_in_submission_order(self):
        contents = [f"post {i}" for i in range(5)]
        for content in contents:
            self.assertEqual(
                self.client.post("/api/forum", json={"content": content}).status_code,
                201,
            )

        posts = self.client.get("/api/forum").json()
        self.assertEqual([p["content"] for p in posts], contents)
        self.assertEqual(len({p["id"] for p in posts}), len(contents))

    def test_reads_are_idempotent(self):
        self.client.post("/api/forum", json={"content": "once"})
        first = self.client.get("/api/forum").json()
        second = self.client.get("/api/forum").json()
        self.assertEqual(first, second)

    def test_post_without_content_is_rejected(self):
        response = self.client.post("/api/forum", json={"author": "bob"})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])
        self.assertIn("content", response.json()["error"])
        self.assertEqual(self.client.get("/api/forum").json(), [])

    def test_non_string_content_is_rejected(self):
        response = self.client.post("/api/forum", json={"content": 5})
        self.assertEqual(response.status_code, 400)

    def test_non_object_body_is_rejected(self):
        response = self.client.post("/api/forum", json=["content"])
        self.assertEqual(response.status_code, 400)

    def test_forum_matches_by_prefix(self):
        self.client.post("/api/forum", json={"content": "hi"})
        response = self.client.get("/api/forum/recent")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 1)

    def test_forum_rejects_other_methods(self):
        response = self.client.delete("/api/forum")
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.headers["allow"], "GET, POST")
        self.assertCorsHeaders(response)

    def test_announcement_rejects_other_methods(self):
        response = self.client.put("/api/announcement", json={"content": "x"})
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.headers["allow"], "GET, POST")

    def test_announcement_defaults(self):
        response = self.client.get("/api/announcement")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(), {"content": "no announcement", "updatedAt": None}
        )

    def test_announcement_update_overwrites(self):
        self.client.post("/api/announcement", json={"content": "first"})
        response = self.client.post("/api/announcement", json={"content": "second"})
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["success"])

        current = self.client.get("/api/announcement").json()
        self.assertEqual(current["content"], "second")
        self.assertEqual(current["updatedAt"], payload["updatedAt"])

    def test_announcement_requires_content(self):
        response = self.client.post("/api/announcement", json={})
        self.assertEqual(response.status_code, 400)

    def test_submit_stores_trimmed_message(self):
        response = self.client.post(
            "/api/submit",
            json={"message": "  hello  "},
            headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["success"])

        stored = self.stored_submissions()
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]["id"], payload["id"])
        self.assertEqual(stored[0]["message"], "hello")
        self.assertEqual(stored[0]["originIp"], "203.0.113.7")

    def test_submit_prefers_connecting_ip_header(self):
        self.client.post(
            "/api/submit",
            json={"message": "hi"},
            headers={"CF-Connecting-IP": "198.51.100.2", "X-Forwarded-For": "10.0.0.1"},
        )
        self.assertEqual(self.stored_submissions()[0]["originIp"], "198.51.100.2")

    def test_blank_submission_is_rejected(self):
        response = self.client.post("/api/submit", json={"message": "   "})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["success"], False)
        self.assertEqual(self.stored_submissions(), [])

    def test_submit_rejects_put(self):
        response = self.client.put("/api/submit", json={"message": "hi"})
        self.assertEqual(response.status_code, 405)

    def test_submit_rejects_get(self):
        response = self.client.get("/api/submit")
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.headers["allow"], "POST")

    def test_unusual_verb_on_resource_is_method_not_allowed(self):
        response = self.client.request("TRACE", "/api/forum")
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.headers["allow"], "GET, POST")

    def test_unknown_path_is_not_found_for_any_verb(self):
        for method in ("TRACE", "PURGE", "DELETE"):
            response = self.client.request(method, "/nowhere")
            self.assertEqual(response.status_code, 404, method)
            self.assertEqual(
                response.json(), {"error": "Not Found", "success": False}
            )

    def test_unknown_path_is_not_found(self):
        response = self.client.get("/api/unknown")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Not Found", "success": False})
        self.assertCorsHeaders(response)

    def test_options_preflight_never_touches_store(self):
        calls = []

        def tracking_store():
            calls.append(True)
            return MagicMock()

        self.app.dependency_overrides[get_store] = tracking_store
        for path in ("/api/forum", "/api/submit", "/anything/else"):
            response = self.client.options(path)
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.content, b"")
            self.assertCorsHeaders(response)
        self.assertEqual(calls, [])

    def test_cors_headers_on_success(self):
        response = self.client.get("/api/announcement")
        self.assertCorsHeaders(response)

    def test_malformed_json_is_server_error(self):
        response = self.client.post(
            "/api/forum",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["success"], False)
        self.assertTrue(response.json()["error"])
        self.assertCorsHeaders(response)

    def test_malformed_json_rejected_when_configured(self):
        self.app.dependency_overrides[get_settings] = lambda: Settings(
            reject_malformed_json=True
        )
        response = self.client.post(
            "/api/submit",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("Malformed JSON", response.json()["error"])

    def test_undecodable_body_rejected_when_configured(self):
        self.app.dependency_overrides[get_settings] = lambda: Settings(
            reject_malformed_json=True
        )
        response = self.client.post(
            "/api/submit",
            content=b'{"message": "\xff"}',
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("Malformed JSON", response.json()["error"])
        self.assertEqual(self.stored_submissions(), [])

    def test_undecodable_body_is_server_error_by_default(self):
        response = self.client.post(
            "/api/submit",
            content=b'{"message": "\xff"}',
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["success"], False)

    def test_store_failure_surfaces_as_server_error(self):
        broken = MagicMock()
        broken.get_json.side_effect = StoreError("backend unavailable")
        self.app.dependency_overrides[get_store] = lambda: broken

        response = self.client.get("/api/forum")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"error": "backend unavailable", "success": False}
        )
        self.assertCorsHeaders(response)


class StaticFallbackTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        with open(os.path.join(self.tmpdir.name, "index.html"), "w") as f:
            f.write("<h1>community</h1>")
        with patch(
            "community.app.get_settings",
            return_value=Settings(static_dir=self.tmpdir.name),
        ):
            app = create_app()
        app.dependency_overrides[get_store] = lambda: InMemoryKeyValueStore()
        self.client = TestClient(app)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_serves_static_assets(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertIn("community", response.text)

    def test_api_routes_take_precedence(self):
        response = self.client.get("/api/forum")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_missing_asset_is_not_found(self):
        response = self.client.get("/api/unknown")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["success"], False)


if __name__ == "__main__":
    unittest.main()
