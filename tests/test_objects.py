import tempfile
import unittest
from pathlib import Path

from fakes import FakeSigner, FakeTransport

from s3_browser_core.hooks import HookChain, veto_operations
from s3_browser_core.objects import ObjectStore
from s3_browser_core.responses import Err
from s3_browser_core.settings import ClientSettings


def build_store(signer=None, transport=None, hooks=None, settings=None):
    signer = signer or FakeSigner()
    transport = transport or FakeTransport(signer)
    store = ObjectStore(signer, transport=transport, hooks=hooks, settings=settings)
    return store, signer, transport


class ListingTests(unittest.TestCase):
    def setUp(self):
        self.store, self.signer, _ = build_store()
        for key in ["a.txt", "photos/", "photos/cat.jpg", "photos/2024/dog.jpg"]:
            self.signer.put("bucket", key, b"x")

    def test_delimited_listing_returns_prefixes(self):
        page = self.store.list_objects("bucket", prefix="photos/").data["page"]

        self.assertEqual(["photos/", "photos/cat.jpg"], page.keys())
        self.assertEqual(["photos/2024/"], page.prefixes)

    def test_deep_listing(self):
        page = self.store.list_objects("bucket", prefix="photos/", delimiter="").data["page"]

        self.assertEqual(["photos/", "photos/2024/dog.jpg", "photos/cat.jpg"], page.keys())
        self.assertEqual([], page.prefixes)

    def test_listing_is_cached_until_mutation(self):
        self.store.list_objects("bucket", prefix="photos/")
        self.store.list_objects("bucket", prefix="photos/")
        self.assertEqual(1, self.signer.count("list_objects"))

        self.store.put_object("bucket", "photos/new.txt", b"hello")
        page = self.store.list_objects("bucket", prefix="photos/").data["page"]

        self.assertEqual(2, self.signer.count("list_objects"))
        self.assertIn("photos/new.txt", page.keys())

    def test_mutation_leaves_other_prefixes_cached(self):
        self.store.list_objects("bucket", prefix="")
        self.store.delete_object("bucket", "photos/cat.jpg")
        self.store.list_objects("bucket", prefix="")

        self.assertEqual(1, self.signer.count("list_objects"))

    def test_missing_bucket_is_an_error(self):
        result = self.store.list_objects("missing")

        self.assertFalse(result.successful)
        self.assertEqual("NoSuchBucket", result.error_code)

    def test_iterator_follows_continuation_tokens(self):
        for index in range(5):
            self.signer.put("bucket", f"logs/{index}.log", b"")
        iterator = self.store.get_objects_iterator("bucket", prefix="logs/", max_keys=2)

        items = list(iterator)

        self.assertEqual([f"logs/{i}.log" for i in range(5)], [item.key for kind, item in items])
        self.assertTrue(all(kind == "object" for kind, _ in items))
        self.assertEqual(3, iterator.pages_fetched)
        self.assertTrue(iterator.exhausted)
        self.assertEqual([], list(iterator))

    def test_iterator_tags_prefixes(self):
        items = list(self.store.get_objects_iterator("bucket"))

        self.assertIn(("prefix", "photos/"), items)
        self.assertEqual(["a.txt"], [item.key for kind, item in items if kind == "object"])

    def test_iterator_stops_on_error(self):
        self.signer.fail_calls["list_objects"] = Err(500, "InternalError", "boom")
        iterator = self.store.get_objects_iterator("bucket")

        self.assertEqual([], list(iterator))
        self.assertEqual("InternalError", iterator.error.code)

    def test_list_all_collects_pages(self):
        for index in range(5):
            self.signer.put("bucket", f"logs/{index}.log", b"")

        result = self.store.list_all("bucket", "logs/")

        self.assertEqual(5, len(result.data["page"].objects))


class ExistenceTests(unittest.TestCase):
    def setUp(self):
        self.store, self.signer, _ = build_store()
        self.signer.put("bucket", "docs/readme.md", b"# hi", "text/markdown")

    def test_existing_object(self):
        result = self.store.object_exists("bucket", "docs/readme.md")

        self.assertTrue(result.successful)
        self.assertTrue(result.data["exists"])
        self.assertEqual("text/markdown", result.data["metadata"].content_type)

    def test_not_found_is_a_successful_negative_result(self):
        result = self.store.object_exists("bucket", "docs/missing.md")

        self.assertTrue(result.successful)
        self.assertEqual(404, result.status_code)
        self.assertFalse(result.data["exists"])

    def test_negative_result_is_cached(self):
        self.store.object_exists("bucket", "docs/missing.md")
        self.store.object_exists("bucket", "docs/missing.md")

        self.assertEqual(1, self.signer.count("head_object"))

    def test_access_denied_is_not_reported_as_missing(self):
        self.signer.fail_calls["head_object"] = Err(403, "AccessDenied", "Access Denied")

        result = self.store.object_exists("bucket", "docs/readme.md")

        self.assertFalse(result.successful)
        self.assertEqual("object_check_failed", result.error_code)
        self.assertEqual(403, result.status_code)

    def test_transport_failure_is_an_error(self):
        self.signer.fail_calls["head_object"] = Err(400, "transport_error", "connection reset")

        result = self.store.object_exists("bucket", "docs/readme.md")

        self.assertEqual("object_check_failed", result.error_code)

    def test_upload_invalidates_existence(self):
        self.store.object_exists("bucket", "docs/new.md")
        self.store.put_object("bucket", "docs/new.md", "content")

        self.assertTrue(self.store.object_exists("bucket", "docs/new.md").data["exists"])

    def test_objects_exist_mixed(self):
        result = self.store.objects_exist("bucket", ["docs/readme.md", "docs/missing.md"])

        self.assertEqual(207, result.status_code)
        self.assertEqual(1, result.data["summary"]["existing"])
        self.assertFalse(result.data["objects"]["docs/missing.md"]["exists"])

    def test_objects_exist_none(self):
        result = self.store.objects_exist("bucket", ["nope.txt"])

        self.assertEqual(404, result.status_code)
        self.assertTrue(result.data["summary"]["none_exist"])

    def test_get_object_info(self):
        info = self.store.get_object_info("bucket", "docs/readme.md")
        missing = self.store.get_object_info("bucket", "docs/other.md")

        self.assertEqual("readme.md", info.data["filename"])
        self.assertEqual("docs/", info.data["directory"])
        self.assertEqual("md", info.data["extension"])
        self.assertEqual("object_not_found", missing.error_code)


class UploadTests(unittest.TestCase):
    def test_upload_sends_content_length_and_guessed_type(self):
        store, signer, transport = build_store()

        result = store.put_object("bucket", "docs/page.html", b"<p>hi</p>")

        self.assertTrue(result.successful)
        request = transport.requests[0]
        self.assertEqual("9", request["headers"]["Content-Length"])
        self.assertEqual("text/html", request["headers"]["Content-Type"])
        self.assertEqual(300, request["timeout"])
        self.assertEqual(("bucket", "docs/page.html", 15, "text/html"), signer.calls[-1][1])
        self.assertEqual(b"<p>hi</p>", signer.store["bucket"]["docs/page.html"]["body"])

    def test_upload_from_path(self):
        store, signer, _ = build_store()
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "notes.txt"
            path.write_text("notes", encoding="utf-8")

            result = store.put_object("bucket", "notes.txt", path)

        self.assertTrue(result.successful)
        self.assertEqual(b"notes", signer.store["bucket"]["notes.txt"]["body"])
        self.assertEqual("text/plain", result.data["content_type"])

    def test_missing_file_is_reported(self):
        store, _, _ = build_store()

        result = store.put_object("bucket", "x.txt", "/does/not/exist.txt", is_path=True)

        self.assertEqual("file_read_error", result.error_code)

    def test_non_2xx_is_upload_error(self):
        signer = FakeSigner()
        store, _, _ = build_store(signer, FakeTransport(signer, status_code=403))

        result = store.put_object("bucket", "a.txt", b"x")

        self.assertEqual("upload_error", result.error_code)
        self.assertEqual(403, result.status_code)

    def test_transport_failure(self):
        signer = FakeSigner()
        store, _, _ = build_store(signer, FakeTransport(signer, error="timed out"))

        result = store.put_object("bucket", "a.txt", b"x")

        self.assertEqual("transport_error", result.error_code)

    def test_presign_failure(self):
        signer = FakeSigner()
        signer.fail_calls["get_presigned_upload_url"] = Err(400, "invalid_parameters", "bad")
        store, _, transport = build_store(signer)

        result = store.put_object("bucket", "a.txt", b"x")

        self.assertEqual("upload_url_error", result.error_code)
        self.assertEqual([], transport.requests)

    def test_upload_uses_configured_expiry(self):
        store, signer, _ = build_store(settings=ClientSettings(upload_url_expiry_minutes=5, upload_timeout=60))

        store.put_object("bucket", "a.bin", b"x")

        self.assertEqual(5, signer.calls[-1][1][2])


class MutationTests(unittest.TestCase):
    def setUp(self):
        self.store, self.signer, _ = build_store()
        self.signer.put("bucket", "src/a.txt", b"a")

    def test_copy_invalidates_only_target_prefix(self):
        self.store.list_objects("bucket", prefix="src/")
        self.store.list_objects("bucket", prefix="dst/")

        result = self.store.copy_object("bucket", "src/a.txt", "bucket", "dst/a.txt")
        self.store.list_objects("bucket", prefix="src/")
        self.store.list_objects("bucket", prefix="dst/")

        self.assertTrue(result.successful)
        self.assertEqual(3, self.signer.count("list_objects"))

    def test_delete_veto(self):
        store, signer, _ = build_store(hooks=HookChain([veto_operations("delete_object", reason="read only")]))
        signer.put("bucket", "a.txt")

        result = store.delete_object("bucket", "a.txt")

        self.assertEqual(403, result.status_code)
        self.assertEqual("deletion_prevented", result.error_code)
        self.assertEqual("read only", result.message)
        self.assertIn("a.txt", signer.store["bucket"])

    def test_upload_and_copy_vetoes(self):
        store, signer, transport = build_store(hooks=HookChain([veto_operations("put_object", "copy_object")]))
        signer.put("bucket", "a.txt")

        upload = store.put_object("bucket", "b.txt", b"x")
        copy = store.copy_object("bucket", "a.txt", "bucket", "c.txt")

        self.assertEqual((403, "operation_prevented"), (upload.status_code, upload.error_code))
        self.assertEqual((403, "operation_prevented"), (copy.status_code, copy.error_code))
        self.assertEqual([], transport.requests)
        self.assertEqual(["a.txt"], signer.keys("bucket"))

    def test_before_hook_can_rewrite_params(self):
        def redirect(operation, params):
            params["key"] = "uploads/" + params["key"]
            return params

        store, signer, _ = build_store(hooks=HookChain([redirect]))
        store.put_object("bucket", "a.txt", b"x")

        self.assertIn("uploads/a.txt", signer.store["bucket"])

    def test_after_hook_sees_response(self):
        seen = []

        def record(operation, response):
            seen.append((operation, response.status_code))
            return response

        store, signer, _ = build_store(hooks=HookChain(after=[record]))
        signer.put("bucket", "a.txt")
        store.delete_object("bucket", "a.txt")

        self.assertEqual([("delete_object", 200)], seen)

    def test_rename_object(self):
        result = self.store.rename_object("bucket", "src/a.txt", "dst/a.txt")

        self.assertEqual(200, result.status_code)
        self.assertEqual(["dst/a.txt"], self.signer.keys("bucket"))

    def test_rename_with_failed_delete_keeps_both(self):
        self.signer.fail_keys["delete_object"] = {"src/a.txt"}

        result = self.store.rename_object("bucket", "src/a.txt", "dst/a.txt")

        self.assertEqual(207, result.status_code)
        self.assertEqual(["dst/a.txt", "src/a.txt"], self.signer.keys("bucket"))

    def test_presigned_url_passthrough(self):
        result = self.store.get_presigned_url("bucket", "src/a.txt", 10)

        self.assertEqual("https://fake.local/bucket/src/a.txt", result.data["url"])
        self.assertEqual(600, result.data["expires_in"])


if __name__ == "__main__":
    unittest.main()
