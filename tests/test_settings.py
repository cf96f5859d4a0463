import json
import tempfile
import unittest
from pathlib import Path

from s3_browser_core.settings import ClientSettings, SettingsStorage


class ClientSettingsTests(unittest.TestCase):
    def test_effective_batch_size_is_clamped(self):
        self.assertEqual(1000, ClientSettings(batch_size=5000).effective_batch_size)
        self.assertEqual(1, ClientSettings(batch_size=0).effective_batch_size)
        self.assertEqual(250, ClientSettings(batch_size=250).effective_batch_size)


class SettingsStorageTests(unittest.TestCase):
    def test_load_returns_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            storage = SettingsStorage(Path(tmp) / "settings.json")

            self.assertEqual(ClientSettings(), storage.load())

    def test_load_returns_defaults_for_corrupt_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            path.write_text("{not json", encoding="utf-8")

            self.assertEqual(ClientSettings(), SettingsStorage(path).load())

    def test_load_sanitizes_invalid_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            payload = {
                "cache_enabled": "yes",
                "cache_ttl": "nope",
                "batch_size": 4000,
                "upload_url_expiry_minutes": -1,
                "upload_timeout": 0,
                "request_timeout": 12,
                "max_folder_depth": None,
            }
            path.write_text(json.dumps(payload), encoding="utf-8")

            settings = SettingsStorage(path).load()

            self.assertTrue(settings.cache_enabled)
            self.assertEqual(ClientSettings.cache_ttl, settings.cache_ttl)
            self.assertEqual(1000, settings.batch_size)
            self.assertEqual(ClientSettings.upload_url_expiry_minutes, settings.upload_url_expiry_minutes)
            self.assertEqual(ClientSettings.upload_timeout, settings.upload_timeout)
            self.assertEqual(12, settings.request_timeout)
            self.assertEqual(ClientSettings.max_folder_depth, settings.max_folder_depth)

    def test_save_sanitizes_minimum_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            storage = SettingsStorage(path)
            settings = ClientSettings(
                cache_enabled=False,
                cache_ttl=0,
                batch_size=2000,
                upload_url_expiry_minutes=-3,
                upload_timeout=600,
            )

            storage.save(settings)

            saved = json.loads(path.read_text(encoding="utf-8"))
            self.assertFalse(saved["cache_enabled"])
            self.assertEqual(1, saved["cache_ttl"])
            self.assertEqual(1000, saved["batch_size"])
            self.assertEqual(1, saved["upload_url_expiry_minutes"])
            self.assertEqual(600, saved["upload_timeout"])


if __name__ == "__main__":
    unittest.main()
