import unittest

from s3_browser_core.paths import (
    breadcrumbs,
    compose_key,
    containing_prefix,
    descendant_folders,
    folder_name,
    normalize_folder,
    parent_folder,
)


class PathHelpersTests(unittest.TestCase):
    def test_normalize_folder(self):
        self.assertEqual("photos/2024/", normalize_folder("/photos/2024"))
        self.assertEqual("photos/", normalize_folder("photos//"))
        self.assertEqual("", normalize_folder(" / "))

    def test_containing_prefix(self):
        self.assertEqual("a/", containing_prefix("a/b/"))
        self.assertEqual("a/", containing_prefix("a/x.txt"))
        self.assertEqual("", containing_prefix("x.txt"))

    def test_parent_and_name(self):
        self.assertEqual("a/", parent_folder("a/b"))
        self.assertEqual("", parent_folder("a/"))
        self.assertEqual("b", folder_name("a/b/"))

    def test_compose_key(self):
        self.assertEqual("folder/file.txt", compose_key("folder", "file.txt"))
        self.assertEqual("file.txt", compose_key("", "file.txt"))
        with self.assertRaises(ValueError):
            compose_key("folder/", "  ")

    def test_breadcrumbs(self):
        self.assertEqual([("a", "a/"), ("b", "a/b/")], breadcrumbs("a/b/"))
        self.assertEqual([], breadcrumbs(""))

    def test_descendant_folders(self):
        keys = ["a/", "a/x.txt", "a/b/", "a/b/c/d.txt"]

        self.assertEqual({"a/b/", "a/b/c/"}, descendant_folders(keys, "a/"))


if __name__ == "__main__":
    unittest.main()
