import os
import tempfile
import unittest

from depaudit.core.errors import UnsupportedEcosystemError
from depaudit.managers import detect_ecosystem, get_manager
from depaudit.managers.javascript import NodeManager


class TestDetectEcosystem(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = self.tmp.name

    def tearDown(self):
        self.tmp.cleanup()

    def touch(self, *names):
        for name in names:
            with open(os.path.join(self.path, name), "w", encoding="utf-8") as f:
                f.write("")

    def test_empty_repository(self):
        self.assertEqual(detect_ecosystem(self.path), "none")

    def test_missing_directory(self):
        self.assertEqual(detect_ecosystem(os.path.join(self.path, "nope")), "none")

    def test_each_manifest(self):
        cases = {
            "go.mod": "go",
            "yarn.lock": "nodejs",
            "Pipfile": "python",
            "Cargo.lock": "rust",
            "build.gradle": "java",
            "composer.lock": "php",
            "Gemfile.lock": "ruby",
        }
        for manifest, expected in cases.items():
            with self.subTest(manifest=manifest), tempfile.TemporaryDirectory() as path:
                open(os.path.join(path, manifest), "w").close()
                self.assertEqual(detect_ecosystem(path), expected)

    def test_priority_order(self):
        self.touch("Gemfile", "requirements.txt", "package.json", "go.mod")
        self.assertEqual(detect_ecosystem(self.path), "go")

    def test_python_before_rust(self):
        self.touch("Cargo.toml", "requirements.txt")
        self.assertEqual(detect_ecosystem(self.path), "python")

    def test_directory_named_like_manifest_is_ignored(self):
        os.mkdir(os.path.join(self.path, "go.mod"))
        self.assertEqual(detect_ecosystem(self.path), "none")

    def test_get_manager(self):
        self.assertIsInstance(get_manager("nodejs"), NodeManager)

    def test_php_has_no_adapter(self):
        with self.assertRaises(UnsupportedEcosystemError) as ctx:
            get_manager("php")
        self.assertIn("unsupported project type: php", str(ctx.exception))
