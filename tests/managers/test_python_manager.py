import json
import os
import tempfile
import unittest
from unittest.mock import MagicMock

from depaudit.core.errors import ManifestParseError, ToolInvocationError
from depaudit.core.runner import ToolRunner
from depaudit.core.tree import TreeBuilder
from depaudit.managers.python import PythonManager

PIPDEPTREE_FAILED = ToolInvocationError(["pipdeptree", "--json-tree"], "cannot execute")


class TestPythonManager(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = self.tmp.name
        self.runner = MagicMock(spec=ToolRunner)
        self.manager = PythonManager(self.runner)
        self.builder = TreeBuilder()

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, filename, content):
        with open(os.path.join(self.path, filename), "w", encoding="utf-8") as f:
            f.write(content)

    def test_pipdeptree_tree(self):
        self.runner.check_output.return_value = json.dumps([
            {
                "key": "requests",
                "package_name": "requests",
                "installed_version": "2.31.0",
                "dependencies": [
                    {"key": "urllib3", "package_name": "urllib3", "installed_version": "2.0.7",
                     "required_version": ">=1.21.1", "dependencies": []},
                ],
            },
        ])

        self.manager.get_dependencies(self.path, self.builder)

        requests = self.builder.root.children[0]
        self.assertEqual((requests.name, requests.version, requests.direct), ("requests", "2.31.0", True))
        self.assertEqual(requests.children[0].name, "urllib3")
        self.assertFalse(requests.children[0].direct)
        self.assertEqual(self.builder.tree.total, 2)

    def test_parse_requirements_simple(self):
        self.runner.check_output.side_effect = PIPDEPTREE_FAILED
        self.write("requirements.txt", """
        requests==2.31.0
        flask>=2.0
        # comment
        -r other.txt
        uvicorn[standard]==0.23.2 ; python_version >= "3.8"
        textual
        django == 4.2.1  # pinned for now
        """)

        self.manager.get_dependencies(self.path, self.builder)

        found = {c.name: c.version for c in self.builder.root.children}
        self.assertEqual(found, {"requests": "2.31.0", "uvicorn": "0.23.2", "django": "4.2.1"})
        self.assertTrue(all(c.direct for c in self.builder.root.children))
        self.assertEqual(self.builder.tree.total, 3)

    def test_pipfile_lock_fallback(self):
        self.runner.check_output.side_effect = PIPDEPTREE_FAILED
        self.write("Pipfile.lock", json.dumps({
            "_meta": {},
            "default": {
                "requests": {"version": "==2.31.0"},
                "mylib": {"git": "https://example.com/mylib.git"},
            },
            "develop": {"pytest": {"version": "==7.4.0"}},
        }))

        self.manager.get_dependencies(self.path, self.builder)

        found = {c.name: c.version for c in self.builder.root.children}
        self.assertEqual(found, {"requests": "2.31.0", "mylib": "unknown"})

    def test_no_manifest_fails(self):
        self.runner.check_output.side_effect = PIPDEPTREE_FAILED

        with self.assertRaises(ManifestParseError) as ctx:
            self.manager.get_dependencies(self.path, self.builder)

        self.assertIn("requirements.txt not found", str(ctx.exception))
