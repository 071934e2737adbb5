import os
import tempfile
import unittest
from unittest.mock import MagicMock

from depaudit.core.errors import ManifestParseError, ToolInvocationError
from depaudit.core.runner import ToolRunner
from depaudit.core.tree import TreeBuilder
from depaudit.managers.go import GoManager, parse_go_mod_requires

GO_MOD = """module example.com/app

go 1.21

require github.com/gin-gonic/gin v1.7.0

require (
    github.com/stretchr/testify v1.8.4
    // github.com/commented/out v1.0.0
    golang.org/x/text v0.3.7 // indirect
)
"""

GO_LIST = """example.com/app
github.com/gin-gonic/gin v1.7.0
github.com/stretchr/testify v1.8.4
golang.org/x/text v0.3.7
go: downloading something
"""


class TestGoManager(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = self.tmp.name
        with open(os.path.join(self.path, "go.mod"), "w", encoding="utf-8") as f:
            f.write(GO_MOD)

        self.runner = MagicMock(spec=ToolRunner)
        self.manager = GoManager(self.runner)
        self.builder = TreeBuilder()

    def tearDown(self):
        self.tmp.cleanup()

    def test_go_list_parsing(self):
        self.runner.check_output.return_value = GO_LIST

        self.manager.get_dependencies(self.path, self.builder)

        self.runner.check_output.assert_called_once_with(["go", "list", "-m", "all"], self.path)
        children = self.builder.root.children
        self.assertEqual([c.name for c in children],
                         ["github.com/gin-gonic/gin", "github.com/stretchr/testify", "golang.org/x/text"])
        self.assertEqual(children[0].version, "v1.7.0")
        self.assertEqual(self.builder.tree.total, 3)

    def test_direct_flags_come_from_go_mod(self):
        self.runner.check_output.return_value = GO_LIST

        self.manager.get_dependencies(self.path, self.builder)

        flags = {c.name: c.direct for c in self.builder.root.children}
        self.assertTrue(flags["github.com/gin-gonic/gin"])
        self.assertTrue(flags["github.com/stretchr/testify"])
        self.assertFalse(flags["golang.org/x/text"])

    def test_tool_failure_is_fatal(self):
        self.runner.check_output.side_effect = ToolInvocationError(["go", "list", "-m", "all"], "cannot execute")

        with self.assertRaises(ManifestParseError) as ctx:
            self.manager.get_dependencies(self.path, self.builder)

        self.assertIn("failed to run go list", str(ctx.exception))
        self.assertEqual(self.builder.tree.total, 0)

    def test_parse_go_mod_requires(self):
        direct = parse_go_mod_requires(GO_MOD)

        self.assertEqual(direct, {"github.com/gin-gonic/gin", "github.com/stretchr/testify"})

    def test_parse_go_mod_ignores_other_directives(self):
        content = "module x\n\nreplace a => b v1.0.0\nrequire(\n  c v2\n)\n"

        self.assertEqual(parse_go_mod_requires(content), {"c"})
