import unittest

from depaudit.core.errors import ScanCancelled
from depaudit.core.tree import TreeBuilder, count_nodes, walk


class TestTreeBuilder(unittest.TestCase):

    def setUp(self):
        self.builder = TreeBuilder(max_depth=3)

    def test_synthetic_root(self):
        root = self.builder.root
        self.assertEqual((root.name, root.version, root.direct), ("project", "1.0.0", True))
        self.assertEqual(self.builder.tree.total, 0)

    def test_total_counts_every_insertion(self):
        a = self.builder.add(self.builder.root, "a", "1", direct=True)
        self.builder.add(a, "b", "1", depth=2)
        self.builder.add(self.builder.root, "c", "1", direct=True)

        self.assertEqual(self.builder.tree.total, 3)
        self.assertEqual(count_nodes(self.builder.tree), 3)
        # Reading the tree twice does not change anything
        self.assertEqual(count_nodes(self.builder.tree), 3)
        self.assertEqual(self.builder.tree.total, 3)

    def test_same_package_under_two_parents_is_two_nodes(self):
        a = self.builder.add(self.builder.root, "a", "1", direct=True)
        b = self.builder.add(self.builder.root, "b", "1", direct=True)
        shared_1 = self.builder.add(a, "shared", "2", depth=2)
        shared_2 = self.builder.add(b, "shared", "2", depth=2)

        self.assertIsNot(shared_1, shared_2)
        self.assertEqual(self.builder.tree.total, 4)

    def test_depth_limit(self):
        parent = self.builder.root
        for depth in range(1, 4):
            parent = self.builder.add(parent, f"pkg{depth}", "1", depth=depth)
            self.assertIsNotNone(parent)

        refused = self.builder.add(parent, "too-deep", "1", depth=4)

        self.assertIsNone(refused)
        self.assertEqual(self.builder.truncated, 1)
        self.assertEqual(self.builder.tree.total, 3)
        self.assertEqual(parent.children, [])

    def test_walk_is_preorder(self):
        a = self.builder.add(self.builder.root, "a", "1")
        self.builder.add(a, "a1", "1", depth=2)
        self.builder.add(a, "a2", "1", depth=2)
        self.builder.add(self.builder.root, "b", "1")

        names = [n.name for n in walk(self.builder.root)]
        self.assertEqual(names, ["project", "a", "a1", "a2", "b"])
        self.assertEqual([n.name for n in walk(self.builder.root, include_root=False)][0], "a")

    def test_walk_handles_deep_chains(self):
        builder = TreeBuilder(max_depth=5000)
        parent = builder.root
        for depth in range(1, 5001):
            parent = builder.add(parent, f"p{depth}", "1", depth=depth)

        self.assertEqual(count_nodes(builder.tree), 5000)

    def test_cancelled_builder_refuses_insertions(self):
        cancelled = []
        builder = TreeBuilder(is_cancelled=lambda: bool(cancelled))
        builder.add(builder.root, "a", "1")
        cancelled.append(True)

        with self.assertRaises(ScanCancelled):
            builder.add(builder.root, "b", "1")

        self.assertEqual(builder.tree.total, 1)
