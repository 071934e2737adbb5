import unittest

from depaudit.core.model import Severity, Status, Vulnerability
from depaudit.core.report import assemble_report, failure_report, noop_report
from depaudit.core.scorer import aggregate, calculate_score
from depaudit.core.tree import TreeBuilder


def vuln(severity):
    return Vulnerability(f"ID-{severity.value}", severity)


class TestScorer(unittest.TestCase):

    def setUp(self):
        self.builder = TreeBuilder()
        self.tree = self.builder.tree

    def add_vulnerable(self, name, *severities):
        node = self.builder.add(self.builder.root, name, "1")
        node.attach([vuln(s) for s in severities])
        return node

    def test_clean_tree(self):
        self.builder.add(self.builder.root, "safe", "1")

        aggregate(self.tree)

        self.assertEqual(self.tree.vulnerable, 0)
        self.assertEqual(calculate_score(self.tree), 100)

    def test_counters_stay_zero_before_aggregation(self):
        self.add_vulnerable("bad", Severity.HIGH)
        self.assertEqual((self.tree.vulnerable, self.tree.high), (0, 0))

    def test_one_bucket_per_node(self):
        self.add_vulnerable("three-lows", Severity.LOW, Severity.LOW, Severity.LOW)
        self.add_vulnerable("mixed", Severity.MEDIUM, Severity.CRITICAL)

        aggregate(self.tree)

        self.assertEqual(self.tree.vulnerable, 2)
        self.assertEqual((self.tree.critical, self.tree.high, self.tree.medium, self.tree.low), (1, 0, 0, 1))
        self.assertEqual(calculate_score(self.tree), 100 - 20 - 2)

    def test_aggregate_is_idempotent(self):
        self.add_vulnerable("bad", Severity.HIGH)

        aggregate(self.tree)
        aggregate(self.tree)

        self.assertEqual((self.tree.vulnerable, self.tree.high), (1, 1))

    def test_score_formula_and_clamp(self):
        cases = [
            ((0, 0, 0, 0), 100),
            ((0, 1, 0, 0), 90),
            ((1, 1, 1, 1), 63),
            ((0, 0, 3, 4), 77),
            ((5, 0, 0, 0), 0),
            ((3, 5, 0, 0), 0),
        ]
        for (critical, high, medium, low), expected in cases:
            with self.subTest(counts=(critical, high, medium, low)):
                self.tree.critical, self.tree.high, self.tree.medium, self.tree.low = critical, high, medium, low
                self.assertEqual(calculate_score(self.tree), expected)
                self.assertEqual(expected, max(0, 100 - 20 * critical - 10 * high - 5 * medium - 2 * low))


class TestReport(unittest.TestCase):

    def test_failing_report(self):
        builder = TreeBuilder()
        builder.add(builder.root, "safe", "1")
        node = builder.add(builder.root, "lodash", "4.17.15")
        node.attach([vuln(Severity.HIGH)])
        aggregate(builder.tree)

        result = assemble_report("nodejs", builder.tree)

        self.assertEqual(result.status, Status.FAIL)
        self.assertEqual(result.score, 90)
        self.assertEqual(result.message, "Found 1 vulnerable dependencies (0 critical, 1 high)")
        self.assertEqual(result.details, [
            "Project Type: nodejs",
            "Total Dependencies: 2",
            "Vulnerable Dependencies: 1",
            "Critical Vulnerabilities: 0",
            "High Vulnerabilities: 1",
            "Medium Vulnerabilities: 0",
            "Low Vulnerabilities: 0",
        ])
        self.assertIs(result.tree, builder.tree)
        self.assertEqual(result.category, "Security")
        self.assertEqual(result.id, "TRANSITIVE-DEPS")

    def test_passing_report_without_tree(self):
        builder = TreeBuilder()
        aggregate(builder.tree)

        result = assemble_report("go", builder.tree, keep_tree=False)

        self.assertTrue(result.passed)
        self.assertEqual(result.message, "All dependencies are secure")
        self.assertIsNone(result.tree)
        self.assertIsNone(result.tree_to_dict())

    def test_noop_and_failure(self):
        self.assertEqual((noop_report().status, noop_report().score), (Status.PASS, 100))

        failed = failure_report("nodejs", RuntimeError("boom"))
        self.assertEqual((failed.status, failed.score), (Status.FAIL, 0))
        self.assertIn("boom", failed.message)

    def test_to_dict(self):
        data = noop_report().to_dict()
        self.assertEqual(set(data), {"id", "name", "status", "score", "message", "details", "category", "timestamp"})
        self.assertEqual(data["status"], "PASS")
