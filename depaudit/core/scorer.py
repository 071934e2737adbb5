from depaudit.core.model import DependencyTree, Severity
from depaudit.core.tree import walk

SEVERITY_PENALTY = {
    Severity.CRITICAL: 20,
    Severity.HIGH: 10,
    Severity.MEDIUM: 5,
    Severity.LOW: 2,
}


def aggregate(tree: DependencyTree) -> DependencyTree:
    """Tally vulnerable nodes by their highest severity (one bucket per node)."""
    tree.vulnerable = tree.critical = tree.high = tree.medium = tree.low = 0

    for node in walk(tree.root, include_root=False):
        if not node.vulnerable:
            continue
        tree.vulnerable += 1
        severity = node.severity
        if severity is Severity.CRITICAL:
            tree.critical += 1
        elif severity is Severity.HIGH:
            tree.high += 1
        elif severity is Severity.MEDIUM:
            tree.medium += 1
        elif severity is Severity.LOW:
            tree.low += 1

    return tree


def calculate_score(tree: DependencyTree) -> int:
    score = 100
    score -= tree.critical * SEVERITY_PENALTY[Severity.CRITICAL]
    score -= tree.high * SEVERITY_PENALTY[Severity.HIGH]
    score -= tree.medium * SEVERITY_PENALTY[Severity.MEDIUM]
    score -= tree.low * SEVERITY_PENALTY[Severity.LOW]
    return max(0, min(100, score))
