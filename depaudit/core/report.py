from depaudit.core.model import CheckResult, DependencyTree, Status
from depaudit.core.scorer import calculate_score

CHECK_ID = "TRANSITIVE-DEPS"
CHECK_NAME = "Transitive Dependency Vetting"
CATEGORY = "Security"

NO_ECOSYSTEM = "none"


def _result(**kwargs) -> CheckResult:
    return CheckResult(id=CHECK_ID, name=CHECK_NAME, category=CATEGORY, **kwargs)


def noop_report() -> CheckResult:
    return _result(
        status=Status.PASS,
        score=100,
        message="No supported dependency manifest found",
        ecosystem=NO_ECOSYSTEM,
    )


def failure_report(ecosystem: str, error: Exception) -> CheckResult:
    return _result(
        status=Status.FAIL,
        score=0,
        message=f"Failed to build dependency tree: {error}",
        details=[f"Project Type: {ecosystem}"],
        ecosystem=ecosystem,
    )


def cancelled_report(ecosystem: str, reason: str) -> CheckResult:
    return _result(
        status=Status.FAIL,
        score=0,
        message=f"Scan cancelled: {reason}",
        ecosystem=ecosystem,
    )


def assemble_report(ecosystem: str, tree: DependencyTree, keep_tree: bool = True) -> CheckResult:
    """Summarize an aggregated tree as a check result."""
    if tree.vulnerable > 0:
        status = Status.FAIL
        message = (f"Found {tree.vulnerable} vulnerable dependencies "
                   f"({tree.critical} critical, {tree.high} high)")
    else:
        status = Status.PASS
        message = "All dependencies are secure"

    details = [
        f"Project Type: {ecosystem}",
        f"Total Dependencies: {tree.total}",
        f"Vulnerable Dependencies: {tree.vulnerable}",
        f"Critical Vulnerabilities: {tree.critical}",
        f"High Vulnerabilities: {tree.high}",
        f"Medium Vulnerabilities: {tree.medium}",
        f"Low Vulnerabilities: {tree.low}",
    ]

    return _result(
        status=status,
        score=calculate_score(tree),
        message=message,
        details=details,
        ecosystem=ecosystem,
        tree=tree if keep_tree else None,
    )
