import asyncio
import logging
from typing import Dict, List, Optional

from depaudit import config
from depaudit.core.catalog import BUILTIN_CATALOG, VulnerabilityCatalog
from depaudit.core.errors import AuditError, ScanCancelled
from depaudit.core.matcher import match_exact, match_vulnerabilities
from depaudit.core.model import CheckResult, DependencyTree
from depaudit.core.osv import AdvisorySnapshot, collect_packages, fetch_osv_snapshot
from depaudit.core.report import assemble_report, cancelled_report, failure_report, noop_report
from depaudit.core.runner import ToolRunner
from depaudit.core.scorer import aggregate
from depaudit.core.tree import TreeBuilder
from depaudit.managers import NO_ECOSYSTEM, detect_ecosystem, get_manager


class DependencyAuditor:
    """Audits one repository: detect, build, match, aggregate, report.

    An instance owns its tree and its subprocess runner, so each repository
    of a batch gets its own auditor.
    """

    def __init__(self, catalog: Optional[VulnerabilityCatalog] = None, use_osv: bool = False,
                 runner: Optional[ToolRunner] = None, max_depth: Optional[int] = None,
                 keep_tree: bool = True):
        self.catalog = catalog if catalog is not None else BUILTIN_CATALOG
        self.use_osv = use_osv
        self.runner = runner or ToolRunner()
        self.max_depth = max_depth
        self.keep_tree = keep_tree

    def check(self, path: str) -> CheckResult:
        ecosystem = detect_ecosystem(path)
        if ecosystem == NO_ECOSYSTEM:
            logging.info(f"{path}: no supported dependency manifest, nothing to vet.")
            return noop_report()

        logging.info(f"{path}: detected ecosystem {ecosystem}")
        try:
            tree = self.build_tree(path, ecosystem)
            match_vulnerabilities(tree, self.catalog)
            if self.use_osv:
                match_exact(tree, self._osv_snapshot(tree, ecosystem))
            aggregate(tree)
        except ScanCancelled as e:
            logging.warning(f"{path}: {e}, discarding partial tree.")
            return cancelled_report(ecosystem, str(e))
        except AuditError as e:
            logging.error(f"{path}: dependency audit failed: {e}")
            return failure_report(ecosystem, e)

        return assemble_report(ecosystem, tree, keep_tree=self.keep_tree)

    def build_tree(self, path: str, ecosystem: str) -> DependencyTree:
        manager = get_manager(ecosystem, self.runner)
        logging.debug(f"Parsing dependencies ({manager.name})...")
        builder = TreeBuilder(self.max_depth, is_cancelled=lambda: self.runner.cancelled)
        manager.get_dependencies(path, builder)
        if builder.truncated:
            logging.warning(f"{builder.truncated} dependencies skipped beyond depth {builder.max_depth}.")
        logging.info(f"Dependency tree built: {builder.tree.total} nodes.")
        return builder.tree

    def _osv_snapshot(self, tree: DependencyTree, ecosystem: str) -> AdvisorySnapshot:
        if self.runner.cancelled:
            raise ScanCancelled("Scan cancelled")
        return asyncio.run(fetch_osv_snapshot(collect_packages(tree), ecosystem))

    def cancel(self) -> None:
        self.runner.cancel()


async def audit_repositories(paths: List[str], catalog: Optional[VulnerabilityCatalog] = None,
                             use_osv: bool = False, concurrency: Optional[int] = None,
                             timeout: Optional[float] = None) -> Dict[str, CheckResult]:
    """Audit several repositories concurrently, one auditor and thread each.

    A repository that exceeds ``timeout`` has its subprocess terminated and
    reports a cancelled Fail; no partial tree is kept. Other repositories are
    not affected. The concurrency slot is released only once the worker
    thread of a cancelled repository has returned.
    """
    semaphore = asyncio.Semaphore(concurrency or config.BATCH_CONCURRENCY)

    async def audit_one(path: str) -> CheckResult:
        async with semaphore:
            auditor = DependencyAuditor(catalog=catalog, use_osv=use_osv)
            task = asyncio.ensure_future(asyncio.to_thread(auditor.check, path))
            try:
                done, _ = await asyncio.wait({task}, timeout=timeout)
                if task in done:
                    return task.result()

                auditor.cancel()
                logging.warning(f"{path}: scan timed out after {timeout}s")
                # The thread stops at its next subprocess call or tree insertion
                await asyncio.gather(task, return_exceptions=True)
                return cancelled_report(detect_ecosystem(path), f"timed out after {timeout}s")
            except Exception as e:
                logging.exception(f"{path}: unexpected error during audit")
                return failure_report(detect_ecosystem(path), e)

    results = await asyncio.gather(*(audit_one(p) for p in paths))
    return dict(zip(paths, results))
