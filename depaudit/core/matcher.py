import logging

from depaudit.core.catalog import VulnerabilityCatalog
from depaudit.core.model import DependencyTree
from depaudit.core.osv import AdvisorySnapshot
from depaudit.core.tree import walk


def match_vulnerabilities(tree: DependencyTree, catalog: VulnerabilityCatalog) -> int:
    """Attach catalog advisories to every dependency whose name contains a key.

    Matching is a case-insensitive substring test, so ``lodash.merge`` picks up
    the advisories filed under ``lodash``. Returns the number of nodes hit.
    """
    hits = 0
    for node in walk(tree.root, include_root=False):
        vulns = catalog.lookup(node.name)
        if not vulns:
            continue
        node.attach(vulns)
        hits += 1
        logging.debug(f"{node.name}@{node.version}: {len(vulns)} advisories, severity {node.severity.value}")

    logging.info(f"Matched {hits} vulnerable nodes out of {tree.total}.")
    return hits


def match_exact(tree: DependencyTree, snapshot: AdvisorySnapshot) -> int:
    """Attach version-specific advisories to nodes with the same name and version.

    Advisories already attached to a node (same id) are not added twice.
    Returns the number of nodes that received new advisories.
    """
    hits = 0
    for node in walk(tree.root, include_root=False):
        known = {v.id for v in node.vulnerabilities}
        vulns = [v for v in snapshot.lookup(node.name, node.version) if v.id not in known]
        if not vulns:
            continue
        node.attach(vulns)
        hits += 1
        logging.debug(f"{node.name}@{node.version}: {len(vulns)} OSV advisories")

    logging.info(f"OSV matched {hits} nodes.")
    return hits
