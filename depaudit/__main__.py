import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from depaudit import config
from depaudit.__version__ import __version__
from depaudit.core.auditor import DependencyAuditor, audit_repositories
from depaudit.core.catalog import BUILTIN_CATALOG, load_catalog
from depaudit.core.errors import CatalogError
from depaudit.core.model import CheckResult, Dependency, Status

STATUS_STYLES = {
    Status.PASS: "green",
    Status.WARNING: "yellow",
    Status.FAIL: "red",
}


def setup_logging() -> None:
    """Send logs to a file; the terminal is reserved for the report."""
    log_dir = os.path.dirname(config.LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    logging.basicConfig(
        filename=config.LOG_FILE,
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.DEBUG),
        filemode="w",
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="depaudit",
        description="Audit direct and transitive dependencies against a vulnerability catalog.",
    )
    parser.add_argument("paths", nargs="*", default=["."], help="Repositories to audit (default: .)")
    parser.add_argument("--catalog", default=config.CATALOG_PATH, help="JSON or TOML vulnerability catalog")
    parser.add_argument("--osv", action="store_true", help="Also query OSV for the packages found")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("--tree", action="store_true", help="Print the vulnerable branches of each tree")
    parser.add_argument("--tui", action="store_true", help="Browse the tree of a single repository")
    parser.add_argument("--timeout", type=float, default=None, help="Per-repository timeout in seconds")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def render_vulnerable_branches(node: Dependency, branch: Tree) -> None:
    for child in node.children:
        if not _has_vulnerable(child):
            continue
        label = f"{escape(child.name)} [dim]{escape(child.version)}[/]"
        if child.vulnerable:
            ids = ", ".join(v.id for v in child.vulnerabilities)
            label = f"[bold red]{label}[/] [red]({child.severity.value}: {escape(ids)})[/]"
        render_vulnerable_branches(child, branch.add(label))


def _has_vulnerable(node: Dependency) -> bool:
    return node.vulnerable or any(_has_vulnerable(c) for c in node.children)


def print_results(console: Console, results: Dict[str, CheckResult], show_tree: bool) -> None:
    table = Table(title="Dependency Audit")
    table.add_column("Repository")
    table.add_column("Ecosystem")
    table.add_column("Status")
    table.add_column("Score", justify="right")
    table.add_column("Message")

    for path, result in results.items():
        style = STATUS_STYLES[result.status]
        table.add_row(escape(path), result.ecosystem, f"[{style}]{result.status.value}[/]",
                      str(result.score), escape(result.message))
    console.print(table)

    for path, result in results.items():
        if result.details:
            console.print(f"[b]{escape(path)}[/]")
            for line in result.details:
                console.print(f"  {escape(line)}")
        if show_tree and result.tree is not None and result.tree.vulnerable:
            root = Tree(f"📂 {escape(path)}")
            render_vulnerable_branches(result.tree.root, root)
            console.print(root)


def results_as_json(results: Dict[str, CheckResult], with_tree: bool) -> str:
    payload = []
    for path, result in results.items():
        entry = {"path": path, "ecosystem": result.ecosystem, **result.to_dict()}
        if with_tree:
            entry["tree"] = result.tree_to_dict()
        payload.append(entry)
    return json.dumps(payload, indent=2)


def main(argv: Optional[List[str]] = None) -> int:
    """ Entrypoint when is installed via pip """
    args = build_parser().parse_args(argv)
    setup_logging()
    console = Console()

    try:
        catalog = load_catalog(args.catalog) if args.catalog else BUILTIN_CATALOG
    except CatalogError as e:
        console.print(f"[bold red]Catalog error:[/] {escape(str(e))}")
        return 2

    if args.tui:
        if len(args.paths) != 1:
            console.print("[bold red]--tui takes exactly one repository[/]")
            return 2
        from depaudit.app import AuditApp

        app = AuditApp(args.paths[0], DependencyAuditor(catalog=catalog, use_osv=args.osv))
        app.run()
        result = app.result
        return 0 if result is not None and result.passed else 1

    results = asyncio.run(audit_repositories(args.paths, catalog=catalog, use_osv=args.osv, timeout=args.timeout))

    if args.json:
        console.print_json(results_as_json(results, args.tree))
    else:
        print_results(console, results, args.tree)

    return 0 if all(r.passed for r in results.values()) else 1


# Development mode
if __name__ == "__main__":
    sys.exit(main())
