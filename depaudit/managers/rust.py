import os
import sys
import logging
from typing import Any, Dict, List, Set

from depaudit.core.errors import ManifestParseError, ToolInvocationError
from depaudit.core.model import Dependency
from depaudit.core.tree import TreeBuilder
from depaudit.managers.base import PackageManager

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


class RustManager(PackageManager):
    @property
    def name(self) -> str:
        return "Cargo (Rust)"

    @property
    def ecosystem(self) -> str:
        return "rust"

    def get_dependencies(self, path: str, builder: TreeBuilder) -> None:
        cmd = ["cargo", "tree", "--format", "json"]
        try:
            data = self.run_json(cmd, path)
            if not isinstance(data, list):
                raise ToolInvocationError(cmd, "unexpected JSON layout")
        except ToolInvocationError as e:
            self.log_fallback(e, "Cargo.lock")
            self._parse_cargo_lock(path, builder)
            return

        # The flat listing has no parent information, so nothing is direct
        for entry in data:
            if isinstance(entry, dict) and entry.get("name"):
                builder.add(builder.root, entry["name"], entry.get("version") or "unknown", direct=False)

        logging.debug(f"cargo tree listed {builder.tree.total} crates.")

    def _parse_cargo_lock(self, path: str, builder: TreeBuilder) -> None:
        lock_path = os.path.join(path, "Cargo.lock")
        if not os.path.exists(lock_path):
            raise ManifestParseError(f"failed to run cargo tree and Cargo.lock not found: {lock_path}")

        logging.debug("Parsing Cargo.lock...")
        try:
            with open(lock_path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ManifestParseError(f"failed to parse Cargo.lock: {e}")

        packages = [p for p in data.get("package", []) if p.get("name") and p.get("version")]
        pkg_lookup: Dict[str, Dict[str, Any]] = {}
        for pkg in packages:
            pkg_lookup.setdefault(pkg["name"], pkg)

        # Workspace members are the only packages without a registry source
        members = [p for p in packages if "source" not in p]
        member_names = {p["name"] for p in members}

        # Cargo.lock is a graph: a crate reached again (shared or cyclic) is
        # inserted as a leaf, so the tree stays linear in the lockfile size
        expanded: Set[str] = set()

        def build_tree(parent: Dependency, dep_entry: str, depth: int):
            dep_name, dep_ver = self._split_entry(dep_entry, pkg_lookup)
            if dep_name in member_names:
                return

            node = builder.add(parent, dep_name, dep_ver, direct=(depth == 1), depth=depth)
            if node is None or dep_name in expanded:
                return
            expanded.add(dep_name)

            pkg_data = pkg_lookup.get(dep_name, {})
            for child_entry in pkg_data.get("dependencies", []):
                build_tree(node, child_entry, depth + 1)

        if members:
            for member in members:
                for dep_entry in member.get("dependencies", []):
                    build_tree(builder.root, dep_entry, 1)
        else:
            for pkg in packages:
                builder.add(builder.root, pkg["name"], pkg["version"], direct=False)

        logging.debug(f"Cargo tree built from lockfile. {len(pkg_lookup)} unique packages.")

    @staticmethod
    def _split_entry(dep_entry: str, pkg_lookup: Dict[str, Dict[str, Any]]) -> List[str]:
        """``"serde 1.0.1 (registry+...)"`` -> name, version; bare names resolve via the lockfile."""
        parts = dep_entry.split()
        dep_name = parts[0]
        if len(parts) >= 2 and parts[1][:1].isdigit():
            return [dep_name, parts[1]]
        target_pkg = pkg_lookup.get(dep_name)
        return [dep_name, target_pkg.get("version", "unknown") if target_pkg else "unknown"]
