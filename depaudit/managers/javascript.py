import json
import logging
import os
from typing import Any, Dict

from depaudit.core.errors import ManifestParseError, ToolInvocationError
from depaudit.core.model import Dependency
from depaudit.core.tree import TreeBuilder
from depaudit.managers.base import PackageManager

NODE_MODULES = "node_modules/"


class NodeManager(PackageManager):
    @property
    def name(self) -> str:
        return "NPM"

    @property
    def ecosystem(self) -> str:
        return "nodejs"

    def get_dependencies(self, path: str, builder: TreeBuilder) -> None:
        cmd = ["npm", "ls", "--json", "--all"]
        try:
            data = self.run_json(cmd, path)
            if not isinstance(data, dict):
                raise ToolInvocationError(cmd, "unexpected JSON layout")
        except ToolInvocationError as e:
            self.log_fallback(e, "package-lock.json")
            self._parse_npm_lock(path, builder)
            return

        logging.debug("Parsing npm ls output...")
        self._add_nested(builder, builder.root, data.get("dependencies") or {}, depth=1)

    def _parse_npm_lock(self, path: str, builder: TreeBuilder) -> None:
        logging.debug("Parsing package-lock.json...")
        lock_path = os.path.join(path, "package-lock.json")
        try:
            with open(lock_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ManifestParseError(f"package-lock.json not found: {lock_path}")
        except (OSError, json.JSONDecodeError) as e:
            raise ManifestParseError(f"failed to parse package-lock.json: {e}")

        if not isinstance(data, dict):
            raise ManifestParseError("failed to parse package-lock.json: top level is not an object")

        # lockfileVersion 1 (and 2, which keeps both layouts)
        if isinstance(data.get("dependencies"), dict):
            self._add_nested(builder, builder.root, data["dependencies"], depth=1)
        elif isinstance(data.get("packages"), dict):
            self._add_packages(builder, data["packages"])
        elif "lockfileVersion" in data:
            # npm omits "dependencies" from a v1 lockfile of a project without any
            logging.warning("package-lock.json lists no dependencies.")
        else:
            raise ManifestParseError("failed to parse package-lock.json: no dependencies or packages object")

        logging.debug(f"package-lock.json parsed. {builder.tree.total} packages.")

    def _add_nested(self, builder: TreeBuilder, parent: Dependency, dependencies: Dict[str, Any],
                    depth: int) -> None:
        """Walk a ``{name: {version, dependencies}}`` mapping (npm ls / lockfile v1)."""
        for dep_name, dep_data in dependencies.items():
            if not isinstance(dep_data, dict):
                continue

            version = dep_data.get("version") or "unknown"
            node = builder.add(parent, dep_name, version, direct=(depth == 1), depth=depth)
            if node is None:
                continue

            nested = dep_data.get("dependencies")
            if isinstance(nested, dict):
                self._add_nested(builder, node, nested, depth + 1)

    def _add_packages(self, builder: TreeBuilder, packages: Dict[str, Any]) -> None:
        """Rebuild a tree from the flat ``packages`` map of lockfile v3.

        Install paths encode nesting: ``node_modules/a/node_modules/b`` is a
        copy of ``b`` owned by ``a``.
        """
        entries = [k for k in packages if NODE_MODULES in k and isinstance(packages[k], dict)]
        entries.sort(key=lambda k: k.count(NODE_MODULES))

        nodes: Dict[str, Dependency] = {"": builder.root}
        for key in entries:
            prefix, _, dep_name = key.rpartition(NODE_MODULES)
            parent_key = prefix.rstrip("/")
            parent = nodes.get(parent_key)
            if parent is None:
                # Parent was truncated or is a workspace link outside the tree
                continue

            depth = key.count(NODE_MODULES)
            version = packages[key].get("version") or "unknown"
            node = builder.add(parent, dep_name, version, direct=(parent_key == ""), depth=depth)
            if node is not None:
                nodes[key] = node
