import json
import logging
import os
import re
from typing import Any, List

from depaudit.core.errors import ManifestParseError, ToolInvocationError
from depaudit.core.model import Dependency
from depaudit.core.tree import TreeBuilder
from depaudit.managers.base import PackageManager

# Matches: package==1.0, package[extra] == 1.0 ; markers
RE_PINNED = re.compile(r'^([A-Za-z0-9][A-Za-z0-9._\-]*)\s*(\[[^\]]*\])?\s*==\s*([^\s;,#]+)')


class PythonManager(PackageManager):
    @property
    def name(self) -> str:
        return "PyPI (Pip)"

    @property
    def ecosystem(self) -> str:
        return "python"

    def get_dependencies(self, path: str, builder: TreeBuilder) -> None:
        cmd = ["pipdeptree", "--json-tree"]
        try:
            data = self.run_json(cmd, path)
            if not isinstance(data, list):
                raise ToolInvocationError(cmd, "unexpected JSON layout")
        except ToolInvocationError as e:
            if os.path.exists(os.path.join(path, "requirements.txt")):
                self.log_fallback(e, "requirements.txt")
                self._parse_requirements(path, builder)
            elif os.path.exists(os.path.join(path, "Pipfile.lock")):
                self.log_fallback(e, "Pipfile.lock")
                self._parse_pipfile_lock(path, builder)
            else:
                raise ManifestParseError(f"requirements.txt not found and pipdeptree failed: {e}")
            return

        logging.debug("Parsing pipdeptree output...")
        self._add_tree(builder, builder.root, data, depth=1)

    def _add_tree(self, builder: TreeBuilder, parent: Dependency, entries: List[Any], depth: int) -> None:
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            name = entry.get("package_name") or entry.get("key")
            if not name:
                continue

            version = entry.get("installed_version") or "unknown"
            node = builder.add(parent, name, version, direct=(depth == 1), depth=depth)
            if node is not None:
                self._add_tree(builder, node, entry.get("dependencies") or [], depth + 1)

    def _parse_requirements(self, path: str, builder: TreeBuilder) -> None:
        logging.debug("Parsing requirements.txt...")
        try:
            content = self.read_text(path, "requirements.txt")
        except OSError as e:
            raise ManifestParseError(f"requirements.txt not found: {e}")

        for line in content.splitlines():
            line = line.strip()
            # Blank lines, comments and pip options (-r, -c, -e, --index-url ...)
            if not line or line.startswith(("#", "-")):
                continue

            match = RE_PINNED.match(line)
            if not match:
                logging.debug(f"Skipping unpinned requirement: {line}")
                continue

            builder.add(builder.root, match.group(1), match.group(3), direct=True)

    def _parse_pipfile_lock(self, path: str, builder: TreeBuilder) -> None:
        logging.debug("Parsing Pipfile.lock...")
        try:
            data = json.loads(self.read_text(path, "Pipfile.lock"))
        except (OSError, json.JSONDecodeError) as e:
            raise ManifestParseError(f"failed to parse Pipfile.lock: {e}")

        default = data.get("default") if isinstance(data, dict) else None
        if not isinstance(default, dict):
            raise ManifestParseError("failed to parse Pipfile.lock: missing 'default' section")

        for name, info in default.items():
            version = ""
            if isinstance(info, dict):
                version = str(info.get("version", "")).lstrip("=")
            builder.add(builder.root, name, version or "unknown", direct=True)
