import logging
from typing import Set

from depaudit.core.errors import ManifestParseError, ToolInvocationError
from depaudit.core.tree import TreeBuilder
from depaudit.managers.base import PackageManager


class GoManager(PackageManager):
    @property
    def name(self) -> str:
        return "Go Modules"

    @property
    def ecosystem(self) -> str:
        return "go"

    def get_dependencies(self, path: str, builder: TreeBuilder) -> None:
        logging.debug("Starting reading Go Modules ...")

        # Versions only come from the module graph; go.mod alone is not enough
        try:
            output = self.runner.check_output(["go", "list", "-m", "all"], path)
        except ToolInvocationError as e:
            logging.error(f"Go Error: {e}")
            raise ManifestParseError(f"failed to run go list: {e}")

        direct = self._direct_requirements(path)

        for line in output.splitlines():
            line = line.strip()
            if not line or "go:" in line:
                continue

            parts = line.split()
            # The main module is printed without a version
            if len(parts) < 2:
                continue

            name, version = parts[0], parts[1]
            builder.add(builder.root, name, version, direct=name in direct)

        logging.debug(f"Go module list done. {builder.tree.total} modules, {len(direct)} direct.")

    def _direct_requirements(self, path: str) -> Set[str]:
        try:
            content = self.read_text(path, "go.mod")
        except OSError as e:
            logging.warning(f"Cannot read go.mod: {e}")
            return set()
        return parse_go_mod_requires(content)


def parse_go_mod_requires(content: str) -> Set[str]:
    """Module paths required directly by a go.mod file.

    Handles ``require x v`` and ``require ( ... )`` blocks; entries marked
    ``// indirect`` are left out.
    """
    direct = set()
    in_require = False

    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("//"):
            continue

        if in_require:
            if line.startswith(")"):
                in_require = False
                continue
            entry = line
        elif line.startswith(("require ", "require\t", "require(")):
            rest = line[len("require"):].strip()
            if rest.startswith("("):
                in_require = True
                continue
            entry = rest
        else:
            continue

        if "// indirect" in entry:
            continue
        parts = entry.split("//", 1)[0].split()
        if len(parts) >= 2:
            direct.add(parts[0])

    return direct
