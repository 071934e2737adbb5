import re
import logging
from typing import Dict, List, Set

from depaudit.core.errors import ManifestParseError
from depaudit.core.model import Dependency
from depaudit.core.tree import TreeBuilder
from depaudit.managers.base import PackageManager

# Get name (version)
RE_SPEC = re.compile(r'^ {4}([a-zA-Z0-9\-_.]+)\s\(([^)\s]+).*\)')

# Get dependency
RE_DEP = re.compile(r'^ {6}([a-zA-Z0-9\-_.]+)')

# Entry of the DEPENDENCIES section, "rails (= 7.0.0)" or "rails!"
RE_DIRECT = re.compile(r'^ {2}([a-zA-Z0-9\-_.]+)')


class RubyManager(PackageManager):
    """Gemfile.lock reader. There is no tool path; bundler never resolves anything here."""

    @property
    def name(self) -> str:
        return "RubyGems"

    @property
    def ecosystem(self) -> str:
        return "ruby"

    def get_dependencies(self, path: str, builder: TreeBuilder) -> None:
        logging.debug("Reading Gemfile.lock...")

        try:
            content = self.read_text(path, "Gemfile.lock")
        except OSError as e:
            raise ManifestParseError(f"Gemfile.lock not found: {e}")

        versions, adjacency, declared = parse_gemfile_lock(content)
        logging.debug(f"Parser done. {len(versions)} gems found.")

        roots = [name for name in declared if name in versions]
        if not roots:
            # If nobody is my parent, I am a root
            children_set = {dep for deps in adjacency.values() for dep in deps}
            roots = [pkg for pkg in versions if pkg not in children_set]

        # A gem reached again is a leaf: covers loops (railties <-> rails) and
        # shared gems such as activesupport
        expanded: Set[str] = set()

        def build_tree(parent: Dependency, name: str, depth: int):
            node = builder.add(parent, name, versions.get(name, ""), direct=(depth == 1), depth=depth)
            if node is None or name in expanded:
                return
            expanded.add(name)

            for child_name in adjacency.get(name, []):
                # Optional dependencies are sometimes missing from the specs
                if child_name in versions:
                    build_tree(node, child_name, depth + 1)

        for root in roots:
            build_tree(builder.root, root, 1)


def parse_gemfile_lock(content: str):
    """Returns (versions, adjacency, declared) from a Gemfile.lock text."""
    versions: Dict[str, str] = {}  # { "rails": "7.0.0" }
    adjacency: Dict[str, List[str]] = {}  # { "rails": ["actionpack", "activesupport"] }
    declared: List[str] = []

    # Parser state
    current_parent = None
    in_gem_block = False
    in_dependencies = False

    for line in content.splitlines():
        if line.strip() == "specs:":
            in_gem_block = True
            continue

        if line.strip() and not line.startswith(" "):
            in_gem_block = False
            current_parent = None
            in_dependencies = line.strip() == "DEPENDENCIES"
            continue

        if in_dependencies:
            match_direct = RE_DIRECT.match(line)
            if match_direct:
                declared.append(match_direct.group(1))
            continue

        if in_gem_block:
            # Try to find a root dependency
            match_spec = RE_SPEC.match(line)
            if match_spec:
                name = match_spec.group(1)
                versions[name] = match_spec.group(2)
                current_parent = name
                adjacency.setdefault(name, [])
                continue

            # try to find a sub dependency
            match_dep = RE_DEP.match(line)
            if match_dep and current_parent:
                adjacency[current_parent].append(match_dep.group(1))

    return versions, adjacency, declared
