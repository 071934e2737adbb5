import logging
from typing import Callable, Iterator, Optional

from depaudit import config
from depaudit.core.errors import ScanCancelled
from depaudit.core.model import Dependency, DependencyTree

ROOT_NAME = "project"
ROOT_VERSION = "1.0.0"


class TreeBuilder:
    """Owns one DependencyTree while an adapter fills it.

    ``add`` is the only way nodes enter the tree, so ``tree.total`` always
    matches the number of inserted nodes. When ``is_cancelled`` returns true,
    ``add`` raises ScanCancelled so lockfile parsing stops with the scan.
    """

    def __init__(self, max_depth: Optional[int] = None, is_cancelled: Optional[Callable[[], bool]] = None):
        self.max_depth = max_depth if max_depth is not None else config.MAX_DEPTH
        self.is_cancelled = is_cancelled
        self.tree = DependencyTree(root=Dependency(ROOT_NAME, ROOT_VERSION, direct=True))
        self.truncated = 0

    @property
    def root(self) -> Dependency:
        return self.tree.root

    def add(self, parent: Dependency, name: str, version: str, direct: bool = False,
            depth: int = 1) -> Optional[Dependency]:
        """Append a new child to ``parent``.

        ``depth`` is the depth of the new node (root children are 1). Beyond
        ``max_depth`` nothing is inserted and None is returned, so callers
        stop descending.
        """
        if self.is_cancelled is not None and self.is_cancelled():
            raise ScanCancelled("Scan cancelled")

        if depth > self.max_depth:
            if self.truncated == 0:
                logging.warning(f"Dependency depth limit ({self.max_depth}) reached at {name}, truncating.")
            self.truncated += 1
            return None

        node = Dependency(name, version, direct=direct)
        parent.children.append(node)
        self.tree.total += 1
        return node


def walk(node: Dependency, include_root: bool = True) -> Iterator[Dependency]:
    """Pre-order, depth-first iteration without recursion."""
    stack = [node] if include_root else list(reversed(node.children))
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def count_nodes(tree: DependencyTree) -> int:
    return sum(1 for _ in walk(tree.root, include_root=False))
