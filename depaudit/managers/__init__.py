import logging
import os
from typing import Optional

from depaudit.core.errors import UnsupportedEcosystemError
from depaudit.core.runner import ToolRunner
from .base import PackageManager
from .go import GoManager
from .java import JavaManager
from .javascript import NodeManager
from .python import PythonManager
from .ruby import RubyManager
from .rust import RustManager

NO_ECOSYSTEM = "none"

# Checked in this order; the first manifest present decides the ecosystem
MANIFESTS = [
    ("go", ["go.mod"]),
    ("nodejs", ["package.json", "package-lock.json", "yarn.lock"]),
    ("python", ["requirements.txt", "Pipfile", "Pipfile.lock"]),
    ("rust", ["Cargo.toml", "Cargo.lock"]),
    ("java", ["pom.xml", "build.gradle"]),
    ("php", ["composer.json", "composer.lock"]),
    ("ruby", ["Gemfile", "Gemfile.lock"]),
]

MANAGERS = {
    "go": GoManager,
    "nodejs": NodeManager,
    "python": PythonManager,
    "rust": RustManager,
    "java": JavaManager,
    "ruby": RubyManager,
}


def detect_ecosystem(path: str) -> str:
    """Checks manifest files in ``path`` and returns the ecosystem tag, or "none"."""
    try:
        files = set(os.listdir(path))
    except OSError as e:
        logging.warning(f"Cannot list {path}: {e}")
        return NO_ECOSYSTEM

    for ecosystem, manifests in MANIFESTS:
        for manifest in manifests:
            if manifest in files and os.path.isfile(os.path.join(path, manifest)):
                return ecosystem

    return NO_ECOSYSTEM


def get_manager(ecosystem: str, runner: Optional[ToolRunner] = None) -> PackageManager:
    manager_cls = MANAGERS.get(ecosystem)
    if manager_cls is None:
        raise UnsupportedEcosystemError(f"unsupported project type: {ecosystem}")
    return manager_cls(runner)
