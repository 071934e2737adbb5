import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, List

from depaudit.core.errors import ToolInvocationError
from depaudit.core.runner import ToolRunner
from depaudit.core.tree import TreeBuilder


class PackageManager(ABC):
    """Base class inherited by all ecosystem adapters."""

    def __init__(self, runner: ToolRunner = None):
        self.runner = runner or ToolRunner()

    @property
    @abstractmethod
    def name(self) -> str:
        """Friendly ecosystem name (e.g., Go Modules, NPM)."""
        pass

    @property
    @abstractmethod
    def ecosystem(self) -> str:
        """Detector tag (go, nodejs, python, ...)."""
        pass

    @abstractmethod
    def get_dependencies(self, path: str, builder: TreeBuilder) -> None:
        """Insert the project's dependency forest under ``builder.root``.

        Raises ManifestParseError when neither the tool nor the manifest
        fallback yields a dependency list.
        """
        pass

    def run_json(self, cmd: List[str], path: str) -> Any:
        """Run ``cmd`` in ``path`` and decode its stdout as JSON."""
        output = self.runner.check_output(cmd, path)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise ToolInvocationError(cmd, f"invalid JSON output: {e}")

    @staticmethod
    def read_text(path: str, filename: str) -> str:
        with open(os.path.join(path, filename), "r", encoding="utf-8") as f:
            return f.read()

    def log_fallback(self, error: Exception, target: str) -> None:
        logging.info(f"{self.name}: tool unavailable ({error}), falling back to {target}")
