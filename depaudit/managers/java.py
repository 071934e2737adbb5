import json
import logging
import os
import re
import tempfile
from typing import Any, Dict, List, Optional

from depaudit.core.errors import ManifestParseError, ToolInvocationError
from depaudit.core.model import Dependency
from depaudit.core.tree import TreeBuilder
from depaudit.managers.base import PackageManager

RE_DEPENDENCY_BLOCK = re.compile(r'<dependency>(.*?)</dependency>', re.DOTALL)
RE_DEPENDENCY_MANAGEMENT = re.compile(r'<dependencyManagement>.*?</dependencyManagement>', re.DOTALL)
RE_TAG = {tag: re.compile(rf'<{tag}>\s*([^<]*?)\s*</{tag}>') for tag in ("groupId", "artifactId", "version")}

# implementation 'g:a:v', api("g:a:v"), testImplementation "g:a:v@jar" ...
RE_GRADLE_DEP = re.compile(
    r'^\s*(?:implementation|api|compile|compileOnly|runtimeOnly|runtime|'
    r'testImplementation|testCompile|testRuntimeOnly|annotationProcessor|kapt)'
    r'\s*\(?\s*[\'"]([^:\'"\s]+):([^:\'"\s]+):([^:\'"@\s]+)[^\'"]*[\'"]',
    re.MULTILINE,
)


class JavaManager(PackageManager):
    @property
    def name(self) -> str:
        return "Maven"

    @property
    def ecosystem(self) -> str:
        return "java"

    def get_dependencies(self, path: str, builder: TreeBuilder) -> None:
        try:
            data = self._maven_tree(path)
        except ToolInvocationError as e:
            if os.path.exists(os.path.join(path, "pom.xml")):
                self.log_fallback(e, "pom.xml")
                self._parse_pom(path, builder)
            elif os.path.exists(os.path.join(path, "build.gradle")):
                self.log_fallback(e, "build.gradle")
                self._parse_gradle(path, builder)
            else:
                raise ManifestParseError(f"pom.xml not found and mvn failed: {e}")
            return

        logging.debug("Parsing Maven dependency tree...")
        self._add_tree(builder, builder.root, self._children(data), depth=1)

    def _maven_tree(self, path: str) -> Dict[str, Any]:
        # Maven writes the JSON tree to a file; keep it outside the repository
        with tempfile.TemporaryDirectory(prefix="depaudit-") as tmp:
            output_file = os.path.join(tmp, "tree.json")
            cmd = ["mvn", "-q", "-B", "dependency:tree", "-DoutputType=json", f"-DoutputFile={output_file}"]
            stdout = self.runner.check_output(cmd, path)

            payload = stdout
            if os.path.exists(output_file):
                with open(output_file, "r", encoding="utf-8") as f:
                    payload = f.read()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ToolInvocationError(cmd, f"invalid JSON output: {e}")
        if not isinstance(data, dict):
            raise ToolInvocationError(cmd, "unexpected JSON layout")
        return data

    @staticmethod
    def _children(node: Dict[str, Any]) -> List[Any]:
        children = node.get("children")
        if children is None:
            children = node.get("dependencies")
        return children if isinstance(children, list) else []

    def _add_tree(self, builder: TreeBuilder, parent: Dependency, entries: List[Any], depth: int) -> None:
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            name = self._coordinates(entry.get("groupId"), entry.get("artifactId"))
            if not name:
                continue

            node = builder.add(parent, name, entry.get("version") or "unknown", direct=(depth == 1), depth=depth)
            if node is not None:
                self._add_tree(builder, node, self._children(entry), depth + 1)

    @staticmethod
    def _coordinates(group_id: Optional[str], artifact_id: Optional[str]) -> str:
        return ":".join(part for part in (group_id, artifact_id) if part)

    def _parse_pom(self, path: str, builder: TreeBuilder) -> None:
        logging.debug("Scanning pom.xml dependency blocks...")
        try:
            content = self.read_text(path, "pom.xml")
        except OSError as e:
            raise ManifestParseError(f"pom.xml not found: {e}")

        # Managed versions are constraints, not dependencies
        content = RE_DEPENDENCY_MANAGEMENT.sub("", content)

        for block in RE_DEPENDENCY_BLOCK.findall(content):
            values = {}
            for tag, pattern in RE_TAG.items():
                match = pattern.search(block)
                values[tag] = match.group(1) if match else ""

            name = self._coordinates(values["groupId"], values["artifactId"])
            if name:
                builder.add(builder.root, name, values["version"] or "unknown", direct=True)

    def _parse_gradle(self, path: str, builder: TreeBuilder) -> None:
        logging.debug("Scanning build.gradle dependency declarations...")
        try:
            content = self.read_text(path, "build.gradle")
        except OSError as e:
            raise ManifestParseError(f"build.gradle not readable: {e}")

        for group_id, artifact_id, version in RE_GRADLE_DEP.findall(content):
            builder.add(builder.root, f"{group_id}:{artifact_id}", version, direct=True)
