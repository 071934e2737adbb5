from typing import List, Optional


class AuditError(Exception):
    """Base class for every failure the auditor reports as a result."""


class ToolInvocationError(AuditError):
    """An ecosystem tool was missing, exited non-zero or printed garbage."""

    def __init__(self, cmd: List[str], reason: str, stderr: Optional[str] = None):
        self.cmd = cmd
        self.reason = reason
        self.stderr = stderr or ""
        super().__init__(f"{' '.join(cmd)}: {reason}")


class ManifestParseError(AuditError):
    """Neither the tool nor the manifest fallback produced a dependency list."""


class UnsupportedEcosystemError(ManifestParseError):
    pass


class ScanCancelled(AuditError):
    pass


class CatalogError(Exception):
    """Raised while loading a vulnerability catalog, before any scan runs."""
