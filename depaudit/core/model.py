from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Dict, Any, Optional


class Severity(Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Case-insensitive lookup. GHSA's "moderate" is treated as medium."""
        key = (value or "").strip().lower()
        if key == "moderate":
            key = "medium"
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown severity: {value!r}")

    def __lt__(self, other: "Severity") -> bool:
        return self.rank < other.rank


_SEVERITY_RANK = {
    Severity.NONE: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


@dataclass(frozen=True)
class Vulnerability:
    id: str
    severity: Severity
    description: str = ""
    cvss: float = 0.0
    published: Optional[date] = None
    fixed: str = ""

    def __post_init__(self):
        if not 0.0 <= self.cvss <= 10.0:
            raise ValueError(f"{self.id}: CVSS score {self.cvss} outside 0.0-10.0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "description": self.description,
            "cvss": self.cvss,
            "published": self.published.isoformat() if self.published else None,
            "fixed": self.fixed,
        }


@dataclass
class Dependency:
    name: str
    version: str
    direct: bool = False
    children: List['Dependency'] = field(default_factory=list)

    # Security model
    vulnerabilities: List[Vulnerability] = field(default_factory=list)

    @property
    def vulnerable(self) -> bool:
        return bool(self.vulnerabilities)

    @property
    def severity(self) -> Severity:
        return max((v.severity for v in self.vulnerabilities), default=Severity.NONE, key=lambda s: s.rank)

    def attach(self, vulns: List[Vulnerability]) -> None:
        self.vulnerabilities.extend(vulns)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "direct": self.direct,
            "vulnerable": self.vulnerable,
            "severity": self.severity.value,
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
            "children": [c.to_dict() for c in self.children],
        }


@dataclass
class DependencyTree:
    root: Dependency
    total: int = 0

    # Filled by the aggregator
    vulnerable: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root.to_dict(),
            "total": self.total,
            "vulnerable": self.vulnerable,
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
        }


class Status(Enum):
    PASS = "PASS"
    WARNING = "WARNING"
    FAIL = "FAIL"


@dataclass
class CheckResult:
    id: str
    name: str
    status: Status
    score: int
    message: str
    details: List[str] = field(default_factory=list)
    category: str = "Security"
    timestamp: datetime = field(default_factory=datetime.now)
    ecosystem: str = "none"

    # Annotated tree, kept only for per-node rendering
    tree: Optional[DependencyTree] = None

    @property
    def passed(self) -> bool:
        return self.status is Status.PASS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "score": self.score,
            "message": self.message,
            "details": list(self.details),
            "category": self.category,
            "timestamp": self.timestamp.isoformat(),
        }

    def tree_to_dict(self) -> Optional[Dict[str, Any]]:
        return self.tree.to_dict() if self.tree else None
