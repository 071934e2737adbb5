"""Vulnerability catalogs.

A catalog maps a lowercase key to the advisories of every package whose name
contains that key. Catalogs are built once and are read-only afterwards, so a
single instance can be shared by concurrent scans.
"""

import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from collections import abc
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Tuple, Union

from depaudit.core.errors import CatalogError
from depaudit.core.model import Severity, Vulnerability

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


class VulnerabilityCatalog(abc.Mapping):
    def __init__(self, entries: Mapping[str, Iterable[Vulnerability]] = None):
        data: Dict[str, Tuple[Vulnerability, ...]] = {}
        for key, vulns in (entries or {}).items():
            key = key.strip().lower()
            if not key:
                raise CatalogError("Catalog keys must not be empty.")
            data[key] = data.get(key, ()) + tuple(vulns)
        self._data = MappingProxyType(data)

    def __getitem__(self, key: str) -> Tuple[Vulnerability, ...]:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def lookup(self, package_name: str) -> List[Vulnerability]:
        """Every advisory whose key is a substring of the package name."""
        lowered = package_name.lower()
        found = []
        for key, vulns in self._data.items():
            if key in lowered:
                found.extend(vulns)
        return found


def _parse_date(value: Any) -> Union[date, None]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except ValueError:
        raise CatalogError(f"Invalid published date: {value!r}")


def vulnerability_from_dict(raw: Mapping[str, Any]) -> Vulnerability:
    if not isinstance(raw, abc.Mapping):
        raise CatalogError(f"Catalog advisories must be objects, got {raw!r}")
    try:
        severity = Severity.parse(str(raw["severity"]))
        if severity is Severity.NONE:
            raise ValueError("advisory severity cannot be 'none'")
        return Vulnerability(
            id=str(raw["id"]),
            severity=severity,
            description=str(raw.get("description", "")),
            cvss=float(raw.get("cvss", 0.0)),
            published=_parse_date(raw.get("published")),
            fixed=str(raw.get("fixed", "")),
        )
    except KeyError as e:
        raise CatalogError(f"Catalog entry is missing field {e}")
    except (TypeError, ValueError) as e:
        raise CatalogError(f"Invalid catalog entry {raw.get('id', '?')}: {e}")


def catalog_from_dict(data: Mapping[str, Any]) -> VulnerabilityCatalog:
    entries = {}
    for key, records in data.items():
        if not isinstance(records, list):
            raise CatalogError(f"Catalog key {key!r} must map to a list of advisories.")
        entries[key] = [vulnerability_from_dict(r) for r in records]
    return VulnerabilityCatalog(entries)


def load_catalog(path: Union[str, Path]) -> VulnerabilityCatalog:
    """Load a catalog from a JSON or TOML file.

    JSON: ``{"lodash": [{"id": ..., "severity": "high", ...}]}``.
    TOML: one array of tables per key (``[[lodash]]``).
    """
    path = Path(path)
    logging.debug(f"Loading vulnerability catalog from {path}")
    try:
        if path.suffix == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
    except FileNotFoundError:
        raise CatalogError(f"Catalog file not found: {path}")
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        raise CatalogError(f"Cannot parse catalog {path}: {e}")

    if not isinstance(data, dict):
        raise CatalogError(f"Catalog {path} must be an object keyed by package name.")

    catalog = catalog_from_dict(data)
    logging.info(f"Catalog loaded: {len(catalog)} keys.")
    return catalog


# Illustrative seed, used when no catalog file is configured
BUILTIN_CATALOG = catalog_from_dict({
    "log4j": [{
        "id": "CVE-2021-44228",
        "severity": "critical",
        "description": "Log4Shell - Remote Code Execution",
        "cvss": 10.0,
        "published": "2021-12-09",
        "fixed": "2.17.0",
    }],
    "lodash": [{
        "id": "CVE-2021-23337",
        "severity": "high",
        "description": "Command Injection",
        "cvss": 8.8,
        "published": "2021-03-08",
        "fixed": "4.17.21",
    }],
    "axios": [{
        "id": "CVE-2020-28168",
        "severity": "medium",
        "description": "Server-Side Request Forgery",
        "cvss": 6.5,
        "published": "2020-12-10",
        "fixed": "0.21.1",
    }],
})
