"""One-shot OSV snapshot.

Queries api.osv.dev for every distinct (name, version) of a built tree and
freezes the answer into an AdvisorySnapshot before matching starts. OSV
answers are version specific, so the snapshot is matched by exact name and
version, never by substring.
"""

import asyncio
import logging
import math
from collections import abc
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import httpx

from depaudit import config
from depaudit.core.model import DependencyTree, Severity, Vulnerability
from depaudit.core.tree import walk

OSV_ECOSYSTEMS = {
    "go": "Go",
    "nodejs": "npm",
    "python": "PyPI",
    "rust": "crates.io",
    "java": "Maven",
    "ruby": "RubyGems",
}

CONCURRENCY_LIMIT = 50

PackageKey = Tuple[str, str]


class AdvisorySnapshot(abc.Mapping):
    """Read-only ``(lowercase name, version) -> advisories`` mapping."""

    def __init__(self, entries: Mapping[PackageKey, Iterable[Vulnerability]] = None):
        data: Dict[PackageKey, Tuple[Vulnerability, ...]] = {}
        for (name, version), vulns in (entries or {}).items():
            key = (name.lower(), version)
            data[key] = data.get(key, ()) + tuple(vulns)
        self._data = MappingProxyType(data)

    def __getitem__(self, key: PackageKey) -> Tuple[Vulnerability, ...]:
        return self._data[key]

    def __iter__(self) -> Iterator[PackageKey]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def lookup(self, name: str, version: str) -> Tuple[Vulnerability, ...]:
        return self._data.get((name.lower(), version), ())


def collect_packages(tree: DependencyTree) -> List[PackageKey]:
    """Distinct ``(name, version)`` pairs of a tree, in walk order."""
    seen = set()
    packages = []
    for node in walk(tree.root, include_root=False):
        key = (node.name, node.version)
        if key not in seen:
            seen.add(key)
            packages.append(key)
    return packages


async def fetch_osv_snapshot(packages: List[PackageKey], ecosystem: str,
                             on_progress: Optional[Callable[[int, int], None]] = None,
                             client: Optional[httpx.AsyncClient] = None) -> AdvisorySnapshot:
    """
    Async lookup utilizing HTTPX, batched through /querybatch.
    """
    osv_ecosystem = OSV_ECOSYSTEMS.get(ecosystem)
    if osv_ecosystem is None or not packages:
        return AdvisorySnapshot()

    logging.info(f"Querying OSV for {len(packages)} package versions ({osv_ecosystem})...")

    all_queries = []
    all_keys = []
    for name, ver in packages:
        query = {"package": {"name": name, "ecosystem": osv_ecosystem}}
        clean_ver = ver.lstrip("v") if ecosystem == "go" else ver
        if clean_ver and clean_ver != "unknown":
            query["version"] = clean_ver
        all_queries.append(query)
        all_keys.append((name, ver))

    batch_size = config.OSV_BATCH_SIZE
    num_batches = math.ceil(len(all_queries) / batch_size)
    semaphore = asyncio.Semaphore(CONCURRENCY_LIMIT)

    own_client = client is None
    if own_client:
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=100)
        client = httpx.AsyncClient(timeout=config.OSV_TIMEOUT, limits=limits)

    try:
        tasks = []
        for i in range(num_batches):
            start = i * batch_size
            end = start + batch_size
            tasks.append(
                _process_batch_safe(client, semaphore, all_queries[start:end], all_keys[start:end],
                                    on_progress, i + 1, num_batches)
            )
        results = await asyncio.gather(*tasks)
    finally:
        if own_client:
            await client.aclose()

    entries: Dict[PackageKey, List[Vulnerability]] = {}
    for res in results:
        for key, vulns in res.items():
            entries.setdefault(key, []).extend(vulns)

    logging.info(f"OSV reported advisories for {len(entries)} package versions.")
    return AdvisorySnapshot(entries)


async def _process_batch_safe(client, semaphore, queries, keys, on_progress, current, total):
    async with semaphore:
        result = await _process_batch(client, queries, keys)
        if on_progress:
            on_progress(current, total)
        return result


async def _process_batch(client: httpx.AsyncClient, queries: List[Dict],
                         keys: List[PackageKey]) -> Dict[PackageKey, List[Vulnerability]]:
    local_map: Dict[PackageKey, List[Vulnerability]] = {}
    try:
        response = await client.post(f"{config.OSV_URL}/querybatch", json={"queries": queries})
        if response.status_code != 200:
            logging.error(f"OSV API Error {response.status_code}: {response.text}")
            return local_map

        results = response.json().get("results", [])
        pending = []
        for idx, res in enumerate(results[:len(keys)]):
            for v in res.get("vulns") or []:
                if v.get("id"):
                    pending.append((keys[idx], v["id"]))

        # querybatch only returns ids; fetch each record
        hydrated = await asyncio.gather(*[_hydrate_vulnerability(client, vid) for _, vid in pending])
        for (pkg_key, vid), data in zip(pending, hydrated):
            if data:
                local_map.setdefault(pkg_key, []).append(vulnerability_from_osv(data))
            else:
                local_map.setdefault(pkg_key, []).append(Vulnerability(vid, Severity.MEDIUM))

    except (httpx.HTTPError, ValueError) as e:
        logging.error(f"Async Request Error: {e}")

    return local_map


async def _hydrate_vulnerability(client: httpx.AsyncClient, vuln_id: str) -> Optional[Dict[str, Any]]:
    try:
        resp = await client.get(f"{config.OSV_URL}/vulns/{vuln_id}")
        if resp.status_code == 200:
            return resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logging.warning(f"Failed to hydrate {vuln_id}: {e}")
    return None


def vulnerability_from_osv(data: Dict[str, Any]) -> Vulnerability:
    """Convert an OSV record into a Vulnerability."""
    cvss = _numeric_score(data)
    severity = _osv_severity(data, cvss)

    published = None
    if data.get("published"):
        try:
            published = datetime.fromisoformat(data["published"].replace("Z", "+00:00")).date()
        except ValueError:
            logging.debug(f"Unparsable publish date on {data.get('id')}: {data['published']}")

    return Vulnerability(
        id=data.get("id", "Unknown ID"),
        severity=severity,
        description=data.get("summary") or (data.get("details") or "")[:200],
        cvss=cvss,
        published=published,
        fixed=_first_fixed(data),
    )


def _numeric_score(data: Dict[str, Any]) -> float:
    # Only plain numbers are used; CVSS vectors are not evaluated here
    for entry in data.get("severity") or []:
        try:
            score = float(entry.get("score", ""))
        except (TypeError, ValueError):
            continue
        if 0.0 <= score <= 10.0:
            return score
    return 0.0


def _osv_severity(data: Dict[str, Any], cvss: float) -> Severity:
    label = (data.get("database_specific") or {}).get("severity")
    if label:
        try:
            parsed = Severity.parse(label)
            if parsed is not Severity.NONE:
                return parsed
        except ValueError:
            logging.debug(f"Unknown OSV severity label {label!r} on {data.get('id')}")

    if cvss >= 9.0:
        return Severity.CRITICAL
    if cvss >= 7.0:
        return Severity.HIGH
    if cvss >= 4.0:
        return Severity.MEDIUM
    if cvss > 0.0:
        return Severity.LOW
    return Severity.MEDIUM


def _first_fixed(data: Dict[str, Any]) -> str:
    for affected in data.get("affected") or []:
        for rng in affected.get("ranges") or []:
            for event in rng.get("events") or []:
                if event.get("fixed"):
                    return event["fixed"]
    return ""
