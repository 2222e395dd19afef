"""Entity lookup collaborator: workspaces, projects and project slug resolution.

The engine only depends on the ``EntityDirectory`` protocol. The in-memory
implementation backs local development and tests; production deployments
plug in their own service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from threading import RLock
from typing import Dict, Iterable, List, Optional, Protocol

import yaml

DEFAULT_FUZZY_DISTANCE = 2


class MatchStatus(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class SlugMatch:
    status: MatchStatus
    slug: Optional[str] = None


class EntityDirectory(Protocol):
    async def workspace_slugs(self, organization_id: str) -> List[str]:
        ...

    async def workspace_id(self, workspace_slug: str) -> Optional[str]:
        ...

    async def project_slugs(self, workspace_id: str) -> List[str]:
        ...

    async def resolve_project_slug(self, candidate: str) -> SlugMatch:
        ...


@dataclass
class WorkspaceRecord:
    id: str
    slug: str
    name: str = ""
    organization_id: str = ""
    projects: List[str] = field(default_factory=list)


class InMemoryDirectory:
    """Thread-safe in-memory ``EntityDirectory``."""

    def __init__(
        self,
        workspaces: Iterable[WorkspaceRecord] = (),
        fuzzy_max_distance: int = DEFAULT_FUZZY_DISTANCE,
    ) -> None:
        self._lock = RLock()
        self._workspaces: Dict[str, WorkspaceRecord] = {}
        self.fuzzy_max_distance = fuzzy_max_distance
        self.update(workspaces)

    @classmethod
    def from_dict(cls, data: Dict, **kwargs) -> "InMemoryDirectory":
        records = [
            WorkspaceRecord(
                id=str(item["id"]),
                slug=str(item["slug"]),
                name=str(item.get("name") or item["slug"]),
                organization_id=str(item.get("organization_id") or ""),
                projects=[str(p) for p in item.get("projects") or []],
            )
            for item in (data or {}).get("workspaces", []) or []
            if "id" in item and "slug" in item
        ]
        return cls(records, **kwargs)

    def update(self, workspaces: Iterable[WorkspaceRecord]) -> None:
        with self._lock:
            for record in workspaces:
                self._workspaces[record.slug] = record

    async def workspace_slugs(self, organization_id: str) -> List[str]:
        if not organization_id:
            return []
        with self._lock:
            return [
                record.slug
                for record in self._workspaces.values()
                if record.organization_id == organization_id
            ]

    async def workspace_id(self, workspace_slug: str) -> Optional[str]:
        with self._lock:
            record = self._workspaces.get(workspace_slug)
            return record.id if record else None

    async def project_slugs(self, workspace_id: str) -> List[str]:
        with self._lock:
            for record in self._workspaces.values():
                if record.id == workspace_id:
                    return list(record.projects)
        return []

    async def resolve_project_slug(self, candidate: str) -> SlugMatch:
        with self._lock:
            known = sorted(
                {slug for record in self._workspaces.values() for slug in record.projects}
            )
        return match_slug(candidate, known, self.fuzzy_max_distance)


def load_directory(config_path: Path, **kwargs) -> InMemoryDirectory:
    if not config_path.exists():
        return InMemoryDirectory(**kwargs)
    with config_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return InMemoryDirectory.from_dict(data, **kwargs)


def match_slug(
    candidate: Optional[str],
    known: Iterable[str],
    max_distance: int = DEFAULT_FUZZY_DISTANCE,
) -> SlugMatch:
    """Exact, closest-within-threshold, or not found.

    The allowed edit distance shrinks for short candidates
    (``min(max_distance, max(1, len // 4))``) so two-letter slugs do not match
    anything two edits away. Ties go to the alphabetically first slug.
    """

    needle = (candidate or "").strip().lower()
    if not needle:
        return SlugMatch(MatchStatus.NOT_FOUND)
    slugs = sorted(set(known))
    if needle in slugs:
        return SlugMatch(MatchStatus.EXACT, needle)

    allowed = min(max_distance, max(1, len(needle) // 4))
    best: Optional[str] = None
    best_distance = allowed + 1
    for slug in slugs:
        distance = levenshtein(needle, slug, limit=allowed)
        if distance < best_distance:
            best, best_distance = slug, distance
    if best is None:
        return SlugMatch(MatchStatus.NOT_FOUND)
    return SlugMatch(MatchStatus.FUZZY, best)


def levenshtein(left: str, right: str, limit: Optional[int] = None) -> int:
    """Edit distance; stops early and returns ``limit + 1`` once it is exceeded."""

    if limit is not None and abs(len(left) - len(right)) > limit:
        return limit + 1
    previous = list(range(len(right) + 1))
    for i, lchar in enumerate(left, start=1):
        current = [i]
        for j, rchar in enumerate(right, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (lchar != rchar),
                )
            )
        if limit is not None and min(current) > limit:
            return limit + 1
        previous = current
    return previous[-1]


__all__ = [
    "EntityDirectory",
    "InMemoryDirectory",
    "MatchStatus",
    "SlugMatch",
    "WorkspaceRecord",
    "levenshtein",
    "load_directory",
    "match_slug",
]
