from __future__ import annotations

from typing import Any, Iterable


OPEN = "Open"
WIP = "Wip"
IDLE = "Idle"
DONE = "Done"
UNMAPPED = "Unmapped"

CATEGORIES = (OPEN, WIP, IDLE, DONE)
ACTIVE_CATEGORIES = frozenset({WIP, IDLE})


def _normalize_status(value: Any) -> str:
    return str(value or "").strip().lower()


def _normalize_set(values: Iterable[Any] | None) -> frozenset[str]:
    return frozenset(_normalize_status(item) for item in (values or []) if str(item or "").strip())


class StatusCatalog:
    """Board columns bucketed into Open/Wip/Idle/Done.

    The category sets never change after construction. Statuses that match no
    set are remembered once each so the run can report them at the end.
    """

    def __init__(
        self,
        open_statuses: Iterable[str] | None = None,
        wip_statuses: Iterable[str] | None = None,
        idle_statuses: Iterable[str] | None = None,
        done_statuses: Iterable[str] | None = None,
        project: str = "",
    ) -> None:
        self.project = project
        self._groups: tuple[tuple[str, frozenset[str]], ...] = (
            (OPEN, _normalize_set(open_statuses)),
            (WIP, _normalize_set(wip_statuses)),
            (IDLE, _normalize_set(idle_statuses)),
            (DONE, _normalize_set(done_statuses)),
        )
        self._unmapped: dict[str, str] = {}

    @classmethod
    def from_mapping(cls, status_mapping: dict[str, list[str]] | None, project: str = "") -> StatusCatalog:
        mapping = status_mapping or {}
        return cls(
            open_statuses=mapping.get("open"),
            wip_statuses=mapping.get("wip"),
            idle_statuses=mapping.get("idle"),
            done_statuses=mapping.get("done"),
            project=project,
        )

    def category_of(self, status: str | None) -> str:
        normalized = _normalize_status(status)
        for category, members in self._groups:
            if normalized in members:
                return category

        if normalized not in self._unmapped:
            self._unmapped[normalized] = str(status or "").strip()
        return UNMAPPED

    def is_active(self, status: str | None) -> bool:
        return self.category_of(status) in ACTIVE_CATEGORIES

    def is_done(self, status: str | None) -> bool:
        return self.category_of(status) == DONE

    def statuses_for(self, category: str) -> frozenset[str]:
        for name, members in self._groups:
            if name == category:
                return members
        return frozenset()

    @property
    def unmapped_statuses(self) -> list[str]:
        return list(self._unmapped.values())

    def __repr__(self) -> str:
        groups = ", ".join(f"{name}={sorted(members)}" for name, members in self._groups)
        return f"StatusCatalog(project={self.project!r}, {groups})"
