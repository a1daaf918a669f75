from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


MAX_ROSTER_ENTRIES = 1000
MAX_NAME_LENGTH = 100


@dataclass(frozen=True)
class RosterEntry:
    name: str
    month: int
    day: int
    external_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "month": self.month, "day": self.day}
        if self.external_id is not None:
            data["externalId"] = self.external_id
        return data


@dataclass(frozen=True)
class Roster:
    entries: tuple[RosterEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict[str, Any]:
        return {"birthdays": [entry.to_dict() for entry in self.entries]}


@dataclass(frozen=True)
class UpcomingEntry:
    entry: RosterEntry
    days_until: int
    display_date: str
    month_name: str

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def external_id(self) -> str | None:
        return self.entry.external_id


@dataclass(frozen=True)
class RosterStats:
    total: int
    this_month: int
    next_month: int
    next_30_days: int
    month_distribution: dict[int, int]
    most_common_month: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "thisMonth": self.this_month,
            "nextMonth": self.next_month,
            "next30Days": self.next_30_days,
            "monthDistribution": {str(month): count for month, count in self.month_distribution.items()},
            "mostCommonMonth": self.most_common_month,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RosterStats:
        distribution = {int(month): int(count) for month, count in data.get("monthDistribution", {}).items()}
        most_common = data.get("mostCommonMonth")
        return cls(
            total=int(data["total"]),
            this_month=int(data["thisMonth"]),
            next_month=int(data["nextMonth"]),
            next_30_days=int(data["next30Days"]),
            month_distribution=distribution,
            most_common_month=int(most_common) if most_common is not None else None,
        )


@dataclass
class MigrationRecord:
    original_version: int | None
    target_version: int
    roster: Roster | None = None
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    success: bool = False
    needs_persist: bool = False


@dataclass(frozen=True)
class InstallationRecord:
    installation_id: str
    installed_by: int
    installed_at: str
    title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "installationId": self.installation_id,
            "installedBy": self.installed_by,
            "installedAt": self.installed_at,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstallationRecord:
        return cls(
            installation_id=str(data["installationId"]),
            installed_by=int(data["installedBy"]),
            installed_at=str(data["installedAt"]),
            title=str(data["title"]) if data.get("title") is not None else None,
        )
