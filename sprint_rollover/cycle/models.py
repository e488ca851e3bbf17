"""Persisted record shapes for the sprint cycle and its history.

Serialized with camelCase aliases so the JSON matches the board helper's
stored blobs. Unknown keys are kept (extra="allow") and written back
unchanged, so foreign or older records survive a load/save round trip.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Predecessor order of the gating flags: each implies all before it.
FLAG_ORDER: tuple[str, ...] = (
    "ended",
    "prepared_for_next",
    "new_milestone_created",
    "survivors_set",
)


def format_instant(moment: datetime) -> str:
    """Render an instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_instant(value: str | None) -> datetime | None:
    """Parse an ISO instant; None for missing or unparseable values."""
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment


class CycleStep(StrEnum):
    end_cycle = "end_cycle"
    prepare_next = "prepare_next"
    copy_summary = "copy_summary"
    copy_closed_names = "copy_closed_names"
    create_milestone = "create_milestone"
    set_survivors = "set_survivors"
    close_old_milestone = "close_old_milestone"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_blob(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ClosedTicket(CamelModel):
    id: int | str = "unknown"
    title: str
    has_needs_merge_label: bool = False


class ContributorStats(CamelModel):
    total_tickets: int = 0
    closed_tickets: int = 0
    total_hours: float = 0.0
    closed_hours: float = 0.0


class NewMilestone(CamelModel):
    id: int | str | None = None
    display_name: str
    start_date: str
    end_date: str
    external_ref: str | None = None


class OldMilestoneInfo(CamelModel):
    title: str
    web_url: str | None = None
    closed_at: str | None = None


class CycleRecord(CamelModel):
    """The one live in-progress cycle."""

    id: str | None = None
    milestone_name: str | None = None

    ended: bool = False
    prepared_for_next: bool = False
    new_milestone_created: bool = False
    survivors_set: bool = False
    old_milestone_closed: bool = False

    total_tickets: int = Field(0, ge=0)
    closed_tickets: int = Field(0, ge=0)
    total_hours: float = Field(0.0, ge=0)
    closed_hours: float = Field(0.0, ge=0)
    extra_hours_closed: float = Field(0.0, ge=0)

    user_performance: dict[str, ContributorStats] = Field(default_factory=dict)
    closed_tickets_list: list[ClosedTicket] = Field(default_factory=list)

    new_milestone: NewMilestone | None = None
    milestone_to_close: str | None = None
    old_milestone_info: OldMilestoneInfo | None = None

    timestamp: str | None = None
    completed_at: str | None = None

    @classmethod
    def fresh(cls, milestone_name: str | None = None) -> Self:
        """New cycle with all flags false, seeded only with a milestone name."""
        return cls(milestone_name=milestone_name)

    @classmethod
    def from_blob(cls, blob: dict[str, Any]) -> Self:
        return cls.model_validate(blob)

    def flag_order_holds(self) -> bool:
        """True when no flag is set without all of its predecessors."""
        flags = [getattr(self, name) for name in FLAG_ORDER]
        return all(earlier or not later for earlier, later in zip(flags, flags[1:]))


class HistoryEntry(CycleRecord):
    """Frozen snapshot of a cycle record taken at archive time."""

    model_config = ConfigDict(frozen=True)

    user_distributions: dict[str, Any] | None = None

    @classmethod
    def from_record(
        cls,
        record: CycleRecord,
        *,
        user_distributions: dict[str, Any] | None = None,
        completed_at: str | None = None,
    ) -> Self:
        data = record.model_dump()
        if user_distributions is not None:
            data["user_distributions"] = user_distributions
        if completed_at is not None and not data.get("completed_at"):
            data["completed_at"] = completed_at
        return cls.model_validate(data)


class CycleEdit(BaseModel):
    """Manually entered replacement values for the five cycle metrics."""

    total_tickets: int = Field(ge=0)
    closed_tickets: int = Field(ge=0)
    total_hours: float = Field(ge=0)
    closed_hours: float = Field(ge=0)
    extra_hours_closed: float = Field(ge=0)
