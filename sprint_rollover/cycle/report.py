"""Read-only views of cycle and history data for copy/paste and display."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sprint_rollover.cycle.models import ContributorStats, CycleRecord


class Prediction(StrEnum):
    """Sprint outcome rating, pasted verbatim into the team's report sheet."""

    good = "gut"
    medium = "mittel"
    poor = "schlecht"


def format_number(value: float) -> str:
    """Plain number rendering: ``12`` for integral values, ``12.5`` otherwise."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _ratio(part: float, whole: float) -> float:
    return part / whole if whole > 0 else 0.0


def predict(ticket_ratio: float, hours_ratio: float) -> Prediction:
    if ticket_ratio > 0.7 or hours_ratio > 0.7:
        return Prediction.good
    if ticket_ratio > 0.5 or hours_ratio > 0.5:
        return Prediction.medium
    return Prediction.poor


@dataclass(frozen=True)
class CycleSummary:
    total_tickets: int
    closed_tickets: int
    total_hours: float
    total_closed_hours: float
    prediction: Prediction

    def as_text(self) -> str:
        return (
            f"{self.total_tickets}\n"
            f"{self.closed_tickets}\n"
            f"{format_number(self.total_hours)}\n"
            f"{format_number(self.total_closed_hours)}\n"
            f"\n"
            f"{self.prediction.value}"
        )


def summarize_cycle(record: CycleRecord) -> CycleSummary:
    """Summary block; closed hours include the hours closed after cycle end."""
    total_closed_hours = record.closed_hours + record.extra_hours_closed
    return CycleSummary(
        total_tickets=record.total_tickets,
        closed_tickets=record.closed_tickets,
        total_hours=record.total_hours,
        total_closed_hours=total_closed_hours,
        prediction=predict(
            _ratio(record.closed_tickets, record.total_tickets),
            _ratio(total_closed_hours, record.total_hours),
        ),
    )


@dataclass(frozen=True)
class ClosedTicketNames:
    regular: list[str] = field(default_factory=list)
    needs_merge: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.regular) + len(self.needs_merge)

    def as_text(self) -> str:
        """Regular titles one per line, then a needs-merge block if any."""
        parts = ["\n".join(self.regular)] if self.regular else []
        if self.needs_merge:
            parts.append("Needs merge:\n" + "\n".join(self.needs_merge))
        return "\n\n".join(parts)


def closed_ticket_names(record: CycleRecord) -> ClosedTicketNames:
    regular: list[str] = []
    needs_merge: list[str] = []
    for ticket in record.closed_tickets_list:
        (needs_merge if ticket.has_needs_merge_label else regular).append(ticket.title)
    return ClosedTicketNames(regular=regular, needs_merge=needs_merge)


@dataclass(frozen=True)
class ContributorLine:
    name: str
    closed_tickets: int
    total_tickets: int
    ticket_completion_pct: float
    closed_hours: float
    total_hours: float


@dataclass(frozen=True)
class CycleDetails:
    """Detail view of an archived (or live) cycle."""

    milestone: str
    ticket_completion_pct: float
    hour_completion_pct: float
    total_closed_hours: float
    carried_over_hours: float
    started_at: str | None
    completed_at: str | None
    contributors: list[ContributorLine] = field(default_factory=list)


def _contributor_line(name: str, stats: ContributorStats) -> ContributorLine:
    return ContributorLine(
        name=name,
        closed_tickets=stats.closed_tickets,
        total_tickets=stats.total_tickets,
        ticket_completion_pct=round(_ratio(stats.closed_tickets, stats.total_tickets) * 100, 1),
        closed_hours=stats.closed_hours,
        total_hours=stats.total_hours,
    )


def describe_cycle(record: CycleRecord) -> CycleDetails:
    """Completion percentages and contributors ranked by closed hours."""
    total_closed_hours = record.closed_hours + record.extra_hours_closed
    ranked = sorted(
        record.user_performance.items(), key=lambda item: item[1].closed_hours, reverse=True
    )
    return CycleDetails(
        milestone=record.milestone_name or "Unnamed Sprint",
        ticket_completion_pct=round(_ratio(record.closed_tickets, record.total_tickets) * 100, 1),
        hour_completion_pct=round(_ratio(total_closed_hours, record.total_hours) * 100, 1),
        total_closed_hours=total_closed_hours,
        carried_over_hours=record.extra_hours_closed,
        started_at=record.timestamp,
        completed_at=record.completed_at or record.timestamp,
        contributors=[_contributor_line(name, stats) for name, stats in ranked],
    )
