"""Wire contracts for the external collaborators.

The orchestrator owns these DTOs; adapters for a concrete board or issue
tracker map their own payloads onto them at the boundary.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from sprint_rollover.cycle.models import CamelModel, ClosedTicket, ContributorStats


class BoardSnapshot(CamelModel):
    """Point-in-time board metrics. Partial boards degrade to zeros."""

    total_tickets: int = Field(0, ge=0)
    total_hours: float = Field(0.0, ge=0)
    closed_hours: float = Field(0.0, ge=0)
    closed_tickets_list: list[ClosedTicket] = Field(default_factory=list)
    user_performance: dict[str, ContributorStats] = Field(default_factory=dict)
    user_distributions: dict[str, Any] = Field(default_factory=dict)
    current_milestone_name: str | None = None


class BoardIssue(CamelModel):
    """Issue card as seen on the board, with the list it sits on."""

    id: int | str
    title: str = ""
    board_name: str = ""
    labels: list[str] = Field(default_factory=list)


class CreatedMilestone(CamelModel):
    external_id: int | str | None = None
    display_name: str
    web_url: str | None = None


class ClosedMilestone(CamelModel):
    title: str
    web_url: str | None = None
    closed_at: str | None = None


class BulkActionResult(CamelModel):
    """Outcome of a queued bulk action once the collaborator finished it."""

    succeeded: bool = True
    processed: int = 0
    failed: int = 0
    message: str = ""
