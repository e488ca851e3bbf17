"""Shared pytest fixtures for sprint-rollover tests.

Stores are in-memory by default; collaborators are fakes or AsyncMocks so
no test touches the network. The clock is pinned so ids, timestamps and
milestone windows are deterministic.
"""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from sprint_rollover.collaborators.base import (
    BulkActionCollaborator,
    MilestoneCollaborator,
    SnapshotProvider,
)
from sprint_rollover.collaborators.contracts import (
    BoardIssue,
    BoardSnapshot,
    BulkActionResult,
    ClosedMilestone,
    CreatedMilestone,
)
from sprint_rollover.config.settings import CycleSettings
from sprint_rollover.cycle.context import CycleContext
from sprint_rollover.cycle.models import ClosedTicket, ContributorStats
from sprint_rollover.cycle.state_machine import CycleStateMachine
from sprint_rollover.storage.memory import InMemoryRecordStore

FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)


def make_snapshot(**overrides) -> BoardSnapshot:
    defaults = {
        "total_tickets": 8,
        "total_hours": 40.0,
        "closed_hours": 22.5,
        "closed_tickets_list": [
            ClosedTicket(id=101, title="Fix login redirect"),
            ClosedTicket(id=102, title="Add CSV export", has_needs_merge_label=True),
            ClosedTicket(id=103, title="Update onboarding copy"),
        ],
        "user_performance": {
            "Alice": ContributorStats(
                total_tickets=5, closed_tickets=2, total_hours=25.0, closed_hours=12.5
            ),
            "Bob": ContributorStats(
                total_tickets=3, closed_tickets=1, total_hours=15.0, closed_hours=10.0
            ),
        },
        "user_distributions": {"Alice": {"distribution": [5, 10, 10]}},
        "current_milestone_name": "14 KW 23",
    }
    defaults.update(overrides)
    return BoardSnapshot(**defaults)


def make_issues() -> list[BoardIssue]:
    return [
        BoardIssue(id=101, title="Fix login redirect", board_name="Done"),
        BoardIssue(id=104, title="Refactor billing", board_name="In Progress"),
        BoardIssue(id=105, title="Dark mode", board_name="Open"),
        BoardIssue(id=106, title="Audit log", board_name="Review"),
        BoardIssue(id=107, title="Old ticket", board_name="Closed (archive)"),
    ]


class FakeSnapshotProvider(SnapshotProvider):
    """Returns whatever snapshot and issues the test assigns."""

    def __init__(self) -> None:
        self.snapshot = make_snapshot()
        self.issues = make_issues()
        self.capture_calls = 0

    async def capture(self) -> BoardSnapshot:
        self.capture_calls += 1
        return self.snapshot.model_copy(deep=True)

    async def board_issues(self) -> list[BoardIssue]:
        return list(self.issues)


@pytest.fixture
def snapshots() -> FakeSnapshotProvider:
    return FakeSnapshotProvider()


@pytest.fixture
def milestones() -> AsyncMock:
    mock = AsyncMock(spec=MilestoneCollaborator)
    mock.create.return_value = CreatedMilestone(
        external_id=77, display_name="15 KW 24", web_url="https://tracker/milestones/77"
    )
    mock.close.return_value = ClosedMilestone(
        title="14 KW 23",
        web_url="https://tracker/milestones/76",
        closed_at="2026-03-02T09:30:00.000Z",
    )
    return mock


@pytest.fixture
def bulk_actions() -> AsyncMock:
    mock = AsyncMock(spec=BulkActionCollaborator)
    mock.select_and_queue.return_value = BulkActionResult(succeeded=True, processed=3)
    return mock


@pytest.fixture
def cycle_settings() -> CycleSettings:
    return CycleSettings()


@pytest.fixture
def cycle_store() -> InMemoryRecordStore:
    return InMemoryRecordStore("gitLabHelperSprintState")


@pytest.fixture
def history_store() -> InMemoryRecordStore:
    return InMemoryRecordStore("gitLabHelperSprintHistory")


@pytest.fixture
def context(
    cycle_store, history_store, snapshots, milestones, bulk_actions, cycle_settings
) -> CycleContext:
    return CycleContext(
        cycle_store=cycle_store,
        history_store=history_store,
        snapshots=snapshots,
        milestones=milestones,
        bulk_actions=bulk_actions,
        settings=cycle_settings,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def machine(context: CycleContext) -> CycleStateMachine:
    return CycleStateMachine(context)


async def run_until(machine: CycleStateMachine, last_step: str) -> None:
    """Drive the machine through the steps up to and including ``last_step``."""
    order = [
        "end_cycle",
        "prepare_next",
        "create_milestone",
        "set_survivors",
        "close_old_milestone",
    ]
    for name in order[: order.index(last_step) + 1]:
        await getattr(machine, name)()
