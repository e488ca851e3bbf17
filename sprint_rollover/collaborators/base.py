from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sprint_rollover.collaborators.contracts import (
        BoardIssue,
        BoardSnapshot,
        BulkActionResult,
        ClosedMilestone,
        CreatedMilestone,
    )


class SnapshotProvider(ABC):
    """Reads metrics and issue cards off the live board."""

    @abstractmethod
    async def capture(self) -> BoardSnapshot:
        """Return metrics for the current board state.

        Should not raise: a board that is not fully loaded yields zeros.
        """
        ...

    @abstractmethod
    async def board_issues(self) -> list[BoardIssue]:
        """Return every issue card currently on the board with its list name."""
        ...


class MilestoneCollaborator(ABC):
    """Creates and closes milestones on the issue tracker. Both calls may fail."""

    @abstractmethod
    async def create(self, title: str, start_date: str, end_date: str) -> CreatedMilestone:
        """Create a milestone. Dates are ``YYYY-MM-DD``."""
        ...

    @abstractmethod
    async def close(self, title: str) -> ClosedMilestone:
        """Close the milestone with the given title."""
        ...


class BulkActionCollaborator(ABC):
    """Applies a quick-action command to a set of issues."""

    @abstractmethod
    async def select_and_queue(
        self, issues: Sequence[BoardIssue], command_text: str
    ) -> BulkActionResult:
        """Select the issues, submit the command, resolve once processing completes."""
        ...
