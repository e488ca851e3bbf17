"""Collaborators module: contracts for the board, milestone and bulk-action side effects."""

from sprint_rollover.collaborators.base import (
    BulkActionCollaborator,
    MilestoneCollaborator,
    SnapshotProvider,
)
from sprint_rollover.collaborators.callback_adapter import CallbackBulkActionAdapter
from sprint_rollover.collaborators.contracts import (
    BoardIssue,
    BoardSnapshot,
    BulkActionResult,
    ClosedMilestone,
    CreatedMilestone,
)

__all__ = [
    "BoardIssue",
    "BoardSnapshot",
    "BulkActionCollaborator",
    "BulkActionResult",
    "CallbackBulkActionAdapter",
    "ClosedMilestone",
    "CreatedMilestone",
    "MilestoneCollaborator",
    "SnapshotProvider",
]
