"""Sprint rollover orchestration for kanban issue boards."""

from sprint_rollover.cycle.context import CycleContext, build_context
from sprint_rollover.cycle.models import CycleEdit, CycleRecord, CycleStep, HistoryEntry
from sprint_rollover.cycle.state_machine import CycleStateMachine
from sprint_rollover.history.archiver import HistoryArchiver
from sprint_rollover.interchange.snapshot import ReconcileStrategy, SnapshotInterchange

__version__ = "0.1.0"

__all__ = [
    "CycleContext",
    "CycleEdit",
    "CycleRecord",
    "CycleStateMachine",
    "CycleStep",
    "HistoryArchiver",
    "HistoryEntry",
    "ReconcileStrategy",
    "SnapshotInterchange",
    "build_context",
]
