from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sprint_rollover.config.settings import CycleSettings
from sprint_rollover.storage.factory import build_stores

if TYPE_CHECKING:
    from sprint_rollover.collaborators.base import (
        BulkActionCollaborator,
        MilestoneCollaborator,
        SnapshotProvider,
    )
    from sprint_rollover.config.settings import Settings
    from sprint_rollover.storage.base import RecordStore


def utc_now() -> datetime:
    return datetime.now(UTC)


def epoch_millis_id(moment: datetime) -> str:
    """Cycle id as a millisecond epoch string (the board helper's format)."""
    return str(int(moment.timestamp() * 1000))


@dataclass(frozen=True)
class CycleContext:
    """Everything the cycle state machine touches, injected explicitly.

    cycle_store / history_store: independent record stores, never written
    in one transaction. clock and id_factory are injectable for tests.
    """

    cycle_store: RecordStore
    history_store: RecordStore
    snapshots: SnapshotProvider
    milestones: MilestoneCollaborator
    bulk_actions: BulkActionCollaborator
    settings: CycleSettings = field(default_factory=CycleSettings)
    clock: Callable[[], datetime] = utc_now
    id_factory: Callable[[datetime], str] = epoch_millis_id


def build_context(
    settings: Settings,
    *,
    snapshots: SnapshotProvider,
    milestones: MilestoneCollaborator,
    bulk_actions: BulkActionCollaborator,
) -> CycleContext:
    """Wire a context from settings, building the configured record stores."""
    cycle_store, history_store = build_stores(settings.storage)
    return CycleContext(
        cycle_store=cycle_store,
        history_store=history_store,
        snapshots=snapshots,
        milestones=milestones,
        bulk_actions=bulk_actions,
        settings=settings.cycle,
    )
