"""Cycle state machine: the seven-step sprint rollover.

end_cycle → prepare_next → (copy_summary, copy_closed_names) →
create_milestone → set_survivors → close_old_milestone → wrap.

Each step claims a per-step in-flight guard, then checks its flag
precondition, then calls collaborators, then re-checks the precondition
before mutating. A failed collaborator call leaves the gating flag unset,
so every step is safe to retry. The cycle record and the history log are
written independently; there is no cross-store transaction.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import ValidationError

from sprint_rollover.cycle.boards import is_done_board
from sprint_rollover.cycle.models import (
    FLAG_ORDER,
    CycleEdit,
    CycleRecord,
    CycleStep,
    NewMilestone,
    OldMilestoneInfo,
    format_instant,
)
from sprint_rollover.cycle.naming import milestone_window, next_milestone_name
from sprint_rollover.cycle.report import (
    ClosedTicketNames,
    CycleSummary,
    closed_ticket_names,
    summarize_cycle,
)
from sprint_rollover.history.archiver import HistoryArchiver
from sprint_rollover.infra.errors import (
    CollaboratorError,
    MissingDataError,
    PersistenceError,
    PreconditionError,
    SprintRolloverError,
    StepBusyError,
)
from sprint_rollover.storage.base import read_blob, write_blob

if TYPE_CHECKING:
    from sprint_rollover.collaborators.contracts import BoardIssue, BulkActionResult
    from sprint_rollover.cycle.context import CycleContext

logger = structlog.get_logger()

T = TypeVar("T")

_PRECONDITIONS: dict[CycleStep, tuple[str, Callable[[CycleRecord], bool]]] = {
    CycleStep.end_cycle: (
        "cycle already ended",
        lambda r: not r.ended,
    ),
    CycleStep.prepare_next: (
        "requires ended and not yet prepared",
        lambda r: r.ended and not r.prepared_for_next,
    ),
    CycleStep.copy_summary: (
        "requires prepared and no new milestone yet",
        lambda r: r.prepared_for_next and not r.new_milestone_created,
    ),
    CycleStep.copy_closed_names: (
        "requires prepared and no new milestone yet",
        lambda r: r.prepared_for_next and not r.new_milestone_created,
    ),
    CycleStep.create_milestone: (
        "requires prepared and no new milestone yet",
        lambda r: r.prepared_for_next and not r.new_milestone_created,
    ),
    CycleStep.set_survivors: (
        "requires new milestone and survivors not yet set",
        lambda r: r.new_milestone_created and not r.survivors_set,
    ),
    CycleStep.close_old_milestone: (
        "requires survivors set",
        lambda r: r.survivors_set,
    ),
}


def survivor_command(milestone_title: str, label: str) -> str:
    """Quick-action text moving an issue to the new milestone and tagging it."""
    return f'/milestone %"{milestone_title}"\n/label ~{label}'


@dataclass(frozen=True)
class StepState:
    enabled: bool
    in_flight: bool


@dataclass(frozen=True)
class SurvivorMigration:
    command_text: str
    issues: list[BoardIssue] = field(default_factory=list)
    result: BulkActionResult | None = None


class CycleStateMachine:
    """Owns the live cycle record and runs the rollover steps against it."""

    def __init__(self, context: CycleContext) -> None:
        self._ctx = context
        self._archiver = HistoryArchiver(
            context.history_store,
            cap=context.settings.history_cap,
            clock=context.clock,
        )
        self._in_flight: set[CycleStep] = set()
        self._record = self._load_record()

    @property
    def context(self) -> CycleContext:
        return self._ctx

    @property
    def archiver(self) -> HistoryArchiver:
        return self._archiver

    @property
    def record(self) -> CycleRecord:
        """Deep copy of the live record; mutate only through the step methods."""
        return self._record.model_copy(deep=True)

    # ── persistence ──

    def _load_record(self) -> CycleRecord:
        blob = read_blob(self._ctx.cycle_store)
        if blob is None:
            return CycleRecord.fresh()
        if not isinstance(blob, dict):
            raise PersistenceError(
                f"Cycle record '{self._ctx.cycle_store.key}' is not an object "
                f"(got {type(blob).__name__})"
            )
        try:
            return CycleRecord.from_blob(blob)
        except ValidationError as exc:
            raise PersistenceError(f"Cycle record is malformed: {exc}") from exc

    def reload(self) -> CycleRecord:
        """Re-read the live record from its store."""
        self._record = self._load_record()
        return self.record

    def replace_record(self, record: CycleRecord) -> None:
        """Overwrite the live record wholesale and persist it."""
        self._require_idle("replace the cycle record")
        self._commit(record)

    def _commit(self, record: CycleRecord) -> None:
        # In-memory state advances first; a failed write leaves it ahead of the store.
        self._record = record
        write_blob(self._ctx.cycle_store, record.to_blob())

    def _updated(self, **fields: Any) -> CycleRecord:
        return CycleRecord.model_validate({**self._record.model_dump(), **fields})

    def _now_iso(self) -> str:
        return format_instant(self._ctx.clock())

    # ── gating ──

    def can_run(self, step: CycleStep) -> bool:
        _, check = _PRECONDITIONS[step]
        return check(self._record)

    def step_states(self) -> dict[CycleStep, StepState]:
        """Enabled/in-flight state of every step, for button rendering."""
        return {
            step: StepState(
                enabled=self.can_run(step) and step not in self._in_flight,
                in_flight=step in self._in_flight,
            )
            for step in CycleStep
        }

    @contextmanager
    def _claim(self, step: CycleStep) -> Iterator[None]:
        if step in self._in_flight:
            logger.warning("cycle_step_busy", step=step.value)
            raise StepBusyError(f"Step '{step.value}' is already running", step=step.value)
        self._in_flight.add(step)
        try:
            yield
        finally:
            self._in_flight.discard(step)

    def _require_idle(self, action: str) -> None:
        if self._in_flight:
            running = ", ".join(sorted(s.value for s in self._in_flight))
            logger.warning("cycle_busy", action=action, running=running)
            raise StepBusyError(f"Cannot {action} while steps are running: {running}")

    def _require(self, step: CycleStep) -> None:
        reason, check = _PRECONDITIONS[step]
        if not check(self._record):
            logger.info("cycle_step_rejected", step=step.value, reason=reason)
            raise PreconditionError(
                f"Cannot run '{step.value}': {reason}", step=step.value
            )

    async def _call(
        self,
        step: CycleStep,
        operation: str,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        try:
            return await fn(*args)
        except SprintRolloverError:
            raise
        except Exception as exc:
            logger.exception("collaborator_call_failed", step=step.value, operation=operation)
            raise CollaboratorError(f"{operation} failed: {exc}") from exc

    # ── steps ──

    async def detect_milestone(self) -> str | None:
        """Store the board's current milestone name while the cycle is still open."""
        snapshot = await self._call(
            CycleStep.end_cycle, "snapshot.capture", self._ctx.snapshots.capture
        )
        name = snapshot.current_milestone_name or None
        if name and not self._record.ended and name != self._record.milestone_name:
            self._commit(self._updated(milestone_name=name))
            logger.info("milestone_detected", milestone=name)
        return name

    async def end_cycle(self) -> CycleRecord:
        """Step 1: capture the closing metrics of the current milestone."""
        step = CycleStep.end_cycle
        with self._claim(step):
            self._require(step)
            snapshot = await self._call(step, "snapshot.capture", self._ctx.snapshots.capture)
            milestone = snapshot.current_milestone_name or None
            if milestone is None:
                raise MissingDataError(
                    "No milestone detected on the board", code="MILESTONE_NOT_DETECTED"
                )
            self._require(step)

            now = self._ctx.clock()
            record = self._updated(
                id=self._ctx.id_factory(now),
                milestone_name=milestone,
                milestone_to_close=milestone,
                total_tickets=snapshot.total_tickets,
                closed_tickets=len(snapshot.closed_tickets_list),
                total_hours=snapshot.total_hours,
                closed_hours=snapshot.closed_hours,
                user_performance=snapshot.user_performance,
                closed_tickets_list=snapshot.closed_tickets_list,
                timestamp=format_instant(now),
                ended=True,
            )
            self._commit(record)

        logger.info(
            "cycle_ended",
            cycle_id=record.id,
            milestone=milestone,
            total_tickets=record.total_tickets,
            closed_tickets=record.closed_tickets,
        )
        return self.record

    async def prepare_next(self) -> CycleRecord:
        """Step 2: measure hours closed since step 1 and archive the cycle."""
        step = CycleStep.prepare_next
        with self._claim(step):
            self._require(step)
            snapshot = await self._call(step, "snapshot.capture", self._ctx.snapshots.capture)
            self._require(step)

            extra_hours = max(0.0, self._record.total_hours - snapshot.total_hours)
            record = self._updated(
                id=self._record.id or self._ctx.id_factory(self._ctx.clock()),
                extra_hours_closed=extra_hours,
                prepared_for_next=True,
            )

            # A retry after a failed record write must not archive twice.
            if self._archiver.find(record.id) is not None:
                self._archiver.remove(record.id)
            self._archiver.archive(record, user_distributions=snapshot.user_distributions)
            self._commit(record)

        logger.info("cycle_prepared", cycle_id=record.id, extra_hours_closed=extra_hours)
        return self.record

    async def copy_summary(self) -> CycleSummary:
        """Step 3: summary block for the sprint report."""
        step = CycleStep.copy_summary
        with self._claim(step):
            self._require(step)
            return summarize_cycle(self._record)

    async def copy_closed_names(self) -> ClosedTicketNames:
        """Step 4: closed ticket titles split into regular and needs-merge."""
        step = CycleStep.copy_closed_names
        with self._claim(step):
            self._require(step)
            return closed_ticket_names(self._record)

    async def create_milestone(self) -> CycleRecord:
        """Step 5: create the next milestone on the tracker."""
        step = CycleStep.create_milestone
        settings = self._ctx.settings
        with self._claim(step):
            self._require(step)
            title = next_milestone_name(
                self._record.milestone_name, week_modulus=settings.week_modulus
            )
            window = milestone_window(
                self._ctx.clock().date(), length_days=settings.sprint_length_days
            )
            created = await self._call(
                step,
                "milestones.create",
                self._ctx.milestones.create,
                title,
                window.start.isoformat(),
                window.end.isoformat(),
            )
            self._require(step)

            new_milestone = NewMilestone(
                id=created.external_id,
                display_name=created.display_name or title,
                start_date=window.start.isoformat(),
                end_date=window.end.isoformat(),
                external_ref=created.web_url,
            )
            self._commit(
                self._updated(new_milestone=new_milestone, new_milestone_created=True)
            )

        logger.info(
            "milestone_created",
            cycle_id=self._record.id,
            milestone=new_milestone.display_name,
            start_date=new_milestone.start_date,
            end_date=new_milestone.end_date,
        )
        return self.record

    async def set_survivors(self) -> SurvivorMigration:
        """Step 6: move every issue not on a done-like board to the new milestone."""
        step = CycleStep.set_survivors
        settings = self._ctx.settings
        with self._claim(step):
            self._require(step)
            new_milestone = self._record.new_milestone
            if new_milestone is None:
                raise MissingDataError(
                    "No new milestone recorded for this cycle", code="NEW_MILESTONE_MISSING"
                )

            issues = await self._call(
                step, "snapshot.board_issues", self._ctx.snapshots.board_issues
            )
            survivors = [
                issue for issue in issues
                if not is_done_board(issue.board_name, settings.done_board_keywords)
            ]
            command = survivor_command(new_milestone.display_name, settings.survivor_label)

            result: BulkActionResult | None = None
            if survivors:
                result = await self._call(
                    step,
                    "bulk_actions.select_and_queue",
                    self._ctx.bulk_actions.select_and_queue,
                    survivors,
                    command,
                )
                if not result.succeeded:
                    logger.warning(
                        "survivor_migration_failed",
                        cycle_id=self._record.id,
                        processed=result.processed,
                        failed=result.failed,
                    )
                    raise CollaboratorError(
                        result.message or "Bulk action reported failure",
                        code="BULK_ACTION_FAILED",
                    )
            else:
                logger.info("survivor_migration_empty", cycle_id=self._record.id)

            self._require(step)
            self._commit(self._updated(survivors_set=True))

        logger.info(
            "survivors_set",
            cycle_id=self._record.id,
            survivors=len(survivors),
            milestone=new_milestone.display_name,
        )
        return SurvivorMigration(command_text=command, issues=survivors, result=result)

    async def close_old_milestone(self) -> CycleRecord:
        """Step 7: close the finished milestone and wrap to a fresh cycle.

        Returns the completed record as it was finalized in the history log.
        """
        step = CycleStep.close_old_milestone
        with self._claim(step):
            self._require(step)
            title = self._record.milestone_to_close or self._record.milestone_name
            if not title:
                raise MissingDataError(
                    "No milestone recorded to close", code="MILESTONE_NOT_DETECTED"
                )
            new_milestone = self._record.new_milestone
            if new_milestone is None:
                raise MissingDataError(
                    "No new milestone recorded for this cycle", code="NEW_MILESTONE_MISSING"
                )

            closed = await self._call(step, "milestones.close", self._ctx.milestones.close, title)
            self._require(step)

            now_iso = self._now_iso()
            finished = self._updated(
                old_milestone_closed=True,
                old_milestone_info=OldMilestoneInfo(
                    title=closed.title or title,
                    web_url=closed.web_url,
                    closed_at=closed.closed_at or now_iso,
                ),
                completed_at=now_iso,
            )

            if self._archiver.update(finished.id, **finished.model_dump()) == 0:
                self._archiver.archive(finished)
            self._commit(CycleRecord.fresh(milestone_name=new_milestone.display_name))

        logger.info(
            "cycle_wrapped",
            cycle_id=finished.id,
            closed_milestone=title,
            next_milestone=new_milestone.display_name,
        )
        return finished

    # ── manual repair ──

    def edit_cycle_data(self, edit: CycleEdit) -> CycleRecord:
        """Overwrite the five metrics and raise flags the new values imply.

        totalTickets > 0 raises ``ended``; extraHoursClosed > 0 raises
        ``survivors_set`` together with its predecessors so the flag order
        keeps holding. Flags are never lowered. An archived entry with the
        same id receives the same metric values.
        """
        self._require_idle("edit the cycle")
        metrics = edit.model_dump()
        updates: dict[str, Any] = dict(metrics)
        if edit.total_tickets > 0:
            updates["ended"] = True
        if edit.extra_hours_closed > 0:
            updates.update({flag: True for flag in FLAG_ORDER})

        self._commit(self._updated(**updates))
        archived = self._archiver.update(self._record.id, **metrics)

        logger.info(
            "cycle_edited",
            cycle_id=self._record.id,
            archived_entries_updated=archived,
            **metrics,
        )
        return self.record

    def reset_cycle(self) -> CycleRecord:
        """Abort the cycle: drop its archived entry and start fresh, keeping the name."""
        self._require_idle("reset")
        cycle_id = self._record.id
        removed = self._archiver.remove(cycle_id)
        self._commit(CycleRecord.fresh(milestone_name=self._record.milestone_name))

        logger.info("cycle_reset", cycle_id=cycle_id, history_entries_removed=removed)
        return self.record
