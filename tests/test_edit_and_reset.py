"""Tests for manual cycle edits and cycle reset."""

from __future__ import annotations

import asyncio

import pytest

from sprint_rollover.cycle.context import epoch_millis_id
from sprint_rollover.cycle.models import CycleEdit
from sprint_rollover.cycle.state_machine import CycleStateMachine
from sprint_rollover.infra.errors import StepBusyError
from tests.conftest import FIXED_NOW, run_until


def _edit(**overrides) -> CycleEdit:
    values = {
        "total_tickets": 10,
        "closed_tickets": 4,
        "total_hours": 50.0,
        "closed_hours": 30.0,
        "extra_hours_closed": 0.0,
    }
    values.update(overrides)
    return CycleEdit(**values)


class TestEditCycleData:
    def test_total_tickets_raises_ended(self, machine: CycleStateMachine, cycle_store) -> None:
        record = machine.edit_cycle_data(_edit())
        assert record.ended is True
        assert record.prepared_for_next is False
        assert record.total_hours == 50.0
        assert cycle_store.load()["closedHours"] == 30.0

    def test_extra_hours_raise_survivors_and_predecessors(self, machine) -> None:
        record = machine.edit_cycle_data(_edit(total_tickets=0, extra_hours_closed=2.5))
        assert record.survivors_set is True
        assert record.new_milestone_created is True
        assert record.prepared_for_next is True
        assert record.ended is True
        assert record.flag_order_holds()

    def test_zero_values_keep_flags(self, machine) -> None:
        record = machine.edit_cycle_data(_edit(total_tickets=0))
        assert record.ended is False

    @pytest.mark.asyncio
    async def test_flags_never_lowered(self, machine) -> None:
        await run_until(machine, "prepare_next")
        record = machine.edit_cycle_data(_edit(total_tickets=0, extra_hours_closed=0))
        assert record.ended is True
        assert record.prepared_for_next is True

    @pytest.mark.asyncio
    async def test_archived_entry_follows_edit(self, machine) -> None:
        await run_until(machine, "prepare_next")
        machine.edit_cycle_data(_edit(extra_hours_closed=1.0))
        entry = machine.archiver.find(machine.record.id)
        assert entry.total_tickets == 10
        assert entry.closed_hours == 30.0
        assert entry.extra_hours_closed == 1.0
        assert entry.milestone_name == "14 KW 23"

    def test_edit_without_archive_entry(self, machine) -> None:
        machine.edit_cycle_data(_edit())
        assert machine.archiver.entries() == []

    @pytest.mark.asyncio
    async def test_edit_rejected_while_step_runs(self, machine, snapshots) -> None:
        release = asyncio.Event()
        original = snapshots.capture

        async def _slow_capture():
            await release.wait()
            return await original()

        await machine.end_cycle()
        snapshots.capture = _slow_capture
        running = asyncio.create_task(machine.prepare_next())
        await asyncio.sleep(0)

        with pytest.raises(StepBusyError, match="prepare_next"):
            machine.edit_cycle_data(_edit(total_hours=999.0))
        release.set()
        record = await running
        assert record.total_hours == 40.0


class TestResetCycle:
    @pytest.mark.asyncio
    async def test_reset_after_edited_cycle_empties_history(self, machine) -> None:
        machine.edit_cycle_data(_edit(total_tickets=5))
        record = await machine.prepare_next()
        assert record.id == epoch_millis_id(FIXED_NOW)
        assert [e.id for e in machine.archiver.entries()] == [record.id]

        machine.reset_cycle()
        assert machine.archiver.entries() == []

    @pytest.mark.asyncio
    async def test_reset_drops_archive_and_keeps_name(self, machine, cycle_store) -> None:
        await run_until(machine, "create_milestone")
        record = machine.reset_cycle()
        assert record.milestone_name == "14 KW 23"
        assert not record.ended
        assert record.new_milestone is None
        assert machine.archiver.entries() == []
        assert cycle_store.load()["ended"] is False

    @pytest.mark.asyncio
    async def test_rerun_after_reset_reproduces_metrics(self, machine) -> None:
        first = await machine.end_cycle()
        machine.reset_cycle()
        second = await machine.end_cycle()
        assert second.to_blob() == first.to_blob()

    def test_reset_fresh_cycle(self, machine) -> None:
        record = machine.reset_cycle()
        assert record.id is None
        assert record.milestone_name is None

    @pytest.mark.asyncio
    async def test_reset_keeps_other_history(self, machine) -> None:
        await run_until(machine, "close_old_milestone")
        machine.reset_cycle()
        assert len(machine.archiver.entries()) == 1
