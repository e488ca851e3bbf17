"""Milestone naming: ``<sprint number> <token> <week number>``.

``"14 KW 23"`` is followed by ``"15 KW 24"``; the week number wraps after
the configured modulus, so ``"14 KW 52"`` is followed by ``"15 KW 01"``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta

from sprint_rollover.infra.errors import MissingDataError

MILESTONE_PATTERN = re.compile(r"^\s*(\d+)\s+(\S+)\s+(\d+)\s*$")


@dataclass(frozen=True)
class MilestoneName:
    sprint: int
    token: str
    week: int
    sprint_width: int = 1

    def __str__(self) -> str:
        return f"{self.sprint:0{self.sprint_width}d} {self.token} {self.week:02d}"


@dataclass(frozen=True)
class MilestoneWindow:
    start: date
    end: date


def parse_milestone_name(name: str | None) -> MilestoneName:
    """Parse a milestone title. Raises MissingDataError if absent or unmatched."""
    if not name:
        raise MissingDataError(
            "No milestone detected on the board", code="MILESTONE_NOT_DETECTED"
        )
    match = MILESTONE_PATTERN.match(name)
    if match is None:
        raise MissingDataError(
            f"Milestone '{name}' does not match '<number> <token> <number>'",
            code="MILESTONE_PATTERN_MISMATCH",
        )
    sprint, token, week = match.groups()
    return MilestoneName(
        sprint=int(sprint), token=token, week=int(week), sprint_width=len(sprint)
    )


def next_milestone_name(name: str | None, *, week_modulus: int = 52) -> str:
    """Increment both numbers; the week wraps back to 1 after ``week_modulus``."""
    current = parse_milestone_name(name)
    following = MilestoneName(
        sprint=current.sprint + 1,
        token=current.token,
        week=current.week % week_modulus + 1,
        sprint_width=current.sprint_width,
    )
    return str(following)


def milestone_window(today: date, *, length_days: int = 7) -> MilestoneWindow:
    """Window starting today and ending ``length_days`` later."""
    return MilestoneWindow(start=today, end=today + timedelta(days=length_days))
