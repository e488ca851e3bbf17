from __future__ import annotations

from collections.abc import Iterable

DONE_BOARD_KEYWORDS: tuple[str, ...] = ("done", "closed", "complete", "finished")


def is_done_board(board_name: str | None, keywords: Iterable[str] = DONE_BOARD_KEYWORDS) -> bool:
    """True if the board name contains any completion keyword (case-insensitive)."""
    if not board_name:
        return False
    name = board_name.strip().lower()
    return any(keyword.lower() in name for keyword in keywords)
