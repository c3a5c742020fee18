"""Mode state machine: work / short break / long break and cycle position."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Mode(str, Enum):
    WORK = "work"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"

    @property
    def is_break(self) -> bool:
        return self is not Mode.WORK


MODE_LABELS: dict[Mode, str] = {
    Mode.WORK: "Focus Session",
    Mode.SHORT_BREAK: "Short Break",
    Mode.LONG_BREAK: "Long Break",
}


@dataclass(frozen=True)
class Transition:
    previous: Mode
    mode: Mode
    skipped: bool
    completed_in_cycle: int


class ModeMachine:
    """Owns the current mode and the position within the long-break cycle.

    ``completed_in_cycle`` stays in [0, long_break_interval): entering a long
    break always closes the cycle.
    """

    def __init__(self, long_break_interval: int = 4):
        if long_break_interval < 1:
            raise ValueError("long_break_interval must be >= 1")
        self.long_break_interval = long_break_interval
        self._mode: Mode = Mode.WORK
        self._completed_in_cycle: int = 0
        self._long_breaks_entered: int = 0

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def completed_in_cycle(self) -> int:
        return self._completed_in_cycle

    @property
    def long_breaks_entered(self) -> int:
        return self._long_breaks_entered

    def peek_next(self) -> Mode:
        """The mode the next transition would enter, skip or not."""
        if self._mode is Mode.WORK:
            if self._completed_in_cycle + 1 >= self.long_break_interval:
                return Mode.LONG_BREAK
            return Mode.SHORT_BREAK
        return Mode.WORK

    def advance(self, skipped: bool = False) -> Transition:
        """Leave the current mode.

        A skipped work interval picks its break with the same arithmetic as a
        completed one but does not count toward the cycle.
        """
        previous = self._mode
        nxt = self.peek_next()

        if previous is Mode.WORK:
            if nxt is Mode.LONG_BREAK:
                self._completed_in_cycle = 0
            elif not skipped:
                self._completed_in_cycle += 1

        if nxt is Mode.LONG_BREAK:
            self._long_breaks_entered += 1
        self._mode = nxt
        return Transition(previous, nxt, skipped, self._completed_in_cycle)

    def cycle_label(self, total_completed: int) -> str:
        """'Cycle N - Session M' for display."""
        interval = self.long_break_interval
        cycle = total_completed // interval + 1
        if (
            self._mode is Mode.LONG_BREAK
            and self._completed_in_cycle == 0
            and total_completed > 0
            and total_completed % interval == 0
        ):
            # The long break belongs to the cycle that just finished.
            return f"Cycle {cycle - 1} - Session {interval}"
        session = self._completed_in_cycle % interval + 1
        return f"Cycle {cycle} - Session {min(session, interval)}"
