"""Countdown clock. Pure logic, no I/O.

One call to tick() is one elapsed second. The driver decides when a second
has passed; the clock only counts.
"""

from __future__ import annotations


def format_remaining(seconds: int) -> str:
    """Format seconds as 'MM:SS' (or 'H:MM:SS' past an hour)."""
    seconds = max(0, seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


class Clock:
    """Countdown that raises end-of-interval exactly once per arming."""

    def __init__(self, seconds: int = 0):
        self._remaining: int = max(0, seconds)
        self._armed: bool = self._remaining > 0

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self, seconds: int) -> None:
        """Load a fresh interval. A zero-length interval is never armed."""
        self._remaining = max(0, seconds)
        self._armed = self._remaining > 0

    def clamp(self, max_seconds: int) -> None:
        """Shrink the remaining time so it never exceeds max_seconds."""
        if self._remaining > max_seconds:
            self._remaining = max(0, max_seconds)
            if self._remaining == 0:
                self._armed = False

    def tick(self) -> bool:
        """Count down one second.

        Returns:
            True on the tick that reaches zero, False otherwise (including
            every tick after that until re-armed).
        """
        if not self._armed:
            return False
        if self._remaining > 0:
            self._remaining -= 1
        if self._remaining == 0:
            self._armed = False
            return True
        return False
