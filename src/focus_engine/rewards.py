"""Reward ledger: coins and daily completion streak.

The ledger is the only writer of RewardRecord. It runs exactly once per
work interval that ran out on its own; skips and resets never reach it.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Mapping, Optional


@dataclass
class RewardRecord:
    gold_coins: int = 0
    silver_coins: int = 0
    completed_tasks_streak: int = 0
    last_completion_date: Optional[date] = None
    total_tasks_completed: int = 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RewardRecord":
        """Load from a persisted settings document, tolerating junk values."""

        def _count(key: str) -> int:
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return 0
            return max(0, int(value))

        last = data.get("lastCompletionDate")
        parsed: Optional[date] = None
        if isinstance(last, date):
            parsed = last
        elif isinstance(last, str) and last:
            try:
                parsed = date.fromisoformat(last[:10])
            except ValueError:
                parsed = None

        return cls(
            gold_coins=_count("goldCoins"),
            silver_coins=_count("silverCoins"),
            completed_tasks_streak=_count("completedTasksStreak"),
            last_completion_date=parsed,
            total_tasks_completed=_count("totalTasksCompleted"),
        )

    def to_patch(self) -> dict[str, Any]:
        return {
            "goldCoins": self.gold_coins,
            "silverCoins": self.silver_coins,
            "completedTasksStreak": self.completed_tasks_streak,
            "lastCompletionDate": self.last_completion_date.isoformat() if self.last_completion_date else None,
            "totalTasksCompleted": self.total_tasks_completed,
        }


def next_streak(streak: int, last: Optional[date], today: date) -> int:
    """Streak after a completion on ``today``.

    Same-day repeats leave it unchanged, yesterday extends it, any gap (or
    no history) restarts it at 1.
    """
    if last is None:
        return 1
    if last == today:
        return streak
    if last == today - timedelta(days=1):
        return streak + 1
    return 1


@dataclass(frozen=True)
class Award:
    gold: int
    silver: int
    streak: int
    total_completed: int

    @property
    def has_coins(self) -> bool:
        return self.gold > 0 or self.silver > 0


class RewardLedger:
    """Applies awards to a RewardRecord.

    Args:
        record: The record to mutate in place.
        min_gold / max_gold: Inclusive range for the gold draw.
        silver: Fixed silver award.
        rng: Random source for the gold draw.
        today: Date source for the streak.
    """

    def __init__(
        self,
        record: RewardRecord | None = None,
        *,
        min_gold: int = 8,
        max_gold: int = 12,
        silver: int = 5,
        rng: random.Random | None = None,
        today: Callable[[], date] = date.today,
    ):
        if max_gold < min_gold:
            raise ValueError("max_gold must be >= min_gold")
        self.record = record if record is not None else RewardRecord()
        self.min_gold = min_gold
        self.max_gold = max_gold
        self.silver = silver
        self._rng = rng or random.Random()
        self._today = today

    def draw_gold(self) -> int:
        return self._rng.randint(self.min_gold, self.max_gold)

    def record_completion(self, award_coins: bool = True) -> Award:
        """Book one natural work completion.

        With ``award_coins`` False (no signed-in user) the coin economy is
        skipped but totals and streak still advance.
        """
        record = self.record
        today = self._today()

        record.total_tasks_completed += 1
        record.completed_tasks_streak = next_streak(
            record.completed_tasks_streak, record.last_completion_date, today
        )
        record.last_completion_date = today

        gold = silver = 0
        if award_coins:
            gold = self.draw_gold()
            silver = self.silver
            record.gold_coins += gold
            record.silver_coins += silver

        return Award(gold, silver, record.completed_tasks_streak, record.total_tasks_completed)

    def patch_for(self, award: Award) -> dict[str, Any]:
        """Settings patch carrying the fields an award touched."""
        patch = self.record.to_patch()
        if not award.has_coins:
            patch.pop("goldCoins")
            patch.pop("silverCoins")
        return patch
