"""Session engine: the single owner of timer state.

Every mutation goes through a command on SessionEngine. Commands are plain
methods that finish before returning; the only awaits are the clock tick
(which may run the end-of-interval sequence), the rating submission, and
background estimation. Background results carry a context token and are
dropped if anything moved the engine on in the meantime.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Callable, Coroutine, Optional

from .clock import Clock, format_remaining
from .config import EngineSettings
from .durations import DurationResolver
from .errors import InvalidDuration, Notice, NoticeBuffer, NoticeKind, TaskNotFound
from .feedback import CompletedSessionInfo, FeedbackLoop, FeedbackResult, validate_rating
from .modes import MODE_LABELS, Mode, ModeMachine, Transition
from .rewards import RewardLedger, RewardRecord
from .services import (
    Estimator,
    SessionLogStore,
    SettingsStore,
    StaticTaskProvider,
    Suggester,
    Task,
    TaskProvider,
    UnavailableService,
)
from .sync import SettingsSynchronizer

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


class SessionEngine:
    """Focus/break timer with adaptive durations, rewards and feedback.

    Args:
        settings: Engine configuration. Mutated in place by duration and
            adaptive-toggle commands.
        estimator / suggester: External AI-backed services.
        log_store: Where rated sessions are appended.
        settings_store: Where reward and duration changes are merged.
        tasks: Read-only task lookup for select_task().
        user_id: Signed-in user, or None for anonymous use (no coins, no
            rating prompt, nothing synced).
        reward_record: The user's persisted rewards, loaded by the caller.
        today / now / rng: Injected date, time and randomness sources.
        notifier: Called with (title, message) on natural completions.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        *,
        estimator: Optional[Estimator] = None,
        suggester: Optional[Suggester] = None,
        log_store: Optional[SessionLogStore] = None,
        settings_store: Optional[SettingsStore] = None,
        tasks: Optional[TaskProvider] = None,
        user_id: Optional[str] = None,
        reward_record: Optional[RewardRecord] = None,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = datetime.now,
        rng: Optional[random.Random] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.settings = settings or EngineSettings()
        self.user_id = user_id
        self.tasks = tasks if tasks is not None else StaticTaskProvider()
        self.notices = NoticeBuffer()

        self.resolver = DurationResolver(self.settings, estimator or UnavailableService("estimation service"))
        self.machine = ModeMachine(self.settings.long_break_interval)
        self.ledger = RewardLedger(
            reward_record,
            min_gold=self.settings.min_gold_coins,
            max_gold=self.settings.max_gold_coins,
            silver=self.settings.silver_coins,
            rng=rng,
            today=today,
        )
        self.feedback = FeedbackLoop(
            suggester or UnavailableService("suggestion service"),
            log_store,
            user_id,
            now=now,
            on_notice=self._push_notice,
        )
        self.sync = SettingsSynchronizer(settings_store, user_id, on_notice=self._push_notice)
        self._notifier = notifier
        self._now = now

        self._selected: Optional[Task] = None
        self._adaptive_minutes: Optional[int] = None
        self._interval_minutes: int = self.resolver.resolve_fixed(Mode.WORK)
        self._clock = Clock(self._interval_minutes * 60)
        self._running = False
        self._estimating = False
        self._completing = False
        self._token = 0
        self._break_suggestion: Optional[str] = None
        self._background: set[asyncio.Task] = set()

    # ---- Read-only properties ----

    @property
    def mode(self) -> Mode:
        return self.machine.mode

    @property
    def time_remaining(self) -> int:
        return self._clock.remaining

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def completed_in_cycle(self) -> int:
        return self.machine.completed_in_cycle

    @property
    def total_completed(self) -> int:
        return self.ledger.record.total_tasks_completed

    @property
    def reward_record(self) -> RewardRecord:
        return self.ledger.record

    @property
    def prompt_pending(self) -> bool:
        return self.feedback.prompt_pending

    @property
    def is_estimating(self) -> bool:
        return self._estimating

    @property
    def is_suggesting(self) -> bool:
        return self.feedback.is_suggesting

    @property
    def break_suggestion(self) -> Optional[str]:
        return self._break_suggestion

    @property
    def last_error(self) -> Optional[Notice]:
        return self.notices.last_error

    @property
    def selected_task(self) -> Optional[Task]:
        return self._selected

    @property
    def resolved_minutes(self) -> int:
        """Length of the current interval."""
        return self._interval_minutes

    @property
    def work_minutes(self) -> int:
        """Length the current or next work interval resolves to."""
        if self.settings.adaptive_enabled and self._adaptive_minutes is not None:
            return self._adaptive_minutes
        return self.settings.work_minutes

    @property
    def progress(self) -> float:
        total = self._interval_minutes * 60
        if total <= 0:
            return 1.0
        return min(1.0, max(0.0, 1.0 - self._clock.remaining / total))

    @property
    def mode_label(self) -> str:
        if self.mode is Mode.WORK and self._selected is not None:
            return self._selected.title
        return MODE_LABELS[self.mode]

    @property
    def cycle_label(self) -> str:
        return self.machine.cycle_label(self.total_completed)

    @property
    def _blocked(self) -> bool:
        return self.feedback.active or self._completing

    # ---- Commands ----

    def start(self) -> bool:
        if self._running or self._blocked or self._estimating or not self._clock.armed:
            return False
        self._running = True
        if self.mode is Mode.WORK:
            self._break_suggestion = None
        return True

    def pause(self) -> bool:
        if not self._running:
            return False
        self._running = False
        return True

    def toggle(self) -> bool:
        return self.pause() if self._running else self.start()

    def reset(self) -> bool:
        """Rewind the current interval to its full duration.

        An outstanding estimate is abandoned; the interval falls back to the
        duration already in effect.
        """
        if self._blocked:
            return False
        self._invalidate()
        self._interval_minutes = self._duration_for(self.mode)
        self._clock.arm(self._interval_minutes * 60)
        self._running = False
        self._break_suggestion = None
        logger.info(f"Reset {self.mode.value} to {self._interval_minutes} min")
        return True

    def skip(self) -> bool:
        """Leave the current interval now. No rewards, no prompt, no notification."""
        if self._blocked:
            return False
        self._running = False
        self._transition(skipped=True)
        return True

    def select_task(self, task_id: Optional[str]) -> bool:
        """Focus on a task (or none). Unknown ids raise TaskNotFound."""
        task: Optional[Task] = None
        if task_id is not None:
            task = self.tasks.get(task_id)
            if task is None:
                raise TaskNotFound(task_id)
        if self._blocked:
            return False

        self._selected = task
        self._invalidate()
        if self.mode is Mode.WORK:
            self._apply_work_policy(resume=False)
        logger.info(f"Selected task: {task.title if task else None}")
        return True

    def set_fixed_work_duration(self, minutes: int) -> bool:
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise InvalidDuration(minutes)
        if self._blocked:
            return False

        self.settings.work_minutes = minutes
        if self._estimating:
            # A manual value supersedes whatever the estimator comes back with.
            self._invalidate()
        if self.settings.adaptive_enabled:
            self._adaptive_minutes = minutes

        if self.mode is Mode.WORK:
            self._interval_minutes = self.work_minutes
            if self._running:
                self._clock.clamp(self._interval_minutes * 60)
            else:
                self._clock.arm(self._interval_minutes * 60)

        self.sync.queue({"workDuration": minutes})
        self.sync.schedule_flush()
        self._push_notice(Notice(NoticeKind.DURATION_UPDATED, f"Work session set to {minutes} minutes."))
        return True

    def set_adaptive_enabled(self, enabled: bool) -> bool:
        if self._blocked:
            return False
        enabled = bool(enabled)
        if enabled == self.settings.adaptive_enabled:
            return False

        self.settings.adaptive_enabled = enabled
        self._invalidate()
        if self.mode is Mode.WORK:
            self._apply_work_policy(resume=False)
        elif not enabled:
            self._adaptive_minutes = None

        self.sync.queue({"enableAdaptiveTimer": enabled})
        self.sync.schedule_flush()
        return True

    async def submit_rating(self, rating: int) -> Optional[FeedbackResult]:
        """Answer the focus-rating prompt (1-5).

        Returns None if no prompt is pending. Once the log write and break
        suggestion have both settled, rewards are booked and the break begins.
        """
        rating = validate_rating(rating)
        if not self.feedback.prompt_pending:
            return None

        result = await self.feedback.submit(rating)
        self._break_suggestion = result.suggestion
        self._complete_work(award_coins=True)
        return result

    async def tick(self) -> bool:
        """One elapsed second. Returns True if an interval ended on this tick."""
        if not self._running or self._blocked or self._estimating:
            return False
        if not self._clock.tick():
            return False

        self._running = False
        await self._interval_ended()
        return True

    async def settle(self) -> None:
        """Wait for background estimation and settings flushes to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        await self.sync.drain()

    # ---- Serialization ----

    def snapshot(self) -> dict[str, Any]:
        """camelCase view for the API and terminal display."""
        record = self.reward_record
        last_error = self.last_error
        return {
            "mode": self.mode.value,
            "modeLabel": self.mode_label,
            "timeRemainingSeconds": self.time_remaining,
            "timeRemaining": format_remaining(self.time_remaining),
            "resolvedMinutes": self._interval_minutes,
            "isRunning": self._running,
            "completedInCycle": self.completed_in_cycle,
            "totalCompleted": self.total_completed,
            "cycleLabel": self.cycle_label,
            "progress": round(self.progress, 4),
            "adaptiveEnabled": self.settings.adaptive_enabled,
            "selectedTaskId": self._selected.id if self._selected else None,
            "promptPending": self.prompt_pending,
            "isEstimating": self._estimating,
            "isSuggestingBreak": self.is_suggesting,
            "breakSuggestion": self._break_suggestion,
            "lastError": last_error.to_dict() if last_error else None,
            "goldCoins": record.gold_coins,
            "silverCoins": record.silver_coins,
            "completedTasksStreak": record.completed_tasks_streak,
        }

    # ---- Internal ----

    def _push_notice(self, notice: Notice) -> None:
        self.notices.push(replace(notice, created_at=self._now()))

    def _invalidate(self) -> None:
        """Bump the context token so in-flight estimates are discarded."""
        self._token += 1
        self._estimating = False

    def _duration_for(self, mode: Mode) -> int:
        if mode is Mode.WORK:
            return self.work_minutes
        return self.resolver.resolve_fixed(mode)

    def _apply_work_policy(self, resume: bool) -> None:
        """Re-derive the work interval from the adaptive toggle and selected task."""
        self._adaptive_minutes = None
        task = self._selected
        if self.settings.adaptive_enabled and task is not None:
            if self.resolver.needs_estimate(task):
                self._start_estimation(task, resume)
            else:
                self._adaptive_minutes = task.estimated_minutes

        self._interval_minutes = self.work_minutes
        self._clock.arm(self._interval_minutes * 60)
        self._running = resume and not self._estimating

    def _start_estimation(self, task: Task, resume: bool) -> None:
        self._invalidate()
        token = self._token
        self._estimating = True
        self._running = False
        if not self._spawn(self._finish_estimation(token, task, resume)):
            self._estimating = False
            self._push_notice(Notice(
                NoticeKind.ESTIMATION_UNAVAILABLE,
                f"Could not estimate duration for \"{task.title}\". Using {self.settings.work_minutes} minutes.",
            ))

    async def _finish_estimation(self, token: int, task: Task, resume: bool) -> None:
        resolution = await self.resolver.resolve_adaptive(task)
        if token != self._token or not self._estimating:
            logger.info(f"Discarding stale estimate for {task.title!r}")
            return

        self._estimating = False
        if resolution.warning is not None:
            self._push_notice(resolution.warning)
        else:
            self._push_notice(Notice(
                NoticeKind.DURATION_ESTIMATED,
                f"Work session set to {resolution.minutes} minutes for \"{task.title}\".",
            ))
        self._adaptive_minutes = resolution.minutes
        if self.mode is Mode.WORK:
            self._interval_minutes = resolution.minutes
            self._clock.arm(resolution.seconds)
            self._running = resume

    def _spawn(self, coro: Coroutine) -> bool:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; background work skipped")
            return False
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return True

    async def _interval_ended(self) -> None:
        if self.mode is not Mode.WORK:
            self._transition(skipped=False)
            return

        info = CompletedSessionInfo(
            duration_minutes=self._interval_minutes,
            task_id=self._selected.id if self._selected else None,
            task_title=self._selected.title if self._selected else None,
        )
        if self.user_id is not None:
            self.feedback.begin(info)
            logger.info(f"Work interval complete ({info.duration_minutes} min); awaiting focus rating")
            return

        self._completing = True
        try:
            self._break_suggestion = await self.feedback.suggest(None, info.duration_minutes)
        finally:
            self._completing = False
        self._complete_work(award_coins=False)

    def _complete_work(self, award_coins: bool) -> None:
        award = self.ledger.record_completion(award_coins=award_coins)
        message = "Work session complete! Time for a break."
        if award.has_coins:
            message = f"You earned {award.gold} Gold & {award.silver} Silver! {message}"
        self.sync.queue(self.ledger.patch_for(award))
        self._push_notice(Notice(NoticeKind.SESSION_COMPLETE, message))
        logger.info(
            f"Completion #{award.total_completed}: +{award.gold} gold +{award.silver} silver, "
            f"streak {award.streak}"
        )
        self._transition(skipped=False)

    def _transition(self, skipped: bool) -> Transition:
        self._invalidate()
        transition = self.machine.advance(skipped=skipped)
        mode = transition.mode

        if skipped or mode is Mode.WORK:
            self._break_suggestion = None

        if skipped:
            self._push_notice(Notice(NoticeKind.SESSION_SKIPPED, f"Moving to {MODE_LABELS[mode]}."))
        else:
            self._notify_completion(transition)

        auto = self.settings.auto_start_work if mode is Mode.WORK else self.settings.auto_start_breaks
        if mode is Mode.WORK:
            self._apply_work_policy(resume=auto)
        else:
            self._interval_minutes = self.resolver.resolve_fixed(mode)
            self._clock.arm(self._interval_minutes * 60)
            self._running = auto

        logger.info(
            f"{transition.previous.value} -> {mode.value} ({'skipped' if skipped else 'completed'}), "
            f"{self._interval_minutes} min, cycle {transition.completed_in_cycle}/{self.machine.long_break_interval}"
        )
        self.sync.schedule_flush()
        return transition

    def _notify_completion(self, transition: Transition) -> None:
        if self._notifier is None:
            return
        if transition.previous is Mode.WORK:
            title, message = "Session Complete", "Work session complete! Time for a break."
        else:
            title, message = "Break Over", "Break over! Ready to focus?"
        try:
            self._notifier(title, message)
        except Exception as e:
            logger.warning(f"Completion notifier failed: {e}")
