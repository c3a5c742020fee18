#!/usr/bin/env python3
"""Focus engine command line.

Usage:
    focus-engine serve --user alice
    focus-engine run --user alice --cycles 2
    focus-engine run --work 1 --short 1            # anonymous, no rewards
    focus-engine add-task "Draft project outline" --estimate 40
    focus-engine stats --user alice
    focus-engine history --user alice --limit 10
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from rich.console import Console, Group
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.prompt import IntPrompt
from rich.table import Table
from rich.text import Text
from rich.live import Live

from .config import DB_PATH, SERVER_PORT, EngineSettings
from .engine import SessionEngine
from .errors import ConfigError, TaskNotFound
from .logs import setup_logging
from .modes import Mode
from .rewards import RewardRecord
from .runner import EngineRunner
from .services import HttpEstimator, HttpSuggester
from .store import SqliteStore

console = Console()


async def load_engine(
    store: SqliteStore,
    user_id: Optional[str],
    base: EngineSettings,
    overrides: Optional[dict] = None,
    notifier=None,
) -> SessionEngine:
    """Build an engine from the user's persisted settings, rewards and tasks.

    ``overrides`` (flags typed on the command line) win over persisted values.
    """
    await store.init_tables()
    doc = await store.load_settings(user_id) if user_id else {}
    settings = replace(EngineSettings.from_mapping(doc, base=base), **(overrides or {}))
    tasks = await store.load_tasks()

    estimator = HttpEstimator(settings.estimator_url, settings.service_timeout_seconds) if settings.estimator_url else None
    suggester = HttpSuggester(settings.suggester_url, settings.service_timeout_seconds) if settings.suggester_url else None

    return SessionEngine(
        settings,
        estimator=estimator,
        suggester=suggester,
        log_store=store if user_id else None,
        settings_store=store if user_id else None,
        tasks=tasks,
        user_id=user_id,
        reward_record=RewardRecord.from_mapping(doc),
        notifier=notifier,
    )


def _overrides_from_args(args: argparse.Namespace) -> dict:
    overrides = {}
    if args.work is not None:
        overrides["work_minutes"] = args.work
    if args.short is not None:
        overrides["short_break_minutes"] = args.short
    if args.long is not None:
        overrides["long_break_minutes"] = args.long
    if args.cycle is not None:
        overrides["long_break_interval"] = args.cycle
    if args.adaptive:
        overrides["adaptive_enabled"] = True
    return overrides


# ---- Rendering ----

def render(engine: SessionEngine) -> Panel:
    state = engine.snapshot()
    color = "cyan" if engine.mode is Mode.WORK else "green"

    status = "RUNNING" if engine.is_running else "PAUSED"
    if engine.is_estimating:
        status = "ESTIMATING..."
    elif engine.prompt_pending:
        status = "RATE YOUR FOCUS"

    lines = [
        Text(state["timeRemaining"], style=f"bold {color}", justify="center"),
        ProgressBar(total=1.0, completed=engine.progress, complete_style=color),
        Text(f"{state['cycleLabel']}  ·  {status}", justify="center"),
    ]
    if engine.user_id:
        lines.append(Text(
            f"Gold {state['goldCoins']}  Silver {state['silverCoins']}  Streak {state['completedTasksStreak']}d",
            style="yellow",
            justify="center",
        ))
    if engine.is_suggesting:
        lines.append(Text("Finding a break idea...", style="dim", justify="center"))
    elif engine.break_suggestion and engine.mode.is_break:
        lines.append(Text(engine.break_suggestion, style="italic", justify="center"))
    if engine.last_error:
        lines.append(Text(engine.last_error.message, style="red", justify="center"))

    return Panel(Group(*lines), title=engine.mode_label, border_style=color)


# ---- Commands ----

async def _run_session(engine: SessionEngine, cycles: int) -> None:
    runner = EngineRunner(engine)
    runner.start()
    target = engine.total_completed + cycles
    try:
        with Live(render(engine), console=console, refresh_per_second=4) as live:
            while True:
                if engine.prompt_pending:
                    live.stop()
                    rating = await asyncio.to_thread(
                        IntPrompt.ask, "How focused were you? (1-5)", choices=["1", "2", "3", "4", "5"]
                    )
                    result = await engine.submit_rating(rating)
                    if result is not None:
                        console.print(f"[italic]{result.suggestion}[/italic]")
                    live.start()
                if engine.total_completed >= target and engine.mode.is_break:
                    break
                if not engine.is_running and not engine.is_estimating and not engine.prompt_pending:
                    engine.start()
                live.update(render(engine))
                await asyncio.sleep(0.25)
    finally:
        runner.stop()
        await engine.settle()


def cmd_run(args: argparse.Namespace) -> int:
    async def _main() -> int:
        store = SqliteStore(args.db)
        engine = await load_engine(
            store,
            args.user,
            EngineSettings.from_env(),
            _overrides_from_args(args),
            notifier=lambda title, message: console.bell(),
        )
        if args.task:
            try:
                engine.select_task(args.task)
            except TaskNotFound as e:
                console.print(f"[red]Error:[/red] {e}")
                return 1
        await _run_session(engine, args.cycles)
        console.print(f"Completed {args.cycles} focus session(s). Total: {engine.total_completed}")
        return 0

    try:
        return asyncio.run(_main())
    except KeyboardInterrupt:
        return 130


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .api import create_app

    store = SqliteStore(args.db)
    engine = asyncio.run(load_engine(store, args.user, EngineSettings.from_env(), _overrides_from_args(args)))
    app = create_app(engine, EngineRunner(engine))
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def cmd_add_task(args: argparse.Namespace) -> int:
    async def _main():
        store = SqliteStore(args.db)
        await store.init_tables()
        return await store.add_task(args.title, args.estimate)

    task = asyncio.run(_main())
    console.print(f"Added task [bold]{task.title}[/bold] ({task.id})")
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    async def _main():
        store = SqliteStore(args.db)
        await store.init_tables()
        return await store.load_settings(args.user)

    doc = asyncio.run(_main())
    record = RewardRecord.from_mapping(doc)
    settings = EngineSettings.from_mapping(doc)

    table = Table(title=f"Rewards for {args.user}")
    table.add_column("Field")
    table.add_column("Value", justify="right")
    table.add_row("Gold coins", str(record.gold_coins))
    table.add_row("Silver coins", str(record.silver_coins))
    table.add_row("Streak (days)", str(record.completed_tasks_streak))
    table.add_row("Last completion", record.last_completion_date.isoformat() if record.last_completion_date else "-")
    table.add_row("Sessions completed", str(record.total_tasks_completed))
    table.add_row("Work duration", f"{settings.work_minutes} min")
    table.add_row("Adaptive timer", "on" if settings.adaptive_enabled else "off")
    console.print(table)
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    async def _main():
        store = SqliteStore(args.db)
        await store.init_tables()
        return await store.recent_sessions(args.user, args.limit)

    sessions = asyncio.run(_main())
    if not sessions:
        console.print("No focus sessions logged yet.")
        return 0

    table = Table(title=f"Recent focus sessions for {args.user}")
    table.add_column("When")
    table.add_column("Rating", justify="center")
    table.add_column("Minutes", justify="right")
    table.add_column("Task")
    table.add_column("Time of day")
    for s in sessions:
        table.add_row(
            s.timestamp.strftime("%Y-%m-%d %H:%M"),
            "★" * s.focus_level,
            str(s.duration_minutes),
            s.task_title or "-",
            s.time_of_day,
        )
    console.print(table)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focus-engine",
        description="Focus/break session engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", type=Path, default=DB_PATH, help=f"SQLite database (default: {DB_PATH})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_timer_options(p: argparse.ArgumentParser) -> None:
        p.add_argument("--user", help="User id (omit for anonymous use)")
        p.add_argument("--work", type=int, metavar="MINS", help="Work duration in minutes")
        p.add_argument("--short", type=int, metavar="MINS", help="Short break in minutes")
        p.add_argument("--long", type=int, metavar="MINS", help="Long break in minutes")
        p.add_argument("--cycle", type=int, metavar="N", help="Work intervals before a long break")
        p.add_argument("--adaptive", action="store_true", help="Size work intervals from the selected task")

    run_parser = subparsers.add_parser("run", help="Run focus sessions in the terminal")
    add_timer_options(run_parser)
    run_parser.add_argument("--task", help="Task id to focus on")
    run_parser.add_argument("--cycles", type=int, default=1, help="Work sessions to complete (default: 1)")
    run_parser.set_defaults(func=cmd_run)

    serve_parser = subparsers.add_parser("serve", help="Serve the HTTP API")
    add_timer_options(serve_parser)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=SERVER_PORT)
    serve_parser.set_defaults(func=cmd_serve)

    task_parser = subparsers.add_parser("add-task", help="Add a task to focus on")
    task_parser.add_argument("title")
    task_parser.add_argument("--estimate", type=int, default=0, metavar="MINS", help="Known effort estimate")
    task_parser.set_defaults(func=cmd_add_task)

    stats_parser = subparsers.add_parser("stats", help="Show coins and streak")
    stats_parser.add_argument("--user", required=True)
    stats_parser.set_defaults(func=cmd_stats)

    history_parser = subparsers.add_parser("history", help="Show recent rated sessions")
    history_parser.add_argument("--user", required=True)
    history_parser.add_argument("--limit", type=int, default=20)
    history_parser.set_defaults(func=cmd_history)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)
    try:
        return args.func(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
