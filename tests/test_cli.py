"""CLI argument parsing and the store-backed subcommands."""

import asyncio

from focus_engine.cli import _build_parser, _overrides_from_args, load_engine, main
from focus_engine.config import EngineSettings
from focus_engine.store import SqliteStore


class TestParser:
    def test_run_options(self):
        args = _build_parser().parse_args(["run", "--user", "alice", "--work", "1", "--cycles", "3"])
        assert args.command == "run"
        assert args.cycles == 3
        assert _overrides_from_args(args) == {"work_minutes": 1}

    def test_unset_flags_are_not_overrides(self):
        args = _build_parser().parse_args(["run"])
        assert _overrides_from_args(args) == {}

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "focus-engine" in capsys.readouterr().out


class TestCommands:
    def test_add_task_then_stats(self, tmp_path, capsys):
        db = tmp_path / "focus.db"
        assert main(["--db", str(db), "add-task", "Write report", "--estimate", "40"]) == 0
        assert "Write report" in capsys.readouterr().out

        asyncio.run(SqliteStore(db).merge_partial("alice", {"goldCoins": 17, "completedTasksStreak": 3}))
        assert main(["--db", str(db), "stats", "--user", "alice"]) == 0
        out = capsys.readouterr().out
        assert "17" in out
        assert "Gold coins" in out

    def test_history_empty(self, tmp_path, capsys):
        assert main(["--db", str(tmp_path / "focus.db"), "history", "--user", "alice"]) == 0
        assert "No focus sessions" in capsys.readouterr().out

    def test_load_engine_restores_user_state(self, tmp_path):
        async def scenario():
            store = SqliteStore(tmp_path / "focus.db")
            await store.init_tables()
            await store.add_task("Read paper", 30, task_id="read")
            await store.merge_partial("alice", {"workDuration": 40, "goldCoins": 9, "totalTasksCompleted": 2})
            return await load_engine(store, "alice", EngineSettings())

        engine = asyncio.run(scenario())
        assert engine.resolved_minutes == 40
        assert engine.reward_record.gold_coins == 9
        assert engine.total_completed == 2
        assert engine.tasks.get("read").title == "Read paper"

    def test_flags_win_over_persisted_settings(self, tmp_path):
        async def scenario():
            store = SqliteStore(tmp_path / "focus.db")
            await store.init_tables()
            await store.merge_partial("alice", {"workDuration": 40, "shortBreakDuration": 8, "enableAdaptiveTimer": False})
            args = _build_parser().parse_args(["run", "--user", "alice", "--work", "1", "--adaptive"])
            return await load_engine(store, "alice", EngineSettings(), _overrides_from_args(args))

        engine = asyncio.run(scenario())
        assert engine.settings.work_minutes == 1
        assert engine.resolved_minutes == 1
        assert engine.settings.adaptive_enabled is True
        assert engine.settings.short_break_minutes == 8
