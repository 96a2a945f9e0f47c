"""
Forensic CLI Tests

INVARIANTS TESTED:
==================
1. A persisted stream verifies without the API
2. State can be projected at any prefix of the log
3. Missing streams fail loudly with a non-zero exit
4. Every bundled graph passes static validation
"""

import json

import pytest

from fortress.forensic import main
from fortress.storage import FileEventStore

from .fixtures import make_engine, reach_alliance, start_salvage


@pytest.fixture
def storage_dir(tmp_path):
    engine = make_engine(store=FileEventStore(str(tmp_path)))
    sid = start_salvage(engine, "session_cli")
    reach_alliance(engine, sid)
    return str(tmp_path)


def forensic(storage_dir, *args):
    main(["--storage-dir", storage_dir, "--log-level", "WARNING", *args])


class TestVerify:

    def test_verify_passes(self, storage_dir, capsys):
        forensic(storage_dir, "verify", "session_cli")
        out = capsys.readouterr().out
        assert "[PASS] Verified" in out
        assert "Integrity intact." in out
        assert "[INFO] HEAD Hash:" in out

    def test_missing_stream(self, storage_dir, capsys):
        with pytest.raises(SystemExit) as excinfo:
            forensic(storage_dir, "verify", "ghost")
        assert excinfo.value.code == 1
        assert "[FAIL] No events for stream ghost" in capsys.readouterr().out


class TestDump:

    def test_log(self, storage_dir, capsys):
        forensic(storage_dir, "log", "session_cli")
        out = capsys.readouterr().out
        assert out.splitlines()[0].startswith("SEQ")
        assert "GAME_STARTED" in out
        assert "QUEST_ACCEPTED" in out

    def test_state(self, storage_dir, capsys):
        forensic(storage_dir, "state", "session_cli")
        state = json.loads(capsys.readouterr().out)
        assert state["playerId"] == "captain"
        assert state["phase"] == "alliance"

    def test_state_at_prefix(self, storage_dir, capsys):
        forensic(storage_dir, "state", "session_cli", "--at", "1")
        state = json.loads(capsys.readouterr().out)
        assert state["eventsApplied"] == 1
        assert state["activeQuest"] is None


class TestSavesAndGraphs:

    def test_no_saves(self, storage_dir, capsys):
        forensic(storage_dir, "saves")
        assert capsys.readouterr().out.strip() == "No saves."

    def test_lists_saves(self, storage_dir, capsys):
        engine = make_engine(store=FileEventStore(storage_dir))
        engine.create_session("session_cli")
        engine.save_game("session_cli", "before_battle")

        forensic(storage_dir, "saves")
        out = capsys.readouterr().out
        assert "before_battle" in out
        assert "phase=alliance" in out

    def test_graphs(self, storage_dir, capsys):
        forensic(storage_dir, "graphs")
        out = capsys.readouterr().out
        assert "[PASS] quest_salvage_claim" in out
        assert "[FAIL]" not in out

    def test_no_command_prints_help(self, storage_dir, capsys):
        forensic(storage_dir)
        assert "usage" in capsys.readouterr().out.lower()
