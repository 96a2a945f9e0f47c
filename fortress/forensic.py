"""
Forensic Reporter CLI
=====================

Inspects persisted sessions and bundled content without going through
the API.

COMMANDS:
- verify:    Check hash chain integrity and replay determinism of a stream
- log:       Dump a stream's event log
- state:     Dump the projected game state of a stream
- saves:     List save-game slots
- graphs:    Validate every bundled narrative graph
- serve:     Run the HTTP API

USAGE:
    python -m fortress.forensic [--storage-dir DIR] COMMAND [ARGS]
"""
import argparse
import json
import sys

from .api.mapper import map_state_to_dto
from .config import GameConfig, configure_logging
from .content import default_repository
from .narrative.validation import validate_graph
from .storage import FileEventStore
from .temporal import ReplayEngine, SessionEventLog


def _load_log(store: FileEventStore, stream_id: str) -> SessionEventLog:
    events = store.load(stream_id)
    if not events:
        print(f"[FAIL] No events for stream {stream_id}")
        sys.exit(1)
    return SessionEventLog(events)


def cmd_verify(args, store: FileEventStore):
    """Verify hash chain and replay determinism."""
    log = _load_log(store, args.stream_id)
    print(f"[*] Verifying {len(log)} events of {args.stream_id}")

    is_valid, error = log.verify_integrity()
    if not is_valid:
        print(f"[FAIL] {error.message}")
        sys.exit(1)

    replay = ReplayEngine()
    events = log.events()
    ok, difference = replay.verify_determinism(events)
    if ok:
        ok, difference = replay.verify_incremental(events, len(events) // 2)
    if not ok:
        print(f"[FAIL] {difference}")
        sys.exit(1)

    print(f"[PASS] Verified {len(log)} entries. Integrity intact.")
    print(f"[INFO] HEAD Hash: {log.state.head_hash}")


def cmd_log(args, store: FileEventStore):
    """Dump linear log."""
    log = _load_log(store, args.stream_id)
    print("SEQ  | TIME                | TYPE                           | HASH")
    print("-" * 80)
    for entry in log.replay():
        event = entry.event
        print(f"{entry.sequence.value:<4} | {event.timestamp[:19]:<19} | {event.type.value:<30} | {entry.entry_hash[:8]}...")


def cmd_state(args, store: FileEventStore):
    """Dump projected state, optionally at a sequence."""
    log = _load_log(store, args.stream_id)
    events = log.events()
    if args.at is not None:
        events = events[:args.at]
    state = ReplayEngine().derive(events)
    print(json.dumps(map_state_to_dto(state), indent=2))


def cmd_saves(args, store: FileEventStore):
    saves = store.list_slots()
    if not saves:
        print("No saves.")
        return
    for preview in saves:
        print(
            f"{preview.save_name:<24} {preview.saved_at[:19]}  phase={preview.phase:<16} "
            f"bounty={preview.bounty:<6} quests={preview.quests_completed}"
        )


def cmd_graphs(args, store: FileEventStore):
    """Run static validation over every bundled graph."""
    content = default_repository()
    failures = 0
    for graph_id in content.list_graph_ids():
        report = validate_graph(content.get_graph_by_id(graph_id))
        status = "PASS" if report.is_valid else "FAIL"
        print(
            f"[{status}] {graph_id}: {report.stats.total_nodes} nodes, "
            f"{report.stats.endings} endings, {len(report.warnings)} warnings"
        )
        for issue in report.errors:
            print(f"    {issue.issue_type}: {issue.message}")
        if not report.is_valid:
            failures += 1
    if failures:
        sys.exit(1)


def cmd_serve(args, store: FileEventStore):
    import uvicorn

    print("Starting Fortress API Server...")
    print(f"Docs available at: http://{args.host}:{args.port}/docs")
    uvicorn.run("fortress.api.server:app", host=args.host, port=args.port, reload=args.reload)


def main(argv=None):
    config = GameConfig.from_env()
    parser = argparse.ArgumentParser(description="Fortress forensic reporter")
    parser.add_argument("--storage-dir", default=config.storage_dir, help="Path to storage directory")
    parser.add_argument("--log-level", default=config.log_level, help="Logging level")

    subparsers = parser.add_subparsers(dest="command")

    verify_parser = subparsers.add_parser("verify", help="Verify integrity")
    verify_parser.add_argument("stream_id", help="Session id of the stream")

    log_parser = subparsers.add_parser("log", help="Dump log")
    log_parser.add_argument("stream_id", help="Session id of the stream")

    state_parser = subparsers.add_parser("state", help="Dump projected state")
    state_parser.add_argument("stream_id", help="Session id of the stream")
    state_parser.add_argument("--at", type=int, default=None, help="Project only the first N events")

    subparsers.add_parser("saves", help="List save games")
    subparsers.add_parser("graphs", help="Validate bundled narrative graphs")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    commands = {
        "verify": cmd_verify,
        "log": cmd_log,
        "state": cmd_state,
        "saves": cmd_saves,
        "graphs": cmd_graphs,
        "serve": cmd_serve,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return
    handler(args, FileEventStore(args.storage_dir))


if __name__ == "__main__":
    main()
