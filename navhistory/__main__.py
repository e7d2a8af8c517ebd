"""Entry point for python -m navhistory.

Headless commands over a file-backed session history. Moves made here are
picked up by any process watching the same file.

Usage:
    python -m navhistory show --session ~/.navhistory/session.json
    python -m navhistory push /settings --state '{"tab": "general"}'
    python -m navhistory replace /settings?tab=advanced
    python -m navhistory go -2
    python -m navhistory back
    python -m navhistory forward
    python -m navhistory watch
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from navhistory.exceptions import NavHistoryError


def _setup_logging(args: argparse.Namespace) -> None:
    """Configure logging based on command-line arguments."""
    from navhistory.logging_config import setup_logging

    if args.debug:
        setup_logging(level="DEBUG", log_to_console=True, log_to_file=True)
    else:
        setup_logging(
            level=args.log_level,
            log_to_console=False,
            log_to_file=not args.no_log_file,
        )


def _print_json(data: Any) -> None:
    """Print data as JSON to stdout."""
    print(json.dumps(data, indent=2, default=str))


def _print_table(rows: list[dict[str, Any]], columns: list[str]) -> None:
    """Print data as a simple table."""
    if not rows:
        print("No results.")
        return

    widths = {col: len(col) for col in columns}
    for row in rows:
        for col in columns:
            widths[col] = max(widths[col], len(str(row.get(col, ""))))

    header = "  ".join(col.ljust(widths[col]) for col in columns)
    print(header)
    print("-" * len(header))

    for row in rows:
        print("  ".join(str(row.get(col, "")).ljust(widths[col]) for col in columns))


# =============================================================================
# History Construction
# =============================================================================


def _open_history(args: argparse.Namespace):
    """Open the session file named on the command line or in config."""
    from navhistory.config import load_merged_config
    from navhistory.factory import create_history_from_config
    from navhistory.models import BackendKind, HashType

    config = load_merged_config(Path.cwd())
    if args.session:
        config.session_file = str(args.session)
    if not config.session_file:
        raise NavHistoryError(
            "No session file given (use --session or set session_file in config)"
        )
    if args.hash_type:
        config.backend = BackendKind.HASH
        config.hash_type = HashType(args.hash_type)
    elif config.backend is BackendKind.MEMORY:
        config.backend = BackendKind.SESSION
    if args.basename is not None:
        config.basename = args.basename

    return create_history_from_config(config)


def _location_dict(history) -> dict[str, Any]:
    location = history.location
    return {
        "action": history.action.value,
        "index": history.index,
        "path": location.path,
        "href": history.create_href(location),
        "key": location.key,
        "state": location.state,
    }


# =============================================================================
# CLI Command Handlers
# =============================================================================


def cmd_show(args: argparse.Namespace) -> int:
    """Handle show command."""
    from navhistory.models import record_from_state

    history = _open_history(args)
    store = history.backend.store  # type: ignore[attr-defined]

    rows = []
    for i, entry in enumerate(store.entries):
        record = record_from_state(entry.state)
        rows.append(
            {
                "#": i,
                "Current": "*" if i == store.index else "",
                "Address": entry.url,
                "Key": record.key,
                "Index": "-" if record.idx is None else record.idx,
                "State": "" if record.usr is None else json.dumps(record.usr),
            }
        )
    history.close()

    if args.json:
        _print_json(rows)
    else:
        _print_table(rows, ["#", "Current", "Address", "Key", "Index", "State"])
    return 0


def cmd_push(args: argparse.Namespace) -> int:
    """Handle push and replace commands."""
    try:
        state = json.loads(args.state) if args.state is not None else None
    except json.JSONDecodeError as e:
        print(f"Error: --state is not valid JSON: {e}", file=sys.stderr)
        return 2

    history = _open_history(args)
    if args.command == "push":
        history.push(args.path, state)
    else:
        history.replace(args.path, state)
    result = _location_dict(history)
    history.close()

    if args.json:
        _print_json(result)
    else:
        print(f"{result['action']} {result['href']} (index {result['index']})")
    return 0


def cmd_go(args: argparse.Namespace) -> int:
    """Handle go, back and forward commands."""
    delta = {"back": -1, "forward": 1}.get(args.command, getattr(args, "delta", 0))

    history = _open_history(args)
    before = history.location
    history.go(delta)
    result = _location_dict(history)
    moved = history.location is not before
    history.close()

    if not moved:
        print(f"Cannot go {delta:+d} from {before.path}", file=sys.stderr)
        return 1
    if args.json:
        _print_json(result)
    else:
        print(f"{result['action']} {result['href']} (index {result['index']})")
    return 0


async def _watch(args: argparse.Namespace) -> None:
    history = _open_history(args)
    store = history.backend.store  # type: ignore[attr-defined]

    def on_update(update) -> None:
        if args.json:
            print(json.dumps(_location_dict(history), default=str), flush=True)
        else:
            print(f"{update.action.value} {update.location.path}", flush=True)

    history.listen(on_update)
    await store.start_watching()
    try:
        await asyncio.Event().wait()
    finally:
        await store.stop_watching()
        history.close()


def cmd_watch(args: argparse.Namespace) -> int:
    """Handle watch command: print every move until interrupted."""
    try:
        asyncio.run(_watch(args))
    except KeyboardInterrupt:
        pass
    return 0


# =============================================================================
# Argument Parsing
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="navhistory",
        description="Inspect and drive a file-backed navigation history.",
    )
    parser.add_argument("--session", type=Path, help="Session file (JSON)")
    parser.add_argument("--basename", help="Basename prefixed to every address")
    parser.add_argument(
        "--hash-type",
        choices=["slash", "noslash", "hashbang"],
        help="Keep paths in the address fragment using this encoding",
    )
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("--debug", action="store_true", help="Debug logging to console")
    parser.add_argument("--log-level", default="INFO", help="Log level")
    parser.add_argument("--no-log-file", action="store_true", help="Disable file logging")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="List entries of the session")

    for name in ("push", "replace"):
        p = sub.add_parser(name, help=f"{name.capitalize()} a location")
        p.add_argument("path", help="Target path (may be relative)")
        p.add_argument("--state", help="JSON state to attach")

    p = sub.add_parser("go", help="Move by a number of entries")
    p.add_argument("delta", type=int)
    sub.add_parser("back", help="Move back one entry")
    sub.add_parser("forward", help="Move forward one entry")
    sub.add_parser("watch", help="Print moves made by other processes")

    return parser


COMMANDS = {
    "show": cmd_show,
    "push": cmd_push,
    "replace": cmd_push,
    "go": cmd_go,
    "back": cmd_go,
    "forward": cmd_go,
    "watch": cmd_watch,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args)

    try:
        return COMMANDS[args.command](args)
    except NavHistoryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
