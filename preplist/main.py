"""Entry point for the prep list Textual app."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from preplist.backend import SqliteBackend
from preplist.checklist_app import ChecklistApp
from preplist.config import backend_db_path, debug_log_path, state_db_path
from preplist.engine import ChecklistEngine
from preplist.errors import MalformedPersistedState, RemoteCallError
from preplist.persistence import LocalStateStore, read_export, write_export

logger = logging.getLogger("preplist")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="preplist", description="Shared kitchen prep checklist.")
    parser.add_argument("--backend-db", default=None, help="Shared dishes/items database.")
    parser.add_argument("--state-db", default=None, help="Per-device state database.")
    parser.add_argument("--debug-log", default=None, help="Debug log file.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--export", metavar="PATH", help="Write the current iteration to PATH and exit.")
    group.add_argument("--import", dest="import_path", metavar="PATH", help="Load an iteration from PATH and exit.")
    return parser


def configure_logging(path: str) -> None:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


async def _export(engine: ChecklistEngine, path: str) -> None:
    try:
        await engine.start()
    except RemoteCallError as exc:
        print(f"warning: shared list unavailable, exporting cached copy ({exc})", file=sys.stderr)
    finally:
        engine.stop()
    target = write_export(path, engine.export_document())
    print(f"Saved {target}")


def main(argv: list[str] | None = None) -> int:
    """Run the Textual application, or a one-shot export/import."""
    args = build_parser().parse_args(argv)
    log_path = args.debug_log or debug_log_path()
    configure_logging(log_path)

    backend = SqliteBackend(args.backend_db or backend_db_path())
    backend.bootstrap_schema()
    state = LocalStateStore(args.state_db or state_db_path())
    state.bootstrap_schema()
    engine = ChecklistEngine(backend, state)

    if args.export:
        engine.restore_local_state()
        asyncio.run(_export(engine, args.export))
        return 0

    if args.import_path:
        try:
            document = read_export(args.import_path)
        except (OSError, MalformedPersistedState) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        engine.apply_document(document)
        print(f"Loaded {args.import_path}")
        return 0

    logger.info("starting app backend=%s state=%s", backend.db_path, state.db_path)
    ChecklistApp(engine, debug_log=log_path).run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
