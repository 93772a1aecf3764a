"""CLI entrypoint: python -m scribe {start|collect|generate|learn|status|stats|init-db|apply-learning|review}."""

from __future__ import annotations

import asyncio
import json
import os
import signal
import sys

from scribe.config import get_db_path, load_config
from scribe.db import get_connection, get_recent_stats, init_db
from scribe.logs import setup_logging
from scribe.ops import confirm_learning, pending_reviews, review, status, trigger
from scribe.scheduler import Scheduler


def _print(result: dict) -> None:
    print(json.dumps(result, indent=2, default=str))
    if not result.get("ok", False):
        sys.exit(1)


def cmd_init_db(config: dict, args: list[str]) -> None:
    """Initialize the SQLite database."""
    db_path = get_db_path(config)
    init_db(db_path)
    print(f"Database initialized at {db_path}")


async def cmd_start(config: dict, args: list[str]) -> None:
    """Run the scheduler until interrupted."""
    scheduler = Scheduler(config)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.ensure_future(scheduler.stop()))
    await scheduler.run_forever()


async def cmd_collect(config: dict, args: list[str]) -> None:
    _print(await trigger(Scheduler(config), "collection"))


async def cmd_generate(config: dict, args: list[str]) -> None:
    _print(await trigger(Scheduler(config), "generation"))


async def cmd_learn(config: dict, args: list[str]) -> None:
    _print(await trigger(Scheduler(config), "learning"))


def cmd_status(config: dict, args: list[str]) -> None:
    _print(status(Scheduler(config)))


def cmd_stats(config: dict, args: list[str]) -> None:
    """Show recent run stats."""
    conn = get_connection(get_db_path(config))
    runs = get_recent_stats(conn, limit=10)
    conn.close()

    if not runs:
        print("No runs yet.")
        return

    header = (
        f"{'Run':>4} {'Kind':<11} {'Status':<10} {'Items':<7} "
        f"{'Articles':<9} {'Avg':>5} {'Cost':>8} {'Started'}"
    )
    print(header)
    print("-" * 80)
    for r in runs:
        items = r["items_collected"] if r["kind"] == "collection" else r["items_considered"]
        avg = f"{r['average_score']:.0f}" if r["average_score"] is not None else "-"
        print(
            f"{r['id']:>4} {r['kind']:<11} {r['status']:<10} {items:<7} "
            f"{r['articles_generated']:<9} {avg:>5} "
            f"${r['llm_cost_usd']:>7.3f} {r['started_at']}"
        )


def cmd_apply_learning(config: dict, args: list[str]) -> None:
    if not args or not args[0].isdigit():
        print("Usage: python -m scribe apply-learning <learning_id>")
        sys.exit(1)
    _print(confirm_learning(config, int(args[0])))


def cmd_review(config: dict, args: list[str]) -> None:
    """List pending reviews, or apply approve/reject/revise to one article."""
    if not args:
        _print(pending_reviews(config))
        return
    if len(args) != 2 or not args[0].isdigit():
        print("Usage: python -m scribe review [<article_id> {approve|reject|revise}]")
        sys.exit(1)
    _print(review(config, int(args[0]), args[1]))


COMMANDS = {
    "start": cmd_start,
    "collect": cmd_collect,
    "generate": cmd_generate,
    "learn": cmd_learn,
    "status": cmd_status,
    "stats": cmd_stats,
    "init-db": cmd_init_db,
    "apply-learning": cmd_apply_learning,
    "review": cmd_review,
}


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        available = "|".join(COMMANDS)
        print(f"Usage: python -m scribe {{{available}}}")
        sys.exit(1)

    command = sys.argv[1]
    config = load_config(os.environ.get("CONFIG_PATH", "config.yaml"))
    init_db(get_db_path(config))
    setup_logging(config)
    handler = COMMANDS[command]

    if asyncio.iscoroutinefunction(handler):
        asyncio.run(handler(config, sys.argv[2:]))
    else:
        handler(config, sys.argv[2:])


if __name__ == "__main__":
    main()
