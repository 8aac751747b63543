"""CLI entry point for ``python -m favkit``.

Subcommands:
    inspect <db_path>  - List stored favorites grouped by category
    ids <db_path>      - Print the id sets pushed to the session aggregator
"""

from __future__ import annotations

import argparse
import sys

from favkit.persistence import DEFAULT_RECORDS_KEY


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="favkit",
        description="favkit: canonical favorites with a synchronized store",
    )
    parser.add_argument(
        "--records-key",
        default=DEFAULT_RECORDS_KEY,
        help=f"Storage key holding the favorites (default: {DEFAULT_RECORDS_KEY})",
    )
    sub = parser.add_subparsers(dest="command")

    # --- inspect ---
    inspect_p = sub.add_parser("inspect", help="List stored favorites grouped by category")
    inspect_p.add_argument("db_path", help="Path to SQLite database file")
    inspect_p.add_argument(
        "--category",
        choices=["course", "card", "hack"],
        help="Only show one category",
    )

    # --- ids ---
    ids_p = sub.add_parser("ids", help="Print the synchronized id sets")
    ids_p.add_argument("db_path", help="Path to SQLite database file")

    return parser


def _load(db_path: str, records_key: str) -> list:
    import os

    from favkit.persistence import FavoritePersistence, SQLiteKeyValueStorage

    if not os.path.exists(db_path):
        print(f"Error: database not found: {db_path}", file=sys.stderr)
        sys.exit(1)

    try:
        storage = SQLiteKeyValueStorage(db_path)
    except Exception as exc:
        print(f"Error: cannot open database: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        return FavoritePersistence(storage, records_key=records_key, order_key=None).load()
    finally:
        storage.close()


def _cmd_inspect(args: argparse.Namespace) -> None:
    from favkit.derived import rebuild

    view = rebuild(_load(args.db_path, args.records_key))
    groups = [("course", view.courses), ("card", view.cards), ("hack", view.hacks)]
    if args.category:
        groups = [g for g in groups if g[0] == args.category]

    if not any(records for _, records in groups):
        print("No favorites stored.")
        return

    for name, records in groups:
        print(f"{name} ({len(records)})")
        for r in records:
            text = " / ".join(t for t in (r.primary_text, r.secondary_text) if t)
            stamp = r.created_at.strftime("%Y-%m-%d %H:%M")
            print(f"  {stamp}  {r.canonical_id}  {text}")


def _cmd_ids(args: argparse.Namespace) -> None:
    from favkit.synchronizer import project

    sets = project(_load(args.db_path, args.records_key))
    for name, ids in (("courses", sets.courses), ("cards", sets.cards), ("hacks", sets.hacks)):
        print(f"{name}: {len(ids)}")
        for fid in sorted(ids):
            print(f"  {fid}")


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "inspect":
        _cmd_inspect(args)
    elif args.command == "ids":
        _cmd_ids(args)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
