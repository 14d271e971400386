import argparse
import sys
from collections import defaultdict
from pathlib import Path

from rich.console import Console
from rich.table import Table

from tracegate.database.event_buffer_writer import read_framed_records
from tracegate.errors import UnknownKindError
from tracegate.metrics.extractor import extract
from tracegate.utils.formatting import fmt_bytes, fmt_count


def validate_events_path(path: str) -> Path:
    p = Path(path)
    if not p.exists():
        print(f"Error: Events file '{path}' not found.", file=sys.stderr)
        sys.exit(1)
    return p.resolve()


def _summary_table(records) -> Table:
    counts = defaultdict(int)
    totals = defaultdict(int)
    for r in records:
        counts[r.kind] += 1
        if totals[r.kind] is None:
            continue
        try:
            totals[r.kind] += extract(r)
        except UnknownKindError:
            totals[r.kind] = None

    table = Table(title="Events by kind")
    table.add_column("kind")
    table.add_column("events", justify="right")
    table.add_column("total", justify="right")
    for kind in sorted(counts):
        total = totals[kind]
        table.add_row(kind, fmt_count(counts[kind]), "-" if total is None else fmt_bytes(total))
    return table


def _records_table(records, limit: int) -> Table:
    table = Table(title=f"Events (first {min(limit, len(records))} of {len(records)})")
    table.add_column("seq", justify="right", no_wrap=True)
    table.add_column("kind", no_wrap=True)
    table.add_column("thread", no_wrap=True)
    table.add_column("fields")
    for r in records[:limit]:
        fields = ", ".join(f"{k}={v}" for k, v in r.fields.items())
        table.add_row(str(r.seq), r.kind, r.owning_thread, fields)
    return table


def run_inspect(args) -> int:
    path = validate_events_path(args.path)
    try:
        records = read_framed_records(path)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.kind:
        records = [r for r in records if r.kind == args.kind]

    console = Console()
    if args.summary:
        console.print(_summary_table(records))
    else:
        console.print(_records_table(records, args.limit))
    return 0


def build_parser():
    parser = argparse.ArgumentParser("tracegate")

    sub = parser.add_subparsers(dest="command", required=True)

    inspect_parser = sub.add_parser("inspect")
    inspect_parser.add_argument("path")
    inspect_parser.add_argument("--summary", action="store_true")
    inspect_parser.add_argument("--kind", type=str, default=None)
    inspect_parser.add_argument("--limit", type=int, default=50)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "inspect":
        sys.exit(run_inspect(args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
