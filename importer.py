"""Seed the questions table from the bundled sets or a .jsonl export; bulk UPSERT into questions."""
import json
import argparse
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from typerating.db import get_supabase_uncached, upsert_questions_bulk, delete_questions_by_source
from typerating.question_sets import SETS, BUNDLED_SOURCE
from typerating.questions import normalize_question

logger = logging.getLogger(__name__)

JSONL_SOURCE = "import"


def parse_line(line: str, source: str = JSONL_SOURCE) -> dict | None:
    """Parse one JSONL line into a questions row. Returns None if invalid/skip."""
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(raw, dict):
        return None
    raw.setdefault("source", source)
    question = normalize_question(raw)
    if question is None:
        return None
    return question.to_row()


def load_and_transform(path: Path, source: str = JSONL_SOURCE):
    """Read JSONL and yield transformed question rows."""
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            row = parse_line(line, source)
            if row:
                yield row


def bundled_rows(set_names: Iterable[str]) -> List[dict]:
    """Rows for the named bundled sets (a320, b737, general, minimal)."""
    rows = []
    for name in set_names:
        if name not in SETS:
            raise ValueError(f"Unknown question set: {name} (choose from {', '.join(SETS)})")
        for record in SETS[name]():
            question = normalize_question(record)
            if question is not None:
                rows.append(question.to_row())
    return rows


def run_import(
    jsonl_path: Optional[Path] = None,
    sets: Optional[List[str]] = None,
    chunk_size: int = 200,
    dry_run: bool = False,
    replace: bool = False,
    client=None,
) -> int:
    if jsonl_path is not None:
        if not jsonl_path.exists():
            raise FileNotFoundError(f"JSONL not found: {jsonl_path}")
        rows = list(load_and_transform(jsonl_path))
        source = JSONL_SOURCE
        origin = str(jsonl_path)
    else:
        names = sets or ["a320", "b737", "general"]
        rows = bundled_rows(names)
        source = BUNDLED_SOURCE
        origin = "bundled sets " + ", ".join(names)

    if dry_run:
        print(f"Dry run: would upsert {len(rows)} questions from {origin}")
        if rows:
            print("Sample row:", rows[0])
        return len(rows)

    client = client if client is not None else get_supabase_uncached()
    if replace:
        delete_questions_by_source(client, source)
        print(f"Deleted existing {source} questions")
    count = upsert_questions_bulk(client, rows, chunk_size=chunk_size)
    print(f"Upserted {count} questions from {origin}")
    return count


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Seed Supabase questions from bundled sets or a JSONL export.")
    parser.add_argument(
        "jsonl",
        nargs="?",
        default=None,
        help="Path to .jsonl of question records (default: the bundled sets)",
    )
    parser.add_argument(
        "--set",
        dest="sets",
        action="append",
        choices=sorted(SETS),
        help="Bundled set to seed; repeatable (default: a320, b737, general)",
    )
    parser.add_argument("--chunk-size", type=int, default=200, help="Upsert chunk size (default 200)")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not upsert")
    parser.add_argument("--replace", action="store_true", help="Delete existing questions of the same source, then upsert")
    args = parser.parse_args()
    path = Path(args.jsonl) if args.jsonl else None
    run_import(jsonl_path=path, sets=args.sets, chunk_size=args.chunk_size, dry_run=args.dry_run, replace=args.replace)
