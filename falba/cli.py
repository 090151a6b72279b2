"""Command line tool that loads a results database into SQL and prints it."""

from __future__ import annotations

import argparse
import json
import logging
import re
import sqlite3
import sys
from contextlib import closing
from typing import Any, List, Optional, Sequence

from falba.db import DB, DBError, read_db

logger = logging.getLogger(__name__)

# At least one letter, followed by alphanumerics and underscores.
SQL_COLUMN_RE = re.compile(r"[A-Za-z]+[A-Za-z0-9_]*")

COLUMN_WIDTH = 20
_SEPARATOR = "| "


def load_results(falba_db: DB, connection: sqlite3.Connection) -> List[str]:
    """Create a ``results`` table in ``connection`` and fill it from ``falba_db``.

    Each row holds the test name, the result ID and a ``facts`` column with a
    JSON object mapping every known fact name to its value, or null when the
    result lacks that fact. Returns the fact names in sorted order.
    """
    for name in falba_db.fact_types:
        if not SQL_COLUMN_RE.search(name):
            raise ValueError(
                f"column name {name!r} doesn't match {SQL_COLUMN_RE.pattern}, "
                "can't use as SQL column name"
            )
    fact_names = sorted(falba_db.fact_types)

    query = "CREATE TABLE results (test_name TEXT, id TEXT, facts TEXT)"
    logger.info(query)
    connection.execute(query)

    rows = []
    for result in falba_db.results:
        facts = {}
        for name in fact_names:
            value = result.facts.get(name)
            if value is None:
                logger.info("null for %s", name)
                facts[name] = None
            else:
                facts[name] = value.sql_value()
        rows.append((result.test_name, result.result_id, json.dumps(facts)))
    connection.executemany(
        "INSERT INTO results(test_name, id, facts) VALUES(?, ?, ?)", rows
    )
    return fact_names


def _format_inner(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _format_cell(value: Any) -> str:
    if isinstance(value, dict):
        return ", ".join(f"{key}:{_format_inner(value[key])}" for key in value)
    return _format_inner(value)


def _format_line(cells: Sequence[str]) -> str:
    return _SEPARATOR.join(cell.ljust(COLUMN_WIDTH) for cell in cells)


def format_rows(columns: Sequence[str], rows) -> str:
    """Render a header, a rule and the given rows as fixed-width text."""
    lines = [_format_line(list(columns))]
    lines.append("-" * (COLUMN_WIDTH * len(columns) + len(_SEPARATOR) * (len(columns) - 1)))
    lines.extend(_format_line([_format_cell(value) for value in row]) for row in rows)
    return "\n".join(lines) + "\n"


def _run(result_db: str) -> str:
    try:
        falba_db = read_db(result_db)
    except DBError as exc:
        raise DBError(f"opening Falba DB: {exc}") from exc

    with closing(sqlite3.connect(":memory:")) as connection:
        load_results(falba_db, connection)
        cursor = connection.execute("SELECT test_name, id, facts FROM results")
        columns = [description[0] for description in cursor.description]
        rows = [
            (test_name, result_id, json.loads(facts))
            for test_name, result_id, facts in cursor
        ]
    return format_rows(columns, rows)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Load a results database and print its results table."""
    parser = argparse.ArgumentParser(
        prog="falba", description="Print the results held in a results database."
    )
    parser.add_argument(
        "--result-db",
        default="./results",
        help="Path to the results database",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(format="%(asctime)s %(message)s")

    try:
        output = _run(args.result_db)
    except (DBError, ValueError, sqlite3.Error) as exc:
        logger.critical("Fatal: %s", exc)
        return 1
    sys.stdout.write(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())