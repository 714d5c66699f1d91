#!/usr/bin/env python3
"""
Import roster, syllabus and timetable workbooks into the exam cell database.

Each row is upserted on its entity's natural key, so re-running an import
with the same file is safe: nothing is duplicated and the latest values win.
Rows that cannot be normalized, or that the database rejects, are skipped
and counted; only an unreachable database aborts the run.

Usage: examcell-import data/ [--regulation 2021] [--batch 2023-2026]
"""
import argparse
import logging
import os
import re
import sqlite3
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from database import get_db, upsert
from errors import MalformedRow, StoreUnavailable
from excel_handler import ExcelHandler, is_spreadsheet
from record_keys import ROSTER, SCHEMAS, SYLLABUS, TIMETABLE, UNKNOWN, normalize_row

logger = logging.getLogger(__name__)

KNOWN_REGULATIONS = ('2021', '2025')
_BATCH_RE = re.compile(r'\d{4}-\d{4}')


@dataclass
class ImportSummary:
    source: str
    kind: str
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.skipped

    def as_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'kind': self.kind,
            'inserted': self.inserted,
            'updated': self.updated,
            'skipped': self.skipped,
        }


def classify(file_name: str) -> str:
    name = os.path.basename(file_name).lower()
    if 'syllabus' in name:
        return SYLLABUS
    if 'timetable' in name:
        return TIMETABLE
    return ROSTER


def regulation_from_filename(file_name: str) -> str:
    name = os.path.basename(file_name)
    for regulation in KNOWN_REGULATIONS:
        if regulation in name:
            return regulation
    return UNKNOWN


def batch_from_filename(file_name: str) -> str:
    match = _BATCH_RE.search(os.path.basename(file_name))
    return match.group(0) if match else UNKNOWN


def reconcile(source_name: str, rows: Iterable[Dict[str, Any]],
              kind: Optional[str] = None,
              regulation: Optional[str] = None,
              batch: Optional[str] = None,
              default_timetable_regulation: Optional[str] = None) -> ImportSummary:
    """
    Upsert ``rows`` read from ``source_name`` and count the outcome.

    Declared ``kind``, ``regulation`` and ``batch`` take precedence over what
    the file name suggests. Timetable rows without a regulation column get
    the declared regulation, else ``default_timetable_regulation``.
    """
    kind = kind or classify(source_name)
    if kind not in SCHEMAS:
        raise ValueError(f"Unknown import kind: {kind}")

    if kind == SYLLABUS:
        regulation = regulation or regulation_from_filename(source_name)
    elif kind == TIMETABLE:
        regulation = regulation or default_timetable_regulation
    if kind == ROSTER:
        batch = batch or batch_from_filename(source_name)

    summary = ImportSummary(source=source_name, kind=kind)

    for line, row in enumerate(rows, start=2):  # row 1 is the header
        try:
            record = normalize_row(row, kind, regulation=regulation, batch=batch)
        except MalformedRow as e:
            logger.warning(f"{source_name} row {line}: skipped ({e})")
            summary.skipped += 1
            summary.errors.append(f"row {line}: {e}")
            continue

        try:
            outcome = upsert(kind, record)
        except (sqlite3.IntegrityError, sqlite3.InterfaceError, sqlite3.DataError) as e:
            logger.warning(f"{source_name} row {line}: rejected by database ({e})")
            summary.skipped += 1
            summary.errors.append(f"row {line}: {e}")
            continue

        if outcome == 'inserted':
            summary.inserted += 1
        else:
            summary.updated += 1

    logger.info(
        f"Imported {kind} from {source_name}: {summary.inserted} inserted, "
        f"{summary.updated} updated, {summary.skipped} skipped"
    )
    return summary


def import_file(path, kind=None, regulation=None, batch=None,
                default_timetable_regulation=None, excel_handler=None) -> Optional[ImportSummary]:
    """Read one workbook and reconcile it. Returns None if it cannot be read."""
    excel_handler = excel_handler or ExcelHandler()
    rows = excel_handler.read_rows(path)
    if rows is None:
        return None

    logger.info(f"Processing {os.path.basename(path)} with {len(rows)} rows")
    return reconcile(
        os.path.basename(path), rows,
        kind=kind, regulation=regulation, batch=batch,
        default_timetable_regulation=default_timetable_regulation,
    )


def import_directory(directory, kind=None, regulation=None, batch=None,
                     default_timetable_regulation=None) -> List[ImportSummary]:
    """Import every spreadsheet in ``directory`` in file name order."""
    # Fail fast if the database cannot be reached
    get_db()

    excel_handler = ExcelHandler()
    summaries = []
    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        if not os.path.isfile(path) or not is_spreadsheet(name) or name.startswith('~$'):
            continue
        summary = import_file(
            path, kind=kind, regulation=regulation, batch=batch,
            default_timetable_regulation=default_timetable_regulation,
            excel_handler=excel_handler,
        )
        if summary is None:
            logger.error(f"Could not read {name}; skipped")
            continue
        summaries.append(summary)
    return summaries


def parse_args(argv: Sequence[str] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import exam cell spreadsheets (rosters, syllabus, timetables) into the database."
    )
    parser.add_argument("directory", help="Directory containing .xlsx/.xls files")
    parser.add_argument("--database", help="SQLite database path (default: configured DATABASE)")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument(
        "--kind", choices=SCHEMAS,
        help="Treat every file as this kind instead of guessing from the file name",
    )
    parser.add_argument("--regulation", help="Regulation year for syllabus/timetable files")
    parser.add_argument("--batch", help="Batch label (e.g. 2023-2026) for roster files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every skipped row")
    return parser.parse_args(argv)


def main(argv: Sequence[str] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not os.path.isdir(args.directory):
        print(f"Not a directory: {args.directory}", file=sys.stderr)
        return 2

    from app import create_app

    overrides = {'DATABASE': args.database} if args.database else None
    try:
        app = create_app(overrides, config_file=args.config)
        with app.app_context():
            summaries = import_directory(
                args.directory, kind=args.kind, regulation=args.regulation,
                batch=args.batch,
                default_timetable_regulation=app.config['DEFAULT_TIMETABLE_REGULATION'],
            )
    except StoreUnavailable as e:
        print(f"Import failed: {e}", file=sys.stderr)
        return 1

    for s in summaries:
        print(f"{s.source} [{s.kind}]: {s.inserted} inserted, {s.updated} updated, {s.skipped} skipped")
    print(f"Import complete: {len(summaries)} file(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
