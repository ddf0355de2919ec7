#!/usr/bin/env python3
"""
Move journal entries between the legacy document format and the journal table.

Usage:
    python scripts/legacy_journal.py import journal_export.json
    python scripts/legacy_journal.py export journal_legacy.json [--since 2026-01-01]

The import file is a JSON array of legacy documents (either field spelling
is accepted). The export writes every entry with both spellings filled in.
"""

import argparse
import asyncio
import json
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gestioncartes.config import get_settings
from gestioncartes.db.session import Database
from gestioncartes.models import JournalEntry
from gestioncartes.repositories import journal_repo
from gestioncartes.repositories.journal_repo import JournalFilters
from gestioncartes.services.legacy_journal import from_legacy_document, to_legacy_document

EXPORT_PAGE_SIZE = 1000


async def import_documents(database: Database, path: Path) -> int:
    documents = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(documents, list):
        raise ValueError("Expected a JSON array of journal documents")

    async with database.session_factory() as db:
        try:
            for document in documents:
                db.add(JournalEntry(**from_legacy_document(document)))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return len(documents)


async def export_documents(database: Database, path: Path, since: date | None) -> int:
    filters = JournalFilters(date_from=since)
    documents = []
    async with database.session_factory() as db:
        offset = 0
        while True:
            entries, _ = await journal_repo.find(db, filters, offset=offset, limit=EXPORT_PAGE_SIZE)
            documents.extend(to_legacy_document(entry) for entry in entries)
            if len(entries) < EXPORT_PAGE_SIZE:
                break
            offset += EXPORT_PAGE_SIZE

    path.write_text(json.dumps(documents, ensure_ascii=False, indent=2), encoding="utf-8")
    return len(documents)


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="load legacy documents into the journal")
    import_parser.add_argument("path", type=Path)

    export_parser = subparsers.add_parser("export", help="dump the journal as legacy documents")
    export_parser.add_argument("path", type=Path)
    export_parser.add_argument("--since", type=date.fromisoformat, default=None)

    args = parser.parse_args(argv)

    database = Database.from_settings(get_settings())
    try:
        if args.command == "import":
            count = await import_documents(database, args.path)
            print(f"✓ Imported {count} journal entries from {args.path}")
        else:
            count = await export_documents(database, args.path, args.since)
            print(f"✓ Exported {count} journal entries to {args.path}")
    except Exception as e:
        print(f"✗ Error: {e}")
        raise
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(main())
