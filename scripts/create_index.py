#!/usr/bin/env python3
"""
Make a Postgres table searchable (or undo it).

Adds the generated tsvector column and its GIN index. Text columns are
discovered from the table unless --columns is given.

Usage:
    # From project root, with DATABASE_URL set (or in .env):
    PYTHONPATH=src python scripts/create_index.py products

    # Only fold some columns into the search document:
    PYTHONPATH=src python scripts/create_index.py products --columns name,description,brand

    # Other text search configuration:
    PYTHONPATH=src python scripts/create_index.py articles --language german

    # Remove the column and index again:
    PYTHONPATH=src python scripts/create_index.py products --drop
"""

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotenv import load_dotenv
load_dotenv()

import psycopg

from config.constants import DEFAULT_LANGUAGE
from config.settings import get_settings
from core.logging import configure_logging
from searchbox.bootstrap import BootstrapError, create_vector_index, drop_vector_index


def main():
    parser = argparse.ArgumentParser(description="Create or drop the full-text search column of a table")
    parser.add_argument("table", help="Table to index")
    parser.add_argument("--columns", type=str, help="Comma-separated text columns (default: all text columns)")
    parser.add_argument("--language", type=str, default=DEFAULT_LANGUAGE, help="Text search configuration")
    parser.add_argument("--drop", action="store_true", help="Drop the column and index instead")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(json_logs=False, log_level=settings.log_level)

    columns = [c.strip() for c in args.columns.split(",") if c.strip()] if args.columns else None

    try:
        with psycopg.connect(settings.database_url) as conn:
            if args.drop:
                drop_vector_index(conn, args.table)
                print(f"Dropped search column and index on {args.table}")
            else:
                used = create_vector_index(conn, args.table, columns, args.language)
                print(f"Indexed {args.table} ({args.language}): {', '.join(used)}")
    except BootstrapError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    except psycopg.Error as e:
        print(f"ERROR: database refused the change: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
