# main.py
"""
Launcher for the GC loading tracker.
Makes sure the database exists, then opens the loading sheet.
This file serves as the program entry point.
"""

import argparse
import logging
from pathlib import Path

from database.init_db import initialize_database
from gc_loading.config import DB_PATH
from gc_loading.ui.loading_sheet_interface import start_loading_sheet

logger = logging.getLogger(__name__)


def main() -> None:
    """Open the loading sheet on ``--db`` (creating the schema if needed)."""
    parser = argparse.ArgumentParser(description="GC loading tracker")
    parser.add_argument("--db", default=DB_PATH, help="SQLite database file")
    parser.add_argument("--user-id", type=int, default=None, help="Recorded in the loading audit log")
    args = parser.parse_args()

    if not Path(args.db).exists():
        logger.info("No database at %s, creating one", args.db)
        initialize_database(args.db)

    start_loading_sheet(args.user_id, args.db)


if __name__ == "__main__":
    main()
