from __future__ import annotations

import sqlite3
import logging
from pathlib import Path

from gc_loading.config import DB_PATH

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def initialize_database(
    db_path: str = DB_PATH,
    schema_path: str | Path = SCHEMA_PATH,
) -> None:
    """Create every table of the loading tracker in ``db_path``."""
    with open(schema_path, 'r', encoding='utf-8') as schema_file:
        schema = schema_file.read()

    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()
    cursor.executescript(schema)
    conn.commit()
    conn.close()
    logger.info("Database created and initialized at '%s'", db_path)


if __name__ == '__main__':
    initialize_database()
