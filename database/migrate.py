import sqlite3

from gc_loading.config import DB_PATH


LOADING_COLUMNS = {
    "loaded_packages": "TEXT NOT NULL DEFAULT '[]'",
    "loaded_count": "INTEGER NOT NULL DEFAULT 0",
    "loading_status": "TEXT NOT NULL DEFAULT 'PENDING'",
    "loading_revision": "INTEGER NOT NULL DEFAULT 0",
}


def add_loading_columns(db_path: str = DB_PATH) -> list:
    """Add the loading-progress columns to a shipments table that predates them.

    Returns the names of the columns that were added.
    """
    conn = sqlite3.connect(db_path)
    cur = conn.cursor()

    cur.execute("PRAGMA table_info(shipments)")
    columns = [row[1] for row in cur.fetchall()]
    added = []
    for name, ddl in LOADING_COLUMNS.items():
        if name not in columns:
            cur.execute(f"ALTER TABLE shipments ADD COLUMN {name} {ddl}")
            added.append(name)
    conn.commit()

    cur.execute(
        "CREATE TABLE IF NOT EXISTS loading_audit ("
        " audit_id INTEGER PRIMARY KEY AUTOINCREMENT, gc_no TEXT NOT NULL, user_id INTEGER,"
        " changed_at TEXT NOT NULL, old_packages TEXT NOT NULL, new_packages TEXT NOT NULL,"
        " added_count INTEGER NOT NULL DEFAULT 0, removed_count INTEGER NOT NULL DEFAULT 0,"
        " old_status TEXT, new_status TEXT)"
    )
    conn.commit()
    conn.close()
    return added


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Add loading progress columns to an existing database")
    parser.add_argument("db_path", nargs="?", default=DB_PATH)
    args = parser.parse_args()
    added = add_loading_columns(args.db_path)
    print(f"Migration complete, added: {', '.join(added) or 'nothing'}")
