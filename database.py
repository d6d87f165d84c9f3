import logging
import sqlite3
from contextlib import contextmanager

from database_schemas import ALL_TABLE_SCHEMAS, DEFAULT_CATEGORIES

logger = logging.getLogger(__name__)

DB_NAME = 'forum.sqlite3'


@contextmanager
def get_db(db_path: str = DB_NAME):
    conn = sqlite3.connect(db_path, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: str = DB_NAME):
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        for schema in ALL_TABLE_SCHEMAS:
            cursor.execute(schema)
        cursor.execute("SELECT COUNT(*) FROM categories")
        if cursor.fetchone()[0] == 0:
            cursor.executemany(
                "INSERT INTO categories (name, description) VALUES (?, ?)", DEFAULT_CATEGORIES
            )
            logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))
        conn.commit()
    logger.info("Database tables verified / created at %s", db_path)


if __name__ == "__main__":
    init_db()
