import os
import sqlite3


def ensure_db_dir(db_path: str):
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)


def get_connection(db_path: str) -> sqlite3.Connection:
    """
    Return a sqlite3.Connection with dict-like rows.
    Callers close it; use `with conn:` for a transaction.
    """
    conn = sqlite3.connect(db_path, timeout=30)
    conn.row_factory = sqlite3.Row
    return conn
