# compras/infra/db.py
"""
Utilidades de conexión SQLite.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Context manager que abre una conexión SQLite con:
    - foreign_keys ON
    - row_factory = sqlite3.Row
    - commit al salir (rollback si hubo excepción)

    Todas las escrituras de una misma operación (por ejemplo, registrar
    una compra con sus ítems, stock y CAPP) deben ir dentro de un único
    ``with connect(...)`` para que el rollback las deshaga juntas.
    """
    conn = sqlite3.connect(db_path)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
