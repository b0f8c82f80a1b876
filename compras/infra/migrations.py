# compras/infra/migrations.py
"""
Migraciones de esquema usando PRAGMA user_version.

V1: tablas base (productos, inventario por sucursal, listas de precio, compras, pagos)
V2: columnas del prorrateo de costos adicionales
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    # Parámetros K/V
    """
    CREATE TABLE IF NOT EXISTS params (
        clave TEXT PRIMARY KEY,
        valor TEXT
    );
    """,
    # Catálogo de productos; capp en moneda base (texto decimal)
    """
    CREATE TABLE IF NOT EXISTS producto (
        id TEXT PRIMARY KEY,
        nombre TEXT,
        capp TEXT NOT NULL DEFAULT '0'
    );
    """,
    # Stock por sucursal
    """
    CREATE TABLE IF NOT EXISTS inventario (
        producto_id TEXT NOT NULL,
        sucursal_id TEXT NOT NULL,
        cantidad INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (producto_id, sucursal_id),
        FOREIGN KEY (producto_id) REFERENCES producto(id) ON DELETE CASCADE
    );
    """,
    # Listas de precio (una predeterminada: 'General')
    """
    CREATE TABLE IF NOT EXISTS lista_precio (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nombre TEXT NOT NULL UNIQUE,
        es_predeterminada INTEGER NOT NULL DEFAULT 0
    );
    """,
    # Regla de ganancia y precio resultante por producto y lista
    """
    CREATE TABLE IF NOT EXISTS precio_producto (
        producto_id TEXT NOT NULL,
        lista_precio_id INTEGER NOT NULL,
        tipo_ganancia TEXT NOT NULL DEFAULT 'fijo', -- 'fijo' | 'porcentaje'
        ganancia_max TEXT,
        ganancia_min TEXT,
        precio TEXT,
        PRIMARY KEY (producto_id, lista_precio_id),
        FOREIGN KEY (producto_id) REFERENCES producto(id) ON DELETE CASCADE,
        FOREIGN KEY (lista_precio_id) REFERENCES lista_precio(id) ON DELETE CASCADE
    );
    """,
    # Cabecera de compra
    """
    CREATE TABLE IF NOT EXISTS compra (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        proveedor_id TEXT NOT NULL,
        sucursal_id TEXT,
        fecha TEXT,
        n_factura TEXT,
        moneda TEXT NOT NULL DEFAULT 'BOB',
        tasa_cambio TEXT,
        tipo_pago TEXT NOT NULL DEFAULT 'Contado',
        fecha_vencimiento TEXT,
        total TEXT NOT NULL DEFAULT '0'
    );
    """,
    # Ítems de compra (costo_unitario en la moneda de la compra)
    """
    CREATE TABLE IF NOT EXISTS compra_item (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        compra_id INTEGER NOT NULL,
        producto_id TEXT NOT NULL,
        cantidad INTEGER NOT NULL,
        costo_unitario TEXT NOT NULL,
        FOREIGN KEY (compra_id) REFERENCES compra(id) ON DELETE CASCADE,
        FOREIGN KEY (producto_id) REFERENCES producto(id)
    );
    """,
    # Distribución del ítem por sucursal
    """
    CREATE TABLE IF NOT EXISTS compra_item_distribucion (
        item_id INTEGER NOT NULL,
        sucursal_id TEXT NOT NULL,
        cantidad INTEGER NOT NULL,
        PRIMARY KEY (item_id, sucursal_id),
        FOREIGN KEY (item_id) REFERENCES compra_item(id) ON DELETE CASCADE
    );
    """,
    # Pagos / abonos
    """
    CREATE TABLE IF NOT EXISTS pago_compra (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        compra_id INTEGER NOT NULL,
        fecha TEXT,
        monto TEXT NOT NULL,
        metodo_pago TEXT,
        FOREIGN KEY (compra_id) REFERENCES compra(id) ON DELETE CASCADE
    );
    """,
]

# V2: costos adicionales prorrateados
SCHEMA_V2: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS compra_costo_adicional (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        compra_id INTEGER NOT NULL,
        concepto TEXT NOT NULL,
        monto TEXT NOT NULL,
        FOREIGN KEY (compra_id) REFERENCES compra(id) ON DELETE CASCADE
    );
    """,
]


def _ensure_column(conn, table: str, column: str, ddl: str) -> None:
    """Agrega la columna si no existe."""
    cur = conn.execute(f"PRAGMA table_info({table});")
    cols = [r[1] for r in cur.fetchall()]  # r[1] es el nombre de la columna
    if column not in cols:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {ddl};")


def _apply_v1(conn) -> None:
    for sql in SCHEMA_V1:
        conn.executescript(sql)


def _apply_v2(conn) -> None:
    for sql in SCHEMA_V2:
        conn.executescript(sql)
    # compra: marca de costos aplicados (sólo una vez por compra) y método usado
    _ensure_column(conn, "compra", "costos_aplicados", "costos_aplicados INTEGER NOT NULL DEFAULT 0")
    _ensure_column(conn, "compra", "metodo_prorrateo", "metodo_prorrateo TEXT")
    # compra_item: parte del pozo asignada (moneda base)
    _ensure_column(conn, "compra_item", "costo_adicional", "costo_adicional TEXT NOT NULL DEFAULT '0'")


def _seed_listas(conn) -> None:
    conn.execute(
        """
        INSERT INTO lista_precio (nombre, es_predeterminada)
        SELECT 'General', 1
        WHERE NOT EXISTS (SELECT 1 FROM lista_precio WHERE es_predeterminada = 1)
        """
    )


def apply_migrations(db_path: str) -> None:
    """Aplica migraciones incrementales según PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply_v1(conn)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply_v2(conn)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2

        _seed_listas(conn)
