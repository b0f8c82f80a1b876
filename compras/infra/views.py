# compras/infra/views.py
"""
Creación de views auxiliares para consultas frecuentes.

Views creadas:
- vw_stock_producto:  stock total por producto (suma de todas las sucursales).
- vw_compra_resumen:  cantidad de ítems y unidades por compra.

Obs.:
- Los importes se guardan como texto decimal; las sumas de dinero se
  hacen en Python con ``Decimal`` y no en estas views.
- También se crean índices útiles, si no existen.
"""

from __future__ import annotations

from .db import connect


def create_views(db_path: str) -> None:
    with connect(db_path) as c:
        # -----------------------
        # Views (drop + create)
        # -----------------------
        c.executescript(
            """
            ---------------------------
            -- Stock total por producto
            ---------------------------
            DROP VIEW IF EXISTS vw_stock_producto;
            CREATE VIEW vw_stock_producto AS
            SELECT
                p.id AS producto_id,
                COALESCE(SUM(i.cantidad), 0) AS stock_total
            FROM producto p
            LEFT JOIN inventario i ON i.producto_id = p.id
            GROUP BY p.id;

            ---------------------------
            -- Resumen de compras
            ---------------------------
            DROP VIEW IF EXISTS vw_compra_resumen;
            CREATE VIEW vw_compra_resumen AS
            SELECT
                c.id AS compra_id,
                COUNT(ci.id) AS items,
                COALESCE(SUM(ci.cantidad), 0) AS unidades
            FROM compra c
            LEFT JOIN compra_item ci ON ci.compra_id = c.id
            GROUP BY c.id;
            """
        )

        # --------------------------------
        # Índices útiles (IF NOT EXISTS)
        # --------------------------------
        c.executescript(
            """
            CREATE INDEX IF NOT EXISTS idx_inventario_producto ON inventario(producto_id);
            CREATE INDEX IF NOT EXISTS idx_compra_item_compra  ON compra_item(compra_id);
            CREATE INDEX IF NOT EXISTS idx_pago_compra         ON pago_compra(compra_id);
            CREATE INDEX IF NOT EXISTS idx_costo_compra        ON compra_costo_adicional(compra_id);
            """
        )
