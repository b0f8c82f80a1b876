"""
Repositorios (DAO) para acceso y manipulación de datos en SQLite.

Clases:
- ParamsRepo
- ProductoRepo
- InventarioRepo
- ListaPrecioRepo
- CompraRepo
- PagoRepo

Los importes se guardan como texto decimal (``str(Decimal)``) y se leen
de vuelta como ``Decimal``. Los métodos de escritura aceptan una
conexión opcional ``conn`` para participar de una transacción abierta
por el llamador (por ejemplo, al registrar una compra completa).
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .db import connect
from compras.adapters.parsers import parse_decimal


# -------------------------
# Helpers
# -------------------------

def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return row
    if is_dataclass(row):
        return asdict(row)
    raise TypeError("row must be dict or dataclass")


def _dec(val: Any) -> Decimal:
    d = parse_decimal(val)
    return d if d is not None else Decimal(0)


def _txt(val: Any) -> Optional[str]:
    d = parse_decimal(val)
    return str(d) if d is not None else None


def _rows(cur) -> List[Dict[str, Any]]:
    cols = [d[0] for d in cur.description]
    return [dict(zip(cols, row)) for row in cur.fetchall()]


class _Repo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    @contextmanager
    def _conexion(self, conn=None) -> Iterator[Any]:
        """Reutiliza ``conn`` si viene; si no, abre una conexión propia."""
        if conn is not None:
            yield conn
            return
        with connect(self.db_path) as c:
            yield c


# -------------------------
# Params
# -------------------------

class ParamsRepo(_Repo):
    def set_many(self, items: Iterable[Tuple[str, str]]) -> None:
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO params (clave, valor)
                VALUES (?, ?)
                ON CONFLICT(clave) DO UPDATE SET valor=excluded.valor
                """,
                list(items),
            )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with connect(self.db_path) as c:
            row = c.execute("SELECT valor FROM params WHERE clave = ?", (key,)).fetchone()
            return row[0] if row else default

    def get_decimal(self, key: str, default: Any) -> Decimal:
        v = parse_decimal(self.get(key, None))
        if v is None:
            return _dec(default)
        return v


# -------------------------
# Producto
# -------------------------

class ProductoRepo(_Repo):
    def upsert(self, rows: Iterable[Dict[str, Any]], conn=None) -> None:
        rows = [_as_dict(r) for r in rows]
        with self._conexion(conn) as c:
            for r in rows:
                c.execute(
                    """
                    INSERT INTO producto (id, nombre, capp)
                    VALUES (:id, :nombre, :capp)
                    ON CONFLICT(id) DO UPDATE SET
                        nombre=COALESCE(excluded.nombre, producto.nombre),
                        capp=excluded.capp
                    """,
                    {"id": str(r["id"]), "nombre": r.get("nombre"), "capp": _txt(r.get("capp")) or "0"},
                )

    def get(self, producto_id: Any, conn=None) -> Optional[Dict[str, Any]]:
        with self._conexion(conn) as c:
            row = c.execute(
                "SELECT id, nombre, capp FROM producto WHERE id = ?", (str(producto_id),)
            ).fetchone()
        if row is None:
            return None
        return {"id": row["id"], "nombre": row["nombre"], "capp": _dec(row["capp"])}

    def set_capp(self, producto_id: Any, capp: Decimal, conn=None) -> None:
        with self._conexion(conn) as c:
            c.execute(
                "UPDATE producto SET capp = ? WHERE id = ?", (str(capp), str(producto_id))
            )


# -------------------------
# Inventario por sucursal
# -------------------------

class InventarioRepo(_Repo):
    def stock_por_sucursal(self, producto_id: Any, conn=None) -> Dict[str, int]:
        with self._conexion(conn) as c:
            cur = c.execute(
                "SELECT sucursal_id, cantidad FROM inventario WHERE producto_id = ? ORDER BY sucursal_id",
                (str(producto_id),),
            )
            return {row[0]: int(row[1]) for row in cur.fetchall()}

    def stock_total(self, producto_id: Any, conn=None) -> int:
        return sum(self.stock_por_sucursal(producto_id, conn=conn).values())

    def sumar(self, producto_id: Any, sucursal_id: Any, cantidad: int, conn=None) -> None:
        with self._conexion(conn) as c:
            c.execute(
                """
                INSERT INTO inventario (producto_id, sucursal_id, cantidad)
                VALUES (?, ?, ?)
                ON CONFLICT(producto_id, sucursal_id) DO UPDATE SET
                    cantidad = inventario.cantidad + excluded.cantidad
                """,
                (str(producto_id), str(sucursal_id), int(cantidad)),
            )


# -------------------------
# Listas de precio y reglas
# -------------------------

class ListaPrecioRepo(_Repo):
    def crear(self, nombre: str, es_predeterminada: bool = False) -> int:
        with connect(self.db_path) as c:
            cur = c.execute(
                "INSERT INTO lista_precio (nombre, es_predeterminada) VALUES (?, ?)",
                (nombre, 1 if es_predeterminada else 0),
            )
            return int(cur.lastrowid)

    def get_all(self, conn=None) -> List[Dict[str, Any]]:
        with self._conexion(conn) as c:
            cur = c.execute(
                "SELECT id, nombre, es_predeterminada FROM lista_precio ORDER BY es_predeterminada DESC, id"
            )
            return _rows(cur)

    def reglas_producto(self, producto_id: Any, conn=None) -> List[Dict[str, Any]]:
        """Todas las listas con la regla del producto (si existe)."""
        with self._conexion(conn) as c:
            cur = c.execute(
                """
                SELECT l.id AS lista_precio_id,
                       l.nombre,
                       l.es_predeterminada,
                       COALESCE(pp.tipo_ganancia, 'fijo') AS tipo_ganancia,
                       pp.ganancia_max,
                       pp.ganancia_min,
                       pp.precio
                FROM lista_precio l
                LEFT JOIN precio_producto pp
                       ON pp.lista_precio_id = l.id AND pp.producto_id = ?
                ORDER BY l.es_predeterminada DESC, l.id
                """,
                (str(producto_id),),
            )
            return _rows(cur)

    def upsert_regla(self, producto_id: Any, regla: Dict[str, Any], conn=None) -> None:
        with self._conexion(conn) as c:
            c.execute(
                """
                INSERT INTO precio_producto
                    (producto_id, lista_precio_id, tipo_ganancia, ganancia_max, ganancia_min, precio)
                VALUES
                    (:producto_id, :lista_precio_id, :tipo_ganancia, :ganancia_max, :ganancia_min, :precio)
                ON CONFLICT(producto_id, lista_precio_id) DO UPDATE SET
                    tipo_ganancia=excluded.tipo_ganancia,
                    ganancia_max=excluded.ganancia_max,
                    ganancia_min=excluded.ganancia_min,
                    precio=excluded.precio
                """,
                {
                    "producto_id": str(producto_id),
                    "lista_precio_id": int(regla["lista_precio_id"]),
                    "tipo_ganancia": regla.get("tipo_ganancia") or "fijo",
                    "ganancia_max": _txt(regla.get("ganancia_max")),
                    "ganancia_min": _txt(regla.get("ganancia_min")),
                    "precio": _txt(regla.get("precio")),
                },
            )


# -------------------------
# Compras
# -------------------------

class CompraRepo(_Repo):
    def insert(self, row: Dict[str, Any], conn=None) -> int:
        row = _as_dict(row)
        with self._conexion(conn) as c:
            cur = c.execute(
                """
                INSERT INTO compra
                    (proveedor_id, sucursal_id, fecha, n_factura, moneda, tasa_cambio,
                     tipo_pago, fecha_vencimiento, total)
                VALUES
                    (:proveedor_id, :sucursal_id, :fecha, :n_factura, :moneda, :tasa_cambio,
                     :tipo_pago, :fecha_vencimiento, :total)
                """,
                {
                    "proveedor_id": str(row["proveedor_id"]),
                    "sucursal_id": row.get("sucursal_id"),
                    "fecha": row.get("fecha"),
                    "n_factura": row.get("n_factura"),
                    "moneda": row.get("moneda") or "BOB",
                    "tasa_cambio": _txt(row.get("tasa_cambio")),
                    "tipo_pago": row.get("tipo_pago") or "Contado",
                    "fecha_vencimiento": row.get("fecha_vencimiento"),
                    "total": _txt(row.get("total")) or "0",
                },
            )
            return int(cur.lastrowid)

    def insert_item(self, compra_id: int, producto_id: Any, cantidad: int, costo_unitario: Decimal,
                    distribucion: Dict[Any, int], conn=None) -> int:
        with self._conexion(conn) as c:
            cur = c.execute(
                """
                INSERT INTO compra_item (compra_id, producto_id, cantidad, costo_unitario)
                VALUES (?, ?, ?, ?)
                """,
                (compra_id, str(producto_id), int(cantidad), str(costo_unitario)),
            )
            item_id = int(cur.lastrowid)
            c.executemany(
                """
                INSERT INTO compra_item_distribucion (item_id, sucursal_id, cantidad)
                VALUES (?, ?, ?)
                """,
                [(item_id, str(suc), int(q)) for suc, q in distribucion.items() if int(q) > 0],
            )
            return item_id

    def get(self, compra_id: int, conn=None) -> Optional[Dict[str, Any]]:
        with self._conexion(conn) as c:
            row = c.execute("SELECT * FROM compra WHERE id = ?", (compra_id,)).fetchone()
        if row is None:
            return None
        out = dict(row)
        out["total"] = _dec(out["total"])
        out["tasa_cambio"] = parse_decimal(out["tasa_cambio"])
        out["costos_aplicados"] = bool(out.get("costos_aplicados"))
        return out

    def items(self, compra_id: int, conn=None) -> List[Dict[str, Any]]:
        with self._conexion(conn) as c:
            cur = c.execute(
                """
                SELECT ci.id, ci.producto_id, p.nombre AS producto_nombre,
                       ci.cantidad, ci.costo_unitario, ci.costo_adicional
                FROM compra_item ci
                JOIN producto p ON p.id = ci.producto_id
                WHERE ci.compra_id = ?
                ORDER BY ci.id
                """,
                (compra_id,),
            )
            out = _rows(cur)
            for r in out:
                r["costo_unitario"] = _dec(r["costo_unitario"])
                r["costo_adicional"] = _dec(r["costo_adicional"])
                dist = c.execute(
                    "SELECT sucursal_id, cantidad FROM compra_item_distribucion WHERE item_id = ? ORDER BY sucursal_id",
                    (r["id"],),
                ).fetchall()
                r["distribucion"] = {d[0]: int(d[1]) for d in dist}
        return out

    def marcar_costos_aplicados(self, compra_id: int, metodo: str, conn=None) -> bool:
        """Marca la compra; devuelve False si ya estaba marcada."""
        with self._conexion(conn) as c:
            cur = c.execute(
                """
                UPDATE compra SET costos_aplicados = 1, metodo_prorrateo = ?
                WHERE id = ? AND costos_aplicados = 0
                """,
                (metodo, compra_id),
            )
            return cur.rowcount == 1

    def set_costo_adicional_item(self, item_id: int, monto: Decimal, conn=None) -> None:
        with self._conexion(conn) as c:
            c.execute(
                "UPDATE compra_item SET costo_adicional = ? WHERE id = ?", (str(monto), item_id)
            )

    def insert_costos(self, compra_id: int, costos: Iterable[Dict[str, Any]], conn=None) -> None:
        rows = [
            (compra_id, str(r["concepto"]), _txt(r["monto"]) or "0")
            for r in (_as_dict(x) for x in costos)
        ]
        with self._conexion(conn) as c:
            c.executemany(
                "INSERT INTO compra_costo_adicional (compra_id, concepto, monto) VALUES (?, ?, ?)",
                rows,
            )

    def costos(self, compra_id: int, conn=None) -> List[Dict[str, Any]]:
        with self._conexion(conn) as c:
            cur = c.execute(
                "SELECT concepto, monto FROM compra_costo_adicional WHERE compra_id = ? ORDER BY id",
                (compra_id,),
            )
            out = _rows(cur)
        for r in out:
            r["monto"] = _dec(r["monto"])
        return out


# -------------------------
# Pagos
# -------------------------

class PagoRepo(_Repo):
    def insert(self, compra_id: int, monto: Decimal, metodo_pago: Optional[str], fecha: Optional[str],
               conn=None) -> int:
        with self._conexion(conn) as c:
            cur = c.execute(
                "INSERT INTO pago_compra (compra_id, fecha, monto, metodo_pago) VALUES (?, ?, ?, ?)",
                (compra_id, fecha, str(monto), metodo_pago),
            )
            return int(cur.lastrowid)

    def por_compra(self, compra_id: int, conn=None) -> List[Dict[str, Any]]:
        with self._conexion(conn) as c:
            cur = c.execute(
                "SELECT id, fecha, monto, metodo_pago FROM pago_compra WHERE compra_id = ? ORDER BY id",
                (compra_id,),
            )
            out = _rows(cur)
        for r in out:
            r["monto"] = _dec(r["monto"])
        return out

    def total_pagado(self, compra_id: int, conn=None) -> Decimal:
        return sum((p["monto"] for p in self.por_compra(compra_id, conn=conn)), Decimal(0))
