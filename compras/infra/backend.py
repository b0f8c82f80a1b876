"""
Backend de compras: contrato remoto e implementación local sobre SQLite.

Los casos de uso sólo conocen el protocolo ``Backend`` (las funciones
remotas ``get_product_details``, ``registrar_compra``,
``aplicar_costos_adicionales_a_compra``, ...). ``SQLiteBackend`` es la
implementación de referencia: persiste la compra, actualiza stock y
CAPP y aplica el prorrateo de costos con las mismas fórmulas que usa
la vista previa del cliente, de modo que ambos números coinciden.

Toda falla se informa como ``ErrorBackend`` con un mensaje legible.
"""

from __future__ import annotations

import sqlite3
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Protocol

from compras.adapters.parsers import parse_cantidad, parse_decimal
from compras.domain.formulas import costo_en_moneda_base, nuevo_capp, precio_resultante, redondear_moneda
from compras.domain.models import (
    CostoAdicional,
    DetalleProducto,
    LineaProrrateo,
    MetodoProrrateo,
    Moneda,
    TipoGanancia,
    TipoPago,
    crear_regla,
)
from compras.domain.policies import validar_abono
from compras.domain.prorrateo import AsignacionInvalida, capp_con_costo_adicional, prorratear
from compras.infra.db import connect
from compras.infra.logger import log_database_operation, log_system_event
from compras.infra.repositories import (
    CompraRepo,
    InventarioRepo,
    ListaPrecioRepo,
    PagoRepo,
    ProductoRepo,
)


# Decimales con que se guarda el CAPP
DECIMALES_CAPP = 4


class ErrorBackend(Exception):
    """Rechazo o falla del backend; ``str(e)`` es el mensaje original."""


class Backend(Protocol):
    def get_product_details(self, producto_id: Any) -> DetalleProducto:
        ...

    def registrar_compra(self, payload: Dict[str, Any]) -> int:
        ...

    def get_purchase_details(self, compra_id: int) -> Dict[str, Any]:
        ...

    def aplicar_costos_adicionales_a_compra(
        self, compra_id: int, metodo: MetodoProrrateo, costos: Iterable[CostoAdicional]
    ) -> Dict[str, Any]:
        ...

    def registrar_pago_compra(self, compra_id: int, monto: Decimal, metodo_pago: str) -> Dict[str, Any]:
        ...


def estado_pago(total: Decimal, pagado: Decimal) -> str:
    if pagado >= total:
        return "Pagada"
    if pagado > 0:
        return "Abono Parcial"
    return "Pendiente"


class SQLiteBackend:
    """Implementación local y autoritativa del backend de compras."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.productos = ProductoRepo(db_path)
        self.inventario = InventarioRepo(db_path)
        self.listas = ListaPrecioRepo(db_path)
        self.compras = CompraRepo(db_path)
        self.pagos = PagoRepo(db_path)

    # -----------------------
    # productos
    # -----------------------

    def crear_producto_si_no_existe(self, producto_id: Any, nombre: Any = None) -> bool:
        """Da de alta el producto con CAPP 0; devuelve True si lo creó."""
        if self.productos.get(producto_id) is not None:
            return False
        self.productos.upsert([{"id": producto_id, "nombre": nombre or f"Auto-creado: {producto_id}", "capp": 0}])
        log_database_operation("producto", "INSERT", 1, id=producto_id)
        return True

    def get_product_details(self, producto_id: Any) -> DetalleProducto:
        prod = self.productos.get(producto_id)
        if prod is None:
            raise ErrorBackend(f"Producto {producto_id} no encontrado.")
        reglas = [
            crear_regla(
                r["lista_precio_id"],
                ganancia_max=r["ganancia_max"],
                ganancia_min=r["ganancia_min"],
                es_predeterminada=bool(r["es_predeterminada"]),
                tipo_ganancia=r["tipo_ganancia"],
                nombre=r["nombre"],
            )
            for r in self.listas.reglas_producto(producto_id)
        ]
        return DetalleProducto(
            producto_id=prod["id"],
            nombre=prod["nombre"],
            capp_actual=prod["capp"],
            stock_por_sucursal=self.inventario.stock_por_sucursal(producto_id),
            reglas=reglas,
        )

    # -----------------------
    # compras
    # -----------------------

    def _validar_payload(self, compra: Dict[str, Any], items: List[Dict[str, Any]]) -> None:
        if not compra.get("proveedor_id"):
            raise ErrorBackend("La compra requiere un proveedor.")
        if not items:
            raise ErrorBackend("La compra no tiene productos.")
        moneda = Moneda(compra.get("moneda") or Moneda.BOB)
        if moneda is Moneda.USD:
            tasa = parse_decimal(compra.get("tasa_cambio"))
            if tasa is None or tasa <= 0:
                raise ErrorBackend("La tasa de cambio es obligatoria para compras en USD.")
        vistos = set()
        for it in items:
            pid = str(it.get("producto_id"))
            if pid in vistos:
                raise ErrorBackend(f"El producto {pid} está repetido en la compra.")
            vistos.add(pid)
            if parse_cantidad(it.get("cantidad")) <= 0:
                raise ErrorBackend(f"Cantidad inválida para el producto {pid}.")
            costo = parse_decimal(it.get("costo_unitario"))
            if costo is None or costo <= 0:
                raise ErrorBackend(f"Costo inválido para el producto {pid}.")

    def registrar_compra(self, payload: Dict[str, Any]) -> int:
        """Persiste la compra; stock, CAPP y precios quedan actualizados."""
        compra = dict(payload.get("p_compra") or {})
        items = list(payload.get("p_items") or [])
        self._validar_payload(compra, items)

        moneda = Moneda(compra.get("moneda") or Moneda.BOB)
        tasa = parse_decimal(compra.get("tasa_cambio"))
        total = sum(
            (parse_cantidad(it["cantidad"]) * parse_decimal(it["costo_unitario"]) for it in items),
            Decimal(0),
        )
        compra["total"] = total
        compra["fecha"] = compra.get("fecha") or date.today().isoformat()

        abono = Decimal(0)
        if TipoPago(compra.get("tipo_pago") or TipoPago.CONTADO) is TipoPago.CREDITO:
            abono = parse_decimal(compra.get("abono_inicial")) or Decimal(0)
            if abono < 0 or abono > total:
                raise ErrorBackend("El abono inicial debe estar entre 0 y el total de la compra.")

        try:
            with connect(self.db_path) as c:
                compra_id = self.compras.insert(compra, conn=c)
                for it in items:
                    self._registrar_item(c, compra_id, compra, it, moneda, tasa)
                if abono > 0:
                    self.pagos.insert(compra_id, abono, compra.get("metodo_abono"), compra.get("fecha"), conn=c)
        except sqlite3.Error as e:
            raise ErrorBackend(f"No se pudo registrar la compra: {e}") from e

        log_database_operation("compra", "INSERT", 1, compra_id=compra_id, items=len(items))
        log_system_event("compra_registrada", {"compra_id": compra_id, "total": str(total)})
        return compra_id

    def _registrar_item(self, c, compra_id: int, compra: Dict[str, Any], it: Dict[str, Any],
                        moneda: Moneda, tasa) -> None:
        pid = it["producto_id"]
        prod = self.productos.get(pid, conn=c)
        if prod is None:
            raise ErrorBackend(f"Producto {pid} no encontrado.")
        cantidad = parse_cantidad(it["cantidad"])
        costo = parse_decimal(it["costo_unitario"])
        distribucion = {k: parse_cantidad(v) for k, v in (it.get("distribucion") or {}).items()}
        if not distribucion:
            if not compra.get("sucursal_id"):
                raise ErrorBackend(f"El producto {pid} no tiene sucursal de destino.")
            distribucion = {compra["sucursal_id"]: cantidad}
        if sum(distribucion.values()) != cantidad:
            raise ErrorBackend(f"La distribución por sucursal del producto {pid} no suma {cantidad}.")

        stock_previo = self.inventario.stock_total(pid, conn=c)
        capp = nuevo_capp(stock_previo, prod["capp"], cantidad, costo_en_moneda_base(costo, moneda, tasa))
        capp = redondear_moneda(capp, DECIMALES_CAPP)
        self.productos.set_capp(pid, capp, conn=c)

        for sucursal_id, q in distribucion.items():
            if q > 0:
                self.inventario.sumar(pid, sucursal_id, q, conn=c)
        self.compras.insert_item(compra_id, pid, cantidad, costo, distribucion, conn=c)

        for p in it.get("precios") or []:
            tipo = TipoGanancia(p.get("tipo_ganancia") or TipoGanancia.FIJO)
            self.listas.upsert_regla(
                pid,
                {
                    "lista_precio_id": p["lista_id"],
                    "tipo_ganancia": tipo.value,
                    "ganancia_max": p.get("ganancia_maxima"),
                    "ganancia_min": p.get("ganancia_minima"),
                    "precio": precio_resultante(capp, p.get("ganancia_maxima"), tipo),
                },
                conn=c,
            )

    def get_purchase_details(self, compra_id: int) -> Dict[str, Any]:
        compra = self.compras.get(compra_id)
        if compra is None:
            raise ErrorBackend(f"Compra {compra_id} no encontrada.")
        moneda = Moneda(compra["moneda"])
        items = self.compras.items(compra_id)
        for it in items:
            base = costo_en_moneda_base(it["costo_unitario"], moneda, compra["tasa_cambio"])
            it["costo_base"] = base
            it["costo_final"] = base + it["costo_adicional"] / it["cantidad"]
        pagos = self.pagos.por_compra(compra_id)
        if TipoPago(compra["tipo_pago"]) is TipoPago.CONTADO:
            pagado = compra["total"]
        else:
            pagado = self.pagos.total_pagado(compra_id)
        compra.update(
            items=items,
            pagos=pagos,
            costos=self.compras.costos(compra_id),
            total_pagado=pagado,
            saldo_pendiente=compra["total"] - pagado,
            estado_pago=estado_pago(compra["total"], pagado),
        )
        return compra

    # -----------------------
    # costos adicionales
    # -----------------------

    def aplicar_costos_adicionales_a_compra(
        self, compra_id: int, metodo: MetodoProrrateo, costos: Iterable[CostoAdicional]
    ) -> Dict[str, Any]:
        """Prorratea el pozo sobre los ítems y recalcula el CAPP (una sola vez)."""
        metodo = MetodoProrrateo(metodo)
        pozo = list(costos)
        with connect(self.db_path) as c:
            compra = self.compras.get(compra_id, conn=c)
            if compra is None:
                raise ErrorBackend(f"Compra {compra_id} no encontrada.")
            if compra["costos_aplicados"]:
                raise ErrorBackend("Los costos adicionales ya fueron aplicados a esta compra.")
            moneda = Moneda(compra["moneda"])
            items = self.compras.items(compra_id, conn=c)
            lineas = [
                LineaProrrateo(
                    id=it["id"],
                    cantidad=it["cantidad"],
                    valor_unitario=costo_en_moneda_base(it["costo_unitario"], moneda, compra["tasa_cambio"]),
                )
                for it in items
            ]
            try:
                asignado = prorratear(pozo, lineas, metodo)
            except AsignacionInvalida as e:
                raise ErrorBackend(str(e)) from e

            if not self.compras.marcar_costos_aplicados(compra_id, metodo.value, conn=c):
                raise ErrorBackend("Los costos adicionales ya fueron aplicados a esta compra.")

            capps: Dict[Any, Decimal] = {}
            for it in items:
                parte = asignado[it["id"]]
                self.compras.set_costo_adicional_item(it["id"], parte, conn=c)
                pid = it["producto_id"]
                prod = self.productos.get(pid, conn=c)
                stock = self.inventario.stock_total(pid, conn=c)
                capp = redondear_moneda(capp_con_costo_adicional(stock, prod["capp"], parte), DECIMALES_CAPP)
                self.productos.set_capp(pid, capp, conn=c)
                capps[pid] = capp
            self.compras.insert_costos(
                compra_id, [{"concepto": x.concepto, "monto": x.monto} for x in pozo], conn=c
            )

        log_database_operation("compra_item", "UPDATE", len(items), compra_id=compra_id, metodo=metodo.value)
        return {"compra_id": compra_id, "metodo": metodo.value, "asignado": asignado, "capp": capps}

    # -----------------------
    # pagos
    # -----------------------

    def registrar_pago_compra(self, compra_id: int, monto: Decimal, metodo_pago: str) -> Dict[str, Any]:
        detalle = self.get_purchase_details(compra_id)
        monto = parse_decimal(monto)
        error = validar_abono(monto, detalle["saldo_pendiente"])
        if error:
            raise ErrorBackend(error)
        self.pagos.insert(compra_id, monto, metodo_pago, date.today().isoformat())
        log_database_operation("pago_compra", "INSERT", 1, compra_id=compra_id, monto=str(monto))
        pagado = detalle["total_pagado"] + monto
        return {
            "compra_id": compra_id,
            "total_pagado": pagado,
            "saldo_pendiente": detalle["total"] - pagado,
            "estado_pago": estado_pago(detalle["total"], pagado),
        }
