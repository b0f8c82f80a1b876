# compras/usecases/registrar_compra.py
"""
UC: Registrar una COMPRA (asistente de tres pasos y carga por planilla).

Obs.:
- Pasos: INFORMACION (proveedor, sucursal, moneda) -> PRODUCTOS -> PAGO.
- El borrador vive sólo en memoria; si el backend rechaza la compra se
  avisa con su mensaje y el borrador queda intacto para reintentar.
- ``metodo_abono`` sólo se envía (no nulo) cuando hay abono inicial.
"""
from __future__ import annotations

from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, List, Optional

from compras.adapters.planilla_loader import load_compra_from_planilla
from compras.domain.models import BorradorCompra, LineaCompra, TipoGanancia, TipoPago
from compras.domain.policies import validar_borrador, validar_cabecera
from compras.infra.backend import Backend, ErrorBackend, SQLiteBackend
from compras.infra.logger import log_compra, log_file_operation, log_system_event, log_transaction, print_system
from compras.infra.notificaciones import SIN_CARGA, LoadingSink, NotificadorMemoria, NotificationSink
from compras.usecases.editor_linea import EditorLineaCompra


class PasoCompra(IntEnum):
    INFORMACION = 1
    PRODUCTOS = 2
    PAGO = 3


def _num(valor: Optional[Decimal]) -> Optional[str]:
    return None if valor is None else str(valor)


def _ultimo_mensaje(notificador: NotificationSink) -> Optional[str]:
    ultimo = getattr(notificador, "ultimo", None)
    return ultimo[1] if ultimo else None


def construir_payload(borrador: BorradorCompra) -> Dict[str, Any]:
    """Arma el payload ``{"p_compra": ..., "p_items": [...]}`` del backend."""
    compra: Dict[str, Any] = {
        "proveedor_id": borrador.proveedor_id,
        "sucursal_id": borrador.sucursal_id,
        "fecha": borrador.fecha,
        "n_factura": borrador.n_factura,
        "moneda": borrador.moneda.value,
        "tasa_cambio": _num(borrador.tasa_cambio),
        "tipo_pago": borrador.tipo_pago.value,
        "fecha_vencimiento": None,
        "abono_inicial": None,
        "metodo_abono": None,
    }
    if TipoPago(borrador.tipo_pago) is TipoPago.CREDITO:
        compra["fecha_vencimiento"] = borrador.fecha_vencimiento
        compra["abono_inicial"] = str(borrador.abono_inicial or Decimal(0))
        if borrador.abono_inicial and borrador.abono_inicial > 0:
            compra["metodo_abono"] = borrador.metodo_abono.value

    items = []
    for ln in borrador.lineas:
        items.append({
            "producto_id": ln.producto_id,
            "cantidad": ln.cantidad_total,
            "costo_unitario": str(ln.costo_unitario),
            "distribucion": {str(k): v for k, v in ln.distribucion.items() if v > 0},
            "precios": [
                {
                    "lista_id": r.lista_precio_id,
                    "tipo_ganancia": r.tipo_ganancia.value,
                    "ganancia_maxima": _num(r.ganancia_max),
                    "ganancia_minima": _num(r.ganancia_min),
                }
                for r in ln.reglas
                if r.ganancia_max is not None or r.ganancia_min is not None
            ],
        })
    return {"p_compra": compra, "p_items": items}


def run_registrar_compra(
    borrador: BorradorCompra,
    backend: Backend,
    notificador: Optional[NotificationSink] = None,
    carga: LoadingSink = SIN_CARGA,
) -> Optional[int]:
    """Valida y envía el borrador; devuelve el id de la compra o ``None``."""
    notificador = notificador or NotificadorMemoria()
    log_system_event("registrar_compra_start", {"lineas": len(borrador.lineas)})

    errores = validar_borrador(borrador)
    if errores:
        for msg in errores.values():
            notificador.notify(msg, "error")
        log_transaction("registrar_compra", {"errores": errores}, error="borrador inválido")
        return None

    payload = construir_payload(borrador)
    carga.set(True)
    try:
        compra_id = backend.registrar_compra(payload)
    except ErrorBackend as e:
        notificador.notify(f"Error al registrar la compra: {e}", "error")
        log_transaction("registrar_compra", payload, error=str(e))
        log_system_event("registrar_compra_error", {"error": str(e)}, level="error")
        return None
    finally:
        carga.set(False)

    notificador.notify("¡Compra registrada exitosamente!", "success")
    log_transaction("registrar_compra", payload, result={"compra_id": compra_id})
    return compra_id


class AsistenteCompra:
    """Asistente de tres pasos sobre un ``BorradorCompra``."""

    def __init__(
        self,
        backend: Backend,
        borrador: Optional[BorradorCompra] = None,
        notificador: Optional[NotificationSink] = None,
        carga: LoadingSink = SIN_CARGA,
    ):
        self.backend = backend
        self.borrador = borrador or BorradorCompra()
        self.notificador = notificador or NotificadorMemoria()
        self.carga = carga
        self.paso = PasoCompra.INFORMACION

    def siguiente(self) -> bool:
        if self.paso is PasoCompra.INFORMACION:
            errores = validar_cabecera(self.borrador)
            if errores:
                for msg in errores.values():
                    self.notificador.notify(msg, "warning")
                return False
        elif self.paso is PasoCompra.PRODUCTOS:
            if not self.borrador.lineas:
                self.notificador.notify("Debes añadir al menos un producto a la compra.", "warning")
                return False
        else:
            return False
        self.paso = PasoCompra(self.paso + 1)
        return True

    def anterior(self) -> PasoCompra:
        if self.paso > PasoCompra.INFORMACION:
            self.paso = PasoCompra(self.paso - 1)
        return self.paso

    def abrir_producto(self, producto_id: Any) -> Optional[EditorLineaCompra]:
        """Editor para un producto nuevo o para la línea ya cargada."""
        return EditorLineaCompra.abrir(
            self.backend,
            producto_id,
            moneda=self.borrador.moneda,
            tasa_cambio=self.borrador.tasa_cambio,
            sucursal_id=self.borrador.sucursal_id,
            linea=self.borrador.buscar_linea(producto_id),
            notificador=self.notificador,
            carga=self.carga,
        )

    def guardar_linea(self, linea: Optional[LineaCompra]) -> bool:
        if linea is None:
            return False
        self.borrador.guardar_linea(linea)
        log_compra("linea_guardada", linea.producto_id, linea.cantidad_total, linea.costo_unitario)
        return True

    def quitar_linea(self, producto_id: Any) -> bool:
        return self.borrador.quitar_linea(producto_id)

    def registrar(self) -> Optional[int]:
        return run_registrar_compra(self.borrador, self.backend, self.notificador, self.carga)


def run_compra_desde_planilla(
    path: str,
    borrador: BorradorCompra,
    backend: SQLiteBackend,
    notificador: Optional[NotificationSink] = None,
) -> Dict[str, Any]:
    """Lee una planilla de productos y registra la compra completa.

    Cada fila pasa por el editor de línea, así que una fila con costo,
    cantidad o ganancias inválidas frena la compra entera. Los productos
    que no existen se dan de alta con CAPP 0.
    """
    notificador = notificador or NotificadorMemoria()
    log_system_event("compra_planilla_start", {"file_path": path})
    log_file_operation("import", path)

    try:
        filas = load_compra_from_planilla(path)
        log_file_operation("import", path, rows_processed=len(filas))

        rechazadas: List[Dict[str, Any]] = []
        for fila in filas:
            pid = fila["producto_id"]
            if backend.crear_producto_si_no_existe(pid, fila.get("nombre")):
                log_system_event("producto_autocreado", {"producto_id": pid})

            editor = EditorLineaCompra.abrir(
                backend, pid, borrador.moneda, borrador.tasa_cambio, borrador.sucursal_id,
                notificador=notificador,
            )
            if editor is None:
                rechazadas.append({"producto_id": pid, "mensaje": "no se pudo cargar el producto"})
                continue
            editor.distribucion = {}
            for sucursal_id, q in fila["distribucion"].items():
                sucursal_id = sucursal_id or borrador.sucursal_id
                if sucursal_id is None:
                    continue
                editor.set_cantidad_sucursal(sucursal_id, editor.distribucion.get(sucursal_id, 0) + q)
            editor.set_costo_unitario(fila.get("costo_unitario"))

            general = next((r for r in editor.reglas if r.es_predeterminada), None)
            if general is not None:
                if fila.get("tipo_ganancia"):
                    general.tipo_ganancia = TipoGanancia(fila["tipo_ganancia"])
                if fila.get("ganancia_max") is not None:
                    editor.set_ganancia(general.lista_precio_id, "ganancia_max", fila["ganancia_max"])
                if fila.get("ganancia_min") is not None:
                    editor.set_ganancia(general.lista_precio_id, "ganancia_min", fila["ganancia_min"])

            linea = editor.confirmar()
            if linea is None:
                rechazadas.append({"producto_id": pid, "mensaje": _ultimo_mensaje(notificador) or "línea inválida"})
                continue
            borrador.guardar_linea(linea)
            log_compra("batch_prepare", pid, linea.cantidad_total, linea.costo_unitario)

        compra_id = None
        if rechazadas:
            notificador.notify(f"{len(rechazadas)} producto(s) con errores; la compra no se registró.", "error")
        else:
            compra_id = run_registrar_compra(borrador, backend, notificador)

        result = {"archivo": path, "compra_id": compra_id, "lineas": len(borrador.lineas), "errores": rechazadas}
        print_system(f">> Compra desde planilla: {result}")
        log_transaction("compra_planilla", {"file": path, "rows_count": len(filas)}, result=result)
        return result

    except Exception as e:
        log_transaction("compra_planilla", {"file": path}, error=str(e))
        log_system_event("compra_planilla_error", {"file_path": path, "error": str(e)}, level="error")
        raise
