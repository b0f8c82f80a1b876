# compras/usecases/aplicar_costos.py
"""
UC: Aplicar COSTOS ADICIONALES (flete, aduana...) a una compra registrada.

Obs.:
- La vista previa usa el mismo ``prorratear`` que el backend, así que
  los montos mostrados son los que quedan grabados.
- Una compra sólo admite una aplicación; con la bandera
  ``costos_aplicados`` encendida la acción ya no se ofrece.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from compras.domain.models import CostoAdicional, LineaProrrateo, MetodoProrrateo
from compras.domain.prorrateo import AsignacionInvalida, prorratear, total_pozo, valores_unitarios_ajustados
from compras.infra.backend import Backend, ErrorBackend
from compras.infra.logger import log_costos, log_system_event, log_transaction
from compras.infra.notificaciones import SIN_CARGA, LoadingSink, NotificadorMemoria, NotificationSink


MSG_YA_APLICADOS = "Los costos adicionales ya fueron aplicados a esta compra."


def puede_aplicar_costos(compra: Dict[str, Any]) -> bool:
    return not compra.get("costos_aplicados")


def vista_previa_costos(
    compra: Dict[str, Any],
    costos: Iterable[CostoAdicional],
    metodo: MetodoProrrateo = MetodoProrrateo.VALOR,
) -> List[Dict[str, Any]]:
    """Reparte el pozo sobre los ítems de ``get_purchase_details``.

    Raises:
        AsignacionInvalida: si el reparto no es posible con ``metodo``.
    """
    items = compra["items"]
    lineas = [
        LineaProrrateo(id=it["id"], cantidad=it["cantidad"], valor_unitario=it["costo_base"])
        for it in items
    ]
    asignado = prorratear(costos, lineas, metodo)
    ajustados = valores_unitarios_ajustados(lineas, asignado)
    return [
        {
            "item_id": it["id"],
            "producto_id": it["producto_id"],
            "producto": it.get("producto_nombre"),
            "cantidad": it["cantidad"],
            "costo_base": it["costo_base"],
            "asignado": asignado[it["id"]],
            "costo_final": ajustados[it["id"]],
        }
        for it in items
    ]


def run_aplicar_costos(
    compra_id: int,
    costos: Iterable[CostoAdicional],
    backend: Backend,
    metodo: MetodoProrrateo = MetodoProrrateo.VALOR,
    notificador: Optional[NotificationSink] = None,
    carga: LoadingSink = SIN_CARGA,
    simular: bool = False,
) -> Optional[Dict[str, Any]]:
    """Muestra el reparto y, salvo ``simular``, lo aplica en el backend."""
    notificador = notificador or NotificadorMemoria()
    metodo = MetodoProrrateo(metodo)
    costos = list(costos)
    log_system_event("aplicar_costos_start", {"compra_id": compra_id, "metodo": metodo.value})

    carga.set(True)
    try:
        compra = backend.get_purchase_details(compra_id)
    except ErrorBackend as e:
        notificador.notify(f"Error al cargar la compra: {e}", "error")
        return None
    finally:
        carga.set(False)

    if not puede_aplicar_costos(compra):
        notificador.notify(MSG_YA_APLICADOS, "warning")
        return None

    try:
        total = total_pozo(costos)
        items = vista_previa_costos(compra, costos, metodo)
    except AsignacionInvalida as e:
        notificador.notify(f"No se puede prorratear: {e}", "error")
        log_costos("preview", compra_id, metodo.value, error=str(e))
        return None

    asignado = {it["item_id"]: it["asignado"] for it in items}
    log_costos("preview", compra_id, metodo.value, asignado, total=str(total))
    resultado: Dict[str, Any] = {
        "compra_id": compra_id,
        "metodo": metodo.value,
        "total": total,
        "items": items,
        "simulado": simular,
        "capp": {},
    }
    if simular:
        return resultado

    carga.set(True)
    try:
        aplicado = backend.aplicar_costos_adicionales_a_compra(compra_id, metodo, costos)
    except ErrorBackend as e:
        notificador.notify(f"Error al aplicar costos: {e}", "error")
        log_transaction("aplicar_costos", {"compra_id": compra_id}, error=str(e))
        return None
    finally:
        carga.set(False)

    resultado["capp"] = aplicado.get("capp", {})
    notificador.notify(
        f"Costos adicionales aplicados: {total.quantize(Decimal('0.01'))} prorrateado por {metodo.value}.",
        "success",
    )
    log_costos("apply", compra_id, metodo.value, aplicado.get("asignado"))
    log_transaction("aplicar_costos", {"compra_id": compra_id, "metodo": metodo.value}, result=resultado["capp"])
    return resultado
