# compras/usecases/pagos.py
"""
UC: Registrar ABONOS posteriores sobre compras a crédito.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from compras.adapters.parsers import parse_decimal
from compras.domain.models import MetodoPago, TipoPago
from compras.domain.policies import validar_abono
from compras.infra.backend import Backend, ErrorBackend
from compras.infra.logger import log_system_event, log_transaction
from compras.infra.notificaciones import SIN_CARGA, LoadingSink, NotificadorMemoria, NotificationSink


def run_registrar_pago(
    compra_id: int,
    monto: Any,
    backend: Backend,
    metodo_pago: MetodoPago = MetodoPago.EFECTIVO,
    notificador: Optional[NotificationSink] = None,
    carga: LoadingSink = SIN_CARGA,
) -> Optional[Dict[str, Any]]:
    """Valida el monto contra el saldo pendiente y registra el abono."""
    notificador = notificador or NotificadorMemoria()
    metodo_pago = MetodoPago(metodo_pago)
    valor = parse_decimal(monto)

    carga.set(True)
    try:
        compra = backend.get_purchase_details(compra_id)
        if TipoPago(compra["tipo_pago"]) is not TipoPago.CREDITO:
            notificador.notify("Sólo las compras a crédito admiten abonos.", "warning")
            return None
        error = validar_abono(valor, compra["saldo_pendiente"])
        if error:
            notificador.notify(error, "error")
            return None
        resultado = backend.registrar_pago_compra(compra_id, valor, metodo_pago.value)
    except ErrorBackend as e:
        notificador.notify(f"Error al registrar el abono: {e}", "error")
        log_transaction("registrar_pago", {"compra_id": compra_id, "monto": str(monto)}, error=str(e))
        return None
    finally:
        carga.set(False)

    notificador.notify("¡Abono registrado con éxito!", "success")
    log_transaction("registrar_pago", {"compra_id": compra_id, "monto": str(valor)}, result=resultado)
    log_system_event("pago_registrado", {"compra_id": compra_id, "estado": resultado.get("estado_pago")})
    return resultado
