from decimal import Decimal

import pytest

from compras.domain.models import BorradorCompra, MetodoPago, TipoPago, crear_linea, crear_regla
from compras.infra.notificaciones import NotificadorMemoria
from compras.usecases.pagos import run_registrar_pago
from compras.usecases.registrar_compra import run_registrar_compra


def _registrar(backend, **kw):
    b = BorradorCompra(proveedor_id="7", sucursal_id="central", **kw)
    b.guardar_linea(crear_linea("P1", "50", {"central": 10},
                                reglas=[crear_regla(1, "20", "10", es_predeterminada=True)]))
    return run_registrar_compra(b, backend)


@pytest.fixture
def compra_credito(backend):
    return _registrar(backend, tipo_pago=TipoPago.CREDITO, fecha_vencimiento="2026-12-01",
                      abono_inicial=Decimal("100"))


def test_abonos_hasta_saldar(backend, compra_credito):
    res = run_registrar_pago(compra_credito, "150", backend, MetodoPago.QR)
    assert res["saldo_pendiente"] == Decimal("250")
    assert res["estado_pago"] == "Abono Parcial"

    res = run_registrar_pago(compra_credito, "250", backend)
    assert res["saldo_pendiente"] == Decimal("0")
    assert res["estado_pago"] == "Pagada"

    compra = backend.get_purchase_details(compra_credito)
    assert [p["monto"] for p in compra["pagos"]] == [Decimal("100"), Decimal("150"), Decimal("250")]
    assert compra["estado_pago"] == "Pagada"


@pytest.mark.parametrize(
    "monto,mensaje",
    [
        ("400.01", "El abono no puede ser mayor que el saldo pendiente."),
        ("0", "Por favor, introduce un monto válido."),
        ("abc", "Por favor, introduce un monto válido."),
    ],
)
def test_abono_invalido(backend, compra_credito, monto, mensaje):
    notif = NotificadorMemoria()
    assert run_registrar_pago(compra_credito, monto, backend, notificador=notif) is None
    assert notif.ultimo == ("error", mensaje)
    assert backend.get_purchase_details(compra_credito)["saldo_pendiente"] == Decimal("400")


def test_compra_contado_no_admite_abonos(backend):
    compra_id = _registrar(backend)
    notif = NotificadorMemoria()
    assert run_registrar_pago(compra_id, "10", backend, notificador=notif) is None
    assert notif.ultimo[0] == "warning"


def test_compra_inexistente(backend):
    notif = NotificadorMemoria()
    assert run_registrar_pago(99, "10", backend, notificador=notif) is None
    assert notif.ultimo == ("error", "Error al registrar el abono: Compra 99 no encontrada.")


def test_estado_pendiente_sin_abono_inicial(backend):
    compra_id = _registrar(backend, tipo_pago=TipoPago.CREDITO, fecha_vencimiento="2026-12-01")
    compra = backend.get_purchase_details(compra_id)
    assert compra["estado_pago"] == "Pendiente"
    assert compra["pagos"] == []
