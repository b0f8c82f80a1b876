"""
Costos adicionales sobre una compra de referencia:
P1 10 u. a 50 y P2 10 u. a 10 (BOB), flete de 120.
"""

from decimal import Decimal

import pytest

from compras.domain.models import BorradorCompra, CostoAdicional, MetodoProrrateo, crear_linea, crear_regla
from compras.infra.backend import ErrorBackend
from compras.infra.notificaciones import IndicadorCarga, NotificadorMemoria
from compras.usecases.aplicar_costos import (
    MSG_YA_APLICADOS,
    puede_aplicar_costos,
    run_aplicar_costos,
    vista_previa_costos,
)
from compras.usecases.registrar_compra import run_registrar_compra


FLETE = [CostoAdicional("Flete", Decimal("120"))]


@pytest.fixture
def compra_id(backend):
    b = BorradorCompra(proveedor_id="7", sucursal_id="central")
    for pid, costo in (("P1", "50"), ("P2", "10")):
        b.guardar_linea(crear_linea(pid, costo, {"central": 10},
                                    reglas=[crear_regla(1, "5", "1", es_predeterminada=True)]))
    cid = run_registrar_compra(b, backend)
    assert cid is not None
    return cid


def _por_producto(items, campo):
    return {it["producto_id"]: it[campo] for it in items}


def test_vista_previa_por_valor(backend, compra_id):
    compra = backend.get_purchase_details(compra_id)
    items = vista_previa_costos(compra, FLETE, MetodoProrrateo.VALOR)
    assert _por_producto(items, "asignado") == {"P1": Decimal("100.00"), "P2": Decimal("20.00")}
    assert _por_producto(items, "costo_final") == {"P1": Decimal("60"), "P2": Decimal("12")}


def test_simular_no_modifica_la_compra(backend, compra_id):
    res = run_aplicar_costos(compra_id, FLETE, backend, MetodoProrrateo.CANTIDAD, simular=True)
    assert res["simulado"] is True
    assert res["total"] == Decimal("120")
    assert _por_producto(res["items"], "asignado") == {"P1": Decimal("60.00"), "P2": Decimal("60.00")}
    assert puede_aplicar_costos(backend.get_purchase_details(compra_id)) is True
    assert backend.get_product_details("P1").capp_actual == Decimal("50")


def test_aplicar_por_valor_actualiza_capp(backend, compra_id):
    notif, carga = NotificadorMemoria(), IndicadorCarga()
    res = run_aplicar_costos(compra_id, FLETE, backend, MetodoProrrateo.VALOR, notif, carga)
    assert res is not None
    assert res["capp"] == {"P1": Decimal("60"), "P2": Decimal("12")}
    assert notif.ultimo[0] == "success"
    assert carga.historial == [True, False, True, False]

    compra = backend.get_purchase_details(compra_id)
    assert compra["costos_aplicados"] is True
    assert compra["metodo_prorrateo"] == "valor"
    assert compra["costos"] == [{"concepto": "Flete", "monto": Decimal("120")}]
    assert _por_producto(compra["items"], "costo_adicional") == {"P1": Decimal("100.00"), "P2": Decimal("20.00")}
    assert _por_producto(compra["items"], "costo_final") == {"P1": Decimal("60"), "P2": Decimal("12")}
    assert backend.get_product_details("P1").capp_actual == Decimal("60")


def test_aplicar_por_cantidad(backend, compra_id):
    res = run_aplicar_costos(compra_id, FLETE, backend, "cantidad")
    assert res["capp"] == {"P1": Decimal("56"), "P2": Decimal("16")}


def test_costos_se_aplican_una_sola_vez(backend, compra_id):
    assert run_aplicar_costos(compra_id, FLETE, backend) is not None

    notif = NotificadorMemoria()
    assert run_aplicar_costos(compra_id, FLETE, backend, notificador=notif) is None
    assert notif.ultimo == ("warning", MSG_YA_APLICADOS)
    assert backend.get_product_details("P1").capp_actual == Decimal("60")

    with pytest.raises(ErrorBackend):
        backend.aplicar_costos_adicionales_a_compra(compra_id, MetodoProrrateo.VALOR, FLETE)


def test_monto_invalido_bloquea_el_prorrateo(backend, compra_id):
    notif = NotificadorMemoria()
    res = run_aplicar_costos(compra_id, [CostoAdicional("Descuento", Decimal("-5"))], backend,
                             notificador=notif)
    assert res is None
    nivel, msg = notif.ultimo
    assert nivel == "error"
    assert msg.startswith("No se puede prorratear")
    assert puede_aplicar_costos(backend.get_purchase_details(compra_id)) is True


def test_compra_inexistente(backend):
    notif = NotificadorMemoria()
    assert run_aplicar_costos(99, FLETE, backend, notificador=notif) is None
    assert notif.ultimo == ("error", "Error al cargar la compra: Compra 99 no encontrada.")
