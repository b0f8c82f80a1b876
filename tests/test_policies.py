from decimal import Decimal

import pytest

from compras.domain.models import BorradorCompra, TipoPago, crear_linea, crear_regla
from compras.domain.policies import (
    MSG_EXCEDE_MAXIMO,
    MSG_MAYOR_A_CERO,
    MSG_REQUERIDO,
    validar_abono,
    validar_borrador,
    validar_cabecera,
    validar_paso_inventario,
    validar_regla,
    validar_reglas_precio,
)


# -----------------------
# reglas de precio
# -----------------------

def test_lista_general_exige_ambas_ganancias():
    regla = crear_regla(1, es_predeterminada=True)
    assert validar_regla(regla) == {"ganancia_max": MSG_REQUERIDO, "ganancia_min": MSG_REQUERIDO}


def test_lista_general_con_texto_no_numerico():
    regla = crear_regla(1, ganancia_max="abc", ganancia_min="5", es_predeterminada=True)
    assert validar_regla(regla) == {"ganancia_max": MSG_REQUERIDO}


def test_lista_general_valida():
    assert validar_regla(crear_regla(1, "20", "10", es_predeterminada=True)) == {}


@pytest.mark.parametrize(
    "gmax,gmin,esperado",
    [
        (None, None, {}),
        ("", "", {}),
        ("15", None, {"ganancia_min": MSG_REQUERIDO}),
        (None, "5", {}),
        ("15", "5", {}),
        ("15", "15", {}),
    ],
)
def test_lista_secundaria(gmax, gmin, esperado):
    assert validar_regla(crear_regla(2, gmax, gmin)) == esperado


@pytest.mark.parametrize("predeterminada", [True, False])
def test_minima_no_puede_exceder_maxima(predeterminada):
    regla = crear_regla(1, "10", "10.01", es_predeterminada=predeterminada)
    assert validar_regla(regla) == {"ganancia_min": MSG_EXCEDE_MAXIMO}


def test_validar_reglas_precio_agrupa_por_lista():
    reglas = [
        crear_regla(1, "20", "10", es_predeterminada=True),
        crear_regla(2, "15", None),
        crear_regla(3),
    ]
    res = validar_reglas_precio(reglas)
    assert res.valido is False
    assert res.errores == {2: {"ganancia_min": MSG_REQUERIDO}}
    assert validar_reglas_precio(reglas[:1]).valido is True
    assert validar_reglas_precio([]).valido is True


# -----------------------
# pasos del asistente
# -----------------------

def test_validar_paso_inventario():
    assert validar_paso_inventario(Decimal("5"), 3) == {}
    assert validar_paso_inventario(None, 0) == {
        "cantidad": MSG_MAYOR_A_CERO,
        "costo_unitario": MSG_MAYOR_A_CERO,
    }
    assert validar_paso_inventario(Decimal("0"), 1) == {"costo_unitario": MSG_MAYOR_A_CERO}


def test_validar_cabecera():
    assert "proveedor_id" in validar_cabecera(BorradorCompra())
    sin_tasa = BorradorCompra(proveedor_id="7", moneda="USD", tasa_cambio=None)
    assert list(validar_cabecera(sin_tasa)) == ["tasa_cambio"]
    assert validar_cabecera(BorradorCompra(proveedor_id="7")) == {}


def _borrador(**kw) -> BorradorCompra:
    b = BorradorCompra(proveedor_id="7", sucursal_id="central", **kw)
    b.guardar_linea(crear_linea("P1", "50", {"central": 10}))
    return b


def test_validar_borrador_sin_lineas():
    errores = validar_borrador(BorradorCompra(proveedor_id="7"))
    assert "lineas" in errores


def test_validar_borrador_contado_valido():
    assert validar_borrador(_borrador()) == {}


def test_validar_borrador_credito():
    b = _borrador(tipo_pago=TipoPago.CREDITO)
    assert validar_borrador(b) == {"fecha_vencimiento": MSG_REQUERIDO}

    b.fecha_vencimiento = "2026-12-01"
    b.abono_inicial = Decimal("500.01")
    assert "abono_inicial" in validar_borrador(b)

    b.abono_inicial = Decimal("-1")
    assert "abono_inicial" in validar_borrador(b)

    b.abono_inicial = Decimal("500")
    assert validar_borrador(b) == {}


def test_validar_abono():
    assert validar_abono(Decimal("100"), Decimal("400")) is None
    assert validar_abono(Decimal("400"), Decimal("400")) is None
    assert validar_abono(Decimal("0"), Decimal("400")) is not None
    assert validar_abono(None, Decimal("400")) is not None
    assert validar_abono(Decimal("400.01"), Decimal("400")) is not None
