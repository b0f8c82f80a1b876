"""
Pruebas del prorrateo de costos adicionales.

Casos de referencia: compra de dos productos (10 u. a 50 y 10 u. a 10)
con un flete de 120.
"""

from decimal import Decimal

import pytest

from compras.domain.models import CostoAdicional, LineaProrrateo, MetodoProrrateo, crear_costo
from compras.domain.prorrateo import (
    AsignacionInvalida,
    capp_con_costo_adicional,
    prorratear,
    total_pozo,
    valores_unitarios_ajustados,
)


@pytest.fixture
def lineas():
    return [
        LineaProrrateo(id="A", cantidad=10, valor_unitario=Decimal("50")),
        LineaProrrateo(id="B", cantidad=10, valor_unitario=Decimal("10")),
    ]


FLETE = [CostoAdicional("Flete", Decimal("120"))]


def test_prorrateo_por_valor(lineas):
    asignado = prorratear(FLETE, lineas, MetodoProrrateo.VALOR)
    assert asignado == {"A": Decimal("100.00"), "B": Decimal("20.00")}


def test_prorrateo_por_cantidad(lineas):
    asignado = prorratear(FLETE, lineas, MetodoProrrateo.CANTIDAD)
    assert asignado == {"A": Decimal("60.00"), "B": Decimal("60.00")}


def test_ultimo_item_absorbe_el_remanente():
    lineas = [LineaProrrateo(id=i, cantidad=1, valor_unitario=Decimal("1")) for i in (1, 2, 3)]
    asignado = prorratear([CostoAdicional("Aduana", Decimal("100"))], lineas, "cantidad")
    assert list(asignado.values()) == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert sum(asignado.values()) == Decimal("100")


def test_varios_conceptos_suman_al_pozo(lineas):
    pozo = [
        CostoAdicional("Flete", Decimal("70.10")),
        CostoAdicional("Seguro", Decimal("12.35")),
        CostoAdicional("Manipuleo", Decimal("0.01")),
    ]
    asignado = prorratear(pozo, lineas, MetodoProrrateo.VALOR)
    assert total_pozo(pozo) == Decimal("82.46")
    assert sum(asignado.values()) == Decimal("82.46")
    assert asignado == {"A": Decimal("68.71"), "B": Decimal("13.75")}


@pytest.mark.parametrize(
    "monto, valores, esperado",
    [
        ("0.01", ["1", "1", "0"], ["0.00", "0.00", "0.01"]),
        ("0.03", ["1", "1", "0.001"], ["0.01", "0.01", "0.01"]),
        ("0.05", ["1", "1", "1"], ["0.01", "0.01", "0.03"]),
    ],
)
def test_remanente_nunca_es_negativo(monto, valores, esperado):
    lineas = [LineaProrrateo(id=i, cantidad=1, valor_unitario=Decimal(v)) for i, v in enumerate(valores)]
    asignado = prorratear([CostoAdicional("Flete", Decimal(monto))], lineas, MetodoProrrateo.VALOR)
    assert list(asignado.values()) == [Decimal(e) for e in esperado]
    assert all(parte >= 0 for parte in asignado.values())
    assert sum(asignado.values()) == Decimal(monto)


def test_linea_sin_peso_antes_del_final_recibe_cero():
    lineas = [
        LineaProrrateo(id="A", cantidad=5, valor_unitario=Decimal("0")),
        LineaProrrateo(id="B", cantidad=2, valor_unitario=Decimal("7")),
    ]
    asignado = prorratear([CostoAdicional("Seguro", Decimal("9.99"))], lineas, MetodoProrrateo.VALOR)
    assert asignado == {"A": Decimal("0.00"), "B": Decimal("9.99")}


def test_pozo_con_fraccion_de_centavo_es_invalido(lineas):
    with pytest.raises(AsignacionInvalida, match="2 decimales"):
        prorratear([CostoAdicional("Flete", Decimal("10.005"))], lineas, MetodoProrrateo.CANTIDAD)
    with pytest.raises(ValueError, match="2 decimales"):
        crear_costo("Flete", Decimal("10.005"))
    assert crear_costo("Flete", "10,50").monto == Decimal("10.50")


def test_pozo_cero_asigna_cero(lineas):
    asignado = prorratear([CostoAdicional("Flete", Decimal("0"))], lineas)
    assert asignado == {"A": Decimal("0.00"), "B": Decimal("0.00")}


def test_valor_cero_exige_prorrateo_por_cantidad():
    lineas = [
        LineaProrrateo(id="A", cantidad=3, valor_unitario=Decimal("0")),
        LineaProrrateo(id="B", cantidad=1, valor_unitario=Decimal("0")),
    ]
    with pytest.raises(AsignacionInvalida, match="cantidad"):
        prorratear(FLETE, lineas, MetodoProrrateo.VALOR)
    asignado = prorratear(FLETE, lineas, MetodoProrrateo.CANTIDAD)
    assert asignado == {"A": Decimal("90.00"), "B": Decimal("30.00")}


@pytest.mark.parametrize(
    "lineas_invalidas",
    [
        [],
        [LineaProrrateo(id="A", cantidad=0, valor_unitario=Decimal("5"))],
        [
            LineaProrrateo(id="A", cantidad=1, valor_unitario=Decimal("5")),
            LineaProrrateo(id="A", cantidad=2, valor_unitario=Decimal("5")),
        ],
    ],
)
def test_lineas_invalidas(lineas_invalidas):
    with pytest.raises(AsignacionInvalida):
        prorratear(FLETE, lineas_invalidas)


def test_monto_negativo_es_invalido(lineas):
    with pytest.raises(ValueError):
        prorratear([CostoAdicional("Descuento", Decimal("-5"))], lineas)


def test_valores_unitarios_ajustados(lineas):
    asignado = prorratear(FLETE, lineas, MetodoProrrateo.VALOR)
    ajustados = valores_unitarios_ajustados(lineas, asignado)
    assert ajustados == {"A": Decimal("60"), "B": Decimal("12")}


def test_capp_con_costo_adicional():
    # 20 u. con CAPP 60 y 100 de flete -> 65
    assert capp_con_costo_adicional(20, Decimal("60"), Decimal("100")) == Decimal("65")
    assert capp_con_costo_adicional(0, Decimal("60"), Decimal("100")) == Decimal("60")
