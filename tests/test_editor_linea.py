"""
Pruebas del editor de líneas (Inventario -> Precios -> Confirmada).

Producto de referencia: CAPP 50 con 10 unidades en stock (6 en central,
4 en norte); listas General (predeterminada) y Mayorista.
"""

from decimal import Decimal

import pytest

from compras.domain.models import DetalleProducto, Moneda, TipoGanancia, crear_linea, crear_regla
from compras.domain.policies import MSG_MAYOR_A_CERO, MSG_REQUERIDO
from compras.infra.backend import ErrorBackend
from compras.infra.notificaciones import IndicadorCarga, NotificadorMemoria
from compras.usecases.editor_linea import EditorLineaCompra, Etapa


class BackendFalso:
    def __init__(self, detalles=None):
        self.detalles = detalles or {}

    def get_product_details(self, producto_id):
        if producto_id not in self.detalles:
            raise ErrorBackend(f"Producto {producto_id} no encontrado.")
        return self.detalles[producto_id]


def _detalle(**kw):
    base = dict(
        producto_id="P1",
        nombre="Arroz 1kg",
        capp_actual=Decimal("50"),
        stock_por_sucursal={"central": 6, "norte": 4},
        reglas=[
            crear_regla(1, es_predeterminada=True, nombre="General"),
            crear_regla(2, nombre="Mayorista"),
        ],
    )
    base.update(kw)
    return DetalleProducto(**base)


@pytest.fixture
def notif():
    return NotificadorMemoria()


@pytest.fixture
def editor(notif):
    return EditorLineaCompra(_detalle(), sucursal_id="central", notificador=notif)


def _completar_inventario(ed):
    ed.set_cantidad_sucursal("central", 10)
    ed.set_costo_unitario("70")


def test_abrir_carga_detalle_y_apaga_indicador(notif):
    carga = IndicadorCarga()
    ed = EditorLineaCompra.abrir(BackendFalso({"P1": _detalle()}), "P1", sucursal_id="central",
                                 notificador=notif, carga=carga)
    assert ed is not None
    assert ed.etapa is Etapa.INVENTARIO
    assert ed.distribucion == {"central": 1}
    assert carga.historial == [True, False]
    assert carga.activo is False


def test_abrir_falla_notifica_error(notif):
    carga = IndicadorCarga()
    ed = EditorLineaCompra.abrir(BackendFalso(), "X9", notificador=notif, carga=carga)
    assert ed is None
    assert notif.ultimo == ("error", "Error al cargar detalles: Producto X9 no encontrado.")
    assert carga.historial == [True, False]


def test_previsualizacion_de_stock_y_capp(editor):
    _completar_inventario(editor)
    assert editor.cantidad_total == 10
    assert editor.stock_sucursal_actual == 6
    assert editor.nuevo_stock_sucursal == 16
    assert editor.nuevo_stock_total == 20
    # (10*50 + 10*70) / 20
    assert editor.nuevo_capp == Decimal("60")


def test_cantidad_negativa_se_recorta(editor):
    assert editor.set_cantidad_sucursal("norte", -3) == 0
    assert editor.set_cantidad_sucursal("norte", "abc") == 0
    assert editor.distribucion["norte"] == 0


def test_costo_invalido_marca_error(editor):
    assert editor.set_costo_unitario("0") is False
    assert editor.errores["costo_unitario"] == MSG_MAYOR_A_CERO
    assert editor.set_costo_unitario("12,5") is True
    assert "costo_unitario" not in editor.errores
    assert editor.costo_unitario == Decimal("12.5")


def test_no_avanza_sin_costo(editor, notif):
    assert editor.avanzar() is False
    assert editor.etapa is Etapa.INVENTARIO
    assert editor.errores == {"costo_unitario": MSG_MAYOR_A_CERO}
    assert notif.por_nivel("warning")


def test_no_avanza_sin_cantidad(editor):
    editor.set_costo_unitario("10")
    editor.set_cantidad_sucursal("central", 0)
    assert editor.avanzar() is False
    assert editor.errores == {"cantidad": MSG_MAYOR_A_CERO}


def test_confirmar_exige_reglas_validas(editor, notif):
    _completar_inventario(editor)
    assert editor.avanzar() is True
    assert editor.etapa is Etapa.PRECIOS

    assert editor.confirmar() is None
    assert editor.etapa is Etapa.PRECIOS
    nivel, msg = notif.ultimo
    assert nivel == "error"
    assert "General" in msg

    assert editor.set_ganancia(1, "ganancia_max", "20") == {"ganancia_min": MSG_REQUERIDO}
    assert editor.set_ganancia(1, "ganancia_min", "10") == {}
    assert editor.precios[1] == Decimal("80.00")

    # Mayorista con máximo y sin mínimo tampoco pasa
    editor.set_ganancia(2, "ganancia_max", "15")
    assert editor.confirmar() is None
    assert editor.validacion_precios.errores == {2: {"ganancia_min": MSG_REQUERIDO}}

    editor.set_ganancia(2, "ganancia_min", "5")
    linea = editor.confirmar()
    assert linea is not None
    assert editor.etapa is Etapa.CONFIRMADA
    assert linea.producto_id == "P1"
    assert linea.cantidad_total == 10
    assert linea.costo_unitario == Decimal("70")
    assert [r.ganancia_max for r in linea.reglas] == [Decimal("20"), Decimal("15")]


def test_confirmar_desde_inventario_pasa_ambos_controles(editor):
    editor.set_ganancia(1, "ganancia_max", "20")
    editor.set_ganancia(1, "ganancia_min", "10")
    assert editor.confirmar() is None
    assert editor.etapa is Etapa.INVENTARIO
    _completar_inventario(editor)
    assert editor.confirmar() is not None


def test_set_ganancia_campo_desconocido(editor):
    with pytest.raises(ValueError):
        editor.set_ganancia(1, "ganancia", "5")
    with pytest.raises(KeyError):
        editor.set_ganancia(99, "ganancia_max", "5")


def test_precios_se_recalculan_con_el_costo(editor):
    _completar_inventario(editor)
    editor.set_ganancia(1, "ganancia_max", "20")
    assert editor.precios[1] == Decimal("80.00")
    editor.set_costo_unitario("90")
    # (500 + 900) / 20 = 70
    assert editor.precios[1] == Decimal("90.00")


def test_cambio_de_tipo_conserva_el_precio(editor):
    _completar_inventario(editor)
    editor.set_ganancia(1, "ganancia_max", "20")
    editor.set_ganancia(1, "ganancia_min", "10")

    regla = editor.set_tipo_ganancia(1, TipoGanancia.PORCENTAJE)
    assert regla.tipo_ganancia is TipoGanancia.PORCENTAJE
    assert regla.ganancia_max == Decimal("33.3")
    assert regla.ganancia_min == Decimal("16.7")
    assert editor.precios[1] == Decimal("79.98")

    regla = editor.set_tipo_ganancia(1, "fijo")
    assert regla.ganancia_max == Decimal("19.98")


def test_cambio_a_porcentaje_sin_costo_vacia_la_ganancia():
    ed = EditorLineaCompra(_detalle(capp_actual=Decimal("0"), stock_por_sucursal={}), sucursal_id="central")
    ed.set_ganancia(1, "ganancia_max", "20")
    regla = ed.set_tipo_ganancia(1, TipoGanancia.PORCENTAJE)
    assert regla.ganancia_max is None


def test_retroceder_no_descarta_datos(editor):
    _completar_inventario(editor)
    editor.set_ganancia(1, "ganancia_max", "20")
    editor.set_ganancia(1, "ganancia_min", "10")
    assert editor.confirmar() is not None

    assert editor.retroceder() is Etapa.PRECIOS
    assert editor.linea_confirmada is None
    assert editor.retroceder() is Etapa.INVENTARIO
    assert editor.retroceder() is Etapa.INVENTARIO
    assert editor.cantidad_total == 10
    assert editor.regla(1).ganancia_max == Decimal("20")


def test_compra_en_usd_convierte_el_costo():
    ed = EditorLineaCompra(_detalle(stock_por_sucursal={}, capp_actual=Decimal("0")),
                           moneda=Moneda.USD, tasa_cambio="6.96", sucursal_id="central")
    ed.set_costo_unitario("10")
    assert ed.costo_moneda_base == Decimal("69.60")
    assert ed.nuevo_capp == Decimal("69.60")


def test_compra_en_usd_sin_tasa():
    with pytest.raises(ValueError):
        EditorLineaCompra(_detalle(), moneda=Moneda.USD, tasa_cambio=None)


def test_editar_linea_existente_conserva_valores():
    previa = crear_linea("P1", "70", {"central": 4, "norte": 2},
                         reglas=[crear_regla(1, "20", "10", es_predeterminada=True)])
    ed = EditorLineaCompra(_detalle(), sucursal_id="central", linea=previa)
    assert ed.distribucion == {"central": 4, "norte": 2}
    assert ed.costo_unitario == Decimal("70")
    assert ed.regla(1).ganancia_max == Decimal("20")
    # la regla de Mayorista viene del producto
    assert ed.regla(2).ganancia_max is None
    # el editor trabaja sobre copias
    ed.set_ganancia(1, "ganancia_max", "30")
    assert previa.reglas[0].ganancia_max == Decimal("20")
