"""
Prorrateo de costos adicionales (costo en destino).

Dado un pozo de costos adicionales de una compra (flete, aduana,
manipuleo, seguro...) y los ítems ya registrados de esa compra, reparte
el pozo entre los ítems según la política elegida:

- ``MetodoProrrateo.CANTIDAD``: cada unidad absorbe el mismo costo,
  sin importar su valor.

      parte(i) = pozo * cantidad_i / Σ cantidad

- ``MetodoProrrateo.VALOR`` (recomendado): proporcional al peso
  monetario del ítem; los bienes de mayor valor cuestan más asegurar,
  manipular y transportar.

      parte(i) = pozo * (cantidad_i * valor_i) / Σ (cantidad * valor)

Redondeo: todas las partes salvo la última se calculan con precisión
completa y se truncan a centavos (ROUND_DOWN); el último ítem, en el
orden recibido, absorbe el remanente ``pozo - Σ partes truncadas``.
Así la suma de las partes es exactamente igual al pozo y ninguna parte
queda negativa: una línea de peso cero recibe 0.00 salvo que sea la
última. Los montos del pozo deben venir en centavos.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, Iterable, List, Sequence

from compras.domain.formulas import nuevo_capp, redondear_moneda
from compras.domain.models import CostoAdicional, LineaProrrateo, MetodoProrrateo


class AsignacionInvalida(ValueError):
    """El pozo no puede repartirse sobre las líneas recibidas."""


CENTAVO = Decimal("0.01")


def total_pozo(pozo: Iterable[CostoAdicional]) -> Decimal:
    """Suma de los montos del pozo; rechaza montos negativos o con fracción de centavo."""
    total = Decimal(0)
    for costo in pozo:
        if costo.monto is None or costo.monto < 0:
            raise AsignacionInvalida(f"monto negativo o vacío en '{costo.concepto}'")
        if costo.monto != costo.monto.quantize(CENTAVO):
            raise AsignacionInvalida(f"el monto de '{costo.concepto}' tiene más de 2 decimales")
        total += costo.monto
    return total


def _pesos(lineas: Sequence[LineaProrrateo], metodo: MetodoProrrateo) -> List[Decimal]:
    if metodo is MetodoProrrateo.CANTIDAD:
        return [Decimal(ln.cantidad) for ln in lineas]
    return [ln.valor for ln in lineas]


def prorratear(
    pozo: Iterable[CostoAdicional],
    lineas: Sequence[LineaProrrateo],
    metodo: MetodoProrrateo = MetodoProrrateo.VALOR,
) -> Dict[Any, Decimal]:
    """Reparte el pozo de costos adicionales entre las líneas.

    Args:
        pozo: Costos adicionales (montos no negativos, en centavos).
        lineas: Ítems de la compra; no vacío y con ``cantidad > 0``.
        metodo: Política de reparto.

    Returns:
        Diccionario ``id_linea -> monto asignado`` (en el orden de
        ``lineas``) cuya suma es exactamente el total del pozo.

    Raises:
        AsignacionInvalida: sin líneas, con alguna cantidad <= 0, con
            montos negativos o con más de 2 decimales, o por valor con
            peso total cero y pozo > 0 (en ese caso corresponde
            prorratear por cantidad).
    """
    metodo = MetodoProrrateo(metodo)
    if not lineas:
        raise AsignacionInvalida("no hay líneas sobre las cuales prorratear")
    for ln in lineas:
        if ln.cantidad is None or ln.cantidad <= 0:
            raise AsignacionInvalida(f"la línea {ln.id!r} tiene cantidad <= 0")
    ids = [ln.id for ln in lineas]
    if len(set(ids)) != len(ids):
        raise AsignacionInvalida("hay líneas con id repetido")

    total = total_pozo(pozo)
    pesos = _pesos(lineas, metodo)
    peso_total = sum(pesos, Decimal(0))

    if total == 0:
        return {ln.id: Decimal("0.00") for ln in lineas}
    if peso_total <= 0:
        raise AsignacionInvalida(
            "el valor total de las líneas es cero; prorratee por cantidad"
        )

    asignado: Dict[Any, Decimal] = {}
    acumulado = Decimal(0)
    for ln, peso in zip(lineas[:-1], pesos[:-1]):
        parte = (total * peso / peso_total).quantize(CENTAVO, rounding=ROUND_DOWN)
        asignado[ln.id] = parte
        acumulado += parte
    asignado[lineas[-1].id] = redondear_moneda(total - acumulado)
    return asignado


def valores_unitarios_ajustados(
    lineas: Sequence[LineaProrrateo],
    asignado: Dict[Any, Decimal],
) -> Dict[Any, Decimal]:
    """Nuevo valor unitario de cada línea: ``valor + parte / cantidad``."""
    return {
        ln.id: ln.valor_unitario + asignado.get(ln.id, Decimal(0)) / ln.cantidad
        for ln in lineas
    }


def capp_con_costo_adicional(stock_actual: int, capp_actual: Decimal, monto_asignado: Decimal) -> Decimal:
    """CAPP del producto luego de cargarle un costo adicional.

    Aplica el promedio ponderado sobre el stock ya registrado (que
    incluye las unidades de la compra), con el monto asignado como valor
    entrante sin unidades nuevas:

        CAPP' = (S * CAPP + monto) / S

    Sin stock no hay unidades que absorban el costo y el CAPP no cambia.
    """
    if stock_actual <= 0:
        return capp_actual
    base = nuevo_capp(stock_actual, capp_actual, 0, 0)
    return base + Decimal(monto_asignado) / stock_actual
