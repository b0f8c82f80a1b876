"""
Fórmulas de costeo para compras.

Estas funciones implementan los cálculos base del asistente de compras:
conversión a moneda base, costo promedio ponderado (CAPP) y precio de
venta resultante a partir de una regla de ganancia.

Todas las funciones son puras: dependen sólo de sus argumentos y no
modifican estado externo, lo que permite probarlas individualmente.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from compras.adapters.parsers import parse_decimal
from compras.domain.models import Moneda, TipoGanancia


Numero = Union[int, float, str, Decimal]


def redondear_moneda(importe: Numero, decimales: int = 2) -> Decimal:
    """Redondea un importe con HALF_UP (regla financiera habitual)."""
    d = parse_decimal(importe)
    if d is None:
        raise ValueError(f"importe no numérico: {importe!r}")
    return d.quantize(Decimal(1).scaleb(-decimales), rounding=ROUND_HALF_UP)


def costo_en_moneda_base(costo_unitario: Numero, moneda: Moneda, tasa_cambio: Optional[Numero]) -> Decimal:
    """Convierte el costo unitario de la compra a la moneda base (BOB).

    Para compras en USD el costo se multiplica por la tasa de cambio; en
    BOB se devuelve tal cual. Una compra en USD sin tasa válida es un
    error del llamador.
    """
    costo = parse_decimal(costo_unitario) or Decimal(0)
    if Moneda(moneda) is Moneda.USD:
        tasa = parse_decimal(tasa_cambio)
        if tasa is None or tasa <= 0:
            raise ValueError("tasa_cambio debe ser > 0 para compras en USD")
        return costo * tasa
    return costo


def nuevo_capp(
    stock_existente: Numero,
    capp_actual: Numero,
    cantidad_entrante: Numero,
    costo_entrante: Numero,
) -> Decimal:
    """Costo promedio ponderado tras un ingreso de mercadería.

        CAPP' = (S * CAPP + Q * C) / (S + Q)

    Si ``S + Q == 0`` no hay base para ponderar y se devuelve el costo
    entrante ``C``. Todos los importes se esperan en moneda base.
    """
    s = parse_decimal(stock_existente) or Decimal(0)
    capp = parse_decimal(capp_actual) or Decimal(0)
    q = parse_decimal(cantidad_entrante) or Decimal(0)
    c = parse_decimal(costo_entrante) or Decimal(0)
    total = s + q
    if total == 0:
        return c
    return (s * capp + q * c) / total


def precio_resultante(costo: Numero, ganancia: Optional[Numero], tipo: TipoGanancia = TipoGanancia.FIJO) -> Decimal:
    """Precio de venta para una lista a partir del costo y la ganancia.

    - ``FIJO``: ``costo + ganancia``
    - ``PORCENTAJE``: ``costo * (1 + ganancia / 100)``

    Una ganancia vacía cuenta como 0. El resultado se redondea a centavos.
    """
    base = parse_decimal(costo) or Decimal(0)
    g = parse_decimal(ganancia) or Decimal(0)
    if TipoGanancia(tipo) is TipoGanancia.PORCENTAJE:
        precio = base * (1 + g / 100)
    else:
        precio = base + g
    return redondear_moneda(precio)


def ganancia_equivalente(precio: Numero, costo: Numero, tipo_destino: TipoGanancia) -> Optional[Decimal]:
    """Ganancia que, con el nuevo tipo, reproduce el mismo ``precio``.

    Usado al cambiar una regla entre monto fijo y porcentaje. Devuelve
    ``None`` cuando la conversión no es posible (precio <= 0, o costo
    <= 0 al pasar a porcentaje).
    """
    p = parse_decimal(precio)
    c = parse_decimal(costo) or Decimal(0)
    if p is None or p <= 0:
        return None
    if TipoGanancia(tipo_destino) is TipoGanancia.FIJO:
        return redondear_moneda(p - c)
    if c <= 0:
        return None
    return redondear_moneda((p / c - 1) * 100, decimales=1)
