"""
Políticas de validación del asistente de compras.

Este módulo contiene las reglas que bloquean el avance del asistente:
validación de reglas de ganancia por lista de precios, del paso de
inventario de una línea, del borrador completo antes de registrarlo y
de los abonos posteriores. Todas las funciones son puras y devuelven
los errores como diccionarios ``campo -> mensaje``; nunca lanzan por
un dato inválido del usuario.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from compras.domain.models import BorradorCompra, Moneda, ReglaPrecio, TipoPago


MSG_REQUERIDO = "Requerido"
MSG_EXCEDE_MAXIMO = "No puede exceder el máximo"
MSG_MAYOR_A_CERO = "Debe ser > 0."


@dataclass
class ResultadoValidacion:
    """Resultado de ``validar_reglas_precio``."""
    valido: bool
    errores: Dict[Any, Dict[str, str]] = field(default_factory=dict)


def validar_regla(regla: ReglaPrecio) -> Dict[str, str]:
    """Valida una regla de ganancia y devuelve sus errores por campo.

    Reglas:
        - Lista predeterminada ("General"): ``ganancia_max`` y
          ``ganancia_min`` son obligatorias y numéricas.
        - Otra lista: si se cargó ``ganancia_max`` y falta
          ``ganancia_min``, la mínima pasa a ser obligatoria.
        - Con ambas numéricas, ``ganancia_min <= ganancia_max``.
    """
    errores: Dict[str, str] = {}
    gmax, gmin = regla.ganancia_max, regla.ganancia_min
    if regla.es_predeterminada:
        if gmax is None:
            errores["ganancia_max"] = MSG_REQUERIDO
        if gmin is None:
            errores["ganancia_min"] = MSG_REQUERIDO
    elif gmax is not None and gmin is None:
        errores["ganancia_min"] = MSG_REQUERIDO
    if gmax is not None and gmin is not None and gmin > gmax:
        errores["ganancia_min"] = MSG_EXCEDE_MAXIMO
    return errores


def validar_reglas_precio(reglas: Iterable[ReglaPrecio]) -> ResultadoValidacion:
    """Valida todas las reglas; ``valido`` sólo si ninguna tiene errores."""
    errores: Dict[Any, Dict[str, str]] = {}
    for regla in reglas:
        err = validar_regla(regla)
        if err:
            errores[regla.lista_precio_id] = err
    return ResultadoValidacion(valido=not errores, errores=errores)


def validar_paso_inventario(costo_unitario: Optional[Decimal], cantidad_total: int) -> Dict[str, str]:
    """Condición para pasar de Inventario a Precios en el editor de línea."""
    errores: Dict[str, str] = {}
    if cantidad_total is None or cantidad_total <= 0:
        errores["cantidad"] = MSG_MAYOR_A_CERO
    if costo_unitario is None or costo_unitario <= 0:
        errores["costo_unitario"] = MSG_MAYOR_A_CERO
    return errores


def validar_cabecera(borrador: BorradorCompra) -> Dict[str, str]:
    """Datos mínimos del primer paso (Información)."""
    errores: Dict[str, str] = {}
    if borrador.proveedor_id in (None, ""):
        errores["proveedor_id"] = "Debes seleccionar un proveedor para continuar."
    if Moneda(borrador.moneda) is Moneda.USD and (borrador.tasa_cambio is None or borrador.tasa_cambio <= 0):
        errores["tasa_cambio"] = "La tasa de cambio es obligatoria para compras en USD."
    return errores


def validar_borrador(borrador: BorradorCompra) -> Dict[str, str]:
    """Valida el borrador completo antes de enviarlo a ``registrar_compra``."""
    errores = validar_cabecera(borrador)
    if not borrador.lineas:
        errores["lineas"] = "Debes añadir al menos un producto a la compra."
    else:
        vistos = set()
        for ln in borrador.lineas:
            if ln.producto_id in vistos:
                errores["lineas"] = f"El producto {ln.producto_id} está repetido."
                break
            vistos.add(ln.producto_id)
            if ln.cantidad_total <= 0 or ln.costo_unitario <= 0:
                errores["lineas"] = f"El producto {ln.producto_id} tiene cantidad o costo inválido."
                break
    if TipoPago(borrador.tipo_pago) is TipoPago.CREDITO:
        if not borrador.fecha_vencimiento:
            errores["fecha_vencimiento"] = MSG_REQUERIDO
        abono = borrador.abono_inicial
        if abono is None or abono < 0:
            errores["abono_inicial"] = "El abono inicial no puede ser negativo."
        elif abono > borrador.total:
            errores["abono_inicial"] = "El abono inicial no puede ser mayor que el total."
    return errores


def validar_abono(monto: Optional[Decimal], saldo_pendiente: Decimal) -> Optional[str]:
    """Valida un abono posterior sobre una compra a crédito."""
    if monto is None or monto <= 0:
        return "Por favor, introduce un monto válido."
    if monto > saldo_pendiente:
        return "El abono no puede ser mayor que el saldo pendiente."
    return None
