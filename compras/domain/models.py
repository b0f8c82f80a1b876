# compras/domain/models.py
"""
Modelos (dataclasses) del dominio de compras.

Observación importante:
- Los repositorios trabajan con diccionarios; las dataclasses describen
  los registros que circulan entre el editor de líneas, el validador de
  reglas de precio y el motor de prorrateo.
- Las funciones ``crear_*`` validan los campos obligatorios al construir
  el registro; los constructores directos no validan.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from compras.adapters.parsers import parse_cantidad, parse_decimal


class Moneda(str, Enum):
    BOB = "BOB"
    USD = "USD"


class TipoPago(str, Enum):
    CONTADO = "Contado"
    CREDITO = "Crédito"


class MetodoPago(str, Enum):
    EFECTIVO = "Efectivo"
    QR = "QR"
    TARJETA = "Tarjeta"


class TipoGanancia(str, Enum):
    FIJO = "fijo"
    PORCENTAJE = "porcentaje"


class MetodoProrrateo(str, Enum):
    """Política para repartir un pozo de costos adicionales."""
    VALOR = "valor"        # proporcional a cantidad * valor unitario (recomendado)
    CANTIDAD = "cantidad"  # mismo costo por unidad


@dataclass
class ReglaPrecio:
    """Regla de ganancia de un producto para una lista de precios."""
    lista_precio_id: Any
    nombre: Optional[str] = None
    es_predeterminada: bool = False
    ganancia_max: Optional[Decimal] = None   # None = vacío o no numérico
    ganancia_min: Optional[Decimal] = None
    tipo_ganancia: TipoGanancia = TipoGanancia.FIJO


@dataclass
class LineaCompra:
    """Producto comprado con su distribución por sucursal y reglas de precio."""
    producto_id: Any
    costo_unitario: Decimal                                  # en la moneda de la compra
    distribucion: Dict[Any, int] = field(default_factory=dict)  # sucursal_id -> cantidad
    reglas: List[ReglaPrecio] = field(default_factory=list)
    nombre: Optional[str] = None

    @property
    def cantidad_total(self) -> int:
        return sum(self.distribucion.values())

    @property
    def subtotal(self) -> Decimal:
        return self.cantidad_total * self.costo_unitario


@dataclass
class BorradorCompra:
    """Compra en edición (cabecera + líneas), aún no registrada."""
    proveedor_id: Any = None
    sucursal_id: Any = None
    fecha: Optional[str] = None
    n_factura: str = ""
    moneda: Moneda = Moneda.BOB
    tasa_cambio: Optional[Decimal] = Decimal("6.96")
    tipo_pago: TipoPago = TipoPago.CONTADO
    fecha_vencimiento: Optional[str] = None
    abono_inicial: Decimal = Decimal(0)
    metodo_abono: MetodoPago = MetodoPago.EFECTIVO
    lineas: List[LineaCompra] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((ln.subtotal for ln in self.lineas), Decimal(0))

    def productos_agregados(self) -> set:
        return {ln.producto_id for ln in self.lineas}

    def guardar_linea(self, linea: LineaCompra) -> None:
        """Agrega la línea o reemplaza la del mismo producto."""
        for i, actual in enumerate(self.lineas):
            if actual.producto_id == linea.producto_id:
                self.lineas[i] = linea
                return
        self.lineas.append(linea)

    def quitar_linea(self, producto_id: Any) -> bool:
        antes = len(self.lineas)
        self.lineas = [ln for ln in self.lineas if ln.producto_id != producto_id]
        return len(self.lineas) != antes

    def buscar_linea(self, producto_id: Any) -> Optional[LineaCompra]:
        for ln in self.lineas:
            if ln.producto_id == producto_id:
                return ln
        return None


@dataclass
class CostoAdicional:
    """Costo incidental de la compra (flete, aduana, manipuleo...)."""
    concepto: str
    monto: Decimal


@dataclass
class LineaProrrateo:
    """Ítem ya registrado sobre el cual se reparte el pozo de costos."""
    id: Any
    cantidad: int
    valor_unitario: Decimal

    @property
    def valor(self) -> Decimal:
        return self.cantidad * self.valor_unitario


@dataclass
class DetalleProducto:
    """Datos del producto que entrega el backend (``get_product_details``)."""
    producto_id: Any
    nombre: Optional[str] = None
    capp_actual: Decimal = Decimal(0)
    stock_por_sucursal: Dict[Any, int] = field(default_factory=dict)
    reglas: List[ReglaPrecio] = field(default_factory=list)

    @property
    def stock_total(self) -> int:
        return sum(self.stock_por_sucursal.values())


# -------------------------
# Fábricas con validación
# -------------------------

def _requerido(valor: Any, nombre: str) -> Any:
    if valor is None or (isinstance(valor, str) and not valor.strip()):
        raise ValueError(f"{nombre} es obligatorio")
    return valor


def crear_regla(
    lista_precio_id: Any,
    ganancia_max: Any = None,
    ganancia_min: Any = None,
    es_predeterminada: Any = False,
    tipo_ganancia: Any = TipoGanancia.FIJO,
    nombre: Optional[str] = None,
) -> ReglaPrecio:
    """Construye una ``ReglaPrecio`` a partir de valores crudos de formulario.

    Las ganancias vacías o no numéricas quedan en ``None``; decidir si
    eso es un error le corresponde a ``validar_reglas_precio``.
    """
    _requerido(lista_precio_id, "lista_precio_id")
    return ReglaPrecio(
        lista_precio_id=lista_precio_id,
        nombre=nombre,
        es_predeterminada=bool(es_predeterminada),
        ganancia_max=parse_decimal(ganancia_max),
        ganancia_min=parse_decimal(ganancia_min),
        tipo_ganancia=TipoGanancia(tipo_ganancia or TipoGanancia.FIJO),
    )


def crear_linea(
    producto_id: Any,
    costo_unitario: Any,
    distribucion: Dict[Any, Any],
    reglas: Optional[List[ReglaPrecio]] = None,
    nombre: Optional[str] = None,
) -> LineaCompra:
    """Construye una ``LineaCompra`` lista para el borrador.

    Raises:
        ValueError: si falta el producto, el costo no es > 0 o la
            cantidad total no es > 0.
    """
    _requerido(producto_id, "producto_id")
    costo = parse_decimal(costo_unitario)
    if costo is None or costo <= 0:
        raise ValueError("costo_unitario debe ser > 0")
    dist = {suc: parse_cantidad(q) for suc, q in (distribucion or {}).items()}
    if sum(dist.values()) <= 0:
        raise ValueError("la cantidad total debe ser > 0")
    return LineaCompra(
        producto_id=producto_id,
        costo_unitario=costo,
        distribucion=dist,
        reglas=list(reglas or []),
        nombre=nombre,
    )


def crear_costo(concepto: Any, monto: Any) -> CostoAdicional:
    """Construye un ``CostoAdicional``; el monto debe ser numérico, >= 0 y en centavos."""
    _requerido(concepto, "concepto")
    m = parse_decimal(monto)
    if m is None or m < 0:
        raise ValueError(f"monto inválido para '{concepto}': {monto!r}")
    if m != m.quantize(Decimal("0.01")):
        raise ValueError(f"el monto de '{concepto}' tiene más de 2 decimales: {monto!r}")
    return CostoAdicional(concepto=str(concepto).strip(), monto=m)
