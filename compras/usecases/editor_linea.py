# compras/usecases/editor_linea.py
"""
UC: Editar una línea de compra (producto) antes de agregarla al borrador.

Etapas:
1) INVENTARIO: costo unitario y cantidad por sucursal.
2) PRECIOS:    reglas de ganancia por lista de precios.
3) CONFIRMADA: la línea validada queda lista para el borrador.

Obs.:
- Avanzar de INVENTARIO a PRECIOS exige costo > 0 y cantidad total > 0.
- Confirmar exige que ``validar_reglas_precio`` no reporte errores.
- Retroceder siempre está permitido y nunca descarta lo cargado.
- El nuevo CAPP y los precios resultantes se recalculan en cada lectura
  a partir del estado actual; no se guardan en caché.
"""
from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from compras.adapters.parsers import parse_cantidad, parse_decimal
from compras.domain.formulas import costo_en_moneda_base, ganancia_equivalente, nuevo_capp, precio_resultante
from compras.domain.models import DetalleProducto, LineaCompra, Moneda, ReglaPrecio, TipoGanancia, crear_linea
from compras.domain.policies import (
    MSG_MAYOR_A_CERO,
    ResultadoValidacion,
    validar_paso_inventario,
    validar_regla,
    validar_reglas_precio,
)
from compras.infra.backend import Backend, ErrorBackend
from compras.infra.logger import log_compra, log_system_event, log_transaction
from compras.infra.notificaciones import SIN_CARGA, LoadingSink, NotificadorMemoria, NotificationSink


CAMPOS_GANANCIA = ("ganancia_max", "ganancia_min")


class Etapa(str, Enum):
    INVENTARIO = "inventory"
    PRECIOS = "prices"
    CONFIRMADA = "committed"


class EditorLineaCompra:
    """Estado de edición de un producto dentro del asistente de compras."""

    def __init__(
        self,
        detalle: DetalleProducto,
        moneda: Moneda = Moneda.BOB,
        tasa_cambio: Any = None,
        sucursal_id: Any = None,
        linea: Optional[LineaCompra] = None,
        notificador: Optional[NotificationSink] = None,
    ):
        self.detalle = detalle
        self.moneda = Moneda(moneda)
        self.tasa_cambio = parse_decimal(tasa_cambio)
        if self.moneda is Moneda.USD and (self.tasa_cambio is None or self.tasa_cambio <= 0):
            raise ValueError("tasa_cambio debe ser > 0 para compras en USD")
        self.sucursal_id = sucursal_id
        self.notificador = notificador or NotificadorMemoria()

        self.etapa = Etapa.INVENTARIO
        self.errores: Dict[str, str] = {}
        self.linea_confirmada: Optional[LineaCompra] = None

        previas = {r.lista_precio_id: r for r in (linea.reglas if linea else [])}
        self.reglas: List[ReglaPrecio] = [
            replace(previas.get(r.lista_precio_id, r)) for r in detalle.reglas
        ]
        if linea is not None:
            self.costo_unitario: Optional[Decimal] = linea.costo_unitario
            self.distribucion: Dict[Any, int] = dict(linea.distribucion)
        else:
            self.costo_unitario = None
            self.distribucion = {sucursal_id: 1} if sucursal_id is not None else {}

    @classmethod
    def abrir(
        cls,
        backend: Backend,
        producto_id: Any,
        moneda: Moneda = Moneda.BOB,
        tasa_cambio: Any = None,
        sucursal_id: Any = None,
        linea: Optional[LineaCompra] = None,
        notificador: Optional[NotificationSink] = None,
        carga: LoadingSink = SIN_CARGA,
    ) -> Optional["EditorLineaCompra"]:
        """Carga el detalle del producto y abre el editor.

        Si el backend falla se avisa por ``notificador`` y se devuelve
        ``None`` (el borrador no se toca).
        """
        notificador = notificador or NotificadorMemoria()
        carga.set(True)
        try:
            detalle = backend.get_product_details(producto_id)
        except ErrorBackend as e:
            notificador.notify(f"Error al cargar detalles: {e}", "error")
            log_transaction("abrir_linea", {"producto_id": producto_id}, error=str(e))
            return None
        finally:
            carga.set(False)
        return cls(detalle, moneda, tasa_cambio, sucursal_id, linea, notificador)

    # -----------------------
    # inventario
    # -----------------------

    @property
    def producto_id(self) -> Any:
        return self.detalle.producto_id

    def set_costo_unitario(self, valor: Any) -> bool:
        """Guarda el costo; marca error si no es un número > 0."""
        self.costo_unitario = parse_decimal(valor)
        if self.costo_unitario is None or self.costo_unitario <= 0:
            self.errores["costo_unitario"] = MSG_MAYOR_A_CERO
            return False
        self.errores.pop("costo_unitario", None)
        return True

    def set_cantidad_sucursal(self, sucursal_id: Any, cantidad: Any) -> int:
        """Cantidad para una sucursal; negativos y no numéricos valen 0."""
        q = parse_cantidad(cantidad)
        self.distribucion[sucursal_id] = q
        if self.cantidad_total > 0:
            self.errores.pop("cantidad", None)
        return q

    @property
    def cantidad_total(self) -> int:
        return sum(self.distribucion.values())

    @property
    def costo_moneda_base(self) -> Decimal:
        return costo_en_moneda_base(self.costo_unitario or 0, self.moneda, self.tasa_cambio)

    @property
    def nuevo_capp(self) -> Decimal:
        return nuevo_capp(
            self.detalle.stock_total,
            self.detalle.capp_actual,
            self.cantidad_total,
            self.costo_moneda_base,
        )

    @property
    def stock_sucursal_actual(self) -> int:
        return self.detalle.stock_por_sucursal.get(self.sucursal_id, 0)

    @property
    def nuevo_stock_sucursal(self) -> int:
        return self.stock_sucursal_actual + self.distribucion.get(self.sucursal_id, 0)

    @property
    def nuevo_stock_total(self) -> int:
        return self.detalle.stock_total + self.cantidad_total

    # -----------------------
    # precios
    # -----------------------

    def regla(self, lista_precio_id: Any) -> ReglaPrecio:
        for r in self.reglas:
            if r.lista_precio_id == lista_precio_id:
                return r
        raise KeyError(lista_precio_id)

    def recalcular_precios(self, reglas: Optional[List[ReglaPrecio]] = None) -> Dict[Any, Decimal]:
        """Precio resultante por lista con el nuevo CAPP actual."""
        capp = self.nuevo_capp
        return {
            r.lista_precio_id: precio_resultante(capp, r.ganancia_max, r.tipo_ganancia)
            for r in (self.reglas if reglas is None else reglas)
        }

    @property
    def precios(self) -> Dict[Any, Decimal]:
        return self.recalcular_precios()

    def set_ganancia(self, lista_precio_id: Any, campo: str, valor: Any) -> Dict[str, str]:
        """Actualiza una ganancia y devuelve los errores vigentes de esa regla."""
        if campo not in CAMPOS_GANANCIA:
            raise ValueError(f"campo de ganancia desconocido: {campo}")
        regla = self.regla(lista_precio_id)
        setattr(regla, campo, parse_decimal(valor))
        return validar_regla(regla)

    def set_tipo_ganancia(self, lista_precio_id: Any, tipo: Any) -> ReglaPrecio:
        """Cambia entre monto fijo y porcentaje conservando el precio mostrado."""
        regla = self.regla(lista_precio_id)
        tipo = TipoGanancia(tipo)
        if tipo is regla.tipo_ganancia:
            return regla
        capp = self.nuevo_capp
        for campo in CAMPOS_GANANCIA:
            actual = getattr(regla, campo)
            if actual is None:
                continue
            precio = precio_resultante(capp, actual, regla.tipo_ganancia)
            if precio > 0:
                setattr(regla, campo, ganancia_equivalente(precio, capp, tipo))
        regla.tipo_ganancia = tipo
        return regla

    @property
    def validacion_precios(self) -> ResultadoValidacion:
        return validar_reglas_precio(self.reglas)

    # -----------------------
    # transiciones
    # -----------------------

    def avanzar(self) -> bool:
        """INVENTARIO -> PRECIOS (o confirma si ya está en PRECIOS)."""
        if self.etapa is Etapa.PRECIOS:
            return self.confirmar() is not None
        if self.etapa is Etapa.CONFIRMADA:
            return True
        self.errores = validar_paso_inventario(self.costo_unitario, self.cantidad_total)
        if self.errores:
            self.notificador.notify("Revisa la cantidad y el costo unitario antes de continuar.", "warning")
            return False
        self.etapa = Etapa.PRECIOS
        return True

    def retroceder(self) -> Etapa:
        if self.etapa is Etapa.CONFIRMADA:
            self.linea_confirmada = None
            self.etapa = Etapa.PRECIOS
        elif self.etapa is Etapa.PRECIOS:
            self.etapa = Etapa.INVENTARIO
        return self.etapa

    def confirmar(self) -> Optional[LineaCompra]:
        """Valida ambas etapas y devuelve la línea lista para el borrador."""
        if self.etapa is Etapa.CONFIRMADA:
            return self.linea_confirmada
        if self.etapa is Etapa.INVENTARIO and not self.avanzar():
            return None
        # el inventario pudo cambiar luego de avanzar
        self.errores = validar_paso_inventario(self.costo_unitario, self.cantidad_total)
        if self.errores:
            self.etapa = Etapa.INVENTARIO
            self.notificador.notify("Revisa la cantidad y el costo unitario antes de continuar.", "warning")
            return None

        resultado = self.validacion_precios
        if not resultado.valido:
            general = next((r for r in self.reglas if r.es_predeterminada), None)
            if general is not None and general.lista_precio_id in resultado.errores:
                msg = "Para el precio General: debe ingresar ganancias numéricas válidas."
            else:
                msg = f"Revisa las reglas de precio ({len(resultado.errores)} lista(s) con errores)."
            self.notificador.notify(msg, "error")
            log_system_event("linea_rechazada", {"producto_id": self.producto_id, "errores": resultado.errores},
                             level="warning")
            return None

        linea = crear_linea(
            self.producto_id,
            self.costo_unitario,
            {k: v for k, v in self.distribucion.items() if v > 0},
            reglas=[replace(r) for r in self.reglas],
            nombre=self.detalle.nombre,
        )
        self.linea_confirmada = linea
        self.etapa = Etapa.CONFIRMADA
        log_compra("linea_confirmada", linea.producto_id, linea.cantidad_total, linea.costo_unitario,
                   nuevo_capp=str(self.nuevo_capp))
        return linea
