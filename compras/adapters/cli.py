# compras/adapters/cli.py
"""
CLI del sistema de compras (Typer).

Comandos principales:
- migrate                       -> aplica migraciones y crea vistas
- params set/get/show           -> gestiona parámetros globales
- lista crear/ver               -> listas de precio
- producto ver <id>             -> CAPP, stock por sucursal y reglas de precio
- compra registrar <planilla>   -> registra una compra desde XLSX/CSV
- compra ver <id>               -> detalle, costos y estado de pago
- compra costos <id>            -> prorratea costos adicionales (una vez)
- compra abonar <id>            -> registra un abono sobre una compra a crédito
- calc capp                     -> calcula el nuevo CAPP sin tocar la base
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Dict, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from compras.adapters.parsers import parse_costo_adicional, parse_decimal
from compras.config import DB_PATH, DEFAULTS
from compras.domain.formulas import nuevo_capp, redondear_moneda
from compras.domain.models import BorradorCompra, MetodoPago, MetodoProrrateo, Moneda, TipoPago, crear_costo
from compras.infra.backend import ErrorBackend, SQLiteBackend
from compras.infra.migrations import apply_migrations
from compras.infra.notificaciones import NotificadorConsola
from compras.infra.repositories import ListaPrecioRepo, ParamsRepo
from compras.infra.views import create_views
from compras.usecases.aplicar_costos import run_aplicar_costos
from compras.usecases.pagos import run_registrar_pago
from compras.usecases.registrar_compra import run_compra_desde_planilla


app = typer.Typer(help="Compras y costo promedio ponderado (CAPP): CLI")
console = Console()

PARAMS = ("tasa_cambio", "moneda_base", "metodo_prorrateo")


# -----------------------
# util
# -----------------------

def _print_json(obj) -> None:
    typer.echo(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def _fmt(val: Any) -> str:
    """Importes con separador de miles '.' y decimal ','."""
    if isinstance(val, Decimal):
        return f"{val:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    if val is None:
        return "-"
    return str(val)


def _backend(db_path: str) -> SQLiteBackend:
    return SQLiteBackend(db_path)


def _display_compra(data: Dict[str, Any]) -> None:
    cab = [
        f"Proveedor: {data.get('proveedor_id')}",
        f"Fecha: {data.get('fecha')}   Factura: {data.get('n_factura') or '-'}",
        f"Moneda: {data.get('moneda')}   Tasa: {data.get('tasa_cambio')}",
        f"Tipo de pago: {data.get('tipo_pago')}   Estado: {data.get('estado_pago')}",
        f"Total: {_fmt(data.get('total'))}   Pagado: {_fmt(data.get('total_pagado'))}"
        f"   Saldo: {_fmt(data.get('saldo_pendiente'))}",
    ]
    if data.get("costos_aplicados"):
        cab.append(f"Costos adicionales aplicados ({data.get('metodo_prorrateo')})")
    console.print(Panel("\n".join(cab), title=f"Compra #{data.get('id')}"))

    table = Table(title="Productos", box=box.ROUNDED)
    for col in ("producto", "cantidad", "costo base", "adicional", "costo final"):
        table.add_column(col, justify="left" if col == "producto" else "right")
    for it in data.get("items", []):
        table.add_row(
            f"{it['producto_id']} - {it.get('producto_nombre') or ''}",
            str(it["cantidad"]),
            _fmt(it["costo_base"]),
            _fmt(it["costo_adicional"]),
            _fmt(redondear_moneda(it["costo_final"])),
        )
    console.print(table)

    if data.get("pagos"):
        pagos = Table(title="Pagos", box=box.ROUNDED)
        pagos.add_column("fecha")
        pagos.add_column("monto", justify="right")
        pagos.add_column("método")
        for p in data["pagos"]:
            pagos.add_row(str(p.get("fecha") or "-"), _fmt(p["monto"]), str(p.get("metodo_pago") or "-"))
        console.print(pagos)


def _display_reparto(res: Dict[str, Any]) -> None:
    titulo = "Vista previa del prorrateo" if res["simulado"] else "Prorrateo aplicado"
    table = Table(title=f"{titulo} ({res['metodo']})", box=box.ROUNDED)
    for col in ("producto", "cantidad", "costo base", "asignado", "costo final"):
        table.add_column(col, justify="left" if col == "producto" else "right")
    for it in res["items"]:
        table.add_row(
            str(it["producto_id"]),
            str(it["cantidad"]),
            _fmt(it["costo_base"]),
            _fmt(it["asignado"]),
            _fmt(redondear_moneda(it["costo_final"])),
        )
    console.print(table)
    console.print(f"[dim]Total del pozo: {_fmt(res['total'])}[/dim]")


# -----------------------
# comandos de infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite")):
    """Aplica migraciones y recrea las vistas auxiliares."""
    apply_migrations(db_path)
    create_views(db_path)
    typer.echo(f">> Migraciones aplicadas y vistas creadas en: {db_path}")


params_app = typer.Typer(help="Gestionar parámetros globales (moneda, tasa de cambio, prorrateo).")
app.add_typer(params_app, name="params")


@params_app.command("set")
def cmd_params_set(
    tasa_cambio: Optional[str] = typer.Option(None, help="BOB por USD (ej.: 6.96)"),
    moneda_base: Optional[Moneda] = typer.Option(None, help="BOB | USD"),
    metodo_prorrateo: Optional[MetodoProrrateo] = typer.Option(None, help="valor | cantidad"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite"),
):
    """Define parámetros globales (sólo se cambian los informados)."""
    items: List[tuple] = []
    if tasa_cambio is not None:
        tasa = parse_decimal(tasa_cambio)
        if tasa is None or tasa <= 0:
            typer.echo("La tasa de cambio debe ser un número > 0.")
            raise typer.Exit(code=1)
        items.append(("tasa_cambio", str(tasa)))
    if moneda_base is not None:
        items.append(("moneda_base", moneda_base.value))
    if metodo_prorrateo is not None:
        items.append(("metodo_prorrateo", metodo_prorrateo.value))
    if not items:
        typer.echo("Nada que cambiar. Indique al menos un parámetro.")
        raise typer.Exit(code=1)
    ParamsRepo(db_path).set_many(items)
    typer.echo(">> Parámetros actualizados.")


@params_app.command("get")
def cmd_params_get(
    clave: str = typer.Argument(..., help="tasa_cambio | moneda_base | metodo_prorrateo"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite"),
):
    """Muestra un parámetro."""
    val = ParamsRepo(db_path).get(clave)
    typer.echo("(None)" if val is None else val)


@params_app.command("show")
def cmd_params_show(db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite")):
    """Muestra los parámetros efectivos (con los valores por defecto)."""
    repo = ParamsRepo(db_path)
    defaults = {k: getattr(DEFAULTS, k) for k in PARAMS}
    out = {k: repo.get(k, str(v)) for k, v in defaults.items()}
    out["_defaults"] = defaults
    out["_db"] = db_path
    _print_json(out)


# -----------------------
# listas de precio
# -----------------------

lista_app = typer.Typer(help="Listas de precio.")
app.add_typer(lista_app, name="lista")


@lista_app.command("crear")
def cmd_lista_crear(
    nombre: str = typer.Argument(..., help="Nombre de la lista (ej.: Mayorista)"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite"),
):
    """Crea una lista de precio adicional."""
    lista_id = ListaPrecioRepo(db_path).crear(nombre)
    typer.echo(f">> Lista '{nombre}' creada con id {lista_id}.")


@lista_app.command("ver")
def cmd_lista_ver(db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite")):
    """Muestra las listas de precio."""
    table = Table(title="Listas de precio", box=box.ROUNDED)
    table.add_column("id", justify="right")
    table.add_column("nombre")
    table.add_column("predeterminada")
    for lista in ListaPrecioRepo(db_path).get_all():
        table.add_row(str(lista["id"]), lista["nombre"], "sí" if lista["es_predeterminada"] else "")
    console.print(table)


# -----------------------
# productos
# -----------------------

producto_app = typer.Typer(help="Consultar productos.")
app.add_typer(producto_app, name="producto")


@producto_app.command("ver")
def cmd_producto_ver(
    producto_id: str = typer.Argument(..., help="Código del producto"),
    as_json: bool = typer.Option(False, "--json", help="Salida en JSON"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite"),
):
    """CAPP, stock por sucursal y reglas de precio del producto."""
    try:
        det = _backend(db_path).get_product_details(producto_id)
    except ErrorBackend as e:
        typer.echo(str(e))
        raise typer.Exit(code=1)
    if as_json:
        _print_json({
            "producto_id": det.producto_id,
            "nombre": det.nombre,
            "capp": det.capp_actual,
            "stock_total": det.stock_total,
            "stock_por_sucursal": det.stock_por_sucursal,
            "reglas": [
                {
                    "lista_precio_id": r.lista_precio_id,
                    "nombre": r.nombre,
                    "tipo_ganancia": r.tipo_ganancia.value,
                    "ganancia_max": r.ganancia_max,
                    "ganancia_min": r.ganancia_min,
                }
                for r in det.reglas
            ],
        })
        return
    console.print(Panel(
        f"CAPP: {det.capp_actual}\nStock total: {det.stock_total}",
        title=f"{det.producto_id} - {det.nombre or ''}",
    ))
    table = Table(title="Reglas de precio", box=box.ROUNDED)
    for col in ("lista", "tipo", "ganancia máx.", "ganancia mín."):
        table.add_column(col)
    for r in det.reglas:
        table.add_row(r.nombre or str(r.lista_precio_id), r.tipo_ganancia.value,
                      _fmt(r.ganancia_max), _fmt(r.ganancia_min))
    console.print(table)


# -----------------------
# compras
# -----------------------

compra_app = typer.Typer(help="Registrar y consultar compras.")
app.add_typer(compra_app, name="compra")


@compra_app.command("registrar")
def cmd_compra_registrar(
    path: str = typer.Argument(..., help="Planilla XLSX/CSV con los productos"),
    proveedor: str = typer.Option(..., "--proveedor", help="Id del proveedor"),
    sucursal: Optional[str] = typer.Option(None, "--sucursal", help="Sucursal por defecto"),
    moneda: Moneda = typer.Option(Moneda.BOB, "--moneda", help="BOB | USD"),
    tasa: Optional[str] = typer.Option(None, "--tasa", help="Tasa de cambio (USD)"),
    fecha: Optional[str] = typer.Option(None, "--fecha", help="YYYY-MM-DD (por defecto hoy)"),
    factura: str = typer.Option("", "--factura", help="Número de factura"),
    tipo_pago: TipoPago = typer.Option(TipoPago.CONTADO, "--tipo-pago", help="Contado | Crédito"),
    fecha_vencimiento: Optional[str] = typer.Option(None, "--fecha-vencimiento", help="YYYY-MM-DD (crédito)"),
    abono: str = typer.Option("0", "--abono", help="Abono inicial (crédito)"),
    metodo_abono: MetodoPago = typer.Option(MetodoPago.EFECTIVO, "--metodo-abono"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite"),
):
    """Registra una compra a partir de una planilla de productos."""
    abono_inicial = parse_decimal(abono)
    if abono_inicial is None:
        typer.echo(f"Abono inicial inválido: {abono!r}")
        raise typer.Exit(code=1)
    tasa_cambio = parse_decimal(tasa) if tasa is not None else ParamsRepo(db_path).get_decimal(
        "tasa_cambio", DEFAULTS.tasa_cambio
    )
    borrador = BorradorCompra(
        proveedor_id=proveedor,
        sucursal_id=sucursal,
        fecha=fecha,
        n_factura=factura,
        moneda=moneda,
        tasa_cambio=tasa_cambio,
        tipo_pago=tipo_pago,
        fecha_vencimiento=fecha_vencimiento,
        abono_inicial=abono_inicial,
        metodo_abono=metodo_abono,
    )
    notificador = NotificadorConsola(console)
    res = run_compra_desde_planilla(path, borrador, _backend(db_path), notificador)
    if res["errores"]:
        table = Table(title="Productos con errores")
        table.add_column("Producto")
        table.add_column("Error")
        for err in res["errores"]:
            table.add_row(str(err["producto_id"]), err["mensaje"])
        console.print(table)
    if res["compra_id"] is None:
        raise typer.Exit(code=1)
    typer.echo(f">> Compra #{res['compra_id']} registrada con {res['lineas']} producto(s).")


@compra_app.command("ver")
def cmd_compra_ver(
    compra_id: int = typer.Argument(..., help="Id de la compra"),
    as_json: bool = typer.Option(False, "--json", help="Salida en JSON"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite"),
):
    """Detalle de la compra con costos adicionales y pagos."""
    try:
        data = _backend(db_path).get_purchase_details(compra_id)
    except ErrorBackend as e:
        typer.echo(str(e))
        raise typer.Exit(code=1)
    if as_json:
        _print_json(data)
    else:
        _display_compra(data)


@compra_app.command("costos")
def cmd_compra_costos(
    compra_id: int = typer.Argument(..., help="Id de la compra"),
    costo: List[str] = typer.Option(..., "--costo", help='Costo adicional "Concepto=Monto" (repetible)'),
    metodo: Optional[MetodoProrrateo] = typer.Option(None, "--metodo", help="valor | cantidad"),
    simular: bool = typer.Option(False, "--simular", help="Sólo muestra el reparto"),
    as_json: bool = typer.Option(False, "--json", help="Salida en JSON"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite"),
):
    """Prorratea costos adicionales entre los productos de la compra."""
    costos = []
    for txt in costo:
        concepto, monto = parse_costo_adicional(txt)
        try:
            costos.append(crear_costo(concepto, monto))
        except ValueError as e:
            typer.echo(f"Costo inválido '{txt}': {e}")
            raise typer.Exit(code=1)
    if metodo is None:
        metodo = MetodoProrrateo(ParamsRepo(db_path).get("metodo_prorrateo", DEFAULTS.metodo_prorrateo))

    res = run_aplicar_costos(
        compra_id, costos, _backend(db_path), metodo,
        notificador=NotificadorConsola(console), simular=simular,
    )
    if res is None:
        raise typer.Exit(code=1)
    if as_json:
        _print_json(res)
    else:
        _display_reparto(res)


@compra_app.command("abonar")
def cmd_compra_abonar(
    compra_id: int = typer.Argument(..., help="Id de la compra"),
    monto: str = typer.Option(..., "--monto", help="Monto del abono"),
    metodo: MetodoPago = typer.Option(MetodoPago.EFECTIVO, "--metodo"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Ruta del SQLite"),
):
    """Registra un abono sobre una compra a crédito."""
    res = run_registrar_pago(compra_id, monto, _backend(db_path), metodo, notificador=NotificadorConsola(console))
    if res is None:
        raise typer.Exit(code=1)
    typer.echo(f">> Saldo pendiente: {_fmt(res['saldo_pendiente'])} ({res['estado_pago']})")


# -----------------------
# cálculos
# -----------------------

calc_app = typer.Typer(help="Cálculos sin acceso a la base.")
app.add_typer(calc_app, name="calc")


@calc_app.command("capp")
def cmd_calc_capp(
    stock: int = typer.Option(..., "--stock", help="Stock existente"),
    capp: str = typer.Option(..., "--capp", help="CAPP actual"),
    cantidad: int = typer.Option(..., "--cantidad", help="Cantidad entrante"),
    costo: str = typer.Option(..., "--costo", help="Costo unitario entrante (moneda base)"),
):
    """Nuevo costo promedio ponderado luego de una compra."""
    resultado = nuevo_capp(stock, capp, cantidad, costo)
    typer.echo(str(redondear_moneda(resultado, 4)))


# Entry point opcional:
def main():
    app()


if __name__ == "__main__":
    main()
