# compras/adapters/planilla_loader.py
"""
Loader de planillas de COMPRA (XLSX o CSV).

Estas funciones:
- leen la planilla usando pandas;
- normalizan encabezados (acentos, variaciones, sinónimos);
- agrupan las filas por producto y devuelven una línea por producto.

Observaciones:
- Varias filas del mismo producto (una por sucursal) se suman en su
  ``distribucion``; costo y ganancias se toman de la primera fila que
  los traiga.
- Las ganancias de la planilla corresponden a la lista predeterminada.
- Filas sin código de producto se ignoran.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from compras.adapters.parsers import parse_cantidad, parse_decimal
from compras.domain.models import TipoGanancia


# ---------------------------
# utilidades de normalización
# ---------------------------

def _slug(s: str) -> str:
    """Normaliza encabezados: minúsculas, sin acentos, sin no-alfanuméricos."""
    if s is None:
        return ""
    s = str(s).strip().lower()
    acentos = dict(zip("áàâäéèêëíìîïóòôöúùûüñ", "aaaaeeeeiiiioooouuuun"))
    s = "".join(acentos.get(ch, ch) for ch in s)
    s = re.sub(r"[^a-z0-9]+", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def _safe_get(row, key):
    """Valor de la fila o None si falta o es NA."""
    val = row.get(key)
    if val is None or pd.isna(val):
        return None
    s = str(val).strip()
    return s or None


ALIASES = {
    "codigo": "producto_id",
    "cod": "producto_id",
    "producto id": "producto_id",
    "id producto": "producto_id",
    "sku": "producto_id",

    "producto": "nombre",
    "nombre": "nombre",
    "descripcion": "nombre",

    "sucursal": "sucursal_id",
    "sucursal id": "sucursal_id",
    "almacen": "sucursal_id",

    "cantidad": "cantidad",
    "cant": "cantidad",
    "qty": "cantidad",

    "costo unitario": "costo_unitario",
    "costo": "costo_unitario",
    "precio compra": "costo_unitario",

    "ganancia": "ganancia_max",
    "ganancia maxima": "ganancia_max",
    "ganancia max": "ganancia_max",
    "ganancia minima": "ganancia_min",
    "ganancia min": "ganancia_min",

    "tipo ganancia": "tipo_ganancia",
    "tipo": "tipo_ganancia",
}


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Renombra columnas según sinónimos; sin alias se conserva el slug."""
    new_cols = {}
    for col in df.columns:
        key = _slug(col)
        new_cols[col] = ALIASES.get(key, key)
    return df.rename(columns=new_cols)


def _to_tipo_ganancia(val: Any) -> Optional[TipoGanancia]:
    if val is None:
        return None
    s = _slug(val)
    if s in {"porcentaje", "pct", "por ciento"} or str(val).strip() == "%":
        return TipoGanancia.PORCENTAJE
    if s in {"fijo", "monto", "monto fijo"}:
        return TipoGanancia.FIJO
    return None


def _read(path: str) -> pd.DataFrame:
    if Path(path).suffix.lower() == ".csv":
        return pd.read_csv(path, dtype="string")
    return pd.read_excel(path, dtype="string")


# ---------------------------
# loader público
# ---------------------------

def load_compra_from_planilla(path: str) -> List[Dict[str, Any]]:
    """Lee la planilla y devuelve una línea por producto, en orden de aparición.

    Campos de salida (claves del dict por línea):
      - producto_id: str
      - nombre: str | None
      - costo_unitario: Decimal | None
      - distribucion: {sucursal_id | None: cantidad}
      - ganancia_max / ganancia_min: Decimal | None
      - tipo_ganancia: TipoGanancia | None
    """
    df = _normalize_columns(_read(path))
    lineas: Dict[str, Dict[str, Any]] = {}
    for _, row in df.iterrows():
        pid = _safe_get(row, "producto_id")
        if pid is None:
            continue
        ln = lineas.setdefault(pid, {
            "producto_id": pid,
            "nombre": None,
            "costo_unitario": None,
            "distribucion": {},
            "ganancia_max": None,
            "ganancia_min": None,
            "tipo_ganancia": None,
        })
        sucursal = _safe_get(row, "sucursal_id")
        ln["distribucion"][sucursal] = ln["distribucion"].get(sucursal, 0) + parse_cantidad(
            _safe_get(row, "cantidad")
        )
        if ln["nombre"] is None:
            ln["nombre"] = _safe_get(row, "nombre")
        if ln["costo_unitario"] is None:
            ln["costo_unitario"] = parse_decimal(_safe_get(row, "costo_unitario"))
        for campo in ("ganancia_max", "ganancia_min"):
            if ln[campo] is None:
                ln[campo] = parse_decimal(_safe_get(row, campo))
        if ln["tipo_ganancia"] is None:
            ln["tipo_ganancia"] = _to_tipo_ganancia(_safe_get(row, "tipo_ganancia"))
    return list(lineas.values())
