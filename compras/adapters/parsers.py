"""
Utilidades de parsing para importes y cantidades.

Este módulo interpreta los valores numéricos tal como llegan de los
formularios y de las planillas de compras (por ejemplo, "1.234,56",
"6,96" o "120"). El objetivo es obtener de forma robusta un ``Decimal``
para los importes y un entero no negativo para las cantidades.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

_NUM_RE = re.compile(r"^[-+]?(\d+([.,]\d*)*|[.,]\d+)$")
_SIMBOLOS_RE = re.compile(r"(?i)^(bs\.?|usd|\$us|\$)\s*")


def _normaliza_separadores(s: str) -> str:
    """Deja ``s`` con punto decimal y sin separadores de miles."""
    if "," in s and "." in s:
        # el separador que aparece último es el decimal
        if s.rfind(",") > s.rfind("."):
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    if "," in s:
        if s.count(",") > 1:
            return s.replace(",", "")
        return s.replace(",", ".")
    if s.count(".") > 1:
        return s.replace(".", "")
    return s


def parse_decimal(valor: Any) -> Optional[Decimal]:
    """Interpreta ``valor`` como importe decimal.

    Acepta ``Decimal``, enteros, ``float`` y textos con coma o punto
    como separador decimal, con o sin agrupación de miles y con un
    prefijo de moneda opcional ("Bs 12,50").

    Ejemplos:
        "1.234,56" → Decimal("1234.56")
        "6,96"     → Decimal("6.96")
        "Bs 120"   → Decimal("120")
        ""         → None
        "abc"      → None

    Returns:
        El ``Decimal`` finito correspondiente o ``None`` si el valor
        está vacío o no es numérico.
    """
    if valor is None or isinstance(valor, bool):
        return None
    if isinstance(valor, Decimal):
        return valor if valor.is_finite() else None
    if isinstance(valor, int):
        return Decimal(valor)
    if isinstance(valor, float):
        if valor != valor or valor in (float("inf"), float("-inf")):
            return None
        return Decimal(repr(valor))
    s = str(valor).strip()
    s = _SIMBOLOS_RE.sub("", s).replace(" ", "")
    if not s or not _NUM_RE.match(s):
        return None
    try:
        d = Decimal(_normaliza_separadores(s))
    except InvalidOperation:
        return None
    return d if d.is_finite() else None


def parse_cantidad(valor: Any) -> int:
    """Interpreta una cantidad por sucursal.

    Valores negativos, vacíos o no numéricos se recortan a 0. La parte
    fraccionaria se descarta (las cantidades son unidades enteras).
    """
    d = parse_decimal(valor)
    if d is None or d <= 0:
        return 0
    return int(d)


def parse_costo_adicional(txt: str) -> Tuple[Optional[str], Optional[Decimal]]:
    """Interpreta un costo adicional escrito como ``"Concepto=Monto"``.

    También se acepta ``:`` como separador.

    Ejemplos:
        "Flete=120"        → ("Flete", Decimal("120"))
        "Aduana: 1.500,50" → ("Aduana", Decimal("1500.50"))
        "Flete"            → ("Flete", None)
    """
    if txt is None:
        return None, None
    s = str(txt).strip()
    if not s:
        return None, None
    m = re.match(r"^(?P<concepto>[^=:]+?)\s*[=:]\s*(?P<monto>.*)$", s)
    if not m:
        return s, None
    concepto = m.group("concepto").strip() or None
    return concepto, parse_decimal(m.group("monto"))
