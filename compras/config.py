# compras/config.py
"""
Configuraciones globales y valores por defecto del módulo de compras.
"""

import os
from dataclasses import dataclass


# Ruta por defecto de la base SQLite
DB_PATH = os.path.join(os.getcwd(), "compras.db")


@dataclass
class DefaultConfig:
    """Valores por defecto de los parámetros del sistema."""
    moneda_base: str = "BOB"
    tasa_cambio: float = 6.96  # BOB por USD
    metodo_prorrateo: str = "valor"  # 'valor' | 'cantidad'
    decimales: int = 2


# Instancia global de los valores por defecto
DEFAULTS = DefaultConfig()
