"""
Avisos al usuario e indicador de carga.

Los casos de uso no usan singletons globales de "toast" ni de "spinner":
reciben un ``NotificationSink`` y un ``LoadingSink`` inyectados. La CLI
usa ``NotificadorConsola``; las pruebas y los procesos por lotes usan
``NotificadorMemoria``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from rich.console import Console


NIVELES = ("info", "success", "warning", "error")


class NotificationSink(Protocol):
    def notify(self, message: str, level: str = "info") -> None:
        ...


class LoadingSink(Protocol):
    def set(self, activo: bool) -> None:
        ...


_ESTILOS = {
    "info": "cyan",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
}


class NotificadorConsola:
    """Muestra los avisos en la terminal con Rich."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def notify(self, message: str, level: str = "info") -> None:
        estilo = _ESTILOS.get(level, "")
        self.console.print(f"[{estilo}]{message}[/]" if estilo else message)


@dataclass
class NotificadorMemoria:
    """Guarda los avisos en memoria, en orden de llegada."""
    mensajes: List[Tuple[str, str]] = field(default_factory=list)

    def notify(self, message: str, level: str = "info") -> None:
        if level not in NIVELES:
            level = "info"
        self.mensajes.append((level, message))

    def por_nivel(self, level: str) -> List[str]:
        return [m for lvl, m in self.mensajes if lvl == level]

    @property
    def ultimo(self) -> Optional[Tuple[str, str]]:
        return self.mensajes[-1] if self.mensajes else None


@dataclass
class IndicadorCarga:
    """Bandera de "cargando" con historial de transiciones."""
    activo: bool = False
    historial: List[bool] = field(default_factory=list)

    def set(self, activo: bool) -> None:
        self.activo = bool(activo)
        self.historial.append(self.activo)


class _SinCarga:
    def set(self, activo: bool) -> None:
        pass


SIN_CARGA = _SinCarga()
