"""
Sistema de logging para las transacciones de compras.

Este módulo configura y provee loggers para registrar las operaciones
críticas del sistema: registro de compras, aplicación de costos
adicionales, pagos y operaciones sobre la base de datos.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional


# Flag global para habilitar/deshabilitar logging
ENABLE_LOGGING = False
# Flag global para habilitar/deshabilitar prints/salida
ENABLE_OUTPUT = False

def print_system(*args, **kwargs):
    """Print controlado por ENABLE_OUTPUT."""
    if ENABLE_OUTPUT:
        print(*args, **kwargs)

# Configuración base de los loggers
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura un logger con archivo de salida propio.

    Args:
        name: Nombre del logger
        log_file: Ruta del archivo de log
        level: Nivel de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger configurado
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    file_handler = logging.FileHandler(log_file, encoding='utf-8', delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger

# Directorio base de logs (dentro del paquete)
BASE_DIR = Path(__file__).parent.parent
LOGS_DIR = BASE_DIR / "logs"

LOG_FILES = {
    "transactions": LOGS_DIR / "transactions.log",
    "compras": LOGS_DIR / "compras.log",
    "costos": LOGS_DIR / "costos.log",
    "database": LOGS_DIR / "database.log",
    "system": LOGS_DIR / "system.log",
}

# Loggers específicos por operación
transaction_logger = setup_logger('compras.transactions', str(LOG_FILES["transactions"]))
compra_logger = setup_logger('compras.compras', str(LOG_FILES["compras"]))
costos_logger = setup_logger('compras.costos', str(LOG_FILES["costos"]))
database_logger = setup_logger('compras.database', str(LOG_FILES["database"]))
system_logger = setup_logger('compras.system', str(LOG_FILES["system"]))


def _activo() -> bool:
    return ENABLE_LOGGING or ENABLE_OUTPUT


def _emitir(logger: logging.Logger, etiqueta: str, datos: Dict[str, Any], level: str = "info") -> None:
    if not _activo():
        return
    getattr(logger, level.lower(), logger.info)(f"{etiqueta}: {datos}")


def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra una transacción completa.

    Args:
        operation: Tipo de operación (registrar_compra, aplicar_costos, etc.)
        data: Datos de la transacción
        result: Resultado de la operación (opcional)
        error: Mensaje de error (opcional)
    """
    if error:
        _emitir(transaction_logger, f"TRANSACTION_FAILED: {operation} - {error} - Data", data, "error")
    else:
        _emitir(transaction_logger, f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data", data)


def log_compra(action: str, producto_id: Any, cantidad: Any, costo_unitario: Any = None, **kwargs) -> None:
    """Línea de compra confirmada o persistida (``linea_confirmada``, ``insert``)."""
    costo = str(costo_unitario) if costo_unitario is not None else None
    _emitir(compra_logger, f"COMPRA_{action.upper()}", {
        "action": action, "producto_id": producto_id, "cantidad": cantidad,
        "costo_unitario": costo, **kwargs,
    })


def log_costos(action: str, compra_id: Any, metodo: str, asignado: Optional[Dict[Any, Any]] = None, **kwargs) -> None:
    """
    Log del prorrateo de costos adicionales.

    ``asignado`` es el monto por ítem; se serializa como texto para no
    perder los decimales del Decimal.
    """
    _emitir(costos_logger, f"COSTOS_{action.upper()}", {
        "action": action, "compra_id": compra_id, "metodo": metodo,
        "asignado": {k: str(v) for k, v in (asignado or {}).items()}, **kwargs,
    })


def log_database_operation(table: str, operation: str, affected_rows: int = 0, **kwargs) -> None:
    _emitir(database_logger, f"DB_{operation}", {
        "table": table, "operation": operation, "affected_rows": affected_rows, **kwargs,
    })


def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """Evento del sistema; ``level`` acepta info, warning o error."""
    _emitir(system_logger, f"SYSTEM_EVENT: {event}", {"event": event, "details": details or {}}, level)


def log_file_operation(operation: str, file_path: str, rows_processed: int = 0, **kwargs) -> None:
    _emitir(system_logger, f"FILE_{operation.upper()}", {
        "operation": operation, "file_path": file_path, "rows_processed": rows_processed, **kwargs,
    })


def get_log_summary(log_type: str = "transactions", lines: int = 100) -> Optional[str]:
    """
    Devuelve las últimas ``lines`` líneas de un log.

    Devuelve None con el logging deshabilitado y un mensaje si el tipo de
    log no existe o todavía no se escribió.
    """
    if not _activo():
        return None

    log_file = LOG_FILES.get(log_type)
    if not log_file or not log_file.exists():
        return f"Log {log_type} no encontrado."

    for handler in logging.getLogger(f"compras.{log_type}").handlers:
        handler.flush()

    try:
        with open(log_file, "r", encoding="utf-8") as f:
            return "".join(f.readlines()[-lines:])
    except OSError as e:
        return f"Error al leer log {log_type}: {e}"
