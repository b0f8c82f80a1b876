from pathlib import Path

import pytest

from compras.infra.backend import SQLiteBackend
from compras.infra.migrations import apply_migrations
from compras.infra.views import create_views


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    path = str(tmp_path / "compras_test.sqlite")
    apply_migrations(path)
    create_views(path)
    return path


@pytest.fixture
def backend(db_path: str) -> SQLiteBackend:
    be = SQLiteBackend(db_path)
    be.crear_producto_si_no_existe("P1", "Arroz 1kg")
    be.crear_producto_si_no_existe("P2", "Azúcar 1kg")
    return be
