# app.py
"""
Entrypoint de la aplicación.

Uso:
  python app.py migrate --db compras.db
  python app.py params show
  python app.py compra registrar compra.xlsx --proveedor 7 --sucursal central
  python app.py compra costos 1 --costo "Flete=120" --metodo valor
  python app.py compra ver 1
"""

from compras.adapters.cli import main

if __name__ == "__main__":
    main()
