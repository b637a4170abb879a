# ==============================================================================
# SERVICIO DE CONSULTA DE VENTAS
# ==============================================================================
# Listado de ventas para la pantalla de historial: filtros opcionales
# combinados con AND, más recientes primero, cada venta con el nombre del
# operador y sus ítems.
#
# Una cabecera sin ítems (venta huérfana) se devuelve con items = [].
# ==============================================================================

import re
from collections import defaultdict
from typing import Any, Dict, List, Optional

from app_pdv.errors import PersistenceError, StoreError
from app_pdv.logger import get_logger
from app_pdv.models.entities import SALE_ITEMS_TABLE, SALES_TABLE, Sale, SaleFilters
from app_pdv.performance_logger import profile_function
from app_pdv.repositories.interfaces import IDataStore, IOperatorDirectory, QueryFilter

logger = get_logger(__name__)

_DATE_ONLY = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def _end_of_day(value: str) -> str:
    """'2024-05-01' -> '2024-05-01T23:59:59.999999'; otros valores sin cambio."""
    if _DATE_ONLY.match(value):
        return f"{value}T23:59:59.999999"
    return value


class SalesQueryService:
    """Consultas de ventas (solo lectura)."""

    def __init__(self, store: IDataStore, operator_directory: IOperatorDirectory = None):
        self.store = store
        self.operator_directory = operator_directory

    def _build_filters(self, filters: Optional[SaleFilters]) -> List[QueryFilter]:
        if filters is None:
            return []
        query: List[QueryFilter] = []
        if filters.start_date:
            query.append(('created_at', 'gte', filters.start_date))
        if filters.end_date:
            query.append(('created_at', 'lte', _end_of_day(filters.end_date)))
        if filters.operator_id:
            query.append(('operator_id', 'eq', filters.operator_id))
        if filters.cancelled is not None:
            query.append(('is_cancelled', 'eq', bool(filters.cancelled)))
        return query

    def _join(self, headers: List[Dict[str, Any]]) -> List[Sale]:
        """Agrega ítems y nombre del operador a cada cabecera."""
        if not headers:
            return []

        sale_ids = [h['id'] for h in headers]
        item_rows = self.store.query(SALE_ITEMS_TABLE, [('sale_id', 'in', sale_ids)])
        items_by_sale = defaultdict(list)
        for row in item_rows:
            items_by_sale[row.get('sale_id')].append(row)

        names = {}
        if self.operator_directory:
            names = self.operator_directory.get_operator_names(h.get('operator_id') for h in headers)

        sales = []
        for header in headers:
            sale = Sale.from_dict(header, items_by_sale.get(header['id'], []))
            sale.operator_name = names.get(sale.operator_id)
            sales.append(sale)
        return sales

    @profile_function(name="Listar ventas")
    def list_sales(self, filters: Optional[SaleFilters] = None) -> List[Sale]:
        """
        Lista ventas que cumplen todos los filtros indicados.

        Args:
            filters: start_date / end_date (inclusivas, sobre created_at;
                una fecha sin hora en end_date cubre el día completo),
                operator_id y cancelled. None = sin restricción.

        Returns:
            Ventas ordenadas por created_at descendente

        Raises:
            PersistenceError: Falló la consulta
        """
        try:
            headers = self.store.query(
                SALES_TABLE, self._build_filters(filters), order_by='created_at', descending=True
            )
            return self._join(headers)
        except StoreError as e:
            logger.error("Error al consultar ventas: %s", e)
            raise PersistenceError(original=e) from e

    def get_sale(self, sale_id: str) -> Optional[Sale]:
        """Una venta con ítems y operador, o None si no existe."""
        try:
            headers = self.store.query(SALES_TABLE, [('id', 'eq', sale_id)])
            sales = self._join(headers)
        except StoreError as e:
            raise PersistenceError(original=e) from e
        return sales[0] if sales else None
