# ==============================================================================
# SERVICIO DE ANULACIÓN DE VENTAS
# ==============================================================================
# Marca una venta como anulada (Activa -> Anulada, una sola vez).
# No recalcula totales ni toca los ítems: la venta queda como registro.
# ==============================================================================

from contextlib import nullcontext
from typing import Any, Dict, Optional

from app_pdv.errors import (
    PersistenceError,
    SaleAlreadyCancelled,
    SaleNotFound,
    StoreConflict,
    StoreError,
)
from app_pdv.logger import get_logger
from app_pdv.models.entities import SALE_ITEMS_TABLE, SALES_TABLE, Sale
from app_pdv.performance_logger import profile_function
from app_pdv.repositories.base import utc_now_iso
from app_pdv.repositories.interfaces import IDataStore
from app_pdv.services.audit_service import AuditService

logger = get_logger(__name__)


class CancellationService:
    """Servicio de anulación de ventas."""

    def __init__(self, store: IDataStore, audit_service: AuditService = None):
        self.store = store
        self.audit_service = audit_service

    @profile_function(name="Anular venta")
    def cancel_sale(self, sale_id: str, reason: str, operator_id: Optional[str]) -> Sale:
        """
        Anula una venta.

        Args:
            sale_id: ID de la venta
            reason: Motivo de la anulación (obligatorio)
            operator_id: Operador que anula

        Returns:
            La venta actualizada (con sus ítems)

        Raises:
            ValueError: Motivo vacío
            SaleNotFound: La venta no existe
            SaleAlreadyCancelled: La venta ya estaba anulada
            PersistenceError: Falló el almacenamiento
        """
        reason = (reason or '').strip()
        if not reason:
            raise ValueError('Informe el motivo de la anulación')

        try:
            with self._write_scope():
                updated = self._mark_cancelled(sale_id, reason, operator_id)
            items = self.store.query(SALE_ITEMS_TABLE, [('sale_id', 'eq', sale_id)])
        except StoreError as e:
            logger.error("Error al anular la venta %s: %s", sale_id, e)
            raise PersistenceError(original=e) from e

        sale = Sale.from_dict(updated, items)
        logger.info("Venta #%s anulada por %s: %s", sale.sale_number, operator_id or 'sistema', reason)

        if self.audit_service:
            try:
                self.audit_service.log_sale_cancelled(operator_id, sale, reason)
            except Exception:
                logger.exception("No se pudo auditar la anulación de la venta %s", sale_id)

        return sale

    def _write_scope(self):
        """Transacción del store si la soporta; si no, la actualización condicional basta."""
        if getattr(self.store, 'supports_transactions', False):
            return self.store.transaction()
        return nullcontext()

    def _mark_cancelled(self, sale_id: str, reason: str, operator_id: Optional[str]) -> Dict[str, Any]:
        """
        Lee, valida y marca la venta como anulada.

        La actualización es condicional sobre el is_cancelled leído: si otra
        anulación entró en el medio, el store responde StoreConflict y esta
        se rechaza como SaleAlreadyCancelled.
        """
        rows = self.store.query(SALES_TABLE, [('id', 'eq', sale_id)])
        if not rows:
            raise SaleNotFound(f"Venta {sale_id} no encontrada")

        current = rows[0]
        if current.get('is_cancelled'):
            raise SaleAlreadyCancelled(f"La venta #{current.get('sale_number')} ya está anulada")

        now = utc_now_iso()
        patch = {
            'is_cancelled': True,
            'cancelled_at': now,
            'cancelled_by': operator_id,
            'cancel_reason': reason,
            'updated_at': now,
        }
        try:
            return self.store.update(
                SALES_TABLE, sale_id, patch, expected={'is_cancelled': current.get('is_cancelled')}
            )
        except StoreConflict:
            logger.warning("Anulación concurrente de la venta %s: se conserva la primera", sale_id)
            raise SaleAlreadyCancelled(f"La venta #{current.get('sale_number')} ya está anulada")
