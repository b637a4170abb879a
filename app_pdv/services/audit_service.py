# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza el registro de auditoría del PDV.
# Formatea mensajes humanizados y categoriza eventos.
# ==============================================================================

from typing import Any, Dict, List

from app_pdv.models.entities import Sale
from app_pdv.repositories.audit_repository import AuditRepository


class AuditService:
    """
    Servicio para registro y consulta de auditoría.

    Centraliza:
    - Registro de eventos con mensajes humanizados
    - Categorización de eventos (VENTA, ANULACION, RECONCILIACION)

    Toda venta huérfana (cabecera sin ítems) queda marcada como
    RECONCILIACION para revisión manual.
    """

    TYPE_VENTA = 'VENTA'
    TYPE_ANULACION = 'ANULACION'
    TYPE_RECONCILIACION = 'RECONCILIACION'

    def __init__(self, audit_repo: AuditRepository):
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un evento de auditoría genérico.

        Args:
            log_type: Tipo de evento (VENTA, ANULACION, RECONCILIACION)
            user: Operador que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado (venta)
            details: Detalles adicionales
        """
        self.audit_repo.log(log_type, user, message, related_id, details)

    def log_sale_created(self, user: str, sale: Sale) -> None:
        """
        Registra la creación de una venta.

        Args:
            user: Operador que cobró
            sale: Venta creada (con ítems)
        """
        message = (
            f"Venta #{sale.sale_number} creada por {user or 'sistema'} - "
            f"Total: R$ {sale.total_amount:.2f} - {len(sale.items)} items - "
            f"Pago: {sale.payment_type.label}"
        )
        self.log(
            self.TYPE_VENTA,
            user,
            message,
            sale.id,
            {
                'sale_number': sale.sale_number,
                'total': sale.total_amount,
                'payment_type': sale.payment_type.value,
                'items_count': len(sale.items),
                'cash_register_id': sale.cash_register_id,
            }
        )

    def log_sale_cancelled(self, user: str, sale: Sale, reason: str) -> None:
        """
        Registra la anulación de una venta.

        Args:
            user: Operador que anuló
            sale: Venta anulada
            reason: Motivo informado
        """
        message = f"Venta #{sale.sale_number} anulada por {user or 'sistema'} - Motivo: {reason}"
        self.log(
            self.TYPE_ANULACION,
            user,
            message,
            sale.id,
            {'sale_number': sale.sale_number, 'total': sale.total_amount, 'reason': reason}
        )

    def log_orphan_sale(
        self,
        user: str,
        sale_id: str,
        original: BaseException,
        cleanup_error: BaseException
    ) -> None:
        """
        Marca una cabecera de venta sin ítems para reconciliación.

        Args:
            user: Operador que intentó cobrar
            sale_id: ID de la cabecera huérfana
            original: Error al insertar los ítems
            cleanup_error: Error de la eliminación compensatoria
        """
        message = f"Venta {sale_id} quedó sin ítems - REQUIERE RECONCILIACIÓN"
        self.log(
            self.TYPE_RECONCILIACION,
            user,
            message,
            sale_id,
            {'items_error': str(original), 'cleanup_error': str(cleanup_error)}
        )

    # =========================================================================
    # CONSULTA DE LOGS
    # =========================================================================

    def get_all_logs(self) -> List[Dict[str, Any]]:
        """Obtiene todos los logs, más recientes primero."""
        return self.audit_repo.load()

    def get_pending_reconciliations(self) -> List[Dict[str, Any]]:
        """Ventas huérfanas marcadas para revisión."""
        return self.audit_repo.find_by_type(self.TYPE_RECONCILIACION)
