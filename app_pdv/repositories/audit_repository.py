# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Encapsula el acceso a pdv_audit_log a través del store.
# ==============================================================================

from typing import Any, Dict, List

from app_pdv.models.entities import AUDIT_TABLE
from app_pdv.repositories.interfaces import IDataStore


class AuditRepository:
    """
    Repositorio del log de auditoría.

    Formato de cada registro:
        {
            "type": "VENTA",
            "user": "op-1",
            "message": "Venta #12 creada por op-1 - Total: R$ 36.00",
            "related_id": "<sale id>",
            "details": {...},
            "created_at": "..."
        }
    """

    def __init__(self, store: IDataStore):
        self.store = store

    def load(self) -> List[Dict[str, Any]]:
        """Todos los logs, más recientes primero."""
        return self.store.query(AUDIT_TABLE, order_by='created_at', descending=True)

    def find_by_type(self, log_type: str) -> List[Dict[str, Any]]:
        return self.store.query(
            AUDIT_TABLE, [('type', 'eq', log_type)], order_by='created_at', descending=True
        )

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        """
        Registra un nuevo evento de auditoría.

        Args:
            log_type: Tipo de evento (VENTA, ANULACION, RECONCILIACION)
            user: Operador que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado (venta)
            details: Detalles adicionales
        """
        return self.store.insert(AUDIT_TABLE, {
            'type': log_type,
            'user': user or 'sistema',
            'message': message,
            'related_id': related_id or '',
            'details': details or {},
        })
