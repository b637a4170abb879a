# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio del PDV
# ==============================================================================
# ESTRUCTURA:
# ├── pricing.py               → Subtotales, descuento, total y vuelto
# ├── cart_service.py          → Carrito de la venta en curso
# ├── sales_service.py         → Cobro: cabecera + ítems sin ventas a medias
# ├── cancellation_service.py  → Anulación de ventas
# ├── sales_query_service.py   → Historial de ventas
# └── audit_service.py         → Registro de auditoría
# ==============================================================================

from app_pdv.services import pricing
from app_pdv.services.audit_service import AuditService
from app_pdv.services.cart_service import Cart, WEIGHT_STEP_KG
from app_pdv.services.sales_service import SalesService
from app_pdv.services.cancellation_service import CancellationService
from app_pdv.services.sales_query_service import SalesQueryService

__all__ = [
    'pricing',
    'AuditService',
    'Cart',
    'WEIGHT_STEP_KG',
    'SalesService',
    'CancellationService',
    'SalesQueryService',
]
