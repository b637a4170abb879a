# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia (actualmente JSON).
# Para usar una base remota, solo hay que modificar esta capa.
#
# ESTRUCTURA:
# ├── interfaces.py                → Protocolos (contratos de colaboradores)
# ├── base.py                      → JSONDataStore (una tabla por archivo)
# ├── cash_register_repository.py  → Estado de caja (pdv_cash_registers)
# ├── product_repository.py        → Catálogo (pdv_products)
# ├── operator_repository.py       → Operadores (pdv_operators)
# └── audit_repository.py          → Auditoría (pdv_audit_log)
# ==============================================================================

from app_pdv.repositories.interfaces import (
    IDataStore,
    IRegisterStatusProvider,
    ICatalog,
    IOperatorDirectory,
    QueryFilter,
)

from app_pdv.repositories.base import JSONDataStore, utc_now_iso
from app_pdv.repositories.cash_register_repository import CashRegisterRepository
from app_pdv.repositories.product_repository import ProductRepository, CATEGORIES
from app_pdv.repositories.operator_repository import OperatorRepository
from app_pdv.repositories.audit_repository import AuditRepository

__all__ = [
    # Interfaces
    'IDataStore',
    'IRegisterStatusProvider',
    'ICatalog',
    'IOperatorDirectory',
    'QueryFilter',

    # Implementaciones
    'JSONDataStore',
    'utc_now_iso',
    'CashRegisterRepository',
    'ProductRepository',
    'CATEGORIES',
    'OperatorRepository',
    'AuditRepository',
]
