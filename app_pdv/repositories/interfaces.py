# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos (protocolos) de los colaboradores externos del motor de ventas:
#
# 1. IDataStore              -> almacenamiento durable (insert/update/delete/query)
# 2. IRegisterStatusProvider -> estado de la caja abierta (siempre fresco)
# 3. ICatalog                -> productos activos
# 4. IOperatorDirectory      -> nombres de operadores para los listados
#
# Los servicios dependen de estas interfaces, NO de implementaciones. Cambiar
# el store JSON por una base remota solo requiere una nueva implementación y
# cambiar la instanciación en app_container.py.
#
# FILTROS DE CONSULTA:
#   Lista de tuplas (campo, operador, valor) combinadas con AND.
#   Operadores: 'eq', 'gte', 'lte', 'in'
#
# ATOMICIDAD:
#   Cada llamada es atómica por sí sola. NO se asume atomicidad entre
#   llamadas (cabecera + ítems), salvo que el store declare
#   supports_transactions = True y ofrezca transaction().
# ==============================================================================

from typing import Any, ContextManager, Dict, Iterable, List, Optional, Protocol, Tuple, runtime_checkable

from app_pdv.models.entities import CashRegister, Product


QueryFilter = Tuple[str, str, Any]

FILTER_OPERATORS = frozenset(['eq', 'gte', 'lte', 'in'])


@runtime_checkable
class IDataStore(Protocol):
    """
    Almacenamiento durable genérico por tablas.
    Los fallos se reportan lanzando StoreError.
    """

    supports_transactions: bool

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Inserta un registro; retorna el registro con id y campos asignados."""
        ...

    def batch_insert(self, table: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Inserta varios registros en una sola operación atómica."""
        ...

    def update(
        self,
        table: str,
        record_id: Any,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Aplica un patch a un registro existente; retorna el registro actualizado.
        Con expected, el patch solo se aplica si el registro todavía tiene esos
        valores (si no, StoreConflict).
        """
        ...

    def delete(self, table: str, record_id: Any) -> bool:
        """Elimina un registro; retorna True si existía."""
        ...

    def query(
        self,
        table: str,
        filters: Optional[Iterable[QueryFilter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        """Consulta registros que cumplen todos los filtros."""
        ...

    def transaction(self) -> ContextManager[None]:
        """Agrupa varias escrituras en una unidad (solo si supports_transactions)."""
        ...


@runtime_checkable
class IRegisterStatusProvider(Protocol):
    """
    Estado de la caja. Debe reflejar el estado real en cada llamada
    (el cierre de caja es un evento externo).
    """

    def current_register(self) -> Optional[CashRegister]:
        """Caja abierta actual, o None si no hay ninguna."""
        ...


@runtime_checkable
class ICatalog(Protocol):
    """Catálogo de productos (solo lectura)."""

    def get_active_products(self) -> List[Product]:
        """Productos activos ordenados por nombre."""
        ...

    def get_product(self, product_id: str) -> Optional[Product]:
        """Producto por ID (activo o no)."""
        ...

    def search(self, query: str = '', category: str = 'all') -> List[Product]:
        """Productos activos filtrados por texto (nombre/código) y categoría."""
        ...


@runtime_checkable
class IOperatorDirectory(Protocol):
    """Directorio de operadores de caja."""

    def get_operator_names(self, operator_ids: Iterable[str]) -> Dict[str, str]:
        """Mapa {operator_id: nombre} para los IDs dados."""
        ...
