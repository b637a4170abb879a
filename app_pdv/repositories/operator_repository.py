# ==============================================================================
# REPOSITORIO DE OPERADORES
# ==============================================================================
# Encapsula el acceso a pdv_operators. Usado para mostrar el nombre del
# operador en los listados de ventas.
# ==============================================================================

from typing import Dict, Iterable, List

from app_pdv.models.entities import OPERATORS_TABLE, Operator
from app_pdv.repositories.interfaces import IDataStore


class OperatorRepository:
    """Directorio de operadores (implementa IOperatorDirectory)."""

    def __init__(self, store: IDataStore):
        self.store = store

    def get_active_operators(self) -> List[Operator]:
        """Operadores activos ordenados por nombre."""
        rows = self.store.query(OPERATORS_TABLE, [('is_active', 'eq', True)], order_by='name')
        return [Operator.from_dict(r) for r in rows]

    def get_operator_names(self, operator_ids: Iterable[str]) -> Dict[str, str]:
        """
        Nombres de los operadores indicados.

        Args:
            operator_ids: IDs a resolver (se ignoran vacíos y repetidos)

        Returns:
            Dict {operator_id: nombre}; los IDs desconocidos no aparecen
        """
        ids = sorted({oid for oid in operator_ids if oid})
        if not ids:
            return {}
        rows = self.store.query(OPERATORS_TABLE, [('id', 'in', ids)])
        return {r['id']: r.get('name', '') for r in rows}
