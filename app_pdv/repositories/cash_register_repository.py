# ==============================================================================
# REPOSITORIO DE CAJAS
# ==============================================================================
# Lee el estado de las sesiones de caja desde pdv_cash_registers.
# Solo lectura: abrir y cerrar caja es responsabilidad de otro servicio.
# ==============================================================================

from typing import Optional

from app_pdv.models.entities import CASH_REGISTERS_TABLE, CashRegister
from app_pdv.repositories.interfaces import IDataStore


class CashRegisterRepository:
    """
    Proveedor de estado de caja (implementa IRegisterStatusProvider).

    Formato de datos en pdv_cash_registers:
    [
        {"id": "...", "status": "open", "opened_at": "2024-01-01T08:00:00+00:00"},
        {"id": "...", "status": "closed", "opened_at": "...", "closed_at": "..."}
    ]

    No guarda caché: cada llamada consulta el store, así un cierre de caja
    bloquea inmediatamente las ventas siguientes.
    """

    def __init__(self, store: IDataStore):
        self.store = store

    def current_register(self) -> Optional[CashRegister]:
        """
        Caja abierta más reciente.

        Returns:
            CashRegister abierta o None
        """
        rows = self.store.query(
            CASH_REGISTERS_TABLE,
            [('status', 'eq', 'open')],
            order_by='opened_at',
            descending=True
        )
        if not rows:
            return None
        return CashRegister.from_dict(rows[0])
