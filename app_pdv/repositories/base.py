# ==============================================================================
# STORE JSON - Implementación local de IDataStore
# ==============================================================================
# Cada tabla es un archivo <tabla>.json con una lista de registros.
#
#   - Escritura atómica: archivo temporal + os.replace
#   - Lock re-entrante global con timeout: si no se obtiene a tiempo la
#     operación falla con StoreError (nunca bloquea indefinidamente)
#   - El store asigna id, timestamps y números secuenciales (sale_number)
#   - transaction(): agrupa escrituras; si algo falla restaura las tablas
#     (si la restauración falla: RollbackFailed)
#
# Al migrar a una base remota:
#   - Esta clase se reemplaza por un cliente que implemente IDataStore
#   - Los servicios NO cambian
# ==============================================================================

import json
import os
import uuid
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from app_pdv.errors import RollbackFailed, StoreConflict, StoreError
from app_pdv.logger import get_logger
from app_pdv.models.entities import SALES_TABLE
from app_pdv.repositories.interfaces import FILTER_OPERATORS, QueryFilter

logger = get_logger(__name__)


def utc_now_iso() -> str:
    """Timestamp ISO 8601 en UTC."""
    return datetime.now(timezone.utc).isoformat()


def _comparable(value: Any) -> Any:
    """
    Normaliza valores para comparar: los strings ISO se comparan como
    datetimes (sin zona -> UTC); el resto se compara tal cual.
    """
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return value
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    return value


def _matches(record: Dict[str, Any], flt: QueryFilter) -> bool:
    field_name, op, expected = flt
    actual = record.get(field_name)
    if op == 'eq':
        return actual == expected
    if op == 'in':
        return actual in set(expected)
    if actual is None:
        return False
    try:
        if op == 'gte':
            return _comparable(actual) >= _comparable(expected)
        if op == 'lte':
            return _comparable(actual) <= _comparable(expected)
    except TypeError:
        # Tipos no comparables (ej. datetime vs número): no hay match
        return False
    return False


class JSONDataStore:
    """
    Store durable basado en archivos JSON (una lista por tabla).

    Ejemplo: pdv_sales.json -> [{"id": "...", "sale_number": 1, ...}, ...]
    """

    # Lock global para evitar escrituras concurrentes a archivos
    _file_lock = threading.RLock()

    # Campos numéricos secuenciales asignados por el store
    SEQUENCES = {
        SALES_TABLE: 'sale_number',
    }

    def __init__(self, base_path: str, lock_timeout: float = 5.0, use_transactions: bool = True):
        """
        Inicializa el store.

        Args:
            base_path: Carpeta donde viven los archivos de las tablas
            lock_timeout: Segundos máximos de espera por el lock
            use_transactions: Si False, el store se anuncia sin transacciones
                (los servicios usan escritura compensatoria)
        """
        self.base_path = base_path
        self.lock_timeout = lock_timeout
        self.supports_transactions = use_transactions
        self._tx_snapshots: Optional[Dict[str, List[Dict[str, Any]]]] = None
        os.makedirs(base_path, exist_ok=True)

    # =========================================================================
    # ACCESO A ARCHIVOS
    # =========================================================================

    def _table_path(self, table: str) -> str:
        return os.path.join(self.base_path, f"{table}.json")

    @contextmanager
    def _locked(self):
        if not self._file_lock.acquire(timeout=self.lock_timeout):
            raise StoreError(f"Tiempo de espera agotado ({self.lock_timeout}s) esperando el almacenamiento")
        try:
            yield
        finally:
            self._file_lock.release()

    def _read_table(self, table: str) -> List[Dict[str, Any]]:
        """
        Lee los registros de una tabla.

        Raises:
            StoreError: Si el archivo existe pero no es JSON válido
        """
        path = self._table_path(table)
        if not os.path.exists(path):
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"No se pudo leer la tabla {table}: {e}") from e
        return data if isinstance(data, list) else []

    def _write_table(self, table: str, rows: List[Dict[str, Any]]) -> None:
        """Escribe la tabla completa (archivo temporal + reemplazo atómico)."""
        if self._tx_snapshots is not None and table not in self._tx_snapshots:
            self._tx_snapshots[table] = self._read_table(table)

        path = self._table_path(table)
        temp_path = path + '.tmp'
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(rows, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, path)
        except OSError as e:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise StoreError(f"No se pudo escribir la tabla {table}: {e}") from e

    def _prepare(self, table: str, record: Dict[str, Any], rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Asigna id, timestamps y secuencias a un registro nuevo."""
        new = dict(record)
        now = utc_now_iso()
        new.setdefault('id', str(uuid.uuid4()))
        new.setdefault('created_at', now)
        new.setdefault('updated_at', new['created_at'])

        seq_field = self.SEQUENCES.get(table)
        if seq_field and new.get(seq_field) is None:
            current = max((int(r.get(seq_field) or 0) for r in rows), default=0)
            new[seq_field] = current + 1
        return new

    # =========================================================================
    # OPERACIONES DE IDataStore
    # =========================================================================

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._locked():
            rows = self._read_table(table)
            new = self._prepare(table, record, rows)
            rows.append(new)
            self._write_table(table, rows)
            return dict(new)

    def batch_insert(self, table: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        with self._locked():
            rows = self._read_table(table)
            created = []
            for record in records:
                new = self._prepare(table, record, rows)
                rows.append(new)
                created.append(new)
            self._write_table(table, rows)
            return [dict(r) for r in created]

    def update(
        self,
        table: str,
        record_id: Any,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        with self._locked():
            rows = self._read_table(table)
            for row in rows:
                if row.get('id') == record_id:
                    for field_name, value in (expected or {}).items():
                        if row.get(field_name) != value:
                            raise StoreConflict(f"Registro {record_id} modificado en {table} ({field_name})")
                    row.update(patch)
                    self._write_table(table, rows)
                    return dict(row)
            raise StoreError(f"Registro {record_id} no existe en {table}")

    def delete(self, table: str, record_id: Any) -> bool:
        with self._locked():
            rows = self._read_table(table)
            remaining = [r for r in rows if r.get('id') != record_id]
            if len(remaining) == len(rows):
                return False
            self._write_table(table, remaining)
            return True

    def query(
        self,
        table: str,
        filters: Optional[Iterable[QueryFilter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        filters = list(filters or [])
        for _, op, _ in filters:
            if op not in FILTER_OPERATORS:
                raise StoreError(f"Operador de filtro no soportado: {op}")

        with self._locked():
            rows = self._read_table(table)

        result = [dict(r) for r in rows if all(_matches(r, f) for f in filters)]
        if order_by:
            # Los registros sin el campo van al final
            present = [r for r in result if r.get(order_by) is not None]
            missing = [r for r in result if r.get(order_by) is None]
            present.sort(key=lambda r: _comparable(r[order_by]), reverse=descending)
            result = present + missing
        return result

    @contextmanager
    def transaction(self):
        """
        Agrupa escrituras: si el bloque lanza una excepción se restauran
        todas las tablas modificadas y la excepción se propaga.
        """
        if not self.supports_transactions:
            raise StoreError("Este store no soporta transacciones")

        with self._locked():
            if self._tx_snapshots is not None:
                # Transacción anidada: se une a la exterior
                yield
                return

            self._tx_snapshots = {}
            try:
                yield
            except BaseException as error:
                snapshots = self._tx_snapshots
                self._tx_snapshots = None
                failed = []
                for table, rows in snapshots.items():
                    try:
                        self._write_table(table, rows)
                    except StoreError as restore_error:
                        logger.error("No se pudo restaurar la tabla %s: %s", table, restore_error)
                        failed.append(table)
                if failed:
                    raise RollbackFailed(error, failed) from error
                logger.warning("Transacción revertida (tablas: %s)", ', '.join(sorted(snapshots)) or '-')
                raise
            else:
                self._tx_snapshots = None

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def seed(self, table: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Carga registros iniciales (catálogo, operadores, cajas) en una tabla."""
        return self.batch_insert(table, records)
