import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest

from app_pdv.app_container import AppContainer
from app_pdv.config import AppConfig
from app_pdv.errors import StoreConflict, StoreError
from app_pdv.models.entities import (
    CASH_REGISTERS_TABLE,
    OPERATORS_TABLE,
    PRODUCTS_TABLE,
    SALES_TABLE,
    CashRegister,
    Product,
)
from app_pdv.repositories.base import JSONDataStore


class FakeStore:
    """
    Store en memoria que registra cada llamada.

    failures: {(operación, tabla): excepción} para simular fallos.
    hooks: {(operación, tabla): función} se ejecuta una vez antes de la
        operación (para intercalar escrituras concurrentes).
    """

    supports_transactions = False

    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = {}
        self.hooks = {}
        self._clock = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def _maybe_fail(self, op, table):
        self.calls.append((op, table))
        hook = self.hooks.pop((op, table), None)
        if hook is not None:
            hook()
        error = self.failures.get((op, table))
        if error is not None:
            raise error

    def _now(self):
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def calls_for(self, op):
        return [c for c in self.calls if c[0] == op]

    def insert(self, table, record):
        self._maybe_fail('insert', table)
        return self._add(table, record)

    def _add(self, table, record):
        rows = self.tables.setdefault(table, [])
        row = dict(record)
        row.setdefault('id', uuid.uuid4().hex)
        now = self._now()
        row.setdefault('created_at', now)
        row.setdefault('updated_at', now)
        if table == SALES_TABLE:
            row['sale_number'] = len(rows) + 1
        rows.append(row)
        return dict(row)

    def batch_insert(self, table, records):
        self._maybe_fail('batch_insert', table)
        return [self._add(table, r) for r in records]

    def update(self, table, record_id, patch, expected=None):
        self._maybe_fail('update', table)
        for row in self.tables.get(table, []):
            if row['id'] == record_id:
                for field, value in (expected or {}).items():
                    if row.get(field) != value:
                        raise StoreConflict(f"{record_id} modificado")
                row.update(patch)
                return dict(row)
        raise StoreError(f"{record_id} no existe")

    def delete(self, table, record_id):
        self._maybe_fail('delete', table)
        rows = self.tables.get(table, [])
        for i, row in enumerate(rows):
            if row['id'] == record_id:
                del rows[i]
                return True
        return False

    def query(self, table, filters=None, order_by=None, descending=False):
        self._maybe_fail('query', table)
        result = []
        for row in self.tables.get(table, []):
            ok = True
            for field, op, value in filters or []:
                actual = row.get(field)
                if op == 'eq':
                    ok = actual == value
                elif op == 'in':
                    ok = actual in value
                elif op == 'gte':
                    ok = actual is not None and actual >= value
                elif op == 'lte':
                    ok = actual is not None and actual <= value
                if not ok:
                    break
            if ok:
                result.append(dict(row))
        if order_by:
            result.sort(key=lambda r: r.get(order_by) or '', reverse=descending)
        return result

    @contextmanager
    def transaction(self):
        raise StoreError("sin transacciones")
        yield


class FakeRegisterProvider:
    def __init__(self, register=None):
        self.register = register
        self.calls = 0

    def current_register(self):
        self.calls += 1
        return self.register


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def open_register():
    return FakeRegisterProvider(CashRegister(id='caixa-1', is_open=True, opened_at='2024-05-01T08:00:00+00:00'))


@pytest.fixture
def closed_register():
    return FakeRegisterProvider(None)


@pytest.fixture
def unit_product():
    return Product(id='p-refri', name='Refrigerante', code='789', category='bebidas', unit_price=10.0)


@pytest.fixture
def weighable_product():
    return Product(
        id='p-acai', name='Açaí no peso', code='001', category='acai',
        is_weighable=True, price_per_gram=0.05
    )


@pytest.fixture
def json_store(tmp_path):
    return JSONDataStore(str(tmp_path / 'data'), lock_timeout=1.0)


@pytest.fixture
def seeded_store(json_store, unit_product, weighable_product):
    json_store.seed(PRODUCTS_TABLE, [
        unit_product.to_dict(),
        weighable_product.to_dict(),
        Product(id='p-old', name='Picolé antigo', unit_price=3.0, is_active=False).to_dict(),
    ])
    json_store.seed(OPERATORS_TABLE, [
        {'id': 'op-1', 'name': 'Maria', 'is_active': True},
        {'id': 'op-2', 'name': 'João', 'is_active': True},
    ])
    json_store.seed(CASH_REGISTERS_TABLE, [
        {'id': 'caixa-1', 'status': 'open', 'opened_at': '2024-05-01T08:00:00+00:00'},
    ])
    return json_store


@pytest.fixture
def container(tmp_path, seeded_store):
    AppContainer.reset_instance()
    config = AppConfig(
        data_dir=str(tmp_path / 'data'),
        secret_key='test-secret',
        log_file=str(tmp_path / 'logs' / 'pdv.log'),
        enable_profiling=False,
    )
    c = AppContainer(config=config, store=seeded_store)
    yield c
    AppContainer.reset_instance()
