import threading

import pytest

from app_pdv.errors import (
    EmptyCart,
    IncompleteCartItem,
    InconsistentState,
    InsufficientPayment,
    PersistenceError,
    RegisterClosed,
    StoreError,
)
from app_pdv.models.entities import (
    AUDIT_TABLE,
    SALE_ITEMS_TABLE,
    SALES_TABLE,
    CashRegister,
    PaymentType,
    UnitItem,
    WeighableItem,
)
from app_pdv.repositories.audit_repository import AuditRepository
from app_pdv.repositories.base import JSONDataStore
from app_pdv.services.audit_service import AuditService
from app_pdv.services.cart_service import Cart
from app_pdv.services.sales_service import SalesService


@pytest.fixture
def reference_items(unit_product, weighable_product):
    return [UnitItem(unit_product, quantity=3), WeighableItem(weighable_product, weight=0.2)]


def make_service(store, register, with_audit=True):
    audit = AuditService(AuditRepository(store)) if with_audit else None
    return SalesService(store, register, audit)


# ---------------------------------------------------------------------------
# Precondiciones: ninguna escritura
# ---------------------------------------------------------------------------

def test_closed_register_performs_no_writes(store, closed_register, reference_items):
    service = make_service(store, closed_register)
    with pytest.raises(RegisterClosed):
        service.create_sale(reference_items, 'dinheiro', 40, 10)
    assert store.calls_for('insert') == []
    assert store.calls_for('batch_insert') == []


def test_register_marked_closed_is_rejected(store, open_register, reference_items):
    open_register.register = CashRegister(id='caixa-1', is_open=False)
    with pytest.raises(RegisterClosed):
        make_service(store, open_register).create_sale(reference_items, 'pix', 0, 0)
    assert store.calls == []


def test_register_state_is_read_on_every_sale(store, open_register, reference_items):
    service = make_service(store, open_register)
    service.create_sale(reference_items, 'pix', 0, 0)

    open_register.register = None
    with pytest.raises(RegisterClosed):
        service.create_sale(reference_items, 'pix', 0, 0)
    assert open_register.calls == 2


def test_empty_cart(store, open_register):
    with pytest.raises(EmptyCart):
        make_service(store, open_register).create_sale([], 'dinheiro', 10, 0)
    assert store.calls == []


def test_weighable_line_without_weight(store, open_register, weighable_product):
    items = [WeighableItem(weighable_product, weight=0.0)]
    with pytest.raises(IncompleteCartItem) as exc:
        make_service(store, open_register).create_sale(items, 'pix', 0, 0)
    assert weighable_product.name in exc.value.message
    assert store.calls == []


@pytest.mark.parametrize('weight', [float('nan'), float('inf')])
def test_non_finite_weight_is_incomplete(store, open_register, weighable_product, weight):
    items = [WeighableItem(weighable_product, weight=weight)]
    with pytest.raises(IncompleteCartItem):
        make_service(store, open_register).create_sale(items, 'pix', 0, 0)
    assert store.calls == []


def test_insufficient_cash_fails_before_any_write(store, open_register, reference_items):
    with pytest.raises(InsufficientPayment) as exc:
        make_service(store, open_register).create_sale(reference_items, 'dinheiro', 35.99, 10)
    assert exc.value.total == pytest.approx(36.0)
    assert store.calls == []


def test_precondition_order_register_first(store, closed_register):
    # Carrito vacío y caja cerrada: gana la caja
    with pytest.raises(RegisterClosed):
        make_service(store, closed_register).create_sale([], 'dinheiro', 0, 0)


# ---------------------------------------------------------------------------
# Camino feliz
# ---------------------------------------------------------------------------

def test_reference_cash_sale(store, open_register, reference_items):
    sale = make_service(store, open_register).create_sale(
        reference_items, 'dinheiro', 40, 10,
        customer_name='  Ana  ', customer_phone='', operator_id='op-1'
    )

    assert sale.id
    assert sale.sale_number == 1
    assert sale.channel == 'pdv'
    assert sale.cash_register_id == 'caixa-1'
    assert sale.payment_type == PaymentType.CASH
    assert sale.subtotal == 40.0
    assert sale.discount_amount == 4.0
    assert sale.total_amount == 36.0
    assert sale.received_amount == 40.0
    assert sale.change_amount == 4.0
    assert sale.customer_name == 'Ana'
    assert sale.customer_phone is None
    assert sale.is_active

    assert len(sale.items) == 2
    unit, weighed = sale.items
    assert unit.sale_id == sale.id
    assert unit.quantity == 3 and unit.weight is None and unit.subtotal == 30.0
    assert weighed.quantity == 0 and weighed.weight == pytest.approx(0.2) and weighed.subtotal == 10.0

    assert len(store.tables[SALES_TABLE]) == 1
    assert len(store.tables[SALE_ITEMS_TABLE]) == 2


def test_non_cash_sale_receives_exact_total(store, open_register, reference_items):
    sale = make_service(store, open_register).create_sale(reference_items, 'cartao_credito', 0, 10)
    assert sale.received_amount == 36.0
    assert sale.change_amount == 0.0


def test_sale_is_audited(store, open_register, reference_items):
    make_service(store, open_register).create_sale(reference_items, 'pix', 0, 0, operator_id='op-1')
    entries = store.tables[AUDIT_TABLE]
    assert entries[0]['type'] == 'VENTA'
    assert entries[0]['user'] == 'op-1'


def test_custom_channel(store, open_register, reference_items):
    sale = make_service(store, open_register).create_sale(reference_items, 'pix', 0, 0, channel='delivery')
    assert sale.channel == 'delivery'


def test_checkout_clears_cart_only_on_success(store, open_register, unit_product):
    service = make_service(store, open_register)
    cart = Cart()
    cart.add_item(unit_product, 2)
    cart.set_checkout(payment_type='dinheiro', received_amount=5)

    with pytest.raises(InsufficientPayment):
        service.checkout(cart)
    assert cart.items_count == 1

    cart.set_checkout(received_amount=20)
    sale = service.checkout(cart, operator_id='op-1')
    assert sale.total_amount == 20.0
    assert cart.is_empty
    assert cart.received_amount == 0.0


# ---------------------------------------------------------------------------
# Fallos de persistencia
# ---------------------------------------------------------------------------

def test_header_insert_failure(store, open_register, reference_items):
    store.failures[('insert', SALES_TABLE)] = StoreError('disco lleno')
    with pytest.raises(PersistenceError) as exc:
        make_service(store, open_register).create_sale(reference_items, 'pix', 0, 0)
    assert str(exc.value.original) == 'disco lleno'
    assert store.calls_for('batch_insert') == []


def test_items_failure_deletes_header_and_reports_original_error(store, open_register, reference_items):
    original = StoreError('timeout en pdv_sale_items')
    store.failures[('batch_insert', SALE_ITEMS_TABLE)] = original

    with pytest.raises(PersistenceError) as exc:
        make_service(store, open_register).create_sale(reference_items, 'pix', 0, 0)

    assert exc.value.original is original
    assert exc.value.__cause__ is original
    assert store.calls_for('delete') == [('delete', SALES_TABLE)]
    assert store.tables[SALES_TABLE] == []


def test_failed_cleanup_raises_inconsistent_state(store, open_register, reference_items):
    original = StoreError('items caídos')
    cleanup = StoreError('delete caído')
    store.failures[('batch_insert', SALE_ITEMS_TABLE)] = original
    store.failures[('delete', SALES_TABLE)] = cleanup

    with pytest.raises(InconsistentState) as exc:
        make_service(store, open_register).create_sale(reference_items, 'pix', 0, 0, operator_id='op-1')

    orphan = store.tables[SALES_TABLE][0]
    assert exc.value.sale_id == orphan['id']
    assert exc.value.original is original
    assert exc.value.cleanup_error is cleanup

    flagged = [e for e in store.tables[AUDIT_TABLE] if e['type'] == 'RECONCILIACION']
    assert flagged and flagged[0]['related_id'] == orphan['id']

    pending = AuditService(AuditRepository(store)).get_pending_reconciliations()
    assert [e['related_id'] for e in pending] == [orphan['id']]


def test_audit_failure_does_not_undo_sale(store, open_register, reference_items):
    store.failures[('insert', AUDIT_TABLE)] = StoreError('audit caído')
    sale = make_service(store, open_register).create_sale(reference_items, 'pix', 0, 0)
    assert sale.id
    assert len(store.tables[SALE_ITEMS_TABLE]) == 2


def test_register_provider_failure_is_persistence_error(store, reference_items):
    class BrokenRegister:
        def current_register(self):
            raise StoreError('sin conexión')

    with pytest.raises(PersistenceError):
        make_service(store, BrokenRegister()).create_sale(reference_items, 'pix', 0, 0)


# ---------------------------------------------------------------------------
# Store transaccional
# ---------------------------------------------------------------------------

class ItemsFailingStore(JSONDataStore):
    def batch_insert(self, table, records):
        if table == SALE_ITEMS_TABLE:
            raise StoreError('lote rechazado')
        return super().batch_insert(table, records)

    def delete(self, table, record_id):
        raise AssertionError('no debe haber eliminación compensatoria')


def test_transactional_store_rolls_back_header(tmp_path, open_register, reference_items):
    store = ItemsFailingStore(str(tmp_path))
    service = SalesService(store, open_register)

    with pytest.raises(PersistenceError):
        service.create_sale(reference_items, 'pix', 0, 0)

    assert store.query(SALES_TABLE) == []
    assert store.query(SALE_ITEMS_TABLE) == []


def test_transactional_store_happy_path(tmp_path, open_register, reference_items):
    store = JSONDataStore(str(tmp_path))
    service = SalesService(store, open_register)

    first = service.create_sale(reference_items, 'dinheiro', 50, 0)
    second = service.create_sale(reference_items, 'pix', 0, 0)

    assert (first.sale_number, second.sale_number) == (1, 2)
    assert first.change_amount == 10.0
    assert len(store.query(SALE_ITEMS_TABLE, [('sale_id', 'eq', second.id)])) == 2


class RestoreFailingStore(ItemsFailingStore):
    def _write_table(self, table, rows):
        # Fuera de la transacción: solo la restauración escribe pdv_sales
        if self._tx_snapshots is None and table == SALES_TABLE:
            raise StoreError('disco lleno')
        super()._write_table(table, rows)


def test_failed_rollback_is_inconsistent_state(tmp_path, open_register, reference_items):
    store = RestoreFailingStore(str(tmp_path))

    with pytest.raises(InconsistentState) as exc:
        make_service(store, open_register).create_sale(reference_items, 'pix', 0, 0, operator_id='op-1')

    assert [r['id'] for r in store.query(SALES_TABLE)] == [exc.value.sale_id]
    assert str(exc.value.original) == 'lote rechazado'
    flagged = store.query(AUDIT_TABLE, [('type', 'eq', 'RECONCILIACION')])
    assert flagged[0]['related_id'] == exc.value.sale_id


def test_unexpected_error_in_transaction_is_persistence_error(tmp_path, open_register, reference_items):
    class BuggyStore(JSONDataStore):
        def batch_insert(self, table, records):
            if table == SALE_ITEMS_TABLE:
                raise RuntimeError('bug')
            return super().batch_insert(table, records)

    store = BuggyStore(str(tmp_path))
    with pytest.raises(PersistenceError) as exc:
        SalesService(store, open_register).create_sale(reference_items, 'pix', 0, 0)

    assert isinstance(exc.value.__cause__, RuntimeError)
    assert store.query(SALES_TABLE) == []


@pytest.mark.parametrize('use_transactions', [True, False])
def test_store_lock_timeout_is_persistence_error(tmp_path, open_register, reference_items, use_transactions):
    store = JSONDataStore(str(tmp_path), lock_timeout=0.05, use_transactions=use_transactions)
    held = threading.Event()
    release = threading.Event()

    def hold_lock():
        with JSONDataStore._file_lock:
            held.set()
            release.wait(5)

    holder = threading.Thread(target=hold_lock)
    holder.start()
    assert held.wait(5)
    try:
        with pytest.raises(PersistenceError) as exc:
            SalesService(store, open_register).create_sale(reference_items, 'pix', 0, 0)
        assert isinstance(exc.value.__cause__, StoreError)
    finally:
        release.set()
        holder.join()

    assert store.query(SALES_TABLE) == []
    assert store.query(SALE_ITEMS_TABLE) == []
