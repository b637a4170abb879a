import pytest

from app_pdv.errors import PersistenceError, StoreError
from app_pdv.models.entities import SALE_ITEMS_TABLE, SALES_TABLE, SaleFilters
from app_pdv.services.sales_query_service import SalesQueryService


class Operators:
    names = {'op-1': 'Maria', 'op-2': 'João'}

    def get_operator_names(self, ids):
        return {i: self.names[i] for i in ids if i in self.names}


def add_sale(store, sale_id, created_at, operator_id='op-1', cancelled=False, items=1):
    store.tables.setdefault(SALES_TABLE, []).append({
        'id': sale_id,
        'sale_number': len(store.tables[SALES_TABLE]) + 1,
        'channel': 'pdv',
        'cash_register_id': 'caixa-1',
        'operator_id': operator_id,
        'payment_type': 'pix',
        'total_amount': 10.0,
        'is_cancelled': cancelled,
        'created_at': created_at,
    })
    for n in range(items):
        store.tables.setdefault(SALE_ITEMS_TABLE, []).append({
            'id': f'{sale_id}-i{n}',
            'sale_id': sale_id,
            'product_id': 'p-refri',
            'product_name': 'Refrigerante',
            'quantity': 1,
            'subtotal': 10.0,
        })


@pytest.fixture
def history(store):
    add_sale(store, 's-apr', '2024-04-30T18:00:00+00:00')
    add_sale(store, 's-may-1', '2024-05-01T09:00:00+00:00', operator_id='op-2')
    add_sale(store, 's-may-1-cancel', '2024-05-01T10:00:00+00:00', cancelled=True)
    add_sale(store, 's-may-2', '2024-05-02T23:30:00+00:00')
    add_sale(store, 's-orphan', '2024-05-02T23:45:00+00:00', items=0)
    add_sale(store, 's-jun', '2024-06-01T08:00:00+00:00')
    return store


@pytest.fixture
def service(history):
    return SalesQueryService(history, Operators())


def ids(sales):
    return [s.id for s in sales]


def test_no_filters_returns_newest_first(service):
    assert ids(service.list_sales()) == [
        's-jun', 's-orphan', 's-may-2', 's-may-1-cancel', 's-may-1', 's-apr'
    ]


def test_active_sales_in_date_range(service):
    filters = SaleFilters(start_date='2024-05-01', end_date='2024-05-02', cancelled=False)
    assert ids(service.list_sales(filters)) == ['s-orphan', 's-may-2', 's-may-1']


def test_end_date_covers_whole_day(service):
    sales = service.list_sales(SaleFilters(start_date='2024-05-02', end_date='2024-05-02'))
    assert ids(sales) == ['s-orphan', 's-may-2']


def test_operator_and_cancelled_filters(service):
    assert ids(service.list_sales(SaleFilters(operator_id='op-2'))) == ['s-may-1']
    assert ids(service.list_sales(SaleFilters(cancelled=True))) == ['s-may-1-cancel']


def test_sales_are_joined_with_operator_and_items(service):
    sales = {s.id: s for s in service.list_sales()}
    assert sales['s-may-1'].operator_name == 'João'
    assert sales['s-apr'].operator_name == 'Maria'
    assert len(sales['s-may-2'].items) == 1


def test_orphan_header_is_listed_without_items(service):
    orphan = service.get_sale('s-orphan')
    assert orphan is not None
    assert orphan.items == []


def test_get_sale(service):
    assert service.get_sale('s-jun').sale_number == 6
    assert service.get_sale('nope') is None


def test_query_failure(history):
    history.failures[('query', SALES_TABLE)] = StoreError('sem conexão')
    with pytest.raises(PersistenceError):
        SalesQueryService(history).list_sales()
