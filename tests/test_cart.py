import pytest

from app_pdv.models.entities import PaymentType, Product, UnitItem, WeighableItem
from app_pdv.services.cart_service import Cart, WEIGHT_STEP_KG


class DictCatalog:
    def __init__(self, *products):
        self.products = {p.id: p for p in products}

    def get_active_products(self):
        return [p for p in self.products.values() if p.is_active]

    def get_product(self, product_id):
        return self.products.get(product_id)


def test_add_unit_product_defaults_to_one(unit_product):
    cart = Cart()
    item = cart.add_item(unit_product)
    assert isinstance(item, UnitItem)
    assert item.quantity == 1
    assert cart.subtotal == pytest.approx(10.0)


def test_adding_same_product_merges_lines(unit_product):
    cart = Cart()
    cart.add_item(unit_product)
    cart.add_item(unit_product, 2)
    assert cart.items_count == 1
    assert cart.items[0].quantity == 3


def test_weighable_merge_sums_weights(weighable_product):
    cart = Cart()
    cart.add_item(weighable_product, 0.2)
    cart.add_item(weighable_product, 0.3)

    assert cart.items_count == 1
    assert isinstance(cart.items[0], WeighableItem)
    assert cart.items[0].weight == pytest.approx(0.5)
    assert cart.subtotal == pytest.approx(0.5 * 0.05 * 1000)


def test_weighable_without_weight_starts_at_zero(weighable_product):
    cart = Cart()
    item = cart.add_item(weighable_product)
    assert item.weight == 0.0
    assert cart.subtotal == 0.0


@pytest.mark.parametrize('amount', [0, -1, 1.5])
def test_invalid_unit_amounts_are_rejected(unit_product, amount):
    cart = Cart()
    with pytest.raises(ValueError):
        cart.add_item(unit_product, amount)
    assert cart.is_empty


def test_negative_weight_is_rejected(weighable_product):
    with pytest.raises(ValueError):
        Cart().add_item(weighable_product, -0.1)


@pytest.mark.parametrize('value', [float('nan'), float('inf'), float('-inf'), 'nan'])
def test_non_finite_amounts_are_rejected(unit_product, weighable_product, value):
    cart = Cart()
    with pytest.raises(ValueError):
        cart.add_item(weighable_product, value)
    with pytest.raises(ValueError):
        cart.add_item(unit_product, value)
    assert cart.is_empty

    cart.add_item(weighable_product, 0.2)
    with pytest.raises(ValueError):
        cart.set_weight(0, value)
    with pytest.raises(ValueError):
        cart.adjust_item(0, value)
    assert cart.items[0].weight == pytest.approx(0.2)

    with pytest.raises(ValueError):
        cart.set_checkout(received_amount=value)
    with pytest.raises(ValueError):
        cart.set_checkout(discount_percentage=value)
    assert (cart.received_amount, cart.discount_percentage) == (0.0, 0.0)


def test_inactive_product_is_rejected():
    inactive = Product(id='p-x', name='Fora de linha', unit_price=5.0, is_active=False)
    with pytest.raises(ValueError):
        Cart().add_item(inactive)


def test_adjust_unit_down_to_zero_removes_line(unit_product):
    cart = Cart()
    cart.add_item(unit_product, 2)
    assert cart.adjust_item(0, -1).quantity == 1
    assert cart.adjust_item(0, -1) is None
    assert cart.is_empty


def test_adjust_weighable_uses_step(weighable_product):
    cart = Cart()
    cart.add_item(weighable_product, 0.3)
    cart.adjust_item(0, 1)
    assert cart.items[0].weight == pytest.approx(0.3 + WEIGHT_STEP_KG)
    cart.adjust_item(0, -2)
    assert cart.items[0].weight == pytest.approx(0.2)


def test_adjust_weighable_below_step_removes_line(weighable_product):
    cart = Cart()
    cart.add_item(weighable_product, 0.05)
    assert cart.adjust_item(0, -1) is None
    assert cart.is_empty


def test_set_weight(weighable_product, unit_product):
    cart = Cart()
    cart.add_item(weighable_product)
    cart.add_item(unit_product)

    cart.set_weight(0, 0.35)
    assert cart.items[0].weight == pytest.approx(0.35)

    with pytest.raises(ValueError):
        cart.set_weight(1, 0.5)

    assert cart.set_weight(0, 0) is None
    assert cart.items_count == 1


def test_remove_item(unit_product, weighable_product):
    cart = Cart()
    cart.add_item(unit_product)
    cart.add_item(weighable_product, 0.2)

    removed = cart.remove_item(0)
    assert removed.product.id == unit_product.id
    assert [i.product.id for i in cart.items] == [weighable_product.id]

    with pytest.raises(IndexError):
        cart.remove_item(5)


def test_checkout_params_and_change(unit_product, weighable_product):
    cart = Cart()
    cart.add_item(unit_product, 3)
    cart.add_item(weighable_product, 0.2)
    cart.set_checkout(payment_type='dinheiro', received_amount=40, discount_percentage=10)

    assert cart.total == pytest.approx(36.0)
    assert cart.discount_amount == pytest.approx(4.0)
    assert cart.change_due == pytest.approx(4.0)

    cart.set_checkout(payment_type=PaymentType.PIX)
    assert cart.change_due == 0.0


def test_invalid_checkout_params(unit_product):
    cart = Cart()
    with pytest.raises(ValueError):
        cart.set_checkout(payment_type='cheque')
    with pytest.raises(ValueError):
        cart.set_checkout(discount_percentage=120)
    with pytest.raises(ValueError):
        cart.set_checkout(received_amount=-1)


def test_clear_resets_lines_and_checkout(unit_product):
    cart = Cart()
    cart.add_item(unit_product)
    cart.set_checkout(payment_type='pix', received_amount=50, discount_percentage=5,
                      customer_name='Ana', notes='sem gelo')

    cart.clear()

    assert cart.is_empty
    assert cart.payment_type == PaymentType.CASH
    assert cart.received_amount == 0.0
    assert cart.discount_percentage == 0.0
    assert cart.customer_name == ''
    assert cart.notes == ''


def test_session_roundtrip_uses_current_catalog(unit_product, weighable_product):
    cart = Cart()
    cart.add_item(unit_product, 2)
    cart.add_item(weighable_product, 0.25)
    cart.set_checkout(payment_type='cartao_debito', customer_name='Ana')
    data = cart.to_dict()

    repriced = Product(id=unit_product.id, name=unit_product.name, unit_price=12.0)
    restored = Cart.from_dict(data, DictCatalog(repriced, weighable_product))

    assert restored.items_count == 2
    assert restored.items[0].quantity == 2
    assert restored.items[1].weight == pytest.approx(0.25)
    assert restored.payment_type == PaymentType.DEBIT_CARD
    assert restored.customer_name == 'Ana'
    assert restored.subtotal == pytest.approx(24.0 + 12.5)


def test_session_roundtrip_drops_unknown_products(unit_product):
    cart = Cart()
    cart.add_item(unit_product)
    restored = Cart.from_dict(cart.to_dict(), DictCatalog())
    assert restored.is_empty
    assert Cart.from_dict(None, DictCatalog()).is_empty


def test_summary_shape(unit_product, weighable_product):
    cart = Cart()
    cart.add_item(unit_product, 3)
    cart.add_item(weighable_product, 0.2)
    summary = cart.summary()

    assert summary['subtotal'] == 40.0
    assert summary['items'][0]['quantity'] == 3
    assert summary['items'][1]['grams'] == 200
    assert summary['items'][1]['price_per_kg'] == pytest.approx(50.0)
    assert summary['payment_label'] == 'Dinheiro'
