# ==============================================================================
# CARRITO DEL PDV
# ==============================================================================
# Carrito en memoria de la venta en curso + parámetros de cobro pendientes
# (forma de pago, valor recibido, descuento, cliente, observaciones).
#
# Reglas:
# - Agregar un producto que ya está en el carrito suma a su línea (merge)
# - Una línea que llega a cantidad/peso <= 0 se elimina (nunca queda en cero)
# - clear() reinicia ítems y parámetros de cobro juntos ("nueva venta")
# - Sin efectos de persistencia: la capa HTTP lo guarda en la sesión de Flask
# ==============================================================================

import math
from typing import Any, Dict, List, Optional

from app_pdv.logger import get_logger
from app_pdv.models.entities import (
    CartItem,
    PaymentType,
    Product,
    UnitItem,
    WeighableItem,
    make_cart_item,
)
from app_pdv.repositories.interfaces import ICatalog
from app_pdv.services import pricing

logger = get_logger(__name__)

# Paso del control +/- para ítems pesables (kg por clic)
WEIGHT_STEP_KG = 0.1

# Resolución de la balanza: gramos
WEIGHT_DECIMALS = 3


def _round_weight(weight: float) -> float:
    return round(float(weight), WEIGHT_DECIMALS)


def _finite(value: Any, label: str) -> float:
    """Número finito; NaN e infinito no son montos válidos."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} debe ser un número")
    if not math.isfinite(number):
        raise ValueError(f"{label} debe ser un número finito")
    return number


class Cart:
    """
    Carrito de la venta en curso.

    Responsabilidades:
    - Agregar/ajustar/eliminar líneas
    - Mantener los parámetros de cobro pendientes
    - Exponer subtotal, descuento, total y vuelto para la pantalla

    Un solo operador escribe en el carrito (una sesión).
    """

    def __init__(self):
        self.items: List[CartItem] = []
        self._reset_checkout()

    def _reset_checkout(self) -> None:
        self.payment_type = PaymentType.CASH
        self.received_amount = 0.0
        self.discount_percentage = 0.0
        self.customer_name = ''
        self.customer_phone = ''
        self.notes = ''

    # =========================================================================
    # LÍNEAS
    # =========================================================================

    def _index_of(self, product_id: str) -> Optional[int]:
        for index, item in enumerate(self.items):
            if item.product.id == product_id:
                return index
        return None

    def _get_line(self, index: int) -> CartItem:
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(self.items):
            raise IndexError(f"Ítem {index} no existe en el carrito")
        return self.items[index]

    def add_item(self, product: Product, amount: Optional[float] = None) -> CartItem:
        """
        Agrega un producto al carrito.

        Args:
            product: Producto del catálogo
            amount: Unidades a sumar (por defecto 1) o kilos a sumar para
                productos pesables (por defecto 0: la línea queda pendiente
                de peso y debe completarse antes de cobrar)

        Returns:
            La línea creada o actualizada

        Raises:
            ValueError: Producto inactivo o cantidad inválida
        """
        if not product.is_active:
            raise ValueError(f"El producto '{product.name}' no está activo")

        if product.is_weighable:
            weight = _finite(amount or 0.0, "El peso")
            if weight < 0:
                raise ValueError('El peso no puede ser negativo')
        else:
            quantity = 1 if amount is None else _finite(amount, "La cantidad")
            if isinstance(quantity, float) and not quantity.is_integer():
                raise ValueError('La cantidad debe ser un número entero')
            quantity = int(quantity)
            if quantity <= 0:
                raise ValueError('Cantidad debe ser mayor a 0')

        index = self._index_of(product.id)
        if index is None:
            if product.is_weighable:
                item = WeighableItem(product=product, weight=_round_weight(weight))
            else:
                item = UnitItem(product=product, quantity=quantity)
            self.items.append(item)
            return item

        existing = self.items[index]
        # Precio vigente del catálogo
        existing.product = product
        if isinstance(existing, WeighableItem):
            existing.weight = _round_weight(existing.weight + weight)
        else:
            existing.quantity += quantity
        return existing

    def adjust_item(self, index: int, delta: int) -> Optional[CartItem]:
        """
        Control +/- de una línea.

        Args:
            index: Posición de la línea
            delta: Pasos a sumar/restar. Unidades: 1 unidad por paso.
                Pesables: WEIGHT_STEP_KG por paso.

        Returns:
            La línea actualizada, o None si se eliminó por llegar a <= 0

        Raises:
            IndexError: Si la línea no existe
            ValueError: Si el paso no es entero para un ítem por unidades
        """
        item = self._get_line(index)
        if isinstance(item, WeighableItem):
            item.weight = _round_weight(item.weight + _finite(delta, "El paso") * WEIGHT_STEP_KG)
        else:
            if not _finite(delta, "El paso").is_integer():
                raise ValueError('El paso debe ser un número entero de unidades')
            item.quantity += int(delta)

        if item.amount <= 0:
            del self.items[index]
            return None
        return item

    def set_weight(self, index: int, weight: float) -> Optional[CartItem]:
        """
        Informa el peso leído de la balanza para una línea pesable.

        Returns:
            La línea actualizada, o None si el peso es <= 0 (se elimina)
        """
        item = self._get_line(index)
        if not isinstance(item, WeighableItem):
            raise ValueError(f"'{item.product.name}' no es un producto pesable")
        item.weight = _round_weight(_finite(weight, "El peso"))
        if item.weight <= 0:
            del self.items[index]
            return None
        return item

    def remove_item(self, index: int) -> CartItem:
        """Elimina la línea sin condiciones."""
        self._get_line(index)
        return self.items.pop(index)

    def clear(self) -> None:
        """Nueva venta: vacía el carrito y reinicia los parámetros de cobro."""
        self.items = []
        self._reset_checkout()

    # =========================================================================
    # PARÁMETROS DE COBRO
    # =========================================================================

    def set_checkout(
        self,
        payment_type: Any = None,
        received_amount: Any = None,
        discount_percentage: Any = None,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None
    ) -> None:
        """
        Actualiza los parámetros de cobro; los argumentos en None no cambian.

        Raises:
            ValueError: Forma de pago inválida, montos negativos o
                porcentaje fuera de [0, 100]
        """
        if payment_type is not None:
            self.payment_type = PaymentType.parse(payment_type)
        if received_amount is not None:
            received = _finite(received_amount, "El valor recibido")
            if received < 0:
                raise ValueError('El valor recibido no puede ser negativo')
            self.received_amount = received
        if discount_percentage is not None:
            pct = _finite(discount_percentage, "El descuento")
            if not 0 <= pct <= 100:
                raise ValueError('El descuento debe estar entre 0 y 100%')
            self.discount_percentage = pct
        if customer_name is not None:
            self.customer_name = customer_name.strip()
        if customer_phone is not None:
            self.customer_phone = customer_phone.strip()
        if notes is not None:
            self.notes = notes.strip()

    # =========================================================================
    # TOTALES
    # =========================================================================

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def items_count(self) -> int:
        return len(self.items)

    @property
    def subtotal(self) -> float:
        return pricing.cart_subtotal(self.items)

    @property
    def discount_amount(self) -> float:
        return pricing.discount_amount(self.items, self.discount_percentage)

    @property
    def total(self) -> float:
        return pricing.total(self.items, self.discount_percentage)

    @property
    def change_due(self) -> float:
        """Vuelto (solo efectivo; en otras formas de pago es 0)."""
        if self.payment_type != PaymentType.CASH:
            return 0.0
        return pricing.change_due(self.received_amount, self.total)

    def summary(self) -> Dict[str, Any]:
        """
        Carrito con totales calculados, para la pantalla.

        Returns:
            Dict con items, totales y parámetros de cobro
        """
        lines = []
        for index, item in enumerate(self.items):
            line = {
                'indice': index,
                'product_id': item.product.id,
                'nombre': item.product.name,
                'is_weighable': item.is_weighable,
                'subtotal': pricing.round_money(pricing.line_subtotal(item)),
                'discount': item.discount,
            }
            if isinstance(item, WeighableItem):
                line['weight'] = item.weight
                line['grams'] = item.grams
                line['price_per_kg'] = item.product.price_per_kg
            else:
                line['quantity'] = item.quantity
                line['unit_price'] = item.product.unit_price
            lines.append(line)

        return {
            'items': lines,
            'items_count': self.items_count,
            'subtotal': pricing.round_money(self.subtotal),
            'discount_percentage': self.discount_percentage,
            'discount_amount': pricing.round_money(self.discount_amount),
            'total': pricing.round_money(self.total),
            'payment_type': self.payment_type.value,
            'payment_label': self.payment_type.label,
            'received_amount': self.received_amount,
            'change_due': pricing.round_money(self.change_due),
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'notes': self.notes,
        }

    # =========================================================================
    # SERIALIZACIÓN (sesión de Flask)
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Forma compacta para guardar en session['carrito']."""
        return {
            'items': [item.to_dict() for item in self.items],
            'payment_type': self.payment_type.value,
            'received_amount': self.received_amount,
            'discount_percentage': self.discount_percentage,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'notes': self.notes,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], catalog: ICatalog) -> 'Cart':
        """
        Reconstruye el carrito desde la sesión usando precios vigentes.
        Las líneas cuyo producto ya no existe se descartan.
        """
        cart = cls()
        if not data:
            return cart

        for raw in data.get('items', []):
            product = catalog.get_product(raw.get('product_id'))
            if product is None:
                logger.warning("Producto %s ya no existe; se quita del carrito", raw.get('product_id'))
                continue
            amount = raw.get('weight') if product.is_weighable else raw.get('quantity', 1)
            cart.items.append(make_cart_item(product, amount, raw.get('discount', 0.0)))

        cart.payment_type = PaymentType.parse(data.get('payment_type', PaymentType.CASH.value))
        cart.received_amount = float(data.get('received_amount') or 0.0)
        cart.discount_percentage = float(data.get('discount_percentage') or 0.0)
        cart.customer_name = data.get('customer_name', '') or ''
        cart.customer_phone = data.get('customer_phone', '') or ''
        cart.notes = data.get('notes', '') or ''
        return cart
