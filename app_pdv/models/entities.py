# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del PDV (punto de venta).
# Diseñadas para ser independientes del mecanismo de persistencia.
#
# Los ítems del carrito son un tipo variante: UnitItem (por unidades) o
# WeighableItem (por peso). Nunca existen ambas cantidades a la vez.
# ==============================================================================

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Union
from enum import Enum


# ==============================================================================
# ENUMERACIONES Y CONSTANTES
# ==============================================================================

class PaymentType(str, Enum):
    """Formas de pago aceptadas (valores persistidos tal cual en pdv_sales)."""
    CASH = "dinheiro"
    PIX = "pix"
    CREDIT_CARD = "cartao_credito"
    DEBIT_CARD = "cartao_debito"
    VOUCHER = "voucher"

    @property
    def label(self) -> str:
        return PAYMENT_TYPE_LABELS[self]

    @classmethod
    def parse(cls, value: Any) -> 'PaymentType':
        """
        Convierte un valor crudo (str o PaymentType) a PaymentType.

        Raises:
            ValueError: Si el valor no es una forma de pago válida
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            raise ValueError(f"Forma de pago inválida: {value}")


PAYMENT_TYPE_LABELS = {
    PaymentType.CASH: "Dinheiro",
    PaymentType.PIX: "PIX",
    PaymentType.CREDIT_CARD: "Cartão Crédito",
    PaymentType.DEBIT_CARD: "Cartão Débito",
    PaymentType.VOUCHER: "Voucher",
}

# Canal por defecto de las ventas registradas en caja
DEFAULT_CHANNEL = "pdv"

# Nombres de tablas en el almacenamiento
SALES_TABLE = "pdv_sales"
SALE_ITEMS_TABLE = "pdv_sale_items"
PRODUCTS_TABLE = "pdv_products"
OPERATORS_TABLE = "pdv_operators"
CASH_REGISTERS_TABLE = "pdv_cash_registers"
AUDIT_TABLE = "pdv_audit_log"


def _to_float(value: Any, default: float = 0.0) -> float:
    """Convierte a float tolerando None y basura."""
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


# ==============================================================================
# CATÁLOGO
# ==============================================================================

@dataclass
class Product:
    """
    Producto del catálogo (solo lectura para el motor de ventas).

    Attributes:
        id: Identificador del producto
        code: Código interno / de barras
        name: Nombre visible
        category: Categoría (acai, bebidas, ...)
        is_weighable: True si se vende por peso
        unit_price: Precio por unidad (productos no pesables)
        price_per_gram: Precio por gramo (productos pesables)
        is_active: Si está disponible para la venta
    """
    id: str
    name: str
    code: str = ''
    category: str = ''
    is_weighable: bool = False
    unit_price: Optional[float] = None
    price_per_gram: Optional[float] = None
    is_active: bool = True

    @property
    def price_per_kg(self) -> float:
        """Precio por kilo, como se muestra en pantalla."""
        return max(0.0, _to_float(self.price_per_gram)) * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'category': self.category,
            'is_weighable': self.is_weighable,
            'unit_price': self.unit_price,
            'price_per_gram': self.price_per_gram,
            'is_active': self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        """Crea instancia desde diccionario."""
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            code=data.get('code', '') or '',
            category=data.get('category', '') or '',
            is_weighable=bool(data.get('is_weighable', False)),
            unit_price=data.get('unit_price'),
            price_per_gram=data.get('price_per_gram'),
            is_active=bool(data.get('is_active', True)),
        )


@dataclass
class Operator:
    """Operador de caja."""
    id: str
    name: str
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Operator':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            is_active=bool(data.get('is_active', True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'is_active': self.is_active}


@dataclass
class CashRegister:
    """
    Sesión de caja (externa, solo lectura).

    Attributes:
        id: Identificador de la sesión de caja
        is_open: True mientras la caja está abierta
        opened_at: Timestamp ISO de apertura
    """
    id: str
    is_open: bool = False
    opened_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CashRegister':
        status = data.get('status')
        is_open = data.get('is_open')
        if is_open is None:
            is_open = status == 'open'
        return cls(
            id=data.get('id', ''),
            is_open=bool(is_open),
            opened_at=data.get('opened_at'),
        )


# ==============================================================================
# ÍTEMS DEL CARRITO (tipo variante)
# ==============================================================================

@dataclass
class UnitItem:
    """
    Línea vendida por unidades: subtotal = quantity * unit_price.

    Attributes:
        product: Producto referenciado (no pesable)
        quantity: Cantidad entera de unidades
        discount: Descuento monetario de la línea
    """
    product: Product
    quantity: int = 1
    discount: float = 0.0

    is_weighable = False

    @property
    def amount(self) -> float:
        """Cantidad autoritativa de la línea."""
        return self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product.id,
            'quantity': self.quantity,
            'discount': self.discount,
        }


@dataclass
class WeighableItem:
    """
    Línea vendida por peso: subtotal = weight * price_per_gram * 1000.

    Attributes:
        product: Producto referenciado (pesable)
        weight: Peso en kilogramos
        discount: Descuento monetario de la línea
    """
    product: Product
    weight: float = 0.0
    discount: float = 0.0

    is_weighable = True

    @property
    def amount(self) -> float:
        return self.weight

    @property
    def grams(self) -> int:
        """Peso en gramos, como se imprime en la boleta."""
        return int(round(self.weight * 1000))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product.id,
            'weight': self.weight,
            'discount': self.discount,
        }


CartItem = Union[UnitItem, WeighableItem]


def make_cart_item(product: Product, amount: Optional[float] = None, discount: float = 0.0) -> CartItem:
    """
    Crea la variante correcta de ítem según product.is_weighable.

    Args:
        product: Producto del catálogo
        amount: Unidades (no pesable, por defecto 1) o kilos (pesable, por defecto 0)
        discount: Descuento de la línea

    Returns:
        UnitItem o WeighableItem
    """
    if product.is_weighable:
        return WeighableItem(product=product, weight=float(amount or 0.0), discount=discount)
    return UnitItem(product=product, quantity=int(amount if amount is not None else 1), discount=discount)


# ==============================================================================
# ENTIDADES DE VENTA
# ==============================================================================

@dataclass
class SaleItem:
    """
    Ítem persistido de una venta. Copia la línea del carrito al momento del cobro.

    Attributes:
        sale_id: ID de la venta a la que pertenece
        product_id: ID del producto
        product_name: Nombre del producto al momento de la venta
        quantity: Unidades (0 para ítems pesables)
        weight: Kilos (None para ítems por unidad)
        unit_price: Precio unitario aplicado
        price_per_gram: Precio por gramo aplicado
        subtotal: Total de la línea
        discount: Descuento de la línea
    """
    sale_id: str
    product_id: str
    product_name: str = ''
    quantity: int = 0
    weight: Optional[float] = None
    unit_price: Optional[float] = None
    price_per_gram: Optional[float] = None
    subtotal: float = 0.0
    discount: float = 0.0
    id: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia (sin campos de storage vacíos)."""
        d = {
            'sale_id': self.sale_id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'weight': self.weight,
            'unit_price': self.unit_price,
            'price_per_gram': self.price_per_gram,
            'subtotal': self.subtotal,
            'discount': self.discount,
        }
        if self.id is not None:
            d['id'] = self.id
        if self.created_at is not None:
            d['created_at'] = self.created_at
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SaleItem':
        """Crea instancia desde diccionario."""
        return cls(
            id=data.get('id'),
            sale_id=data.get('sale_id', ''),
            product_id=data.get('product_id', ''),
            product_name=data.get('product_name', ''),
            quantity=int(data.get('quantity') or 0),
            weight=data.get('weight'),
            unit_price=data.get('unit_price'),
            price_per_gram=data.get('price_per_gram'),
            subtotal=_to_float(data.get('subtotal')),
            discount=_to_float(data.get('discount')),
            created_at=data.get('created_at'),
        )


@dataclass
class Sale:
    """
    Venta registrada en caja.

    Los campos financieros son inmutables después de crear la venta;
    solo los campos de anulación cambian (Activa -> Anulada, una sola vez).
    """
    cash_register_id: str
    payment_type: PaymentType
    subtotal: float = 0.0
    discount_percentage: float = 0.0
    discount_amount: float = 0.0
    total_amount: float = 0.0
    received_amount: float = 0.0
    change_amount: float = 0.0
    channel: str = DEFAULT_CHANNEL
    operator_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    is_cancelled: bool = False
    cancelled_at: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancel_reason: Optional[str] = None
    id: Optional[str] = None
    sale_number: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    operator_name: Optional[str] = None
    items: List[SaleItem] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return not self.is_cancelled

    def header_dict(self) -> Dict[str, Any]:
        """Cabecera de la venta para persistir (sin ítems ni campos de join)."""
        d = {
            'channel': self.channel or DEFAULT_CHANNEL,
            'cash_register_id': self.cash_register_id,
            'operator_id': self.operator_id,
            'payment_type': PaymentType.parse(self.payment_type).value,
            'subtotal': self.subtotal,
            'discount_percentage': self.discount_percentage,
            'discount_amount': self.discount_amount,
            'total_amount': self.total_amount,
            'received_amount': self.received_amount,
            'change_amount': self.change_amount,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'notes': self.notes,
            'is_cancelled': self.is_cancelled,
            'cancelled_at': self.cancelled_at,
            'cancelled_by': self.cancelled_by,
            'cancel_reason': self.cancel_reason,
        }
        for key in ('id', 'sale_number', 'created_at', 'updated_at'):
            value = getattr(self, key)
            if value is not None:
                d[key] = value
        return d

    def to_dict(self) -> Dict[str, Any]:
        """Venta completa (cabecera + ítems) para respuestas JSON."""
        d = self.header_dict()
        d['payment_label'] = PaymentType.parse(self.payment_type).label
        d['operator_name'] = self.operator_name
        d['items'] = [item.to_dict() for item in self.items]
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any], items: List[Dict[str, Any]] = None) -> 'Sale':
        """Crea instancia desde un registro del almacenamiento."""
        return cls(
            id=data.get('id'),
            sale_number=data.get('sale_number'),
            channel=data.get('channel') or DEFAULT_CHANNEL,
            cash_register_id=data.get('cash_register_id', ''),
            operator_id=data.get('operator_id'),
            payment_type=PaymentType.parse(data.get('payment_type', PaymentType.CASH.value)),
            subtotal=_to_float(data.get('subtotal')),
            discount_percentage=_to_float(data.get('discount_percentage')),
            discount_amount=_to_float(data.get('discount_amount')),
            total_amount=_to_float(data.get('total_amount')),
            received_amount=_to_float(data.get('received_amount')),
            change_amount=_to_float(data.get('change_amount')),
            customer_name=data.get('customer_name'),
            customer_phone=data.get('customer_phone'),
            notes=data.get('notes'),
            is_cancelled=bool(data.get('is_cancelled', False)),
            cancelled_at=data.get('cancelled_at'),
            cancelled_by=data.get('cancelled_by'),
            cancel_reason=data.get('cancel_reason'),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            operator_name=data.get('operator_name'),
            items=[SaleItem.from_dict(i) for i in (items if items is not None else data.get('items', []))],
        )


@dataclass
class SaleFilters:
    """
    Filtros opcionales para listar ventas. Todos se combinan con AND;
    un filtro en None no restringe nada.
    """
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    operator_id: Optional[str] = None
    cancelled: Optional[bool] = None
