# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del PDV
# ==============================================================================
# Entidades del dominio usando dataclasses, independientes del almacenamiento
# (JSON local ahora, base remota después).
# ==============================================================================

from .entities import (
    # Catálogo
    Product,
    Operator,
    CashRegister,

    # Carrito
    CartItem,
    UnitItem,
    WeighableItem,
    make_cart_item,

    # Ventas
    Sale,
    SaleItem,
    SaleFilters,
    PaymentType,
    PAYMENT_TYPE_LABELS,
    DEFAULT_CHANNEL,

    # Tablas
    SALES_TABLE,
    SALE_ITEMS_TABLE,
    PRODUCTS_TABLE,
    OPERATORS_TABLE,
    CASH_REGISTERS_TABLE,
    AUDIT_TABLE,
)

__all__ = [
    'Product',
    'Operator',
    'CashRegister',

    'CartItem',
    'UnitItem',
    'WeighableItem',
    'make_cart_item',

    'Sale',
    'SaleItem',
    'SaleFilters',
    'PaymentType',
    'PAYMENT_TYPE_LABELS',
    'DEFAULT_CHANNEL',

    'SALES_TABLE',
    'SALE_ITEMS_TABLE',
    'PRODUCTS_TABLE',
    'OPERATORS_TABLE',
    'CASH_REGISTERS_TABLE',
    'AUDIT_TABLE',
]
