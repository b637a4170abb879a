# ==============================================================================
# MODELO DE PRECIOS
# ==============================================================================
# Funciones puras (sin efectos) para subtotales, descuento, total y vuelto.
# Nunca lanzan errores: precios negativos, ausentes o no finitos valen 0 y el porcentaje
# de descuento se limita a [0, 100].
#
# Los valores NO se redondean aquí; round_money() se aplica solo al persistir.
# ==============================================================================

import math
from typing import Any, Iterable

from app_pdv.models.entities import CartItem

# Gramos por kilo: el peso se guarda en kg y el precio es por gramo
GRAMS_PER_KG = 1000


def non_negative(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) and number > 0 else 0.0


def clamp_percentage(pct: Any) -> float:
    """Porcentaje de descuento limitado a [0, 100]."""
    try:
        pct = float(pct)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(pct):
        return 0.0
    return min(100.0, max(0.0, pct))


def line_subtotal(item: CartItem) -> float:
    """
    Subtotal de una línea.

    Unidades: quantity * unit_price
    Pesable:  weight_kg * price_per_gram * 1000
    """
    product = item.product
    if item.is_weighable:
        return non_negative(item.weight) * non_negative(product.price_per_gram) * GRAMS_PER_KG
    return non_negative(item.quantity) * non_negative(product.unit_price)


def cart_subtotal(items: Iterable[CartItem]) -> float:
    return sum((line_subtotal(item) for item in items), 0.0)


def discount_amount(items: Iterable[CartItem], pct: Any) -> float:
    return cart_subtotal(items) * clamp_percentage(pct) / 100


def total(items: Iterable[CartItem], pct: Any) -> float:
    """Total a pagar: subtotal - descuento."""
    items = list(items)
    subtotal = cart_subtotal(items)
    return subtotal - subtotal * clamp_percentage(pct) / 100


def change_due(received: Any, total_amount: Any) -> float:
    """Vuelto: max(0, recibido - total). Nunca negativo."""
    try:
        diff = float(received) - float(total_amount)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, diff)


def round_money(value: float) -> float:
    """Redondeo monetario a 2 decimales."""
    return round(float(value), 2)
