# ==============================================================================
# SERVICIO DE VENTAS - Coordinador del cobro
# ==============================================================================
# Convierte el carrito en una venta persistida (cabecera + ítems).
#
# Flujo de create_sale():
#   1. Validaciones (sin escrituras): caja abierta, carrito con ítems,
#      pago suficiente en efectivo
#   2. Insertar cabecera en pdv_sales (el store asigna id y sale_number)
#   3. Insertar los ítems en pdv_sale_items en un solo lote
#   4. Si el lote falla: eliminar la cabecera (compensación). Si la
#      eliminación también falla -> InconsistentState + auditoría.
#
# Si el store soporta transacciones, los pasos 2 y 3 van en una sola
# transacción y no hay compensación. Si la transacción no puede
# revertirse -> InconsistentState + auditoría.
#
# El coordinador nunca reintenta: un reintento repetiría el paso 2.
# ==============================================================================

import math
from typing import Any, Dict, Iterable, List, Optional

from app_pdv.errors import (
    EmptyCart,
    IncompleteCartItem,
    InconsistentState,
    InsufficientPayment,
    PersistenceError,
    RegisterClosed,
    RollbackFailed,
    StoreError,
)
from app_pdv.logger import get_logger
from app_pdv.models.entities import (
    DEFAULT_CHANNEL,
    SALE_ITEMS_TABLE,
    SALES_TABLE,
    CartItem,
    CashRegister,
    PaymentType,
    Sale,
    SaleItem,
)
from app_pdv.performance_logger import profile_function
from app_pdv.repositories.interfaces import IDataStore, IRegisterStatusProvider
from app_pdv.services import pricing
from app_pdv.services.audit_service import AuditService
from app_pdv.services.cart_service import Cart

logger = get_logger(__name__)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class SalesService:
    """
    Servicio de creación de ventas.

    Responsabilidades:
    - Validar las precondiciones del cobro
    - Persistir cabecera e ítems sin dejar ventas a medias
    - Registrar la venta en auditoría
    """

    def __init__(
        self,
        store: IDataStore,
        register_provider: IRegisterStatusProvider,
        audit_service: AuditService = None
    ):
        """
        Inicializa el servicio de ventas.

        Args:
            store: Almacenamiento de ventas e ítems
            register_provider: Fuente del estado de la caja (consultada en cada venta)
            audit_service: Servicio de auditoría (opcional)
        """
        self.store = store
        self.register_provider = register_provider
        self.audit_service = audit_service

    # =========================================================================
    # CREACIÓN DE VENTA
    # =========================================================================

    @profile_function(name="Crear venta")
    def create_sale(
        self,
        cart_items: Iterable[CartItem],
        payment_type: Any,
        received_amount: Any,
        discount_percentage: Any,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None,
        operator_id: Optional[str] = None,
        channel: Optional[str] = None
    ) -> Sale:
        """
        Registra una venta a partir de las líneas del carrito.

        Args:
            cart_items: Líneas del carrito (UnitItem / WeighableItem)
            payment_type: Forma de pago (PaymentType o su valor)
            received_amount: Valor recibido (solo relevante en efectivo)
            discount_percentage: Descuento % sobre el subtotal
            customer_name: Nombre del cliente (opcional)
            customer_phone: Teléfono del cliente (opcional)
            notes: Observaciones (opcional)
            operator_id: Operador que cobra (opcional)
            channel: Canal de venta (por defecto "pdv")

        Returns:
            Sale con id, sale_number e ítems persistidos

        Raises:
            RegisterClosed: No hay caja abierta
            EmptyCart: El carrito está vacío
            IncompleteCartItem: Hay una línea sin cantidad/peso
            InsufficientPayment: Efectivo recibido menor que el total
            PersistenceError: Falló el almacenamiento (nada quedó creado)
            InconsistentState: Quedó una cabecera sin ítems
        """
        register = self._open_register()

        items = list(cart_items or [])
        if not items:
            raise EmptyCart()
        for item in items:
            if not math.isfinite(item.amount) or item.amount <= 0:
                raise IncompleteCartItem(item.product.name)

        payment = PaymentType.parse(payment_type)
        pct = pricing.clamp_percentage(discount_percentage)
        subtotal = pricing.cart_subtotal(items)
        total = pricing.total(items, pct)

        if payment == PaymentType.CASH:
            received = pricing.non_negative(received_amount)
            if pricing.round_money(received) < pricing.round_money(total):
                raise InsufficientPayment(received, total)
            change = pricing.change_due(received, total)
        else:
            # Pago electrónico: se cobra exactamente el total
            received = total
            change = 0.0

        header = Sale(
            channel=channel or DEFAULT_CHANNEL,
            cash_register_id=register.id,
            operator_id=operator_id,
            payment_type=payment,
            subtotal=pricing.round_money(subtotal),
            discount_percentage=pct,
            discount_amount=pricing.round_money(subtotal * pct / 100),
            total_amount=pricing.round_money(total),
            received_amount=pricing.round_money(received),
            change_amount=pricing.round_money(change),
            customer_name=_blank_to_none(customer_name),
            customer_phone=_blank_to_none(customer_phone),
            notes=_blank_to_none(notes),
        )

        if getattr(self.store, 'supports_transactions', False):
            header_row, item_rows = self._persist_in_transaction(header, items, operator_id)
        else:
            header_row, item_rows = self._persist_with_compensation(header, items, operator_id)

        sale = Sale.from_dict(header_row, item_rows)
        logger.info(
            "Venta #%s creada (id=%s, caja=%s, total=%.2f, %s, %d ítems)",
            sale.sale_number, sale.id, sale.cash_register_id,
            sale.total_amount, sale.payment_type.value, len(sale.items)
        )

        if self.audit_service:
            try:
                self.audit_service.log_sale_created(operator_id, sale)
            except Exception:
                logger.exception("No se pudo auditar la venta %s", sale.id)

        return sale

    def checkout(self, cart: Cart, operator_id: Optional[str] = None) -> Sale:
        """
        Cobra el carrito con sus parámetros de cobro pendientes.
        Si la venta se crea, el carrito queda vacío para la próxima venta;
        si falla, el carrito no cambia.
        """
        sale = self.create_sale(
            cart.items,
            cart.payment_type,
            cart.received_amount,
            cart.discount_percentage,
            customer_name=cart.customer_name,
            customer_phone=cart.customer_phone,
            notes=cart.notes,
            operator_id=operator_id,
        )
        cart.clear()
        return sale

    # =========================================================================
    # AUXILIARES
    # =========================================================================

    def _open_register(self) -> CashRegister:
        """Caja abierta actual (lectura fresca en cada cobro)."""
        try:
            register = self.register_provider.current_register()
        except StoreError as e:
            raise PersistenceError(original=e) from e

        if register is None or not register.is_open or not register.id:
            logger.warning("Cobro rechazado: no hay caja abierta")
            raise RegisterClosed()
        return register

    @staticmethod
    def _build_item_rows(sale_id: str, items: List[CartItem]) -> List[Dict[str, Any]]:
        """Una fila de pdv_sale_items por línea del carrito."""
        rows = []
        for item in items:
            product = item.product
            if item.is_weighable:
                sale_item = SaleItem(
                    sale_id=sale_id,
                    product_id=product.id,
                    product_name=product.name,
                    quantity=0,
                    weight=item.weight,
                    price_per_gram=product.price_per_gram,
                    subtotal=pricing.round_money(pricing.line_subtotal(item)),
                    discount=item.discount,
                )
            else:
                sale_item = SaleItem(
                    sale_id=sale_id,
                    product_id=product.id,
                    product_name=product.name,
                    quantity=item.quantity,
                    unit_price=product.unit_price,
                    subtotal=pricing.round_money(pricing.line_subtotal(item)),
                    discount=item.discount,
                )
            rows.append(sale_item.to_dict())
        return rows

    def _persist_in_transaction(self, header: Sale, items: List[CartItem], operator_id: Optional[str]):
        header_row = None
        try:
            with self.store.transaction():
                header_row = self.store.insert(SALES_TABLE, header.header_dict())
                item_rows = self.store.batch_insert(
                    SALE_ITEMS_TABLE, self._build_item_rows(header_row['id'], items)
                )
        except RollbackFailed as e:
            if header_row is None:
                raise PersistenceError(original=e.original) from e
            raise self._report_orphan(header_row['id'], e.original, e, operator_id) from e.original
        except Exception as e:
            logger.error("Error al guardar la venta (transacción revertida): %s", e)
            raise PersistenceError(original=e) from e
        return header_row, item_rows

    def _persist_with_compensation(self, header: Sale, items: List[CartItem], operator_id: Optional[str]):
        try:
            header_row = self.store.insert(SALES_TABLE, header.header_dict())
        except StoreError as e:
            logger.error("Error al guardar la cabecera de la venta: %s", e)
            raise PersistenceError(original=e) from e

        sale_id = header_row['id']
        try:
            item_rows = self.store.batch_insert(SALE_ITEMS_TABLE, self._build_item_rows(sale_id, items))
        except Exception as items_error:
            raise self._compensate(sale_id, items_error, operator_id) from items_error
        return header_row, item_rows

    def _compensate(self, sale_id: str, items_error: Exception, operator_id: Optional[str]) -> Exception:
        """
        Elimina la cabecera cuyos ítems no se pudieron guardar.

        Returns:
            PersistenceError si la cabecera se eliminó (envuelve el error original),
            InconsistentState si no se pudo eliminar
        """
        logger.warning("Falló el guardado de ítems de la venta %s: %s. Revirtiendo cabecera.", sale_id, items_error)
        try:
            deleted = self.store.delete(SALES_TABLE, sale_id)
        except Exception as cleanup_error:
            return self._report_orphan(sale_id, items_error, cleanup_error, operator_id)

        if not deleted:
            logger.warning("La cabecera %s ya no existía al revertir", sale_id)
        return PersistenceError(original=items_error)

    def _report_orphan(
        self,
        sale_id: str,
        items_error: BaseException,
        cleanup_error: BaseException,
        operator_id: Optional[str]
    ) -> InconsistentState:
        """Cabecera que quedó sin ítems y no se pudo deshacer: log, auditoría y error."""
        logger.error(
            "VENTA HUÉRFANA %s: no se pudo eliminar la cabecera (%s). Requiere reconciliación.",
            sale_id, cleanup_error
        )
        if self.audit_service:
            try:
                self.audit_service.log_orphan_sale(operator_id, sale_id, items_error, cleanup_error)
            except Exception:
                logger.exception("No se pudo auditar la venta huérfana %s", sale_id)
        return InconsistentState(sale_id, items_error, cleanup_error)
