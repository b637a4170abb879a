# ==============================================================================
# ERRORES DEL MOTOR DE VENTAS
# ==============================================================================
# Cada fallo tiene su propia excepción con un código estable y un mensaje
# legible para el operador. La capa HTTP los traduce con to_payload().
#
#   Validación (sin escrituras, requieren corrección del operador):
#     RegisterClosed, EmptyCart, IncompleteCartItem, InsufficientPayment
#   Persistencia:
#     PersistenceError   -> falló el almacenamiento, estado bien definido
#     InconsistentState  -> cabecera huérfana, requiere reconciliación
# ==============================================================================

from typing import Any, Dict, List, Optional


class StoreError(Exception):
    """Fallo de bajo nivel del almacenamiento (lo lanzan los stores)."""
    pass


class StoreConflict(StoreError):
    """El registro cambió entre la lectura y una actualización condicional."""
    pass


class RollbackFailed(StoreError):
    """
    Una transacción falló y no se pudieron restaurar todas sus tablas.

    Attributes:
        original: Excepción que abortó la transacción
        tables: Tablas que quedaron sin restaurar
    """

    def __init__(self, original: BaseException, tables: List[str]):
        self.original = original
        self.tables = tables
        super().__init__(f"No se pudo revertir la transacción (tablas: {', '.join(tables)}): {original}")


class SaleError(Exception):
    """Base de todos los errores del motor de ventas."""

    code = 'SALE_ERROR'
    http_status = 400
    default_message = 'Error al procesar la venta'

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class RegisterClosed(SaleError):
    """No hay caja abierta: la venta se rechaza antes de cualquier escritura."""
    code = 'REGISTER_CLOSED'
    http_status = 409
    default_message = 'No se puede finalizar la venta sin una caja abierta'


class EmptyCart(SaleError):
    code = 'EMPTY_CART'
    default_message = 'Agregue al menos un ítem a la venta'


class IncompleteCartItem(SaleError):
    """Línea pesable agregada sin peso (o con cantidad cero)."""
    code = 'INCOMPLETE_ITEM'
    default_message = 'Hay ítems sin cantidad o peso en el carrito'

    def __init__(self, product_name: str = ''):
        self.product_name = product_name
        message = None
        if product_name:
            message = f"Informe el peso o la cantidad de '{product_name}' antes de finalizar"
        super().__init__(message)


class InsufficientPayment(SaleError):
    code = 'INSUFFICIENT_PAYMENT'
    default_message = 'El valor recibido es menor que el total de la venta'

    def __init__(self, received: float = 0.0, total: float = 0.0):
        self.received = received
        self.total = total
        super().__init__(
            f"El valor recibido (R$ {received:.2f}) es menor que el total de la venta (R$ {total:.2f})"
        )


class SaleNotFound(SaleError):
    code = 'SALE_NOT_FOUND'
    http_status = 404
    default_message = 'Venta no encontrada'


class SaleAlreadyCancelled(SaleError):
    """Una venta anulada no puede volver a anularse (ni reactivarse)."""
    code = 'SALE_ALREADY_CANCELLED'
    http_status = 409
    default_message = 'La venta ya está anulada'


class PersistenceError(SaleError):
    """
    Envuelve un fallo del almacenamiento.

    Attributes:
        original: Excepción original del store
    """
    code = 'PERSISTENCE_ERROR'
    http_status = 503
    default_message = 'Error al guardar en el almacenamiento. Intente nuevamente.'

    def __init__(self, message: Optional[str] = None, original: Optional[BaseException] = None):
        self.original = original
        if message is None and original is not None:
            message = f"{self.default_message} ({original})"
        super().__init__(message)


class InconsistentState(SaleError):
    """
    La eliminación compensatoria falló: quedó una cabecera de venta sin ítems.
    Debe reconciliarse fuera de línea; nunca se silencia.

    Attributes:
        sale_id: ID de la cabecera huérfana
        original: Error original al insertar los ítems
        cleanup_error: Error de la eliminación compensatoria
    """
    code = 'INCONSISTENT_STATE'
    http_status = 500

    def __init__(self, sale_id: str, original: BaseException, cleanup_error: BaseException):
        self.sale_id = sale_id
        self.original = original
        self.cleanup_error = cleanup_error
        super().__init__(
            f"Venta {sale_id} quedó sin ítems y no pudo revertirse. "
            f"Requiere reconciliación (ítems: {original}; limpieza: {cleanup_error})"
        )


def to_payload(error: Exception) -> Dict[str, Any]:
    """
    Convierte cualquier excepción en el JSON de error de la API.

    Returns:
        Dict con ok=False, code, error (mensaje legible) y extras del error
    """
    if isinstance(error, SaleError):
        payload = {'ok': False, 'code': error.code, 'error': error.message}
        if isinstance(error, InconsistentState):
            payload['sale_id'] = error.sale_id
        return payload
    if isinstance(error, (ValueError, IndexError)):
        return {'ok': False, 'code': 'VALIDATION_ERROR', 'error': str(error)}
    return {'ok': False, 'code': 'INTERNAL_ERROR', 'error': f"Error interno: {error}"}


def http_status_for(error: Exception) -> int:
    """Código HTTP asociado a una excepción."""
    if isinstance(error, SaleError):
        return error.http_status
    if isinstance(error, (ValueError, IndexError)):
        return 400
    return 500
