# ==============================================================================
# APP PDV - Motor de ventas de punto de venta
# ==============================================================================
# Carrito, cobro (cabecera + ítems sin ventas a medias), anulación e
# historial de ventas, expuestos como API JSON con Flask.
# ==============================================================================

__version__ = "1.0.0"
