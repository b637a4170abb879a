import math
import threading
import uuid

from flask import Blueprint, Flask, current_app, request, session
from werkzeug.exceptions import BadRequest, HTTPException

from app_pdv.app_container import AppContainer
from app_pdv.config import AppConfig
from app_pdv.errors import SaleError, SaleNotFound, http_status_for, to_payload
from app_pdv.logger import get_logger, setup_logger
from app_pdv.models.entities import SaleFilters
from app_pdv.performance_logger import init_profiling, set_enabled
from app_pdv.repositories import CATEGORIES
from app_pdv.services import Cart

logger = get_logger(__name__)

CONTAINER_KEY = 'app_pdv'

api = Blueprint('api', __name__, url_prefix='/api')

# ═══════════════════════════════════════════════════════════════════════════
# COBROS EN CURSO
# ═══════════════════════════════════════════════════════════════════════════
# Un mismo carrito (sesión) no puede confirmarse dos veces en paralelo:
# el segundo intento recibe 409 mientras el primero escribe.
# ═══════════════════════════════════════════════════════════════════════════

_checkouts_lock = threading.Lock()
_checkouts_in_flight = set()


def _begin_checkout(cart_id):
    with _checkouts_lock:
        if cart_id in _checkouts_in_flight:
            return False
        _checkouts_in_flight.add(cart_id)
        return True


def _end_checkout(cart_id):
    with _checkouts_lock:
        _checkouts_in_flight.discard(cart_id)


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def _container() -> AppContainer:
    return current_app.extensions[CONTAINER_KEY]


def _json_body(required=True):
    data = request.get_json(silent=True)
    if data is None:
        if required:
            raise BadRequest("Datos no recibidos o formato inválido")
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Se esperaba un objeto JSON")
    return data


def to_int(value, field):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{field}' debe ser un número entero")
    if not number.is_integer():
        raise ValueError(f"'{field}' debe ser un número entero")
    return int(number)


def to_float(value, field):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{field}' debe ser un número")
    if not math.isfinite(number):
        raise ValueError(f"'{field}' debe ser un número finito")
    return number


def to_bool(value):
    if value is None or value == '':
        return None
    return str(value).strip().lower() in ('1', 'true', 'si', 'sí', 'yes')


def _cart_id():
    if 'cart_id' not in session:
        session['cart_id'] = uuid.uuid4().hex
    return session['cart_id']


def _load_cart() -> Cart:
    return Cart.from_dict(session.get('carrito'), _container().product_repo)


def _save_cart(cart: Cart):
    session['carrito'] = cart.to_dict()
    session.modified = True


def _operator_id(data=None):
    """Operador del request (body) o de la sesión; el del body queda en sesión."""
    operator_id = (data or {}).get('operador_id')
    if operator_id:
        session['operator_id'] = operator_id
        return operator_id
    return session.get('operator_id')


def _cart_response(cart: Cart, mensaje=None):
    response = {"ok": True, "carrito": cart.summary()}
    if mensaje:
        response["mensaje"] = mensaje
    return response


def _commit_cart(cart: Cart, mensaje=None):
    """Respuesta del carrito; se guarda en sesión solo si se pudo armar."""
    response = _cart_response(cart, mensaje)
    _save_cart(cart)
    return response


# ═══════════════════════════════════════════════════════════════════════════
# API: CATÁLOGO
# ═══════════════════════════════════════════════════════════════════════════

@api.route("/productos", methods=["GET"])
def api_productos():
    """Productos activos, filtrables por texto (q) y categoría."""
    q = request.args.get('q', '')
    categoria = request.args.get('categoria', 'all')
    products = _container().product_repo.search(q, categoria)
    productos = []
    for product in products:
        item = product.to_dict()
        item['price_per_kg'] = product.price_per_kg
        productos.append(item)
    return {"ok": True, "productos": productos, "total": len(productos), "categorias": CATEGORIES}


@api.route("/operadores", methods=["GET"])
def api_operadores():
    """Operadores activos (filtro del historial de ventas)."""
    operators = _container().operator_repo.get_active_operators()
    return {"ok": True, "operadores": [o.to_dict() for o in operators]}


# ═══════════════════════════════════════════════════════════════════════════
# API: CARRITO (session-based)
# ═══════════════════════════════════════════════════════════════════════════

@api.route("/carrito", methods=["GET"])
def api_carrito_ver():
    """Ver contenido actual del carrito con totales."""
    return _cart_response(_load_cart())


@api.route("/carrito/agregar", methods=["POST"])
def api_carrito_agregar():
    """
    Agregar producto al carrito (almacenado en session).
    Espera JSON con: producto_id y, opcionalmente, cantidad (unidades)
    o peso (kg, productos pesables).
    """
    data = _json_body()
    producto_id = data.get("producto_id")
    if not producto_id:
        return {"ok": False, "code": "VALIDATION_ERROR", "error": "ID de producto inválido"}, 400

    product = _container().product_repo.get_product(str(producto_id))
    if product is None:
        return {"ok": False, "code": "PRODUCT_NOT_FOUND", "error": "Producto no encontrado"}, 404

    if product.is_weighable:
        amount = to_float(data["peso"], "peso") if data.get("peso") is not None else None
    else:
        amount = to_int(data["cantidad"], "cantidad") if data.get("cantidad") is not None else None

    cart = _load_cart()
    cart.add_item(product, amount)
    return _commit_cart(cart, f"{product.name} agregado al carrito")


@api.route("/carrito/ajustar", methods=["POST"])
def api_carrito_ajustar():
    """Control +/- de una línea (indice, delta)."""
    data = _json_body()
    index = to_int(data.get("indice"), "indice")
    delta = to_int(data.get("delta"), "delta")

    cart = _load_cart()
    item = cart.adjust_item(index, delta)
    return _commit_cart(cart, None if item else "Ítem eliminado del carrito")


@api.route("/carrito/peso", methods=["POST"])
def api_carrito_peso():
    """Peso leído de la balanza para una línea pesable (indice, peso en kg)."""
    data = _json_body()
    index = to_int(data.get("indice"), "indice")
    weight = to_float(data.get("peso"), "peso")

    cart = _load_cart()
    item = cart.set_weight(index, weight)
    return _commit_cart(cart, None if item else "Ítem eliminado del carrito")


@api.route("/carrito/eliminar", methods=["POST"])
def api_carrito_eliminar():
    """Eliminar una línea del carrito."""
    data = _json_body()
    index = to_int(data.get("indice"), "indice")

    cart = _load_cart()
    removed = cart.remove_item(index)
    return _commit_cart(cart, f"{removed.product.name} eliminado del carrito")


@api.route("/carrito/limpiar", methods=["POST"])
def api_carrito_limpiar():
    """Nueva venta: vacía el carrito y los datos de cobro."""
    cart = Cart()
    return _commit_cart(cart, "Carrito vaciado")


@api.route("/carrito/pago", methods=["POST"])
def api_carrito_pago():
    """
    Datos de cobro pendientes.
    JSON: payment_type, received_amount, discount_percentage,
    customer_name, customer_phone, notes (todos opcionales)
    """
    data = _json_body()
    cart = _load_cart()
    cart.set_checkout(
        payment_type=data.get("payment_type"),
        received_amount=data.get("received_amount"),
        discount_percentage=data.get("discount_percentage"),
        customer_name=data.get("customer_name"),
        customer_phone=data.get("customer_phone"),
        notes=data.get("notes"),
    )
    return _commit_cart(cart)


@api.route("/carrito/confirmar", methods=["POST"])
def api_carrito_confirmar():
    """
    Confirmar carrito y crear la venta.
    SIEMPRE devuelve JSON. Acepta opcionalmente los mismos campos que
    /carrito/pago y operador_id.

    El carrito solo se vacía si la venta quedó registrada con sus ítems.
    """
    data = _json_body(required=False)
    cart_id = _cart_id()
    if not _begin_checkout(cart_id):
        return {
            "ok": False,
            "code": "CHECKOUT_IN_PROGRESS",
            "error": "Ya hay un cobro en curso para este carrito"
        }, 409

    try:
        cart = _load_cart()
        cart.set_checkout(
            payment_type=data.get("payment_type"),
            received_amount=data.get("received_amount"),
            discount_percentage=data.get("discount_percentage"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            notes=data.get("notes"),
        )
        _save_cart(cart)

        sale = _container().sales_service.checkout(cart, _operator_id(data))

        # Limpiar carrito solo si la venta fue exitosa
        _save_cart(cart)
    finally:
        _end_checkout(cart_id)

    return {
        "ok": True,
        "venta": sale.to_dict(),
        "mensaje": f"Venta #{sale.sale_number} registrada"
    }


# ═══════════════════════════════════════════════════════════════════════════
# API: VENTAS
# ═══════════════════════════════════════════════════════════════════════════

@api.route("/ventas", methods=["GET"])
def api_ventas():
    """
    Historial de ventas.
    Query: desde, hasta (YYYY-MM-DD o ISO), operador_id, anuladas (true/false)
    """
    filters = SaleFilters(
        start_date=request.args.get('desde') or None,
        end_date=request.args.get('hasta') or None,
        operator_id=request.args.get('operador_id') or None,
        cancelled=to_bool(request.args.get('anuladas')),
    )
    sales = _container().sales_query_service.list_sales(filters)
    return {"ok": True, "ventas": [s.to_dict() for s in sales], "total": len(sales)}


@api.route("/ventas/<sale_id>", methods=["GET"])
def api_venta_detalle(sale_id):
    sale = _container().sales_query_service.get_sale(sale_id)
    if sale is None:
        raise SaleNotFound(f"Venta {sale_id} no encontrada")
    return {"ok": True, "venta": sale.to_dict()}


@api.route("/ventas/<sale_id>/cancelar", methods=["POST"])
def api_venta_cancelar(sale_id):
    """Anular venta. JSON: motivo, operador_id (opcional)."""
    data = _json_body()
    sale = _container().cancellation_service.cancel_sale(
        sale_id, data.get("motivo", ""), _operator_id(data)
    )
    return {"ok": True, "venta": sale.to_dict(), "mensaje": f"Venta #{sale.sale_number} anulada"}


# ═══════════════════════════════════════════════════════════════════════════
# API: AUDITORÍA
# ═══════════════════════════════════════════════════════════════════════════

@api.route("/auditoria", methods=["GET"])
def api_auditoria():
    """Logs de auditoría. Query: pendientes=true para solo ventas a reconciliar."""
    audit = _container().audit_service
    if to_bool(request.args.get('pendientes')):
        logs = audit.get_pending_reconciliations()
    else:
        logs = audit.get_all_logs()
    return {"ok": True, "logs": logs, "total": len(logs)}


# ═══════════════════════════════════════════════════════════════════════════
# MANEJO DE ERRORES - siempre JSON
# ═══════════════════════════════════════════════════════════════════════════

def _handle_sale_error(error):
    if error.http_status >= 500:
        logger.error("%s: %s", error.code, error.message)
    return to_payload(error), http_status_for(error)


def _handle_validation_error(error):
    return to_payload(error), http_status_for(error)


def _handle_http_error(error):
    return {"ok": False, "code": error.name.upper().replace(' ', '_'), "error": error.description}, error.code


def _handle_unexpected_error(error):
    logger.exception("Error inesperado en %s %s", request.method, request.path)
    return to_payload(error), 500


# ═══════════════════════════════════════════════════════════════════════════
# FACTORY
# ═══════════════════════════════════════════════════════════════════════════

def create_app(config: AppConfig = None, container: AppContainer = None) -> Flask:
    """
    Crea la aplicación Flask del PDV.

    Args:
        config: Configuración (por defecto desde el entorno)
        container: Contenedor de dependencias (por defecto el singleton)
    """
    if config is None:
        config = container.config if container is not None else AppConfig.from_env()
    config.validate()

    setup_logger(config)
    set_enabled(config.enable_profiling)
    if config.uses_default_secret:
        logger.warning("PDV_SECRET_KEY no definida: usando clave de desarrollo")

    app = Flask(__name__)
    app.secret_key = config.secret_key
    app.extensions[CONTAINER_KEY] = container or AppContainer.get_instance(config)

    # Mide rendimiento de rutas y funciones
    init_profiling(app)

    app.register_blueprint(api)

    app.register_error_handler(SaleError, _handle_sale_error)
    app.register_error_handler(ValueError, _handle_validation_error)
    app.register_error_handler(IndexError, _handle_validation_error)
    app.register_error_handler(HTTPException, _handle_http_error)
    app.register_error_handler(Exception, _handle_unexpected_error)

    logger.info("App PDV iniciada (datos en %s)", config.data_dir)
    return app


if __name__ == "__main__":
    cfg = AppConfig.from_env()
    create_app(cfg).run(host=cfg.host, port=cfg.port, debug=cfg.debug)
