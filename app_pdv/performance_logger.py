# ==============================================================================
# SISTEMA DE PROFILING INTERNO
# ==============================================================================
# Mide rendimiento de rutas y funciones críticas (crear venta, anular, listar)
# sin afectar la respuesta al operador. Escribe en loggers dedicados:
#   app_pdv.performance            -> todas las rutas
#   app_pdv.performance.slow       -> rutas y funciones lentas
#
# ACTIVAR/DESACTIVAR: PDV_ENABLE_PROFILING (ver config.py)
# ==============================================================================

import time
import logging
import threading
from functools import wraps
from collections import defaultdict

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = True

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

performance_log = logging.getLogger('app_pdv.performance')
slow_log = logging.getLogger('app_pdv.performance.slow')

# Nombres legibles de rutas para los logs
ROUTE_NAMES = {
    'GET /api/productos': 'Listar productos',
    'GET /api/carrito': 'Ver carrito',
    'POST /api/carrito/agregar': 'Agregar al carrito',
    'POST /api/carrito/ajustar': 'Ajustar cantidad',
    'POST /api/carrito/peso': 'Informar peso',
    'POST /api/carrito/eliminar': 'Eliminar del carrito',
    'POST /api/carrito/limpiar': 'Nueva venta',
    'POST /api/carrito/pago': 'Datos de pago',
    'POST /api/carrito/confirmar': 'Finalizar venta',
    'GET /api/ventas': 'Listar ventas',
    'GET /api/ventas/<sale_id>': 'Ver venta',
    'POST /api/ventas/<sale_id>/cancelar': 'Anular venta',
}


def set_enabled(enabled: bool) -> None:
    """Activa o desactiva el profiling en tiempo de ejecución."""
    global ENABLE_PROFILING
    ENABLE_PROFILING = bool(enabled)


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()


def _get_route_name(method, path, rule=None):
    """Nombre legible de la ruta; si no hay match devuelve 'METODO /ruta'."""
    key = f"{method} {path}"
    if key in ROUTE_NAMES:
        return ROUTE_NAMES[key]
    if rule:
        rule_key = f"{method} {rule}"
        if rule_key in ROUTE_NAMES:
            return ROUTE_NAMES[rule_key]
    return key


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ PROFILING DE RUTAS
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    """Registra el tiempo de una ruta."""
    if not ENABLE_PROFILING:
        return
    action_name = _get_route_name(method, path, rule)
    performance_log.info(
        "Acción: %s | Operador: %s | Ruta: %s %s | Tiempo: %.0f ms",
        action_name, user or 'anónimo', method, path, time_ms
    )


def log_slow_route(method, path, rule, time_ms, user=None, level='WARNING'):
    """
    Registra una ruta lenta.

    Args:
        level: 'WARNING' (>300ms) o 'CRITICAL' (>700ms)
    """
    if not ENABLE_PROFILING:
        return
    action_name = _get_route_name(method, path, rule)
    threshold = THRESHOLD_WARNING if level == 'WARNING' else THRESHOLD_CRITICAL
    severity = 'LENTA' if level == 'WARNING' else 'MUY LENTA'
    slow_log.log(
        logging.WARNING if level == 'WARNING' else logging.CRITICAL,
        "Ruta %s: %s | Operador: %s | %s %s | %.0f ms (umbral: %d ms)",
        severity, action_name, user or 'anónimo', method, path, time_ms, threshold
    )


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app):
    """
    Registra hooks before_request/after_request en la app Flask.

    Uso:
        from app_pdv.performance_logger import init_profiling
        init_profiling(app)
    """
    if not ENABLE_PROFILING:
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000
        method = request.method
        path = request.path
        rule = str(request.url_rule) if request.url_rule else path
        user = session.get('operator_id')

        if path.startswith('/static'):
            return response

        log_route_performance(method, path, rule, elapsed, user)

        if elapsed >= THRESHOLD_CRITICAL:
            log_slow_route(method, path, rule, elapsed, user, 'CRITICAL')
        elif elapsed >= THRESHOLD_WARNING:
            log_slow_route(method, path, rule, elapsed, user, 'WARNING')

        return response


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir funciones críticas.

    Uso:
        @profile_function
        def mi_funcion():
            ...

        @profile_function(name="Crear venta")
        def create_sale():
            ...

    La decisión de medir se toma en cada llamada, así set_enabled()
    afecta también a funciones ya decoradas.
    """
    def decorator(fn):
        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not ENABLE_PROFILING:
                return fn(*args, **kwargs)
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000

                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms

                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_slow_function_call(func_name, elapsed_ms)

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_function_call(func_name, time_ms):
    severity = 'CRÍTICO' if time_ms >= THRESHOLD_CRITICAL else 'LENTO'
    slow_log.warning("[%s] Función: %s | Tiempo: %.0f ms", severity, func_name, time_ms)


# ═══════════════════════════════════════════════════════════════════════════
# 4️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Estadísticas de todas las funciones perfiladas.

    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def write_function_stats_report():
    """Escribe un resumen por función (mayor tiempo promedio primero)."""
    if not ENABLE_PROFILING:
        return
    stats = get_function_stats()
    for func_name, data in sorted(stats.items(), key=lambda x: x[1]['avg_time'], reverse=True):
        status = ''
        if data['avg_time'] >= THRESHOLD_CRITICAL:
            status = ' CRÍTICO'
        elif data['avg_time'] >= THRESHOLD_WARNING:
            status = ' LENTO'
        elif data['max_time'] >= THRESHOLD_CRITICAL:
            status = ' PICOS ALTOS'
        performance_log.info(
            "FUNCIÓN: %s%s | Llamadas: %d | Promedio: %.0f ms | Máximo: %.0f ms",
            func_name, status, data['calls'], data['avg_time'], data['max_time']
        )


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)."""
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'ENABLE_PROFILING',
    'set_enabled',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'write_function_stats_report',
    'reset_stats',
]
