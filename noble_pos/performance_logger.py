# ==============================================================================
# INTERNAL PROFILING
# ==============================================================================
# Times routes and key functions without affecting responses.
# Results go to the "noble_pos.performance" logger.
#
# ENABLE/DISABLE: Config.profiling (NOBLE_POS_PROFILING=0)
# ==============================================================================

import threading
import time
from collections import defaultdict
from functools import wraps

from noble_pos.logging_config import get_logger

logger = get_logger("noble_pos.performance")

# Time thresholds (milliseconds)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

# Human readable names for the busiest routes
ROUTE_NAMES = {
    'POST /api/auth/login': 'Sign in',
    'POST /api/auth/logout': 'Sign out',
    'GET /api/dashboard': 'View dashboard',
    'GET /api/products': 'List products',
    'POST /api/products': 'Register product',
    'PUT /api/products/<product_id>': 'Update product',
    'DELETE /api/products/<product_id>': 'Delete product',
    'POST /api/products/<product_id>/sold': 'Mark product sold',
    'POST /api/cart/items': 'Add to cart',
    'POST /api/cart/scan': 'Scan barcode',
    'POST /api/checkout': 'Checkout',
    'GET /api/sales': 'List sales',
    'GET /api/reports/summary': 'Sales report',
    'GET /api/reports/export.csv': 'Export sales CSV',
    'GET /api/sales/<sale_id>/invoice.pdf': 'Download invoice',
}


# ═══════════════════════════════════════════════════════════════════════════
# FUNCTION STATISTICS (in memory)
# ═══════════════════════════════════════════════════════════════════════════

# Structure: {function_name: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()
_enabled = True


def set_enabled(enabled):
    """Switches profiling on or off for the whole process."""
    global _enabled
    _enabled = bool(enabled)


def is_enabled():
    return _enabled


def _get_route_name(method, rule):
    return ROUTE_NAMES.get(f"{method} {rule}", f"{method} {rule}")


# ═══════════════════════════════════════════════════════════════════════════
# 1. ROUTE PROFILING (Flask hooks)
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    """
    Logs how long a route took; slow routes are raised to WARNING/CRITICAL.

    Args:
        method: GET, POST, etc.
        path: Requested path (/api/products/123)
        rule: Flask rule (/api/products/<product_id>)
        time_ms: Elapsed time in milliseconds
        user: Signed in user, if any
    """
    extra = {
        'action': _get_route_name(method, rule),
        'path': f"{method} {path}",
        'user': user or 'anonymous',
        'time_ms': round(time_ms),
    }
    if time_ms >= THRESHOLD_CRITICAL:
        logger.critical("Very slow route", extra=extra)
    elif time_ms >= THRESHOLD_WARNING:
        logger.warning("Slow route", extra=extra)
    else:
        logger.debug("Route timing", extra=extra)


def init_profiling(app):
    """
    Registers before_request/after_request hooks on a Flask app.

    Usage:
        from noble_pos.performance_logger import init_profiling
        init_profiling(app)
    """
    if not _enabled:
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
        rule = str(request.url_rule) if request.url_rule else request.path
        log_route_performance(request.method, request.path, rule, elapsed, session.get('email'))
        return response


# ═══════════════════════════════════════════════════════════════════════════
# 2. DECORATOR FOR KEY FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorator that measures critical functions.

    Usage:
        @profile_function
        def my_function():
            ...

        @profile_function(name="Checkout")
        def checkout():
            ...

    Records the number of calls, the average time and the maximum time.
    """
    def decorator(fn):
        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not _enabled:
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
                    level = 'CRITICAL' if elapsed_ms >= THRESHOLD_CRITICAL else 'SLOW'
                    logger.warning(
                        "Slow function",
                        extra={'function': func_name, 'time_ms': round(elapsed_ms), 'severity': level},
                    )

        return wrapper

    # Allow usage without parentheses: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


# ═══════════════════════════════════════════════════════════════════════════
# 3. STATISTICS REPORT
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Returns statistics for every profiled function.

    Returns:
        dict: {name: {calls, avg_time, max_time}}
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


def log_function_stats_report():
    """Logs one line per profiled function, slowest average first."""
    stats = get_function_stats()
    for func_name, data in sorted(stats.items(), key=lambda x: x[1]['avg_time'], reverse=True):
        logger.info("Function stats", extra={'function': func_name, **data})


def reset_stats():
    """Clears all statistics (useful for testing)."""
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'log_function_stats_report',
    'reset_stats',
    'set_enabled',
    'is_enabled',
]
