"""Main blueprint with health check endpoints."""
from flask import Blueprint, jsonify
from storefront.database import ping

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check endpoint that validates database connection.

    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    try:
        if ping():
            return jsonify({
                'status': 'healthy',
                'database': 'connected',
                'message': 'Database connection successful'
            }), 200
        return jsonify({
            'status': 'unhealthy',
            'database': 'error',
            'message': 'Unexpected query result'
        }), 500

    except Exception as e:
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'error': str(e),
            'message': 'Failed to connect to database'
        }), 500


@main_bp.route('/health/cache')
def health_cache():
    """
    Cache health check endpoint.

    Never returns 500: the cache is optional and the store keeps working
    without it.
    """
    try:
        from storefront.services.cache_service import get_cache
        cache = get_cache()

        if cache.is_available():
            cache.set("system", "health_check", {"test": "ok"}, ttl=10)
            result = cache.get("system", "health_check")

            if result and result.get('test') == 'ok':
                return jsonify({
                    'status': 'ok',
                    'cache': 'connected',
                    'message': 'Cache is working correctly'
                }), 200
            return jsonify({
                'status': 'degraded',
                'cache': 'error',
                'message': 'Redis connected but operations failing'
            }), 200

        return jsonify({
            'status': 'degraded',
            'cache': 'unavailable',
            'message': 'Cache disabled or Redis unavailable (app continues without cache)'
        }), 200

    except Exception as e:
        return jsonify({
            'status': 'degraded',
            'cache': 'error',
            'error': str(e),
            'message': 'Cache health check failed (app continues without cache)'
        }), 200
