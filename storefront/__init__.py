"""Flask application factory."""
from flask import Flask, render_template, request, redirect, url_for, flash, jsonify, session
from flask_wtf.csrf import CSRFProtect
from markupsafe import escape
from storefront.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection
    csrf = CSRFProtect(app)

    from flask_wtf.csrf import CSRFError
    from storefront.utils.http import is_htmx, wants_json

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        if wants_json() or is_htmx():
            return jsonify({'status': 'error', 'message': 'Your session has expired. Reload the page.'}), 400
        flash('Your session has expired or the form is invalid. Please try again.', 'danger')
        return redirect(request.referrer or url_for('store.index'))

    # Error tracking in production
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache for the catalog
    from storefront.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from storefront.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust X-Forwarded-* from one reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Register Jinja filters for formatting
    from storefront.utils.formatters import num_id, money, datetime_id, pluralize_items
    app.jinja_env.filters['num_id'] = num_id
    app.jinja_env.filters['money'] = money
    app.jinja_env.filters['datetime_id'] = datetime_id
    app.jinja_env.filters['items'] = pluralize_items

    # Error Handlers
    from storefront.exceptions import StoreError

    @app.errorhandler(StoreError)
    def handle_store_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"StoreError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"StoreError [{error.status_code}]: {error.message}")

        if wants_json():
            return jsonify(error.to_dict()), error.status_code

        if is_htmx():
            delay = app.config.get('NOTIFY_ERROR_MS', 5000)
            return f'''
            <div class="notification notification-error" role="alert" data-dismiss-after="{delay}">
                <span class="notification-message">{escape(error.message)}</span>
                <button type="button" class="notification-close" onclick="this.parentElement.remove()">&times;</button>
            </div>
            ''', error.status_code

        # For regular requests: flash message and redirect back
        flash(error.message, 'danger')
        return redirect(request.referrer or url_for('store.index'))

    @app.errorhandler(404)
    def not_found_error(error):
        if wants_json():
            return jsonify({'status': 'error', 'message': 'Not Found'}), 404
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def internal_error(error):
        import traceback
        app.logger.error(f"Unhandled Exception: {getattr(error, 'original_exception', error)}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")

        if wants_json():
            return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500
        if is_htmx():
            return '<div class="notification notification-error">Internal server error.</div>', 500
        return render_template('errors/500.html'), 500

    @app.context_processor
    def inject_store_info():
        """Store name, notification delays and cart badge for every template."""
        from storefront.services.cart_service import Cart
        cart_key = app.config.get('CART_SESSION_KEY', 'cart')
        return {
            'app_name': app.config.get('APP_NAME', 'BookStore Cart'),
            'currency_symbol': app.config.get('CURRENCY_SYMBOL', 'Rp'),
            'notify_error_ms': app.config.get('NOTIFY_ERROR_MS', 5000),
            'notify_success_ms': app.config.get('NOTIFY_SUCCESS_MS', 3000),
            'cart_count': Cart.from_snapshot(session.get(cart_key)).item_count,
        }

    # Register blueprints
    from storefront.blueprints.main import main_bp
    from storefront.blueprints.store import store_bp
    from storefront.blueprints.admin import admin_bp
    from storefront.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(store_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from storefront.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"{app.config.get('APP_NAME')} ready (tax rate {app.config.get('TAX_RATE')})")

    return app
