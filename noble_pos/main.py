# ==============================================================================
# NOBLE POS - Flask application
# ==============================================================================
# JSON API for the shop back office: dashboard, inventory, point of sale,
# sales administration, reports and invoices.
#
# Routes only orchestrate request -> service -> response. Services return
# {'ok': bool, 'error': str} dicts, turned here into status codes.
# ==============================================================================

import io
from functools import wraps

import click
from flask import Blueprint, Flask, Response, current_app, request, send_file, session
from werkzeug.exceptions import HTTPException

from noble_pos.app_container import AppContainer
from noble_pos.config import Config
from noble_pos.logging_config import configure_logging, get_logger
from noble_pos.models.entities import UserRole, to_int, to_text
from noble_pos.performance_logger import init_profiling, log_function_stats_report, set_enabled
from noble_pos.services.report_service import range_days

logger = get_logger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


def _container() -> AppContainer:
    return current_app.extensions['noble_pos']


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _respond(result, error_status=400, ok_status=200):
    """Service result dict -> (body, status)."""
    if result.get('ok'):
        return result, ok_status
    return result, error_status


def _not_found_or_bad(result):
    """404 for missing documents, 400 for anything else."""
    error = result.get('error', '')
    return _respond(result, 404 if error.endswith('not found') else 400)


def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if 'uid' not in session:
            return {'ok': False, 'error': 'Sign in required'}, 401
        return f(*args, **kwargs)
    return wrapper


def _days_arg(default=30):
    return range_days(request.args.get('days'), default)


# ═══════════════════════════════════════════════════════════════════════════════
# AUTH
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/auth/login', methods=['POST'])
def login():
    data = _json_body()
    result = _container().auth_service.sign_in(data.get('email'), data.get('password'))
    if not result['ok']:
        return result, 401

    session.clear()
    session.permanent = True
    session['uid'] = result['uid']
    session['email'] = result['email']
    session['role'] = result['role']
    return {'ok': True, 'user': {'uid': result['uid'], 'email': result['email'], 'role': result['role']}}


@api.route('/auth/logout', methods=['POST'])
def logout():
    email = session.get('email')
    session.clear()
    if email:
        logger.info("Signed out", extra={'email': email})
    return {'ok': True}


@api.route('/auth/session', methods=['GET'])
def current_session():
    """Session observer: who is signed in, if anyone."""
    uid = session.get('uid')
    if not uid:
        return {'ok': True, 'user': None}
    role = _container().auth_service.get_role(uid)
    if role is None:
        # Account removed since sign in
        session.clear()
        return {'ok': True, 'user': None}
    return {'ok': True, 'user': {'uid': uid, 'email': session.get('email'), 'role': role}}


# ═══════════════════════════════════════════════════════════════════════════════
# DASHBOARD
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/dashboard', methods=['GET'])
@login_required
def dashboard():
    return {'ok': True, **_container().dashboard_service.figures()}


# ═══════════════════════════════════════════════════════════════════════════════
# INVENTORY
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/products', methods=['GET'])
@login_required
def list_products():
    products = _container().inventory_service.list_products(request.args.get('q'))
    return {'ok': True, 'products': products, 'count': len(products)}


@api.route('/products', methods=['POST'])
@login_required
def register_product():
    result = _container().inventory_service.register_product(_json_body())
    if not result['ok'] and result['error'] == 'Product already registered.':
        return result, 409
    return _respond(result, ok_status=201)


@api.route('/products/<product_id>', methods=['PUT'])
@login_required
def update_product(product_id):
    result = _container().inventory_service.update_product(product_id, _json_body())
    if not result['ok'] and 'barcode' in result['error']:
        return result, 409
    return _not_found_or_bad(result)


@api.route('/products/<product_id>', methods=['DELETE'])
@login_required
def delete_product(product_id):
    return _not_found_or_bad(_container().inventory_service.delete_product(product_id))


@api.route('/products/<product_id>/sold', methods=['POST'])
@login_required
def mark_product_sold(product_id):
    result = _container().inventory_service.mark_as_sold(product_id)
    if not result['ok'] and result['error'] == 'Product is out of stock.':
        return result, 409
    return _not_found_or_bad(result)


@api.route('/products/barcode/<code>', methods=['GET'])
@login_required
def product_by_barcode(code):
    product = _container().inventory_service.find_by_barcode(code)
    if not product:
        return {'ok': False, 'error': f'No product found for barcode {code}'}, 404
    return {'ok': True, 'product': product}


# ═══════════════════════════════════════════════════════════════════════════════
# CART (session)
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/cart', methods=['GET'])
@login_required
def view_cart():
    return {'ok': True, 'cart': _container().cart_service.summary()}


@api.route('/cart', methods=['DELETE'])
@login_required
def clear_cart():
    cart_service = _container().cart_service
    cart_service.clear()
    return {'ok': True, 'cart': cart_service.summary()}


@api.route('/cart/items', methods=['POST'])
@login_required
def add_to_cart():
    data = _json_body()
    product_id = data.get('product_id')
    if not product_id:
        return {'ok': False, 'error': 'product_id is required'}, 400
    qty = to_int(data.get('qty'), 1)
    if qty <= 0:
        return {'ok': False, 'error': 'Quantity must be greater than 0'}, 400
    return _not_found_or_bad(_container().cart_service.add_by_id(product_id, qty))


@api.route('/cart/items/<product_id>', methods=['PATCH'])
@login_required
def update_cart_item(product_id):
    qty = to_int(_json_body().get('qty'), 0)
    return _respond(_container().cart_service.update_qty(product_id, qty))


@api.route('/cart/items/<product_id>', methods=['DELETE'])
@login_required
def remove_cart_item(product_id):
    return _respond(_container().cart_service.remove(product_id))


@api.route('/cart/scan', methods=['POST'])
@login_required
def scan_barcode():
    code = _json_body().get('code', '')
    result = _container().cart_service.scan(code)
    return _respond(result, 404)


@api.route('/cart/invoice.pdf', methods=['GET'])
@login_required
def cart_invoice():
    """Invoice for the cart before checkout."""
    container = _container()
    lines = container.cart_service.lines()
    if not lines:
        return {'ok': False, 'error': 'Cart is empty'}, 400
    customer = {'name': request.args.get('name', ''), 'phone': request.args.get('phone', '')}
    draft = container.invoice_service.draft_from_cart(lines, customer)
    return _pdf_response(container.invoice_service.render_pdf(draft))


# ═══════════════════════════════════════════════════════════════════════════════
# CHECKOUT
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/checkout', methods=['POST'])
@login_required
def checkout():
    """
    Completes the session cart.

    Body:
        customer: {name, phone, email}
        note: str
        payment: {method, reference, cash_received}
        discount_percent: number in [0, 100]
    """
    container = _container()
    data = _json_body()
    result = container.checkout_service.checkout(
        [line.to_dict() for line in container.cart_service.lines()],
        customer=data.get('customer'),
        note=data.get('note', ''),
        payment_input=data.get('payment'),
        discount_percent=data.get('discount_percent', 0),
    )
    if not result['ok']:
        error = result['error']
        status = 409 if error.startswith(('Insufficient stock', 'Item missing')) else 400
        return result, status

    container.cart_service.clear()
    return result, 201


# ═══════════════════════════════════════════════════════════════════════════════
# SALES
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/sales', methods=['GET'])
@login_required
def list_sales():
    container = _container()
    sales = container.sales_service.list_sales()
    if request.args.get('days'):
        sales = container.report_service.filter_by_range(sales, _days_arg())
    return {'ok': True, 'sales': sales, 'count': len(sales)}


@api.route('/sales/<sale_id>', methods=['PUT'])
@login_required
def edit_sale(sale_id):
    data = _json_body()
    result = _container().sales_service.edit_sale(
        sale_id,
        customer_name=data.get('customer_name', ''),
        customer_phone=data.get('customer_phone', ''),
        total=data.get('total'),
        payment_method=data.get('payment_method', ''),
        payment_reference=data.get('payment_reference', ''),
    )
    return _not_found_or_bad(result)


@api.route('/sales/<sale_id>', methods=['DELETE'])
@login_required
def delete_sale(sale_id):
    return _not_found_or_bad(_container().sales_service.delete_sale(sale_id))


@api.route('/sales/<sale_id>/invoice.pdf', methods=['GET'])
@login_required
def sale_invoice(sale_id):
    container = _container()
    sale = container.sales_service.get_sale(sale_id)
    if not sale:
        return {'ok': False, 'error': 'Sale not found'}, 404
    return _pdf_response(container.invoice_service.render_pdf(sale))


@api.route('/sales/<sale_id>/whatsapp', methods=['POST'])
@login_required
def sale_whatsapp(sale_id):
    """Compose URL for sending the invoice summary over WhatsApp."""
    container = _container()
    sale = container.sales_service.get_sale(sale_id)
    if not sale:
        return {'ok': False, 'error': 'Sale not found'}, 404
    data = _json_body()
    phone = to_text(data.get('phone')) or (sale.get('customer') or {}).get('phone', '')
    text = to_text(data.get('text')) or container.invoice_service.whatsapp_message(sale)
    result = container.invoice_service.whatsapp_url(phone, text)
    if result['ok']:
        result['text'] = text
    return _respond(result)


def _pdf_response(result):
    if not result['ok']:
        return result, 500
    return send_file(
        io.BytesIO(result['pdf']),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=result['filename'],
    )


# ═══════════════════════════════════════════════════════════════════════════════
# REPORTS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/reports/summary', methods=['GET'])
@login_required
def report_summary():
    return {'ok': True, **_container().report_service.summary(_days_arg())}


@api.route('/reports/export.csv', methods=['GET'])
@login_required
def report_export():
    container = _container()
    days = _days_arg()
    sales = container.report_service.filter_by_range(container.sales_service.list_sales(), days)
    body = container.report_service.export_csv(sales)
    filename = container.report_service.export_filename(days)
    logger.info("Sales exported", extra={'days': days, 'rows': len(sales), 'user': session.get('email')})
    return Response(
        body,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


@api.route('/reports/orders', methods=['GET'])
@login_required
def report_orders():
    view = _container().report_service.orders_view(request.args.get('q', ''), request.args.get('page', 1))
    return {'ok': True, **view}


@api.route('/reports/revenue', methods=['GET'])
@login_required
def report_revenue():
    view = _container().report_service.revenue_view(
        request.args.get('from'), request.args.get('to'), request.args.get('page', 1)
    )
    return {'ok': True, **view}


@api.route('/reports/products', methods=['GET'])
@login_required
def report_products():
    view = _container().report_service.sold_products_view(request.args.get('q', ''), request.args.get('page', 1))
    return {'ok': True, **view}


@api.route('/reports/stock', methods=['GET'])
@login_required
def report_stock():
    view = _container().report_service.stock_view(request.args.get('q', ''), request.args.get('page', 1))
    return {'ok': True, **view}


# ═══════════════════════════════════════════════════════════════════════════════
# APPLICATION FACTORY
# ═══════════════════════════════════════════════════════════════════════════════

def create_app(config_overrides=None):
    """
    Builds the Flask application.

    Args:
        config_overrides: Dict of Config fields to replace (tests pass data_dir)

    Returns:
        Configured Flask app
    """
    config = Config.from_env()
    if config_overrides:
        config = config.with_overrides(config_overrides)

    configure_logging(config.log_dir, production=config.production)
    if config.production and not config.secret_key_set:
        logger.warning("NOBLE_POS_SECRET_KEY is not set; sessions use the development key")

    app = Flask(__name__)
    app.config.update(config.flask_settings())

    AppContainer.reset_instance()
    app.extensions['noble_pos'] = AppContainer(config)

    set_enabled(config.profiling)
    init_profiling(app)
    app.register_blueprint(api)
    _register_hooks(app)
    _register_cli(app)

    logger.info("Application ready", extra={'store': config.store_path, 'production': config.production})
    return app


def _register_hooks(app):

    @app.after_request
    def set_security_headers(response):
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
        # HSTS only behind real HTTPS
        if request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return {'ok': False, 'error': e.description}, e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception("Unhandled error", extra={'path': request.path, 'method': request.method})
        return {'ok': False, 'error': 'Internal server error'}, 500


def _register_cli(app):

    @app.cli.command('create-user')
    @click.argument('email')
    @click.argument('password')
    @click.option('--role', default=UserRole.STAFF.value,
                  type=click.Choice([r.value for r in UserRole]), show_default=True)
    def create_user_command(email, password, role):
        """Creates a sign in account."""
        result = app.extensions['noble_pos'].auth_service.create_user(email, password, role)
        if not result['ok']:
            raise click.ClickException(result['error'])
        click.echo(f"Created {role} user {email.strip().lower()}")

    @app.cli.command('profile-report')
    def profile_report_command():
        """Logs the collected function timings."""
        log_function_stats_report()
        click.echo("Function statistics written to the log")
