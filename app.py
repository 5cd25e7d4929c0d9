# Flask Retail Inventory Manager
# This file contains the application factory, authentication and the JSON routes.
# Business rules live in validation.py, metrics.py, store_config.py and inventory.py.

import logging
import os
from datetime import date, datetime
from functools import wraps

from flask import Flask, request, session, jsonify
from flask import g  # Application context global object
from flask.json.provider import DefaultJSONProvider

from errors import (
    GatewayError,
    NotFoundError,
    ValidationError,
    INVALID_ATTRIBUTES,
    INVALID_BUSINESS_TYPE,
    INVALID_DATE,
)
from gateway import build_gateway
from inventory import InventoryService
from models import db, parse_iso_timestamp, User, Product, Purchase, Sale  # noqa: F401 (re-exported for tests)
from store_config import (
    SettingsForm,
    FAILED,
    business_types,
    business_type_to_dict,
    effective_config,
    is_configured,
    load_store_config,
)


class InventoryJSONProvider(DefaultJSONProvider):
    """Serialize timestamps and dates as ISO 8601 strings."""

    @staticmethod
    def default(o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def parse_timestamp(value):
    """
    Parse an optional ISO 8601 timestamp from a request body.
    Aware values are converted to naive UTC, the format every stored timestamp uses.
    """
    if value in (None, ''):
        return None
    try:
        return parse_iso_timestamp(value)
    except ValueError:
        raise ValidationError(INVALID_DATE, f'Not an ISO 8601 timestamp: {value}') from None


def _payload():
    """JSON body if there is one, otherwise submitted form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _flag(value):
    return str(value).lower() in ('1', 'true', 'yes', 'on')


def _list_field(data, key):
    """A list-valued settings field; a single string from a form post is rejected, not split."""
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(INVALID_ATTRIBUTES, f'{key} must be a list')
    return value


# ==================== APPLICATION FACTORY ====================

def create_app(test_config=None, gateway=None):
    """
    Application factory function that creates and configures the Flask application.

    Args:
        test_config (dict, optional): Configuration overriding the defaults (used by tests).
        gateway (Gateway, optional): Persistence gateway to use instead of the one named
                                     by DATA_SOURCE, e.g. a FixtureGateway in tests.

    Returns:
        Flask: Configured Flask application instance ready to run.
    """
    app = Flask(__name__)
    app.json = InventoryJSONProvider(app)

    # ==================== APPLICATION CONFIGURATION ====================
    # Defaults, overridden by environment variables and then by test_config
    project_root = os.path.abspath(os.path.dirname(__file__))
    db_path = os.path.join(project_root, 'inventory.db')
    database_url = os.environ.get('DATABASE_URL', f'sqlite:///{db_path}')
    if database_url.startswith('postgres://'):
        # Hosted Postgres services hand out postgres:// URLs; SQLAlchemy wants postgresql://
        database_url = database_url.replace('postgres://', 'postgresql://', 1)
    app.config.from_mapping(
        SECRET_KEY=os.environ.get('FLASK_SECRET', 'dev-secret'),  # Secret key for sessions (use env var in production)
        SQLALCHEMY_DATABASE_URI=database_url,
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        DATA_SOURCE=os.environ.get('INVENTORY_DATA_SOURCE', 'remote'),  # 'remote' or 'fixtures'
        FIXTURES_PATH=os.environ.get('INVENTORY_FIXTURES_PATH'),  # Seed file for the fixture data source
        LOW_STOCK_THRESHOLD=int(os.environ.get('LOW_STOCK_THRESHOLD', '5')),
        TOP_PRODUCTS_LIMIT=int(os.environ.get('TOP_PRODUCTS_LIMIT', '5')),
        SALES_WINDOW_DAYS=int(os.environ.get('SALES_WINDOW_DAYS', '30')),
        LOG_LEVEL=os.environ.get('LOG_LEVEL', 'INFO'),
    )

    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    app.logger.setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)

    # ==================== DATA SOURCE ====================
    # Chosen once here; the rest of the app only sees the gateway interface
    app.extensions['gateway'] = gateway if gateway is not None else build_gateway(app.config)
    app.logger.info('Using %s data source', type(app.extensions['gateway']).__name__)

    with app.app_context():
        # Users always live in the database, whatever the data source
        db.create_all()

    def current_gateway():
        return app.extensions['gateway']

    def service():
        return InventoryService(
            current_gateway(),
            g.current_user.id,
            low_stock_threshold=app.config['LOW_STOCK_THRESHOLD'],
            top_limit=app.config['TOP_PRODUCTS_LIMIT'],
            window_days=app.config['SALES_WINDOW_DAYS'],
        )

    # ==================== ERROR HANDLING ====================

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc):
        return jsonify(exc.to_dict()), 404

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        app.logger.info('Rejected %s %s: %s', request.method, request.path, exc.reason)
        return jsonify(exc.to_dict()), 400

    @app.errorhandler(GatewayError)
    def handle_gateway_error(exc):
        # Not retried here; the client re-enables the action and may try again
        app.logger.error('Gateway failure on %s %s: %s', request.method, request.path, exc)
        return jsonify(error='GatewayError', message=str(exc), retry=True), 502

    # ==================== AUTHENTICATION & SESSION MANAGEMENT ====================

    @app.before_request
    def load_current_user():
        """Load the logged-in user (or None) into g.current_user before each request."""
        user_id = session.get('user_id')
        g.current_user = None
        if user_id is not None:
            g.current_user = db.session.get(User, user_id)

    def login_required(fn):
        """Decorator for routes that need a logged-in store account."""

        @wraps(fn)
        def wrapped(*args, **kwargs):
            if g.get('current_user') is None:
                return jsonify(error='Unauthorized', message='You must be logged in to access that page.'), 401
            return fn(*args, **kwargs)

        return wrapped

    @app.route('/signup', methods=['POST'])
    def signup():
        data = _payload()
        username = str(data.get('username', '')).strip()
        password = str(data.get('password', ''))

        if not username or not password:
            return jsonify(error='InvalidCredentials', message='Username and password are required.'), 400

        if User.query.filter_by(username=username).first():
            return jsonify(error='UsernameTaken', message='Username already exists.'), 400

        user = User(username=username)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        app.logger.info('Account %s created', username)
        return jsonify(id=user.id, message='Account created successfully. Please log in.'), 201

    @app.route('/login', methods=['POST'])
    def login():
        data = _payload()
        username = str(data.get('username', '')).strip()
        password = str(data.get('password', ''))

        user = User.query.filter_by(username=username).first()
        if user and user.check_password(password):
            session.clear()
            session['user_id'] = user.id
            return jsonify(id=user.id, username=user.username, message='Logged in.')

        return jsonify(error='InvalidCredentials', message='Invalid username or password.'), 401

    @app.route('/logout')
    def logout():
        session.clear()
        return jsonify(message='You have been logged out.')

    # ==================== DASHBOARD ====================

    @app.route('/')
    @login_required
    def home():
        """Today's and this month's totals, the 30 day chart, best sellers and low stock."""
        stats = service().dashboard()
        config = load_store_config(current_gateway(), g.current_user.id)
        config = effective_config(config)
        stats['store_name'] = config['store_name']
        stats['currency_symbol'] = config['currency_symbol']
        return jsonify(stats)

    # ==================== PRODUCT MANAGEMENT ROUTES ====================

    @app.route('/products', methods=['GET', 'POST'])
    @login_required
    def products():
        if request.method == 'POST':
            product = service().create_product(_payload())
            return jsonify(product=product, message='Product added.'), 201

        args = request.args
        items = service().list_products(
            search=args.get('search'),
            category=args.get('category'),
            low_stock_only=_flag(args.get('low_stock', '')),
        )
        return jsonify(products=items, count=len(items))

    @app.route('/products/<int:product_id>', methods=['GET', 'PUT', 'DELETE'])
    @login_required
    def product_detail(product_id):
        if request.method == 'PUT':
            product = service().update_product(product_id, _payload())
            return jsonify(product=product, message='Product updated.')
        if request.method == 'DELETE':
            service().delete_product(product_id)
            return jsonify(message='Product deleted.')
        return jsonify(product=service().get_product(product_id))

    @app.route('/products/barcode/<code>')
    @login_required
    def product_by_barcode(code):
        return jsonify(product=service().find_by_barcode(code))

    # ==================== INVENTORY TRANSACTION ROUTES ====================

    @app.route('/purchases', methods=['GET', 'POST'])
    @login_required
    def purchases():
        if request.method == 'POST':
            data = dict(_payload())
            data['purchase_date'] = parse_timestamp(data.get('purchase_date'))
            purchase = service().record_purchase(data)
            return jsonify(purchase=purchase, message='Purchase recorded'), 201
        return jsonify(purchases=service().list_purchases())

    @app.route('/sales', methods=['GET', 'POST'])
    @login_required
    def sales():
        if request.method == 'POST':
            data = dict(_payload())
            data['sale_date'] = parse_timestamp(data.get('sale_date'))
            sale = service().record_sale(data)
            return jsonify(sale=sale, message='Sale recorded'), 201
        return jsonify(sales=service().list_sales(), products=service().sellable_products())

    # ==================== REPORTS ====================

    @app.route('/suppliers')
    @login_required
    def suppliers():
        """Purchases grouped by supplier, biggest spend first."""
        return jsonify(service().supplier_report())

    @app.route('/reports')
    @login_required
    def reports():
        """Sales, purchase and profit / loss summary."""
        return jsonify(service().profit_and_loss())

    # ==================== STORE SETTINGS ====================

    @app.route('/business-types')
    def list_business_types():
        return jsonify(business_types=[business_type_to_dict(bt) for bt in business_types()])

    @app.route('/settings', methods=['GET', 'PUT'])
    @login_required
    def settings():
        gateway = current_gateway()
        if request.method == 'GET':
            row = load_store_config(gateway, g.current_user.id)
            return jsonify(config=effective_config(row), configured=is_configured(row))

        data = _payload()
        form = SettingsForm(gateway, g.current_user.id)
        draft = form.load()

        # Switching business type replaces the template fields before explicit edits apply
        business_type = data.get('business_type')
        if business_type and (form.saved is None or business_type != draft.business_type):
            if not draft.select_business_type(business_type):
                raise ValidationError(INVALID_BUSINESS_TYPE, f'Unknown business type {business_type!r}')

        scalars = {k: data[k] for k in ('store_name', 'currency_symbol') if k in data}
        if 'uses_sizes' in data:
            scalars['uses_sizes'] = _flag(data['uses_sizes'])
        if scalars:
            draft.set(**scalars)
        if 'categories' in data:
            draft.set(categories=[])
            for name in _list_field(data, 'categories'):
                draft.add_category(name)
        if 'size_options' in data:
            draft.set(size_options=[])
            for size in _list_field(data, 'size_options'):
                draft.add_size(size)
        if 'custom_attributes' in data:
            draft.set(custom_attributes=[])
            for attribute in _list_field(data, 'custom_attributes'):
                if not isinstance(attribute, dict):
                    raise ValidationError(INVALID_ATTRIBUTES, 'Each custom attribute must be an object with a name')
                if not isinstance(attribute.get('options') or [], list):
                    raise ValidationError(INVALID_ATTRIBUTES, 'Attribute options must be a list')
                draft.add_attribute(attribute.get('name'), attribute.get('type', 'text'), attribute.get('options'))

        saved = form.submit()
        if form.state == FAILED:
            raise form.error
        return jsonify(config=saved, state=form.state, message='Store settings saved.')

    # ==================== HEALTH ====================

    @app.route('/health')
    def health():
        status = current_gateway().health()
        return jsonify(status), 200 if status['connected'] else 503

    return app


# ==================== APPLICATION ENTRY POINT ====================

if __name__ == '__main__':
    create_app().run(debug=True, host='127.0.0.1', port=5000)
