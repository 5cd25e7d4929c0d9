# Persistence gateway: the only code that talks to the database
# Two data sources implement the same contract and one of them is chosen at startup:
#   SqlGateway     - the remote relational database, through Flask-SQLAlchemy
#   FixtureGateway - in-memory tables, optionally seeded from a JSON fixture file

import copy
import json
import logging
import operator
from contextlib import contextmanager

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from errors import GatewayError, NotFoundError, NOT_FOUND
from models import db, parse_iso_timestamp, utcnow, Product, Purchase, Sale, StoreConfig

logger = logging.getLogger(__name__)

TABLES = ('products', 'purchases', 'sales', 'store_config')

# Operators accepted as "column__op" filter keys; they work on plain values and SQLAlchemy columns alike
FILTER_OPS = {
    'eq': operator.eq,
    'ne': operator.ne,
    'lt': operator.lt,
    'lte': operator.le,
    'gt': operator.gt,
    'gte': operator.ge,
}

# Columns of each table, in the order the SQL models declare them
COLUMNS = {
    'products': ('id', 'owner_id', 'name', 'category', 'size', 'purchase_price', 'selling_price',
                 'stock', 'custom_attributes', 'created_at', 'updated_at'),
    'purchases': ('id', 'owner_id', 'product_id', 'supplier', 'quantity', 'purchase_price', 'purchase_date'),
    'sales': ('id', 'owner_id', 'product_id', 'quantity', 'selling_price', 'total_price', 'sale_date'),
    'store_config': ('id', 'owner_id', 'store_name', 'business_type', 'categories', 'uses_sizes',
                     'size_options', 'custom_attributes', 'currency_symbol', 'created_at', 'updated_at'),
}

# Timestamp columns filled in on insert when the record leaves them out
TIMESTAMP_COLUMNS = {
    'products': ('created_at', 'updated_at'),
    'purchases': ('purchase_date',),
    'sales': ('sale_date',),
    'store_config': ('created_at', 'updated_at'),
}

# Tables whose rows embed a summary of the referenced product
JOINED_PRODUCT_TABLES = ('purchases', 'sales')


def split_filter_key(key):
    """Split 'sale_date__gte' into ('sale_date', 'gte'); a bare column name means equality."""
    if '__' in key:
        column, op = key.rsplit('__', 1)
        if op in FILTER_OPS:
            return column, op
    return key, 'eq'


def split_order(order):
    """Split '-sale_date' into ('sale_date', True)."""
    if order.startswith('-'):
        return order[1:], True
    return order, False


class Gateway:
    """
    Contract consumed by the inventory service and the configuration resolver.
    Rows are plain dicts; purchase and sale rows carry the referenced product under 'product'.
    """

    def list(self, table, filters=None, order=None):
        """Return rows matching every filter, sorted by `order` ('-col' for descending)."""
        raise NotImplementedError

    def get(self, table, row_id):
        """Return one row by id, or None."""
        raise NotImplementedError

    def insert(self, table, record):
        """Insert a record and return it with id and timestamps assigned."""
        raise NotImplementedError

    def update(self, table, row_id, patch):
        """Apply a patch to a row and return the updated row."""
        raise NotImplementedError

    def delete(self, table, row_id):
        raise NotImplementedError

    def adjust_stock(self, product_id, delta):
        """
        Atomically add `delta` to a product's stock, but only if the result stays >= 0.
        Returns the updated product row, or None when the condition failed or the product is gone.
        """
        raise NotImplementedError

    def health(self):
        raise NotImplementedError


# ==================== REMOTE DATABASE ====================

class SqlGateway(Gateway):
    """Gateway backed by the SQLAlchemy session of the running Flask app."""

    MODELS = {
        'products': Product,
        'purchases': Purchase,
        'sales': Sale,
        'store_config': StoreConfig,
    }

    def __init__(self, database=db):
        self.db = database

    @contextmanager
    def _guard(self, action):
        # Any database failure rolls the session back and surfaces as a GatewayError
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            logger.error('Database error during %s: %s', action, exc)
            raise GatewayError(f'Database error during {action}: {exc}') from exc

    def _model(self, table):
        try:
            return self.MODELS[table]
        except KeyError:
            raise GatewayError(f'Unknown table: {table}') from None

    @staticmethod
    def _column(model, name):
        if name not in model.__table__.columns:
            raise GatewayError(f'Unknown column: {model.__tablename__}.{name}')
        return getattr(model, name)

    def list(self, table, filters=None, order=None):
        model = self._model(table)
        query = sa.select(model)
        for key, value in (filters or {}).items():
            name, op = split_filter_key(key)
            query = query.where(FILTER_OPS[op](self._column(model, name), value))
        if order:
            name, descending = split_order(order)
            column = self._column(model, name)
            if descending:
                query = query.order_by(column.desc(), model.id.desc())
            else:
                query = query.order_by(column.asc(), model.id.asc())
        else:
            query = query.order_by(model.id.asc())

        with self._guard(f'list {table}'):
            return [obj.to_dict() for obj in self.db.session.scalars(query).all()]

    def get(self, table, row_id):
        model = self._model(table)
        with self._guard(f'get {table}'):
            obj = self.db.session.get(model, row_id)
            return obj.to_dict() if obj is not None else None

    def insert(self, table, record):
        model = self._model(table)
        columns = model.__table__.columns
        # None values are left to the column defaults
        values = {k: v for k, v in record.items() if k in columns and k != 'id' and v is not None}
        with self._guard(f'insert into {table}'):
            obj = model(**values)
            self.db.session.add(obj)
            self.db.session.commit()
            return obj.to_dict()

    def update(self, table, row_id, patch):
        model = self._model(table)
        columns = model.__table__.columns
        with self._guard(f'update {table}'):
            obj = self.db.session.get(model, row_id)
            if obj is None:
                raise NotFoundError(f'No {table} row with id {row_id}', reason=NOT_FOUND)
            for key, value in patch.items():
                if key in columns and key not in ('id', 'owner_id'):
                    setattr(obj, key, value)
            if 'updated_at' in columns:
                obj.updated_at = utcnow()
            self.db.session.commit()
            return obj.to_dict()

    def delete(self, table, row_id):
        model = self._model(table)
        with self._guard(f'delete from {table}'):
            obj = self.db.session.get(model, row_id)
            if obj is None:
                raise NotFoundError(f'No {table} row with id {row_id}', reason=NOT_FOUND)
            self.db.session.delete(obj)
            self.db.session.commit()

    def adjust_stock(self, product_id, delta):
        # Conditional UPDATE: the stock check and the write happen in one statement
        stmt = (
            sa.update(Product)
            .where(Product.id == product_id, Product.stock + delta >= 0)
            .values(stock=Product.stock + delta, updated_at=utcnow())
        )
        with self._guard('adjust stock'):
            result = self.db.session.execute(stmt)
            if result.rowcount == 0:
                self.db.session.rollback()
                return None
            self.db.session.commit()
            return self.db.session.get(Product, product_id).to_dict()

    def health(self):
        try:
            with self.db.engine.connect() as conn:
                conn.execute(sa.text('SELECT 1'))
            existing = set(sa.inspect(self.db.engine).get_table_names())
            tables_exist = all(table in existing for table in TABLES)
            sample = False
            if tables_exist:
                sample = (self.db.session.scalar(sa.select(sa.func.count(Product.id))) or 0) > 0
            return {'connected': True, 'tables_exist': tables_exist, 'sample_data_exists': sample, 'error': None}
        except SQLAlchemyError as exc:
            logger.error('Health check failed: %s', exc)
            return {'connected': False, 'tables_exist': False, 'sample_data_exists': False, 'error': str(exc)}


# ==================== FIXTURE SET ====================

class FixtureGateway(Gateway):
    """
    In-memory gateway with the same semantics as SqlGateway.
    Used for demos (DATA_SOURCE='fixtures') and as the fake in service tests.
    """

    def __init__(self, seed=None):
        self._tables = {table: {} for table in TABLES}
        self._next_id = {table: 1 for table in TABLES}
        for table, rows in (seed or {}).items():
            for row in rows:
                self.insert(table, row)

    @classmethod
    def from_file(cls, path):
        """Load a fixture file: {"products": [...], "sales": [...], ...} with ISO timestamps."""
        with open(path, encoding='utf-8') as fh:
            seed = json.load(fh)
        for table, rows in seed.items():
            for row in rows:
                for column in TIMESTAMP_COLUMNS.get(table, ()):
                    if isinstance(row.get(column), str):
                        row[column] = parse_iso_timestamp(row[column])
        logger.info('Loaded fixture set from %s', path)
        return cls(seed)

    def _table(self, table):
        try:
            return self._tables[table]
        except KeyError:
            raise GatewayError(f'Unknown table: {table}') from None

    def _present(self, table, row):
        # Hand out copies so callers never mutate the stored rows
        out = copy.deepcopy(row)
        if table in JOINED_PRODUCT_TABLES:
            product = self._tables['products'].get(row.get('product_id'))
            out['product'] = None if product is None else {
                'name': product['name'],
                'category': product['category'],
                'size': product.get('size'),
                'purchase_price': product['purchase_price'],
            }
        return out

    def list(self, table, filters=None, order=None):
        rows = list(self._table(table).values())
        for key, value in (filters or {}).items():
            name, op = split_filter_key(key)
            if name not in COLUMNS[table]:
                raise GatewayError(f'Unknown column: {table}.{name}')
            rows = [row for row in rows if row.get(name) is not None and FILTER_OPS[op](row[name], value)]
        if order:
            name, descending = split_order(order)
            if name not in COLUMNS[table]:
                raise GatewayError(f'Unknown column: {table}.{name}')
            rows.sort(key=lambda row: (row.get(name), row['id']), reverse=descending)
        return [self._present(table, row) for row in rows]

    def get(self, table, row_id):
        row = self._table(table).get(row_id)
        return self._present(table, row) if row is not None else None

    def insert(self, table, record):
        rows = self._table(table)
        row = {column: None for column in COLUMNS[table]}
        row.update({k: copy.deepcopy(v) for k, v in record.items() if k in COLUMNS[table] and v is not None})
        now = utcnow()
        for column in TIMESTAMP_COLUMNS[table]:
            if row[column] is None:
                row[column] = now
        if table == 'products':
            row['stock'] = row['stock'] or 0
            row['custom_attributes'] = row['custom_attributes'] or {}
        row['id'] = self._next_id[table]
        self._next_id[table] += 1
        rows[row['id']] = row
        return self._present(table, row)

    def update(self, table, row_id, patch):
        row = self._table(table).get(row_id)
        if row is None:
            raise NotFoundError(f'No {table} row with id {row_id}', reason=NOT_FOUND)
        for key, value in patch.items():
            if key in COLUMNS[table] and key not in ('id', 'owner_id'):
                row[key] = copy.deepcopy(value)
        if 'updated_at' in COLUMNS[table]:
            row['updated_at'] = utcnow()
        return self._present(table, row)

    def delete(self, table, row_id):
        if self._table(table).pop(row_id, None) is None:
            raise NotFoundError(f'No {table} row with id {row_id}', reason=NOT_FOUND)

    def adjust_stock(self, product_id, delta):
        row = self._tables['products'].get(product_id)
        if row is None or row['stock'] + delta < 0:
            return None
        row['stock'] += delta
        row['updated_at'] = utcnow()
        return self._present('products', row)

    def health(self):
        return {
            'connected': True,
            'tables_exist': True,
            'sample_data_exists': bool(self._tables['products']),
            'error': None,
        }


def build_gateway(config):
    """
    Construct the data source named by config['DATA_SOURCE'].
    The choice is made once at startup and never changes for the life of the app.
    """
    source = config.get('DATA_SOURCE', 'remote')
    if source == 'remote':
        return SqlGateway(db)
    if source == 'fixtures':
        path = config.get('FIXTURES_PATH')
        return FixtureGateway.from_file(path) if path else FixtureGateway()
    raise ValueError(f"Unknown DATA_SOURCE {source!r}; expected 'remote' or 'fixtures'")
