# Inventory operations for one store owner
# Reads go through the gateway, writes are validated first, and reports come from metrics.py

import logging

import metrics
from errors import NotFoundError, ValidationError, GatewayError, INSUFFICIENT_STOCK
from models import utcnow
from validation import (
    to_int,
    to_number,
    validate_product,
    validate_product_patch,
    validate_purchase,
    validate_sale,
)

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ('name', 'category', 'size', 'purchase_price', 'selling_price', 'stock', 'custom_attributes')


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class InventoryService:
    """
    Catalog, purchases, sales and reports scoped to one owner.

    Args:
        gateway: the persistence gateway chosen at startup (SqlGateway or FixtureGateway).
        owner_id: id of the logged-in store account; every read and write is limited to it.
    """

    def __init__(self, gateway, owner_id, low_stock_threshold=metrics.DEFAULT_LOW_STOCK_THRESHOLD,
                 top_limit=metrics.DEFAULT_TOP_PRODUCTS_LIMIT, window_days=metrics.DEFAULT_WINDOW_DAYS):
        self.gateway = gateway
        self.owner_id = owner_id
        self.low_stock_threshold = low_stock_threshold
        self.top_limit = top_limit
        self.window_days = window_days

    def _owned(self, filters=None):
        return dict(filters or {}, owner_id=self.owner_id)

    # ==================== PRODUCTS ====================

    def list_products(self, search=None, category=None, low_stock_only=False):
        """All products, newest first, narrowed by the inventory page filters."""
        rows = self.gateway.list('products', self._owned(), order='-created_at')
        return metrics.filter_products(rows, search, category, low_stock_only, self.low_stock_threshold)

    def sellable_products(self):
        return [p for p in self.list_products() if p['stock'] > 0]

    def get_product(self, product_id):
        pid = to_int(product_id)
        product = self.gateway.get('products', pid) if pid is not None else None
        if product is None or product['owner_id'] != self.owner_id:
            raise NotFoundError(f'Product {product_id} not found')
        return product

    def find_by_barcode(self, barcode):
        # Barcodes are stored as the "barcode" custom attribute
        for product in self.gateway.list('products', self._owned(), order='id'):
            if str((product.get('custom_attributes') or {}).get('barcode', '')) == str(barcode):
                return product
        raise NotFoundError(f'No product with barcode {barcode}')

    def create_product(self, payload):
        data = {k: _strip(payload[k]) for k in PRODUCT_FIELDS if k in payload}
        data.setdefault('stock', 0)
        validate_product(data)
        data['purchase_price'] = to_number(data['purchase_price'])
        data['selling_price'] = to_number(data['selling_price'])
        data['stock'] = to_int(data['stock'])
        data['size'] = data.get('size') or None
        data['custom_attributes'] = data.get('custom_attributes') or {}
        product = self.gateway.insert('products', dict(data, owner_id=self.owner_id))
        logger.info('Product %s (%s) added for owner %s', product['id'], product['name'], self.owner_id)
        return product

    def update_product(self, product_id, patch):
        product = self.get_product(product_id)
        data = {k: _strip(patch[k]) for k in PRODUCT_FIELDS if k in patch}
        validate_product_patch(data)
        for key in ('purchase_price', 'selling_price'):
            if key in data:
                data[key] = to_number(data[key])
        if 'stock' in data:
            data['stock'] = to_int(data['stock'])
        updated = self.gateway.update('products', product['id'], data)
        logger.info('Product %s updated for owner %s', product['id'], self.owner_id)
        return updated

    def delete_product(self, product_id):
        product = self.get_product(product_id)
        self.gateway.delete('products', product['id'])
        logger.info('Product %s deleted for owner %s', product['id'], self.owner_id)

    def _referenced_product(self, payload):
        if payload.get('product_id') in (None, ''):
            return None
        try:
            return self.get_product(payload['product_id'])
        except NotFoundError:
            return None

    # ==================== PURCHASES ====================

    def list_purchases(self):
        return self.gateway.list('purchases', self._owned(), order='-purchase_date')

    def record_purchase(self, payload):
        """
        Record a purchase and raise the product's stock by its quantity.
        The purchase row and the stock change are two separate gateway writes.
        """
        validate_purchase(payload)
        product = self._referenced_product(payload)
        if product is None:
            raise NotFoundError('Product not found')
        purchase = self.gateway.insert('purchases', {
            'owner_id': self.owner_id,
            'product_id': product['id'],
            'supplier': payload['supplier'].strip(),
            'quantity': to_int(payload['quantity']),
            'purchase_price': to_number(payload['purchase_price']),
            'purchase_date': payload.get('purchase_date'),
        })
        if self.gateway.adjust_stock(product['id'], purchase['quantity']) is None:
            logger.warning('Product %s disappeared before its stock could be raised', product['id'])
        logger.info('Purchase %s recorded: %s x product %s from %s',
                    purchase['id'], purchase['quantity'], product['id'], purchase['supplier'])
        return purchase

    # ==================== SALES ====================

    def list_sales(self):
        return self.gateway.list('sales', self._owned(), order='-sale_date')

    def record_sale(self, payload):
        """
        Record a sale and lower the product's stock.

        Stock is checked against the latest product row first, then decremented with the
        gateway's conditional update, so two concurrent sales cannot both take the last
        units. When the decrement fails no sale row is written. If writing the sale fails
        after the decrement, the stock is put back before the error propagates.
        """
        product = self._referenced_product(payload)
        payload = {k: v for k, v in payload.items() if v is not None}
        validate_sale(payload, product)
        quantity = to_int(payload['quantity'])
        selling_price = to_number(payload.get('selling_price', product['selling_price']))

        if self.gateway.adjust_stock(product['id'], -quantity) is None:
            current = self.gateway.get('products', product['id'])
            if current is None:
                raise NotFoundError('Product not found')
            raise ValidationError(
                INSUFFICIENT_STOCK,
                f"Insufficient stock. Available: {current['stock']}, Requested: {quantity}",
            )
        try:
            sale = self.gateway.insert('sales', {
                'owner_id': self.owner_id,
                'product_id': product['id'],
                'quantity': quantity,
                'selling_price': selling_price,
                'total_price': selling_price * quantity,
                'sale_date': payload.get('sale_date'),
            })
        except GatewayError:
            logger.error('Sale of product %s failed, restoring %s units', product['id'], quantity)
            self.gateway.adjust_stock(product['id'], quantity)
            raise
        logger.info('Sale %s recorded: %s x product %s', sale['id'], quantity, product['id'])
        return sale

    # ==================== REPORTS ====================

    def dashboard(self, now=None):
        now = now or utcnow()
        sales = self.gateway.list('sales', self._owned(), order='sale_date')
        products = self.gateway.list('products', self._owned(), order='id')
        return metrics.dashboard_stats(sales, products, now, self.low_stock_threshold,
                                       self.top_limit, self.window_days)

    def supplier_report(self):
        rows = metrics.by_total_amount(metrics.supplier_totals(self.list_purchases()))
        return {'suppliers': rows, 'summary': metrics.supplier_summary(rows)}

    def profit_and_loss(self):
        return metrics.profit_and_loss(self.list_sales(), self.list_purchases())

