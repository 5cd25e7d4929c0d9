# Pre-write checks for product, purchase, sale and store configuration payloads
# Every function here is a pure decision: it raises ValidationError or returns None, and never does I/O

import numbers

from errors import (
    ValidationError,
    NotFoundError,
    INVALID_NAME,
    INVALID_CATEGORY,
    INVALID_PRICE,
    NEGATIVE_PRICE,
    NEGATIVE_STOCK,
    INVALID_STOCK,
    INVALID_ATTRIBUTES,
    MISSING_PRODUCT,
    INVALID_SUPPLIER,
    INVALID_QUANTITY,
    INSUFFICIENT_STOCK,
    INVALID_STORE_NAME,
    INVALID_CURRENCY,
    INVALID_BUSINESS_TYPE,
)

ATTRIBUTE_TYPES = ('text', 'number', 'select')


# ==================== COERCION HELPERS ====================

def to_int(value):
    """
    Parse an integer from a form or JSON value.
    Returns None for anything that is not a whole number, so the caller reports the right reason.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def to_number(value):
    """Parse a price from a form or JSON value; None when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _is_blank(value):
    return value is None or not str(value).strip()


def _check_stock(value):
    stock = to_int(value)
    if stock is None:
        raise ValidationError(INVALID_STOCK, 'Stock must be a whole number')
    if stock < 0:
        raise ValidationError(NEGATIVE_STOCK, 'Stock cannot be negative')


def _check_price(value, label):
    price = to_number(value)
    if price is None:
        raise ValidationError(INVALID_PRICE, f'{label} must be a number')
    if price < 0:
        raise ValidationError(NEGATIVE_PRICE, f'{label} cannot be negative')


def _check_attributes(attributes):
    # Custom attribute values: string keys mapping to scalars or lists of scalars
    if not isinstance(attributes, dict):
        raise ValidationError(INVALID_ATTRIBUTES, 'Custom attributes must be a mapping')
    for key, value in attributes.items():
        if not isinstance(key, str) or not key.strip():
            raise ValidationError(INVALID_ATTRIBUTES, 'Custom attribute names must be non-empty strings')
        values = value if isinstance(value, list) else [value]
        for item in values:
            if item is not None and not isinstance(item, (str, int, float, bool)):
                raise ValidationError(INVALID_ATTRIBUTES, f'Unsupported value for attribute {key!r}')


# ==================== PRODUCTS ====================

def validate_product(payload):
    """Check a new product: name, category, both prices and the opening stock."""
    if _is_blank(payload.get('name')):
        raise ValidationError(INVALID_NAME, 'Product name is required')
    if _is_blank(payload.get('category')):
        raise ValidationError(INVALID_CATEGORY, 'Product category is required')
    _check_price(payload.get('purchase_price'), 'Purchase price')
    _check_price(payload.get('selling_price'), 'Selling price')
    _check_stock(payload.get('stock', 0))
    if payload.get('custom_attributes') is not None:
        _check_attributes(payload['custom_attributes'])


def validate_product_patch(patch):
    """Same rules as validate_product, applied only to the fields present in an edit."""
    if 'name' in patch and _is_blank(patch['name']):
        raise ValidationError(INVALID_NAME, 'Product name is required')
    if 'category' in patch and _is_blank(patch['category']):
        raise ValidationError(INVALID_CATEGORY, 'Product category is required')
    if 'purchase_price' in patch:
        _check_price(patch['purchase_price'], 'Purchase price')
    if 'selling_price' in patch:
        _check_price(patch['selling_price'], 'Selling price')
    if 'stock' in patch:
        _check_stock(patch['stock'])
    if patch.get('custom_attributes') is not None:
        _check_attributes(patch['custom_attributes'])


# ==================== TRANSACTIONS ====================

def validate_purchase(payload):
    if payload.get('product_id') in (None, ''):
        raise ValidationError(MISSING_PRODUCT, 'Product ID is required')
    if _is_blank(payload.get('supplier')):
        raise ValidationError(INVALID_SUPPLIER, 'Supplier name is required')
    quantity = to_int(payload.get('quantity'))
    if quantity is None or quantity <= 0:
        raise ValidationError(INVALID_QUANTITY, 'Quantity must be greater than 0')
    _check_price(payload.get('purchase_price'), 'Purchase price')


def validate_sale(payload, product):
    """
    Check a sale against the latest known state of its product.

    `product` is the product row the sale refers to, or None when it could not be found.
    The stock check is advisory: the inventory service still performs an atomic
    conditional decrement when it writes.
    """
    if payload.get('product_id') in (None, ''):
        raise ValidationError(MISSING_PRODUCT, 'Product ID is required')
    if product is None:
        raise NotFoundError('Product not found')
    quantity = to_int(payload.get('quantity'))
    if quantity is None or quantity <= 0:
        raise ValidationError(INVALID_QUANTITY, 'Quantity must be greater than 0')
    if quantity > product['stock']:
        raise ValidationError(
            INSUFFICIENT_STOCK,
            f"Insufficient stock. Available: {product['stock']}, Requested: {quantity}",
        )
    _check_price(payload.get('selling_price', product['selling_price']), 'Selling price')


# ==================== STORE CONFIGURATION ====================

def validate_store_config(record, known_business_types):
    if _is_blank(record.get('store_name')):
        raise ValidationError(INVALID_STORE_NAME, 'Store name is required')
    if _is_blank(record.get('currency_symbol')):
        raise ValidationError(INVALID_CURRENCY, 'Currency symbol is required')
    if record.get('business_type') not in known_business_types:
        raise ValidationError(INVALID_BUSINESS_TYPE, 'Choose a business type')
    for attribute in record.get('custom_attributes') or []:
        if not isinstance(attribute, dict):
            raise ValidationError(INVALID_ATTRIBUTES, 'Custom attributes must be objects')
        if _is_blank(attribute.get('name')):
            raise ValidationError(INVALID_ATTRIBUTES, 'Attribute name is required')
        if attribute.get('type') not in ATTRIBUTE_TYPES:
            raise ValidationError(INVALID_ATTRIBUTES, f"Unknown attribute type {attribute.get('type')!r}")
        if attribute['type'] == 'select':
            options = attribute.get('options')
            if not isinstance(options, list) or any(_is_blank(option) for option in options):
                raise ValidationError(INVALID_ATTRIBUTES, f"Select attribute {attribute['name']!r} needs a list of options")
