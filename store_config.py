# Store configuration: business type templates, the settings edit state and persistence

import copy
import logging
from collections import namedtuple
from datetime import timedelta

from errors import GatewayError, ValidationError
from models import utcnow
from validation import validate_store_config

logger = logging.getLogger(__name__)

BusinessType = namedtuple(
    'BusinessType',
    'id name default_categories uses_sizes default_size_options suggested_attributes',
)

# ==================== BUSINESS TYPE TEMPLATES ====================
# Read-only reference data; apply() hands out deep copies

BUSINESS_TYPES = (
    BusinessType(
        id='clothing',
        name='Clothing Store',
        default_categories=('Shirt', 'T-shirt', 'Pant', 'Jeans', 'Dress', 'Jacket', 'Skirt', 'Blouse'),
        uses_sizes=True,
        default_size_options=('XS', 'S', 'M', 'L', 'XL', 'XXL', 'XXXL', 'Free Size'),
        suggested_attributes=(
            {'name': 'Color', 'type': 'select',
             'options': ['Black', 'White', 'Red', 'Blue', 'Green', 'Yellow', 'Pink', 'Purple']},
            {'name': 'Material', 'type': 'select',
             'options': ['Cotton', 'Polyester', 'Silk', 'Wool', 'Linen', 'Denim']},
        ),
    ),
    BusinessType(
        id='food',
        name='Food Store / Restaurant',
        default_categories=('Appetizers', 'Main Course', 'Desserts', 'Beverages', 'Snacks', 'Dairy',
                            'Fruits', 'Vegetables'),
        uses_sizes=False,
        default_size_options=(),
        suggested_attributes=(
            {'name': 'Expiry Date', 'type': 'text'},
            {'name': 'Weight/Volume', 'type': 'text'},
            {'name': 'Brand', 'type': 'text'},
        ),
    ),
    BusinessType(
        id='electronics',
        name='Electronics Store',
        default_categories=('Smartphones', 'Laptops', 'Tablets', 'Accessories', 'Gaming', 'Audio',
                            'Smart Home', 'Cameras'),
        uses_sizes=False,
        default_size_options=(),
        suggested_attributes=(
            {'name': 'Brand', 'type': 'select',
             'options': ['Apple', 'Samsung', 'Sony', 'LG', 'HP', 'Dell', 'Lenovo', 'Asus']},
            {'name': 'Model', 'type': 'text'},
            {'name': 'Warranty (months)', 'type': 'number'},
        ),
    ),
    BusinessType(
        id='books',
        name='Book Store',
        default_categories=('Fiction', 'Non-Fiction', 'Educational', 'Children', 'Comics', 'Biography',
                            'Science', 'History'),
        uses_sizes=False,
        default_size_options=(),
        suggested_attributes=(
            {'name': 'Author', 'type': 'text'},
            {'name': 'Publisher', 'type': 'text'},
            {'name': 'ISBN', 'type': 'text'},
            {'name': 'Pages', 'type': 'number'},
        ),
    ),
    BusinessType(
        id='pharmacy',
        name='Pharmacy',
        default_categories=('Prescription', 'Over-the-Counter', 'Vitamins', 'First Aid', 'Personal Care',
                            'Baby Care'),
        uses_sizes=False,
        default_size_options=(),
        suggested_attributes=(
            {'name': 'Dosage', 'type': 'text'},
            {'name': 'Expiry Date', 'type': 'text'},
            {'name': 'Manufacturer', 'type': 'text'},
            {'name': 'Prescription Required', 'type': 'select', 'options': ['Yes', 'No']},
        ),
    ),
    BusinessType(
        id='general',
        name='General Store',
        default_categories=('Household', 'Personal Care', 'Office Supplies', 'Tools', 'Toys', 'Gifts'),
        uses_sizes=False,
        default_size_options=(),
        suggested_attributes=(
            {'name': 'Brand', 'type': 'text'},
            {'name': 'Color', 'type': 'text'},
            {'name': 'Material', 'type': 'text'},
        ),
    ),
)

_BY_ID = {bt.id: bt for bt in BUSINESS_TYPES}

# Shown until the owner saves a configuration of their own
DEFAULT_CONFIG = {
    'store_name': 'Universal Store',
    'business_type': 'general',
    'categories': ['General'],
    'uses_sizes': False,
    'size_options': [],
    'custom_attributes': [],
    'currency_symbol': '৳',
}

CONFIG_FIELDS = tuple(DEFAULT_CONFIG)

SAVED_DISPLAY_SECONDS = 3


def business_types():
    return list(BUSINESS_TYPES)


def get_business_type(type_id):
    return _BY_ID.get(type_id)


def business_type_to_dict(business_type):
    return {
        'id': business_type.id,
        'name': business_type.name,
        'default_categories': list(business_type.default_categories),
        'uses_sizes': business_type.uses_sizes,
        'default_size_options': list(business_type.default_size_options),
        'suggested_attributes': copy.deepcopy(list(business_type.suggested_attributes)),
    }


# ==================== EDIT STATE ====================

def _clean(value):
    return value.strip() if isinstance(value, str) else ''


class ConfigDraft:
    """
    In-progress edit of a store configuration.

    List edits trim the new entry and refuse blanks and exact duplicates (add_* returns
    False); removals match exactly. `on_change` is called after every successful edit.
    """

    def __init__(self, record=None, on_change=None):
        source = record or DEFAULT_CONFIG
        self.store_name = source.get('store_name', '')
        self.business_type = source.get('business_type', '')
        self.categories = list(source.get('categories') or [])
        self.uses_sizes = bool(source.get('uses_sizes'))
        self.size_options = list(source.get('size_options') or [])
        self.custom_attributes = copy.deepcopy(list(source.get('custom_attributes') or []))
        self.currency_symbol = source.get('currency_symbol', '')
        self.on_change = on_change

    def _changed(self):
        if self.on_change is not None:
            self.on_change()

    def set(self, **fields):
        """Assign scalar fields (store_name, currency_symbol, uses_sizes) or whole lists."""
        for name, value in fields.items():
            if name not in CONFIG_FIELDS or name == 'business_type':
                raise AttributeError(f'Not an editable config field: {name}')
            setattr(self, name, copy.deepcopy(value))
        self._changed()

    def select_business_type(self, type_id):
        """
        Apply a business type template.
        Categories, sizes and custom attributes are replaced outright; store name and
        currency are kept.
        """
        business_type = get_business_type(type_id)
        if business_type is None:
            return False
        self.business_type = business_type.id
        self.categories = list(business_type.default_categories)
        self.uses_sizes = business_type.uses_sizes
        self.size_options = list(business_type.default_size_options)
        self.custom_attributes = copy.deepcopy(list(business_type.suggested_attributes))
        self._changed()
        return True

    def _add(self, items, value):
        entry = _clean(value)
        if not entry or entry in items:
            return False
        items.append(entry)
        self._changed()
        return True

    def _remove(self, items, value):
        if value not in items:
            return False
        items.remove(value)
        self._changed()
        return True

    def add_category(self, name):
        return self._add(self.categories, name)

    def remove_category(self, name):
        return self._remove(self.categories, name)

    def add_size(self, size):
        return self._add(self.size_options, size)

    def remove_size(self, size):
        return self._remove(self.size_options, size)

    def _attribute(self, name):
        for attribute in self.custom_attributes:
            if attribute['name'] == name:
                return attribute
        return None

    def add_attribute(self, name, attr_type='text', options=None):
        entry = _clean(name)
        if not entry or self._attribute(entry) is not None:
            return False
        attribute = {'name': entry, 'type': attr_type}
        if attr_type == 'select':
            attribute['options'] = []
            for option in options or []:
                option = _clean(option)
                if option and option not in attribute['options']:
                    attribute['options'].append(option)
        self.custom_attributes.append(attribute)
        self._changed()
        return True

    def remove_attribute(self, name):
        attribute = self._attribute(name)
        if attribute is None:
            return False
        self.custom_attributes.remove(attribute)
        self._changed()
        return True

    def add_attribute_option(self, name, option):
        attribute = self._attribute(name)
        if attribute is None or attribute.get('type') != 'select':
            return False
        return self._add(attribute.setdefault('options', []), option)

    def remove_attribute_option(self, name, option):
        attribute = self._attribute(name)
        if attribute is None:
            return False
        return self._remove(attribute.get('options', []), option)

    def to_record(self):
        return {
            'store_name': _clean(self.store_name),
            'business_type': self.business_type,
            'categories': list(self.categories),
            'uses_sizes': self.uses_sizes,
            # Size options only exist for stores that use sizes
            'size_options': list(self.size_options) if self.uses_sizes else [],
            'custom_attributes': copy.deepcopy(self.custom_attributes),
            'currency_symbol': _clean(self.currency_symbol),
        }


# ==================== PERSISTENCE ====================

def load_store_config(gateway, owner_id):
    """The owner's saved config row, or None if they never saved one."""
    rows = gateway.list('store_config', {'owner_id': owner_id})
    return rows[0] if rows else None


def effective_config(row):
    """Config used to drive the forms: the saved row, or the default store."""
    if row is None:
        return dict(copy.deepcopy(DEFAULT_CONFIG), id=None)
    return row


def is_configured(row):
    return row is not None and row.get('store_name') != DEFAULT_CONFIG['store_name']


def save_store_config(gateway, owner_id, record):
    """
    Upsert the owner's configuration.
    The existing row is looked up first and updated in place so its id survives edits;
    only an owner without a row gets a new one.
    """
    record = {k: record[k] for k in CONFIG_FIELDS if k in record}
    validate_store_config(record, _BY_ID)
    existing = load_store_config(gateway, owner_id)
    if existing is not None:
        saved = gateway.update('store_config', existing['id'], record)
        logger.info('Updated store config %s for owner %s', saved['id'], owner_id)
    else:
        saved = gateway.insert('store_config', dict(record, owner_id=owner_id))
        logger.info('Created store config %s for owner %s', saved['id'], owner_id)
    return saved


# ==================== SETTINGS FORM ====================

LOADING = 'loading'
EDITING = 'editing'
SAVING = 'saving'
SAVED = 'saved'
FAILED = 'failed'


class SettingsForm:
    """
    Settings screen state: loading -> editing -> saving -> saved | failed.

    Any change to the draft moves the form back to editing. A failed save keeps its
    error until the next submit; a successful save shows as saved for
    SAVED_DISPLAY_SECONDS and then reverts to editing on refresh().
    """

    def __init__(self, gateway, owner_id, display_seconds=SAVED_DISPLAY_SECONDS):
        self.gateway = gateway
        self.owner_id = owner_id
        self.display_seconds = display_seconds
        self.state = LOADING
        self.draft = None
        self.error = None
        self.saved = None
        self.saved_at = None

    def load(self):
        row = load_store_config(self.gateway, self.owner_id)
        self.saved = row
        self.draft = ConfigDraft(row, on_change=self._touch)
        self.state = EDITING
        return self.draft

    def _touch(self):
        if self.state in (SAVED, FAILED):
            self.state = EDITING

    def submit(self, now=None):
        if self.state == LOADING:
            raise RuntimeError('Settings have not been loaded yet')
        self.state = SAVING
        self.error = None
        try:
            self.saved = save_store_config(self.gateway, self.owner_id, self.draft.to_record())
        except (ValidationError, GatewayError) as exc:
            logger.info('Saving store config for owner %s failed: %s', self.owner_id, exc)
            self.state = FAILED
            self.error = exc
            return None
        self.state = SAVED
        self.saved_at = now or utcnow()
        return self.saved

    def refresh(self, now=None):
        """Drop the saved banner once it has been shown long enough."""
        if self.state == SAVED:
            now = now or utcnow()
            if now - self.saved_at >= timedelta(seconds=self.display_seconds):
                self.state = EDITING
        return self.state
