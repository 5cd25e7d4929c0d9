# Database models for the retail inventory manager
# The SQL gateway reads and writes these tables; everything above it exchanges plain dict rows

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy  # ORM for database operations
from werkzeug.security import generate_password_hash, check_password_hash  # Password security

# Initialize SQLAlchemy database instance
# This will be configured and bound to the Flask app in create_app()
db = SQLAlchemy()


def utcnow():
    """Current time as a naive UTC datetime (the format stored in every timestamp column)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_timestamp(text):
    """
    Parse an ISO 8601 timestamp into naive UTC.
    Aware values (including a trailing Z) are converted; naive values are taken to be UTC already.
    Raises ValueError for text that is not a timestamp.
    """
    text = str(text).strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# ==================== DATABASE MODELS ====================

class User(db.Model):
    """
    User model for authentication and session management.
    Each user is one store account and owns its products, purchases, sales and config.
    """
    id = db.Column(db.Integer, primary_key=True)  # Unique identifier for each user
    username = db.Column(db.String(80), unique=True, nullable=False)  # Username (must be unique)
    password_hash = db.Column(db.String(256), nullable=False)  # Hashed password for security

    def set_password(self, password):
        """Hash and store the user's password securely."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Return True if the provided password matches the stored hash."""
        return check_password_hash(self.password_hash, password)


class Product(db.Model):
    """
    Product in a store's catalog.
    Stock rises on purchase and falls on sale; prices and stock are never negative.
    """
    __tablename__ = 'products'
    __table_args__ = {'sqlite_autoincrement': True}  # Never hand a deleted product's id to a new one

    id = db.Column(db.Integer, primary_key=True)  # Unique product identifier
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)  # Owning store account
    name = db.Column(db.String(120), nullable=False)  # Product name
    category = db.Column(db.String(80), nullable=False)  # Category from the store configuration
    size = db.Column(db.String(30), nullable=True)  # Only used by stores with uses_sizes
    purchase_price = db.Column(db.Float, nullable=False, default=0.0)  # Cost per unit
    selling_price = db.Column(db.Float, nullable=False, default=0.0)  # Price per unit at sale
    stock = db.Column(db.Integer, nullable=False, default=0)  # Units currently held
    custom_attributes = db.Column(db.JSON, nullable=False, default=dict)  # Free-form typed extras (barcode, color...)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'owner_id': self.owner_id,
            'name': self.name,
            'category': self.category,
            'size': self.size,
            'purchase_price': self.purchase_price,
            'selling_price': self.selling_price,
            'stock': self.stock,
            'custom_attributes': dict(self.custom_attributes or {}),
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    def summary(self):
        """Subset of columns embedded into purchase and sale rows."""
        return {
            'name': self.name,
            'category': self.category,
            'size': self.size,
            'purchase_price': self.purchase_price,
        }


class Purchase(db.Model):
    """
    Purchase transaction; immutable once recorded.
    The product's stock is raised by the inventory service as a separate write.
    """
    __tablename__ = 'purchases'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)  # Unique purchase transaction ID
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id', ondelete='SET NULL'), nullable=True, index=True)  # Link to product
    supplier = db.Column(db.String(120), nullable=False)  # Free-text supplier name
    quantity = db.Column(db.Integer, nullable=False)  # Purchased quantity
    purchase_price = db.Column(db.Float, nullable=False)  # Purchase price per unit
    purchase_date = db.Column(db.DateTime, nullable=False, default=utcnow)  # Purchase date/time
    product = db.relationship('Product')  # Relationship to access product details

    def to_dict(self):
        return {
            'id': self.id,
            'owner_id': self.owner_id,
            'product_id': self.product_id,
            'supplier': self.supplier,
            'quantity': self.quantity,
            'purchase_price': self.purchase_price,
            'purchase_date': self.purchase_date,
            'product': self.product.summary() if self.product is not None else None,
        }


class Sale(db.Model):
    """
    Sales transaction; immutable once recorded.
    total_price is stored as selling_price * quantity at the time of sale.
    """
    __tablename__ = 'sales'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)  # Unique sale transaction ID
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id', ondelete='SET NULL'), nullable=True, index=True)  # Link to product sold
    quantity = db.Column(db.Integer, nullable=False)  # Quantity sold
    selling_price = db.Column(db.Float, nullable=False)  # Sale price per unit
    total_price = db.Column(db.Float, nullable=False)  # selling_price * quantity
    sale_date = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)  # Sale date/time
    product = db.relationship('Product')

    def to_dict(self):
        return {
            'id': self.id,
            'owner_id': self.owner_id,
            'product_id': self.product_id,
            'quantity': self.quantity,
            'selling_price': self.selling_price,
            'total_price': self.total_price,
            'sale_date': self.sale_date,
            'product': self.product.summary() if self.product is not None else None,
        }


class StoreConfig(db.Model):
    """
    Store configuration, one row per owner.
    Drives the category, size and custom attribute fields of the product forms.
    """
    __tablename__ = 'store_config'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True)  # Exactly one row per owner
    store_name = db.Column(db.String(120), nullable=False)
    business_type = db.Column(db.String(40), nullable=False)  # Id of the business type template
    categories = db.Column(db.JSON, nullable=False, default=list)  # Ordered category names
    uses_sizes = db.Column(db.Boolean, nullable=False, default=False)
    size_options = db.Column(db.JSON, nullable=False, default=list)  # Empty unless uses_sizes
    custom_attributes = db.Column(db.JSON, nullable=False, default=list)  # [{name, type, options}]
    currency_symbol = db.Column(db.String(8), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'owner_id': self.owner_id,
            'store_name': self.store_name,
            'business_type': self.business_type,
            'categories': list(self.categories or []),
            'uses_sizes': self.uses_sizes,
            'size_options': list(self.size_options or []),
            'custom_attributes': [dict(a) for a in (self.custom_attributes or [])],
            'currency_symbol': self.currency_symbol,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }
