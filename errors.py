# Error taxonomy shared by the validation layer, the gateways and the web layer

# ==================== FAILURE REASONS ====================
# Stable reason codes returned to API clients in the "error" field

INVALID_NAME = 'InvalidName'
INVALID_CATEGORY = 'InvalidCategory'
INVALID_PRICE = 'InvalidPrice'
NEGATIVE_PRICE = 'NegativePrice'
NEGATIVE_STOCK = 'NegativeStock'
INVALID_STOCK = 'InvalidStock'
INVALID_ATTRIBUTES = 'InvalidAttributes'
MISSING_PRODUCT = 'MissingProduct'
INVALID_SUPPLIER = 'InvalidSupplier'
INVALID_QUANTITY = 'InvalidQuantity'
INSUFFICIENT_STOCK = 'InsufficientStock'
INVALID_STORE_NAME = 'InvalidStoreName'
INVALID_CURRENCY = 'InvalidCurrency'
INVALID_BUSINESS_TYPE = 'InvalidBusinessType'
INVALID_DATE = 'InvalidDate'
NOT_FOUND = 'NotFound'


class InventoryError(Exception):
    """Base class for every error raised by the inventory modules."""


class ValidationError(InventoryError):
    """
    Raised before any write when a payload breaks a record invariant.
    The reason is one of the codes above; the message is user facing.
    """

    def __init__(self, reason, message):
        super().__init__(message)
        self.reason = reason
        self.message = message

    def to_dict(self):
        return {'error': self.reason, 'message': self.message}


class NotFoundError(ValidationError):
    """A referenced row does not exist (or belongs to another owner)."""

    def __init__(self, message, reason=MISSING_PRODUCT):
        super().__init__(reason, message)


class GatewayError(InventoryError):
    """Network or backend failure reported by the persistence gateway."""
