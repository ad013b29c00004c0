"""Exceptions raised by the order and payment services.

Each class carries the HTTP status the API answers with; the message is
what the buyer, vendor or admin sees.
"""


class MarketplaceError(Exception):
    """Base exception for all marketplace errors."""

    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(MarketplaceError):
    """Raised when request input is malformed."""

    status_code = 400


class NotFound(MarketplaceError):
    status_code = 404


class ProductNotFound(NotFound):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class OrderNotFound(NotFound):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class OrderItemNotFound(NotFound):
    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(f"Order item {item_id} not found")


class AddressNotFound(NotFound):
    def __init__(self, address_id):
        self.address_id = address_id
        super().__init__(f"Address {address_id} not found")


class PaymentNotFound(NotFound):
    def __init__(self, key):
        self.key = key
        super().__init__(f"Payment not found for {key}")


class VoucherNotFound(NotFound):
    def __init__(self, code):
        self.code = code
        super().__init__(f"Voucher {code} not found")


class Forbidden(MarketplaceError):
    """Raised when the caller does not own the resource or lacks the role."""

    status_code = 403


class InvalidState(MarketplaceError):
    """Raised when an operation is not valid for the current status."""

    status_code = 400


class InsufficientStock(MarketplaceError):
    """Raised when a reservation asks for more units than are in stock."""

    status_code = 400

    def __init__(self, product_id, available, requested, title=None):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        name = f"{title} (ID: {product_id})" if title else f"product {product_id}"
        super().__init__(
            f"Insufficient inventory for {name}. Available: {available}, Requested: {requested}"
        )


class VoucherInvalid(MarketplaceError):
    status_code = 400


class VoucherInactive(VoucherInvalid):
    """Raised when a voucher is expired or out of uses."""

    def __init__(self, code):
        self.code = code
        super().__init__(f"Voucher {code} is expired or fully used")


class MinOrderNotMet(VoucherInvalid):
    def __init__(self, code, min_order_value):
        self.code = code
        self.min_order_value = min_order_value
        super().__init__(f"Order must be at least {min_order_value} to apply this voucher")


class GatewayError(MarketplaceError):
    """Raised when a payment gateway call fails, times out or answers garbage."""

    status_code = 502
