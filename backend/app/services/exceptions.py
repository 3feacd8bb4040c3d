class CheckoutException(Exception):
    """Checkout failure that maps straight onto an HTTP error response."""

    status_code = 500
    message = "Checkout failed"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class Unauthorized(CheckoutException):
    status_code = 401
    message = "Unauthorized"


class InvalidCsrfToken(CheckoutException):
    status_code = 403
    message = "Invalid CSRF token"


class CartNotFound(CheckoutException):
    status_code = 400
    message = "Cart not found or empty"


class CartForbidden(CheckoutException):
    status_code = 403
    message = "Unauthorized access to cart"


class CheckoutInProgress(CheckoutException):
    status_code = 409
    message = "Checkout already in progress for this cart"


class ShippingUnavailable(CheckoutException):
    status_code = 500

    def __init__(self, shipping_speed: str):
        self.shipping_speed = shipping_speed
        super().__init__(f"Unable to calculate shipping for {shipping_speed} shipping")


class PersistenceError(CheckoutException):
    status_code = 500
    message = "Failed to create orders"
