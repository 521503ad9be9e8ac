"""
Storefront - Custom Exceptions
===============================
Business-level exceptions that are caught at the request boundary and
rendered as the {success: false, message} envelope.
"""


class StorefrontError(Exception):
    """Base exception for all business logic errors."""
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(StorefrontError):
    """Raised when a requested resource doesn't exist."""
    status_code = 404


class ValidationError(StorefrontError):
    """Raised for malformed input or amounts outside allowed bounds."""
    status_code = 400


class AuthenticationError(StorefrontError):
    """Raised when authentication fails."""
    status_code = 401

    def __init__(self, message: str = "Login required"):
        super().__init__(message)


class AuthorizationError(StorefrontError):
    """Raised when the principal is neither the owner nor permitted by role."""
    status_code = 403


class ConflictError(StorefrontError):
    """Raised when a request conflicts with the current state of a resource."""
    status_code = 409


class DuplicateError(ConflictError):
    """Raised for unique constraint violations at the business level."""
    pass


class DuplicateReviewError(ConflictError):
    def __init__(self):
        super().__init__("You have already reviewed this product")


class AlreadyDeliveredError(ConflictError):
    def __init__(self):
        super().__init__("Order already delivered")


class AlreadyPaidError(ConflictError):
    def __init__(self):
        super().__init__("Order already paid")


class InsufficientStockError(StorefrontError):
    """Raised when product stock is not enough."""
    status_code = 400

    def __init__(self, product_name: str = "", available: int = None):
        if available is not None:
            msg = f"Only {available} items available in stock"
        elif product_name:
            msg = f"Insufficient stock for {product_name}"
        else:
            msg = "Insufficient stock"
        super().__init__(msg)


class InvalidCouponError(StorefrontError):
    """Raised when a coupon code is unknown or inactive."""
    status_code = 400

    def __init__(self, message: str = "Invalid or expired coupon"):
        super().__init__(message)


class ExpiredCouponError(InvalidCouponError):
    def __init__(self):
        super().__init__("Coupon has expired")


class BelowMinimumError(ValidationError):
    """Raised when the order total is below a coupon's minimum amount."""

    def __init__(self, min_amount):
        self.min_amount = min_amount
        super().__init__(f"Order total must be at least {min_amount} to use this coupon")


class EmptyCartError(StorefrontError):
    status_code = 400

    def __init__(self):
        super().__init__("Cart is empty")


class NotPurchasedError(StorefrontError):
    status_code = 400

    def __init__(self):
        super().__init__("You can only review products you have purchased")


class UpstreamFailureError(StorefrontError):
    """Raised when an external collaborator (store, delivery) fails."""
    status_code = 502
