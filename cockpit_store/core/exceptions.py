"""
Cockpit Store Exception Hierarchy

Structured exception classes for the configuration & pricing engine.
All exceptions include code, message, and details so the storefront can
render the reason next to the offending selector.

Exception Hierarchy:
    StorefrontError
    ├── ValidationError                     (400)
    │   ├── MissingRequiredVariation
    │   ├── InvalidOptionReference
    │   ├── MissingRequiredAddOn
    │   ├── InvalidQuantity
    │   └── InvalidCoupon
    ├── StockError                          (409)
    │   └── RequiredComponentOutOfStock
    ├── NotFoundError                       (404)
    │   ├── ProductNotFound
    │   ├── CartNotFound
    │   └── CartItemNotFound
    └── InternalError                       (500)
        ├── SchemaLoadError
        ├── CatalogIntegrityError
        ├── IllegalLineTransition
        └── StockInvariantViolation
"""
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """
    Base exception for all storefront errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context (offending group/option/item ids)
        severity: P0-P3 severity level
    """

    default_code: str = "STOREFRONT_ERROR"
    default_severity: str = "P2"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# VALIDATION ERRORS (user-correctable)
# =============================================================================

class ValidationError(StorefrontError):
    """Malformed or incomplete configuration."""
    default_code = "VALIDATION_ERROR"
    default_severity = "P3"
    http_status = 400


class MissingRequiredVariation(ValidationError):
    """A required variation group has no selection and no default option."""
    default_code = "MISSING_REQUIRED_VARIATION"

    def __init__(
        self,
        message: str,
        group_id: Optional[int] = None,
        bundle_item_id: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({"group_id": group_id, "bundle_item_id": bundle_item_id})
        self.group_id = group_id
        super().__init__(message, details=details, **kwargs)


class InvalidOptionReference(ValidationError):
    """A selection references something that does not belong where it is claimed."""
    default_code = "INVALID_OPTION_REFERENCE"

    def __init__(
        self,
        message: str,
        group_id: Optional[int] = None,
        option_id: Optional[Any] = None,
        addon_id: Optional[int] = None,
        bundle_item_id: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "group_id": group_id,
            "option_id": option_id,
            "addon_id": addon_id,
            "bundle_item_id": bundle_item_id,
        })
        super().__init__(message, details=details, **kwargs)


class MissingRequiredAddOn(ValidationError):
    """A required add-on was not selected."""
    default_code = "MISSING_REQUIRED_ADDON"

    def __init__(self, message: str, addon_id: Optional[int] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["addon_id"] = addon_id
        self.addon_id = addon_id
        super().__init__(message, details=details, **kwargs)


class InvalidQuantity(ValidationError):
    """Quantity outside the allowed range."""
    default_code = "INVALID_QUANTITY"

    def __init__(
        self,
        message: str,
        quantity: Optional[int] = None,
        maximum: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({"quantity": quantity, "maximum": maximum})
        super().__init__(message, details=details, **kwargs)


class InvalidCoupon(ValidationError):
    """Coupon code rejected by the coupon applier."""
    default_code = "INVALID_COUPON"

    def __init__(self, message: str, reason: str = "INVALID", coupon_code: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details.update({"reason": reason, "coupon_code": coupon_code})
        self.reason = reason
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# STOCK ERRORS
# =============================================================================

class StockError(StorefrontError):
    """Stock-related errors (required component unavailable)."""
    default_code = "STOCK_ERROR"
    default_severity = "P3"
    http_status = 409


class RequiredComponentOutOfStock(StockError):
    """A required component of the configuration is out of stock."""
    default_code = "REQUIRED_COMPONENT_OUT_OF_STOCK"

    def __init__(
        self,
        message: str,
        unit_kind: Optional[str] = None,
        unit_id: Optional[int] = None,
        bundle_item_id: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "unit_kind": unit_kind,
            "unit_id": unit_id,
            "bundle_item_id": bundle_item_id,
        })
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================

class NotFoundError(StorefrontError):
    """Product, cart or session missing."""
    default_code = "NOT_FOUND"
    default_severity = "P3"
    http_status = 404


class ProductNotFound(NotFoundError):
    default_code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int, **kwargs):
        details = kwargs.pop("details", {})
        details["product_id"] = product_id
        super().__init__(f"Product {product_id} not found", details=details, **kwargs)


class CartNotFound(NotFoundError):
    """Owning cart/session no longer exists (expired or never created)."""
    default_code = "CART_NOT_FOUND"


class CartItemNotFound(NotFoundError):
    default_code = "CART_ITEM_NOT_FOUND"

    def __init__(self, item_id: int, **kwargs):
        details = kwargs.pop("details", {})
        details["item_id"] = item_id
        super().__init__(f"Cart item {item_id} not found", details=details, **kwargs)


class SharedConfigNotFound(NotFoundError):
    default_code = "SHARED_CONFIG_NOT_FOUND"

    def __init__(self, short_code: str, **kwargs):
        details = kwargs.pop("details", {})
        details["short_code"] = short_code
        super().__init__(f"Shared configuration {short_code} not found", details=details, **kwargs)


# =============================================================================
# INTERNAL ERRORS (invariant violations, persistence failures)
# =============================================================================

class InternalError(StorefrontError):
    """Persistence failure or broken invariant. Never user-correctable."""
    default_code = "INTERNAL_ERROR"
    default_severity = "P1"
    http_status = 500


class SchemaLoadError(InternalError):
    """Catalog schema could not be read from persistence."""
    default_code = "SCHEMA_LOAD_FAILED"


class CatalogIntegrityError(InternalError):
    """Persisted catalog violates a structural rule (e.g. bundle of bundles)."""
    default_code = "CATALOG_INTEGRITY_VIOLATION"


class IllegalLineTransition(InternalError):
    """Cart line state machine violated."""
    default_code = "ILLEGAL_LINE_TRANSITION"


class StockInvariantViolation(InternalError):
    """Stock counter read back in an impossible state (negative)."""
    default_code = "STOCK_INVARIANT_VIOLATION"


class ShortCodeExhausted(InternalError):
    """Every generated share code collided with an existing one."""
    default_code = "SHORT_CODE_EXHAUSTED"
