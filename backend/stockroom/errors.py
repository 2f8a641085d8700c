# backend/stockroom/errors.py
"""
Service error taxonomy.

Services raise these and never translate them into HTTP responses
themselves; routes read `status_code` and `code` to build the JSON error
body ({"success": false, "error": ..., "code": ...}).

- ValidationError   (400): missing tenant/identifier, bad enum, bad quantity
- NotFoundError     (404): missing entity OR entity owned by another business
- BusinessRuleError (409 unless overridden): stock rules
- ConflictError     (409): duplicate natural keys
"""
from __future__ import annotations


class ServiceError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "code": self.code}


class ValidationError(ServiceError):
    """400-level input problem."""
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class NotFoundError(ServiceError):
    """404: the entity does not exist for the requesting business."""
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class BusinessRuleError(ServiceError):
    status_code = 409
    code = "BUSINESS_RULE_VIOLATION"
    default_message = "Business rule violated"


class ConflictError(ServiceError):
    """409-level uniqueness conflict (e.g., duplicate tier code)."""
    status_code = 409
    code = "CONFLICT"
    default_message = "Conflict"


class BusinessIdRequired(ValidationError):
    code = "BUSINESS_ID_REQUIRED"
    default_message = "business_id is required"


class InvalidAdjustmentType(ValidationError):
    code = "INVALID_ADJUSTMENT_TYPE"
    default_message = "Invalid adjustment type. Use ADJUSTMENT_IN or ADJUSTMENT_OUT"


class InvalidQuantity(ValidationError):
    code = "INVALID_QUANTITY"
    default_message = "quantity must be a positive number"


class ProductNotFound(NotFoundError):
    code = "PRODUCT_NOT_FOUND"
    default_message = "Product not found"


class OutletNotFound(NotFoundError):
    code = "OUTLET_NOT_FOUND"
    default_message = "Outlet not found"


class CustomerNotFound(NotFoundError):
    code = "CUSTOMER_NOT_FOUND"
    default_message = "Customer not found"


class WarehouseNotFound(NotFoundError):
    code = "WAREHOUSE_NOT_FOUND"
    default_message = "Warehouse not found"


class PriceTierNotFound(NotFoundError):
    code = "PRICE_TIER_NOT_FOUND"
    default_message = "Price tier not found"


class SourceInventoryNotFound(NotFoundError):
    code = "SOURCE_INVENTORY_NOT_FOUND"
    default_message = "Source inventory not found"


class NegativeInventoryError(BusinessRuleError):
    code = "NEGATIVE_INVENTORY"
    default_message = "Adjustment would result in negative inventory"


class InsufficientInventory(BusinessRuleError):
    code = "INSUFFICIENT_INVENTORY"
    default_message = "Insufficient inventory for transfer"


class SameWarehouseTransfer(BusinessRuleError):
    status_code = 400
    code = "SAME_WAREHOUSE_TRANSFER"
    default_message = "Cannot transfer to the same warehouse"
