"""
Error kinds raised by the inventory ledger and sale settlement services.

All errors carry a human-readable message plus a ``details`` dict that the
JSON layer returns verbatim. Validation errors are raised before any write.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for domain errors."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "type": type(self).__name__, "details": self.details}


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""


class InvalidQuantity(ValidationError):
    def __init__(self, quantity):
        super().__init__(
            f"Quantity must be a positive integer, got {quantity!r}",
            details={"quantity": quantity},
        )


class InvalidMoney(ValidationError):
    def __init__(self, field: str, value):
        super().__init__(
            f"{field} must be a non-negative amount in cents, got {value!r}",
            details={"field": field, "value": value},
        )


class InvalidCursor(ValidationError):
    def __init__(self):
        super().__init__("Malformed pagination cursor")


class InvalidPageSize(ValidationError):
    def __init__(self, page_size, maximum: int):
        super().__init__(
            f"page_size must be between 1 and {maximum}",
            details={"page_size": page_size, "max": maximum},
        )


class InvalidDateRange(ValidationError):
    pass


class NotFoundError(LedgerError):
    status_code = 404


class ProductNotFound(NotFoundError):
    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found", details={"product_id": product_id})
        self.product_id = product_id


class CompanyNotFound(NotFoundError):
    def __init__(self, company_id):
        super().__init__(f"Company {company_id} not found", details={"company_id": company_id})


class SaleNotFound(NotFoundError):
    def __init__(self, sale_id):
        super().__init__(f"Sale {sale_id} not found", details={"sale_id": sale_id})


class ProductCompanyMismatch(LedgerError):
    status_code = 422

    def __init__(self, product_id, company_id):
        super().__init__(
            f"Product {product_id} does not belong to company {company_id}",
            details={"product_id": product_id, "company_id": company_id},
        )
        self.product_id = product_id


class InsufficientStock(LedgerError):
    status_code = 409

    def __init__(self, product_id: int, required: int, available: int, sku: str | None = None):
        label = sku or product_id
        super().__init__(
            f"Insufficient stock for product {label}. Required: {required}, Available: {available}",
            details={
                "product_id": product_id,
                "sku": sku,
                "required": required,
                "available": available,
            },
        )
        self.product_id = product_id
        self.required = required
        self.available = available


class InvalidSaleTransition(LedgerError):
    status_code = 409
