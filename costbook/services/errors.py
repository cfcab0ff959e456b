"""Domain errors raised by the service layer.

Routers never translate these by hand; the API registers a single handler that
renders them into the standard error envelope using ``status_code`` and ``code``.
"""


class CostbookError(Exception):
    status_code = 400
    code = "bad_request"

    def __init__(self, message: str, *, details: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(CostbookError):
    status_code = 404
    code = "not_found"


class DomainValidationError(CostbookError):
    status_code = 400
    code = "validation_error"


class InsufficientStockError(CostbookError):
    status_code = 400
    code = "insufficient_stock"

    def __init__(self, *, product_id: str, available, requested):
        super().__init__(
            "Insufficient stock",
            details=[
                {
                    "field": "quantity",
                    "message": f"available {available}, requested {requested}",
                    "type": "insufficient_stock",
                }
            ],
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class StockWriteConflictError(CostbookError):
    status_code = 409
    code = "conflict"


class LedgerConsistencyError(CostbookError):
    status_code = 500
    code = "internal_error"
