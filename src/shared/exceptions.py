from fastapi import HTTPException, status


class ResourceNotFoundException(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictException(HTTPException):
    def __init__(self, detail: str = "Conflict occurred"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ValidationException(HTTPException):
    def __init__(self, detail: str = "Validation error"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail
        )


class InsufficientStockException(ConflictException):
    def __init__(
        self,
        product_id: str,
        requested: int,
        available: int,
        detail: str | None = None,
    ):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            detail
            or f"Insufficient stock for product {product_id}. "
            f"Available: {available}, Requested: {requested}"
        )


class TransferException(ConflictException):
    """Warehouse transfer failed; both legs have been rolled back."""

    def __init__(self, detail: str = "Stock transfer failed"):
        super().__init__(detail=detail)


class ServiceUnavailableException(HTTPException):
    def __init__(self, detail: str = "Service temporarily unavailable"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
