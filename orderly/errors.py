from typing import List, Optional


class DomainError(Exception):
    """Base class for domain/service errors."""


class NotFoundError(DomainError):
    pass


class UnauthorizedError(DomainError):
    pass


class ValidationError(DomainError):
    def __init__(self, detail):
        super().__init__("Validation error")
        self.detail = detail


class EditNotAllowedError(DomainError):
    """Raised when a mutation is attempted on an order that is not editable."""

    def __init__(self, errors: List[str]):
        super().__init__("Order cannot be edited")
        self.errors = errors


class BackendError(DomainError):
    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code
