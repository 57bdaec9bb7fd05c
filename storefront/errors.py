"""
Error taxonomy shared by services and routes.
Every error carries a stable error_code and the HTTP status it maps to.
"""


class StorefrontError(Exception):
    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message, error_code=None, status_code=None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code

    def to_dict(self):
        return {
            "success": False,
            "error_code": self.error_code,
            "error": self.message,
        }


class ValidationError(StorefrontError):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class AuthorizationError(StorefrontError):
    status_code = 403
    error_code = "UNAUTHORIZED"

    def __init__(self, message="Unauthorized", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(StorefrontError):
    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(StorefrontError):
    status_code = 409
    error_code = "CONFLICT"


class UpstreamProviderError(StorefrontError):
    status_code = 500
    error_code = "UPSTREAM_ERROR"


class PersistenceError(StorefrontError):
    status_code = 500
    error_code = "PERSISTENCE_ERROR"


class InvariantViolation(StorefrontError):
    status_code = 500
    error_code = "INVARIANT_VIOLATION"


class PaymentNotCompletedError(ValidationError):
    error_code = "PAYMENT_NOT_COMPLETED"

    def __init__(self, message="Payment has not been completed", **kwargs):
        super().__init__(message, **kwargs)


class PartialSettlementError(UpstreamProviderError):
    """Some transfers were accepted by the processor and some were not.

    Accepted transfers are not rolled back; ``transfer_ids`` lists them so an
    operator can reconcile by hand.
    """

    error_code = "PARTIAL_SETTLEMENT"

    def __init__(self, message, transfer_ids=None, failed_categories=None, **kwargs):
        super().__init__(message, **kwargs)
        self.transfer_ids = transfer_ids or []
        self.failed_categories = failed_categories or []

    def to_dict(self):
        payload = super().to_dict()
        payload["failed_categories"] = self.failed_categories
        return payload
