"""
Domain errors for the scheduling and settlement core.

Each error carries the HTTP status used when it reaches a request handler.
AmountMismatch, UpstreamUnavailable and PaymentNotFound are raised during
webhook reconciliation and are logged there, never surfaced to the gateway.
"""


class ClinicError(Exception):
    """Base class for all domain errors"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(ClinicError):
    """Malformed or missing input"""

    status_code = 400


class InvalidFormat(InvalidArgument):
    """A clock time or weekday could not be parsed"""


class NotFound(ClinicError):
    status_code = 404


class Conflict(ClinicError):
    """Duplicate active booking or a state transition that is not allowed"""

    status_code = 400


class OverlapConflict(Conflict):
    """Schedule template overlaps an existing one for the same practitioner and day"""

    status_code = 409


class AmountMismatch(ClinicError):
    """Gateway-reported amount differs from the stored price"""

    status_code = 422


class UpstreamUnavailable(ClinicError):
    """Payment gateway could not provide the payment after all retries"""

    status_code = 502


class PaymentNotFound(ClinicError):
    """Gateway does not know the payment (yet)"""

    status_code = 404
