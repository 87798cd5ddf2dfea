"""
Error kinds raised by the requisition store, the approval engine and the
requisition service.

They are plain exceptions so the core can be used without FastAPI;
``app.main`` registers handlers that turn them into HTTP responses.
"""


class RequisitionError(Exception):
    """Base class for every workflow error."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RequisitionError):
    """Malformed or missing input (empty comment, no approvers on submission, ...)."""

    status_code = 422


class AuthorizationError(RequisitionError):
    """The actor may not perform this operation on this requisition."""

    status_code = 403


class ConflictError(RequisitionError):
    """The approver has already recorded a decision."""

    status_code = 409


class NotFoundError(RequisitionError):
    """Unknown requisition or user id."""

    status_code = 404


class TransientError(RequisitionError):
    """The backing store is temporarily unavailable; the caller may retry."""

    status_code = 503
