"""
Service error hierarchy.

Services raise these; the Flask error handlers registered in ``app.py``
turn them into ``{"success": false, ...}`` responses with the carried
status code.
"""


class ServiceError(Exception):
    """Base exception for service errors."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class UnauthorizedError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class InvalidInputError(ServiceError):
    status_code = 400


class InsufficientFundsError(ServiceError):
    status_code = 400


class ConflictError(ServiceError):
    status_code = 409


class InvalidTransitionError(ConflictError):
    """The entity is not in the state the operation expects."""


class UnimplementedError(ServiceError):
    status_code = 400
