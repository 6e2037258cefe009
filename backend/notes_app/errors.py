"""Domain exceptions raised by services and mapped to HTTP responses."""


class ServiceError(ValueError):
    """A request that cannot be fulfilled; `status_code` is the HTTP status."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    status_code = 404


class ForbiddenError(ServiceError):
    status_code = 403


class ConflictError(ServiceError):
    status_code = 409


class EmailDeliveryError(ServiceError):
    """The email provider failed to accept an outgoing message."""
    status_code = 502
