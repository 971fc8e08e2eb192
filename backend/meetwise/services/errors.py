from __future__ import annotations


class ServiceError(Exception):
    kind = "ServiceError"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(ServiceError):
    kind = "NotFound"
    status_code = 404


class Forbidden(ServiceError):
    kind = "Forbidden"
    status_code = 403


class InvalidState(ServiceError):
    kind = "InvalidState"
    status_code = 409


class ValidationFailed(ServiceError):
    kind = "ValidationFailed"
    status_code = 400


class ConcurrentModification(ServiceError):
    kind = "Conflict"
    status_code = 409


class StorageFailure(ServiceError):
    kind = "StorageFailure"
    status_code = 500
