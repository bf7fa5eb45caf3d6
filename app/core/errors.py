from fastapi import HTTPException


class ServiceError(HTTPException):
    """Declared failure of an operation, rendered as {success: false, message}"""

    status = 500

    def __init__(self, message: str):
        super().__init__(status_code=self.status, detail=message)

    @property
    def message(self) -> str:
        return self.detail


class NotFoundError(ServiceError):
    status = 404


class ValidationFailed(ServiceError):
    status = 400


class Unauthorized(ServiceError):
    status = 401


class Forbidden(ServiceError):
    status = 403


class ConflictError(ServiceError):
    status = 409


class IntegrityFailure(ServiceError):
    status = 400


class ExternalServiceFailure(ServiceError):
    status = 502


class RateLimited(ServiceError):
    status = 429
