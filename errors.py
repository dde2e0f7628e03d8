from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = 'validation_error'
    DUPLICATE_EMAIL = 'duplicate_email'
    INVALID_CREDENTIALS = 'invalid_credentials'
    UNAUTHORIZED = 'unauthorized'
    FORBIDDEN = 'forbidden'
    AI_SERVICE = 'ai_service_error'
    AI_RESPONSE = 'ai_response_error'
    STORE_UNAVAILABLE = 'store_unavailable'
    INTERNAL = 'internal_error'


HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.DUPLICATE_EMAIL: 400,
    ErrorKind.INVALID_CREDENTIALS: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.AI_SERVICE: 500,
    ErrorKind.AI_RESPONSE: 500,
    ErrorKind.STORE_UNAVAILABLE: 500,
    ErrorKind.INTERNAL: 500,
}


class ServiceError(Exception):
    """Failure raised by the services.

    `message` is safe to show to the caller, `detail` is only for the logs.
    """

    def __init__(self, kind: ErrorKind, message: str, detail: str = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.kind, 500)

    def to_dict(self) -> dict:
        return {'error': self.message, 'kind': self.kind.value}

    def __repr__(self):
        return f"ServiceError({self.kind.value!r}, {self.message!r})"


class ValidationError(ServiceError):
    def __init__(self, message: str, detail: str = None):
        super().__init__(ErrorKind.VALIDATION, message, detail)


class DuplicateEmail(ServiceError):
    def __init__(self, message: str = 'Email already exists', detail: str = None):
        super().__init__(ErrorKind.DUPLICATE_EMAIL, message, detail)


class InvalidCredentials(ServiceError):
    def __init__(self, message: str = 'Invalid email or password', detail: str = None):
        super().__init__(ErrorKind.INVALID_CREDENTIALS, message, detail)


class Unauthorized(ServiceError):
    def __init__(self, message: str = 'Token is invalid', detail: str = None):
        super().__init__(ErrorKind.UNAUTHORIZED, message, detail)


class Forbidden(ServiceError):
    def __init__(self, message: str = 'Access denied', detail: str = None):
        super().__init__(ErrorKind.FORBIDDEN, message, detail)


class AIServiceError(ServiceError):
    def __init__(self, message: str = 'AI service is unavailable', detail: str = None):
        super().__init__(ErrorKind.AI_SERVICE, message, detail)


class AIResponseError(ServiceError):
    def __init__(self, message: str = 'AI returned an unreadable diagnosis', detail: str = None):
        super().__init__(ErrorKind.AI_RESPONSE, message, detail)


class StoreUnavailable(ServiceError):
    def __init__(self, message: str = 'Storage is unavailable', detail: str = None):
        super().__init__(ErrorKind.STORE_UNAVAILABLE, message, detail)


class ConfigError(Exception):
    """Raised at startup when required configuration is missing."""
