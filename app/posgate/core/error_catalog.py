from dataclasses import dataclass

from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    INVALID_CREDENTIALS = ErrorDefinition(
        "INVALID_CREDENTIALS",
        "Invalid credentials",
        status.HTTP_401_UNAUTHORIZED,
    )
    USER_INACTIVE = ErrorDefinition(
        "USER_INACTIVE",
        "User is inactive",
        status.HTTP_403_FORBIDDEN,
    )
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    SESSION_ERROR = ErrorDefinition(
        "SESSION_ERROR",
        "Identity provider failure",
        status.HTTP_502_BAD_GATEWAY,
    )
    REPOSITORY_ERROR = ErrorDefinition(
        "REPOSITORY_ERROR",
        "Access data unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)


class RepositoryError(AppError):
    """The access data store was unreachable or returned a malformed row."""

    def __init__(self, message: str, details: object | None = None):
        self.message = message
        super().__init__(ErrorCatalog.REPOSITORY_ERROR, details if details is not None else {"reason": message})

    def __str__(self) -> str:
        return self.message


class SessionError(AppError):
    """The identity provider failed to read, issue or revoke a session."""

    def __init__(
        self,
        message: str,
        *,
        error: ErrorDefinition = ErrorCatalog.SESSION_ERROR,
        details: object | None = None,
    ):
        self.message = message
        super().__init__(error, details if details is not None else {"reason": message})

    def __str__(self) -> str:
        return self.message
