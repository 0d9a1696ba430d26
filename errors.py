"""
Error taxonomy for the API.

Handlers raise these; main.py turns them into ``{"error": message}`` JSON
responses with the matching status code. Anything that is not an AppError is
reported to the client as an opaque 500.
"""

from fastapi import status


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Request failed"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(AppError):
    """Missing or unusable input."""
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class AuthenticationError(AppError):
    """Missing, invalid or expired bearer token."""
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"


class InvalidTokenError(AuthenticationError):
    message = "invalid token"


class AuthorizationError(AppError):
    """Authenticated, but not allowed to touch this resource."""
    status_code = status.HTTP_403_FORBIDDEN
    message = "Unauthorized"


class InvalidCredentialsError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid password"


class ConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Conflict"


class EmailTakenError(ConflictError):
    message = "Email already registered"


class AlreadySubscribedError(ConflictError):
    message = "Already subscribed"


class NotSubscribedError(ConflictError):
    message = "Not subscribed"


class AlreadyReactedError(ConflictError):
    message = "Already reacted"


class EmailNotRegisteredError(NotFoundError):
    """Unknown login email; answered like a bad password."""
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Email not registered"
