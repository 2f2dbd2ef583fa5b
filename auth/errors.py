"""
auth/errors.py -- Typed exceptions for authentication and authorization failures.

Every error that can reach a client is an AuthError subclass carrying the HTTP
status and a machine-readable code. api/main.py registers one exception
handler for AuthError, so routes and dependencies simply raise.

InvalidToken is the exception: it is raised by TokenService and never leaves
the auth layer -- SessionGuard wraps it into Unauthenticated.

Layer rule: no imports from api/ or core/.
"""


class AuthError(Exception):
    """Base class for errors surfaced at the request boundary."""

    status_code = 500
    code = "auth_error"
    default_message = "Authentication failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidToken(Exception):
    """Session token is malformed, badly signed, or expired."""


class InvalidCredentials(AuthError):
    status_code = 401
    code = "invalid_credentials"
    default_message = "Incorrect email or password."


class Unauthenticated(AuthError):
    status_code = 401
    code = "unauthenticated"
    default_message = "You are not logged in! Please log in to get access."


class StaleSession(AuthError):
    """Token is genuine but predates a password change."""

    status_code = 401
    code = "stale_session"
    default_message = "Password was changed recently. Please log in again."


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not have permission to perform this action."


class UserNotFound(AuthError):
    status_code = 404
    code = "user_not_found"
    default_message = "There is no user with that email address."


class ValidationError(AuthError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid input data."


class InvalidResetToken(AuthError):
    status_code = 400
    code = "invalid_reset_token"
    default_message = "Token is invalid or has expired."


class EmailDeliveryError(AuthError):
    status_code = 500
    code = "email_delivery_failed"
    default_message = "There was an error sending the email. Try again later!"
