# stratosafe/core/errors.py
from fastapi import status


class ConfigurationError(RuntimeError):
    """Settings could not be loaded. Fatal: the app must not start."""


class QrCodeError(RuntimeError):
    """The provisioning URI could not be rendered as an image."""


class AuthError(Exception):
    """
    Base for every failure the request layer maps to a client response.
    Messages are stable and never say which part of a credential was wrong.
    """
    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Bad request"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid credentials"


class AccountNotFound(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "User not found"


class InvalidToken(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid token"


class InvalidConfirmationCode(InvalidToken):
    """Wrong TOTP while confirming setup. The bearer session itself is fine."""
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidBackupCode(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid backup code"


class MfaNotEnabled(AuthError):
    message = "MFA is not enabled"


class MfaAlreadyEnabled(AuthError):
    status_code = status.HTTP_409_CONFLICT
    message = "MFA is already enabled. Disable it before setting it up again"


class EmailAlreadyRegistered(AuthError):
    message = "User already exists"


class PasswordChangeRejected(AuthError):
    message = "Password change rejected"


class NotAuthenticated(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"


class TooManyRequests(AuthError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many requests, please try again later."
