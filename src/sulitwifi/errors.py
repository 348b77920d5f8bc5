from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class AccessDeniedError(UserError):
    """Raised when a caller tries to use an operation they are not allowed to."""


class ValidationError(UserError):
    """Raised when user input fails validation."""


class ConflictError(UserError):
    """Raised when the request conflicts with the current state of a resource."""


class InvalidVoucherError(NotFoundError):
    """Raised when a voucher code does not exist."""

    def __init__(self, message: str = "Invalid voucher code.") -> None:
        super().__init__(message)


class VoucherAlreadyUsedError(ConflictError):
    """Raised when a voucher code has already been redeemed."""

    def __init__(self, message: str = "Voucher has already been used.") -> None:
        super().__init__(message)


class NoRecentCoinError(UserError):
    """Raised when no coin was inserted within the redemption window.

    Retryable: insert a coin and try again.
    """

    def __init__(self, message: str = "No coin detected. Insert a coin and try again.") -> None:
        super().__init__(message)


class CoinSlotDisabledError(UserError):
    """Raised when coin redemption is attempted while the coin slot is turned off."""

    def __init__(self, message: str = "Coin slot is not available.") -> None:
        super().__init__(message)


class SessionNotFoundError(NotFoundError):
    """Raised when a client has no live session."""

    def __init__(self, message: str = "No active session found.") -> None:
        super().__init__(message)


class StoreUnavailableError(Exception):
    """Raised when the backing store fails or times out.

    Internal and retryable; the message is never shown to users.
    """
