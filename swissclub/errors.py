"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    retryable = False

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class InvalidResultError(ValidationError):
    """Raised when a submitted game result is not one of the allowed values."""

    def __init__(self, message="Invalid result value."):
        """Initialize the error."""
        super().__init__(message)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class UnknownPairingError(NotFoundError):
    """Raised when a result references a pairing outside the current round."""

    def __init__(self, message="Unknown pairing."):
        """Initialize the error."""
        super().__init__(message)


class InvalidStateError(AppError):
    """Raised when an operation is illegal for the tournament's status."""

    def __init__(self, message="Operation not allowed in the current state."):
        """Initialize the error."""
        super().__init__(message, 409)


class ConcurrentModificationError(AppError):
    """Raised when a tournament changed between load and save."""

    retryable = True

    def __init__(self, message="Tournament was modified concurrently."):
        """Initialize the error."""
        super().__init__(message, 409)


class InsufficientPlayersError(AppError):
    """Raised when there are not enough players to pair a round."""

    def __init__(self, message="Not enough players to generate pairings."):
        """Initialize the error."""
        super().__init__(message, 422)


class NoEligiblePlayerForByeError(AppError):
    """Raised when every bye candidate has already had a forced bye."""

    def __init__(self, message="No player is eligible for a forced bye."):
        """Initialize the error."""
        super().__init__(message, 422)


class BackendUnavailableError(AppError):
    """Raised when the storage backend times out or rejects the request."""

    retryable = True

    def __init__(self, message="Storage backend unavailable. Try again later."):
        """Initialize the error."""
        super().__init__(message, 503)
