

class TripHubError(Exception):
    """
    Base exception for all domain-level errors
    inside the Trip Hub backend.
    """

    status_code = 400


class InvalidStateTransitionError(TripHubError):
    """
    Raised when an illegal payment or booking state transition is attempted.
    """

    status_code = 409

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class AuthorizationError(TripHubError):
    """Raised when the caller's identity is absent or invalid."""

    status_code = 401


class ForbiddenError(AuthorizationError):
    """Raised when a verified identity lacks the required role."""

    status_code = 403


class NotFoundError(TripHubError):
    status_code = 404


class TicketNotFoundError(NotFoundError):
    pass


class BookingNotFoundError(NotFoundError):
    pass


class VendorNotFoundError(NotFoundError):
    pass


class UserNotFoundError(NotFoundError):
    pass


class ConflictError(TripHubError):
    status_code = 409


class DuplicateVendorApplicationError(ConflictError):
    """Raised when an email already has a vendor application on file."""


class AdvertiseLimitReachedError(ConflictError):
    """Raised when the advertised ticket cap is already reached."""


class InsufficientInventoryError(ConflictError):
    """Raised when a ticket does not have enough quantity left."""


class VendorUpdateFailedError(TripHubError):
    """Raised when the vendor approval transaction was rolled back."""

    status_code = 500


class UpstreamError(TripHubError):
    """Raised when the payment gateway or identity provider misbehaves."""

    status_code = 502
