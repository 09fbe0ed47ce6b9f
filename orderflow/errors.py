"""Error taxonomy for order lifecycle and kitchen task operations.

Every rejection raised by the workflow services is an ``OrderflowError``
subclass carrying a stable ``code`` and the HTTP status the API layer maps
it to.
"""

from typing import Any


class OrderflowError(Exception):
    """Base class for all typed workflow errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API responses."""
        data: dict[str, Any] = {
            "success": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data


class NotFoundError(OrderflowError):
    """Unknown order or task."""

    code = "not_found"
    status_code = 404


class InvalidStateError(OrderflowError):
    """Transition not permitted from the current status."""

    code = "invalid_state"
    status_code = 400


class ConflictError(OrderflowError):
    """A concurrent modification won the race."""

    code = "conflict"
    status_code = 409


class ForbiddenError(OrderflowError):
    """Actor lacks rights over this order or task."""

    code = "forbidden"
    status_code = 403


class AlreadyReviewedError(OrderflowError):
    code = "already_reviewed"
    status_code = 409


class AlreadyClaimedError(OrderflowError):
    code = "already_claimed"
    status_code = 409


class InvalidInputError(OrderflowError):
    """Base class for input validation failures."""

    code = "invalid_input"
    status_code = 400


class InvalidAmountError(InvalidInputError):
    code = "invalid_amount"


class InvalidStatusError(InvalidInputError):
    code = "invalid_status"


class InvalidRatingError(InvalidInputError):
    code = "invalid_rating"


class InvalidItemError(InvalidInputError):
    code = "invalid_item"


class InvalidStaffError(InvalidInputError):
    code = "invalid_staff"


class InvalidSignatureError(InvalidInputError):
    code = "invalid_signature"
    status_code = 401
