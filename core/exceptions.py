"""
Typed errors raised by the booking lifecycle and the review gate.

Every error is a DRF ``APIException`` so views can let them propagate and
DRF renders ``{"detail": ..., "code": ...}`` with the matching status
code. The core never retries; callers decide what to show.
"""

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class BookingError(APIException):
    """Base class for booking and review failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The booking operation could not be completed.'
    default_code = 'booking_error'

    def __init__(self, detail=None, code=None):
        super().__init__(detail=detail, code=code)
        self.code = code or self.default_code


class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Record not found.'
    default_code = 'not_found'


class NotAuthorized(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not allowed to perform this action on this booking.'
    default_code = 'not_authorized'


class InvalidState(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This action is not allowed in the booking\'s current state.'
    default_code = 'invalid_state'


class BookingAlreadyOpen(BookingError):
    """
    Raised when a conversation already has a non-terminal booking.

    Attributes:
        booking_id: Id of the conflicting open booking
    """

    status_code = status.HTTP_409_CONFLICT
    default_detail = (
        'A booking already exists for this conversation. '
        'Finish or cancel it before creating a new one.'
    )
    default_code = 'booking_open_exists'

    def __init__(self, booking_id, detail=None):
        super().__init__(detail=detail)
        self.booking_id = booking_id


class AlreadyReviewed(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'You already submitted a review for this booking.'
    default_code = 'already_reviewed'


class BookingNotCompleted(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Booking must be completed before leaving a review.'
    default_code = 'booking_not_completed'


class InvalidRating(BookingError):
    default_detail = 'Rating must be between 1 and 5.'
    default_code = 'invalid_rating'


class EmptyComment(BookingError):
    default_detail = 'Comment cannot be empty.'
    default_code = 'empty_comment'


class CompletionNotYetAllowed(BookingError):
    default_detail = 'Completion can be confirmed 3 hours after the scheduled time.'
    default_code = 'completion_not_yet_allowed'


def booking_exception_handler(exc, context):
    """
    DRF exception handler adding the error code and conflict context.

    Wraps DRF's default handler; for ``BookingError`` responses the body
    becomes ``{"detail": ..., "code": ...}`` and ``BookingAlreadyOpen``
    additionally carries ``booking_id``.
    """
    response = exception_handler(exc, context)

    if response is not None and isinstance(exc, BookingError):
        response.data['code'] = exc.code
        if isinstance(exc, BookingAlreadyOpen):
            response.data['booking_id'] = exc.booking_id

    return response
