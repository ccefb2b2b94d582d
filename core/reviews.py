"""
Review gate for completed bookings.

Each party may review a booking once: the guest as ``buyer``, the host as
``seller``. The review insert and the booking's lock field are written in
one transaction while the booking row is locked, and a unique
(booking, role) constraint on Review rejects any submission that slips
past the lock.
"""

import logging

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from .exceptions import (
    AlreadyReviewed,
    BookingNotCompleted,
    EmptyComment,
    InvalidRating,
    NotAuthorized,
    NotFound,
)
from .models import Booking, Review
from .validators import validate_rating

logger = logging.getLogger(__name__)

REVIEW_ROLES = ('buyer', 'seller')


def _clean_rating(rating):
    try:
        validate_rating(rating)
    except ValidationError as e:
        raise InvalidRating(e.messages[0])
    return rating


def _clean_comment(comment):
    trimmed = (comment or '').strip()
    if not trimmed:
        raise EmptyComment('Comment cannot be empty.')
    return trimmed


def submit_review(booking_id, offer_id, author_uid, target_uid, role, rating, comment):
    """
    Submit the author's single review of a completed booking.

    Args:
        booking_id: Booking being reviewed
        offer_id: Listing the booking was for
        author_uid: Party writing the review
        target_uid: Party being reviewed
        role: Author's role, 'buyer' (guest) or 'seller' (host)
        rating: Integer from 1 to 5
        comment: Non-empty text, stored trimmed

    Returns:
        int: New review id

    Raises:
        InvalidRating: If rating is not an integer in [1, 5]
        EmptyComment: If comment is blank
        NotFound: If the booking does not exist
        BookingNotCompleted: If the booking is not completed
        AlreadyReviewed: If this side already reviewed the booking
        NotAuthorized: If the author does not hold ``role`` in the booking
    """
    rating = _clean_rating(rating)
    comment = _clean_comment(comment)

    if role not in REVIEW_ROLES:
        raise NotAuthorized(f"Unknown review role: {role}.")

    try:
        with transaction.atomic():
            try:
                booking = Booking.objects.select_for_update().get(pk=booking_id)
            except Booking.DoesNotExist:
                raise NotFound(f'Booking with ID {booking_id} does not exist.')

            if booking.status != 'completed':
                logger.warning(
                    f"Review refused, booking not completed. "
                    f"Booking ID: {booking_id}, Status: {booking.status}, Author: {author_uid}"
                )
                raise BookingNotCompleted()

            review_field = booking.review_field_for(role)

            if getattr(booking, review_field) is not None:
                logger.warning(
                    f"Review refused, already reviewed. "
                    f"Booking ID: {booking_id}, Role: {role}, Author: {author_uid}"
                )
                raise AlreadyReviewed()

            expected_author = booking.guest_uid if role == 'buyer' else booking.host_uid
            if author_uid != expected_author:
                logger.warning(
                    f"Review refused, author does not hold role. "
                    f"Booking ID: {booking_id}, Role: {role}, Author: {author_uid}"
                )
                raise NotAuthorized('Not allowed.')

            review = Review.objects.create(
                booking=booking,
                offer_id=offer_id,
                author_uid=author_uid,
                target_uid=target_uid,
                role=role,
                rating=rating,
                comment=comment,
            )

            setattr(booking, review_field, review.pk)
            booking.save(update_fields=[review_field])
    except IntegrityError:
        logger.warning(
            f"Review refused by uniqueness constraint. "
            f"Booking ID: {booking_id}, Role: {role}, Author: {author_uid}"
        )
        raise AlreadyReviewed()

    logger.info(
        f"Review submitted. Review ID: {review.pk}, "
        f"Booking ID: {booking_id}, Role: {role}, "
        f"Author: {author_uid}, Rating: {rating}"
    )
    return review.pk
