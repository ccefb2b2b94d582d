"""
Conversation linkage for bookings.

A conversation ties one guest to one host about one offer. The booking
lifecycle only touches the ``latest_booking`` pointer here, and treats
that write as best-effort.
"""

import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .exceptions import NotAuthorized
from .models import Conversation

logger = logging.getLogger(__name__)


def get_or_create_conversation(offer_id, host_uid, guest_uid, offer_title=''):
    """
    Return the conversation for (offer, host, guest), creating it if needed.

    Args:
        offer_id: Listing the conversation is about
        host_uid: Host party
        guest_uid: Guest party
        offer_title: Title stored on a newly created conversation

    Returns:
        int: Conversation id

    Raises:
        NotAuthorized: If host and guest are the same user
    """
    if host_uid == guest_uid:
        raise NotAuthorized('You cannot start a conversation about your own offer.')

    existing = Conversation.objects.filter(
        offer_id=offer_id, host_uid=host_uid, guest_uid=guest_uid
    ).values_list('pk', flat=True).first()
    if existing is not None:
        return existing

    try:
        with transaction.atomic():
            conversation = Conversation.objects.create(
                offer_id=offer_id,
                offer_title=offer_title or 'Offer',
                host_uid=host_uid,
                guest_uid=guest_uid,
            )
    except IntegrityError:
        # Lost the race against a concurrent create for the same triple
        return Conversation.objects.get(
            offer_id=offer_id, host_uid=host_uid, guest_uid=guest_uid
        ).pk

    logger.info(
        f"Conversation created. "
        f"Conversation ID: {conversation.pk}, "
        f"Offer: {offer_id}, Host: {host_uid}, Guest: {guest_uid}"
    )
    return conversation.pk


def set_latest_booking(conversation_id, booking_id):
    """
    Point a conversation at its most recent booking.

    Fire-and-forget: a stale pointer is cosmetic, so failures are logged
    and never raised to the caller.

    Args:
        conversation_id: Conversation to update
        booking_id: Booking to point at
    """
    try:
        with transaction.atomic():
            updated = Conversation.objects.filter(pk=conversation_id).update(
                latest_booking_id=booking_id,
                updated_at=timezone.now(),
            )
    except DatabaseError as e:
        logger.warning(
            f"Could not update latest booking pointer. "
            f"Conversation ID: {conversation_id}, "
            f"Booking ID: {booking_id}, Error: {e}"
        )
        return

    if not updated:
        logger.warning(
            f"Latest booking pointer not updated, conversation missing. "
            f"Conversation ID: {conversation_id}, Booking ID: {booking_id}"
        )
