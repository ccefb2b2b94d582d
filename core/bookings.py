"""
Booking lifecycle for property viewings.

Valid transitions:
- requested -> scheduled (host accepts)
- requested -> declined (host declines, terminal)
- requested / scheduled / completed_pending_confirmation -> cancelled
  (either party cancels, terminal)
- scheduled -> completed_pending_confirmation (first party confirms)
- completed_pending_confirmation -> completed (second party confirms, terminal)

Every operation receives the acting uid explicitly and runs inside
``transaction.atomic()`` with the booking row locked by
``select_for_update()``. Writes go through ``save(update_fields=...)`` so
only the fields a transition owns are touched; the aggregate status is
derived by ``Booking.save()``.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from .conversations import set_latest_booking
from .exceptions import BookingAlreadyOpen, InvalidState, NotAuthorized, NotFound
from .models import TERMINAL_STATUSES, Booking, Conversation

logger = logging.getLogger(__name__)


# Statuses shown under each bookings tab
BOOKING_TABS = {
    'requested': ('requested',),
    'active': ('scheduled', 'completed_pending_confirmation'),
    'completed': ('completed',),
    'cancelled': ('cancelled',),
    'declined': ('declined',),
}

CONFIRMABLE_STATUSES = ('scheduled', 'completed_pending_confirmation')


def completion_grace_period():
    """Time after ``scheduled_at`` before completion can be confirmed."""
    return timedelta(hours=getattr(settings, 'VIEWINGER_COMPLETION_GRACE_HOURS', 3))


# ============================================================================
# Queries
# ============================================================================

def get_open_booking_for_conversation(conversation_id):
    """
    Return the most recently updated open booking of a conversation.

    "Open" means not completed, cancelled or declined.

    Args:
        conversation_id: Conversation to inspect

    Returns:
        Booking or None
    """
    return (
        Booking.objects
        .filter(conversation_id=conversation_id)
        .exclude(status__in=TERMINAL_STATUSES)
        .order_by('-updated_at', '-created_at')
        .first()
    )


def list_bookings_for_user(uid, tab=None):
    """
    Return bookings the user takes part in, newest activity first.

    Args:
        uid: Participant uid
        tab: Optional key of BOOKING_TABS narrowing the statuses

    Returns:
        QuerySet: Bookings where uid is host or guest

    Raises:
        ValueError: If tab is not a known tab name
    """
    qs = Booking.objects.filter(Q(host_uid=uid) | Q(guest_uid=uid))

    if tab is not None:
        if tab not in BOOKING_TABS:
            raise ValueError(f"Unknown bookings tab: {tab}")
        qs = qs.filter(status__in=BOOKING_TABS[tab])

    return qs.order_by('-updated_at', '-created_at')


def get_booking_for_participant(booking_id, uid):
    """
    Fetch a booking on behalf of one of its parties.

    Raises:
        NotFound: If the booking does not exist
        NotAuthorized: If uid is neither host nor guest
    """
    try:
        booking = Booking.objects.get(pk=booking_id)
    except Booking.DoesNotExist:
        raise NotFound(f'Booking with ID {booking_id} does not exist.')

    if uid not in booking.participant_ids:
        raise NotAuthorized('You do not have permission to view this booking.')

    return booking


def role_of(booking, uid):
    """Return 'seller' for the host, 'buyer' for the guest, else None."""
    if uid == booking.host_uid:
        return 'seller'
    if uid == booking.guest_uid:
        return 'buyer'
    return None


def has_confirmed_completion(booking, uid):
    """Whether the given party already confirmed the viewing took place."""
    if uid == booking.guest_uid:
        return booking.guest_status == 'completed'
    if uid == booking.host_uid:
        return booking.host_status == 'completed'
    return False


def can_leave_review(booking, uid):
    """Whether uid may still review this booking from their side."""
    if booking.status != 'completed':
        return False

    role = role_of(booking, uid)
    if role is None:
        return False

    return getattr(booking, booking.review_field_for(role)) is None


def is_completion_eligible(booking, now=None):
    """
    Whether completion may be confirmed yet.

    Confirmation opens once ``now >= scheduled_at + grace period``. This
    is checked by callers; ``confirm_booking_completed`` trusts them.

    Args:
        booking: Booking to check
        now: Reference time (defaults to timezone.now())

    Returns:
        bool
    """
    if booking.scheduled_at is None:
        return False

    if now is None:
        now = timezone.now()

    return now >= booking.scheduled_at + completion_grace_period()


# ============================================================================
# Transitions
# ============================================================================

def _get_locked_booking(booking_id):
    """
    Load a booking with a row lock. Must run inside ``transaction.atomic()``.

    Raises:
        NotFound: If the booking does not exist
    """
    try:
        return Booking.objects.select_for_update().get(pk=booking_id)
    except Booking.DoesNotExist:
        logger.warning(f"Booking transition attempted for non-existent booking. Booking ID: {booking_id}")
        raise NotFound(f'Booking with ID {booking_id} does not exist.')


def _require_host(booking, acting_uid, action):
    if acting_uid != booking.host_uid:
        logger.warning(
            f"Non-host attempted to {action} booking. "
            f"Booking ID: {booking.pk}, Actor: {acting_uid}"
        )
        raise NotAuthorized(f'Only the host can {action} this booking.')


def _require_participant(booking, acting_uid, action):
    if acting_uid not in booking.participant_ids:
        logger.warning(
            f"Non-participant attempted to {action} booking. "
            f"Booking ID: {booking.pk}, Actor: {acting_uid}"
        )
        raise NotAuthorized('You do not have permission to modify this booking.')


def _refuse(booking, acting_uid, action, message):
    logger.warning(
        f"Refused booking transition. "
        f"Booking ID: {booking.pk}, Action: {action}, "
        f"Status: {booking.status}, Actor: {acting_uid}"
    )
    raise InvalidState(message)


def create_booking(offer_id, conversation_id, host_uid, guest_uid, scheduled_at,
                   address_text, requirements_text, offer_title=''):
    """
    Create a booking request from the guest to the host.

    The conversation row is locked while checking for an open booking, so
    two concurrent requests on one conversation cannot both succeed. On
    MySQL that lock is the only guard: MySQL has no conditional unique
    constraints and Django skips ``unique_open_booking_per_conversation``
    there (models.W036). On SQLite, where ``select_for_update()`` is a
    no-op, and on PostgreSQL the constraint rejects a racing insert.

    Address and requirements are trimmed but not otherwise validated;
    rejecting an empty address is the caller's job.

    Args:
        offer_id: Listing being booked
        conversation_id: Conversation the booking belongs to
        host_uid: Host party
        guest_uid: Guest party
        scheduled_at: Aware datetime of the viewing
        address_text: Property address
        requirements_text: Guest's requirements
        offer_title: Offer title snapshot for display

    Returns:
        int: New booking id

    Raises:
        NotFound: If the conversation does not exist
        NotAuthorized: If host and guest are the same user
        BookingAlreadyOpen: If the conversation already has an open booking
    """
    if host_uid == guest_uid:
        raise NotAuthorized('You cannot book your own offer.')

    try:
        with transaction.atomic():
            try:
                Conversation.objects.select_for_update().only('pk').get(pk=conversation_id)
            except Conversation.DoesNotExist:
                raise NotFound(f'Conversation with ID {conversation_id} does not exist.')

            existing = get_open_booking_for_conversation(conversation_id)
            if existing is not None:
                logger.warning(
                    f"Open booking already exists for conversation. "
                    f"Conversation ID: {conversation_id}, "
                    f"Existing Booking ID: {existing.pk}, Guest: {guest_uid}"
                )
                raise BookingAlreadyOpen(existing.pk)

            booking = Booking.objects.create(
                offer_id=offer_id,
                offer_title=offer_title or '',
                conversation_id=conversation_id,
                host_uid=host_uid,
                guest_uid=guest_uid,
                scheduled_at=scheduled_at,
                address_text=(address_text or '').strip(),
                requirements_text=(requirements_text or '').strip(),
                guest_status='requested',
                host_status='requested',
            )
    except IntegrityError:
        existing = get_open_booking_for_conversation(conversation_id)
        if existing is None:
            raise
        logger.warning(
            f"Concurrent booking creation rejected by open-booking constraint. "
            f"Conversation ID: {conversation_id}, Existing Booking ID: {existing.pk}"
        )
        raise BookingAlreadyOpen(existing.pk)

    set_latest_booking(conversation_id, booking.pk)

    logger.info(
        f"Booking created. "
        f"Booking ID: {booking.pk}, Offer: {offer_id}, "
        f"Conversation ID: {conversation_id}, "
        f"Host: {host_uid}, Guest: {guest_uid}, "
        f"Scheduled At: {scheduled_at}"
    )
    return booking.pk


def accept_booking(booking_id, acting_uid):
    """
    Host accepts a requested booking; it becomes scheduled.

    Raises:
        NotFound: If the booking does not exist
        NotAuthorized: If the actor is not the host
        InvalidState: If the booking is not requested
    """
    with transaction.atomic():
        booking = _get_locked_booking(booking_id)
        _require_host(booking, acting_uid, 'accept')

        if booking.status != 'requested':
            _refuse(booking, acting_uid, 'accept', 'Booking is not in requested state.')

        booking.guest_status = 'scheduled'
        booking.host_status = 'scheduled'
        booking.save(update_fields=['guest_status', 'host_status'])

    logger.info(f"Booking accepted. Booking ID: {booking.pk}, Host: {acting_uid}")
    return booking


def decline_booking(booking_id, acting_uid):
    """
    Host declines a requested booking. Declined is terminal.

    Only the aggregate status changes; both party tracks keep their
    ``requested`` value.

    Raises:
        NotFound: If the booking does not exist
        NotAuthorized: If the actor is not the host
        InvalidState: If the booking is not requested
    """
    with transaction.atomic():
        booking = _get_locked_booking(booking_id)
        _require_host(booking, acting_uid, 'decline')

        if booking.status != 'requested':
            _refuse(booking, acting_uid, 'decline', 'Booking is not in requested state.')

        booking.closed_reason = 'declined'
        booking.save(update_fields=['closed_reason'])

    logger.info(f"Booking declined. Booking ID: {booking.pk}, Host: {acting_uid}")
    return booking


def cancel_booking(booking_id, acting_uid):
    """
    Either party cancels an open booking. Cancelled is terminal.

    Allowed from requested, scheduled and completed_pending_confirmation.

    Raises:
        NotFound: If the booking does not exist
        NotAuthorized: If the actor is not a party of the booking
        InvalidState: If the booking is already terminal
    """
    with transaction.atomic():
        booking = _get_locked_booking(booking_id)
        _require_participant(booking, acting_uid, 'cancel')

        if booking.is_terminal:
            _refuse(booking, acting_uid, 'cancel', 'Booking is already final.')

        old_status = booking.status
        booking.guest_status = 'cancelled'
        booking.host_status = 'cancelled'
        booking.closed_reason = 'cancelled'
        booking.save(update_fields=['guest_status', 'host_status', 'closed_reason'])

    logger.info(
        f"Booking cancelled. Booking ID: {booking.pk}, "
        f"Old Status: {old_status}, Actor: {acting_uid}"
    )
    return booking


def confirm_booking_completed(booking_id, acting_uid):
    """
    Record that the acting party confirms the viewing took place.

    The first confirmation moves the booking to
    completed_pending_confirmation, the second to completed. Only the
    acting party's own track is written. Confirming again from the same
    side is a no-op.

    The grace period after ``scheduled_at`` is not checked here; see
    ``is_completion_eligible``.

    Raises:
        NotFound: If the booking does not exist
        NotAuthorized: If the actor is not a party of the booking
        InvalidState: If the booking is not scheduled or pending confirmation
    """
    with transaction.atomic():
        booking = _get_locked_booking(booking_id)
        _require_participant(booking, acting_uid, 'confirm completion of')

        if booking.status not in CONFIRMABLE_STATUSES:
            if booking.is_terminal:
                message = 'Booking is already final.'
            else:
                message = 'Booking must be scheduled to confirm completion.'
            _refuse(booking, acting_uid, 'confirm completion', message)

        track = 'guest_status' if acting_uid == booking.guest_uid else 'host_status'

        if getattr(booking, track) == 'completed':
            logger.debug(
                f"Completion already confirmed by this party. "
                f"Booking ID: {booking.pk}, Actor: {acting_uid}"
            )
            return booking

        setattr(booking, track, 'completed')
        booking.save(update_fields=[track])

    logger.info(
        f"Booking completion confirmed. Booking ID: {booking.pk}, "
        f"Actor: {acting_uid}, Status: {booking.status}"
    )
    return booking
