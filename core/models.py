"""
Data model for the Viewinger property-viewing marketplace.

Users act through an opaque ``uid``; bookings and conversations store the
two parties as uid strings so the lifecycle code never depends on a live
session or on the auth tables.
"""

import uuid

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _

from .validators import validate_not_blank, validate_rating


def generate_uid():
    """Return a fresh opaque actor identifier."""
    return uuid.uuid4().hex


class User(AbstractUser):
    """
    Custom User model extending Django's AbstractUser.

    Additional fields:
    - email: Required, unique email address
    - uid: Stable opaque identifier compared against booking parties
    - created_at: Account creation timestamp
    - updated_at: Last update timestamp
    """

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    uid = models.CharField(
        _('uid'),
        max_length=64,
        unique=True,
        default=generate_uid,
        editable=False,
        help_text=_('Opaque actor identifier used by bookings and reviews.')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the account was created.')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the account was last updated.')
    )

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']

    def __str__(self):
        """Return email as string representation."""
        return self.email or self.username

    def save(self, *args, **kwargs):
        # Normalize email to lowercase for case-insensitive uniqueness
        if self.email:
            self.email = self.email.lower()
        super().save(*args, **kwargs)


# ============================================================================
# Conversation Model
# ============================================================================

class Conversation(models.Model):
    """
    Two-party conversation about one offer.

    Only the linkage fields live here. Messages, unread counters and the
    rest of the messaging surface belong to the messaging service.

    Fields:
    - offer_id: Listing the conversation is about
    - offer_title: Display title captured when the conversation started
    - host_uid / guest_uid: The two parties
    - status: open, archived or blocked
    - latest_booking: Convenience pointer to the most recent booking
    """

    STATUS_CHOICES = [
        ('open', 'Open'),
        ('archived', 'Archived'),
        ('blocked', 'Blocked'),
    ]

    offer_id = models.CharField(
        _('offer id'),
        max_length=64,
        help_text=_('Listing this conversation is about')
    )

    offer_title = models.CharField(
        _('offer title'),
        max_length=200,
        blank=True,
        default='',
        help_text=_('Offer title at the time the conversation started')
    )

    host_uid = models.CharField(
        _('host uid'),
        max_length=64,
        help_text=_('Party offering the viewing')
    )

    guest_uid = models.CharField(
        _('guest uid'),
        max_length=64,
        help_text=_('Party requesting the viewing')
    )

    status = models.CharField(
        _('status'),
        max_length=10,
        choices=STATUS_CHOICES,
        default='open'
    )

    latest_booking = models.ForeignKey(
        'Booking',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        help_text=_('Most recently created booking in this conversation')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('conversation')
        verbose_name_plural = _('conversations')
        ordering = ['-updated_at']
        indexes = [
            models.Index(fields=['host_uid'], name='conversation_host_uid_idx'),
            models.Index(fields=['guest_uid'], name='conversation_guest_uid_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['offer_id', 'host_uid', 'guest_uid'],
                name='unique_conversation_per_offer_pair'
            )
        ]

    def __str__(self):
        return f"Conversation {self.pk} on offer {self.offer_id}"

    @property
    def participant_ids(self):
        return [self.host_uid, self.guest_uid]

    def clean(self):
        super().clean()
        if self.host_uid and self.host_uid == self.guest_uid:
            raise ValidationError({
                'guest_uid': _('Host and guest must be different users.')
            })


# ============================================================================
# Booking Model
# ============================================================================

TERMINAL_STATUSES = ('completed', 'cancelled', 'declined')


def derive_booking_status(guest_status, host_status, closed_reason=''):
    """
    Compute the aggregate booking status from its sources of truth.

    The two party tracks and the closure override fully determine the
    aggregate status. A decline flips only the aggregate, so it has to be
    carried by ``closed_reason``; a cancel is visible on both tracks.

    Args:
        guest_status: Guest party track
        host_status: Host party track
        closed_reason: '' or 'declined' or 'cancelled'

    Returns:
        str: One of Booking.STATUS_CHOICES keys
    """
    if closed_reason == 'declined':
        return 'declined'

    if closed_reason == 'cancelled' or 'cancelled' in (guest_status, host_status):
        return 'cancelled'

    completed = [guest_status, host_status].count('completed')
    if completed == 2:
        return 'completed'
    if completed == 1:
        return 'completed_pending_confirmation'

    if guest_status == 'scheduled' and host_status == 'scheduled':
        return 'scheduled'

    return 'requested'


class Booking(models.Model):
    """
    Booking of a property viewing between a host and a guest.

    Fields:
    - offer_id: Listing being booked
    - conversation: Conversation this booking belongs to
    - host_uid / guest_uid: The two parties
    - scheduled_at: Date and time of the viewing
    - address_text / requirements_text: Free-form details from the guest
    - guest_status / host_status: Independent per-party tracks
    - closed_reason: Decline or cancel override
    - status: Aggregate status, derived on every save
    - buyer_review_id / seller_review_id: Review locks per side
    - created_at / updated_at: Timestamps

    ``status`` is never assigned directly by the lifecycle code. It is
    recomputed from the party tracks and ``closed_reason`` in ``save()``
    and persisted so it can be filtered on.
    """

    STATUS_CHOICES = [
        ('requested', 'Requested'),
        ('scheduled', 'Scheduled'),
        ('completed_pending_confirmation', 'Pending confirmation'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
        ('declined', 'Declined'),
    ]

    PARTY_STATUS_CHOICES = [
        ('requested', 'Requested'),
        ('scheduled', 'Scheduled'),
        ('cancelled', 'Cancelled'),
        ('completed', 'Completed'),
    ]

    CLOSED_REASON_CHOICES = [
        ('', 'Not closed'),
        ('declined', 'Declined'),
        ('cancelled', 'Cancelled'),
    ]

    offer_id = models.CharField(
        _('offer id'),
        max_length=64,
        help_text=_('Listing being booked')
    )

    offer_title = models.CharField(
        _('offer title'),
        max_length=200,
        blank=True,
        default='',
        help_text=_('Offer title snapshot for display')
    )

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.PROTECT,
        related_name='bookings',
        help_text=_('Conversation this booking belongs to')
    )

    host_uid = models.CharField(
        _('host uid'),
        max_length=64,
        help_text=_('Party offering the viewing')
    )

    guest_uid = models.CharField(
        _('guest uid'),
        max_length=64,
        help_text=_('Party requesting the viewing')
    )

    scheduled_at = models.DateTimeField(
        _('scheduled at'),
        help_text=_('Date and time of the viewing')
    )

    address_text = models.CharField(
        _('address'),
        max_length=300,
        blank=True,
        default='',
        help_text=_('Address of the property')
    )

    requirements_text = models.TextField(
        _('requirements'),
        blank=True,
        default='',
        help_text=_('What the guest wants checked during the viewing')
    )

    status = models.CharField(
        _('status'),
        max_length=32,
        choices=STATUS_CHOICES,
        default='requested',
        editable=False,
        help_text=_('Aggregate status derived from the party tracks')
    )

    guest_status = models.CharField(
        _('guest status'),
        max_length=16,
        choices=PARTY_STATUS_CHOICES,
        default='requested'
    )

    host_status = models.CharField(
        _('host status'),
        max_length=16,
        choices=PARTY_STATUS_CHOICES,
        default='requested'
    )

    closed_reason = models.CharField(
        _('closed reason'),
        max_length=16,
        choices=CLOSED_REASON_CHOICES,
        blank=True,
        default=''
    )

    buyer_review_id = models.PositiveBigIntegerField(
        _('buyer review id'),
        null=True,
        blank=True,
        help_text=_('Review left by the guest, once submitted')
    )

    seller_review_id = models.PositiveBigIntegerField(
        _('seller review id'),
        null=True,
        blank=True,
        help_text=_('Review left by the host, once submitted')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the booking was created')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the booking was last updated')
    )

    class Meta:
        verbose_name = _('booking')
        verbose_name_plural = _('bookings')
        ordering = ['-updated_at', '-created_at']
        indexes = [
            models.Index(fields=['host_uid'], name='booking_host_uid_idx'),
            models.Index(fields=['guest_uid'], name='booking_guest_uid_idx'),
            models.Index(fields=['offer_id'], name='booking_offer_id_idx'),
            models.Index(fields=['status'], name='booking_status_idx'),
            models.Index(fields=['scheduled_at'], name='booking_scheduled_at_idx'),
        ]
        # Not created on MySQL (no conditional unique constraints)
        constraints = [
            models.UniqueConstraint(
                fields=['conversation'],
                name='unique_open_booking_per_conversation',
                condition=~models.Q(status__in=TERMINAL_STATUSES)
            )
        ]

    def __str__(self):
        return f"Booking {self.pk} ({self.status}) on offer {self.offer_id}"

    @property
    def participant_ids(self):
        return [self.host_uid, self.guest_uid]

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def derived_status(self):
        """Status implied by the current party tracks and closure override."""
        return derive_booking_status(
            self.guest_status, self.host_status, self.closed_reason
        )

    def review_field_for(self, role):
        """
        Return the lock field guarding reviews for ``role``.

        Args:
            role: 'buyer' or 'seller'

        Returns:
            str: Booking field name
        """
        return 'buyer_review_id' if role == 'buyer' else 'seller_review_id'

    def save(self, *args, **kwargs):
        """
        Recompute the aggregate status before writing.

        When ``update_fields`` is given, ``status`` and ``updated_at`` are
        always written alongside so the stored aggregate never lags behind
        the party tracks.
        """
        self.status = self.derived_status()

        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'status', 'updated_at'}

        super().save(*args, **kwargs)


# ============================================================================
# Review Model
# ============================================================================

class Review(models.Model):
    """
    Review left by one party of a completed booking about the other.

    Reviews are immutable once written. One review per (booking, role):
    the guest reviews as ``buyer``, the host as ``seller``.
    """

    ROLE_CHOICES = [
        ('buyer', 'Buyer'),
        ('seller', 'Seller'),
    ]

    booking = models.ForeignKey(
        Booking,
        on_delete=models.PROTECT,
        related_name='reviews',
        help_text=_('Booking being reviewed')
    )

    offer_id = models.CharField(
        _('offer id'),
        max_length=64,
        help_text=_('Listing the booking was for')
    )

    author_uid = models.CharField(
        _('author uid'),
        max_length=64,
        help_text=_('Party writing the review')
    )

    target_uid = models.CharField(
        _('target uid'),
        max_length=64,
        help_text=_('Party being reviewed')
    )

    role = models.CharField(
        _('role'),
        max_length=10,
        choices=ROLE_CHOICES,
        help_text=_("Author's role in the booking")
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[validate_rating],
        help_text=_('Rating from 1 to 5 stars')
    )

    comment = models.TextField(
        _('comment'),
        validators=[validate_not_blank],
        help_text=_('Written feedback about the viewing')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the review was created')
    )

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['author_uid'], name='review_author_uid_idx'),
            models.Index(fields=['target_uid'], name='review_target_uid_idx'),
            models.Index(fields=['offer_id'], name='review_offer_id_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['booking', 'role'],
                name='unique_review_per_booking_role'
            )
        ]

    def __str__(self):
        return f"Review by {self.author_uid} for {self.target_uid} - {self.rating}★"

    def save(self, *args, **kwargs):
        """
        Insert-only save.

        Raises:
            ValidationError: If an existing review is being modified
        """
        if self.pk is not None:
            raise ValidationError(_('Reviews cannot be modified once submitted.'))
        super().save(*args, **kwargs)
