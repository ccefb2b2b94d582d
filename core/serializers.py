"""
Serializers for the conversation, booking and review endpoints.

Input serializers validate what the HTTP caller is responsible for
(non-blank address, aware datetimes) before handing plain
values to the core in ``core.bookings`` and ``core.reviews``.
"""

from django.utils import timezone
from rest_framework import serializers

from .bookings import can_leave_review, has_confirmed_completion, is_completion_eligible, role_of
from .models import Booking, Conversation, Review


# ============================================================================
# Conversation Serializers
# ============================================================================

class ConversationCreateSerializer(serializers.Serializer):
    """
    Input for starting (or resuming) a conversation about an offer.

    The caller is always the guest; the host is named explicitly.
    """

    offer_id = serializers.CharField(max_length=64)
    offer_title = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    host_uid = serializers.CharField(max_length=64)

    def validate_offer_id(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Offer ID cannot be empty.")
        return value


class ConversationSerializer(serializers.ModelSerializer):
    participant_ids = serializers.ListField(child=serializers.CharField(), read_only=True)

    class Meta:
        model = Conversation
        fields = [
            'id',
            'offer_id',
            'offer_title',
            'host_uid',
            'guest_uid',
            'participant_ids',
            'status',
            'latest_booking',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


# ============================================================================
# Booking Serializers
# ============================================================================

class BookingCreateSerializer(serializers.Serializer):
    """
    Input for a booking request.

    Validation:
    - conversation_id: Required
    - scheduled_at: Required, must include timezone information
    - address_text: Required, cannot be blank
    - requirements_text: Optional free text
    """

    offer_id = serializers.CharField(max_length=64)
    offer_title = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    conversation_id = serializers.IntegerField(min_value=1)
    host_uid = serializers.CharField(max_length=64)
    scheduled_at = serializers.DateTimeField()
    address_text = serializers.CharField(max_length=300, allow_blank=True, trim_whitespace=False)
    requirements_text = serializers.CharField(required=False, allow_blank=True, default='', trim_whitespace=False)

    def validate_scheduled_at(self, value):
        """
        Validate the viewing time carries timezone information.

        Args:
            value: Scheduled datetime

        Returns:
            datetime: Validated datetime

        Raises:
            ValidationError: If the datetime is naive
        """
        if timezone.is_naive(value):
            raise serializers.ValidationError(
                "Scheduled time must include timezone information."
            )
        return value

    def validate_address_text(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Address cannot be empty.")
        return value


class BookingSerializer(serializers.ModelSerializer):
    """
    Booking representation for one of its parties.

    Adds per-viewer fields computed against ``request.user.uid``:
    - my_role: 'buyer' or 'seller'
    - i_confirmed_completion: Own track already completed
    - can_confirm_completion: Grace period after scheduled_at has passed
    - can_leave_review: Completed and own review lock unset
    """

    participant_ids = serializers.ListField(child=serializers.CharField(), read_only=True)
    my_role = serializers.SerializerMethodField()
    i_confirmed_completion = serializers.SerializerMethodField()
    can_confirm_completion = serializers.SerializerMethodField()
    can_leave_review = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            'id',
            'offer_id',
            'offer_title',
            'conversation',
            'host_uid',
            'guest_uid',
            'participant_ids',
            'scheduled_at',
            'address_text',
            'requirements_text',
            'status',
            'guest_status',
            'host_status',
            'buyer_review_id',
            'seller_review_id',
            'my_role',
            'i_confirmed_completion',
            'can_confirm_completion',
            'can_leave_review',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def _viewer_uid(self):
        request = self.context.get('request')
        user = getattr(request, 'user', None)
        return getattr(user, 'uid', None)

    def get_my_role(self, obj):
        return role_of(obj, self._viewer_uid())

    def get_i_confirmed_completion(self, obj):
        return has_confirmed_completion(obj, self._viewer_uid())

    def get_can_confirm_completion(self, obj):
        if obj.status not in ('scheduled', 'completed_pending_confirmation'):
            return False
        if has_confirmed_completion(obj, self._viewer_uid()):
            return False
        return is_completion_eligible(obj)

    def get_can_leave_review(self, obj):
        return can_leave_review(obj, self._viewer_uid())


# ============================================================================
# Review Serializers
# ============================================================================

class ReviewCreateSerializer(serializers.Serializer):
    """
    Input for a review.

    Role and target are not accepted from the client; the view derives
    them from the caller's side of the booking. Rating type and range and
    comment emptiness are checked by the review gate, so ``rating`` is
    taken as raw JSON and its typed errors reach the client unchanged.
    """

    rating = serializers.JSONField(allow_null=True)
    comment = serializers.CharField(allow_blank=True, trim_whitespace=False)

    def validate_rating(self, value):
        # Integers sent as JSON strings, e.g. "4"
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return value


class ReviewSerializer(serializers.ModelSerializer):
    class Meta:
        model = Review
        fields = [
            'id',
            'booking',
            'offer_id',
            'author_uid',
            'target_uid',
            'role',
            'rating',
            'comment',
            'created_at',
        ]
        read_only_fields = fields
