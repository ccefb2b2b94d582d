"""
HTTP endpoints for conversations, bookings and reviews.

Views authenticate the user, resolve the acting uid and delegate to the
core modules. Typed errors from the core propagate as DRF exceptions and
are rendered by ``core.exceptions.booking_exception_handler``.
"""

import logging

from rest_framework import status
from rest_framework.generics import RetrieveAPIView
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import bookings, reviews
from .conversations import get_or_create_conversation
from .exceptions import BookingError, CompletionNotYetAllowed, NotAuthorized, NotFound
from .models import Booking, Conversation, Review
from .permissions import IsBookingParticipant
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    ConversationCreateSerializer,
    ConversationSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
)

logger = logging.getLogger(__name__)


class ClientIPMixin:
    """Resolve the client address, honouring X-Forwarded-For from the proxy."""

    def get_client_ip(self, request):
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')


class BookingPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


# ============================================================================
# Conversation Views
# ============================================================================

class ConversationCreateView(ClientIPMixin, APIView):
    """
    Start or resume the caller's conversation with a host about an offer.

    POST /api/conversations/
    Request body: {"offer_id": "offer-1", "offer_title": "Flat", "host_uid": "..."}

    Success response (200): the conversation.

    Error responses:
    - 400: Invalid data
    - 401: Missing or invalid JWT token
    - 403: Caller is the host of the offer
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = ConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        conversation_id = get_or_create_conversation(
            offer_id=data['offer_id'],
            host_uid=data['host_uid'],
            guest_uid=request.user.uid,
            offer_title=data['offer_title'],
        )
        conversation = Conversation.objects.get(pk=conversation_id)

        return Response(ConversationSerializer(conversation).data, status=status.HTTP_200_OK)


# ============================================================================
# Booking Views
# ============================================================================

class BookingListCreateView(ClientIPMixin, APIView):
    """
    List the caller's bookings or request a new one.

    GET /api/bookings/?tab=active
    Tabs: requested, active, completed, cancelled, declined. Results are
    paginated and ordered by most recent activity.

    POST /api/bookings/
    Request body: {
        "offer_id": "offer-1",
        "conversation_id": 1,
        "host_uid": "...",
        "scheduled_at": "2026-11-02T14:00:00Z",
        "address_text": "12 Elm Street",
        "requirements_text": "Check the boiler"
    }

    Error responses:
    - 400: Invalid data or unknown tab
    - 401: Missing or invalid JWT token
    - 403: Caller is not the guest of the conversation
    - 404: Conversation not found
    - 409: Conversation already has an open booking (body carries booking_id)
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'booking_actions'

    def get_throttles(self):
        # Listing is a read; only booking requests are throttled
        if self.request.method == 'GET':
            return []
        return super().get_throttles()

    def get(self, request, *args, **kwargs):
        tab = request.query_params.get('tab') or None

        try:
            queryset = bookings.list_bookings_for_user(request.user.uid, tab=tab)
        except ValueError:
            return Response(
                {'detail': f"Invalid tab. Must be one of: {', '.join(bookings.BOOKING_TABS)}."},
                status=status.HTTP_400_BAD_REQUEST
            )

        paginator = BookingPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = BookingSerializer(page, many=True, context={'request': request})
        return paginator.get_paginated_response(serializer.data)

    def post(self, request, *args, **kwargs):
        """
        Handle a booking request.

        Steps:
        1. Validate request data
        2. Check the conversation matches the offer, host and caller
        3. Create the booking through the lifecycle
        4. Return the created booking
        """
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        guest_uid = request.user.uid

        try:
            conversation = Conversation.objects.get(pk=data['conversation_id'])
        except Conversation.DoesNotExist:
            raise NotFound(f"Conversation with ID {data['conversation_id']} does not exist.")

        if conversation.guest_uid != guest_uid:
            logger.warning(
                f"Booking request outside caller's conversation. "
                f"Conversation ID: {conversation.pk}, User: {guest_uid}, "
                f"IP: {self.get_client_ip(request)}"
            )
            raise NotAuthorized('Only the guest of this conversation can request a booking.')

        if conversation.host_uid != data['host_uid'] or conversation.offer_id != data['offer_id']:
            return Response(
                {'detail': 'Offer and host must match the conversation.'},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            booking_id = bookings.create_booking(
                offer_id=data['offer_id'],
                conversation_id=conversation.pk,
                host_uid=data['host_uid'],
                guest_uid=guest_uid,
                scheduled_at=data['scheduled_at'],
                address_text=data['address_text'],
                requirements_text=data['requirements_text'],
                offer_title=data['offer_title'] or conversation.offer_title,
            )
        except BookingError as e:
            logger.warning(
                f"Booking creation refused. "
                f"Conversation ID: {conversation.pk}, User: {guest_uid}, "
                f"Code: {e.code}, IP: {self.get_client_ip(request)}"
            )
            raise

        booking = Booking.objects.get(pk=booking_id)
        return Response(
            BookingSerializer(booking, context={'request': request}).data,
            status=status.HTTP_201_CREATED
        )


class BookingDetailView(RetrieveAPIView):
    """
    Booking detail for one of its parties.

    GET /api/bookings/<id>/

    Error responses:
    - 401: Missing or invalid JWT token
    - 403: Caller is neither host nor guest
    - 404: Booking not found
    """
    permission_classes = [IsAuthenticated, IsBookingParticipant]
    serializer_class = BookingSerializer
    queryset = Booking.objects.all()

    def get_object(self):
        booking = bookings.get_booking_for_participant(self.kwargs['pk'], self.request.user.uid)
        self.check_object_permissions(self.request, booking)
        return booking


class BookingActionView(ClientIPMixin, APIView):
    """
    Apply one lifecycle transition to a booking.

    POST /api/bookings/<id>/accept/
    POST /api/bookings/<id>/decline/
    POST /api/bookings/<id>/cancel/
    POST /api/bookings/<id>/confirm-completion/

    The view is mounted once per action with ``action`` set in
    ``as_view()``. Completion confirmation is only forwarded once the
    grace period after ``scheduled_at`` has passed.

    Success response (200): the updated booking.

    Error responses:
    - 400: Completion confirmed too early
    - 401: Missing or invalid JWT token
    - 403: Caller may not perform this action
    - 404: Booking not found
    - 409: Transition not allowed from the current status
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'booking_actions'
    action = None

    transitions = {
        'accept': bookings.accept_booking,
        'decline': bookings.decline_booking,
        'cancel': bookings.cancel_booking,
        'confirm-completion': bookings.confirm_booking_completed,
    }

    def post(self, request, pk, *args, **kwargs):
        acting_uid = request.user.uid
        transition = self.transitions[self.action]

        try:
            if self.action == 'confirm-completion':
                self.check_completion_window(pk, acting_uid)
            booking = transition(pk, acting_uid)
        except BookingError as e:
            logger.warning(
                f"Booking action refused. "
                f"Booking ID: {pk}, Action: {self.action}, "
                f"User: {acting_uid}, Code: {e.code}, "
                f"IP: {self.get_client_ip(request)}"
            )
            raise

        logger.info(
            f"Booking action applied. "
            f"Booking ID: {pk}, Action: {self.action}, "
            f"New Status: {booking.status}, User: {acting_uid}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response(
            BookingSerializer(booking, context={'request': request}).data,
            status=status.HTTP_200_OK
        )

    def check_completion_window(self, pk, acting_uid):
        """
        Refuse early completion confirmations.

        Only bookings the lifecycle would accept a confirmation for are
        checked; anything else is left to the lifecycle's own errors.

        Raises:
            CompletionNotYetAllowed: If the grace period has not passed
        """
        booking = bookings.get_booking_for_participant(pk, acting_uid)

        if booking.status not in bookings.CONFIRMABLE_STATUSES:
            return
        if bookings.has_confirmed_completion(booking, acting_uid):
            return
        if not bookings.is_completion_eligible(booking):
            raise CompletionNotYetAllowed()


# ============================================================================
# Review Views
# ============================================================================

class BookingReviewCreateView(ClientIPMixin, APIView):
    """
    Leave the caller's review of a completed booking.

    POST /api/bookings/<id>/reviews/
    Request body: {"rating": 5, "comment": "Great viewing"}

    The caller's role (buyer for the guest, seller for the host) and the
    review target (the other party) are derived from the booking.

    Success response (201): the review.

    Error responses:
    - 400: Rating outside 1-5 or empty comment
    - 401: Missing or invalid JWT token
    - 403: Caller is neither host nor guest
    - 404: Booking not found
    - 409: Booking not completed, or already reviewed from this side
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        author_uid = request.user.uid
        booking = bookings.get_booking_for_participant(pk, author_uid)
        role = bookings.role_of(booking, author_uid)
        target_uid = booking.host_uid if role == 'buyer' else booking.guest_uid

        try:
            review_id = reviews.submit_review(
                booking_id=booking.pk,
                offer_id=booking.offer_id,
                author_uid=author_uid,
                target_uid=target_uid,
                role=role,
                rating=serializer.validated_data['rating'],
                comment=serializer.validated_data['comment'],
            )
        except BookingError as e:
            logger.warning(
                f"Review creation refused. "
                f"Booking ID: {pk}, User: {author_uid}, "
                f"Code: {e.code}, IP: {self.get_client_ip(request)}"
            )
            raise

        review = Review.objects.get(pk=review_id)
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)
