"""
Tests for the conversation, booking and review HTTP endpoints.

Test Coverage:
- Authentication requirements
- Conversation start/resume
- Booking request validation and the open-booking conflict response
- Listing with tabs and pagination
- Lifecycle actions, error codes and the completion window
- Review submission through the API
"""

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core import bookings
from core.models import Booking, Conversation, Review

User = get_user_model()


class BookingAPITestCase(TestCase):
    """Base fixtures: a host, a guest, an outsider and one conversation."""

    def setUp(self):
        self.client = APIClient()

        self.host = User.objects.create_user(
            username='host',
            email='host@example.com',
            password='testpass123'
        )
        self.guest = User.objects.create_user(
            username='guest',
            email='guest@example.com',
            password='testpass123'
        )
        self.outsider = User.objects.create_user(
            username='outsider',
            email='outsider@example.com',
            password='testpass123'
        )

        self.conversation = Conversation.objects.create(
            offer_id='offer-1',
            offer_title='Sunny flat',
            host_uid=self.host.uid,
            guest_uid=self.guest.uid,
        )

    def authenticate(self, user):
        token = str(RefreshToken.for_user(user).access_token)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

    def booking_payload(self, **overrides):
        payload = {
            'offer_id': 'offer-1',
            'conversation_id': self.conversation.pk,
            'host_uid': self.host.uid,
            'scheduled_at': (timezone.now() + timedelta(days=3)).isoformat(),
            'address_text': '12 Elm Street',
            'requirements_text': 'Check the boiler',
        }
        payload.update(overrides)
        return payload

    def create_booking(self, scheduled_at=None):
        return bookings.create_booking(
            offer_id='offer-1',
            conversation_id=self.conversation.pk,
            host_uid=self.host.uid,
            guest_uid=self.guest.uid,
            scheduled_at=scheduled_at or timezone.now() + timedelta(days=3),
            address_text='12 Elm Street',
            requirements_text='',
            offer_title='Sunny flat',
        )

    def completed_booking(self):
        booking_id = self.create_booking(scheduled_at=timezone.now() - timedelta(hours=4))
        bookings.accept_booking(booking_id, self.host.uid)
        bookings.confirm_booking_completed(booking_id, self.guest.uid)
        bookings.confirm_booking_completed(booking_id, self.host.uid)
        return booking_id

    def action(self, booking_id, name):
        url = reverse(f'booking_{name}', kwargs={'pk': booking_id})
        return self.client.post(url, format='json')


# ============================================================================
# Authentication
# ============================================================================

class AuthenticationRequiredTests(BookingAPITestCase):

    def test_endpoints_require_token(self):
        booking_id = self.create_booking()
        urls = [
            ('get', reverse('booking_list_create')),
            ('post', reverse('booking_list_create')),
            ('post', reverse('conversation_create')),
            ('get', reverse('booking_detail', kwargs={'pk': booking_id})),
            ('post', reverse('booking_accept', kwargs={'pk': booking_id})),
            ('post', reverse('booking_review_create', kwargs={'pk': booking_id})),
        ]

        for method, url in urls:
            with self.subTest(method=method, url=url):
                response = getattr(self.client, method)(url, format='json')
                self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_obtain_with_username(self):
        response = self.client.post(
            reverse('token_obtain_pair'),
            {'username': 'guest', 'password': 'testpass123'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)


# ============================================================================
# Conversations
# ============================================================================

class ConversationEndpointTests(BookingAPITestCase):

    def test_start_conversation(self):
        self.authenticate(self.guest)

        response = self.client.post(
            reverse('conversation_create'),
            {'offer_id': 'offer-9', 'offer_title': 'Loft', 'host_uid': self.host.uid},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['guest_uid'], self.guest.uid)
        self.assertEqual(response.data['participant_ids'], [self.host.uid, self.guest.uid])
        self.assertEqual(response.data['offer_title'], 'Loft')

    def test_existing_conversation_is_returned(self):
        self.authenticate(self.guest)

        response = self.client.post(
            reverse('conversation_create'),
            {'offer_id': 'offer-1', 'host_uid': self.host.uid},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.conversation.pk)

    def test_host_cannot_talk_to_self(self):
        self.authenticate(self.host)

        response = self.client.post(
            reverse('conversation_create'),
            {'offer_id': 'offer-1', 'host_uid': self.host.uid},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'not_authorized')


# ============================================================================
# Booking Creation
# ============================================================================

class BookingCreateEndpointTests(BookingAPITestCase):

    def test_guest_requests_booking(self):
        self.authenticate(self.guest)

        response = self.client.post(reverse('booking_list_create'), self.booking_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'requested')
        self.assertEqual(response.data['guest_status'], 'requested')
        self.assertEqual(response.data['host_status'], 'requested')
        self.assertEqual(response.data['guest_uid'], self.guest.uid)
        self.assertEqual(response.data['my_role'], 'buyer')
        self.assertEqual(response.data['offer_title'], 'Sunny flat')
        self.assertFalse(response.data['can_leave_review'])

        self.conversation.refresh_from_db()
        self.assertEqual(self.conversation.latest_booking_id, response.data['id'])

    def test_second_request_returns_conflict_with_booking_id(self):
        first_id = self.create_booking()
        self.authenticate(self.guest)

        response = self.client.post(reverse('booking_list_create'), self.booking_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'booking_open_exists')
        self.assertEqual(response.data['booking_id'], first_id)
        self.assertIn('detail', response.data)
        self.assertEqual(Booking.objects.count(), 1)

    def test_blank_address_is_rejected(self):
        self.authenticate(self.guest)

        response = self.client.post(
            reverse('booking_list_create'),
            self.booking_payload(address_text='   '),
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('address_text', response.data)
        self.assertFalse(Booking.objects.exists())

    def test_missing_fields_are_rejected(self):
        self.authenticate(self.guest)

        response = self.client.post(reverse('booking_list_create'), {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        for field in ('offer_id', 'conversation_id', 'host_uid', 'scheduled_at', 'address_text'):
            self.assertIn(field, response.data)

    def test_unknown_conversation(self):
        self.authenticate(self.guest)

        response = self.client.post(
            reverse('booking_list_create'),
            self.booking_payload(conversation_id=999999),
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'not_found')

    def test_only_the_conversation_guest_can_request(self):
        for user in (self.host, self.outsider):
            with self.subTest(user=user.username):
                self.authenticate(user)
                response = self.client.post(
                    reverse('booking_list_create'), self.booking_payload(), format='json'
                )
                self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.assertFalse(Booking.objects.exists())

    def test_offer_and_host_must_match_conversation(self):
        self.authenticate(self.guest)

        response = self.client.post(
            reverse('booking_list_create'),
            self.booking_payload(host_uid=self.outsider.uid),
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Booking.objects.exists())


# ============================================================================
# Listing and Detail
# ============================================================================

class BookingListEndpointTests(BookingAPITestCase):

    def setUp(self):
        super().setUp()
        self.requested_id = self.create_booking()

        other = Conversation.objects.create(
            offer_id='offer-2', host_uid=self.host.uid, guest_uid=self.guest.uid
        )
        self.declined_id = bookings.create_booking(
            offer_id='offer-2',
            conversation_id=other.pk,
            host_uid=self.host.uid,
            guest_uid=self.guest.uid,
            scheduled_at=timezone.now() + timedelta(days=1),
            address_text='3 Oak Road',
            requirements_text='',
        )
        bookings.decline_booking(self.declined_id, self.host.uid)

    def test_list_is_paginated_and_scoped_to_participant(self):
        self.authenticate(self.host)

        response = self.client.get(reverse('booking_list_create'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        ids = {item['id'] for item in response.data['results']}
        self.assertEqual(ids, {self.requested_id, self.declined_id})
        self.assertTrue(all(item['my_role'] == 'seller' for item in response.data['results']))

    def test_outsider_sees_empty_list(self):
        self.authenticate(self.outsider)

        response = self.client.get(reverse('booking_list_create'))

        self.assertEqual(response.data['count'], 0)

    def test_tab_filter(self):
        self.authenticate(self.guest)

        response = self.client.get(reverse('booking_list_create'), {'tab': 'declined'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['id'] for item in response.data['results']], [self.declined_id])

    def test_unknown_tab(self):
        self.authenticate(self.guest)

        response = self.client.get(reverse('booking_list_create'), {'tab': 'everything'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail_for_participants_only(self):
        url = reverse('booking_detail', kwargs={'pk': self.requested_id})

        self.authenticate(self.guest)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['participant_ids'], [self.host.uid, self.guest.uid])

        self.authenticate(self.outsider)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'not_authorized')
        self.assertIn('detail', response.data)

    def test_detail_not_found(self):
        self.authenticate(self.guest)

        response = self.client.get(reverse('booking_detail', kwargs={'pk': 999999}))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'not_found')


# ============================================================================
# Lifecycle Actions
# ============================================================================

class BookingActionEndpointTests(BookingAPITestCase):

    def test_host_accepts(self):
        booking_id = self.create_booking()
        self.authenticate(self.host)

        response = self.action(booking_id, 'accept')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'scheduled')

    def test_guest_cannot_accept(self):
        booking_id = self.create_booking()
        self.authenticate(self.guest)

        response = self.action(booking_id, 'accept')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'not_authorized')
        self.assertEqual(Booking.objects.get(pk=booking_id).status, 'requested')

    def test_decline_scheduled_is_conflict(self):
        booking_id = self.create_booking()
        bookings.accept_booking(booking_id, self.host.uid)
        self.authenticate(self.host)

        response = self.action(booking_id, 'decline')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_state')

    def test_guest_cancels(self):
        booking_id = self.create_booking()
        self.authenticate(self.guest)

        response = self.action(booking_id, 'cancel')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'cancelled')

    def test_outsider_cannot_cancel(self):
        booking_id = self.create_booking()
        self.authenticate(self.outsider)

        response = self.action(booking_id, 'cancel')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_missing_booking(self):
        self.authenticate(self.host)

        response = self.action(999999, 'accept')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'not_found')

    def test_completion_confirmed_too_early(self):
        booking_id = self.create_booking(scheduled_at=timezone.now() - timedelta(hours=1))
        bookings.accept_booking(booking_id, self.host.uid)
        self.authenticate(self.guest)

        response = self.action(booking_id, 'confirm_completion')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'completion_not_yet_allowed')
        self.assertEqual(Booking.objects.get(pk=booking_id).guest_status, 'scheduled')

    def test_dual_confirmation_through_api(self):
        booking_id = self.create_booking(scheduled_at=timezone.now() - timedelta(hours=3, minutes=5))
        bookings.accept_booking(booking_id, self.host.uid)

        self.authenticate(self.guest)
        response = self.action(booking_id, 'confirm_completion')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed_pending_confirmation')
        self.assertTrue(response.data['i_confirmed_completion'])
        self.assertFalse(response.data['can_confirm_completion'])

        # Repeating is a no-op
        response = self.action(booking_id, 'confirm_completion')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed_pending_confirmation')

        self.authenticate(self.host)
        response = self.action(booking_id, 'confirm_completion')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.assertTrue(response.data['can_leave_review'])

    def test_confirm_requested_booking_is_conflict(self):
        booking_id = self.create_booking(scheduled_at=timezone.now() - timedelta(hours=5))
        self.authenticate(self.guest)

        response = self.action(booking_id, 'confirm_completion')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_state')

    def test_can_confirm_completion_flag(self):
        booking_id = self.create_booking(scheduled_at=timezone.now() - timedelta(hours=4))
        bookings.accept_booking(booking_id, self.host.uid)
        self.authenticate(self.guest)

        response = self.client.get(reverse('booking_detail', kwargs={'pk': booking_id}))

        self.assertTrue(response.data['can_confirm_completion'])
        self.assertFalse(response.data['i_confirmed_completion'])


# ============================================================================
# Reviews
# ============================================================================

class BookingReviewEndpointTests(BookingAPITestCase):

    def post_review(self, booking_id, data):
        url = reverse('booking_review_create', kwargs={'pk': booking_id})
        return self.client.post(url, data, format='json')

    def test_guest_reviews_host(self):
        booking_id = self.completed_booking()
        self.authenticate(self.guest)

        response = self.post_review(booking_id, {'rating': 5, 'comment': 'Great'})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], 'buyer')
        self.assertEqual(response.data['author_uid'], self.guest.uid)
        self.assertEqual(response.data['target_uid'], self.host.uid)
        self.assertEqual(response.data['offer_id'], 'offer-1')
        self.assertEqual(Booking.objects.get(pk=booking_id).buyer_review_id, response.data['id'])

    def test_host_reviews_guest(self):
        booking_id = self.completed_booking()
        self.authenticate(self.host)

        response = self.post_review(booking_id, {'rating': 4, 'comment': 'Punctual'})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], 'seller')
        self.assertEqual(response.data['target_uid'], self.guest.uid)

    def test_second_review_is_conflict(self):
        booking_id = self.completed_booking()
        self.authenticate(self.guest)
        self.post_review(booking_id, {'rating': 5, 'comment': 'Great'})

        response = self.post_review(booking_id, {'rating': 4, 'comment': 'x'})

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'already_reviewed')
        self.assertEqual(Review.objects.count(), 1)

    def test_review_before_completion_is_conflict(self):
        booking_id = self.create_booking()
        self.authenticate(self.guest)

        response = self.post_review(booking_id, {'rating': 5, 'comment': 'Great'})

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'booking_not_completed')

    def test_rating_out_of_range(self):
        booking_id = self.completed_booking()
        self.authenticate(self.guest)

        response = self.post_review(booking_id, {'rating': 6, 'comment': 'Great'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'invalid_rating')

    def test_fractional_rating(self):
        booking_id = self.completed_booking()
        self.authenticate(self.guest)

        response = self.post_review(booking_id, {'rating': 4.5, 'comment': 'Fine'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'invalid_rating')
        self.assertIn('detail', response.data)
        self.assertFalse(Review.objects.exists())

    def test_non_numeric_rating(self):
        booking_id = self.completed_booking()
        self.authenticate(self.guest)

        for rating in ('five', None, [5]):
            with self.subTest(rating=rating):
                response = self.post_review(booking_id, {'rating': rating, 'comment': 'Fine'})
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(response.data['code'], 'invalid_rating')

        self.assertFalse(Review.objects.exists())

    def test_form_encoded_rating(self):
        booking_id = self.completed_booking()
        self.authenticate(self.guest)

        url = reverse('booking_review_create', kwargs={'pk': booking_id})
        response = self.client.post(url, {'rating': '4', 'comment': 'Fine'})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['rating'], 4)

    def test_blank_comment(self):
        booking_id = self.completed_booking()
        self.authenticate(self.guest)

        response = self.post_review(booking_id, {'rating': 5, 'comment': '   '})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'empty_comment')

    def test_outsider_cannot_review(self):
        booking_id = self.completed_booking()
        self.authenticate(self.outsider)

        response = self.post_review(booking_id, {'rating': 5, 'comment': 'Great'})

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Review.objects.exists())
